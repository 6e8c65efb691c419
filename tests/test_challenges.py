"""End-to-end runs of the challenge scripts against the fake ledger."""

import asyncio
import logging
import struct

from solders.keypair import Keypair
from spl.token.constants import ASSOCIATED_TOKEN_PROGRAM_ID

from conftest import decode_instructions, mint_data, tlv_entry
from challenges import soulbound_nft, stablecoin
from token_layouts import TRANSFER_FEE_CONFIG_LAYOUT, ExtensionType
import token_group
import token_metadata
from token_metadata import TokenMetadata


def _space(create_account_ix) -> int:
    return struct.unpack_from("<Q", create_account_ix[1], 12)[0]


def _opcodes(instructions):
    """Token instruction opcode, with the sub-instruction for extension families that have one."""
    codes = []
    for _, data, _ in instructions[1:]:
        if data[0] in (26, 36, 39, 40, 41):
            codes.append((data[0], data[1]))
        else:
            codes.append((data[0],))
    return codes


class TestSoulboundNFT:
    def test_scenario(self, ledger, script_env, keypair):
        module = script_env(soulbound_nft)

        asyncio.run(module.run())

        collection, nft, minted = ledger.transactions

        collection_ixs = decode_instructions(collection)
        group_mint = collection_ixs[0][2][1]
        assert _space(collection_ixs[0]) == 338
        assert _opcodes(collection_ixs[:5]) == [(25,), (40, 0), (39, 0), (0,)]
        assert collection_ixs[4][1][1] == 0  # decimals
        assert collection_ixs[5][1][:8] == token_metadata.INITIALIZE_DISCRIMINATOR
        assert collection_ixs[6][1] == (
            token_group.INITIALIZE_GROUP_DISCRIMINATOR + bytes(keypair.pubkey()) + struct.pack("<Q", 100)
        )

        nft_ixs = decode_instructions(nft)
        nft_mint = nft_ixs[0][2][1]
        assert _space(nft_ixs[0]) == 342
        # NonTransferable и pointers инициализируются до InitializeMint
        assert _opcodes(nft_ixs[:6]) == [(25,), (32,), (41, 0), (39, 0), (0,)]
        assert nft_ixs[6][1][:8] == token_metadata.INITIALIZE_DISCRIMINATOR
        assert nft_ixs[7][1] == token_group.INITIALIZE_MEMBER_DISCRIMINATOR
        assert nft_ixs[7][2][3] == group_mint
        assert len(nft.signatures) == 2

        minted_ixs = decode_instructions(minted)
        assert minted_ixs[0][0] == ASSOCIATED_TOKEN_PROGRAM_ID
        assert minted_ixs[1][1] == bytes([7]) + struct.pack("<Q", 1)
        assert minted_ixs[2][1] == bytes([6, 0, 0]) + bytes(32)
        assert minted_ixs[2][2][0] == nft_mint

    def test_logs_extensions_read_back(self, ledger, script_env, keypair, caplog):
        module = script_env(soulbound_nft)

        def lookup(address):
            tlv = (
                tlv_entry(ExtensionType.MINT_CLOSE_AUTHORITY, bytes(keypair.pubkey()))
                + tlv_entry(ExtensionType.NON_TRANSFERABLE, b"")
            )
            return mint_data(decimals=0, tlv=tlv)

        ledger.account_lookup = lookup

        with caplog.at_level(logging.INFO):
            asyncio.run(module.run())

        assert "extensions: MINT_CLOSE_AUTHORITY, NON_TRANSFERABLE" in caplog.text

    def test_logs_collection_and_membership(self, ledger, keypair, caplog):
        collection, nft = Keypair().pubkey(), Keypair().pubkey()
        group_value = token_group.TOKEN_GROUP_LAYOUT.build(dict(
            update_authority=keypair.pubkey(), mint=collection, size=1, max_size=100,
        ))
        member_value = token_group.TOKEN_GROUP_MEMBER_LAYOUT.build(dict(mint=nft, group=collection, member_number=1))
        ledger.set_account(collection, mint_data(decimals=0, tlv=tlv_entry(ExtensionType.TOKEN_GROUP, group_value)))
        ledger.set_account(nft, mint_data(decimals=0, tlv=tlv_entry(ExtensionType.TOKEN_GROUP_MEMBER, member_value)))

        with caplog.at_level(logging.INFO):
            asyncio.run(soulbound_nft.log_extensions(ledger, collection))
            asyncio.run(soulbound_nft.log_extensions(ledger, nft))

        assert "Collection size: 1/100" in caplog.text
        assert f"Member #1 of collection {collection}" in caplog.text

    def test_member_rent_covers_metadata_and_member(self, ledger, script_env):
        module = script_env(soulbound_nft)

        asyncio.run(module.run())

        nft_ixs = decode_instructions(ledger.transactions[1])
        metadata = TokenMetadata(mint=nft_ixs[0][2][1], name="Example NFT", symbol="EXNFT",
                                 uri=soulbound_nft.METADATA_URI, update_authority=Keypair().pubkey())
        expected = 342 + token_metadata.metadata_len(metadata) + 4 + token_group.TOKEN_GROUP_MEMBER_SIZE
        assert struct.unpack_from("<Q", nft_ixs[0][1], 4)[0] == (expected + 128) * 6960


class TestStablecoin:
    def test_single_transaction(self, ledger, script_env, keypair):
        module = script_env(stablecoin)

        asyncio.run(module.run())

        (transaction,) = ledger.transactions
        instructions = decode_instructions(transaction)
        assert _space(instructions[0]) == 486
        assert _opcodes(instructions[:7]) == [(25,), (35,), (26, 0), (36, 0), (39, 0), (0,)]
        assert instructions[7][1][:8] == token_metadata.INITIALIZE_DISCRIMINATOR

        fee_config = instructions[3][1]
        assert struct.unpack_from("<H", fee_config, 68)[0] == 500
        assert struct.unpack_from("<Q", fee_config, 70)[0] == 1_000_000

        hook_program = instructions[4][1][34:]
        assert hook_program != bytes(32)
        assert hook_program != bytes(keypair.pubkey())

        name = "PayPal USD".encode()
        assert instructions[7][1][8:12 + len(name)] == struct.pack("<I", len(name)) + name

    def test_logs_fee_config_and_metadata(self, ledger, script_env, keypair, caplog):
        module = script_env(stablecoin)

        def lookup(address):
            mint = decode_instructions(ledger.transactions[0])[0][2][1]
            fee = dict(epoch=0, maximum_fee=1_000_000, transfer_fee_basis_points=500)
            fee_config = TRANSFER_FEE_CONFIG_LAYOUT.build(dict(
                transfer_fee_config_authority=keypair.pubkey(),
                withdraw_withheld_authority=keypair.pubkey(),
                withheld_amount=0,
                older_transfer_fee=fee,
                newer_transfer_fee=fee,
            ))
            metadata = TokenMetadata(mint=mint, name="PayPal USD", symbol="PYUSD", uri="uri",
                                     update_authority=keypair.pubkey())
            tlv = (
                tlv_entry(ExtensionType.TRANSFER_FEE_CONFIG, fee_config)
                + tlv_entry(ExtensionType.TOKEN_METADATA, token_metadata.pack(metadata))
            )
            return mint_data(mint_authority=keypair.pubkey(), tlv=tlv)

        ledger.account_lookup = lookup

        with caplog.at_level(logging.INFO):
            asyncio.run(module.run())

        assert "extensions: TRANSFER_FEE_CONFIG, TOKEN_METADATA" in caplog.text
        assert "Transfer fee: 500 bps, max 1000000" in caplog.text
        assert "Metadata: PayPal USD (PYUSD) uri" in caplog.text

    def test_missing_mint_is_a_warning(self, ledger, script_env, caplog):
        module = script_env(stablecoin)

        with caplog.at_level(logging.WARNING):
            asyncio.run(module.run())

        assert "not found" in caplog.text
