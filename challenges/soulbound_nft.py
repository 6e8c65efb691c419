#!/usr/bin/env python3
"""
Challenge: soulbound NFT collection
- collection mint: MintCloseAuthority + GroupPointer + MetadataPointer, TokenGroup and metadata inline
- NFT mint: MintCloseAuthority + NonTransferable + GroupMemberPointer + MetadataPointer,
  metadata inline, registered as a member of the collection
- one NFT minted to the payer, mint authority revoked so the supply stays 1

Usage:
  python -m challenges.soulbound_nft
"""

import asyncio
import logging
import sys

import spl.token.instructions as spl_token
import spl.token.models as spl_token_models
from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Finalized
from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.system_program import CreateAccountParams, create_account
from spl.token.constants import TOKEN_2022_PROGRAM_ID

from config import load_keypair, setup_logging
from solana_rpc import get_client, airdrop_if_needed, send_and_confirm_transaction, explorer_url
from token_instructions import (
    initialize_group_member_pointer,
    initialize_group_pointer,
    initialize_metadata_pointer,
    initialize_mint_close_authority,
    initialize_non_transferable_mint,
)
from token_layouts import (
    AuthorityType, ExtensionType, TYPE_SIZE, LENGTH_SIZE,
    extension_name, get_extension_types, get_mint_len, unpack_mint,
)
import token_metadata
from token_metadata import TokenMetadata
from token_group import (
    TOKEN_GROUP_SIZE,
    TOKEN_GROUP_MEMBER_SIZE,
    get_token_group,
    get_token_group_member,
    initialize_group,
    initialize_member,
)

logger = logging.getLogger(__name__)

NFT_DECIMALS = 0
COLLECTION_MAX_SIZE = 100
METADATA_URI = "https://example.com/metadata.json"

COLLECTION_EXTENSIONS = [
    ExtensionType.MINT_CLOSE_AUTHORITY,
    ExtensionType.GROUP_POINTER,
    ExtensionType.METADATA_POINTER,
]

NFT_EXTENSIONS = [
    ExtensionType.MINT_CLOSE_AUTHORITY,
    ExtensionType.NON_TRANSFERABLE,
    ExtensionType.GROUP_MEMBER_POINTER,
    ExtensionType.METADATA_POINTER,
]


def _create_mint_account(keypair: Keypair, mint: Keypair, lamports: int, space: int):
    return create_account(CreateAccountParams(
        from_pubkey=keypair.pubkey(),
        to_pubkey=mint.pubkey(),
        lamports=lamports,
        space=space,
        owner=TOKEN_2022_PROGRAM_ID,
    ))


def _initialize_mint(keypair: Keypair, mint: Keypair):
    return spl_token.initialize_mint(spl_token_models.InitializeMintParams(
        decimals=NFT_DECIMALS,
        program_id=TOKEN_2022_PROGRAM_ID,
        mint=mint.pubkey(),
        mint_authority=keypair.pubkey(),
    ))


async def create_group(client: AsyncClient, keypair: Keypair) -> Keypair:
    group = Keypair()
    metadata = TokenMetadata(
        mint=group.pubkey(),
        name="Example Collection",
        symbol="EXCOL",
        uri=METADATA_URI,
        update_authority=keypair.pubkey(),
    )

    mint_len = get_mint_len(COLLECTION_EXTENSIONS)
    # rent покрывает metadata и TokenGroup, которые программа допишет через realloc
    lamports = (await client.get_minimum_balance_for_rent_exemption(
        mint_len + token_metadata.metadata_len(metadata) + TYPE_SIZE + LENGTH_SIZE + TOKEN_GROUP_SIZE
    )).value

    instructions = [
        _create_mint_account(keypair, group, lamports, mint_len),
        initialize_mint_close_authority(group.pubkey(), keypair.pubkey()),
        initialize_group_pointer(group.pubkey(), keypair.pubkey(), group.pubkey()),
        initialize_metadata_pointer(group.pubkey(), keypair.pubkey(), group.pubkey()),
        _initialize_mint(keypair, group),
        token_metadata.initialize(
            group.pubkey(), keypair.pubkey(), group.pubkey(), keypair.pubkey(),
            metadata.name, metadata.symbol, metadata.uri,
        ),
        initialize_group(group.pubkey(), group.pubkey(), keypair.pubkey(), keypair.pubkey(), COLLECTION_MAX_SIZE),
    ]

    signature = await send_and_confirm_transaction(client, instructions, [keypair, group], commitment=Finalized)
    logger.info(f"✅ Group created! Check out your TX here: {explorer_url(signature)}")
    return group


async def create_mint(client: AsyncClient, keypair: Keypair, group: Keypair) -> Keypair:
    mint = Keypair()
    metadata = TokenMetadata(
        mint=mint.pubkey(),
        name="Example NFT",
        symbol="EXNFT",
        uri=METADATA_URI,
        update_authority=keypair.pubkey(),
    )

    mint_len = get_mint_len(NFT_EXTENSIONS)
    lamports = (await client.get_minimum_balance_for_rent_exemption(
        mint_len + token_metadata.metadata_len(metadata) + TYPE_SIZE + LENGTH_SIZE + TOKEN_GROUP_MEMBER_SIZE
    )).value

    instructions = [
        _create_mint_account(keypair, mint, lamports, mint_len),
        initialize_mint_close_authority(mint.pubkey(), keypair.pubkey()),
        initialize_non_transferable_mint(mint.pubkey()),
        initialize_group_member_pointer(mint.pubkey(), keypair.pubkey(), mint.pubkey()),
        initialize_metadata_pointer(mint.pubkey(), keypair.pubkey(), mint.pubkey()),
        _initialize_mint(keypair, mint),
        token_metadata.initialize(
            mint.pubkey(), keypair.pubkey(), mint.pubkey(), keypair.pubkey(),
            metadata.name, metadata.symbol, metadata.uri,
        ),
        initialize_member(mint.pubkey(), mint.pubkey(), keypair.pubkey(), group.pubkey(), keypair.pubkey()),
    ]

    signature = await send_and_confirm_transaction(client, instructions, [keypair, mint], commitment=Finalized)
    logger.info(f"✅ Mint created! Check out your TX here: {explorer_url(signature)}")
    return mint


async def mint_nft(client: AsyncClient, keypair: Keypair, mint: Keypair) -> Pubkey:
    """Mints the single token to the payer and drops the mint authority."""
    ata = spl_token.get_associated_token_address(keypair.pubkey(), mint.pubkey(), TOKEN_2022_PROGRAM_ID)

    instructions = [
        spl_token.create_associated_token_account(
            keypair.pubkey(), keypair.pubkey(), mint.pubkey(), TOKEN_2022_PROGRAM_ID
        ),
        spl_token.mint_to(spl_token_models.MintToParams(
            program_id=TOKEN_2022_PROGRAM_ID,
            mint=mint.pubkey(),
            dest=ata,
            mint_authority=keypair.pubkey(),
            amount=1,
        )),
        spl_token.set_authority(spl_token_models.SetAuthorityParams(
            program_id=TOKEN_2022_PROGRAM_ID,
            account=mint.pubkey(),
            authority=AuthorityType.MINT_TOKENS,
            current_authority=keypair.pubkey(),
            new_authority=None,
        )),
    ]

    signature = await send_and_confirm_transaction(client, instructions, [keypair], commitment=Finalized)
    logger.info(f"✅ NFT minted and mint authority revoked! Check out your TX here: {explorer_url(signature)}")
    return ata


async def log_extensions(client: AsyncClient, mint: Pubkey):
    account_info = (await client.get_account_info(mint, commitment=Finalized)).value
    if account_info is None:
        logger.warning(f"⚠️ Mint {mint} not found")
        return

    state = unpack_mint(mint, account_info.data)
    names = [extension_name(t) for t in get_extension_types(state.tlv_data)]
    logger.info(f"Mint {mint} extensions: {', '.join(names)}")

    group = get_token_group(state)
    if group:
        logger.info(f"Collection size: {group.size}/{group.max_size}")

    member = get_token_group_member(state)
    if member:
        logger.info(f"Member #{member.member_number} of collection {member.group}")


async def run():
    keypair = load_keypair()
    async with get_client() as client:
        await airdrop_if_needed(client, keypair)

        group = await create_group(client, keypair)

        mint = await create_mint(client, keypair, group)

        await mint_nft(client, keypair, mint)

        await log_extensions(client, group.pubkey())
        await log_extensions(client, mint.pubkey())


def main():
    setup_logging()
    try:
        asyncio.run(run())
    except Exception as e:
        logger.error(f"❌ Oops, something went wrong: {e}")
        for line in getattr(e, 'logs', []):
            logger.error(f"   {line}")
        sys.exit(1)


if __name__ == "__main__":
    main()
