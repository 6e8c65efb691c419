#!/usr/bin/env python3
"""
Challenge: PYUSD-style stablecoin mint
MintCloseAuthority + PermanentDelegate + TransferFeeConfig (5%, max 1 token)
+ TransferHook + MetadataPointer, with the token metadata stored in the mint.
Everything is initialized in one transaction, then the resulting extension
set and fee config are read back from the chain.

Usage:
  python -m challenges.stablecoin
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
    initialize_metadata_pointer,
    initialize_mint_close_authority,
    initialize_permanent_delegate,
    initialize_transfer_fee_config,
    initialize_transfer_hook,
)
from token_layouts import (
    ExtensionType, extension_name, get_extension_types, get_mint_len, get_transfer_fee_config, unpack_mint,
)
import token_metadata
from token_metadata import TokenMetadata

logger = logging.getLogger(__name__)

DECIMALS = 6
TRANSFER_FEE_BASIS_POINTS = 500
MAXIMUM_FEE = 1 * 10 ** DECIMALS

STABLECOIN_EXTENSIONS = [
    ExtensionType.MINT_CLOSE_AUTHORITY,
    ExtensionType.PERMANENT_DELEGATE,
    ExtensionType.TRANSFER_FEE_CONFIG,
    ExtensionType.TRANSFER_HOOK,
    ExtensionType.METADATA_POINTER,
]


async def create_mint(client: AsyncClient, keypair: Keypair) -> Keypair:
    mint = Keypair()
    metadata = TokenMetadata(
        mint=mint.pubkey(),
        name="PayPal USD",
        symbol="PYUSD",
        uri="https://token-metadata.paxos.com/pyusd_metadata/prod/solana/pyusd_metadata.json",
        update_authority=keypair.pubkey(),
    )
    # программа хука не задеплоена, переводы этого mint будут падать
    transfer_hook_program = Keypair().pubkey()

    mint_len = get_mint_len(STABLECOIN_EXTENSIONS)
    lamports = (await client.get_minimum_balance_for_rent_exemption(
        mint_len + token_metadata.metadata_len(metadata)
    )).value

    instructions = [
        create_account(CreateAccountParams(
            from_pubkey=keypair.pubkey(),
            to_pubkey=mint.pubkey(),
            lamports=lamports,
            space=mint_len,
            owner=TOKEN_2022_PROGRAM_ID,
        )),
        initialize_mint_close_authority(mint.pubkey(), keypair.pubkey()),
        initialize_permanent_delegate(mint.pubkey(), keypair.pubkey()),
        initialize_transfer_fee_config(
            mint.pubkey(), keypair.pubkey(), keypair.pubkey(), TRANSFER_FEE_BASIS_POINTS, MAXIMUM_FEE,
        ),
        initialize_transfer_hook(mint.pubkey(), keypair.pubkey(), transfer_hook_program),
        initialize_metadata_pointer(mint.pubkey(), keypair.pubkey(), mint.pubkey()),
        spl_token.initialize_mint(spl_token_models.InitializeMintParams(
            decimals=DECIMALS,
            program_id=TOKEN_2022_PROGRAM_ID,
            mint=mint.pubkey(),
            mint_authority=keypair.pubkey(),
        )),
        token_metadata.initialize(
            mint.pubkey(), keypair.pubkey(), mint.pubkey(), keypair.pubkey(),
            metadata.name, metadata.symbol, metadata.uri,
        ),
    ]

    signature = await send_and_confirm_transaction(client, instructions, [keypair, mint], commitment=Finalized)
    logger.info(f"✅ Mint created! Check out your TX here: {explorer_url(signature)}")
    return mint


async def log_extensions(client: AsyncClient, mint: Pubkey):
    account_info = (await client.get_account_info(mint, commitment=Finalized)).value
    if account_info is None:
        logger.warning(f"⚠️ Mint {mint} not found")
        return

    state = unpack_mint(mint, account_info.data)
    names = [extension_name(t) for t in get_extension_types(state.tlv_data)]
    logger.info(f"Mint {mint} extensions: {', '.join(names)}")

    fee_config = get_transfer_fee_config(state)
    if fee_config:
        fee = fee_config.newer_transfer_fee
        logger.info(f"Transfer fee: {fee.transfer_fee_basis_points} bps, max {fee.maximum_fee}")

    metadata = token_metadata.get_token_metadata(state)
    if metadata:
        logger.info(f"Metadata: {metadata.name} ({metadata.symbol}) {metadata.uri}")


async def run():
    keypair = load_keypair()
    async with get_client() as client:
        await airdrop_if_needed(client, keypair)

        mint = await create_mint(client, keypair)

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
