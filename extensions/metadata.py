#!/usr/bin/env python3
"""
Metadata pointer + token metadata extensions
- mint whose metadata pointer targets the mint itself
- metadata (name, symbol, uri, one custom field) stored inline in the mint
- update: custom field replaced, name/symbol/uri rewritten, rent topped up first

Usage:
  python -m extensions.metadata
"""

import asyncio
import logging
import sys
from typing import Optional

import spl.token.instructions as spl_token
import spl.token.models as spl_token_models
from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Finalized
from solders.keypair import Keypair
from solders.system_program import CreateAccountParams, TransferParams, create_account, transfer
from spl.token.constants import TOKEN_2022_PROGRAM_ID

from config import load_keypair, setup_logging
from solana_rpc import get_client, airdrop_if_needed, send_and_confirm_transaction, explorer_url
from token_instructions import initialize_metadata_pointer
from token_layouts import ExtensionType, get_mint_len, unpack_mint
import token_metadata
from token_metadata import TokenMetadata

logger = logging.getLogger(__name__)

DECIMALS = 6

INITIAL_METADATA = dict(
    name="Test Token",
    symbol="TST",
    uri="https://example.com/metadata.json",
    additional_metadata=[("customField", "customValue")],
)

UPDATED_METADATA = dict(
    name="New Name",
    symbol="TST2",
    uri="https://example.com/metadata2.json",
    additional_metadata=[("customField2", "customValue2")],
)


async def create_mint(client: AsyncClient, keypair: Keypair) -> Keypair:
    mint = Keypair()
    metadata = TokenMetadata(mint=mint.pubkey(), update_authority=keypair.pubkey(), **INITIAL_METADATA)

    # аккаунт создаётся без места под metadata, программа сама делает realloc,
    # но rent должен покрывать итоговый размер
    mint_len = get_mint_len([ExtensionType.METADATA_POINTER])
    metadata_len = token_metadata.metadata_len(metadata)
    lamports = (await client.get_minimum_balance_for_rent_exemption(mint_len + metadata_len)).value

    instructions = [
        create_account(CreateAccountParams(
            from_pubkey=keypair.pubkey(),
            to_pubkey=mint.pubkey(),
            lamports=lamports,
            space=mint_len,
            owner=TOKEN_2022_PROGRAM_ID,
        )),
        initialize_metadata_pointer(mint.pubkey(), keypair.pubkey(), mint.pubkey()),
        spl_token.initialize_mint(spl_token_models.InitializeMintParams(
            decimals=DECIMALS,
            program_id=TOKEN_2022_PROGRAM_ID,
            mint=mint.pubkey(),
            mint_authority=keypair.pubkey(),
        )),
        token_metadata.initialize(
            mint.pubkey(),
            keypair.pubkey(),
            mint.pubkey(),
            keypair.pubkey(),
            metadata.name,
            metadata.symbol,
            metadata.uri,
        ),
    ]
    instructions.extend(
        token_metadata.update_field(mint.pubkey(), keypair.pubkey(), key, value)
        for key, value in metadata.additional_metadata
    )

    signature = await send_and_confirm_transaction(client, instructions, [keypair, mint], commitment=Finalized)
    logger.info(f"✅ Mint created! Check out your TX here: {explorer_url(signature)}")
    return mint


async def top_up_rent(client: AsyncClient, keypair: Keypair, mint: Keypair,
                      metadata: TokenMetadata) -> Optional[str]:
    """Transfers the lamports the mint lacks to stay rent exempt after the metadata grows."""
    mint_len = get_mint_len([ExtensionType.METADATA_POINTER])
    lamports = (await client.get_minimum_balance_for_rent_exemption(
        mint_len + token_metadata.metadata_len(metadata)
    )).value
    old_balance = (await client.get_balance(mint.pubkey())).value

    logger.info(f"Old balance: {old_balance}")
    logger.info(f"Lamports: {lamports}")

    if old_balance >= lamports:
        return None

    instruction = transfer(TransferParams(
        from_pubkey=keypair.pubkey(),
        to_pubkey=mint.pubkey(),
        lamports=lamports - old_balance,
    ))
    signature = await send_and_confirm_transaction(client, [instruction], [keypair], commitment=Finalized)
    logger.info(f"✅ Lamports added to Mint! Check out your TX here: {explorer_url(signature)}")
    return signature


async def update_metadata(client: AsyncClient, keypair: Keypair, mint: Keypair) -> str:
    new_metadata = TokenMetadata(mint=mint.pubkey(), update_authority=keypair.pubkey(), **UPDATED_METADATA)

    await top_up_rent(client, keypair, mint, new_metadata)

    instructions = [
        token_metadata.remove_key(mint.pubkey(), keypair.pubkey(), "customField", idempotent=True),
        token_metadata.update_field(mint.pubkey(), keypair.pubkey(), "Name", new_metadata.name),
        token_metadata.update_field(mint.pubkey(), keypair.pubkey(), "Symbol", new_metadata.symbol),
        token_metadata.update_field(mint.pubkey(), keypair.pubkey(), "Uri", new_metadata.uri),
    ]
    instructions.extend(
        token_metadata.update_field(mint.pubkey(), keypair.pubkey(), key, value)
        for key, value in new_metadata.additional_metadata
    )

    signature = await send_and_confirm_transaction(client, instructions, [keypair], commitment=Finalized)
    logger.info(f"✅ Metadata updated! Check out your TX here: {explorer_url(signature)}")
    return signature


async def log_metadata(client: AsyncClient, mint: Keypair):
    resp = await client.get_account_info(mint.pubkey(), commitment=Finalized)
    if resp.value is None:
        logger.warning(f"⚠️ Mint {mint.pubkey()} not found")
        return

    metadata = token_metadata.get_token_metadata(unpack_mint(mint.pubkey(), resp.value.data))
    if metadata is None:
        logger.warning(f"⚠️ Mint {mint.pubkey()} carries no metadata")
        return

    logger.info(f"Metadata: {metadata.name} ({metadata.symbol}) {metadata.uri}")
    for key, value in metadata.additional_metadata:
        logger.info(f"   {key} = {value}")


async def run():
    keypair = load_keypair()
    async with get_client() as client:
        await airdrop_if_needed(client, keypair)

        mint = await create_mint(client, keypair)

        await update_metadata(client, keypair, mint)

        await log_metadata(client, mint)


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
