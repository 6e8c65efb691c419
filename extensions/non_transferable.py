#!/usr/bin/env python3
"""
Non-transferable extension
- mint flagged NonTransferable (tokens can be minted and burned, never moved)
- 1000 tokens minted into the payer's ATA
- a transfer to another owner is attempted and must be rejected by the ledger

Usage:
  python -m extensions.non_transferable
"""

import asyncio
import logging
import sys
from typing import Tuple

import spl.token.instructions as spl_token
import spl.token.models as spl_token_models
from solana.rpc.async_api import AsyncClient
from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.system_program import CreateAccountParams, create_account
from spl.token.constants import TOKEN_2022_PROGRAM_ID

from config import load_keypair, setup_logging
from solana_rpc import (
    SolanaRPCError, get_client, airdrop_if_needed, send_and_confirm_transaction, explorer_url,
)
from token_instructions import initialize_non_transferable_mint
from token_layouts import ExtensionType, get_mint_len

logger = logging.getLogger(__name__)

DECIMALS = 6
MINT_AMOUNT = 1_000 * 10 ** DECIMALS
TRANSFER_AMOUNT = 100 * 10 ** DECIMALS


async def create_mint(client: AsyncClient, keypair: Keypair) -> Keypair:
    mint = Keypair()

    mint_len = get_mint_len([ExtensionType.NON_TRANSFERABLE])
    lamports = (await client.get_minimum_balance_for_rent_exemption(mint_len)).value

    # NonTransferable должен быть инициализирован до InitializeMint
    instructions = [
        create_account(CreateAccountParams(
            from_pubkey=keypair.pubkey(),
            to_pubkey=mint.pubkey(),
            lamports=lamports,
            space=mint_len,
            owner=TOKEN_2022_PROGRAM_ID,
        )),
        initialize_non_transferable_mint(mint.pubkey()),
        spl_token.initialize_mint(spl_token_models.InitializeMintParams(
            decimals=DECIMALS,
            program_id=TOKEN_2022_PROGRAM_ID,
            mint=mint.pubkey(),
            mint_authority=keypair.pubkey(),
        )),
    ]

    signature = await send_and_confirm_transaction(client, instructions, [keypair, mint], skip_preflight=True)
    logger.info(f"✅ Mint created! Check out your TX here: {explorer_url(signature)}")
    return mint


async def create_token_accounts(client: AsyncClient, keypair: Keypair,
                                mint: Keypair) -> Tuple[Pubkey, Pubkey]:
    """Payer's ATA with the minted supply plus an empty ATA of a random owner."""
    recipient = Keypair()
    source = spl_token.get_associated_token_address(keypair.pubkey(), mint.pubkey(), TOKEN_2022_PROGRAM_ID)
    destination = spl_token.get_associated_token_address(recipient.pubkey(), mint.pubkey(), TOKEN_2022_PROGRAM_ID)

    instructions = [
        spl_token.create_associated_token_account(
            keypair.pubkey(), keypair.pubkey(), mint.pubkey(), TOKEN_2022_PROGRAM_ID
        ),
        spl_token.create_associated_token_account(
            keypair.pubkey(), recipient.pubkey(), mint.pubkey(), TOKEN_2022_PROGRAM_ID
        ),
        spl_token.mint_to(spl_token_models.MintToParams(
            program_id=TOKEN_2022_PROGRAM_ID,
            mint=mint.pubkey(),
            dest=source,
            mint_authority=keypair.pubkey(),
            amount=MINT_AMOUNT,
        )),
    ]

    signature = await send_and_confirm_transaction(client, instructions, [keypair], skip_preflight=True)
    logger.info(f"✅ Token accounts created and tokens minted! Check out your TX here: {explorer_url(signature)}")
    return source, destination


async def attempt_transfer(client: AsyncClient, keypair: Keypair, mint: Keypair,
                           source: Pubkey, destination: Pubkey) -> SolanaRPCError:
    """Returns the ledger rejection; raises RuntimeError if the transfer went through."""
    instruction = spl_token.transfer_checked(spl_token_models.TransferCheckedParams(
        program_id=TOKEN_2022_PROGRAM_ID,
        source=source,
        mint=mint.pubkey(),
        dest=destination,
        owner=keypair.pubkey(),
        amount=TRANSFER_AMOUNT,
        decimals=DECIMALS,
    ))
    try:
        signature = await send_and_confirm_transaction(client, [instruction], [keypair], skip_preflight=True)
    except SolanaRPCError as e:
        logger.info(f"✅ Transfer rejected as expected: {e}")
        return e

    raise RuntimeError(f"Non-transferable token was transferred: {explorer_url(signature)}")


async def run():
    keypair = load_keypair()
    async with get_client() as client:
        await airdrop_if_needed(client, keypair)

        mint = await create_mint(client, keypair)

        source, destination = await create_token_accounts(client, keypair, mint)

        await attempt_transfer(client, keypair, mint, source, destination)


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
