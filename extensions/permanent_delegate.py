#!/usr/bin/env python3
"""
Permanent delegate extension
- mint whose permanent delegate is the payer
- 1000 tokens minted into the ATA of a random owner
- the delegate moves 100 tokens into its own ATA and burns another 100,
  signing neither as owner nor with an approval

Usage:
  python -m extensions.permanent_delegate
"""

import asyncio
import logging
import sys

import spl.token.instructions as spl_token
import spl.token.models as spl_token_models
from solana.rpc.async_api import AsyncClient
from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.system_program import CreateAccountParams, create_account
from spl.token.constants import TOKEN_2022_PROGRAM_ID

from config import load_keypair, setup_logging
from solana_rpc import get_client, airdrop_if_needed, send_and_confirm_transaction, explorer_url
from token_instructions import initialize_permanent_delegate
from token_layouts import ExtensionType, get_mint_len

logger = logging.getLogger(__name__)

DECIMALS = 6
MINT_AMOUNT = 1_000 * 10 ** DECIMALS
TRANSFER_AMOUNT = 100 * 10 ** DECIMALS
BURN_AMOUNT = 100 * 10 ** DECIMALS


async def create_mint(client: AsyncClient, keypair: Keypair) -> Keypair:
    mint = Keypair()

    mint_len = get_mint_len([ExtensionType.PERMANENT_DELEGATE])
    lamports = (await client.get_minimum_balance_for_rent_exemption(mint_len)).value

    instructions = [
        create_account(CreateAccountParams(
            from_pubkey=keypair.pubkey(),
            to_pubkey=mint.pubkey(),
            lamports=lamports,
            space=mint_len,
            owner=TOKEN_2022_PROGRAM_ID,
        )),
        initialize_permanent_delegate(mint.pubkey(), keypair.pubkey()),
        spl_token.initialize_mint(spl_token_models.InitializeMintParams(
            decimals=DECIMALS,
            program_id=TOKEN_2022_PROGRAM_ID,
            mint=mint.pubkey(),
            mint_authority=keypair.pubkey(),
        )),
    ]

    signature = await send_and_confirm_transaction(client, instructions, [keypair, mint])
    logger.info(f"✅ Mint created! Check out your TX here: {explorer_url(signature)}")
    return mint


async def create_token_account(client: AsyncClient, keypair: Keypair, mint: Keypair) -> Pubkey:
    """ATA owned by a random keypair the payer never signs for."""
    owner = Keypair()
    token_account = spl_token.get_associated_token_address(owner.pubkey(), mint.pubkey(), TOKEN_2022_PROGRAM_ID)

    instructions = [
        spl_token.create_associated_token_account(
            keypair.pubkey(), owner.pubkey(), mint.pubkey(), TOKEN_2022_PROGRAM_ID
        ),
        spl_token.mint_to(spl_token_models.MintToParams(
            program_id=TOKEN_2022_PROGRAM_ID,
            mint=mint.pubkey(),
            dest=token_account,
            mint_authority=keypair.pubkey(),
            amount=MINT_AMOUNT,
        )),
    ]

    signature = await send_and_confirm_transaction(client, instructions, [keypair], skip_preflight=True)
    logger.info(f"✅ Token accounts created and tokens minted! Check out your TX here: {explorer_url(signature)}")
    return token_account


async def transfer_through_delegation(client: AsyncClient, keypair: Keypair, mint: Keypair,
                                      token_account: Pubkey) -> Pubkey:
    delegate_account = spl_token.get_associated_token_address(keypair.pubkey(), mint.pubkey(), TOKEN_2022_PROGRAM_ID)

    instructions = [
        spl_token.create_associated_token_account(
            keypair.pubkey(), keypair.pubkey(), mint.pubkey(), TOKEN_2022_PROGRAM_ID
        ),
        spl_token.transfer_checked(spl_token_models.TransferCheckedParams(
            program_id=TOKEN_2022_PROGRAM_ID,
            source=token_account,
            mint=mint.pubkey(),
            dest=delegate_account,
            owner=keypair.pubkey(),
            amount=TRANSFER_AMOUNT,
            decimals=DECIMALS,
        )),
    ]

    signature = await send_and_confirm_transaction(client, instructions, [keypair], skip_preflight=True)
    logger.info(f"✅ Tokens transferred! Check out your TX here: {explorer_url(signature)}")
    return delegate_account


async def burn_through_delegation(client: AsyncClient, keypair: Keypair, mint: Keypair,
                                  token_account: Pubkey) -> str:
    instruction = spl_token.burn_checked(spl_token_models.BurnCheckedParams(
        program_id=TOKEN_2022_PROGRAM_ID,
        account=token_account,
        mint=mint.pubkey(),
        owner=keypair.pubkey(),
        amount=BURN_AMOUNT,
        decimals=DECIMALS,
    ))

    signature = await send_and_confirm_transaction(client, [instruction], [keypair], skip_preflight=True)
    logger.info(f"✅ Tokens burned! Check out your TX here: {explorer_url(signature)}")
    return signature


async def run():
    keypair = load_keypair()
    async with get_client() as client:
        await airdrop_if_needed(client, keypair)

        mint = await create_mint(client, keypair)

        token_account = await create_token_account(client, keypair, mint)

        await transfer_through_delegation(client, keypair, mint, token_account)

        await burn_through_delegation(client, keypair, mint, token_account)


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
