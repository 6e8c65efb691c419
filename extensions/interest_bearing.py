#!/usr/bin/env python3
"""
Interest bearing extension
- mint with a 5% yearly rate, payer as rate authority
- 1000 tokens minted into the payer's ATA
- rate authority handed to a fresh keypair which sets the rate to 10%
- after a short wait the raw amount and the interest-adjusted UI amount are logged

Usage:
  python -m extensions.interest_bearing
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
from solana_rpc import (
    get_client, airdrop_if_needed, send_and_confirm_transaction, simulate_transaction, explorer_url,
)
from token_instructions import (
    amount_to_ui_amount,
    initialize_interest_bearing_mint,
    update_rate_interest_bearing_mint,
)
from token_layouts import (
    AuthorityType, ExtensionType, get_interest_bearing_config, get_mint_len, unpack_account, unpack_mint,
)

logger = logging.getLogger(__name__)

DECIMALS = 6
INITIAL_RATE = 500   # bps в год
UPDATED_RATE = 1000
MINT_AMOUNT = 1_000 * 10 ** DECIMALS
INTEREST_WAIT = 10.0  # секунды


async def create_mint(client: AsyncClient, keypair: Keypair) -> Keypair:
    mint = Keypair()

    mint_len = get_mint_len([ExtensionType.INTEREST_BEARING_CONFIG])
    lamports = (await client.get_minimum_balance_for_rent_exemption(mint_len)).value

    instructions = [
        create_account(CreateAccountParams(
            from_pubkey=keypair.pubkey(),
            to_pubkey=mint.pubkey(),
            lamports=lamports,
            space=mint_len,
            owner=TOKEN_2022_PROGRAM_ID,
        )),
        initialize_interest_bearing_mint(mint.pubkey(), keypair.pubkey(), INITIAL_RATE),
        spl_token.initialize_mint(spl_token_models.InitializeMintParams(
            decimals=DECIMALS,
            program_id=TOKEN_2022_PROGRAM_ID,
            mint=mint.pubkey(),
            mint_authority=keypair.pubkey(),
        )),
    ]

    signature = await send_and_confirm_transaction(client, instructions, [keypair, mint], commitment=Finalized)
    logger.info(f"✅ Mint created! Check out your TX here: {explorer_url(signature)}")
    return mint


async def create_token_account(client: AsyncClient, keypair: Keypair, mint: Keypair) -> Pubkey:
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
            amount=MINT_AMOUNT,
        )),
    ]

    signature = await send_and_confirm_transaction(client, instructions, [keypair])
    logger.info(f"✅ Token accounts created and tokens minted! Check out your TX here: {explorer_url(signature)}")
    return ata


async def update_rate(client: AsyncClient, keypair: Keypair, mint: Keypair) -> Keypair:
    """Moves the rate authority to a new keypair and lets it change the rate in the same transaction."""
    new_rate_authority = Keypair()

    instructions = [
        spl_token.set_authority(spl_token_models.SetAuthorityParams(
            program_id=TOKEN_2022_PROGRAM_ID,
            account=mint.pubkey(),
            authority=AuthorityType.INTEREST_RATE,
            current_authority=keypair.pubkey(),
            new_authority=new_rate_authority.pubkey(),
        )),
        update_rate_interest_bearing_mint(mint.pubkey(), new_rate_authority.pubkey(), UPDATED_RATE),
    ]

    signature = await send_and_confirm_transaction(client, instructions, [keypair, new_rate_authority])
    logger.info(f"✅ Rates updated! Check out your TX here: {explorer_url(signature)}")
    return new_rate_authority


async def get_ui_amount(client: AsyncClient, keypair: Keypair, mint: Pubkey, amount: int) -> str:
    """Runs AmountToUiAmount through simulateTransaction and decodes the program return data."""
    result = await simulate_transaction(client, [amount_to_ui_amount(mint, amount)], [keypair])

    if result.return_data is None:
        raise ValueError(f"AmountToUiAmount for {mint} returned no data")
    return bytes(result.return_data.data).decode('utf-8')


async def check_interest(client: AsyncClient, keypair: Keypair, mint: Keypair, token_account: Pubkey):
    account_info = (await client.get_account_info(token_account)).value
    if account_info is None:
        raise ValueError(f"Token account {token_account} not found")
    account = unpack_account(token_account, account_info.data)
    logger.info(f"Token Amount: {account.amount}")

    ui_amount = await get_ui_amount(client, keypair, mint.pubkey(), account.amount)
    logger.info(f"UI Amount: {ui_amount}")

    mint_info = (await client.get_account_info(mint.pubkey())).value
    if mint_info is not None:
        interest_config = get_interest_bearing_config(unpack_mint(mint.pubkey(), mint_info.data))
        if interest_config:
            logger.info(f"Current rate: {interest_config.current_rate} bps, authority {interest_config.rate_authority}")


async def run():
    keypair = load_keypair()
    async with get_client() as client:
        await airdrop_if_needed(client, keypair)

        mint = await create_mint(client, keypair)

        ata = await create_token_account(client, keypair, mint)

        await update_rate(client, keypair, mint)

        await asyncio.sleep(INTEREST_WAIT)

        await check_interest(client, keypair, mint, ata)


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
