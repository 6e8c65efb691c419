#!/usr/bin/env python3
"""
Default account state extension
- mint where every new token account starts Frozen (payer is freeze authority)
- payer's ATA created, thawed and funded with 1000 tokens
- default state switched to Initialized, a fresh ATA receives 100 tokens without a thaw

Usage:
  python -m extensions.default_account_state
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
from token_instructions import initialize_default_account_state, update_default_account_state
from token_layouts import AccountState, ExtensionType, get_mint_len, unpack_account

logger = logging.getLogger(__name__)

DECIMALS = 6
MINT_AMOUNT = 1_000 * 10 ** DECIMALS
TRANSFER_AMOUNT = 100 * 10 ** DECIMALS


async def create_mint(client: AsyncClient, keypair: Keypair) -> Keypair:
    mint = Keypair()

    mint_len = get_mint_len([ExtensionType.DEFAULT_ACCOUNT_STATE])
    lamports = (await client.get_minimum_balance_for_rent_exemption(mint_len)).value

    # Frozen по умолчанию требует freeze authority на mint
    instructions = [
        create_account(CreateAccountParams(
            from_pubkey=keypair.pubkey(),
            to_pubkey=mint.pubkey(),
            lamports=lamports,
            space=mint_len,
            owner=TOKEN_2022_PROGRAM_ID,
        )),
        initialize_default_account_state(mint.pubkey(), AccountState.FROZEN),
        spl_token.initialize_mint(spl_token_models.InitializeMintParams(
            decimals=DECIMALS,
            program_id=TOKEN_2022_PROGRAM_ID,
            mint=mint.pubkey(),
            mint_authority=keypair.pubkey(),
            freeze_authority=keypair.pubkey(),
        )),
    ]

    signature = await send_and_confirm_transaction(client, instructions, [keypair, mint], skip_preflight=True)
    logger.info(f"✅ Mint created! Check out your TX here: {explorer_url(signature)}")
    return mint


async def create_token_account(client: AsyncClient, keypair: Keypair, mint: Keypair) -> Pubkey:
    ata = spl_token.get_associated_token_address(keypair.pubkey(), mint.pubkey(), TOKEN_2022_PROGRAM_ID)

    instructions = [
        spl_token.create_associated_token_account(
            keypair.pubkey(), keypair.pubkey(), mint.pubkey(), TOKEN_2022_PROGRAM_ID
        ),
        spl_token.thaw_account(spl_token_models.ThawAccountParams(
            program_id=TOKEN_2022_PROGRAM_ID,
            account=ata,
            mint=mint.pubkey(),
            authority=keypair.pubkey(),
        )),
        spl_token.mint_to(spl_token_models.MintToParams(
            program_id=TOKEN_2022_PROGRAM_ID,
            mint=mint.pubkey(),
            dest=ata,
            mint_authority=keypair.pubkey(),
            amount=MINT_AMOUNT,
        )),
    ]

    signature = await send_and_confirm_transaction(client, instructions, [keypair], skip_preflight=True)
    logger.info(f"✅ Token accounts created and tokens minted! Check out your TX here: {explorer_url(signature)}")
    return ata


async def transfer_and_change_account_state(client: AsyncClient, keypair: Keypair, mint: Keypair,
                                            token_account: Pubkey) -> Pubkey:
    """Switches the default to Initialized and funds a fresh ATA in the same transaction."""
    destination_owner = Keypair()
    destination = spl_token.get_associated_token_address(
        destination_owner.pubkey(), mint.pubkey(), TOKEN_2022_PROGRAM_ID
    )

    instructions = [
        update_default_account_state(mint.pubkey(), AccountState.INITIALIZED, keypair.pubkey()),
        spl_token.create_associated_token_account(
            keypair.pubkey(), destination_owner.pubkey(), mint.pubkey(), TOKEN_2022_PROGRAM_ID
        ),
        spl_token.transfer_checked(spl_token_models.TransferCheckedParams(
            program_id=TOKEN_2022_PROGRAM_ID,
            source=token_account,
            mint=mint.pubkey(),
            dest=destination,
            owner=keypair.pubkey(),
            amount=TRANSFER_AMOUNT,
            decimals=DECIMALS,
        )),
    ]

    signature = await send_and_confirm_transaction(client, instructions, [keypair], skip_preflight=True)
    logger.info(f"✅ Tokens transferred and account state changed! Check out your TX here: {explorer_url(signature)}")
    return destination


async def log_account_state(client: AsyncClient, token_account: Pubkey):
    resp = await client.get_account_info(token_account)
    if resp.value is None:
        logger.warning(f"⚠️ Token account {token_account} not found")
        return

    account = unpack_account(token_account, resp.value.data)
    logger.info(f"Token account {token_account}: state {account.state.name}, frozen: {account.is_frozen}")


async def run():
    keypair = load_keypair()
    async with get_client() as client:
        await airdrop_if_needed(client, keypair)

        mint = await create_mint(client, keypair)

        token_account = await create_token_account(client, keypair, mint)

        destination = await transfer_and_change_account_state(client, keypair, mint, token_account)

        await log_account_state(client, destination)


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
