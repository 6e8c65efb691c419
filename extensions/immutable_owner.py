#!/usr/bin/env python3
"""
Immutable owner extension (token account level)
- plain mint with freeze authority
- explicit token account with ImmutableOwner, funded with 1000 tokens
- an AccountOwner change is attempted and must be rejected by the ledger

Usage:
  python -m extensions.immutable_owner
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
    SolanaRPCError, get_client, airdrop_if_needed, send_and_confirm_transaction, explorer_url,
)
from token_instructions import initialize_immutable_owner
from token_layouts import AuthorityType, ExtensionType, MINT_SIZE, get_account_len

logger = logging.getLogger(__name__)

DECIMALS = 6
MINT_AMOUNT = 1_000 * 10 ** DECIMALS


async def create_mint(client: AsyncClient, keypair: Keypair) -> Keypair:
    mint = Keypair()

    lamports = (await client.get_minimum_balance_for_rent_exemption(MINT_SIZE)).value

    instructions = [
        create_account(CreateAccountParams(
            from_pubkey=keypair.pubkey(),
            to_pubkey=mint.pubkey(),
            lamports=lamports,
            space=MINT_SIZE,
            owner=TOKEN_2022_PROGRAM_ID,
        )),
        spl_token.initialize_mint(spl_token_models.InitializeMintParams(
            decimals=DECIMALS,
            program_id=TOKEN_2022_PROGRAM_ID,
            mint=mint.pubkey(),
            mint_authority=keypair.pubkey(),
            freeze_authority=keypair.pubkey(),
        )),
    ]

    signature = await send_and_confirm_transaction(client, instructions, [keypair, mint], commitment=Finalized)
    logger.info(f"✅ Mint created! Check out your TX here: {explorer_url(signature)}")
    return mint


async def create_token_account(client: AsyncClient, keypair: Keypair, mint: Keypair) -> Pubkey:
    token_account = Keypair()

    account_len = get_account_len([ExtensionType.IMMUTABLE_OWNER])
    lamports = (await client.get_minimum_balance_for_rent_exemption(account_len)).value

    # ImmutableOwner инициализируется до InitializeAccount
    instructions = [
        create_account(CreateAccountParams(
            from_pubkey=keypair.pubkey(),
            to_pubkey=token_account.pubkey(),
            lamports=lamports,
            space=account_len,
            owner=TOKEN_2022_PROGRAM_ID,
        )),
        initialize_immutable_owner(token_account.pubkey()),
        spl_token.initialize_account(spl_token_models.InitializeAccountParams(
            program_id=TOKEN_2022_PROGRAM_ID,
            account=token_account.pubkey(),
            mint=mint.pubkey(),
            owner=keypair.pubkey(),
        )),
        spl_token.mint_to(spl_token_models.MintToParams(
            program_id=TOKEN_2022_PROGRAM_ID,
            mint=mint.pubkey(),
            dest=token_account.pubkey(),
            mint_authority=keypair.pubkey(),
            amount=MINT_AMOUNT,
        )),
    ]

    signature = await send_and_confirm_transaction(client, instructions, [keypair, token_account])
    logger.info(f"✅ Token accounts created and tokens minted! Check out your TX here: {explorer_url(signature)}")
    return token_account.pubkey()


async def attempt_owner_change(client: AsyncClient, keypair: Keypair, token_account: Pubkey) -> SolanaRPCError:
    """Returns the ledger rejection; raises RuntimeError if the owner was changed."""
    new_owner = Keypair()
    instruction = spl_token.set_authority(spl_token_models.SetAuthorityParams(
        program_id=TOKEN_2022_PROGRAM_ID,
        account=token_account,
        authority=AuthorityType.ACCOUNT_OWNER,
        current_authority=keypair.pubkey(),
        new_authority=new_owner.pubkey(),
    ))
    try:
        signature = await send_and_confirm_transaction(client, [instruction], [keypair])
    except SolanaRPCError as e:
        logger.info(f"✅ Owner change rejected as expected: {e}")
        return e

    raise RuntimeError(f"Owner of an immutable-owner account was changed: {explorer_url(signature)}")


async def run():
    keypair = load_keypair()
    async with get_client() as client:
        await airdrop_if_needed(client, keypair)

        mint = await create_mint(client, keypair)

        token_account = await create_token_account(client, keypair, mint)

        await attempt_owner_change(client, keypair, token_account)


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
