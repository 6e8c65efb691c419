#!/usr/bin/env python3
"""
Memo transfer extension (token account level)
- plain mint with freeze authority, 1000 tokens minted into the payer's ATA
- destination token account with MemoTransfer enabled (incoming transfers need a memo)
- transfer preceded by a memo instruction
- memo requirement disabled, then a memo-less transfer goes through

Usage:
  python -m extensions.memo_transfer
"""

import asyncio
import logging
import sys
from typing import Tuple

import spl.token.instructions as spl_token
import spl.token.models as spl_token_models
from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Finalized
from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.system_program import CreateAccountParams, create_account
from spl.memo.constants import MEMO_PROGRAM_ID
from spl.memo.instructions import create_memo
from spl.memo.models import MemoParams
from spl.token.constants import TOKEN_2022_PROGRAM_ID

from config import load_keypair, setup_logging
from solana_rpc import get_client, airdrop_if_needed, send_and_confirm_transaction, explorer_url
from token_instructions import disable_required_memo_transfers, enable_required_memo_transfers
from token_layouts import ExtensionType, MINT_SIZE, get_account_len

logger = logging.getLogger(__name__)

DECIMALS = 6
MINT_AMOUNT = 1_000 * 10 ** DECIMALS
TRANSFER_AMOUNT = 100 * 10 ** DECIMALS
MEMO = "Hello, world!"


def _transfer(source: Pubkey, mint: Pubkey, destination: Pubkey, owner: Pubkey):
    return spl_token.transfer_checked(spl_token_models.TransferCheckedParams(
        program_id=TOKEN_2022_PROGRAM_ID,
        source=source,
        mint=mint,
        dest=destination,
        owner=owner,
        amount=TRANSFER_AMOUNT,
        decimals=DECIMALS,
    ))


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


async def create_destination_account(client: AsyncClient, keypair: Keypair,
                                     mint: Keypair) -> Tuple[Pubkey, Keypair]:
    """Explicit (non-associated) token account carrying the MemoTransfer extension."""
    destination_owner = Keypair()
    destination_account = Keypair()

    account_len = get_account_len([ExtensionType.MEMO_TRANSFER])
    lamports = (await client.get_minimum_balance_for_rent_exemption(account_len)).value

    instructions = [
        create_account(CreateAccountParams(
            from_pubkey=keypair.pubkey(),
            to_pubkey=destination_account.pubkey(),
            lamports=lamports,
            space=account_len,
            owner=TOKEN_2022_PROGRAM_ID,
        )),
        spl_token.initialize_account(spl_token_models.InitializeAccountParams(
            program_id=TOKEN_2022_PROGRAM_ID,
            account=destination_account.pubkey(),
            mint=mint.pubkey(),
            owner=destination_owner.pubkey(),
        )),
        enable_required_memo_transfers(destination_account.pubkey(), destination_owner.pubkey()),
    ]

    signature = await send_and_confirm_transaction(
        client, instructions, [keypair, destination_account, destination_owner]
    )
    logger.info(f"✅ Destination token account created! Check out your TX here: {explorer_url(signature)}")
    return destination_account.pubkey(), destination_owner


async def transfer_with_memo(client: AsyncClient, keypair: Keypair, mint: Keypair,
                             source: Pubkey, destination: Pubkey) -> str:
    # memo должен идти перед transfer в той же транзакции
    instructions = [
        create_memo(MemoParams(program_id=MEMO_PROGRAM_ID, signer=keypair.pubkey(), message=MEMO.encode())),
        _transfer(source, mint.pubkey(), destination, keypair.pubkey()),
    ]

    signature = await send_and_confirm_transaction(client, instructions, [keypair])
    logger.info(f"✅ Tokens transferred with memo! Check out your TX here: {explorer_url(signature)}")
    return signature


async def transfer_without_memo(client: AsyncClient, keypair: Keypair, mint: Keypair, source: Pubkey,
                                destination: Pubkey, destination_owner: Keypair) -> str:
    """Lifts the memo requirement on the destination, then transfers without a memo."""
    instructions = [
        disable_required_memo_transfers(destination, destination_owner.pubkey()),
        _transfer(source, mint.pubkey(), destination, keypair.pubkey()),
    ]

    signature = await send_and_confirm_transaction(client, instructions, [keypair, destination_owner])
    logger.info(f"✅ Tokens transferred and account state changed! Check out your TX here: {explorer_url(signature)}")
    return signature


async def run():
    keypair = load_keypair()
    async with get_client() as client:
        await airdrop_if_needed(client, keypair)

        mint = await create_mint(client, keypair)

        source = await create_token_account(client, keypair, mint)

        destination, destination_owner = await create_destination_account(client, keypair, mint)

        await transfer_with_memo(client, keypair, mint, source, destination)

        await transfer_without_memo(client, keypair, mint, source, destination, destination_owner)


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
