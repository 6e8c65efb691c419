#!/usr/bin/env python3
"""
Transfer fee extension
- mint with a 5% transfer fee capped at 1 token
- 5 associated token accounts (payer + 4 random owners), 1000 tokens minted to the payer
- 100 tokens sent to each recipient with TransferCheckedWithFee
- withheld fees harvested back into the payer's account

Usage:
  python -m extensions.transfer_fee
"""

import asyncio
import logging
import sys
from typing import List, Optional, Tuple

import spl.token.instructions as spl_token
import spl.token.models as spl_token_models
from solana.rpc.async_api import AsyncClient
from solana.rpc.models import MemcmpOpts
from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.system_program import CreateAccountParams, create_account
from spl.token.constants import TOKEN_2022_PROGRAM_ID

from config import load_keypair, setup_logging
from solana_rpc import get_client, airdrop_if_needed, send_and_confirm_transaction, explorer_url
from token_instructions import (
    initialize_transfer_fee_config,
    transfer_checked_with_fee,
    withdraw_withheld_tokens_from_accounts,
)
from token_layouts import (
    ExtensionType, calculate_fee, get_mint_len, get_transfer_fee_amount, unpack_account,
)

logger = logging.getLogger(__name__)

DECIMALS = 6
TRANSFER_FEE_BASIS_POINTS = 500          # 5%
MAXIMUM_FEE = 1 * 10 ** DECIMALS         # 1 token
MINT_AMOUNT = 1_000 * 10 ** DECIMALS
TRANSFER_AMOUNT = 100 * 10 ** DECIMALS
RECIPIENT_COUNT = 4
HARVEST_DELAY = 1.0  # секунды, ждём пока удержанные комиссии станут видны в getProgramAccounts


async def create_mint(client: AsyncClient, keypair: Keypair) -> Keypair:
    mint = Keypair()

    mint_len = get_mint_len([ExtensionType.TRANSFER_FEE_CONFIG])
    lamports = (await client.get_minimum_balance_for_rent_exemption(mint_len)).value

    instructions = [
        create_account(CreateAccountParams(
            from_pubkey=keypair.pubkey(),
            to_pubkey=mint.pubkey(),
            lamports=lamports,
            space=mint_len,
            owner=TOKEN_2022_PROGRAM_ID,
        )),
        initialize_transfer_fee_config(
            mint.pubkey(),
            keypair.pubkey(),
            keypair.pubkey(),
            TRANSFER_FEE_BASIS_POINTS,
            MAXIMUM_FEE,
        ),
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


async def create_token_accounts(client: AsyncClient, keypair: Keypair,
                                mint: Keypair) -> List[Tuple[Keypair, Pubkey]]:
    """Creates ATAs for the payer and 4 random owners, mints the supply into the payer's ATA."""
    owners = [keypair] + [Keypair() for _ in range(RECIPIENT_COUNT)]
    token_accounts = [
        (owner, spl_token.get_associated_token_address(owner.pubkey(), mint.pubkey(), TOKEN_2022_PROGRAM_ID))
        for owner in owners
    ]

    instructions = [
        spl_token.create_associated_token_account(
            keypair.pubkey(), owner.pubkey(), mint.pubkey(), TOKEN_2022_PROGRAM_ID
        )
        for owner, _ in token_accounts
    ]
    instructions.append(spl_token.mint_to(spl_token_models.MintToParams(
        program_id=TOKEN_2022_PROGRAM_ID,
        mint=mint.pubkey(),
        dest=token_accounts[0][1],
        mint_authority=keypair.pubkey(),
        amount=MINT_AMOUNT,
    )))

    signature = await send_and_confirm_transaction(client, instructions, [keypair], skip_preflight=True)
    logger.info(f"✅ Token accounts created and tokens minted! Check out your TX here: {explorer_url(signature)}")
    return token_accounts


async def transfer_tokens(client: AsyncClient, keypair: Keypair, mint: Keypair,
                          token_accounts: List[Tuple[Keypair, Pubkey]]) -> str:
    source = token_accounts[0][1]
    fee = calculate_fee(TRANSFER_FEE_BASIS_POINTS, MAXIMUM_FEE, TRANSFER_AMOUNT)

    instructions = [
        transfer_checked_with_fee(
            source,
            mint.pubkey(),
            destination,
            keypair.pubkey(),
            TRANSFER_AMOUNT,
            DECIMALS,
            fee,
        )
        for _, destination in token_accounts[1:]
    ]

    signature = await send_and_confirm_transaction(client, instructions, [keypair], skip_preflight=True)
    logger.info(f"✅ Tokens transferred! Check out your TX here: {explorer_url(signature)}")
    logger.info(
        f"   Each recipient got {(TRANSFER_AMOUNT - fee) / 10 ** DECIMALS:g} tokens, "
        f"{fee / 10 ** DECIMALS:g} withheld as fee"
    )
    return signature


async def harvest_withheld_tokens(client: AsyncClient, keypair: Keypair, mint: Keypair,
                                  destination: Pubkey) -> Optional[str]:
    await asyncio.sleep(HARVEST_DELAY)

    # все token accounts этого mint: поле mint лежит по смещению 0
    resp = await client.get_program_accounts(
        TOKEN_2022_PROGRAM_ID,
        encoding="base64",
        filters=[MemcmpOpts(offset=0, bytes=str(mint.pubkey()))],
    )

    accounts_to_withdraw_from: List[Pubkey] = []
    for keyed_account in resp.value:
        account = unpack_account(keyed_account.pubkey, keyed_account.account.data)
        withheld_amount = get_transfer_fee_amount(account)
        if withheld_amount:
            accounts_to_withdraw_from.append(keyed_account.pubkey)

    if not accounts_to_withdraw_from:
        logger.warning("⚠️ No withheld fees found, nothing to harvest")
        return None

    instruction = withdraw_withheld_tokens_from_accounts(
        mint.pubkey(),
        destination,
        keypair.pubkey(),
        accounts_to_withdraw_from,
    )

    signature = await send_and_confirm_transaction(client, [instruction], [keypair])
    logger.info(
        f"✅ Withheld tokens harvested from {len(accounts_to_withdraw_from)} accounts! "
        f"Check out your TX here: {explorer_url(signature)}"
    )
    return signature


async def run():
    keypair = load_keypair()
    async with get_client() as client:
        await airdrop_if_needed(client, keypair)

        mint = await create_mint(client, keypair)

        token_accounts = await create_token_accounts(client, keypair, mint)

        await transfer_tokens(client, keypair, mint, token_accounts)

        await harvest_withheld_tokens(client, keypair, mint, token_accounts[0][1])


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
