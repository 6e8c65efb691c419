#!/usr/bin/env python3
"""
Group pointer / group member pointer extensions
- group mint (pointer targets itself) with a TokenGroup of max size 100
- member mint (pointer targets itself) joined to the group
- group max size raised to 200, then the update authority revoked
- the group read back to show both changes

Usage:
  python -m extensions.group
"""

import asyncio
import logging
import sys

import spl.token.instructions as spl_token
import spl.token.models as spl_token_models
from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Finalized
from solders.keypair import Keypair
from solders.system_program import CreateAccountParams, create_account
from spl.token.constants import TOKEN_2022_PROGRAM_ID

from config import load_keypair, setup_logging
from solana_rpc import get_client, airdrop_if_needed, send_and_confirm_transaction, explorer_url
from token_instructions import initialize_group_member_pointer, initialize_group_pointer
from token_layouts import ExtensionType, TYPE_SIZE, LENGTH_SIZE, get_mint_len, unpack_mint
from token_group import (
    TOKEN_GROUP_SIZE,
    TOKEN_GROUP_MEMBER_SIZE,
    get_token_group,
    initialize_group,
    initialize_member,
    update_group_authority,
    update_group_max_size,
)

logger = logging.getLogger(__name__)

DECIMALS = 6
MAX_SIZE = 100
UPDATED_MAX_SIZE = 200


def _initialize_mint(mint: Keypair, authority: Keypair):
    return spl_token.initialize_mint(spl_token_models.InitializeMintParams(
        decimals=DECIMALS,
        program_id=TOKEN_2022_PROGRAM_ID,
        mint=mint.pubkey(),
        mint_authority=authority.pubkey(),
    ))


async def create_mint(client: AsyncClient, keypair: Keypair) -> Keypair:
    mint = Keypair()

    mint_len = get_mint_len([ExtensionType.GROUP_POINTER])
    lamports = (await client.get_minimum_balance_for_rent_exemption(
        mint_len + TYPE_SIZE + LENGTH_SIZE + TOKEN_GROUP_SIZE
    )).value

    instructions = [
        create_account(CreateAccountParams(
            from_pubkey=keypair.pubkey(),
            to_pubkey=mint.pubkey(),
            lamports=lamports,
            space=mint_len,
            owner=TOKEN_2022_PROGRAM_ID,
        )),
        initialize_group_pointer(mint.pubkey(), keypair.pubkey(), mint.pubkey()),
        _initialize_mint(mint, keypair),
        initialize_group(mint.pubkey(), mint.pubkey(), keypair.pubkey(), keypair.pubkey(), MAX_SIZE),
    ]

    signature = await send_and_confirm_transaction(client, instructions, [keypair, mint], commitment=Finalized)
    logger.info(f"✅ Mint created! Check out your TX here: {explorer_url(signature)}")
    return mint


async def create_member(client: AsyncClient, keypair: Keypair, mint: Keypair) -> Keypair:
    member = Keypair()

    member_len = get_mint_len([ExtensionType.GROUP_MEMBER_POINTER])
    lamports = (await client.get_minimum_balance_for_rent_exemption(
        member_len + TYPE_SIZE + LENGTH_SIZE + TOKEN_GROUP_MEMBER_SIZE
    )).value

    instructions = [
        create_account(CreateAccountParams(
            from_pubkey=keypair.pubkey(),
            to_pubkey=member.pubkey(),
            lamports=lamports,
            space=member_len,
            owner=TOKEN_2022_PROGRAM_ID,
        )),
        initialize_group_member_pointer(member.pubkey(), keypair.pubkey(), member.pubkey()),
        _initialize_mint(member, keypair),
        initialize_member(member.pubkey(), member.pubkey(), keypair.pubkey(), mint.pubkey(), keypair.pubkey()),
    ]

    signature = await send_and_confirm_transaction(client, instructions, [keypair, member], commitment=Finalized)
    logger.info(f"✅ Member created! Check out your TX here: {explorer_url(signature)}")
    return member


async def update_group(client: AsyncClient, keypair: Keypair, mint: Keypair) -> str:
    # max size меняем пока authority ещё есть, после revoke группа заморожена
    instructions = [
        update_group_max_size(mint.pubkey(), keypair.pubkey(), UPDATED_MAX_SIZE),
        update_group_authority(mint.pubkey(), keypair.pubkey(), None),
    ]

    signature = await send_and_confirm_transaction(client, instructions, [keypair], commitment=Finalized)
    logger.info(f"✅ Group updated! Check out your TX here: {explorer_url(signature)}")
    return signature


async def log_group(client: AsyncClient, mint: Keypair):
    resp = await client.get_account_info(mint.pubkey(), commitment=Finalized)
    if resp.value is None:
        logger.warning(f"⚠️ Mint {mint.pubkey()} not found")
        return

    group = get_token_group(unpack_mint(mint.pubkey(), resp.value.data))
    if group is None:
        logger.warning(f"⚠️ Mint {mint.pubkey()} carries no token group")
        return

    authority = group.update_authority or "none (revoked)"
    logger.info(f"Group {mint.pubkey()}: size {group.size}/{group.max_size}, update authority: {authority}")


async def run():
    keypair = load_keypair()
    async with get_client() as client:
        await airdrop_if_needed(client, keypair)

        mint = await create_mint(client, keypair)

        await create_member(client, keypair, mint)

        await update_group(client, keypair, mint)

        await log_group(client, mint)


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
