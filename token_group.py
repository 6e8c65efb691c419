"""
Token group interface (spl_token_group_interface) for Token-2022 collections
"""

import hashlib
from dataclasses import dataclass
from typing import Optional

from construct import Struct, Int64ul
from solders.instruction import Instruction, AccountMeta
from solders.pubkey import Pubkey
from spl.token.constants import TOKEN_2022_PROGRAM_ID

from token_layouts import ExtensionType, Mint, construct_pubkey, construct_optional_pubkey, get_extension_data


def _discriminator(name: str) -> bytes:
    return hashlib.sha256(f"spl_token_group_interface:{name}".encode()).digest()[:8]


INITIALIZE_GROUP_DISCRIMINATOR = _discriminator("initialize_token_group")
UPDATE_GROUP_MAX_SIZE_DISCRIMINATOR = _discriminator("update_group_max_size")
UPDATE_GROUP_AUTHORITY_DISCRIMINATOR = _discriminator("update_authority")
INITIALIZE_MEMBER_DISCRIMINATOR = _discriminator("initialize_member")

TOKEN_GROUP_LAYOUT = Struct(
    "update_authority" / construct_optional_pubkey,
    "mint" / construct_pubkey,
    "size" / Int64ul,
    "max_size" / Int64ul,
)

TOKEN_GROUP_MEMBER_LAYOUT = Struct(
    "mint" / construct_pubkey,
    "group" / construct_pubkey,
    "member_number" / Int64ul,
)

TOKEN_GROUP_SIZE = TOKEN_GROUP_LAYOUT.sizeof()                # 80
TOKEN_GROUP_MEMBER_SIZE = TOKEN_GROUP_MEMBER_LAYOUT.sizeof()  # 72

INITIALIZE_GROUP_LAYOUT = Struct(
    "update_authority" / construct_optional_pubkey,
    "max_size" / Int64ul,
)


@dataclass
class TokenGroup:
    update_authority: Optional[Pubkey]
    mint: Pubkey
    size: int
    max_size: int


@dataclass
class TokenGroupMember:
    mint: Pubkey
    group: Pubkey
    member_number: int


def unpack_token_group(data: bytes) -> TokenGroup:
    parsed = TOKEN_GROUP_LAYOUT.parse(data)
    return TokenGroup(
        update_authority=parsed.update_authority,
        mint=parsed.mint,
        size=parsed.size,
        max_size=parsed.max_size,
    )


def unpack_token_group_member(data: bytes) -> TokenGroupMember:
    parsed = TOKEN_GROUP_MEMBER_LAYOUT.parse(data)
    return TokenGroupMember(mint=parsed.mint, group=parsed.group, member_number=parsed.member_number)


def get_token_group(mint: Mint) -> Optional[TokenGroup]:
    value = get_extension_data(ExtensionType.TOKEN_GROUP, mint.tlv_data)
    return unpack_token_group(value) if value is not None else None


def get_token_group_member(mint: Mint) -> Optional[TokenGroupMember]:
    value = get_extension_data(ExtensionType.TOKEN_GROUP_MEMBER, mint.tlv_data)
    return unpack_token_group_member(value) if value is not None else None


def initialize_group(group: Pubkey, mint: Pubkey, mint_authority: Pubkey, update_authority: Optional[Pubkey],
                     max_size: int, program_id: Pubkey = TOKEN_2022_PROGRAM_ID) -> Instruction:
    data = INITIALIZE_GROUP_DISCRIMINATOR + INITIALIZE_GROUP_LAYOUT.build(dict(
        update_authority=update_authority, max_size=max_size,
    ))
    return Instruction(program_id, data, [
        AccountMeta(group, is_signer=False, is_writable=True),
        AccountMeta(mint, is_signer=False, is_writable=False),
        AccountMeta(mint_authority, is_signer=True, is_writable=False),
    ])


def update_group_max_size(group: Pubkey, update_authority: Pubkey, max_size: int,
                          program_id: Pubkey = TOKEN_2022_PROGRAM_ID) -> Instruction:
    data = UPDATE_GROUP_MAX_SIZE_DISCRIMINATOR + Int64ul.build(max_size)
    return Instruction(program_id, data, [
        AccountMeta(group, is_signer=False, is_writable=True),
        AccountMeta(update_authority, is_signer=True, is_writable=False),
    ])


def update_group_authority(group: Pubkey, current_authority: Pubkey, new_authority: Optional[Pubkey],
                           program_id: Pubkey = TOKEN_2022_PROGRAM_ID) -> Instruction:
    """`new_authority=None` freezes the group configuration for good."""
    data = UPDATE_GROUP_AUTHORITY_DISCRIMINATOR + construct_optional_pubkey.build(new_authority)
    return Instruction(program_id, data, [
        AccountMeta(group, is_signer=False, is_writable=True),
        AccountMeta(current_authority, is_signer=True, is_writable=False),
    ])


def initialize_member(member: Pubkey, member_mint: Pubkey, member_mint_authority: Pubkey,
                      group: Pubkey, group_update_authority: Pubkey,
                      program_id: Pubkey = TOKEN_2022_PROGRAM_ID) -> Instruction:
    return Instruction(program_id, INITIALIZE_MEMBER_DISCRIMINATOR, [
        AccountMeta(member, is_signer=False, is_writable=True),
        AccountMeta(member_mint, is_signer=False, is_writable=False),
        AccountMeta(member_mint_authority, is_signer=True, is_writable=False),
        AccountMeta(group, is_signer=False, is_writable=True),
        AccountMeta(group_update_authority, is_signer=True, is_writable=False),
    ])
