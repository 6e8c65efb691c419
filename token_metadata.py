"""
Token metadata interface (spl_token_metadata_interface) for Token-2022 mints
Borsh pack/unpack of TokenMetadata + initialize / update_field / remove_key
"""

import hashlib
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from construct import Struct, Flag, PascalString, PrefixedArray, Int32ul
from solders.instruction import Instruction, AccountMeta
from solders.pubkey import Pubkey
from spl.token.constants import TOKEN_2022_PROGRAM_ID

from token_layouts import (
    ExtensionType, Mint, TYPE_SIZE, LENGTH_SIZE,
    construct_pubkey, construct_optional_pubkey, get_extension_data,
)


def _discriminator(name: str) -> bytes:
    return hashlib.sha256(f"spl_token_metadata_interface:{name}".encode()).digest()[:8]


INITIALIZE_DISCRIMINATOR = _discriminator("initialize_account")
UPDATE_FIELD_DISCRIMINATOR = _discriminator("updating_field")
REMOVE_KEY_DISCRIMINATOR = _discriminator("remove_key_ix")

# borsh String: u32 длина + utf8 байты
BorshString = PascalString(Int32ul, "utf8")

TOKEN_METADATA_LAYOUT = Struct(
    "update_authority" / construct_optional_pubkey,
    "mint" / construct_pubkey,
    "name" / BorshString,
    "symbol" / BorshString,
    "uri" / BorshString,
    "additional_metadata" / PrefixedArray(Int32ul, Struct(
        "key" / BorshString,
        "value" / BorshString,
    )),
)

INITIALIZE_LAYOUT = Struct(
    "name" / BorshString,
    "symbol" / BorshString,
    "uri" / BorshString,
)

REMOVE_KEY_LAYOUT = Struct(
    "idempotent" / Flag,
    "key" / BorshString,
)


class Field:
    """Variants of the borsh `Field` enum; anything else is an additional-metadata key."""
    NAME = 0
    SYMBOL = 1
    URI = 2
    KEY = 3


_NAMED_FIELDS = {"name": Field.NAME, "symbol": Field.SYMBOL, "uri": Field.URI}


@dataclass
class TokenMetadata:
    mint: Pubkey
    name: str
    symbol: str
    uri: str
    update_authority: Optional[Pubkey] = None
    additional_metadata: List[Tuple[str, str]] = field(default_factory=list)


def pack(metadata: TokenMetadata) -> bytes:
    return TOKEN_METADATA_LAYOUT.build(dict(
        update_authority=metadata.update_authority,
        mint=metadata.mint,
        name=metadata.name,
        symbol=metadata.symbol,
        uri=metadata.uri,
        additional_metadata=[dict(key=k, value=v) for k, v in metadata.additional_metadata],
    ))


def unpack(data: bytes) -> TokenMetadata:
    parsed = TOKEN_METADATA_LAYOUT.parse(data)
    return TokenMetadata(
        mint=parsed.mint,
        name=parsed.name,
        symbol=parsed.symbol,
        uri=parsed.uri,
        update_authority=parsed.update_authority,
        additional_metadata=[(item.key, item.value) for item in parsed.additional_metadata],
    )


def metadata_len(metadata: TokenMetadata) -> int:
    """Bytes the TokenMetadata TLV entry takes once written into the mint."""
    return TYPE_SIZE + LENGTH_SIZE + len(pack(metadata))


def get_token_metadata(mint: Mint) -> Optional[TokenMetadata]:
    value = get_extension_data(ExtensionType.TOKEN_METADATA, mint.tlv_data)
    return unpack(value) if value is not None else None


def _field_bytes(field_name: str) -> bytes:
    variant = _NAMED_FIELDS.get(field_name.lower())
    if variant is not None:
        return bytes([variant])
    return bytes([Field.KEY]) + BorshString.build(field_name)


def initialize(metadata: Pubkey, update_authority: Pubkey, mint: Pubkey, mint_authority: Pubkey,
               name: str, symbol: str, uri: str, program_id: Pubkey = TOKEN_2022_PROGRAM_ID) -> Instruction:
    data = INITIALIZE_DISCRIMINATOR + INITIALIZE_LAYOUT.build(dict(name=name, symbol=symbol, uri=uri))
    return Instruction(program_id, data, [
        AccountMeta(metadata, is_signer=False, is_writable=True),
        AccountMeta(update_authority, is_signer=False, is_writable=False),
        AccountMeta(mint, is_signer=False, is_writable=False),
        AccountMeta(mint_authority, is_signer=True, is_writable=False),
    ])


def update_field(metadata: Pubkey, update_authority: Pubkey, field_name: str, value: str,
                 program_id: Pubkey = TOKEN_2022_PROGRAM_ID) -> Instruction:
    """
    Sets `name`, `symbol` or `uri` (case-insensitive) or adds/replaces an
    additional-metadata key. The program reallocs the mint, top up rent first.
    """
    data = UPDATE_FIELD_DISCRIMINATOR + _field_bytes(field_name) + BorshString.build(value)
    return Instruction(program_id, data, [
        AccountMeta(metadata, is_signer=False, is_writable=True),
        AccountMeta(update_authority, is_signer=True, is_writable=False),
    ])


def remove_key(metadata: Pubkey, update_authority: Pubkey, key: str, idempotent: bool = True,
               program_id: Pubkey = TOKEN_2022_PROGRAM_ID) -> Instruction:
    data = REMOVE_KEY_DISCRIMINATOR + REMOVE_KEY_LAYOUT.build(dict(idempotent=idempotent, key=key))
    return Instruction(program_id, data, [
        AccountMeta(metadata, is_signer=False, is_writable=True),
        AccountMeta(update_authority, is_signer=True, is_writable=False),
    ])

