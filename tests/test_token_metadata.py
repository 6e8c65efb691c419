"""Tests for the token metadata interface: borsh packing, discriminators, instructions."""

import struct

import pytest
from solders.pubkey import Pubkey

from conftest import mint_data, tlv_entry
from token_layouts import ExtensionType, unpack_mint
import token_metadata
from token_metadata import TokenMetadata


def _pubkey(seed: int) -> Pubkey:
    return Pubkey(bytes([seed]) * 32)


MINT = _pubkey(1)
AUTHORITY = _pubkey(2)


@pytest.fixture
def metadata():
    return TokenMetadata(
        mint=MINT,
        name="Test Token",
        symbol="TST",
        uri="https://example.com/metadata.json",
        update_authority=AUTHORITY,
        additional_metadata=[("customField", "customValue")],
    )


def _borsh_string(value: str) -> bytes:
    encoded = value.encode()
    return struct.pack("<I", len(encoded)) + encoded


class TestPacking:
    """Borsh layout of TokenMetadata."""

    def test_pack_length(self, metadata):
        assert len(token_metadata.pack(metadata)) == 156
        assert token_metadata.metadata_len(metadata) == 160

    def test_pack_layout(self, metadata):
        packed = token_metadata.pack(metadata)

        assert packed[:32] == bytes(AUTHORITY)
        assert packed[32:64] == bytes(MINT)
        assert packed[64:78] == _borsh_string("Test Token")

    def test_no_update_authority_packs_zeroes(self, metadata):
        metadata.update_authority = None
        assert token_metadata.pack(metadata)[:32] == bytes(32)

    def test_unpack(self, metadata):
        unpacked = token_metadata.unpack(token_metadata.pack(metadata))
        assert unpacked == metadata

    def test_read_from_mint_tlv(self, metadata):
        data = mint_data(
            mint_authority=AUTHORITY,
            tlv=tlv_entry(ExtensionType.METADATA_POINTER, bytes(AUTHORITY) + bytes(MINT))
            + tlv_entry(ExtensionType.TOKEN_METADATA, token_metadata.pack(metadata)),
        )
        mint = unpack_mint(MINT, data)

        read = token_metadata.get_token_metadata(mint)
        assert read.name == "Test Token"
        assert read.additional_metadata == [("customField", "customValue")]

    def test_mint_without_metadata(self):
        mint = unpack_mint(MINT, mint_data(mint_authority=AUTHORITY))
        assert token_metadata.get_token_metadata(mint) is None


class TestDiscriminators:
    """First 8 bytes of sha256("spl_token_metadata_interface:<name>")."""

    def test_values(self):
        assert token_metadata.INITIALIZE_DISCRIMINATOR.hex() == "d2e11ea258b84d8d"
        assert token_metadata.UPDATE_FIELD_DISCRIMINATOR.hex() == "dde9312db5cadcc8"
        assert token_metadata.REMOVE_KEY_DISCRIMINATOR.hex() == "ea122038598d25b5"


class TestInstructions:
    """Metadata instructions executed by the Token-2022 program."""

    def test_initialize(self):
        ix = token_metadata.initialize(MINT, AUTHORITY, MINT, AUTHORITY, "Test Token", "TST", "uri")

        assert ix.data == (
            token_metadata.INITIALIZE_DISCRIMINATOR
            + _borsh_string("Test Token") + _borsh_string("TST") + _borsh_string("uri")
        )
        assert [(m.pubkey, m.is_signer, m.is_writable) for m in ix.accounts] == [
            (MINT, False, True),
            (AUTHORITY, False, False),
            (MINT, False, False),
            (AUTHORITY, True, False),
        ]

    @pytest.mark.parametrize("field,variant", [("Name", 0), ("symbol", 1), ("URI", 2)])
    def test_update_named_field(self, field, variant):
        ix = token_metadata.update_field(MINT, AUTHORITY, field, "value")
        assert ix.data == token_metadata.UPDATE_FIELD_DISCRIMINATOR + bytes([variant]) + _borsh_string("value")

    def test_update_custom_key(self):
        ix = token_metadata.update_field(MINT, AUTHORITY, "customField2", "customValue2")

        assert ix.data == (
            token_metadata.UPDATE_FIELD_DISCRIMINATOR
            + bytes([3]) + _borsh_string("customField2") + _borsh_string("customValue2")
        )
        assert [(m.pubkey, m.is_signer) for m in ix.accounts] == [(MINT, False), (AUTHORITY, True)]

    def test_remove_key(self):
        ix = token_metadata.remove_key(MINT, AUTHORITY, "customField")
        assert ix.data == token_metadata.REMOVE_KEY_DISCRIMINATOR + bytes([1]) + _borsh_string("customField")

        strict = token_metadata.remove_key(MINT, AUTHORITY, "customField", idempotent=False)
        assert strict.data[8] == 0
