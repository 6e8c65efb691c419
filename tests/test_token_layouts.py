"""Tests for Token-2022 layouts, sizing and TLV parsing."""

import pytest
from construct import Int64ul
from solders.pubkey import Pubkey

from conftest import mint_data, tlv_entry, token_account_data
from token_layouts import (
    ACCOUNT_SIZE,
    INTEREST_BEARING_CONFIG_LAYOUT,
    MINT_SIZE,
    MULTISIG_SIZE,
    TRANSFER_FEE_CONFIG_LAYOUT,
    AccountState,
    ExtensionType,
    TokenInvalidAccountError,
    calculate_fee,
    extension_name,
    get_account_len,
    get_extension_data,
    get_extension_types,
    get_interest_bearing_config,
    get_mint_len,
    get_transfer_fee_amount,
    get_transfer_fee_config,
    get_type_len,
    unpack_account,
    unpack_mint,
)


def _pubkey(seed: int) -> Pubkey:
    return Pubkey(bytes([seed]) * 32)


def _transfer_fee_config_value(withheld: int = 0) -> bytes:
    fee = dict(epoch=7, maximum_fee=1_000_000, transfer_fee_basis_points=500)
    return TRANSFER_FEE_CONFIG_LAYOUT.build(dict(
        transfer_fee_config_authority=_pubkey(1),
        withdraw_withheld_authority=None,
        withheld_amount=withheld,
        older_transfer_fee=dict(epoch=0, maximum_fee=0, transfer_fee_basis_points=0),
        newer_transfer_fee=fee,
    ))


class TestSizes:
    """Base sizes and extension-aware allocation sizes."""

    def test_base_sizes(self):
        assert MINT_SIZE == 82
        assert ACCOUNT_SIZE == 165
        assert MULTISIG_SIZE == 355

    def test_no_extensions_gives_base_size(self):
        assert get_mint_len([]) == MINT_SIZE
        assert get_account_len([]) == ACCOUNT_SIZE

    @pytest.mark.parametrize("extension,expected", [
        (ExtensionType.TRANSFER_FEE_CONFIG, 278),
        (ExtensionType.NON_TRANSFERABLE, 170),
        (ExtensionType.MINT_CLOSE_AUTHORITY, 202),
        (ExtensionType.INTEREST_BEARING_CONFIG, 222),
        (ExtensionType.METADATA_POINTER, 234),
        (ExtensionType.GROUP_POINTER, 234),
        (ExtensionType.PERMANENT_DELEGATE, 202),
        (ExtensionType.DEFAULT_ACCOUNT_STATE, 171),
    ])
    def test_single_mint_extension(self, extension, expected):
        assert get_mint_len([extension]) == expected

    def test_account_extensions(self):
        assert get_account_len([ExtensionType.IMMUTABLE_OWNER]) == 170
        assert get_account_len([ExtensionType.MEMO_TRANSFER]) == 171

    def test_duplicates_counted_once(self):
        assert get_mint_len([ExtensionType.MINT_CLOSE_AUTHORITY] * 3) == 202

    def test_stablecoin_extension_set(self):
        extensions = [
            ExtensionType.MINT_CLOSE_AUTHORITY,
            ExtensionType.PERMANENT_DELEGATE,
            ExtensionType.TRANSFER_FEE_CONFIG,
            ExtensionType.TRANSFER_HOOK,
            ExtensionType.METADATA_POINTER,
        ]
        assert get_mint_len(extensions) == 486

    def test_multisig_size_is_skipped(self):
        """An allocation that would equal the multisig size gets two extra bytes."""
        extensions = [ExtensionType.CONFIDENTIAL_TRANSFER_FEE_CONFIG, ExtensionType.INTEREST_BEARING_CONFIG]
        assert get_mint_len(extensions) == MULTISIG_SIZE + 2

    def test_token_metadata_is_variable_length(self):
        with pytest.raises(ValueError):
            get_type_len(ExtensionType.TOKEN_METADATA)


class TestUnpack:
    """Mint / account unpacking and TLV parsing."""

    def test_plain_mint(self):
        authority = _pubkey(3)
        mint = unpack_mint(_pubkey(9), mint_data(mint_authority=authority, supply=42, decimals=6))

        assert mint.mint_authority == authority
        assert mint.freeze_authority is None
        assert mint.supply == 42
        assert mint.decimals == 6
        assert mint.is_initialized
        assert mint.tlv_data == b""

    def test_mint_with_transfer_fee_config(self):
        data = mint_data(
            mint_authority=_pubkey(3),
            tlv=tlv_entry(ExtensionType.TRANSFER_FEE_CONFIG, _transfer_fee_config_value(withheld=12)),
        )
        mint = unpack_mint(_pubkey(9), data)

        assert get_extension_types(mint.tlv_data) == [ExtensionType.TRANSFER_FEE_CONFIG]
        config = get_transfer_fee_config(mint)
        assert config.transfer_fee_config_authority == _pubkey(1)
        assert config.withdraw_withheld_authority is None
        assert config.withheld_amount == 12
        assert config.newer_transfer_fee.transfer_fee_basis_points == 500
        assert config.newer_transfer_fee.maximum_fee == 1_000_000

    def test_missing_extension_returns_none(self):
        mint = unpack_mint(_pubkey(9), mint_data(mint_authority=_pubkey(3)))
        assert get_transfer_fee_config(mint) is None
        assert get_interest_bearing_config(mint) is None

    def test_interest_bearing_config(self):
        value = INTEREST_BEARING_CONFIG_LAYOUT.build(dict(
            rate_authority=_pubkey(4),
            initialization_timestamp=1_700_000_000,
            pre_update_average_rate=500,
            last_update_timestamp=1_700_000_100,
            current_rate=1000,
        ))
        mint = unpack_mint(_pubkey(9), mint_data(tlv=tlv_entry(ExtensionType.INTEREST_BEARING_CONFIG, value)))

        config = get_interest_bearing_config(mint)
        assert config.rate_authority == _pubkey(4)
        assert config.pre_update_average_rate == 500
        assert config.current_rate == 1000

    def test_token_account_with_withheld_fee(self):
        data = token_account_data(_pubkey(9), _pubkey(5), amount=95, withheld_amount=5)
        account = unpack_account(_pubkey(6), data)

        assert account.mint == _pubkey(9)
        assert account.owner == _pubkey(5)
        assert account.amount == 95
        assert account.delegate is None
        assert get_transfer_fee_amount(account) == 5

    def test_frozen_account(self):
        account = unpack_account(_pubkey(6), token_account_data(_pubkey(9), _pubkey(5), state=AccountState.FROZEN))
        assert account.is_frozen
        assert get_transfer_fee_amount(account) is None

    def test_mint_data_rejected_as_account(self):
        data = mint_data(tlv=tlv_entry(ExtensionType.NON_TRANSFERABLE, b""))
        with pytest.raises(TokenInvalidAccountError):
            unpack_account(_pubkey(6), data)

    def test_short_data_rejected(self):
        with pytest.raises(TokenInvalidAccountError):
            unpack_mint(_pubkey(9), bytes(40))
        with pytest.raises(TokenInvalidAccountError):
            unpack_account(_pubkey(6), bytes(100))

    def test_multisig_sized_data_rejected(self):
        with pytest.raises(TokenInvalidAccountError):
            unpack_account(_pubkey(6), bytes(MULTISIG_SIZE))

    def test_tlv_stops_at_uninitialized_entry(self):
        tlv = tlv_entry(ExtensionType.IMMUTABLE_OWNER, b"") + bytes(8)
        assert get_extension_types(tlv) == [ExtensionType.IMMUTABLE_OWNER]

    def test_tlv_overflow_raises(self):
        truncated = tlv_entry(ExtensionType.TRANSFER_FEE_AMOUNT, Int64ul.build(5))[:-3]
        with pytest.raises(TokenInvalidAccountError):
            get_extension_data(ExtensionType.TRANSFER_FEE_AMOUNT, truncated)

    def test_extension_name(self):
        assert extension_name(ExtensionType.NON_TRANSFERABLE) == "NON_TRANSFERABLE"
        assert extension_name(999) == "UNKNOWN(999)"


class TestFees:
    """Transfer fee arithmetic."""

    def test_fee_capped_at_maximum(self):
        assert calculate_fee(500, 1_000_000, 100_000_000) == 1_000_000

    def test_fee_below_maximum(self):
        assert calculate_fee(500, 10_000_000, 100_000_000) == 5_000_000

    def test_fee_rounds_up(self):
        assert calculate_fee(100, 1_000, 101) == 2
        assert calculate_fee(1, 1_000, 1) == 1

    def test_zero_rate_or_amount(self):
        assert calculate_fee(0, 1_000_000, 100_000_000) == 0
        assert calculate_fee(500, 1_000_000, 0) == 0

    def test_large_amount_keeps_integer_precision(self):
        amount = 2 ** 63 - 1
        assert calculate_fee(1, 2 ** 64 - 1, amount) == -(-amount // 10_000)
