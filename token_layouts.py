"""
Token-2022 account layouts (construct)
Mint / Account base state, TLV extensions, sizes for account allocation
"""

from dataclasses import dataclass
from enum import IntEnum
from typing import Dict, Iterable, List, Optional

from construct import Struct, Int8ul, Int16ul, Int16sl, Int32ul, Int64ul, Int64sl, Bytes, Flag, Adapter
from solders.pubkey import Pubkey


# --- Хелперы для PublicKey ---
class PubkeyAdapter(Adapter):
    def _decode(self, obj, context, path):
        return Pubkey(obj)
    def _encode(self, obj, context, path):
        return bytes(obj)


class OptionalPubkeyAdapter(Adapter):
    """OptionalNonZeroPubkey: 32 zero bytes mean None."""
    def _decode(self, obj, context, path):
        return None if obj == bytes(32) else Pubkey(obj)
    def _encode(self, obj, context, path):
        return bytes(32) if obj is None else bytes(obj)


construct_pubkey = PubkeyAdapter(Bytes(32))
construct_optional_pubkey = OptionalPubkeyAdapter(Bytes(32))
# --- Конец хелперов ---


# --- Base layouts ---
MINT_LAYOUT = Struct(
    "mint_authority_option" / Int32ul,
    "mint_authority" / construct_pubkey,
    "supply" / Int64ul,
    "decimals" / Int8ul,
    "is_initialized" / Flag,
    "freeze_authority_option" / Int32ul,
    "freeze_authority" / construct_pubkey,
)

ACCOUNT_LAYOUT = Struct(
    "mint" / construct_pubkey,
    "owner" / construct_pubkey,
    "amount" / Int64ul,
    "delegate_option" / Int32ul,
    "delegate" / construct_pubkey,
    "state" / Int8ul,
    "is_native_option" / Int32ul,
    "is_native" / Int64ul,
    "delegated_amount" / Int64ul,
    "close_authority_option" / Int32ul,
    "close_authority" / construct_pubkey,
)

MINT_SIZE = MINT_LAYOUT.sizeof()        # 82
ACCOUNT_SIZE = ACCOUNT_LAYOUT.sizeof()  # 165
MULTISIG_SIZE = 355
ACCOUNT_TYPE_SIZE = 1
TYPE_SIZE = 2
LENGTH_SIZE = 2

# --- Extension layouts ---
TRANSFER_FEE_LAYOUT = Struct(
    "epoch" / Int64ul,
    "maximum_fee" / Int64ul,
    "transfer_fee_basis_points" / Int16ul,
)

TRANSFER_FEE_CONFIG_LAYOUT = Struct(
    "transfer_fee_config_authority" / construct_optional_pubkey,
    "withdraw_withheld_authority" / construct_optional_pubkey,
    "withheld_amount" / Int64ul,
    "older_transfer_fee" / TRANSFER_FEE_LAYOUT,
    "newer_transfer_fee" / TRANSFER_FEE_LAYOUT,
)

TRANSFER_FEE_AMOUNT_LAYOUT = Struct(
    "withheld_amount" / Int64ul,
)

INTEREST_BEARING_CONFIG_LAYOUT = Struct(
    "rate_authority" / construct_optional_pubkey,
    "initialization_timestamp" / Int64sl,
    "pre_update_average_rate" / Int16sl,
    "last_update_timestamp" / Int64sl,
    "current_rate" / Int16sl,
)

TLV_HEADER_LAYOUT = Struct(
    "type" / Int16ul,
    "length" / Int16ul,
)


class AccountType(IntEnum):
    UNINITIALIZED = 0
    MINT = 1
    ACCOUNT = 2


class AccountState(IntEnum):
    UNINITIALIZED = 0
    INITIALIZED = 1
    FROZEN = 2


class AuthorityType(IntEnum):
    MINT_TOKENS = 0
    FREEZE_ACCOUNT = 1
    ACCOUNT_OWNER = 2
    CLOSE_ACCOUNT = 3
    TRANSFER_FEE_CONFIG = 4
    WITHHELD_WITHDRAW = 5
    CLOSE_MINT = 6
    INTEREST_RATE = 7
    PERMANENT_DELEGATE = 8
    CONFIDENTIAL_TRANSFER_MINT = 9
    TRANSFER_HOOK_PROGRAM_ID = 10
    CONFIDENTIAL_TRANSFER_FEE_CONFIG = 11
    METADATA_POINTER = 12
    GROUP_POINTER = 13
    GROUP_MEMBER_POINTER = 14


class ExtensionType(IntEnum):
    UNINITIALIZED = 0
    TRANSFER_FEE_CONFIG = 1
    TRANSFER_FEE_AMOUNT = 2
    MINT_CLOSE_AUTHORITY = 3
    CONFIDENTIAL_TRANSFER_MINT = 4
    CONFIDENTIAL_TRANSFER_ACCOUNT = 5
    DEFAULT_ACCOUNT_STATE = 6
    IMMUTABLE_OWNER = 7
    MEMO_TRANSFER = 8
    NON_TRANSFERABLE = 9
    INTEREST_BEARING_CONFIG = 10
    CPI_GUARD = 11
    PERMANENT_DELEGATE = 12
    NON_TRANSFERABLE_ACCOUNT = 13
    TRANSFER_HOOK = 14
    TRANSFER_HOOK_ACCOUNT = 15
    CONFIDENTIAL_TRANSFER_FEE_CONFIG = 16
    CONFIDENTIAL_TRANSFER_FEE_AMOUNT = 17
    METADATA_POINTER = 18
    TOKEN_METADATA = 19
    GROUP_POINTER = 20
    TOKEN_GROUP = 21
    GROUP_MEMBER_POINTER = 22
    TOKEN_GROUP_MEMBER = 23


# Фиксированные размеры значений extension (без TLV заголовка)
EXTENSION_SIZES: Dict[ExtensionType, int] = {
    ExtensionType.UNINITIALIZED: 0,
    ExtensionType.TRANSFER_FEE_CONFIG: TRANSFER_FEE_CONFIG_LAYOUT.sizeof(),  # 108
    ExtensionType.TRANSFER_FEE_AMOUNT: TRANSFER_FEE_AMOUNT_LAYOUT.sizeof(),  # 8
    ExtensionType.MINT_CLOSE_AUTHORITY: 32,
    ExtensionType.CONFIDENTIAL_TRANSFER_MINT: 65,
    ExtensionType.CONFIDENTIAL_TRANSFER_ACCOUNT: 295,
    ExtensionType.DEFAULT_ACCOUNT_STATE: 1,
    ExtensionType.IMMUTABLE_OWNER: 0,
    ExtensionType.MEMO_TRANSFER: 1,
    ExtensionType.NON_TRANSFERABLE: 0,
    ExtensionType.INTEREST_BEARING_CONFIG: INTEREST_BEARING_CONFIG_LAYOUT.sizeof(),  # 52
    ExtensionType.CPI_GUARD: 1,
    ExtensionType.PERMANENT_DELEGATE: 32,
    ExtensionType.NON_TRANSFERABLE_ACCOUNT: 0,
    ExtensionType.TRANSFER_HOOK: 64,
    ExtensionType.TRANSFER_HOOK_ACCOUNT: 1,
    ExtensionType.CONFIDENTIAL_TRANSFER_FEE_CONFIG: 129,
    ExtensionType.CONFIDENTIAL_TRANSFER_FEE_AMOUNT: 64,
    ExtensionType.METADATA_POINTER: 64,
    ExtensionType.GROUP_POINTER: 64,
    ExtensionType.TOKEN_GROUP: 80,
    ExtensionType.GROUP_MEMBER_POINTER: 64,
    ExtensionType.TOKEN_GROUP_MEMBER: 72,
}


class TokenInvalidAccountError(ValueError):
    pass


def get_type_len(extension: ExtensionType) -> int:
    if extension == ExtensionType.TOKEN_METADATA:
        raise ValueError("TokenMetadata is variable-length, size it with token_metadata.metadata_len()")
    return EXTENSION_SIZES[extension]


def _len_with_extensions(extensions: Iterable[ExtensionType], base_size: int) -> int:
    unique: List[ExtensionType] = []
    for extension in extensions:
        if extension not in unique:
            unique.append(extension)
    if not unique:
        return base_size

    length = ACCOUNT_SIZE + ACCOUNT_TYPE_SIZE + sum(
        TYPE_SIZE + LENGTH_SIZE + get_type_len(extension) for extension in unique
    )
    # размер multisig зарезервирован, иначе аккаунт нельзя отличить от multisig
    if length == MULTISIG_SIZE:
        return length + TYPE_SIZE
    return length


def get_mint_len(extensions: Iterable[ExtensionType] = ()) -> int:
    """Space to allocate for a mint carrying the given fixed-size extensions."""
    return _len_with_extensions(extensions, MINT_SIZE)


def get_account_len(extensions: Iterable[ExtensionType] = ()) -> int:
    """Space to allocate for a token account carrying the given extensions."""
    return _len_with_extensions(extensions, ACCOUNT_SIZE)


def iter_tlv_entries(tlv_data: bytes):
    """Yields (type, value) pairs until the data ends or an uninitialized entry starts."""
    offset = 0
    header_size = TYPE_SIZE + LENGTH_SIZE
    while offset + header_size <= len(tlv_data):
        header = TLV_HEADER_LAYOUT.parse(tlv_data[offset:offset + header_size])
        if header.type == ExtensionType.UNINITIALIZED:
            break
        start = offset + header_size
        end = start + header.length
        if end > len(tlv_data):
            raise TokenInvalidAccountError(f"TLV entry of type {header.type} overflows the account data")
        yield header.type, tlv_data[start:end]
        offset = end


def get_extension_types(tlv_data: bytes) -> List[int]:
    return [extension_type for extension_type, _ in iter_tlv_entries(tlv_data)]


def get_extension_data(extension: ExtensionType, tlv_data: bytes) -> Optional[bytes]:
    for extension_type, value in iter_tlv_entries(tlv_data):
        if extension_type == extension:
            return value
    return None


def extension_name(extension_type: int) -> str:
    try:
        return ExtensionType(extension_type).name
    except ValueError:
        return f"UNKNOWN({extension_type})"


@dataclass
class Mint:
    address: Pubkey
    mint_authority: Optional[Pubkey]
    supply: int
    decimals: int
    is_initialized: bool
    freeze_authority: Optional[Pubkey]
    tlv_data: bytes = b""


@dataclass
class TokenAccount:
    address: Pubkey
    mint: Pubkey
    owner: Pubkey
    amount: int
    delegate: Optional[Pubkey]
    state: AccountState
    is_native: Optional[int]
    delegated_amount: int
    close_authority: Optional[Pubkey]
    tlv_data: bytes = b""

    @property
    def is_frozen(self) -> bool:
        return self.state == AccountState.FROZEN


@dataclass
class TransferFee:
    epoch: int
    maximum_fee: int
    transfer_fee_basis_points: int


@dataclass
class TransferFeeConfig:
    transfer_fee_config_authority: Optional[Pubkey]
    withdraw_withheld_authority: Optional[Pubkey]
    withheld_amount: int
    older_transfer_fee: TransferFee
    newer_transfer_fee: TransferFee


@dataclass
class InterestBearingConfig:
    rate_authority: Optional[Pubkey]
    initialization_timestamp: int
    pre_update_average_rate: int
    last_update_timestamp: int
    current_rate: int


def _tlv_after_base(data: bytes, expected_type: AccountType) -> bytes:
    if len(data) <= ACCOUNT_SIZE:
        return b""
    if len(data) == MULTISIG_SIZE:
        raise TokenInvalidAccountError("Account data has the size of a multisig account")
    account_type = data[ACCOUNT_SIZE]
    if account_type != expected_type:
        raise TokenInvalidAccountError(
            f"Expected account type {expected_type.name}, got {account_type}"
        )
    return data[ACCOUNT_SIZE + ACCOUNT_TYPE_SIZE:]


def unpack_mint(address: Pubkey, data: bytes) -> Mint:
    if len(data) < MINT_SIZE:
        raise TokenInvalidAccountError(f"Mint {address} data too short: {len(data)} bytes")
    parsed = MINT_LAYOUT.parse(data[:MINT_SIZE])
    return Mint(
        address=address,
        mint_authority=parsed.mint_authority if parsed.mint_authority_option else None,
        supply=parsed.supply,
        decimals=parsed.decimals,
        is_initialized=parsed.is_initialized,
        freeze_authority=parsed.freeze_authority if parsed.freeze_authority_option else None,
        tlv_data=_tlv_after_base(data, AccountType.MINT),
    )


def unpack_account(address: Pubkey, data: bytes) -> TokenAccount:
    if len(data) < ACCOUNT_SIZE:
        raise TokenInvalidAccountError(f"Token account {address} data too short: {len(data)} bytes")
    parsed = ACCOUNT_LAYOUT.parse(data[:ACCOUNT_SIZE])
    return TokenAccount(
        address=address,
        mint=parsed.mint,
        owner=parsed.owner,
        amount=parsed.amount,
        delegate=parsed.delegate if parsed.delegate_option else None,
        state=AccountState(parsed.state),
        is_native=parsed.is_native if parsed.is_native_option else None,
        delegated_amount=parsed.delegated_amount,
        close_authority=parsed.close_authority if parsed.close_authority_option else None,
        tlv_data=_tlv_after_base(data, AccountType.ACCOUNT),
    )


def get_transfer_fee_config(mint: Mint) -> Optional[TransferFeeConfig]:
    value = get_extension_data(ExtensionType.TRANSFER_FEE_CONFIG, mint.tlv_data)
    if value is None:
        return None
    parsed = TRANSFER_FEE_CONFIG_LAYOUT.parse(value)

    def _fee(raw) -> TransferFee:
        return TransferFee(
            epoch=raw.epoch,
            maximum_fee=raw.maximum_fee,
            transfer_fee_basis_points=raw.transfer_fee_basis_points,
        )

    return TransferFeeConfig(
        transfer_fee_config_authority=parsed.transfer_fee_config_authority,
        withdraw_withheld_authority=parsed.withdraw_withheld_authority,
        withheld_amount=parsed.withheld_amount,
        older_transfer_fee=_fee(parsed.older_transfer_fee),
        newer_transfer_fee=_fee(parsed.newer_transfer_fee),
    )


def get_transfer_fee_amount(account: TokenAccount) -> Optional[int]:
    """Withheld fee amount on a token account, None without the extension."""
    value = get_extension_data(ExtensionType.TRANSFER_FEE_AMOUNT, account.tlv_data)
    if value is None:
        return None
    return TRANSFER_FEE_AMOUNT_LAYOUT.parse(value).withheld_amount


def get_interest_bearing_config(mint: Mint) -> Optional[InterestBearingConfig]:
    value = get_extension_data(ExtensionType.INTEREST_BEARING_CONFIG, mint.tlv_data)
    if value is None:
        return None
    parsed = INTEREST_BEARING_CONFIG_LAYOUT.parse(value)
    return InterestBearingConfig(
        rate_authority=parsed.rate_authority,
        initialization_timestamp=parsed.initialization_timestamp,
        pre_update_average_rate=parsed.pre_update_average_rate,
        last_update_timestamp=parsed.last_update_timestamp,
        current_rate=parsed.current_rate,
    )


def calculate_fee(transfer_fee_basis_points: int, maximum_fee: int, amount: int) -> int:
    """Fee withheld by a TransferCheckedWithFee of `amount` (ceil, capped at maximum_fee)."""
    if transfer_fee_basis_points == 0 or amount == 0:
        return 0
    # целочисленный ceil, float теряет точность на u64
    fee = -(-amount * transfer_fee_basis_points // 10_000)
    return min(fee, maximum_fee)
