"""
Instruction builders for the Token-2022 extensions
Base token, ATA and memo instructions come from spl.token / spl.memo (solana-py),
here only the extension encodings live. Data layouts are encoded with construct
"""

from typing import List, Optional, Sequence

from construct import Struct, Int8ul, Int16ul, Int16sl, Int64ul, Const
from solders.instruction import Instruction, AccountMeta
from solders.pubkey import Pubkey
from spl.token.constants import TOKEN_2022_PROGRAM_ID

from token_layouts import AccountState, construct_pubkey, construct_optional_pubkey


class TokenInstruction:
    """Token-2022 instruction discriminators that spl.token does not build"""
    INITIALIZE_IMMUTABLE_OWNER = 22
    AMOUNT_TO_UI_AMOUNT = 23
    INITIALIZE_MINT_CLOSE_AUTHORITY = 25
    TRANSFER_FEE_EXTENSION = 26
    DEFAULT_ACCOUNT_STATE_EXTENSION = 28
    MEMO_TRANSFER_EXTENSION = 30
    INITIALIZE_NON_TRANSFERABLE_MINT = 32
    INTEREST_BEARING_MINT_EXTENSION = 33
    INITIALIZE_PERMANENT_DELEGATE = 35
    TRANSFER_HOOK_EXTENSION = 36
    METADATA_POINTER_EXTENSION = 39
    GROUP_POINTER_EXTENSION = 40
    GROUP_MEMBER_POINTER_EXTENSION = 41


class TransferFeeInstruction:
    INITIALIZE_TRANSFER_FEE_CONFIG = 0
    TRANSFER_CHECKED_WITH_FEE = 1
    WITHDRAW_WITHHELD_TOKENS_FROM_ACCOUNTS = 3


# --- Data layouts ---
AMOUNT_LAYOUT = Struct(
    "instruction" / Int8ul,
    "amount" / Int64ul,
)

MINT_CLOSE_AUTHORITY_LAYOUT = Struct(
    "instruction" / Const(TokenInstruction.INITIALIZE_MINT_CLOSE_AUTHORITY, Int8ul),
    "close_authority_option" / Int8ul,
    "close_authority" / construct_optional_pubkey,
)

PERMANENT_DELEGATE_LAYOUT = Struct(
    "instruction" / Const(TokenInstruction.INITIALIZE_PERMANENT_DELEGATE, Int8ul),
    "delegate" / construct_pubkey,
)

INITIALIZE_TRANSFER_FEE_CONFIG_LAYOUT = Struct(
    "instruction" / Const(TokenInstruction.TRANSFER_FEE_EXTENSION, Int8ul),
    "transfer_fee_instruction" / Const(TransferFeeInstruction.INITIALIZE_TRANSFER_FEE_CONFIG, Int8ul),
    "transfer_fee_config_authority_option" / Int8ul,
    "transfer_fee_config_authority" / construct_optional_pubkey,
    "withdraw_withheld_authority_option" / Int8ul,
    "withdraw_withheld_authority" / construct_optional_pubkey,
    "transfer_fee_basis_points" / Int16ul,
    "maximum_fee" / Int64ul,
)

TRANSFER_CHECKED_WITH_FEE_LAYOUT = Struct(
    "instruction" / Const(TokenInstruction.TRANSFER_FEE_EXTENSION, Int8ul),
    "transfer_fee_instruction" / Const(TransferFeeInstruction.TRANSFER_CHECKED_WITH_FEE, Int8ul),
    "amount" / Int64ul,
    "decimals" / Int8ul,
    "fee" / Int64ul,
)

WITHDRAW_FROM_ACCOUNTS_LAYOUT = Struct(
    "instruction" / Const(TokenInstruction.TRANSFER_FEE_EXTENSION, Int8ul),
    "transfer_fee_instruction" / Const(TransferFeeInstruction.WITHDRAW_WITHHELD_TOKENS_FROM_ACCOUNTS, Int8ul),
    "num_token_accounts" / Int8ul,
)

# [instruction, sub-instruction, state]
DEFAULT_ACCOUNT_STATE_LAYOUT = Struct(
    "instruction" / Const(TokenInstruction.DEFAULT_ACCOUNT_STATE_EXTENSION, Int8ul),
    "default_account_state_instruction" / Int8ul,
    "account_state" / Int8ul,
)

INITIALIZE_INTEREST_BEARING_LAYOUT = Struct(
    "instruction" / Const(TokenInstruction.INTEREST_BEARING_MINT_EXTENSION, Int8ul),
    "interest_bearing_instruction" / Const(0, Int8ul),
    "rate_authority" / construct_optional_pubkey,
    "rate" / Int16sl,
)

UPDATE_RATE_INTEREST_BEARING_LAYOUT = Struct(
    "instruction" / Const(TokenInstruction.INTEREST_BEARING_MINT_EXTENSION, Int8ul),
    "interest_bearing_instruction" / Const(1, Int8ul),
    "rate" / Int16sl,
)

# TransferHook / MetadataPointer / GroupPointer / GroupMemberPointer share one shape
POINTER_INITIALIZE_LAYOUT = Struct(
    "instruction" / Int8ul,
    "pointer_instruction" / Const(0, Int8ul),
    "authority" / construct_optional_pubkey,
    "address" / construct_optional_pubkey,
)


def _option(value: Optional[Pubkey]) -> int:
    return 1 if value is not None else 0


def _signer_metas(authority: Pubkey, multi_signers: Sequence[Pubkey]) -> List[AccountMeta]:
    """Authority meta followed by multisig signers, as the token program expects."""
    metas = [AccountMeta(authority, is_signer=not multi_signers, is_writable=False)]
    metas.extend(AccountMeta(signer, is_signer=True, is_writable=False) for signer in multi_signers)
    return metas


def _simple(instruction: int, accounts: List[AccountMeta], program_id: Pubkey) -> Instruction:
    return Instruction(program_id, bytes([instruction]), accounts)


def amount_to_ui_amount(mint: Pubkey, amount: int, program_id: Pubkey = TOKEN_2022_PROGRAM_ID) -> Instruction:
    """Returns the UI amount as program return data (run it through simulateTransaction)."""
    data = AMOUNT_LAYOUT.build(dict(instruction=TokenInstruction.AMOUNT_TO_UI_AMOUNT, amount=amount))
    return Instruction(program_id, data, [AccountMeta(mint, is_signer=False, is_writable=False)])


# --- Extensions without sub-instructions ---
def initialize_immutable_owner(account: Pubkey, program_id: Pubkey = TOKEN_2022_PROGRAM_ID) -> Instruction:
    return _simple(TokenInstruction.INITIALIZE_IMMUTABLE_OWNER, [
        AccountMeta(account, is_signer=False, is_writable=True),
    ], program_id)


def initialize_mint_close_authority(mint: Pubkey, close_authority: Optional[Pubkey],
                                    program_id: Pubkey = TOKEN_2022_PROGRAM_ID) -> Instruction:
    data = MINT_CLOSE_AUTHORITY_LAYOUT.build(dict(
        close_authority_option=_option(close_authority),
        close_authority=close_authority,
    ))
    return Instruction(program_id, data, [AccountMeta(mint, is_signer=False, is_writable=True)])


def initialize_non_transferable_mint(mint: Pubkey, program_id: Pubkey = TOKEN_2022_PROGRAM_ID) -> Instruction:
    return _simple(TokenInstruction.INITIALIZE_NON_TRANSFERABLE_MINT, [
        AccountMeta(mint, is_signer=False, is_writable=True),
    ], program_id)


def initialize_permanent_delegate(mint: Pubkey, delegate: Pubkey,
                                  program_id: Pubkey = TOKEN_2022_PROGRAM_ID) -> Instruction:
    data = PERMANENT_DELEGATE_LAYOUT.build(dict(delegate=delegate))
    return Instruction(program_id, data, [AccountMeta(mint, is_signer=False, is_writable=True)])


# --- Transfer fee extension ---
def initialize_transfer_fee_config(mint: Pubkey, transfer_fee_config_authority: Optional[Pubkey],
                                   withdraw_withheld_authority: Optional[Pubkey],
                                   transfer_fee_basis_points: int, maximum_fee: int,
                                   program_id: Pubkey = TOKEN_2022_PROGRAM_ID) -> Instruction:
    data = INITIALIZE_TRANSFER_FEE_CONFIG_LAYOUT.build(dict(
        transfer_fee_config_authority_option=_option(transfer_fee_config_authority),
        transfer_fee_config_authority=transfer_fee_config_authority,
        withdraw_withheld_authority_option=_option(withdraw_withheld_authority),
        withdraw_withheld_authority=withdraw_withheld_authority,
        transfer_fee_basis_points=transfer_fee_basis_points,
        maximum_fee=maximum_fee,
    ))
    return Instruction(program_id, data, [AccountMeta(mint, is_signer=False, is_writable=True)])


def transfer_checked_with_fee(source: Pubkey, mint: Pubkey, destination: Pubkey, authority: Pubkey,
                              amount: int, decimals: int, fee: int, multi_signers: Sequence[Pubkey] = (),
                              program_id: Pubkey = TOKEN_2022_PROGRAM_ID) -> Instruction:
    """`fee` must equal the fee the mint's config yields for `amount`, otherwise the program rejects."""
    data = TRANSFER_CHECKED_WITH_FEE_LAYOUT.build(dict(amount=amount, decimals=decimals, fee=fee))
    accounts = [
        AccountMeta(source, is_signer=False, is_writable=True),
        AccountMeta(mint, is_signer=False, is_writable=False),
        AccountMeta(destination, is_signer=False, is_writable=True),
    ]
    accounts.extend(_signer_metas(authority, multi_signers))
    return Instruction(program_id, data, accounts)


def withdraw_withheld_tokens_from_accounts(mint: Pubkey, destination: Pubkey, authority: Pubkey,
                                           sources: Sequence[Pubkey], multi_signers: Sequence[Pubkey] = (),
                                           program_id: Pubkey = TOKEN_2022_PROGRAM_ID) -> Instruction:
    data = WITHDRAW_FROM_ACCOUNTS_LAYOUT.build(dict(num_token_accounts=len(sources)))
    accounts = [
        AccountMeta(mint, is_signer=False, is_writable=False),
        AccountMeta(destination, is_signer=False, is_writable=True),
    ]
    accounts.extend(_signer_metas(authority, multi_signers))
    accounts.extend(AccountMeta(source, is_signer=False, is_writable=True) for source in sources)
    return Instruction(program_id, data, accounts)


# --- Default account state extension ---
def initialize_default_account_state(mint: Pubkey, account_state: AccountState,
                                     program_id: Pubkey = TOKEN_2022_PROGRAM_ID) -> Instruction:
    data = DEFAULT_ACCOUNT_STATE_LAYOUT.build(dict(
        default_account_state_instruction=0, account_state=int(account_state),
    ))
    return Instruction(program_id, data, [AccountMeta(mint, is_signer=False, is_writable=True)])


def update_default_account_state(mint: Pubkey, account_state: AccountState, freeze_authority: Pubkey,
                                 multi_signers: Sequence[Pubkey] = (),
                                 program_id: Pubkey = TOKEN_2022_PROGRAM_ID) -> Instruction:
    data = DEFAULT_ACCOUNT_STATE_LAYOUT.build(dict(
        default_account_state_instruction=1, account_state=int(account_state),
    ))
    accounts = [AccountMeta(mint, is_signer=False, is_writable=True)]
    accounts.extend(_signer_metas(freeze_authority, multi_signers))
    return Instruction(program_id, data, accounts)


# --- Memo transfer extension ---
def _memo_transfer(enable: bool, account: Pubkey, authority: Pubkey, multi_signers: Sequence[Pubkey],
                   program_id: Pubkey) -> Instruction:
    accounts = [AccountMeta(account, is_signer=False, is_writable=True)]
    accounts.extend(_signer_metas(authority, multi_signers))
    data = bytes([TokenInstruction.MEMO_TRANSFER_EXTENSION, 0 if enable else 1])
    return Instruction(program_id, data, accounts)


def enable_required_memo_transfers(account: Pubkey, authority: Pubkey, multi_signers: Sequence[Pubkey] = (),
                                   program_id: Pubkey = TOKEN_2022_PROGRAM_ID) -> Instruction:
    return _memo_transfer(True, account, authority, multi_signers, program_id)


def disable_required_memo_transfers(account: Pubkey, authority: Pubkey, multi_signers: Sequence[Pubkey] = (),
                                    program_id: Pubkey = TOKEN_2022_PROGRAM_ID) -> Instruction:
    return _memo_transfer(False, account, authority, multi_signers, program_id)


# --- Interest bearing extension ---
def initialize_interest_bearing_mint(mint: Pubkey, rate_authority: Optional[Pubkey], rate: int,
                                     program_id: Pubkey = TOKEN_2022_PROGRAM_ID) -> Instruction:
    """`rate` is in basis points per year (i16)."""
    data = INITIALIZE_INTEREST_BEARING_LAYOUT.build(dict(rate_authority=rate_authority, rate=rate))
    return Instruction(program_id, data, [AccountMeta(mint, is_signer=False, is_writable=True)])


def update_rate_interest_bearing_mint(mint: Pubkey, rate_authority: Pubkey, rate: int,
                                      multi_signers: Sequence[Pubkey] = (),
                                      program_id: Pubkey = TOKEN_2022_PROGRAM_ID) -> Instruction:
    data = UPDATE_RATE_INTEREST_BEARING_LAYOUT.build(dict(rate=rate))
    accounts = [AccountMeta(mint, is_signer=False, is_writable=True)]
    accounts.extend(_signer_metas(rate_authority, multi_signers))
    return Instruction(program_id, data, accounts)


# --- Pointer-style extensions ---
def _initialize_pointer(instruction: int, mint: Pubkey, authority: Optional[Pubkey],
                        address: Optional[Pubkey], program_id: Pubkey) -> Instruction:
    data = POINTER_INITIALIZE_LAYOUT.build(dict(instruction=instruction, authority=authority, address=address))
    return Instruction(program_id, data, [AccountMeta(mint, is_signer=False, is_writable=True)])


def initialize_transfer_hook(mint: Pubkey, authority: Optional[Pubkey], hook_program_id: Optional[Pubkey],
                             program_id: Pubkey = TOKEN_2022_PROGRAM_ID) -> Instruction:
    return _initialize_pointer(TokenInstruction.TRANSFER_HOOK_EXTENSION, mint, authority, hook_program_id, program_id)


def initialize_metadata_pointer(mint: Pubkey, authority: Optional[Pubkey], metadata_address: Optional[Pubkey],
                                program_id: Pubkey = TOKEN_2022_PROGRAM_ID) -> Instruction:
    return _initialize_pointer(TokenInstruction.METADATA_POINTER_EXTENSION, mint, authority, metadata_address, program_id)


def initialize_group_pointer(mint: Pubkey, authority: Optional[Pubkey], group_address: Optional[Pubkey],
                             program_id: Pubkey = TOKEN_2022_PROGRAM_ID) -> Instruction:
    return _initialize_pointer(TokenInstruction.GROUP_POINTER_EXTENSION, mint, authority, group_address, program_id)


def initialize_group_member_pointer(mint: Pubkey, authority: Optional[Pubkey], member_address: Optional[Pubkey],
                                    program_id: Pubkey = TOKEN_2022_PROGRAM_ID) -> Instruction:
    return _initialize_pointer(TokenInstruction.GROUP_MEMBER_POINTER_EXTENSION, mint, authority, member_address, program_id)
