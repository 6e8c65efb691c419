"""Shared fixtures: an in-memory stand-in for solana-py AsyncClient that answers with real solders responses."""

from typing import Any, Callable, Dict, List, Optional

import pytest
from construct import Int64ul
from solana.rpc.models import TxOpts
from solders.account import Account
from solders.hash import Hash
from solders.keypair import Keypair
from solders.pubkey import Pubkey
from solders.rpc.responses import (
    GetAccountInfoResp,
    GetBalanceResp,
    GetBlockHeightResp,
    GetLatestBlockhashResp,
    GetMinimumBalanceForRentExemptionResp,
    GetProgramAccountsResp,
    GetSignatureStatusesResp,
    RequestAirdropResp,
    RpcBlockhash,
    RpcKeyedAccount,
    RpcResponseContext,
    RpcSimulateTransactionResult,
    SendTransactionResp,
    SimulateTransactionResp,
)
from solders.signature import Signature
from solders.transaction import Transaction
from solders.transaction_status import TransactionConfirmationStatus, TransactionStatus
from spl.token.constants import TOKEN_2022_PROGRAM_ID

import config
from token_layouts import (
    ACCOUNT_LAYOUT, ACCOUNT_SIZE, MINT_LAYOUT, TLV_HEADER_LAYOUT, AccountType, ExtensionType,
)

CONTEXT = RpcResponseContext(slot=1)


class FakeLedger:
    """
    Answers the AsyncClient methods the scripts use. Sent transactions are decoded
    and kept in `transactions`; `reject` lets a test turn a transaction into a
    ledger error reported by getSignatureStatuses, `drop_transactions`
    makes sent transactions never land, `errors` raises the given exception
    from a method the way the node would.
    """

    def __init__(self, balance: int = 10 * config.LAMPORTS_PER_SOL):
        self.balance = balance
        self.block_height = 100
        self.last_valid_block_height = 250
        self.calls: List[str] = []
        self.transactions: List[Transaction] = []
        self.simulated: List[Transaction] = []
        self.sent_opts: List[Optional[TxOpts]] = []
        self.airdrops: List[int] = []
        self.airdrop_signatures: List[str] = []
        self.accounts: Dict[str, Account] = {}
        self.program_accounts: List[RpcKeyedAccount] = []
        self.simulation = RpcSimulateTransactionResult(logs=[])
        self.statuses: Dict[str, Optional[TransactionStatus]] = {}
        self.reject: Optional[Callable[[Transaction], Any]] = None
        self.errors: Dict[str, Exception] = {}
        self.drop_transactions = False
        self.account_lookup: Optional[Callable[[str], Optional[bytes]]] = None

    # --- helpers for tests ---
    def set_account(self, pubkey: Pubkey, data: bytes, lamports: int = 1_000_000,
                    owner: Pubkey = TOKEN_2022_PROGRAM_ID):
        self.accounts[str(pubkey)] = Account(lamports=lamports, data=data, owner=owner)

    def add_program_account(self, pubkey: Pubkey, data: bytes, lamports: int = 2_000_000):
        account = Account(lamports=lamports, data=data, owner=TOKEN_2022_PROGRAM_ID)
        self.program_accounts.append(RpcKeyedAccount(pubkey, account))

    def _call(self, method: str):
        self.calls.append(method)
        if method in self.errors:
            raise self.errors[method]

    # --- AsyncClient ---
    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    async def close(self):
        pass

    async def get_balance(self, pubkey, commitment=None):
        self._call("getBalance")
        return GetBalanceResp(self.balance, CONTEXT)

    async def request_airdrop(self, pubkey, lamports, commitment=None):
        self._call("requestAirdrop")
        self.airdrops.append(lamports)
        signature = Signature.new_unique()
        self.airdrop_signatures.append(str(signature))
        self.statuses[str(signature)] = finalized_status()
        return RequestAirdropResp(signature)

    async def get_minimum_balance_for_rent_exemption(self, usize, commitment=None):
        self._call("getMinimumBalanceForRentExemption")
        return GetMinimumBalanceForRentExemptionResp((usize + 128) * 6960)

    async def get_latest_blockhash(self, commitment=None):
        self._call("getLatestBlockhash")
        return GetLatestBlockhashResp(RpcBlockhash(Hash.default(), self.last_valid_block_height), CONTEXT)

    async def get_block_height(self, commitment=None):
        self._call("getBlockHeight")
        return GetBlockHeightResp(self.block_height)

    async def send_raw_transaction(self, txn: bytes, opts: Optional[TxOpts] = None):
        self._call("sendTransaction")
        transaction = Transaction.from_bytes(txn)
        self.transactions.append(transaction)
        self.sent_opts.append(opts)
        signature = transaction.signatures[0]

        err = self.reject(transaction) if self.reject else None
        if str(signature) not in self.statuses and not self.drop_transactions:
            self.statuses[str(signature)] = finalized_status(err)
        return SendTransactionResp(signature)

    async def get_signature_statuses(self, signatures, search_transaction_history=False):
        self._call("getSignatureStatuses")
        return GetSignatureStatusesResp([self.statuses.get(str(sig)) for sig in signatures], CONTEXT)

    async def get_account_info(self, pubkey, commitment=None, encoding="base64", data_slice=None):
        self._call("getAccountInfo")
        value = self.accounts.get(str(pubkey))
        if value is None and self.account_lookup:
            data = self.account_lookup(str(pubkey))
            if data is not None:
                value = Account(lamports=1_000_000, data=data, owner=TOKEN_2022_PROGRAM_ID)
        return GetAccountInfoResp(value, CONTEXT)

    async def get_program_accounts(self, pubkey, commitment=None, encoding=None, data_slice=None, filters=None):
        self._call("getProgramAccounts")
        return GetProgramAccountsResp(list(self.program_accounts))

    async def simulate_transaction(self, txn, sig_verify=False, commitment=None):
        self._call("simulateTransaction")
        self.simulated.append(txn)
        return SimulateTransactionResp(self.simulation, CONTEXT)


def finalized_status(err: Any = None) -> TransactionStatus:
    return TransactionStatus(
        slot=1, confirmations=None, err=err, confirmation_status=TransactionConfirmationStatus.Finalized,
    )


# --- Builders for on-chain account data ---
def tlv_entry(extension: ExtensionType, value: bytes) -> bytes:
    return TLV_HEADER_LAYOUT.build(dict(type=int(extension), length=len(value))) + value


def mint_data(mint_authority: Optional[Pubkey] = None, supply: int = 0, decimals: int = 6,
              freeze_authority: Optional[Pubkey] = None, tlv: bytes = b"") -> bytes:
    base = MINT_LAYOUT.build(dict(
        mint_authority_option=1 if mint_authority is not None else 0,
        mint_authority=mint_authority if mint_authority is not None else Pubkey.default(),
        supply=supply,
        decimals=decimals,
        is_initialized=True,
        freeze_authority_option=1 if freeze_authority is not None else 0,
        freeze_authority=freeze_authority if freeze_authority is not None else Pubkey.default(),
    ))
    if not tlv:
        return base
    # у mint с extensions база дополняется нулями до размера account
    return base + bytes(ACCOUNT_SIZE - len(base)) + bytes([AccountType.MINT]) + tlv


def token_account_data(mint: Pubkey, owner: Pubkey, amount: int = 0, state: int = 1,
                       withheld_amount: Optional[int] = None, tlv: bytes = b"") -> bytes:
    base = ACCOUNT_LAYOUT.build(dict(
        mint=mint,
        owner=owner,
        amount=amount,
        delegate_option=0,
        delegate=Pubkey.default(),
        state=state,
        is_native_option=0,
        is_native=0,
        delegated_amount=0,
        close_authority_option=0,
        close_authority=Pubkey.default(),
    ))
    if withheld_amount is not None:
        tlv = tlv_entry(ExtensionType.TRANSFER_FEE_AMOUNT, Int64ul.build(withheld_amount)) + tlv
    if not tlv:
        return base
    return base + bytes([AccountType.ACCOUNT]) + tlv


def decode_instructions(transaction: Transaction):
    """[(program_id, data, [account pubkeys])] for every instruction in a sent transaction."""
    message = transaction.message
    keys = message.account_keys
    return [
        (keys[ix.program_id_index], bytes(ix.data), [keys[i] for i in bytes(ix.accounts)])
        for ix in message.instructions
    ]


@pytest.fixture(autouse=True)
def fast_confirmation(monkeypatch):
    monkeypatch.setattr(config, "CONFIRM_POLL_INTERVAL", 0)


@pytest.fixture
def ledger():
    return FakeLedger()


@pytest.fixture
def keypair():
    return Keypair()


@pytest.fixture
def script_env(monkeypatch, ledger, keypair):
    """Points a script module at the fake ledger and a throwaway wallet; sleeps are skipped."""
    async def no_sleep(_seconds):
        return None

    def patch(module):
        monkeypatch.setattr(module, "load_keypair", lambda path=None: keypair)
        monkeypatch.setattr(module, "get_client", lambda *args, **kwargs: ledger)
        monkeypatch.setattr(module.asyncio, "sleep", no_sleep)
        return module

    return patch
