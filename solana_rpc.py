"""
Solana RPC helpers on top of solana-py AsyncClient
Airdrop guard, send-and-confirm, simulation, explorer links
"""

import asyncio
import logging
from typing import List, Any, Optional, Sequence

from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Commitment, Confirmed
from solana.rpc.core import RPCException
from solana.rpc.models import TxOpts
from solders.hash import Hash
from solders.instruction import Instruction
from solders.keypair import Keypair
from solders.message import Message
from solders.rpc.responses import RpcSimulateTransactionResult
from solders.signature import Signature
from solders.transaction import Transaction
from solders.transaction_status import TransactionStatus

import config

logger = logging.getLogger(__name__)

# processed < confirmed < finalized
COMMITMENT_LEVELS = {"processed": 0, "confirmed": 1, "finalized": 2}


class SolanaRPCError(Exception):
    """Base class for everything the ledger or the RPC node rejects."""


class RPCError(SolanaRPCError):
    """Error object returned by the node."""

    def __init__(self, method: str, message: str, logs: Optional[List[str]] = None):
        self.method = method
        self.message = message
        # program logs from a failed preflight simulation
        self.logs = logs or []
        super().__init__(f"{method} failed: {message}")

    @classmethod
    def from_exception(cls, method: str, exc: RPCException) -> "RPCError":
        error = exc.args[0] if exc.args else exc
        data = getattr(error, 'data', None)
        return cls(method, getattr(error, 'message', str(error)), list(getattr(data, 'logs', None) or []))


class TransactionFailedError(SolanaRPCError):
    def __init__(self, signature: str, err: Any):
        self.signature = signature
        self.err = err
        super().__init__(f"Transaction {signature} failed: {err}")


class TransactionExpiredError(SolanaRPCError):
    def __init__(self, signature: str, last_valid_block_height: int):
        self.signature = signature
        self.last_valid_block_height = last_valid_block_height
        super().__init__(
            f"Transaction {signature} expired: block height exceeded {last_valid_block_height}"
        )


def get_client(rpc_url: Optional[str] = None) -> AsyncClient:
    """AsyncClient for the configured cluster, use it as 'async with get_client() as client'."""
    return AsyncClient(rpc_url or config.RPC_URL, commitment=Confirmed, timeout=config.RPC_TIMEOUT)


def explorer_url(signature: str, cluster: Optional[str] = None) -> str:
    cluster = cluster or config.CLUSTER
    if cluster in ("mainnet", "mainnet-beta"):
        return f"https://explorer.solana.com/tx/{signature}"
    return f"https://explorer.solana.com/tx/{signature}?cluster={cluster}"


def _unique_signers(signers: Sequence[Keypair]) -> List[Keypair]:
    seen = set()
    unique = []
    for signer in signers:
        pubkey = signer.pubkey()
        if pubkey not in seen:
            seen.add(pubkey)
            unique.append(signer)
    return unique


def build_transaction(instructions: Sequence[Instruction], signers: Sequence[Keypair],
                      blockhash: Hash) -> Transaction:
    """Builds and signs a legacy transaction, the first signer pays fees."""
    if not instructions:
        raise ValueError("Cannot build a transaction without instructions")
    if not signers:
        raise ValueError("At least one signer (the fee payer) is required")

    unique = _unique_signers(signers)
    message = Message.new_with_blockhash(list(instructions), unique[0].pubkey(), blockhash)
    return Transaction(unique, message, blockhash)


def _confirmation_level(status: TransactionStatus) -> int:
    if status.confirmation_status is None:
        # confirmations == None: транзакция уже финализирована
        return COMMITMENT_LEVELS["finalized"] if status.confirmations is None else COMMITMENT_LEVELS["processed"]
    return int(status.confirmation_status)


async def confirm_transaction(client: AsyncClient, signature: Signature, last_valid_block_height: int,
                              commitment: Commitment = Confirmed) -> TransactionStatus:
    """
    Polls getSignatureStatuses until the signature reaches `commitment`.
    Raises TransactionFailedError on a ledger error. TransactionExpiredError is raised
    only while the signature is unknown to the node and the blockhash can no longer land.
    """
    target = COMMITMENT_LEVELS[commitment]
    while True:
        resp = await client.get_signature_statuses([signature])
        status = resp.value[0] if resp.value else None

        if status is None:
            block_height = (await client.get_block_height(commitment)).value
            if block_height > last_valid_block_height:
                raise TransactionExpiredError(str(signature), last_valid_block_height)
        else:
            if status.err is not None:
                raise TransactionFailedError(str(signature), status.err)
            if _confirmation_level(status) >= target:
                return status

        await asyncio.sleep(config.CONFIRM_POLL_INTERVAL)


async def send_and_confirm_transaction(client: AsyncClient, instructions: Sequence[Instruction],
                                       signers: Sequence[Keypair], commitment: Commitment = Confirmed,
                                       skip_preflight: bool = False) -> str:
    """
    Отправляет все инструкции одной атомарной транзакцией и ждёт подтверждения.
    Returns the transaction signature.
    """
    blockhash_resp = await client.get_latest_blockhash(commitment)
    transaction = build_transaction(instructions, signers, blockhash_resp.value.blockhash)

    try:
        resp = await client.send_raw_transaction(
            bytes(transaction),
            opts=TxOpts(skip_preflight=skip_preflight, preflight_commitment=commitment),
        )
    except RPCException as e:
        raise RPCError.from_exception("sendTransaction", e) from e

    signature = resp.value
    logger.debug(f"Sent {signature} with {len(instructions)} instructions, waiting for '{commitment}'")

    await confirm_transaction(client, signature, blockhash_resp.value.last_valid_block_height, commitment)
    return str(signature)


async def simulate_transaction(client: AsyncClient, instructions: Sequence[Instruction],
                               signers: Sequence[Keypair],
                               commitment: Commitment = Confirmed) -> RpcSimulateTransactionResult:
    """Runs the instructions through simulateTransaction, raises TransactionFailedError on a program error."""
    blockhash_resp = await client.get_latest_blockhash(commitment)
    transaction = build_transaction(instructions, signers, blockhash_resp.value.blockhash)

    resp = await client.simulate_transaction(transaction, commitment=commitment)
    if resp.value.err is not None:
        for line in resp.value.logs or []:
            logger.debug(f"   {line}")
        raise TransactionFailedError("simulation", resp.value.err)
    return resp.value


async def airdrop_if_needed(client: AsyncClient, keypair: Keypair,
                            min_balance: Optional[int] = None, amount: Optional[int] = None) -> Optional[str]:
    """
    Airdrops `amount` lamports when the balance is below `min_balance`.
    Returns the airdrop signature, or None when no airdrop was needed.
    """
    min_balance = min_balance if min_balance is not None else config.sol_to_lamports(config.AIRDROP_THRESHOLD_SOL)
    amount = amount if amount is not None else config.sol_to_lamports(config.AIRDROP_AMOUNT_SOL)

    balance = (await client.get_balance(keypair.pubkey())).value
    if balance >= min_balance:
        logger.info("Sufficient balance, no airdrop needed.")
        return None

    blockhash_resp = await client.get_latest_blockhash()
    try:
        resp = await client.request_airdrop(keypair.pubkey(), amount)
    except RPCException as e:
        raise RPCError.from_exception("requestAirdrop", e) from e

    signature = resp.value
    logger.info(
        f"💸 You've been airdropped {amount / config.LAMPORTS_PER_SOL:g} SOL! "
        f"Check out your TX here: {explorer_url(str(signature))}"
    )
    await confirm_transaction(client, signature, blockhash_resp.value.last_valid_block_height)
    return str(signature)
