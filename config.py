"""
Runtime configuration for the Token-2022 demo scripts
Значения читаются из окружения / .env (см. env.example)
"""

import json
import logging
import os
from typing import Optional

from dotenv import load_dotenv
from solders.keypair import Keypair

load_dotenv()

LAMPORTS_PER_SOL = 1_000_000_000

RPC_URL = os.getenv('SOLANA_RPC_URL', 'https://api.devnet.solana.com')
CLUSTER = os.getenv('SOLANA_CLUSTER', 'devnet')
WALLET_PATH = os.getenv('WALLET_PATH', 'wallet.json')

AIRDROP_THRESHOLD_SOL = float(os.getenv('AIRDROP_THRESHOLD_SOL', '1'))
AIRDROP_AMOUNT_SOL = float(os.getenv('AIRDROP_AMOUNT_SOL', '2'))

RPC_TIMEOUT = float(os.getenv('RPC_TIMEOUT', '30'))
CONFIRM_POLL_INTERVAL = float(os.getenv('CONFIRM_POLL_INTERVAL', '0.5'))

LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')


def sol_to_lamports(amount_sol: float) -> int:
    return int(round(amount_sol * LAMPORTS_PER_SOL))


def load_keypair(path: Optional[str] = None) -> Keypair:
    """Loads a keypair from a Solana CLI style wallet file (JSON array of 64 ints)."""
    wallet_path = os.path.expanduser(path or WALLET_PATH)
    with open(wallet_path) as f:
        secret = json.load(f)
    if not isinstance(secret, list) or len(secret) != 64:
        raise ValueError(f"Wallet file {wallet_path} must contain a JSON array of 64 bytes")
    return Keypair.from_bytes(bytes(secret))


def setup_logging(level: Optional[str] = None):
    logging.basicConfig(
        level=getattr(logging, (level or LOG_LEVEL).upper(), logging.INFO),
        format='%(asctime)s - %(levelname)s - %(message)s'
    )
