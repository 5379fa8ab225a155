"""
Transaction sender: lifecycle management for signed EVM transactions.

Send, check, boost, cancel and auto-boost transactions against a JSON-RPC
node, with FIFO-serialized mutations per transaction.

File: txsender/__init__.py
"""

from .config import SenderConfig, load_config
from .exceptions import (
    ConfigurationError,
    ProbeError,
    RejectionError,
    ResolutionError,
    StateError,
    TransactionError,
)
from .models import (
    Accepted,
    Amount,
    BoostResult,
    Included,
    LifecycleState,
    NonceMode,
    ProbeResult,
    ProbeStatus,
    Rejected,
    TransactionEvent,
    TransactionParams,
    TransactionRecord,
)
from .prober import check_tx_hash
from .sender import TransactionSender
from .transaction import Transaction
from .utils import setup_logging
from .web3_client import Web3Client

__version__ = "0.3.0"

__all__ = [
    # Entry points
    'TransactionSender',
    'Transaction',
    'Web3Client',
    'check_tx_hash',

    # Configuration
    'SenderConfig',
    'load_config',
    'setup_logging',

    # Data model
    'Amount',
    'NonceMode',
    'TransactionParams',
    'TransactionRecord',
    'ProbeStatus',
    'ProbeResult',
    'BoostResult',
    'LifecycleState',
    'TransactionEvent',
    'Rejected',
    'Accepted',
    'Included',

    # Exceptions
    'TransactionError',
    'ConfigurationError',
    'ResolutionError',
    'RejectionError',
    'ProbeError',
    'StateError',
]
