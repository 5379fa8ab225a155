"""
Shared fixtures for the transaction sender test suite.

Provides a fast SenderConfig, a mocked Web3Client with AsyncMock node calls
and a scripted broadcast stream.

File: tests/conftest.py
"""

from typing import Any, Callable, Dict
from unittest.mock import AsyncMock, Mock

import pytest

from txsender.config import SenderConfig
from txsender.models import Accepted, Included, Rejected, TransactionParams
from txsender.transaction import Transaction
from txsender.wallet import compute_tx_hash, derive_address


SIGNING_KEY = "0x" + "11" * 32
SENDER = derive_address(SIGNING_KEY)
RECIPIENT = "0x742d35cc6634c0532925a3b844bc454e4438f44e"
TOKEN = "0xa0b86991c6218b36c1d19d4a2e9eb0ce3606eb48"

MINED_RECEIPT = {'blockNumber': 12, 'gasUsed': 21000, 'effectiveGasPrice': 11}


async def _scripted_stream(raw_transaction: bytes, step: str):
    tx_hash = compute_tx_hash(raw_transaction)
    if step == 'accept':
        yield Accepted(tx_hash)
    elif step == 'include':
        yield Accepted(tx_hash)
        yield Included(tx_hash, dict(MINED_RECEIPT))
    else:
        yield Rejected(step)


def scripted_broadcast(*steps: str) -> Mock:
    """
    Broadcast mock following a script, one step per call.

    Steps are 'accept', 'include' (accepted then included) or any other
    string as a rejection reason. Calls past the script are accepted.
    """
    remaining = list(steps)

    def broadcast(raw_transaction: bytes):
        step = remaining.pop(0) if remaining else 'accept'
        return _scripted_stream(raw_transaction, step)

    return Mock(side_effect=broadcast)


@pytest.fixture
def config() -> SenderConfig:
    """Configuration with every delay shortened for tests."""
    return SenderConfig(
        provider_url="http://localhost:8545",
        default_chain=1,
        rejection_retry_delay_seconds=0,
        receipt_timeout_seconds=0,
        wait_interval_seconds=0.01,
    )


@pytest.fixture
def mock_client() -> Mock:
    """Mock Web3Client for testing."""
    client = Mock()
    client.get_gas_price = AsyncMock(return_value=10)
    client.get_transaction_count = AsyncMock(return_value=7)
    client.estimate_gas = AsyncMock(return_value=21000)
    client.get_balance = AsyncMock(return_value=10 ** 18)
    client.get_chain_id = AsyncMock(return_value=1)
    client.call = AsyncMock(return_value=(0).to_bytes(32, 'big'))
    client.get_transaction = AsyncMock(return_value=None)
    client.get_transaction_receipt = AsyncMock(return_value=None)
    client.broadcast = scripted_broadcast()
    client.close = AsyncMock()
    return client


@pytest.fixture
def make_transaction(mock_client, config) -> Callable[..., Transaction]:
    """Factory for transactions bound to the mock client."""
    def factory(**overrides: Any) -> Transaction:
        values: Dict[str, Any] = {'to': RECIPIENT, 'amount': 1000, 'signing_key': SIGNING_KEY}
        values.update(overrides)
        return Transaction(TransactionParams(**values), mock_client, config)

    return factory


def pending_transaction(tx_hash: str = None) -> Dict[str, Any]:
    return {'hash': tx_hash, 'blockNumber': None, 'gasPrice': 10}


def mined_transaction(tx_hash: str = None, gas_price: int = 10) -> Dict[str, Any]:
    return {'hash': tx_hash, 'blockNumber': 12, 'gasPrice': gas_price}
