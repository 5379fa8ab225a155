"""
Web3 Client Implementation for the Transaction Sender

Narrow asynchronous wrapper around web3.AsyncWeb3 exposing exactly the node
queries the lifecycle needs: gas price, transaction count, gas estimate,
balance, raw broadcast and transaction/receipt lookup. One client is created
per process and shared by every transaction; records never close it.

File: txsender/web3_client.py
"""

import asyncio
import logging
import time
from typing import Any, AsyncIterator, Callable, Dict, Optional, Union

import aiohttp
from eth_typing import ChecksumAddress, HexStr
from eth_utils import to_hex
from web3 import AsyncWeb3
from web3.exceptions import TimeExhausted, TransactionNotFound, Web3Exception
from web3.providers import AsyncHTTPProvider

from .config import SenderConfig
from .models import Accepted, BroadcastOutcome, Included, Rejected
from .utils import format_hash

logger = logging.getLogger(__name__)


# Failures worth retrying for read-only queries
TRANSIENT_ERRORS = (aiohttp.ClientError, asyncio.TimeoutError, ConnectionError)

# Everything a node call may raise short of cancellation
RPC_ERRORS = (Web3Exception, ValueError) + TRANSIENT_ERRORS


def extract_rpc_error_message(error: BaseException) -> str:
    """
    Pull the node's message out of an RPC exception.

    Nodes report JSON-RPC errors as ``{'code': ..., 'message': ...}``, which
    web3 passes either as the first exception argument or as ``message``.
    """
    if error.args and isinstance(error.args[0], dict):
        payload = error.args[0]
        return str(payload.get('message') or payload)
    message = getattr(error, 'message', None)
    if isinstance(message, str) and message:
        return message
    return str(error) or error.__class__.__name__


class Web3Client:
    """
    Shared node client with retry for read-only queries.

    Features:
    - Read-only queries retried on connection and timeout failures
    - Broadcast exposed as an outcome stream (rejected, accepted, included)
    - Request statistics for diagnostics
    """

    # Delay unit between retry attempts, multiplied by the attempt number
    retry_backoff_seconds = 0.5

    def __init__(self, config: SenderConfig, web3: Optional[AsyncWeb3] = None):
        """
        Initialize the client.

        Args:
            config: Sender configuration (provider URL, timeouts, retries)
            web3: Pre-built AsyncWeb3 instance, mainly for tests
        """
        self.config = config
        self.logger = logging.getLogger(f'{__name__}.client')

        if web3 is None:
            provider = AsyncHTTPProvider(
                config.provider_url,
                request_kwargs={'timeout': aiohttp.ClientTimeout(total=config.request_timeout_seconds)}
            )
            web3 = AsyncWeb3(provider)
        self.w3 = web3

        self._chain_id: Optional[int] = None
        self._closed = False

        # Performance tracking
        self._total_requests = 0
        self._failed_requests = 0
        self._last_request_time = 0.0

        self.logger.info(f"Initialized Web3Client for {config.provider_url}")

    # =========================================================================
    # REQUEST EXECUTION
    # =========================================================================

    async def _execute_with_retry(self, operation: Callable, *args, **kwargs) -> Any:
        """Execute a read-only operation, retrying transient failures."""
        attempts = self.config.rpc_retry_attempts
        last_exception: Optional[BaseException] = None

        for attempt in range(attempts):
            self._total_requests += 1
            self._last_request_time = time.time()
            try:
                return await operation(self.w3, *args, **kwargs)
            except TRANSIENT_ERRORS as e:
                last_exception = e
                self._failed_requests += 1
                self.logger.warning(f"Request failed (attempt {attempt + 1}/{attempts}): {e!r}")
                if attempt < attempts - 1:
                    await asyncio.sleep(self.retry_backoff_seconds * (attempt + 1))
            except Exception:
                self._failed_requests += 1
                raise

        raise Web3Exception(f"All {attempts} retry attempts failed. Last error: {last_exception!r}") from last_exception

    # =========================================================================
    # NETWORK & ACCOUNT STATE
    # =========================================================================

    async def get_gas_price(self) -> int:
        """Get current network gas price in wei."""
        async def _get_gas_price(w3: AsyncWeb3) -> int:
            return await w3.eth.gas_price

        return await self._execute_with_retry(_get_gas_price)

    async def get_transaction_count(self, address: ChecksumAddress, block_identifier: str = 'latest') -> int:
        """Get an account's transaction count at 'latest' or 'pending'."""
        async def _get_transaction_count(w3: AsyncWeb3) -> int:
            return await w3.eth.get_transaction_count(address, block_identifier)

        return await self._execute_with_retry(_get_transaction_count)

    async def estimate_gas(self, transaction: Dict[str, Any]) -> int:
        """Estimate gas for a fully specified call."""
        async def _estimate_gas(w3: AsyncWeb3) -> int:
            return await w3.eth.estimate_gas(transaction)

        return await self._execute_with_retry(_estimate_gas)

    async def get_balance(self, address: ChecksumAddress, block_identifier: str = 'latest') -> int:
        """Get an account's native balance in wei."""
        async def _get_balance(w3: AsyncWeb3) -> int:
            return await w3.eth.get_balance(address, block_identifier)

        return await self._execute_with_retry(_get_balance)

    async def get_chain_id(self) -> int:
        """Get the node's chain id (cached after the first call)."""
        if self._chain_id is None:
            async def _get_chain_id(w3: AsyncWeb3) -> int:
                return await w3.eth.chain_id

            self._chain_id = await self._execute_with_retry(_get_chain_id)
            self.logger.info(f"Chain id reported by node: {self._chain_id}")
        return self._chain_id

    async def call(self, transaction: Dict[str, Any], block_identifier: str = 'latest') -> bytes:
        """Execute a read-only contract call (eth_call)."""
        async def _call(w3: AsyncWeb3) -> bytes:
            return await w3.eth.call(transaction, block_identifier)

        return await self._execute_with_retry(_call)

    # =========================================================================
    # TRANSACTION LOOKUP
    # =========================================================================

    async def get_transaction(self, tx_hash: Union[HexStr, str]) -> Optional[Dict[str, Any]]:
        """Get a transaction by hash, None if the node does not know it."""
        async def _get_transaction(w3: AsyncWeb3) -> Dict[str, Any]:
            return await w3.eth.get_transaction(tx_hash)

        try:
            return await self._execute_with_retry(_get_transaction)
        except TransactionNotFound:
            return None

    async def get_transaction_receipt(self, tx_hash: Union[HexStr, str]) -> Optional[Dict[str, Any]]:
        """Get a transaction receipt, None if not yet available."""
        async def _get_receipt(w3: AsyncWeb3) -> Dict[str, Any]:
            return await w3.eth.get_transaction_receipt(tx_hash)

        try:
            return await self._execute_with_retry(_get_receipt)
        except TransactionNotFound:
            return None

    # =========================================================================
    # BROADCAST
    # =========================================================================

    async def broadcast(self, raw_transaction: bytes) -> AsyncIterator[BroadcastOutcome]:
        """
        Broadcast a signed transaction and stream its outcomes.

        Yields ``Rejected`` if the node refuses the transaction. Otherwise
        yields ``Accepted`` with the hash, then follows the transaction and
        yields ``Included`` once a receipt is observed. Following stops
        silently when the receipt timeout elapses or is disabled.

        Broadcasts are never retried here; retry is the caller's policy.
        """
        self._total_requests += 1
        self._last_request_time = time.time()
        try:
            tx_hash = await self.w3.eth.send_raw_transaction(raw_transaction)
        except RPC_ERRORS as e:
            self._failed_requests += 1
            reason = extract_rpc_error_message(e)
            self.logger.warning(f"Broadcast rejected: {reason}")
            yield Rejected(reason)
            return

        tx_hash_hex = to_hex(tx_hash)
        yield Accepted(tx_hash_hex)

        timeout = self.config.receipt_timeout_seconds
        if timeout <= 0:
            return

        try:
            receipt = await self.w3.eth.wait_for_transaction_receipt(
                tx_hash,
                timeout=timeout,
                poll_latency=self.config.receipt_poll_seconds
            )
        except TimeExhausted:
            self.logger.info(f"No receipt for {format_hash(tx_hash_hex)} within {timeout}s")
            return
        except RPC_ERRORS as e:
            self.logger.warning(f"Receipt polling for {format_hash(tx_hash_hex)} failed: {e!r}")
            return

        yield Included(tx_hash_hex, receipt)

    # =========================================================================
    # LIFECYCLE & DIAGNOSTICS
    # =========================================================================

    def get_performance_stats(self) -> Dict[str, Any]:
        """Get client performance statistics."""
        success_rate = 0.0
        if self._total_requests > 0:
            success_rate = ((self._total_requests - self._failed_requests) / self._total_requests) * 100

        return {
            'provider_url': self.config.provider_url,
            'chain_id': self._chain_id,
            'total_requests': self._total_requests,
            'failed_requests': self._failed_requests,
            'success_rate_percent': round(success_rate, 2),
            'last_request_time': self._last_request_time,
        }

    async def close(self) -> None:
        """Release the provider's HTTP session."""
        if self._closed:
            return
        self._closed = True
        disconnect = getattr(self.w3.provider, 'disconnect', None)
        if disconnect is not None:
            await disconnect()
        self.logger.info("Web3Client closed")

    def __repr__(self) -> str:
        """String representation of Web3Client."""
        return f"Web3Client({self.config.provider_url}, requests={self._total_requests})"


__all__ = [
    'Web3Client',
    'RPC_ERRORS',
    'TRANSIENT_ERRORS',
    'extract_rpc_error_message',
]
