"""
Transaction Sender

Coordinator that owns the immutable configuration and the process-wide node
client, and creates Transaction objects that share them.

File: txsender/sender.py
"""

import logging
from dataclasses import replace
from typing import Optional, Union
from weakref import WeakSet

from .config import SenderConfig, load_config
from .models import Amount, ProbeResult, TransactionParams
from .prober import check_tx_hash
from .transaction import Transaction
from .web3_client import Web3Client

logger = logging.getLogger(__name__)


class TransactionSender:
    """
    Entry point for creating and sending transactions.

    Usage:
        async with TransactionSender(load_config()) as sender:
            tx = await sender.send_transaction(to=..., amount=..., signing_key=...)
            result = await tx.wait()
    """

    def __init__(self, config: Optional[SenderConfig] = None, client: Optional[Web3Client] = None):
        """
        Initialize the sender.

        Args:
            config: Sender configuration, loaded from the environment if omitted
            client: Node client, created from the configuration if omitted.
                A client passed in is not closed by aclose().

        The configured log level applies to this sender's logger and to the
        loggers of the transactions it creates; the package logger is left
        to setup_logging().
        """
        self.config = config if config is not None else load_config()
        self.client = client if client is not None else Web3Client(self.config)
        self._owns_client = client is None
        self._transactions: "WeakSet[Transaction]" = WeakSet()
        self.logger = logging.getLogger(f'{__name__}.sender')

        self.logger.setLevel(self.config.log_level)

    def create_transaction(self, params: Optional[TransactionParams] = None, **kwargs) -> Transaction:
        """
        Create a transaction without sending it.

        Args:
            params: TransactionParams, or None to build them from kwargs
            **kwargs: TransactionParams fields (override ``params`` fields)

        Raises:
            ConfigurationError: If the parameters are invalid
        """
        if params is None:
            params = TransactionParams(**kwargs)
        elif kwargs:
            params = replace(params, **kwargs)

        transaction = Transaction(params, self.client, self.config)
        self._transactions.add(transaction)
        return transaction

    async def send_transaction(self, params: Optional[TransactionParams] = None, **kwargs) -> Transaction:
        """Create a transaction and send it. Returns the transaction."""
        transaction = self.create_transaction(params, **kwargs)
        await transaction.send()
        return transaction

    async def send_erc20(
        self,
        token: str,
        to: str,
        amount: Union[Amount, int, str, None],
        params: Optional[TransactionParams] = None,
        **kwargs
    ) -> Transaction:
        """
        Create a transaction and send a token transfer with it.

        ``params``/``kwargs`` supply the signing key and fee settings; their
        ``to``, ``amount`` and ``data`` are replaced by the transfer.
        """
        transaction = self.create_transaction(params, **kwargs)
        await transaction.send_erc20(token, to, amount)
        return transaction

    async def check_hash(self, tx_hash: str) -> ProbeResult:
        """Probe any transaction hash."""
        return await check_tx_hash(self.client, tx_hash)

    async def aclose(self) -> None:
        """Stop background tasks of every transaction and close the client."""
        for transaction in list(self._transactions):
            await transaction.close()
        if self._owns_client:
            await self.client.close()
        self.logger.info("Transaction sender closed")

    async def __aenter__(self) -> "TransactionSender":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    def __repr__(self) -> str:
        return f"TransactionSender({self.config.provider_url}, transactions={len(self._transactions)})"


__all__ = [
    'TransactionSender',
]
