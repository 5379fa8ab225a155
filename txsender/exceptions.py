"""
Transaction Sender Exceptions

Error taxonomy for the transaction lifecycle. Every failure path raises (or,
for broadcast rejections, records) one of these types; logging only observes.

File: txsender/exceptions.py
"""

from typing import Optional


class TransactionError(Exception):
    """Base class for all transaction lifecycle errors."""

    def __init__(self, message: str, tx_id: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.tx_id = tx_id

    def __str__(self) -> str:
        if self.tx_id is not None:
            return f"[tx {self.tx_id}] {self.message}"
        return self.message


class ConfigurationError(TransactionError):
    """
    Invalid parameters, raised eagerly at construction.

    Bad recipient address, malformed signing key, non-numeric gas limit,
    nonce/amount mode conflict, unresolvable chain identifier.
    """


class ResolutionError(TransactionError):
    """RPC failure while resolving gas price, nonce, gas estimate or balance."""


class RejectionError(TransactionError):
    """
    Node-level broadcast rejection.

    Recorded in the transaction's error history rather than raised from
    ``send()``. ``permanent`` rejections are never retried; ``terminal`` is
    set once the pipeline decides not to retry this rejection.
    """

    def __init__(
        self,
        reason: str,
        tx_id: Optional[str] = None,
        permanent: bool = False,
        tx_hash: Optional[str] = None
    ):
        super().__init__(reason, tx_id)
        self.reason = reason
        self.permanent = permanent
        self.tx_hash = tx_hash
        self.terminal = permanent


class ProbeError(TransactionError):
    """RPC failure while querying transaction or receipt status."""


class StateError(TransactionError):
    """Operation not valid in the transaction's current state."""


__all__ = [
    'TransactionError',
    'ConfigurationError',
    'ResolutionError',
    'RejectionError',
    'ProbeError',
    'StateError',
]
