"""
Confirmation Prober

Classifies a single transaction hash as not found, pending or mined, and
computes the fee paid once mined. Also provides check_tx_hash() for probing
any hash without a transaction record.

File: txsender/prober.py
"""

import logging
from typing import Any, Optional

from .exceptions import ProbeError
from .models import ProbeResult, ProbeStatus
from .utils import format_hash
from .web3_client import RPC_ERRORS, Web3Client

logger = logging.getLogger(__name__)


def _field(data: Any, name: str) -> Any:
    """Read a field from an AttributeDict or plain dict."""
    if data is None:
        return None
    return data.get(name) if hasattr(data, 'get') else getattr(data, name, None)


def compute_fee_paid(transaction: Any, receipt: Any) -> Optional[int]:
    """Fee paid by a mined transaction: gasUsed times its gas price."""
    gas_used = _field(receipt, 'gasUsed')
    gas_price = _field(transaction, 'gasPrice') or _field(receipt, 'effectiveGasPrice')
    if gas_used is None or gas_price is None:
        return None
    return gas_used * gas_price


class ConfirmationProber:
    """Query the node for the confirmation status of hashes."""

    def __init__(self, client: Web3Client):
        self.client = client
        self.logger = logging.getLogger(f'{__name__}.prober')

    async def probe(self, tx_hash: str) -> ProbeResult:
        """
        Probe one hash.

        Args:
            tx_hash: 0x-prefixed transaction hash

        Returns:
            ProbeResult with status NOT_FOUND, PENDING or MINED

        Raises:
            ProbeError: If a node query fails. Lookup failures are never
                reported as NOT_FOUND.
        """
        try:
            transaction = await self.client.get_transaction(tx_hash)
            if transaction is None:
                return ProbeResult(tx_hash, ProbeStatus.NOT_FOUND)

            block_number = _field(transaction, 'blockNumber')
            if block_number is None:
                return ProbeResult(tx_hash, ProbeStatus.PENDING)

            receipt = await self.client.get_transaction_receipt(tx_hash)
        except RPC_ERRORS as e:
            raise ProbeError(f"Probe of {format_hash(tx_hash)} failed: {e}") from e

        if receipt is None:
            # Block known to the node before its receipt is indexed
            return ProbeResult(tx_hash, ProbeStatus.PENDING)

        result = ProbeResult(
            tx_hash=tx_hash,
            status=ProbeStatus.MINED,
            receipt=receipt,
            fee_paid=compute_fee_paid(transaction, receipt),
            block_number=block_number,
        )
        self.logger.info(
            f"✅ {format_hash(tx_hash)} mined in block {block_number}, fee paid {result.fee_paid} wei"
        )
        return result


async def check_tx_hash(client: Web3Client, tx_hash: str) -> ProbeResult:
    """
    Probe any transaction hash without a record.

    Raises:
        TypeError: If tx_hash is not a string
        ProbeError: If a node query fails
    """
    if not isinstance(tx_hash, str):
        raise TypeError(f"tx_hash must be a string, got {type(tx_hash).__name__}")
    return await ConfirmationProber(client).probe(tx_hash)


__all__ = [
    'ConfirmationProber',
    'compute_fee_paid',
    'check_tx_hash',
]
