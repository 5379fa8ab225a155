"""
Submission Pipeline

Signs the record's current fields, broadcasts the payload and interprets the
first outcome: rejected, accepted or included. Transient rejections are
retried with the same signed payload when the record's retry policy allows
it. The caller holds the record's serialization lock for the whole call, so
no boost can interleave with a retry.

File: txsender/pipeline.py
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, AsyncIterator, Callable, Dict, Optional

from .config import SenderConfig
from .exceptions import RejectionError, StateError
from .models import Accepted, BroadcastOutcome, Included, Rejected, TransactionRecord
from .utils import RejectionClass, classify_rejection, format_hash
from .wallet import SignedPayload, sign_transaction
from .web3_client import Web3Client

logger = logging.getLogger(__name__)


@dataclass
class SubmissionResult:
    """
    Result of one submission.

    ``follow_up`` is the remainder of the broadcast stream after an
    ``Accepted`` outcome; it may still yield ``Included``.
    """
    outcome: BroadcastOutcome
    signed: SignedPayload
    attempts: int = 1
    follow_up: Optional[AsyncIterator[BroadcastOutcome]] = None

    @property
    def accepted(self) -> bool:
        return isinstance(self.outcome, (Accepted, Included))


class SubmissionPipeline:
    """Sign, broadcast and interpret the outcome for a record."""

    def __init__(
        self,
        client: Web3Client,
        config: SenderConfig,
        emit: Callable[..., None],
        logger: Optional[logging.Logger] = None
    ):
        """
        Args:
            client: Shared node client
            config: Sender configuration (retry delay, rejected hash policy)
            emit: Event callback ``emit(action, tx_hash=None, error=None)``
            logger: Logger of the owning transaction
        """
        self.client = client
        self.config = config
        self.emit = emit
        self.logger = logger or logging.getLogger(f'{__name__}.pipeline')

    def build_raw_transaction(self, record: TransactionRecord) -> SignedPayload:
        """
        Build and sign a legacy transaction from the record's fields.

        Raises:
            StateError: If gas price, gas limit, nonce or amount are unresolved
        """
        if (
            record.gas_price is None
            or record.gas_limit is None
            or not record.nonce_resolved
            or record.amount.is_entire_balance
        ):
            raise StateError("transaction fields are not resolved", record.tx_id)

        fields: Dict[str, Any] = {
            'nonce': record.nonce,
            'value': record.amount.value,
            'data': record.data,
            'gasPrice': record.gas_price,
            'gas': record.gas_limit,
        }
        if record.to is not None:
            fields['to'] = record.to

        return sign_transaction(fields, record.chain_id, record.signing_key)

    async def submit(self, record: TransactionRecord) -> SubmissionResult:
        """
        Submit the record's current fields.

        Rejections are recorded in ``record.error_history`` and returned as
        the outcome, never raised.

        Returns:
            SubmissionResult with the deciding outcome
        """
        signed = self.build_raw_transaction(record)
        self.logger.info(
            f"📤 Sending nonce={record.nonce} gas_price={record.gas_price} "
            f"value={record.amount} hash={format_hash(signed.tx_hash)}"
        )
        self.emit('send', tx_hash=signed.tx_hash)

        attempts = 0
        while True:
            attempts += 1
            stream = self.client.broadcast(signed.raw_transaction)
            outcome = await anext(stream, None)

            if outcome is None:
                outcome = Rejected("broadcast produced no outcome")

            if isinstance(outcome, Rejected):
                await stream.aclose()
                error = RejectionError(
                    outcome.reason,
                    record.tx_id,
                    permanent=classify_rejection(outcome.reason) is RejectionClass.PERMANENT,
                    tx_hash=signed.tx_hash
                )
                record.error_history.append(error)
                self.emit('rejected', tx_hash=signed.tx_hash, error=outcome.reason)

                if record.retry_on_rejection and not error.permanent:
                    delay = self.config.rejection_retry_delay_seconds
                    self.logger.warning(
                        f"🔄 Broadcast rejected ({outcome.reason}), retry {attempts} in {delay}s"
                    )
                    self.emit('retry', tx_hash=signed.tx_hash, error=outcome.reason)
                    await asyncio.sleep(delay)
                    continue

                error.terminal = True
                self.logger.error(f"❌ Broadcast rejected: {outcome.reason}")
                if self.config.record_hash_on_rejection:
                    record.add_hash(signed.tx_hash)
                return SubmissionResult(outcome, signed, attempts)

            record.add_hash(outcome.tx_hash)

            if isinstance(outcome, Accepted):
                self.logger.info(f"✅ Broadcast accepted: {outcome.tx_hash}")
                self.emit('accepted', tx_hash=outcome.tx_hash)
                return SubmissionResult(outcome, signed, attempts, follow_up=stream)

            await stream.aclose()
            self.logger.info(f"⛏️ Included: {outcome.tx_hash}")
            self.emit('included', tx_hash=outcome.tx_hash)
            return SubmissionResult(outcome, signed, attempts)


__all__ = [
    'SubmissionResult',
    'SubmissionPipeline',
]
