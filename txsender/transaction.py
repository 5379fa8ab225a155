"""
Transaction Lifecycle Controller

A Transaction owns one TransactionRecord and drives it from construction to
confirmation: send, confirmation checks over every hash variant, fee boosts,
cancellation by zero-value self-transfer, periodic auto-boost and polling
waits. Every mutating operation runs under the record's FIFO lock and
reports progress as TransactionEvent entries.

State machine (derived, see ``state``):

    UNSENT -> SENT(hash) -> {PENDING, MINED}
    SENT/PENDING -> SENT(new hash) via boost or cancel
    MINED is terminal; further boosts are no-ops

File: txsender/transaction.py
"""

import asyncio
import logging
from collections import deque
from typing import Any, AsyncIterator, Callable, Deque, List, Optional, Set, Tuple, Union

from .booster import AutoBooster
from .config import SenderConfig
from .erc20 import decode_uint256, encode_balance_of, encode_transfer
from .exceptions import ConfigurationError, ResolutionError, StateError, TransactionError
from .lock import SerializationLock
from .models import (
    EMPTY_DATA,
    Amount,
    BoostResult,
    BroadcastOutcome,
    Included,
    LifecycleState,
    ProbeResult,
    ProbeStatus,
    TransactionEvent,
    TransactionParams,
    TransactionRecord,
)
from .pipeline import SubmissionPipeline, SubmissionResult
from .prober import ConfirmationProber, compute_fee_paid
from .resolver import FieldResolver
from .utils import bump_gas_price, format_address, format_hash, wei_to_ether, wei_to_gwei
from .wallet import validate_address
from .web3_client import RPC_ERRORS, Web3Client

logger = logging.getLogger(__name__)


# Gas limit of a plain value transfer, used for cancellation
CANCEL_GAS_LIMIT = 21000

EventListener = Callable[[TransactionEvent], Any]


class Transaction:
    """
    One logical transfer and its lifecycle.

    Created by TransactionSender, which supplies the shared client and the
    immutable configuration. Parameters are validated eagerly: an invalid
    recipient, malformed key, amount/nonce conflict or unknown chain raises
    ConfigurationError here.
    """

    def __init__(self, params: TransactionParams, client: Web3Client, config: SenderConfig):
        """
        Initialize the transaction.

        Args:
            params: Caller parameters
            client: Shared node client (not owned)
            config: Sender configuration

        Raises:
            ConfigurationError: If the parameters are invalid
        """
        self.config = config
        self.client = client
        self.record = TransactionRecord.from_params(params, config)
        self.tx_id = self.record.tx_id
        self.logger = logging.getLogger(f'txsender.transaction.{self.tx_id}')
        self.logger.setLevel(config.log_level)

        self._lock = SerializationLock(f"tx-{self.tx_id}")
        self._resolver = FieldResolver(client)
        self._prober = ConfirmationProber(client)
        self._pipeline = SubmissionPipeline(client, config, self._emit, self.logger)

        # Runtime state
        self._pending_check: Optional[asyncio.Future] = None
        self._last_probe_status: Optional[ProbeStatus] = None
        self._mined: Optional[ProbeResult] = None
        self._booster: Optional[AutoBooster] = None
        self._auto_boost_started = False
        self._watchers: Set[asyncio.Task] = set()

        # Diagnostics
        self.events: Deque[TransactionEvent] = deque(maxlen=config.event_history_size)
        self._listeners: List[EventListener] = []

        self.logger.info(
            f"Created transaction from={self.record.sender_address} to={self.record.to} "
            f"amount={self.record.amount} chain_id={self.record.chain_id}"
        )

    # =========================================================================
    # PROPERTIES
    # =========================================================================

    @property
    def hash_history(self) -> Tuple[str, ...]:
        """Broadcast hashes, oldest first."""
        return tuple(self.record.hash_history)

    @property
    def error_history(self) -> Tuple[TransactionError, ...]:
        """Broadcast rejections, oldest first."""
        return tuple(self.record.error_history)

    @property
    def last_hash(self) -> Optional[str]:
        return self.record.last_hash

    @property
    def mined(self) -> Optional[ProbeResult]:
        """Mined result once observed, else None."""
        return self._mined

    @property
    def busy(self) -> bool:
        """True while a mutating operation holds the lock."""
        return self._lock.locked

    @property
    def booster(self) -> Optional[AutoBooster]:
        return self._booster

    @property
    def boosting_active(self) -> bool:
        return self._booster is not None and self._booster.running

    @property
    def state(self) -> LifecycleState:
        if self._mined is not None:
            return LifecycleState.MINED
        if not self.record.hash_history:
            return LifecycleState.UNSENT
        if self._last_probe_status is ProbeStatus.PENDING:
            return LifecycleState.PENDING
        return LifecycleState.SENT

    # =========================================================================
    # EVENTS
    # =========================================================================

    def add_listener(self, callback: EventListener) -> None:
        """Register a callback invoked with every TransactionEvent."""
        self._listeners.append(callback)

    def remove_listener(self, callback: EventListener) -> None:
        if callback in self._listeners:
            self._listeners.remove(callback)

    def _emit(self, action: str, tx_hash: Optional[str] = None, error: Optional[str] = None) -> None:
        event = TransactionEvent(self.tx_id, action, tx_hash=tx_hash, error=error)
        self.events.append(event)

        message = f"[{self.tx_id}] {action}"
        if tx_hash:
            message += f" hash={tx_hash}"
        if error:
            message += f" error={error}"
        self.logger.debug(message)

        for callback in list(self._listeners):
            try:
                callback(event)
            except Exception as e:
                self.logger.error(f"❌ Event listener failed for {action}: {e}")

    # =========================================================================
    # SEND
    # =========================================================================

    async def send(self) -> SubmissionResult:
        """
        Resolve open fields, sign and broadcast.

        Broadcast rejections do not raise: inspect ``result.outcome`` or
        ``error_history``.

        Raises:
            ResolutionError: If a field cannot be resolved
        """
        async with self._lock.hold():
            return await self._submit()

    async def _submit(self) -> SubmissionResult:
        """Resolve and submit. Caller holds the lock."""
        await self._resolver.resolve(self.record)

        if self.record.chain_id is None:
            try:
                self.record.chain_id = await self.client.get_chain_id()
            except RPC_ERRORS as e:
                raise ResolutionError(f"Chain id lookup failed: {e}", self.tx_id) from e

        result = await self._pipeline.submit(self.record)
        self._after_submission(result)
        return result

    def _after_submission(self, result: SubmissionResult) -> None:
        if isinstance(result.outcome, Included):
            self._mark_included(result.outcome, emit=False)
            return

        if not result.accepted:
            return

        if self.record.boost_interval_seconds > 0 and not self._auto_boost_started:
            self._auto_boost_started = True
            self.boosting(self.record.boost_interval_seconds)

        if result.follow_up is not None:
            watcher = asyncio.create_task(self._follow_inclusion(result.follow_up))
            self._watchers.add(watcher)
            watcher.add_done_callback(self._watchers.discard)

    async def _follow_inclusion(self, stream: AsyncIterator[BroadcastOutcome]) -> None:
        try:
            async for outcome in stream:
                if isinstance(outcome, Included):
                    self._mark_included(outcome)
        finally:
            await stream.aclose()

    def _mark_included(self, outcome: Included, emit: bool = True) -> None:
        self.record.add_hash(outcome.tx_hash)
        if self._mined is None:
            receipt = outcome.receipt
            self._mined = ProbeResult(
                tx_hash=outcome.tx_hash,
                status=ProbeStatus.MINED,
                receipt=receipt,
                fee_paid=compute_fee_paid(None, receipt),
                block_number=receipt.get('blockNumber') if hasattr(receipt, 'get') else None,
            )
        if emit:
            self.logger.info(f"⛏️ Included: {outcome.tx_hash}")
            self._emit('included', tx_hash=outcome.tx_hash)
        self.stop_boosting()

    # =========================================================================
    # CONFIRMATION
    # =========================================================================

    async def check(self) -> Optional[ProbeResult]:
        """
        Check whether any broadcast hash was mined.

        Concurrent callers share one in-flight check. Hashes are probed
        newest first; the scan stops at the first pending hash, so an older
        mined variant behind a pending one is not reported.

        Returns:
            Mined ProbeResult, or None if nothing is mined yet

        Raises:
            StateError: If nothing has been broadcast yet
            ProbeError: If a probe fails
        """
        if not self.record.hash_history:
            raise StateError("no hash yet", self.tx_id)

        if self._pending_check is None or self._pending_check.done():
            self._pending_check = asyncio.ensure_future(self._run_check())
            self._pending_check.add_done_callback(self._clear_pending_check)
        return await asyncio.shield(self._pending_check)

    def _clear_pending_check(self, future: asyncio.Future) -> None:
        if self._pending_check is future:
            self._pending_check = None

    async def _run_check(self) -> Optional[ProbeResult]:
        if self._mined is not None:
            return self._mined

        for tx_hash in reversed(list(self.record.hash_history)):
            result = await self._prober.probe(tx_hash)
            self._last_probe_status = result.status

            if result.is_mined:
                self._mined = result
                return result
            if result.status is ProbeStatus.PENDING:
                self.logger.debug(f"{format_hash(tx_hash)} pending")
                return None

        return None

    async def _is_mined(self) -> bool:
        return self._mined is not None or (await self.check()) is not None

    async def wait(self, interval_seconds: Optional[float] = None) -> ProbeResult:
        """
        Poll check() until a hash is mined.

        Check failures are logged and polling continues.
        """
        interval = interval_seconds if interval_seconds is not None else self.config.wait_interval_seconds
        while True:
            try:
                result = await self.check()
            except TransactionError as e:
                self.logger.warning(f"⚠️ Check failed while waiting, retrying in {interval}s: {e}")
            else:
                if result is not None:
                    return result
            await asyncio.sleep(interval)

    async def wait_first_hash(self, interval_seconds: Optional[float] = None) -> str:
        """
        Poll until the first hash is recorded.

        Args:
            interval_seconds: Poll interval, defaults to the configured
                wait interval

        Returns:
            First broadcast hash

        Raises:
            RejectionError: The first terminal rejection, if it comes first
        """
        interval = interval_seconds if interval_seconds is not None else self.config.wait_interval_seconds
        while True:
            if self.record.hash_history:
                return self.record.hash_history[0]
            for error in self.record.error_history:
                if error.terminal:
                    raise error
            await asyncio.sleep(interval)

    # =========================================================================
    # REPLACEMENT
    # =========================================================================

    async def cancel(self) -> Optional[SubmissionResult]:
        """
        Replace the pending transaction with a zero-value self-transfer.

        Returns:
            SubmissionResult of the replacement, or None if there was nothing
            to cancel (no hash yet, or already mined)
        """
        async with self._lock.hold():
            if not self.record.hash_history:
                self.logger.info("Nothing to cancel, transaction not sent")
                return None
            if await self._is_mined():
                self.logger.info("Nothing to cancel, transaction already mined")
                return None

            record = self.record
            if record.gas_price is None:
                await self._resolver.resolve(record)
            record.to = record.sender_address
            record.amount = Amount.exact(0)
            record.data = EMPTY_DATA
            record.gas_limit = CANCEL_GAS_LIMIT
            record.gas_price = bump_gas_price(record.gas_price, self.config.gas_price_step_percent)

            self.logger.info(f"🚫 Cancelling nonce {record.nonce} at {wei_to_gwei(record.gas_price)} gwei")
            self._emit('cancel')
            return await self._submit()

    async def boost(self) -> BoostResult:
        """
        Resubmit with a higher gas price and the same nonce.

        Returns:
            MINED if already mined, SKIPPED if earlier transactions of the
            account are still queued, BOOSTED after a resubmission

        Raises:
            StateError: If nothing was sent, or the account nonce has moved
                past this transaction's nonce
            ResolutionError: If account state cannot be read or the balance
                cannot cover the bumped fee
        """
        async with self._lock.hold():
            if self._mined is not None:
                return BoostResult.MINED
            if not self.record.hash_history:
                raise StateError("no hash yet", self.tx_id)
            if await self.check() is not None:
                return BoostResult.MINED

            record = self.record
            try:
                account_nonce = await self.client.get_transaction_count(record.sender_address, 'latest')
            except RPC_ERRORS as e:
                raise ResolutionError(f"Account nonce lookup failed: {e}", self.tx_id) from e

            if account_nonce > record.nonce:
                raise StateError(
                    f"account nonce {account_nonce} is past transaction nonce {record.nonce}, "
                    f"transaction was superseded",
                    self.tx_id
                )
            if account_nonce < record.nonce:
                self.logger.info(
                    f"Boost skipped: account nonce {account_nonce} behind transaction nonce {record.nonce}"
                )
                return BoostResult.SKIPPED

            if record.gas_price is None:
                await self._resolver.resolve(record)
            new_gas_price = bump_gas_price(record.gas_price, self.config.gas_price_step_percent)
            await self._fit_amount_to_balance(new_gas_price)
            record.gas_price = new_gas_price

            self.logger.info(f"⬆️ Boosting nonce {record.nonce} to {wei_to_gwei(new_gas_price)} gwei")
            self._emit('boost')
            await self._submit()
            return BoostResult.BOOSTED

    async def _fit_amount_to_balance(self, gas_price: int) -> None:
        record = self.record
        try:
            balance = await self.client.get_balance(record.sender_address, 'latest')
        except RPC_ERRORS as e:
            raise ResolutionError(f"Balance lookup failed: {e}", self.tx_id) from e

        fee = gas_price * record.gas_limit
        if record.amount.value + fee <= balance:
            return
        if fee > balance:
            raise ResolutionError(f"balance {balance} does not cover boosted fee {fee}", self.tx_id)

        reduced = balance - fee
        self.logger.warning(
            f"⚠️ Balance {wei_to_ether(balance)} ETH does not cover amount {wei_to_ether(record.amount.value)} ETH "
            f"plus fee {wei_to_ether(fee)} ETH, "
            f"reducing amount to {wei_to_ether(reduced)} ETH"
        )
        record.amount = Amount.exact(reduced)

    # =========================================================================
    # AUTO-BOOST
    # =========================================================================

    def boosting(self, interval_seconds: Optional[float] = None) -> AutoBooster:
        """
        Start periodic auto-boost.

        Args:
            interval_seconds: Seconds between boosts, defaults to the
                record's boost interval

        Returns:
            The running AutoBooster
        """
        interval = interval_seconds if interval_seconds is not None else self.record.boost_interval_seconds
        if not interval or interval <= 0:
            raise ConfigurationError(f"boost interval must be positive, got {interval}", self.tx_id)

        if self.boosting_active:
            self.logger.warning("Auto-boost already running")
            return self._booster

        self._booster = AutoBooster(self.boost, interval, self.tx_id, self.logger)
        self._booster.start()
        self._emit('boosting_started')
        return self._booster

    def stop_boosting(self) -> bool:
        """Stop auto-boost. Returns True if it was running."""
        if not self.boosting_active:
            return False
        self._booster.stop()
        self._emit('boosting_stopped')
        return True

    # =========================================================================
    # FIELD UPDATES
    # =========================================================================

    async def set_gas_price(self, gas_price: Union[int, str, None]) -> None:
        """Set the gas price used by the next submission ('auto' re-resolves)."""
        parsed = TransactionRecord.parse_gas_price(gas_price)
        async with self._lock.hold():
            self.record.gas_price = parsed
            self._emit('gas_price')
            self.logger.info(f"Gas price set to {parsed if parsed is not None else 'auto'}")

    async def send_erc20(
        self,
        token: str,
        to: str,
        amount: Union[Amount, int, str, None]
    ) -> SubmissionResult:
        """
        Send an ERC-20 token transfer from the sender's account.

        Args:
            token: Token contract address
            to: Token recipient
            amount: Token units, or "all"/"full" for the whole token balance

        Raises:
            ConfigurationError: On invalid addresses or amount
            StateError: If this transaction was already broadcast
            ResolutionError: If the token balance cannot be read
        """
        token_address = validate_address(token, "token")
        recipient = validate_address(to, "to")
        token_amount = Amount.parse(amount)

        async with self._lock.hold():
            if self.record.hash_history:
                raise StateError("token transfer on an already broadcast transaction", self.tx_id)

            if token_amount.is_entire_balance:
                try:
                    raw = await self.client.call({
                        'to': token_address,
                        'data': encode_balance_of(self.record.sender_address),
                    })
                except RPC_ERRORS as e:
                    raise ResolutionError(f"Token balance lookup failed: {e}", self.tx_id) from e
                value = decode_uint256(raw)
            else:
                value = token_amount.value

            self.record.to = token_address
            self.record.data = encode_transfer(recipient, value)
            self.record.amount = Amount.exact(0)

            self.logger.info(
                f"🪙 Token transfer of {value} units of {format_address(token_address)} "
                f"to {format_address(recipient)}"
            )
            self._emit('erc20_transfer')
            return await self._submit()

    # =========================================================================
    # SHUTDOWN
    # =========================================================================

    async def close(self) -> None:
        """Stop auto-boost and inclusion watchers."""
        booster = self._booster
        self.stop_boosting()
        if booster is not None:
            await booster.wait_stopped()

        watchers = list(self._watchers)
        for watcher in watchers:
            watcher.cancel()
        if watchers:
            await asyncio.gather(*watchers, return_exceptions=True)

    def __repr__(self) -> str:
        return (
            f"Transaction(id={self.tx_id}, state={self.state.value}, "
            f"hashes={len(self.record.hash_history)}, errors={len(self.record.error_history)})"
        )


__all__ = [
    'Transaction',
    'CANCEL_GAS_LIMIT',
]
