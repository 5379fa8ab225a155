"""
Auto-boost task.

Runs a transaction's boost on a fixed interval as one cancellable task until
the boost reports the transaction mined, the transaction can no longer be
boosted, or stop() is called. Transient boost failures wait for the next round.

File: txsender/booster.py
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from .exceptions import StateError, TransactionError
from .models import BoostResult

logger = logging.getLogger(__name__)


class AutoBooster:
    """Repeating boost task for one transaction."""

    def __init__(
        self,
        boost: Callable[[], Awaitable[BoostResult]],
        interval_seconds: float,
        tx_id: str,
        logger: Optional[logging.Logger] = None
    ):
        if interval_seconds <= 0:
            raise ValueError(f"boost interval must be positive, got {interval_seconds}")
        self._boost = boost
        self.interval_seconds = interval_seconds
        self.tx_id = tx_id
        self.logger = logger or logging.getLogger(f'{__name__}.{tx_id}')

        self._task: Optional[asyncio.Task] = None
        self._in_flight = False
        self._stopping = False
        self.boost_count = 0
        self.last_result: Optional[BoostResult] = None
        self.last_error: Optional[TransactionError] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done() and not self._stopping

    def start(self) -> None:
        """Start the boost loop (no-op if already running)."""
        if self.running:
            self.logger.warning(f"Auto-boost already running for {self.tx_id}")
            return
        self._stopping = False
        self._task = asyncio.create_task(self._run())
        self.logger.info(f"🚀 Auto-boost started every {self.interval_seconds}s")

    @property
    def boost_in_flight(self) -> bool:
        return self._in_flight

    def stop(self) -> None:
        """
        Stop the loop. Safe to call from inside the running boost.

        A boost already in flight runs to completion so its broadcast is
        recorded; the loop exits afterwards.
        """
        if not self.running:
            return
        self._stopping = True
        if asyncio.current_task() is not self._task and not self._in_flight:
            self._task.cancel()
        self.logger.info("🛑 Auto-boost stopped")

    async def wait_stopped(self) -> None:
        """Wait for the loop task to finish."""
        if self._task is None:
            return
        try:
            await self._task
        except asyncio.CancelledError:
            if not self._task.cancelled():
                raise

    async def _run(self) -> None:
        while not self._stopping:
            await asyncio.sleep(self.interval_seconds)
            if self._stopping:
                break
            self._in_flight = True
            try:
                result = await self._boost()
            except StateError as e:
                self.last_error = e
                self.logger.error(f"❌ Auto-boost cannot continue, stopping: {e}")
                break
            except TransactionError as e:
                self.last_error = e
                self.logger.warning(f"⚠️ Auto-boost failed, retrying in {self.interval_seconds}s: {e}")
                continue
            finally:
                self._in_flight = False

            self.last_error = None
            self.boost_count += 1
            self.last_result = result
            if result is BoostResult.MINED:
                self.logger.info("Transaction mined, auto-boost finished")
                break


__all__ = [
    'AutoBooster',
]
