"""
Serialization Lock

Per-transaction FIFO lock. Each acquire() takes a ticket and is granted the
lock strictly in ticket order, so back-to-back mutations (send, cancel,
overlapping auto-boosts) run one at a time and in the order they were
issued. Release hands ownership directly to the next waiter.

File: txsender/lock.py
"""

import asyncio
import logging
from collections import deque
from contextlib import asynccontextmanager
from typing import AsyncIterator, Deque, Optional

logger = logging.getLogger(__name__)


class LockHandle:
    """Ownership token returned by acquire(); release exactly once."""

    def __init__(self, lock: "SerializationLock", ticket: int):
        self._lock = lock
        self.ticket = ticket
        self._released = False

    @property
    def released(self) -> bool:
        return self._released

    def release(self) -> None:
        """Release the lock, handing it to the next ticket in line."""
        if self._released:
            raise RuntimeError(f"Lock ticket {self.ticket} already released")
        self._released = True
        self._lock._release(self.ticket)

    def __repr__(self) -> str:
        state = "released" if self._released else "held"
        return f"LockHandle(ticket={self.ticket}, {state})"


class SerializationLock:
    """
    FIFO ticket lock for cooperative tasks.

    Unlike asyncio.Lock, waiters are always served in arrival order and a
    release never lets a newly arriving task jump the queue.
    """

    def __init__(self, name: Optional[str] = None):
        self.name = name or "lock"
        self._waiters: Deque[asyncio.Future] = deque()
        self._locked = False
        self._next_ticket = 0

    @property
    def locked(self) -> bool:
        """True while a holder exists (peek, no ticket taken)."""
        return self._locked

    @property
    def queue_length(self) -> int:
        """Number of tickets waiting behind the current holder."""
        return sum(1 for waiter in self._waiters if not waiter.done())

    async def acquire(self) -> LockHandle:
        """
        Take a ticket and wait until every earlier ticket has been released.

        Returns:
            LockHandle that must be released exactly once
        """
        self._next_ticket += 1
        ticket = self._next_ticket

        if not self._locked and not self._waiters:
            self._locked = True
            logger.debug(f"{self.name}: ticket {ticket} acquired immediately")
            return LockHandle(self, ticket)

        waiter = asyncio.get_running_loop().create_future()
        self._waiters.append(waiter)
        logger.debug(f"{self.name}: ticket {ticket} queued ({len(self._waiters)} waiting)")

        try:
            await waiter
        except asyncio.CancelledError:
            if waiter.done() and not waiter.cancelled():
                # Ownership arrived together with the cancellation
                self._release(ticket)
            elif waiter in self._waiters:
                self._waiters.remove(waiter)
            raise

        logger.debug(f"{self.name}: ticket {ticket} acquired")
        return LockHandle(self, ticket)

    def _release(self, ticket: int) -> None:
        while self._waiters:
            waiter = self._waiters.popleft()
            if not waiter.done():
                waiter.set_result(True)
                logger.debug(f"{self.name}: ticket {ticket} handed over")
                return

        self._locked = False
        logger.debug(f"{self.name}: ticket {ticket} released, lock idle")

    @asynccontextmanager
    async def hold(self) -> AsyncIterator[LockHandle]:
        """Acquire for the duration of an ``async with`` block."""
        handle = await self.acquire()
        try:
            yield handle
        finally:
            if not handle.released:
                handle.release()

    def __repr__(self) -> str:
        return f"SerializationLock({self.name}, locked={self._locked}, waiting={self.queue_length})"


__all__ = [
    'LockHandle',
    'SerializationLock',
]
