"""
Serialization Lock - Test Suite

Validates FIFO ordering, exclusive holding, handoff and cancellation of
queued tickets.

File: tests/test_lock.py

Run with: python -m pytest tests/test_lock.py -v
"""

import asyncio

import pytest

from txsender.lock import SerializationLock


# =============================================================================
# ACQUIRE / RELEASE
# =============================================================================

class TestAcquireRelease:
    """Test suite for basic lock ownership."""

    @pytest.mark.asyncio
    async def test_uncontended_acquire(self):
        """Test that an idle lock is granted immediately."""
        lock = SerializationLock("test")
        assert lock.locked is False

        handle = await lock.acquire()
        assert lock.locked is True
        assert handle.ticket == 1

        handle.release()
        assert lock.locked is False

    @pytest.mark.asyncio
    async def test_double_release_raises(self):
        """Test that a handle can only be released once."""
        lock = SerializationLock()
        handle = await lock.acquire()
        handle.release()

        with pytest.raises(RuntimeError):
            handle.release()

    @pytest.mark.asyncio
    async def test_hold_releases_on_error(self):
        """Test that the context manager releases on exceptions."""
        lock = SerializationLock()

        with pytest.raises(ValueError):
            async with lock.hold():
                raise ValueError("boom")

        assert lock.locked is False

    @pytest.mark.asyncio
    async def test_release_hands_over_without_unlocking(self):
        """Test that a release with waiters keeps the lock held by the next ticket."""
        lock = SerializationLock()
        first = await lock.acquire()
        waiter = asyncio.create_task(lock.acquire())
        await asyncio.sleep(0)
        assert lock.queue_length == 1

        first.release()
        assert lock.locked is True

        second = await waiter
        assert second.ticket == 2
        second.release()
        assert lock.locked is False


# =============================================================================
# ORDERING & EXCLUSION
# =============================================================================

class TestOrdering:
    """Test suite for FIFO ordering guarantees."""

    @pytest.mark.asyncio
    async def test_waiters_served_in_arrival_order(self):
        """Test that queued tickets acquire in submission order."""
        lock = SerializationLock()
        order = []

        async def worker(name):
            async with lock.hold():
                order.append(name)
                await asyncio.sleep(0)

        holder = await lock.acquire()
        tasks = []
        for name in ("a", "b", "c", "d"):
            tasks.append(asyncio.create_task(worker(name)))
            await asyncio.sleep(0)

        holder.release()
        await asyncio.gather(*tasks)

        assert order == ["a", "b", "c", "d"]

    @pytest.mark.asyncio
    async def test_no_overlapping_holders(self):
        """Test that at most one holder is active with artificial delays."""
        lock = SerializationLock()
        active = 0
        max_active = 0

        async def worker():
            nonlocal active, max_active
            async with lock.hold():
                active += 1
                max_active = max(max_active, active)
                await asyncio.sleep(0.01)
                active -= 1

        await asyncio.gather(*(worker() for _ in range(5)))

        assert max_active == 1
        assert lock.locked is False

    @pytest.mark.asyncio
    async def test_new_arrival_cannot_jump_queue(self):
        """Test that an acquire issued during handoff queues behind the waiter."""
        lock = SerializationLock()
        order = []

        async def worker(name):
            async with lock.hold():
                order.append(name)

        holder = await lock.acquire()
        queued = asyncio.create_task(worker("queued"))
        await asyncio.sleep(0)

        holder.release()
        late = asyncio.create_task(worker("late"))
        await asyncio.gather(queued, late)

        assert order == ["queued", "late"]


# =============================================================================
# CANCELLATION
# =============================================================================

class TestCancellation:
    """Test suite for cancelled waiters."""

    @pytest.mark.asyncio
    async def test_cancelled_waiter_leaves_queue(self):
        """Test that cancelling a queued ticket does not stall the lock."""
        lock = SerializationLock()
        holder = await lock.acquire()

        waiter = asyncio.create_task(lock.acquire())
        await asyncio.sleep(0)
        waiter.cancel()
        with pytest.raises(asyncio.CancelledError):
            await waiter

        assert lock.queue_length == 0
        holder.release()
        assert lock.locked is False

        handle = await asyncio.wait_for(lock.acquire(), timeout=1)
        handle.release()

    @pytest.mark.asyncio
    async def test_cancelled_after_handoff_passes_lock_on(self):
        """Test that a ticket cancelled right after handoff forwards ownership."""
        lock = SerializationLock()
        holder = await lock.acquire()

        first = asyncio.create_task(lock.acquire())
        await asyncio.sleep(0)
        second = asyncio.create_task(lock.acquire())
        await asyncio.sleep(0)

        holder.release()
        first.cancel()

        with pytest.raises(asyncio.CancelledError):
            await first

        handle = await asyncio.wait_for(second, timeout=1)
        assert handle.ticket == 3
        handle.release()
        assert lock.locked is False
