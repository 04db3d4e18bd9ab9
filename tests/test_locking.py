"""
Tests for the per-account lock manager.

These tests verify:
  - Locks are taken in ascending id order whatever the argument order
  - Duplicate ids are locked once
  - Waiting is bounded, and a timeout gives back what was acquired
  - Locks are released when the block raises
"""

import asyncio

import pytest

from bank_ledger.exceptions import LockTimeoutError
from bank_ledger.locking import AccountLockManager


class TestHold:

    async def test_acquires_in_ascending_order(self):
        locks = AccountLockManager()

        async with locks.hold(9, 2, 5, timeout=1) as ordered:
            assert ordered == [2, 5, 9]
            assert all(locks.is_locked(i) for i in (2, 5, 9))

        assert not any(locks.is_locked(i) for i in (2, 5, 9))

    async def test_duplicates_are_locked_once(self):
        locks = AccountLockManager()

        async with locks.hold(3, 3, timeout=1) as ordered:
            assert ordered == [3]

    async def test_released_when_block_raises(self):
        locks = AccountLockManager()

        with pytest.raises(ValueError):
            async with locks.hold(1, 2, timeout=1):
                raise ValueError("boom")

        assert not locks.is_locked(1)
        assert not locks.is_locked(2)

    async def test_second_holder_waits(self):
        locks = AccountLockManager()
        events = []

        async def worker(name, delay):
            async with locks.hold(1, timeout=1):
                events.append(f"{name}-in")
                await asyncio.sleep(delay)
                events.append(f"{name}-out")

        await asyncio.gather(worker("a", 0.02), worker("b", 0))
        assert events == ["a-in", "a-out", "b-in", "b-out"]

    async def test_opposite_orders_do_not_deadlock(self):
        locks = AccountLockManager()
        done = []

        async def worker(first, second):
            for _ in range(20):
                async with locks.hold(first, second, timeout=1):
                    await asyncio.sleep(0)
            done.append((first, second))

        await asyncio.wait_for(asyncio.gather(worker(1, 2), worker(2, 1)), timeout=5)
        assert len(done) == 2


class TestTimeout:

    async def test_times_out(self):
        locks = AccountLockManager()

        async with locks.hold(1, timeout=1):
            with pytest.raises(LockTimeoutError) as excinfo:
                async with locks.hold(1, timeout=0.01):
                    pytest.fail("should not get the lock")

        assert excinfo.value.account_ids == [1]
        assert excinfo.value.timeout == 0.01
        assert isinstance(excinfo.value, TimeoutError)

    async def test_timeout_releases_partial_acquisition(self):
        locks = AccountLockManager()

        async with locks.hold(2, timeout=1):
            with pytest.raises(LockTimeoutError):
                async with locks.hold(1, 2, timeout=0.01):
                    pass
            # Lock 1 was taken before waiting on 2 and must be free again
            assert not locks.is_locked(1)

    async def test_discard_keeps_held_locks(self):
        locks = AccountLockManager()

        async with locks.hold(4, timeout=1):
            locks.discard(4)
            assert locks.is_locked(4)

        locks.discard(4)
        assert not locks.is_locked(4)
