"""
Per-account mutual exclusion for transfers and balance corrections.

Every operation that changes a balance first takes the lock of each
account it touches, through AccountLockManager.hold():

    async with locks.hold(sender_id, receiver_id, timeout=5.0):
        ...  # read, check and write the balances

Deadlock prevention:
  Locks are always acquired in ascending account id order, whatever the
  roles of the accounts. Transfer A->B and transfer B->A both lock
  min(A, B) first, so neither can hold one lock while waiting for the
  other's.

Bounded wait:
  The whole acquisition runs under one deadline. If it passes, the locks
  taken so far are released and LockTimeoutError is raised. Nothing has
  been mutated at that point, so the caller may retry.

Scope:
  The locks serialize work inside one process. Across processes the
  database provides the guarantee (BEGIN IMMEDIATE on SQLite, row locks
  on PostgreSQL); see bank_ledger.database.
"""

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog

from bank_ledger.exceptions import LockTimeoutError

logger = structlog.get_logger(__name__)


class AccountLockManager:
    """Registry of one asyncio.Lock per account id."""

    def __init__(self):
        self._locks: dict[int, asyncio.Lock] = {}

    def _lock_for(self, account_id: int) -> asyncio.Lock:
        lock = self._locks.get(account_id)
        if lock is None:
            lock = self._locks[account_id] = asyncio.Lock()
        return lock

    def is_locked(self, account_id: int) -> bool:
        lock = self._locks.get(account_id)
        return lock is not None and lock.locked()

    def discard(self, account_id: int) -> None:
        """Forget the lock of a deleted account, unless someone still uses it."""
        lock = self._locks.get(account_id)
        if lock is not None and not lock.locked():
            del self._locks[account_id]

    @asynccontextmanager
    async def hold(self, *account_ids: int, timeout: float) -> AsyncIterator[list[int]]:
        """
        Hold the locks of all given accounts for the duration of the block.

        Args:
            account_ids: Accounts to lock; duplicates are locked once.
            timeout: Seconds to wait for all locks together.

        Yields:
            The locked account ids in acquisition (ascending) order.

        Raises:
            LockTimeoutError: If the locks were not all acquired in time.
        """
        ordered = sorted(set(account_ids))
        acquired: list[asyncio.Lock] = []
        try:
            try:
                async with asyncio.timeout(timeout):
                    for account_id in ordered:
                        lock = self._lock_for(account_id)
                        await lock.acquire()
                        acquired.append(lock)
            except TimeoutError:
                logger.warning(
                    "lock.timeout",
                    account_ids=ordered,
                    acquired=len(acquired),
                    timeout=timeout,
                )
                raise LockTimeoutError(ordered, timeout) from None
            yield ordered
        finally:
            for lock in reversed(acquired):
                lock.release()
