"""Per-account mutual exclusion for balance-affecting work."""

import asyncio
from contextlib import asynccontextmanager
from typing import Dict


class AccountLockRegistry:
    """Keyed asyncio locks, one per account id.

    Work on the same account is serialised; different accounts proceed
    independently. Locks are dropped once no task holds or waits on them.
    This covers concurrency inside one process; across processes the ledger
    relies on row locks, conditional updates and unique idempotency keys.
    """

    def __init__(self):
        self._locks: Dict[str, asyncio.Lock] = {}
        self._waiters: Dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, account_id: str):
        lock = self._locks.setdefault(account_id, asyncio.Lock())
        self._waiters[account_id] = self._waiters.get(account_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._waiters[account_id] -= 1
            if self._waiters[account_id] == 0:
                del self._waiters[account_id]
                del self._locks[account_id]

    def is_locked(self, account_id: str) -> bool:
        lock = self._locks.get(account_id)
        return lock is not None and lock.locked()


# Global registry shared by request handlers and the maturity sweeper
account_locks = AccountLockRegistry()
