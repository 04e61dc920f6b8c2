"""Per-key asyncio locks for serializing mutations to one entity or account."""

import asyncio
from contextlib import AsyncExitStack, asynccontextmanager
from typing import AsyncIterator, Hashable, Optional


class KeyedLocks:
    """
    One asyncio.Lock per key, created on first use.

    `hold` takes several locks at once in a fixed (sorted) order, so two
    callers that need overlapping sets of keys cannot deadlock. A lock lives
    only while some caller holds or waits for it; the last one out removes
    it, so the table never outgrows the keys currently in use.
    """

    def __init__(self) -> None:
        self._locks: dict[Hashable, asyncio.Lock] = {}
        self._users: dict[Hashable, int] = {}

    def __len__(self) -> int:
        return len(self._locks)

    def _acquire_ref(self, key: Hashable) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        self._users[key] = self._users.get(key, 0) + 1
        return lock

    def _release_ref(self, key: Hashable) -> None:
        remaining = self._users[key] - 1
        if remaining:
            self._users[key] = remaining
        else:
            del self._users[key]
            del self._locks[key]

    @asynccontextmanager
    async def hold(self, *keys: Optional[Hashable]) -> AsyncIterator[None]:
        unique = sorted({k for k in keys if k is not None}, key=str)
        locks = [self._acquire_ref(key) for key in unique]
        try:
            async with AsyncExitStack() as stack:
                for lock in locks:
                    await stack.enter_async_context(lock)
                yield
        finally:
            for key in unique:
                self._release_ref(key)
