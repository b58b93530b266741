"""
Per-Key Locking

Recomputing a ledger key is read-then-write. Two recomputes of the same
key running interleaved could both see "no booking" and insert two. The
orchestrator therefore holds one asyncio.Lock per recompute key for the
whole read-evaluate-write sequence.

This only serializes within one process. Deployments with several
writer processes need an external single-writer queue or an advisory
lock keyed the same way.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Hashable


class KeyedLockRegistry:
    """A lazily created asyncio.Lock per key, dropped when unused."""

    def __init__(self):
        self._locks: dict[Hashable, asyncio.Lock] = {}
        self._holders: dict[Hashable, int] = {}

    @asynccontextmanager
    async def hold(self, key: Hashable) -> AsyncIterator[None]:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._holders[key] = self._holders.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._holders[key] -= 1
            if self._holders[key] == 0:
                del self._holders[key]
                del self._locks[key]

    def is_locked(self, key: Hashable) -> bool:
        lock = self._locks.get(key)
        return lock is not None and lock.locked()

    def __len__(self) -> int:
        return len(self._locks)
