"""
Keyed asyncio locks

Serialises the booking critical section per provider and per consumer inside
one process. Multi-process deployments additionally rely on the row locks
taken with SELECT ... FOR UPDATE inside the same transaction.
"""
import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, List

logger = logging.getLogger(__name__)


def provider_key(provider_id: int) -> str:
    return f"provider:{provider_id}"


def consumer_key(consumer_id: int) -> str:
    return f"consumer:{consumer_id}"


class KeyedLocks:
    """Registry of asyncio locks created on demand and dropped when idle"""

    def __init__(self):
        self._locks: Dict[str, asyncio.Lock] = {}
        self._users: Dict[str, int] = {}

    def _checkout(self, key: str) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        self._users[key] = self._users.get(key, 0) + 1
        return lock

    def _checkin(self, key: str) -> None:
        remaining = self._users[key] - 1
        if remaining:
            self._users[key] = remaining
        else:
            del self._users[key]
            del self._locks[key]

    @asynccontextmanager
    async def hold(self, *keys: str) -> AsyncIterator[None]:
        """
        Acquire every key's lock, always in sorted order so that two callers
        holding overlapping key sets cannot deadlock.
        """
        ordered = sorted(set(keys))
        locks = [self._checkout(key) for key in ordered]
        acquired: List[asyncio.Lock] = []
        try:
            for lock in locks:
                await lock.acquire()
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()
            for key in ordered:
                self._checkin(key)

    def __len__(self) -> int:
        return len(self._locks)
