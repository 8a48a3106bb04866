from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Hashable
import asyncio


class ConversationLocks:
    """One asyncio lock per key, created on demand and dropped when idle.

    Holding the lock for a conversation makes its turns run one at a time
    in arrival order, while other conversations proceed concurrently.
    """

    def __init__(self):
        self._locks: Dict[Hashable, asyncio.Lock] = {}
        self._holders: Dict[Hashable, int] = {}

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
                self._locks.pop(key, None)

    def active_keys(self) -> int:
        """Number of keys with a running or waiting turn"""
        return len(self._locks)
