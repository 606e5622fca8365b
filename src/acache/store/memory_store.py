"""In-memory account store, for tests and for caches that need no disk."""

from __future__ import annotations

import time

from acache.store.base import AccountStore
from acache.types import CacheEntry, Clock, Item, PublicKey


class MemoryAccountStore(AccountStore):
    """Dict-backed store; contents are lost when the process exits."""

    def __init__(self, clock: Clock = time.time) -> None:
        self.clock = clock
        self._entries: dict[str, CacheEntry[Item]] = {}

    async def get(self, key: PublicKey) -> CacheEntry[Item] | None:
        return self._entries.get(str(key))

    async def put(self, key: PublicKey, value: Item, timestamp: float | None = None) -> None:
        ts = self.clock() if timestamp is None else timestamp
        self._entries[str(key)] = CacheEntry(value, ts)

    async def delete(self, key: PublicKey) -> bool:
        return self._entries.pop(str(key), None) is not None

    async def clear(self) -> None:
        self._entries.clear()

    async def count(self) -> int:
        return len(self._entries)
