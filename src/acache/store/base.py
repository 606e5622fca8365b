"""
Base class for durable account stores.

A store maps a public key to the last item fetched for it and the unix time
it was written. Absence (None) is stored like any other value.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from acache.types import CacheEntry, Item, PublicKey


class AccountStore(ABC):
    """Abstract keyed store of (item, timestamp) records."""

    @abstractmethod
    async def get(self, key: PublicKey) -> CacheEntry[Item] | None:
        """Get the stored entry for a key, or None if there is none."""
        ...

    @abstractmethod
    async def put(self, key: PublicKey, value: Item, timestamp: float | None = None) -> None:
        """Store an item for a key, replacing any previous entry.

        The timestamp defaults to the store's clock.
        """
        ...

    @abstractmethod
    async def delete(self, key: PublicKey) -> bool:
        """Delete the entry for a key. Returns True if one existed."""
        ...

    @abstractmethod
    async def clear(self) -> None:
        """Delete every entry."""
        ...

    @abstractmethod
    async def count(self) -> int:
        """Number of stored entries."""
        ...

    async def close(self) -> None:
        """Release any underlying resources."""
        return None
