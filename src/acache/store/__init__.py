"""
Durable account stores.

- AccountStore: abstract keyed (item, timestamp) store
- SQLiteAccountStore: aiosqlite-backed store that survives restarts
- MemoryAccountStore: dict-backed store for tests
"""

from acache.store.base import AccountStore
from acache.store.memory_store import MemoryAccountStore
from acache.store.sqlite_store import SQLiteAccountStore

__all__ = ["AccountStore", "MemoryAccountStore", "SQLiteAccountStore"]
