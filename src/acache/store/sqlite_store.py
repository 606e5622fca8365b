"""
SQLite-backed durable account store.

Entries survive process restarts. The connection is opened lazily on first
use; concurrent first callers share one opening task.
"""

from __future__ import annotations

import asyncio
import time
from contextlib import contextmanager, suppress
from pathlib import Path
from typing import Generator

import aiosqlite
import orjson

from acache.exceptions import StoreError
from acache.logging import get_logger
from acache.store.base import AccountStore
from acache.types import AccountInfo, CacheEntry, Clock, Item, PublicKey

logger = get_logger(__name__)


def encode_item(value: Item) -> bytes | None:
    """Serialize an item for the value column; absence is NULL."""
    if value is None:
        return None
    return orjson.dumps(value.to_dict())


def decode_item(blob: bytes | None) -> Item:
    """Inverse of encode_item."""
    if blob is None:
        return None
    return AccountInfo.from_dict(orjson.loads(blob))


class SQLiteAccountStore(AccountStore):
    """Durable store keeping one row per account in a single table.

    Schema: ``(key TEXT PRIMARY KEY, value BLOB, timestamp REAL)`` where value
    is the orjson-encoded account (NULL for absence) and timestamp is unix
    seconds.
    """

    def __init__(
        self,
        path: str | Path,
        table: str = "accounts",
        clock: Clock = time.time,
    ) -> None:
        """Initialize the store. Nothing is opened until first use.

        Args:
            path: SQLite database file.
            table: Table name; must be a plain identifier.
            clock: Source of unix timestamps for writes.
        """
        if not table.isidentifier():
            raise ValueError(f"Invalid table name: {table!r}")
        self.path = Path(path)
        self.table = table
        self.clock = clock
        self._db: aiosqlite.Connection | None = None
        self._opening: asyncio.Task[aiosqlite.Connection] | None = None

    @contextmanager
    def _errors(self, operation: str, key: PublicKey | None = None) -> Generator[None, None, None]:
        """Re-raise storage failures as StoreError."""
        try:
            yield
        except (aiosqlite.Error, OSError, ValueError, KeyError, TypeError) as e:
            context: dict[str, str] = {"operation": operation, "table": self.table}
            if key is not None:
                context["key"] = str(key)
            context["error"] = str(e)
            raise StoreError("Account store operation failed", context=context) from e

    async def _open(self) -> aiosqlite.Connection:
        db: aiosqlite.Connection | None = None
        try:
            with self._errors("open"):
                self.path.parent.mkdir(parents=True, exist_ok=True)
                db = await aiosqlite.connect(self.path)
                await db.execute(f"""
                    CREATE TABLE IF NOT EXISTS {self.table} (
                        key TEXT PRIMARY KEY,
                        value BLOB,
                        timestamp REAL NOT NULL
                    )
                """)
                await db.commit()
        except StoreError:
            if db is not None:
                await db.close()
            raise

        logger.info("Account store opened", path=str(self.path), table=self.table)
        return db

    async def connection(self) -> aiosqlite.Connection:
        """Get the open connection, opening it on first use.

        A failed open is not remembered; the next call tries again.
        """
        if self._db is not None:
            return self._db

        if self._opening is None:
            self._opening = asyncio.create_task(self._open())
        opening = self._opening

        try:
            db = await asyncio.shield(opening)
        except StoreError:
            if self._opening is opening:
                self._opening = None
            raise

        self._db = db
        return db

    async def get(self, key: PublicKey) -> CacheEntry[Item] | None:
        db = await self.connection()
        with self._errors("get", key):
            async with db.execute(
                f"SELECT value, timestamp FROM {self.table} WHERE key = ?",
                (str(key),),
            ) as cursor:
                row = await cursor.fetchone()
            if row is None:
                return None
            return CacheEntry(decode_item(row[0]), float(row[1]))

    async def put(self, key: PublicKey, value: Item, timestamp: float | None = None) -> None:
        ts = self.clock() if timestamp is None else timestamp
        db = await self.connection()
        with self._errors("put", key):
            await db.execute(
                f"""
                INSERT INTO {self.table} (key, value, timestamp) VALUES (?, ?, ?)
                ON CONFLICT(key) DO UPDATE SET
                    value = excluded.value,
                    timestamp = excluded.timestamp
                """,
                (str(key), encode_item(value), ts),
            )
            await db.commit()

    async def delete(self, key: PublicKey) -> bool:
        db = await self.connection()
        with self._errors("delete", key):
            cursor = await db.execute(
                f"DELETE FROM {self.table} WHERE key = ?", (str(key),)
            )
            deleted = cursor.rowcount > 0
            await cursor.close()
            await db.commit()
        return deleted

    async def clear(self) -> None:
        db = await self.connection()
        with self._errors("clear"):
            await db.execute(f"DELETE FROM {self.table}")
            await db.commit()
        logger.info("Account store cleared", table=self.table)

    async def count(self) -> int:
        db = await self.connection()
        with self._errors("count"):
            async with db.execute(f"SELECT COUNT(*) FROM {self.table}") as cursor:
                row = await cursor.fetchone()
        return int(row[0]) if row else 0

    async def close(self) -> None:
        """Close the database connection."""
        if self._opening is not None:
            # An open that failed has nothing to close
            with suppress(StoreError):
                self._db = await self._opening
        if self._db is not None:
            await self._db.close()
            self._db = None
        self._opening = None
