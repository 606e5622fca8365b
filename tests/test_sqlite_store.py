"""
Tests for the SQLite durable account store.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from unittest.mock import patch

import aiosqlite
import pytest

from acache.exceptions import StoreError
from acache.store.sqlite_store import SQLiteAccountStore, decode_item, encode_item
from acache.types import CacheEntry
from conftest import (
    START_TIME,
    SYSTEM_PROGRAM,
    TOKEN_PROGRAM,
    WRAPPED_SOL,
    FakeClock,
    make_account,
)


class TestEncoding:
    """Test value column encoding."""

    def test_absence_is_null(self) -> None:
        assert encode_item(None) is None
        assert decode_item(None) is None

    def test_account_round_trip(self) -> None:
        account = make_account(b"\x00\x01binary\xff", lamports=42)
        assert decode_item(encode_item(account)) == account


class TestSQLiteAccountStore:
    """Test SQLiteAccountStore functionality."""

    @pytest.mark.asyncio
    async def test_get_missing_key(self, sqlite_store: SQLiteAccountStore) -> None:
        assert await sqlite_store.get(SYSTEM_PROGRAM) is None

    @pytest.mark.asyncio
    async def test_put_and_get(self, sqlite_store: SQLiteAccountStore) -> None:
        account = make_account(b"payload")
        await sqlite_store.put(SYSTEM_PROGRAM, account, START_TIME - 30)

        entry = await sqlite_store.get(SYSTEM_PROGRAM)

        assert entry == CacheEntry(account, START_TIME - 30)

    @pytest.mark.asyncio
    async def test_put_defaults_to_clock(
        self, sqlite_store: SQLiteAccountStore, clock: FakeClock
    ) -> None:
        clock.advance(12.5)
        await sqlite_store.put(SYSTEM_PROGRAM, make_account())

        entry = await sqlite_store.get(SYSTEM_PROGRAM)
        assert entry is not None
        assert entry.timestamp == START_TIME + 12.5

    @pytest.mark.asyncio
    async def test_absence_is_stored(self, sqlite_store: SQLiteAccountStore) -> None:
        """Test that a stored absence differs from a missing row."""
        await sqlite_store.put(TOKEN_PROGRAM, None, START_TIME)

        entry = await sqlite_store.get(TOKEN_PROGRAM)

        assert entry == CacheEntry(None, START_TIME)
        assert await sqlite_store.count() == 1

    @pytest.mark.asyncio
    async def test_put_overwrites(self, sqlite_store: SQLiteAccountStore) -> None:
        await sqlite_store.put(SYSTEM_PROGRAM, make_account(b"old"), START_TIME)
        await sqlite_store.put(SYSTEM_PROGRAM, make_account(b"new"), START_TIME + 1)

        assert await sqlite_store.get(SYSTEM_PROGRAM) == CacheEntry(make_account(b"new"), START_TIME + 1)
        assert await sqlite_store.count() == 1

    @pytest.mark.asyncio
    async def test_delete(self, sqlite_store: SQLiteAccountStore) -> None:
        await sqlite_store.put(SYSTEM_PROGRAM, make_account())

        assert await sqlite_store.delete(SYSTEM_PROGRAM) is True
        assert await sqlite_store.delete(SYSTEM_PROGRAM) is False
        assert await sqlite_store.get(SYSTEM_PROGRAM) is None

    @pytest.mark.asyncio
    async def test_clear_and_count(self, sqlite_store: SQLiteAccountStore) -> None:
        for key in (SYSTEM_PROGRAM, TOKEN_PROGRAM, WRAPPED_SOL):
            await sqlite_store.put(key, make_account())
        assert await sqlite_store.count() == 3

        await sqlite_store.clear()

        assert await sqlite_store.count() == 0

    @pytest.mark.asyncio
    async def test_persists_across_reopen(self, temp_dir: Path, clock: FakeClock) -> None:
        path = temp_dir / "persist.db"
        first = SQLiteAccountStore(path, clock=clock)
        await first.put(SYSTEM_PROGRAM, make_account(b"kept"))
        await first.close()

        second = SQLiteAccountStore(path, clock=clock)
        try:
            entry = await second.get(SYSTEM_PROGRAM)
        finally:
            await second.close()

        assert entry == CacheEntry(make_account(b"kept"), START_TIME)

    @pytest.mark.asyncio
    async def test_tables_are_independent(self, temp_dir: Path) -> None:
        path = temp_dir / "shared.db"
        mainnet = SQLiteAccountStore(path, table="mainnet")
        devnet = SQLiteAccountStore(path, table="devnet")
        try:
            await mainnet.put(SYSTEM_PROGRAM, make_account())
            assert await devnet.get(SYSTEM_PROGRAM) is None
        finally:
            await mainnet.close()
            await devnet.close()

    def test_invalid_table_name(self, temp_dir: Path) -> None:
        with pytest.raises(ValueError, match="Invalid table name"):
            SQLiteAccountStore(temp_dir / "x.db", table="accounts; DROP TABLE x")

    @pytest.mark.asyncio
    async def test_close_without_open(self, temp_dir: Path) -> None:
        store = SQLiteAccountStore(temp_dir / "never.db")
        await store.close()
        assert not (temp_dir / "never.db").exists()


class TestConnection:
    """Test lazy, shared connection opening."""

    @pytest.mark.asyncio
    async def test_concurrent_first_use_opens_once(self, sqlite_store: SQLiteAccountStore) -> None:
        with patch(
            "acache.store.sqlite_store.aiosqlite.connect", wraps=aiosqlite.connect
        ) as connect:
            await asyncio.gather(
                sqlite_store.get(SYSTEM_PROGRAM),
                sqlite_store.get(TOKEN_PROGRAM),
                sqlite_store.put(WRAPPED_SOL, make_account()),
            )
            await sqlite_store.count()

        assert connect.call_count == 1

    @pytest.mark.asyncio
    async def test_failed_open_raises_and_is_retried(self, temp_dir: Path) -> None:
        blocker = temp_dir / "blocker"
        blocker.write_text("not a directory")
        store = SQLiteAccountStore(blocker / "accounts.db")

        with pytest.raises(StoreError) as exc_info:
            await store.get(SYSTEM_PROGRAM)
        assert exc_info.value.context["operation"] == "open"

        blocker.unlink()
        try:
            assert await store.get(SYSTEM_PROGRAM) is None
        finally:
            await store.close()

    @pytest.mark.asyncio
    async def test_corrupt_row_raises_store_error(self, sqlite_store: SQLiteAccountStore) -> None:
        db = await sqlite_store.connection()
        await db.execute(
            "INSERT INTO accounts (key, value, timestamp) VALUES (?, ?, ?)",
            (str(SYSTEM_PROGRAM), b"{not json", START_TIME),
        )
        await db.commit()

        with pytest.raises(StoreError) as exc_info:
            await sqlite_store.get(SYSTEM_PROGRAM)

        assert exc_info.value.context["operation"] == "get"
        assert exc_info.value.context["key"] == str(SYSTEM_PROGRAM)
