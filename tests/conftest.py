"""
Pytest configuration and fixtures for account cache tests.
"""

from __future__ import annotations

import asyncio
import os
from pathlib import Path
from typing import AsyncGenerator, Generator
from unittest.mock import patch

import pytest

from acache.config import Settings, clear_settings_cache
from acache.origin.static import StaticOrigin
from acache.store.memory_store import MemoryAccountStore
from acache.store.sqlite_store import SQLiteAccountStore
from acache.types import AccountInfo, PublicKey

SYSTEM_PROGRAM = PublicKey("11111111111111111111111111111111")
TOKEN_PROGRAM = PublicKey("TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA")
WRAPPED_SOL = PublicKey("So11111111111111111111111111111111111111112")
VOTE_PROGRAM = PublicKey("Vote111111111111111111111111111111111111111")
CLOCK_SYSVAR = PublicKey("SysvarC1ock11111111111111111111111111111111")

START_TIME = 1_700_000_000.0


class FakeClock:
    """Manually advanced unix clock."""

    def __init__(self, now: float = START_TIME) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_account(data: bytes = b"a", lamports: int = 1_000_000, owner: str | None = None) -> AccountInfo:
    """Create a test account."""
    return AccountInfo(
        data=data,
        owner=owner or str(SYSTEM_PROGRAM),
        lamports=lamports,
    )


class GatedOrigin(StaticOrigin):
    """Static origin that holds every fetch until released."""

    def __init__(self, accounts=None) -> None:
        super().__init__(accounts)
        self.started = asyncio.Event()
        self.release = asyncio.Event()

    async def fetch_many(self, keys):
        self.started.set()
        await self.release.wait()
        return await super().fetch_many(keys)


@pytest.fixture
def temp_dir(tmp_path: Path) -> Path:
    """Provide a temporary directory for test outputs."""
    return tmp_path


@pytest.fixture
def clock() -> FakeClock:
    """Provide a fake clock starting at a fixed time."""
    return FakeClock()


@pytest.fixture
def origin() -> StaticOrigin:
    """Provide an empty static origin."""
    return StaticOrigin()


@pytest.fixture
def memory_store(clock: FakeClock) -> MemoryAccountStore:
    """Provide an in-memory store on the fake clock."""
    return MemoryAccountStore(clock)


@pytest.fixture
async def sqlite_store(temp_dir: Path, clock: FakeClock) -> AsyncGenerator[SQLiteAccountStore, None]:
    """Provide a SQLite store in the temp directory."""
    store = SQLiteAccountStore(temp_dir / "cache" / "accounts.db", clock=clock)
    yield store
    await store.close()


@pytest.fixture
def mock_env_vars() -> Generator[dict[str, str], None, None]:
    """Provide mock environment variables for testing."""
    env_vars = {
        "RPC_URL": "http://localhost:8899",
        "RPC_COMMITMENT": "finalized",
        "RPC_TIMEOUT_SECONDS": "5",
        "RPC_MAX_KEYS_PER_REQUEST": "50",
        "STORE_TABLE": "test_accounts",
        "CACHE_DIR": ".test_cache",
        "LOG_LEVEL": "DEBUG",
    }

    with patch.dict(os.environ, env_vars, clear=False):
        clear_settings_cache()
        yield env_vars


@pytest.fixture
def mock_settings(mock_env_vars: dict[str, str], temp_dir: Path) -> Generator[Settings, None, None]:
    """Provide a Settings instance with mock configuration.

    Uses temp_dir for the cache directory.
    """
    with patch.dict(os.environ, {"CACHE_DIR": str(temp_dir / "cache")}):
        clear_settings_cache()
        from acache.config import get_settings

        settings = get_settings()
        yield settings
        clear_settings_cache()


@pytest.fixture(autouse=True)
def reset_settings_cache() -> Generator[None, None, None]:
    """Automatically reset settings cache before and after each test."""
    clear_settings_cache()
    yield
    clear_settings_cache()
