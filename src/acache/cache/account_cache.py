"""
Account cache facade.

Wires a request coalescer in front of the tiered (durable store, then origin)
resolver. Loads issued in the same event loop turn are coalesced into one
batch; each load carries its own freshness tolerance.
"""

from __future__ import annotations

import asyncio
import time
from typing import Iterable

from acache.cache.coalescer import LoadRequest, RequestCoalescer
from acache.cache.policy import FreshnessPolicy, MaxAgePolicy
from acache.cache.stats import CacheStats
from acache.cache.tiered import TieredCache
from acache.config import Settings, get_settings
from acache.logging import get_logger
from acache.origin.base import OriginSource
from acache.origin.rpc import RPCOrigin
from acache.store.base import AccountStore
from acache.store.sqlite_store import SQLiteAccountStore
from acache.types import UNBOUNDED, Clock, Item, PublicKey, validate_max_age

logger = get_logger(__name__)


class AccountCache:
    """Read-through, request-coalescing cache of accounts.

    Lookup chain for a load with tolerance ``max_age``:

    1. In-process slot for the key, if younger than ``max_age``.
    2. Durable store entry, if younger than ``max_age``.
    3. Origin, in one batched call per event loop turn; results are written
       back to the durable store.

    ``clear``/``clear_all`` drop in-process slots only; ``invalidate`` and
    ``invalidate_all`` also delete durable entries. Origin results fetched
    before an invalidation are never written back after it.

    Write-back runs in background tasks. Call ``flush()`` or ``close()`` (or
    use ``async with``) before the event loop ends, or pending writes are lost.
    """

    def __init__(
        self,
        origin: OriginSource,
        store: AccountStore,
        *,
        policy: FreshnessPolicy | None = None,
        clock: Clock = time.time,
        max_batch_size: int | None = None,
        default_max_age: float = UNBOUNDED,
        name: str = "accounts",
    ) -> None:
        self.name = name
        self.default_max_age = validate_max_age(default_max_age)
        self.stats = CacheStats()
        policy = policy or MaxAgePolicy(clock)
        self.tiers = TieredCache(store, origin, policy=policy, clock=clock, stats=self.stats)
        self._loader = RequestCoalescer(
            self.tiers.resolve,
            policy=policy,
            clock=clock,
            max_batch_size=max_batch_size,
            stats=self.stats,
            name=name,
        )

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> AccountCache:
        """Build a cache over the configured RPC node and SQLite store."""
        settings = settings or get_settings()
        settings.ensure_directories()
        return cls(
            RPCOrigin.from_settings(settings),
            SQLiteAccountStore(settings.store_path, settings.STORE_TABLE),
            max_batch_size=settings.MAX_BATCH_SIZE,
            default_max_age=settings.default_max_age,
        )

    @property
    def origin(self) -> OriginSource:
        return self.tiers.origin

    @property
    def store(self) -> AccountStore:
        return self.tiers.store

    def load(self, key: PublicKey | str, max_age: float | None = None) -> asyncio.Future[Item]:
        """Load an account, returning a future for it (None if absent)."""
        if max_age is None:
            max_age = self.default_max_age
        return self._loader.load(key, max_age)

    async def load_many(self, requests: Iterable[LoadRequest]) -> list[Item | BaseException]:
        """Load several accounts.

        Each request is a key or a ``(key, max_age)`` pair; a bare key or a
        ``max_age`` of None uses ``default_max_age``. The result list
        has one entry per request, in order; failures appear as exception
        values at their position.
        """
        return await self._loader.load_many(self._with_default(request) for request in requests)

    def _with_default(self, request: LoadRequest) -> LoadRequest:
        if not isinstance(request, tuple):
            return request, self.default_max_age
        if len(request) == 2 and request[1] is None:
            return request[0], self.default_max_age
        return request

    def prime(self, key: PublicKey | str, value: Item | BaseException) -> AccountCache:
        """Seed the in-process slot for a key that has none, without fetching."""
        self._loader.prime(key, value)
        return self

    def clear(self, key: PublicKey | str) -> AccountCache:
        """Drop the in-process slot for a key. The durable entry is kept."""
        self._loader.clear(key)
        return self

    def clear_all(self) -> AccountCache:
        """Drop every in-process slot. Durable entries are kept."""
        self._loader.clear_all()
        return self

    async def invalidate(self, key: PublicKey | str) -> bool:
        """Remove a key from both tiers. Returns True if a durable entry existed."""
        key = PublicKey.coerce(key)
        deleted = await self.tiers.invalidate(key)
        self._loader.clear(key)
        logger.debug("Invalidated account", key=str(key), durable=deleted)
        return deleted

    async def invalidate_all(self) -> None:
        """Remove every key from both tiers."""
        await self.tiers.invalidate_all()
        self._loader.clear_all()
        logger.info("Invalidated all accounts", cache=self.name)

    async def flush(self) -> None:
        """Wait for in-flight batches and their write-backs."""
        await self._loader.wait_idle()
        await self.tiers.flush()

    async def close(self) -> None:
        """Flush pending work, then close the store and the origin."""
        await self.flush()
        await self.store.close()
        await self.origin.close()

    async def __aenter__(self) -> AccountCache:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()
