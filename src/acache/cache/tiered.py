"""
Durable-store-then-origin resolution for a batch of keys.

This is the batch function behind the request coalescer. Every key is first
looked up in the durable store; keys missing there, or too old for their
request, go to the origin together in a single call. Successful origin
results are written back to the store in the background.
"""

from __future__ import annotations

import asyncio
import time
from typing import Sequence

from acache.cache.policy import FreshnessPolicy, MaxAgePolicy
from acache.cache.stats import CacheStats
from acache.exceptions import OriginError, StoreError
from acache.logging import get_logger
from acache.origin.base import OriginSource
from acache.store.base import AccountStore
from acache.types import Clock, Item, Outcome, PublicKey

logger = get_logger(__name__)


class TieredCache:
    """Resolves (key, max_age) batches against the store, then the origin."""

    def __init__(
        self,
        store: AccountStore,
        origin: OriginSource,
        *,
        policy: FreshnessPolicy | None = None,
        clock: Clock = time.time,
        stats: CacheStats | None = None,
    ) -> None:
        self.store = store
        self.origin = origin
        self.clock = clock
        self.policy = policy or MaxAgePolicy(clock)
        self.stats = stats or CacheStats()
        self._writes: set[asyncio.Task[None]] = set()
        # Bumped on invalidation; write-backs from batches begun earlier are dropped
        self._epoch = 0
        self._invalidated: dict[str, int] = {}
        self._invalidated_all = 0

    @property
    def pending_writes(self) -> int:
        return len(self._writes)

    async def resolve(self, requests: Sequence[tuple[PublicKey, float]]) -> list[Outcome]:
        """Resolve every request to an outcome, preserving request order."""
        started = self._epoch
        results: list[Outcome | None] = list(
            await asyncio.gather(*(self._read_durable(key, max_age) for key, max_age in requests))
        )
        self.stats.durable_hits += sum(1 for r in results if r is not None and r.ok)

        missing = [index for index, result in enumerate(results) if result is None]
        if missing:
            keys = [requests[index][0] for index in missing]
            fetched = await self._fetch(keys)
            fetched_at = self.clock()

            for index, key, outcome in zip(missing, keys, fetched):
                results[index] = outcome
                if not outcome.ok:
                    continue
                if self._invalidated_since(key, started):
                    logger.debug("Skipping write-back of invalidated account", key=str(key))
                    continue
                self._write_back(key, outcome.value, fetched_at)

        logger.debug(
            "Batch resolved",
            keys=len(requests),
            durable=len(requests) - len(missing),
            origin=len(missing),
        )
        return [result for result in results if result is not None]

    async def flush(self) -> None:
        """Wait for every pending write-back to finish."""
        while self._writes:
            await asyncio.gather(*list(self._writes))

    async def invalidate(self, key: PublicKey) -> bool:
        """Delete a key from the durable store once pending writes have landed."""
        self._epoch += 1
        self._invalidated[str(key)] = self._epoch
        await self.flush()
        return await self.store.delete(key)

    async def invalidate_all(self) -> None:
        """Delete every durable entry once pending writes have landed."""
        self._epoch += 1
        self._invalidated.clear()
        self._invalidated_all = self._epoch
        await self.flush()
        await self.store.clear()

    def _invalidated_since(self, key: PublicKey, epoch: int) -> bool:
        latest = max(self._invalidated.get(str(key), 0), self._invalidated_all)
        return latest > epoch

    async def _read_durable(self, key: PublicKey, max_age: float) -> Outcome | None:
        try:
            entry = await self.store.get(key)
        except StoreError as e:
            logger.warning("Durable read failed", key=str(key), error=str(e))
            return Outcome.failure(e)

        if entry is not None and self.policy.is_valid(entry, max_age):
            return Outcome.success(entry.value)
        return None

    async def _fetch(self, keys: list[PublicKey]) -> list[Outcome]:
        self.stats.origin_batches += 1
        self.stats.origin_keys += len(keys)
        source = self.origin.source_name

        try:
            outcomes = list(await self.origin.fetch_many(keys))
        except Exception as e:
            logger.error("Origin fetch failed", source=source, keys=len(keys), error=str(e))
            return [self._origin_failure(key, str(e) or type(e).__name__, e) for key in keys]

        if len(outcomes) != len(keys):
            logger.error(
                "Origin returned wrong number of outcomes",
                source=source,
                expected=len(keys),
                actual=len(outcomes),
            )
            return [self._origin_failure(key, "Origin returned wrong number of outcomes") for key in keys]

        return outcomes

    def _origin_failure(self, key: PublicKey, message: str, cause: BaseException | None = None) -> Outcome:
        error = OriginError(message, context={"key": str(key), "source": self.origin.source_name})
        error.__cause__ = cause
        return Outcome.failure(error)

    def _write_back(self, key: PublicKey, value: Item, timestamp: float) -> None:
        task = asyncio.create_task(self._put(key, value, timestamp))
        self._writes.add(task)
        task.add_done_callback(self._writes.discard)

    async def _put(self, key: PublicKey, value: Item, timestamp: float) -> None:
        try:
            await self.store.put(key, value, timestamp)
        except StoreError as e:
            self.stats.write_back_failures += 1
            logger.warning("Write-back failed", key=str(key), error=str(e))
        except Exception:
            self.stats.write_back_failures += 1
            logger.exception("Write-back failed unexpectedly", key=str(key))
