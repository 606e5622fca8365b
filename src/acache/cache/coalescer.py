"""
Request coalescing loader.

Collects every load issued before the event loop regains control into one
batch, deduplicates keys, and hands the distinct keys to a batch function
that returns one Outcome per key. Futures are kept in a per-key slot and
reused by later reads whose tolerance still accepts the slot's age.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Iterable, Sequence, Union

from acache.cache.policy import FreshnessPolicy, MaxAgePolicy
from acache.cache.stats import CacheStats
from acache.exceptions import AccountCacheError
from acache.logging import get_logger, log_context
from acache.types import (
    UNBOUNDED,
    CacheEntry,
    Clock,
    Item,
    Outcome,
    PublicKey,
    generate_id,
    validate_max_age,
)

logger = get_logger(__name__)

BatchRequest = Sequence[tuple[PublicKey, float]]
BatchFunction = Callable[[BatchRequest], Awaitable[Sequence[Outcome]]]
LoadRequest = Union[PublicKey, str, tuple[Union[PublicKey, str], float]]


@dataclass(slots=True)
class _QueuedLoad:
    key: PublicKey
    max_age: float
    future: asyncio.Future[Item]


def split_request(request: LoadRequest) -> tuple[PublicKey, float]:
    """Normalize a load request to (key, max_age)."""
    if isinstance(request, tuple):
        key, max_age = request
        return PublicKey.coerce(key), validate_max_age(max_age)
    return PublicKey.coerce(request), UNBOUNDED


def _retrieve_exception(future: asyncio.Future[Item]) -> None:
    # Cached failures may never be awaited; mark them retrieved
    if not future.cancelled():
        future.exception()


class RequestCoalescer:
    """Batching, deduplicating loader with per-read freshness checks.

    Args:
        batch_fn: Async function resolving a batch of (key, max_age) pairs to
            one Outcome per pair, in order.
        policy: Validity check applied to the in-process slot on every read.
        clock: Source of unix timestamps for new slots.
        max_batch_size: Split dispatches into batches of at most this many keys.
        stats: Shared counters; a private instance is created if omitted.
        name: Instance name used in log context.
    """

    def __init__(
        self,
        batch_fn: BatchFunction,
        *,
        policy: FreshnessPolicy | None = None,
        clock: Clock = time.time,
        max_batch_size: int | None = None,
        stats: CacheStats | None = None,
        name: str = "coalescer",
    ) -> None:
        if max_batch_size is not None and max_batch_size < 1:
            raise ValueError("max_batch_size must be at least 1")
        self.batch_fn = batch_fn
        self.clock = clock
        self.policy = policy or MaxAgePolicy(clock)
        self.max_batch_size = max_batch_size
        self.stats = stats or CacheStats()
        self.name = name

        self._slots: dict[str, CacheEntry[asyncio.Future[Item]]] = {}
        self._queue: list[_QueuedLoad] = []
        self._dispatch_scheduled = False
        self._batches: set[asyncio.Task[None]] = set()

    def __len__(self) -> int:
        return len(self._slots)

    def __contains__(self, key: PublicKey | str) -> bool:
        return str(PublicKey.coerce(key)) in self._slots

    def load(self, key: PublicKey | str, max_age: float = UNBOUNDED) -> asyncio.Future[Item]:
        """Load a key, returning a future for its item.

        Must be called with a running event loop. The returned future is
        shielded: cancelling it does not cancel the shared load.
        """
        key = PublicKey.coerce(key)
        max_age = validate_max_age(max_age)
        loop = asyncio.get_running_loop()
        self.stats.loads += 1

        slot = self._slots.get(str(key))
        if slot is not None and self.policy.is_valid(slot, max_age):
            self.stats.memory_hits += 1
            return asyncio.shield(slot.value)

        future = self._new_future(loop)
        self._slots[str(key)] = CacheEntry(future, self.clock())
        self._queue.append(_QueuedLoad(key, max_age, future))

        if not self._dispatch_scheduled:
            self._dispatch_scheduled = True
            loop.call_soon(self._dispatch)

        return asyncio.shield(future)

    async def load_many(self, requests: Iterable[LoadRequest]) -> list[Item | BaseException]:
        """Load several keys; failures are returned in place, never raised."""
        pending: list[asyncio.Future[Item] | BaseException] = []
        for request in requests:
            try:
                key, max_age = split_request(request)
                pending.append(self.load(key, max_age))
            except (ValueError, TypeError) as e:
                pending.append(e)

        futures = [p for p in pending if not isinstance(p, BaseException)]
        settled = iter(await asyncio.gather(*futures, return_exceptions=True))
        return [p if isinstance(p, BaseException) else next(settled) for p in pending]

    def prime(self, key: PublicKey | str, value: Item | BaseException) -> RequestCoalescer:
        """Seed the slot for a key. No change is made if the key already has one.

        An exception value is cached as that key's failure.
        """
        key = PublicKey.coerce(key)
        if str(key) in self._slots:
            return self

        future = self._new_future(asyncio.get_running_loop())
        if isinstance(value, BaseException):
            future.set_exception(value)
        else:
            future.set_result(value)
        self._slots[str(key)] = CacheEntry(future, self.clock())
        return self

    def clear(self, key: PublicKey | str) -> RequestCoalescer:
        """Evict the in-process slot for a key, if any."""
        self._slots.pop(str(PublicKey.coerce(key)), None)
        return self

    def clear_all(self) -> RequestCoalescer:
        """Evict every in-process slot."""
        self._slots.clear()
        return self

    async def wait_idle(self) -> None:
        """Wait until every dispatched batch has settled its futures."""
        while self._queue or self._batches:
            if self._batches:
                await asyncio.gather(*self._batches, return_exceptions=True)
            else:
                await asyncio.sleep(0)

    def _new_future(self, loop: asyncio.AbstractEventLoop) -> asyncio.Future[Item]:
        future: asyncio.Future[Item] = loop.create_future()
        future.add_done_callback(_retrieve_exception)
        return future

    def _dispatch(self) -> None:
        queue, self._queue = self._queue, []
        self._dispatch_scheduled = False
        if not queue:
            return

        groups: dict[str, list[_QueuedLoad]] = {}
        for queued in queue:
            groups.setdefault(str(queued.key), []).append(queued)

        ordered = list(groups.values())
        size = self.max_batch_size or len(ordered)
        for start in range(0, len(ordered), size):
            task = asyncio.create_task(self._run_batch(ordered[start:start + size]))
            self._batches.add(task)
            task.add_done_callback(self._batches.discard)

    async def _run_batch(self, groups: list[list[_QueuedLoad]]) -> None:
        # Duplicate loads of a key share one request with the strictest tolerance
        requests = [(group[0].key, min(q.max_age for q in group)) for group in groups]
        self.stats.batches += 1

        with log_context(cache=self.name, batch_id=generate_id("batch")):
            logger.debug(
                "Dispatching batch",
                keys=len(requests),
                loads=sum(len(group) for group in groups),
            )
            try:
                outcomes = list(await self.batch_fn(requests))
                if len(outcomes) != len(requests):
                    raise AccountCacheError(
                        "Batch function returned wrong number of outcomes",
                        context={"expected": len(requests), "actual": len(outcomes)},
                    )
            except Exception as e:
                logger.error("Batch failed", keys=len(requests), error=str(e))
                self.stats.errors += sum(len(group) for group in groups)
                for group in groups:
                    for queued in group:
                        self._evict(queued)
                        if not queued.future.done():
                            queued.future.set_exception(e)
                return

            for group, outcome in zip(groups, outcomes):
                if not outcome.ok:
                    self.stats.errors += len(group)
                for queued in group:
                    if queued.future.done():
                        continue
                    if outcome.ok:
                        queued.future.set_result(outcome.value)
                    else:
                        queued.future.set_exception(outcome.error)

    def _evict(self, queued: _QueuedLoad) -> None:
        # Only drop the slot if a newer load has not replaced it
        slot = self._slots.get(str(queued.key))
        if slot is not None and slot.value is queued.future:
            del self._slots[str(queued.key)]
