"""
Validity policies for cached entries.

A policy decides, per read, whether an entry may satisfy a request with a
given freshness tolerance. The cache keeps one slot per key; each reader
re-checks the slot against its own tolerance.
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from typing import Any

from acache.types import CacheEntry, Clock


class FreshnessPolicy(ABC):
    """Strategy deciding whether a cache entry satisfies a request."""

    @abstractmethod
    def is_valid(self, entry: CacheEntry[Any], max_age: float) -> bool:
        """Return True if the entry may be served to a reader with max_age."""
        ...


class MaxAgePolicy(FreshnessPolicy):
    """Entry is valid while strictly younger than the reader's tolerance.

    ``timestamp > now - max_age``: a tolerance of 0 never matches, and an
    unbounded tolerance always does.
    """

    def __init__(self, clock: Clock = time.time) -> None:
        self.clock = clock

    def is_valid(self, entry: CacheEntry[Any], max_age: float) -> bool:
        return entry.timestamp > self.clock() - max_age
