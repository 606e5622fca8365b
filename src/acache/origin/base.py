"""
Base class for origin sources.

The origin is the authority the cache falls back to. It resolves a batch of
keys to one Outcome per key, in the same order: an account, None when the
account does not exist, or a per-key error. A failure for one key must not
fail the whole call.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Sequence

from acache.types import Outcome, PublicKey


class OriginSource(ABC):
    """Abstract batch-capable source of accounts."""

    @property
    @abstractmethod
    def source_name(self) -> str:
        """Name of this origin, used in logs and error context."""
        ...

    @abstractmethod
    async def fetch_many(self, keys: Sequence[PublicKey]) -> list[Outcome]:
        """Fetch accounts for the given keys, one outcome per key."""
        ...

    async def close(self) -> None:
        """Close any open connections."""
        return None
