"""Counters describing how loads were served."""

from __future__ import annotations

from dataclasses import asdict, dataclass


@dataclass
class CacheStats:
    """Running totals for one cache instance."""

    loads: int = 0
    memory_hits: int = 0
    batches: int = 0
    durable_hits: int = 0
    origin_batches: int = 0
    origin_keys: int = 0
    errors: int = 0
    write_back_failures: int = 0

    def as_dict(self) -> dict[str, int]:
        return asdict(self)

    def reset(self) -> None:
        for name in self.as_dict():
            setattr(self, name, 0)
