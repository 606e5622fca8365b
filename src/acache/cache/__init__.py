"""
Cache package.

- policy.py: freshness policies deciding if an entry satisfies a read
- coalescer.py: batching, deduplicating in-process loader
- tiered.py: durable store then origin resolution with write-back
- account_cache.py: AccountCache facade wiring the pieces together
"""

from acache.cache.account_cache import AccountCache
from acache.cache.coalescer import RequestCoalescer
from acache.cache.policy import FreshnessPolicy, MaxAgePolicy
from acache.cache.stats import CacheStats
from acache.cache.tiered import TieredCache

__all__ = [
    "AccountCache",
    "CacheStats",
    "FreshnessPolicy",
    "MaxAgePolicy",
    "RequestCoalescer",
    "TieredCache",
]
