"""
Account cache: a request-coalescing, freshness-aware read-through cache for
Solana accounts, backed by SQLite and a JSON-RPC origin.
"""

from acache.cache import AccountCache, MaxAgePolicy, RequestCoalescer, TieredCache
from acache.exceptions import (
    AccountCacheError,
    DecodeError,
    OriginError,
    StoreError,
    UnknownDecoderError,
)
from acache.loader import ParsedAccountLoader
from acache.types import UNBOUNDED, AccountInfo, PublicKey

__version__ = "0.1.0"

__all__ = [
    "UNBOUNDED",
    "AccountCache",
    "AccountCacheError",
    "AccountInfo",
    "DecodeError",
    "MaxAgePolicy",
    "OriginError",
    "ParsedAccountLoader",
    "PublicKey",
    "RequestCoalescer",
    "StoreError",
    "TieredCache",
    "UnknownDecoderError",
    "__version__",
]
