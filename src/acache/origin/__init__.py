"""
Origin sources the cache falls back to.

- OriginSource: abstract batch fetch contract
- RPCOrigin: Solana JSON-RPC getMultipleAccounts
- StaticOrigin: fixed in-memory mapping, for tests and offline use
"""

from acache.origin.base import OriginSource
from acache.origin.rpc import RPCOrigin
from acache.origin.static import StaticOrigin

__all__ = ["OriginSource", "RPCOrigin", "StaticOrigin"]
