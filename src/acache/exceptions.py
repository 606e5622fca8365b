"""
Custom exception hierarchy for the account cache.

All exceptions inherit from AccountCacheError, which provides optional context
for structured error handling and logging.
"""

from __future__ import annotations

from typing import Any


class AccountCacheError(Exception):
    """Base exception for all account cache errors.

    Attributes:
        message: Human-readable error message.
        context: Optional structured context for logging/debugging.
    """

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        if self.context:
            ctx_str = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
            return f"{self.message} ({ctx_str})"
        return self.message

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, context={self.context!r})"


class ConfigurationError(AccountCacheError):
    """Raised when configuration is invalid or missing."""

    pass


class InvalidKeyError(AccountCacheError, ValueError):
    """Raised when a public key is not a valid base58 account address.

    Context should include:
        - key: The rejected input
    """

    pass


class OriginError(AccountCacheError):
    """Raised when the origin could not produce an account for a key.

    Cached as the key's outcome, so repeated reads surface the same error
    until the key is cleared.

    Context should include:
        - key: The public key being fetched
        - source: The origin (e.g., "rpc")
        - status_code: HTTP status code if applicable
    """

    pass


class StoreError(AccountCacheError):
    """Raised when a durable store operation fails.

    Context should include:
        - operation: get, put, delete, clear or open
        - key: The public key, if the operation targets one
        - table: The store table
    """

    pass


class DecodeError(AccountCacheError):
    """Raised when a decoder fails on a raw account.

    Only the load that asked for the decoder sees this error; the raw cached
    account is unaffected.

    Context should include:
        - decoder: The decoder name
        - key: The public key of the account
    """

    pass


class UnknownDecoderError(DecodeError):
    """Raised when a load names a decoder that is not registered."""

    pass
