"""
Core types for the account cache.

This module defines the fundamental data structures used throughout the system:
- PublicKey: canonical, validated account address
- AccountInfo: raw account record as returned by the origin
- CacheEntry: a value tagged with the time it was produced
- Outcome: tagged per-key success/failure result of a batch
- Helper functions for ID generation
"""

from __future__ import annotations

import base64
import math
from dataclasses import dataclass
from typing import Any, Callable, Generic, TypeVar, Union

from uuid6 import uuid7

from acache.exceptions import InvalidKeyError

T = TypeVar("T")

BASE58_ALPHABET = frozenset("123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz")

# A 32-byte key encodes to 32-44 base58 characters
MIN_KEY_LENGTH = 32
MAX_KEY_LENGTH = 44

# Any cached value is acceptable, whatever its age
UNBOUNDED = math.inf


def generate_id(prefix: str = "") -> str:
    """Generate a time-ordered unique ID using UUID7.

    Args:
        prefix: Optional prefix for the ID (e.g., "batch").

    Returns:
        A unique ID string, optionally prefixed.
    """
    uid = str(uuid7())
    return f"{prefix}_{uid}" if prefix else uid


def validate_max_age(max_age: float) -> float:
    """Check a freshness tolerance and return it as a float.

    Raises:
        ValueError: If the tolerance is not a number, or is negative or NaN.
    """
    if isinstance(max_age, bool) or not isinstance(max_age, (int, float)):
        raise ValueError(f"max_age must be a number of seconds, got {max_age!r}")
    max_age = float(max_age)
    if math.isnan(max_age) or max_age < 0:
        raise ValueError(f"max_age must be a non-negative number of seconds, got {max_age!r}")
    return max_age


@dataclass(frozen=True, slots=True)
class PublicKey:
    """Account address in its canonical base58 form."""

    value: str

    def __post_init__(self) -> None:
        if not isinstance(self.value, str):
            raise InvalidKeyError(
                "Public key must be a base58 string", context={"key": self.value}
            )
        if not MIN_KEY_LENGTH <= len(self.value) <= MAX_KEY_LENGTH:
            raise InvalidKeyError(
                "Public key has invalid length", context={"key": self.value}
            )
        if not BASE58_ALPHABET.issuperset(self.value):
            raise InvalidKeyError(
                "Public key contains non-base58 characters", context={"key": self.value}
            )

    @classmethod
    def coerce(cls, key: PublicKey | str) -> PublicKey:
        """Accept either a PublicKey or its string form."""
        if isinstance(key, PublicKey):
            return key
        return cls(key)

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True, slots=True)
class AccountInfo:
    """Raw on-chain account."""

    data: bytes
    owner: str
    lamports: int
    executable: bool = False
    rent_epoch: int = 0
    space: int | None = None

    def to_dict(self) -> dict[str, Any]:
        """Convert to a JSON-safe dictionary (data as base64)."""
        return {
            "data": base64.b64encode(self.data).decode("ascii"),
            "owner": self.owner,
            "lamports": self.lamports,
            "executable": self.executable,
            "rent_epoch": self.rent_epoch,
            "space": self.space,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AccountInfo:
        """Create from a dictionary produced by to_dict()."""
        return cls(
            data=base64.b64decode(data["data"]),
            owner=data["owner"],
            lamports=int(data["lamports"]),
            executable=bool(data.get("executable", False)),
            rent_epoch=int(data.get("rent_epoch", 0)),
            space=data.get("space"),
        )

    @classmethod
    def from_rpc(cls, value: dict[str, Any]) -> AccountInfo:
        """Create from a getMultipleAccounts entry with base64 encoding.

        The RPC returns data as ``[payload, "base64"]``.
        """
        payload, encoding = value["data"]
        if encoding != "base64":
            raise ValueError(f"Unsupported account data encoding: {encoding}")
        return cls(
            data=base64.b64decode(payload),
            owner=value["owner"],
            lamports=int(value["lamports"]),
            executable=bool(value.get("executable", False)),
            rent_epoch=int(value.get("rentEpoch", 0)),
            space=value.get("space"),
        )


# None is the absence marker: the origin confirmed there is no account
Item = Union[AccountInfo, None]

Decoder = Callable[[AccountInfo, PublicKey], Any]

# Returns unix time in seconds
Clock = Callable[[], float]


@dataclass(frozen=True, slots=True)
class CacheEntry(Generic[T]):
    """A value together with the unix time it was produced."""

    value: T
    timestamp: float


@dataclass(frozen=True, slots=True)
class Outcome:
    """Per-key result of a batch: either an item or an error."""

    value: Item = None
    error: BaseException | None = None

    @classmethod
    def success(cls, value: Item) -> Outcome:
        return cls(value=value)

    @classmethod
    def failure(cls, error: BaseException) -> Outcome:
        return cls(error=error)

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> Item:
        """Return the value, raising the stored error for failures."""
        if self.error is not None:
            raise self.error
        return self.value
