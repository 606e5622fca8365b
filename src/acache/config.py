"""
Configuration management using pydantic-settings.

Loads configuration from environment variables and .env files.
Validates fields and provides typed access to settings.
"""

from __future__ import annotations

import math
from functools import lru_cache
from pathlib import Path
from typing import Literal
from urllib.parse import urlsplit, urlunsplit

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Solana RPC nodes reject getMultipleAccounts with more keys than this
RPC_MAX_KEYS_LIMIT = 100


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Optional:
        RPC_URL: Solana JSON-RPC endpoint used as the origin
        RPC_COMMITMENT: Commitment level for account reads
        RPC_TIMEOUT_SECONDS: Per-request HTTP timeout
        RPC_MAX_KEYS_PER_REQUEST: Keys per getMultipleAccounts call
        MAX_BATCH_SIZE: Upper bound on keys per coalesced batch
        CACHE_DIR: Directory for the durable store
        STORE_FILENAME: SQLite database file name inside CACHE_DIR
        STORE_TABLE: Table holding cached accounts
        DEFAULT_MAX_AGE_SECONDS: Default freshness tolerance (unset = unbounded)
        LOG_LEVEL: Logging level
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Origin
    RPC_URL: str = Field(
        default="https://api.mainnet-beta.solana.com",
        description="Solana JSON-RPC endpoint",
    )
    RPC_COMMITMENT: Literal["processed", "confirmed", "finalized"] = Field(
        default="confirmed", description="Commitment level for account reads"
    )
    RPC_TIMEOUT_SECONDS: float = Field(
        default=30.0, gt=0.0, description="HTTP timeout per RPC request"
    )
    RPC_MAX_KEYS_PER_REQUEST: int = Field(
        default=RPC_MAX_KEYS_LIMIT,
        ge=1,
        le=RPC_MAX_KEYS_LIMIT,
        description="Keys per getMultipleAccounts request",
    )

    # Coalescing
    MAX_BATCH_SIZE: int | None = Field(
        default=None, ge=1, description="Maximum keys per coalesced batch"
    )

    # Durable store
    CACHE_DIR: Path = Field(default=Path(".cache"), description="Cache directory")
    STORE_FILENAME: str = Field(
        default="accounts.db", description="SQLite file name inside CACHE_DIR"
    )
    STORE_TABLE: str = Field(default="accounts", description="Store table name")

    # Freshness
    DEFAULT_MAX_AGE_SECONDS: float | None = Field(
        default=None, ge=0.0, description="Default freshness tolerance in seconds"
    )

    # Logging
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Logging level"
    )

    @field_validator("RPC_URL")
    @classmethod
    def validate_rpc_url(cls, v: str) -> str:
        """Validate that RPC_URL is an http(s) URL."""
        scheme = urlsplit(v).scheme
        if scheme not in ("http", "https"):
            raise ValueError("RPC_URL must be an http:// or https:// URL")
        return v

    @field_validator("STORE_TABLE")
    @classmethod
    def validate_store_table(cls, v: str) -> str:
        """Validate that STORE_TABLE is a plain SQL identifier."""
        if not v.isidentifier():
            raise ValueError("STORE_TABLE must be a valid identifier")
        return v

    @property
    def store_path(self) -> Path:
        """Full path of the SQLite database file."""
        return self.CACHE_DIR / self.STORE_FILENAME

    @property
    def default_max_age(self) -> float:
        """Default freshness tolerance, math.inf when unset."""
        if self.DEFAULT_MAX_AGE_SECONDS is None:
            return math.inf
        return self.DEFAULT_MAX_AGE_SECONDS

    def ensure_directories(self) -> None:
        """Create the cache directory if it doesn't exist."""
        self.CACHE_DIR.mkdir(parents=True, exist_ok=True)

    def redacted_display(self) -> dict[str, str | int | float | None]:
        """Return settings with the RPC URL query string redacted for display."""

        def redact_url(url: str) -> str:
            # Hosted RPC providers put API keys in the query string
            parts = urlsplit(url)
            if not parts.query:
                return url
            return urlunsplit(parts._replace(query="***"))

        return {
            "RPC_URL": redact_url(self.RPC_URL),
            "RPC_COMMITMENT": self.RPC_COMMITMENT,
            "RPC_TIMEOUT_SECONDS": self.RPC_TIMEOUT_SECONDS,
            "RPC_MAX_KEYS_PER_REQUEST": self.RPC_MAX_KEYS_PER_REQUEST,
            "MAX_BATCH_SIZE": self.MAX_BATCH_SIZE,
            "CACHE_DIR": str(self.CACHE_DIR),
            "STORE_FILENAME": self.STORE_FILENAME,
            "STORE_TABLE": self.STORE_TABLE,
            "DEFAULT_MAX_AGE_SECONDS": self.DEFAULT_MAX_AGE_SECONDS,
            "LOG_LEVEL": self.LOG_LEVEL,
        }


@lru_cache
def get_settings() -> Settings:
    """Get cached settings singleton.

    Returns:
        Settings instance loaded from environment.

    Raises:
        ValidationError: If settings are invalid.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache (useful for testing)."""
    get_settings.cache_clear()
