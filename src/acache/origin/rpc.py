"""
Solana JSON-RPC origin.

Fetches accounts with getMultipleAccounts, splitting key lists into chunks
the RPC node accepts and requesting the chunks concurrently.
"""

from __future__ import annotations

import asyncio
import itertools
from typing import Any, Sequence

import httpx
from tenacity import (
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from acache.config import RPC_MAX_KEYS_LIMIT, Settings
from acache.exceptions import OriginError
from acache.logging import get_logger
from acache.origin.base import OriginSource
from acache.types import AccountInfo, Outcome, PublicKey

logger = get_logger(__name__)

RETRYABLE_STATUS_CODES = frozenset({429, 500, 502, 503, 504})


def _is_retryable(exc: BaseException) -> bool:
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code in RETRYABLE_STATUS_CODES
    return isinstance(exc, httpx.TransportError)


class RPCOrigin(OriginSource):
    """Origin reading accounts from a Solana JSON-RPC node."""

    def __init__(
        self,
        url: str,
        *,
        commitment: str = "confirmed",
        max_keys_per_request: int = RPC_MAX_KEYS_LIMIT,
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the RPC origin.

        Args:
            url: JSON-RPC endpoint.
            commitment: Commitment level sent with every request.
            max_keys_per_request: Keys per getMultipleAccounts call.
            timeout: HTTP timeout in seconds.
            client: Optional preconfigured client; it is not closed by close().
        """
        if not 1 <= max_keys_per_request <= RPC_MAX_KEYS_LIMIT:
            raise ValueError(
                f"max_keys_per_request must be between 1 and {RPC_MAX_KEYS_LIMIT}"
            )
        self.url = url
        self.commitment = commitment
        self.max_keys_per_request = max_keys_per_request
        self.timeout = timeout
        self._client = client
        self._owns_client = client is None
        self._request_ids = itertools.count(1)

    @classmethod
    def from_settings(cls, settings: Settings) -> RPCOrigin:
        return cls(
            settings.RPC_URL,
            commitment=settings.RPC_COMMITMENT,
            max_keys_per_request=settings.RPC_MAX_KEYS_PER_REQUEST,
            timeout=settings.RPC_TIMEOUT_SECONDS,
        )

    @property
    def source_name(self) -> str:
        return "rpc"

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                headers={"Content-Type": "application/json"},
                timeout=self.timeout,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client if this origin created it."""
        if self._client and self._owns_client:
            await self._client.aclose()
            self._client = None

    @retry(
        retry=retry_if_exception(_is_retryable),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=5),
        reraise=True,
    )
    async def _post(self, payload: dict[str, Any]) -> dict[str, Any]:
        """POST a JSON-RPC request with retries on transient failures."""
        client = await self._get_client()
        response = await client.post(self.url, json=payload)
        if response.status_code == 429:
            logger.warning("Rate limited by RPC node, backing off", url=self.url)
        response.raise_for_status()
        return response.json()

    def _chunk_failure(self, keys: Sequence[PublicKey], message: str, **context: Any) -> list[Outcome]:
        return [
            Outcome.failure(OriginError(
                message,
                context={"key": str(key), "source": self.source_name, **context},
            ))
            for key in keys
        ]

    async def _fetch_chunk(self, keys: Sequence[PublicKey]) -> list[Outcome]:
        payload = {
            "jsonrpc": "2.0",
            "id": next(self._request_ids),
            "method": "getMultipleAccounts",
            "params": [
                [str(key) for key in keys],
                {"encoding": "base64", "commitment": self.commitment},
            ],
        }

        try:
            body = await self._post(payload)
        except httpx.HTTPStatusError as e:
            logger.warning(
                "getMultipleAccounts failed",
                status_code=e.response.status_code,
                keys=len(keys),
            )
            return self._chunk_failure(
                keys, "RPC request failed", status_code=e.response.status_code
            )
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("getMultipleAccounts failed", error=str(e), keys=len(keys))
            return self._chunk_failure(keys, str(e) or type(e).__name__)

        if "error" in body:
            error = body["error"] or {}
            return self._chunk_failure(
                keys,
                error.get("message", "RPC error"),
                rpc_code=error.get("code"),
            )

        try:
            values = body["result"]["value"]
        except (KeyError, TypeError):
            return self._chunk_failure(keys, "Malformed getMultipleAccounts response")
        if not isinstance(values, list) or len(values) != len(keys):
            return self._chunk_failure(keys, "getMultipleAccounts returned wrong number of accounts")

        outcomes: list[Outcome] = []
        for key, value in zip(keys, values):
            if value is None:
                outcomes.append(Outcome.success(None))
                continue
            try:
                outcomes.append(Outcome.success(AccountInfo.from_rpc(value)))
            except (KeyError, TypeError, ValueError) as e:
                outcomes.append(Outcome.failure(OriginError(
                    "Malformed account in RPC response",
                    context={"key": str(key), "source": self.source_name, "error": str(e)},
                )))
        return outcomes

    async def fetch_many(self, keys: Sequence[PublicKey]) -> list[Outcome]:
        if not keys:
            return []

        size = self.max_keys_per_request
        chunks = [keys[i:i + size] for i in range(0, len(keys), size)]
        logger.debug("Fetching accounts from RPC", keys=len(keys), requests=len(chunks))

        results = await asyncio.gather(*(self._fetch_chunk(chunk) for chunk in chunks))
        return [outcome for chunk_outcomes in results for outcome in chunk_outcomes]
