"""
Typed access to cached accounts.

Wraps an account source with a fixed registry of named decoders. A load may
ask for the raw account or for the output of one decoder; decoding never
touches the cached raw account.
"""

from __future__ import annotations

import asyncio
from types import MappingProxyType
from typing import Any, Awaitable, Iterable, Mapping, Protocol, Union

from acache.exceptions import DecodeError, UnknownDecoderError
from acache.types import Decoder, Item, PublicKey

ParsedRequest = Union[
    PublicKey,
    str,
    tuple[Union[PublicKey, str], Union[str, None]],
    tuple[Union[PublicKey, str], Union[str, None], float],
]


class AccountSource(Protocol):
    """What the parsed loader needs from the cache it wraps."""

    def load(self, key: PublicKey | str, max_age: float = ...) -> Awaitable[Item]: ...

    def clear(self, key: PublicKey | str) -> Any: ...

    def clear_all(self) -> Any: ...

    def prime(self, key: PublicKey | str, value: Item | BaseException) -> Any: ...


class ParsedAccountLoader:
    """Loads accounts and decodes them with registered decoders.

    Args:
        source: Account cache (or coalescer) to load raw accounts from.
        decoders: Mapping of decoder name to ``decoder(account, key)``.
            Copied at construction; the registry cannot change afterwards.
    """

    def __init__(self, source: AccountSource, decoders: Mapping[str, Decoder] | None = None) -> None:
        self._source = source
        self._decoders: Mapping[str, Decoder] = MappingProxyType(dict(decoders or {}))

    @property
    def decoders(self) -> Mapping[str, Decoder]:
        """Read-only view of the decoder registry."""
        return self._decoders

    def has_decoder(self, name: str) -> bool:
        return name in self._decoders

    def _get_decoder(self, name: str) -> Decoder:
        try:
            return self._decoders[name]
        except KeyError:
            raise UnknownDecoderError(
                "Unknown decoder", context={"decoder": name, "known": sorted(self._decoders)}
            ) from None

    async def load(
        self,
        key: PublicKey | str,
        decoder: str | None = None,
        max_age: float | None = None,
    ) -> Any:
        """Load a key, returning the decoded account, the raw account, or None.

        Without a decoder the raw account is returned. An absent account is
        None and the decoder is not called for it.

        Raises:
            UnknownDecoderError: If ``decoder`` is not registered.
            DecodeError: If the decoder fails on the account.
        """
        key = PublicKey.coerce(key)
        parse = self._get_decoder(decoder) if decoder is not None else None

        if max_age is None:
            account = await self._source.load(key)
        else:
            account = await self._source.load(key, max_age)

        if account is None or parse is None:
            return account

        try:
            return parse(account, key)
        except DecodeError:
            raise
        except Exception as e:
            raise DecodeError(
                "Decoder failed",
                context={"decoder": decoder, "key": str(key), "error": str(e)},
            ) from e

    async def load_many(self, requests: Iterable[ParsedRequest]) -> list[Any]:
        """Load several keys concurrently.

        Each request is a key, ``(key, decoder)`` or ``(key, decoder, max_age)``.
        Returns one entry per request, in order; a failed request yields its
        exception at that position instead of failing the call.
        """
        return list(await asyncio.gather(*(self._settle(request) for request in requests)))

    async def _settle(self, request: ParsedRequest) -> Any:
        try:
            if isinstance(request, tuple):
                return await self.load(*request)
            return await self.load(request)
        except Exception as e:
            return e

    def clear(self, key: PublicKey | str) -> ParsedAccountLoader:
        """Clear the cached account for a key. Returns itself for chaining."""
        self._source.clear(key)
        return self

    def clear_all(self) -> ParsedAccountLoader:
        """Clear every cached account. Returns itself for chaining."""
        self._source.clear_all()
        return self

    def prime(self, key: PublicKey | str, value: Item | BaseException) -> ParsedAccountLoader:
        """Seed the cache for a key not yet requested. No-op if it has an entry."""
        self._source.prime(key, value)
        return self
