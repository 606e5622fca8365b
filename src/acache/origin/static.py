"""In-memory origin serving a fixed mapping of accounts."""

from __future__ import annotations

from typing import Mapping, Sequence

from acache.exceptions import OriginError
from acache.origin.base import OriginSource
from acache.types import Item, Outcome, PublicKey


class StaticOrigin(OriginSource):
    """Origin backed by a dict, recording every batch it receives.

    Values may be accounts, None (absent) or exceptions, which become that
    key's failure outcome. Keys missing from the mapping are absent.
    """

    def __init__(self, accounts: Mapping[PublicKey | str, Item | BaseException] | None = None) -> None:
        self._accounts: dict[str, Item | BaseException] = {}
        for key, value in (accounts or {}).items():
            self.set(key, value)
        self.calls: list[list[PublicKey]] = []

    @property
    def source_name(self) -> str:
        return "static"

    @property
    def fetched_keys(self) -> list[PublicKey]:
        """Every key requested so far, across all calls."""
        return [key for call in self.calls for key in call]

    def set(self, key: PublicKey | str, value: Item | BaseException) -> None:
        self._accounts[str(PublicKey.coerce(key))] = value

    async def fetch_many(self, keys: Sequence[PublicKey]) -> list[Outcome]:
        self.calls.append(list(keys))
        outcomes: list[Outcome] = []
        for key in keys:
            value = self._accounts.get(str(key))
            if isinstance(value, OriginError):
                outcomes.append(Outcome.failure(value))
            elif isinstance(value, BaseException):
                outcomes.append(Outcome.failure(OriginError(
                    str(value), context={"key": str(key), "source": self.source_name}
                )))
            else:
                outcomes.append(Outcome.success(value))
        return outcomes
