"""Decoded access to cached accounts."""

from acache.loader.parsed import AccountSource, ParsedAccountLoader

__all__ = ["AccountSource", "ParsedAccountLoader"]
