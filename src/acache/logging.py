"""
Structured logging for the account cache.

Provides:
- Context variables for the cache instance and the batch being dispatched
- JSONFormatter for machine-readable logs to file
- RichHandler for pretty console output
- ContextLogger wrapper that attaches context to all log calls
- setup_logging() that configures both file and console handlers
- log_context() context manager for scoped context
- get_logger() factory
"""

from __future__ import annotations

import json
import logging
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Generator

from rich.console import Console
from rich.logging import RichHandler
from rich.text import Text

_cache_var: ContextVar[str | None] = ContextVar("cache", default=None)
_batch_id_var: ContextVar[str | None] = ContextVar("batch_id", default=None)


def get_cache_name() -> str | None:
    """Get the current cache instance name from context."""
    return _cache_var.get()


def get_batch_id() -> str | None:
    """Get the current batch ID from context."""
    return _batch_id_var.get()


@contextmanager
def log_context(
    cache: str | None = None,
    batch_id: str | None = None,
) -> Generator[None, None, None]:
    """Context manager for scoped logging context.

    Args:
        cache: Cache instance name to set in context.
        batch_id: Batch ID to set in context.

    Yields:
        None. Context variables are set for the duration of the context.
    """
    old_cache = _cache_var.get()
    old_batch_id = _batch_id_var.get()

    try:
        if cache is not None:
            _cache_var.set(cache)
        if batch_id is not None:
            _batch_id_var.set(batch_id)
        yield
    finally:
        _cache_var.set(old_cache)
        _batch_id_var.set(old_batch_id)


class JSONFormatter(logging.Formatter):
    """JSON formatter for machine-readable log files.

    Produces JSON Lines format with structured context.
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format a log record as JSON."""
        log_obj: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        cache = get_cache_name()
        batch_id = get_batch_id()

        if cache:
            log_obj["cache"] = cache
        if batch_id:
            log_obj["batch_id"] = batch_id

        if hasattr(record, "extra"):
            log_obj["extra"] = record.extra

        if record.exc_info:
            log_obj["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_obj, default=str)


class ContextRichHandler(RichHandler):
    """Rich handler that includes context in console output."""

    def get_level_text(self, record: logging.LogRecord) -> Text:
        """Override to add context prefix."""
        level_text = super().get_level_text(record)

        parts: list[str] = []
        cache = get_cache_name()
        batch_id = get_batch_id()

        if cache:
            parts.append(f"[cyan]{cache}[/cyan]")
        if batch_id:
            # UUID7 tail is the random part; keep it short
            parts.append(f"[dim]{batch_id[-8:]}[/dim]")

        if parts:
            prefix = " ".join(parts)
            return Text.from_markup(f"{level_text} {prefix}")

        return level_text


class ContextLogger:
    """Logger wrapper that automatically attaches context to log calls.

    Wraps a standard logger and adds context variables to all log calls.
    """

    def __init__(self, logger: logging.Logger) -> None:
        self._logger = logger

    def _log(
        self,
        level: int,
        msg: str,
        *args: Any,
        exc_info: bool = False,
        **kwargs: Any,
    ) -> None:
        """Internal logging method that adds context."""
        extra = kwargs.pop("extra", {})

        cache = get_cache_name()
        batch_id = get_batch_id()

        if cache:
            extra["cache"] = cache
        if batch_id:
            extra["batch_id"] = batch_id

        for key in list(kwargs.keys()):
            if key not in ("exc_info", "stack_info", "stacklevel"):
                extra[key] = kwargs.pop(key)

        self._logger.log(level, msg, *args, exc_info=exc_info, extra={"extra": extra})

    def debug(self, msg: str, *args: Any, **kwargs: Any) -> None:
        """Log debug message."""
        self._log(logging.DEBUG, msg, *args, **kwargs)

    def info(self, msg: str, *args: Any, **kwargs: Any) -> None:
        """Log info message."""
        self._log(logging.INFO, msg, *args, **kwargs)

    def warning(self, msg: str, *args: Any, **kwargs: Any) -> None:
        """Log warning message."""
        self._log(logging.WARNING, msg, *args, **kwargs)

    def error(self, msg: str, *args: Any, exc_info: bool = False, **kwargs: Any) -> None:
        """Log error message."""
        self._log(logging.ERROR, msg, *args, exc_info=exc_info, **kwargs)

    def exception(self, msg: str, *args: Any, **kwargs: Any) -> None:
        """Log exception with traceback."""
        self._log(logging.ERROR, msg, *args, exc_info=True, **kwargs)


_console: Console | None = None
_setup_done: bool = False


def get_console() -> Console:
    """Get the global rich console."""
    global _console
    if _console is None:
        _console = Console(stderr=True)
    return _console


def setup_logging(
    log_level: str = "INFO",
    log_file: Path | None = None,
    console_output: bool = True,
) -> None:
    """Set up logging with JSON file handler and rich console handler.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        log_file: Path to log file. If None, only console logging is enabled.
        console_output: Whether to enable console output.
    """
    global _setup_done

    root_logger = logging.getLogger("acache")
    root_logger.setLevel(getattr(logging, log_level.upper()))

    root_logger.handlers.clear()

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
        file_handler.setFormatter(JSONFormatter())
        file_handler.setLevel(logging.DEBUG)
        root_logger.addHandler(file_handler)

    if console_output:
        rich_handler = ContextRichHandler(
            console=get_console(),
            show_time=True,
            show_path=False,
            rich_tracebacks=True,
            tracebacks_show_locals=False,
            markup=True,
        )
        rich_handler.setLevel(getattr(logging, log_level.upper()))
        root_logger.addHandler(rich_handler)

    root_logger.propagate = False

    for noisy_logger in ["httpx", "httpcore", "aiosqlite", "asyncio"]:
        logging.getLogger(noisy_logger).setLevel(logging.WARNING)

    _setup_done = True


def get_logger(name: str) -> ContextLogger:
    """Get a context-aware logger.

    Args:
        name: Logger name (usually __name__).

    Returns:
        ContextLogger wrapper around the standard logger.
    """
    if not _setup_done:
        setup_logging()

    if not name.startswith("acache"):
        name = f"acache.{name}"

    return ContextLogger(logging.getLogger(name))
