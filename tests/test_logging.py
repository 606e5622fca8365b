"""
Tests for structured logging helpers.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

from acache.logging import (
    JSONFormatter,
    get_batch_id,
    get_cache_name,
    get_logger,
    log_context,
    setup_logging,
)


class TestLogContext:
    """Test scoped context variables."""

    def test_context_is_scoped(self) -> None:
        assert get_cache_name() is None

        with log_context(cache="accounts", batch_id="batch_1"):
            assert get_cache_name() == "accounts"
            assert get_batch_id() == "batch_1"
            with log_context(batch_id="batch_2"):
                assert get_cache_name() == "accounts"
                assert get_batch_id() == "batch_2"
            assert get_batch_id() == "batch_1"

        assert get_cache_name() is None
        assert get_batch_id() is None


class TestJSONLogging:
    """Test JSON lines written to a log file."""

    def test_records_carry_context_and_fields(self, temp_dir: Path) -> None:
        log_file = temp_dir / "logs" / "acache.jsonl"
        setup_logging("DEBUG", log_file=log_file, console_output=False)
        logger = get_logger("tests")

        with log_context(cache="accounts", batch_id="batch_abc"):
            logger.info("Batch resolved", keys=3)

        for handler in logging.getLogger("acache").handlers:
            handler.flush()
        record = json.loads(log_file.read_text().splitlines()[-1])

        assert record["level"] == "INFO"
        assert record["logger"] == "acache.tests"
        assert record["message"] == "Batch resolved"
        assert record["cache"] == "accounts"
        assert record["batch_id"] == "batch_abc"
        assert record["extra"]["keys"] == 3

        setup_logging("INFO")

    def test_formatter_without_context(self) -> None:
        record = logging.LogRecord("acache.x", logging.WARNING, __file__, 1, "plain", None, None)

        body = json.loads(JSONFormatter().format(record))

        assert body["message"] == "plain"
        assert "cache" not in body
