"""Tests for structured logging and log message templates."""

import json
import logging
import sys

import pytest

from playmirror.infrastructure.observability import (
    LogMessages,
    LogTemplate,
    configure_logging,
    get_correlation_id,
    log_operation,
    set_correlation_id,
)
from playmirror.infrastructure.observability.logging import (
    CompactExceptionFormatter,
    CorrelationIdFilter,
    CustomJsonFormatter,
)


class TestCorrelationId:
    """Test correlation ID functionality."""

    def test_set_and_get_correlation_id(self) -> None:
        """Test setting and getting correlation ID."""
        result = set_correlation_id("test-123-abc")
        assert result == "test-123-abc"
        assert get_correlation_id() == "test-123-abc"

    def test_set_correlation_id_generates_uuid_when_none(self) -> None:
        """Test that setting None generates a UUID."""
        result = set_correlation_id(None)
        assert len(result) == 36
        assert get_correlation_id() == result

    def test_filter_attaches_correlation_id(self) -> None:
        set_correlation_id("req-42")
        record = logging.LogRecord("x", logging.INFO, __file__, 1, "msg", None, None)

        assert CorrelationIdFilter().filter(record)
        assert record.correlation_id == "req-42"  # type: ignore[attr-defined]


class TestLoggingConfiguration:
    """Test logging configuration."""

    def test_configure_logging_debug_level(self) -> None:
        configure_logging(log_level="DEBUG", json_format=False)
        assert logging.getLogger("test").getEffectiveLevel() <= logging.DEBUG

    def test_configure_logging_replaces_handlers(self) -> None:
        """Calling configure twice leaves exactly one handler on the root logger."""
        configure_logging(log_level="INFO", json_format=True)
        configure_logging(log_level="INFO", json_format=False)

        root_logger = logging.getLogger()
        assert len(root_logger.handlers) == 1
        assert isinstance(root_logger.handlers[0].formatter, CompactExceptionFormatter)

    def test_third_party_loggers_are_quieted(self) -> None:
        configure_logging(log_level="DEBUG")
        assert logging.getLogger("httpx").level == logging.WARNING
        assert logging.getLogger("aiosqlite").level == logging.WARNING


class TestFormatters:
    """Tests for the JSON and compact formatters."""

    def test_json_formatter_includes_correlation_id(self) -> None:
        formatter = CustomJsonFormatter("%(timestamp)s %(level)s %(name)s %(message)s")
        record = logging.LogRecord(
            "playmirror.sync", logging.WARNING, __file__, 10, "sync failed", None, None
        )
        record.correlation_id = "req-7"  # type: ignore[attr-defined]

        payload = json.loads(formatter.format(record))

        assert payload["message"] == "sync failed"
        assert payload["level"] == "WARNING"
        assert payload["logger"] == "playmirror.sync"
        assert payload["correlation_id"] == "req-7"

    def test_compact_formatter_prints_root_cause_first(self) -> None:
        try:
            try:
                raise ValueError("bad page")
            except ValueError as e:
                raise RuntimeError("sync aborted") from e
        except RuntimeError:
            exc_info = sys.exc_info()

        text = CompactExceptionFormatter().formatException(exc_info)

        lines = text.splitlines()
        assert lines[0] == "╰─► ValueError: bad page"
        assert "╰─► RuntimeError: sync aborted" in lines


class TestLogMessages:
    """Tests for the message templates."""

    def test_sync_failed_has_reason_and_default_hint(self) -> None:
        message = LogMessages.sync_failed("Playlists", "Spotify", "listCollections timed out")

        assert message.splitlines()[0] == "❌ Playlists Sync Failed"
        assert "├─ Reason: listCollections timed out" in message
        assert "Local data was kept" in message

    def test_braces_in_remote_data_survive(self) -> None:
        message = LogMessages.resolution_miss("Song {feat. X}", None)

        assert "Song {feat. X}" in message

    def test_sync_completed_counts(self) -> None:
        message = LogMessages.sync_completed("Playlists", added=1, updated=2, removed=3)

        assert "Added: 1" in message
        assert "└─ Removed: 3" in message

    def test_template_reports_missing_placeholder(self) -> None:
        template = LogTemplate(icon="i", title="T", fields={"Value": "{missing}"})

        assert "<missing:" in template.format()


class TestLogOperation:
    """Tests for the log_operation helper."""

    @pytest.mark.asyncio
    async def test_logs_start_and_completion(self, caplog: pytest.LogCaptureFixture) -> None:
        logger = logging.getLogger("playmirror.test.ops")
        with caplog.at_level(logging.INFO, logger="playmirror.test.ops"):
            async with log_operation(logger, "catalog.force_sync"):
                pass

        messages = [r.getMessage() for r in caplog.records]
        assert messages == ["catalog.force_sync.started", "catalog.force_sync.completed"]

    @pytest.mark.asyncio
    async def test_failure_is_logged_and_reraised(self, caplog: pytest.LogCaptureFixture) -> None:
        logger = logging.getLogger("playmirror.test.ops")
        with caplog.at_level(logging.INFO, logger="playmirror.test.ops"):
            with pytest.raises(RuntimeError):
                async with log_operation(logger, "catalog.force_sync"):
                    raise RuntimeError("boom")

        failed = caplog.records[-1]
        assert failed.getMessage() == "catalog.force_sync.failed"
        assert failed.error_type == "RuntimeError"  # type: ignore[attr-defined]
