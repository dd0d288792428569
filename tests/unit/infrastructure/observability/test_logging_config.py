"""Tests for structured logging."""

import json
import logging

import pytest

from coverspot.infrastructure.observability.logging import (
    CompactExceptionFormatter,
    CustomJsonFormatter,
    LogContextFilter,
    configure_logging,
    cover_job_context,
    get_correlation_id,
    set_correlation_id,
)


@pytest.fixture(autouse=True)
def restore_root_logger():
    root = logging.getLogger()
    handlers = root.handlers[:]
    level = root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


def _record(msg: str = "msg", args: tuple = ()) -> logging.LogRecord:
    return logging.LogRecord("coverspot.test", logging.WARNING, __file__, 42, msg, args, None)


class TestCorrelationId:
    """Test correlation ID functionality."""

    def test_set_and_get_correlation_id(self):
        """Test setting and getting correlation ID."""
        result = set_correlation_id("test-123-abc")
        assert result == "test-123-abc"
        assert get_correlation_id() == "test-123-abc"

    def test_set_correlation_id_generates_uuid_when_none(self):
        """Test that setting None generates a UUID."""
        result = set_correlation_id(None)
        assert len(result) == 36
        assert get_correlation_id() == result


class TestCoverJobContext:
    """Per-job identifier and correlation id."""

    def test_sets_and_restores(self):
        set_correlation_id("request-1")

        with cover_job_context("9780441172719") as job_id:
            assert job_id.startswith("cover-")
            assert get_correlation_id() == job_id
            record = _record()
            LogContextFilter().filter(record)
            assert record.cover_identifier == "9780441172719"
            assert record.cover_prefix == "[9780441172719] "

        assert get_correlation_id() == "request-1"
        record = _record()
        LogContextFilter().filter(record)
        assert record.cover_identifier == ""
        assert record.cover_prefix == ""

    def test_restores_on_error(self):
        set_correlation_id("request-2")
        with pytest.raises(RuntimeError):
            with cover_job_context("978"):
                raise RuntimeError("boom")
        assert get_correlation_id() == "request-2"


class TestLogContextFilter:
    def test_filter_adds_correlation_id(self):
        set_correlation_id("cid-1")
        record = _record()
        assert LogContextFilter().filter(record) is True
        assert record.correlation_id == "cid-1"


class TestLoggingConfiguration:
    """Test logging configuration."""

    def test_configure_logging_debug_level(self):
        configure_logging(log_level="DEBUG", json_format=False, app_name="test-app")
        assert logging.getLogger("test").getEffectiveLevel() <= logging.DEBUG

    def test_unknown_level_falls_back_to_info(self):
        configure_logging(log_level="chatty")
        assert logging.getLogger().level == logging.INFO

    def test_configure_logging_replaces_handlers(self):
        configure_logging(log_level="INFO", json_format=False)
        configure_logging(log_level="INFO", json_format=False)
        assert len(logging.getLogger().handlers) == 1

    def test_json_format_uses_json_formatter(self):
        configure_logging(log_level="INFO", json_format=True)
        handler = logging.getLogger().handlers[0]
        assert isinstance(handler.formatter, CustomJsonFormatter)

    def test_text_format_uses_compact_formatter(self):
        configure_logging(log_level="INFO", json_format=False)
        handler = logging.getLogger().handlers[0]
        assert isinstance(handler.formatter, CompactExceptionFormatter)

    def test_noisy_libraries_quietened(self):
        configure_logging(log_level="DEBUG")
        assert logging.getLogger("httpx").level == logging.WARNING
        assert logging.getLogger("PIL").level == logging.WARNING


class TestFormatters:
    def test_json_output_contains_fields(self):
        formatter = CustomJsonFormatter("%(timestamp)s %(level)s %(name)s %(message)s")
        record = _record("hello %s", ("world",))
        record.correlation_id = "cid-2"
        record.cover_identifier = "978"
        record.cover_prefix = "[978] "

        data = json.loads(formatter.format(record))

        assert data["message"] == "hello world"
        assert data["level"] == "WARNING"
        assert data["logger"] == "coverspot.test"
        assert data["correlation_id"] == "cid-2"
        assert data["cover_identifier"] == "978"
        assert "cover_prefix" not in data

    def test_json_output_omits_empty_context(self):
        formatter = CustomJsonFormatter("%(timestamp)s %(level)s %(name)s %(message)s")
        record = _record()
        LogContextFilter().filter(record)
        record.correlation_id = ""

        data = json.loads(formatter.format(record))

        assert "correlation_id" not in data
        assert "cover_identifier" not in data

    def test_text_format_without_filter(self):
        formatter = CompactExceptionFormatter(fmt="%(cover_prefix)s%(message)s")
        assert formatter.format(_record("plain")) == "plain"

    def test_compact_exception_shows_root_cause_first(self):
        formatter = CompactExceptionFormatter()
        try:
            try:
                raise ValueError("inner")
            except ValueError as e:
                raise RuntimeError("outer") from e
        except RuntimeError as e:
            text = formatter.formatException((type(e), e, e.__traceback__))

        lines = [line for line in text.splitlines() if line.startswith("╰─►")]
        assert lines == ["╰─► ValueError: inner", "╰─► RuntimeError: outer"]
