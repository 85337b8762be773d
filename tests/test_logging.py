"""
Tests for the logging module.

This test module validates:
- JSON-formatted structured logging output
- Logger configuration from LoggingConfig
- Log level handling and debug mode
- Extra fields in log entries
"""

from __future__ import annotations

import json
import logging
import sys
from collections.abc import Iterator
from io import StringIO

import pytest

from mcp_smarthome.config import LoggingConfig
from mcp_smarthome.logging import JSONFormatter, get_logger, setup_logging

# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture(autouse=True)
def _cleanup_loggers() -> Iterator[None]:
    """Clean up loggers after each test (autouse fixture)."""
    yield
    logger = logging.getLogger("mcp_smarthome")
    logger.handlers.clear()
    logger.setLevel(logging.NOTSET)


def _make_record(msg: str = "Test message", **extra: object) -> logging.LogRecord:
    record = logging.LogRecord(
        name="test_logger",
        level=logging.INFO,
        pathname="test.py",
        lineno=10,
        msg=msg,
        args=(),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


# =============================================================================
# Tests for JSONFormatter
# =============================================================================


class TestJSONFormatter:
    """Tests for JSONFormatter class."""

    def test_format_basic_log_record(self) -> None:
        """Test formatting a basic log record as JSON."""
        output = json.loads(JSONFormatter().format(_make_record()))

        assert output["level"] == "INFO"
        assert output["logger"] == "test_logger"
        assert output["message"] == "Test message"
        assert "timestamp" in output

    def test_format_includes_extra_fields(self) -> None:
        output = json.loads(
            JSONFormatter().format(_make_record(fn="SwitchHome", duration_ms=12))
        )

        assert output["fn"] == "SwitchHome"
        assert output["duration_ms"] == 12

    def test_format_skips_none_extras(self) -> None:
        output = json.loads(JSONFormatter().format(_make_record(session_id=None)))

        assert "session_id" not in output

    def test_format_keeps_non_ascii_text(self) -> None:
        """Home names are often not ASCII and must stay readable."""
        line = JSONFormatter().format(_make_record(home="我的家"))

        assert "我的家" in line

    def test_format_with_exception(self) -> None:
        try:
            raise ValueError("boom")
        except ValueError:
            record = _make_record()
            record.exc_info = sys.exc_info()

        output = json.loads(JSONFormatter().format(record))

        assert "ValueError: boom" in output["exception"]


# =============================================================================
# Tests for setup_logging
# =============================================================================


class TestSetupLogging:
    """Tests for setup_logging."""

    def test_writes_json_to_given_stream(self) -> None:
        stream = StringIO()
        logger = setup_logging(level="INFO", stream=stream)

        get_logger("cloud.client").info("Hello", extra={"fn": "GetHomes"})

        entry = json.loads(stream.getvalue().strip())
        assert logger.name == "mcp_smarthome"
        assert entry["message"] == "Hello"
        assert entry["logger"] == "mcp_smarthome.cloud.client"
        assert entry["fn"] == "GetHomes"

    def test_level_filters_messages(self) -> None:
        stream = StringIO()
        setup_logging(level="WARNING", stream=stream)

        get_logger("test").info("hidden")
        get_logger("test").warning("shown")

        assert "hidden" not in stream.getvalue()
        assert "shown" in stream.getvalue()

    def test_config_overrides_keywords(self) -> None:
        """LoggingConfig wins over the keyword defaults."""
        stream = StringIO()
        config = LoggingConfig(level="error", json_format=False)
        logger = setup_logging(config, level="DEBUG", stream=stream)

        get_logger("test").error("plain text")

        assert logger.level == logging.ERROR
        assert " - ERROR - plain text" in stream.getvalue()

    def test_debug_mode_forces_debug_level(self) -> None:
        logger = setup_logging(
            LoggingConfig(level="error", debug_mode=True), stream=StringIO()
        )

        assert logger.level == logging.DEBUG

    def test_log_to_stdout_false_adds_no_handler(self) -> None:
        logger = setup_logging(LoggingConfig(log_to_stdout=False))

        assert logger.handlers == []

    def test_repeated_setup_does_not_duplicate_handlers(self) -> None:
        setup_logging(stream=StringIO())
        logger = setup_logging(stream=StringIO())

        assert len(logger.handlers) == 1


class TestGetLogger:
    """Tests for get_logger."""

    def test_adds_package_prefix(self) -> None:
        assert get_logger("server").name == "mcp_smarthome.server"

    def test_keeps_existing_prefix(self) -> None:
        assert get_logger("mcp_smarthome.tools.home").name == "mcp_smarthome.tools.home"
