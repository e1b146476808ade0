"""Tests for structured logging configuration."""

import json
import logging
import sys
from unittest.mock import patch

from ratekeeper.app.core.logging import (
    JSONFormatter,
    ContextFilter,
    get_logger,
    get_logging_config,
    get_log_context,
    setup_logging,
)


def make_record(msg="Test message", level=logging.INFO, exc_info=None):
    return logging.LogRecord(
        name="test",
        level=level,
        pathname="test.py",
        lineno=1,
        msg=msg,
        args=(),
        exc_info=exc_info,
    )


class TestJSONFormatter:
    """Test JSON formatter for structured logging."""

    def test_basic_json_format(self):
        """Test basic JSON formatting."""
        data = json.loads(JSONFormatter().format(make_record()))

        assert data["level"] == "INFO"
        assert data["logger"] == "test"
        assert data["message"] == "Test message"
        assert "timestamp" in data
        assert data["source"]["file"] == "test.py"
        assert data["source"]["line"] == 1

    def test_json_format_with_context(self):
        """Test JSON formatting with rate limit context fields."""
        record = make_record("Rate limit exceeded")
        record.rate_limit_key = "rl:ip:10.0.0.1|/api/x"
        record.path = "/api/x"
        record.storage = "memory"
        record.detection = "ip"

        data = json.loads(JSONFormatter().format(record))

        assert data["rate_limit_key"] == "rl:ip:10.0.0.1|/api/x"
        assert data["path"] == "/api/x"
        assert data["storage"] == "memory"
        assert data["detection"] == "ip"
        assert "extra" not in data

    def test_json_format_with_extra_fields(self):
        """Test JSON formatting with extra custom fields."""
        record = make_record("Rejected")
        record.limit = 10
        record.retry_after = 42

        data = json.loads(JSONFormatter().format(record))

        assert data["extra"]["limit"] == 10
        assert data["extra"]["retry_after"] == 42

    def test_json_format_with_exception(self):
        """Test JSON formatting with exception info."""
        try:
            raise ValueError("Test error")
        except ValueError:
            record = make_record("Error occurred", logging.ERROR, sys.exc_info())

        data = json.loads(JSONFormatter().format(record))

        exception_text = "".join(data["exception"])
        assert "ValueError" in exception_text
        assert "Test error" in exception_text

    def test_json_format_unicode(self):
        """Test JSON formatting with unicode characters."""
        data = json.loads(JSONFormatter().format(make_record("路径 /api/数据 🌍")))
        assert "路径 /api/数据 🌍" in data["message"]

    def test_placeholder_context_is_omitted(self):
        """Context fields set to None or "-" are left out."""
        record = make_record()
        ContextFilter().filter(record)
        record.path = "-"

        data = json.loads(JSONFormatter().format(record))

        for field in JSONFormatter.CONTEXT_FIELDS:
            assert field not in data


class TestContextFilter:
    """Test context filter for adding default fields."""

    def test_adds_default_fields(self):
        """Test that context filter adds default fields."""
        record = make_record()

        assert ContextFilter().filter(record) is True
        for field in ("request_id", "rate_limit_key", "path", "client_ip", "detection", "storage"):
            assert hasattr(record, field)

    def test_preserves_existing_values(self):
        """Test that context filter preserves existing values."""
        record = make_record()
        record.rate_limit_key = "rl:user:alice|/x"

        ContextFilter().filter(record)

        assert record.rate_limit_key == "rl:user:alice|/x"


class TestGetLoggingConfig:
    """Test logging configuration generation."""

    def test_default_text_format(self):
        """Test default text format configuration."""
        with patch("ratekeeper.app.core.logging.settings") as mock_settings:
            mock_settings.log_format = "text"
            mock_settings.log_level = "INFO"

            config = get_logging_config()

        assert "standard" in config["formatters"]
        assert "structured" in config["formatters"]
        assert "json" not in config["formatters"]
        assert config["handlers"]["console"]["formatter"] == "standard"

    def test_structured_format(self):
        """Test structured format configuration."""
        with patch("ratekeeper.app.core.logging.settings") as mock_settings:
            mock_settings.log_format = "structured"
            mock_settings.log_level = "DEBUG"

            config = get_logging_config()

        assert config["handlers"]["console"]["formatter"] == "structured"
        assert config["handlers"]["console"]["level"] == "DEBUG"

    def test_json_format(self):
        """Test JSON format configuration."""
        with patch("ratekeeper.app.core.logging.settings") as mock_settings:
            mock_settings.log_format = "json"
            mock_settings.log_level = "WARNING"

            config = get_logging_config()

        assert "json" in config["formatters"]
        assert config["handlers"]["console"]["formatter"] == "json"
        assert config["handlers"]["console"]["level"] == "WARNING"

    def test_context_filter_added(self):
        """Test that context filter is added to handlers."""
        config = get_logging_config()

        assert "context" in config["filters"]
        assert "context" in config["handlers"]["console"]["filters"]
        assert "ratekeeper" in config["loggers"]


class TestGetLogger:
    """Test get_logger function."""

    def test_get_logger_default_name(self):
        assert get_logger().name == "ratekeeper"

    def test_get_logger_custom_name(self):
        assert get_logger("custom.module").name == "custom.module"


class TestGetLogContext:
    """Test get_log_context helper function."""

    def test_basic_context(self):
        context = get_log_context(
            rate_limit_key="rl:ip:1|/x", path="/x", storage="durable"
        )

        assert context == {
            "rate_limit_key": "rl:ip:1|/x",
            "path": "/x",
            "storage": "durable",
        }

    def test_context_filters_none(self):
        context = get_log_context(request_id=None, path="/x", limit=None)

        assert "request_id" not in context
        assert "limit" not in context
        assert context["path"] == "/x"

    def test_context_with_extra(self):
        context = get_log_context(path="/x", limit=5, retry_after=3)

        assert context["limit"] == 5
        assert context["retry_after"] == 3


class TestIntegration:
    """Integration tests for logging system."""

    def test_json_logging_output(self, capsys):
        """Test actual JSON logging output."""
        with patch("ratekeeper.app.core.logging.settings") as mock_settings:
            mock_settings.log_format = "json"
            mock_settings.log_level = "INFO"

            setup_logging()
            logger = get_logger("ratekeeper.integration")

            logger.info(
                "Integration test",
                extra=get_log_context(
                    rate_limit_key="rl:ip:10.0.0.1|/api/x", storage="memory", limit=3
                ),
            )

            output = capsys.readouterr().out

        data = json.loads(output.strip())

        assert data["level"] == "INFO"
        assert data["logger"] == "ratekeeper.integration"
        assert data["message"] == "Integration test"
        assert data["rate_limit_key"] == "rl:ip:10.0.0.1|/api/x"
        assert data["storage"] == "memory"
        assert data["extra"]["limit"] == 3
