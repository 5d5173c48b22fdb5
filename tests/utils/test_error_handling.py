"""
Tests for error handling utilities

Covers log_and_continue and log_and_return_default.
"""

import logging
from unittest.mock import Mock

import pytest

from devops_exporter.utils.error_handling import log_and_continue, log_and_return_default


@pytest.fixture
def mock_logger():
    return Mock(spec=logging.Logger)


class TestLogAndContinue:
    """Test log_and_continue function"""

    def test_logs_warning_with_context(self, mock_logger):
        """Test warning is logged with structured context"""
        error = ValueError("bad value")

        log_and_continue(mock_logger, error, {"project_id": "p1"}, "Build fetch")

        mock_logger.warning.assert_called_once()
        message = mock_logger.warning.call_args[0][0]
        extra = mock_logger.warning.call_args[1]["extra"]
        assert message == "Build fetch failed: bad value"
        assert extra["exception_class"] == "ValueError"
        assert extra["context"] == {"project_id": "p1"}

    def test_returns_none(self, mock_logger):
        assert log_and_continue(mock_logger, RuntimeError("x"), {}) is None

    def test_default_error_type(self, mock_logger):
        log_and_continue(mock_logger, RuntimeError("boom"), {})

        assert mock_logger.warning.call_args[0][0] == "Operation failed: boom"


class TestLogAndReturnDefault:
    """Test log_and_return_default function"""

    def test_returns_default_value(self, mock_logger):
        result = log_and_return_default(mock_logger, ValueError("x"), {"field": "startTime"}, default_value=[])

        assert result == []

    def test_returns_none_by_default(self, mock_logger):
        assert log_and_return_default(mock_logger, ValueError("x"), {}) is None

    def test_logs_default_value(self, mock_logger):
        log_and_return_default(mock_logger, ValueError("x"), {}, default_value=0, error_type="Timestamp parsing")

        extra = mock_logger.warning.call_args[1]["extra"]
        assert extra["default_value"] == "0"
        assert extra["error_type"] == "Timestamp parsing"

