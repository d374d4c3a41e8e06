"""Tests for logger.py: setup_logging() and JsonFormatter.

Strategy: Mock logging.basicConfig to verify setup_logging passes correct args,
since pytest's log capture plugin interferes with actual basicConfig calls.
"""

import json
import logging
import sys
from unittest.mock import patch

from git_migrator.logger import JsonFormatter, setup_logging


class TestSetupLogging:
    """Tests for setup_logging()."""

    @patch("git_migrator.logger.logging.basicConfig")
    def test_logs_to_stderr(self, mock_basic):
        """A stderr StreamHandler is always installed."""
        setup_logging()

        mock_basic.assert_called_once()
        handlers = mock_basic.call_args[1]["handlers"]
        assert isinstance(handlers[0], logging.StreamHandler)
        assert handlers[0].stream is sys.stderr

    @patch("git_migrator.logger.logging.basicConfig")
    def test_log_file_adds_handler(self, mock_basic, tmp_path):
        log_file = str(tmp_path / "migrate.log")
        setup_logging(log_file=log_file)

        handlers = mock_basic.call_args[1]["handlers"]
        assert len(handlers) == 2
        assert isinstance(handlers[1], logging.FileHandler)
        assert handlers[1].baseFilename == log_file
        handlers[1].close()

    @patch("git_migrator.logger.logging.basicConfig")
    def test_debug_overrides_level(self, mock_basic, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "ERROR")
        setup_logging(debug=True)
        assert mock_basic.call_args[1]["level"] == logging.DEBUG

    @patch("git_migrator.logger.logging.basicConfig")
    def test_env_level(self, mock_basic, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "warning")
        setup_logging()
        assert mock_basic.call_args[1]["level"] == logging.WARNING

    @patch("git_migrator.logger.logging.basicConfig")
    def test_invalid_env_level_defaults_to_info(self, mock_basic, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "LOUD")
        setup_logging()
        assert mock_basic.call_args[1]["level"] == logging.INFO

    @patch("git_migrator.logger.logging.basicConfig")
    def test_json_format_uses_json_formatter(self, mock_basic):
        setup_logging(log_format="json")
        handlers = mock_basic.call_args[1]["handlers"]
        assert isinstance(handlers[0].formatter, JsonFormatter)


class TestJsonFormatter:
    """Tests for JsonFormatter."""

    def _record(self, msg="hello %s", args=("world",), exc_info=None):
        return logging.LogRecord(
            name="git_migrator.core",
            level=logging.INFO,
            pathname=__file__,
            lineno=1,
            msg=msg,
            args=args,
            exc_info=exc_info,
        )

    def test_fields(self):
        entry = json.loads(JsonFormatter().format(self._record()))
        assert entry["level"] == "INFO"
        assert entry["logger"] == "git_migrator.core"
        assert entry["msg"] == "hello world"
        assert "ts" in entry
        assert "exc" not in entry

    def test_exception_included(self):
        try:
            raise ValueError("bad")
        except ValueError:
            exc_info = sys.exc_info()
        entry = json.loads(JsonFormatter().format(self._record(exc_info=exc_info)))
        assert "ValueError: bad" in entry["exc"]
