"""Tests for logger.py — setup_logging() and JsonFormatter.

Covers:
- CLI mode logging (stderr handler, optional file)
- Service mode logging (file handler only)
- Debug level override and LOG_LEVEL handling
- JSON formatter output
- Third-party logger silencing

Strategy: Mock logging.basicConfig to verify setup_logging passes correct args,
since pytest's log capture plugin interferes with actual basicConfig calls.
"""

import json
import logging
import sys
from unittest.mock import patch

import pytest

from shelflife_sync.logger import JsonFormatter, setup_logging


@pytest.fixture
def basic_config():
    with patch("shelflife_sync.logger.logging.basicConfig") as mock_basic:
        yield mock_basic
        for handler in mock_basic.call_args.kwargs.get("handlers", []):
            handler.close()


class TestSetupLogging:
    """Tests for setup_logging()."""

    def test_cli_mode_logs_to_stderr(self, basic_config, monkeypatch):
        monkeypatch.delenv("LOG_LEVEL", raising=False)
        setup_logging(mode="cli")

        kwargs = basic_config.call_args.kwargs
        handlers = kwargs["handlers"]
        assert len(handlers) == 1
        assert isinstance(handlers[0], logging.StreamHandler)
        assert handlers[0].stream is sys.stderr
        assert kwargs["level"] == logging.INFO

    def test_cli_mode_with_log_file(self, basic_config, tmp_path):
        log_file = tmp_path / "cli.log"
        setup_logging(mode="cli", log_file=str(log_file))

        handlers = basic_config.call_args.kwargs["handlers"]
        assert len(handlers) == 2
        assert isinstance(handlers[1], logging.FileHandler)
        assert handlers[1].baseFilename == str(log_file)

    def test_service_mode_logs_to_file_only(self, basic_config, tmp_path, monkeypatch):
        monkeypatch.delenv("LOG_LEVEL", raising=False)
        log_file = tmp_path / "service.log"
        setup_logging(mode="service", log_file=str(log_file))

        kwargs = basic_config.call_args.kwargs
        handlers = kwargs["handlers"]
        assert len(handlers) == 1
        assert isinstance(handlers[0], logging.FileHandler)
        assert kwargs["level"] == logging.WARNING

    def test_service_mode_log_file_from_env(self, basic_config, tmp_path, monkeypatch):
        log_file = tmp_path / "env.log"
        monkeypatch.setenv("LOG_FILE", str(log_file))
        setup_logging(mode="service")

        handlers = basic_config.call_args.kwargs["handlers"]
        assert handlers[0].baseFilename == str(log_file)

    def test_debug_overrides_level(self, basic_config):
        setup_logging(mode="cli", debug=True)
        assert basic_config.call_args.kwargs["level"] == logging.DEBUG

    def test_env_log_level_honored(self, basic_config, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "error")
        setup_logging(mode="cli")
        assert basic_config.call_args.kwargs["level"] == logging.ERROR

    def test_config_file_level_used_without_env(self, basic_config, monkeypatch):
        monkeypatch.delenv("LOG_LEVEL", raising=False)
        setup_logging(mode="cli", level="warning")
        assert basic_config.call_args.kwargs["level"] == logging.WARNING

    def test_env_beats_config_file_level(self, basic_config, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "ERROR")
        setup_logging(mode="cli", level="WARNING")
        assert basic_config.call_args.kwargs["level"] == logging.ERROR

    def test_debug_beats_env(self, basic_config, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "ERROR")
        setup_logging(mode="cli", debug=True)
        assert basic_config.call_args.kwargs["level"] == logging.DEBUG

    def test_json_format_selected(self, basic_config):
        setup_logging(mode="cli", debug_format="json")
        handler = basic_config.call_args.kwargs["handlers"][0]
        assert isinstance(handler.formatter, JsonFormatter)

    def test_http_loggers_silenced(self, basic_config, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "INFO")
        setup_logging(mode="cli")
        assert logging.getLogger("urllib3").level == logging.WARNING
        assert logging.getLogger("requests").level == logging.WARNING


class TestJsonFormatter:
    def _record(self, msg="hello %s", args=("world",), exc_info=None):
        return logging.LogRecord(
            name="shelflife_sync.sync.repository",
            level=logging.ERROR,
            pathname=__file__,
            lineno=1,
            msg=msg,
            args=args,
            exc_info=exc_info,
        )

    def test_fields(self):
        entry = json.loads(JsonFormatter().format(self._record()))
        assert entry["level"] == "ERROR"
        assert entry["logger"] == "shelflife_sync.sync.repository"
        assert entry["msg"] == "hello world"
        assert "ts" in entry
        assert "exc" not in entry

    def test_exception_included(self):
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            record = self._record(exc_info=sys.exc_info())
        entry = json.loads(JsonFormatter().format(record))
        assert "RuntimeError: boom" in entry["exc"]
