"""Tests for logger.py -- setup_logging() and JsonFormatter.

Strategy: Mock logging.basicConfig to verify setup_logging passes correct args,
since pytest's log capture plugin interferes with actual basicConfig calls.
"""

import json
import logging
import sys
from unittest.mock import patch

from catalog_mirror.logger import (
    DEFAULT_MCP_LOG_FILE,
    JsonFormatter,
    resolve_level,
    setup_logging,
)


class TestSetupLogging:
    """Tests for setup_logging()."""

    @patch("catalog_mirror.logger.logging.basicConfig")
    def test_cli_mode_logs_to_stderr(self, mock_basic):
        setup_logging(mode="cli")

        mock_basic.assert_called_once()
        handlers = mock_basic.call_args[1]["handlers"]
        assert len(handlers) == 1
        assert isinstance(handlers[0], logging.StreamHandler)
        assert handlers[0].stream is sys.stderr

    @patch("catalog_mirror.logger.logging.basicConfig")
    def test_cli_mode_with_log_file_adds_file_handler(self, mock_basic, tmp_path):
        log_file = str(tmp_path / "cli.log")
        setup_logging(mode="cli", log_file=log_file)

        handlers = mock_basic.call_args[1]["handlers"]
        assert len(handlers) == 2
        assert isinstance(handlers[1], logging.FileHandler)
        handlers[1].close()

    @patch("catalog_mirror.logger.logging.basicConfig")
    def test_mcp_mode_logs_to_file(self, mock_basic, tmp_path):
        log_file = str(tmp_path / "test-mcp.log")
        setup_logging(mode="mcp", log_file=log_file)

        kwargs = mock_basic.call_args[1]
        assert kwargs["filename"] == log_file
        assert "handlers" not in kwargs

    @patch("catalog_mirror.logger.logging.basicConfig")
    def test_mcp_mode_default_file(self, mock_basic, monkeypatch):
        monkeypatch.delenv("LOG_FILE", raising=False)
        setup_logging(mode="mcp")
        assert mock_basic.call_args[1]["filename"] == DEFAULT_MCP_LOG_FILE

    @patch("catalog_mirror.logger.logging.basicConfig")
    def test_debug_overrides_level(self, mock_basic):
        setup_logging(mode="cli", debug=True)
        assert mock_basic.call_args[1]["level"] == logging.DEBUG

    @patch("catalog_mirror.logger.logging.basicConfig")
    def test_json_format_uses_json_formatter(self, mock_basic):
        setup_logging(mode="cli", debug_format="json")
        handler = mock_basic.call_args[1]["handlers"][0]
        assert isinstance(handler.formatter, JsonFormatter)

    @patch("catalog_mirror.logger.logging.basicConfig")
    def test_http_loggers_silenced(self, mock_basic):
        setup_logging(mode="cli")
        assert logging.getLogger("urllib3").level == logging.WARNING
        assert logging.getLogger("requests").level == logging.WARNING


class TestResolveLevel:
    def test_mode_defaults(self, monkeypatch):
        monkeypatch.delenv("CATALOG_LOG_LEVEL", raising=False)
        monkeypatch.delenv("LOG_LEVEL", raising=False)
        assert resolve_level("mcp", False) == logging.WARNING
        assert resolve_level("cli", False) == logging.INFO

    def test_env_var(self, monkeypatch):
        monkeypatch.delenv("CATALOG_LOG_LEVEL", raising=False)
        monkeypatch.setenv("LOG_LEVEL", "error")
        assert resolve_level("cli", False) == logging.ERROR

    def test_specific_env_var_wins(self, monkeypatch):
        monkeypatch.setenv("CATALOG_LOG_LEVEL", "DEBUG")
        monkeypatch.setenv("LOG_LEVEL", "ERROR")
        assert resolve_level("cli", False) == logging.DEBUG

    def test_unknown_level_falls_back_to_info(self, monkeypatch):
        monkeypatch.setenv("CATALOG_LOG_LEVEL", "chatty")
        assert resolve_level("mcp", False) == logging.INFO


class TestJsonFormatter:
    def test_one_json_object_per_record(self):
        record = logging.LogRecord(
            "catalog_mirror.sync", logging.INFO, __file__, 1,
            "Sync %s", ("started",), None,
        )
        entry = json.loads(JsonFormatter().format(record))
        assert entry["level"] == "INFO"
        assert entry["logger"] == "catalog_mirror.sync"
        assert entry["msg"] == "Sync started"
        assert "exc" not in entry

    def test_exception_is_included(self):
        try:
            raise RuntimeError("boom")
        except RuntimeError:
            exc_info = sys.exc_info()
        record = logging.LogRecord(
            "x", logging.ERROR, __file__, 1, "failed", (), exc_info
        )
        entry = json.loads(JsonFormatter().format(record))
        assert "RuntimeError: boom" in entry["exc"]
