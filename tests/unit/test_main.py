"""
Unit tests for the command line entry point.

Tests cover:
- Logging setup for both log formats
- Exit code on invalid configuration
- A full command against a temporary data directory
"""

import json
import logging

import json_log_formatter
import pytest

from dbaas.docstore_server.config import ObservabilityConfig, ServerConfig
from dbaas.docstore_server.main import main, setup_logging


class TestSetupLogging:
    """Tests for setup_logging()."""

    @pytest.fixture(autouse=True)
    def restore_root_logger(self):
        root = logging.getLogger()
        handlers, level = root.handlers[:], root.level
        yield
        root.handlers = handlers
        root.setLevel(level)

    def test_json_format(self):
        setup_logging(ServerConfig(observability=ObservabilityConfig(log_level="DEBUG")))
        root = logging.getLogger()
        assert root.level == logging.DEBUG
        assert isinstance(root.handlers[0].formatter, json_log_formatter.JSONFormatter)

    def test_text_format(self):
        setup_logging(ServerConfig(observability=ObservabilityConfig(log_format="text")))
        formatter = logging.getLogger().handlers[0].formatter
        assert not isinstance(formatter, json_log_formatter.JSONFormatter)

    def test_unknown_level_falls_back_to_info(self):
        setup_logging(ServerConfig(observability=ObservabilityConfig(log_level="chatty")))
        assert logging.getLogger().level == logging.INFO


class TestMain:
    """Tests for main()."""

    @pytest.fixture(autouse=True)
    def restore_root_logger(self):
        root = logging.getLogger()
        handlers, level = root.handlers[:], root.level
        yield
        root.handlers = handlers
        root.setLevel(level)

    def test_invalid_configuration(self, monkeypatch):
        monkeypatch.setenv("LOG_FORMAT", "xml")
        assert main(["db", "list"]) == 2

    def test_runs_command(self, monkeypatch, tmp_path, capsys):
        monkeypatch.setenv("DOCSTORE_DATA_DIR", str(tmp_path))
        monkeypatch.setenv("LOG_FORMAT", "text")
        assert main(["db", "create", "inventory"]) == 0
        assert json.loads(capsys.readouterr().out) == {"name": "inventory", "version": "10"}
        assert (tmp_path / "docstore.db").exists()
