"""
Document store - command line entry point.

Loads configuration from the environment, configures logging, makes sure
the SQLite schema exists and runs one admin CLI command.

Usage:
    python -m dbaas.docstore_server.main db create inventory
    docstore query inventory --filters '["or", {"a": 1}, {"b": 2}]'

Configuration is entirely via environment variables.
See config.py for all available settings.
"""

from __future__ import annotations

import logging
import sys

import json_log_formatter

from .app import DocStoreApp
from .config import ServerConfig
from .tools import DocStoreCLI

logger = logging.getLogger(__name__)


def setup_logging(config: ServerConfig) -> None:
    """Configure logging based on configuration.

    Args:
        config: Server configuration
    """
    level = getattr(logging, config.observability.log_level.upper(), logging.INFO)

    if config.observability.log_format == "json":
        formatter: logging.Formatter = json_log_formatter.JSONFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = [handler]


def main(argv: list[str] | None = None) -> int:
    """Run the CLI and return its exit code."""
    try:
        config = ServerConfig.from_env()
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    setup_logging(config)
    config.log_config()

    app = DocStoreApp(config)
    app.initialize()
    return DocStoreCLI(app).run(argv)


if __name__ == "__main__":
    sys.exit(main())
