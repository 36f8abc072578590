"""
Configuration management for the document store.

All configuration is done via environment variables - no config files.
This module provides typed configuration classes with validation.

Invariants:
    - All settings have sensible defaults for local development
    - Query limits are validated once at startup, not per request

How to change safely:
    - Add new settings with defaults that maintain backward compatibility
    - Keep the default query limits in sync with the documented API
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StorageConfig:
    """Local storage configuration.

    Attributes:
        data_dir: Directory holding the SQLite file
        db_file: SQLite file name inside data_dir
        wal_mode: SQLite WAL mode enabled
        busy_timeout_ms: SQLite busy timeout in milliseconds
        cache_size_pages: SQLite cache size in pages (negative = KB)
    """

    data_dir: str = "/var/lib/docstore"
    db_file: str = "docstore.db"
    wal_mode: bool = True
    busy_timeout_ms: int = 5000
    cache_size_pages: int = -64000  # 64MB

    @property
    def db_path(self) -> Path:
        return Path(self.data_dir) / self.db_file

    @classmethod
    def from_env(cls) -> StorageConfig:
        """Load configuration from environment variables."""
        return cls(
            data_dir=os.getenv("DOCSTORE_DATA_DIR", "/var/lib/docstore"),
            db_file=os.getenv("DOCSTORE_DB_FILE", "docstore.db"),
            wal_mode=os.getenv("SQLITE_WAL_MODE", "true").lower() == "true",
            busy_timeout_ms=int(os.getenv("SQLITE_BUSY_TIMEOUT_MS", "5000")),
            cache_size_pages=int(os.getenv("SQLITE_CACHE_SIZE", "-64000")),
        )


@dataclass(frozen=True)
class QueryConfig:
    """Query and batch limits.

    Attributes:
        default_limit: Page size when the caller gives no limit
        max_limit: Largest accepted limit
        max_in_arguments: Largest candidate list for the "in" operator
        max_batch_operations: Largest accepted batch of document operations
    """

    default_limit: int = 100
    max_limit: int = 1000
    max_in_arguments: int = 1000
    max_batch_operations: int = 1000

    @classmethod
    def from_env(cls) -> QueryConfig:
        """Load configuration from environment variables."""
        return cls(
            default_limit=int(os.getenv("QUERY_DEFAULT_LIMIT", "100")),
            max_limit=int(os.getenv("QUERY_MAX_LIMIT", "1000")),
            max_in_arguments=int(os.getenv("QUERY_MAX_IN_ARGUMENTS", "1000")),
            max_batch_operations=int(os.getenv("BATCH_MAX_OPERATIONS", "1000")),
        )


@dataclass(frozen=True)
class ObservabilityConfig:
    """Logging configuration.

    Attributes:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        log_format: Log format (json, text)
    """

    log_level: str = "INFO"
    log_format: str = "json"

    @classmethod
    def from_env(cls) -> ObservabilityConfig:
        """Load configuration from environment variables."""
        return cls(
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_format=os.getenv("LOG_FORMAT", "json"),
        )


@dataclass
class ServerConfig:
    """Complete configuration.

    Attributes:
        storage: Local storage configuration
        query: Query and batch limits
        observability: Logging configuration
    """

    storage: StorageConfig = field(default_factory=StorageConfig)
    query: QueryConfig = field(default_factory=QueryConfig)
    observability: ObservabilityConfig = field(default_factory=ObservabilityConfig)

    @classmethod
    def from_env(cls) -> ServerConfig:
        """Load complete configuration from environment variables.

        Returns:
            ServerConfig with all sections populated from environment.

        Raises:
            ValueError: If configuration is invalid.
        """
        config = cls(
            storage=StorageConfig.from_env(),
            query=QueryConfig.from_env(),
            observability=ObservabilityConfig.from_env(),
        )
        config.validate()
        return config

    def validate(self) -> None:
        """Validate configuration consistency.

        Raises:
            ValueError: If configuration is invalid.
        """
        if not self.storage.db_file:
            raise ValueError("DOCSTORE_DB_FILE must not be empty")
        if self.query.max_limit < 0:
            raise ValueError("QUERY_MAX_LIMIT must be >= 0")
        if not 0 <= self.query.default_limit <= self.query.max_limit:
            raise ValueError("QUERY_DEFAULT_LIMIT must be between 0 and QUERY_MAX_LIMIT")
        if self.query.max_in_arguments < 1:
            raise ValueError("QUERY_MAX_IN_ARGUMENTS must be >= 1")
        if self.query.max_batch_operations < 1:
            raise ValueError("BATCH_MAX_OPERATIONS must be >= 1")
        if self.observability.log_format not in ("json", "text"):
            raise ValueError(
                f"Invalid LOG_FORMAT '{self.observability.log_format}'. Must be one of: json, text"
            )

        if not os.path.exists(self.storage.data_dir):
            logger.warning(
                f"Data directory does not exist: {self.storage.data_dir}. "
                "It will be created on first write."
            )

    def log_config(self) -> None:
        """Log configuration."""
        logger.info(
            "Configuration loaded",
            extra={
                "db_path": str(self.storage.db_path),
                "wal_mode": self.storage.wal_mode,
                "default_limit": self.query.default_limit,
                "max_limit": self.query.max_limit,
                "log_level": self.observability.log_level,
            },
        )
