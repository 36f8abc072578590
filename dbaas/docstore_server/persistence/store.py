"""
SQLite store for the document store.

This module manages the single SQLite file that holds every tenant
database:
- docstore_database: named databases with their version counter
- docstore_document: JSON documents keyed by (database_id, id)
- docstore_reference: derived document-to-document reference edges

Invariants:
    - One connection per transaction, closed when the transaction ends
    - Write transactions start with BEGIN IMMEDIATE; SQLite has no row-level
      "for update", the reserved lock taken here serializes all writers,
      which covers the per-database exclusive lock the services rely on
    - foreign_keys is ON for every connection, reference edges and
      document ownership are enforced by the store
    - json_contains() and json_equal() are registered on every connection

How to change safely:
    - Schema migrations must be backward compatible
    - Bump SCHEMA_VERSION together with any schema change
    - Keep the composite foreign keys on docstore_reference, delete and
      insert conflict detection depend on them

Table schema:
    docstore_database:
        - id INTEGER PRIMARY KEY (random, never reused)
        - name TEXT UNIQUE
        - version TEXT (version codec string)

    docstore_document:
        - database_id INTEGER -> docstore_database(id)
        - id TEXT
        - version TEXT
        - data TEXT (JSON object without id/version)
        - PRIMARY KEY (database_id, id)

    docstore_reference:
        - database_id INTEGER
        - from_document_id TEXT -> docstore_document(database_id, id)
        - to_document_id TEXT -> docstore_document(database_id, id)
        - PRIMARY KEY (database_id, from_document_id, to_document_id)
"""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from ..config import StorageConfig
from ..json_util import sql_json_contains, sql_json_equal
from .connection import DatabaseConnection

logger = logging.getLogger(__name__)


class SqliteStore:
    """SQLite file holding databases, documents and reference edges.

    Example:
        >>> store = SqliteStore(StorageConfig(data_dir="/tmp/docstore"))
        >>> store.initialize()
        >>> with store.transaction() as conn:
        ...     conn.execute("delete from docstore_reference")
    """

    SCHEMA_VERSION = 1

    def __init__(self, config: StorageConfig | None = None) -> None:
        """Initialize the store.

        Args:
            config: Storage configuration (defaults for local development if omitted)
        """
        self.config = config or StorageConfig()
        self.db_path = Path(self.config.data_dir) / self.config.db_file

    def _connect(self) -> sqlite3.Connection:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        conn = sqlite3.connect(
            str(self.db_path),
            timeout=self.config.busy_timeout_ms / 1000.0,
            isolation_level=None,  # Autocommit by default, explicit transactions
        )
        conn.row_factory = sqlite3.Row

        try:
            conn.execute(f"PRAGMA busy_timeout = {self.config.busy_timeout_ms}")
            conn.execute(f"PRAGMA cache_size = {self.config.cache_size_pages}")
            if self.config.wal_mode:
                conn.execute("PRAGMA journal_mode = WAL")
            conn.execute("PRAGMA synchronous = NORMAL")
            conn.execute("PRAGMA foreign_keys = ON")
            conn.create_function("json_contains", 2, sql_json_contains, deterministic=True)
            conn.create_function("json_equal", 2, sql_json_equal, deterministic=True)
        except Exception:
            conn.close()
            raise
        return conn

    def initialize(self) -> None:
        """Create the database file and schema if they don't exist."""
        conn = self._connect()
        try:
            conn.executescript("""
                CREATE TABLE IF NOT EXISTS schema_version (
                    version INTEGER PRIMARY KEY,
                    applied_at INTEGER NOT NULL
                );

                CREATE TABLE IF NOT EXISTS docstore_database (
                    id INTEGER PRIMARY KEY,
                    name TEXT NOT NULL UNIQUE,
                    version TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS docstore_document (
                    database_id INTEGER NOT NULL REFERENCES docstore_database (id),
                    id TEXT NOT NULL,
                    version TEXT NOT NULL,
                    data TEXT NOT NULL,
                    PRIMARY KEY (database_id, id)
                );

                CREATE TABLE IF NOT EXISTS docstore_reference (
                    database_id INTEGER NOT NULL,
                    from_document_id TEXT NOT NULL,
                    to_document_id TEXT NOT NULL,
                    PRIMARY KEY (database_id, from_document_id, to_document_id),
                    FOREIGN KEY (database_id, from_document_id)
                        REFERENCES docstore_document (database_id, id),
                    FOREIGN KEY (database_id, to_document_id)
                        REFERENCES docstore_document (database_id, id)
                );

                CREATE INDEX IF NOT EXISTS idx_reference_to
                    ON docstore_reference (database_id, to_document_id);

                INSERT OR IGNORE INTO schema_version (version, applied_at)
                VALUES (1, strftime('%s', 'now') * 1000);
            """)
        finally:
            conn.close()
        logger.info("Initialized document store", extra={"db_path": str(self.db_path)})

    @contextmanager
    def transaction(self, write: bool = True) -> Iterator[DatabaseConnection]:
        """Run a block inside one transaction on a fresh connection.

        Commits when the block exits normally, rolls back on any exception.

        Args:
            write: Take the write lock up front (BEGIN IMMEDIATE)

        Yields:
            DatabaseConnection bound to the open transaction
        """
        conn = self._connect()
        try:
            conn.execute("BEGIN IMMEDIATE" if write else "BEGIN")
            try:
                yield DatabaseConnection(conn)
            except BaseException:
                conn.execute("ROLLBACK")
                raise
            conn.execute("COMMIT")
        finally:
            conn.close()
