"""
Document store facade.

DocStoreApp wires the SQLite store and the services together and runs
each public operation in exactly one transaction. Callers that need
several operations in one transaction use transaction() directly.

Example:
    >>> app = DocStoreApp(ServerConfig(storage=StorageConfig(data_dir="/tmp/ds")))
    >>> app.initialize()
    >>> app.create_database("inventory")
    {'name': 'inventory', 'version': '10'}
    >>> with app.transaction() as tx:
    ...     tx.documents.create("inventory", "a", {"n": 1})
    ...     tx.documents.create("inventory", "b", {"n": 2})
"""

from __future__ import annotations

import logging
import random
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from .config import ServerConfig
from .persistence import SqliteStore
from .service import DocumentOperation, TransactionContext

logger = logging.getLogger(__name__)


class DocStoreApp:
    """Entry point for callers without their own transaction handling.

    Attributes:
        config: Complete configuration
        store: SQLite store
    """

    def __init__(self, config: ServerConfig | None = None, rng: random.Random | None = None) -> None:
        self.config = config or ServerConfig()
        self.store = SqliteStore(self.config.storage)
        self._rng = rng

    def initialize(self) -> None:
        self.store.initialize()

    @contextmanager
    def transaction(self, write: bool = True) -> Iterator[TransactionContext]:
        """Open one transaction and yield the services bound to it."""
        with self.store.transaction(write=write) as conn:
            yield TransactionContext(conn, self.config.query, rng=self._rng)

    # Databases

    def create_database(self, name: str) -> dict[str, Any]:
        with self.transaction() as tx:
            return tx.databases.create(name)

    def get_database(self, name: str) -> dict[str, Any]:
        with self.transaction(write=False) as tx:
            return tx.databases.get(name)

    def list_databases(self) -> list[dict[str, Any]]:
        with self.transaction(write=False) as tx:
            return tx.databases.list_all()

    def rename_database(self, name: str, version: str, new_name: str) -> dict[str, Any]:
        with self.transaction() as tx:
            return tx.databases.rename(name, version, new_name)

    def delete_database(self, name: str, version: str) -> None:
        with self.transaction() as tx:
            tx.databases.delete(name, version)

    # Documents

    def get_document(self, database_name: str, document_id: str) -> dict[str, Any]:
        with self.transaction(write=False) as tx:
            return tx.documents.get(database_name, document_id)

    def put_document(self, database_name: str, document_id: str, document: dict[str, Any]) -> str:
        with self.transaction() as tx:
            return tx.documents.put(database_name, document_id, document)

    def delete_document(self, database_name: str, document_id: str, version: str) -> None:
        with self.transaction() as tx:
            tx.documents.delete(database_name, document_id, version)

    def perform_operations(
        self, database_name: str, operations: list[DocumentOperation | dict[str, Any]]
    ) -> dict[str, str]:
        parsed = [
            op if isinstance(op, DocumentOperation) else DocumentOperation.from_dict(op)
            for op in operations
        ]
        with self.transaction() as tx:
            result = tx.documents.perform_operations(database_name, parsed)
        logger.info(
            "Performed operations",
            extra={"database": database_name, "operations": len(parsed), "written": len(result)},
        )
        return result

    def query_documents(
        self,
        database_name: str,
        filters: Any = None,
        limit: int | None = None,
        offset: int | None = None,
    ) -> list[dict[str, Any]]:
        with self.transaction(write=False) as tx:
            return tx.documents.query(database_name, filters, limit, offset)

    def count_documents(self, database_name: str, filters: Any = None) -> int:
        with self.transaction(write=False) as tx:
            return tx.documents.count(database_name, filters)
