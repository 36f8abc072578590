"""Services bound to one open transaction."""

from __future__ import annotations

import random

from ..config import QueryConfig
from ..persistence.connection import DatabaseConnection
from .database_service import DatabaseService
from .document_service import DocumentService
from .transaction_cache import TransactionCache


class TransactionContext:
    """Holds the services and the cache of one transaction.

    Created when a transaction begins and dropped when it ends; nothing in
    here may outlive the transaction.

    Attributes:
        conn: Connection bound to the transaction
        databases: Database service
        cache: Transaction cache
        documents: Document service
    """

    def __init__(
        self,
        conn: DatabaseConnection,
        query_config: QueryConfig | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.conn = conn
        self.databases = DatabaseService(conn, rng=rng)
        self.cache = TransactionCache(self.databases)
        self.documents = DocumentService(conn, self.cache, query_config)
