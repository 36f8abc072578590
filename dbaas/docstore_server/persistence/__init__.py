"""
Persistence module for the document store.

This module handles:
- The SQL execution wrapper (DatabaseConnection, SqlFailure)
- The SQLite file, its schema and transaction demarcation (SqliteStore)

The services generate all SQL text; this layer only executes it.
"""

from .connection import DatabaseConnection, SqlFailure
from .store import SqliteStore

__all__ = [
    "DatabaseConnection",
    "SqlFailure",
    "SqliteStore",
]
