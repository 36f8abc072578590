"""
Service module for the document store.

This module handles:
- Version codec (lexicographically ordered version strings)
- Query builder and filter DSL compiler
- Reference extraction from document data
- Database and document services
- Per-transaction cache of locks and version bumps

Invariants:
    - Every service call runs inside one externally demarcated transaction
    - At most one lock and one version bump per database and transaction
"""

from .context import TransactionContext
from .database_service import DatabaseInfo, DatabaseService
from .document_service import DocumentInfo, DocumentOperation, DocumentService
from .filter_compiler import FilterCompiler
from .query_builder import QueryBuilder
from .transaction_cache import TransactionCache
from .version_codec import INITIAL_VERSION, increment

__all__ = [
    "DatabaseInfo",
    "DatabaseService",
    "DocumentInfo",
    "DocumentOperation",
    "DocumentService",
    "FilterCompiler",
    "INITIAL_VERSION",
    "QueryBuilder",
    "TransactionCache",
    "TransactionContext",
    "increment",
]
