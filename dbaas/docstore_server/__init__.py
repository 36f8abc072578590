"""
Document store - multi-tenant JSON document storage.

This package implements a document store built on:
- Named databases, each holding JSON documents keyed by client-chosen ids
- Optimistic concurrency with lexicographically ordered version strings
- Reference edges derived from id-named keys, enforced like foreign keys
- A JSON filter DSL compiled to SQL predicates over the JSON data column
- SQLite as the backing store

Architecture:
    ┌─────────────┐     ┌──────────────┐     ┌────────────────────┐
    │  Caller     │────▶│ DocStoreApp  │────▶│ TransactionContext │
    │ (CLI, HTTP) │     │ (1 tx / call)│     │ (services + cache) │
    └─────────────┘     └──────────────┘     └─────────┬──────────┘
                                                       │
                 ┌─────────────────────┬───────────────┼──────────────────┐
                 ▼                     ▼               ▼                  ▼
          ┌────────────┐      ┌────────────────┐ ┌────────────┐   ┌──────────────┐
          │ Database   │      │ Document       │ │ Filter     │   │ Transaction  │
          │ Service    │      │ Service        │ │ Compiler   │   │ Cache        │
          └─────┬──────┘      └───────┬────────┘ └─────┬──────┘   └──────────────┘
                │                     │                │
                ▼                     ▼                ▼
          ┌─────────────────────────────────────────────────┐
          │        DatabaseConnection  ──▶  SQLite          │
          └─────────────────────────────────────────────────┘

Invariants:
    - Every public operation runs in exactly one transaction
    - Writes lock at database granularity, never per document
    - A database version changes at most once per transaction
    - Versions are opaque strings to callers

How to change safely:
    - Never change the version codec's digit set or initial value
    - Keep derived reference edges in the same transaction as the write
"""

from ._version import __version__

__all__ = ["__version__"]
