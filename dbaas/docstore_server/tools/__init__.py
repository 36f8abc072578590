"""
Operational tools for the document store.

This module provides:
- DocStoreCLI: admin command line for databases, documents and queries
"""

from .docstore_cli import DocStoreCLI

__all__ = ["DocStoreCLI"]
