"""
Document store test suite.

This package contains:
- unit/: Unit tests (no database file)
- integration/: Integration tests (SQLite file in a temporary directory)
"""
