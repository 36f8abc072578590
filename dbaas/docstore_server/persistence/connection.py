"""
SQL execution wrapper for the document store.

DatabaseConnection is the only place where SQL text generated by the
services reaches the driver. It binds positional "?" parameters in order
and converts driver errors into SqlFailure, which tells integrity
violations (unique, primary key, foreign key) apart from everything else.

Invariants:
    - Every driver error leaves this module as SqlFailure
    - is_integrity_violation is decided once, from the driver exception type
    - The wrapper never commits or rolls back; transactions are demarcated
      by SqliteStore.transaction()
"""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Sequence
from typing import Any

logger = logging.getLogger(__name__)


class SqlFailure(Exception):
    """A statement failed in the backing store.

    Attributes:
        sql: Statement text
        is_integrity_violation: True for constraint violations
    """

    def __init__(self, sql: str, cause: sqlite3.Error) -> None:
        super().__init__(f"{cause} [sql: {sql}]")
        self.sql = sql
        self.cause = cause
        self.is_integrity_violation = isinstance(cause, sqlite3.IntegrityError)


class DatabaseConnection:
    """Executes statements on one connection inside one transaction."""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    @property
    def raw(self) -> sqlite3.Connection:
        return self._conn

    def _run(self, sql: str, params: Sequence[Any]) -> sqlite3.Cursor:
        logger.debug("Executing SQL", extra={"sql": sql, "param_count": len(params)})
        try:
            return self._conn.execute(sql, tuple(params))
        except sqlite3.Error as e:
            raise SqlFailure(sql, e) from e

    def execute(self, sql: str, params: Sequence[Any] = ()) -> int:
        """Execute a modifying statement.

        Returns:
            Number of affected rows
        """
        return self._run(sql, params).rowcount

    def query(self, sql: str, params: Sequence[Any] = ()) -> list[sqlite3.Row]:
        try:
            return self._run(sql, params).fetchall()
        except sqlite3.Error as e:
            raise SqlFailure(sql, e) from e

    def query_one_or_none(self, sql: str, params: Sequence[Any] = ()) -> sqlite3.Row | None:
        """Run a query expected to return at most one row.

        Raises:
            SqlFailure: If the query fails
            RuntimeError: If more than one row is returned
        """
        rows = self.query(sql, params)
        if len(rows) > 1:
            raise RuntimeError(f"expected at most one row, got {len(rows)} [sql: {sql}]")
        return rows[0] if rows else None

    def query_scalar(self, sql: str, params: Sequence[Any] = ()) -> Any:
        row = self.query_one_or_none(sql, params)
        return row[0] if row is not None else None
