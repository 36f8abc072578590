"""
Database lifecycle service.

A database is a named container of documents with a version counter.
The version changes exactly once per transaction that changes the
database's content or identity.

Invariants:
    - Database ids are random positive integers and never reused
    - Names are unique; a conflicting name is a ConflictError
    - Version changes go through a compare-and-set guarded by the version
      read under the lock; zero affected rows means the lock contract was
      broken and is fatal

How to change safely:
    - Callers of increment_version() must hold the lock; use
      TransactionCache.get_incremented_version() instead of calling it
      directly from document code
"""

from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from typing import Any

from ..errors import ConflictError, InvariantViolationError, NotFoundError
from ..persistence.connection import DatabaseConnection, SqlFailure
from . import version_codec
from .names import validate_database_name

logger = logging.getLogger(__name__)

MAX_ID = 2**31 - 1
CREATE_ATTEMPTS = 100


@dataclass(frozen=True)
class DatabaseInfo:
    """A database row read under the exclusive lock.

    Attributes:
        id: Database id
        name: Database name
        version: Version at the time the lock was acquired
    """

    id: int
    name: str
    version: str


def _not_found(name: str) -> NotFoundError:
    return NotFoundError("database not found", resource_type="database", resource_id=name)


def _database_json(name: str, version: str) -> dict[str, Any]:
    return {"name": name, "version": version}


class DatabaseService:
    """Database operations inside one transaction.

    Example:
        >>> databases = DatabaseService(conn)
        >>> databases.create("inventory")
        {'name': 'inventory', 'version': '10'}
    """

    def __init__(self, conn: DatabaseConnection, rng: random.Random | None = None) -> None:
        """Initialize the service.

        Args:
            conn: Connection bound to the current transaction
            rng: Random source for database ids
        """
        self.conn = conn
        self.rng = rng or random.Random()

    def get_info_and_lock(self, name: str) -> DatabaseInfo:
        """Read id and version of a database under the exclusive lock.

        The surrounding write transaction holds the store's reserved lock,
        so the row cannot change until the transaction ends.

        Raises:
            NotFoundError: If the database doesn't exist
        """
        row = self.conn.query_one_or_none(
            "select id, version from docstore_database where name = ?", (name,)
        )
        if row is None:
            raise _not_found(name)
        return DatabaseInfo(id=row["id"], name=name, version=row["version"])

    def get_id(self, name: str) -> int:
        database_id = self.conn.query_scalar(
            "select id from docstore_database where name = ?", (name,)
        )
        if database_id is None:
            raise _not_found(name)
        return database_id

    def get(self, name: str) -> dict[str, Any]:
        version = self.conn.query_scalar(
            "select version from docstore_database where name = ?", (name,)
        )
        if version is None:
            raise _not_found(name)
        return _database_json(name, version)

    def list_all(self) -> list[dict[str, Any]]:
        rows = self.conn.query("select name, version from docstore_database order by name")
        return [_database_json(row["name"], row["version"]) for row in rows]

    def create(self, name: str) -> dict[str, Any]:
        """Create a database with a random id.

        Raises:
            ValidationError: If the name is invalid
            ConflictError: If the name already exists
            InvariantViolationError: If no free id was found
        """
        validate_database_name(name)
        version = version_codec.INITIAL_VERSION
        try:
            for _ in range(CREATE_ATTEMPTS):
                database_id = self.rng.randint(1, MAX_ID)
                inserted = self.conn.execute(
                    "insert into docstore_database (id, name, version) values (?, ?, ?) "
                    "on conflict (id) do nothing",
                    (database_id, name, version),
                )
                if inserted == 1:
                    logger.info("Created database", extra={"database": name, "database_id": database_id})
                    return _database_json(name, version)
        except SqlFailure as e:
            if e.is_integrity_violation:
                raise ConflictError("database already exists", details={"name": name}) from e
            raise

        logger.error("Database id generation failed", extra={"database": name})
        raise InvariantViolationError(
            "database create with random id failed too many times", details={"name": name}
        )

    def _get_info_and_lock_and_check_version(self, name: str, expected_version: str) -> DatabaseInfo:
        info = self.get_info_and_lock(name)
        if expected_version != info.version:
            raise ConflictError(
                "version does not match",
                details={"expected": expected_version, "actual": info.version},
            )
        return info

    def rename(self, name: str, expected_version: str, new_name: str) -> dict[str, Any]:
        """Rename a database, bumping its version.

        Renaming to the current name is a no-op that keeps the version.

        Raises:
            NotFoundError: If the database doesn't exist
            ConflictError: If the version does not match or new_name exists
            ValidationError: If new_name is invalid
        """
        info = self._get_info_and_lock_and_check_version(name, expected_version)
        validate_database_name(new_name)
        if new_name == name:
            return _database_json(name, info.version)

        new_version = version_codec.increment(info.version)
        try:
            updated = self.conn.execute(
                "update docstore_database set name = ?, version = ? where id = ? and version = ?",
                (new_name, new_version, info.id, info.version),
            )
        except SqlFailure as e:
            if e.is_integrity_violation:
                raise ConflictError(
                    f"database with name {new_name} already exists", details={"name": new_name}
                ) from e
            raise
        if updated != 1:
            # the update must work, since we locked above
            raise InvariantViolationError(f"rename failed unexpectedly: {updated}")

        logger.info("Renamed database", extra={"database": name, "new_name": new_name})
        return _database_json(new_name, new_version)

    def delete(self, name: str, expected_version: str) -> None:
        """Delete an empty database.

        Raises:
            NotFoundError: If the database doesn't exist
            ConflictError: If the version does not match or documents remain
        """
        info = self._get_info_and_lock_and_check_version(name, expected_version)
        try:
            deleted = self.conn.execute("delete from docstore_database where id = ?", (info.id,))
        except SqlFailure as e:
            if e.is_integrity_violation:
                raise ConflictError("database is not empty", details={"name": name}) from e
            raise
        if deleted != 1:
            raise InvariantViolationError(f"delete failed unexpectedly: {deleted}")
        logger.info("Deleted database", extra={"database": name, "database_id": info.id})

    def increment_version(self, info: DatabaseInfo) -> str:
        """Bump the version of a database locked in this transaction.

        Should only be called once per database and transaction; see
        TransactionCache.get_incremented_version().

        Returns:
            The new version
        """
        new_version = version_codec.increment(info.version)
        updated = self.conn.execute(
            "update docstore_database set version = ? where id = ? and version = ?",
            (new_version, info.id, info.version),
        )
        if updated != 1:
            logger.error(
                "Version increment failed",
                extra={"database": info.name, "version": info.version, "rows": updated},
            )
            raise InvariantViolationError(f"version increment failed unexpectedly: {updated}")
        return new_version
