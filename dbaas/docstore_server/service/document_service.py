"""
Document lifecycle, reference maintenance and queries.

Documents are JSON objects stored per database under a client-chosen id.
Writes lock the owning database (never individual documents), take the
database version bumped once per transaction, and keep the derived
reference edges of the written document in sync with its data.

Invariants:
    - A document's version is the database version of its last
      content-changing write
    - Updating a document with structurally equal content is a no-op:
      same version, no write, no edge changes
    - The edge set of a document equals the ids extracted from its current
      data; an edge target must exist in the same database
    - Deleting a document does not bump the database version
    - Errors raised inside a document operation carry the document id

How to change safely:
    - Every compare-and-set must keep the "zero rows is fatal" check
    - Keep reference maintenance in the same transaction as the document
      write; the foreign keys on docstore_reference rely on it
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any

from ..config import QueryConfig
from ..errors import (
    ConflictError,
    DocStoreError,
    InvariantViolationError,
    NotFoundError,
    ValidationError,
)
from ..json_util import json_equal, read_json_string, to_json_string
from ..persistence.connection import DatabaseConnection, SqlFailure
from .database_service import DatabaseInfo
from .filter_compiler import FilterCompiler
from .names import ID_PROPERTY, VERSION_PROPERTY, validate_document_id
from .query_builder import QueryBuilder
from .references import diff_references, extract_referenced_ids
from .transaction_cache import TransactionCache

logger = logging.getLogger(__name__)

OPERATION_TYPES = ("put", "create", "update", "delete")


@dataclass(frozen=True)
class DocumentInfo:
    """A document read while its database is locked.

    Attributes:
        database_info: Locked database
        id: Document id
        version: Document version at lock time
    """

    database_info: DatabaseInfo
    id: str
    version: str


@dataclass(frozen=True)
class DocumentOperation:
    """One operation of a batch.

    Attributes:
        op: "put", "create", "update" or "delete"
        id: Target document id
        data: Document body for put/create/update
        version: Expected version for delete
    """

    op: str
    id: str
    data: dict[str, Any] | None = None
    version: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> DocumentOperation:
        """Create from dictionary representation.

        Raises:
            ValidationError: If the operation is malformed
        """
        if not isinstance(data, dict):
            raise ValidationError("operation must be an object")
        op = data.get("op")
        if op not in OPERATION_TYPES:
            raise ValidationError(f"unknown operation: {op}", field_name="op")
        document_id = data.get("id")
        if not isinstance(document_id, str):
            raise ValidationError("operation id must be a string", field_name="id")
        return cls(op=op, id=document_id, data=data.get("data"), version=data.get("version"))


def _not_found(document_id: str) -> NotFoundError:
    return NotFoundError("document not found", resource_type="document", resource_id=document_id)


def _version_does_not_match() -> ConflictError:
    return ConflictError("document version does not match")


def _serialize(data: dict[str, Any]) -> str:
    try:
        return to_json_string(data)
    except (TypeError, ValueError) as e:
        raise ValidationError(f"document is not valid JSON: {e}") from e


def _build_document(document_id: str, version: str, data_json: str) -> dict[str, Any]:
    result: dict[str, Any] = {ID_PROPERTY: document_id, VERSION_PROPERTY: version}
    result.update(read_json_string(data_json))
    return result


@contextmanager
def _document_errors(document_id: str) -> Iterator[None]:
    """Annotate domain errors raised in the block with the document id."""
    try:
        yield
    except DocStoreError as e:
        if e.document_id is None:
            e.with_document_id(document_id)
        raise


class DocumentService:
    """Document operations inside one transaction.

    Example:
        >>> documents = DocumentService(conn, cache)
        >>> version = documents.create("inventory", "item-1", {"name": "bolt"})
        >>> documents.get("inventory", "item-1")
        {'id': 'item-1', 'version': '11', 'name': 'bolt'}
    """

    def __init__(
        self,
        conn: DatabaseConnection,
        cache: TransactionCache,
        query_config: QueryConfig | None = None,
    ) -> None:
        self.conn = conn
        self.cache = cache
        self.query_config = query_config or QueryConfig()
        self.filter_compiler = FilterCompiler(self.query_config.max_in_arguments)

    def get(self, database_name: str, document_id: str) -> dict[str, Any]:
        """Read a document without locking.

        Returns:
            The document data merged with its id and version

        Raises:
            NotFoundError: If the database or the document doesn't exist
        """
        row = self.conn.query_one_or_none(
            "select d.version, d.data from docstore_document d "
            "join docstore_database b on d.database_id = b.id where b.name = ? and d.id = ?",
            (database_name, document_id),
        )
        if row is None:
            raise _not_found(document_id)
        return _build_document(document_id, row["version"], row["data"])

    def get_info_and_lock(self, database_name: str, document_id: str) -> DocumentInfo:
        database_info = self.cache.lock_and_get_info(database_name)
        # no need to lock the document, the whole database is locked
        version = self.conn.query_scalar(
            "select version from docstore_document where database_id = ? and id = ?",
            (database_info.id, document_id),
        )
        if version is None:
            raise _not_found(document_id)
        return DocumentInfo(database_info=database_info, id=document_id, version=version)

    def _get_info_and_lock_and_check_version(
        self, database_name: str, document_id: str, expected_version: str
    ) -> DocumentInfo:
        info = self.get_info_and_lock(database_name, document_id)
        if expected_version != info.version:
            raise _version_does_not_match()
        return info

    def _strip_reserved(
        self,
        document: Any,
        expected_id: str,
        expected_version: str | None,
    ) -> dict[str, Any]:
        """Validate and remove the reserved id/version properties."""
        if not isinstance(document, dict):
            raise ValidationError("document must be a JSON object")

        result: dict[str, Any] = {}
        version_seen = False
        for key, value in document.items():
            if key == ID_PROPERTY:
                # id is optional, but if given it must match
                if not isinstance(value, str):
                    raise ValidationError("invalid id", field_name=ID_PROPERTY)
                if value != expected_id:
                    raise ValidationError("id does not match", field_name=ID_PROPERTY)
            elif key == VERSION_PROPERTY:
                version_seen = True
                if expected_version is None:
                    # callers decide create vs. update before getting here
                    raise InvariantViolationError("version in document, but no expected version")
                if not isinstance(value, str):
                    raise ValidationError("invalid version", field_name=VERSION_PROPERTY)
                if value != expected_version:
                    raise _version_does_not_match()
            else:
                result[key] = value

        if expected_version is not None and not version_seen:
            raise ValidationError("version is missing", field_name=VERSION_PROPERTY)
        return result

    def _extract_references(self, data: dict[str, Any]) -> set[str]:
        ids, errors = extract_referenced_ids(data)
        if errors:
            raise ValidationError(errors[0], errors=errors)
        return ids

    def _update_references(
        self,
        database_info: DatabaseInfo,
        document_id: str,
        referenced_ids: set[str],
        is_new: bool,
    ) -> None:
        if is_new:
            existing_ids: set[str] = set()
        else:
            rows = self.conn.query(
                "select to_document_id from docstore_reference "
                "where database_id = ? and from_document_id = ?",
                (database_info.id, document_id),
            )
            existing_ids = {row[0] for row in rows}

        to_add, to_remove = diff_references(referenced_ids, existing_ids)
        for target_id in to_add:
            try:
                self.conn.execute(
                    "insert into docstore_reference (database_id, from_document_id, to_document_id) "
                    "values (?, ?, ?)",
                    (database_info.id, document_id, target_id),
                )
            except SqlFailure as e:
                if e.is_integrity_violation:
                    raise ConflictError(
                        f"referenced document does not exist: {target_id}",
                        details={"referenced_id": target_id},
                    ) from e
                raise
        for target_id in to_remove:
            self.conn.execute(
                "delete from docstore_reference "
                "where database_id = ? and from_document_id = ? and to_document_id = ?",
                (database_info.id, document_id, target_id),
            )

        if to_add or to_remove:
            logger.debug(
                "Updated references",
                extra={
                    "database": database_info.name,
                    "document_id": document_id,
                    "added": len(to_add),
                    "removed": len(to_remove),
                },
            )

    def create(self, database_name: str, document_id: str, document: dict[str, Any]) -> str:
        """Create a document.

        Returns:
            The new document version

        Raises:
            ValidationError: If the id or the reserved properties are invalid
            NotFoundError: If the database doesn't exist
            ConflictError: If the document exists or a referenced document doesn't
        """
        with _document_errors(document_id):
            validate_document_id(document_id)
            database_info = self.cache.lock_and_get_info(database_name)
            data = self._strip_reserved(document, document_id, None)
            data_json = _serialize(data)
            referenced_ids = self._extract_references(data)
            version = self.cache.get_incremented_version(database_info)
            try:
                inserted = self.conn.execute(
                    "insert into docstore_document (database_id, id, version, data) values (?, ?, ?, ?)",
                    (database_info.id, document_id, version, data_json),
                )
            except SqlFailure as e:
                if e.is_integrity_violation:
                    raise ConflictError("document already exists") from e
                raise
            if inserted != 1:
                raise InvariantViolationError(f"unexpected insert count: {inserted}")

            self._update_references(database_info, document_id, referenced_ids, is_new=True)
            logger.debug(
                "Created document",
                extra={"database": database_name, "document_id": document_id, "version": version},
            )
            return version

    def update(self, database_name: str, document_id: str, document: dict[str, Any]) -> str:
        """Replace the data of a document.

        The document must carry the current version. Unchanged content
        keeps the current version and writes nothing.

        Returns:
            The new (or unchanged) document version

        Raises:
            ValidationError: If the id or the reserved properties are invalid
            NotFoundError: If the database or the document doesn't exist
            ConflictError: If the version does not match or a referenced
                document doesn't exist
        """
        with _document_errors(document_id):
            validate_document_id(document_id)
            info = self.get_info_and_lock(database_name, document_id)
            data = self._strip_reserved(document, document_id, info.version)
            data_json = _serialize(data)

            existing_json = self.conn.query_scalar(
                "select data from docstore_document where database_id = ? and id = ? and version = ?",
                (info.database_info.id, document_id, info.version),
            )
            if existing_json is None:
                raise InvariantViolationError("locked document disappeared")
            if json_equal(read_json_string(existing_json), read_json_string(data_json)):
                return info.version

            referenced_ids = self._extract_references(data)
            new_version = self.cache.get_incremented_version(info.database_info)
            updated = self.conn.execute(
                "update docstore_document set version = ?, data = ? "
                "where database_id = ? and id = ? and version = ?",
                (new_version, data_json, info.database_info.id, document_id, info.version),
            )
            if updated != 1:
                # the update must work, since we locked above
                raise InvariantViolationError(f"update failed unexpectedly: {updated}")

            self._update_references(info.database_info, document_id, referenced_ids, is_new=False)
            logger.debug(
                "Updated document",
                extra={"database": database_name, "document_id": document_id, "version": new_version},
            )
            return new_version

    def put(self, database_name: str, document_id: str, document: dict[str, Any]) -> str:
        """Create or update: a body without "version" is a create."""
        if isinstance(document, dict) and VERSION_PROPERTY in document:
            return self.update(database_name, document_id, document)
        return self.create(database_name, document_id, document)

    def delete(self, database_name: str, document_id: str, expected_version: str) -> None:
        """Delete a document and its outgoing references.

        Raises:
            NotFoundError: If the database or the document doesn't exist
            ConflictError: If the version does not match or the document is
                still referenced by another document
        """
        with _document_errors(document_id):
            info = self._get_info_and_lock_and_check_version(
                database_name, document_id, expected_version
            )
            try:
                self.conn.execute(
                    "delete from docstore_reference where database_id = ? and from_document_id = ?",
                    (info.database_info.id, document_id),
                )
                deleted = self.conn.execute(
                    "delete from docstore_document where database_id = ? and id = ?",
                    (info.database_info.id, document_id),
                )
            except SqlFailure as e:
                if e.is_integrity_violation:
                    raise ConflictError("document is referenced") from e
                raise
            if deleted != 1:
                raise InvariantViolationError(f"delete failed unexpectedly: {deleted}")
            logger.debug(
                "Deleted document", extra={"database": database_name, "document_id": document_id}
            )

    def perform_operations(
        self, database_name: str, operations: list[DocumentOperation]
    ) -> dict[str, str]:
        """Apply a batch of operations in the current transaction.

        Returns:
            Mapping of document id to new version for every put/create/update

        Raises:
            ValidationError: If the batch is too large, an id appears twice
                or an operation is malformed
        """
        if len(operations) > self.query_config.max_batch_operations:
            raise ValidationError(f"too many operations: {len(operations)}")

        seen: set[str] = set()
        for operation in operations:
            if operation.id in seen:
                raise ValidationError(
                    f"duplicate document id in operations: {operation.id}", field_name="id"
                ).with_document_id(operation.id)
            seen.add(operation.id)

        result: dict[str, str] = {}
        for operation in operations:
            if operation.op == "delete":
                if not isinstance(operation.version, str):
                    raise ValidationError(
                        "version is missing", field_name=VERSION_PROPERTY
                    ).with_document_id(operation.id)
                self.delete(database_name, operation.id, operation.version)
                continue

            data = operation.data
            if operation.op == "create" and isinstance(data, dict) and VERSION_PROPERTY in data:
                raise ValidationError(
                    "version must not be given for create", field_name=VERSION_PROPERTY
                ).with_document_id(operation.id)

            if operation.op == "create":
                result[operation.id] = self.create(database_name, operation.id, data)
            elif operation.op == "update":
                result[operation.id] = self.update(database_name, operation.id, data)
            else:
                result[operation.id] = self.put(database_name, operation.id, data)
        return result

    def _effective_limit(self, limit: int | None) -> int:
        if limit is None:
            return self.query_config.default_limit
        if not isinstance(limit, int) or isinstance(limit, bool) or limit < 0:
            raise ValidationError("invalid limit", field_name="limit")
        if limit > self.query_config.max_limit:
            raise ValidationError("limit too high", field_name="limit")
        return limit

    def _where_database(self, query_builder: QueryBuilder, database_id: int, filters: Any) -> None:
        with query_builder.with_and():
            query_builder.add("database_id = ?", database_id)
            self.filter_compiler.apply_filters(query_builder, filters)

    def query(
        self,
        database_name: str,
        filters: Any = None,
        limit: int | None = None,
        offset: int | None = None,
    ) -> list[dict[str, Any]]:
        """Query documents of a database.

        Args:
            database_name: Database to query
            filters: Filter tree (None matches everything)
            limit: Maximum documents to return (default 100, at most 1000)
            offset: Documents to skip

        Returns:
            Documents ordered by id
        """
        effective_limit = self._effective_limit(limit)
        if offset is not None and (
            not isinstance(offset, int) or isinstance(offset, bool) or offset < 0
        ):
            raise ValidationError("invalid offset", field_name="offset")

        database_id = self.cache.get_id(database_name)

        query_builder = QueryBuilder()
        query_builder.add("select id, version, data from docstore_document where")
        self._where_database(query_builder, database_id, filters)
        # both primary key columns, so that the primary key index is used
        query_builder.add("order by database_id, id")
        query_builder.add("limit ?", effective_limit)
        if offset is not None:
            query_builder.add("offset ?", offset)

        sql, params = query_builder.build()
        rows = self.conn.query(sql, params)
        return [_build_document(row["id"], row["version"], row["data"]) for row in rows]

    def count(self, database_name: str, filters: Any = None) -> int:
        database_id = self.cache.get_id(database_name)

        query_builder = QueryBuilder()
        query_builder.add("select count(*) from docstore_document where")
        self._where_database(query_builder, database_id, filters)

        sql, params = query_builder.build()
        return self.conn.query_scalar(sql, params)
