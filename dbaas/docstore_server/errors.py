"""
Error types for the document store core.

This module defines the domain exceptions raised by the services:
- DocStoreError: Base exception
- NotFoundError: Database or document does not exist
- ConflictError: Version mismatch, duplicate name/id, integrity conflicts
- ValidationError: Malformed input (names, ids, filters, reserved fields)
- InvariantViolationError: A locking or uniqueness assumption was broken

Invariants:
    - All domain errors inherit from DocStoreError
    - http_status is the only place a status code is attached to an error
    - InvariantViolationError is fatal and never retried automatically

How to change safely:
    - New error kinds subclass one of the four categories
    - Keep error codes stable, callers match on them
"""

from __future__ import annotations

from typing import Any


class DocStoreError(Exception):
    """Base exception for all document store errors.

    Attributes:
        message: Error message
        code: Error code for programmatic handling
        details: Additional error context
        document_id: Id of the document the error relates to, if known
    """

    http_status = 500

    def __init__(
        self,
        message: str,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or "DOCSTORE_ERROR"
        self.details = details or {}
        self.document_id: str | None = None

    def with_document_id(self, document_id: str) -> DocStoreError:
        """Annotate the error with the offending document id."""
        self.document_id = document_id
        self.details["document_id"] = document_id
        return self

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            result["details"] = self.details
        return result

    def __str__(self) -> str:
        if self.document_id is not None:
            return f"{self.message} (document: {self.document_id})"
        return self.message


class NotFoundError(DocStoreError):
    """Resource not found.

    Raised when:
    - Database doesn't exist
    - Document doesn't exist
    """

    http_status = 404

    def __init__(self, message: str, resource_type: str, resource_id: str) -> None:
        super().__init__(
            message,
            code="NOT_FOUND",
            details={"resource_type": resource_type, "resource_id": resource_id},
        )
        self.resource_type = resource_type
        self.resource_id = resource_id


class ConflictError(DocStoreError):
    """State conflict.

    Raised when:
    - Expected version does not match the current version
    - Database name or document id already exists
    - Database is not empty on delete
    - Document is still referenced on delete
    - Referenced document does not exist
    """

    http_status = 409

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message, code="CONFLICT", details=details)


class ValidationError(DocStoreError):
    """Input validation failed.

    Raised when:
    - Database name or document id does not match the name pattern
    - Filter tree is malformed or uses an unknown operator
    - limit/offset are out of range
    - Reserved fields have the wrong type or presence
    - A batch touches the same document id twice
    """

    http_status = 400

    def __init__(
        self,
        message: str,
        field_name: str | None = None,
        errors: list[str] | None = None,
    ) -> None:
        super().__init__(
            message,
            code="VALIDATION_ERROR",
            details={"field": field_name, "errors": errors or []},
        )
        self.field_name = field_name
        self.errors = errors or []


class InvariantViolationError(DocStoreError):
    """An internal invariant was violated.

    Raised when a compare-and-set guarded by a lock acquired in the same
    transaction affects an unexpected number of rows, or when id generation
    exhausts its retry budget. Signals a broken locking or uniqueness
    assumption; never mapped to a client error.
    """

    http_status = 500

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message, code="INTERNAL_ERROR", details=details)
