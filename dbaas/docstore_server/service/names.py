"""Names, ids and reserved document properties."""

from __future__ import annotations

import re

from ..errors import ValidationError

NAME_PATTERN = re.compile(r"[a-zA-Z0-9][a-zA-Z0-9_\-]{0,199}")
ID_PATTERN = NAME_PATTERN

ID_PROPERTY = "id"
VERSION_PROPERTY = "version"
RESERVED_PROPERTIES = (ID_PROPERTY, VERSION_PROPERTY)


def is_valid_name(value: object) -> bool:
    return isinstance(value, str) and NAME_PATTERN.fullmatch(value) is not None


def validate_database_name(name: object) -> str:
    if not is_valid_name(name):
        raise ValidationError("invalid database name", field_name="name")
    return name  # type: ignore[return-value]


def validate_document_id(document_id: object) -> str:
    if not is_valid_name(document_id):
        error = ValidationError(f"invalid document id: {document_id}", field_name=ID_PROPERTY)
        if isinstance(document_id, str):
            error.with_document_id(document_id)
        raise error
    return document_id  # type: ignore[return-value]
