"""
Reference extraction for documents.

References between documents are derived from key naming conventions in
the document data, never supplied directly:

    "fooId", "foo_id", "FOO_ID"     a single id (string) or null
    "fooIds", "foo_ids", "FOO_IDS"  a list of ids (strings) or null
    "data"                          not scanned (free-form payloads)

Everything else is scanned recursively; array elements are always scanned.

Invariants:
    - Extraction is pure; it reports problems instead of raising, so that
      all offending keys can be reported at once
    - Error messages carry the key path of the offending value
"""

from __future__ import annotations

from typing import Any

FREE_FORM_KEY = "data"


def is_id_key(key: str) -> bool:
    return (len(key) >= 3 and key.endswith("Id")) or (
        len(key) >= 4 and (key.endswith("_id") or key.endswith("_ID"))
    )


def is_ids_key(key: str) -> bool:
    return (len(key) >= 4 and key.endswith("Ids")) or (
        len(key) >= 5 and (key.endswith("_ids") or key.endswith("_IDS"))
    )


def _child_path(path: str, key: str) -> str:
    return f"{path}.{key}" if path else key


def _walk(value: Any, path: str, ids: set[str], errors: list[str]) -> None:
    if isinstance(value, dict):
        for key, child in value.items():
            key_path = _child_path(path, key)
            if is_id_key(key):
                if isinstance(child, str):
                    ids.add(child)
                elif child is not None:
                    errors.append(f"must be a string: {key_path}")
            elif is_ids_key(key):
                if isinstance(child, list):
                    if all(isinstance(element, str) for element in child):
                        ids.update(child)
                    else:
                        errors.append(f"must contain only strings: {key_path}")
                elif child is not None:
                    errors.append(f"must be a list of strings: {key_path}")
            elif key != FREE_FORM_KEY:
                _walk(child, key_path, ids, errors)
    elif isinstance(value, list):
        for index, element in enumerate(value):
            _walk(element, f"{path}[{index}]", ids, errors)


def extract_referenced_ids(document: Any) -> tuple[set[str], list[str]]:
    """Collect the ids referenced by a document.

    Args:
        document: Decoded document data

    Returns:
        Tuple of (referenced_ids, list_of_errors)
    """
    ids: set[str] = set()
    errors: list[str] = []
    _walk(document, "", ids, errors)
    return ids, errors


def diff_references(new_ids: set[str], existing_ids: set[str]) -> tuple[list[str], list[str]]:
    """Return (to_add, to_remove), each sorted."""
    return sorted(new_ids - existing_ids), sorted(existing_ids - new_ids)
