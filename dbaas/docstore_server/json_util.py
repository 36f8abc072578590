"""
JSON value helpers for the document store.

Documents are handled as plain decoded JSON trees: dict (object), list
(array), str, int/Decimal (number), bool, None (null). Numbers with a
fraction or an exponent are decoded as decimal.Decimal so that their value
survives a store and load cycle unchanged; floats handed in by callers are
accepted and compared by their shortest repr.

This module provides the few operations the services need:
- Compact, deterministic serialization for storage and SQL parameters
- JSON type classification (bool is never a number)
- Strict structural equality (1 == 1.0, but true != 1)
- Containment with the PostgreSQL jsonb "@>" rules

Invariants:
    - Serialization never escapes non-ASCII characters, so the JSON text of
      a value matches what SQLite's JSON functions render for it
    - Non-finite numbers (NaN, Infinity) are never written or accepted;
      they are not JSON
    - Integers keep full precision (Python ints are unbounded)

How to change safely:
    - Always decode stored text with read_json_string(); json.loads would
      turn decimals back into floats
"""

from __future__ import annotations

import math
from decimal import Decimal
from typing import Any

import simplejson

JSON_TYPES = ("object", "array", "string", "number", "boolean", "null")


def _reject_constant(name: str) -> Any:
    raise ValueError(f"invalid JSON constant: {name}")


def _check_finite(value: Any) -> None:
    if isinstance(value, dict):
        for child in value.values():
            _check_finite(child)
    elif isinstance(value, list):
        for child in value:
            _check_finite(child)
    elif isinstance(value, Decimal) and not value.is_finite():
        raise ValueError(f"non-finite number is not valid JSON: {value}")


def to_json_string(value: Any) -> str:
    """Serialize a JSON value to compact text.

    Raises:
        TypeError: If value contains a non-JSON type
        ValueError: If value contains a non-finite number
    """
    _check_finite(value)
    return simplejson.dumps(
        value,
        ensure_ascii=False,
        separators=(",", ":"),
        allow_nan=False,
        use_decimal=True,
    )


def read_json_string(text: str) -> Any:
    """Parse JSON text; fractions and exponents become Decimal.

    Raises:
        ValueError: If text is not valid JSON (NaN and Infinity included)
    """
    return simplejson.loads(text, use_decimal=True, parse_constant=_reject_constant)


def is_json_number(value: Any) -> bool:
    return isinstance(value, (int, float, Decimal)) and not isinstance(value, bool)


def _is_finite_number(value: Any) -> bool:
    if isinstance(value, Decimal):
        return value.is_finite()
    if isinstance(value, float):
        return math.isfinite(value)
    return True


def json_type_name(value: Any) -> str:
    """Return the JSON type name of a decoded value.

    Raises:
        TypeError: If value is not a JSON value
    """
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if is_json_number(value):
        if not _is_finite_number(value):
            raise TypeError(f"not a JSON value: {value}")
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, dict):
        return "object"
    if isinstance(value, list):
        return "array"
    raise TypeError(f"not a JSON value: {type(value).__name__}")


def as_decimal(number: int | float | Decimal) -> Decimal:
    """Exact decimal value of a JSON number; floats use their shortest repr."""
    if isinstance(number, Decimal):
        return number
    if isinstance(number, float):
        return Decimal(repr(number))
    return Decimal(number)


def json_equal(left: Any, right: Any) -> bool:
    """Structural equality of two JSON values.

    Object key order is ignored, array order is significant. Numbers are
    compared by decimal value.
    """
    left_type = json_type_name(left)
    if left_type != json_type_name(right):
        return False
    if left_type == "object":
        return left.keys() == right.keys() and all(json_equal(v, right[k]) for k, v in left.items())
    if left_type == "array":
        return len(left) == len(right) and all(json_equal(a, b) for a, b in zip(left, right))
    if left_type == "number":
        return as_decimal(left) == as_decimal(right)
    return left == right


def json_contains(target: Any, candidate: Any, top_level: bool = True) -> bool:
    """Check whether target structurally contains candidate.

    Rules:
        - objects: every key of candidate exists in target and its value
          is contained in the target's value
        - arrays: every element of candidate is contained in some element
          of target (order and duplicates are ignored)
        - scalars: same JSON type and equal
        - a top-level array target contains a matching scalar candidate
    """
    if isinstance(candidate, dict):
        if not isinstance(target, dict):
            return False
        return all(
            key in target and json_contains(target[key], value, top_level=False)
            for key, value in candidate.items()
        )

    if isinstance(candidate, list):
        if not isinstance(target, list):
            return False
        return all(
            any(json_contains(element, wanted, top_level=False) for element in target)
            for wanted in candidate
        )

    if isinstance(target, list):
        if not top_level:
            return False
        return any(
            not isinstance(element, (dict, list)) and json_equal(element, candidate)
            for element in target
        )

    if isinstance(target, dict):
        return False
    return json_equal(target, candidate)


def sql_json_contains(target_json: str | None, candidate_json: str | None) -> int | None:
    """SQL function adapter for json_contains (registered on connections)."""
    if target_json is None or candidate_json is None:
        return None
    return int(json_contains(read_json_string(target_json), read_json_string(candidate_json)))


def sql_json_equal(left_json: str | None, right_json: str | None) -> int | None:
    """SQL function adapter for json_equal (registered on connections)."""
    if left_json is None or right_json is None:
        return None
    return int(json_equal(read_json_string(left_json), read_json_string(right_json)))
