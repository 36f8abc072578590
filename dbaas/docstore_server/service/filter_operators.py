"""
Filter operators for the query DSL.

Each operator token ("=", "!=", "<", "<=", ">", ">=", "is", "in") maps to
an operator object with one method, apply(query_builder, key, rhs), that
adds a predicate for the given field key to the query builder.

Field keys are dot-separated names with optional bracket indexes
("a.b[0].c"). They address a value inside the JSON data column through
SQLite JSON paths ('$."a"."b"[0]."c"'). The reserved keys "id" and
"version" address the real columns instead.

Invariants:
    - Predicates never evaluate to NULL; every comparison is wrapped in
      coalesce(..., false) so that "not" and "!=" treat a missing value as
      "does not match"
    - Ordering comparisons only match values of the operand's JSON type;
      a type mismatch is false, never an error
    - String comparisons use the binary (codepoint) collation explicitly
    - Invalid keys and right hand sides raise ValidationError at compile time
    - "in" matches each candidate by value, exactly like "=" on an indexed
      path; objects and arrays go through the registered json_equal()

How to change safely:
    - Keys are inlined into SQL text; only widen VALID_NAME_PATTERN with
      characters that cannot break out of a quoted JSON path label
    - New operators must keep the NULL-free invariant
"""

from __future__ import annotations

import re
from decimal import Decimal
from typing import Any

from ..errors import ValidationError
from ..json_util import is_json_number, json_type_name, to_json_string
from .names import RESERVED_PROPERTIES
from .query_builder import QueryBuilder

VALID_NAME_PATTERN = r"[a-zA-Z0-9_\-]+"
VALID_INDEX_PATTERN = r"\[(?:[1-9][0-9]{0,8}|0)\]"

VALID_KEY_PATTERN = re.compile(
    rf"{VALID_NAME_PATTERN}(?:\.{VALID_NAME_PATTERN}|{VALID_INDEX_PATTERN})*"
)
NAME_OR_INDEX_PATTERN = re.compile(rf"{VALID_NAME_PATTERN}|{VALID_INDEX_PATTERN}")

MAX_IN_ARGUMENTS = 1000

_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1

# condition on json_type() for each JSON type name
_TYPE_CONDITIONS = {
    "object": "= 'object'",
    "array": "= 'array'",
    "string": "= 'text'",
    "number": "in ('integer', 'real')",
    "boolean": "in ('true', 'false')",
    "null": "= 'null'",
    "undefined": "= 'undefined'",
}


def is_special_key(key: str) -> bool:
    return key in RESERVED_PROPERTIES


def key_segments(key: str) -> list[str | int]:
    """Split a filter key into object names and array indexes.

    Raises:
        ValidationError: If the key does not match VALID_KEY_PATTERN
    """
    if not isinstance(key, str) or not VALID_KEY_PATTERN.fullmatch(key):
        raise ValidationError(f"invalid filter key: {key}", field_name=str(key))
    segments: list[str | int] = []
    for match in NAME_OR_INDEX_PATTERN.finditer(key):
        segment = match.group()
        if segment.startswith("["):
            segments.append(int(segment[1:-1]))
        else:
            segments.append(segment)
    return segments


def json_path(key: str) -> str:
    """Return the quoted SQLite JSON path literal for a filter key."""
    parts = ["$"]
    for segment in key_segments(key):
        if isinstance(segment, int):
            parts.append(f"[{segment}]")
        else:
            # no escaping needed, the key pattern only allows safe characters
            parts.append(f'."{segment}"')
    return "'" + "".join(parts) + "'"


def _sql_value(value: Any) -> Any:
    """Convert a JSON scalar into a bindable SQL parameter.

    SQLite stores JSON numbers as 64-bit integers or doubles, so numbers
    that fit neither exactly are bound as the nearest double (an infinity
    past the double range).
    """
    if isinstance(value, int) and not isinstance(value, bool):
        value = Decimal(value)
    if isinstance(value, Decimal):
        if value == value.to_integral_value() and _INT64_MIN <= value <= _INT64_MAX:
            return int(value)
        return float(value)
    return value


def typed_equality(path: str, rhs: Any) -> tuple[str, list[Any]]:
    """Predicate matching the value at a JSON path equal to rhs.

    Returns:
        Tuple of (expression, params); the expression may evaluate to NULL

    Raises:
        TypeError: If rhs is not a JSON value
        ValueError: If rhs contains a non-finite number
    """
    extract = f"json_extract(data, {path})"
    json_type = f"json_type(data, {path})"

    value_type = json_type_name(rhs)
    if value_type == "null":
        return f"{json_type} = 'null'", []
    if value_type == "boolean":
        return f"{json_type} = '{'true' if rhs else 'false'}'", []
    if value_type == "string":
        return f"{json_type} = 'text' and {extract} = ?", [rhs]
    if value_type == "number":
        return f"{json_type} in ('integer', 'real') and {extract} = ?", [_sql_value(rhs)]
    # objects and arrays: structural equality of the JSON text at the path;
    # json_quote keeps scalars valid JSON when the type check runs second
    return (
        f"{json_type} = '{value_type}' and json_equal(json_quote({extract}), ?)",
        [to_json_string(rhs)],
    )


def _describe(value: Any) -> str:
    try:
        return to_json_string(value)
    except (TypeError, ValueError):
        return repr(value)


class FilterOperator:
    """Base class for filter operators."""

    def apply(self, query_builder: QueryBuilder, key: str, rhs: Any) -> None:
        raise NotImplementedError


class SimpleOperator(FilterOperator):
    """Binary comparison with a JSON scalar right hand side.

    Attributes:
        operator: SQL comparison operator
        negate: Whether the predicate is negated
        allowed_types: JSON type names accepted as right hand side
    """

    def __init__(self, operator: str, negate: bool, allowed_types: tuple[str, ...]) -> None:
        self.operator = operator
        self.negate = negate
        self.allowed_types = allowed_types

    def is_type_allowed(self, rhs: Any) -> bool:
        try:
            return json_type_name(rhs) in self.allowed_types
        except TypeError:
            return False

    def add_to_query_builder(self, query_builder: QueryBuilder, expression: str, *params: Any) -> None:
        # "not null" is null, coalesce so that negation of a non-match is true
        prefix = "not coalesce(" if self.negate else "coalesce("
        query_builder.add(f"{prefix}{expression}, false)", *params)

    def apply_non_special_key(self, query_builder: QueryBuilder, key: str, rhs: Any) -> None:
        path = json_path(key)
        extract = f"json_extract(data, {path})"
        json_type = f"json_type(data, {path})"

        if self.operator == "=":
            expression, params = typed_equality(path, rhs)
            self.add_to_query_builder(query_builder, expression, *params)
            return

        if isinstance(rhs, str):
            expression = f"{extract} {self.operator} ? collate binary and {json_type} = 'text'"
        elif is_json_number(rhs):
            expression = f"{extract} {self.operator} ? and {json_type} in ('integer', 'real')"
        else:
            raise RuntimeError(f"unexpected right hand side for operator {self.operator}: {rhs!r}")
        self.add_to_query_builder(query_builder, expression, _sql_value(rhs))

    def apply(self, query_builder: QueryBuilder, key: str, rhs: Any) -> None:
        if not self.is_type_allowed(rhs):
            raise ValidationError(
                f"invalid right hand side for operator {self.operator}: {_describe(rhs)}",
                field_name=key,
            )
        if is_special_key(key):
            if isinstance(rhs, str):
                self.add_to_query_builder(query_builder, f"{key} {self.operator} ?", rhs)
            else:
                # the special keys are always non-null strings
                query_builder.add("true" if self.negate else "false")
        else:
            self.apply_non_special_key(query_builder, key, rhs)


class EqualsViaContainsOperator(SimpleOperator):
    """Equality compiled as JSON containment of the minimal implied object.

    {"a.b": 1} becomes json_contains(data, '{"a":{"b":1}}'). Keys with
    array indexes fall back to a typed equality at the JSON path.
    """

    def __init__(self, negate: bool = False) -> None:
        super().__init__("=", negate, ("string", "number", "boolean", "null"))

    @staticmethod
    def build_contains_value(key: str, rhs: Any) -> dict[str, Any]:
        segments = key_segments(key)
        result: dict[str, Any] = {}
        current = result
        for segment in segments[:-1]:
            nested: dict[str, Any] = {}
            current[str(segment)] = nested
            current = nested
        current[str(segments[-1])] = rhs
        return result

    def apply_non_special_key(self, query_builder: QueryBuilder, key: str, rhs: Any) -> None:
        if "[" in key:
            super().apply_non_special_key(query_builder, key, rhs)
        else:
            self.add_to_query_builder(
                query_builder,
                "json_contains(data, ?)",
                to_json_string(self.build_contains_value(key, rhs)),
            )


class IsTypeOperator(FilterOperator):
    """JSON type test; "undefined" means the path does not exist."""

    EXPECTED_TYPES = frozenset(_TYPE_CONDITIONS)

    def apply(self, query_builder: QueryBuilder, key: str, rhs: Any) -> None:
        if not isinstance(rhs, str) or rhs not in self.EXPECTED_TYPES:
            raise ValidationError(
                f'unexpected type for "is" operator: {_describe(rhs)}', field_name=key
            )
        if is_special_key(key):
            # both special keys are always strings
            query_builder.add("true" if rhs == "string" else "false")
        else:
            query_builder.add(
                f"coalesce(json_type(data, {json_path(key)}), 'undefined') {_TYPE_CONDITIONS[rhs]}"
            )


class InOperator(FilterOperator):
    """Membership in a list of candidate values."""

    def __init__(self, max_arguments: int = MAX_IN_ARGUMENTS) -> None:
        self.max_arguments = max_arguments

    @staticmethod
    def _placeholders(count: int) -> str:
        return ", ".join("?" for _ in range(count))

    def apply(self, query_builder: QueryBuilder, key: str, rhs: Any) -> None:
        if not isinstance(rhs, list):
            raise ValidationError(
                f'invalid right hand side for "in" operator: {_describe(rhs)}', field_name=key
            )
        if len(rhs) > self.max_arguments:
            raise ValidationError(
                f'too many arguments for "in" operator: {len(rhs)}', field_name=key
            )

        if is_special_key(key):
            arguments = [argument for argument in rhs if isinstance(argument, str)]
            if not arguments:
                query_builder.add("false")
                return
            query_builder.add(f"{key} in ({self._placeholders(len(arguments))})", *arguments)
        else:
            path = json_path(key)
            if not rhs:
                query_builder.add("false")
                return
            try:
                predicates = [typed_equality(path, argument) for argument in rhs]
            except (TypeError, ValueError) as e:
                raise ValidationError(
                    f'invalid argument for "in" operator: {e}', field_name=key
                ) from e
            with query_builder.with_or():
                for expression, params in predicates:
                    query_builder.add(f"coalesce({expression}, false)", *params)


def build_filter_operators(max_in_arguments: int = MAX_IN_ARGUMENTS) -> dict[str, FilterOperator]:
    """Build the operator table, keyed by operator token."""
    ordered_types = ("string", "number")
    return {
        "=": EqualsViaContainsOperator(),
        "!=": EqualsViaContainsOperator(negate=True),
        "<": SimpleOperator("<", False, ordered_types),
        "<=": SimpleOperator("<=", False, ordered_types),
        ">": SimpleOperator(">", False, ordered_types),
        ">=": SimpleOperator(">=", False, ordered_types),
        "is": IsTypeOperator(),
        "in": InOperator(max_in_arguments),
    }


FILTER_OPERATORS = build_filter_operators()
