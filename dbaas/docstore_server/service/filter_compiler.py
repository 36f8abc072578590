"""
Filter DSL compiler.

Compiles a JSON filter tree into SQL predicates on a QueryBuilder.

Filter shapes:
    null                          matches everything
    {"a": 1, "b.c": "x"}          implicit "and", "=" per entry
    {"age": {">": 18, "<": 65}}   operator map per field
    ["or", f1, f2, ...]           group; first element names the combinator:
                                  "and" | "or" | "not" | "contains"
    [f1, f2, ...]                 group with the default combinator "and"
    ["contains", {...}, {...}]    each element is a containment operand

Example:
    >>> qb = QueryBuilder()
    >>> FilterCompiler().apply_filters(qb, ["or", {"status": "active"}, {"status": "pending"}])
    >>> qb.sql
    '(coalesce(json_contains(data, ?), false)) or (coalesce(json_contains(data, ?), false))'

Invariants:
    - Unknown combinators, unknown operators and malformed shapes raise
      ValidationError; nothing is silently ignored except null filters
    - "id" and "version" are compared against the real columns

How to change safely:
    - Only one surface syntax is supported (leading combinator token in
      arrays); do not add object-key combinators without a way to tell the
      two apart
"""

from __future__ import annotations

from typing import Any

from ..errors import ValidationError
from ..json_util import to_json_string
from .filter_operators import MAX_IN_ARGUMENTS, FilterOperator, build_filter_operators
from .names import RESERVED_PROPERTIES
from .query_builder import QueryBuilder

GROUP_OPERATORS = ("and", "or", "not", "contains")


def _describe(value: Any) -> str:
    try:
        return to_json_string(value)
    except (TypeError, ValueError):
        return repr(value)


class FilterCompiler:
    """Translates filter trees into predicates.

    Attributes:
        operators: Operator table keyed by operator token
    """

    def __init__(self, max_in_arguments: int = MAX_IN_ARGUMENTS) -> None:
        self.operators: dict[str, FilterOperator] = build_filter_operators(max_in_arguments)

    def apply_operator(
        self, query_builder: QueryBuilder, key: str, operator_name: str, rhs: Any
    ) -> None:
        operator = self.operators.get(operator_name)
        if operator is None:
            raise ValidationError(f"unknown operator: {operator_name}", field_name=key)
        operator.apply(query_builder, key, rhs)

    def apply_contains(self, query_builder: QueryBuilder, value: Any) -> None:
        """Add a containment predicate for one operand object."""
        if not isinstance(value, dict):
            raise ValidationError(f"invalid operand for contains: {_describe(value)}")
        remaining = dict(value)
        with query_builder.with_and():
            for key in RESERVED_PROPERTIES:
                if key in remaining:
                    expected = remaining.pop(key)
                    if isinstance(expected, str):
                        self.apply_operator(query_builder, key, "=", expected)
                    else:
                        # the special keys are always strings
                        query_builder.add("false")
            try:
                candidate = to_json_string(remaining)
            except (TypeError, ValueError) as e:
                raise ValidationError(f"invalid operand for contains: {e}") from e
            query_builder.add("json_contains(data, ?)", candidate)

    def apply_filters(self, query_builder: QueryBuilder, filters: Any) -> None:
        """Compile a filter tree into the current scope of the query builder.

        Raises:
            ValidationError: If the filter tree is malformed
        """
        if filters is None:
            return

        if isinstance(filters, dict):
            for key, value in filters.items():
                if isinstance(value, dict):
                    # the key is the field, the entries are operator -> right hand side
                    for operator_name, rhs in value.items():
                        self.apply_operator(query_builder, key, operator_name, rhs)
                else:
                    self.apply_operator(query_builder, key, "=", value)
            return

        if isinstance(filters, list):
            if not filters:
                return
            if isinstance(filters[0], str):
                operator, entries = filters[0], filters[1:]
            else:
                operator, entries = "and", filters

            if operator not in GROUP_OPERATORS:
                raise ValidationError(f"unexpected operator: {operator}")

            if operator == "or":
                scope = query_builder.with_or()
            elif operator == "not":
                scope = query_builder.with_not()
            else:
                scope = query_builder.with_and()

            with scope:
                for entry in entries:
                    if operator == "contains":
                        self.apply_contains(query_builder, entry)
                    else:
                        self.apply_filters(query_builder, entry)
            return

        raise ValidationError(f"invalid filters: {_describe(filters)}")
