"""
SQL boolean expression builder.

QueryBuilder collects SQL fragments into a tree of scopes (and / or / not)
and renders the tree to text in one pass, together with the positional
parameters in the order their placeholders appear in the text.

Rendering rules:
    - Fragments of the root scope are joined with a single space
    - Fragments of an and/or scope are each wrapped in parentheses and
      joined with the operator keyword
    - A not scope joins its fragments like an and scope and renders as
      "not (...)"
    - A scope without fragments renders nothing at all
    - A scope with exactly one fragment renders that fragment unwrapped,
      the parent scope adds the parentheses it needs
    - Opening an and/or scope inside a scope of the same operator reuses
      the current scope instead of nesting

Example:
    >>> qb = QueryBuilder()
    >>> qb.add("select * from t where")
    >>> with qb.with_and():
    ...     qb.add("a = ?", 1)
    ...     with qb.with_or():
    ...         qb.add("b = ?", 2)
    ...         qb.add("c = ?", 3)
    >>> qb.sql
    'select * from t where (a = ?) and ((b = ?) or (c = ?))'
    >>> qb.params
    [1, 2, 3]
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import AbstractContextManager, contextmanager
from dataclasses import dataclass, field
from typing import Any, Union


@dataclass
class _Fragment:
    text: str
    params: list[Any]


@dataclass
class _Scope:
    operator: str | None
    children: list[Union[_Fragment, _Scope]] = field(default_factory=list)


def _join(texts: list[str], operator: str | None) -> str:
    if operator is None:
        return " ".join(texts)
    keyword = "and" if operator == "not" else operator
    return f" {keyword} ".join(f"({text})" for text in texts)


def _render(scope: _Scope, params: list[Any]) -> list[str]:
    """Render the children of a scope, appending their parameters in order."""
    texts: list[str] = []
    for child in scope.children:
        if isinstance(child, _Fragment):
            texts.append(child.text)
            params.extend(child.params)
            continue

        child_texts = _render(child, params)
        if not child_texts:
            continue
        text = child_texts[0] if len(child_texts) == 1 else _join(child_texts, child.operator)
        if child.operator == "not":
            text = f"not ({text})"
        texts.append(text)
    return texts


class QueryBuilder:
    """Builds one SQL expression plus its positional parameters."""

    def __init__(self) -> None:
        self._root = _Scope(None)
        self._stack: list[_Scope] = [self._root]

    def add(self, expression: str, *params: Any) -> None:
        """Append a fragment to the current scope."""
        self._stack[-1].children.append(_Fragment(expression, list(params)))

    @contextmanager
    def _with_operator(self, operator: str) -> Iterator[None]:
        current = self._stack[-1]
        if operator == current.operator and operator != "not":
            yield
            return

        scope = _Scope(operator)
        current.children.append(scope)
        self._stack.append(scope)
        try:
            yield
        finally:
            self._stack.pop()

    def with_and(self) -> AbstractContextManager[None]:
        return self._with_operator("and")

    def with_or(self) -> AbstractContextManager[None]:
        return self._with_operator("or")

    def with_not(self) -> AbstractContextManager[None]:
        return self._with_operator("not")

    def _check_no_operator(self) -> None:
        if len(self._stack) != 1:
            raise RuntimeError("operator active")

    def build(self) -> tuple[str, list[Any]]:
        """Render the expression.

        Returns:
            Tuple of (sql, params)
        """
        self._check_no_operator()
        params: list[Any] = []
        sql = _join(_render(self._root, params), None)
        return sql, params

    @property
    def sql(self) -> str:
        return self.build()[0]

    @property
    def params(self) -> list[Any]:
        return self.build()[1]
