"""
Predicate expressions recorded from plain Python callables.

A predicate such as ``lambda p: (p.age > 18) & (p.name == "Max")`` is run once
against a :class:`FieldPath` proxy; the proxy records field accesses and
comparisons instead of evaluating them, producing a small expression tree.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Tuple, Union

from ..exceptions import QueryError


class Operator(str, Enum):
    EQ = "="
    NE = "!="
    GT = ">"
    GE = ">="
    LT = "<"
    LE = "<="
    LIKE = "LIKE"
    AND = "AND"
    OR = "OR"


class _Node:
    def __and__(self, other: "Expression") -> "BinaryExpression":
        return BinaryExpression(self, Operator.AND, _require_expression(other))

    def __or__(self, other: "Expression") -> "BinaryExpression":
        return BinaryExpression(self, Operator.OR, _require_expression(other))

    def __bool__(self) -> bool:
        raise QueryError(
            "Predicates cannot be used as booleans; combine conditions with '&' and '|' "
            "instead of 'and'/'or' and avoid chained comparisons."
        )


@dataclass(frozen=True, eq=False)
class Comparison(_Node):
    path: Tuple[str, ...]
    operator: Operator
    value: Any


@dataclass(frozen=True, eq=False)
class BinaryExpression(_Node):
    left: "Expression"
    operator: Operator
    right: "Expression"


Expression = Union[Comparison, BinaryExpression]


def _require_expression(value: Any) -> "Expression":
    if isinstance(value, (Comparison, BinaryExpression)):
        return value
    raise QueryError(f"Cannot combine a predicate with {value!r}")


class FieldPath:
    """
    Records attribute access on the predicate parameter.

    ``p.person.name`` yields ``FieldPath(("person", "name"))``; comparing it
    yields a :class:`Comparison`.
    """

    __slots__ = ("_path",)

    def __init__(self, path: Tuple[str, ...] = ()) -> None:
        object.__setattr__(self, "_path", path)

    def __getattr__(self, name: str) -> "FieldPath":
        if name.startswith("_"):
            raise AttributeError(name)
        return FieldPath(self._path + (name,))

    def __setattr__(self, name: str, value: Any) -> None:
        raise QueryError("Predicates cannot assign fields")

    def _compare(self, operator: Operator, value: Any) -> Comparison:
        if not self._path:
            raise QueryError("Compare a field of the entity, not the entity itself")
        if isinstance(value, FieldPath):
            raise QueryError(
                f"Comparing '{'.'.join(self._path)}' with another field is not supported"
            )
        return Comparison(self._path, operator, value)

    def __eq__(self, value: Any) -> Comparison:  # type: ignore[override]
        return self._compare(Operator.EQ, value)

    def __ne__(self, value: Any) -> Comparison:  # type: ignore[override]
        return self._compare(Operator.NE, value)

    def __gt__(self, value: Any) -> Comparison:
        return self._compare(Operator.GT, value)

    def __ge__(self, value: Any) -> Comparison:
        return self._compare(Operator.GE, value)

    def __lt__(self, value: Any) -> Comparison:
        return self._compare(Operator.LT, value)

    def __le__(self, value: Any) -> Comparison:
        return self._compare(Operator.LE, value)

    def like(self, pattern: str) -> Comparison:
        return self._compare(Operator.LIKE, pattern)

    __hash__ = None  # type: ignore[assignment]

    def __bool__(self) -> bool:
        raise QueryError(
            f"Field '{'.'.join(self._path)}' used as a boolean; compare it explicitly, "
            "e.g. 'p.active == True'"
        )

    def __repr__(self) -> str:
        return f"FieldPath({'.'.join(self._path)!r})"


Predicate = Callable[[Any], Any]


def capture(predicate: Predicate) -> Expression:
    """Run ``predicate`` against a :class:`FieldPath` and return the tree."""
    result = predicate(FieldPath())
    if isinstance(result, (Comparison, BinaryExpression)):
        return result
    raise QueryError(f"Predicate returned {result!r} instead of a comparison")
