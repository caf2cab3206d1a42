"""
Chainable query bound to a session.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Generic, Iterator, List, Optional, Tuple, Type, TypeVar, Union

from ..exceptions import SessionClosedError
from .expressions import Expression, Predicate, capture
from .parameters import Statement

if TYPE_CHECKING:
    from ..core.entity import Entity
    from ..persistence.session import Session


TEntity = TypeVar("TEntity", bound="Entity")


class Query(Generic[TEntity]):
    """
    Immutable query over one entity type.

    Predicates are captured when passed to :meth:`where` so mistakes such as
    ``p.age > 1 and p.age < 5`` fail immediately rather than at execution.
    Results are materialized through the session's identity map.
    """

    def __init__(
        self,
        entity_type: Type[TEntity],
        session: Optional["Session"] = None,
        *,
        predicates: Tuple[Expression, ...] = (),
        include_deleted: bool = False,
        limit: Optional[int] = None,
    ) -> None:
        self.entity_type = entity_type
        self._session = session
        self._predicates = predicates
        self._include_deleted = include_deleted
        self._limit = limit

    # Public API --------------------------------------------------------
    def where(self, predicate: Union[Predicate, Expression]) -> "Query[TEntity]":
        expression = predicate if not callable(predicate) else capture(predicate)
        return self._clone(predicates=self._predicates + (expression,))

    def include_deleted(self) -> "Query[TEntity]":
        return self._clone(include_deleted=True)

    def limit(self, value: int) -> "Query[TEntity]":
        if value < 0:
            raise ValueError("limit() requires a non-negative value.")
        return self._clone(limit=value)

    def to_sql(self) -> Statement:
        session = self._require_session()
        tokens = session.translator.translate(
            self.entity_type, self._predicates, include_deleted=self._include_deleted
        )
        statement = session.composer.compose(tokens)
        if self._limit is not None:
            statement.command = f"{statement.command} {session.dialect.limit_clause(self._limit, None)}"
        return statement

    def all(self) -> List[TEntity]:
        session = self._require_session()
        statement = self.to_sql()
        rows = session._fetch(statement)
        return [session._materialize(self.entity_type, row) for row in rows]

    def first(self) -> Optional[TEntity]:
        results = self.limit(1).all()
        return results[0] if results else None

    def __iter__(self) -> Iterator[TEntity]:
        return iter(self.all())

    def __repr__(self) -> str:
        return f"<Query {self.entity_type.__name__} predicates={len(self._predicates)}>"

    # Internal helpers --------------------------------------------------
    def _require_session(self) -> "Session":
        if self._session is None:
            raise SessionClosedError(
                "Query execution requires a session. Use Session.query(entity_type).",
                {"entity": self.entity_type.__name__},
            )
        return self._session

    def _clone(self, **overrides) -> "Query[TEntity]":
        return Query(
            self.entity_type,
            self._session,
            predicates=overrides.get("predicates", self._predicates),
            include_deleted=overrides.get("include_deleted", self._include_deleted),
            limit=overrides.get("limit", self._limit),
        )
