"""
Unit of Work bookkeeping: pending new entities and commit ordering.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Callable, Dict, Iterable, List

from ..exceptions import ReferentialIntegrityError

if TYPE_CHECKING:
    from ..core.entity import Entity


class UnitOfWork:
    """
    Tracks entities attached to a session that have no id yet, in the order
    they were attached.
    """

    def __init__(self) -> None:
        self._new: Dict["Entity", None] = {}

    def register_new(self, instance: "Entity") -> None:
        self._new[instance] = None

    def discard(self, instance: "Entity") -> None:
        self._new.pop(instance, None)

    def is_new(self, instance: "Entity") -> bool:
        return instance in self._new

    @property
    def new(self) -> List["Entity"]:
        return list(self._new)

    def clear(self) -> None:
        self._new.clear()

    def __len__(self) -> int:
        return len(self._new)


def sort_by_dependencies(
    entities: Iterable["Entity"],
    dependencies: Callable[["Entity"], Iterable["Entity"]],
    *,
    strict: bool = True,
) -> List["Entity"]:
    """
    Order ``entities`` so that every entity comes after the entities it
    depends on. Input order is kept wherever dependencies allow.

    ``dependencies(entity)`` must only yield members of ``entities``. A cycle
    raises :class:`ReferentialIntegrityError` when ``strict``; otherwise the
    edge closing the cycle is ignored.
    """
    pending = list(entities)
    ordered: List["Entity"] = []
    done: Dict["Entity", None] = {}
    visiting: List["Entity"] = []

    def visit(entity: "Entity") -> None:
        if entity in done:
            return
        if any(entity is other for other in visiting):
            if not strict:
                return
            chain = " -> ".join(type(e).__name__ for e in visiting + [entity])
            raise ReferentialIntegrityError(
                f"Circular reference between unsaved entities: {chain}",
                {"entities": [type(e).__name__ for e in visiting]},
            )
        visiting.append(entity)
        for dependency in dependencies(entity):
            visit(dependency)
        visiting.pop()
        done[entity] = None
        ordered.append(entity)

    for entity in pending:
        visit(entity)
    return ordered
