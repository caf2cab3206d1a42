"""
Entity and commit listeners notified by the session.
"""

from __future__ import annotations

from collections import defaultdict
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, Protocol, Type

if TYPE_CHECKING:
    from ..core.entity import Entity
    from ..persistence.session import Session


BEFORE_SAVE = "before_save"
AFTER_SAVE = "after_save"
BEFORE_DELETE = "before_delete"
AFTER_DELETE = "after_delete"
EVENTS = (BEFORE_SAVE, AFTER_SAVE, BEFORE_DELETE, AFTER_DELETE)

ListenerHandler = Callable[..., None]


class CommitListener(Protocol):
    """Notified once per successful commit, before the transaction commits."""

    def commit(self, session: "Session") -> None: ...


class ListenerRegistry:
    """
    Maintains handlers for all entities and per entity type. Handlers are
    called as ``handler(entity, session=session)``; raising aborts the commit.
    """

    def __init__(self) -> None:
        self._global_handlers: Dict[str, List[ListenerHandler]] = defaultdict(list)
        self._entity_handlers: Dict[type, Dict[str, List[ListenerHandler]]] = defaultdict(
            lambda: defaultdict(list)
        )

    def register(
        self,
        event: str,
        handler: ListenerHandler,
        *,
        entity_type: Optional[Type["Entity"]] = None,
    ) -> None:
        if event not in EVENTS:
            raise ValueError(f"Unknown listener event '{event}'. Expected one of {', '.join(EVENTS)}")
        if entity_type is not None:
            self._entity_handlers[entity_type][event].append(handler)
        else:
            self._global_handlers[event].append(handler)

    def fire(self, event: str, entity: "Entity", **context: Any) -> None:
        handlers = list(self._global_handlers.get(event, []))
        for entity_type in type(entity).__mro__:
            if entity_type in self._entity_handlers:
                handlers.extend(self._entity_handlers[entity_type].get(event, []))
        for handler in handlers:
            handler(entity, **context)

    def clear(self) -> None:
        self._global_handlers.clear()
        self._entity_handlers.clear()
