"""
Transaction manager handling nested transactions and save points.
"""

from __future__ import annotations

import itertools
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Tuple

from ..connection.base import Connection, IsolationLevel, TransactionHandle
from ..dialects.base import Dialect
from ..exceptions import TransactionError

if TYPE_CHECKING:
    from ..core.entity import Entity
    from .session import Session


class TransactionManager:
    """
    Coordinates begin/commit/rollback: the outermost level is the physical
    transaction, every nested level is a named save point.
    """

    def __init__(self, connection: Connection, dialect: Dialect) -> None:
        self.connection = connection
        self.dialect = dialect
        self.handle: Optional[TransactionHandle] = None
        self._stack: List[Optional[str]] = []
        self._savepoint_counter = itertools.count(1)

    @property
    def depth(self) -> int:
        return len(self._stack)

    @property
    def savepoints(self) -> Tuple[str, ...]:
        return tuple(name for name in self._stack if name is not None)

    def begin(self, isolation_level: IsolationLevel) -> Optional[str]:
        if self.depth == 0:
            self.handle = self.connection.begin_transaction(isolation_level)
            self._stack.append(None)
            return None

        if not self.dialect.capabilities.supports_savepoints:
            raise TransactionError("Nested transactions not supported by current dialect.")

        name = self._next_savepoint_name()
        self.connection.save(name)
        self._stack.append(name)
        return name

    def commit(self) -> None:
        if self.depth == 0:
            raise TransactionError("No active transaction to commit.")

        savepoint_name = self._stack[-1]
        if savepoint_name is None:
            self.connection.commit()
            self.handle = None
        elif self.dialect.capabilities.supports_release_savepoint:
            self.connection.release(savepoint_name)
        self._stack.pop()

    def rollback(self) -> None:
        if self.depth == 0:
            raise TransactionError("No active transaction to roll back.")

        savepoint_name = self._stack.pop()
        if savepoint_name is None:
            self.handle = None
            self.connection.rollback()
            return

        self.connection.rollback_to(savepoint_name)
        if self.dialect.capabilities.supports_release_savepoint:
            self.connection.release(savepoint_name)

    def _next_savepoint_name(self) -> str:
        return f"sp_{next(self._savepoint_counter)}"


@dataclass(frozen=True)
class EntitySnapshot:
    """In-memory state of an entity before a scope wrote it."""

    values: Dict[str, Any]
    tracker_state: Tuple[Any, Tuple[str, ...]]

    @classmethod
    def capture(cls, entity: "Entity") -> "EntitySnapshot":
        return cls(dict(entity._field_values), entity.change_tracker.snapshot())

    def apply(self, entity: "Entity") -> None:
        entity._field_values = dict(self.values)
        entity.change_tracker.restore(self.tracker_state)


class Transaction:
    """
    Scope handle returned by :meth:`Session.begin_transaction`.

    Leaving the ``with`` block without :meth:`commit` rolls the scope back.
    """

    def __init__(self, session: "Session", savepoint: Optional[str]) -> None:
        self._session = session
        self.savepoint = savepoint
        self.snapshots: Dict["Entity", EntitySnapshot] = {}
        self.active = True
        self.committed = False

    @property
    def is_nested(self) -> bool:
        return self.savepoint is not None

    def commit(self) -> None:
        """Flush pending work and commit this scope."""
        self._require_active()
        self._session._commit_scope(self)

    def rollback(self) -> None:
        self._require_active()
        self._session._rollback_scope(self)

    def remember(self, entity: "Entity") -> None:
        if entity not in self.snapshots:
            self.snapshots[entity] = EntitySnapshot.capture(entity)

    def absorb(self, child: "Transaction") -> None:
        for entity, snapshot in child.snapshots.items():
            self.snapshots.setdefault(entity, snapshot)

    def _require_active(self) -> None:
        if not self.active:
            raise TransactionError("Transaction scope has already ended.")

    def __enter__(self) -> "Transaction":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if self.active:
            self._session._rollback_scope(self)

    def __repr__(self) -> str:
        label = self.savepoint or "root"
        state = "active" if self.active else ("committed" if self.committed else "rolled back")
        return f"<Transaction {label} {state}>"
