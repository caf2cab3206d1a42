"""
Session (unit of work) coordinating the identity map, transactions and
commit ordering for a set of entities.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Dict, Iterable, List, Optional, Tuple, Type, TypeVar

from ..core.entity import Entity
from ..core.fields import EntityCollection, LazyReference
from ..exceptions import (
    ConcurrencyConflictError,
    ConnectionError,
    EntityNotFoundError,
    ReferentialIntegrityError,
    SessionClosedError,
    SessionOwnershipError,
    TransactionError,
)
from ..listeners.dispatcher import (
    AFTER_DELETE,
    AFTER_SAVE,
    BEFORE_DELETE,
    BEFORE_SAVE,
    CommitListener,
    ListenerRegistry,
)
from ..metadata.models import DELETED_FIELD, ID_FIELD, VERSION_FIELD, ListFieldMetadata
from ..metadata.resolver import EntityMetadataResolver
from ..query.composer import SqlTokenComposer
from ..query.parameters import Statement
from ..query.query import Query
from ..query.translator import QueryTranslator
from ..utils import get_logger, redact_parameters, time_call
from .identity_map import IdentityMap
from .options import DeleteMode, SessionOptions
from .statements import StatementBuilder
from .transaction import Transaction, TransactionManager
from .unit_of_work import UnitOfWork, sort_by_dependencies

if TYPE_CHECKING:
    from ..connection.base import Connection, Row
    from ..schema.table import Table


TEntity = TypeVar("TEntity", bound=Entity)
_Batch = Tuple[List[Entity], List[Entity]]


class SessionState(str, Enum):
    OPEN = "open"
    IN_TRANSACTION = "in_transaction"
    DISPOSED = "disposed"


class Session:
    """
    Owns every entity it creates or loads and writes their changes on
    :meth:`commit`.

    A session is single-threaded: the identity map and change trackers are
    mutated without locking.
    """

    def __init__(
        self,
        connection: "Connection",
        resolver: EntityMetadataResolver,
        options: Optional[SessionOptions] = None,
        *,
        commit_listeners: Iterable[CommitListener] = (),
        listeners: Optional[ListenerRegistry] = None,
    ) -> None:
        self.connection = connection
        self.resolver = resolver
        self.options = options or SessionOptions()
        self.dialect = connection.dialect
        self.translator = QueryTranslator(resolver, self.dialect)
        self.composer = SqlTokenComposer(self.dialect)
        self.statements = StatementBuilder(self.dialect)
        self.identity_map = IdentityMap()
        self.unit_of_work = UnitOfWork()
        self.transaction_manager = TransactionManager(connection, self.dialect)
        self.commit_listeners: List[CommitListener] = list(commit_listeners)
        self.listeners = listeners if listeners is not None else ListenerRegistry()
        self.logger = get_logger("persistence.session")
        self._scopes: List[Transaction] = []
        self._disposed = False
        if not connection.is_open:
            connection.open()

    # ------------------------------------------------------------------ #
    # Context management
    # ------------------------------------------------------------------ #
    def __enter__(self) -> "Session":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.dispose()

    @property
    def state(self) -> SessionState:
        if self._disposed:
            return SessionState.DISPOSED
        if self._scopes:
            return SessionState.IN_TRANSACTION
        return SessionState.OPEN

    def _ensure_open(self) -> None:
        if self._disposed:
            raise SessionClosedError("Session has been disposed.")

    # ------------------------------------------------------------------ #
    # Transactions
    # ------------------------------------------------------------------ #
    def begin_transaction(self) -> Transaction:
        """
        Start the physical transaction, or a save point when one is active.
        """
        self._ensure_open()
        savepoint = self.transaction_manager.begin(self.options.isolation_level)
        scope = Transaction(self, savepoint)
        self._scopes.append(scope)
        self.logger.debug("Began %s", savepoint or "transaction")
        return scope

    def commit(self) -> None:
        """
        Flush pending changes and commit the innermost scope, beginning one
        first if none is active.

        Pending entities are validated before any statement is issued.
        """
        self._ensure_open()
        batch = None
        if not self._scopes:
            batch = self._prepare()
            self.begin_transaction()
        self._commit_scope(self._scopes[-1], batch)

    def rollback(self) -> None:
        self._ensure_open()
        if not self._scopes:
            raise TransactionError("No active transaction to roll back.")
        self._rollback_scope(self._scopes[-1])

    def _commit_scope(self, scope: Transaction, batch: Optional[_Batch] = None) -> None:
        self._ensure_open()
        if not self._scopes or self._scopes[-1] is not scope:
            raise TransactionError("Only the innermost transaction scope can be committed.")
        if batch is None:
            batch = self._prepare()
        try:
            counts = self._flush(scope, *batch)
            for listener in self.commit_listeners:
                listener.commit(self)
            self.transaction_manager.commit()
        except Exception:
            self.logger.warning("Commit failed; rolling back", exc_info=True)
            self._rollback_scope(scope)
            raise
        self._scopes.pop()
        scope.active = False
        scope.committed = True
        if self._scopes:
            self._scopes[-1].absorb(scope)
        self.logger.info(
            "Committed %s: %d inserted, %d updated, %d deleted",
            scope.savepoint or "transaction",
            counts["inserted"],
            counts["updated"],
            counts["deleted"],
        )

    def _rollback_scope(self, scope: Transaction) -> None:
        if scope not in self._scopes:
            raise TransactionError("Transaction scope is no longer active.")
        while self._scopes[-1] is not scope:
            self._rollback_scope(self._scopes[-1])
        try:
            self.transaction_manager.rollback()
        finally:
            self._scopes.pop()
            scope.active = False
            self._restore(scope)
            self.logger.info("Rolled back %s", scope.savepoint or "transaction")

    def _restore(self, scope: Transaction) -> None:
        for entity, snapshot in scope.snapshots.items():
            attached = entity._session is self
            if attached:
                self.identity_map.remove(entity)
            snapshot.apply(entity)
            if not attached:
                continue
            if entity.is_saved:
                self.identity_map.add(entity)
            else:
                self.unit_of_work.register_new(entity)

    # ------------------------------------------------------------------ #
    # Loading
    # ------------------------------------------------------------------ #
    def query(self, entity_type: Type[TEntity]) -> Query[TEntity]:
        self._ensure_open()
        self.resolver.get_entity_metadata(entity_type)
        return Query(entity_type, self)

    def get(self, entity_type: Type[TEntity], entity_id: int) -> TEntity:
        """
        Return the entity with ``entity_id``; raise
        :class:`EntityNotFoundError` if it does not exist or is deleted.
        """
        return self._load(entity_type, entity_id, include_deleted=False)

    def _load(self, entity_type: Type[TEntity], entity_id: int, *, include_deleted: bool) -> TEntity:
        self._ensure_open()
        self.resolver.get_entity_metadata(entity_type)
        cached = self.identity_map.get(entity_type, entity_id)
        if cached is not None:
            if cached.deleted and not include_deleted:
                raise EntityNotFoundError(entity_type.__name__, entity_id)
            return cached  # type: ignore[return-value]

        query = self.query(entity_type).where(lambda e: e.id == entity_id)
        if include_deleted:
            query = query.include_deleted()
        entity = query.first()
        if entity is None:
            raise EntityNotFoundError(entity_type.__name__, entity_id)
        return entity

    def _resolve_reference(self, reference: LazyReference) -> Entity:
        entity_type = self.resolver.get_entity_type_by_name(reference.entity_name)
        return self._load(entity_type, reference.entity_id, include_deleted=True)

    def _load_collection(self, owner: Entity, list_meta: ListFieldMetadata) -> EntityCollection:
        self._ensure_open()
        if owner.is_not_saved:
            return EntityCollection()
        target_type = self.resolver.get_entity_type_by_name(list_meta.field_type)
        back_reference = list_meta.reference_field
        owner_id = owner.id
        items = self.query(target_type).where(lambda e: getattr(e, back_reference) == owner_id)
        return EntityCollection(items.all())

    def _fetch(self, statement: Statement) -> List["Row"]:
        self._ensure_open()
        return self._execute("select", None, statement, self.connection.execute_reader)

    def _materialize(self, entity_type: Type[TEntity], row: "Row") -> TEntity:
        existing = self.identity_map.get(entity_type, row[ID_FIELD])
        if existing is not None:
            return existing  # type: ignore[return-value]
        entity = entity_type._from_row(dict(row))
        entity._session = self
        self.identity_map.add(entity)
        entity.eager_load_properties()
        return entity  # type: ignore[return-value]

    # ------------------------------------------------------------------ #
    # Registration
    # ------------------------------------------------------------------ #
    def create(self, entity_type: Type[TEntity], **values: Any) -> TEntity:
        """Construct a new entity attached to this session."""
        self._ensure_open()
        self.resolver.get_entity_metadata(entity_type)
        entity = entity_type(**values)
        self._attach(entity)
        return entity

    def save_or_update(self, entity: Entity) -> None:
        """
        Attach ``entity`` and everything reachable through ``SAVE`` or
        ``SAVE_DELETE`` associations. Changes are written on :meth:`commit`.
        """
        self._ensure_open()
        self._cascade_save(entity, set())

    def _cascade_save(self, entity: Entity, visited: set) -> None:
        if entity in visited:
            return
        visited.add(entity)
        self._attach(entity)
        metadata = self.resolver.get_entity_metadata(entity)
        for field_meta in metadata.complex_fields:
            if not field_meta.cascade.saves:
                continue
            # Unloaded references cannot carry changes.
            target = entity._raw_value(field_meta.name)
            if isinstance(target, Entity):
                self._cascade_save(target, visited)
        for list_meta in metadata.list_fields:
            if not list_meta.cascade.saves:
                continue
            for item in list(entity._collections.get(list_meta.name) or ()):
                if item._raw_value(list_meta.reference_field) is None:
                    item._assign(list_meta.reference_field, entity)
                self._cascade_save(item, visited)

    def _attach(self, entity: Entity) -> None:
        self.resolver.get_entity_metadata(entity)
        owner = entity._session
        if owner is not None and owner is not self:
            raise SessionOwnershipError(
                f"{type(entity).__name__} #{entity.id} is attached to another session.",
                {"entity": type(entity).__name__, "id": entity.id},
            )
        if entity.is_saved:
            existing = self.identity_map.get(type(entity), entity.id)
            if existing is not None and existing is not entity:
                raise SessionOwnershipError(
                    f"Another instance of {type(entity).__name__} #{entity.id} is already "
                    "attached to this session.",
                    {"entity": type(entity).__name__, "id": entity.id},
                )
            self.identity_map.add(entity)
        else:
            self.unit_of_work.register_new(entity)
        entity._session = self
        entity.evicted = False

    def delete(self, entity: Entity) -> None:
        """
        Mark ``entity`` and its ``SAVE_DELETE`` associations deleted.

        Raises :class:`ReferentialIntegrityError`, changing nothing, if an
        attached entity outside that set references one of them through a
        mandatory association. Marks made inside a transaction scope are
        undone when that scope rolls back.
        """
        self._ensure_open()
        if entity._session is not self:
            raise SessionOwnershipError(
                f"{type(entity).__name__} is not attached to this session.",
                {"entity": type(entity).__name__, "id": entity.id},
            )
        members = self._delete_cascade(entity, {})
        self._check_referrers(members)
        scope = self._scopes[-1] if self._scopes else None
        for member in members:
            if member.is_not_saved:
                self.evict(member)
            elif not member.deleted:
                if scope is not None:
                    scope.remember(member)
                member._assign(DELETED_FIELD, True)
        self.logger.debug("Marked %d entities for deletion", len(members))

    def _delete_cascade(self, entity: Entity, members: Dict[Entity, None]) -> List[Entity]:
        if entity in members:
            return list(members)
        members[entity] = None
        metadata = self.resolver.get_entity_metadata(entity)
        for field_meta in metadata.complex_fields:
            if field_meta.cascade.deletes:
                target = getattr(entity, field_meta.name)
                if target is not None:
                    self._delete_cascade(target, members)
        for list_meta in metadata.list_fields:
            if list_meta.cascade.deletes:
                for item in list(getattr(entity, list_meta.name)):
                    self._delete_cascade(item, members)
        return list(members)

    def _check_referrers(self, members: List[Entity]) -> None:
        doomed = set(members)
        for other in self.identity_map.values() + self.unit_of_work.new:
            if other in doomed or other.deleted:
                continue
            metadata = self.resolver.get_entity_metadata(other)
            for field_meta in metadata.complex_fields:
                if not field_meta.mandatory:
                    continue
                target = other._raw_value(field_meta.name)
                if target is None:
                    continue
                for member in members:
                    if target is member or (isinstance(target, LazyReference) and target == member):
                        raise ReferentialIntegrityError(
                            f"Cannot delete {type(member).__name__} #{member.id}: "
                            f"{type(other).__name__} #{other.id} references it through "
                            f"mandatory field '{field_meta.name}'.",
                            {
                                "entity": type(member).__name__,
                                "id": member.id,
                                "referrer": type(other).__name__,
                                "referrer_id": other.id,
                                "field": field_meta.name,
                            },
                        )

    def evict(self, entity: Entity) -> None:
        """Detach ``entity``; it will never be returned by this session again."""
        self.identity_map.remove(entity)
        self.unit_of_work.discard(entity)
        entity._session = None
        entity.evicted = True
        self.logger.debug("Evicted %r", entity)

    def dispose(self) -> None:
        """Roll back open scopes, close the connection and detach all entities."""
        if self._disposed:
            return
        try:
            while self._scopes:
                self._rollback_scope(self._scopes[-1])
        finally:
            self.connection.close()
            for entity in self.identity_map.values() + self.unit_of_work.new:
                entity._session = None
                entity.evicted = True
            self.identity_map.clear()
            self.unit_of_work.clear()
            self._disposed = True
            self.logger.debug("Session disposed")

    close = dispose

    def get_table(self, entity_type: Type[Entity]) -> "Table":
        from ..schema.table import Table

        self._ensure_open()
        return Table(self.connection, self.resolver.get_entity_metadata(entity_type), self.dialect)

    # ------------------------------------------------------------------ #
    # Flush
    # ------------------------------------------------------------------ #
    def _prepare(self) -> _Batch:
        """
        Collect pending writes, notify ``before_*`` listeners and validate
        the entities about to be saved.
        """
        saves: List[Entity] = self.unit_of_work.new
        deletes: List[Entity] = []
        for entity in self.identity_map.values():
            tracker = entity.change_tracker
            if entity.deleted and tracker.is_field_dirty(DELETED_FIELD):
                deletes.append(entity)
            elif tracker.is_dirty():
                saves.append(entity)

        for entity in saves:
            self.listeners.fire(BEFORE_SAVE, entity, session=self)
        for entity in deletes:
            self.listeners.fire(BEFORE_DELETE, entity, session=self)
        for entity in saves:
            entity.validate()
        return saves, deletes

    def _flush(self, scope: Transaction, saves: List[Entity], deletes: List[Entity]) -> Dict[str, int]:
        counts = {"inserted": 0, "updated": 0, "deleted": 0}
        if not saves and not deletes:
            return counts

        pending_new = set(self.unit_of_work.new)
        ordered_saves = sort_by_dependencies(saves, lambda e: self._unsaved_targets(e, pending_new))
        doomed = set(deletes)
        # Cycles among deleted entities are broken at the closing edge.
        ordered_deletes = sort_by_dependencies(
            deletes,
            lambda e: [t for t in self._loaded_targets(e) if t in doomed and t is not e],
            strict=False,
        )

        with time_call("session.flush", self.logger, threshold_ms=self.options.slow_query_ms):
            for entity in ordered_saves:
                scope.remember(entity)
                if entity.is_not_saved:
                    self._insert(entity)
                    counts["inserted"] += 1
                else:
                    self._update(entity)
                    counts["updated"] += 1
                self.listeners.fire(AFTER_SAVE, entity, session=self)
            for entity in reversed(ordered_deletes):
                scope.remember(entity)
                self._delete_row(entity)
                counts["deleted"] += 1
                self.listeners.fire(AFTER_DELETE, entity, session=self)
        return counts

    def _loaded_targets(self, entity: Entity) -> List[Entity]:
        metadata = self.resolver.get_entity_metadata(entity)
        targets = []
        for field_meta in metadata.complex_fields:
            target = entity._raw_value(field_meta.name)
            if isinstance(target, Entity):
                targets.append(target)
        return targets

    def _unsaved_targets(self, entity: Entity, pending_new: set) -> List[Entity]:
        targets = []
        for target in self._loaded_targets(entity):
            if target.is_saved:
                continue
            if target not in pending_new:
                raise ReferentialIntegrityError(
                    f"{type(entity).__name__} references an unsaved {type(target).__name__} "
                    "that is not attached to this session; save it first or cascade saves.",
                    {"entity": type(entity).__name__, "target": type(target).__name__},
                )
            targets.append(target)
        return targets

    def _insert(self, entity: Entity) -> None:
        metadata = self.resolver.get_entity_metadata(entity)
        statement = self.statements.insert(metadata, entity)
        new_id = self._execute("insert", entity, statement, self.connection.execute_insert)
        with entity.change_tracker.disable_change_tracking():
            entity._assign(ID_FIELD, new_id)
            entity._assign(VERSION_FIELD, 1)
        entity.change_tracker.reset(entity._tracked_values())
        self.unit_of_work.discard(entity)
        self.identity_map.add(entity)

    def _update(self, entity: Entity) -> None:
        metadata = self.resolver.get_entity_metadata(entity)
        statement = self.statements.update(metadata, entity, entity.change_tracker.dirty_fields())
        self._write_guarded("update", entity, statement)

    def _delete_row(self, entity: Entity) -> None:
        metadata = self.resolver.get_entity_metadata(entity)
        if self.options.delete_mode is DeleteMode.HARD:
            statement = self.statements.delete(metadata, entity)
        else:
            statement = self.statements.update(
                metadata, entity, entity.change_tracker.dirty_fields()
            )
        self._write_guarded("delete", entity, statement)

    def _write_guarded(self, operation: str, entity: Entity, statement: Statement) -> None:
        affected = self._execute(operation, entity, statement, self.connection.execute_non_query)
        if affected == 0:
            raise ConcurrencyConflictError(type(entity).__name__, entity.id, entity.version)
        with entity.change_tracker.disable_change_tracking():
            entity._assign(VERSION_FIELD, entity.version + 1)
        entity.change_tracker.reset(entity._tracked_values())

    def _execute(
        self,
        operation: str,
        entity: Optional[Entity],
        statement: Statement,
        method: Callable[[str, Dict[str, Any]], Any],
    ) -> Any:
        parameters = statement.parameter_map()
        try:
            with time_call(
                f"session.{operation}",
                self.logger,
                sql=statement.command,
                params=redact_parameters(parameters),
                threshold_ms=self.options.slow_query_ms,
            ):
                return method(statement.command, parameters)
        except ConnectionError as exc:
            if entity is None:
                raise
            name = type(entity).__name__
            raise ConnectionError(
                f"{operation} of {name} #{entity.id} failed: {exc.message}",
                {**exc.context, "operation": operation, "entity": name, "id": entity.id},
            ) from exc

    def __repr__(self) -> str:
        return (
            f"<Session {self.state.value} entities={len(self.identity_map)} "
            f"new={len(self.unit_of_work)}>"
        )
