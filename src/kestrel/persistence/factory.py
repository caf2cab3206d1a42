"""
Session factory wiring connections, metadata, options and listeners.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Iterable, List, Optional, Type

from ..connection.base import ConnectionConfig, ConnectionFactory
from ..connection.sqlite import SQLiteConnectionFactory
from ..listeners.dispatcher import CommitListener, ListenerRegistry
from ..metadata.resolver import EntityMetadataResolver
from ..utils import get_logger
from .options import SessionOptions
from .session import Session

if TYPE_CHECKING:
    from ..core.entity import Entity


class SessionFactory:
    """
    Opens sessions that share one resolver, one options object and one set
    of listeners. Each session gets its own connection.
    """

    def __init__(
        self,
        connection_factory: ConnectionFactory,
        resolver: EntityMetadataResolver,
        options: Optional[SessionOptions] = None,
        *,
        commit_listeners: Iterable[CommitListener] = (),
        listeners: Optional[ListenerRegistry] = None,
    ) -> None:
        self.connection_factory = connection_factory
        self.resolver = resolver
        self.options = options or SessionOptions()
        self.commit_listeners: List[CommitListener] = list(commit_listeners)
        self.listeners = listeners if listeners is not None else ListenerRegistry()
        self.logger = get_logger("persistence.factory")

    @classmethod
    def for_sqlite(
        cls,
        config: ConnectionConfig,
        entity_types: Iterable[Type["Entity"]],
        options: Optional[SessionOptions] = None,
        **kwargs,
    ) -> "SessionFactory":
        options = options or SessionOptions()
        connection_factory = SQLiteConnectionFactory(config, slow_query_ms=options.slow_query_ms)
        return cls(connection_factory, EntityMetadataResolver(entity_types), options, **kwargs)

    def add_commit_listener(self, listener: CommitListener) -> None:
        self.commit_listeners.append(listener)

    def open_session(self) -> Session:
        connection = self.connection_factory()
        self.logger.debug("Opening session")
        return Session(
            connection,
            self.resolver,
            self.options,
            commit_listeners=self.commit_listeners,
            listeners=self.listeners,
        )
