"""
Kestrel public package initialization.
"""

from .connection import ConnectionConfig, IsolationLevel, SQLiteConnection  # noqa: F401
from .core.entity import Entity  # noqa: F401
from .core.fields import (  # noqa: F401
    BooleanField,
    Collection,
    DateTimeField,
    DecimalField,
    IntegerField,
    Reference,
    StringField,
)
from .exceptions import (  # noqa: F401
    ConcurrencyConflictError,
    ConnectionError,
    EntityNotFoundError,
    KestrelError,
    MetadataNotFoundError,
    QueryError,
    ReferentialIntegrityError,
    SessionClosedError,
)
from .listeners import ListenerRegistry  # noqa: F401
from .metadata import Cascade, EntityMetadataResolver  # noqa: F401
from .persistence import DeleteMode, Session, SessionFactory, SessionOptions  # noqa: F401
from .validation import ValidationError  # noqa: F401

__all__ = [
    "BooleanField",
    "Cascade",
    "Collection",
    "ConcurrencyConflictError",
    "ConnectionConfig",
    "ConnectionError",
    "DateTimeField",
    "DecimalField",
    "DeleteMode",
    "Entity",
    "EntityMetadataResolver",
    "EntityNotFoundError",
    "IntegerField",
    "IsolationLevel",
    "KestrelError",
    "ListenerRegistry",
    "MetadataNotFoundError",
    "QueryError",
    "Reference",
    "ReferentialIntegrityError",
    "SQLiteConnection",
    "Session",
    "SessionClosedError",
    "SessionFactory",
    "SessionOptions",
    "StringField",
    "ValidationError",
]
