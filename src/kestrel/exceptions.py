"""Exception hierarchy for Kestrel.

Every error raised by the engine derives from :class:`KestrelError` and
carries a ``context`` mapping describing the entity, field or statement
involved, so callers can report failures without parsing messages.
"""

from __future__ import annotations

from typing import Any


class KestrelError(Exception):
    """Base exception for all Kestrel errors."""

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def to_dict(self) -> dict[str, Any]:
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "context": self.context,
        }


class ConfigurationError(KestrelError):
    """Invalid engine, session or connection configuration."""


class MetadataNotFoundError(KestrelError):
    """The entity type is not known to the metadata resolver."""

    def __init__(self, entity: Any, available: list[str] | None = None) -> None:
        name = entity if isinstance(entity, str) else getattr(entity, "__name__", repr(entity))
        available = available or []
        if available:
            message = f"No metadata registered for '{name}'. Registered entities: {', '.join(available)}"
        else:
            message = f"No metadata registered for '{name}'."
        super().__init__(message, {"entity": name, "available_entities": available})
        self.entity_name = name


class QueryError(KestrelError):
    """A predicate or token stream could not be translated into SQL."""


class EntityNotFoundError(KestrelError):
    """A required load found no row for the requested primary key."""

    def __init__(self, entity_name: str, entity_id: Any) -> None:
        super().__init__(
            f"{entity_name} with id {entity_id!r} does not exist.",
            {"entity": entity_name, "id": entity_id},
        )
        self.entity_name = entity_name
        self.entity_id = entity_id


class ConcurrencyConflictError(KestrelError):
    """Another writer changed the row since it was loaded (version mismatch)."""

    def __init__(self, entity_name: str, entity_id: Any, expected_version: int) -> None:
        super().__init__(
            f"{entity_name} #{entity_id} was modified concurrently "
            f"(expected version {expected_version}).",
            {"entity": entity_name, "id": entity_id, "expected_version": expected_version},
        )
        self.entity_name = entity_name
        self.entity_id = entity_id
        self.expected_version = expected_version


class ReferentialIntegrityError(KestrelError):
    """A delete or save would leave a dangling reference."""


class SessionClosedError(KestrelError):
    """The session was disposed or the entity is no longer attached to one."""


class SessionOwnershipError(KestrelError):
    """The entity is already owned by another session or identity."""


class TransactionError(KestrelError):
    """Transaction scopes were used out of order."""


class ConnectionError(KestrelError):  # noqa: A001
    """Failure raised at the database connection boundary."""
