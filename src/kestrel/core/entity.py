"""
Entity base class and the metaclass collecting its field descriptors.
"""

from __future__ import annotations

from collections import OrderedDict
from typing import TYPE_CHECKING, Any, Dict, Optional, Tuple

from ..exceptions import ConfigurationError
from ..metadata.models import PRIMITIVE_FIELD_TYPES as _PRIMITIVES
from ..metadata.models import SYSTEM_FIELDS, EntityMetadata
from ..utils import camel_to_snake
from .change_tracker import ChangeTracker
from .fields import Collection, DeletedField, EntityCollection, Field, IdField, VersionField

if TYPE_CHECKING:
    from ..persistence.session import Session


class EntityMeta(type):
    """
    Collects declared fields in declaration order, inheriting the fields of
    base entities, and records table/abstract options from ``Meta``.
    """

    def __new__(mcls, name: str, bases: Tuple[type, ...], attrs: Dict[str, Any]) -> "EntityMeta":
        declared: Dict[str, Any] = {}
        for attr_name, value in list(attrs.items()):
            if isinstance(value, (Field, Collection)):
                declared[attr_name] = value

        cls = super().__new__(mcls, name, bases, attrs)

        fields: "OrderedDict[str, Field]" = OrderedDict()
        list_fields: "OrderedDict[str, Collection]" = OrderedDict()
        for base in reversed(cls.__mro__[1:]):
            fields.update(getattr(base, "_fields", {}))
            list_fields.update(getattr(base, "_list_fields", {}))

        is_root = not any(isinstance(base, EntityMeta) for base in bases)
        for attr_name, value in sorted(declared.items(), key=lambda item: item[1].creation_counter):
            if attr_name in SYSTEM_FIELDS and not is_root:
                raise ConfigurationError(
                    f"Entity '{name}' cannot redeclare the system field '{attr_name}'",
                    {"entity": name, "field": attr_name},
                )
            value.bind(cls, attr_name)
            if isinstance(value, Collection):
                list_fields[attr_name] = value
            else:
                fields[attr_name] = value

        meta = attrs.get("Meta")
        cls._table = getattr(meta, "table", None) or camel_to_snake(name)
        cls._abstract = bool(getattr(meta, "abstract", False)) or is_root
        cls._fields = fields
        cls._list_fields = list_fields
        return cls


class Entity(metaclass=EntityMeta):
    """
    Base class for mapped domain objects.

    ``id`` is 0 until the session persists the entity. ``deleted`` and
    ``version`` are maintained by the session; user code reads them only.
    """

    id = IdField()
    deleted = DeletedField()
    version = VersionField()

    _fields: "OrderedDict[str, Field]"
    _list_fields: "OrderedDict[str, Collection]"
    _table: str
    _abstract: bool

    def __init__(self, **values: Any) -> None:
        self._init_state()

        unknown = set(values) - set(self._fields) - set(self._list_fields)
        if unknown:
            raise TypeError(
                f"{type(self).__name__} got unexpected field(s): {', '.join(sorted(unknown))}"
            )
        system = set(values) & set(SYSTEM_FIELDS)
        if system:
            raise TypeError(f"System field(s) cannot be assigned: {', '.join(sorted(system))}")

        with self._change_tracker.disable_change_tracking():
            for name, field in self._fields.items():
                value = values[name] if name in values else field.get_default()
                field.store(self, value)
            for name in self._list_fields:
                if name in values:
                    setattr(self, name, values[name])
        self._change_tracker.reset(self._tracked_values())

    def _init_state(self) -> None:
        self._field_values: Dict[str, Any] = {}
        self._collections: Dict[str, EntityCollection] = {}
        self._change_tracker = ChangeTracker()
        self._session: Optional["Session"] = None
        self.evicted = False

    @classmethod
    def _from_row(cls, row: Dict[str, Any]) -> "Entity":
        """
        Build an instance from a database row without invoking ``__init__``
        and with a clean tracker.
        """
        entity = cls.__new__(cls)
        entity._init_state()
        with entity._change_tracker.disable_change_tracking():
            for name, field in cls._fields.items():
                field.store(entity, field.from_db(row.get(name)))
        entity._change_tracker.reset(entity._tracked_values())
        return entity

    def __repr__(self) -> str:
        parts = ", ".join(
            f"{name}={self._field_values.get(name)!r}"
            for name, field in self._fields.items()
            if field.field_type in _PRIMITIVES
        )
        return f"<{type(self).__name__} {parts}>"

    # State ---------------------------------------------------------------
    @property
    def is_saved(self) -> bool:
        return bool(self.id)

    @property
    def is_not_saved(self) -> bool:
        return not self.is_saved

    @property
    def change_tracker(self) -> ChangeTracker:
        return self._change_tracker

    @property
    def session(self) -> Optional["Session"]:
        return self._session

    def is_dirty(self) -> bool:
        return self._change_tracker.is_dirty()

    def _raw_value(self, name: str) -> Any:
        """Stored value without resolving lazy references."""
        return self._field_values.get(name)

    def _assign(self, name: str, value: Any) -> None:
        """Write a field (system fields included) through its descriptor."""
        self._fields[name].store(self, value)

    def _tracked_values(self) -> Dict[str, Any]:
        return {name: self._field_values.get(name) for name in self._fields}

    @classmethod
    def describe(cls) -> EntityMetadata:
        if cls._abstract:
            raise ConfigurationError(
                f"Entity '{cls.__name__}' is abstract", {"entity": cls.__name__}
            )
        return EntityMetadata(
            name=cls.__name__,
            table=cls._table,
            fields=tuple(field.describe() for field in cls._fields.values()),
            list_fields=tuple(field.describe() for field in cls._list_fields.values()),
        )

    # Validation ----------------------------------------------------------
    def validate(self) -> None:
        """
        Raise :class:`~kestrel.validation.ValidationError` if a mandatory
        field is unset or a field validator fails.
        """
        from ..validation import validate_entity

        validate_entity(self)

    def is_valid(self) -> bool:
        from ..validation import ValidationError

        try:
            self.validate()
        except ValidationError:
            return False
        return True

    def clean(self) -> None:
        """
        Hook for subclasses to implement entity-level validation.
        """
        return None

    def eager_load_properties(self) -> None:
        """
        Called by the session after the entity is loaded. Resolves every
        association declared with ``eager=True``; override to load more.
        """
        for name, field in self._fields.items():
            if getattr(field, "eager", False):
                getattr(self, name)
        for name, collection in self._list_fields.items():
            if collection.eager:
                getattr(self, name)

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {}
        for name, field in self._fields.items():
            value = self._field_values.get(name)
            if isinstance(value, Entity):
                value = value.id
            elif value is not None and field.field_type not in _PRIMITIVES:
                value = getattr(value, "entity_id", value)
            result[name] = value
        return result
