"""
Field descriptors for Kestrel entities.

Every mapped attribute is a descriptor whose setter reports the change to the
owning entity's :class:`~kestrel.core.change_tracker.ChangeTracker`.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING, Any, Callable, Iterable, List, Optional, Type, Union, cast

from ..exceptions import SessionClosedError
from ..metadata.models import Cascade, FieldMetadata, FieldType, ListFieldMetadata

if TYPE_CHECKING:
    from .entity import Entity


class FieldError(Exception):
    """Internal exception for field configuration issues."""


@dataclass(frozen=True, eq=False)
class LazyReference:
    """
    Placeholder for a referenced entity that has not been loaded yet.

    Compares equal to the entity it stands for so that resolving it never
    counts as a change.
    """

    entity_name: str
    entity_id: int

    def __eq__(self, other: object) -> bool:
        if isinstance(other, LazyReference):
            return (self.entity_name, self.entity_id) == (other.entity_name, other.entity_id)
        if hasattr(other, "_change_tracker"):
            names = {cls.__name__ for cls in type(other).__mro__}
            return self.entity_name in names and getattr(other, "id", None) == self.entity_id
        return NotImplemented

    def __hash__(self) -> int:
        return hash((self.entity_name, self.entity_id))


class EntityCollection(List["Entity"]):
    """List of associated entities backing a :class:`Collection` field."""


def _is_entity(value: Any) -> bool:
    from .entity import Entity

    return isinstance(value, Entity)


class _Declared:
    _creation_counter = 0

    def __init__(self) -> None:
        self.name: Optional[str] = None
        self.entity: Optional[type] = None
        self.creation_counter = _Declared._creation_counter
        _Declared._creation_counter += 1

    def bind(self, entity: type, name: str) -> None:
        self.entity = entity
        self.name = name

    def require_name(self) -> str:
        if self.name is None:
            raise FieldError("Field name is not set.")
        return self.name


class Field(_Declared):
    """
    Base class for mapped column descriptors.
    """

    field_type: str = ""
    primary_key = False
    read_only = False

    def __init__(
        self,
        *,
        mandatory: bool = False,
        unique: bool = False,
        default: Any = None,
        validators: Optional[Iterable[Callable[[Any], None]]] = None,
        description: Optional[str] = None,
    ) -> None:
        super().__init__()
        self.mandatory = mandatory
        self.unique = unique
        self.default = default
        self.validators = list(validators or [])
        self.description = description

    # Descriptor protocol -------------------------------------------------
    def __get__(self, instance: object | None, owner: type | None = None) -> Any:
        if instance is None:
            return self
        return cast("Entity", instance)._field_values.get(self.require_name())

    def __set__(self, instance: object, value: Any) -> None:
        if self.read_only:
            raise AttributeError(f"Field '{self.require_name()}' is managed by the session")
        self.store(cast("Entity", instance), value)

    def store(self, instance: "Entity", value: Any) -> None:
        """
        Write ``value`` and report it to the change tracker.
        """
        name = self.require_name()
        new_value = None if value is None else self.to_python(value)
        old_value = instance._field_values.get(name)
        instance._field_values[name] = new_value
        instance._change_tracker.record_change(name, old_value, new_value)

    # Conversion / validation ---------------------------------------------
    def get_default(self) -> Any:
        if callable(self.default):
            return self.default()
        return self.default

    def to_python(self, value: Any) -> Any:
        return value

    def from_db(self, value: Any) -> Any:
        if value is None:
            return None
        return self.to_python(value)

    def run_validators(self, value: Any) -> None:
        for validator in self.validators:
            validator(value)

    def describe(self) -> FieldMetadata:
        return FieldMetadata(
            name=self.require_name(),
            field_type=self.field_type,
            mandatory=self.mandatory,
            unique=self.unique,
            primary_key=self.primary_key,
            description=self.description,
        )


class IntegerField(Field):
    field_type = FieldType.INT

    def to_python(self, value: Any) -> int:
        if isinstance(value, bool):
            raise ValueError(f"Invalid integer value {value!r} for field '{self.name}'")
        try:
            return int(value)
        except (TypeError, ValueError) as exc:
            raise ValueError(f"Invalid integer value {value!r} for field '{self.name}'") from exc


class DecimalField(Field):
    field_type = FieldType.DECIMAL

    def __init__(self, *, precision: int = 18, scale: int = 2, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        if scale < 0 or precision <= 0 or scale > precision:
            raise FieldError(f"Invalid decimal precision/scale ({precision}, {scale})")
        self.precision = precision
        self.scale = scale

    def to_python(self, value: Any) -> Decimal:
        if isinstance(value, bool):
            raise ValueError(f"Invalid decimal value {value!r} for field '{self.name}'")
        try:
            number = value if isinstance(value, Decimal) else Decimal(str(value))
            return number.quantize(Decimal(1).scaleb(-self.scale))
        except (InvalidOperation, ValueError) as exc:
            raise ValueError(f"Invalid decimal value {value!r} for field '{self.name}'") from exc

    def describe(self) -> FieldMetadata:
        base = super().describe()
        return FieldMetadata(
            name=base.name,
            field_type=base.field_type,
            mandatory=base.mandatory,
            unique=base.unique,
            decimal_precision=self.precision,
            decimal_scale=self.scale,
            description=base.description,
        )


class BooleanField(Field):
    field_type = FieldType.BOOL

    def __init__(self, *, default: Any = False, **kwargs: Any) -> None:
        super().__init__(default=default, **kwargs)

    def to_python(self, value: Any) -> bool:
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            lowered = value.lower()
            if lowered in {"true", "t", "1"}:
                return True
            if lowered in {"false", "f", "0"}:
                return False
        if isinstance(value, (int, float)):
            return bool(value)
        raise ValueError(f"Invalid boolean value {value!r} for field '{self.name}'")


class DateTimeField(Field):
    field_type = FieldType.DATETIME

    def to_python(self, value: Any) -> datetime:
        if isinstance(value, datetime):
            return value
        if isinstance(value, str):
            try:
                return datetime.fromisoformat(value)
            except ValueError as exc:
                raise ValueError(f"Invalid timestamp {value!r} for field '{self.name}'") from exc
        raise ValueError(f"Expected datetime for field '{self.name}', received {value!r}")


class StringField(Field):
    """
    Text column. ``max_length=0`` means unbounded.
    """

    field_type = FieldType.STRING

    def __init__(self, *, max_length: int = 0, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.max_length = max_length

    def to_python(self, value: Any) -> str:
        result = str(value)
        if self.max_length and len(result) > self.max_length:
            raise ValueError(
                f"Value for field '{self.name}' exceeds max_length {self.max_length}"
            )
        return result

    def describe(self) -> FieldMetadata:
        base = super().describe()
        return FieldMetadata(
            name=base.name,
            field_type=base.field_type,
            mandatory=base.mandatory,
            unique=base.unique,
            max_length=self.max_length,
            description=base.description,
        )


# System fields ---------------------------------------------------------------
class IdField(IntegerField):
    primary_key = True
    read_only = True

    def __init__(self) -> None:
        super().__init__(default=0, description="Primary key; 0 until persisted.")


class DeletedField(BooleanField):
    read_only = True

    def __init__(self) -> None:
        super().__init__(default=False, description="Marks the entity as deleted.")


class VersionField(IntegerField):
    read_only = True

    def __init__(self) -> None:
        super().__init__(default=0, description="Optimistic concurrency counter.")


# Associations ----------------------------------------------------------------
def _target_name(to: Union[type, str]) -> str:
    if isinstance(to, type):
        return to.__name__
    return to.split(".")[-1]


class Reference(Field):
    """
    Many-to-one association stored as the referenced entity's id.

    Loaded rows hold a :class:`LazyReference` until the attribute is read (or
    eagerly hydrated by the session).
    """

    def __init__(
        self,
        to: Union[Type["Entity"], str],
        *,
        cascade: Cascade = Cascade.NONE,
        reference_field: Optional[str] = None,
        eager: bool = False,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self.to = to
        self.cascade = Cascade(cascade)
        self.reference_field = reference_field
        self.eager = eager

    @property
    def field_type(self) -> str:  # type: ignore[override]
        return _target_name(self.to)

    def __get__(self, instance: object | None, owner: type | None = None) -> Any:
        if instance is None:
            return self
        entity = cast("Entity", instance)
        raw = entity._field_values.get(self.require_name())
        if isinstance(raw, LazyReference):
            session = entity._session
            if session is None:
                raise SessionClosedError(
                    f"Cannot load '{self.name}' of a detached {type(entity).__name__}",
                    {"entity": type(entity).__name__, "field": self.name},
                )
            raw = session._resolve_reference(raw)
            entity._field_values[self.require_name()] = raw
        return raw

    def store(self, instance: "Entity", value: Any) -> None:
        name = self.require_name()
        previous = instance._field_values.get(name)
        super().store(instance, value)
        if self.reference_field:
            self._sync_inverse(instance, previous, instance._field_values.get(name))

    def to_python(self, value: Any) -> Any:
        if isinstance(value, LazyReference):
            return value
        if not _is_entity(value):
            raise ValueError(f"Field '{self.name}' expects a {self.field_type} entity, got {value!r}")
        if isinstance(self.to, type):
            matches = isinstance(value, self.to)
        else:
            matches = self.field_type in {cls.__name__ for cls in type(value).__mro__}
        if not matches:
            raise ValueError(
                f"Field '{self.name}' expects a {self.field_type} entity, "
                f"got {type(value).__name__}"
            )
        return value

    def from_db(self, value: Any) -> Optional[LazyReference]:
        if value is None:
            return None
        return LazyReference(self.field_type, int(value))

    def describe(self) -> FieldMetadata:
        return FieldMetadata(
            name=self.require_name(),
            field_type=self.field_type,
            mandatory=self.mandatory,
            unique=self.unique,
            cascade=self.cascade,
            reference_field=self.reference_field,
            eager=self.eager,
            description=self.description,
        )

    def _sync_inverse(self, instance: "Entity", previous: Any, current: Any) -> None:
        list_name = cast(str, self.reference_field)
        if _is_entity(previous) and previous is not current:
            items = previous._collections.get(list_name)
            if items is not None and instance in items:
                items.remove(instance)
        if _is_entity(current):
            items = current._collections.get(list_name)
            if items is not None and instance not in items:
                items.append(instance)


class Collection(_Declared):
    """
    One-to-many association: the entities of ``to`` whose ``reference_field``
    points at the owner. Loaded on first access unless ``eager`` is set.
    """

    def __init__(
        self,
        to: Union[Type["Entity"], str],
        *,
        reference_field: str,
        cascade: Cascade = Cascade.NONE,
        eager: bool = False,
        description: Optional[str] = None,
    ) -> None:
        super().__init__()
        self.to = to
        self.reference_field = reference_field
        self.cascade = Cascade(cascade)
        self.eager = eager
        self.description = description

    @property
    def field_type(self) -> str:
        return _target_name(self.to)

    def __get__(self, instance: object | None, owner: type | None = None) -> Any:
        if instance is None:
            return self
        entity = cast("Entity", instance)
        name = self.require_name()
        items = entity._collections.get(name)
        if items is None:
            if entity.is_saved:
                if entity._session is None:
                    raise SessionClosedError(
                        f"Cannot load '{name}' of a detached {type(entity).__name__}",
                        {"entity": type(entity).__name__, "field": name},
                    )
                items = entity._session._load_collection(entity, self.describe())
            else:
                items = EntityCollection()
            entity._collections[name] = items
        return items

    def __set__(self, instance: object, value: Iterable["Entity"]) -> None:
        cast("Entity", instance)._collections[self.require_name()] = EntityCollection(value)

    def describe(self) -> ListFieldMetadata:
        return ListFieldMetadata(
            name=self.require_name(),
            field_type=self.field_type,
            reference_field=self.reference_field,
            cascade=self.cascade,
            eager=self.eager,
            description=self.description,
        )
