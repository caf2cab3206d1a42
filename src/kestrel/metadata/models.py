"""
Immutable descriptions of entity types.

``EntityMetadata`` is the single source of truth consumed by change tracking,
statement generation, query translation and DDL rendering.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional, Tuple

from ..exceptions import ConfigurationError


class Cascade(str, Enum):
    """Propagation of save/delete operations across an association."""

    NONE = "None"
    SAVE = "Save"
    SAVE_DELETE = "SaveDelete"

    @property
    def saves(self) -> bool:
        return self is not Cascade.NONE

    @property
    def deletes(self) -> bool:
        return self is Cascade.SAVE_DELETE


class FieldType:
    INT = "int"
    DECIMAL = "decimal"
    BOOL = "bool"
    DATETIME = "datetime"
    STRING = "string"


PRIMITIVE_FIELD_TYPES = frozenset(
    {FieldType.INT, FieldType.DECIMAL, FieldType.BOOL, FieldType.DATETIME, FieldType.STRING}
)

ID_FIELD = "id"
DELETED_FIELD = "deleted"
VERSION_FIELD = "version"
SYSTEM_FIELDS: Tuple[str, ...] = (ID_FIELD, DELETED_FIELD, VERSION_FIELD)


@dataclass(frozen=True)
class FieldMetadata:
    """
    Description of one mapped column.

    ``field_type`` is either a primitive name or the name of another entity;
    in the latter case the column stores that entity's primary key.
    """

    name: str
    field_type: str
    mandatory: bool = False
    unique: bool = False
    max_length: int = 0
    decimal_precision: int = 0
    decimal_scale: int = 0
    cascade: Cascade = Cascade.NONE
    reference_field: Optional[str] = None
    eager: bool = False
    primary_key: bool = False
    description: Optional[str] = None

    @property
    def is_complex_field_type(self) -> bool:
        return self.field_type not in PRIMITIVE_FIELD_TYPES

    @property
    def is_system_field(self) -> bool:
        return self.name in SYSTEM_FIELDS


@dataclass(frozen=True)
class ListFieldMetadata:
    """
    One-to-many association. Not a column: the items are the rows of
    ``field_type`` whose ``reference_field`` points back at the owner.
    """

    name: str
    field_type: str
    reference_field: str
    cascade: Cascade = Cascade.NONE
    eager: bool = False
    description: Optional[str] = None


@dataclass(frozen=True)
class EntityMetadata:
    name: str
    table: str
    fields: Tuple[FieldMetadata, ...]
    list_fields: Tuple[ListFieldMetadata, ...] = ()
    _by_name: Dict[str, FieldMetadata] = field(
        default_factory=dict, init=False, repr=False, compare=False
    )
    _lists_by_name: Dict[str, ListFieldMetadata] = field(
        default_factory=dict, init=False, repr=False, compare=False
    )

    def __post_init__(self) -> None:
        by_name: Dict[str, FieldMetadata] = {}
        for field_meta in self.fields:
            if field_meta.name in by_name:
                raise ConfigurationError(
                    f"Duplicate field '{field_meta.name}' on entity '{self.name}'",
                    {"entity": self.name, "field": field_meta.name},
                )
            by_name[field_meta.name] = field_meta

        missing = [name for name in SYSTEM_FIELDS if name not in by_name]
        if missing:
            raise ConfigurationError(
                f"Entity '{self.name}' lacks system fields: {', '.join(missing)}",
                {"entity": self.name, "missing": missing},
            )
        primary_keys = [f.name for f in self.fields if f.primary_key]
        if primary_keys != [ID_FIELD]:
            raise ConfigurationError(
                f"Entity '{self.name}' must have exactly one primary key named '{ID_FIELD}'",
                {"entity": self.name, "primary_keys": primary_keys},
            )

        lists_by_name: Dict[str, ListFieldMetadata] = {}
        for list_meta in self.list_fields:
            if list_meta.name in by_name or list_meta.name in lists_by_name:
                raise ConfigurationError(
                    f"Duplicate field '{list_meta.name}' on entity '{self.name}'",
                    {"entity": self.name, "field": list_meta.name},
                )
            lists_by_name[list_meta.name] = list_meta

        object.__setattr__(self, "_by_name", by_name)
        object.__setattr__(self, "_lists_by_name", lists_by_name)

    # Lookups -------------------------------------------------------------
    @property
    def primary_key(self) -> FieldMetadata:
        return self._by_name[ID_FIELD]

    def has_field(self, name: str) -> bool:
        return name in self._by_name

    def get_field(self, name: str) -> FieldMetadata:
        try:
            return self._by_name[name]
        except KeyError as exc:
            raise KeyError(f"Unknown field '{name}' on entity '{self.name}'") from exc

    def find_list_field(self, name: str) -> Optional[ListFieldMetadata]:
        return self._lists_by_name.get(name)

    @property
    def column_names(self) -> Tuple[str, ...]:
        return tuple(f.name for f in self.fields)

    @property
    def user_fields(self) -> Tuple[FieldMetadata, ...]:
        return tuple(f for f in self.fields if not f.is_system_field)

    @property
    def mandatory_fields(self) -> Tuple[FieldMetadata, ...]:
        return tuple(f for f in self.fields if f.mandatory and not f.is_system_field)

    @property
    def complex_fields(self) -> Tuple[FieldMetadata, ...]:
        return tuple(f for f in self.fields if f.is_complex_field_type)
