"""
Metadata-driven INSERT, UPDATE and DELETE statements.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Iterable, List

from ..dialects.base import Dialect
from ..metadata.models import ID_FIELD, VERSION_FIELD, EntityMetadata, FieldMetadata
from ..query.parameters import QueryParameter, Statement

if TYPE_CHECKING:
    from ..core.entity import Entity


class _Parameters:
    def __init__(self, dialect: Dialect, prefix: str = "p") -> None:
        self.dialect = dialect
        self.prefix = prefix
        self.items: List[QueryParameter] = []

    def add(self, value, field_meta: FieldMetadata) -> str:
        name = self.dialect.parameter_marker(f"{self.prefix}{len(self.items)}")
        self.items.append(QueryParameter(name, value, field_meta.field_type))
        return name


class StatementBuilder:
    """
    Builds write statements with the same ``@pN`` parameter scheme the query
    composer uses. Updates and deletes are guarded by id and version.
    """

    def __init__(self, dialect: Dialect) -> None:
        self.dialect = dialect

    def insert(self, metadata: EntityMetadata, entity: "Entity") -> Statement:
        params = _Parameters(self.dialect)
        columns: List[str] = []
        markers: List[str] = []
        for field_meta in metadata.fields:
            if field_meta.name == ID_FIELD:
                continue
            value = 1 if field_meta.name == VERSION_FIELD else entity._raw_value(field_meta.name)
            columns.append(self.dialect.quote_identifier(field_meta.name))
            markers.append(params.add(value, field_meta))
        command = (
            f"INSERT INTO {self.dialect.format_table(metadata.table)} "
            f"({', '.join(columns)}) VALUES ({', '.join(markers)})"
        )
        return Statement(command, params.items)

    def update(
        self, metadata: EntityMetadata, entity: "Entity", field_names: Iterable[str]
    ) -> Statement:
        params = _Parameters(self.dialect)
        assignments: List[str] = []
        wanted = set(field_names)
        for field_meta in metadata.fields:
            if field_meta.name not in wanted or field_meta.name in (ID_FIELD, VERSION_FIELD):
                continue
            marker = params.add(entity._raw_value(field_meta.name), field_meta)
            assignments.append(f"{self.dialect.quote_identifier(field_meta.name)} = {marker}")
        version_field = metadata.get_field(VERSION_FIELD)
        marker = params.add(entity.version + 1, version_field)
        assignments.append(f"{self.dialect.quote_identifier(VERSION_FIELD)} = {marker}")
        where = self._guard(metadata, entity, params)
        command = (
            f"UPDATE {self.dialect.format_table(metadata.table)} "
            f"SET {', '.join(assignments)} WHERE {where}"
        )
        return Statement(command, params.items)

    def delete(self, metadata: EntityMetadata, entity: "Entity") -> Statement:
        params = _Parameters(self.dialect)
        where = self._guard(metadata, entity, params)
        return Statement(
            f"DELETE FROM {self.dialect.format_table(metadata.table)} WHERE {where}", params.items
        )

    def _guard(self, metadata: EntityMetadata, entity: "Entity", params: _Parameters) -> str:
        id_marker = params.add(entity.id, metadata.primary_key)
        version_marker = params.add(entity.version, metadata.get_field(VERSION_FIELD))
        return (
            f"{self.dialect.quote_identifier(ID_FIELD)} = {id_marker} AND "
            f"{self.dialect.quote_identifier(VERSION_FIELD)} = {version_marker}"
        )

