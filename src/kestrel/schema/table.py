"""
Table helper rendering and applying DDL for one entity.
"""

from __future__ import annotations

from typing import List

from ..connection.base import Connection
from ..dialects.base import Dialect
from ..metadata.models import DELETED_FIELD, ID_FIELD, VERSION_FIELD, EntityMetadata, FieldMetadata
from ..utils import get_logger


class Table:
    """
    Produces and executes ``CREATE TABLE`` / ``DROP TABLE`` for an entity.
    Associations are plain integer columns; no foreign key constraints are
    emitted.
    """

    def __init__(self, connection: Connection, metadata: EntityMetadata, dialect: Dialect) -> None:
        self.connection = connection
        self.metadata = metadata
        self.dialect = dialect
        self.logger = get_logger("schema.table")

    @property
    def name(self) -> str:
        return self.metadata.table

    def create_sql(self) -> str:
        columns = ", ".join(self._render_columns())
        return f"CREATE TABLE {self.dialect.format_table(self.name)} ({columns})"

    def drop_sql(self) -> str:
        table_name = self.dialect.format_table(self.name)
        self.logger.warning("DROP TABLE generated for %s; existing rows will be lost.", table_name)
        return f"DROP TABLE IF EXISTS {table_name}"

    def exists(self) -> bool:
        marker = self.dialect.parameter_marker("name")
        count = self.connection.execute_scalar(
            f"SELECT COUNT(*) FROM sqlite_master WHERE type = 'table' AND name = {marker}",
            {"name": self.name},
        )
        return bool(count)

    def create(self) -> None:
        self.connection.execute_non_query(self.create_sql())
        self.logger.info("Created table %s", self.name)

    def drop(self) -> None:
        self.connection.execute_non_query(self.drop_sql())

    def recreate(self) -> None:
        self.drop()
        self.create()

    def _render_columns(self) -> List[str]:
        pieces: List[str] = []
        for field in self.metadata.fields:
            column = self.dialect.quote_identifier(field.name)
            if field.name == ID_FIELD:
                pieces.append(f"{column} INTEGER NOT NULL PRIMARY KEY AUTOINCREMENT")
            elif field.name in (DELETED_FIELD, VERSION_FIELD):
                pieces.append(f"{column} {self.dialect.column_type(field)} NOT NULL")
            else:
                pieces.append(self._column_definition(column, field))
        return pieces

    def _column_definition(self, column: str, field: FieldMetadata) -> str:
        parts = [column, self.dialect.column_type(field)]
        if field.mandatory:
            parts.append("NOT NULL")
        if field.unique:
            parts.append("UNIQUE")
        return " ".join(parts)
