"""
SQLite dialect implementation.
"""

from __future__ import annotations

from typing import Final

from ..metadata.models import FieldMetadata, FieldType
from .base import DialectCapabilities


class SQLiteDialect:
    """
    SQLite dialect using ``@name`` parameter markers.
    """

    name: Final[str] = "sqlite"
    capabilities: Final[DialectCapabilities] = DialectCapabilities(
        supports_savepoints=True,
        supports_release_savepoint=True,
    )

    def quote_identifier(self, identifier: str) -> str:
        escaped = identifier.replace('"', '""')
        return f'"{escaped}"'

    def format_table(self, table_name: str) -> str:
        return self.quote_identifier(table_name)

    def parameter_marker(self, name: str) -> str:
        return f"@{name}"

    def limit_clause(self, limit: int | None, offset: int | None) -> str:
        parts: list[str] = []
        if limit is not None:
            parts.append(f"LIMIT {limit}")
        if offset is not None:
            if limit is None:
                parts.append("LIMIT -1")
            parts.append(f"OFFSET {offset}")
        return " ".join(parts)

    def column_type(self, field: FieldMetadata) -> str:
        if field.is_complex_field_type:
            return "INTEGER"
        if field.field_type == FieldType.INT:
            return "INTEGER"
        if field.field_type == FieldType.DECIMAL:
            return f"NUMERIC({field.decimal_precision}, {field.decimal_scale})"
        if field.field_type == FieldType.BOOL:
            return "BOOLEAN"
        if field.field_type == FieldType.DATETIME:
            return "TEXT"
        if field.max_length:
            return f"VARCHAR({field.max_length})"
        return "TEXT"
