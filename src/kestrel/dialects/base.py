"""
Dialect strategy interfaces describing SQL rendering behaviors.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from ..metadata.models import FieldMetadata


@dataclass(frozen=True)
class DialectCapabilities:
    """
    Feature flags describing backend capabilities.
    """

    supports_savepoints: bool = True
    supports_release_savepoint: bool = True


class Dialect(Protocol):
    """
    Strategy interface consumed by the translator, statement builder, schema
    helper and connections.
    """

    @property
    def name(self) -> str: ...

    @property
    def capabilities(self) -> DialectCapabilities: ...

    def quote_identifier(self, identifier: str) -> str: ...

    def format_table(self, table_name: str) -> str: ...

    def parameter_marker(self, name: str) -> str: ...

    def limit_clause(self, limit: int | None, offset: int | None) -> str: ...

    def column_type(self, field: FieldMetadata) -> str: ...
