"""
Named statement parameters and their storage conversion.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from ..core.fields import LazyReference


def to_db_value(value: Any) -> Any:
    """
    Convert a Python value to the form stored in the database.
    """
    if value is None:
        return None
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, LazyReference):
        return value.entity_id
    if hasattr(value, "_change_tracker"):
        return value.id
    return value


@dataclass(frozen=True)
class QueryParameter:
    """
    One named, typed and nullable parameter. ``name`` includes the marker
    prefix exactly as it appears in the command text (``@p0``).
    """

    name: str
    value: Any
    field_type: Optional[str] = None

    @property
    def db_value(self) -> Any:
        return to_db_value(self.value)


@dataclass
class Statement:
    """A command text together with its parameters."""

    command: str
    parameters: List[QueryParameter] = field(default_factory=list)

    @property
    def values(self) -> List[Any]:
        return [parameter.value for parameter in self.parameters]

    def parameter_map(self) -> Dict[str, Any]:
        """Driver-ready mapping with the marker prefix removed (``{"p0": 18}``)."""
        return {parameter.name[1:]: parameter.db_value for parameter in self.parameters}

    def __str__(self) -> str:
        return self.command
