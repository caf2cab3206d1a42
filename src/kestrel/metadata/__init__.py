"""
Entity metadata model and resolver.
"""

from .models import (
    DELETED_FIELD,
    ID_FIELD,
    SYSTEM_FIELDS,
    VERSION_FIELD,
    Cascade,
    EntityMetadata,
    FieldMetadata,
    FieldType,
    ListFieldMetadata,
)
from .resolver import EntityMetadataResolver

__all__ = [
    "Cascade",
    "DELETED_FIELD",
    "EntityMetadata",
    "EntityMetadataResolver",
    "FieldMetadata",
    "FieldType",
    "ID_FIELD",
    "ListFieldMetadata",
    "SYSTEM_FIELDS",
    "VERSION_FIELD",
]
