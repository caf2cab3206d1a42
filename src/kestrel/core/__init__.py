"""
Entity declaration API: base class, field descriptors and change tracking.
"""

from .change_tracker import ChangeTracker
from .entity import Entity, EntityMeta
from .fields import (
    BooleanField,
    Collection,
    DateTimeField,
    DecimalField,
    EntityCollection,
    Field,
    IntegerField,
    LazyReference,
    Reference,
    StringField,
)

__all__ = [
    "BooleanField",
    "ChangeTracker",
    "Collection",
    "DateTimeField",
    "DecimalField",
    "Entity",
    "EntityCollection",
    "EntityMeta",
    "Field",
    "IntegerField",
    "LazyReference",
    "Reference",
    "StringField",
]
