"""
Identity map ensuring a single in-memory instance per row.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Dict, List, Optional, Tuple, Type

if TYPE_CHECKING:
    from ..core.entity import Entity


class IdentityMap:
    """
    Stores entity instances keyed by (entity type, id). Entities with id 0
    are not persisted yet and are never stored.
    """

    def __init__(self) -> None:
        self._store: Dict[Tuple[type, int], "Entity"] = {}

    @staticmethod
    def _make_key(instance_or_type, entity_id: int) -> Tuple[type, int]:
        if isinstance(instance_or_type, type):
            return (instance_or_type, entity_id)
        return (instance_or_type.__class__, entity_id)

    def add(self, instance: "Entity") -> None:
        if not instance.id:
            return
        self._store[self._make_key(instance, instance.id)] = instance

    def get(self, entity_type: Type["Entity"], entity_id: int) -> Optional["Entity"]:
        return self._store.get(self._make_key(entity_type, entity_id))

    def remove(self, instance: "Entity") -> None:
        key = self._make_key(instance, instance.id)
        if self._store.get(key) is instance:
            del self._store[key]

    def clear(self) -> None:
        self._store.clear()

    def values(self) -> List["Entity"]:
        return list(self._store.values())

    def __contains__(self, instance: "Entity") -> bool:
        if not instance.id:
            return False
        return self._store.get(self._make_key(instance, instance.id)) is instance

    def __len__(self) -> int:
        return len(self._store)
