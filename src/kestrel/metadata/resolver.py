"""
Registry mapping entity types to their metadata.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Dict, Iterable, Iterator, Tuple, Type, Union

from ..exceptions import ConfigurationError, MetadataNotFoundError
from ..utils import get_logger
from .models import EntityMetadata

if TYPE_CHECKING:
    from ..core.entity import Entity


class EntityMetadataResolver:
    """
    Builds :class:`EntityMetadata` for every registered entity type once.

    The resolver is never mutated after construction, so one instance can be
    shared by all sessions of a process.
    """

    def __init__(self, entity_types: Iterable[Type["Entity"]]) -> None:
        self.logger = get_logger("metadata")
        self._by_type: Dict[type, EntityMetadata] = {}
        self._types_by_name: Dict[str, type] = {}

        for entity_type in entity_types:
            if entity_type in self._by_type:
                continue
            metadata = entity_type.describe()
            if metadata.name in self._types_by_name:
                raise ConfigurationError(
                    f"Two entity types are named '{metadata.name}'",
                    {"entity": metadata.name},
                )
            self._by_type[entity_type] = metadata
            self._types_by_name[metadata.name] = entity_type

        self._check_associations()
        self.logger.debug("Registered %d entity types", len(self._by_type))

    def _check_associations(self) -> None:
        available = sorted(self._types_by_name)
        for metadata in self._by_type.values():
            for field_meta in metadata.complex_fields:
                if field_meta.field_type not in self._types_by_name:
                    raise MetadataNotFoundError(field_meta.field_type, available)
            for list_meta in metadata.list_fields:
                target_type = self._types_by_name.get(list_meta.field_type)
                if target_type is None:
                    raise MetadataNotFoundError(list_meta.field_type, available)
                target = self._by_type[target_type]
                if (
                    not target.has_field(list_meta.reference_field)
                    or target.get_field(list_meta.reference_field).field_type != metadata.name
                ):
                    raise ConfigurationError(
                        f"'{metadata.name}.{list_meta.name}' needs '{target.name}."
                        f"{list_meta.reference_field}' referencing {metadata.name}",
                        {"entity": metadata.name, "field": list_meta.name},
                    )

    def get_entity_metadata(self, entity: Union[Type["Entity"], "Entity"]) -> EntityMetadata:
        entity_type = entity if isinstance(entity, type) else type(entity)
        try:
            return self._by_type[entity_type]
        except KeyError:
            raise MetadataNotFoundError(entity_type, sorted(self._types_by_name)) from None

    def get_entity_type(self, metadata: EntityMetadata) -> Type["Entity"]:
        return self.get_entity_type_by_name(metadata.name)

    def get_entity_type_by_name(self, name: str) -> Type["Entity"]:
        try:
            return self._types_by_name[name]
        except KeyError:
            raise MetadataNotFoundError(name, sorted(self._types_by_name)) from None

    @property
    def entity_metadata(self) -> Tuple[EntityMetadata, ...]:
        return tuple(self._by_type.values())

    def __contains__(self, entity_type: object) -> bool:
        return entity_type in self._by_type

    def __iter__(self) -> Iterator[EntityMetadata]:
        return iter(self._by_type.values())

    def __len__(self) -> int:
        return len(self._by_type)
