"""
Entity validation run by the session before any statement is issued.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Dict, List

from .errors import ValidationError

if TYPE_CHECKING:
    from ..core.entity import Entity
    from ..core.fields import Field


def validate_entity(entity: "Entity") -> None:
    errors: Dict[str, List[str]] = {}

    for name, field in entity._fields.items():
        if field.primary_key:
            continue
        # Raw value: a mandatory reference is satisfied by an unloaded id.
        value = entity._raw_value(name)
        try:
            _validate_field(field, value)
        except ValidationError as exc:
            _merge_errors(errors, exc.errors)

    try:
        entity.clean()
    except ValidationError as exc:
        _merge_errors(errors, exc.errors)
    except ValueError as exc:
        _add_error(errors, "__all__", str(exc))

    if errors:
        raise ValidationError(errors, entity=type(entity).__name__)


def _validate_field(field: "Field", value) -> None:
    field_name = field.require_name()
    if value is None:
        if field.mandatory:
            raise ValidationError({field_name: ["This field is mandatory."]})
        return

    try:
        field.run_validators(value)
    except (ValueError, TypeError) as exc:
        raise ValidationError({field_name: [str(exc)]}) from exc


def _add_error(errors: Dict[str, List[str]], field: str, message: str) -> None:
    errors.setdefault(field, []).append(message)


def _merge_errors(target: Dict[str, List[str]], source: Dict[str, List[str]]) -> None:
    for field, messages in source.items():
        target.setdefault(field, []).extend(messages)
