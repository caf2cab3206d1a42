"""
Validation error for Kestrel entities.
"""

from __future__ import annotations

from typing import Dict, List, Mapping

from ..exceptions import KestrelError


class ValidationError(KestrelError):
    """
    Aggregated validation error storing field-to-messages mapping.
    """

    def __init__(self, errors: Mapping[str, List[str]], entity: str | None = None) -> None:
        self.errors: Dict[str, List[str]] = {
            key: list(messages) for key, messages in errors.items()
        }
        context = {"errors": self.errors}
        if entity:
            context["entity"] = entity
        super().__init__(self._format_message(entity), context)

    def _format_message(self, entity: str | None) -> str:
        segments = []
        for field, messages in self.errors.items():
            prefix = field if field != "__all__" else "non-field"
            segments.append(f"{prefix}: {'; '.join(messages)}")
        message = "; ".join(segments)
        return f"{entity}: {message}" if entity else message
