"""
Per-entity change tracking.
"""

from __future__ import annotations

from collections import OrderedDict
from contextlib import contextmanager
from types import MappingProxyType
from typing import Any, Dict, Iterator, Mapping, Optional, Set, Tuple


def _same_value(left: Any, right: Any) -> bool:
    return left is right or bool(left == right)


class ChangeTracker:
    """
    Records which mapped fields differ from the last committed baseline.

    A field is dirty while its current value differs from its baseline value;
    assigning the baseline value back clears it again.
    """

    def __init__(self, baseline: Optional[Mapping[str, Any]] = None) -> None:
        self._baseline: "OrderedDict[str, Any]" = OrderedDict(baseline or {})
        self._dirty: Dict[str, None] = {}
        self.enabled = True

    def record_change(self, field_name: str, old_value: Any, new_value: Any) -> None:
        if not self.enabled:
            return
        if field_name not in self._baseline:
            self._baseline[field_name] = old_value
        if _same_value(self._baseline[field_name], new_value):
            self._dirty.pop(field_name, None)
        else:
            self._dirty[field_name] = None

    def is_dirty(self) -> bool:
        return bool(self._dirty)

    def is_field_dirty(self, field_name: str) -> bool:
        return field_name in self._dirty

    def dirty_fields(self) -> Set[str]:
        return set(self._dirty)

    def reset(self, new_baseline: Mapping[str, Any]) -> None:
        self._baseline = OrderedDict(new_baseline)
        self._dirty.clear()

    @property
    def baseline(self) -> Mapping[str, Any]:
        return MappingProxyType(self._baseline)

    @contextmanager
    def disable_change_tracking(self) -> Iterator[None]:
        previous = self.enabled
        self.enabled = False
        try:
            yield
        finally:
            self.enabled = previous

    # Snapshots let the session undo bookkeeping of a rolled back commit.
    def snapshot(self) -> Tuple["OrderedDict[str, Any]", Tuple[str, ...]]:
        return OrderedDict(self._baseline), tuple(self._dirty)

    def restore(self, snapshot: Tuple["OrderedDict[str, Any]", Tuple[str, ...]]) -> None:
        baseline, dirty = snapshot
        self._baseline = OrderedDict(baseline)
        self._dirty = dict.fromkeys(dirty)

    def __repr__(self) -> str:
        return f"<ChangeTracker dirty={sorted(self._dirty)} enabled={self.enabled}>"
