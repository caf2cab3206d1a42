"""
Built-in field validators.
"""

from __future__ import annotations

import re
from typing import Any, Protocol


class Validator(Protocol):
    def __call__(self, value: Any) -> None: ...


class MinValueValidator:
    def __init__(self, minimum: Any, message: str | None = None) -> None:
        self.minimum = minimum
        self.message = message or f"Ensure value is at least {minimum}."

    def __call__(self, value: Any) -> None:
        if value is not None and value < self.minimum:
            raise ValueError(self.message)


class MaxValueValidator:
    def __init__(self, maximum: Any, message: str | None = None) -> None:
        self.maximum = maximum
        self.message = message or f"Ensure value is at most {maximum}."

    def __call__(self, value: Any) -> None:
        if value is not None and value > self.maximum:
            raise ValueError(self.message)


class RegexValidator:
    """Full-match ``pattern`` against string values."""

    def __init__(self, pattern: str, message: str | None = None) -> None:
        self.pattern = re.compile(pattern)
        self.message = message or f"Value does not match {pattern!r}."

    def __call__(self, value: Any) -> None:
        if value is None:
            return
        if not isinstance(value, str):
            raise TypeError("RegexValidator expects a string value.")
        if not self.pattern.fullmatch(value):
            raise ValueError(self.message)
