"""
Validation utilities exposed at the package level.
"""

from .errors import ValidationError
from .pipeline import validate_entity
from .validators import MaxValueValidator, MinValueValidator, RegexValidator

__all__ = [
    "MaxValueValidator",
    "MinValueValidator",
    "RegexValidator",
    "ValidationError",
    "validate_entity",
]
