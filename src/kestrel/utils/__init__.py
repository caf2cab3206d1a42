"""
Utility helpers shared across Kestrel packages.
"""

from .logging import configure_logging, get_logger, redact_parameters, time_call
from .naming import camel_to_snake, require_identifier

__all__ = [
    "camel_to_snake",
    "configure_logging",
    "get_logger",
    "redact_parameters",
    "require_identifier",
    "time_call",
]
