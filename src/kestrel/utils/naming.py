"""
Naming utilities for Kestrel.
"""

import re


_FIRST_CAP_RE = re.compile("(.)([A-Z][a-z]+)")
_ALL_CAP_RE = re.compile("([a-z0-9])([A-Z])")
_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def camel_to_snake(name: str) -> str:
    """
    Convert ``CamelCase`` entity names to ``snake_case`` table names.
    """
    step1 = _FIRST_CAP_RE.sub(r"\1_\2", name)
    return _ALL_CAP_RE.sub(r"\1_\2", step1).lower()


def require_identifier(name: str, kind: str = "identifier") -> str:
    """
    Return ``name`` unchanged if it is a plain SQL identifier.

    Used for names that are interpolated into SQL text (save points, tables)
    and therefore cannot travel as parameters.
    """
    if not isinstance(name, str) or not _IDENTIFIER_RE.match(name):
        raise ValueError(f"Invalid {kind} {name!r}: expected letters, digits and underscores")
    return name
