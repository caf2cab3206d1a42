"""
Intermediate SQL fragments produced by the translator and consumed by the
composer.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, ClassVar, Optional

from ..metadata.models import FieldMetadata


class SqlTokenType(Enum):
    SELECT = "select"
    JOIN = "join"
    CONDITION = "condition"
    CONDITION_LINK = "condition_link"


class ConditionLinkType(Enum):
    START = "start"
    END = "end"
    AND = "and"
    OR = "or"


@dataclass(frozen=True)
class SqlToken:
    sql: str
    token_type: ClassVar[SqlTokenType]


@dataclass(frozen=True)
class SelectToken(SqlToken):
    token_type: ClassVar[SqlTokenType] = SqlTokenType.SELECT


@dataclass(frozen=True)
class JoinToken(SqlToken):
    path: str = ""
    token_type: ClassVar[SqlTokenType] = SqlTokenType.JOIN


@dataclass(frozen=True)
class ConditionToken(SqlToken):
    """``sql`` is the left-hand side and operator, e.g. ``"person"."age" >``."""

    value: Any = None
    field: Optional[FieldMetadata] = None
    token_type: ClassVar[SqlTokenType] = SqlTokenType.CONDITION


@dataclass(frozen=True)
class ConditionLinkToken(SqlToken):
    link_type: ConditionLinkType = ConditionLinkType.AND
    token_type: ClassVar[SqlTokenType] = SqlTokenType.CONDITION_LINK
