"""
Predicate translation, SQL token composition and session-bound queries.
"""

from .composer import SqlTokenComposer
from .expressions import BinaryExpression, Comparison, FieldPath, Operator, capture
from .parameters import QueryParameter, Statement, to_db_value
from .query import Query
from .tokens import (
    ConditionLinkToken,
    ConditionLinkType,
    ConditionToken,
    JoinToken,
    SelectToken,
    SqlToken,
    SqlTokenType,
)
from .translator import QueryTranslator

__all__ = [
    "BinaryExpression",
    "Comparison",
    "ConditionLinkToken",
    "ConditionLinkType",
    "ConditionToken",
    "FieldPath",
    "JoinToken",
    "Operator",
    "Query",
    "QueryParameter",
    "QueryTranslator",
    "SelectToken",
    "SqlToken",
    "SqlTokenComposer",
    "SqlTokenType",
    "Statement",
    "capture",
    "to_db_value",
]
