"""
Compose SQL tokens into one parameterized statement.
"""

from __future__ import annotations

import re
from typing import Iterable, List, Optional

from ..dialects.base import Dialect
from ..dialects.sqlite import SQLiteDialect
from ..exceptions import QueryError
from .parameters import QueryParameter, Statement
from .tokens import (
    ConditionLinkToken,
    ConditionLinkType,
    ConditionToken,
    SqlToken,
    SqlTokenType,
)

_MULTI_SPACE_RE = re.compile(r" {2,}")


class SqlTokenComposer:
    """
    Concatenates the select token, the join tokens and a ``WHERE`` clause
    built from condition tokens in order. Every condition value becomes a
    sequential named parameter (``@p0``, ``@p1``, ...).
    """

    def __init__(self, dialect: Optional[Dialect] = None, parameter_prefix: str = "p") -> None:
        self.dialect = dialect or SQLiteDialect()
        self.parameter_prefix = parameter_prefix

    def compose(self, tokens: Iterable[SqlToken]) -> Statement:
        tokens = list(tokens)
        select = next((t for t in tokens if t.token_type is SqlTokenType.SELECT), None)
        if select is None:
            raise QueryError("Cannot compose a query without a select token")

        parts: List[str] = [select.sql]
        parts.extend(t.sql for t in tokens if t.token_type is SqlTokenType.JOIN)

        where: List[str] = []
        parameters: List[QueryParameter] = []
        opened = False
        for token in tokens:
            if isinstance(token, ConditionToken):
                name = self.dialect.parameter_marker(f"{self.parameter_prefix}{len(parameters)}")
                field_type = token.field.field_type if token.field is not None else None
                parameters.append(QueryParameter(name, token.value, field_type))
                where.append(f"{token.sql} {name} ")
            elif isinstance(token, ConditionLinkToken):
                if token.link_type is ConditionLinkType.START:
                    where.append(f" {token.sql} (" if opened and token.sql else "(")
                    opened = True
                elif token.link_type is ConditionLinkType.END:
                    where.append(")")
                else:
                    where.append(f" {token.sql} ")

        if where:
            parts.append("WHERE " + "".join(where))

        command = _MULTI_SPACE_RE.sub(" ", " ".join(parts)).replace(" )", ")").strip()
        return Statement(command, parameters)
