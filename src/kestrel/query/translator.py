"""
Translate recorded predicates into SQL tokens.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Tuple, Type, Union

from ..dialects.base import Dialect
from ..exceptions import QueryError
from ..metadata.models import DELETED_FIELD, EntityMetadata, FieldMetadata
from ..metadata.resolver import EntityMetadataResolver
from .expressions import BinaryExpression, Comparison, Expression, Operator, Predicate, capture
from .tokens import (
    ConditionLinkToken,
    ConditionLinkType,
    ConditionToken,
    JoinToken,
    SelectToken,
    SqlToken,
)

if TYPE_CHECKING:
    from ..core.entity import Entity


_LINK_TYPES = {Operator.AND: ConditionLinkType.AND, Operator.OR: ConditionLinkType.OR}
_NULL_OPERATORS = {Operator.EQ: "IS", Operator.NE: "IS NOT"}


class _JoinScope:
    """Associations joined while translating one query, keyed by dotted path."""

    def __init__(self, metadata: EntityMetadata) -> None:
        self.base = metadata
        self.aliases: Dict[str, Tuple[str, EntityMetadata]] = {}
        self.tokens: List[JoinToken] = []

    def join(
        self,
        dialect: Dialect,
        path: str,
        source: str,
        field_meta: FieldMetadata,
        target: EntityMetadata,
    ) -> str:
        if path in self.aliases:
            return self.aliases[path][0]
        alias = f"j{len(self.aliases) + 1}"
        self.aliases[path] = (alias, target)
        sql = (
            f"LEFT JOIN {dialect.format_table(target.table)} AS {dialect.quote_identifier(alias)} "
            f"ON {dialect.quote_identifier(source)}.{dialect.quote_identifier(field_meta.name)} = "
            f"{dialect.quote_identifier(alias)}.{dialect.quote_identifier(target.primary_key.name)}"
        )
        self.tokens.append(JoinToken(sql, path=path))
        return alias


class QueryTranslator:
    """
    Turns predicates over one entity type (the type context) into an ordered
    token stream: one select, the joins needed by dotted paths, then one
    parenthesised condition group per predicate.
    """

    def __init__(self, resolver: EntityMetadataResolver, dialect: Dialect) -> None:
        self.resolver = resolver
        self.dialect = dialect

    def translate(
        self,
        entity_type: Type["Entity"],
        predicates: Iterable[Union[Predicate, Expression]] = (),
        *,
        include_deleted: bool = False,
    ) -> List[SqlToken]:
        metadata = self.resolver.get_entity_metadata(entity_type)
        scope = _JoinScope(metadata)
        conditions: List[SqlToken] = []

        for predicate in predicates:
            expression = (
                predicate
                if isinstance(predicate, (Comparison, BinaryExpression))
                else capture(predicate)
            )
            self._open_group(conditions)
            self._visit(expression, scope, conditions)
            conditions.append(ConditionLinkToken(")", link_type=ConditionLinkType.END))

        if not include_deleted:
            self._open_group(conditions)
            deleted = metadata.get_field(DELETED_FIELD)
            conditions.append(
                ConditionToken(f"{self._column(metadata.table, deleted)} =", value=False, field=deleted)
            )
            conditions.append(ConditionLinkToken(")", link_type=ConditionLinkType.END))

        return [SelectToken(self._select_sql(metadata)), *scope.tokens, *conditions]

    # Helpers -------------------------------------------------------------
    def _select_sql(self, metadata: EntityMetadata) -> str:
        columns = ", ".join(self._column(metadata.table, field) for field in metadata.fields)
        return f"SELECT {columns} FROM {self.dialect.format_table(metadata.table)}"

    def _column(self, table: str, field_meta: FieldMetadata) -> str:
        return f"{self.dialect.quote_identifier(table)}.{self.dialect.quote_identifier(field_meta.name)}"

    @staticmethod
    def _open_group(conditions: List[SqlToken]) -> None:
        link = "AND" if conditions else ""
        conditions.append(ConditionLinkToken(link, link_type=ConditionLinkType.START))

    def _visit(self, node: Expression, scope: _JoinScope, out: List[SqlToken]) -> None:
        if isinstance(node, BinaryExpression):
            out.append(ConditionLinkToken("", link_type=ConditionLinkType.START))
            self._visit(node.left, scope, out)
            out.append(ConditionLinkToken(node.operator.value, link_type=_LINK_TYPES[node.operator]))
            self._visit(node.right, scope, out)
            out.append(ConditionLinkToken(")", link_type=ConditionLinkType.END))
            return
        if isinstance(node, Comparison):
            out.append(self._condition(node, scope))
            return
        raise QueryError(f"Unsupported predicate node {node!r}")

    def _condition(self, comparison: Comparison, scope: _JoinScope) -> ConditionToken:
        table, field_meta = self._resolve_path(comparison.path, scope)
        operator = comparison.operator
        if operator in _LINK_TYPES:
            raise QueryError(f"'{operator.value}' cannot compare a field")
        sql_operator: str = operator.value
        if comparison.value is None:
            if operator not in _NULL_OPERATORS:
                raise QueryError(
                    f"Only '==' and '!=' can compare '{'.'.join(comparison.path)}' with None"
                )
            sql_operator = _NULL_OPERATORS[operator]
        return ConditionToken(
            f"{self._column(table, field_meta)} {sql_operator}",
            value=self._check_value(comparison, field_meta),
            field=field_meta,
        )

    def _resolve_path(self, path: Tuple[str, ...], scope: _JoinScope) -> Tuple[str, FieldMetadata]:
        metadata = scope.base
        table = metadata.table
        for index, part in enumerate(path[:-1]):
            field_meta = self._field(metadata, part)
            if not field_meta.is_complex_field_type:
                raise QueryError(
                    f"'{part}' on '{metadata.name}' is not an association",
                    {"entity": metadata.name, "path": ".".join(path)},
                )
            target = self.resolver.get_entity_metadata(
                self.resolver.get_entity_type_by_name(field_meta.field_type)
            )
            table = scope.join(self.dialect, ".".join(path[: index + 1]), table, field_meta, target)
            metadata = target
        return table, self._field(metadata, path[-1])

    @staticmethod
    def _field(metadata: EntityMetadata, name: str) -> FieldMetadata:
        if metadata.find_list_field(name) is not None:
            raise QueryError(
                f"Collection '{name}' on '{metadata.name}' cannot be used in a predicate",
                {"entity": metadata.name, "field": name},
            )
        if not metadata.has_field(name):
            raise QueryError(
                f"Unknown field '{name}' on '{metadata.name}'",
                {"entity": metadata.name, "field": name},
            )
        return metadata.get_field(name)

    def _check_value(self, comparison: Comparison, field_meta: FieldMetadata) -> Any:
        value = comparison.value
        if field_meta.is_complex_field_type and value is not None:
            if hasattr(value, "_change_tracker"):
                return value
            if isinstance(value, bool) or not isinstance(value, int):
                raise QueryError(
                    f"'{field_meta.name}' must be compared with a {field_meta.field_type} "
                    f"entity or id, got {value!r}"
                )
        return value
