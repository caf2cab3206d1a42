import pytest

from kestrel.exceptions import QueryError
from kestrel.query import (
    ConditionLinkToken,
    ConditionLinkType,
    ConditionToken,
    JoinToken,
    SelectToken,
    SqlTokenComposer,
)


def start(sql=""):
    return ConditionLinkToken(sql, link_type=ConditionLinkType.START)


def end():
    return ConditionLinkToken(")", link_type=ConditionLinkType.END)


def test_missing_select_token_raises():
    with pytest.raises(QueryError):
        SqlTokenComposer().compose([start(), ConditionToken("a =", value=1), end()])


def test_select_only_has_no_where_clause():
    statement = SqlTokenComposer().compose([SelectToken('SELECT "a" FROM "t"')])
    assert statement.command == 'SELECT "a" FROM "t"'


def test_joins_follow_select_regardless_of_position():
    statement = SqlTokenComposer().compose(
        [
            start(),
            ConditionToken('"j1"."x" =', value=1),
            end(),
            JoinToken('LEFT JOIN "u" AS "j1" ON "t"."u" = "j1"."id"', path="u"),
            SelectToken('SELECT "t"."id" FROM "t"'),
        ]
    )
    assert statement.command == (
        'SELECT "t"."id" FROM "t" LEFT JOIN "u" AS "j1" ON "t"."u" = "j1"."id" '
        'WHERE ("j1"."x" = @p0)'
    )


def test_groups_links_and_parameters_are_sequential():
    tokens = [
        SelectToken("SELECT * FROM t"),
        start(),
        ConditionToken("a =", value=1),
        ConditionLinkToken("OR", link_type=ConditionLinkType.OR),
        ConditionToken("b IS", value=None),
        end(),
        start("AND"),
        ConditionToken("c >", value=2),
        end(),
    ]
    statement = SqlTokenComposer().compose(tokens)
    assert statement.command == "SELECT * FROM t WHERE (a = @p0 OR b IS @p1) AND (c > @p2)"
    assert statement.values == [1, None, 2]


def test_custom_parameter_prefix():
    tokens = [SelectToken("SELECT * FROM t"), start(), ConditionToken("a =", value=1), end()]
    statement = SqlTokenComposer(parameter_prefix="arg").compose(tokens)
    assert statement.command == "SELECT * FROM t WHERE (a = @arg0)"
    assert statement.parameter_map() == {"arg0": 1}
