import pytest

from kestrel.core import Collection, Entity, IntegerField, Reference, StringField
from kestrel.dialects import SQLiteDialect
from kestrel.exceptions import QueryError
from kestrel.metadata import EntityMetadataResolver
from kestrel.query import (
    ConditionLinkToken,
    ConditionLinkType,
    ConditionToken,
    JoinToken,
    QueryTranslator,
    SelectToken,
    SqlTokenComposer,
)


class Town(Entity):
    name = StringField()
    people = Collection("Citizen", reference_field="town")


class Citizen(Entity):
    name = StringField()
    middle_name = StringField()
    age = IntegerField()
    town = Reference(Town)


@pytest.fixture()
def translator():
    return QueryTranslator(EntityMetadataResolver([Town, Citizen]), SQLiteDialect())


def compose(translator, *predicates, include_deleted=True):
    tokens = translator.translate(Citizen, predicates, include_deleted=include_deleted)
    return SqlTokenComposer(SQLiteDialect()).compose(tokens)


def test_and_predicate_has_two_parameterized_conditions(translator):
    statement = compose(translator, lambda c: (c.age > 18) & (c.name == "Max"))

    assert statement.values == [18, "Max"]
    assert [p.name for p in statement.parameters] == ["@p0", "@p1"]
    assert statement.command.endswith(
        'WHERE (("citizen"."age" > @p0 AND "citizen"."name" = @p1))'
    )
    assert "18" not in statement.command and "Max" not in statement.command


def test_select_lists_every_column(translator):
    statement = compose(translator)
    assert statement.command == (
        'SELECT "citizen"."id", "citizen"."deleted", "citizen"."version", "citizen"."name", '
        '"citizen"."middle_name", "citizen"."age", "citizen"."town" FROM "citizen"'
    )
    assert statement.parameters == []


def test_none_comparison_uses_is(translator):
    statement = compose(translator, lambda c: c.middle_name == None)  # noqa: E711
    assert '"citizen"."middle_name" IS @p0' in statement.command
    assert " = " not in statement.command
    assert statement.values == [None]

    statement = compose(translator, lambda c: c.middle_name != None)  # noqa: E711
    assert '"citizen"."middle_name" IS NOT @p0' in statement.command


def test_or_like_and_reflected_comparisons(translator):
    statement = compose(translator, lambda c: c.name.like("M%") | (18 <= c.age))
    assert 'WHERE (("citizen"."name" LIKE @p0 OR "citizen"."age" >= @p1))' in statement.command
    assert statement.values == ["M%", 18]


def test_each_predicate_is_its_own_group(translator):
    statement = compose(translator, lambda c: c.age < 65, lambda c: c.age >= 18)
    assert statement.command.endswith('WHERE ("citizen"."age" < @p0) AND ("citizen"."age" >= @p1)')


def test_soft_deleted_rows_are_excluded_by_default(translator):
    statement = compose(translator, lambda c: c.age > 1, include_deleted=False)
    assert statement.command.endswith(
        'WHERE ("citizen"."age" > @p0) AND ("citizen"."deleted" = @p1)'
    )
    assert statement.values == [1, False]
    assert statement.parameter_map() == {"p0": 1, "p1": 0}


def test_association_path_adds_one_join(translator):
    tokens = translator.translate(
        Citizen, [lambda c: (c.town.name == "Springfield") | (c.town.name == "Shelbyville")],
        include_deleted=True,
    )
    assert isinstance(tokens[0], SelectToken)
    joins = [t for t in tokens if isinstance(t, JoinToken)]
    assert len(joins) == 1
    assert joins[0].path == "town"
    assert joins[0].sql == 'LEFT JOIN "town" AS "j1" ON "citizen"."town" = "j1"."id"'

    statement = SqlTokenComposer().compose(tokens)
    assert '("j1"."name" = @p0 OR "j1"."name" = @p1)' in statement.command


def test_token_stream_shape(translator):
    tokens = translator.translate(Citizen, [lambda c: c.age == 3], include_deleted=True)
    kinds = [type(t) for t in tokens]
    assert kinds == [SelectToken, ConditionLinkToken, ConditionToken, ConditionLinkToken]
    assert tokens[1].link_type is ConditionLinkType.START
    assert tokens[2].sql == '"citizen"."age" ='
    assert tokens[2].value == 3
    assert tokens[3].link_type is ConditionLinkType.END


def test_entity_value_for_reference_binds_its_id(translator):
    town = Town(name="Springfield")
    town._field_values["id"] = 4
    statement = compose(translator, lambda c: c.town == town)
    assert statement.parameter_map() == {"p0": 4}


@pytest.mark.parametrize(
    "predicate",
    [
        lambda c: c.nickname == "x",
        lambda c: c.town.people == 1,
        lambda c: c.age == c.name,
        lambda c: c.name.missing == 1,
        lambda c: c.age > None,
        lambda c: c.town == "Springfield",
    ],
)
def test_invalid_predicates_raise_query_error(translator, predicate):
    with pytest.raises(QueryError):
        translator.translate(Citizen, [predicate])


def test_python_boolean_operators_are_rejected(translator):
    with pytest.raises(QueryError):
        translator.translate(Citizen, [lambda c: c.age > 1 and c.age < 5])
    with pytest.raises(QueryError):
        translator.translate(Citizen, [lambda c: 1 < c.age < 5])
