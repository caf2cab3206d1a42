import pytest

from kestrel.connection import TransactionHandle
from kestrel.core import Collection, Entity, IntegerField, Reference, StringField
from kestrel.dialects import SQLiteDialect
from kestrel.exceptions import ConnectionError, EntityNotFoundError
from kestrel.listeners import AFTER_SAVE, BEFORE_SAVE, ListenerRegistry
from kestrel.metadata import Cascade, EntityMetadataResolver
from kestrel.persistence import DeleteMode, Session, SessionOptions
from kestrel.validation import ValidationError


class Gadget(Entity):
    name = StringField(mandatory=True)
    stock = IntegerField(default=0)


class Flat(Entity):
    street = StringField(mandatory=True)
    tenants = Collection("Tenant", reference_field="flat", cascade=Cascade.SAVE_DELETE)


class Tenant(Entity):
    name = StringField()
    flat = Reference(Flat, mandatory=True, reference_field="tenants")


class FakeConnection:
    """Records every call; inserts hand out sequential ids."""

    def __init__(self, fail_on=None):
        self.dialect = SQLiteDialect()
        self.calls = []
        self.fail_on = fail_on
        self._open = False
        self._next_id = 1

    @property
    def is_open(self):
        return self._open

    def open(self):
        self._open = True

    def close(self):
        self._open = False
        self.calls.append(("close",))

    def begin_transaction(self, isolation_level):
        self.calls.append(("begin",))
        return TransactionHandle(isolation_level, "fake")

    def commit(self):
        self.calls.append(("commit",))

    def rollback(self):
        self.calls.append(("rollback",))

    def save(self, name):
        self.calls.append(("save", name))

    def rollback_to(self, name):
        self.calls.append(("rollback_to", name))

    def release(self, name):
        self.calls.append(("release", name))

    def _record(self, kind, sql, parameters):
        self.calls.append((kind, sql, dict(parameters or {})))
        if self.fail_on and sql.startswith(self.fail_on):
            raise ConnectionError("disk I/O error", {"sql": sql})

    def execute_non_query(self, sql, parameters=None):
        self._record("non_query", sql, parameters)
        return 1

    def execute_scalar(self, sql, parameters=None):
        self._record("scalar", sql, parameters)
        return None

    def execute_reader(self, sql, parameters=None):
        self._record("reader", sql, parameters)
        return []

    def execute_insert(self, sql, parameters=None):
        self._record("insert", sql, parameters)
        new_id = self._next_id
        self._next_id += 1
        return new_id


class Recorder:
    def __init__(self, connection):
        self.connection = connection
        self.seen = []

    def commit(self, session):
        self.seen.append(list(self.connection.calls))


def make_session(connection, **kwargs):
    return Session(connection, EntityMetadataResolver([Gadget]), **kwargs)


def test_session_opens_connection():
    connection = FakeConnection()
    session = make_session(connection)
    assert connection.is_open
    session.close()
    assert connection.calls[-1] == ("close",)


def test_insert_statement_is_parameterized():
    connection = FakeConnection()
    session = make_session(connection)
    session.create(Gadget, name="Widget", stock=4)
    session.commit()

    kind, sql, parameters = connection.calls[1]
    assert kind == "insert"
    assert sql == (
        'INSERT INTO "gadget" ("deleted", "version", "name", "stock") '
        "VALUES (@p0, @p1, @p2, @p3)"
    )
    assert parameters == {"p0": 0, "p1": 1, "p2": "Widget", "p3": 4}
    assert connection.calls[0] == ("begin",)
    assert connection.calls[-1] == ("commit",)


def test_update_is_guarded_by_id_and_version():
    connection = FakeConnection()
    session = make_session(connection)
    gadget = session.create(Gadget, name="Widget")
    session.commit()
    gadget.stock = 9
    session.commit()

    kind, sql, parameters = connection.calls[-2]
    assert kind == "non_query"
    assert sql == (
        'UPDATE "gadget" SET "stock" = @p0, "version" = @p1 '
        'WHERE "id" = @p2 AND "version" = @p3'
    )
    assert parameters == {"p0": 9, "p1": 2, "p2": 1, "p3": 1}
    assert gadget.version == 2


def test_commit_listeners_run_after_writes_before_commit():
    connection = FakeConnection()
    recorder = Recorder(connection)
    session = make_session(connection, commit_listeners=[recorder])
    session.create(Gadget, name="Widget")
    session.commit()

    assert len(recorder.seen) == 1
    calls_at_listener = recorder.seen[0]
    assert [call[0] for call in calls_at_listener] == ["begin", "insert"]
    assert connection.calls[-1] == ("commit",)


def test_failing_commit_listener_rolls_back():
    class Refuse:
        def commit(self, session):
            raise RuntimeError("not today")

    connection = FakeConnection()
    session = make_session(connection, commit_listeners=[Refuse()])
    gadget = session.create(Gadget, name="Widget")
    with pytest.raises(RuntimeError):
        session.commit()

    assert connection.calls[-1] == ("rollback",)
    assert gadget.id == 0
    assert session.unit_of_work.is_new(gadget)


def test_entity_listeners_fire_around_writes():
    events = []
    registry = ListenerRegistry()
    registry.register(BEFORE_SAVE, lambda entity, session: events.append(("before", entity.id)))
    registry.register(
        AFTER_SAVE, lambda entity, session: events.append(("after", entity.id)), entity_type=Gadget
    )
    session = make_session(FakeConnection(), listeners=registry)
    session.create(Gadget, name="Widget")
    session.commit()
    assert events == [("before", 0), ("after", 1)]


def test_before_save_listener_may_veto_before_any_statement():
    def veto(entity, session):
        raise ValidationError({"name": ["reserved"]}, entity="Gadget")

    registry = ListenerRegistry()
    registry.register(BEFORE_SAVE, veto, entity_type=Gadget)
    connection = FakeConnection()
    session = make_session(connection, listeners=registry)
    session.create(Gadget, name="Widget")
    with pytest.raises(ValidationError):
        session.commit()
    assert connection.calls == []


def test_driver_failure_is_wrapped_with_entity_context():
    connection = FakeConnection(fail_on="INSERT")
    session = make_session(connection)
    gadget = session.create(Gadget, name="Widget")
    with pytest.raises(ConnectionError) as excinfo:
        session.commit()

    context = excinfo.value.context
    assert context["operation"] == "insert"
    assert context["entity"] == "Gadget"
    assert context["id"] == 0
    assert context["sql"].startswith("INSERT")
    assert isinstance(excinfo.value.__cause__, ConnectionError)
    assert connection.calls[-1] == ("rollback",)
    assert gadget.id == 0


def test_get_runs_select_with_deleted_filter():
    connection = FakeConnection()
    session = make_session(connection)
    with pytest.raises(EntityNotFoundError):
        session.get(Gadget, 3)
    kind, sql, parameters = connection.calls[0]
    assert kind == "reader"
    assert sql.endswith('WHERE ("gadget"."id" = @p0) AND ("gadget"."deleted" = @p1) LIMIT 1')
    assert parameters == {"p0": 3, "p1": 0}


@pytest.mark.parametrize(
    "mode, prefix",
    [(DeleteMode.SOFT, 'UPDATE "'), (DeleteMode.HARD, 'DELETE FROM "')],
)
def test_cascaded_delete_writes_dependents_before_their_parent(mode, prefix):
    connection = FakeConnection()
    session = Session(
        connection, EntityMetadataResolver([Flat, Tenant]), SessionOptions(delete_mode=mode)
    )
    flat = Flat(street="Samplestreet 75a")
    flat.tenants.append(Tenant(name="Max"))
    flat.tenants.append(Tenant(name="Erika"))
    session.save_or_update(flat)
    session.commit()

    written = len(connection.calls)
    session.delete(flat)
    session.commit()

    statements = [call[1] for call in connection.calls[written:] if call[0] == "non_query"]
    assert [sql.split(" WHERE ")[0].split(" SET ")[0] for sql in statements] == [
        f'{prefix}tenant"',
        f'{prefix}tenant"',
        f'{prefix}flat"',
    ]
