import logging

from kestrel.connection import ConnectionConfig, SQLiteConnection
from kestrel.core import BooleanField, DateTimeField, DecimalField, Entity, IntegerField, Reference, StringField
from kestrel.dialects import SQLiteDialect
from kestrel.schema import Table


class Warehouse(Entity):
    code = StringField(mandatory=True, unique=True, max_length=8)
    notes = StringField()


class Crate(Entity):
    warehouse = Reference(Warehouse, mandatory=True)
    weight = DecimalField(precision=10, scale=3)
    fragile = BooleanField()
    shipped_at = DateTimeField()
    count = IntegerField()


def make_table(tmp_path, entity_type):
    connection = SQLiteConnection(ConnectionConfig(url=f"sqlite:///{tmp_path / 'schema.db'}"))
    connection.open()
    return Table(connection, entity_type.describe(), SQLiteDialect())


def test_create_sql_renders_columns(tmp_path):
    table = make_table(tmp_path, Warehouse)
    assert table.name == "warehouse"
    assert table.create_sql() == (
        'CREATE TABLE "warehouse" ('
        '"id" INTEGER NOT NULL PRIMARY KEY AUTOINCREMENT, '
        '"deleted" BOOLEAN NOT NULL, '
        '"version" INTEGER NOT NULL, '
        '"code" VARCHAR(8) NOT NULL UNIQUE, '
        '"notes" TEXT)'
    )


def test_column_types_follow_field_types(tmp_path):
    sql = make_table(tmp_path, Crate).create_sql()
    assert '"warehouse" INTEGER NOT NULL' in sql
    assert '"weight" NUMERIC(10, 3)' in sql
    assert '"fragile" BOOLEAN' in sql
    assert '"shipped_at" TEXT' in sql
    assert '"count" INTEGER' in sql
    assert "FOREIGN KEY" not in sql


def test_create_drop_and_recreate(tmp_path):
    table = make_table(tmp_path, Warehouse)
    assert not table.exists()
    table.create()
    assert table.exists()

    table.connection.execute_insert(
        'INSERT INTO "warehouse" ("deleted", "version", "code") VALUES (0, 1, @p0)', {"p0": "A1"}
    )
    table.recreate()
    assert table.exists()
    assert table.connection.execute_scalar('SELECT COUNT(*) FROM "warehouse"') == 0

    table.drop()
    assert not table.exists()
    table.drop()


def test_drop_logs_warning(tmp_path, caplog):
    table = make_table(tmp_path, Warehouse)
    with caplog.at_level(logging.WARNING, logger="kestrel.schema.table"):
        assert table.drop_sql() == 'DROP TABLE IF EXISTS "warehouse"'
    assert any("DROP TABLE" in record.getMessage() for record in caplog.records)
