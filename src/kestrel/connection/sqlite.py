"""
SQLite connection wrapping the Python stdlib sqlite3 module.
"""

from __future__ import annotations

import sqlite3
from typing import Any, List, Optional

from ..dialects.sqlite import SQLiteDialect
from ..exceptions import ConnectionError
from ..utils import get_logger, redact_parameters, require_identifier, time_call
from .base import ConnectionConfig, IsolationLevel, Parameters, Row, TransactionHandle


class SQLiteConnection:
    """
    Connection implementation for SQLite.

    The driver runs in autocommit mode (``isolation_level=None``) so that
    transactions and save points are controlled by explicit statements.
    """

    def __init__(self, config: ConnectionConfig, *, slow_query_ms: float = 200) -> None:
        self.config = config
        self.dialect = SQLiteDialect()
        self.slow_query_ms = slow_query_ms
        self.logger = get_logger("connection.sqlite")
        self._connection: Optional[sqlite3.Connection] = None

    # ------------------------------------------------------------------ #
    # Connection management
    # ------------------------------------------------------------------ #
    @property
    def is_open(self) -> bool:
        return self._connection is not None

    def open(self) -> None:
        if self._connection is not None:
            return
        try:
            connection = sqlite3.connect(
                self.config.database,
                isolation_level=None,
                timeout=self.config.timeout,
            )
        except sqlite3.Error as exc:
            raise ConnectionError(
                f"Could not open {self.config.descriptive_label()}: {exc}",
                {"operation": "open", "database": self.config.redacted_dsn()},
            ) from exc
        connection.row_factory = sqlite3.Row
        self._connection = connection
        self.logger.debug("Opened %s", self.config.descriptive_label())

    def close(self) -> None:
        if self._connection is None:
            return
        self._connection.close()
        self._connection = None
        self.logger.debug("Closed %s", self.config.descriptive_label())

    def __enter__(self) -> "SQLiteConnection":
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def _ensure_connection(self) -> sqlite3.Connection:
        if self._connection is None:
            raise ConnectionError(
                "SQLiteConnection is not open.", {"database": self.config.redacted_dsn()}
            )
        return self._connection

    # ------------------------------------------------------------------ #
    # Transactions
    # ------------------------------------------------------------------ #
    def begin_transaction(self, isolation_level: IsolationLevel) -> TransactionHandle:
        # SQLite is serializable in every mode; IMMEDIATE takes the write lock up front.
        level = IsolationLevel.parse(isolation_level)
        statement = "BEGIN IMMEDIATE" if level is IsolationLevel.SERIALIZABLE else "BEGIN"
        self._run(statement)
        return TransactionHandle(level, self.config.descriptive_label())

    def commit(self) -> None:
        self._run("COMMIT")

    def rollback(self) -> None:
        self._run("ROLLBACK")

    def save(self, name: str) -> None:
        self._run(f"SAVEPOINT {require_identifier(name, 'save point name')}")

    def rollback_to(self, name: str) -> None:
        self._run(f"ROLLBACK TO SAVEPOINT {require_identifier(name, 'save point name')}")

    def release(self, name: str) -> None:
        self._run(f"RELEASE SAVEPOINT {require_identifier(name, 'save point name')}")

    # ------------------------------------------------------------------ #
    # Execution helpers
    # ------------------------------------------------------------------ #
    def execute_non_query(self, sql: str, parameters: Parameters = None) -> int:
        return self._run(sql, parameters).rowcount

    def execute_scalar(self, sql: str, parameters: Parameters = None) -> Any:
        row = self._run(sql, parameters).fetchone()
        return None if row is None else row[0]

    def execute_reader(self, sql: str, parameters: Parameters = None) -> List[Row]:
        return [dict(row) for row in self._run(sql, parameters).fetchall()]

    def execute_insert(self, sql: str, parameters: Parameters = None) -> int:
        cursor = self._run(sql, parameters)
        if cursor.lastrowid is None:
            raise ConnectionError("Insert did not produce a row id", {"sql": sql})
        return int(cursor.lastrowid)

    def _run(self, sql: str, parameters: Parameters = None) -> sqlite3.Cursor:
        connection = self._ensure_connection()
        params = dict(parameters or {})
        try:
            with time_call(
                "sqlite.execute",
                self.logger,
                sql=sql,
                params=redact_parameters(params),
                threshold_ms=self.slow_query_ms,
            ):
                return connection.execute(sql, params)
        except sqlite3.Error as exc:
            raise ConnectionError(
                str(exc),
                {"sql": sql, "params": redact_parameters(params), "driver_error": type(exc).__name__},
            ) from exc


class SQLiteConnectionFactory:
    """
    Callable returning a new, unopened :class:`SQLiteConnection` per session.
    """

    def __init__(self, config: ConnectionConfig, *, slow_query_ms: float = 200) -> None:
        self.config = config
        self.slow_query_ms = slow_query_ms

    def __call__(self) -> SQLiteConnection:
        return SQLiteConnection(self.config, slow_query_ms=self.slow_query_ms)
