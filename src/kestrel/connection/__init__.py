"""
Connection protocol, configuration and the SQLite implementation.
"""

from .base import (
    Connection,
    ConnectionConfig,
    ConnectionFactory,
    IsolationLevel,
    TransactionHandle,
)
from .dsn import DSNConfig, parse_dsn
from .sqlite import SQLiteConnection, SQLiteConnectionFactory

__all__ = [
    "Connection",
    "ConnectionConfig",
    "ConnectionFactory",
    "DSNConfig",
    "IsolationLevel",
    "SQLiteConnection",
    "SQLiteConnectionFactory",
    "TransactionHandle",
    "parse_dsn",
]
