"""
Connection protocol consumed by the session, and its configuration.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, List, Mapping, Optional, Protocol

from ..dialects.base import Dialect
from ..exceptions import ConfigurationError
from .dsn import DSNConfig, parse_dsn


class IsolationLevel(str, Enum):
    READ_UNCOMMITTED = "read_uncommitted"
    READ_COMMITTED = "read_committed"
    REPEATABLE_READ = "repeatable_read"
    SERIALIZABLE = "serializable"

    @classmethod
    def parse(cls, value: "IsolationLevel | str") -> "IsolationLevel":
        if isinstance(value, IsolationLevel):
            return value
        normalized = str(value).strip().lower().replace(" ", "_").replace("-", "_")
        try:
            return cls(normalized)
        except ValueError:
            raise ConfigurationError(
                f"Unknown isolation level {value!r}",
                {"value": value, "allowed": [level.value for level in cls]},
            ) from None


@dataclass(frozen=True)
class TransactionHandle:
    """Opaque token for the physical transaction a connection has begun."""

    isolation_level: IsolationLevel
    connection_label: str


Row = Mapping[str, Any]
Parameters = Optional[Mapping[str, Any]]


class Connection(Protocol):
    """
    Physical connection used by one session. Parameters are name -> value
    mappings without the marker prefix; ``None`` is bound as SQL NULL.
    Driver failures surface as :class:`kestrel.exceptions.ConnectionError`.
    """

    dialect: Dialect

    @property
    def is_open(self) -> bool: ...

    def open(self) -> None: ...

    def close(self) -> None: ...

    def begin_transaction(self, isolation_level: IsolationLevel) -> TransactionHandle: ...

    def commit(self) -> None: ...

    def rollback(self) -> None: ...

    def save(self, name: str) -> None: ...

    def rollback_to(self, name: str) -> None: ...

    def release(self, name: str) -> None: ...

    def execute_non_query(self, sql: str, parameters: Parameters = None) -> int: ...

    def execute_scalar(self, sql: str, parameters: Parameters = None) -> Any: ...

    def execute_reader(self, sql: str, parameters: Parameters = None) -> List[Row]: ...

    def execute_insert(self, sql: str, parameters: Parameters = None) -> int: ...


ConnectionFactory = Callable[[], Connection]


def _parse_float(value: str, *, key: str) -> float:
    try:
        return float(value)
    except ValueError as exc:
        raise ConfigurationError(f"Invalid float value for '{key}': {value!r}", {key: value}) from exc


@dataclass
class ConnectionConfig:
    """
    Normalized connection configuration.
    """

    url: str
    timeout: float = 5.0
    isolation_level: IsolationLevel = IsolationLevel.SERIALIZABLE
    options: dict[str, Any] = field(default_factory=dict)
    dsn: DSNConfig | None = None
    source: str | None = None

    def __post_init__(self) -> None:
        self.isolation_level = IsolationLevel.parse(self.isolation_level)
        if self.dsn is None:
            self.dsn = parse_dsn(self.url)
        if self.timeout < 0:
            raise ConfigurationError("timeout must be non-negative", {"timeout": self.timeout})

    @classmethod
    def from_dsn(cls, dsn: str, **kwargs: Any) -> "ConnectionConfig":
        """
        Build a connection config by parsing the DSN string. Keyword
        arguments win over query-string values.
        """
        parsed = parse_dsn(dsn)
        query = dict(parsed.query)
        if "timeout" in query and "timeout" not in kwargs:
            kwargs["timeout"] = _parse_float(query.pop("timeout"), key="timeout")
        if "isolation_level" in query and "isolation_level" not in kwargs:
            kwargs["isolation_level"] = query.pop("isolation_level")
        options = dict(query)
        options.update(kwargs.pop("options", None) or {})
        return cls(url=dsn, dsn=parsed, options=options, **kwargs)

    @classmethod
    def from_env(cls, env_var: str = "KESTREL_DATABASE_URL", **kwargs: Any) -> "ConnectionConfig":
        """
        Build a config from an environment variable containing a DSN.
        """
        value = os.getenv(env_var)
        if not value:
            raise ConfigurationError(f"Environment variable {env_var} is not set", {"env": env_var})
        return cls.from_dsn(value, source=env_var, **kwargs)

    @property
    def database(self) -> str:
        assert self.dsn is not None
        return self.dsn.database

    def redacted_dsn(self) -> str:
        """
        Return a DSN safe for logging (credentials removed).
        """
        if self.dsn and "://" in self.url:
            return self.dsn.redacted()
        return self.url

    def descriptive_label(self) -> str:
        redacted = self.redacted_dsn()
        if self.source:
            return f"{self.source} ({redacted})"
        return redacted
