"""
Session configuration.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from enum import Enum
from typing import Mapping, Optional

from ..connection.base import IsolationLevel
from ..exceptions import ConfigurationError


class DeleteMode(str, Enum):
    """How committed deletes reach the database."""

    SOFT = "soft"
    HARD = "hard"


@dataclass(frozen=True)
class SessionOptions:
    """
    ``SOFT`` deletes set the ``deleted`` column and keep the row; ``HARD``
    deletes remove it. Statements slower than ``slow_query_ms`` are logged as
    warnings.
    """

    delete_mode: DeleteMode = DeleteMode.SOFT
    isolation_level: IsolationLevel = IsolationLevel.SERIALIZABLE
    slow_query_ms: float = 200

    def __post_init__(self) -> None:
        try:
            object.__setattr__(self, "delete_mode", DeleteMode(self.delete_mode))
        except ValueError:
            raise ConfigurationError(
                f"Unknown delete mode {self.delete_mode!r}",
                {"value": self.delete_mode, "allowed": [mode.value for mode in DeleteMode]},
            ) from None
        object.__setattr__(self, "isolation_level", IsolationLevel.parse(self.isolation_level))
        if self.slow_query_ms < 0:
            raise ConfigurationError(
                "slow_query_ms must be non-negative", {"slow_query_ms": self.slow_query_ms}
            )

    @classmethod
    def from_env(
        cls, prefix: str = "KESTREL_", environ: Optional[Mapping[str, str]] = None
    ) -> "SessionOptions":
        """
        Read ``<prefix>DELETE_MODE``, ``<prefix>ISOLATION_LEVEL`` and
        ``<prefix>SLOW_QUERY_MS``; unset variables keep their defaults.
        """
        env = os.environ if environ is None else environ
        kwargs = {}
        if env.get(f"{prefix}DELETE_MODE"):
            kwargs["delete_mode"] = env[f"{prefix}DELETE_MODE"].strip().lower()
        if env.get(f"{prefix}ISOLATION_LEVEL"):
            kwargs["isolation_level"] = env[f"{prefix}ISOLATION_LEVEL"]
        raw_threshold = env.get(f"{prefix}SLOW_QUERY_MS")
        if raw_threshold:
            try:
                kwargs["slow_query_ms"] = float(raw_threshold)
            except ValueError as exc:
                raise ConfigurationError(
                    f"Invalid float value for '{prefix}SLOW_QUERY_MS': {raw_threshold!r}",
                    {"value": raw_threshold},
                ) from exc
        return cls(**kwargs)
