"""Structured logging helpers for Kestrel."""

from __future__ import annotations

import logging
import time
import uuid
from contextvars import ContextVar
from typing import Any, Mapping, Optional

_correlation_id: ContextVar[str | None] = ContextVar("kestrel_correlation_id", default=None)

_SENSITIVE_MARKERS = ("password", "secret", "token")


class CorrelationIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = get_correlation_id()
        return True


def configure_logging(level: int = logging.INFO) -> None:
    logger = logging.getLogger("kestrel")
    if logger.handlers:
        return
    handler = logging.StreamHandler()
    formatter = logging.Formatter(
        "%(asctime)s | %(levelname)s | %(correlation_id)s | %(name)s | %(message)s"
    )
    handler.setFormatter(formatter)
    handler.addFilter(CorrelationIdFilter())
    logger.addHandler(handler)
    logger.setLevel(level)


def get_logger(name: str) -> logging.Logger:
    configure_logging()
    return logging.getLogger(f"kestrel.{name}")


def set_correlation_id(value: Optional[str] = None) -> str:
    token = value or str(uuid.uuid4())
    _correlation_id.set(token)
    return token


def get_correlation_id() -> str:
    cid = _correlation_id.get()
    if cid is None:
        cid = set_correlation_id()
    return cid


def redact_parameters(params: Mapping[str, Any] | None) -> dict[str, Any]:
    """Mask string values that look like credentials before they reach a log line."""
    redacted: dict[str, Any] = {}
    for key, value in (params or {}).items():
        if isinstance(value, str) and any(marker in value.lower() for marker in _SENSITIVE_MARKERS):
            redacted[key] = "***"
        else:
            redacted[key] = value
    return redacted


class time_call:
    """
    Context manager logging the duration of a block.

    Durations at or above ``threshold_ms`` are logged as warnings so slow
    statements stand out; everything else goes to DEBUG.
    """

    def __init__(
        self,
        name: str,
        logger: logging.Logger,
        *,
        sql: str | None = None,
        params: Mapping[str, Any] | None = None,
        threshold_ms: float = 100,
    ) -> None:
        self.name = name
        self.logger = logger
        self.sql = sql
        self.params = params
        self.threshold_ms = threshold_ms
        self.elapsed_ms = 0.0
        self._start = 0.0

    def __enter__(self) -> "time_call":
        self._start = time.monotonic()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.elapsed_ms = (time.monotonic() - self._start) * 1000
        level = logging.WARNING if self.elapsed_ms >= self.threshold_ms else logging.DEBUG
        extra = {"sql": self.sql, "params": self.params, "elapsed_ms": self.elapsed_ms}
        self.logger.log(level, "%s took %.2fms", self.name, self.elapsed_ms, extra=extra)
