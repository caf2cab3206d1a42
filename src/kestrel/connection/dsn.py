"""DSN parsing and redaction utilities."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional
from urllib.parse import parse_qs, urlencode, urlparse

from ..exceptions import ConfigurationError

_SQLITE_SCHEMES = {"sqlite", "sqlite3"}


@dataclass
class DSNConfig:
    driver: str
    path: str
    username: Optional[str] = None
    password: Optional[str] = None
    host: Optional[str] = None
    query: dict[str, str] = field(default_factory=dict)

    @property
    def database(self) -> str:
        """Filesystem path (or ``:memory:``) understood by ``sqlite3.connect``."""
        return self.path

    def redacted(self) -> str:
        """
        Return the DSN with credentials redacted but structure preserved.
        """
        netloc = ""
        if self.username:
            netloc += self.username
            if self.password:
                netloc += ":***"
            netloc += "@"
        if self.host:
            netloc += self.host
        result = f"{self.driver}://{netloc}/{self.path}"
        if self.query:
            result += f"?{urlencode(self.query)}"
        return result


def parse_dsn(dsn: str) -> DSNConfig:
    """
    Parse ``sqlite:///relative.db``, ``sqlite:////abs/path.db`` or
    ``sqlite:///:memory:``. A bare path is treated as a SQLite file.
    """
    if "://" not in dsn:
        if not dsn:
            raise ConfigurationError("Empty DSN", {"dsn": dsn})
        return DSNConfig(driver="sqlite", path=dsn)

    parsed = urlparse(dsn)
    if parsed.scheme not in _SQLITE_SCHEMES:
        raise ConfigurationError(
            f"Unsupported database driver '{parsed.scheme}'",
            {"driver": parsed.scheme, "supported": sorted(_SQLITE_SCHEMES)},
        )
    path = parsed.path[1:] if parsed.path.startswith("/") else parsed.path
    if not path:
        raise ConfigurationError("DSN does not name a database file", {"dsn": dsn})
    query = {key: values[0] for key, values in parse_qs(parsed.query).items()}
    return DSNConfig(
        driver=parsed.scheme,
        path=path,
        username=parsed.username,
        password=parsed.password,
        host=parsed.hostname,
        query=query,
    )
