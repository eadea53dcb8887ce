"""
Connection manager contract, connection configuration, and the pooled base
class the bundled drivers build on.
"""

from __future__ import annotations

import asyncio
import os
from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence, Union

from ..config import parse_bool, parse_float, parse_int
from ..errors import CadenceError, ConfigurationError
from ..utils import get_logger
from .dsn import DSNConfig, parse_dsn

Row = Dict[str, Any]
Params = Union[Sequence[Any], Mapping[str, Any]]


class ConnectionManagerError(CadenceError):
    """Base error for connection-layer failures."""


class ConnectionConfigurationError(ConnectionManagerError, ConfigurationError):
    """Raised when configuration or a required driver is missing or invalid."""


class ConnectionAcquireError(ConnectionManagerError):
    """Raised when a connection cannot be opened."""


class StatementExecutionError(ConnectionManagerError):
    """Raised when the driver rejects a statement."""

    def __init__(self, message: str, *, sql: str | None = None) -> None:
        super().__init__(message)
        self.sql = sql


@dataclass
class SSLConfig:
    mode: str | None = None
    rootcert: str | None = None
    cert: str | None = None
    key: str | None = None
    ca: str | None = None
    check_hostname: bool | None = None

    def postgres_options(self) -> dict[str, Any]:
        options: dict[str, Any] = {}
        if self.mode:
            options["sslmode"] = self.mode
        if self.rootcert:
            options["sslrootcert"] = self.rootcert
        if self.cert:
            options["sslcert"] = self.cert
        if self.key:
            options["sslkey"] = self.key
        return options

    def mysql_options(self) -> dict[str, Any]:
        ssl: dict[str, Any] = {}
        if self.ca:
            ssl["ca"] = self.ca
        if self.cert:
            ssl["cert"] = self.cert
        if self.key:
            ssl["key"] = self.key
        if self.check_hostname is not None:
            ssl["check_hostname"] = self.check_hostname
        if not ssl:
            return {}
        return {"ssl": ssl}


_SSL_QUERY_KEYS = {
    "sslmode": "mode",
    "sslrootcert": "rootcert",
    "sslcert": "cert",
    "sslkey": "key",
    "ssl_ca": "ca",
    "ssl_cert": "cert",
    "ssl_key": "key",
}


def _parse_ssl(query: dict[str, str]) -> SSLConfig | None:
    ssl = SSLConfig()
    found = False
    for query_key, attribute in _SSL_QUERY_KEYS.items():
        if query_key in query:
            setattr(ssl, attribute, query.pop(query_key))
            found = True
    if "ssl_check_hostname" in query:
        ssl.check_hostname = parse_bool(query.pop("ssl_check_hostname"), key="ssl_check_hostname")
        found = True
    return ssl if found else None


def _parse_option_values(query: dict[str, str]) -> dict[str, Any]:
    options: dict[str, Any] = {}
    for key, value in query.items():
        if key == "connect_timeout":
            options[key] = parse_int(value, key=key)
        else:
            options[key] = value
    return options


@dataclass
class ConnectionConfig:
    """
    Normalized connection settings parsed from a DSN.

    ``autocommit`` is the driver-level mode. Transaction statements are always
    issued explicitly, so it stays on unless a driver needs otherwise.
    """

    url: str
    autocommit: bool = True
    isolation_level: str | None = None
    timeout: float | None = None
    options: dict[str, Any] | None = None
    ssl: SSLConfig | None = None
    dsn: DSNConfig | None = None
    source: str | None = None

    @classmethod
    def from_dsn(cls, dsn: str, **kwargs: Any) -> "ConnectionConfig":
        parsed = parse_dsn(dsn)
        if not parsed.scheme:
            raise ConnectionConfigurationError(f"DSN has no scheme: {parsed.redacted()}")
        query = dict(parsed.query)

        try:
            parsed_autocommit = (
                parse_bool(query.pop("autocommit"), key="autocommit") if "autocommit" in query else None
            )
            parsed_timeout = parse_float(query.pop("timeout"), key="timeout") if "timeout" in query else None
            parsed_isolation_level = query.pop("isolation_level", None)
            parsed_ssl = _parse_ssl(query)
            options = _parse_option_values(query)
        except ConfigurationError as exc:
            raise ConnectionConfigurationError(str(exc)) from exc

        options.update(kwargs.pop("options", None) or {})
        autocommit = kwargs.pop("autocommit", parsed_autocommit)

        return cls(
            url=dsn,
            dsn=parsed,
            autocommit=True if autocommit is None else bool(autocommit),
            isolation_level=kwargs.pop("isolation_level", parsed_isolation_level),
            timeout=kwargs.pop("timeout", parsed_timeout),
            options=options or None,
            ssl=kwargs.pop("ssl", parsed_ssl),
            **kwargs,
        )

    @classmethod
    def from_env(cls, env_var: str, **kwargs: Any) -> "ConnectionConfig":
        value = os.getenv(env_var)
        if not value:
            raise ConnectionConfigurationError(f"Environment variable {env_var} is not set")
        return cls.from_dsn(value, source=env_var, **kwargs)

    @property
    def dialect_name(self) -> str:
        if self.dsn is None:
            return parse_dsn(self.url).dialect_name
        return self.dsn.dialect_name

    def redacted_dsn(self) -> str:
        if self.dsn:
            return self.dsn.redacted()
        return parse_dsn(self.url).redacted()

    def descriptive_label(self) -> str:
        redacted = self.redacted_dsn()
        if self.source:
            return f"{self.source} ({redacted})"
        return redacted


class Connection(Protocol):
    """A single backend session. Statements on one connection never overlap."""

    uuid: str | None

    async def execute(self, sql: str, params: Params | None = None) -> List[Row]:
        """
        Run one statement and return its rows as dictionaries (empty for
        statements producing no result set).
        """

    async def close(self) -> None:
        """Close the underlying driver connection."""


class ConnectionManager(Protocol):
    async def get_connection(self, options: Optional[Mapping[str, Any]] = None) -> Connection:
        """
        Hand out a connection. ``options`` carries ``type`` (``"read"`` or
        ``"write"``) and the ``uuid`` of the transaction that will own it.
        """

    async def release_connection(self, connection: Connection) -> None:
        """Return a healthy connection for reuse."""

    async def destroy_connection(self, connection: Connection) -> None:
        """Close a connection that must not be reused."""

    async def close(self) -> None:
        """Close every connection the manager still holds."""


class DBAPIConnection:
    """
    Wraps a blocking DB-API connection. Statements run one at a time in a
    worker thread.
    """

    def __init__(self, raw: Any, *, label: str) -> None:
        self.raw = raw
        self.label = label
        self.uuid: str | None = None
        self.closed = False
        self.lock = asyncio.Lock()

    async def execute(self, sql: str, params: Params | None = None) -> List[Row]:
        async with self.lock:
            try:
                return await asyncio.to_thread(self._execute_sync, sql, params)
            except Exception as exc:
                raise StatementExecutionError(f"{self.label} rejected statement: {exc}", sql=sql) from exc

    def _execute_sync(self, sql: str, params: Params | None) -> List[Row]:
        cursor = self.raw.cursor()
        try:
            if params is None:
                cursor.execute(sql)
            else:
                cursor.execute(sql, params)
            if cursor.description is None:
                return []
            columns = [column[0] for column in cursor.description]
            return [dict(zip(columns, row)) for row in cursor.fetchall()]
        finally:
            cursor.close()

    async def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        await asyncio.to_thread(self.raw.close)


class PooledConnectionManager:
    """
    Keeps released connections idle for reuse and opens new ones on demand.
    Subclasses implement :meth:`_open`.
    """

    logger_name = "connection"

    def __init__(self, config: ConnectionConfig, *, max_idle: int = 5) -> None:
        self.config = config
        self.max_idle = max_idle
        self._idle: List[Connection] = []
        self._in_use: set[int] = set()
        self._all: List[Connection] = []
        self._closed = False
        self.logger = get_logger(self.logger_name)

    async def _open(self) -> Connection:
        raise NotImplementedError

    async def get_connection(self, options: Optional[Mapping[str, Any]] = None) -> Connection:
        if self._closed:
            raise ConnectionManagerError("Connection manager has been closed.")
        options = options or {}
        connection = self._idle.pop() if self._idle else None
        if connection is None:
            connection = await self._open()
            self._all.append(connection)
            self.logger.debug("Opened connection to %s", self.config.descriptive_label())
        connection.uuid = options.get("uuid")
        self._in_use.add(id(connection))
        return connection

    async def release_connection(self, connection: Connection) -> None:
        self._in_use.discard(id(connection))
        connection.uuid = None
        if self._closed or getattr(connection, "closed", False) or len(self._idle) >= self.max_idle:
            await self.destroy_connection(connection)
            return
        self._idle.append(connection)

    async def destroy_connection(self, connection: Connection) -> None:
        self._in_use.discard(id(connection))
        if connection in self._idle:
            self._idle.remove(connection)
        if connection in self._all:
            self._all.remove(connection)
        await connection.close()

    async def close(self) -> None:
        self._closed = True
        connections, self._all, self._idle = list(self._all), [], []
        self._in_use.clear()
        for connection in connections:
            await connection.close()

    @property
    def idle_count(self) -> int:
        return len(self._idle)

    @property
    def in_use_count(self) -> int:
        return len(self._in_use)
