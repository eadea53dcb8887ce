"""
SQLite connection manager on the stdlib ``sqlite3`` module.
"""

from __future__ import annotations

import asyncio
import sqlite3
from typing import Any, Mapping, Optional

from .base import (
    ConnectionAcquireError,
    ConnectionConfig,
    DBAPIConnection,
    PooledConnectionManager,
)

MEMORY_PATH = ":memory:"


def _normalize_path(url: str) -> str:
    if url in ("sqlite://", "sqlite:///:memory:", "sqlite://:memory:"):
        return MEMORY_PATH
    prefix = "sqlite:///"
    if url.startswith(prefix):
        return url[len(prefix) :].split("?", 1)[0]
    return url


class SQLiteConnectionManager(PooledConnectionManager):
    """
    Opens one ``sqlite3`` connection per concurrent user of a database file.

    An in-memory database only exists inside the connection that created it,
    so for ``:memory:`` every caller shares a single connection.
    """

    logger_name = "connection.sqlite"

    def __init__(self, config: ConnectionConfig | str, *, max_idle: int = 5) -> None:
        if isinstance(config, str):
            config = ConnectionConfig.from_dsn(config)
        super().__init__(config, max_idle=max_idle)
        self.path = _normalize_path(config.url)
        self._shared: Optional[DBAPIConnection] = None

    @property
    def in_memory(self) -> bool:
        return self.path == MEMORY_PATH

    async def _open(self) -> DBAPIConnection:
        timeout = self.config.timeout if self.config.timeout is not None else 5.0
        try:
            raw = await asyncio.to_thread(
                sqlite3.connect,
                self.path,
                isolation_level=None,
                timeout=timeout,
                detect_types=sqlite3.PARSE_DECLTYPES,
                check_same_thread=False,
            )
        except sqlite3.Error as exc:
            raise ConnectionAcquireError(f"Failed to open SQLite database {self.path!r}.") from exc
        raw.row_factory = sqlite3.Row
        raw.execute("PRAGMA foreign_keys = ON")
        return DBAPIConnection(raw, label="sqlite")

    async def get_connection(self, options: Optional[Mapping[str, Any]] = None) -> DBAPIConnection:
        if not self.in_memory:
            return await super().get_connection(options)
        if self._shared is None or self._shared.closed:
            self._shared = await super().get_connection(options)
        return self._shared

    async def release_connection(self, connection: Any) -> None:
        if self.in_memory and connection is self._shared:
            return
        await super().release_connection(connection)

    async def destroy_connection(self, connection: Any) -> None:
        if self.in_memory and connection is self._shared:
            self._shared = None
        await super().destroy_connection(connection)

    async def close(self) -> None:
        self._shared = None
        await super().close()
