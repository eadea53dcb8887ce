"""
MySQL connection manager on a blocking DB-API driver (PyMySQL or mysqlclient).
"""

from __future__ import annotations

import asyncio
from typing import Any

from .base import (
    ConnectionAcquireError,
    ConnectionConfig,
    ConnectionConfigurationError,
    DBAPIConnection,
    PooledConnectionManager,
)


def _load_driver():
    try:
        import pymysql  # type: ignore[import-untyped]

        return pymysql
    except ImportError:
        try:
            import MySQLdb

            return MySQLdb
        except ImportError:
            return None


class MySQLConnectionManager(PooledConnectionManager):
    logger_name = "connection.mysql"

    def __init__(self, config: ConnectionConfig | str, *, max_idle: int = 5) -> None:
        if isinstance(config, str):
            config = ConnectionConfig.from_dsn(config)
        super().__init__(config, max_idle=max_idle)

    def _connect_kwargs(self) -> dict[str, Any]:
        dsn = self.config.dsn
        if dsn is None:
            raise ConnectionConfigurationError(
                "ConnectionConfig must be built from a DSN for MySQL connections."
            )
        options = dict(self.config.options or {})
        if self.config.ssl:
            for key, value in self.config.ssl.mysql_options().items():
                options.setdefault(key, value)
        if self.config.timeout and "connect_timeout" not in options:
            options["connect_timeout"] = int(self.config.timeout)
        kwargs = {
            "host": dsn.host or "localhost",
            "user": dsn.username,
            "password": dsn.password,
            "database": dsn.database,
            **options,
        }
        if dsn.port:
            kwargs["port"] = dsn.port
        return kwargs

    async def _open(self) -> DBAPIConnection:
        driver = _load_driver()
        if driver is None:
            raise ConnectionConfigurationError(
                "PyMySQL or mysqlclient is required to use MySQLConnectionManager."
            )

        self.logger.info("Connecting to MySQL %s", self.config.descriptive_label())
        try:
            raw = await asyncio.to_thread(driver.connect, **self._connect_kwargs())
        except ConnectionConfigurationError:
            raise
        except Exception as exc:
            raise ConnectionAcquireError("Failed to connect to MySQL.") from exc
        if hasattr(raw, "autocommit"):
            raw.autocommit(self.config.autocommit)
        return DBAPIConnection(raw, label="mysql")
