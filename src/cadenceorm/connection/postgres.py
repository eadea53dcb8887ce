"""
PostgreSQL connection manager on psycopg's asyncio connections.
"""

from __future__ import annotations

import asyncio
from typing import Any, List

from .base import (
    ConnectionAcquireError,
    ConnectionConfig,
    ConnectionConfigurationError,
    Params,
    PooledConnectionManager,
    Row,
    StatementExecutionError,
)


def _load_driver():
    try:
        import psycopg

        return psycopg
    except ImportError:
        return None


class PostgresConnection:
    def __init__(self, raw: Any) -> None:
        self.raw = raw
        self.uuid: str | None = None
        self.lock = asyncio.Lock()

    @property
    def closed(self) -> bool:
        return bool(getattr(self.raw, "closed", False))

    async def execute(self, sql: str, params: Params | None = None) -> List[Row]:
        async with self.lock:
            try:
                async with self.raw.cursor() as cursor:
                    await cursor.execute(sql, params)
                    if cursor.description is None:
                        return []
                    columns = [column[0] for column in cursor.description]
                    rows = await cursor.fetchall()
            except Exception as exc:
                raise StatementExecutionError(f"postgres rejected statement: {exc}", sql=sql) from exc
        return [dict(zip(columns, row)) for row in rows]

    async def close(self) -> None:
        if not self.closed:
            await self.raw.close()


class PostgresConnectionManager(PooledConnectionManager):
    """
    Opens psycopg ``AsyncConnection`` objects in autocommit mode; transactions
    are driven by explicit ``START TRANSACTION``/``COMMIT`` statements.
    """

    logger_name = "connection.postgres"

    def __init__(self, config: ConnectionConfig | str, *, max_idle: int = 5) -> None:
        if isinstance(config, str):
            config = ConnectionConfig.from_dsn(config)
        super().__init__(config, max_idle=max_idle)

    def _conninfo(self) -> str:
        dsn = self.config.dsn
        if dsn is None:
            return self.config.url
        # psycopg does not understand SQLAlchemy-style "postgresql+driver" schemes.
        netloc = self.config.url.split("://", 1)[1].split("?", 1)[0]
        return f"postgresql://{netloc}"

    def _connect_options(self) -> dict[str, Any]:
        options = dict(self.config.options or {})
        if self.config.ssl:
            for key, value in self.config.ssl.postgres_options().items():
                options.setdefault(key, value)
        if self.config.timeout and "connect_timeout" not in options:
            options["connect_timeout"] = int(self.config.timeout)
        return options

    async def _open(self) -> PostgresConnection:
        driver = _load_driver()
        if driver is None:
            raise ConnectionConfigurationError("psycopg is required to use PostgresConnectionManager.")

        self.logger.info("Connecting to PostgreSQL %s", self.config.descriptive_label())
        try:
            raw = await driver.AsyncConnection.connect(
                self._conninfo(),
                autocommit=self.config.autocommit,
                **self._connect_options(),
            )
        except Exception as exc:
            raise ConnectionAcquireError("Failed to connect to PostgreSQL.") from exc
        return PostgresConnection(raw)
