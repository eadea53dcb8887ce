"""
Connection managers: the collaborator the transaction engine acquires
connections from, plus bundled implementations per backend.
"""

from .base import (
    Connection,
    ConnectionAcquireError,
    ConnectionConfig,
    ConnectionConfigurationError,
    ConnectionManager,
    ConnectionManagerError,
    DBAPIConnection,
    PooledConnectionManager,
    SSLConfig,
    StatementExecutionError,
)
from .dsn import DSNConfig, parse_dsn
from .mysql import MySQLConnectionManager
from .postgres import PostgresConnectionManager
from .sqlite import SQLiteConnectionManager

__all__ = [
    "Connection",
    "ConnectionAcquireError",
    "ConnectionConfig",
    "ConnectionConfigurationError",
    "ConnectionManager",
    "ConnectionManagerError",
    "DBAPIConnection",
    "DSNConfig",
    "MySQLConnectionManager",
    "PooledConnectionManager",
    "PostgresConnectionManager",
    "SQLiteConnectionManager",
    "SSLConfig",
    "StatementExecutionError",
    "parse_dsn",
]
