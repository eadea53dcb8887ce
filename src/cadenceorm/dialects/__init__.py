"""
Dialect descriptors and the per-backend query generators.
"""

from __future__ import annotations

from typing import Any, Callable, Dict

from ..errors import ConfigurationError
from .base import ConstraintSupports, Dialect, DialectSupports, EscapeRules
from .mysql import MySQLDialect, MySQLQueryGenerator
from .postgres import PostgresDialect, PostgresQueryGenerator
from .snowflake import SnowflakeDialect, SnowflakeQueryGenerator
from .sqlite import SQLiteDialect, SQLiteQueryGenerator

_REGISTRY: Dict[str, Callable[..., Dialect]] = {
    "postgres": PostgresDialect,
    "postgresql": PostgresDialect,
    "mysql": MySQLDialect,
    "sqlite": SQLiteDialect,
    "snowflake": SnowflakeDialect,
}


def get_dialect(name: str, **kwargs: Any) -> Dialect:
    """
    Instantiate the dialect registered under ``name`` (case-insensitive).
    """

    try:
        factory = _REGISTRY[name.lower()]
    except KeyError:
        raise ConfigurationError(
            f"Unknown dialect '{name}'. Expected one of: {', '.join(sorted(_REGISTRY))}."
        ) from None
    return factory(**kwargs)


__all__ = [
    "ConstraintSupports",
    "Dialect",
    "DialectSupports",
    "EscapeRules",
    "MySQLDialect",
    "MySQLQueryGenerator",
    "PostgresDialect",
    "PostgresQueryGenerator",
    "SQLiteDialect",
    "SQLiteQueryGenerator",
    "SnowflakeDialect",
    "SnowflakeQueryGenerator",
    "get_dialect",
]
