"""
Runtime options for a :class:`~cadenceorm.database.Database`.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from .errors import ConfigurationError
from .persistence.options import (
    IsolationLevel,
    TransactionNestMode,
    coerce_isolation_level,
    coerce_nest_mode,
)

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


def parse_bool(value: str, *, key: str) -> bool:
    normalized = value.strip().lower()
    if normalized in _TRUE_VALUES:
        return True
    if normalized in _FALSE_VALUES:
        return False
    raise ConfigurationError(f"Invalid boolean value for '{key}': {value!r}")


def parse_float(value: str, *, key: str) -> float:
    try:
        return float(value)
    except ValueError as exc:
        raise ConfigurationError(f"Invalid float value for '{key}': {value!r}") from exc


def parse_int(value: str, *, key: str) -> int:
    try:
        return int(value)
    except ValueError as exc:
        raise ConfigurationError(f"Invalid integer value for '{key}': {value!r}") from exc


@dataclass(frozen=True)
class DatabaseOptions:
    """
    How a database instance runs transactions and reports statements.

    ``default_transaction_nest_mode`` applies when ``Database.transaction`` is
    called without ``nest_mode``; ``default_isolation_level`` when a new
    transaction does not request one. With ``disable_ambient_transactions``
    the active transaction is never discovered implicitly and must be passed
    with ``transaction=``.
    """

    default_transaction_nest_mode: TransactionNestMode = TransactionNestMode.SEPARATE
    default_isolation_level: Optional[IsolationLevel] = None
    disable_ambient_transactions: bool = False
    slow_query_ms: int = 100

    def __post_init__(self) -> None:
        nest_mode = coerce_nest_mode(self.default_transaction_nest_mode)
        if nest_mode is None:
            raise ConfigurationError("default_transaction_nest_mode cannot be None.")
        object.__setattr__(self, "default_transaction_nest_mode", nest_mode)
        object.__setattr__(
            self, "default_isolation_level", coerce_isolation_level(self.default_isolation_level)
        )
        if self.slow_query_ms < 0:
            raise ConfigurationError("slow_query_ms must be zero or positive.")

    @classmethod
    def from_env(
        cls,
        prefix: str = "CADENCEORM_",
        *,
        environ: Optional[Mapping[str, str]] = None,
        **overrides: Any,
    ) -> "DatabaseOptions":
        """
        Read ``<prefix>NEST_MODE``, ``<prefix>ISOLATION_LEVEL``,
        ``<prefix>DISABLE_AMBIENT_TRANSACTIONS`` and ``<prefix>SLOW_QUERY_MS``.
        Keyword overrides win over the environment.
        """

        env = os.environ if environ is None else environ
        values: dict[str, Any] = {}

        nest_mode = env.get(f"{prefix}NEST_MODE")
        if nest_mode:
            values["default_transaction_nest_mode"] = coerce_nest_mode(nest_mode)
        isolation_level = env.get(f"{prefix}ISOLATION_LEVEL")
        if isolation_level:
            values["default_isolation_level"] = coerce_isolation_level(isolation_level)
        disable_ambient = env.get(f"{prefix}DISABLE_AMBIENT_TRANSACTIONS")
        if disable_ambient:
            values["disable_ambient_transactions"] = parse_bool(
                disable_ambient, key=f"{prefix}DISABLE_AMBIENT_TRANSACTIONS"
            )
        slow_query_ms = env.get(f"{prefix}SLOW_QUERY_MS")
        if slow_query_ms:
            values["slow_query_ms"] = parse_int(slow_query_ms, key=f"{prefix}SLOW_QUERY_MS")

        values.update(overrides)
        return cls(**values)
