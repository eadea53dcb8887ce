"""
Transaction option types shared by the transaction engine and query generators.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, replace
from typing import Any, Optional

from ..errors import ConfigurationError


class IsolationLevel(str, enum.Enum):
    READ_UNCOMMITTED = "READ UNCOMMITTED"
    READ_COMMITTED = "READ COMMITTED"
    REPEATABLE_READ = "REPEATABLE READ"
    SERIALIZABLE = "SERIALIZABLE"


class TransactionType(str, enum.Enum):
    """SQLite locking behaviour for ``BEGIN``."""

    DEFERRED = "DEFERRED"
    IMMEDIATE = "IMMEDIATE"
    EXCLUSIVE = "EXCLUSIVE"


class TransactionNestMode(str, enum.Enum):
    """How a managed transaction relates to an already active one."""

    SEPARATE = "separate"
    REUSE = "reuse"
    SAVEPOINT = "savepoint"


def _coerce_enum(enum_type: type[enum.Enum], value: Any, *, key: str) -> Any:
    if value is None or isinstance(value, enum_type):
        return value
    if isinstance(value, str):
        normalized = value.strip().lower()
        for member in enum_type:
            if normalized in (member.value.lower(), member.name.lower()):
                return member
    raise ConfigurationError(f"Invalid value for '{key}': {value!r}")


def coerce_isolation_level(value: Any) -> Optional[IsolationLevel]:
    return _coerce_enum(IsolationLevel, value, key="isolation_level")


def coerce_transaction_type(value: Any) -> Optional[TransactionType]:
    return _coerce_enum(TransactionType, value, key="transaction_type")


def coerce_nest_mode(value: Any) -> Optional[TransactionNestMode]:
    return _coerce_enum(TransactionNestMode, value, key="nest_mode")


@dataclass(frozen=True)
class TransactionOptions:
    """
    Options a transaction is started with. ``None`` means "backend default".
    """

    isolation_level: Optional[IsolationLevel] = None
    read_only: bool = False
    transaction_type: Optional[TransactionType] = None

    @classmethod
    def build(
        cls,
        *,
        isolation_level: IsolationLevel | str | None = None,
        read_only: bool = False,
        transaction_type: TransactionType | str | None = None,
    ) -> "TransactionOptions":
        return cls(
            isolation_level=coerce_isolation_level(isolation_level),
            read_only=bool(read_only),
            transaction_type=coerce_transaction_type(transaction_type),
        )

    def with_defaults(self, *, isolation_level: Optional[IsolationLevel]) -> "TransactionOptions":
        if self.isolation_level is not None or isolation_level is None:
            return self
        return replace(self, isolation_level=isolation_level)
