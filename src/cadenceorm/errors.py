"""
Error hierarchy shared by the query generation and transaction layers.
"""

from __future__ import annotations

from typing import Iterable


class CadenceError(Exception):
    """Base class for CadenceORM errors."""


class ConfigurationError(CadenceError):
    """Raised when runtime options cannot be parsed or are inconsistent."""


class UnknownOptionError(CadenceError):
    """
    Raised when an operation receives an option it never recognizes.

    This is a programming error (usually a typo) and is never retried.
    """

    def __init__(self, operation: str, options: Iterable[str]) -> None:
        self.operation = operation
        self.options = tuple(sorted(options))
        listed = ", ".join(repr(option) for option in self.options)
        super().__init__(f"{operation} received unknown option(s): {listed}")


class DialectNotSupportedError(CadenceError):
    """
    Raised when an option is part of the abstract contract but the active
    dialect does not implement it.
    """

    def __init__(self, operation: str, dialect: str, options: Iterable[str]) -> None:
        self.operation = operation
        self.dialect = dialect
        self.options = tuple(sorted(options))
        listed = ", ".join(repr(option) for option in self.options)
        super().__init__(
            f"The following options are not supported by {operation} in {dialect}: {listed}"
        )


class UnsupportedFeatureError(CadenceError):
    """Raised when the backend lacks a capability the operation requires."""


class TransactionError(CadenceError):
    """Raised on invalid transaction lifecycle transitions."""


class TransactionCompatibilityError(TransactionError):
    """
    Raised when an ambient transaction cannot be nested into because its
    options differ from the ones requested.
    """


class CyclicDependencyError(CadenceError):
    """Raised when a bulk operation meets a foreign key cycle without an override."""
