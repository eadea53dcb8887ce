"""
Option validation shared by every query generator operation.
"""

from __future__ import annotations

from typing import AbstractSet, Any, Mapping

from ..errors import DialectNotSupportedError, UnknownOptionError


def supplied_option_keys(options: Mapping[str, Any]) -> set[str]:
    """
    Keys that were actually supplied; ``None`` values mean "not given".
    """

    return {key for key, value in options.items() if value is not None}


def reject_invalid_options(
    operation_name: str,
    dialect_name: str,
    supportable_options: AbstractSet[str],
    supported_options: AbstractSet[str],
    supplied_options: Mapping[str, Any],
) -> None:
    """
    Raise when ``supplied_options`` holds keys the dialect cannot honour.

    Keys outside ``supportable_options`` raise :class:`UnknownOptionError`;
    keys the abstract contract knows about but the dialect does not implement
    raise :class:`DialectNotSupportedError`.
    """

    unsupported = supplied_option_keys(supplied_options) - set(supported_options)
    if not unsupported:
        return

    unknown = unsupported - set(supportable_options)
    if unknown:
        raise UnknownOptionError(operation_name, unknown)

    raise DialectNotSupportedError(operation_name, dialect_name, unsupported)


def assert_option_subset(
    operation_name: str,
    supportable_options: AbstractSet[str],
    supported_options: AbstractSet[str],
) -> None:
    extra = set(supported_options) - set(supportable_options)
    if extra:
        raise ValueError(
            f"{operation_name} declares supported options outside its contract: {sorted(extra)}"
        )
