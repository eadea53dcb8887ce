"""
Dialect descriptors: identity, feature flags, and SQL syntax rules per backend.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, FrozenSet, Mapping, Optional, Protocol, Tuple

from ..persistence.options import IsolationLevel, TransactionType
from ..query.operators import Operator

if TYPE_CHECKING:
    from ..query.generator import QueryGenerator


@dataclass(frozen=True)
class ConstraintSupports:
    foreign_key_checks_disableable: bool = False
    deferrable: bool = False


@dataclass(frozen=True)
class DialectSupports:
    """
    Feature flags describing backend capabilities.
    """

    savepoints: bool = True
    isolation_levels: FrozenSet[IsolationLevel] = frozenset(IsolationLevel)
    isolation_level_inside_transaction: bool = False
    read_only_transactions: bool = False
    transaction_types: FrozenSet[TransactionType] = frozenset()
    schemas: bool = True
    truncate_cascade: bool = False
    constraints: ConstraintSupports = field(default_factory=ConstraintSupports)


@dataclass(frozen=True)
class EscapeRules:
    """
    How string and scalar literals are written for one backend.
    """

    true_literal: str = "true"
    false_literal: str = "false"
    backslash_escapes: bool = False
    strip_nul: bool = False
    extended_backslash_strings: bool = False
    bytes_prefix: str = "X'"


class Dialect(Protocol):
    """
    Read-only descriptor consumed by query generators and the transaction engine.
    """

    @property
    def name(self) -> str: ...

    @property
    def param_style(self) -> str: ...

    @property
    def default_schema(self) -> Optional[str]: ...

    @property
    def supports(self) -> DialectSupports: ...

    @property
    def escape_rules(self) -> EscapeRules: ...

    @property
    def technical_schema_names(self) -> Tuple[str, ...]: ...

    @property
    def operator_keywords(self) -> Mapping[Operator, str]: ...

    @property
    def query_generator(self) -> "QueryGenerator": ...

    def quote_identifier(self, identifier: str) -> str: ...

    def parameter_placeholder(self, position: int | None = None) -> str: ...
