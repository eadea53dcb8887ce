"""
Query generator contract and the shared SQL toolkit dialect generators compose.

Every dialect ships its own :class:`QueryGenerator` implementation. They do not
inherit from one another; common behaviour (escaping, quoting, option checks,
table resolution) lives in :class:`SQLToolkit`, which each generator holds.
"""

from __future__ import annotations

import datetime as dt
import decimal
import math
from types import MappingProxyType
from typing import TYPE_CHECKING, AbstractSet, Any, FrozenSet, Iterable, Mapping, Optional, Protocol

from ..errors import UnsupportedFeatureError
from .fragments import join_sql_fragments
from .operators import Operator
from .options import assert_option_subset, reject_invalid_options
from .tables import TableLike, TableRef, resolve_table

if TYPE_CHECKING:
    from ..dialects.base import Dialect
    from ..persistence.options import IsolationLevel, TransactionType


CREATE_DATABASE_QUERY_SUPPORTABLE_OPTIONS = frozenset(
    {"charset", "collate", "ctype", "encoding", "template"}
)
LIST_DATABASES_QUERY_SUPPORTABLE_OPTIONS = frozenset({"skip"})
LIST_SCHEMAS_QUERY_SUPPORTABLE_OPTIONS = frozenset({"skip"})
LIST_TABLES_QUERY_SUPPORTABLE_OPTIONS = frozenset({"schema"})
TRUNCATE_TABLE_QUERY_SUPPORTABLE_OPTIONS = frozenset({"cascade", "restart_identity"})
SHOW_CONSTRAINTS_QUERY_SUPPORTABLE_OPTIONS = frozenset(
    {"column_name", "constraint_name", "constraint_type"}
)
START_TRANSACTION_QUERY_SUPPORTABLE_OPTIONS = frozenset({"read_only", "transaction_type"})

SUPPORTABLE_OPTIONS: Mapping[str, FrozenSet[str]] = MappingProxyType(
    {
        "create_database_query": CREATE_DATABASE_QUERY_SUPPORTABLE_OPTIONS,
        "list_databases_query": LIST_DATABASES_QUERY_SUPPORTABLE_OPTIONS,
        "list_schemas_query": LIST_SCHEMAS_QUERY_SUPPORTABLE_OPTIONS,
        "list_tables_query": LIST_TABLES_QUERY_SUPPORTABLE_OPTIONS,
        "truncate_table_query": TRUNCATE_TABLE_QUERY_SUPPORTABLE_OPTIONS,
        "show_constraints_query": SHOW_CONSTRAINTS_QUERY_SUPPORTABLE_OPTIONS,
        "start_transaction_query": START_TRANSACTION_QUERY_SUPPORTABLE_OPTIONS,
    }
)


class QueryGenerator(Protocol):
    """
    Operations every dialect generator implements. Each returns SQL text ready
    to execute.
    """

    # primitives ---------------------------------------------------------
    def escape(self, value: Any) -> str: ...

    def quote_identifier(self, identifier: str) -> str: ...

    def quote_table(self, table: TableLike) -> str: ...

    def extract_table_details(self, table: TableLike) -> TableRef: ...

    def format_operator(self, operator: Operator | str) -> str: ...

    def where_clause(self, where: Optional[Mapping[str, Any]]) -> str: ...

    # catalog & DDL ------------------------------------------------------
    def create_database_query(self, database: str, **options: Any) -> str: ...

    def list_databases_query(self, **options: Any) -> str: ...

    def list_schemas_query(self, **options: Any) -> str: ...

    def describe_table_query(self, table: TableLike) -> str: ...

    def list_tables_query(self, **options: Any) -> str: ...

    def truncate_table_query(self, table: TableLike, **options: Any) -> str: ...

    def delete_query(self, table: TableLike, where: Optional[Mapping[str, Any]] = None) -> str: ...

    def show_constraints_query(self, table: TableLike, **options: Any) -> str: ...

    def show_indexes_query(self, table: Optional[TableLike] = None) -> str: ...

    def version_query(self) -> str: ...

    # transactions -------------------------------------------------------
    def start_transaction_query(self, **options: Any) -> str: ...

    def set_isolation_level_query(self, level: "IsolationLevel") -> str: ...

    def commit_transaction_query(self) -> str: ...

    def rollback_transaction_query(self) -> str: ...

    def create_savepoint_query(self, name: str) -> str: ...

    def rollback_savepoint_query(self, name: str) -> str: ...

    def release_savepoint_query(self, name: str) -> str: ...

    def toggle_foreign_key_checks_query(self, enable: bool) -> str: ...


class SQLToolkit:
    """
    Stateless helpers bound to one dialect descriptor and the option table
    its generator implements.
    """

    def __init__(
        self,
        dialect: "Dialect",
        supported_options: Mapping[str, AbstractSet[str]],
    ) -> None:
        for operation, supported in supported_options.items():
            assert_option_subset(operation, SUPPORTABLE_OPTIONS[operation], supported)
        self.dialect = dialect
        self.supported_options: Mapping[str, FrozenSet[str]] = MappingProxyType(
            {operation: frozenset(supported) for operation, supported in supported_options.items()}
        )

    # ------------------------------------------------------------------ #
    # Option checks
    # ------------------------------------------------------------------ #
    def check_options(self, operation: str, options: Mapping[str, Any]) -> None:
        """
        Validate caller-supplied options for ``operation``. Absent options are
        always valid.
        """

        if not options:
            return
        reject_invalid_options(
            operation,
            self.dialect.name,
            SUPPORTABLE_OPTIONS[operation],
            self.supported_options.get(operation, frozenset()),
            options,
        )

    # ------------------------------------------------------------------ #
    # Identifiers
    # ------------------------------------------------------------------ #
    def quote_identifier(self, identifier: str) -> str:
        return self.dialect.quote_identifier(identifier)

    def resolve_table(self, table: TableLike) -> TableRef:
        return resolve_table(table, self.dialect.default_schema)

    def quote_table(self, table: TableLike) -> str:
        ref = self.resolve_table(table)
        quoted = self.quote_identifier(ref.table_name)
        if ref.schema and self.dialect.supports.schemas:
            return f"{self.quote_identifier(ref.schema)}.{quoted}"
        return quoted

    # ------------------------------------------------------------------ #
    # Literals
    # ------------------------------------------------------------------ #
    def escape(self, value: Any) -> str:
        """
        Render ``value`` as a SQL literal. Strings are always quoted with the
        backend's escaping rules; unsupported types raise ``TypeError``.
        """

        rules = self.dialect.escape_rules
        if value is None:
            return "NULL"
        if isinstance(value, bool):
            return rules.true_literal if value else rules.false_literal
        if isinstance(value, int):
            return str(value)
        if isinstance(value, float):
            if not math.isfinite(value):
                raise ValueError(f"Cannot escape non-finite number {value!r}")
            return repr(value)
        if isinstance(value, decimal.Decimal):
            if not value.is_finite():
                raise ValueError(f"Cannot escape non-finite number {value!r}")
            return str(value)
        if isinstance(value, dt.datetime):
            return self.escape_string(value.isoformat(sep=" "))
        if isinstance(value, (dt.date, dt.time)):
            return self.escape_string(value.isoformat())
        if isinstance(value, (bytes, bytearray, memoryview)):
            return f"{rules.bytes_prefix}{bytes(value).hex()}'"
        if isinstance(value, str):
            return self.escape_string(value)
        if isinstance(value, (list, tuple, set, frozenset)):
            return self.escape_list(value)
        raise TypeError(f"Cannot escape value of type {type(value).__name__}")

    def escape_string(self, value: str) -> str:
        rules = self.dialect.escape_rules
        if rules.strip_nul:
            value = value.replace("\x00", "")
        if rules.backslash_escapes:
            value = (
                value.replace("\\", "\\\\")
                .replace("\x00", "\\0")
                .replace("\n", "\\n")
                .replace("\r", "\\r")
                .replace("\x1a", "\\Z")
            )
        if rules.extended_backslash_strings and "\\" in value:
            return "E'" + value.replace("\\", "\\\\").replace("'", "''") + "'"
        return "'" + value.replace("'", "''") + "'"

    def escape_list(self, values: Iterable[Any]) -> str:
        items = list(values)
        if not items:
            raise ValueError("Cannot escape an empty list of values")
        return "(" + ", ".join(self.escape(item) for item in items) + ")"

    # ------------------------------------------------------------------ #
    # Predicates
    # ------------------------------------------------------------------ #
    def format_operator(self, operator: Operator | str) -> str:
        op = Operator(operator)
        try:
            return self.dialect.operator_keywords[op]
        except KeyError:
            raise UnsupportedFeatureError(
                f"Operator '{op.value}' is not supported by {self.dialect.name}."
            ) from None

    def comparison(self, column: str, value: Any) -> str:
        quoted = self.quote_identifier(column)
        if isinstance(value, Mapping):
            clauses = [self._operator_clause(quoted, op, operand) for op, operand in value.items()]
            return " AND ".join(clauses)
        if value is None:
            return f"{quoted} {self.format_operator(Operator.IS)} NULL"
        if isinstance(value, (list, tuple, set, frozenset)):
            return f"{quoted} {self.format_operator(Operator.IN)} {self.escape_list(value)}"
        return f"{quoted} {self.format_operator(Operator.EQ)} {self.escape(value)}"

    def _operator_clause(self, quoted: str, operator: Operator | str, operand: Any) -> str:
        op = Operator(operator)
        if op in (Operator.IN, Operator.NOT_IN):
            return f"{quoted} {self.format_operator(op)} {self.escape_list(operand)}"
        return f"{quoted} {self.format_operator(op)} {self.escape(operand)}"

    def where_clause(self, where: Optional[Mapping[str, Any]]) -> str:
        """
        ``{"name": "a", "age": {Operator.GT: 3}}`` becomes
        ``WHERE "name" = 'a' AND "age" > 3``. An empty mapping yields ``""``.
        """

        if not where:
            return ""
        return "WHERE " + " AND ".join(
            self.comparison(column, value) for column, value in where.items()
        )

    def not_in_list(self, column: str, values: Iterable[str]) -> str:
        escaped = [self.escape(value) for value in dict.fromkeys(values)]
        if not escaped:
            return ""
        return f"{column} NOT IN ({', '.join(escaped)})"

    # ------------------------------------------------------------------ #
    def join(self, *fragments: Any) -> str:
        return join_sql_fragments(fragments)

    def unsupported(self, operation: str) -> UnsupportedFeatureError:
        return UnsupportedFeatureError(f"{operation} is not supported by {self.dialect.name}.")


def require_isolation_level(dialect: "Dialect", level: "IsolationLevel") -> None:
    if level not in dialect.supports.isolation_levels:
        raise UnsupportedFeatureError(
            f"Isolation level '{level.value}' is not supported by {dialect.name}."
        )


def require_transaction_type(dialect: "Dialect", transaction_type: "TransactionType | None") -> None:
    if transaction_type is not None and transaction_type not in dialect.supports.transaction_types:
        raise UnsupportedFeatureError(
            f"Transaction type '{transaction_type.value}' is not supported by {dialect.name}."
        )
