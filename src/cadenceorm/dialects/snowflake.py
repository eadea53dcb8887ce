"""
Snowflake dialect implementation.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Any, Final, Mapping, Optional

from ..persistence.options import IsolationLevel
from ..query.generator import SQLToolkit, require_isolation_level
from ..query.operators import Operator, build_operator_keywords
from ..query.tables import TableLike, TableRef
from .base import ConstraintSupports, Dialect, DialectSupports, EscapeRules

SUPPORTED_OPTIONS: Mapping[str, frozenset[str]] = MappingProxyType(
    {
        "create_database_query": frozenset(),
        "list_databases_query": frozenset(),
        "list_schemas_query": frozenset({"skip"}),
        "list_tables_query": frozenset({"schema"}),
        "truncate_table_query": frozenset(),
        "show_constraints_query": frozenset({"constraint_name", "constraint_type"}),
        "start_transaction_query": frozenset(),
    }
)


class SnowflakeQueryGenerator:
    def __init__(self, dialect: Dialect) -> None:
        self.dialect = dialect
        self._sql = SQLToolkit(dialect, SUPPORTED_OPTIONS)

    def escape(self, value: Any) -> str:
        return self._sql.escape(value)

    def quote_identifier(self, identifier: str) -> str:
        return self._sql.quote_identifier(identifier)

    def quote_table(self, table: TableLike) -> str:
        return self._sql.quote_table(table)

    def extract_table_details(self, table: TableLike) -> TableRef:
        return self._sql.resolve_table(table)

    def format_operator(self, operator: Operator | str) -> str:
        return self._sql.format_operator(operator)

    def where_clause(self, where: Optional[Mapping[str, Any]]) -> str:
        return self._sql.where_clause(where)

    def create_database_query(self, database: str, **options: Any) -> str:
        self._sql.check_options("create_database_query", options)
        return self._sql.join(f"CREATE DATABASE IF NOT EXISTS {self.quote_identifier(database)}")

    def list_databases_query(self, **options: Any) -> str:
        self._sql.check_options("list_databases_query", options)
        return self._sql.join("SHOW DATABASES")

    def list_schemas_query(self, **options: Any) -> str:
        self._sql.check_options("list_schemas_query", options)
        schemas_to_skip = [*self.dialect.technical_schema_names, *(options.get("skip") or ())]
        return self._sql.join(
            'SELECT SCHEMA_NAME AS "schema"',
            "FROM INFORMATION_SCHEMA.SCHEMATA",
            ["WHERE", self._sql.not_in_list("SCHEMA_NAME", schemas_to_skip)],
        )

    def describe_table_query(self, table: TableLike) -> str:
        return self._sql.join("SHOW FULL COLUMNS FROM", self.quote_table(table), ";")

    def list_tables_query(self, **options: Any) -> str:
        self._sql.check_options("list_tables_query", options)
        schema = options.get("schema")
        return self._sql.join(
            'SELECT TABLE_NAME AS "tableName",',
            'TABLE_SCHEMA AS "schema"',
            "FROM INFORMATION_SCHEMA.TABLES WHERE TABLE_TYPE = 'BASE TABLE'",
            f"AND TABLE_SCHEMA = {self.escape(schema)}"
            if schema
            else ["AND", self._sql.not_in_list("TABLE_SCHEMA", self.dialect.technical_schema_names)],
            "ORDER BY TABLE_SCHEMA, TABLE_NAME",
        )

    def truncate_table_query(self, table: TableLike, **options: Any) -> str:
        self._sql.check_options("truncate_table_query", options)
        return self._sql.join("TRUNCATE", self.quote_table(table))

    def delete_query(self, table: TableLike, where: Optional[Mapping[str, Any]] = None) -> str:
        return self._sql.join(f"DELETE FROM {self.quote_table(table)}", self._sql.where_clause(where))

    def show_constraints_query(self, table: TableLike, **options: Any) -> str:
        self._sql.check_options("show_constraints_query", options)
        ref = self.extract_table_details(table)
        constraint_name = options.get("constraint_name")
        constraint_type = options.get("constraint_type")
        return self._sql.join(
            "SELECT c.CONSTRAINT_CATALOG AS constraintCatalog,",
            "c.CONSTRAINT_SCHEMA AS constraintSchema,",
            "c.CONSTRAINT_NAME AS constraintName,",
            "c.CONSTRAINT_TYPE AS constraintType,",
            "c.TABLE_CATALOG AS tableCatalog,",
            "c.TABLE_SCHEMA AS tableSchema,",
            "c.TABLE_NAME AS tableName,",
            "fk.TABLE_SCHEMA AS referencedTableSchema,",
            "fk.TABLE_NAME AS referencedTableName,",
            "r.DELETE_RULE AS deleteAction,",
            "r.UPDATE_RULE AS updateAction,",
            "c.IS_DEFERRABLE AS isDeferrable,",
            "c.INITIALLY_DEFERRED AS initiallyDeferred",
            "FROM INFORMATION_SCHEMA.TABLE_CONSTRAINTS c",
            "LEFT JOIN INFORMATION_SCHEMA.REFERENTIAL_CONSTRAINTS r",
            "ON c.CONSTRAINT_CATALOG = r.CONSTRAINT_CATALOG",
            "AND c.CONSTRAINT_SCHEMA = r.CONSTRAINT_SCHEMA",
            "AND c.CONSTRAINT_NAME = r.CONSTRAINT_NAME",
            "LEFT JOIN INFORMATION_SCHEMA.TABLE_CONSTRAINTS fk",
            "ON r.UNIQUE_CONSTRAINT_CATALOG = fk.CONSTRAINT_CATALOG",
            "AND r.UNIQUE_CONSTRAINT_SCHEMA = fk.CONSTRAINT_SCHEMA",
            "AND r.UNIQUE_CONSTRAINT_NAME = fk.CONSTRAINT_NAME",
            f"WHERE c.TABLE_NAME = {self.escape(ref.table_name)}",
            f"AND c.TABLE_SCHEMA = {self.escape(ref.schema)}",
            f"AND c.CONSTRAINT_NAME = {self.escape(constraint_name)}" if constraint_name else "",
            f"AND c.CONSTRAINT_TYPE = {self.escape(constraint_type)}" if constraint_type else "",
            "ORDER BY c.CONSTRAINT_NAME",
        )

    def show_indexes_query(self, table: Optional[TableLike] = None) -> str:
        raise self._sql.unsupported("Listing indexes")

    def version_query(self) -> str:
        return 'SELECT CURRENT_VERSION() AS "version"'

    def start_transaction_query(self, **options: Any) -> str:
        self._sql.check_options("start_transaction_query", options)
        return "START TRANSACTION"

    def set_isolation_level_query(self, level: IsolationLevel) -> str:
        # READ COMMITTED is the only level and cannot be changed.
        require_isolation_level(self.dialect, level)
        return ""

    def commit_transaction_query(self) -> str:
        return "COMMIT"

    def rollback_transaction_query(self) -> str:
        return "ROLLBACK"

    def create_savepoint_query(self, name: str) -> str:
        raise self._sql.unsupported("Savepoints")

    def rollback_savepoint_query(self, name: str) -> str:
        raise self._sql.unsupported("Savepoints")

    def release_savepoint_query(self, name: str) -> str:
        raise self._sql.unsupported("Savepoints")

    def toggle_foreign_key_checks_query(self, enable: bool) -> str:
        raise self._sql.unsupported("Disabling foreign key checks")


class SnowflakeDialect:
    """
    Snowflake dialect. Statements are generated only; no bundled connection
    manager talks to Snowflake.
    """

    name: Final[str] = "snowflake"
    param_style: Final[str] = "pyformat"
    supports: Final[DialectSupports] = DialectSupports(
        savepoints=False,
        isolation_levels=frozenset({IsolationLevel.READ_COMMITTED}),
        isolation_level_inside_transaction=False,
        read_only_transactions=False,
        schemas=True,
        truncate_cascade=False,
        constraints=ConstraintSupports(deferrable=True),
    )
    escape_rules: Final[EscapeRules] = EscapeRules(
        true_literal="TRUE",
        false_literal="FALSE",
        backslash_escapes=True,
        bytes_prefix="X'",
    )
    technical_schema_names: Final[tuple[str, ...]] = ("INFORMATION_SCHEMA",)
    operator_keywords: Final[Mapping[Operator, str]] = build_operator_keywords(
        regexp="REGEXP", not_regexp="NOT REGEXP"
    )

    def __init__(self, *, default_schema: Optional[str] = "PUBLIC") -> None:
        self.default_schema = default_schema
        self.query_generator = SnowflakeQueryGenerator(self)

    def quote_identifier(self, identifier: str) -> str:
        escaped = identifier.replace('"', '""')
        return f'"{escaped}"'

    def parameter_placeholder(self, position: int | None = None) -> str:
        return "%s"
