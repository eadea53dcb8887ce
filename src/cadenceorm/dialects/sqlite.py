"""
SQLite dialect implementation.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Any, Final, Mapping, Optional

from ..persistence.options import IsolationLevel, TransactionType, coerce_transaction_type
from ..query.generator import SQLToolkit, require_isolation_level, require_transaction_type
from ..query.operators import DEFAULT_OPERATOR_KEYWORDS, Operator
from ..query.tables import TableLike, TableRef
from .base import ConstraintSupports, Dialect, DialectSupports, EscapeRules

SUPPORTED_OPTIONS: Mapping[str, frozenset[str]] = MappingProxyType(
    {
        "create_database_query": frozenset(),
        "list_databases_query": frozenset({"skip"}),
        "list_schemas_query": frozenset({"skip"}),
        "list_tables_query": frozenset({"schema"}),
        "truncate_table_query": frozenset(),
        "show_constraints_query": frozenset({"constraint_name", "constraint_type"}),
        "start_transaction_query": frozenset({"transaction_type"}),
    }
)


class SQLiteQueryGenerator:
    """
    SQL generation for SQLite. Catalog queries go through the table-valued
    ``pragma_*`` functions so they can be filtered and ordered like tables.
    """

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

    # Catalog & DDL -----------------------------------------------------
    def create_database_query(self, database: str, **options: Any) -> str:
        self._sql.check_options("create_database_query", options)
        raise self._sql.unsupported("CREATE DATABASE")

    def list_databases_query(self, **options: Any) -> str:
        self._sql.check_options("list_databases_query", options)
        databases_to_skip = [*self.dialect.technical_schema_names, *(options.get("skip") or ())]
        return self._sql.join(
            'SELECT name AS "name", file AS "file"',
            "FROM pragma_database_list",
            ["WHERE", self._sql.not_in_list("name", databases_to_skip)],
            "ORDER BY seq",
        )

    def list_schemas_query(self, **options: Any) -> str:
        self._sql.check_options("list_schemas_query", options)
        schemas_to_skip = [*self.dialect.technical_schema_names, *(options.get("skip") or ())]
        return self._sql.join(
            'SELECT name AS "schema"',
            "FROM pragma_database_list",
            ["WHERE", self._sql.not_in_list("name", schemas_to_skip)],
            "ORDER BY seq",
        )

    def describe_table_query(self, table: TableLike) -> str:
        return self._sql.join(f"PRAGMA TABLE_INFO({self.quote_table(table)})")

    def list_tables_query(self, **options: Any) -> str:
        self._sql.check_options("list_tables_query", options)
        schema = options.get("schema") or self.dialect.default_schema or "main"
        return self._sql.join(
            'SELECT name AS "tableName",',
            f'{self.escape(schema)} AS "schema"',
            f"FROM {self.quote_identifier(schema)}.sqlite_master",
            "WHERE type = 'table' AND name NOT LIKE 'sqlite\\_%' ESCAPE '\\'",
            "ORDER BY name",
        )

    def truncate_table_query(self, table: TableLike, **options: Any) -> str:
        self._sql.check_options("truncate_table_query", options)
        return self._sql.join("DELETE FROM", self.quote_table(table))

    def delete_query(self, table: TableLike, where: Optional[Mapping[str, Any]] = None) -> str:
        return self._sql.join(f"DELETE FROM {self.quote_table(table)}", self._sql.where_clause(where))

    def show_constraints_query(self, table: TableLike, **options: Any) -> str:
        self._sql.check_options("show_constraints_query", options)
        ref = self.extract_table_details(table)
        table_name = self.escape(ref.table_name)
        schema = self.escape(ref.schema or "main")
        constraint_name = options.get("constraint_name")
        constraint_type = options.get("constraint_type")
        return self._sql.join(
            "SELECT * FROM (",
            [
                "SELECT 'PRIMARY' AS constraintName,",
                "'PRIMARY KEY' AS constraintType,",
                f"{schema} AS tableSchema,",
                f"{table_name} AS tableName,",
                "group_concat(pk.name) AS columnNames,",
                "NULL AS referencedTableName,",
                "NULL AS referencedColumnNames,",
                "NULL AS deleteAction,",
                "NULL AS updateAction",
                f"FROM (SELECT name FROM pragma_table_info({table_name}) WHERE pk > 0 ORDER BY pk) pk",
            ],
            "UNION ALL",
            [
                "SELECT il.name AS constraintName,",
                "'UNIQUE' AS constraintType,",
                f"{schema} AS tableSchema,",
                f"{table_name} AS tableName,",
                "(SELECT group_concat(ii.name) FROM pragma_index_info(il.name) ii) AS columnNames,",
                "NULL AS referencedTableName,",
                "NULL AS referencedColumnNames,",
                "NULL AS deleteAction,",
                "NULL AS updateAction",
                f"FROM pragma_index_list({table_name}) il",
                "WHERE il.origin = 'u'",
            ],
            "UNION ALL",
            [
                f"SELECT 'FK_' || {table_name} || '_' || fk.id AS constraintName,",
                "'FOREIGN KEY' AS constraintType,",
                f"{schema} AS tableSchema,",
                f"{table_name} AS tableName,",
                'group_concat(fk."from") AS columnNames,',
                'fk."table" AS referencedTableName,',
                'group_concat(fk."to") AS referencedColumnNames,',
                "fk.on_delete AS deleteAction,",
                "fk.on_update AS updateAction",
                f"FROM pragma_foreign_key_list({table_name}) fk",
                "GROUP BY fk.id",
            ],
            ") AS constraints",
            "WHERE columnNames IS NOT NULL",
            f"AND constraintName = {self.escape(constraint_name)}" if constraint_name else "",
            f"AND constraintType = {self.escape(constraint_type)}" if constraint_type else "",
            "ORDER BY constraintName",
        )

    def show_indexes_query(self, table: Optional[TableLike] = None) -> str:
        if table is not None:
            table_name = self.escape(self.extract_table_details(table).table_name)
            source = [f"{table_name} AS \"tableName\"", f"FROM pragma_index_list({table_name}) il"]
            order = "ORDER BY il.name"
        else:
            source = [
                'm.name AS "tableName"',
                "FROM sqlite_master m JOIN pragma_index_list(m.name) il",
                "WHERE m.type = 'table'",
            ]
            order = "ORDER BY m.name, il.name"
        return self._sql.join(
            'SELECT il.name AS "name", il."unique" AS "unique",',
            'il.origin AS "origin", il.partial AS "partial",',
            '(SELECT group_concat(ii.name) FROM pragma_index_info(il.name) ii) AS "columnNames",',
            source,
            order,
        )

    def version_query(self) -> str:
        return 'SELECT sqlite_version() AS "version"'

    # Transactions ------------------------------------------------------
    def start_transaction_query(self, **options: Any) -> str:
        self._sql.check_options("start_transaction_query", options)
        transaction_type = coerce_transaction_type(options.get("transaction_type"))
        require_transaction_type(self.dialect, transaction_type)
        return self._sql.join(
            "BEGIN",
            transaction_type.value if transaction_type else "",
            "TRANSACTION",
        )

    def set_isolation_level_query(self, level: IsolationLevel) -> str:
        require_isolation_level(self.dialect, level)
        flag = "true" if level is IsolationLevel.READ_UNCOMMITTED else "false"
        return f"PRAGMA read_uncommitted = {flag}"

    def commit_transaction_query(self) -> str:
        return "COMMIT"

    def rollback_transaction_query(self) -> str:
        return "ROLLBACK"

    def create_savepoint_query(self, name: str) -> str:
        return f"SAVEPOINT {self.quote_identifier(name)}"

    def rollback_savepoint_query(self, name: str) -> str:
        return f"ROLLBACK TO SAVEPOINT {self.quote_identifier(name)}"

    def release_savepoint_query(self, name: str) -> str:
        return f"RELEASE SAVEPOINT {self.quote_identifier(name)}"

    def toggle_foreign_key_checks_query(self, enable: bool) -> str:
        # No-op while a transaction is open on the connection.
        return f"PRAGMA foreign_keys = {'ON' if enable else 'OFF'}"


class SQLiteDialect:
    """
    SQLite dialect using qmark param style. Attached databases stand in for
    schemas but are never used to qualify table names.
    """

    name: Final[str] = "sqlite"
    param_style: Final[str] = "qmark"
    supports: Final[DialectSupports] = DialectSupports(
        savepoints=True,
        isolation_levels=frozenset({IsolationLevel.READ_UNCOMMITTED, IsolationLevel.SERIALIZABLE}),
        isolation_level_inside_transaction=False,
        read_only_transactions=False,
        transaction_types=frozenset(TransactionType),
        schemas=False,
        truncate_cascade=False,
        constraints=ConstraintSupports(foreign_key_checks_disableable=True),
    )
    escape_rules: Final[EscapeRules] = EscapeRules(
        true_literal="1",
        false_literal="0",
        bytes_prefix="X'",
    )
    technical_schema_names: Final[tuple[str, ...]] = ("temp",)
    operator_keywords: Final[Mapping[Operator, str]] = DEFAULT_OPERATOR_KEYWORDS

    def __init__(self, *, default_schema: Optional[str] = "main") -> None:
        self.default_schema = default_schema
        self.query_generator = SQLiteQueryGenerator(self)

    def quote_identifier(self, identifier: str) -> str:
        escaped = identifier.replace('"', '""')
        return f'"{escaped}"'

    def parameter_placeholder(self, position: int | None = None) -> str:
        return "?"
