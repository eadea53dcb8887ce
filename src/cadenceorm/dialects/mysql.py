"""
MySQL dialect implementation.
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
        "create_database_query": frozenset({"charset", "collate"}),
        "list_databases_query": frozenset({"skip"}),
        "list_schemas_query": frozenset({"skip"}),
        "list_tables_query": frozenset({"schema"}),
        "truncate_table_query": frozenset(),
        "show_constraints_query": frozenset({"column_name", "constraint_name", "constraint_type"}),
        "start_transaction_query": frozenset({"read_only"}),
    }
)


class MySQLQueryGenerator:
    """
    SQL generation for MySQL. Schemas and databases are the same thing here,
    so the current database stands in for the schema when none is given.
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

    def _schema_literal(self, schema: Optional[str]) -> str:
        return self.escape(schema) if schema else "DATABASE()"

    # Catalog & DDL -----------------------------------------------------
    def create_database_query(self, database: str, **options: Any) -> str:
        self._sql.check_options("create_database_query", options)
        charset = options.get("charset")
        collate = options.get("collate")
        return self._sql.join(
            f"CREATE DATABASE IF NOT EXISTS {self.quote_identifier(database)}",
            f"DEFAULT CHARACTER SET {self.escape(charset)}" if charset else "",
            f"DEFAULT COLLATE {self.escape(collate)}" if collate else "",
        )

    def list_databases_query(self, **options: Any) -> str:
        self._sql.check_options("list_databases_query", options)
        databases_to_skip = [*self.dialect.technical_schema_names, *(options.get("skip") or ())]
        return self._sql.join(
            "SELECT SCHEMA_NAME AS `name`",
            "FROM INFORMATION_SCHEMA.SCHEMATA",
            ["WHERE", self._sql.not_in_list("SCHEMA_NAME", databases_to_skip)],
            "ORDER BY SCHEMA_NAME",
        )

    def list_schemas_query(self, **options: Any) -> str:
        self._sql.check_options("list_schemas_query", options)
        schemas_to_skip = [*self.dialect.technical_schema_names, *(options.get("skip") or ())]
        return self._sql.join(
            "SELECT SCHEMA_NAME AS `schema`",
            "FROM INFORMATION_SCHEMA.SCHEMATA",
            ["WHERE", self._sql.not_in_list("SCHEMA_NAME", schemas_to_skip)],
            "ORDER BY SCHEMA_NAME",
        )

    def describe_table_query(self, table: TableLike) -> str:
        return self._sql.join("SHOW FULL COLUMNS FROM", self.quote_table(table), ";")

    def list_tables_query(self, **options: Any) -> str:
        self._sql.check_options("list_tables_query", options)
        schema = options.get("schema")
        return self._sql.join(
            "SELECT TABLE_NAME AS `tableName`,",
            "TABLE_SCHEMA AS `schema`",
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
        column_name = options.get("column_name")
        constraint_name = options.get("constraint_name")
        constraint_type = options.get("constraint_type")
        return self._sql.join(
            "SELECT c.CONSTRAINT_SCHEMA AS constraintSchema,",
            "c.CONSTRAINT_NAME AS constraintName,",
            "c.CONSTRAINT_TYPE AS constraintType,",
            "c.TABLE_SCHEMA AS tableSchema,",
            "c.TABLE_NAME AS tableName,",
            "GROUP_CONCAT(kcu.COLUMN_NAME ORDER BY kcu.ORDINAL_POSITION) AS columnNames,",
            "MAX(kcu.REFERENCED_TABLE_SCHEMA) AS referencedTableSchema,",
            "MAX(kcu.REFERENCED_TABLE_NAME) AS referencedTableName,",
            "GROUP_CONCAT(kcu.REFERENCED_COLUMN_NAME ORDER BY kcu.ORDINAL_POSITION) AS referencedColumnNames,",
            "MAX(r.DELETE_RULE) AS deleteAction,",
            "MAX(r.UPDATE_RULE) AS updateAction",
            "FROM INFORMATION_SCHEMA.TABLE_CONSTRAINTS c",
            "LEFT JOIN INFORMATION_SCHEMA.REFERENTIAL_CONSTRAINTS r",
            "ON c.CONSTRAINT_SCHEMA = r.CONSTRAINT_SCHEMA",
            "AND c.CONSTRAINT_NAME = r.CONSTRAINT_NAME",
            "AND c.TABLE_NAME = r.TABLE_NAME",
            "LEFT JOIN INFORMATION_SCHEMA.KEY_COLUMN_USAGE kcu",
            "ON c.CONSTRAINT_SCHEMA = kcu.CONSTRAINT_SCHEMA",
            "AND c.CONSTRAINT_NAME = kcu.CONSTRAINT_NAME",
            "AND c.TABLE_NAME = kcu.TABLE_NAME",
            f"WHERE c.TABLE_NAME = {self.escape(ref.table_name)}",
            f"AND c.TABLE_SCHEMA = {self._schema_literal(ref.schema)}",
            [
                "AND EXISTS (SELECT 1 FROM INFORMATION_SCHEMA.KEY_COLUMN_USAGE k",
                "WHERE k.CONSTRAINT_SCHEMA = c.CONSTRAINT_SCHEMA",
                "AND k.CONSTRAINT_NAME = c.CONSTRAINT_NAME",
                "AND k.TABLE_NAME = c.TABLE_NAME",
                f"AND k.COLUMN_NAME = {self.escape(column_name)})",
            ]
            if column_name
            else "",
            f"AND c.CONSTRAINT_NAME = {self.escape(constraint_name)}" if constraint_name else "",
            f"AND c.CONSTRAINT_TYPE = {self.escape(constraint_type)}" if constraint_type else "",
            "GROUP BY c.CONSTRAINT_SCHEMA, c.CONSTRAINT_NAME, c.CONSTRAINT_TYPE,",
            "c.TABLE_SCHEMA, c.TABLE_NAME",
            "ORDER BY c.CONSTRAINT_NAME",
        )

    def show_indexes_query(self, table: Optional[TableLike] = None) -> str:
        if table is not None:
            return self._sql.join("SHOW INDEX FROM", self.quote_table(table))
        return self._sql.join(
            "SELECT TABLE_SCHEMA AS `schema`, TABLE_NAME AS `tableName`,",
            "INDEX_NAME AS `name`, NON_UNIQUE AS `nonUnique`,",
            "SEQ_IN_INDEX AS `seqInIndex`, COLUMN_NAME AS `columnName`",
            "FROM INFORMATION_SCHEMA.STATISTICS",
            ["WHERE", self._sql.not_in_list("TABLE_SCHEMA", self.dialect.technical_schema_names)],
            "ORDER BY TABLE_SCHEMA, TABLE_NAME, INDEX_NAME, SEQ_IN_INDEX",
        )

    def version_query(self) -> str:
        return "SELECT VERSION() AS `version`"

    # Transactions ------------------------------------------------------
    def start_transaction_query(self, **options: Any) -> str:
        self._sql.check_options("start_transaction_query", options)
        return self._sql.join("START TRANSACTION", "READ ONLY" if options.get("read_only") else "")

    def set_isolation_level_query(self, level: IsolationLevel) -> str:
        require_isolation_level(self.dialect, level)
        return f"SET SESSION TRANSACTION ISOLATION LEVEL {level.value}"

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
        return f"SET FOREIGN_KEY_CHECKS={1 if enable else 0}"


class MySQLDialect:
    """
    MySQL dialect using percent-style placeholders.
    """

    name: Final[str] = "mysql"
    param_style: Final[str] = "pyformat"
    supports: Final[DialectSupports] = DialectSupports(
        savepoints=True,
        isolation_levels=frozenset(IsolationLevel),
        isolation_level_inside_transaction=False,
        read_only_transactions=True,
        schemas=True,
        truncate_cascade=False,
        constraints=ConstraintSupports(foreign_key_checks_disableable=True),
    )
    escape_rules: Final[EscapeRules] = EscapeRules(
        true_literal="true",
        false_literal="false",
        backslash_escapes=True,
        bytes_prefix="X'",
    )
    technical_schema_names: Final[tuple[str, ...]] = (
        "MYSQL",
        "INFORMATION_SCHEMA",
        "PERFORMANCE_SCHEMA",
        "SYS",
        "mysql",
        "information_schema",
        "performance_schema",
        "sys",
    )
    operator_keywords: Final[Mapping[Operator, str]] = build_operator_keywords(
        regexp="REGEXP", not_regexp="NOT REGEXP"
    )

    def __init__(self, *, default_schema: Optional[str] = None) -> None:
        self.default_schema = default_schema
        self.query_generator = MySQLQueryGenerator(self)

    def quote_identifier(self, identifier: str) -> str:
        escaped = identifier.replace("`", "``")
        return f"`{escaped}`"

    def parameter_placeholder(self, position: int | None = None) -> str:
        return "%s"
