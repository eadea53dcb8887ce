"""
PostgreSQL dialect implementation.
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
        "create_database_query": frozenset({"collate", "ctype", "encoding", "template"}),
        "list_databases_query": frozenset({"skip"}),
        "list_schemas_query": frozenset({"skip"}),
        "list_tables_query": frozenset({"schema"}),
        "truncate_table_query": frozenset({"cascade", "restart_identity"}),
        "show_constraints_query": frozenset({"column_name", "constraint_name", "constraint_type"}),
        "start_transaction_query": frozenset({"read_only"}),
    }
)


class PostgresQueryGenerator:
    """
    SQL generation for PostgreSQL, reading the ``information_schema`` and
    ``pg_catalog`` views.
    """

    def __init__(self, dialect: Dialect) -> None:
        self.dialect = dialect
        self._sql = SQLToolkit(dialect, SUPPORTED_OPTIONS)

    # Primitives --------------------------------------------------------
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
        encoding = options.get("encoding")
        collate = options.get("collate")
        ctype = options.get("ctype")
        template = options.get("template")
        # PostgreSQL has no IF NOT EXISTS form for CREATE DATABASE.
        return self._sql.join(
            f"CREATE DATABASE {self.quote_identifier(database)}",
            f"ENCODING = {self.escape(encoding)}" if encoding else "",
            f"LC_COLLATE = {self.escape(collate)}" if collate else "",
            f"LC_CTYPE = {self.escape(ctype)}" if ctype else "",
            f"TEMPLATE = {self.quote_identifier(template)}" if template else "",
        )

    def list_databases_query(self, **options: Any) -> str:
        self._sql.check_options("list_databases_query", options)
        skip = options.get("skip") or ()
        return self._sql.join(
            'SELECT datname AS "name" FROM pg_catalog.pg_database',
            "WHERE datistemplate = false",
            ["AND", self._sql.not_in_list("datname", skip)] if skip else "",
            "ORDER BY datname",
        )

    def list_schemas_query(self, **options: Any) -> str:
        self._sql.check_options("list_schemas_query", options)
        schemas_to_skip = [*self.dialect.technical_schema_names, *(options.get("skip") or ())]
        return self._sql.join(
            'SELECT schema_name AS "schema"',
            "FROM information_schema.schemata",
            "WHERE schema_name !~ '^pg_'",
            ["AND", self._sql.not_in_list("schema_name", schemas_to_skip)],
            "ORDER BY schema_name",
        )

    def describe_table_query(self, table: TableLike) -> str:
        ref = self.extract_table_details(table)
        return self._sql.join(
            "SELECT pk.constraint_type AS \"Constraint\",",
            "c.column_name AS \"Field\",",
            "c.column_default AS \"Default\",",
            "c.is_nullable AS \"Null\",",
            "(CASE WHEN c.udt_name = 'hstore' THEN c.udt_name ELSE c.data_type END)",
            "|| (CASE WHEN c.character_maximum_length IS NOT NULL",
            "THEN '(' || c.character_maximum_length || ')' ELSE '' END) AS \"Type\",",
            "(SELECT array_agg(e.enumlabel) FROM pg_catalog.pg_type t",
            "JOIN pg_catalog.pg_enum e ON t.oid = e.enumtypid",
            "WHERE t.typname = c.udt_name) AS \"special\",",
            "col_description((quote_ident(c.table_schema) || '.' || quote_ident(c.table_name))::regclass,",
            "c.ordinal_position) AS \"Comment\"",
            "FROM information_schema.columns c",
            "LEFT JOIN (SELECT tc.table_schema, tc.table_name, cu.column_name, tc.constraint_type",
            "FROM information_schema.table_constraints tc",
            "JOIN information_schema.key_column_usage cu",
            "ON tc.table_schema = cu.table_schema AND tc.table_name = cu.table_name",
            "AND tc.constraint_name = cu.constraint_name",
            "WHERE tc.constraint_type = 'PRIMARY KEY') pk",
            "ON pk.table_schema = c.table_schema AND pk.table_name = c.table_name",
            "AND pk.column_name = c.column_name",
            f"WHERE c.table_name = {self.escape(ref.table_name)}",
            f"AND c.table_schema = {self.escape(ref.schema or 'public')}",
            "ORDER BY c.ordinal_position",
        )

    def list_tables_query(self, **options: Any) -> str:
        self._sql.check_options("list_tables_query", options)
        schema = options.get("schema")
        return self._sql.join(
            'SELECT table_name AS "tableName", table_schema AS "schema"',
            "FROM information_schema.tables",
            "WHERE table_type = 'BASE TABLE'",
            f"AND table_schema = {self.escape(schema)}"
            if schema
            else [
                "AND table_schema !~ '^pg_' AND",
                self._sql.not_in_list("table_schema", self.dialect.technical_schema_names),
            ],
            "ORDER BY table_schema, table_name",
        )

    def truncate_table_query(self, table: TableLike, **options: Any) -> str:
        self._sql.check_options("truncate_table_query", options)
        return self._sql.join(
            f"TRUNCATE {self.quote_table(table)}",
            "RESTART IDENTITY" if options.get("restart_identity") else "",
            "CASCADE" if options.get("cascade") else "",
        )

    def delete_query(self, table: TableLike, where: Optional[Mapping[str, Any]] = None) -> str:
        return self._sql.join(f"DELETE FROM {self.quote_table(table)}", self._sql.where_clause(where))

    def show_constraints_query(self, table: TableLike, **options: Any) -> str:
        self._sql.check_options("show_constraints_query", options)
        ref = self.extract_table_details(table)
        column_name = options.get("column_name")
        constraint_name = options.get("constraint_name")
        constraint_type = options.get("constraint_type")
        return self._sql.join(
            'SELECT c.constraint_catalog AS "constraintCatalog",',
            'c.constraint_schema AS "constraintSchema",',
            'c.constraint_name AS "constraintName",',
            'c.constraint_type AS "constraintType",',
            'c.table_catalog AS "tableCatalog",',
            'c.table_schema AS "tableSchema",',
            'c.table_name AS "tableName",',
            "(SELECT string_agg(k.column_name, ',' ORDER BY k.ordinal_position)",
            "FROM information_schema.key_column_usage k",
            "WHERE k.constraint_schema = c.constraint_schema",
            'AND k.constraint_name = c.constraint_name) AS "columnNames",',
            'fk.table_schema AS "referencedTableSchema",',
            'fk.table_name AS "referencedTableName",',
            'r.delete_rule AS "deleteAction",',
            'r.update_rule AS "updateAction",',
            'c.is_deferrable AS "isDeferrable",',
            'c.initially_deferred AS "initiallyDeferred"',
            "FROM information_schema.table_constraints c",
            "LEFT JOIN information_schema.referential_constraints r",
            "ON c.constraint_catalog = r.constraint_catalog",
            "AND c.constraint_schema = r.constraint_schema",
            "AND c.constraint_name = r.constraint_name",
            "LEFT JOIN information_schema.table_constraints fk",
            "ON r.unique_constraint_catalog = fk.constraint_catalog",
            "AND r.unique_constraint_schema = fk.constraint_schema",
            "AND r.unique_constraint_name = fk.constraint_name",
            f"WHERE c.table_name = {self.escape(ref.table_name)}",
            f"AND c.table_schema = {self.escape(ref.schema or 'public')}",
            [
                "AND EXISTS (SELECT 1 FROM information_schema.key_column_usage k",
                "WHERE k.constraint_schema = c.constraint_schema",
                "AND k.constraint_name = c.constraint_name",
                f"AND k.column_name = {self.escape(column_name)})",
            ]
            if column_name
            else "",
            f"AND c.constraint_name = {self.escape(constraint_name)}" if constraint_name else "",
            f"AND c.constraint_type = {self.escape(constraint_type)}" if constraint_type else "",
            "ORDER BY c.constraint_name",
        )

    def show_indexes_query(self, table: Optional[TableLike] = None) -> str:
        if table is None:
            predicate = [
                "WHERE schemaname !~ '^pg_' AND",
                self._sql.not_in_list("schemaname", self.dialect.technical_schema_names),
            ]
        else:
            ref = self.extract_table_details(table)
            predicate = [
                f"WHERE tablename = {self.escape(ref.table_name)}",
                f"AND schemaname = {self.escape(ref.schema or 'public')}",
            ]
        return self._sql.join(
            'SELECT schemaname AS "schema", tablename AS "tableName",',
            'indexname AS "name", indexdef AS "definition"',
            "FROM pg_catalog.pg_indexes",
            predicate,
            "ORDER BY schemaname, tablename, indexname",
        )

    def version_query(self) -> str:
        return "SELECT current_setting('server_version') AS \"version\""

    # Transactions ------------------------------------------------------
    def start_transaction_query(self, **options: Any) -> str:
        self._sql.check_options("start_transaction_query", options)
        return self._sql.join("START TRANSACTION", "READ ONLY" if options.get("read_only") else "")

    def set_isolation_level_query(self, level: IsolationLevel) -> str:
        require_isolation_level(self.dialect, level)
        return f"SET TRANSACTION ISOLATION LEVEL {level.value}"

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
        raise self._sql.unsupported("Disabling foreign key checks")


class PostgresDialect:
    """
    PostgreSQL dialect using percent positional parameters.
    """

    name: Final[str] = "postgres"
    param_style: Final[str] = "pyformat"
    supports: Final[DialectSupports] = DialectSupports(
        savepoints=True,
        isolation_levels=frozenset(IsolationLevel),
        isolation_level_inside_transaction=True,
        read_only_transactions=True,
        schemas=True,
        truncate_cascade=True,
        constraints=ConstraintSupports(foreign_key_checks_disableable=False, deferrable=True),
    )
    escape_rules: Final[EscapeRules] = EscapeRules(
        true_literal="true",
        false_literal="false",
        strip_nul=True,
        extended_backslash_strings=True,
        bytes_prefix="'\\x",
    )
    technical_schema_names: Final[tuple[str, ...]] = (
        "information_schema",
        "pg_catalog",
        "pg_toast",
    )
    operator_keywords: Final[Mapping[Operator, str]] = build_operator_keywords(
        regexp="~", not_regexp="!~"
    )

    def __init__(self, *, default_schema: Optional[str] = "public") -> None:
        self.default_schema = default_schema
        self.query_generator = PostgresQueryGenerator(self)

    def quote_identifier(self, identifier: str) -> str:
        escaped = identifier.replace('"', '""')
        return f'"{escaped}"'

    def parameter_placeholder(self, position: int | None = None) -> str:
        return "%s"
