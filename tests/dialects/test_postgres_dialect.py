import pytest

from cadenceorm.dialects import PostgresDialect
from cadenceorm.errors import DialectNotSupportedError, UnknownOptionError, UnsupportedFeatureError
from cadenceorm.persistence import IsolationLevel


def test_postgres_dialect_quotes_identifiers():
    dialect = PostgresDialect()
    assert dialect.quote_identifier('table"name') == '"table""name"'
    assert dialect.query_generator.quote_table("analytics.users") == '"analytics"."users"'
    assert dialect.query_generator.quote_table("users") == '"public"."users"'


def test_postgres_dialect_placeholder():
    dialect = PostgresDialect()
    assert dialect.parameter_placeholder() == "%s"
    assert dialect.param_style == "pyformat"


def test_create_database_with_options():
    generator = PostgresDialect().query_generator
    assert generator.create_database_query("app") == 'CREATE DATABASE "app"'
    sql = generator.create_database_query(
        "app", encoding="utf8", collate="en_US.utf8", ctype="en_US.utf8", template="template0"
    )
    assert sql == (
        "CREATE DATABASE \"app\" ENCODING = 'utf8' LC_COLLATE = 'en_US.utf8' "
        "LC_CTYPE = 'en_US.utf8' TEMPLATE = \"template0\""
    )


def test_create_database_rejects_unsupported_charset():
    with pytest.raises(DialectNotSupportedError):
        PostgresDialect().query_generator.create_database_query("app", charset="utf8")


def test_list_databases_query():
    generator = PostgresDialect().query_generator
    assert generator.list_databases_query() == (
        'SELECT datname AS "name" FROM pg_catalog.pg_database WHERE datistemplate = false ORDER BY datname'
    )
    assert generator.list_databases_query(skip=["postgres"]) == (
        'SELECT datname AS "name" FROM pg_catalog.pg_database WHERE datistemplate = false '
        "AND datname NOT IN ('postgres') ORDER BY datname"
    )


def test_list_schemas_skips_technical_and_requested_schemas():
    sql = PostgresDialect().query_generator.list_schemas_query(skip=["audit"])
    assert sql == (
        'SELECT schema_name AS "schema" FROM information_schema.schemata '
        "WHERE schema_name !~ '^pg_' AND schema_name NOT IN "
        "('information_schema', 'pg_catalog', 'pg_toast', 'audit') ORDER BY schema_name"
    )


def test_list_tables_query():
    generator = PostgresDialect().query_generator
    assert generator.list_tables_query(schema="app") == (
        'SELECT table_name AS "tableName", table_schema AS "schema" FROM information_schema.tables '
        "WHERE table_type = 'BASE TABLE' AND table_schema = 'app' ORDER BY table_schema, table_name"
    )
    assert "table_schema NOT IN ('information_schema', 'pg_catalog', 'pg_toast')" in (
        generator.list_tables_query()
    )


def test_truncate_table_query():
    generator = PostgresDialect().query_generator
    assert generator.truncate_table_query("users") == 'TRUNCATE "public"."users"'
    assert generator.truncate_table_query("users", cascade=True, restart_identity=True) == (
        'TRUNCATE "public"."users" RESTART IDENTITY CASCADE'
    )
    assert generator.truncate_table_query("users", cascade=None) == 'TRUNCATE "public"."users"'


def test_truncate_rejects_unknown_option():
    with pytest.raises(UnknownOptionError):
        PostgresDialect().query_generator.truncate_table_query("users", cascades=True)


def test_show_constraints_query_filters():
    sql = PostgresDialect().query_generator.show_constraints_query(
        "users", constraint_name="PK_1", column_name="id", constraint_type="PRIMARY KEY"
    )
    assert "WHERE c.table_name = 'users' AND c.table_schema = 'public'" in sql
    assert "AND k.column_name = 'id')" in sql
    assert "AND c.constraint_name = 'PK_1'" in sql
    assert "AND c.constraint_type = 'PRIMARY KEY'" in sql
    assert sql.endswith("ORDER BY c.constraint_name")


def test_show_indexes_and_version():
    generator = PostgresDialect().query_generator
    assert "WHERE tablename = 'users' AND schemaname = 'public'" in generator.show_indexes_query("users")
    assert "schemaname NOT IN" in generator.show_indexes_query()
    assert generator.version_query() == "SELECT current_setting('server_version') AS \"version\""


def test_transaction_statements():
    generator = PostgresDialect().query_generator
    assert generator.start_transaction_query() == "START TRANSACTION"
    assert generator.start_transaction_query(read_only=True) == "START TRANSACTION READ ONLY"
    assert generator.set_isolation_level_query(IsolationLevel.SERIALIZABLE) == (
        "SET TRANSACTION ISOLATION LEVEL SERIALIZABLE"
    )
    assert generator.commit_transaction_query() == "COMMIT"
    assert generator.rollback_transaction_query() == "ROLLBACK"
    assert generator.create_savepoint_query("sp_1") == 'SAVEPOINT "sp_1"'
    assert generator.rollback_savepoint_query("sp_1") == 'ROLLBACK TO SAVEPOINT "sp_1"'
    assert generator.release_savepoint_query("sp_1") == 'RELEASE SAVEPOINT "sp_1"'


def test_start_transaction_rejects_transaction_type():
    with pytest.raises(DialectNotSupportedError):
        PostgresDialect().query_generator.start_transaction_query(transaction_type="IMMEDIATE")


def test_foreign_key_checks_cannot_be_disabled():
    dialect = PostgresDialect()
    assert dialect.supports.constraints.foreign_key_checks_disableable is False
    with pytest.raises(UnsupportedFeatureError, match="not supported by postgres"):
        dialect.query_generator.toggle_foreign_key_checks_query(False)


def test_isolation_is_set_inside_the_transaction():
    assert PostgresDialect().supports.isolation_level_inside_transaction is True
