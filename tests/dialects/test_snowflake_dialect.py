import pytest

from cadenceorm.dialects import SnowflakeDialect
from cadenceorm.errors import DialectNotSupportedError, UnsupportedFeatureError
from cadenceorm.persistence import IsolationLevel


def test_create_and_list_databases():
    generator = SnowflakeDialect().query_generator
    assert generator.create_database_query("app") == 'CREATE DATABASE IF NOT EXISTS "app"'
    assert generator.list_databases_query() == "SHOW DATABASES"
    with pytest.raises(DialectNotSupportedError):
        generator.list_databases_query(skip=["x"])


def test_list_schemas_has_no_ordering():
    assert SnowflakeDialect().query_generator.list_schemas_query(skip=["STAGE"]) == (
        'SELECT SCHEMA_NAME AS "schema" FROM INFORMATION_SCHEMA.SCHEMATA '
        "WHERE SCHEMA_NAME NOT IN ('INFORMATION_SCHEMA', 'STAGE')"
    )


def test_list_tables_query():
    generator = SnowflakeDialect().query_generator
    assert generator.list_tables_query(schema="APP") == (
        'SELECT TABLE_NAME AS "tableName", TABLE_SCHEMA AS "schema" FROM INFORMATION_SCHEMA.TABLES '
        "WHERE TABLE_TYPE = 'BASE TABLE' AND TABLE_SCHEMA = 'APP' ORDER BY TABLE_SCHEMA, TABLE_NAME"
    )
    assert "AND TABLE_SCHEMA NOT IN ('INFORMATION_SCHEMA')" in generator.list_tables_query()


def test_table_statements_use_default_schema():
    generator = SnowflakeDialect().query_generator
    assert generator.describe_table_query("users") == 'SHOW FULL COLUMNS FROM "PUBLIC"."users";'
    assert generator.truncate_table_query("users") == 'TRUNCATE "PUBLIC"."users"'
    assert "AND c.TABLE_SCHEMA = 'PUBLIC'" in generator.show_constraints_query("users")


def test_version_and_transactions():
    generator = SnowflakeDialect().query_generator
    assert generator.version_query() == 'SELECT CURRENT_VERSION() AS "version"'
    assert generator.start_transaction_query() == "START TRANSACTION"
    assert generator.set_isolation_level_query(IsolationLevel.READ_COMMITTED) == ""
    with pytest.raises(UnsupportedFeatureError):
        generator.set_isolation_level_query(IsolationLevel.SERIALIZABLE)


def test_unsupported_features():
    generator = SnowflakeDialect().query_generator
    with pytest.raises(UnsupportedFeatureError, match="Listing indexes"):
        generator.show_indexes_query("users")
    with pytest.raises(UnsupportedFeatureError, match="Savepoints"):
        generator.create_savepoint_query("sp_1")
    with pytest.raises(UnsupportedFeatureError):
        generator.toggle_foreign_key_checks_query(True)
    assert SnowflakeDialect().supports.savepoints is False


def test_show_constraints_query_filters():
    sql = SnowflakeDialect().query_generator.show_constraints_query(
        "users", constraint_name="PK_1", constraint_type="PRIMARY KEY"
    )
    assert "WHERE c.TABLE_NAME = 'users' AND c.TABLE_SCHEMA = 'PUBLIC'" in sql
    assert "AND c.CONSTRAINT_NAME = 'PK_1' AND c.CONSTRAINT_TYPE = 'PRIMARY KEY'" in sql
    assert sql.endswith("ORDER BY c.CONSTRAINT_NAME")


def test_show_constraints_query_without_filters():
    sql = SnowflakeDialect().query_generator.show_constraints_query({"table_name": "users", "schema": "APP"})
    assert "c.CONSTRAINT_NAME = '" not in sql
    assert "c.CONSTRAINT_TYPE = '" not in sql
    assert sql.endswith("AND c.TABLE_SCHEMA = 'APP' ORDER BY c.CONSTRAINT_NAME")


def test_show_constraints_query_rejects_column_name():
    generator = SnowflakeDialect().query_generator
    with pytest.raises(DialectNotSupportedError, match="column_name"):
        generator.show_constraints_query("users", column_name="id")
    assert "c.CONSTRAINT_NAME = '" not in generator.show_constraints_query("users", column_name=None)


def test_describe_table_keeps_a_single_terminator():
    sql = SnowflakeDialect().query_generator.describe_table_query(("APP", "users"))
    assert sql == 'SHOW FULL COLUMNS FROM "APP"."users";'
