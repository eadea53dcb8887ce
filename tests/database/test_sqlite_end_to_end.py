import pytest

from cadenceorm import connect
from cadenceorm.connection import StatementExecutionError
from cadenceorm.errors import CyclicDependencyError, DialectNotSupportedError


async def create_schema(database):
    await database.query('CREATE TABLE "author" (id INTEGER PRIMARY KEY, name TEXT UNIQUE)')
    await database.query(
        'CREATE TABLE "book" (id INTEGER PRIMARY KEY, author_id INTEGER REFERENCES "author"(id), title TEXT)'
    )


@pytest.mark.asyncio
async def test_managed_transaction_commits_and_rolls_back(tmp_path):
    database = connect(f"sqlite:///{tmp_path / 'app.db'}")
    await create_schema(database)

    async def insert_author(transaction):
        await database.query('INSERT INTO "author" (id, name) VALUES (?, ?)', (1, "Le Guin"))

    await database.transaction(insert_author)

    async def insert_and_fail(transaction):
        await database.query('INSERT INTO "author" (id, name) VALUES (?, ?)', (2, "Herbert"))
        raise RuntimeError("abort")

    with pytest.raises(RuntimeError):
        await database.transaction(insert_and_fail)

    rows = await database.query('SELECT id, name FROM "author" ORDER BY id')
    assert rows == [{"id": 1, "name": "Le Guin"}]
    await database.close()


@pytest.mark.asyncio
async def test_savepoint_rollback_keeps_outer_work(tmp_path):
    database = connect(f"sqlite:///{tmp_path / 'nested.db'}")
    await create_schema(database)

    async def inner(transaction):
        await database.query('INSERT INTO "author" (id, name) VALUES (2, \'Herbert\')')
        raise ValueError("discard inner")

    async def outer(transaction):
        await database.query('INSERT INTO "author" (id, name) VALUES (1, \'Le Guin\')')
        with pytest.raises(ValueError):
            await database.transaction(inner, nest_mode="savepoint")

    await database.transaction(outer)
    rows = await database.query('SELECT name FROM "author"')
    assert rows == [{"name": "Le Guin"}]
    await database.close()


@pytest.mark.asyncio
async def test_catalog_queries_run_against_sqlite(tmp_path):
    database = connect(f"sqlite:///{tmp_path / 'catalog.db'}")
    await create_schema(database)
    generator = database.query_generator

    tables = await database.query(generator.list_tables_query())
    assert tables == [
        {"tableName": "author", "schema": "main"},
        {"tableName": "book", "schema": "main"},
    ]

    constraints = await database.query(generator.show_constraints_query("book"))
    types = {row["constraintType"] for row in constraints}
    assert types == {"PRIMARY KEY", "FOREIGN KEY"}

    unique = await database.query(generator.show_constraints_query("author", constraint_type="UNIQUE"))
    assert [row["columnNames"] for row in unique] == ["name"]

    columns = await database.query(generator.describe_table_query("book"))
    assert [column["name"] for column in columns] == ["id", "author_id", "title"]

    assert await database.fetch_database_version()
    await database.close()


@pytest.mark.asyncio
async def test_destroy_all_respects_foreign_keys(tmp_path):
    database = connect(f"sqlite:///{tmp_path / 'bulk.db'}")
    await create_schema(database)
    database.define("Author")
    database.define("Book", references=["Author"])
    await database.query('INSERT INTO "author" (id, name) VALUES (1, \'Le Guin\')')
    await database.query('INSERT INTO "book" (id, author_id, title) VALUES (1, 1, \'Lathe\')')

    with pytest.raises(StatementExecutionError):
        await database.query('DELETE FROM "author"')

    with pytest.raises(DialectNotSupportedError):
        await database.truncate(cascade=True)

    await database.destroy_all()
    assert await database.query('SELECT COUNT(*) AS "count" FROM "book"') == [{"count": 0}]
    assert await database.query('SELECT COUNT(*) AS "count" FROM "author"') == [{"count": 0}]
    await database.close()


@pytest.mark.asyncio
async def test_cyclic_truncate_with_foreign_key_checks_disabled(tmp_path):
    database = connect(f"sqlite:///{tmp_path / 'cycle.db'}")
    await database.query('CREATE TABLE "a" (id INTEGER PRIMARY KEY, b_id INTEGER REFERENCES "b"(id))')
    await database.query('CREATE TABLE "b" (id INTEGER PRIMARY KEY, a_id INTEGER REFERENCES "a"(id))')
    await database.query('INSERT INTO "a" (id, b_id) VALUES (1, NULL)')
    await database.query('INSERT INTO "b" (id, a_id) VALUES (1, 1)')
    await database.query('UPDATE "a" SET b_id = 1 WHERE id = 1')
    database.define("A", references=["B"])
    database.define("B", references=["A"])

    with pytest.raises(CyclicDependencyError):
        await database.truncate()

    await database.truncate(without_foreign_key_checks=True)
    assert await database.query('SELECT COUNT(*) AS "count" FROM "a"') == [{"count": 0}]
    assert await database.query('SELECT COUNT(*) AS "count" FROM "b"') == [{"count": 0}]
    await database.close()
