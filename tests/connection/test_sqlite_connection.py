import pytest

from cadenceorm.connection import SQLiteConnectionManager, StatementExecutionError
from cadenceorm.connection.sqlite import MEMORY_PATH, _normalize_path


@pytest.mark.parametrize(
    "url, expected",
    [
        ("sqlite://", MEMORY_PATH),
        ("sqlite:///:memory:", MEMORY_PATH),
        ("sqlite:///app.db", "app.db"),
        ("sqlite:////var/data/app.db?timeout=2", "/var/data/app.db"),
    ],
)
def test_normalize_path(url, expected):
    assert _normalize_path(url) == expected


@pytest.mark.asyncio
async def test_in_memory_database_shares_one_connection():
    manager = SQLiteConnectionManager("sqlite:///:memory:")
    first = await manager.get_connection()
    await first.execute("CREATE TABLE items (id INTEGER PRIMARY KEY)")
    await manager.release_connection(first)
    assert manager.idle_count == 0

    second = await manager.get_connection()
    assert second is first
    await second.execute("INSERT INTO items (id) VALUES (?)", (7,))
    assert await second.execute("SELECT id FROM items") == [{"id": 7}]
    await manager.close()
    assert first.closed is True


@pytest.mark.asyncio
async def test_file_connections_enable_foreign_keys(tmp_path):
    manager = SQLiteConnectionManager(f"sqlite:///{tmp_path / 'fk.db'}")
    connection = await manager.get_connection()
    assert await connection.execute("PRAGMA foreign_keys") == [{"foreign_keys": 1}]
    await manager.release_connection(connection)
    assert manager.idle_count == 1
    await manager.close()


@pytest.mark.asyncio
async def test_file_database_pools_separate_connections(tmp_path):
    manager = SQLiteConnectionManager(f"sqlite:///{tmp_path / 'pool.db'}")
    first = await manager.get_connection()
    second = await manager.get_connection()
    assert first is not second
    assert manager.in_use_count == 2
    await manager.release_connection(first)
    await manager.release_connection(second)
    assert manager.idle_count == 2
    await manager.close()


@pytest.mark.asyncio
async def test_errors_are_wrapped():
    manager = SQLiteConnectionManager("sqlite://")
    connection = await manager.get_connection()
    with pytest.raises(StatementExecutionError, match="sqlite rejected statement") as excinfo:
        await connection.execute("SELECT * FROM missing")
    assert excinfo.value.sql == "SELECT * FROM missing"
    await manager.close()
