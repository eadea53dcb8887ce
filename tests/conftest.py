import pytest

from cadenceorm import Database, DatabaseOptions
from cadenceorm.dialects import MySQLDialect, PostgresDialect, SnowflakeDialect, SQLiteDialect


class FakeConnection:
    def __init__(self, manager, number):
        self.manager = manager
        self.number = number
        self.uuid = None
        self.closed = False
        self.statements = []

    async def execute(self, sql, params=None):
        self.statements.append(sql)
        self.manager.log.append((self.number, sql))
        for prefix, error in self.manager.failures.items():
            if sql.startswith(prefix):
                raise error
        if "version" in sql.lower():
            return [{"version": "15.4"}]
        return []

    async def close(self):
        self.closed = True


class FakeConnectionManager:
    """Hands out a fresh fake connection per request and records everything."""

    def __init__(self):
        self.acquired = []
        self.requests = []
        self.released = []
        self.destroyed = []
        self.log = []
        self.failures = {}
        self.closed = False

    async def get_connection(self, options=None):
        options = dict(options or {})
        self.requests.append(options)
        connection = FakeConnection(self, len(self.acquired) + 1)
        connection.uuid = options.get("uuid")
        self.acquired.append(connection)
        return connection

    async def release_connection(self, connection):
        self.released.append(connection)

    async def destroy_connection(self, connection):
        self.destroyed.append(connection)
        await connection.close()

    async def close(self):
        self.closed = True

    def fail_on(self, prefix, error):
        self.failures[prefix] = error

    @property
    def statements(self):
        return [sql for _, sql in self.log]


@pytest.fixture
def manager():
    return FakeConnectionManager()


@pytest.fixture
def postgres_db(manager):
    return Database(PostgresDialect(), manager, DatabaseOptions())


@pytest.fixture
def mysql_db(manager):
    return Database(MySQLDialect(), manager, DatabaseOptions())


@pytest.fixture
def sqlite_fake_db(manager):
    return Database(SQLiteDialect(), manager, DatabaseOptions())


@pytest.fixture
def snowflake_db(manager):
    return Database(SnowflakeDialect(), manager, DatabaseOptions())
