import asyncio

import pytest

from cadenceorm import Database, DatabaseOptions
from cadenceorm.dialects import MySQLDialect
from cadenceorm.errors import TransactionCompatibilityError, TransactionError, UnsupportedFeatureError
from cadenceorm.persistence import Transaction, TransactionOptions, TransactionState


@pytest.mark.asyncio
async def test_prepare_sets_isolation_inside_transaction_for_postgres(postgres_db, manager):
    transaction = Transaction(postgres_db, TransactionOptions.build(isolation_level="serializable"))
    await transaction.prepare_environment()

    assert transaction.state is TransactionState.PREPARED
    assert manager.requests == [{"type": "write", "uuid": transaction.id}]
    assert manager.statements == ["START TRANSACTION", "SET TRANSACTION ISOLATION LEVEL SERIALIZABLE"]
    assert transaction.connection is manager.acquired[0]


@pytest.mark.asyncio
async def test_prepare_sets_isolation_before_transaction_for_mysql(manager):
    database = Database(MySQLDialect(), manager, DatabaseOptions())
    transaction = Transaction(
        database, TransactionOptions.build(isolation_level="READ COMMITTED", read_only=True)
    )
    await transaction.prepare_environment()

    assert manager.statements == [
        "SET SESSION TRANSACTION ISOLATION LEVEL READ COMMITTED",
        "START TRANSACTION READ ONLY",
    ]


@pytest.mark.asyncio
async def test_unsupported_isolation_fails_before_acquiring_connection(sqlite_fake_db, manager):
    transaction = Transaction(sqlite_fake_db, TransactionOptions.build(isolation_level="REPEATABLE READ"))
    with pytest.raises(UnsupportedFeatureError):
        await transaction.prepare_environment()
    assert manager.acquired == []
    assert transaction.state is TransactionState.PENDING


@pytest.mark.asyncio
async def test_sqlite_transaction_type_is_used(sqlite_fake_db, manager):
    transaction = Transaction(sqlite_fake_db, TransactionOptions.build(transaction_type="immediate"))
    await transaction.prepare_environment()
    assert manager.statements == ["BEGIN IMMEDIATE TRANSACTION"]


@pytest.mark.asyncio
async def test_failed_begin_destroys_connection(postgres_db, manager):
    manager.fail_on("START TRANSACTION", RuntimeError("connection reset"))
    transaction = Transaction(postgres_db)
    with pytest.raises(RuntimeError, match="connection reset"):
        await transaction.prepare_environment()
    assert manager.destroyed == manager.acquired
    assert transaction.connection is None


@pytest.mark.asyncio
async def test_commit_releases_connection_and_runs_callbacks(postgres_db, manager):
    calls = []

    async def notify():
        calls.append("async")

    transaction = Transaction(postgres_db)
    transaction.after_commit(lambda: calls.append("sync"))
    transaction.after_commit(notify)
    transaction.after_rollback(lambda: calls.append("rollback"))
    await transaction.prepare_environment()
    connection = transaction.connection
    await transaction.commit()

    assert transaction.state is TransactionState.COMMITTED
    assert transaction.connection is None
    assert manager.released == [connection]
    assert manager.statements[-1] == "COMMIT"
    assert calls == ["sync", "async"]


@pytest.mark.asyncio
async def test_rollback_releases_connection(postgres_db, manager):
    calls = []
    transaction = Transaction(postgres_db)
    transaction.after_rollback(lambda: calls.append("rolled back"))
    await transaction.prepare_environment()
    await transaction.rollback()

    assert transaction.state is TransactionState.ROLLED_BACK
    assert manager.statements == ["START TRANSACTION", "ROLLBACK"]
    assert len(manager.released) == 1
    assert calls == ["rolled back"]


@pytest.mark.asyncio
async def test_finished_transaction_rejects_further_transitions(postgres_db):
    transaction = Transaction(postgres_db)
    await transaction.prepare_environment()
    await transaction.commit()

    with pytest.raises(TransactionError, match="already been committed"):
        await transaction.commit()
    with pytest.raises(TransactionError, match="already been committed"):
        await transaction.rollback()
    with pytest.raises(TransactionError):
        await transaction.prepare_environment()


@pytest.mark.asyncio
async def test_commit_requires_prepare(postgres_db):
    with pytest.raises(TransactionError, match="has not been prepared"):
        await Transaction(postgres_db).commit()


@pytest.mark.asyncio
async def test_failed_commit_marks_rolled_back_and_destroys_connection(postgres_db, manager):
    manager.fail_on("COMMIT", RuntimeError("serialization failure"))
    transaction = Transaction(postgres_db)
    await transaction.prepare_environment()
    with pytest.raises(RuntimeError, match="serialization failure"):
        await transaction.commit()

    assert transaction.state is TransactionState.ROLLED_BACK
    assert manager.destroyed == manager.acquired
    assert manager.released == []


@pytest.mark.asyncio
async def test_savepoints_share_the_root_connection(postgres_db, manager):
    root = Transaction(postgres_db)
    await root.prepare_environment()
    first = Transaction(postgres_db, parent=root)
    await first.prepare_environment()
    second = Transaction(postgres_db, parent=root)
    await second.prepare_environment()

    assert first.name == "sp_1"
    assert second.name == "sp_2"
    assert first.connection is root.connection is second.connection
    assert len(manager.acquired) == 1

    await second.rollback()
    await first.commit()
    await root.commit()

    assert manager.statements == [
        "START TRANSACTION",
        'SAVEPOINT "sp_1"',
        'SAVEPOINT "sp_2"',
        'ROLLBACK TO SAVEPOINT "sp_2"',
        'RELEASE SAVEPOINT "sp_1"',
        "COMMIT",
    ]
    assert manager.released == manager.acquired


@pytest.mark.asyncio
async def test_child_inherits_parent_options(postgres_db):
    root = Transaction(postgres_db, TransactionOptions.build(read_only=True))
    child = Transaction(postgres_db, TransactionOptions(), parent=root)
    assert child.options.read_only is True
    assert child.root is root
    assert child.is_savepoint and not root.is_savepoint


@pytest.mark.asyncio
async def test_savepoint_requires_prepared_parent(postgres_db):
    root = Transaction(postgres_db)
    with pytest.raises(TransactionError):
        await Transaction(postgres_db, parent=root).prepare_environment()


@pytest.mark.asyncio
async def test_savepoint_unsupported_on_snowflake(snowflake_db, manager):
    root = Transaction(snowflake_db)
    await root.prepare_environment()
    with pytest.raises(UnsupportedFeatureError, match="savepoints"):
        await Transaction(snowflake_db, parent=root).prepare_environment()
    assert manager.statements == ["START TRANSACTION"]


def test_assert_compatible(postgres_db):
    transaction = Transaction(
        postgres_db, TransactionOptions.build(isolation_level="serializable", read_only=False)
    )
    transaction.assert_compatible(TransactionOptions())
    transaction.assert_compatible(TransactionOptions.build(isolation_level="SERIALIZABLE"))

    with pytest.raises(TransactionCompatibilityError, match="isolation level"):
        transaction.assert_compatible(TransactionOptions.build(isolation_level="read committed"))
    with pytest.raises(TransactionCompatibilityError, match="read_only"):
        transaction.assert_compatible(TransactionOptions.build(read_only=True))
    with pytest.raises(TransactionCompatibilityError, match="transaction type"):
        transaction.assert_compatible(TransactionOptions.build(transaction_type="exclusive"))


@pytest.mark.asyncio
async def test_cancelled_begin_destroys_connection(postgres_db, manager):
    manager.fail_on("START TRANSACTION", asyncio.CancelledError())
    transaction = Transaction(postgres_db)
    with pytest.raises(asyncio.CancelledError):
        await transaction.prepare_environment()

    assert manager.destroyed == manager.acquired
    assert manager.released == []
    assert transaction.state is TransactionState.PENDING
    assert transaction.connection is None


@pytest.mark.asyncio
async def test_cancelled_commit_marks_rolled_back_and_destroys_connection(postgres_db, manager):
    manager.fail_on("COMMIT", asyncio.CancelledError())
    transaction = Transaction(postgres_db)
    await transaction.prepare_environment()
    with pytest.raises(asyncio.CancelledError):
        await transaction.commit()

    assert transaction.state is TransactionState.ROLLED_BACK
    assert transaction.connection is None
    assert manager.destroyed == manager.acquired


@pytest.mark.asyncio
async def test_failed_release_rolls_back_to_the_savepoint(postgres_db, manager):
    manager.fail_on("RELEASE SAVEPOINT", RuntimeError("savepoint does not exist"))
    root = Transaction(postgres_db)
    await root.prepare_environment()
    child = Transaction(postgres_db, parent=root)
    await child.prepare_environment()

    with pytest.raises(RuntimeError, match="savepoint does not exist"):
        await child.commit()
    assert child.state is TransactionState.ROLLED_BACK

    await root.commit()
    assert manager.statements == [
        "START TRANSACTION",
        'SAVEPOINT "sp_1"',
        'RELEASE SAVEPOINT "sp_1"',
        'ROLLBACK TO SAVEPOINT "sp_1"',
        "COMMIT",
    ]
