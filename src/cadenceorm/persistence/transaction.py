"""
Transaction entity: one unit of atomic work bound to a single connection.
"""

from __future__ import annotations

import enum
import inspect
import itertools
import uuid
from typing import TYPE_CHECKING, Any, Callable, Iterator, List, Optional

from ..errors import TransactionCompatibilityError, TransactionError, UnsupportedFeatureError
from ..utils import get_logger
from .options import TransactionOptions

if TYPE_CHECKING:
    from ..connection.base import Connection
    from ..database import Database


class TransactionState(str, enum.Enum):
    PENDING = "pending"
    PREPARED = "prepared"
    COMMITTED = "committed"
    ROLLED_BACK = "rolled_back"


TERMINAL_STATES = frozenset({TransactionState.COMMITTED, TransactionState.ROLLED_BACK})

TransactionCallback = Callable[[], Any]


class Transaction:
    """
    A root transaction owns a connection acquired from the connection manager.
    A child transaction (``parent`` set) is a savepoint on its parent's
    connection.

    State only moves forward: ``pending -> prepared -> committed | rolled_back``.
    """

    def __init__(
        self,
        database: "Database",
        options: Optional[TransactionOptions] = None,
        *,
        parent: Optional["Transaction"] = None,
    ) -> None:
        self.database = database
        self.parent = parent
        if parent is not None:
            options = parent.options
        self.options = options or TransactionOptions()
        self.id = uuid.uuid4().hex
        self.name: Optional[str] = None
        self.state = TransactionState.PENDING
        self.connection: Optional["Connection"] = None
        self._savepoint_counter: Iterator[int] = itertools.count(1)
        self._after_commit: List[TransactionCallback] = []
        self._after_rollback: List[TransactionCallback] = []
        self.logger = get_logger("persistence.transaction")

    def __repr__(self) -> str:
        return f"<Transaction id={self.id} state={self.state.value} savepoint={self.name!r}>"

    # ------------------------------------------------------------------ #
    @property
    def root(self) -> "Transaction":
        transaction = self
        while transaction.parent is not None:
            transaction = transaction.parent
        return transaction

    @property
    def is_savepoint(self) -> bool:
        return self.parent is not None

    @property
    def finished(self) -> bool:
        return self.state in TERMINAL_STATES

    def next_savepoint_name(self) -> str:
        return f"sp_{next(self.root._savepoint_counter)}"

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #
    async def prepare_environment(self) -> None:
        if self.state is not TransactionState.PENDING:
            raise TransactionError(
                f"Transaction {self.id} cannot be prepared from state '{self.state.value}'."
            )
        if self.parent is not None:
            await self._prepare_savepoint(self.parent)
        else:
            await self._prepare_root()
        self.state = TransactionState.PREPARED
        self.logger.debug("Transaction %s prepared", self.id)

    async def _prepare_root(self) -> None:
        dialect = self.database.dialect
        generator = self.database.query_generator
        # Build every statement first so unsupported options fail before any I/O.
        begin_sql = generator.start_transaction_query(
            read_only=True if self.options.read_only else None,
            transaction_type=self.options.transaction_type,
        )
        isolation_sql = ""
        if self.options.isolation_level is not None:
            isolation_sql = generator.set_isolation_level_query(self.options.isolation_level)

        manager = self.database.connection_manager
        connection = await manager.get_connection({"type": "write", "uuid": self.id})
        try:
            if dialect.supports.isolation_level_inside_transaction:
                await self._execute(connection, begin_sql)
                await self._execute(connection, isolation_sql)
            else:
                await self._execute(connection, isolation_sql)
                await self._execute(connection, begin_sql)
        except BaseException:
            await self._discard(connection, destroy=True)
            raise
        self.connection = connection

    async def _prepare_savepoint(self, parent: "Transaction") -> None:
        if parent.state is not TransactionState.PREPARED or parent.connection is None:
            raise TransactionError(
                f"Cannot create a savepoint under transaction {parent.id} in state '{parent.state.value}'."
            )
        dialect = self.database.dialect
        if not dialect.supports.savepoints:
            raise UnsupportedFeatureError(f"{dialect.name} does not support savepoints.")
        name = self.root.next_savepoint_name()
        await self._execute(parent.connection, self.database.query_generator.create_savepoint_query(name))
        self.name = name
        self.connection = parent.connection

    async def commit(self) -> None:
        self._assert_active("commit")
        generator = self.database.query_generator
        connection = self.connection
        if self.parent is not None:
            try:
                await self._execute(connection, generator.release_savepoint_query(self.name))
            except BaseException:
                self.state = TransactionState.ROLLED_BACK
                await self._undo_savepoint(connection)
                raise
        else:
            try:
                await self._execute(connection, generator.commit_transaction_query())
            except BaseException:
                # A failed COMMIT leaves nothing to keep on the backend side.
                self.state = TransactionState.ROLLED_BACK
                self.connection = None
                await self._discard(connection, destroy=True)
                raise
            self.connection = None
            await self._discard(connection, destroy=False)
        self.state = TransactionState.COMMITTED
        self.logger.debug("Transaction %s committed", self.id)
        await self._run_callbacks(self._after_commit)

    async def rollback(self) -> None:
        self._assert_active("rollback")
        generator = self.database.query_generator
        connection = self.connection
        if self.parent is not None:
            try:
                await self._execute(connection, generator.rollback_savepoint_query(self.name))
            finally:
                self.state = TransactionState.ROLLED_BACK
        else:
            self.connection = None
            try:
                await self._execute(connection, generator.rollback_transaction_query())
            except Exception:
                self.state = TransactionState.ROLLED_BACK
                await self._discard(connection, destroy=True)
                raise
            self.state = TransactionState.ROLLED_BACK
            await self._discard(connection, destroy=False)
        self.logger.debug("Transaction %s rolled back", self.id)
        await self._run_callbacks(self._after_rollback)

    # ------------------------------------------------------------------ #
    # Callbacks
    # ------------------------------------------------------------------ #
    def after_commit(self, callback: TransactionCallback) -> None:
        self._after_commit.append(callback)

    def after_rollback(self, callback: TransactionCallback) -> None:
        self._after_rollback.append(callback)

    async def _run_callbacks(self, callbacks: List[TransactionCallback]) -> None:
        for callback in list(callbacks):
            result = callback()
            if inspect.isawaitable(result):
                await result

    # ------------------------------------------------------------------ #
    def assert_compatible(self, options: TransactionOptions) -> None:
        """
        Raise when ``options`` cannot be honoured by joining this transaction.
        Options left at their default (``None``) never conflict.
        """

        if options.isolation_level is not None and options.isolation_level != self.options.isolation_level:
            raise TransactionCompatibilityError(
                f"Requested isolation level '{options.isolation_level.value}' does not match "
                f"the active transaction's ({_describe(self.options.isolation_level)})."
            )
        if options.read_only != self.options.read_only:
            raise TransactionCompatibilityError(
                f"Requested read_only={options.read_only} does not match the active "
                f"transaction's read_only={self.options.read_only}."
            )
        if options.transaction_type is not None and options.transaction_type != self.options.transaction_type:
            raise TransactionCompatibilityError(
                f"Requested transaction type '{options.transaction_type.value}' does not match "
                f"the active transaction's ({_describe(self.options.transaction_type)})."
            )

    def _assert_active(self, action: str) -> None:
        if self.state is TransactionState.PREPARED and self.connection is not None:
            return
        if self.finished:
            raise TransactionError(
                f"Cannot {action} transaction {self.id}: it has already been {self.state.value.replace('_', ' ')}."
            )
        raise TransactionError(f"Cannot {action} transaction {self.id}: it has not been prepared.")

    async def _execute(self, connection: "Connection", sql: str) -> None:
        if sql:
            await self.database.query(sql, connection=connection)

    async def _undo_savepoint(self, connection: "Connection") -> None:
        try:
            await self._execute(connection, self.database.query_generator.rollback_savepoint_query(self.name))
        except Exception:
            self.logger.exception("Failed to roll back savepoint %s after a failed release", self.name)

    async def _discard(self, connection: "Connection", *, destroy: bool) -> None:
        manager = self.database.connection_manager
        try:
            if destroy:
                await manager.destroy_connection(connection)
            else:
                await manager.release_connection(connection)
        except Exception:
            self.logger.exception(
                "Failed to %s connection of transaction %s",
                "destroy" if destroy else "release",
                self.id,
            )


def _describe(value: Optional[enum.Enum]) -> str:
    return "backend default" if value is None else f"'{value.value}'"
