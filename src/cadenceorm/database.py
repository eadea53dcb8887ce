"""
Database runtime: binds a dialect to a connection manager and exposes
transactions, raw statements, and bulk table operations.
"""

from __future__ import annotations

import asyncio
import inspect
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Tuple, TypeVar, Union

from .config import DatabaseOptions
from .connection.base import (
    Connection,
    ConnectionConfig,
    ConnectionConfigurationError,
    ConnectionManager,
    Params,
    Row,
)
from .connection.mysql import MySQLConnectionManager
from .connection.postgres import PostgresConnectionManager
from .connection.sqlite import SQLiteConnectionManager
from .dialects import Dialect, MySQLDialect, PostgresDialect, SQLiteDialect
from .errors import CyclicDependencyError, TransactionError, UnsupportedFeatureError
from .models.registry import ModelRegistry, ModelTable, RegisteredModel
from .persistence.manager import TransactionManager, TransactionWork
from .persistence.options import IsolationLevel, TransactionNestMode, TransactionType
from .persistence.transaction import Transaction
from .query.generator import QueryGenerator
from .query.tables import TableLike
from .utils import get_logger, redact_params, resolve_slow_query_ms, time_call

T = TypeVar("T")

ConnectionWork = Callable[[Connection], Union[Awaitable[T], T]]


class Database:
    """
    Entry point tying a :class:`Dialect` to a :class:`ConnectionManager`.

    Statements run on, in order of precedence: an explicit ``connection``, an
    explicit ``transaction``, the ambient transaction, or a connection
    acquired just for that statement.
    """

    def __init__(
        self,
        dialect: Dialect,
        connection_manager: ConnectionManager,
        options: Optional[DatabaseOptions] = None,
        registry: Optional[ModelRegistry] = None,
    ) -> None:
        self.dialect = dialect
        self.connection_manager = connection_manager
        self.options = options or DatabaseOptions(slow_query_ms=resolve_slow_query_ms())
        self.registry = registry or ModelRegistry()
        self.transaction_manager = TransactionManager(self)
        self.logger = get_logger("database")

    async def __aenter__(self) -> "Database":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    # ------------------------------------------------------------------ #
    # SQL primitives
    # ------------------------------------------------------------------ #
    @property
    def query_generator(self) -> QueryGenerator:
        return self.dialect.query_generator

    def escape(self, value: Any) -> str:
        return self.query_generator.escape(value)

    def quote_identifier(self, identifier: str) -> str:
        return self.query_generator.quote_identifier(identifier)

    # ------------------------------------------------------------------ #
    # Transactions
    # ------------------------------------------------------------------ #
    def current_transaction(self) -> Optional[Transaction]:
        """
        The transaction bound to the running task by :meth:`transaction`, or
        ``None`` outside one (or when ambient transactions are disabled).
        """

        return self.transaction_manager.current()

    async def transaction(
        self,
        callback: TransactionWork[T],
        *,
        nest_mode: TransactionNestMode | str | None = None,
        transaction: Optional[Transaction] = None,
        isolation_level: IsolationLevel | str | None = None,
        read_only: bool = False,
        transaction_type: TransactionType | str | None = None,
    ) -> T:
        """
        Run ``callback(transaction)`` in a managed transaction: committed when
        the callback returns, rolled back when it raises. The callback may be
        a coroutine function.
        """

        return await self.transaction_manager.run_managed(
            callback,
            nest_mode=nest_mode,
            transaction=transaction,
            isolation_level=isolation_level,
            read_only=read_only,
            transaction_type=transaction_type,
        )

    async def start_unmanaged_transaction(
        self,
        *,
        isolation_level: IsolationLevel | str | None = None,
        read_only: bool = False,
        transaction_type: TransactionType | str | None = None,
    ) -> Transaction:
        return await self.transaction_manager.start_unmanaged(
            isolation_level=isolation_level,
            read_only=read_only,
            transaction_type=transaction_type,
        )

    # ------------------------------------------------------------------ #
    # Statements
    # ------------------------------------------------------------------ #
    async def query(
        self,
        sql: str,
        params: Params | None = None,
        *,
        connection: Optional[Connection] = None,
        transaction: Optional[Transaction] = None,
    ) -> List[Row]:
        if connection is None:
            if transaction is None:
                transaction = self.current_transaction()
            if transaction is not None:
                connection = _transaction_connection(transaction)
        if connection is not None:
            return await self._execute(connection, sql, params)
        return await self.with_connection(lambda acquired: self._execute(acquired, sql, params))

    async def _execute(self, connection: Connection, sql: str, params: Params | None) -> List[Row]:
        with time_call(
            f"{self.dialect.name}.query",
            self.logger,
            sql=sql,
            params=redact_params(params),
            threshold_ms=self.options.slow_query_ms,
        ):
            return await connection.execute(sql, params)

    async def fetch_database_version(self) -> str:
        rows = await self.query(self.query_generator.version_query())
        return str(rows[0]["version"])

    async def with_connection(
        self,
        callback: ConnectionWork[T],
        *,
        type: str = "write",
        destroy_connection: bool = False,
    ) -> T:
        """
        Acquire a connection, run ``callback(connection)``, then release it
        (or destroy it when ``destroy_connection`` is set).
        """

        connection = await self.connection_manager.get_connection({"type": type})
        try:
            return await _invoke(callback, connection)
        finally:
            if destroy_connection:
                await self.connection_manager.destroy_connection(connection)
            else:
                await self.connection_manager.release_connection(connection)

    async def without_foreign_key_checks(
        self,
        callback: ConnectionWork[T],
        *,
        transaction: Optional[Transaction] = None,
    ) -> T:
        """
        Run ``callback(connection)`` with foreign key checks disabled on that
        connection. Checks are re-enabled even if the callback raises.
        """

        self._require_foreign_key_toggle("without_foreign_key_checks")
        generator = self.query_generator
        disable_sql = generator.toggle_foreign_key_checks_query(False)
        enable_sql = generator.toggle_foreign_key_checks_query(True)

        async def run(connection: Connection) -> T:
            await self._execute(connection, disable_sql, None)
            try:
                return await _invoke(callback, connection)
            finally:
                await self._execute(connection, enable_sql, None)

        if transaction is None:
            transaction = self.current_transaction()
        if transaction is not None:
            return await run(_transaction_connection(transaction))
        return await self.with_connection(run)

    def _require_foreign_key_toggle(self, operation: str) -> None:
        if not self.dialect.supports.constraints.foreign_key_checks_disableable:
            raise UnsupportedFeatureError(
                f"{operation}: {self.dialect.name} does not support disabling foreign key checks."
            )

    # ------------------------------------------------------------------ #
    # Models
    # ------------------------------------------------------------------ #
    def define(
        self,
        name: str,
        *,
        table: Optional[TableLike] = None,
        references: Iterable[str] = (),
    ) -> ModelTable:
        model = ModelTable(self, name, table=table, references=references)
        self.registry.register(model)
        return model

    def add_models(self, *models: RegisteredModel) -> None:
        for model in models:
            self.registry.register(model)

    def _models_for_bulk(self) -> Tuple[List[RegisteredModel], bool]:
        sorted_models = self.registry.get_models_topo_sorted_by_foreign_key()
        if sorted_models is None:
            return self.registry.models, True
        return sorted_models, False

    async def destroy_all(self, **options: Any) -> None:
        """
        Delete every row of every registered model, dependents first. Slower
        than :meth:`truncate` but works wherever ``DELETE`` does.
        """

        if "limit" in options:
            raise ValueError("destroy_all does not support the limit option.")
        if "truncate" in options:
            raise ValueError("destroy_all does not support the truncate option. Use truncate instead.")

        models, _ = self._models_for_bulk()
        for model in models:
            await model.destroy(**options)

    async def truncate(
        self,
        *,
        cascade: bool = False,
        without_foreign_key_checks: bool = False,
        **options: Any,
    ) -> None:
        """
        Truncate every registered model.

        Cyclic foreign keys require ``cascade`` or ``without_foreign_key_checks``.
        With ``cascade`` tables are truncated one by one in dependency order;
        otherwise all at once.
        """

        models, cyclic = self._models_for_bulk()
        if cyclic and not cascade and not without_foreign_key_checks:
            raise CyclicDependencyError(
                "truncate: some models have cyclic foreign key references. Use the "
                '"cascade" or "without_foreign_key_checks" option to truncate them.'
            )

        model_options: Dict[str, Any] = dict(options)
        if cascade:
            model_options["cascade"] = True

        if without_foreign_key_checks:
            self._require_foreign_key_toggle("truncate")

            async def truncate_all(connection: Connection) -> None:
                # Every truncate must finish before checks are restored on the shared connection.
                results = await asyncio.gather(
                    *(model.truncate(**{**model_options, "connection": connection}) for model in models),
                    return_exceptions=True,
                )
                for result in results:
                    if isinstance(result, BaseException):
                        raise result

            await self.without_foreign_key_checks(truncate_all, transaction=options.get("transaction"))
            return

        if cascade:
            for model in models:
                await model.truncate(**model_options)
            return

        await asyncio.gather(*(model.truncate(**model_options) for model in models))

    async def close(self) -> None:
        await self.connection_manager.close()


def _transaction_connection(transaction: Transaction) -> Connection:
    if transaction.finished or transaction.connection is None:
        raise TransactionError(
            f"Transaction {transaction.id} is {transaction.state.value} and has no usable connection."
        )
    return transaction.connection


async def _invoke(callback: Callable[[Connection], Any], connection: Connection) -> Any:
    result = callback(connection)
    if inspect.isawaitable(result):
        result = await result
    return result


_BACKENDS: Dict[str, Tuple[Callable[..., Dialect], Callable[[ConnectionConfig], ConnectionManager]]] = {
    "postgres": (PostgresDialect, PostgresConnectionManager),
    "postgresql": (PostgresDialect, PostgresConnectionManager),
    "mysql": (MySQLDialect, MySQLConnectionManager),
    "sqlite": (SQLiteDialect, SQLiteConnectionManager),
}


def connect(dsn: str, *, options: Optional[DatabaseOptions] = None, **kwargs: Any) -> Database:
    """
    Build a :class:`Database` from a DSN such as ``postgresql://user@host/db``
    or ``sqlite:///app.db``. Connections are opened lazily.
    """

    config = ConnectionConfig.from_dsn(dsn, **kwargs)
    name = config.dialect_name
    try:
        dialect_factory, manager_factory = _BACKENDS[name]
    except KeyError:
        raise ConnectionConfigurationError(
            f"No bundled connection manager for '{name}'. Construct Database with a dialect "
            "and a connection manager instead."
        ) from None

    if dialect_factory is MySQLDialect:
        dialect = dialect_factory(default_schema=config.dsn.database if config.dsn else None)
    else:
        dialect = dialect_factory()
    if options is None:
        options = DatabaseOptions(
            default_isolation_level=config.isolation_level,
            slow_query_ms=resolve_slow_query_ms(),
        )
    get_logger("database").debug("Configured %s database %s", name, config.descriptive_label())
    return Database(dialect, manager_factory(config), options)
