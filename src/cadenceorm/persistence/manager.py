"""
Managed and unmanaged transaction orchestration.
"""

from __future__ import annotations

import inspect
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Iterator, Optional, TypeVar, Union

from ..utils import get_logger, transaction_log_scope
from .context import AmbientTransactionContext
from .options import (
    IsolationLevel,
    TransactionNestMode,
    TransactionOptions,
    TransactionType,
    coerce_nest_mode,
)
from .transaction import Transaction

if TYPE_CHECKING:
    from ..database import Database

T = TypeVar("T")

TransactionWork = Callable[[Transaction], Union[Awaitable[T], T]]


class TransactionManager:
    """
    Resolves nest modes, propagates the ambient transaction, and drives
    commit/rollback for managed transactions.
    """

    def __init__(self, database: "Database") -> None:
        self.database = database
        self.context: Optional[AmbientTransactionContext] = None
        if not database.options.disable_ambient_transactions:
            self.context = AmbientTransactionContext(f"cadenceorm_transaction_{id(database):x}")
        self.logger = get_logger("persistence.manager")

    def current(self) -> Optional[Transaction]:
        """Transaction active in the running task, if ambient propagation is on."""

        if self.context is None:
            return None
        return self.context.get()

    def build_options(
        self,
        *,
        isolation_level: IsolationLevel | str | None = None,
        read_only: bool = False,
        transaction_type: TransactionType | str | None = None,
    ) -> TransactionOptions:
        return TransactionOptions.build(
            isolation_level=isolation_level,
            read_only=read_only,
            transaction_type=transaction_type,
        )

    async def run_managed(
        self,
        callback: TransactionWork[T],
        *,
        nest_mode: TransactionNestMode | str | None = None,
        transaction: Optional[Transaction] = None,
        isolation_level: IsolationLevel | str | None = None,
        read_only: bool = False,
        transaction_type: TransactionType | str | None = None,
    ) -> T:
        mode = coerce_nest_mode(nest_mode) or self.database.options.default_transaction_nest_mode
        requested = self.build_options(
            isolation_level=isolation_level,
            read_only=read_only,
            transaction_type=transaction_type,
        )

        current: Optional[Transaction] = None
        if mode is not TransactionNestMode.SEPARATE:
            current = transaction if transaction is not None else self.current()
            if current is not None:
                current.assert_compatible(requested)

        if mode is TransactionNestMode.REUSE and current is not None:
            self.logger.debug("Reusing transaction %s", current.id)
            with self._scope(current):
                return await _invoke(callback, current)

        parent = current if mode is TransactionNestMode.SAVEPOINT else None
        new_transaction = Transaction(
            self.database,
            requested.with_defaults(isolation_level=self.database.options.default_isolation_level),
            parent=parent,
        )
        await new_transaction.prepare_environment()

        try:
            with self._scope(new_transaction):
                result = await _invoke(callback, new_transaction)
        except BaseException:
            try:
                await new_transaction.rollback()
            except Exception:
                self.logger.exception(
                    "Rollback of transaction %s failed; re-raising the original error",
                    new_transaction.id,
                )
            raise

        await new_transaction.commit()
        return result

    async def start_unmanaged(
        self,
        *,
        isolation_level: IsolationLevel | str | None = None,
        read_only: bool = False,
        transaction_type: TransactionType | str | None = None,
    ) -> Transaction:
        """
        Create and prepare a transaction the caller commits or rolls back.
        It is never made ambient.
        """

        options = self.build_options(
            isolation_level=isolation_level,
            read_only=read_only,
            transaction_type=transaction_type,
        )
        transaction = Transaction(
            self.database,
            options.with_defaults(isolation_level=self.database.options.default_isolation_level),
        )
        await transaction.prepare_environment()
        return transaction

    @contextmanager
    def _scope(self, transaction: Transaction) -> Iterator[Transaction]:
        if self.context is None:
            with transaction_log_scope(transaction.id):
                yield transaction
            return
        with self.context.scope(transaction):
            yield transaction


async def _invoke(callback: Callable[[Transaction], Any], transaction: Transaction) -> Any:
    result = callback(transaction)
    if inspect.isawaitable(result):
        result = await result
    return result
