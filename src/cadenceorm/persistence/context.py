"""
Ambient transaction store scoped to the current execution context.
"""

from __future__ import annotations

from contextlib import contextmanager
from contextvars import ContextVar
from typing import TYPE_CHECKING, Iterator, Optional

from ..utils import transaction_log_scope

if TYPE_CHECKING:
    from .transaction import Transaction


class AmbientTransactionContext:
    """
    Holds the transaction the running task is inside of.

    Backed by a ``ContextVar``: every asyncio task starts from a copy of its
    parent's context, so concurrent call chains never see each other's
    transaction.
    """

    def __init__(self, name: str = "cadenceorm_transaction") -> None:
        self._current: ContextVar[Optional["Transaction"]] = ContextVar(name, default=None)

    def get(self) -> Optional["Transaction"]:
        return self._current.get()

    @contextmanager
    def scope(self, transaction: "Transaction") -> Iterator["Transaction"]:
        token = self._current.set(transaction)
        try:
            with transaction_log_scope(transaction.id):
                yield transaction
        finally:
            self._current.reset(token)
