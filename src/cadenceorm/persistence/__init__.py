"""
Transaction engine: transaction entities, nest modes and ambient propagation.
"""

from .context import AmbientTransactionContext
from .manager import TransactionManager
from .options import (
    IsolationLevel,
    TransactionNestMode,
    TransactionOptions,
    TransactionType,
)
from .transaction import Transaction, TransactionState

__all__ = [
    "AmbientTransactionContext",
    "IsolationLevel",
    "Transaction",
    "TransactionManager",
    "TransactionNestMode",
    "TransactionOptions",
    "TransactionState",
    "TransactionType",
]
