"""
CadenceORM public package initialization.

Multi-dialect SQL generation plus an asyncio transaction engine with nested
(savepoint/reuse/separate) transactions and ambient propagation.
"""

from .config import DatabaseOptions  # noqa: F401
from .database import Database, connect  # noqa: F401
from .dialects import get_dialect  # noqa: F401
from .errors import (  # noqa: F401
    CadenceError,
    ConfigurationError,
    CyclicDependencyError,
    DialectNotSupportedError,
    TransactionCompatibilityError,
    TransactionError,
    UnknownOptionError,
    UnsupportedFeatureError,
)
from .models import ModelRegistry, ModelTable  # noqa: F401
from .persistence import (  # noqa: F401
    IsolationLevel,
    Transaction,
    TransactionNestMode,
    TransactionState,
    TransactionType,
)
from .query import Operator, TableRef, join_sql_fragments  # noqa: F401

__all__ = [
    "CadenceError",
    "ConfigurationError",
    "CyclicDependencyError",
    "Database",
    "DatabaseOptions",
    "DialectNotSupportedError",
    "IsolationLevel",
    "ModelRegistry",
    "ModelTable",
    "Operator",
    "TableRef",
    "Transaction",
    "TransactionCompatibilityError",
    "TransactionError",
    "TransactionNestMode",
    "TransactionState",
    "TransactionType",
    "UnknownOptionError",
    "UnsupportedFeatureError",
    "connect",
    "get_dialect",
    "join_sql_fragments",
]
