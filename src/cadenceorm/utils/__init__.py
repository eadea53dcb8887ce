"""
Utility helpers shared across CadenceORM packages.
"""

from .logging import configure_logging, get_logger, time_call, transaction_log_scope
from .naming import camel_to_snake
from .performance import resolve_slow_query_ms
from .redaction import redact_params, redact_value

__all__ = [
    "camel_to_snake",
    "configure_logging",
    "get_logger",
    "redact_params",
    "redact_value",
    "resolve_slow_query_ms",
    "time_call",
    "transaction_log_scope",
]
