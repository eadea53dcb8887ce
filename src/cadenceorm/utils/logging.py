"""Structured logging helpers for CadenceORM."""

from __future__ import annotations

import logging
import time
import uuid
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any, Iterable, Iterator, Optional

_correlation_id: ContextVar[str | None] = ContextVar("correlation_id", default=None)
_transaction_id: ContextVar[str | None] = ContextVar("log_transaction_id", default=None)

LOG_FORMAT = (
    "%(asctime)s | %(levelname)s | %(correlation_id)s | tx=%(transaction_id)s | %(name)s | %(message)s"
)


class ContextFilter(logging.Filter):
    """
    Stamp records with the correlation id and the id of the transaction that
    is active in the current execution context.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = get_correlation_id()
        record.transaction_id = _transaction_id.get() or "-"
        return True


def configure_logging(level: int = logging.INFO) -> None:
    logger = logging.getLogger("cadenceorm")
    if logger.handlers:
        return
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler.addFilter(ContextFilter())
    logger.addHandler(handler)
    logger.setLevel(level)


def get_logger(name: str) -> logging.Logger:
    configure_logging()
    return logging.getLogger(f"cadenceorm.{name}")


def set_correlation_id(value: Optional[str] = None) -> str:
    token = value or str(uuid.uuid4())
    _correlation_id.set(token)
    return token


def get_correlation_id() -> str:
    cid = _correlation_id.get()
    if cid is None:
        cid = set_correlation_id()
    return cid


@contextmanager
def transaction_log_scope(transaction_id: str) -> Iterator[None]:
    token = _transaction_id.set(transaction_id)
    try:
        yield
    finally:
        _transaction_id.reset(token)


def current_log_transaction_id() -> str | None:
    return _transaction_id.get()


class time_call:
    """
    Context manager logging how long a block took.

    Blocks slower than ``threshold_ms`` are logged at WARNING, the rest at DEBUG.
    Usable with both ``with`` and ``async with``.
    """

    def __init__(
        self,
        name: str,
        logger: logging.Logger,
        *,
        sql: str | None = None,
        params: Iterable[Any] | None = None,
        threshold_ms: int = 100,
    ) -> None:
        self.name = name
        self.logger = logger
        self.sql = sql
        self.params = params
        self.threshold_ms = threshold_ms
        self.elapsed_ms: float | None = None
        self._start = time.monotonic()

    def __enter__(self) -> "time_call":
        self._start = time.monotonic()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.elapsed_ms = (time.monotonic() - self._start) * 1000
        level = logging.WARNING if self.elapsed_ms >= self.threshold_ms else logging.DEBUG
        extra = {"sql": self.sql, "params": self.params, "elapsed_ms": self.elapsed_ms}
        self.logger.log(level, "%s took %.2fms", self.name, self.elapsed_ms, extra=extra)

    async def __aenter__(self) -> "time_call":
        return self.__enter__()

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.__exit__(exc_type, exc, tb)
