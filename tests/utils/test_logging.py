import logging

from cadenceorm.utils.logging import (
    ContextFilter,
    get_correlation_id,
    get_logger,
    set_correlation_id,
    time_call,
    transaction_log_scope,
)


def test_correlation_id_round_trip():
    token = set_correlation_id("test-token")
    assert token == "test-token"
    assert get_correlation_id() == "test-token"


def test_loggers_live_under_package_namespace():
    assert get_logger("persistence.manager").name == "cadenceorm.persistence.manager"
    handlers = logging.getLogger("cadenceorm").handlers
    assert len(handlers) == 1


def test_time_call_logs_duration(caplog):
    logger = get_logger("tests.logging")
    caplog.set_level(logging.DEBUG, logger=logger.name)
    with time_call("unit-test", logger, sql="SELECT 1", threshold_ms=0) as timer:
        pass
    records = [record for record in caplog.records if record.name == logger.name]
    assert any("unit-test took" in record.getMessage() for record in records)
    assert records[-1].levelno == logging.WARNING
    assert records[-1].sql == "SELECT 1"
    assert timer.elapsed_ms is not None


def test_time_call_below_threshold_logs_debug(caplog):
    logger = get_logger("tests.logging.fast")
    caplog.set_level(logging.DEBUG, logger=logger.name)
    with time_call("fast-call", logger, threshold_ms=60_000):
        pass
    records = [record for record in caplog.records if record.name == logger.name]
    assert records[-1].levelno == logging.DEBUG


def test_context_filter_stamps_transaction_id():
    record = logging.LogRecord("cadenceorm.test", logging.INFO, __file__, 1, "msg", None, None)
    set_correlation_id("cid-1")
    with transaction_log_scope("tx-42"):
        ContextFilter().filter(record)
    assert record.transaction_id == "tx-42"
    assert record.correlation_id == "cid-1"

    ContextFilter().filter(record)
    assert record.transaction_id == "-"
