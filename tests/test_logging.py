"""Tests for the structured logging system (fleet_kernel/logging_config.py)."""

import json
import logging
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from fleet_kernel.exceptions import MaintenanceInProgressError, ReprocessingError
from fleet_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)


@pytest.fixture(autouse=True)
def _clean_logging():
    """Reset logging state between tests, then restore the suite's setup."""
    reset_logging()
    LogContext.clear()
    yield
    LogContext.clear()
    reset_logging()
    configure_logging(level=logging.DEBUG, stream=StringIO())


def _make_handler() -> tuple[logging.Handler, StringIO]:
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    return handler, stream


def _parse_log(stream: StringIO) -> dict:
    """Parse the first JSON log line from a stream."""
    line = stream.getvalue().strip().split("\n")[0]
    return json.loads(line)


def _parse_all_logs(stream: StringIO) -> list[dict]:
    lines = stream.getvalue().strip().split("\n")
    return [json.loads(line) for line in lines if line]


# ---------------------------------------------------------------------------
# StructuredFormatter tests
# ---------------------------------------------------------------------------


class TestStructuredFormatter:
    """Tests for JSON log output format."""

    def test_basic_json_output(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("hello")

        record = _parse_log(stream)
        assert record["level"] == "INFO"
        assert record["message"] == "hello"
        assert record["logger"] == "fleet_kernel.test"
        assert "ts" in record

    def test_extra_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("payment_applied", extra={"seq": 42, "status": "Applied"})

        record = _parse_log(stream)
        assert record["seq"] == 42
        assert record["status"] == "Applied"

    def test_context_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        LogContext.set(correlation_id="abc-123", payment_id="pay-1")
        get_logger("test").info("test_msg")

        record = _parse_log(stream)
        assert record["correlation_id"] == "abc-123"
        assert record["payment_id"] == "pay-1"

    def test_exception_fields(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        try:
            raise ValueError("boom")
        except ValueError:
            get_logger("test").error("failed", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_type"] == "ValueError"
        assert record["exc_message"] == "boom"
        assert "traceback" in record

    def test_ledger_exception_code_extracted(self):
        """Ledger exceptions carry a .code attribute and structured fields."""
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        try:
            raise MaintenanceInProgressError("ledger")
        except MaintenanceInProgressError:
            get_logger("test").warning("rejected", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_code"] == "MAINTENANCE_IN_PROGRESS"
        assert record["exc_type"] == "MaintenanceInProgressError"
        assert record["exc_lock_name"] == "ledger"

    def test_reprocessing_error_fields(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        pid = str(uuid4())
        try:
            raise ReprocessingError(pid, ValueError("bad payment"))
        except ReprocessingError:
            get_logger("test").error("rebuild_failed", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_code"] == "REPROCESSING_FAILED"
        assert record["exc_failed_payment_id"] == pid
        assert record["exc_cause_code"] == "ValueError"

    def test_no_context_fields_when_empty(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("bare_message")

        record = _parse_log(stream)
        assert "correlation_id" not in record
        assert "run_id" not in record

    def test_uuid_and_decimal_serialized(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        uid = uuid4()
        get_logger("test").info("with_values", extra={"charge_id": uid, "amount": Decimal("12.50")})

        record = _parse_log(stream)
        assert record["charge_id"] == str(uid)
        assert record["amount"] == "12.50"

    def test_valid_json_every_line(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("first")
        logger.warning("second", extra={"k": "v"})
        logger.debug("third")

        logs = _parse_all_logs(stream)
        # default level is INFO
        assert len(logs) == 2
        for record in logs:
            assert {"ts", "level", "logger", "message"} <= record.keys()


# ---------------------------------------------------------------------------
# LogContext tests
# ---------------------------------------------------------------------------


class TestLogContext:
    """Tests for context propagation."""

    def test_set_and_get(self):
        LogContext.set(correlation_id="x", customer_id="y")
        assert LogContext.get_all() == {"correlation_id": "x", "customer_id": "y"}

    def test_clear(self):
        LogContext.set(correlation_id="x")
        LogContext.clear()
        assert LogContext.get_all() == {}

    def test_bind_context_manager(self):
        LogContext.set(correlation_id="outer")
        with LogContext.bind(correlation_id="inner"):
            assert LogContext.get_all()["correlation_id"] == "inner"
        assert LogContext.get_all()["correlation_id"] == "outer"

    def test_bind_restores_none(self):
        assert "run_id" not in LogContext.get_all()
        with LogContext.bind(run_id="temp"):
            assert LogContext.get_all()["run_id"] == "temp"
        assert "run_id" not in LogContext.get_all()

    def test_all_fields(self):
        LogContext.set(correlation_id="c", payment_id="p", customer_id="u", run_id="r")
        ctx = LogContext.get_all()
        assert len(ctx) == 4
        assert ctx["run_id"] == "r"


# ---------------------------------------------------------------------------
# configure_logging tests
# ---------------------------------------------------------------------------


class TestConfigureLogging:
    """Tests for initialization."""

    def test_idempotent(self):
        h1, _ = _make_handler()
        configure_logging(handler=h1)
        h2, _ = _make_handler()
        before = list(logging.getLogger("fleet_kernel").handlers)
        configure_logging(handler=h2)  # second call is a no-op
        handlers = logging.getLogger("fleet_kernel").handlers
        assert h1 in handlers
        assert h2 not in handlers
        assert handlers == before

    def test_get_logger_returns_child(self):
        assert get_logger("services.allocation").name == "fleet_kernel.services.allocation"

    def test_logger_hierarchy(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler, level=logging.DEBUG)
        get_logger("deep.nested.module").debug("hierarchy_test")

        record = _parse_log(stream)
        assert record["logger"] == "fleet_kernel.deep.nested.module"


class TestLogContextValidation:
    def test_unknown_field_rejected(self):
        with pytest.raises(TypeError, match="event_id"):
            LogContext.set(event_id="x")

    def test_bind_rejects_before_setting_anything(self):
        with pytest.raises(TypeError):
            with LogContext.bind(payment_id="p", actor_id="a"):
                pass
        assert LogContext.get_all() == {}

    def test_uuid_values_stored_as_strings(self):
        uid = uuid4()
        with LogContext.bind(customer_id=uid):
            assert LogContext.get_all() == {"customer_id": str(uid)}
