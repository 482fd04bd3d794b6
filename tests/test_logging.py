"""Tests for the structured logging system (excise_kernel/logging_config.py)."""

import json
import logging
from datetime import date
from decimal import Decimal
from io import StringIO
from uuid import uuid4

import pytest

from excise_kernel.domain.registers import DutyStatus
from excise_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    get_logger,
    reset_logging,
)


@pytest.fixture(autouse=True)
def _clean_logging():
    """Reset logging state between tests."""
    reset_logging()
    LogContext.clear()
    yield
    LogContext.clear()
    reset_logging()


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
        logger = get_logger("test")
        logger.info("hello")

        record = _parse_log(stream)
        assert record["level"] == "INFO"
        assert record["message"] == "hello"
        assert record["logger"] == "excise_kernel.test"
        assert "ts" in record

    def test_extra_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("computed", extra={"entry_count": 3, "status": "PENDING"})

        record = _parse_log(stream)
        assert record["entry_count"] == 3
        assert record["status"] == "PENDING"

    def test_context_fields_included(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        LogContext.set(correlation_id="abc-123", register="Reg-76")
        logger.info("test_msg")

        record = _parse_log(stream)
        assert record["correlation_id"] == "abc-123"
        assert record["register"] == "Reg-76"

    def test_context_wins_over_extra(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        LogContext.set(actor_id="ctx-actor")
        get_logger("test").info("dup", extra={"actor_id": "extra-actor"})

        assert _parse_log(stream)["actor_id"] == "ctx-actor"

    def test_exception_fields(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        try:
            raise ValueError("boom")
        except ValueError:
            logger.error("failed", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_type"] == "ValueError"
        assert record["exc_message"] == "boom"
        assert "traceback" in record

    def test_excise_exception_fields_extracted(self):
        """Excise kernel exceptions carry .code and structured attributes."""
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        from excise_kernel.exceptions import MissingRateError

        try:
            raise MissingRateError("CL", "50° U.P.", "2024-04-01")
        except MissingRateError:
            logger.error("rate_error", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_code"] == "MISSING_DUTY_RATE"
        assert record["exc_type"] == "MissingRateError"
        assert record["exc_category"] == "CL"
        assert record["exc_subcategory"] == "50° U.P."
        assert record["exc_on_date"] == "2024-04-01"

    def test_validation_error_list_serialized(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        from excise_kernel.exceptions import ValidationError

        try:
            raise ValidationError(["permit_no is required"], register="Reg-76")
        except ValidationError:
            get_logger("test").error("invalid", exc_info=True)

        record = _parse_log(stream)
        assert record["exc_errors"] == ["permit_no is required"]
        assert record["exc_register"] == "Reg-76"

    def test_no_context_fields_when_empty(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("bare_message")

        record = _parse_log(stream)
        assert "correlation_id" not in record
        assert "entry_id" not in record

    def test_value_types_serialized(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        uid = uuid4()
        get_logger("test").info("typed", extra={
            "entry_id": uid,
            "entry_date": date(2024, 4, 2),
            "closing_bl": Decimal("3937.28"),
            "status": DutyStatus.PARTIAL_PAID,
        })

        record = _parse_log(stream)
        assert record["entry_id"] == str(uid)
        assert record["entry_date"] == "2024-04-02"
        assert record["closing_bl"] == "3937.28"
        assert record["status"] == "PARTIAL_PAID"

    def test_decimal_scale_kept(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        get_logger("test").info("fees", extra={"fees_debited": Decimal("3937.20")})

        assert _parse_log(stream)["fees_debited"] == "3937.20"

    def test_valid_json_every_line(self):
        handler, stream = _make_handler()
        configure_logging(handler=handler)
        logger = get_logger("test")
        logger.info("first")
        logger.warning("second", extra={"k": "v"})
        logger.debug("third")

        logs = _parse_all_logs(stream)
        # default level is INFO, so the debug line is dropped
        assert len(logs) == 2
        for record in logs:
            assert "ts" in record
            assert "level" in record
            assert "logger" in record
            assert "message" in record


# ---------------------------------------------------------------------------
# LogContext tests
# ---------------------------------------------------------------------------


class TestLogContext:

    def test_set_and_get(self):
        LogContext.set(correlation_id="x", entry_id="y")
        assert LogContext.get_all() == {"correlation_id": "x", "entry_id": "y"}

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
        """bind() restores to None if there was no previous value."""
        assert "register" not in LogContext.get_all()
        with LogContext.bind(register="Reg-78"):
            assert LogContext.get_all()["register"] == "Reg-78"
        assert "register" not in LogContext.get_all()

    def test_bind_skips_none_and_unknown(self):
        with LogContext.bind(actor_id=None, unknown_field="x", entry_id="e"):
            assert LogContext.get_all() == {"entry_id": "e"}

    def test_additive_set(self):
        LogContext.set(correlation_id="a")
        LogContext.set(actor_id="b")
        ctx = LogContext.get_all()
        assert ctx["correlation_id"] == "a"
        assert ctx["actor_id"] == "b"

    def test_all_fields(self):
        LogContext.set(
            correlation_id="c",
            actor_id="a",
            entry_id="n",
            register="r",
            trace_id="t",
        )
        ctx = LogContext.get_all()
        assert len(ctx) == 5
        assert ctx["trace_id"] == "t"


# ---------------------------------------------------------------------------
# configure_logging tests
# ---------------------------------------------------------------------------


class TestConfigureLogging:

    def test_idempotent(self):
        h1, _ = _make_handler()
        configure_logging(handler=h1)
        h2, _ = _make_handler()
        configure_logging(handler=h2)  # second call is no-op
        root = logging.getLogger("excise_kernel")
        assert len(root.handlers) == 1

    def test_get_logger_returns_child(self):
        logger = get_logger("services.master_ledger")
        assert logger.name == "excise_kernel.services.master_ledger"

    def test_logger_hierarchy(self):
        """Child loggers inherit the excise_kernel root config."""
        handler, stream = _make_handler()
        configure_logging(handler=handler, level=logging.DEBUG)
        child = get_logger("deep.nested.module")
        child.debug("hierarchy_test")

        record = _parse_log(stream)
        assert record["message"] == "hierarchy_test"
        assert record["logger"] == "excise_kernel.deep.nested.module"

    def test_reset_restores_propagation(self):
        handler, _ = _make_handler()
        configure_logging(handler=handler)
        assert logging.getLogger("excise_kernel").propagate is False

        reset_logging()

        root = logging.getLogger("excise_kernel")
        assert root.propagate is True
        assert root.handlers == []
