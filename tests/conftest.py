"""
Pytest fixtures for the excise register test suite.

Provides:
- Structured logging configured for the session, with a log capture fixture
- Deterministic clock and the bundled configuration
- In-memory and SQLite-backed repositories
- Builders for typical register entries
"""

import json
import logging
from datetime import date, datetime, timezone
from decimal import Decimal
from io import StringIO

import pytest

from excise_config import get_active_config
from excise_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session,
    init_engine_from_url,
    reset_engine,
)
from excise_kernel.domain.clock import DeterministicClock
from excise_kernel.domain.registers import (
    AdjustmentType,
    SpiritReceiptEntry,
    VatEvent,
    VatEventType,
    WastageReason,
)
from excise_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from excise_services.repository import InMemoryRegisterRepository
from excise_services.sql_repository import SqlRegisterRepository


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture excise_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs):
            ...
            logs = captured_logs()
            assert any(r["message"] == "audit_event" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("excise_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Clock and configuration
# =============================================================================


@pytest.fixture
def clock():
    return DeterministicClock(datetime(2024, 4, 15, 12, 0, tzinfo=timezone.utc))


@pytest.fixture(scope="session")
def config():
    return get_active_config()


# =============================================================================
# Repositories
# =============================================================================


@pytest.fixture
def memory_repo():
    return InMemoryRegisterRepository()


@pytest.fixture
def sqlite_session():
    """Session on a fresh in-memory SQLite database; rolled back afterwards."""
    init_engine_from_url("sqlite:///:memory:")
    create_tables()
    session = get_session()
    yield session
    session.rollback()
    session.close()
    drop_tables()
    reset_engine()


@pytest.fixture
def sql_repo(sqlite_session):
    return SqlRegisterRepository(sqlite_session)


@pytest.fixture(params=["memory", "sqlite"])
def repo(request):
    """Each repository implementation in turn."""
    if request.param == "memory":
        return InMemoryRegisterRepository()
    return request.getfixturevalue("sql_repo")


# =============================================================================
# Entry builders
# =============================================================================


def make_receipt(**overrides) -> SpiritReceiptEntry:
    """
    A complete Reg-76 receipt: 6200 - 1200 kg at 0.92 gm/cc and 42.5% gives
    5434.78 BL / 2309.78 AL received.
    """
    fields = dict(
        receipt_date=date(2024, 4, 2),
        permit_no="P-2024-001",
        exporting_distillery="Sunrise Distillery",
        invoice_no="INV-77",
        vehicle_no="MH-12-AB-1234",
        nature_of_spirit="ENA",
        storage_vat="SST-1",
        dispatch_date=date(2024, 3, 30),
        arrival_date=date(2024, 4, 2),
        advised_bl=Decimal("5000"),
        advised_al=Decimal("2140"),
        advised_strength=Decimal("42.8"),
        advised_mass_kg=Decimal("4600"),
        laden_weight_kg=Decimal("6200"),
        unladen_weight_kg=Decimal("1200"),
        avg_density=Decimal("0.92"),
        avg_temperature=Decimal("24"),
        received_strength=Decimal("42.5"),
    )
    fields.update(overrides)
    return SpiritReceiptEntry(**fields)


def make_production_event(batch_id="B-100", mfm_bl="2500", mfm_al="1000", when=None, **overrides) -> VatEvent:
    fields = dict(
        vat_code="BRT-1",
        event_type=VatEventType.PRODUCTION,
        event_datetime=when or datetime(2024, 4, 3, 9, 0, tzinfo=timezone.utc),
        batch_id=batch_id,
        mfm_bl=Decimal(mfm_bl),
        mfm_al=Decimal(mfm_al) if mfm_al is not None else None,
        mfm_strength=Decimal("40"),
        mfm_density=Decimal("0.9480"),
    )
    fields.update(overrides)
    return VatEvent(**fields)


def make_wastage_adjustment(qty_bl="10", qty_al="4", when=None, **overrides) -> VatEvent:
    fields = dict(
        vat_code="SST-1",
        event_type=VatEventType.ADJUSTMENT,
        event_datetime=when or datetime(2024, 4, 3, 17, 0, tzinfo=timezone.utc),
        adjustment_type=AdjustmentType.WASTAGE,
        wastage_reason=WastageReason.OPERATIONAL,
        qty_bl=Decimal(qty_bl),
        qty_al=Decimal(qty_al),
    )
    fields.update(overrides)
    return VatEvent(**fields)


@pytest.fixture
def receipt_factory():
    return make_receipt


@pytest.fixture
def production_event_factory():
    return make_production_event


@pytest.fixture
def wastage_event_factory():
    return make_wastage_adjustment
