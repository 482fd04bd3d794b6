"""
Tests for IssueService (Reg-B entries).

Covers:
- Recording computes totals, closing and production fees
- Auto-fill of the receipt section from a completed Reg-A session
- Monthly listing and issued BL per strength band
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from excise_kernel.domain.registers import (
    BottlingProductionEntry,
    CountryLiquorIssueEntry,
    ProductionStatus,
    StrengthBand,
)
from excise_kernel.exceptions import (
    EntryNotFoundError,
    PreconditionError,
    ValidationError,
)
from excise_services import IssueService
from excise_services.issue_service import month_bounds


@pytest.fixture
def issue_service(memory_repo, config, clock):
    return IssueService(memory_repo, config, clock)


@pytest.fixture
def completed_session(memory_repo):
    return memory_repo.add_production(BottlingProductionEntry(
        batch_id="B-200",
        status=ProductionStatus.COMPLETED,
        production_date=date(2024, 4, 3),
        bottles_750=200,
        avg_strength=Decimal("28.5"),
    ))


def test_month_bounds():
    assert month_bounds(date(2024, 2, 10)) == (date(2024, 2, 1), date(2024, 2, 29))
    assert month_bounds(date(2024, 4, 30)) == (date(2024, 4, 1), date(2024, 4, 30))


class TestRecordIssue:

    def test_totals_persisted(self, issue_service, memory_repo):
        entry = issue_service.record_issue(CountryLiquorIssueEntry(
            entry_date=date(2024, 4, 2),
            opening={"750_50": 200},
            issue={"750_50": 100},
        ))

        stored = memory_repo.get_issue(entry.id)
        assert stored.opening_al == Decimal("42.75")
        assert stored.issue_al == Decimal("21.38")
        assert stored.closing_bl == Decimal("75.00")
        assert stored.closing_al == Decimal("21.37")
        assert stored.production_fees == Decimal("300.00")

    def test_empty_entry_rejected(self, issue_service, memory_repo):
        with pytest.raises(ValidationError):
            issue_service.record_issue(CountryLiquorIssueEntry(entry_date=date(2024, 4, 2)))

        assert memory_repo.list_issues() == []

    def test_recompute(self, issue_service, memory_repo):
        raw = memory_repo.add_issue(CountryLiquorIssueEntry(
            entry_date=date(2024, 4, 2), opening={"750_50": 200}, issue={"750_50": 100}
        ))

        recomputed = issue_service.recompute_issue(raw.id)

        assert recomputed.closing_bl == Decimal("75.00")
        assert memory_repo.get_issue(raw.id).production_fees == Decimal("300.00")

    def test_get_unknown(self, issue_service):
        with pytest.raises(EntryNotFoundError):
            issue_service.get_issue(uuid4())


class TestAutoFill:

    def test_receipt_from_completed_session(self, issue_service, completed_session):
        assert issue_service.auto_fill_receipt(completed_session.id) == {"750_50": 200}

    def test_record_from_production(self, issue_service, completed_session):
        entry = issue_service.record_from_production(
            completed_session.id,
            date(2024, 4, 3),
            issue={"750_50": 150},
            remarks="dispatch to depot",
        )

        assert entry.source_production_id == completed_session.id
        assert entry.receipt_bl == Decimal("150.00")
        assert entry.issue_bl == Decimal("112.50")
        assert entry.closing_bl == Decimal("37.50")
        assert entry.production_fees == Decimal("450.00")

    def test_unknown_session(self, issue_service):
        with pytest.raises(EntryNotFoundError):
            issue_service.auto_fill_receipt(uuid4())

    def test_active_session_cannot_fill(self, issue_service, memory_repo):
        active = memory_repo.add_production(BottlingProductionEntry(
            batch_id="B-300", status=ProductionStatus.ACTIVE, bottles_750=10,
            avg_strength=Decimal("28.5"),
        ))

        with pytest.raises(PreconditionError) as exc_info:
            issue_service.auto_fill_receipt(active.id)

        assert exc_info.value.precondition == "completed_production"
        assert "B-300#1" in str(exc_info.value)


class TestMonthly:

    def test_month_listing_and_band_summary(self, issue_service):
        issue_service.record_issue(CountryLiquorIssueEntry(
            entry_date=date(2024, 4, 2), opening={"750_50": 400}, issue={"750_50": 100},
        ))
        issue_service.record_issue(CountryLiquorIssueEntry(
            entry_date=date(2024, 4, 30), opening={"750_50": 300, "180_80": 20},
            issue={"750_50": 100, "180_80": 10},
        ))
        issue_service.record_issue(CountryLiquorIssueEntry(
            entry_date=date(2024, 5, 1), opening={"750_50": 200}, issue={"750_50": 100},
        ))

        assert len(issue_service.list_month(date(2024, 4, 15))) == 2

        summary = issue_service.monthly_issue_summary(date(2024, 4, 1))
        assert summary[StrengthBand.UP_50].bl == Decimal("150.00")
        assert summary[StrengthBand.UP_80].bl == Decimal("1.80")
        assert summary[StrengthBand.UP_70].entry_count == 0
