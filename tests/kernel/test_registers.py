"""Tests for register records and enumerations (excise_kernel/domain/registers.py)."""

from dataclasses import FrozenInstanceError
from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from excise_kernel.domain.registers import (
    COMBINATION_KEYS,
    AdjustmentType,
    BottleSize,
    BottlingProductionEntry,
    CountryLiquorIssueEntry,
    DutyLedgerEntry,
    DutyRateSchedule,
    DutyStatus,
    MasterLedgerEntry,
    ProductionStatus,
    RegBSection,
    SpiritReceiptEntry,
    StrengthBand,
    VatEvent,
    VatEventType,
    combination_key,
    record_snapshot,
)


class TestEnumerations:

    def test_bottle_size_litres(self):
        assert BottleSize.ML_750.litres == Decimal("0.75")
        assert BottleSize.ML_180.litres == Decimal("0.18")
        assert BottleSize.ML_375.field_name == "bottles_375"

    def test_strength_band_properties(self):
        assert StrengthBand.UP_50.strength == Decimal("28.5")
        assert StrengthBand.UP_80.strength == Decimal("11.4")
        assert StrengthBand.UP_60.code == "60UP"
        assert StrengthBand.UP_70.label == "70° U.P."

    def test_wast_is_legacy_alias(self):
        assert AdjustmentType("WAST") is AdjustmentType.WASTAGE
        assert AdjustmentType("wast") is AdjustmentType.WASTAGE

    def test_unknown_adjustment_rejected(self):
        with pytest.raises(ValueError):
            AdjustmentType("LOSS")

    def test_twenty_four_combinations(self):
        assert len(COMBINATION_KEYS) == 24
        assert combination_key(BottleSize.ML_750, StrengthBand.UP_50) == "750_50"
        assert "180_80" in COMBINATION_KEYS


class TestSpiritReceiptEntry:

    def test_inputs_coerced_and_missing_kept(self):
        entry = SpiritReceiptEntry(advised_bl="5000", laden_weight_kg=6200.5)

        assert entry.advised_bl == Decimal("5000")
        assert entry.laden_weight_kg == Decimal("6200.5")
        assert entry.advised_al is None
        assert entry.received_bl == Decimal("0")

    def test_frozen(self):
        entry = SpiritReceiptEntry()
        with pytest.raises(FrozenInstanceError):
            entry.permit_no = "X"


class TestVatEvent:

    def test_enum_coercion(self):
        event = VatEvent(event_type="ADJUSTMENT", adjustment_type="WAST", wastage_reason="STOCK_AUDIT")

        assert event.event_type is VatEventType.ADJUSTMENT
        assert event.adjustment_type is AdjustmentType.WASTAGE
        assert event.is_wastage_adjustment

    def test_increase_is_not_wastage(self):
        event = VatEvent(event_type="ADJUSTMENT", adjustment_type="INCREASE")
        assert not event.is_wastage_adjustment

    def test_event_date(self):
        event = VatEvent(event_datetime=datetime(2024, 4, 3, 9, 30, tzinfo=timezone.utc))
        assert event.event_date == date(2024, 4, 3)
        assert VatEvent().event_date is None


class TestBottlingProductionEntry:

    def test_counts(self):
        entry = BottlingProductionEntry(batch_id="B-1", bottles_750="10", bottles_180=5)

        assert entry.bottle_counts[BottleSize.ML_750] == 10
        assert entry.total_bottles == 15
        assert entry.status is ProductionStatus.PLANNED
        assert not entry.is_completed

    def test_negative_count_rejected(self):
        with pytest.raises(ValueError, match="cannot be negative"):
            BottlingProductionEntry(batch_id="B-1", bottles_500=-1)

    def test_status_from_string(self):
        assert BottlingProductionEntry(status="COMPLETED").is_completed


class TestCountryLiquorIssueEntry:

    def test_zero_counts_dropped(self):
        entry = CountryLiquorIssueEntry(opening={"750_50": "12", "600_60": 0})

        assert entry.opening == {"750_50": 12}
        assert entry.count(RegBSection.OPENING, BottleSize.ML_750, StrengthBand.UP_50) == 12
        assert entry.count(RegBSection.ISSUE, BottleSize.ML_750, StrengthBand.UP_50) == 0

    def test_unknown_key_rejected(self):
        with pytest.raises(ValueError, match="Unknown Reg-B combination"):
            CountryLiquorIssueEntry(issue={"1000_50": 1})

    def test_hashable_by_id(self):
        entry = CountryLiquorIssueEntry()
        assert {entry: 1}[entry] == 1


class TestDutyRecords:

    def test_rate_covers(self):
        rate = DutyRateSchedule(
            "CL", "50° U.P.", "50", date(2024, 4, 1), effective_to=date(2024, 9, 30)
        )

        assert rate.covers(date(2024, 4, 1))
        assert rate.covers(date(2024, 9, 30))
        assert not rate.covers(date(2024, 3, 31))
        assert not rate.covers(date(2024, 10, 1))

    def test_inactive_rate_never_covers(self):
        rate = DutyRateSchedule("CL", "50° U.P.", "50", date(2024, 4, 1), is_active=False)
        assert not rate.covers(date(2024, 5, 1))

    def test_ledger_liability(self):
        entry = DutyLedgerEntry(
            date(2024, 4, 1), "CL", "50° U.P.", opening_balance="100", duty_accrued="50", status="PARTIAL_PAID"
        )
        assert entry.total_liability == Decimal("150")
        assert entry.status is DutyStatus.PARTIAL_PAID


class TestMasterLedgerEntry:

    def test_figures_and_snapshot(self):
        entry = MasterLedgerEntry(entry_date=date(2024, 4, 1), opening_bl="10", closing_bl="10")

        assert entry.figures()["opening_bl"] == Decimal("10")
        assert len(entry.figures()) == 10
        snapshot = record_snapshot(entry)
        assert snapshot["entry_date"] == date(2024, 4, 1)
        assert snapshot["actual_closing_bl"] is None
