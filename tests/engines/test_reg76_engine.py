"""
Tests for the Reg-76 spirit receipt engine.

Covers:
- Weighbridge conversion to mass, BL and AL
- Transit wastage and increase
- Validation (mandatory fields, negatives, strengths, dates)
- Amendments
- Receipt summaries
"""

from datetime import date, datetime, timezone
from decimal import Decimal

import pytest

from excise_engines.reg76 import Reg76Engine
from excise_kernel.domain.registers import SpiritReceiptEntry
from excise_kernel.exceptions import InvalidWeighbridgeReadingError, ValidationError
from tests.conftest import make_receipt


class TestComputeReceived:

    def setup_method(self):
        self.engine = Reg76Engine()

    def test_weighbridge_conversion(self):
        received = self.engine.compute_received(
            Decimal("6200"), Decimal("1200"), Decimal("0.92"), Decimal("42.5")
        )

        assert received.received_mass_kg == Decimal("5000.00")
        assert received.received_bl == Decimal("5434.78")
        # AL is taken from the rounded BL
        assert received.received_al == Decimal("2309.78")

    @pytest.mark.parametrize("laden, unladen", [("1200", "1200"), ("1000", "1200")])
    def test_laden_not_above_unladen_rejected(self, laden, unladen):
        with pytest.raises(InvalidWeighbridgeReadingError) as exc_info:
            self.engine.compute_received(Decimal(laden), Decimal(unladen), Decimal("0.92"), Decimal("42.5"))

        assert exc_info.value.code == "INVALID_WEIGHBRIDGE_READING"
        assert exc_info.value.unladen_weight_kg == Decimal(unladen)

    def test_zero_density_gives_zero_volume(self):
        received = self.engine.compute_received(
            Decimal("6200"), Decimal("1200"), Decimal("0"), Decimal("42.5")
        )

        assert received.received_bl == Decimal("0")
        assert received.received_al == Decimal("0")


class TestComputeWastage:

    def setup_method(self):
        self.engine = Reg76Engine()

    def test_increase(self):
        wastage = self.engine.compute_wastage(
            Decimal("5000"), Decimal("2140"), Decimal("5434.78"), Decimal("2309.78")
        )

        assert wastage.transit_wastage_bl == Decimal("-434.78")
        assert wastage.transit_wastage_al == Decimal("0")
        assert wastage.transit_increase_al == Decimal("169.78")
        assert wastage.is_chargeable is False

    def test_shortfall_beyond_tolerance(self):
        wastage = self.engine.compute_wastage(
            Decimal("5450"), Decimal("2330"), Decimal("5434.78"), Decimal("2309.78")
        )

        assert wastage.transit_wastage_bl == Decimal("15.22")
        assert wastage.transit_wastage_al == Decimal("20.22")
        assert wastage.allowable_wastage_al == Decimal("11.65")
        assert wastage.chargeable_wastage_al == Decimal("8.57")
        assert wastage.percentage_wastage == Decimal("0.87")
        assert wastage.is_chargeable is True

    def test_custom_tolerance(self):
        engine = Reg76Engine(transit_tolerance=Decimal("0.01"))
        wastage = engine.compute_wastage(
            Decimal("5450"), Decimal("2330"), Decimal("5434.78"), Decimal("2309.78")
        )

        assert wastage.allowable_wastage_al == Decimal("23.30")
        assert wastage.is_chargeable is False


class TestTransitDays:

    def test_dates(self):
        assert Reg76Engine.transit_days(date(2024, 3, 30), date(2024, 4, 2)) == 3

    def test_partial_day_rounds_up(self):
        dispatch = datetime(2024, 4, 1, 8, 0, tzinfo=timezone.utc)
        arrival = datetime(2024, 4, 2, 9, 0, tzinfo=timezone.utc)
        assert Reg76Engine.transit_days(dispatch, arrival) == 2

    def test_missing_date(self):
        assert Reg76Engine.transit_days(None, date(2024, 4, 2)) == 0
        assert Reg76Engine.transit_days(date(2024, 4, 2), None) == 0

    def test_same_day(self):
        assert Reg76Engine.transit_days(date(2024, 4, 2), date(2024, 4, 2)) == 0


class TestValidate:

    def setup_method(self):
        self.engine = Reg76Engine()

    def test_valid_entry(self):
        assert self.engine.validate(make_receipt()) == []

    def test_every_missing_field_reported(self):
        errors = self.engine.validate(SpiritReceiptEntry())

        assert "receipt_date is required" in errors
        assert "permit_no is required" in errors
        assert "received_strength is required" in errors
        assert len(errors) == 16

    def test_blank_string_counts_as_missing(self):
        errors = self.engine.validate(make_receipt(vehicle_no="   "))
        assert errors == ["vehicle_no is required"]

    def test_negative_and_strength_limits(self):
        errors = self.engine.validate(
            make_receipt(advised_bl=Decimal("-1"), received_strength=Decimal("101"))
        )

        assert "advised_bl cannot be negative" in errors
        assert "received_strength cannot exceed 100%" in errors

    def test_weighbridge_error(self):
        errors = self.engine.validate(make_receipt(laden_weight_kg=Decimal("1000")))
        assert any("laden weight must be greater" in e for e in errors)

    def test_arrival_after_receipt(self):
        errors = self.engine.validate(make_receipt(arrival_date=date(2024, 4, 5)))
        assert errors == ["arrival_date cannot be after receipt_date"]


class TestComputeAll:

    def setup_method(self):
        self.engine = Reg76Engine()

    def test_fills_derived_fields(self):
        entry = make_receipt()

        result = self.engine.compute_all(entry)

        assert result.id == entry.id
        assert result.received_mass_kg == Decimal("5000.00")
        assert result.received_bl == Decimal("5434.78")
        assert result.received_al == Decimal("2309.78")
        assert result.transit_wastage_bl == Decimal("-434.78")
        assert result.transit_wastage_al == Decimal("0")
        assert result.chargeable_wastage_al == Decimal("0")
        assert result.is_chargeable is False
        assert result.transit_days == 3

    def test_input_not_mutated(self):
        entry = make_receipt()
        self.engine.compute_all(entry)
        assert entry.received_bl == Decimal("0")

    def test_chargeable_receipt(self):
        result = self.engine.compute_all(
            make_receipt(advised_bl=Decimal("5450"), advised_al=Decimal("2330"))
        )

        assert result.chargeable_wastage_al == Decimal("8.57")
        assert result.is_chargeable is True

    def test_invalid_entry_raises_itemized(self):
        with pytest.raises(ValidationError) as exc_info:
            self.engine.compute_all(make_receipt(permit_no="", avg_density=None))

        assert exc_info.value.register == "Reg-76"
        assert exc_info.value.errors == ["permit_no is required", "avg_density is required"]


class TestAmend:

    def setup_method(self):
        self.engine = Reg76Engine()
        self.entry = self.engine.compute_all(make_receipt())

    def test_recomputes_from_merged_inputs(self):
        amended = self.engine.amend(
            self.entry, {"unladen_weight_kg": Decimal("1400")}, "  weighbridge re-read  "
        )

        assert amended.id == self.entry.id
        assert amended.received_mass_kg == Decimal("4800.00")
        assert amended.received_bl == Decimal("5217.39")
        assert amended.received_al == Decimal("2217.39")
        assert amended.amendment_reason == "weighbridge re-read"

    @pytest.mark.parametrize("reason", [None, "", "   "])
    def test_reason_required(self, reason):
        with pytest.raises(ValidationError, match="amendment reason is required"):
            self.engine.amend(self.entry, {"remarks": "x"}, reason)

    def test_protected_and_unknown_fields_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            self.engine.amend(self.entry, {"id": None, "colour": "amber"}, "fix")

        assert exc_info.value.errors == ["colour cannot be amended", "id cannot be amended"]

    def test_invalid_merge_rejected(self):
        with pytest.raises(ValidationError):
            self.engine.amend(self.entry, {"laden_weight_kg": Decimal("100")}, "fix")


class TestReceiptSummary:

    def test_totals(self):
        engine = Reg76Engine()
        first = engine.compute_all(make_receipt())
        second = engine.compute_all(
            make_receipt(advised_bl=Decimal("5450"), advised_al=Decimal("2330"))
        )

        summary = Reg76Engine.receipt_summary([first, second])

        assert summary.entry_count == 2
        assert summary.total_advised_al == Decimal("4470.00")
        assert summary.total_received_bl == Decimal("10869.56")
        assert summary.total_received_al == Decimal("4619.56")
        assert summary.total_transit_wastage_al == Decimal("20.22")
        assert summary.total_chargeable_wastage_al == Decimal("8.57")
        assert summary.chargeable_count == 1
        assert summary.average_wastage_percentage == Decimal("0.45")

    def test_empty(self):
        summary = Reg76Engine.receipt_summary([])

        assert summary.entry_count == 0
        assert summary.total_received_al == Decimal("0")
        assert summary.average_wastage_percentage == Decimal("0")
