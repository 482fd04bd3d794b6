"""
Tests for the Reg-B country-liquor issue engine.

Covers:
- Section totals over the 24 size/band combinations
- Closing stock and production fees
- Balance validation
- Auto-fill from completed Reg-A sessions
- Issued BL by strength band
"""

from datetime import date
from decimal import Decimal

import pytest

from excise_engines.reg_b import (
    COMBINATIONS,
    RegBEngine,
    RegBTotals,
    production_fees,
    section_totals,
)
from excise_kernel.domain.registers import (
    BottlingProductionEntry,
    CountryLiquorIssueEntry,
    ProductionStatus,
    StrengthBand,
)
from excise_kernel.domain.values import SpiritVolume
from excise_kernel.exceptions import ValidationError


def _issue_entry(**overrides) -> CountryLiquorIssueEntry:
    fields = dict(
        entry_date=date(2024, 4, 2),
        opening={"750_50": 200},
        issue={"750_50": 100},
    )
    fields.update(overrides)
    return CountryLiquorIssueEntry(**fields)


class TestCombinations:

    def test_twenty_four_cells(self):
        assert len(COMBINATIONS) == 24
        assert len({c.key for c in COMBINATIONS}) == 24

    def test_cell_properties(self):
        cell = next(c for c in COMBINATIONS if c.key == "375_70")

        assert cell.litres == Decimal("0.375")
        assert cell.strength == Decimal("17.1")


class TestSectionTotals:

    def test_bl_and_al(self):
        totals = section_totals({"750_50": 100})

        assert totals.bl == Decimal("75.00")
        assert totals.al == Decimal("21.38")

    def test_al_rounded_once_per_section(self):
        # 0.0342 + 0.04275; rounding each cell first would give 0.07
        totals = section_totals({"300_80": 1, "375_80": 1})

        assert totals.bl == Decimal("0.68")
        assert totals.al == Decimal("0.08")

    def test_unknown_keys_and_zero_counts_ignored(self):
        assert section_totals({"999_50": 5, "750_50": 0}) == SpiritVolume.zero()

    def test_production_fees(self):
        assert production_fees(100) == Decimal("300.00")
        assert production_fees(0) == Decimal("0.00")
        assert production_fees(10, Decimal("2.5")) == Decimal("25.00")


class TestComputeAll:

    def setup_method(self):
        self.engine = RegBEngine()

    def test_totals_closing_and_fees(self):
        result = self.engine.compute_all(_issue_entry())

        assert result.opening_bl == Decimal("150.00")
        assert result.opening_al == Decimal("42.75")
        assert result.issue_bl == Decimal("75.00")
        assert result.issue_al == Decimal("21.38")
        assert result.closing_bl == Decimal("75.00")
        assert result.closing_al == Decimal("21.37")
        assert result.production_fees == Decimal("300.00")

    def test_receipt_and_wastage_sections(self):
        result = self.engine.compute_all(_issue_entry(
            receipt={"375_60": 40},
            wastage={"750_50": 2},
        ))

        assert result.receipt_bl == Decimal("15.00")
        assert result.receipt_al == Decimal("3.42")
        assert result.wastage_bl == Decimal("1.50")
        assert result.closing_bl == Decimal("88.50")

    def test_custom_fee(self):
        engine = RegBEngine(fee_per_bottle=Decimal("5"))
        assert engine.compute_all(_issue_entry()).production_fees == Decimal("500.00")

    def test_missing_date_and_counts(self):
        with pytest.raises(ValidationError) as exc_info:
            self.engine.compute_all(CountryLiquorIssueEntry())

        assert exc_info.value.register == "Reg-B"
        assert exc_info.value.errors == [
            "entry_date is required",
            "at least one bottle count must be greater than zero",
        ]

    def test_input_not_mutated(self):
        entry = _issue_entry()
        self.engine.compute_all(entry)
        assert entry.closing_bl == Decimal("0")


class TestBalance:

    def setup_method(self):
        self.engine = RegBEngine()

    def _totals(self, closing_bl):
        return RegBTotals(
            opening=SpiritVolume(Decimal("150"), Decimal("42.75")),
            receipt=SpiritVolume.zero(),
            issue=SpiritVolume(Decimal("75"), Decimal("21.38")),
            wastage=SpiritVolume.zero(),
            closing=SpiritVolume(Decimal(closing_bl), Decimal("21.37")),
            issued_bottles=100,
            production_fees=Decimal("300.00"),
        )

    def test_balanced(self):
        check = self.engine.validate_balance(self._totals("75"))

        assert check.is_balanced
        assert check.left_side == Decimal("150.00")
        assert check.difference == Decimal("0.00")

    def test_unbalanced(self):
        check = self.engine.validate_balance(self._totals("74.5"))

        assert not check.is_balanced
        assert check.right_side == Decimal("149.50")
        assert check.difference == Decimal("0.50")

    def test_tolerance_is_strict(self):
        check = self.engine.validate_balance(self._totals("74.99"))
        assert not check.is_balanced

    def test_computed_totals_always_balance(self):
        totals = self.engine.compute_totals(_issue_entry(receipt={"180_80": 7}, wastage={"600_60": 3}))
        assert self.engine.validate_balance(totals).is_balanced


class TestAutoFill:

    def _production(self, **overrides):
        fields = dict(
            batch_id="B-100",
            status=ProductionStatus.COMPLETED,
            bottles_750=10,
            bottles_180=48,
            avg_strength=Decimal("28.5"),
        )
        fields.update(overrides)
        return BottlingProductionEntry(**fields)

    def test_counts_land_in_strength_band(self):
        assert RegBEngine.auto_fill_from_completed_reg_a(self._production()) == {
            "750_50": 10,
            "180_50": 48,
        }

    def test_lower_band(self):
        filled = RegBEngine.auto_fill_from_completed_reg_a(
            self._production(avg_strength=Decimal("22.8"))
        )
        assert filled == {"750_60": 10, "180_60": 48}

    @pytest.mark.parametrize("status", [ProductionStatus.PLANNED, ProductionStatus.ACTIVE])
    def test_not_completed(self, status):
        assert RegBEngine.auto_fill_from_completed_reg_a(self._production(status=status)) is None

    def test_unmapped_strength(self):
        assert RegBEngine.auto_fill_from_completed_reg_a(
            self._production(avg_strength=Decimal("42.8"))
        ) is None

    def test_none(self):
        assert RegBEngine.auto_fill_from_completed_reg_a(None) is None


class TestIssueByBand:

    def test_issue_bl_by_band(self):
        entry = _issue_entry(issue={"750_50": 100, "375_60": 20})

        assert RegBEngine.issue_bl_by_band(entry) == {
            StrengthBand.UP_50: Decimal("75.00"),
            StrengthBand.UP_60: Decimal("7.50"),
        }

    def test_monthly_summary(self):
        entries = [
            _issue_entry(issue={"750_50": 100}),
            _issue_entry(entry_date=date(2024, 4, 3), issue={"750_50": 100, "180_80": 10}),
        ]

        summary = RegBEngine.monthly_issue_summary(entries)

        assert summary[StrengthBand.UP_50].bl == Decimal("150.00")
        assert summary[StrengthBand.UP_50].entry_count == 2
        assert summary[StrengthBand.UP_80].bl == Decimal("1.80")
        assert summary[StrengthBand.UP_80].entry_count == 1
        assert summary[StrengthBand.UP_60].bl == Decimal("0.00")
        assert summary[StrengthBand.UP_60].entry_count == 0
