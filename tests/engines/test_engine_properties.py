"""
Property-based tests for the register engines.

Invariants checked over generated inputs:
- Wastage and increase are exclusive and add back to the difference
- 0 <= chargeable <= wastage
- Reg-B computed totals always balance
- Duty closing = opening + accrued - payments
- Bottle volume is non-negative and additive
- AL over BL recovers strength / 100
"""

from datetime import date
from decimal import Decimal

from hypothesis import given, settings
from hypothesis import strategies as st

from excise_engines.duty import ExciseDutyEngine
from excise_engines.reg_b import RegBEngine
from excise_engines.units import bottles_to_volume, volume_to_absolute
from excise_engines.wastage import analyze
from excise_kernel.domain.registers import (
    COMBINATION_KEYS,
    BottleSize,
    CountryLiquorIssueEntry,
    DutyRateSchedule,
    DutyStatus,
)

quantities = st.decimals(
    min_value=Decimal("0"), max_value=Decimal("1000000"), places=2,
    allow_nan=False, allow_infinity=False,
)
tolerances = st.sampled_from([Decimal("0"), Decimal("0.001"), Decimal("0.003"), Decimal("0.005")])
section_counts = st.dictionaries(
    st.sampled_from(COMBINATION_KEYS), st.integers(min_value=0, max_value=5000), max_size=8
)
bottle_counts = st.dictionaries(
    st.sampled_from([size.value for size in BottleSize]),
    st.integers(min_value=0, max_value=100000),
    max_size=6,
)


class TestWastageProperties:

    @given(expected=quantities, actual=quantities, tolerance=tolerances)
    @settings(max_examples=200)
    def test_difference_splits_into_wastage_or_increase(self, expected, actual, tolerance):
        result = analyze(expected, actual, tolerance)

        assert result.wastage == 0 or result.increase == 0
        assert result.wastage - result.increase == result.difference_found

    @given(expected=quantities, actual=quantities, tolerance=tolerances)
    @settings(max_examples=200)
    def test_chargeable_bounded_by_wastage(self, expected, actual, tolerance):
        result = analyze(expected, actual, tolerance)

        assert Decimal("0") <= result.chargeable_wastage <= result.wastage
        assert result.is_chargeable == (result.chargeable_wastage > 0)


class TestRegBProperties:

    @given(opening=section_counts, receipt=section_counts, issue=section_counts, wastage=section_counts)
    @settings(max_examples=100)
    def test_computed_totals_balance(self, opening, receipt, issue, wastage):
        entry = CountryLiquorIssueEntry(
            entry_date=date(2024, 4, 2),
            opening=opening, receipt=receipt, issue=issue, wastage=wastage,
        )
        engine = RegBEngine()

        totals = engine.compute_totals(entry)

        assert engine.validate_balance(totals).is_balanced
        assert totals.production_fees == sum(issue.values()) * Decimal("3.00")


class TestDutyProperties:

    RATES = [DutyRateSchedule("CL", "50° U.P.", Decimal("50"), date(2024, 4, 1))]

    @given(units=quantities, opening=quantities, payments=quantities)
    @settings(max_examples=100)
    def test_closing_identity(self, units, opening, payments):
        entry = ExciseDutyEngine().compute_entry(
            month_year=date(2024, 4, 1),
            category="CL",
            subcategory="50° U.P.",
            units_issued=units,
            rates=self.RATES,
            opening_balance=opening,
            total_payments=payments,
        )

        assert entry.closing_balance == entry.opening_balance + entry.duty_accrued - entry.total_payments
        if entry.closing_balance <= 0:
            assert entry.status == DutyStatus.FULLY_PAID
        else:
            assert entry.status in (DutyStatus.PENDING, DutyStatus.PARTIAL_PAID)


class TestBottleVolumeProperties:

    @given(a=bottle_counts, b=bottle_counts)
    @settings(max_examples=100)
    def test_non_negative_and_additive(self, a, b):
        merged = {size: a.get(size, 0) + b.get(size, 0) for size in set(a) | set(b)}

        total = bottles_to_volume(merged)

        assert total >= 0
        assert abs(total - (bottles_to_volume(a) + bottles_to_volume(b))) <= Decimal("0.01")


bulk_litres = st.decimals(
    min_value=Decimal("0.01"), max_value=Decimal("1000000"), places=2,
    allow_nan=False, allow_infinity=False,
)
strengths = st.decimals(
    min_value=Decimal("0"), max_value=Decimal("100"), places=1,
    allow_nan=False, allow_infinity=False,
)


class TestStrengthRoundTrip:

    @given(bl=bulk_litres, strength=strengths)
    @settings(max_examples=200)
    def test_al_over_bl_recovers_strength(self, bl, strength):
        al = volume_to_absolute(bl, strength)

        # AL is rounded to 2 places, so the ratio is off by at most 0.005 / BL.
        assert abs(al / bl - strength / Decimal("100")) <= Decimal("0.005") / bl
        assert al <= bl
