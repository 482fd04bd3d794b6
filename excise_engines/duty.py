"""
excise_engines.duty -- Excise duty accrual, payments and status.

Responsibility:
    Select the duty rate effective on a date, accrue duty on units issued,
    carry the running balance (opening + accrued - payments), classify the
    payment status, apply treasury challans, and break a Reg-B issue down
    into duty per strength band.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Rate schedules are passed in as parameters; the caller loads them.

Invariants enforced:
    - Rate selection: active rows with effective_from <= date and
      (effective_to is None or effective_to >= date); latest effective_from
      wins.
    - closing = opening + accrued - payments, recomputed on every change.
    - Status: closing <= 0 -> FULLY_PAID; |closing - liability| < 0.01 ->
      PENDING; 0 < closing < liability -> PARTIAL_PAID.

Failure modes:
    - MissingRateError from compute_entry when no rate covers the date.
    - ValidationError for negative units, rates or payments.

Usage:
    engine = ExciseDutyEngine()
    entry = engine.compute_entry(
        month_year=date(2024, 4, 1), category="CL", subcategory="50° U.P.",
        units_issued=Decimal("150"), rates=schedule,
    )
"""

from __future__ import annotations

import time
from dataclasses import dataclass, replace
from datetime import date
from decimal import Decimal
from typing import Any, Iterable

from excise_kernel.domain.registers import (
    CountryLiquorIssueEntry,
    DutyLedgerEntry,
    DutyRateSchedule,
    DutyStatus,
    StrengthBand,
    TreasuryChallan,
)
from excise_kernel.domain.values import CENT, ZERO, round2, to_decimal
from excise_kernel.exceptions import MissingRateError, ValidationError
from excise_kernel.logging_config import get_logger
from excise_engines.reg_b import RegBEngine
from excise_engines.tracer import traced_engine

logger = get_logger("engines.duty")

REGISTER = "Excise Duty"
COUNTRY_LIQUOR = "CL"


@dataclass(frozen=True)
class DutyBreakdownLine:
    """Duty on one strength band of a Reg-B issue. rate is None when no rate applies."""

    band: StrengthBand
    subcategory: str
    bl: Decimal
    rate: Decimal | None
    duty: Decimal

    @property
    def has_rate(self) -> bool:
        return self.rate is not None


def first_of_month(value: date) -> date:
    return value.replace(day=1)


def previous_month(value: date) -> date:
    """First day of the month before value's month."""
    month_start = first_of_month(value)
    if month_start.month == 1:
        return month_start.replace(year=month_start.year - 1, month=12)
    return month_start.replace(month=month_start.month - 1)


class ExciseDutyEngine:
    """
    Pure duty calculator.

    Contract:
        No I/O, no clock access: "today" is passed to validate_challan.
    """

    @staticmethod
    def get_current_rate(
        rates: Iterable[DutyRateSchedule],
        category: str,
        subcategory: str,
        on_date: date,
    ) -> DutyRateSchedule | None:
        """Latest-effective active rate covering on_date, or None."""
        candidates = [
            r for r in rates
            if r.category == category and r.subcategory == subcategory and r.covers(on_date)
        ]
        if not candidates:
            return None
        return max(candidates, key=lambda r: r.effective_from)

    def require_rate(
        self,
        rates: Iterable[DutyRateSchedule],
        category: str,
        subcategory: str,
        on_date: date,
    ) -> DutyRateSchedule:
        rate = self.get_current_rate(rates, category, subcategory, on_date)
        if rate is None:
            logger.error("duty_rate_missing", extra={
                "category": category,
                "subcategory": subcategory,
                "on_date": on_date.isoformat(),
            })
            raise MissingRateError(category, subcategory, on_date.isoformat())
        return rate

    @staticmethod
    def duty_accrued(units: Any, rate: Any) -> Decimal:
        """units x rate, rounded; rejects negatives."""
        units = to_decimal(units, "units")
        rate = to_decimal(rate, "rate")
        errors = []
        if units < ZERO:
            errors.append("units issued cannot be negative")
        if rate < ZERO:
            errors.append("rate cannot be negative")
        if errors:
            raise ValidationError(errors, register=REGISTER)
        return round2(units * rate)

    @staticmethod
    def closing_balance(opening: Any, accrued: Any, payments: Any) -> Decimal:
        return round2(
            to_decimal(opening, "opening")
            + to_decimal(accrued, "accrued")
            - to_decimal(payments, "payments")
        )

    @staticmethod
    def determine_status(closing: Any, liability: Any) -> DutyStatus:
        closing = to_decimal(closing, "closing")
        liability = to_decimal(liability, "liability")
        if closing <= ZERO:
            return DutyStatus.FULLY_PAID
        if abs(closing - liability) < CENT:
            return DutyStatus.PENDING
        if closing < liability:
            return DutyStatus.PARTIAL_PAID
        return DutyStatus.PENDING

    def recompute(self, entry: DutyLedgerEntry) -> DutyLedgerEntry:
        """Refresh closing balance and status from the entry's own figures."""
        closing = self.closing_balance(
            entry.opening_balance, entry.duty_accrued, entry.total_payments
        )
        status = self.determine_status(closing, entry.opening_balance + entry.duty_accrued)
        return replace(entry, closing_balance=closing, status=status)

    @traced_engine(
        "duty", "1.0",
        fingerprint_fields=("month_year", "category", "subcategory", "units_issued", "opening_balance"),
    )
    def compute_entry(
        self,
        month_year: date,
        category: str,
        subcategory: str,
        units_issued: Any,
        rates: Iterable[DutyRateSchedule],
        opening_balance: Any = ZERO,
        total_payments: Any = ZERO,
        rate_date: date | None = None,
    ) -> DutyLedgerEntry:
        """
        Build a ledger row: rate lookup, accrual, closing and status.

        The rate is looked up on rate_date, defaulting to the first of the
        month.

        Raises:
            MissingRateError: No rate covers the date.
            ValidationError: Negative units or payments.
        """
        t0 = time.monotonic()
        month_year = first_of_month(month_year)
        lookup_date = rate_date or month_year
        logger.info("duty_compute_started", extra={
            "month_year": month_year.isoformat(),
            "category": category,
            "subcategory": subcategory,
            "units_issued": str(units_issued),
        })

        payments = to_decimal(total_payments, "total_payments")
        if payments < ZERO:
            raise ValidationError(["total payments cannot be negative"], register=REGISTER)

        rate = self.require_rate(rates, category, subcategory, lookup_date)
        accrued = self.duty_accrued(units_issued, rate.rate_per_unit)

        entry = self.recompute(DutyLedgerEntry(
            month_year=month_year,
            category=category,
            subcategory=subcategory,
            total_units_issued=round2(to_decimal(units_issued, "units_issued")),
            applied_rate=rate.rate_per_unit,
            duty_accrued=accrued,
            opening_balance=round2(to_decimal(opening_balance, "opening_balance")),
            total_payments=round2(payments),
        ))

        duration_ms = round((time.monotonic() - t0) * 1000, 2)
        logger.info("duty_compute_completed", extra={
            "applied_rate": str(entry.applied_rate),
            "duty_accrued": str(entry.duty_accrued),
            "closing_balance": str(entry.closing_balance),
            "status": entry.status.value,
            "duration_ms": duration_ms,
        })
        return entry

    def apply_payment(self, entry: DutyLedgerEntry, challan: TreasuryChallan) -> DutyLedgerEntry:
        """
        Add a challan's amount to the entry's payments and recompute.

        Raises:
            ValidationError: Non-positive amount.
        """
        if challan.amount_paid <= ZERO:
            raise ValidationError(["amount_paid must be a positive number"], register=REGISTER)
        updated = self.recompute(replace(
            entry, total_payments=round2(entry.total_payments + challan.amount_paid)
        ))
        logger.info("duty_payment_applied", extra={
            "duty_entry_id": str(entry.id),
            "challan_number": challan.challan_number,
            "amount_paid": str(challan.amount_paid),
            "closing_balance": str(updated.closing_balance),
            "status": updated.status.value,
        })
        return updated

    @staticmethod
    def validate_challan(challan: TreasuryChallan, today: date) -> list[str]:
        errors: list[str] = []
        if not challan.challan_number or not challan.challan_number.strip():
            errors.append("challan_number is required")
        if challan.challan_date is None:
            errors.append("challan_date is required")
        elif challan.challan_date > today:
            errors.append("challan_date cannot be in the future")
        if challan.duty_entry_id is None:
            errors.append("duty_entry_id is required")
        if challan.amount_paid <= ZERO:
            errors.append("amount_paid must be a positive number")
        return errors

    def validate_duty_entry(self, entry: DutyLedgerEntry) -> list[str]:
        errors: list[str] = []
        if entry.month_year is None:
            errors.append("month_year is required")
        if not entry.category:
            errors.append("category is required")
        if not entry.subcategory:
            errors.append("subcategory is required")
        if entry.total_units_issued < ZERO:
            errors.append("total_units_issued cannot be negative")
        if entry.applied_rate < ZERO:
            errors.append("applied_rate cannot be negative")
        if entry.duty_accrued < ZERO:
            errors.append("duty_accrued cannot be negative")
        expected = self.closing_balance(
            entry.opening_balance, entry.duty_accrued, entry.total_payments
        )
        if abs(entry.closing_balance - expected) > CENT:
            errors.append(
                f"closing balance mismatch: expected {expected}, got {entry.closing_balance}"
            )
        return errors

    @traced_engine("duty", "1.0", fingerprint_fields=("issue_entry", "on_date"))
    def duty_breakdown(
        self,
        issue_entry: CountryLiquorIssueEntry,
        rates: Iterable[DutyRateSchedule],
        on_date: date | None = None,
    ) -> dict[StrengthBand, DutyBreakdownLine]:
        """
        Duty per strength band for a Reg-B issue, at CL rates on on_date
        (default: the entry date).  Bands without a rate show rate None
        and duty 0.
        """
        rates = list(rates)
        lookup_date = on_date or issue_entry.entry_date
        lines: dict[StrengthBand, DutyBreakdownLine] = {}
        for band, bl in RegBEngine.issue_bl_by_band(issue_entry).items():
            rate = (
                self.get_current_rate(rates, COUNTRY_LIQUOR, band.label, lookup_date)
                if lookup_date is not None
                else None
            )
            lines[band] = DutyBreakdownLine(
                band=band,
                subcategory=band.label,
                bl=bl,
                rate=rate.rate_per_unit if rate else None,
                duty=round2(bl * rate.rate_per_unit) if rate else round2(ZERO),
            )
        return lines
