"""
excise_engines.production_fees -- Daily production fee account.

Responsibility:
    Gather the bottles produced on a day by completed Reg-A sessions into
    size/strength combinations, charge the production fee on their bulk
    litres, and keep the running balance of challan deposits against
    those fees.  Summarises the account over a trailing window.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Reuses the Reg-B combination table (excise_engines.reg_b) for BL.

Invariants enforced:
    - Only COMPLETED sessions count; the session's average strength picks
      the band, and a session outside every band is skipped.
    - fees_debited = total production BL x fee per BL.
    - total_credited = opening + deposit.
    - closing = total_credited - fees_debited (may go negative).

Failure modes:
    - ValidationError for a deposit that is not positive or lacks challan
      details, or a challan dated in the future.

Usage:
    engine = ProductionFeeEngine()
    counts, sessions = engine.production_counts(completed_sessions)
    entry = engine.compute_entry(date(2024, 4, 2), counts, opening_balance=500)
"""

from __future__ import annotations

import time
from dataclasses import dataclass, replace
from datetime import date, timedelta
from decimal import Decimal
from typing import Any, Iterable, Mapping

from excise_kernel.domain.registers import (
    BottlingProductionEntry,
    ProductionFeeEntry,
    ProductionStatus,
    combination_key,
)
from excise_kernel.domain.values import ZERO, round2, to_decimal
from excise_kernel.exceptions import ValidationError
from excise_kernel.logging_config import get_logger
from excise_engines.reg_b import section_totals
from excise_engines.tracer import traced_engine
from excise_engines.units import strength_band_for

logger = get_logger("engines.production_fees")

REGISTER = "Production Fees"

DEFAULT_FEE_PER_BL = Decimal("3.00")
DEFAULT_SUMMARY_DAYS = 30


@dataclass(frozen=True)
class FeeLedgerSummary:
    """Account position plus totals over the trailing window."""

    total_entries: int
    current_balance: Decimal
    last_entry_date: date | None
    window_days: int
    window_fees: Decimal
    window_deposits: Decimal
    window_production_bl: Decimal


class ProductionFeeEngine:
    """
    Pure calculator for production fee entries.

    Contract:
        Returns new entries; never mutates input.  "today" is a parameter.
    """

    def __init__(self, fee_per_bl: Decimal = DEFAULT_FEE_PER_BL):
        self.fee_per_bl = to_decimal(fee_per_bl, "fee_per_bl")

    @staticmethod
    def production_counts(
        productions: Iterable[BottlingProductionEntry],
    ) -> tuple[dict[str, int], int]:
        """
        Bottles per combination across completed sessions, and how many
        sessions contributed.
        """
        counts: dict[str, int] = {}
        sessions = 0
        for production in productions:
            if production.status != ProductionStatus.COMPLETED:
                continue
            band = strength_band_for(production.avg_strength)
            if band is None:
                logger.warning("production_fee_unmapped_strength", extra={
                    "production_id": str(production.id),
                    "avg_strength": str(production.avg_strength),
                })
                continue
            for size, count in production.bottle_counts.items():
                if count > 0:
                    key = combination_key(size, band)
                    counts[key] = counts.get(key, 0) + count
            sessions += 1
        return counts, sessions

    def fees_on(self, bulk_litres: Any) -> Decimal:
        return round2(to_decimal(bulk_litres, "bulk_litres") * self.fee_per_bl)

    @staticmethod
    def validate_deposit(
        amount: Any,
        challan_no: str | None,
        challan_date: date | None,
        today: date,
    ) -> list[str]:
        errors: list[str] = []
        if to_decimal(amount, "deposit_amount") <= ZERO:
            errors.append("deposit_amount must be a positive number")
        if not challan_no or not challan_no.strip():
            errors.append("challan_no is required")
        if challan_date is None:
            errors.append("challan_date is required")
        elif challan_date > today:
            errors.append("challan_date cannot be in the future")
        return errors

    def recompute(self, entry: ProductionFeeEntry) -> ProductionFeeEntry:
        """Refresh BL, fees, credit and closing from the entry's own figures."""
        total_bl = section_totals(entry.production).bl
        fees = self.fees_on(total_bl)
        credited = round2(entry.opening_balance + entry.deposit_amount)
        return replace(
            entry,
            total_production_bl=total_bl,
            fees_debited=fees,
            total_credited=credited,
            closing_balance=round2(credited - fees),
        )

    @traced_engine(
        "production_fees", "1.0",
        fingerprint_fields=("entry_date", "production", "opening_balance", "deposit_amount"),
    )
    def compute_entry(
        self,
        entry_date: date,
        production: Mapping[str, int],
        opening_balance: Any = ZERO,
        deposit_amount: Any = ZERO,
        challan_no: str | None = None,
        challan_date: date | None = None,
        production_count: int = 0,
        remarks: str | None = None,
    ) -> ProductionFeeEntry:
        """
        Build a day's fee entry.

        The opening may be negative when earlier fees outran deposits.

        Raises:
            ValidationError: Negative deposit, or a deposit without challan
                details.
        """
        t0 = time.monotonic()
        logger.info("production_fee_compute_started", extra={
            "entry_date": entry_date.isoformat(),
            "opening_balance": str(opening_balance),
            "deposit_amount": str(deposit_amount),
        })

        errors: list[str] = []
        deposit = to_decimal(deposit_amount, "deposit_amount")
        if deposit < ZERO:
            errors.append("deposit_amount cannot be negative")
        elif deposit > ZERO and not (challan_no and challan_no.strip() and challan_date):
            errors.append("a deposit requires challan_no and challan_date")
        if errors:
            logger.warning("production_fee_validation_failed", extra={
                "entry_date": entry_date.isoformat(),
                "errors": errors,
            })
            raise ValidationError(errors, register=REGISTER)

        entry = self.recompute(ProductionFeeEntry(
            entry_date=entry_date,
            production=production,
            opening_balance=round2(to_decimal(opening_balance, "opening_balance")),
            deposit_amount=round2(deposit),
            challan_no=challan_no.strip() if challan_no else None,
            challan_date=challan_date,
            production_count=production_count,
            remarks=remarks,
        ))

        duration_ms = round((time.monotonic() - t0) * 1000, 2)
        logger.info("production_fee_compute_completed", extra={
            "entry_date": entry_date.isoformat(),
            "total_production_bl": str(entry.total_production_bl),
            "fees_debited": str(entry.fees_debited),
            "closing_balance": str(entry.closing_balance),
            "duration_ms": duration_ms,
        })
        return entry

    @staticmethod
    def summarize(
        entries: Iterable[ProductionFeeEntry],
        as_of: date,
        days: int = DEFAULT_SUMMARY_DAYS,
    ) -> FeeLedgerSummary:
        """
        Position as of the latest entry; window totals cover entries dated
        from as_of - days through as_of.
        """
        entries = sorted(entries, key=lambda e: e.entry_date)
        window_start = as_of - timedelta(days=days)
        window = [e for e in entries if window_start <= e.entry_date <= as_of]
        latest = entries[-1] if entries else None
        return FeeLedgerSummary(
            total_entries=len(entries),
            current_balance=latest.closing_balance if latest else round2(ZERO),
            last_entry_date=latest.entry_date if latest else None,
            window_days=days,
            window_fees=round2(sum((e.fees_debited for e in window), ZERO)),
            window_deposits=round2(sum((e.deposit_amount for e in window), ZERO)),
            window_production_bl=round2(sum((e.total_production_bl for e in window), ZERO)),
        )
