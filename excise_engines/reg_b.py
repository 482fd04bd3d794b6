"""
excise_engines.reg_b -- Country-liquor issue register (Reg-B) totals.

Responsibility:
    Convert the four bottle-count sections of a Reg-B entry (opening,
    receipt, issue, wastage), each spread over 6 bottle sizes x 4 strength
    bands, into BL/AL totals; derive the closing stock and the production
    fees on issued bottles; enforce the stock balance; and pre-fill the
    receipt section from a completed Reg-A bottling session.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Uses excise_engines.units for the strength band lookup.

Invariants enforced:
    - The 24 combinations are a static table (COMBINATIONS); no other key
      is accepted by the record.
    - BL and AL are summed independently per section and rounded once per
      section; AL per combination uses the band's nominal strength.
    - closing = opening + receipt - issue - wastage (BL and AL).
    - |(opening + receipt) - (issue + wastage + closing)| < tolerance,
      otherwise BalanceViolationError before anything is persisted.
    - production fees = issued bottles x fee per bottle.

Failure modes:
    - ValidationError when the entry date is missing or every count is 0.
    - BalanceViolationError when the balance check fails.

Usage:
    engine = RegBEngine()
    entry = engine.compute_all(CountryLiquorIssueEntry(
        entry_date=date(2024, 4, 2),
        opening={"750_50": 200},
        issue={"750_50": 100},
    ))
    entry.production_fees   # Decimal("300.00")
"""

from __future__ import annotations

import time
from dataclasses import dataclass, replace
from decimal import Decimal
from typing import Iterable, Mapping

from excise_kernel.domain.registers import (
    BottleSize,
    BottlingProductionEntry,
    CountryLiquorIssueEntry,
    ProductionStatus,
    RegBSection,
    StrengthBand,
    combination_key,
)
from excise_kernel.domain.values import CENT, HUNDRED, ZERO, SpiritVolume, round2, to_decimal
from excise_kernel.exceptions import BalanceViolationError, ValidationError
from excise_kernel.logging_config import get_logger
from excise_engines.tracer import traced_engine
from excise_engines.units import strength_band_for

logger = get_logger("engines.reg_b")

REGISTER = "Reg-B"

DEFAULT_FEE_PER_BOTTLE = Decimal("3.00")
DEFAULT_BALANCE_TOLERANCE = CENT


@dataclass(frozen=True)
class RegBCombination:
    """One of the 24 size/band cells of a Reg-B section."""

    key: str
    size: BottleSize
    band: StrengthBand

    @property
    def litres(self) -> Decimal:
        return self.size.litres

    @property
    def strength(self) -> Decimal:
        return self.band.strength


COMBINATIONS: tuple[RegBCombination, ...] = tuple(
    RegBCombination(combination_key(size, band), size, band)
    for size in BottleSize
    for band in StrengthBand
)

_COMBINATION_BY_KEY: dict[str, RegBCombination] = {c.key: c for c in COMBINATIONS}


@dataclass(frozen=True)
class RegBTotals:
    opening: SpiritVolume
    receipt: SpiritVolume
    issue: SpiritVolume
    wastage: SpiritVolume
    closing: SpiritVolume
    issued_bottles: int
    production_fees: Decimal


@dataclass(frozen=True)
class BalanceCheck:
    is_balanced: bool
    left_side: Decimal
    right_side: Decimal
    difference: Decimal


@dataclass(frozen=True)
class BandIssueSummary:
    """Issued BL for one strength band over a set of entries."""

    band: StrengthBand
    bl: Decimal
    entry_count: int


def section_totals(counts: Mapping[str, int]) -> SpiritVolume:
    """BL and AL for one section, each summed unrounded and rounded once."""
    total_bl = ZERO
    total_al = ZERO
    for key, count in (counts or {}).items():
        combination = _COMBINATION_BY_KEY.get(key)
        if combination is None or count <= 0:
            continue
        bl = combination.litres * count
        total_bl += bl
        total_al += bl * combination.strength / HUNDRED
    return SpiritVolume(round2(total_bl), round2(total_al))


def production_fees(issued_bottles: int, fee_per_bottle: Decimal = DEFAULT_FEE_PER_BOTTLE) -> Decimal:
    """Fees on issued bottles; 0 for no bottles."""
    if issued_bottles <= 0:
        return round2(ZERO)
    return round2(Decimal(issued_bottles) * to_decimal(fee_per_bottle, "fee_per_bottle"))


class RegBEngine:
    """
    Pure calculator for Reg-B entries.

    Contract:
        Returns new entries; never mutates input.
    """

    def __init__(
        self,
        fee_per_bottle: Decimal = DEFAULT_FEE_PER_BOTTLE,
        balance_tolerance: Decimal = DEFAULT_BALANCE_TOLERANCE,
    ):
        self.fee_per_bottle = to_decimal(fee_per_bottle, "fee_per_bottle")
        self.balance_tolerance = to_decimal(balance_tolerance, "balance_tolerance")

    @traced_engine("reg_b", "1.0", fingerprint_fields=("entry",))
    def compute_totals(self, entry: CountryLiquorIssueEntry) -> RegBTotals:
        opening = section_totals(entry.opening)
        receipt = section_totals(entry.receipt)
        issue = section_totals(entry.issue)
        wastage = section_totals(entry.wastage)
        closing = (opening + receipt - issue - wastage).rounded()
        issued_bottles = sum(entry.issue.values())
        return RegBTotals(
            opening=opening,
            receipt=receipt,
            issue=issue,
            wastage=wastage,
            closing=closing,
            issued_bottles=issued_bottles,
            production_fees=production_fees(issued_bottles, self.fee_per_bottle),
        )

    def validate_balance(self, totals: RegBTotals) -> BalanceCheck:
        """opening + receipt vs issue + wastage + closing, in BL."""
        left = totals.opening.bl + totals.receipt.bl
        right = totals.issue.bl + totals.wastage.bl + totals.closing.bl
        difference = abs(left - right)
        return BalanceCheck(
            is_balanced=difference < self.balance_tolerance,
            left_side=round2(left),
            right_side=round2(right),
            difference=round2(difference),
        )

    @staticmethod
    def validate_entry(entry: CountryLiquorIssueEntry) -> list[str]:
        errors: list[str] = []
        if entry.entry_date is None:
            errors.append("entry_date is required")
        if not any(
            count > 0
            for section in RegBSection
            for count in entry.section_counts(section).values()
        ):
            errors.append("at least one bottle count must be greater than zero")
        return errors

    def compute_all(self, entry: CountryLiquorIssueEntry) -> CountryLiquorIssueEntry:
        """
        Validate, total and balance-check an entry.

        Raises:
            ValidationError: Missing date or no positive count.
            BalanceViolationError: Section totals do not balance.
        """
        t0 = time.monotonic()
        logger.info("regb_compute_started", extra={"entry_id": str(entry.id)})

        errors = self.validate_entry(entry)
        if errors:
            logger.warning("regb_validation_failed", extra={
                "entry_id": str(entry.id),
                "errors": errors,
            })
            raise ValidationError(errors, register=REGISTER)

        totals = self.compute_totals(entry)
        check = self.validate_balance(totals)
        if not check.is_balanced:
            logger.error("regb_balance_violation", extra={
                "entry_id": str(entry.id),
                "left_side": str(check.left_side),
                "right_side": str(check.right_side),
                "difference": str(check.difference),
            })
            raise BalanceViolationError(check.left_side, check.right_side, check.difference)

        result = replace(
            entry,
            opening_bl=totals.opening.bl,
            opening_al=totals.opening.al,
            receipt_bl=totals.receipt.bl,
            receipt_al=totals.receipt.al,
            issue_bl=totals.issue.bl,
            issue_al=totals.issue.al,
            wastage_bl=totals.wastage.bl,
            wastage_al=totals.wastage.al,
            closing_bl=totals.closing.bl,
            closing_al=totals.closing.al,
            production_fees=totals.production_fees,
        )

        duration_ms = round((time.monotonic() - t0) * 1000, 2)
        logger.info("regb_compute_completed", extra={
            "entry_id": str(entry.id),
            "issue_bl": str(result.issue_bl),
            "closing_bl": str(result.closing_bl),
            "production_fees": str(result.production_fees),
            "duration_ms": duration_ms,
        })
        return result

    @staticmethod
    def auto_fill_from_completed_reg_a(
        production: BottlingProductionEntry,
    ) -> dict[str, int] | None:
        """
        Receipt-section counts for a completed bottling session.

        The session's average strength picks the band; its per-size counts
        land in that band.  Returns None for a session that is not
        COMPLETED or whose strength falls outside every band.
        """
        if production is None or production.status != ProductionStatus.COMPLETED:
            return None
        band = strength_band_for(production.avg_strength)
        if band is None:
            logger.warning("regb_autofill_unmapped_strength", extra={
                "production_id": str(production.id),
                "avg_strength": str(production.avg_strength),
            })
            return None
        return {
            combination_key(size, band): count
            for size, count in production.bottle_counts.items()
            if count > 0
        }

    @staticmethod
    def issue_bl_by_band(entry: CountryLiquorIssueEntry) -> dict[StrengthBand, Decimal]:
        """Issued BL per strength band (bands with no issues are omitted)."""
        totals: dict[StrengthBand, Decimal] = {}
        for combination in COMBINATIONS:
            count = entry.issue.get(combination.key, 0)
            if count > 0:
                totals[combination.band] = (
                    totals.get(combination.band, ZERO) + combination.litres * count
                )
        return {band: round2(bl) for band, bl in totals.items()}

    @classmethod
    def monthly_issue_summary(
        cls, entries: Iterable[CountryLiquorIssueEntry]
    ) -> dict[StrengthBand, BandIssueSummary]:
        """Issued BL per band across entries, with how many entries issued each band."""
        bl: dict[StrengthBand, Decimal] = {band: ZERO for band in StrengthBand}
        counts: dict[StrengthBand, int] = {band: 0 for band in StrengthBand}
        for entry in entries:
            for band, band_bl in cls.issue_bl_by_band(entry).items():
                bl[band] += band_bl
                counts[band] += 1
        return {
            band: BandIssueSummary(band=band, bl=round2(bl[band]), entry_count=counts[band])
            for band in StrengthBand
        }
