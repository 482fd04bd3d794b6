"""
excise_engines.reg78 -- Master spirit ledger (Reg-78) aggregation and reconciliation.

Responsibility:
    Roll the day's source registers up into one master ledger entry:
    opening carried from the previous day's closing, receipts from Reg-76,
    issues from completed Reg-A bottling, and wastage from Reg-76 transit,
    Reg-74 vat adjustments/dead stock and Reg-A chargeable production
    wastage.  Reconcile the calculated closing against a physical
    verification, sign the day off, and report variances.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Source entries are passed in; the caller queries the repository.

Invariants enforced:
    - closing = opening + receipt - issue - wastage, in BL and in AL.
    - Reg-B issues are not master ledger issues (they are downstream of the
      Reg-A bottling already counted).
    - Reg-A chargeable wastage and Reg-74 dead stock are AL-only figures.
    - Transit wastage enters BL only as a shortfall (never negative).
    - Aggregating the same sources twice gives identical figures.
    - variance % = (actual - calculated) / calculated x 100, 0 when the
      calculated closing is 0; reconciled when |variance| <= threshold.

Failure modes:
    - AlreadyReconciledError when reconciling or signing off an entry that
      has already been signed off.
    - ReconciliationRemarksRequiredError when signing off a variance above
      the threshold without remarks.

Usage:
    aggregator = Reg78Aggregator()
    entry = aggregator.aggregate(day, previous, receipts, productions, events)
    entry = aggregator.reconcile(entry, actual_closing_bl=Decimal("10450"))
"""

from __future__ import annotations

import time
from dataclasses import dataclass, replace
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Iterable

from excise_kernel.domain.registers import (
    BottlingProductionEntry,
    MasterLedgerEntry,
    MASTER_FIGURE_FIELDS,
    ProductionStatus,
    SpiritReceiptEntry,
    VatEvent,
    VatEventType,
)
from excise_kernel.domain.values import CENT, HUNDRED, ZERO, SpiritVolume, round2, to_decimal
from excise_kernel.exceptions import (
    AlreadyReconciledError,
    ReconciliationRemarksRequiredError,
)
from excise_kernel.logging_config import get_logger
from excise_engines.tracer import traced_engine

logger = get_logger("engines.reg78")

DEFAULT_VARIANCE_THRESHOLD = Decimal("1.0")

_LEDGER_EVENT_TYPES = (VatEventType.ADJUSTMENT, VatEventType.PRODUCTION)


@dataclass(frozen=True)
class SourceContribution:
    """One source entry's share of a master ledger figure."""

    source: str
    entry_id: str
    reference: str
    bl: Decimal
    al: Decimal


@dataclass(frozen=True)
class DrillDown:
    """Per-source breakdown of a day's receipts, issues and wastage."""

    entry_date: date
    receipts: tuple[SourceContribution, ...] = ()
    issues: tuple[SourceContribution, ...] = ()
    wastage: tuple[SourceContribution, ...] = ()

    @staticmethod
    def _total(lines: tuple[SourceContribution, ...]) -> SpiritVolume:
        total = SpiritVolume.zero()
        for line in lines:
            total = total + SpiritVolume(line.bl, line.al)
        return total.rounded()

    @property
    def receipt_total(self) -> SpiritVolume:
        return self._total(self.receipts)

    @property
    def issue_total(self) -> SpiritVolume:
        return self._total(self.issues)

    @property
    def wastage_total(self) -> SpiritVolume:
        return self._total(self.wastage)


@dataclass(frozen=True)
class VarianceReport:
    threshold: Decimal
    entries: tuple[MasterLedgerEntry, ...]
    average_variance: Decimal

    @property
    def entries_exceeding_threshold(self) -> int:
        return len(self.entries)


@dataclass(frozen=True)
class LedgerSummary:
    total_entries: int
    total_receipts: SpiritVolume
    total_issues: SpiritVolume
    total_wastage: SpiritVolume
    current_closing: SpiritVolume
    reconciled_count: int
    pending_reconciliation: int
    average_variance: Decimal


def _on(value: date | datetime | None, day: date) -> bool:
    if value is None:
        return False
    if isinstance(value, datetime):
        value = value.date()
    return value == day


def calculate_variance(calculated: Any, actual: Any) -> Decimal:
    """Variance % of actual against calculated; 0 when calculated is 0."""
    calculated = to_decimal(calculated, "calculated")
    actual = to_decimal(actual, "actual")
    if calculated == ZERO:
        return round2(ZERO)
    return round2((actual - calculated) / calculated * HUNDRED)


def is_within_threshold(variance: Any, threshold: Any = DEFAULT_VARIANCE_THRESHOLD) -> bool:
    return abs(to_decimal(variance, "variance")) <= to_decimal(threshold, "threshold")


class Reg78Aggregator:
    """
    Pure aggregator for the master spirit ledger.

    Contract:
        Inputs may contain entries for other dates or statuses; each method
        selects what belongs to the requested day itself.
    """

    def __init__(self, variance_threshold: Decimal = DEFAULT_VARIANCE_THRESHOLD):
        self.variance_threshold = to_decimal(variance_threshold, "variance_threshold")

    # ------------------------------------------------------------------
    # Source selection
    # ------------------------------------------------------------------

    @staticmethod
    def _day_receipts(day: date, receipts: Iterable[SpiritReceiptEntry]) -> list[SpiritReceiptEntry]:
        return [r for r in receipts if _on(r.receipt_date, day)]

    @staticmethod
    def _day_productions(
        day: date, productions: Iterable[BottlingProductionEntry]
    ) -> list[BottlingProductionEntry]:
        return [
            p for p in productions
            if p.status == ProductionStatus.COMPLETED and _on(p.production_date, day)
        ]

    @staticmethod
    def _day_events(day: date, events: Iterable[VatEvent]) -> list[VatEvent]:
        return [
            e for e in events
            if e.event_type in _LEDGER_EVENT_TYPES and _on(e.event_datetime, day)
        ]

    # ------------------------------------------------------------------
    # Aggregation
    # ------------------------------------------------------------------

    def drill_down(
        self,
        entry_date: date,
        receipts: Iterable[SpiritReceiptEntry],
        productions: Iterable[BottlingProductionEntry],
        vat_events: Iterable[VatEvent],
    ) -> DrillDown:
        """Every source contribution to the day's receipts, issues and wastage."""
        day_receipts = self._day_receipts(entry_date, receipts)
        day_productions = self._day_productions(entry_date, productions)
        day_events = self._day_events(entry_date, vat_events)

        receipt_lines = tuple(
            SourceContribution("Reg-76", str(r.id), r.permit_no, r.received_bl, r.received_al)
            for r in day_receipts
        )
        issue_lines = tuple(
            SourceContribution(
                "Reg-A", str(p.id), p.batch_id, p.spirit_bottled_bl, p.spirit_bottled_al
            )
            for p in day_productions
        )

        wastage_lines: list[SourceContribution] = []
        for r in day_receipts:
            bl = max(ZERO, r.transit_wastage_bl)
            if bl > ZERO or r.transit_wastage_al > ZERO:
                wastage_lines.append(SourceContribution(
                    "Reg-76", str(r.id), r.permit_no, bl, r.transit_wastage_al
                ))
        for e in day_events:
            if e.is_wastage_adjustment:
                wastage_lines.append(SourceContribution(
                    "Reg-74", str(e.id), e.vat_code, e.qty_bl, e.qty_al
                ))
            elif e.event_type == VatEventType.PRODUCTION and e.dead_stock_al > ZERO:
                wastage_lines.append(SourceContribution(
                    "Reg-74", str(e.id), e.vat_code, ZERO, e.dead_stock_al
                ))
        for p in day_productions:
            if p.chargeable_wastage_al > ZERO:
                wastage_lines.append(SourceContribution(
                    "Reg-A", str(p.id), p.batch_id, ZERO, p.chargeable_wastage_al
                ))

        return DrillDown(
            entry_date=entry_date,
            receipts=receipt_lines,
            issues=issue_lines,
            wastage=tuple(wastage_lines),
        )

    @traced_engine("reg78", "1.0", fingerprint_fields=("entry_date", "previous"))
    def aggregate(
        self,
        entry_date: date,
        previous: MasterLedgerEntry | None,
        receipts: Iterable[SpiritReceiptEntry],
        productions: Iterable[BottlingProductionEntry],
        vat_events: Iterable[VatEvent],
    ) -> MasterLedgerEntry:
        """
        Build the day's master ledger entry.

        previous is the prior day's entry (None gives a zero opening).
        """
        t0 = time.monotonic()
        receipts = list(receipts)
        productions = list(productions)
        vat_events = list(vat_events)
        logger.info("reg78_aggregation_started", extra={
            "entry_date": entry_date.isoformat(),
            "has_previous": previous is not None,
        })

        opening = (
            SpiritVolume(previous.closing_bl, previous.closing_al)
            if previous is not None
            else SpiritVolume.zero()
        )
        detail = self.drill_down(entry_date, receipts, productions, vat_events)
        receipt = detail.receipt_total
        issue = detail.issue_total
        wastage = detail.wastage_total
        closing = (opening + receipt - issue - wastage).rounded()

        entry = MasterLedgerEntry(
            entry_date=entry_date,
            opening_bl=round2(opening.bl),
            opening_al=round2(opening.al),
            receipt_bl=receipt.bl,
            receipt_al=receipt.al,
            issue_bl=issue.bl,
            issue_al=issue.al,
            wastage_bl=wastage.bl,
            wastage_al=wastage.al,
            closing_bl=closing.bl,
            closing_al=closing.al,
            receipt_count=len(detail.receipts),
            production_count=len(detail.issues),
            vat_event_count=len(self._day_events(entry_date, vat_events)),
        )

        duration_ms = round((time.monotonic() - t0) * 1000, 2)
        logger.info("reg78_aggregation_completed", extra={
            "entry_date": entry_date.isoformat(),
            "opening_bl": str(entry.opening_bl),
            "receipt_bl": str(entry.receipt_bl),
            "issue_bl": str(entry.issue_bl),
            "wastage_bl": str(entry.wastage_bl),
            "closing_bl": str(entry.closing_bl),
            "closing_al": str(entry.closing_al),
            "duration_ms": duration_ms,
        })
        return entry

    @staticmethod
    def same_figures(a: MasterLedgerEntry, b: MasterLedgerEntry) -> bool:
        return all(getattr(a, name) == getattr(b, name) for name in MASTER_FIGURE_FIELDS)

    # ------------------------------------------------------------------
    # Validation and reconciliation
    # ------------------------------------------------------------------

    @staticmethod
    def validate_entry(entry: MasterLedgerEntry) -> list[str]:
        """Non-negative figures and the BL balance equation within 0.01."""
        errors: list[str] = []
        if entry.entry_date is None:
            errors.append("entry_date is required")
        for name in MASTER_FIGURE_FIELDS:
            if getattr(entry, name) < ZERO:
                errors.append(f"{name} must be a non-negative number")
        expected = entry.opening_bl + entry.receipt_bl - entry.issue_bl - entry.wastage_bl
        if abs(expected - entry.closing_bl) > CENT:
            errors.append(
                f"balance equation mismatch (BL): expected {round2(expected)}, got {entry.closing_bl}"
            )
        return errors

    def reconcile(
        self,
        entry: MasterLedgerEntry,
        actual_closing_bl: Any,
        threshold: Any = None,
    ) -> MasterLedgerEntry:
        """
        Record a physical verification and derive variance and status.

        Raises:
            AlreadyReconciledError: The entry has been signed off.
        """
        if entry.reconciled_by is not None:
            raise AlreadyReconciledError(entry.entry_date.isoformat())
        threshold = self.variance_threshold if threshold is None else to_decimal(threshold, "threshold")
        actual = round2(to_decimal(actual_closing_bl, "actual_closing_bl"))
        variance = calculate_variance(entry.closing_bl, actual)
        result = replace(
            entry,
            actual_closing_bl=actual,
            variance=variance,
            is_reconciled=is_within_threshold(variance, threshold),
        )
        logger.info("reg78_reconciled", extra={
            "entry_date": entry.entry_date.isoformat(),
            "calculated_closing_bl": str(entry.closing_bl),
            "actual_closing_bl": str(actual),
            "variance": str(variance),
            "is_reconciled": result.is_reconciled,
        })
        return result

    def sign_off(
        self,
        entry: MasterLedgerEntry,
        reconciled_by: str,
        reconciled_at: datetime,
        remarks: str | None = None,
        threshold: Any = None,
    ) -> MasterLedgerEntry:
        """
        Mark the day reconciled.

        Raises:
            AlreadyReconciledError: Already signed off.
            ReconciliationRemarksRequiredError: Variance above threshold and
                no remarks.
        """
        if entry.reconciled_by is not None:
            logger.warning("reg78_already_reconciled", extra={
                "entry_date": entry.entry_date.isoformat(),
                "reconciled_by": entry.reconciled_by,
            })
            raise AlreadyReconciledError(entry.entry_date.isoformat())
        threshold = self.variance_threshold if threshold is None else to_decimal(threshold, "threshold")
        if not is_within_threshold(entry.variance, threshold) and not (remarks and remarks.strip()):
            logger.warning("reg78_remarks_required", extra={
                "entry_date": entry.entry_date.isoformat(),
                "variance": str(entry.variance),
                "threshold": str(threshold),
            })
            raise ReconciliationRemarksRequiredError(entry.variance, threshold)
        return replace(
            entry,
            is_reconciled=True,
            reconciled_by=reconciled_by,
            reconciled_at=reconciled_at,
            remarks=remarks.strip() if remarks else entry.remarks,
        )

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    @staticmethod
    def _average_abs_variance(entries: list[MasterLedgerEntry]) -> Decimal:
        if not entries:
            return round2(ZERO)
        return round2(sum((abs(e.variance) for e in entries), ZERO) / len(entries))

    def variance_report(
        self,
        entries: Iterable[MasterLedgerEntry],
        threshold: Any = None,
    ) -> VarianceReport:
        """Entries whose |variance| is at or above the threshold, by date."""
        threshold = self.variance_threshold if threshold is None else to_decimal(threshold, "threshold")
        entries = sorted(entries, key=lambda e: e.entry_date)
        exceeding = tuple(e for e in entries if abs(e.variance) >= threshold)
        return VarianceReport(
            threshold=threshold,
            entries=exceeding,
            average_variance=self._average_abs_variance(entries),
        )

    def summary_stats(self, entries: Iterable[MasterLedgerEntry]) -> LedgerSummary:
        entries = sorted(entries, key=lambda e: e.entry_date)
        receipts = SpiritVolume.zero()
        issues = SpiritVolume.zero()
        wastage = SpiritVolume.zero()
        for e in entries:
            receipts = receipts + SpiritVolume(e.receipt_bl, e.receipt_al)
            issues = issues + SpiritVolume(e.issue_bl, e.issue_al)
            wastage = wastage + SpiritVolume(e.wastage_bl, e.wastage_al)
        last = entries[-1] if entries else None
        reconciled = sum(1 for e in entries if e.is_reconciled)
        return LedgerSummary(
            total_entries=len(entries),
            total_receipts=receipts.rounded(),
            total_issues=issues.rounded(),
            total_wastage=wastage.rounded(),
            current_closing=(
                SpiritVolume(last.closing_bl, last.closing_al) if last else SpiritVolume.zero()
            ),
            reconciled_count=reconciled,
            pending_reconciliation=len(entries) - reconciled,
            average_variance=self._average_abs_variance(entries),
        )
