"""
MasterLedgerService -- Reg-78 daily aggregation and reconciliation.

Responsibility:
    Aggregates a day's receipts, completed bottling sessions and vat
    events into the master ledger (opening carried from the previous
    day), records physical verification, signs days off and reports on
    variance.

Architecture position:
    Services -- imperative shell over ``Reg78Aggregator``.

Invariants enforced:
    - One master entry per date; re-aggregating a day updates it in place.
    - A signed-off day is never silently changed: re-aggregation with
      different figures raises AlreadyReconciledError.
    - An aggregated entry must pass ``validate_entry`` before it is stored.
    - Re-aggregating a day that has a physical reading re-derives the
      variance against the new closing.

Failure modes:
    - ValidationError: Aggregated figures fail validation.
    - EntryNotFoundError: No master entry for the date.
    - AlreadyReconciledError, ReconciliationRemarksRequiredError.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import date, timedelta
from typing import Any

from excise_engines.reg78 import DrillDown, LedgerSummary, Reg78Aggregator, VarianceReport
from excise_kernel.domain.registers import MasterLedgerEntry, ProductionStatus
from excise_kernel.exceptions import AlreadyReconciledError, EntryNotFoundError, ValidationError
from excise_kernel.logging_config import LogContext, get_logger
from excise_services.base import AuditAction, RegisterService

logger = get_logger("services.master_ledger")

REGISTER = "Reg-78"


class MasterLedgerService(RegisterService):
    """Reg-78 master ledger."""

    entity_type = "reg78_master_ledger"

    def __init__(self, repository, config=None, clock=None):
        super().__init__(repository, config, clock)
        self._aggregator = Reg78Aggregator(variance_threshold=self.config.variance_threshold)

    def _sources(self, entry_date: date):
        return (
            self.repository.list_receipts(entry_date, entry_date),
            self.repository.list_productions(entry_date, entry_date, ProductionStatus.COMPLETED),
            self.repository.list_vat_events(entry_date, entry_date),
        )

    def aggregate_day(self, entry_date: date, actor_id: str | None = None) -> MasterLedgerEntry:
        """
        Build or refresh the day's master entry.

        Raises:
            ValidationError: Figures fail validation (e.g. negative closing).
            AlreadyReconciledError: The day is signed off and its figures
                would change.
        """
        previous = self.repository.get_master_entry_by_date(entry_date - timedelta(days=1))
        receipts, productions, events = self._sources(entry_date)
        computed = self._aggregator.aggregate(entry_date, previous, receipts, productions, events)

        errors = self._aggregator.validate_entry(computed)
        if errors:
            logger.warning("reg78_entry_invalid", extra={
                "entry_date": entry_date.isoformat(),
                "errors": errors,
            })
            raise ValidationError(errors, register=REGISTER)

        existing = self.repository.get_master_entry_by_date(entry_date)
        with LogContext.bind(register=REGISTER, actor_id=actor_id):
            if existing is None:
                self.repository.add_master_entry(computed)
                self._audit(AuditAction.CREATED, computed.id, actor_id, after=computed)
                return computed

            if self._aggregator.same_figures(existing, computed):
                return existing
            if existing.reconciled_by is not None:
                logger.error("reg78_signed_off_figures_changed", extra={
                    "entry_date": entry_date.isoformat(),
                    "stored_closing_bl": str(existing.closing_bl),
                    "computed_closing_bl": str(computed.closing_bl),
                })
                raise AlreadyReconciledError(entry_date.isoformat())

            updated = replace(
                existing,
                **computed.figures(),
                receipt_count=computed.receipt_count,
                production_count=computed.production_count,
                vat_event_count=computed.vat_event_count,
            )
            if updated.actual_closing_bl is not None:
                updated = self._aggregator.reconcile(updated, updated.actual_closing_bl)
            self.repository.update_master_entry(updated)
            self._audit(AuditAction.UPDATED, updated.id, actor_id, before=existing, after=updated)
            return updated

    def aggregate_range(
        self, start: date, end: date, actor_id: str | None = None
    ) -> list[MasterLedgerEntry]:
        """Aggregate each day from start to end in order, so openings chain."""
        if end < start:
            raise ValidationError(["end date cannot precede start date"], register=REGISTER)
        entries = []
        day = start
        while day <= end:
            entries.append(self.aggregate_day(day, actor_id))
            day += timedelta(days=1)
        return entries

    def reconcile(
        self, entry_date: date, actual_closing_bl: Any, actor_id: str | None = None
    ) -> MasterLedgerEntry:
        before = self.get_entry(entry_date)
        after = self._aggregator.reconcile(before, actual_closing_bl)
        self.repository.update_master_entry(after)
        self._audit(AuditAction.RECONCILED, after.id, actor_id, before=before, after=after)
        return after

    def sign_off(
        self,
        entry_date: date,
        reconciled_by: str,
        remarks: str | None = None,
    ) -> MasterLedgerEntry:
        before = self.get_entry(entry_date)
        after = self._aggregator.sign_off(
            before, reconciled_by, self._clock.now(), remarks=remarks
        )
        self.repository.update_master_entry(after)
        self._audit(AuditAction.SIGNED_OFF, after.id, reconciled_by, before=before, after=after)
        return after

    def drill_down(self, entry_date: date) -> DrillDown:
        receipts, productions, events = self._sources(entry_date)
        return self._aggregator.drill_down(entry_date, receipts, productions, events)

    def variance_report(
        self,
        start: date | None = None,
        end: date | None = None,
        threshold: Any = None,
    ) -> VarianceReport:
        return self._aggregator.variance_report(
            self.repository.list_master_entries(start, end), threshold
        )

    def summary_stats(self, start: date | None = None, end: date | None = None) -> LedgerSummary:
        return self._aggregator.summary_stats(self.repository.list_master_entries(start, end))

    def get_entry(self, entry_date: date) -> MasterLedgerEntry:
        entry = self.repository.get_master_entry_by_date(entry_date)
        if entry is None:
            raise EntryNotFoundError("master_entry", entry_date.isoformat())
        return entry

    def list_entries(self, start: date | None = None, end: date | None = None) -> list[MasterLedgerEntry]:
        return self.repository.list_master_entries(start, end)
