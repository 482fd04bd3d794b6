"""
DutyService -- monthly excise duty ledger and treasury payments.

Responsibility:
    Seeds and looks up duty rates, accrues monthly duty per
    category/subcategory (carrying the opening balance from the previous
    month's closing), accrues country-liquor duty from the month's Reg-B
    issues, applies treasury challans and breaks a Reg-B entry down into
    duty per strength band.

Architecture position:
    Services -- imperative shell over ``ExciseDutyEngine``.

Invariants enforced:
    - One ledger row per (month, category, subcategory); re-accruing a
      month updates the row and keeps its payments.
    - A challan is stored only together with the ledger update it causes.
    - "Today" for challan validation comes from the injected clock.

Failure modes:
    - MissingRateError: No rate covers the month.
    - ValidationError: Invalid challan or negative figures.
    - DuplicateEntryError: Challan number already used.
    - EntryNotFoundError: Unknown ledger row or Reg-B entry.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID

from excise_engines.duty import (
    COUNTRY_LIQUOR,
    DutyBreakdownLine,
    ExciseDutyEngine,
    first_of_month,
    previous_month,
)
from excise_engines.reg_b import RegBEngine
from excise_kernel.domain.registers import (
    DutyLedgerEntry,
    DutyRateSchedule,
    StrengthBand,
    TreasuryChallan,
)
from excise_kernel.domain.values import ZERO
from excise_kernel.exceptions import EntryNotFoundError, ValidationError
from excise_kernel.logging_config import LogContext, get_logger
from excise_services.base import AuditAction, RegisterService
from excise_services.issue_service import month_bounds

logger = get_logger("services.duty")

REGISTER = "Excise Duty"


class DutyService(RegisterService):
    """Duty rates, monthly ledger rows and challans."""

    entity_type = "duty_ledger"

    def __init__(self, repository, config=None, clock=None):
        super().__init__(repository, config, clock)
        self._engine = ExciseDutyEngine()

    # ------------------------------------------------------------------
    # Rates
    # ------------------------------------------------------------------

    def seed_rates(self) -> list[DutyRateSchedule]:
        """Add the configured rate schedule, skipping rows already present."""
        existing = {
            (r.category, r.subcategory, r.effective_from)
            for r in self.repository.list_duty_rates()
        }
        added = []
        for rate in self.config.duty_rates:
            if (rate.category, rate.subcategory, rate.effective_from) in existing:
                continue
            added.append(self.repository.add_duty_rate(rate))
        logger.info("duty_rates_seeded", extra={
            "added": len(added),
            "skipped": len(self.config.duty_rates) - len(added),
        })
        return added

    def add_rate(self, rate: DutyRateSchedule, actor_id: str | None = None) -> DutyRateSchedule:
        errors = []
        if rate.rate_per_unit < ZERO:
            errors.append("rate_per_unit cannot be negative")
        if rate.effective_to is not None and rate.effective_to < rate.effective_from:
            errors.append("effective_to cannot precede effective_from")
        if errors:
            raise ValidationError(errors, register=REGISTER)
        self.repository.add_duty_rate(rate)
        self._audit(AuditAction.CREATED, rate.id, actor_id, after=rate, entity_type="duty_rate")
        return rate

    def current_rate(
        self, category: str, subcategory: str, on_date: date | None = None
    ) -> DutyRateSchedule | None:
        return self._engine.get_current_rate(
            self.repository.list_duty_rates(category),
            category,
            subcategory,
            on_date or self._clock.today(),
        )

    # ------------------------------------------------------------------
    # Ledger
    # ------------------------------------------------------------------

    def accrue(
        self,
        month_year: date,
        category: str,
        subcategory: str,
        units_issued: Any,
        actor_id: str | None = None,
    ) -> DutyLedgerEntry:
        """
        Create or refresh the month's ledger row.

        The opening balance is the previous month's closing balance for
        the same category/subcategory, or 0.
        """
        month = first_of_month(month_year)
        previous = self.repository.find_duty_entry(previous_month(month), category, subcategory)
        existing = self.repository.find_duty_entry(month, category, subcategory)

        computed = self._engine.compute_entry(
            month,
            category,
            subcategory,
            units_issued,
            self.repository.list_duty_rates(category),
            opening_balance=previous.closing_balance if previous else ZERO,
            total_payments=existing.total_payments if existing else ZERO,
        )

        with LogContext.bind(register=REGISTER, actor_id=actor_id):
            if existing is None:
                self.repository.add_duty_entry(computed)
                self._audit(AuditAction.CREATED, computed.id, actor_id, after=computed)
                return computed

            updated = replace(computed, id=existing.id, remarks=existing.remarks)
            self.repository.update_duty_entry(updated)
            self._audit(AuditAction.UPDATED, updated.id, actor_id, before=existing, after=updated)
            return updated

    def accrue_from_issues(
        self, month_year: date, actor_id: str | None = None
    ) -> list[DutyLedgerEntry]:
        """Accrue country-liquor duty for every band issued during the month."""
        month = first_of_month(month_year)
        issues = self.repository.list_issues(*month_bounds(month))
        summary = RegBEngine.monthly_issue_summary(issues)
        entries = []
        for band in StrengthBand:
            band_summary = summary[band]
            if band_summary.bl > ZERO:
                entries.append(
                    self.accrue(month, COUNTRY_LIQUOR, band.label, band_summary.bl, actor_id)
                )
        return entries

    def record_payment(
        self, challan: TreasuryChallan, actor_id: str | None = None
    ) -> DutyLedgerEntry:
        """
        Apply a treasury challan to its ledger row.

        Raises:
            ValidationError: Challan fails validation.
            EntryNotFoundError: Ledger row does not exist.
            DuplicateEntryError: Challan number already recorded.
        """
        errors = self._engine.validate_challan(challan, self._clock.today())
        if errors:
            logger.warning("challan_validation_failed", extra={
                "challan_number": challan.challan_number,
                "errors": errors,
            })
            raise ValidationError(errors, register=REGISTER)

        before = self.get_duty_entry(challan.duty_entry_id)
        after = self._engine.apply_payment(before, challan)
        with LogContext.bind(entry_id=str(before.id), register=REGISTER, actor_id=actor_id):
            self.repository.add_challan(challan)
            self.repository.update_duty_entry(after)
            self._audit(
                AuditAction.PAYMENT_APPLIED, before.id, actor_id,
                before=before, after=after,
                challan_number=challan.challan_number,
                amount_paid=str(challan.amount_paid),
            )
        return after

    def outstanding_balance(self, month_year: date | None = None) -> Decimal:
        """Sum of positive closing balances, optionally for one month."""
        month = first_of_month(month_year) if month_year else None
        return sum(
            (e.closing_balance for e in self.repository.list_duty_entries(month) if e.closing_balance > ZERO),
            ZERO,
        )

    def duty_breakdown(
        self, issue_id: UUID, on_date: date | None = None
    ) -> dict[StrengthBand, DutyBreakdownLine]:
        issue = self.repository.get_issue(issue_id)
        if issue is None:
            raise EntryNotFoundError("issue", str(issue_id))
        return self._engine.duty_breakdown(
            issue, self.repository.list_duty_rates(COUNTRY_LIQUOR), on_date
        )

    def get_duty_entry(self, entry_id: UUID | None) -> DutyLedgerEntry:
        entry = self.repository.get_duty_entry(entry_id) if entry_id is not None else None
        if entry is None:
            raise EntryNotFoundError("duty_entry", str(entry_id))
        return entry

    def list_duty_entries(self, month_year: date | None = None) -> list[DutyLedgerEntry]:
        return self.repository.list_duty_entries(first_of_month(month_year) if month_year else None)

    def list_challans(self, duty_entry_id: UUID | None = None) -> list[TreasuryChallan]:
        return self.repository.list_challans(duty_entry_id)
