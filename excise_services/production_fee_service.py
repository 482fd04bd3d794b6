"""
ProductionFeeService -- daily production fee account.

Responsibility:
    Generates a day's fee entry from the completed Reg-A sessions of that
    day, carrying the previous entry's closing balance as the opening;
    records challan deposits against the account; and summarises the
    account over a trailing window ending today.

Architecture position:
    Services -- imperative shell over ``ProductionFeeEngine``.

Invariants enforced:
    - One entry per day.  Regenerating a day refreshes its production and
      fees but keeps the deposit and challan already recorded.
    - One deposit per day.
    - Later days are not re-derived when an earlier day changes; call
      ``generate_day`` for them again.

Failure modes:
    - PreconditionError: Generating a day with no completed production.
    - ValidationError: Deposit not positive, challan missing or dated in
      the future.
    - DuplicateEntryError: A second deposit on the same day.
    - EntryNotFoundError: No entry for the requested day.
"""

from __future__ import annotations

from dataclasses import replace
from datetime import date, timedelta
from decimal import Decimal
from typing import Any

from excise_engines.production_fees import (
    REGISTER,
    FeeLedgerSummary,
    ProductionFeeEngine,
)
from excise_kernel.domain.registers import ProductionFeeEntry, ProductionStatus
from excise_kernel.domain.values import ZERO, round2, to_decimal
from excise_kernel.exceptions import (
    DuplicateEntryError,
    EntryNotFoundError,
    PreconditionError,
    ValidationError,
)
from excise_kernel.logging_config import LogContext, get_logger
from excise_services.base import AuditAction, RegisterService

logger = get_logger("services.production_fee")


class ProductionFeeService(RegisterService):
    """Production fee ledger."""

    entity_type = "production_fee"

    def __init__(self, repository, config=None, clock=None):
        super().__init__(repository, config, clock)
        self._engine = ProductionFeeEngine(fee_per_bl=self.config.production_fee_per_bl)

    def _opening_for(self, entry_date: date) -> Decimal:
        previous = self.repository.list_fee_entries(end=entry_date - timedelta(days=1))
        return previous[-1].closing_balance if previous else round2(ZERO)

    def _day_production(self, entry_date: date) -> tuple[dict[str, int], int]:
        sessions = self.repository.list_productions(
            entry_date, entry_date, status=ProductionStatus.COMPLETED
        )
        return self._engine.production_counts(sessions)

    def generate_day(self, entry_date: date, actor_id: str | None = None) -> ProductionFeeEntry:
        """
        Create or refresh the fee entry for a day from completed Reg-A
        production.

        Raises:
            PreconditionError: No completed session maps to a strength band
                on entry_date.
        """
        with LogContext.bind(register=REGISTER, actor_id=actor_id):
            logger.info("production_fee_generate_started", extra={
                "entry_date": entry_date.isoformat(),
            })
            counts, sessions = self._day_production(entry_date)
            if sessions == 0:
                raise PreconditionError(
                    "completed_production",
                    f"no completed Reg-A production on {entry_date.isoformat()}",
                )

            existing = self.repository.get_fee_entry_by_date(entry_date)
            computed = self._engine.compute_entry(
                entry_date,
                counts,
                opening_balance=self._opening_for(entry_date),
                deposit_amount=existing.deposit_amount if existing else ZERO,
                challan_no=existing.challan_no if existing else None,
                challan_date=existing.challan_date if existing else None,
                production_count=sessions,
                remarks=existing.remarks if existing else None,
            )

            if existing is None:
                self.repository.add_fee_entry(computed)
                self._audit(AuditAction.CREATED, computed.id, actor_id, after=computed)
            else:
                computed = replace(computed, id=existing.id)
                self.repository.update_fee_entry(computed)
                self._audit(
                    AuditAction.UPDATED, computed.id, actor_id, before=existing, after=computed
                )

            logger.info("production_fee_generate_completed", extra={
                "entry_id": str(computed.id),
                "production_count": sessions,
                "fees_debited": str(computed.fees_debited),
                "closing_balance": str(computed.closing_balance),
            })
        return computed

    def record_deposit(
        self,
        entry_date: date,
        amount: Any,
        challan_no: str,
        challan_date: date,
        remarks: str | None = None,
        actor_id: str | None = None,
    ) -> ProductionFeeEntry:
        """
        Credit a challan deposit to the day's entry, creating the entry
        (with that day's production, if any) when it does not exist.

        Raises:
            ValidationError: Bad amount or challan.
            DuplicateEntryError: The day already holds a deposit.
        """
        with LogContext.bind(register=REGISTER, actor_id=actor_id):
            errors = self._engine.validate_deposit(
                amount, challan_no, challan_date, self._clock.today()
            )
            if errors:
                logger.warning("production_fee_deposit_rejected", extra={
                    "entry_date": entry_date.isoformat(),
                    "errors": errors,
                })
                raise ValidationError(errors, register=REGISTER)

            existing = self.repository.get_fee_entry_by_date(entry_date)
            if existing is not None and existing.deposit_amount > ZERO:
                raise DuplicateEntryError("fee_deposit", entry_date.isoformat())

            amount = round2(to_decimal(amount, "amount"))
            if existing is None:
                counts, sessions = self._day_production(entry_date)
                after = self._engine.compute_entry(
                    entry_date,
                    counts,
                    opening_balance=self._opening_for(entry_date),
                    deposit_amount=amount,
                    challan_no=challan_no,
                    challan_date=challan_date,
                    production_count=sessions,
                    remarks=remarks,
                )
                self.repository.add_fee_entry(after)
            else:
                after = self._engine.recompute(replace(
                    existing,
                    deposit_amount=amount,
                    challan_no=challan_no.strip(),
                    challan_date=challan_date,
                    remarks=remarks or existing.remarks,
                ))
                self.repository.update_fee_entry(after)

            self._audit(
                AuditAction.PAYMENT_APPLIED, after.id, actor_id,
                before=existing, after=after,
                challan_no=after.challan_no,
                amount=str(amount),
            )
            logger.info("production_fee_deposit_recorded", extra={
                "entry_id": str(after.id),
                "challan_no": after.challan_no,
                "deposit_amount": str(amount),
                "closing_balance": str(after.closing_balance),
            })
        return after

    def get_entry(self, entry_date: date) -> ProductionFeeEntry:
        entry = self.repository.get_fee_entry_by_date(entry_date)
        if entry is None:
            raise EntryNotFoundError("fee_entry", entry_date.isoformat())
        return entry

    def list_entries(self, start: date | None = None, end: date | None = None) -> list[ProductionFeeEntry]:
        return self.repository.list_fee_entries(start, end)

    def summary(self, days: int = 30) -> FeeLedgerSummary:
        return self._engine.summarize(self.repository.list_fee_entries(), self._clock.today(), days)
