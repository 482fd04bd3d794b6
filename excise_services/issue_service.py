"""
IssueService -- Reg-B country liquor issues.

Responsibility:
    Records daily Reg-B entries after totals and the stock balance check
    pass, pre-fills the receipt section from a completed Reg-A session,
    and reports issued BL per strength band for a month.

Architecture position:
    Services -- imperative shell over ``RegBEngine``.

Failure modes:
    - ValidationError / BalanceViolationError from the engine; nothing is
      persisted.
    - EntryNotFoundError: Unknown issue or production id.
    - PreconditionError: Auto-fill from a session that is not COMPLETED
      or whose strength maps to no band.
"""

from __future__ import annotations

import calendar
from datetime import date
from typing import Mapping
from uuid import UUID

from excise_engines.reg_b import BandIssueSummary, RegBEngine
from excise_kernel.domain.registers import CountryLiquorIssueEntry, StrengthBand
from excise_kernel.exceptions import EntryNotFoundError, PreconditionError
from excise_kernel.logging_config import LogContext, get_logger
from excise_services.base import AuditAction, RegisterService

logger = get_logger("services.issue")


def month_bounds(month: date) -> tuple[date, date]:
    last_day = calendar.monthrange(month.year, month.month)[1]
    return month.replace(day=1), month.replace(day=last_day)


class IssueService(RegisterService):
    """Reg-B entries."""

    entity_type = "regb_issue"

    def __init__(self, repository, config=None, clock=None):
        super().__init__(repository, config, clock)
        self._engine = RegBEngine(
            fee_per_bottle=self.config.production_fee_per_bottle,
            balance_tolerance=self.config.balance_tolerance,
        )

    def record_issue(
        self, entry: CountryLiquorIssueEntry, actor_id: str | None = None
    ) -> CountryLiquorIssueEntry:
        with LogContext.bind(entry_id=str(entry.id), register="Reg-B", actor_id=actor_id):
            computed = self._engine.compute_all(entry)
            self.repository.add_issue(computed)
            self._audit(AuditAction.CREATED, computed.id, actor_id, after=computed)
        return computed

    def auto_fill_receipt(self, production_id: UUID) -> dict[str, int]:
        """
        Receipt-section counts from a completed Reg-A session.

        Raises:
            EntryNotFoundError: No such session.
            PreconditionError: Session not COMPLETED or strength unmapped.
        """
        production = self.repository.get_production(production_id)
        if production is None:
            raise EntryNotFoundError("production", str(production_id))
        counts = self._engine.auto_fill_from_completed_reg_a(production)
        if counts is None:
            raise PreconditionError(
                "completed_production",
                f"Reg-A session {production.batch_id}#{production.session_no} "
                f"({production.status.value}, strength {production.avg_strength}) "
                "cannot be mapped to a Reg-B receipt",
            )
        return counts

    def record_from_production(
        self,
        production_id: UUID,
        entry_date: date,
        opening: Mapping[str, int] | None = None,
        issue: Mapping[str, int] | None = None,
        wastage: Mapping[str, int] | None = None,
        remarks: str | None = None,
        actor_id: str | None = None,
    ) -> CountryLiquorIssueEntry:
        """Record an entry whose receipt section comes from a Reg-A session."""
        entry = CountryLiquorIssueEntry(
            entry_date=entry_date,
            source_production_id=production_id,
            opening=opening or {},
            receipt=self.auto_fill_receipt(production_id),
            issue=issue or {},
            wastage=wastage or {},
            remarks=remarks,
        )
        return self.record_issue(entry, actor_id)

    def recompute_issue(self, entry_id: UUID, actor_id: str | None = None) -> CountryLiquorIssueEntry:
        """Recompute stored totals, e.g. after a fee change."""
        before = self.get_issue(entry_id)
        after = self._engine.compute_all(before)
        self.repository.update_issue(after)
        self._audit(AuditAction.UPDATED, entry_id, actor_id, before=before, after=after)
        return after

    def get_issue(self, entry_id: UUID) -> CountryLiquorIssueEntry:
        entry = self.repository.get_issue(entry_id)
        if entry is None:
            raise EntryNotFoundError("issue", str(entry_id))
        return entry

    def list_issues(self, start: date | None = None, end: date | None = None) -> list[CountryLiquorIssueEntry]:
        return self.repository.list_issues(start, end)

    def list_month(self, month: date) -> list[CountryLiquorIssueEntry]:
        return self.list_issues(*month_bounds(month))

    def monthly_issue_summary(self, month: date) -> dict[StrengthBand, BandIssueSummary]:
        return self._engine.monthly_issue_summary(self.list_month(month))
