"""
ProductionService -- Reg-A bottling sessions.

Responsibility:
    Drives a bottling session through PLANNED -> ACTIVE -> COMPLETED:
    plan the session, declare bottle counts, link the Reg-74 PRODUCTION
    meter readings for the batch, and finalize with a permitted role.

Architecture position:
    Services -- imperative shell over ``RegAEngine``.

Invariants enforced:
    - (batch_id, session_no) is unique (repository).
    - COMPLETED sessions are immutable (engine).
    - Finalize requires a finalize role and linked meter data (engine).

Failure modes:
    - EntryNotFoundError, DuplicateEntryError, StateTransitionError,
      AuthorizationError, PreconditionError, ValidationError.
"""

from __future__ import annotations

from datetime import date
from typing import Any, Mapping
from uuid import UUID

from excise_engines.reg_a import RegAEngine, RegAPreview
from excise_kernel.domain.registers import BottlingProductionEntry, ProductionStatus, VatEventType
from excise_kernel.exceptions import EntryNotFoundError
from excise_kernel.logging_config import LogContext, get_logger
from excise_services.base import AuditAction, RegisterService

logger = get_logger("services.production")


class ProductionService(RegisterService):
    """Reg-A session lifecycle."""

    entity_type = "rega_production"

    def __init__(self, repository, config=None, clock=None):
        super().__init__(repository, config, clock)
        self._engine = RegAEngine(
            production_tolerance=self.config.tolerances.production,
            finalize_roles=self.config.roles.finalize_roles,
        )

    def plan_session(
        self,
        batch_id: str,
        session_no: int = 1,
        actor_id: str | None = None,
        **fields: Any,
    ) -> BottlingProductionEntry:
        entry = self._engine.plan(batch_id, session_no, **fields)
        self.repository.add_production(entry)
        self._audit(AuditAction.CREATED, entry.id, actor_id, after=entry)
        return entry

    def declare_bottling(
        self,
        entry_id: UUID,
        counts: Mapping[Any, Any],
        avg_strength: Any,
        actor_id: str | None = None,
    ) -> BottlingProductionEntry:
        before = self.get_production(entry_id)
        with LogContext.bind(entry_id=str(entry_id), register="Reg-A", actor_id=actor_id):
            after = self._engine.declare(before, counts, avg_strength)
            self.repository.update_production(after)
            self._audit(AuditAction.DECLARED, entry_id, actor_id, before=before, after=after)
        return after

    def link_meter_readings(
        self, entry_id: UUID, actor_id: str | None = None
    ) -> BottlingProductionEntry:
        """Attach the batch's Reg-74 PRODUCTION events to the session."""
        before = self.get_production(entry_id)
        events = self.repository.list_vat_events(
            event_type=VatEventType.PRODUCTION, batch_id=before.batch_id
        )
        with LogContext.bind(entry_id=str(entry_id), register="Reg-A", actor_id=actor_id):
            after = self._engine.link_meter_readings(before, events)
            self.repository.update_production(after)
            self._audit(
                AuditAction.METER_LINKED, entry_id, actor_id,
                before=before, after=after, event_count=len(events),
            )
        return after

    def finalize(
        self, entry_id: UUID, role: Any, actor_id: str | None = None
    ) -> BottlingProductionEntry:
        before = self.get_production(entry_id)
        with LogContext.bind(entry_id=str(entry_id), register="Reg-A", actor_id=actor_id):
            after = self._engine.finalize(before, role)
            self.repository.update_production(after)
            self._audit(AuditAction.FINALIZED, entry_id, actor_id, before=before, after=after)
        return after

    def preview(
        self,
        counts: Mapping[Any, Any],
        avg_strength: Any,
        mfm_total_al: Any = None,
    ) -> RegAPreview:
        return self._engine.preview(counts, avg_strength, mfm_total_al)

    def get_production(self, entry_id: UUID) -> BottlingProductionEntry:
        entry = self.repository.get_production(entry_id)
        if entry is None:
            raise EntryNotFoundError("production", str(entry_id))
        return entry

    def list_productions(
        self,
        start: date | None = None,
        end: date | None = None,
        status: ProductionStatus | None = None,
    ) -> list[BottlingProductionEntry]:
        return self.repository.list_productions(start, end, status)
