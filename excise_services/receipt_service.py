"""
ReceiptService -- Reg-76 spirit receipts and Reg-74 vat events.

Responsibility:
    Records tanker receipts (validate, compute received quantities and
    transit wastage, persist), amends them under role control, and
    records the vat events that later feed Reg-A and Reg-78.  Corrects
    received volumes to the configured standard temperature and classifies
    storage loss in a vat at the configured storage tolerance.

Architecture position:
    Services -- imperative shell over ``Reg76Engine``.

Invariants enforced:
    - A receipt is persisted only after ``Reg76Engine.compute_all``
      succeeds; derived figures are never written by callers.
    - Amendments require a reason and an amend role, and recompute every
      derived figure.  The master ledger is not touched; re-aggregate the
      day explicitly.

Failure modes:
    - ValidationError: Itemized receipt or vat event errors.
    - AuthorizationError: Amend attempted without an amend role.
    - EntryNotFoundError: Unknown receipt id.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Any, Mapping
from uuid import UUID

from excise_engines.reg76 import ReceiptSummary, Reg76Engine
from excise_engines.units import temperature_correction
from excise_engines.wastage import WastageResult, analyze_storage
from excise_kernel.domain.registers import (
    AdjustmentType,
    SpiritReceiptEntry,
    VatEvent,
    VatEventType,
)
from excise_kernel.domain.values import ZERO
from excise_kernel.exceptions import EntryNotFoundError, ValidationError
from excise_kernel.logging_config import LogContext, get_logger
from excise_services.base import AuditAction, RegisterService

logger = get_logger("services.receipt")

VAT_REGISTER = "Reg-74"


class ReceiptService(RegisterService):
    """Reg-76 receipts and Reg-74 vat events."""

    entity_type = "reg76_receipt"

    def __init__(self, repository, config=None, clock=None):
        super().__init__(repository, config, clock)
        self._engine = Reg76Engine(transit_tolerance=self.config.tolerances.transit)

    def record_receipt(
        self, entry: SpiritReceiptEntry, actor_id: str | None = None
    ) -> SpiritReceiptEntry:
        with LogContext.bind(entry_id=str(entry.id), register="Reg-76", actor_id=actor_id):
            computed = self._engine.compute_all(entry)
            self.repository.add_receipt(computed)
            self._audit(AuditAction.CREATED, computed.id, actor_id, after=computed)
            logger.info("receipt_recorded", extra={
                "entry_id": str(computed.id),
                "permit_no": computed.permit_no,
                "received_bl": str(computed.received_bl),
            })
        return computed

    def amend_receipt(
        self,
        entry_id: UUID,
        changes: Mapping[str, Any],
        reason: str | None,
        role: Any,
        actor_id: str | None = None,
    ) -> SpiritReceiptEntry:
        """
        Amend a receipt and recompute it.

        Raises:
            AuthorizationError: role is not an amend role.
            EntryNotFoundError: No such receipt.
            ValidationError: Missing reason, protected field or invalid result.
        """
        self._require_role(role, self.config.roles.amend_roles, "amend receipt")
        before = self.get_receipt(entry_id)
        with LogContext.bind(entry_id=str(entry_id), register="Reg-76", actor_id=actor_id):
            after = self._engine.amend(before, changes, reason)
            self.repository.update_receipt(after)
            self._audit(
                AuditAction.AMENDED, entry_id, actor_id,
                before=before, after=after, reason=after.amendment_reason,
            )
        return after

    def get_receipt(self, entry_id: UUID) -> SpiritReceiptEntry:
        entry = self.repository.get_receipt(entry_id)
        if entry is None:
            raise EntryNotFoundError("receipt", str(entry_id))
        return entry

    def list_receipts(self, start: date | None = None, end: date | None = None) -> list[SpiritReceiptEntry]:
        return self.repository.list_receipts(start, end)

    def receipt_summary(self, start: date | None = None, end: date | None = None) -> ReceiptSummary:
        return self._engine.receipt_summary(self.list_receipts(start, end))

    def standard_volume(self, entry_id: UUID) -> Decimal:
        """Received BL corrected from the receipt's average temperature."""
        entry = self.get_receipt(entry_id)
        return temperature_correction(
            entry.received_bl, entry.avg_temperature, self.config.standard_temperature
        )

    def storage_wastage(
        self, opening_al: Any, closing_al: Any, vat_code: str | None = None
    ) -> WastageResult:
        """Loss in a storage vat between two dips, in AL."""
        result = analyze_storage(opening_al, closing_al, self.config.tolerances.storage)
        if result.is_chargeable:
            logger.warning("storage_wastage_chargeable", extra={
                "vat_code": vat_code,
                "wastage": str(result.wastage),
                "allowable_wastage": str(result.allowable_wastage),
                "chargeable_wastage": str(result.chargeable_wastage),
            })
        return result

    # ------------------------------------------------------------------
    # Reg-74
    # ------------------------------------------------------------------

    @staticmethod
    def validate_vat_event(event: VatEvent) -> list[str]:
        errors: list[str] = []
        if not event.vat_code or not event.vat_code.strip():
            errors.append("vat_code is required")
        if event.event_datetime is None:
            errors.append("event_datetime is required")
        for name in ("qty_bl", "qty_al", "mfm_bl", "dead_stock_al"):
            if getattr(event, name) < ZERO:
                errors.append(f"{name} cannot be negative")
        if event.event_type == VatEventType.ADJUSTMENT and event.adjustment_type is None:
            errors.append("adjustment_type is required for ADJUSTMENT events")
        if (
            event.adjustment_type == AdjustmentType.WASTAGE
            and event.wastage_reason is None
        ):
            errors.append("wastage_reason is required for wastage adjustments")
        if event.event_type == VatEventType.PRODUCTION and not event.batch_id:
            errors.append("batch_id is required for PRODUCTION events")
        return errors

    def record_vat_event(self, event: VatEvent, actor_id: str | None = None) -> VatEvent:
        errors = self.validate_vat_event(event)
        if errors:
            logger.warning("vat_event_validation_failed", extra={
                "entry_id": str(event.id),
                "errors": errors,
            })
            raise ValidationError(errors, register=VAT_REGISTER)
        self.repository.add_vat_event(event)
        self._audit(AuditAction.CREATED, event.id, actor_id, after=event, entity_type="reg74_vat_event")
        return event

    def list_vat_events(
        self,
        start: date | None = None,
        end: date | None = None,
        event_type: VatEventType | None = None,
        batch_id: str | None = None,
    ) -> list[VatEvent]:
        return self.repository.list_vat_events(start, end, event_type, batch_id)
