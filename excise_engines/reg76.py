"""
excise_engines.reg76 -- Spirit receipt (Reg-76) quantities and transit wastage.

Responsibility:
    Turn a tanker's weighbridge readings into received mass, bulk litres
    and absolute litres, compare them with the quantities advised on the
    transport pass, and classify the difference as transit wastage at the
    0.5% tolerance.  Also validates receipt entries, applies amendments and
    summarizes a set of receipts.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Uses excise_engines.units and excise_engines.wastage.

Invariants enforced:
    - received mass = laden - unladen and must be > 0.
    - received AL is computed from the *rounded* received BL.
    - BL transit wastage (advised - received BL) is informational and may
      be negative; the chargeable figures are on AL only.
    - An amendment carries a mandatory reason and recomputes every derived
      field from the merged inputs.

Failure modes:
    - InvalidWeighbridgeReadingError when laden <= unladen.
    - ValidationError (itemized) from compute_all/amend on invalid entries.

Usage:
    engine = Reg76Engine()
    entry = engine.compute_all(SpiritReceiptEntry(...))
    entry.received_bl, entry.transit_wastage_al
"""

from __future__ import annotations

import math
import time
from dataclasses import dataclass, replace
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Iterable, Mapping

from excise_kernel.domain.registers import SpiritReceiptEntry
from excise_kernel.domain.values import HUNDRED, ZERO, round2, to_decimal
from excise_kernel.exceptions import InvalidWeighbridgeReadingError, ValidationError
from excise_kernel.logging_config import get_logger
from excise_engines.tracer import traced_engine
from excise_engines.units import mass_to_volume, volume_to_absolute
from excise_engines.wastage import TRANSIT_TOLERANCE, analyze

logger = get_logger("engines.reg76")

REGISTER = "Reg-76"

MANDATORY_FIELDS: tuple[str, ...] = (
    "receipt_date",
    "permit_no",
    "exporting_distillery",
    "invoice_no",
    "vehicle_no",
    "nature_of_spirit",
    "storage_vat",
    "advised_bl",
    "advised_al",
    "advised_strength",
    "advised_mass_kg",
    "laden_weight_kg",
    "unladen_weight_kg",
    "avg_density",
    "avg_temperature",
    "received_strength",
)

NON_NEGATIVE_FIELDS: tuple[str, ...] = (
    "advised_bl",
    "advised_al",
    "advised_strength",
    "advised_mass_kg",
    "laden_weight_kg",
    "unladen_weight_kg",
    "avg_density",
    "received_strength",
)

# Fields an amendment may not touch directly.
_PROTECTED_FIELDS = frozenset({"id", "amendment_reason"})


@dataclass(frozen=True)
class ReceivedQuantities:
    received_mass_kg: Decimal
    received_bl: Decimal
    received_al: Decimal


@dataclass(frozen=True)
class TransitWastage:
    transit_wastage_bl: Decimal
    transit_wastage_al: Decimal
    transit_increase_al: Decimal
    allowable_wastage_al: Decimal
    chargeable_wastage_al: Decimal
    is_chargeable: bool
    percentage_wastage: Decimal


@dataclass(frozen=True)
class ReceiptSummary:
    """Totals over a set of receipts."""

    entry_count: int
    total_advised_bl: Decimal
    total_advised_al: Decimal
    total_received_bl: Decimal
    total_received_al: Decimal
    total_transit_wastage_al: Decimal
    total_chargeable_wastage_al: Decimal
    chargeable_count: int

    @property
    def average_wastage_percentage(self) -> Decimal:
        if self.total_advised_al <= ZERO:
            return ZERO
        return round2(self.total_transit_wastage_al / self.total_advised_al * HUNDRED)


def _as_date(value: date | datetime) -> date:
    return value.date() if isinstance(value, datetime) else value


class Reg76Engine:
    """
    Pure calculator for spirit receipts.

    Contract:
        No I/O, no clock access.  Returns new entries; never mutates input.
    """

    def __init__(self, transit_tolerance: Decimal = TRANSIT_TOLERANCE):
        self.transit_tolerance = to_decimal(transit_tolerance, "transit_tolerance")

    @traced_engine(
        "reg76", "1.0",
        fingerprint_fields=("laden_weight_kg", "unladen_weight_kg", "avg_density", "received_strength"),
    )
    def compute_received(
        self,
        laden_weight_kg: Any,
        unladen_weight_kg: Any,
        avg_density: Any,
        received_strength: Any,
    ) -> ReceivedQuantities:
        """
        Received mass, BL and AL from the weighbridge.

        Raises:
            InvalidWeighbridgeReadingError: If laden <= unladen.
        """
        laden = to_decimal(laden_weight_kg, "laden_weight_kg")
        unladen = to_decimal(unladen_weight_kg, "unladen_weight_kg")
        mass = laden - unladen
        if mass <= ZERO:
            logger.warning("reg76_invalid_weighbridge_reading", extra={
                "laden_weight_kg": str(laden),
                "unladen_weight_kg": str(unladen),
            })
            raise InvalidWeighbridgeReadingError(laden, unladen)

        received_bl = mass_to_volume(mass, avg_density)
        received_al = volume_to_absolute(received_bl, received_strength)
        return ReceivedQuantities(
            received_mass_kg=round2(mass),
            received_bl=received_bl,
            received_al=received_al,
        )

    @traced_engine(
        "reg76", "1.0",
        fingerprint_fields=("advised_bl", "advised_al", "received_bl", "received_al"),
    )
    def compute_wastage(
        self,
        advised_bl: Any,
        advised_al: Any,
        received_bl: Any,
        received_al: Any,
    ) -> TransitWastage:
        """Transit wastage: AL classified at the transit tolerance, BL informational."""
        analysis = analyze(advised_al, received_al, self.transit_tolerance)
        wastage_bl = round2(to_decimal(advised_bl, "advised_bl") - to_decimal(received_bl, "received_bl"))
        return TransitWastage(
            transit_wastage_bl=wastage_bl,
            transit_wastage_al=analysis.wastage,
            transit_increase_al=analysis.increase,
            allowable_wastage_al=analysis.allowable_wastage,
            chargeable_wastage_al=analysis.chargeable_wastage,
            is_chargeable=analysis.is_chargeable,
            percentage_wastage=analysis.percentage_wastage,
        )

    @staticmethod
    def transit_days(dispatch: date | datetime | None, arrival: date | datetime | None) -> int:
        """Whole days in transit, rounded up; 0 when either date is missing."""
        if dispatch is None or arrival is None:
            return 0
        if isinstance(dispatch, datetime) != isinstance(arrival, datetime):
            dispatch, arrival = _as_date(dispatch), _as_date(arrival)
        seconds = abs((arrival - dispatch).total_seconds())
        return math.ceil(seconds / 86400)

    def validate(self, entry: SpiritReceiptEntry) -> list[str]:
        """Collect every validation error for a receipt entry."""
        errors: list[str] = []

        for name in MANDATORY_FIELDS:
            value = getattr(entry, name)
            if value is None or (isinstance(value, str) and not value.strip()):
                errors.append(f"{name} is required")

        for name in NON_NEGATIVE_FIELDS:
            value = getattr(entry, name)
            if value is not None and value < ZERO:
                errors.append(f"{name} cannot be negative")

        if entry.advised_strength is not None and entry.advised_strength > HUNDRED:
            errors.append("advised_strength cannot exceed 100%")
        if entry.received_strength is not None and entry.received_strength > HUNDRED:
            errors.append("received_strength cannot exceed 100%")

        if (
            entry.laden_weight_kg is not None
            and entry.unladen_weight_kg is not None
            and entry.laden_weight_kg <= entry.unladen_weight_kg
        ):
            errors.append(
                "invalid weighbridge reading: laden weight must be greater than unladen weight"
            )

        if entry.arrival_date is not None and entry.receipt_date is not None:
            if _as_date(entry.arrival_date) > _as_date(entry.receipt_date):
                errors.append("arrival_date cannot be after receipt_date")

        return errors

    def compute_all(self, entry: SpiritReceiptEntry) -> SpiritReceiptEntry:
        """
        Validate the entry and fill every derived field.

        Raises:
            ValidationError: With the itemized error list.
        """
        t0 = time.monotonic()
        logger.info("reg76_compute_started", extra={
            "entry_id": str(entry.id),
            "permit_no": entry.permit_no,
        })

        errors = self.validate(entry)
        if errors:
            logger.warning("reg76_validation_failed", extra={
                "entry_id": str(entry.id),
                "errors": errors,
            })
            raise ValidationError(errors, register=REGISTER)

        received = self.compute_received(
            entry.laden_weight_kg,
            entry.unladen_weight_kg,
            entry.avg_density,
            entry.received_strength,
        )
        wastage = self.compute_wastage(
            entry.advised_bl,
            entry.advised_al,
            received.received_bl,
            received.received_al,
        )

        result = replace(
            entry,
            received_mass_kg=received.received_mass_kg,
            received_bl=received.received_bl,
            received_al=received.received_al,
            transit_wastage_bl=wastage.transit_wastage_bl,
            transit_wastage_al=wastage.transit_wastage_al,
            allowable_wastage_al=wastage.allowable_wastage_al,
            chargeable_wastage_al=wastage.chargeable_wastage_al,
            percentage_wastage=wastage.percentage_wastage,
            is_chargeable=wastage.is_chargeable,
            transit_days=self.transit_days(entry.dispatch_date, entry.arrival_date),
        )

        duration_ms = round((time.monotonic() - t0) * 1000, 2)
        logger.info("reg76_compute_completed", extra={
            "entry_id": str(entry.id),
            "received_bl": str(result.received_bl),
            "received_al": str(result.received_al),
            "transit_wastage_al": str(result.transit_wastage_al),
            "chargeable_wastage_al": str(result.chargeable_wastage_al),
            "is_chargeable": result.is_chargeable,
            "duration_ms": duration_ms,
        })
        return result

    def amend(
        self,
        entry: SpiritReceiptEntry,
        changes: Mapping[str, Any],
        reason: str | None,
    ) -> SpiritReceiptEntry:
        """
        Apply field changes and recompute every derived figure.

        Only the receipt itself changes; aggregates built from it (the
        master ledger) are left for explicit re-aggregation.

        Raises:
            ValidationError: If the reason is missing, a protected or unknown
                field is changed, or the merged entry is invalid.
        """
        if not reason or not reason.strip():
            logger.warning("reg76_amendment_reason_missing", extra={"entry_id": str(entry.id)})
            raise ValidationError(["amendment reason is required"], register=REGISTER)

        known = set(SpiritReceiptEntry.__dataclass_fields__)
        bad = sorted(k for k in changes if k in _PROTECTED_FIELDS or k not in known)
        if bad:
            raise ValidationError(
                [f"{name} cannot be amended" for name in bad], register=REGISTER
            )

        merged = replace(entry, **dict(changes), amendment_reason=reason.strip())
        logger.info("reg76_amendment_applied", extra={
            "entry_id": str(entry.id),
            "changed_fields": sorted(changes),
        })
        return self.compute_all(merged)

    @staticmethod
    def receipt_summary(entries: Iterable[SpiritReceiptEntry]) -> ReceiptSummary:
        """Totals over a set of computed receipts."""
        entries = list(entries)
        return ReceiptSummary(
            entry_count=len(entries),
            total_advised_bl=round2(sum((e.advised_bl or ZERO for e in entries), ZERO)),
            total_advised_al=round2(sum((e.advised_al or ZERO for e in entries), ZERO)),
            total_received_bl=round2(sum((e.received_bl for e in entries), ZERO)),
            total_received_al=round2(sum((e.received_al for e in entries), ZERO)),
            total_transit_wastage_al=round2(sum((e.transit_wastage_al for e in entries), ZERO)),
            total_chargeable_wastage_al=round2(sum((e.chargeable_wastage_al for e in entries), ZERO)),
            chargeable_count=sum(1 for e in entries if e.is_chargeable),
        )
