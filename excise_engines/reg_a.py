"""
excise_engines.reg_a -- Blending and bottling production (Reg-A).

Responsibility:
    Track a bottling session through PLANNED -> ACTIVE -> COMPLETED:
    plan the session, declare bottle counts (spirit bottled in BL/AL),
    link the mass flow meter (MFM) readings booked as Reg-74 PRODUCTION
    events, and finalize by verifying production wastage at 0.1%.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Uses excise_engines.units and excise_engines.wastage.  The caller's
    role is a parameter; role resolution happens outside the engine.

Invariants enforced:
    - COMPLETED is terminal: declare, link and finalize all reject it.
    - finalize requires linked meter AL and an ADMIN or EXCISE role.
    - Spirit bottled AL is computed from the rounded bottled BL.

Failure modes:
    - ValidationError (itemized) on missing batch, no positive count or
      non-positive strength.
    - StateTransitionError on a COMPLETED entry.
    - AuthorizationError when the role may not finalize.
    - PreconditionError when finalizing without meter data or linking with
      no PRODUCTION events.

Usage:
    engine = RegAEngine()
    entry = engine.plan("B-2024-001", 1)
    entry = engine.declare(entry, {750: 1000}, Decimal("42.8"))
    entry = engine.link_meter_readings(entry, events)
    entry = engine.finalize(entry, role="EXCISE")
"""

from __future__ import annotations

import time
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Iterable, Mapping

from excise_kernel.domain.registers import (
    BottleSize,
    BottlingProductionEntry,
    ProductionStatus,
    UserRole,
    VatEvent,
    VatEventType,
)
from excise_kernel.domain.values import HUNDRED, ZERO, round2, to_decimal
from excise_kernel.exceptions import (
    AuthorizationError,
    PreconditionError,
    StateTransitionError,
    ValidationError,
)
from excise_kernel.logging_config import get_logger
from excise_engines.tracer import traced_engine
from excise_engines.units import bottles_to_volume, volume_to_absolute
from excise_engines.wastage import PRODUCTION_TOLERANCE, WastageResult, analyze

logger = get_logger("engines.reg_a")

REGISTER = "Reg-A"

DEFAULT_FINALIZE_ROLES: tuple[str, ...] = (UserRole.ADMIN.value, UserRole.EXCISE.value)

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


@dataclass(frozen=True)
class BottledSpirit:
    spirit_bottled_bl: Decimal
    spirit_bottled_al: Decimal


@dataclass(frozen=True)
class RegAPreview:
    """Non-mutating calculation for a prospective bottling."""

    spirit_bottled_bl: Decimal
    spirit_bottled_al: Decimal
    wastage: WastageResult | None = None


@dataclass(frozen=True)
class MeterReadings:
    """MFM totals aggregated from Reg-74 PRODUCTION events."""

    mfm_total_bl: Decimal
    mfm_total_al: Decimal
    mfm_density: Decimal | None
    mfm_strength: Decimal | None
    production_date: Any
    event_count: int


def _normalize_counts(counts: Mapping[Any, Any]) -> dict[BottleSize, int]:
    """Counts per size; every unknown size or bad count is reported together."""
    normalized: dict[BottleSize, int] = {size: 0 for size in BottleSize}
    errors: list[str] = []
    for key, value in (counts or {}).items():
        try:
            size = BottleSize(int(key))
        except (TypeError, ValueError):
            errors.append(f"unknown bottle size: {key}")
            continue
        if value is None or value == "":
            continue
        try:
            count = int(value)
        except (TypeError, ValueError):
            errors.append(f"bottle count for {size.field_name} must be a whole number, got {value!r}")
            continue
        if count < 0:
            errors.append(f"bottle count for {size.field_name} cannot be negative")
            continue
        normalized[size] = count
    if errors:
        raise ValidationError(errors, register=REGISTER)
    return normalized


def _role_name(role: Any) -> str | None:
    if role is None:
        return None
    if isinstance(role, UserRole):
        return role.value
    return str(role).upper()


def _event_sort_key(event: VatEvent) -> datetime:
    when = event.event_datetime
    if when is None:
        return _EPOCH
    if when.tzinfo is None:
        return when.replace(tzinfo=timezone.utc)
    return when


class RegAEngine:
    """
    Pure calculator and lifecycle guard for bottling sessions.

    Contract:
        Returns new entries; never mutates input.  No clock access.
    """

    def __init__(
        self,
        production_tolerance: Decimal = PRODUCTION_TOLERANCE,
        finalize_roles: tuple[str, ...] = DEFAULT_FINALIZE_ROLES,
    ):
        self.production_tolerance = to_decimal(production_tolerance, "production_tolerance")
        self.finalize_roles = tuple(_role_name(r) for r in finalize_roles)

    # ------------------------------------------------------------------
    # Calculation
    # ------------------------------------------------------------------

    @staticmethod
    def spirit_bottled(counts: Mapping[Any, Any], avg_strength: Any) -> BottledSpirit:
        bl = bottles_to_volume(counts)
        return BottledSpirit(
            spirit_bottled_bl=bl,
            spirit_bottled_al=volume_to_absolute(bl, avg_strength),
        )

    def preview(
        self,
        counts: Mapping[Any, Any],
        avg_strength: Any,
        mfm_total_al: Any = None,
    ) -> RegAPreview:
        """Bottled volume and, when meter AL is given, the wastage it would show."""
        bottled = self.spirit_bottled(counts, avg_strength)
        wastage = None
        if mfm_total_al is not None and to_decimal(mfm_total_al, "mfm_total_al") > ZERO:
            wastage = analyze(mfm_total_al, bottled.spirit_bottled_al, self.production_tolerance)
        return RegAPreview(
            spirit_bottled_bl=bottled.spirit_bottled_bl,
            spirit_bottled_al=bottled.spirit_bottled_al,
            wastage=wastage,
        )

    @staticmethod
    def validate(entry: BottlingProductionEntry) -> list[str]:
        errors: list[str] = []
        if not entry.batch_id or not entry.batch_id.strip():
            errors.append("batch_id is required")
        if not any(count > 0 for count in entry.bottle_counts.values()):
            errors.append("at least one bottle count must be greater than zero")
        if entry.avg_strength <= ZERO:
            errors.append("avg_strength must be greater than zero")
        elif entry.avg_strength > HUNDRED:
            errors.append("avg_strength cannot exceed 100%")
        return errors

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @staticmethod
    def plan(batch_id: str, session_no: int = 1, **fields: Any) -> BottlingProductionEntry:
        """Create a PLANNED session for a batch."""
        errors: list[str] = []
        if not batch_id or not str(batch_id).strip():
            errors.append("batch_id is required")
        if int(session_no) < 1:
            errors.append("session_no must be at least 1")
        if errors:
            raise ValidationError(errors, register=REGISTER)
        entry = BottlingProductionEntry(
            batch_id=str(batch_id).strip(),
            session_no=int(session_no),
            status=ProductionStatus.PLANNED,
            **fields,
        )
        logger.info("rega_session_planned", extra={
            "entry_id": str(entry.id),
            "batch_id": entry.batch_id,
            "session_no": entry.session_no,
        })
        return entry

    @staticmethod
    def _ensure_mutable(entry: BottlingProductionEntry, operation: str) -> None:
        if entry.status == ProductionStatus.COMPLETED:
            logger.warning("rega_completed_entry_mutation", extra={
                "entry_id": str(entry.id),
                "operation": operation,
            })
            raise StateTransitionError(str(entry.id), entry.status.value, operation)

    @traced_engine("reg_a", "1.0", fingerprint_fields=("counts", "avg_strength"))
    def declare(
        self,
        entry: BottlingProductionEntry,
        counts: Mapping[Any, Any],
        avg_strength: Any,
    ) -> BottlingProductionEntry:
        """
        Record bottle counts and strength; moves PLANNED to ACTIVE.

        Raises:
            StateTransitionError: If the entry is COMPLETED.
            ValidationError: Negative or malformed count, no positive count,
                or avg_strength outside (0, 100].
        """
        self._ensure_mutable(entry, "declare")
        normalized = _normalize_counts(counts)
        updated = replace(
            entry,
            avg_strength=to_decimal(avg_strength, "avg_strength"),
            **{size.field_name: count for size, count in normalized.items()},
        )
        errors = self.validate(updated)
        if errors:
            logger.warning("rega_declare_rejected", extra={
                "entry_id": str(entry.id),
                "errors": errors,
            })
            raise ValidationError(errors, register=REGISTER)

        bottled = self.spirit_bottled(updated.bottle_counts, updated.avg_strength)
        result = replace(
            updated,
            status=ProductionStatus.ACTIVE,
            spirit_bottled_bl=bottled.spirit_bottled_bl,
            spirit_bottled_al=bottled.spirit_bottled_al,
        )
        logger.info("rega_declared", extra={
            "entry_id": str(entry.id),
            "total_bottles": result.total_bottles,
            "spirit_bottled_bl": str(result.spirit_bottled_bl),
            "spirit_bottled_al": str(result.spirit_bottled_al),
        })
        return result

    @staticmethod
    def aggregate_meter_readings(events: Iterable[VatEvent]) -> MeterReadings | None:
        """
        Sum MFM readings over PRODUCTION events.

        AL falls back to BL x strength / 100 for events without a metered
        AL.  Density and strength come from the last event; the production
        date from the first.  Returns None when there are no PRODUCTION
        events.
        """
        production = sorted(
            (e for e in events if e.event_type == VatEventType.PRODUCTION),
            key=_event_sort_key,
        )
        if not production:
            return None

        total_bl = ZERO
        total_al = ZERO
        for event in production:
            total_bl += event.mfm_bl
            if event.mfm_al is not None:
                total_al += event.mfm_al
            elif event.mfm_strength is not None:
                total_al += event.mfm_bl * event.mfm_strength / Decimal("100")

        last = production[-1]
        first = production[0]
        return MeterReadings(
            mfm_total_bl=round2(total_bl),
            mfm_total_al=round2(total_al),
            mfm_density=last.mfm_density,
            mfm_strength=last.mfm_strength,
            production_date=first.event_date,
            event_count=len(production),
        )

    @traced_engine("reg_a", "1.0", fingerprint_fields=("events",))
    def link_meter_readings(
        self,
        entry: BottlingProductionEntry,
        events: Iterable[VatEvent],
    ) -> BottlingProductionEntry:
        """
        Attach aggregated MFM readings to the session.

        Raises:
            StateTransitionError: If the entry is COMPLETED.
            PreconditionError: If there are no PRODUCTION events.
        """
        self._ensure_mutable(entry, "link meter readings to")
        readings = self.aggregate_meter_readings(events)
        if readings is None:
            logger.warning("rega_no_production_events", extra={
                "entry_id": str(entry.id),
                "batch_id": entry.batch_id,
            })
            raise PreconditionError(
                "production_events",
                f"No Reg-74 PRODUCTION events found for batch {entry.batch_id}",
            )

        result = replace(
            entry,
            mfm_total_bl=readings.mfm_total_bl,
            mfm_total_al=readings.mfm_total_al,
            mfm_density=readings.mfm_density,
            mfm_strength=readings.mfm_strength,
            production_date=readings.production_date or entry.production_date,
        )
        logger.info("rega_meter_readings_linked", extra={
            "entry_id": str(entry.id),
            "event_count": readings.event_count,
            "mfm_total_bl": str(readings.mfm_total_bl),
            "mfm_total_al": str(readings.mfm_total_al),
        })
        return result

    @traced_engine("reg_a", "1.0", fingerprint_fields=("entry", "role"))
    def finalize(self, entry: BottlingProductionEntry, role: Any) -> BottlingProductionEntry:
        """
        Verify production wastage against the meter and complete the session.

        Raises:
            StateTransitionError: If already COMPLETED.
            AuthorizationError: If role is not permitted to finalize.
            PreconditionError: If no meter AL is linked.
            ValidationError: If the declared counts are invalid.
        """
        t0 = time.monotonic()
        self._ensure_mutable(entry, "finalize")

        role_name = _role_name(role)
        if role_name not in self.finalize_roles:
            logger.warning("rega_finalize_role_rejected", extra={
                "entry_id": str(entry.id),
                "role": role_name,
            })
            raise AuthorizationError(role_name, "finalize production", self.finalize_roles)

        if entry.mfm_total_al is None:
            logger.warning("rega_finalize_without_meter_data", extra={"entry_id": str(entry.id)})
            raise PreconditionError(
                "meter_data", "cannot finalize without linked meter data"
            )

        errors = self.validate(entry)
        if errors:
            raise ValidationError(errors, register=REGISTER)

        bottled = self.spirit_bottled(entry.bottle_counts, entry.avg_strength)
        analysis = analyze(entry.mfm_total_al, bottled.spirit_bottled_al, self.production_tolerance)

        result = replace(
            entry,
            status=ProductionStatus.COMPLETED,
            spirit_bottled_bl=bottled.spirit_bottled_bl,
            spirit_bottled_al=bottled.spirit_bottled_al,
            difference_found_al=analysis.difference_found,
            production_wastage_al=analysis.wastage,
            production_increase_al=analysis.increase,
            allowable_wastage_al=analysis.allowable_wastage,
            chargeable_wastage_al=analysis.chargeable_wastage,
            percentage_wastage=analysis.percentage_wastage,
            is_chargeable=analysis.is_chargeable,
            finalized_by_role=role_name,
        )

        duration_ms = round((time.monotonic() - t0) * 1000, 2)
        logger.info("rega_finalized", extra={
            "entry_id": str(entry.id),
            "batch_id": entry.batch_id,
            "difference_found_al": str(result.difference_found_al),
            "chargeable_wastage_al": str(result.chargeable_wastage_al),
            "is_chargeable": result.is_chargeable,
            "duration_ms": duration_ms,
        })
        return result
