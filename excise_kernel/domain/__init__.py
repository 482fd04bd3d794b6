"""
Pure domain layer.

This module contains the register records, enumerations and value
helpers with NO dependencies on:
- ORM (SQLAlchemy)
- Database
- Time/clock (except the injectable Clock itself)
- I/O

All domain objects are immutable and deterministic.
"""

from excise_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from excise_kernel.domain.registers import (
    COMBINATION_KEYS,
    AdjustmentType,
    BottleSize,
    BottlingProductionEntry,
    CountryLiquorIssueEntry,
    DutyLedgerEntry,
    DutyRateSchedule,
    DutyStatus,
    MasterLedgerEntry,
    ProductionFeeEntry,
    ProductionStatus,
    RegBSection,
    SpiritReceiptEntry,
    StrengthBand,
    TreasuryChallan,
    UserRole,
    VatEvent,
    VatEventType,
    WastageReason,
    combination_key,
    record_snapshot,
)
from excise_kernel.domain.values import (
    ZERO,
    SpiritVolume,
    round2,
    round4,
    to_decimal,
    to_optional_decimal,
    within_tolerance,
)

__all__ = [
    # Values
    "ZERO",
    "SpiritVolume",
    "round2",
    "round4",
    "to_decimal",
    "to_optional_decimal",
    "within_tolerance",
    # Clock
    "Clock",
    "SystemClock",
    "DeterministicClock",
    # Enumerations
    "AdjustmentType",
    "BottleSize",
    "DutyStatus",
    "ProductionStatus",
    "RegBSection",
    "StrengthBand",
    "UserRole",
    "VatEventType",
    "WastageReason",
    # Register records
    "BottlingProductionEntry",
    "CountryLiquorIssueEntry",
    "DutyLedgerEntry",
    "DutyRateSchedule",
    "MasterLedgerEntry",
    "ProductionFeeEntry",
    "SpiritReceiptEntry",
    "TreasuryChallan",
    "VatEvent",
    "COMBINATION_KEYS",
    "combination_key",
    "record_snapshot",
]
