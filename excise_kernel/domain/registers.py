"""
Registers -- Immutable records for each excise register.

Responsibility:
    Defines the in-memory shape of every register entry (Reg-76 receipts,
    Reg-74 vat events, Reg-A production, Reg-B issues, duty rates, duty
    ledger rows, treasury challans and the Reg-78 master ledger) together
    with the enumerations they use.  Field defaults are part of each
    record's construction contract: numeric inputs are coerced to Decimal
    on construction and bottle counts to int.

Architecture position:
    Kernel > Domain -- pure data, zero I/O.
    Engines take these records in and hand back updated copies via
    ``dataclasses.replace``; services persist them through a repository.

Invariants enforced:
    - Decimal-only quantities (floats go through ``str``).
    - Bottle counts are non-negative ints.
    - Reg-B count keys are restricted to the 24 ``"{size}_{band}"`` keys.

Failure modes:
    - ValueError on an unparsable number, a negative bottle count, or an
      unknown Reg-B combination key.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Mapping
from uuid import UUID, uuid4

from excise_kernel.domain.values import ZERO, to_decimal, to_optional_decimal


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class BottleSize(int, Enum):
    """Standard bottle sizes in millilitres."""

    ML_750 = 750
    ML_600 = 600
    ML_500 = 500
    ML_375 = 375
    ML_300 = 300
    ML_180 = 180

    @property
    def litres(self) -> Decimal:
        return Decimal(self.value) / Decimal("1000")

    @property
    def field_name(self) -> str:
        return f"bottles_{self.value}"


class StrengthBand(str, Enum):
    """Country-liquor strength bands in degrees Under Proof."""

    UP_50 = "50"
    UP_60 = "60"
    UP_70 = "70"
    UP_80 = "80"

    @property
    def strength(self) -> Decimal:
        """Alcohol strength in % v/v for the band."""
        return _BAND_STRENGTHS[self]

    @property
    def code(self) -> str:
        return f"{self.value}UP"

    @property
    def label(self) -> str:
        """Duty-rate subcategory label, e.g. ``50° U.P.``."""
        return f"{self.value}° U.P."


_BAND_STRENGTHS: dict[StrengthBand, Decimal] = {
    StrengthBand.UP_50: Decimal("28.5"),
    StrengthBand.UP_60: Decimal("22.8"),
    StrengthBand.UP_70: Decimal("17.1"),
    StrengthBand.UP_80: Decimal("11.4"),
}


class RegBSection(str, Enum):
    OPENING = "opening"
    RECEIPT = "receipt"
    ISSUE = "issue"
    WASTAGE = "wastage"


class ProductionStatus(str, Enum):
    """Reg-A lifecycle: PLANNED -> ACTIVE -> COMPLETED (terminal)."""

    PLANNED = "PLANNED"
    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"


class DutyStatus(str, Enum):
    PENDING = "PENDING"
    PARTIAL_PAID = "PARTIAL_PAID"
    FULLY_PAID = "FULLY_PAID"


class UserRole(str, Enum):
    ADMIN = "ADMIN"
    EXCISE = "EXCISE"
    USER = "USER"


class VatEventType(str, Enum):
    """Reg-74 vat operation types."""

    OPENING = "OPENING"
    UNLOADING = "UNLOADING"
    RECEIPT = "RECEIPT"
    BLENDING = "BLENDING"
    PRODUCTION = "PRODUCTION"
    ADJUSTMENT = "ADJUSTMENT"
    CLOSING = "CLOSING"


class AdjustmentType(str, Enum):
    """Direction of a Reg-74 stock adjustment."""

    WASTAGE = "WASTAGE"
    INCREASE = "INCREASE"

    @classmethod
    def _missing_(cls, value: object) -> AdjustmentType | None:
        # Older vat records abbreviate wastage as "WAST".
        if isinstance(value, str) and value.upper() == "WAST":
            return cls.WASTAGE
        return None


class WastageReason(str, Enum):
    """Why a Reg-74 wastage adjustment was booked. Both count as wastage."""

    OPERATIONAL = "OPERATIONAL"
    STOCK_AUDIT = "STOCK_AUDIT"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _set(obj: Any, name: str, value: Any) -> None:
    object.__setattr__(obj, name, value)


def _coerce_decimals(obj: Any, names: tuple[str, ...]) -> None:
    for name in names:
        _set(obj, name, to_decimal(getattr(obj, name), name))


def _coerce_optional_decimals(obj: Any, names: tuple[str, ...]) -> None:
    for name in names:
        _set(obj, name, to_optional_decimal(getattr(obj, name), name))


def _coerce_count(value: Any, name: str) -> int:
    if value is None or value == "":
        return 0
    try:
        count = int(value)
    except (TypeError, ValueError) as e:
        raise ValueError(f"Invalid bottle count for {name}: {value!r}") from e
    if count < 0:
        raise ValueError(f"Bottle count for {name} cannot be negative: {count}")
    return count


def combination_key(size: BottleSize, band: StrengthBand) -> str:
    """Reg-B count key for a size/band pair, e.g. ``750_50``."""
    return f"{size.value}_{band.value}"


COMBINATION_KEYS: tuple[str, ...] = tuple(
    combination_key(size, band) for size in BottleSize for band in StrengthBand
)


def _coerce_section(counts: Mapping[str, Any] | None, section: str) -> dict[str, int]:
    result: dict[str, int] = {}
    for key, value in (counts or {}).items():
        key = str(key)
        if key not in COMBINATION_KEYS:
            raise ValueError(f"Unknown Reg-B combination {section}.{key}")
        count = _coerce_count(value, f"{section}.{key}")
        if count:
            result[key] = count
    return result


# ---------------------------------------------------------------------------
# Reg-76: spirit receipt
# ---------------------------------------------------------------------------

RECEIPT_INPUT_FIELDS = (
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

RECEIPT_DERIVED_FIELDS = (
    "received_mass_kg",
    "received_bl",
    "received_al",
    "transit_wastage_bl",
    "transit_wastage_al",
    "allowable_wastage_al",
    "chargeable_wastage_al",
    "percentage_wastage",
)


@dataclass(frozen=True)
class SpiritReceiptEntry:
    """
    Reg-76 spirit receipt from a tanker delivery.

    Weighbridge inputs are optional at construction so that validation can
    report every missing field at once.  Derived fields are zero until the
    Reg-76 engine fills them.
    """

    id: UUID = field(default_factory=uuid4)
    receipt_date: date | None = None
    permit_no: str = ""
    exporting_distillery: str = ""
    invoice_no: str = ""
    vehicle_no: str = ""
    nature_of_spirit: str = ""
    storage_vat: str = ""
    dispatch_date: date | None = None
    arrival_date: date | None = None

    advised_bl: Decimal | None = None
    advised_al: Decimal | None = None
    advised_strength: Decimal | None = None
    advised_mass_kg: Decimal | None = None
    laden_weight_kg: Decimal | None = None
    unladen_weight_kg: Decimal | None = None
    avg_density: Decimal | None = None
    avg_temperature: Decimal | None = None
    received_strength: Decimal | None = None

    received_mass_kg: Decimal = ZERO
    received_bl: Decimal = ZERO
    received_al: Decimal = ZERO
    transit_wastage_bl: Decimal = ZERO
    transit_wastage_al: Decimal = ZERO
    allowable_wastage_al: Decimal = ZERO
    chargeable_wastage_al: Decimal = ZERO
    percentage_wastage: Decimal = ZERO
    is_chargeable: bool = False
    transit_days: int = 0

    amendment_reason: str | None = None
    remarks: str | None = None

    def __post_init__(self) -> None:
        _coerce_optional_decimals(self, RECEIPT_INPUT_FIELDS)
        _coerce_decimals(self, RECEIPT_DERIVED_FIELDS)


# ---------------------------------------------------------------------------
# Reg-74: vat events
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class VatEvent:
    """
    A Reg-74 vat operation.

    ADJUSTMENT events carry adjustment_type/wastage_reason and qty BL/AL.
    PRODUCTION events carry the mass flow meter (MFM) readings issued to a
    bottling batch and any dead stock left in the line.
    """

    id: UUID = field(default_factory=uuid4)
    vat_code: str = ""
    event_type: VatEventType = VatEventType.ADJUSTMENT
    event_datetime: datetime | None = None
    batch_id: str | None = None

    adjustment_type: AdjustmentType | None = None
    wastage_reason: WastageReason | None = None
    qty_bl: Decimal = ZERO
    qty_al: Decimal = ZERO

    mfm_bl: Decimal = ZERO
    mfm_al: Decimal | None = None
    mfm_strength: Decimal | None = None
    mfm_density: Decimal | None = None
    dead_stock_al: Decimal = ZERO

    remarks: str | None = None

    def __post_init__(self) -> None:
        _set(self, "event_type", VatEventType(self.event_type))
        if self.adjustment_type is not None:
            _set(self, "adjustment_type", AdjustmentType(self.adjustment_type))
        if self.wastage_reason is not None:
            _set(self, "wastage_reason", WastageReason(self.wastage_reason))
        _coerce_decimals(self, ("qty_bl", "qty_al", "mfm_bl", "dead_stock_al"))
        _coerce_optional_decimals(self, ("mfm_al", "mfm_strength", "mfm_density"))

    @property
    def event_date(self) -> date | None:
        return self.event_datetime.date() if self.event_datetime else None

    @property
    def is_wastage_adjustment(self) -> bool:
        return (
            self.event_type == VatEventType.ADJUSTMENT
            and self.adjustment_type == AdjustmentType.WASTAGE
        )


# ---------------------------------------------------------------------------
# Reg-A: blending and bottling production
# ---------------------------------------------------------------------------

PRODUCTION_DERIVED_FIELDS = (
    "spirit_bottled_bl",
    "spirit_bottled_al",
    "difference_found_al",
    "production_wastage_al",
    "production_increase_al",
    "allowable_wastage_al",
    "chargeable_wastage_al",
    "percentage_wastage",
)


@dataclass(frozen=True)
class BottlingProductionEntry:
    """Reg-A bottling session for a batch."""

    id: UUID = field(default_factory=uuid4)
    batch_id: str = ""
    session_no: int = 1
    status: ProductionStatus = ProductionStatus.PLANNED
    production_date: date | None = None

    bottles_750: int = 0
    bottles_600: int = 0
    bottles_500: int = 0
    bottles_375: int = 0
    bottles_300: int = 0
    bottles_180: int = 0
    avg_strength: Decimal = ZERO

    mfm_total_bl: Decimal | None = None
    mfm_total_al: Decimal | None = None
    mfm_density: Decimal | None = None
    mfm_strength: Decimal | None = None

    spirit_bottled_bl: Decimal = ZERO
    spirit_bottled_al: Decimal = ZERO
    difference_found_al: Decimal = ZERO
    production_wastage_al: Decimal = ZERO
    production_increase_al: Decimal = ZERO
    allowable_wastage_al: Decimal = ZERO
    chargeable_wastage_al: Decimal = ZERO
    percentage_wastage: Decimal = ZERO
    is_chargeable: bool = False

    finalized_by_role: str | None = None
    remarks: str | None = None

    def __post_init__(self) -> None:
        _set(self, "status", ProductionStatus(self.status))
        _set(self, "session_no", int(self.session_no))
        for size in BottleSize:
            name = size.field_name
            _set(self, name, _coerce_count(getattr(self, name), name))
        _coerce_decimals(self, ("avg_strength",) + PRODUCTION_DERIVED_FIELDS)
        _coerce_optional_decimals(
            self, ("mfm_total_bl", "mfm_total_al", "mfm_density", "mfm_strength")
        )

    @property
    def bottle_counts(self) -> dict[BottleSize, int]:
        return {size: getattr(self, size.field_name) for size in BottleSize}

    @property
    def total_bottles(self) -> int:
        return sum(self.bottle_counts.values())

    @property
    def is_completed(self) -> bool:
        return self.status == ProductionStatus.COMPLETED


# ---------------------------------------------------------------------------
# Reg-B: country liquor issues
# ---------------------------------------------------------------------------

ISSUE_DERIVED_FIELDS = (
    "opening_bl",
    "opening_al",
    "receipt_bl",
    "receipt_al",
    "issue_bl",
    "issue_al",
    "wastage_bl",
    "wastage_al",
    "closing_bl",
    "closing_al",
    "production_fees",
)


@dataclass(frozen=True)
class CountryLiquorIssueEntry:
    """
    Reg-B daily bottle inventory.

    Each section maps a combination key (``"750_50"``) to a bottle count;
    absent keys count as zero.
    """

    id: UUID = field(default_factory=uuid4)
    entry_date: date | None = None
    source_production_id: UUID | None = None

    opening: Mapping[str, int] = field(default_factory=dict)
    receipt: Mapping[str, int] = field(default_factory=dict)
    issue: Mapping[str, int] = field(default_factory=dict)
    wastage: Mapping[str, int] = field(default_factory=dict)

    opening_bl: Decimal = ZERO
    opening_al: Decimal = ZERO
    receipt_bl: Decimal = ZERO
    receipt_al: Decimal = ZERO
    issue_bl: Decimal = ZERO
    issue_al: Decimal = ZERO
    wastage_bl: Decimal = ZERO
    wastage_al: Decimal = ZERO
    closing_bl: Decimal = ZERO
    closing_al: Decimal = ZERO
    production_fees: Decimal = ZERO

    remarks: str | None = None

    def __post_init__(self) -> None:
        for section in RegBSection:
            name = section.value
            _set(self, name, _coerce_section(getattr(self, name), name))
        _coerce_decimals(self, ISSUE_DERIVED_FIELDS)

    def section_counts(self, section: RegBSection) -> Mapping[str, int]:
        return getattr(self, RegBSection(section).value)

    def count(self, section: RegBSection, size: BottleSize, band: StrengthBand) -> int:
        return self.section_counts(section).get(combination_key(size, band), 0)

    def __hash__(self) -> int:
        return hash(self.id)


# ---------------------------------------------------------------------------
# Excise duty
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DutyRateSchedule:
    """Per-unit duty rate for a category/subcategory over a date range."""

    category: str
    subcategory: str
    rate_per_unit: Decimal
    effective_from: date
    effective_to: date | None = None
    is_active: bool = True
    unit: str = "BL"
    id: UUID = field(default_factory=uuid4)

    def __post_init__(self) -> None:
        _coerce_decimals(self, ("rate_per_unit",))

    def covers(self, on_date: date) -> bool:
        if not self.is_active or self.effective_from > on_date:
            return False
        return self.effective_to is None or self.effective_to >= on_date


@dataclass(frozen=True)
class DutyLedgerEntry:
    """Monthly duty ledger row for one category/subcategory."""

    month_year: date
    category: str
    subcategory: str
    total_units_issued: Decimal = ZERO
    applied_rate: Decimal = ZERO
    duty_accrued: Decimal = ZERO
    opening_balance: Decimal = ZERO
    total_payments: Decimal = ZERO
    closing_balance: Decimal = ZERO
    status: DutyStatus = DutyStatus.PENDING
    remarks: str | None = None
    id: UUID = field(default_factory=uuid4)

    def __post_init__(self) -> None:
        _set(self, "status", DutyStatus(self.status))
        _coerce_decimals(
            self,
            (
                "total_units_issued",
                "applied_rate",
                "duty_accrued",
                "opening_balance",
                "total_payments",
                "closing_balance",
            ),
        )

    @property
    def total_liability(self) -> Decimal:
        return self.opening_balance + self.duty_accrued


@dataclass(frozen=True)
class TreasuryChallan:
    """Treasury payment applied to a duty ledger entry."""

    challan_number: str
    challan_date: date | None
    amount_paid: Decimal
    duty_entry_id: UUID | None = None
    remarks: str | None = None
    id: UUID = field(default_factory=uuid4)

    def __post_init__(self) -> None:
        _coerce_decimals(self, ("amount_paid",))


# ---------------------------------------------------------------------------
# Reg-78: master spirit ledger
# ---------------------------------------------------------------------------

MASTER_FIGURE_FIELDS = (
    "opening_bl",
    "opening_al",
    "receipt_bl",
    "receipt_al",
    "issue_bl",
    "issue_al",
    "wastage_bl",
    "wastage_al",
    "closing_bl",
    "closing_al",
)


@dataclass(frozen=True)
class MasterLedgerEntry:
    """
    Reg-78 daily rollup. A recomputable projection of the source registers;
    unique by entry_date.
    """

    entry_date: date
    opening_bl: Decimal = ZERO
    opening_al: Decimal = ZERO
    receipt_bl: Decimal = ZERO
    receipt_al: Decimal = ZERO
    issue_bl: Decimal = ZERO
    issue_al: Decimal = ZERO
    wastage_bl: Decimal = ZERO
    wastage_al: Decimal = ZERO
    closing_bl: Decimal = ZERO
    closing_al: Decimal = ZERO

    actual_closing_bl: Decimal | None = None
    variance: Decimal = ZERO
    is_reconciled: bool = False
    reconciled_by: str | None = None
    reconciled_at: datetime | None = None
    remarks: str | None = None

    receipt_count: int = 0
    production_count: int = 0
    vat_event_count: int = 0
    id: UUID = field(default_factory=uuid4)

    def __post_init__(self) -> None:
        _coerce_decimals(self, MASTER_FIGURE_FIELDS + ("variance",))
        _coerce_optional_decimals(self, ("actual_closing_bl",))

    def figures(self) -> dict[str, Decimal]:
        return {name: getattr(self, name) for name in MASTER_FIGURE_FIELDS}


# ---------------------------------------------------------------------------
# Production fee register
# ---------------------------------------------------------------------------

FEE_AMOUNT_FIELDS = (
    "total_production_bl",
    "fees_debited",
    "opening_balance",
    "deposit_amount",
    "total_credited",
    "closing_balance",
)


@dataclass(frozen=True)
class ProductionFeeEntry:
    """
    Daily production fee account: fees on bottled BL are debited against
    the deposits made by treasury challan.  Unique by entry_date.

    ``production`` maps a combination key (``"750_50"``) to the bottles
    produced that day by completed Reg-A sessions.
    """

    entry_date: date
    production: Mapping[str, int] = field(default_factory=dict)
    total_production_bl: Decimal = ZERO
    fees_debited: Decimal = ZERO
    opening_balance: Decimal = ZERO
    deposit_amount: Decimal = ZERO
    challan_no: str | None = None
    challan_date: date | None = None
    total_credited: Decimal = ZERO
    closing_balance: Decimal = ZERO
    production_count: int = 0
    remarks: str | None = None
    id: UUID = field(default_factory=uuid4)

    def __post_init__(self) -> None:
        _set(self, "production", _coerce_section(self.production, "production"))
        _coerce_decimals(self, FEE_AMOUNT_FIELDS)

    def __hash__(self) -> int:
        return hash(self.id)


def record_snapshot(record: Any) -> dict[str, Any]:
    """Flat dict of a record's fields, for audit logging."""
    return {f.name: getattr(record, f.name) for f in fields(record)}
