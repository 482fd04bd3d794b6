"""
Module: excise_engines
Responsibility:
    Package entrypoint that re-exports the public symbols of the pure
    register calculation engines.  This is the canonical import surface
    for excise_services.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import excise_kernel (domain, exceptions, logging) and sibling
    engine modules.  MUST NOT import excise_services, excise_config or
    SQLAlchemy.

Invariants enforced:
    - Purity: engines never read the clock; dates are parameters.
    - Decimal-only arithmetic with 2-place half-up rounding.
    - Determinism: identical inputs always produce identical outputs.

Audit relevance:
    Engine entry points are traced via ``@traced_engine`` (see
    ``excise_engines.tracer``), emitting EXCISE_ENGINE_TRACE records with
    engine name, version, input fingerprint and duration.
"""

from excise_kernel.logging_config import get_logger

logger = get_logger("engines")

from excise_engines.duty import (
    COUNTRY_LIQUOR,
    DutyBreakdownLine,
    ExciseDutyEngine,
    first_of_month,
    previous_month,
)
from excise_engines.production_fees import (
    FeeLedgerSummary,
    ProductionFeeEngine,
)
from excise_engines.reg76 import (
    ReceiptSummary,
    ReceivedQuantities,
    Reg76Engine,
    TransitWastage,
)
from excise_engines.reg78 import (
    DrillDown,
    LedgerSummary,
    Reg78Aggregator,
    SourceContribution,
    VarianceReport,
    calculate_variance,
    is_within_threshold,
)
from excise_engines.reg_a import (
    BottledSpirit,
    MeterReadings,
    RegAEngine,
    RegAPreview,
)
from excise_engines.reg_b import (
    COMBINATIONS,
    BalanceCheck,
    BandIssueSummary,
    RegBCombination,
    RegBEngine,
    RegBTotals,
    production_fees,
    section_totals,
)
from excise_engines.tracer import compute_input_fingerprint, traced_engine
from excise_engines.units import (
    bottles_to_absolute,
    bottles_to_volume,
    density_at_temperature,
    mass_to_volume,
    strength_band_for,
    strength_from_volumes,
    temperature_correction,
    volume_to_absolute,
    volume_to_bottles,
    volume_to_mass,
)
from excise_engines.wastage import (
    PRODUCTION_TOLERANCE,
    STORAGE_TOLERANCE,
    TRANSIT_TOLERANCE,
    WastageResult,
    analyze,
    analyze_production,
    analyze_storage,
    analyze_transit,
)

__all__ = [
    # Units
    "bottles_to_absolute",
    "bottles_to_volume",
    "density_at_temperature",
    "mass_to_volume",
    "strength_band_for",
    "strength_from_volumes",
    "temperature_correction",
    "volume_to_absolute",
    "volume_to_bottles",
    "volume_to_mass",
    # Wastage
    "PRODUCTION_TOLERANCE",
    "STORAGE_TOLERANCE",
    "TRANSIT_TOLERANCE",
    "WastageResult",
    "analyze",
    "analyze_production",
    "analyze_storage",
    "analyze_transit",
    # Reg-76
    "ReceiptSummary",
    "ReceivedQuantities",
    "Reg76Engine",
    "TransitWastage",
    # Reg-A
    "BottledSpirit",
    "MeterReadings",
    "RegAEngine",
    "RegAPreview",
    # Reg-B
    "COMBINATIONS",
    "BalanceCheck",
    "BandIssueSummary",
    "RegBCombination",
    "RegBEngine",
    "RegBTotals",
    "production_fees",
    "section_totals",
    # Production fees
    "FeeLedgerSummary",
    "ProductionFeeEngine",
    # Duty
    "COUNTRY_LIQUOR",
    "DutyBreakdownLine",
    "ExciseDutyEngine",
    "first_of_month",
    "previous_month",
    # Reg-78
    "DrillDown",
    "LedgerSummary",
    "Reg78Aggregator",
    "SourceContribution",
    "VarianceReport",
    "calculate_variance",
    "is_within_threshold",
    # Tracing
    "compute_input_fingerprint",
    "traced_engine",
]

logger.debug("engines_package_loaded", extra={
    "modules": ["units", "wastage", "reg76", "reg_a", "reg_b", "duty", "production_fees", "reg78"],
})
