"""
excise_engines.wastage -- Tolerance-threshold wastage and increase classification.

Responsibility:
    Compare an expected quantity against the quantity actually found and
    split the difference into wastage (shortfall) or increase (surplus).
    For a shortfall the allowable wastage is expected x tolerance and only
    the excess over that allowance is chargeable.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Consumed by the Reg-76 (transit), Reg-A (production) and storage
    audit calculations.

Invariants enforced:
    - Exclusivity: at most one of wastage and increase is non-zero.
    - 0 <= chargeable <= wastage.
    - is_chargeable is True exactly when chargeable > 0.
    - A zero expected quantity gives a 0 percentage rather than raising.

Failure modes:
    - ValueError for a negative tolerance.

Usage:
    from excise_engines.wastage import analyze_production

    result = analyze_production(expected=Decimal("1000"), actual=Decimal("995"))
    result.chargeable_wastage   # Decimal("4.00")
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from excise_kernel.domain.values import HUNDRED, ZERO, round2, to_decimal
from excise_kernel.logging_config import get_logger
from excise_engines.tracer import traced_engine

logger = get_logger("engines.wastage")

TRANSIT_TOLERANCE = Decimal("0.005")
STORAGE_TOLERANCE = Decimal("0.003")
PRODUCTION_TOLERANCE = Decimal("0.001")


@dataclass(frozen=True)
class WastageResult:
    """Classification of the gap between an expected and an actual quantity."""

    expected: Decimal
    actual: Decimal
    tolerance: Decimal
    difference_found: Decimal
    wastage: Decimal
    increase: Decimal
    allowable_wastage: Decimal
    chargeable_wastage: Decimal
    is_chargeable: bool
    percentage_wastage: Decimal

    @property
    def has_wastage(self) -> bool:
        return self.wastage > ZERO

    @property
    def has_increase(self) -> bool:
        return self.increase > ZERO


@traced_engine("wastage", "1.0", fingerprint_fields=("expected", "actual", "tolerance"))
def analyze(expected: Any, actual: Any, tolerance: Any) -> WastageResult:
    """
    Classify expected vs actual at the given tolerance (a fraction, 0.001 = 0.1%).

    Shortfall (expected > actual): wastage = difference, allowable =
    expected x tolerance, chargeable = max(0, wastage - allowable).
    Otherwise increase = -difference and every wastage figure is 0.
    """
    t0 = time.monotonic()
    expected = to_decimal(expected, "expected")
    actual = to_decimal(actual, "actual")
    tolerance = to_decimal(tolerance, "tolerance")
    logger.debug("wastage_analysis_started", extra={
        "expected": str(expected),
        "actual": str(actual),
        "tolerance": str(tolerance),
    })

    if tolerance < ZERO:
        logger.error("wastage_negative_tolerance", extra={"tolerance": str(tolerance)})
        raise ValueError(f"Tolerance cannot be negative: {tolerance}")

    difference = expected - actual

    if difference > ZERO:
        allowable = expected * tolerance if expected > ZERO else ZERO
        wastage = round2(difference)
        allowable_rounded = round2(allowable)
        chargeable = round2(max(ZERO, difference - allowable))
        increase = ZERO
        percentage = round2(difference / expected * HUNDRED) if expected > ZERO else ZERO
    else:
        wastage = ZERO
        allowable_rounded = ZERO
        chargeable = ZERO
        increase = round2(-difference)
        percentage = ZERO

    result = WastageResult(
        expected=expected,
        actual=actual,
        tolerance=tolerance,
        difference_found=round2(difference),
        wastage=wastage,
        increase=increase,
        allowable_wastage=allowable_rounded,
        chargeable_wastage=chargeable,
        is_chargeable=chargeable > ZERO,
        percentage_wastage=percentage,
    )

    duration_ms = round((time.monotonic() - t0) * 1000, 2)
    logger.debug("wastage_analysis_completed", extra={
        "difference_found": str(result.difference_found),
        "wastage": str(result.wastage),
        "increase": str(result.increase),
        "chargeable_wastage": str(result.chargeable_wastage),
        "is_chargeable": result.is_chargeable,
        "duration_ms": duration_ms,
    })
    return result


def analyze_transit(expected: Any, actual: Any, tolerance: Any = TRANSIT_TOLERANCE) -> WastageResult:
    """Transit wastage between advised and received AL (0.5%)."""
    return analyze(expected, actual, tolerance)


def analyze_production(expected: Any, actual: Any, tolerance: Any = PRODUCTION_TOLERANCE) -> WastageResult:
    """Production wastage between meter AL and bottled AL (0.1%)."""
    return analyze(expected, actual, tolerance)


def analyze_storage(opening: Any, closing: Any, tolerance: Any = STORAGE_TOLERANCE) -> WastageResult:
    """Storage wastage between a vat's opening and closing AL (0.3%)."""
    return analyze(opening, closing, tolerance)
