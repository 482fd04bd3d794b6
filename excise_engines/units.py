"""
excise_engines.units -- Spirit unit conversions (bottles, BL, AL, mass, density).

Responsibility:
    Convert raw physical measurements into bulk litres (BL) and absolute
    litres (AL): bottle counts to volume, mass and density to volume,
    volume and strength to absolute alcohol, plus the temperature
    corrections and strength-band lookup used by the registers.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import excise_kernel.domain.

Invariants enforced:
    - Every derived figure is rounded ROUND_HALF_UP to 2 places
      (densities to 4).  bottles_to_volume rounds once, after summing.
    - Degenerate inputs (zero or negative density, strength or volume)
      return 0 instead of raising.

Usage:
    from excise_engines.units import bottles_to_volume, volume_to_absolute

    bl = bottles_to_volume({BottleSize.ML_750: 100, BottleSize.ML_180: 48})
    al = volume_to_absolute(bl, Decimal("42.8"))
"""

from __future__ import annotations

from decimal import ROUND_FLOOR, Decimal
from typing import Any, Mapping

from excise_kernel.domain.registers import BottleSize, StrengthBand
from excise_kernel.domain.values import HUNDRED, ZERO, round2, round4, to_decimal

STANDARD_TEMPERATURE = Decimal("20")
TEMPERATURE_COEFFICIENT = Decimal("0.001")

# Inclusive lower bound, upper bound, whether the upper bound is inclusive.
_BAND_RANGES: tuple[tuple[StrengthBand, Decimal, Decimal, bool], ...] = (
    (StrengthBand.UP_50, Decimal("25"), Decimal("30"), True),
    (StrengthBand.UP_60, Decimal("20"), Decimal("25"), False),
    (StrengthBand.UP_70, Decimal("15"), Decimal("20"), False),
    (StrengthBand.UP_80, Decimal("10"), Decimal("15"), False),
)


def _size(size: Any) -> BottleSize | None:
    try:
        return BottleSize(int(size))
    except (TypeError, ValueError):
        return None


def bottles_to_volume(counts: Mapping[Any, Any]) -> Decimal:
    """
    Total bulk litres for a set of bottle counts keyed by size in ml.

    Unknown sizes and non-positive counts contribute nothing.  The sum is
    rounded once at the end.
    """
    total = ZERO
    for size, count in (counts or {}).items():
        bottle = _size(size)
        quantity = int(count or 0)
        if bottle is None or quantity <= 0:
            continue
        total += bottle.litres * quantity
    return round2(total)


def volume_to_absolute(bl: Any, strength: Any) -> Decimal:
    """AL = BL x strength / 100; 0 when either is non-positive."""
    bl = to_decimal(bl, "bl")
    strength = to_decimal(strength, "strength")
    if bl <= ZERO or strength <= ZERO:
        return ZERO
    return round2(bl * strength / HUNDRED)


def bottles_to_absolute(counts: Mapping[Any, Any], strength: Any) -> Decimal:
    """AL from bottle counts at a single strength (BL is rounded first)."""
    return volume_to_absolute(bottles_to_volume(counts), strength)


def mass_to_volume(mass_kg: Any, density: Any) -> Decimal:
    """BL = mass / density (gm/cc); 0 when mass or density is non-positive."""
    mass_kg = to_decimal(mass_kg, "mass_kg")
    density = to_decimal(density, "density")
    if mass_kg <= ZERO or density <= ZERO:
        return ZERO
    return round2(mass_kg / density)


def volume_to_mass(bl: Any, density: Any) -> Decimal:
    """Mass (kg) = BL x density; 0 when either is non-positive."""
    bl = to_decimal(bl, "bl")
    density = to_decimal(density, "density")
    if bl <= ZERO or density <= ZERO:
        return ZERO
    return round2(bl * density)


def strength_from_volumes(al: Any, bl: Any) -> Decimal:
    """Strength % = AL / BL x 100; 0 when BL is non-positive."""
    al = to_decimal(al, "al")
    bl = to_decimal(bl, "bl")
    if bl <= ZERO or al == ZERO:
        return ZERO
    return round2(al / bl * HUNDRED)


def temperature_correction(
    bl: Any,
    current_temp: Any,
    target_temp: Any = STANDARD_TEMPERATURE,
) -> Decimal:
    """
    Correct a volume to the target temperature.

    factor = 1 - 0.001 x (current - target).  Non-positive volumes and a
    missing temperature are returned unchanged.
    """
    bl = to_decimal(bl, "bl")
    if bl <= ZERO or current_temp is None:
        return bl
    delta = to_decimal(current_temp, "current_temp") - to_decimal(target_temp, "target_temp")
    return round2(bl * (Decimal("1") - delta * TEMPERATURE_COEFFICIENT))


def density_at_temperature(
    density: Any,
    measured_temp: Any,
    target_temp: Any = STANDARD_TEMPERATURE,
) -> Decimal:
    """
    Density corrected to the target temperature, at 4 places.

    factor = 1 + 0.001 x (measured - target).
    """
    density = to_decimal(density, "density")
    if density <= ZERO or measured_temp is None:
        return density
    delta = to_decimal(measured_temp, "measured_temp") - to_decimal(target_temp, "target_temp")
    return round4(density * (Decimal("1") + delta * TEMPERATURE_COEFFICIENT))


def volume_to_bottles(bl: Any, size: Any) -> int:
    """Whole bottles of the given size that a volume fills (rounded down)."""
    bl = to_decimal(bl, "bl")
    bottle = _size(size)
    if bl <= ZERO or bottle is None:
        return 0
    return int((bl / bottle.litres).to_integral_value(rounding=ROUND_FLOOR))


def strength_band_for(strength: Any) -> StrengthBand | None:
    """
    Map a strength % to its Under Proof band.

    25-30 -> 50 UP, 20-<25 -> 60 UP, 15-<20 -> 70 UP, 10-<15 -> 80 UP;
    anything else is unmapped (None).
    """
    strength = to_decimal(strength, "strength")
    for band, low, high, high_inclusive in _BAND_RANGES:
        if strength < low:
            continue
        if strength < high or (high_inclusive and strength == high):
            return band
    return None
