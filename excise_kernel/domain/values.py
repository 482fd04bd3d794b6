"""
Values -- Decimal coercion, rounding and the paired BL/AL spirit quantity.

Responsibility:
    Provides the numeric foundation for every register computation:
    coercion of user input to Decimal, the single 2-place half-up
    rounding rule, and SpiritVolume, which keeps bulk litres and
    absolute litres together so they are never summed separately by
    accident.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.
    Imported by engines and services. No outward dependencies.

Invariants enforced:
    - Decimal-only arithmetic: floats are converted through ``str`` so
      0.1 stays 0.1 and never becomes 0.1000000000000000055.
    - Rounding is ROUND_HALF_UP to 2 places for volumes and money,
      4 places for densities.

Failure modes:
    - ValueError when a value cannot be parsed as a decimal number.
    - TypeError when SpiritVolume arithmetic mixes in a non-SpiritVolume.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

ZERO = Decimal("0")
HUNDRED = Decimal("100")
CENT = Decimal("0.01")
DENSITY_QUANTUM = Decimal("0.0001")


def to_decimal(value: Any, field: str = "value") -> Decimal:
    """
    Coerce int, str, float or Decimal to Decimal.

    None and empty strings become zero; callers that need to detect a
    missing value must check before coercing.

    Raises:
        ValueError: If the value is not a finite decimal number.
    """
    if isinstance(value, Decimal):
        result = value
    elif value is None or value == "":
        return ZERO
    elif isinstance(value, bool):
        raise ValueError(f"Invalid {field}: {value!r}")
    else:
        try:
            result = Decimal(str(value).strip())
        except (InvalidOperation, ValueError) as e:
            raise ValueError(f"Invalid {field}: {value!r}") from e
    if not result.is_finite():
        raise ValueError(f"Invalid {field}: {value!r}")
    return result


def to_optional_decimal(value: Any, field: str = "value") -> Decimal | None:
    """Like to_decimal, but keeps None (and empty strings) as None."""
    if value is None or value == "":
        return None
    return to_decimal(value, field)


def round2(value: Decimal | int | str) -> Decimal:
    """Round to 2 decimal places, half away from zero."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def round4(value: Decimal | int | str) -> Decimal:
    """Round to 4 decimal places (densities)."""
    return to_decimal(value).quantize(DENSITY_QUANTUM, rounding=ROUND_HALF_UP)


def within_tolerance(a: Decimal, b: Decimal, tolerance: Decimal) -> bool:
    """True when |a - b| is strictly below tolerance."""
    return abs(a - b) < tolerance


@dataclass(frozen=True, slots=True)
class SpiritVolume:
    """
    Paired bulk-litre / absolute-litre quantity.

    Contract:
        bl and al always travel together. Addition and subtraction apply
        to both components; no implicit rounding.

    Guarantees:
        - Immutable and hashable
        - Both components are Decimal
    """

    bl: Decimal = ZERO
    al: Decimal = ZERO

    def __post_init__(self) -> None:
        object.__setattr__(self, "bl", to_decimal(self.bl, "bl"))
        object.__setattr__(self, "al", to_decimal(self.al, "al"))

    @classmethod
    def zero(cls) -> SpiritVolume:
        return cls(ZERO, ZERO)

    @property
    def is_zero(self) -> bool:
        return self.bl == ZERO and self.al == ZERO

    def rounded(self) -> SpiritVolume:
        return SpiritVolume(round2(self.bl), round2(self.al))

    def __add__(self, other: SpiritVolume) -> SpiritVolume:
        if not isinstance(other, SpiritVolume):
            return NotImplemented
        return SpiritVolume(self.bl + other.bl, self.al + other.al)

    def __sub__(self, other: SpiritVolume) -> SpiritVolume:
        if not isinstance(other, SpiritVolume):
            return NotImplemented
        return SpiritVolume(self.bl - other.bl, self.al - other.al)

    def __neg__(self) -> SpiritVolume:
        return SpiritVolume(-self.bl, -self.al)

    def __str__(self) -> str:
        return f"{self.bl} BL / {self.al} AL"
