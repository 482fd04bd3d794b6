"""
Configuration Schema (``excise_config.schema``).

Responsibility
--------------
Frozen dataclasses describing the excise configuration: wastage
tolerances, the Reg-B balance tolerance and production fee, the fee
charged per bottled BL, the Reg-78 reconciliation threshold, role rules
and the seed duty rate schedule.

Architecture position
---------------------
**Config layer** -- pure data.  Parsed by ``excise_config.loader`` and
handed to services, which pass the values on to engine constructors.

Invariants enforced
-------------------
* Every schema object is ``frozen=True``.
* Tolerances are fractions in ``[0, 1)``; amounts are non-negative.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from excise_kernel.domain.registers import DutyRateSchedule


@dataclass(frozen=True)
class WastageTolerances:
    """Allowable loss as a fraction of the expected quantity."""

    transit: Decimal = Decimal("0.005")
    production: Decimal = Decimal("0.001")
    storage: Decimal = Decimal("0.003")


@dataclass(frozen=True)
class RoleRules:
    """Roles permitted to perform guarded operations."""

    finalize_roles: tuple[str, ...] = ("ADMIN", "EXCISE")
    amend_roles: tuple[str, ...] = ("ADMIN",)


@dataclass(frozen=True)
class ExciseConfig:
    """
    Complete excise configuration.

    ``checksum`` is the SHA-256 of the source YAML text (empty for a
    configuration built in code).
    """

    name: str = "default"
    version: int = 1
    tolerances: WastageTolerances = field(default_factory=WastageTolerances)
    balance_tolerance: Decimal = Decimal("0.01")
    production_fee_per_bottle: Decimal = Decimal("3.00")
    production_fee_per_bl: Decimal = Decimal("3.00")
    variance_threshold: Decimal = Decimal("1.0")
    standard_temperature: Decimal = Decimal("20")
    roles: RoleRules = field(default_factory=RoleRules)
    duty_rates: tuple[DutyRateSchedule, ...] = ()
    checksum: str = ""
