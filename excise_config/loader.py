"""
Configuration Loader (``excise_config.loader``).

Responsibility
--------------
Loads a YAML configuration file and parses it into a typed
``excise_config.schema.ExciseConfig``.  Runtime callers use
``excise_config.get_active_config()``; the functions here are exposed
for tooling and tests.

Architecture position
---------------------
**Config layer** -- infrastructure tooling.  Depends only on the kernel
domain (for ``DutyRateSchedule`` and ``UserRole``); never on engines or
services.

Invariants enforced
-------------------
* All parse errors raise ``ValueError`` or ``KeyError`` with descriptive
  messages; no silent defaults for required keys.
* Every parsed object is a frozen dataclass from ``schema.py``.
* ``compute_checksum`` produces a deterministic SHA-256 hash of the
  source text for configuration identity.

Failure modes
-------------
* Missing YAML file  -> ``FileNotFoundError`` propagates.
* Malformed YAML  -> ``yaml.YAMLError`` propagates.
* Missing required keys  -> ``KeyError`` propagates.
* Invalid numbers, dates, fractions or roles  -> ``ValueError``.
"""

from __future__ import annotations

import hashlib
from datetime import date
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any

import yaml

from excise_kernel.domain.registers import DutyRateSchedule, UserRole
from excise_config.schema import ExciseConfig, RoleRules, WastageTolerances


def load_yaml_file(path: Path) -> dict[str, Any]:
    """
    Load a single YAML file and return its contents as a dict.

    Raises:
        FileNotFoundError: if the file does not exist.
        yaml.YAMLError: if the file contains invalid YAML.
    """
    with open(path) as f:
        return yaml.safe_load(f) or {}


def compute_checksum(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


def parse_date(value: Any) -> date:
    """Parse a date from YAML (string or date object)."""
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return date.fromisoformat(value)
    raise ValueError(f"Cannot parse date from {value!r}")


def parse_decimal(value: Any, name: str) -> Decimal:
    """Parse a non-negative Decimal; floats go through ``str``."""
    if isinstance(value, bool) or value is None:
        raise ValueError(f"{name}: expected a number, got {value!r}")
    try:
        result = Decimal(str(value))
    except InvalidOperation as exc:
        raise ValueError(f"{name}: expected a number, got {value!r}") from exc
    if not result.is_finite() or result < 0:
        raise ValueError(f"{name}: must be a non-negative number, got {value!r}")
    return result


def parse_fraction(value: Any, name: str) -> Decimal:
    result = parse_decimal(value, name)
    if result >= 1:
        raise ValueError(f"{name}: tolerance must be a fraction below 1, got {value!r}")
    return result


def parse_roles(values: Any, name: str) -> tuple[str, ...]:
    if not isinstance(values, list) or not values:
        raise ValueError(f"{name}: expected a non-empty list of roles")
    known = {role.value for role in UserRole}
    roles = []
    for value in values:
        role = str(value).upper()
        if role not in known:
            raise ValueError(f"{name}: unknown role {value!r}")
        roles.append(role)
    return tuple(roles)


def parse_tolerances(data: dict[str, Any]) -> WastageTolerances:
    return WastageTolerances(
        transit=parse_fraction(data["transit"], "tolerances.transit"),
        production=parse_fraction(data["production"], "tolerances.production"),
        storage=parse_fraction(data["storage"], "tolerances.storage"),
    )


def parse_roles_section(data: dict[str, Any]) -> RoleRules:
    return RoleRules(
        finalize_roles=parse_roles(data["finalize"], "roles.finalize"),
        amend_roles=parse_roles(data["amend"], "roles.amend"),
    )


def parse_duty_rate(data: dict[str, Any]) -> DutyRateSchedule:
    """
    Parse one duty rate row.

    Required keys: category, subcategory, rate, effective_from.
    Optional: effective_to, is_active (default True), unit (default BL).
    """
    effective_from = parse_date(data["effective_from"])
    effective_to = parse_date(data["effective_to"]) if data.get("effective_to") else None
    if effective_to is not None and effective_to < effective_from:
        raise ValueError(
            f"duty rate {data['category']}/{data['subcategory']}: "
            f"effective_to {effective_to} precedes effective_from {effective_from}"
        )
    return DutyRateSchedule(
        category=str(data["category"]),
        subcategory=str(data["subcategory"]),
        rate_per_unit=parse_decimal(data["rate"], "duty_rates.rate"),
        effective_from=effective_from,
        effective_to=effective_to,
        is_active=bool(data.get("is_active", True)),
        unit=str(data.get("unit", "BL")),
    )


def parse_config(data: dict[str, Any], checksum: str = "") -> ExciseConfig:
    """Parse a complete ``ExciseConfig`` from a dict."""
    reg_b = data["reg_b"]
    return ExciseConfig(
        name=str(data["name"]),
        version=int(data.get("version", 1)),
        tolerances=parse_tolerances(data["tolerances"]),
        balance_tolerance=parse_decimal(reg_b["balance_tolerance"], "reg_b.balance_tolerance"),
        production_fee_per_bottle=parse_decimal(
            reg_b["production_fee_per_bottle"], "reg_b.production_fee_per_bottle"
        ),
        variance_threshold=parse_decimal(
            data["reg78"]["variance_threshold"], "reg78.variance_threshold"
        ),
        production_fee_per_bl=parse_decimal(
            (data.get("fee_register") or {}).get("fee_per_bl", 3), "fee_register.fee_per_bl"
        ),
        standard_temperature=parse_decimal(
            data.get("standard_temperature", 20), "standard_temperature"
        ),
        roles=parse_roles_section(data["roles"]),
        duty_rates=tuple(parse_duty_rate(row) for row in data.get("duty_rates", [])),
        checksum=checksum,
    )


def load_config(path: Path) -> ExciseConfig:
    """
    Read, checksum and parse a configuration file.

    Raises:
        FileNotFoundError, yaml.YAMLError, KeyError, ValueError.
    """
    text = Path(path).read_text(encoding="utf-8")
    data = yaml.safe_load(text) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path}: top-level YAML value must be a mapping")
    return parse_config(data, checksum=compute_checksum(text))
