"""
excise_config -- single public entrypoint for excise configuration.

Responsibility:
    Provides the runtime way to obtain configuration through
    ``get_active_config()``.  Returns a frozen ``ExciseConfig`` holding
    the wastage tolerances, Reg-B settings, the reconciliation threshold,
    role rules and the seed duty rate schedule.

Architecture position:
    Configuration -- sits above ``excise_kernel`` and below
    ``excise_services``.  Engines MUST NEVER import from
    ``excise_config``; services pass configured values into engine
    constructors.

Invariants enforced:
    - Deterministic parsing: the same YAML text always produces the same
      ``ExciseConfig`` and checksum.

Failure modes:
    - ``FileNotFoundError`` -- the requested file does not exist.
    - ``KeyError`` -- a required key is missing.
    - ``ValueError`` -- a value fails validation.

Audit relevance:
    Every successful ``get_active_config()`` call emits an
    ``EXCISE_CONFIG_TRACE`` log entry containing the config name, version,
    checksum and duty rate count, tying register figures back to the
    configuration that governed them.
"""

from __future__ import annotations

from pathlib import Path

from excise_kernel.logging_config import get_logger
from excise_config.loader import load_config
from excise_config.schema import ExciseConfig, RoleRules, WastageTolerances

_logger = get_logger("config")

DEFAULT_CONFIG_PATH = Path(__file__).parent / "defaults.yaml"


def get_active_config(path: Path | str | None = None) -> ExciseConfig:
    """The public configuration entrypoint.

    Loads ``path``, or the bundled ``defaults.yaml`` when omitted.

    Raises:
        FileNotFoundError: The file does not exist.
        KeyError: A required key is missing.
        ValueError: A value fails validation.
    """
    config_path = Path(path) if path is not None else DEFAULT_CONFIG_PATH
    config = load_config(config_path)

    _logger.info(
        "EXCISE_CONFIG_TRACE",
        extra={
            "trace_type": "EXCISE_CONFIG_TRACE",
            "config_name": config.name,
            "config_version": config.version,
            "checksum": config.checksum,
            "source": str(config_path),
            "duty_rate_count": len(config.duty_rates),
        },
    )
    return config


__all__ = [
    "DEFAULT_CONFIG_PATH",
    "ExciseConfig",
    "RoleRules",
    "WastageTolerances",
    "get_active_config",
]
