"""
RegisterService -- common base for the register services.

Responsibility:
    Holds the repository, configuration and clock every service needs,
    and records audit events and role checks in one place.

Architecture position:
    Services -- imperative shell.  Concrete services orchestrate
    validation -> engine -> repository -> audit log.

Invariants enforced:
    - Services never commit: with ``SqlRegisterRepository`` the caller
      owns the transaction, so a failed operation persists nothing once
      the caller rolls back.
    - The clock is injected; engines never read it.

Audit relevance:
    Every state change goes through ``_audit()``, which emits one
    ``audit_event`` record (trace_type AUDIT) with before/after snapshots
    and a payload hash.
"""

from __future__ import annotations

import hashlib
import json
from abc import ABC
from enum import Enum
from typing import Any, Iterable
from uuid import UUID

from excise_config import get_active_config
from excise_config.schema import ExciseConfig
from excise_kernel.domain.clock import Clock, SystemClock
from excise_kernel.domain.registers import UserRole, record_snapshot
from excise_kernel.exceptions import AuthorizationError
from excise_kernel.logging_config import get_logger
from excise_services.repository import RegisterRepository

audit_logger = get_logger("services.audit")


class AuditAction(str, Enum):
    CREATED = "CREATED"
    UPDATED = "UPDATED"
    AMENDED = "AMENDED"
    DECLARED = "DECLARED"
    METER_LINKED = "METER_LINKED"
    FINALIZED = "FINALIZED"
    PAYMENT_APPLIED = "PAYMENT_APPLIED"
    RECONCILED = "RECONCILED"
    SIGNED_OFF = "SIGNED_OFF"


def _json_default(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    return str(value)


def payload_hash(payload: dict[str, Any]) -> str:
    canonical = json.dumps(payload, sort_keys=True, default=_json_default, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def role_name(role: Any) -> str | None:
    if role is None:
        return None
    if isinstance(role, UserRole):
        return role.value
    return str(role).upper()


class RegisterService(ABC):
    """
    Base class for services over a ``RegisterRepository``.

    Contract:
        ``config`` defaults to ``get_active_config()`` and ``clock`` to
        ``SystemClock``; tests inject both.
    """

    entity_type: str = "register"

    def __init__(
        self,
        repository: RegisterRepository,
        config: ExciseConfig | None = None,
        clock: Clock | None = None,
    ):
        self.repository = repository
        self.config = config or get_active_config()
        self._clock = clock or SystemClock()

    def _require_role(self, role: Any, allowed: Iterable[str], operation: str) -> str:
        allowed = tuple(allowed)
        name = role_name(role)
        if name not in allowed:
            audit_logger.warning("role_not_permitted", extra={
                "role": name,
                "operation": operation,
                "allowed_roles": list(allowed),
            })
            raise AuthorizationError(name, operation, allowed)
        return name

    def _audit(
        self,
        action: AuditAction,
        entity_id: UUID,
        actor_id: str | None = None,
        before: Any = None,
        after: Any = None,
        entity_type: str | None = None,
        **details: Any,
    ) -> None:
        payload = {
            "before": record_snapshot(before) if before is not None else None,
            "after": record_snapshot(after) if after is not None else None,
            **details,
        }
        audit_logger.info("audit_event", extra={
            "trace_type": "AUDIT",
            "entity_type": entity_type or self.entity_type,
            "entity_id": str(entity_id),
            "action": action.value,
            "actor_id": actor_id,
            "occurred_at": self._clock.now(),
            "payload": payload,
            "payload_hash": payload_hash(payload),
        })
