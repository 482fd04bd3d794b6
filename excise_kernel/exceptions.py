"""
Typed Exception Hierarchy for the Excise Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Register writes are rejected for data-entry reasons: a missing permit
number, a laden weight below the tare, a Reg-B section that does not
balance.  Callers (the API layer) must tell these apart without parsing
message strings, so every error has:
  1. A TYPED exception class (catch by type, not message)
  2. A CODE class attribute (machine-readable, API-safe)
  3. Structured DATA attributes (errors, entry ids, figures)

Example:
    try:
        service.create_issue(entry)
    except BalanceViolationError as e:
        api_response(400, code=e.code, difference=str(e.difference))
    except ValidationError as e:
        api_response(400, code=e.code, errors=e.errors)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    ExciseKernelError (base)
    |
    +-- ValidationError
    |   +-- InvalidWeighbridgeReadingError
    |
    +-- BalanceViolationError
    +-- MissingRateError
    +-- PreconditionError
    +-- StateTransitionError
    +-- AuthorizationError
    +-- EntryNotFoundError
    +-- DuplicateEntryError
    |
    +-- ReconciliationError
        +-- AlreadyReconciledError
        +-- ReconciliationRemarksRequiredError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Code                             | When Raised
---------------------------------|---------------------------------------------
VALIDATION_FAILED                | Mandatory field missing, value out of range
INVALID_WEIGHBRIDGE_READING      | Laden weight not above unladen weight
BALANCE_VIOLATION                | Reg-B opening+receipt != issue+wastage+closing
MISSING_DUTY_RATE                | No active rate covers the category/date
PRECONDITION_FAILED              | Finalize without meter data, source not ready
INVALID_STATE_TRANSITION         | Mutating a COMPLETED production entry
ROLE_NOT_PERMITTED               | Caller role may not finalize/amend
ENTRY_NOT_FOUND                  | Repository lookup by id failed
DUPLICATE_ENTRY                  | Unique key already taken (date, challan, batch)
ALREADY_RECONCILED               | Master ledger entry already signed off
RECONCILIATION_REMARKS_REQUIRED  | Variance above threshold without remarks

None of these are retried: they are correctness failures in the submitted
data, not transient faults.
"""

from __future__ import annotations

from decimal import Decimal


class ExciseKernelError(Exception):
    """
    Base exception for all excise kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "EXCISE_KERNEL_ERROR"


# Validation


class ValidationError(ExciseKernelError):
    """One or more fields failed validation; carries the itemized list."""

    code: str = "VALIDATION_FAILED"

    def __init__(self, errors: list[str], register: str | None = None):
        self.errors = list(errors)
        self.register = register
        prefix = f"{register} validation failed" if register else "Validation failed"
        super().__init__(f"{prefix}: {'; '.join(self.errors)}")


class InvalidWeighbridgeReadingError(ValidationError):
    """Laden weight does not exceed unladen weight."""

    code: str = "INVALID_WEIGHBRIDGE_READING"

    def __init__(self, laden_weight_kg: Decimal, unladen_weight_kg: Decimal):
        self.laden_weight_kg = laden_weight_kg
        self.unladen_weight_kg = unladen_weight_kg
        super().__init__(
            [
                f"invalid weighbridge reading: laden {laden_weight_kg} kg "
                f"must exceed unladen {unladen_weight_kg} kg"
            ],
            register="Reg-76",
        )


# Balance


class BalanceViolationError(ExciseKernelError):
    """Reg-B section totals do not satisfy the stock balance equation."""

    code: str = "BALANCE_VIOLATION"

    def __init__(self, left_side: Decimal, right_side: Decimal, difference: Decimal):
        self.left_side = left_side
        self.right_side = right_side
        self.difference = difference
        super().__init__(
            f"Opening + receipt ({left_side} BL) does not equal "
            f"issue + wastage + closing ({right_side} BL): difference {difference} BL"
        )


# Duty


class MissingRateError(ExciseKernelError):
    """No active duty rate covers the requested category, subcategory and date."""

    code: str = "MISSING_DUTY_RATE"

    def __init__(self, category: str, subcategory: str, on_date: str):
        self.category = category
        self.subcategory = subcategory
        self.on_date = on_date
        super().__init__(
            f"No duty rate found for {category} - {subcategory} on {on_date}"
        )


# Workflow


class PreconditionError(ExciseKernelError):
    """A required earlier step has not happened yet."""

    code: str = "PRECONDITION_FAILED"

    def __init__(self, precondition: str, message: str):
        self.precondition = precondition
        super().__init__(message)


class StateTransitionError(ExciseKernelError):
    """The entry's current status does not allow the requested operation."""

    code: str = "INVALID_STATE_TRANSITION"

    def __init__(self, entry_id: str | None, current_status: str, operation: str):
        self.entry_id = entry_id
        self.current_status = current_status
        self.operation = operation
        super().__init__(
            f"Cannot {operation} entry {entry_id} in status {current_status}"
        )


class AuthorizationError(ExciseKernelError):
    """Caller's role is not permitted to perform the operation."""

    code: str = "ROLE_NOT_PERMITTED"

    def __init__(self, role: str | None, operation: str, allowed_roles: tuple[str, ...]):
        self.role = role
        self.operation = operation
        self.allowed_roles = allowed_roles
        super().__init__(
            f"Role {role} may not {operation}; allowed: {', '.join(allowed_roles)}"
        )


# Repository


class EntryNotFoundError(ExciseKernelError):
    """Entry with the given id does not exist."""

    code: str = "ENTRY_NOT_FOUND"

    def __init__(self, entry_type: str, entry_id: str):
        self.entry_type = entry_type
        self.entry_id = entry_id
        super().__init__(f"{entry_type} not found: {entry_id}")


class DuplicateEntryError(ExciseKernelError):
    """Unique key is already taken."""

    code: str = "DUPLICATE_ENTRY"

    def __init__(self, entry_type: str, key: str):
        self.entry_type = entry_type
        self.key = key
        super().__init__(f"{entry_type} already exists for {key}")


# Reconciliation


class ReconciliationError(ExciseKernelError):
    """Base exception for master ledger reconciliation errors."""

    code: str = "RECONCILIATION_ERROR"


class AlreadyReconciledError(ReconciliationError):
    """Master ledger entry has already been signed off."""

    code: str = "ALREADY_RECONCILED"

    def __init__(self, entry_date: str):
        self.entry_date = entry_date
        super().__init__(f"Master ledger entry for {entry_date} is already reconciled")


class ReconciliationRemarksRequiredError(ReconciliationError):
    """Variance exceeds the threshold and no remarks were supplied."""

    code: str = "RECONCILIATION_REMARKS_REQUIRED"

    def __init__(self, variance: Decimal, threshold: Decimal):
        self.variance = variance
        self.threshold = threshold
        super().__init__(
            f"Variance {variance}% exceeds threshold {threshold}%; "
            "remarks are required for reconciliation"
        )
