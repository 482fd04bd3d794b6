"""Tests for the typed exception hierarchy (excise_kernel/exceptions.py)."""

from decimal import Decimal

import pytest

from excise_kernel.exceptions import (
    AlreadyReconciledError,
    AuthorizationError,
    BalanceViolationError,
    DuplicateEntryError,
    EntryNotFoundError,
    ExciseKernelError,
    InvalidWeighbridgeReadingError,
    MissingRateError,
    PreconditionError,
    ReconciliationError,
    ReconciliationRemarksRequiredError,
    StateTransitionError,
    ValidationError,
)


class TestErrorCodes:
    """Every error carries a stable machine-readable code."""

    @pytest.mark.parametrize(
        "exc, code",
        [
            (ValidationError(["x is required"]), "VALIDATION_FAILED"),
            (InvalidWeighbridgeReadingError(Decimal("100"), Decimal("200")), "INVALID_WEIGHBRIDGE_READING"),
            (BalanceViolationError(Decimal("10"), Decimal("9"), Decimal("1")), "BALANCE_VIOLATION"),
            (MissingRateError("CL", "50° U.P.", "2024-04-01"), "MISSING_DUTY_RATE"),
            (PreconditionError("meter_data", "no meter"), "PRECONDITION_FAILED"),
            (StateTransitionError("e-1", "COMPLETED", "finalize"), "INVALID_STATE_TRANSITION"),
            (AuthorizationError("USER", "finalize production", ("ADMIN",)), "ROLE_NOT_PERMITTED"),
            (EntryNotFoundError("receipt", "r-1"), "ENTRY_NOT_FOUND"),
            (DuplicateEntryError("challan", "CH-1"), "DUPLICATE_ENTRY"),
            (AlreadyReconciledError("2024-04-01"), "ALREADY_RECONCILED"),
            (ReconciliationRemarksRequiredError(Decimal("2.5"), Decimal("1.0")), "RECONCILIATION_REMARKS_REQUIRED"),
        ],
    )
    def test_code(self, exc, code):
        assert exc.code == code
        assert isinstance(exc, ExciseKernelError)


class TestValidationError:

    def test_carries_itemized_errors(self):
        exc = ValidationError(["permit_no is required", "advised_bl is required"], register="Reg-76")

        assert exc.errors == ["permit_no is required", "advised_bl is required"]
        assert exc.register == "Reg-76"
        assert str(exc) == "Reg-76 validation failed: permit_no is required; advised_bl is required"

    def test_message_without_register(self):
        assert str(ValidationError(["bad"])) == "Validation failed: bad"

    def test_weighbridge_error_is_a_validation_error(self):
        exc = InvalidWeighbridgeReadingError(Decimal("1000"), Decimal("1200"))

        assert isinstance(exc, ValidationError)
        assert exc.register == "Reg-76"
        assert exc.laden_weight_kg == Decimal("1000")
        assert exc.unladen_weight_kg == Decimal("1200")


class TestStructuredAttributes:

    def test_missing_rate(self):
        exc = MissingRateError("CL", "60° U.P.", "2024-05-01")

        assert (exc.category, exc.subcategory, exc.on_date) == ("CL", "60° U.P.", "2024-05-01")
        assert "CL - 60° U.P." in str(exc)

    def test_authorization(self):
        exc = AuthorizationError("USER", "amend receipt", ("ADMIN",))

        assert exc.role == "USER"
        assert exc.allowed_roles == ("ADMIN",)

    def test_reconciliation_errors_share_base(self):
        assert issubclass(AlreadyReconciledError, ReconciliationError)
        assert issubclass(ReconciliationRemarksRequiredError, ReconciliationError)
        assert ReconciliationError.code == "RECONCILIATION_ERROR"
