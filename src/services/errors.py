"""Billing error types and response helpers.

Every error carries a stable machine-readable ``code`` and the HTTP status an
API layer should answer with. None of them is fatal: callers retry or surface
them as 4xx responses.
"""

from typing import Any, Dict

from fastapi import HTTPException, status


class BillingError(Exception):
    """Base billing error."""

    def __init__(self, message: str, code: str, http_status: int = 400):
        """Initialize error."""
        self.message = message
        self.code = code
        self.http_status = http_status
        super().__init__(message)


class InvalidAmountError(BillingError):
    """Amount is not a positive monetary value."""

    def __init__(self, message: str = "Amount must be a positive monetary value"):
        super().__init__(message, "INVALID_AMOUNT", status.HTTP_400_BAD_REQUEST)


class AmountExceedsBalanceError(BillingError):
    """Payment would push total paid above total debt."""

    def __init__(self, amount, outstanding):
        self.amount = amount
        self.outstanding = outstanding
        super().__init__(
            f"Payment amount {amount} exceeds outstanding balance {outstanding}",
            "AMOUNT_EXCEEDS_BALANCE",
            status.HTTP_400_BAD_REQUEST,
        )


class NotFoundError(BillingError):
    """Entity is absent or belongs to another tenant."""

    def __init__(self, message: str = "Not found"):
        super().__init__(message, "NOT_FOUND", status.HTTP_404_NOT_FOUND)


class PatientNotFoundError(NotFoundError):
    def __init__(self, patient_id):
        self.patient_id = patient_id
        super().__init__(f"Patient {patient_id} not found")


class PaymentNotFoundError(NotFoundError):
    def __init__(self, payment_id):
        self.payment_id = payment_id
        super().__init__(f"Payment {payment_id} not found")


class ChargeNotFoundError(NotFoundError):
    def __init__(self, kind, charge_id):
        self.kind = kind
        self.charge_id = charge_id
        super().__init__(f"{getattr(kind, 'value', kind)} {charge_id} not found")


class PaymentAlreadyInactiveError(BillingError):
    """Payment was already deleted."""

    def __init__(self, payment_id):
        self.payment_id = payment_id
        super().__init__(
            f"Payment {payment_id} is already deleted",
            "ALREADY_INACTIVE",
            status.HTTP_409_CONFLICT,
        )


class ConcurrentModificationError(BillingError):
    """Another mutation holds the patient's ledger."""

    def __init__(self, message: str = "Patient ledger is being modified, retry the request"):
        super().__init__(message, "CONCURRENT_MODIFICATION", status.HTTP_409_CONFLICT)


def error_response(error: BillingError) -> Dict[str, Any]:
    """Create a standardized error response."""
    return {
        "error": {
            "code": error.code,
            "message": error.message,
        }
    }


def to_http_exception(error: BillingError) -> HTTPException:
    """Build the HTTPException an API route should raise for a billing error."""
    return HTTPException(
        status_code=error.http_status,
        detail=error_response(error),
    )


__all__ = [
    "BillingError",
    "InvalidAmountError",
    "AmountExceedsBalanceError",
    "NotFoundError",
    "PatientNotFoundError",
    "PaymentNotFoundError",
    "ChargeNotFoundError",
    "PaymentAlreadyInactiveError",
    "ConcurrentModificationError",
    "error_response",
    "to_http_exception",
]
