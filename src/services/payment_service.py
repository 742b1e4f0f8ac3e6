"""Payment service for recording and removing patient payments.

Every mutation runs the same sequence inside one transaction, holding the
patient's lock:

1. Lock the patient (in-process lock + SELECT ... FOR UPDATE)
2. Insert or soft-delete the payment
3. Re-run the FIFO allocation over all active charges and payments
4. Write the paid flags that changed, plus an audit entry
5. Commit; any error rolls back the payment and the flags together

Paid flags are always re-derived from scratch, never patched: removing one
payment can move the FIFO threshold across several charges at once.
"""

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Iterator, List, Optional, Tuple

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from src.models import Patient, PatientPayment
from src.services.allocation_service import AllocationResult, AllocationService
from src.services.audit_service import AuditService
from src.services.balance_service import BalanceService
from src.services.config import Settings, get_settings
from src.services.errors import (
    AmountExceedsBalanceError,
    ConcurrentModificationError,
    InvalidAmountError,
    PatientNotFoundError,
    PaymentAlreadyInactiveError,
    PaymentNotFoundError,
)
from src.services.ledger_repository import LedgerRepository
from src.services.money import ZERO, to_money
from src.services.patient_locks import PatientLockRegistry, get_patient_locks

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RecalculationResult:
    """Outcome of a paid-status recompute."""

    allocation: AllocationResult
    flags_written: int


def parse_positive_amount(amount) -> Decimal:
    """Validate a payment or charge amount.

    Raises:
        InvalidAmountError: If the value is not a number or not > 0
    """
    try:
        value = to_money(amount)
    except (TypeError, ValueError) as e:
        raise InvalidAmountError(str(e)) from e
    if value <= ZERO:
        raise InvalidAmountError(f"Amount must be positive, got {value}")
    return value


class PaymentService:
    """Patient payment operations with FIFO paid-status recompute."""

    def __init__(
        self,
        db: Session,
        locks: Optional[PatientLockRegistry] = None,
        settings: Optional[Settings] = None,
    ):
        """Initialize payment service.

        Args:
            db: SQLAlchemy database session
            locks: Per-patient lock registry (default: process-wide registry)
            settings: Settings override (default: environment settings)
        """
        self.db = db
        self.locks = locks or get_patient_locks()
        self.settings = settings or get_settings()
        self.repository = LedgerRepository(db)
        self.balances = BalanceService(db)
        self.engine = AllocationService()

    @contextmanager
    def patient_transaction(self, tenant_id: int, patient_id: int) -> Iterator[Patient]:
        """Serialize and wrap one ledger mutation of a patient.

        Commits when the block exits cleanly and rolls back on any error.

        Raises:
            PatientNotFoundError: If the patient is absent or in another tenant
            ConcurrentModificationError: On lock timeout or database lock conflict
        """
        with self.locks.hold(tenant_id, patient_id, timeout=self.settings.patient_lock_timeout_seconds):
            try:
                patient = self.repository.get_patient(tenant_id, patient_id, for_update=True)
                if patient is None:
                    logger.error(f"Patient {patient_id} not found in tenant {tenant_id}")
                    raise PatientNotFoundError(patient_id)
                yield patient
                self.db.commit()
            except OperationalError as e:
                self.db.rollback()
                logger.error(f"Database conflict on ledger of patient {patient_id}: {e}")
                raise ConcurrentModificationError() from e
            except Exception:
                self.db.rollback()
                raise

    def recompute(self, tenant_id: int, patient_id: int) -> RecalculationResult:
        """Re-derive and write paid flags; caller must hold patient_transaction."""
        items = self.repository.load_billable_items(tenant_id, patient_id)
        payments = self.repository.load_payments(tenant_id, patient_id)
        allocation = self.engine.allocate(items, payments)

        changes = self.engine.changed_flags(allocation, items)
        for key in self.repository.find_unpaid_zero_amount_charges(tenant_id, patient_id):
            changes[key] = True
        written = self.repository.save_item_paid_flags(tenant_id, changes) if changes else 0

        if allocation.overpaid:
            # Charges were edited below what was already paid
            logger.warning(
                f"Patient {patient_id} paid {allocation.total_paid} against debt {allocation.total_debt}"
            )
        if written:
            logger.info(
                f"Recalculated paid status: tenant_id={tenant_id}, patient_id={patient_id}, "
                f"updated_items={written}"
            )
        return RecalculationResult(allocation=allocation, flags_written=written)

    def recalculate_paid_status(self, tenant_id: int, patient_id: int) -> RecalculationResult:
        """Recompute paid flags of a patient from current charges and payments.

        Raises:
            PatientNotFoundError: If the patient is absent or in another tenant
            ConcurrentModificationError: If the patient's ledger is busy
        """
        with self.patient_transaction(tenant_id, patient_id):
            return self.recompute(tenant_id, patient_id)

    def record_payment(
        self,
        tenant_id: int,
        patient_id: int,
        amount,
        date_val: Optional[date] = None,
        note: Optional[str] = None,
        created_by: Optional[int] = None,
    ) -> PatientPayment:
        """Record a patient payment and reallocate.

        Args:
            tenant_id: Owning clinic
            patient_id: Paying patient
            amount: Positive amount (Decimal, int or numeric string); sub-cent
                input is rounded half-up to cents, so "10.005" is stored as 10.01
            date_val: Date money was received (default: today, UTC)
            note: Optional notes
            created_by: Staff user recording the payment

        Returns:
            Created PatientPayment

        Raises:
            InvalidAmountError: If amount is not positive
            PatientNotFoundError: If the patient is absent or in another tenant
            AmountExceedsBalanceError: If amount is above the outstanding balance
            ConcurrentModificationError: If the patient's ledger is busy
        """
        try:
            value = parse_positive_amount(amount)
        except InvalidAmountError:
            logger.error(f"Invalid payment amount: {amount!r}")
            raise

        if date_val is None:
            date_val = datetime.now(timezone.utc).date()
        elif isinstance(date_val, datetime):
            date_val = date_val.date()

        with self.patient_transaction(tenant_id, patient_id):
            outstanding = self.balances.compute_allocation(tenant_id, patient_id).outstanding
            if value > outstanding:
                logger.error(
                    f"Payment {value} exceeds outstanding {outstanding} for patient {patient_id}"
                )
                raise AmountExceedsBalanceError(value, outstanding)

            payment = self.repository.insert_payment(
                tenant_id, patient_id, value, date_val, note=note, created_by=created_by
            )
            recalculation = self.recompute(tenant_id, patient_id)
            AuditService.log(
                self.db,
                tenant_id,
                "payment",
                payment.id,
                "create",
                actor_id=created_by,
                changes={"amount": str(value), "flags_changed": recalculation.flags_written},
            )

        logger.info(
            f"Payment created: payment_id={payment.id}, tenant_id={tenant_id}, "
            f"patient_id={patient_id}, amount={value}"
        )
        return payment

    def delete_payment(
        self, tenant_id: int, payment_id: int, actor_id: Optional[int] = None
    ) -> PatientPayment:
        """Soft-delete a payment and reallocate.

        Args:
            tenant_id: Owning clinic
            payment_id: Payment to delete
            actor_id: Staff user deleting the payment

        Returns:
            The deactivated PatientPayment

        Raises:
            PaymentNotFoundError: If the payment is absent or in another tenant
            PaymentAlreadyInactiveError: If the payment was already deleted
            ConcurrentModificationError: If the patient's ledger is busy
        """
        existing = self.repository.get_payment(tenant_id, payment_id)
        if existing is None:
            logger.error(f"Payment {payment_id} not found in tenant {tenant_id}")
            raise PaymentNotFoundError(payment_id)
        patient_id = existing.patient_id

        with self.patient_transaction(tenant_id, patient_id):
            payment = self.repository.get_payment(tenant_id, payment_id, for_update=True)
            if not payment.is_active:
                logger.error(f"Payment {payment_id} is already deleted")
                raise PaymentAlreadyInactiveError(payment_id)

            self.repository.deactivate_payment(payment)
            recalculation = self.recompute(tenant_id, patient_id)
            AuditService.log(
                self.db,
                tenant_id,
                "payment",
                payment.id,
                "delete",
                actor_id=actor_id,
                changes={"amount": str(payment.amount), "flags_changed": recalculation.flags_written},
            )

        logger.info(
            f"Payment deleted: payment_id={payment_id}, tenant_id={tenant_id}, patient_id={patient_id}"
        )
        return payment

    def list_payments(
        self,
        tenant_id: int,
        patient_id: int,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> Tuple[List[PatientPayment], int]:
        """List active payments of a patient, newest first.

        Returns:
            Tuple of (page of payments, total active payments)

        Raises:
            PatientNotFoundError: If the patient is absent or in another tenant
        """
        if self.repository.get_patient(tenant_id, patient_id) is None:
            raise PatientNotFoundError(patient_id)
        page_size = limit or self.settings.payments_page_size
        return self.repository.list_payments(tenant_id, patient_id, page_size, offset)


__all__ = ["RecalculationResult", "PaymentService", "parse_positive_amount"]
