"""Charge service for recording and editing billable clinical records.

Any change to what a patient owes (a new charge, an edited amount, a
deactivated record) moves the FIFO threshold, so each operation reruns the
paid-status recompute in the same transaction as the change itself.
"""

import logging
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import Session

from src.models import Appointment, AppointmentStatus, Expense, Labwork
from src.services.allocation_service import ChargeKind
from src.services.audit_service import AuditService
from src.services.errors import BillingError, ChargeNotFoundError, InvalidAmountError
from src.services.ledger_repository import CHARGE_SOURCES
from src.services.money import ZERO, to_money
from src.services.payment_service import PaymentService

logger = logging.getLogger(__name__)


def parse_charge_amount(amount) -> Decimal:
    """Validate a charge amount; zero is allowed and means "not billable".

    Raises:
        InvalidAmountError: If the value is not a number or is negative
    """
    try:
        value = to_money(amount)
    except (TypeError, ValueError) as e:
        raise InvalidAmountError(str(e)) from e
    if value < ZERO:
        raise InvalidAmountError(f"Charge amount cannot be negative, got {value}")
    return value


class ChargeService:
    """Billable record operations that keep paid flags in sync."""

    def __init__(self, db: Session, payments: Optional[PaymentService] = None):
        """Initialize charge service.

        Args:
            db: SQLAlchemy database session
            payments: PaymentService sharing the session (created if omitted)
        """
        self.db = db
        self.payments = payments or PaymentService(db)
        self.repository = self.payments.repository

    def _add_charge(self, tenant_id: int, patient_id: int, kind: ChargeKind, charge, actor_id):
        with self.payments.patient_transaction(tenant_id, patient_id):
            self.db.add(charge)
            self.db.flush()
            recalculation = self.payments.recompute(tenant_id, patient_id)
            amount = getattr(charge, CHARGE_SOURCES[kind].amount_attr)
            AuditService.log(
                self.db,
                tenant_id,
                kind.value,
                charge.id,
                "create",
                actor_id=actor_id,
                changes={
                    "amount": None if amount is None else str(amount),
                    "flags_changed": recalculation.flags_written,
                },
            )
        logger.info(f"{kind.value} created: id={charge.id}, tenant_id={tenant_id}, patient_id={patient_id}")
        return charge

    def record_appointment(
        self,
        tenant_id: int,
        patient_id: int,
        start_time: datetime,
        end_time: datetime,
        cost=None,
        status: AppointmentStatus = AppointmentStatus.SCHEDULED,
        notes: Optional[str] = None,
        paid_at_visit: bool = False,
        actor_id: Optional[int] = None,
    ) -> Appointment:
        """Create an appointment and reallocate.

        When ``paid_at_visit`` is set and the cost is positive, a payment for
        the full cost dated at the visit is recorded right after. A rejected
        auto-payment is logged and the appointment is still returned.

        Raises:
            ValueError: If end_time is not after start_time
            InvalidAmountError: If cost is negative
            PatientNotFoundError: If the patient is absent or in another tenant
        """
        if end_time <= start_time:
            logger.error(f"Invalid appointment times: start_time={start_time} >= end_time={end_time}")
            raise ValueError("end_time must be after start_time")
        cost_value = None if cost is None else parse_charge_amount(cost)

        appointment = Appointment(
            tenant_id=tenant_id,
            patient_id=patient_id,
            start_time=start_time,
            end_time=end_time,
            status=status,
            notes=notes,
            cost=cost_value,
            is_paid=False,
            is_active=True,
        )
        self._add_charge(tenant_id, patient_id, ChargeKind.APPOINTMENT, appointment, actor_id)

        if paid_at_visit and cost_value is not None and cost_value > ZERO:
            try:
                self.payments.record_payment(
                    tenant_id,
                    patient_id,
                    cost_value,
                    date_val=start_time.date(),
                    note=self.payments.settings.paid_at_visit_note,
                    created_by=actor_id,
                )
            except BillingError as e:
                logger.warning(
                    f"Auto-payment failed for appointment {appointment.id} marked as paid: {e.code}"
                )
            self.db.refresh(appointment)
        return appointment

    def record_labwork(
        self,
        tenant_id: int,
        patient_id: int,
        date_val: date,
        price,
        lab_name: Optional[str] = None,
        description: Optional[str] = None,
        actor_id: Optional[int] = None,
    ) -> Labwork:
        """Create a lab order charged to the patient and reallocate."""
        labwork = Labwork(
            tenant_id=tenant_id,
            patient_id=patient_id,
            date=date_val,
            price=parse_charge_amount(price),
            lab_name=lab_name,
            description=description,
            is_paid=False,
            is_active=True,
        )
        return self._add_charge(tenant_id, patient_id, ChargeKind.LABWORK, labwork, actor_id)

    def record_expense(
        self,
        tenant_id: int,
        patient_id: int,
        date_val: date,
        amount,
        description: Optional[str] = None,
        actor_id: Optional[int] = None,
    ) -> Expense:
        """Create an expense passed on to the patient and reallocate."""
        expense = Expense(
            tenant_id=tenant_id,
            patient_id=patient_id,
            date=date_val,
            amount=parse_charge_amount(amount),
            description=description,
            is_paid=False,
            is_active=True,
        )
        return self._add_charge(tenant_id, patient_id, ChargeKind.EXPENSE, expense, actor_id)

    def _get_patient_charge(self, tenant_id: int, kind: ChargeKind, charge_id: int):
        charge = self.repository.get_charge(tenant_id, kind, charge_id)
        if charge is None or charge.patient_id is None:
            logger.error(f"{kind.value} {charge_id} not found in tenant {tenant_id}")
            raise ChargeNotFoundError(kind, charge_id)
        return charge

    def update_charge_amount(
        self,
        tenant_id: int,
        kind: ChargeKind,
        charge_id: int,
        amount,
        actor_id: Optional[int] = None,
    ):
        """Change the amount of a charge and reallocate.

        The new amount may leave the patient overpaid; the ledger reports
        that state but does not refund anything.

        Raises:
            ChargeNotFoundError: If the charge is absent, in another tenant
                or not attributed to a patient
            InvalidAmountError: If amount is negative
        """
        kind = ChargeKind(kind)
        value = parse_charge_amount(amount)
        charge = self._get_patient_charge(tenant_id, kind, charge_id)
        amount_attr = CHARGE_SOURCES[kind].amount_attr

        with self.payments.patient_transaction(tenant_id, charge.patient_id):
            previous = getattr(charge, amount_attr)
            setattr(charge, amount_attr, value)
            self.db.flush()
            recalculation = self.payments.recompute(tenant_id, charge.patient_id)
            AuditService.log(
                self.db,
                tenant_id,
                kind.value,
                charge_id,
                "update_amount",
                actor_id=actor_id,
                changes={
                    "from": None if previous is None else str(previous),
                    "to": str(value),
                    "flags_changed": recalculation.flags_written,
                },
            )
        logger.info(f"{kind.value} {charge_id} amount changed to {value}")
        return charge

    def deactivate_charge(
        self,
        tenant_id: int,
        kind: ChargeKind,
        charge_id: int,
        actor_id: Optional[int] = None,
    ):
        """Soft-delete a charge and reallocate.

        Raises:
            ChargeNotFoundError: If the charge is absent, in another tenant
                or not attributed to a patient
        """
        kind = ChargeKind(kind)
        charge = self._get_patient_charge(tenant_id, kind, charge_id)

        with self.payments.patient_transaction(tenant_id, charge.patient_id):
            charge.is_active = False
            self.db.flush()
            recalculation = self.payments.recompute(tenant_id, charge.patient_id)
            AuditService.log(
                self.db,
                tenant_id,
                kind.value,
                charge_id,
                "deactivate",
                actor_id=actor_id,
                changes={"flags_changed": recalculation.flags_written},
            )
        logger.info(f"{kind.value} {charge_id} deactivated")
        return charge


__all__ = ["ChargeService", "parse_charge_amount"]
