"""Tenant-scoped persistence for the patient billing ledger.

Reads charges and payments as engine snapshots and writes payments and
paid flags back. The repository never commits: callers own the transaction
so a payment insert or delete and the resulting flag updates land together.
"""

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Dict, List, Mapping, Optional, Tuple, Type

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from src.models import Appointment, Expense, Labwork, Patient, PatientPayment
from src.services.allocation_service import BillableItem, ChargeKey, ChargeKind, PaymentEntry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ChargeSource:
    """Where a charge kind lives and which columns hold its date and amount."""

    model: Type
    amount_attr: str
    date_attr: str

    @property
    def amount_column(self):
        return getattr(self.model, self.amount_attr)


CHARGE_SOURCES: Dict[ChargeKind, ChargeSource] = {
    ChargeKind.APPOINTMENT: ChargeSource(Appointment, "cost", "start_time"),
    ChargeKind.LABWORK: ChargeSource(Labwork, "price", "date"),
    ChargeKind.EXPENSE: ChargeSource(Expense, "amount", "date"),
}


class LedgerRepository:
    """Reads and writes one tenant's ledger rows."""

    def __init__(self, db: Session):
        """Initialize with database session.

        Args:
            db: SQLAlchemy session; the caller commits or rolls back
        """
        self.db = db

    # Patients

    def get_patient(self, tenant_id: int, patient_id: int, for_update: bool = False) -> Optional[Patient]:
        """Fetch a patient of the tenant, optionally locking the row.

        The row lock serializes ledger mutations of the same patient on
        databases that support SELECT ... FOR UPDATE.
        """
        stmt = select(Patient).where(Patient.id == patient_id, Patient.tenant_id == tenant_id)
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        return self.db.execute(stmt).scalar_one_or_none()

    # Charges

    def load_billable_items(self, tenant_id: int, patient_id: int) -> List[BillableItem]:
        """Load active charges with a positive amount for one patient.

        Args:
            tenant_id: Owning clinic
            patient_id: Charged patient

        Returns:
            BillableItem snapshots of every kind (unordered)
        """
        items: List[BillableItem] = []
        for kind, source in CHARGE_SOURCES.items():
            model = source.model
            stmt = select(model).where(
                model.tenant_id == tenant_id,
                model.patient_id == patient_id,
                model.is_active.is_(True),
                source.amount_column.is_not(None),
                source.amount_column > 0,
            ).execution_options(populate_existing=True)
            for row in self.db.execute(stmt).scalars():
                items.append(
                    BillableItem(
                        kind=kind,
                        id=row.id,
                        date=getattr(row, source.date_attr),
                        amount=getattr(row, source.amount_attr),
                        created_at=row.created_at,
                        is_paid=row.is_paid,
                    )
                )
        return items

    def find_unpaid_zero_amount_charges(self, tenant_id: int, patient_id: int) -> List[ChargeKey]:
        """Keys of active zero-amount charges still flagged unpaid.

        Such charges are left out of the billable set but count as paid, so
        a recompute flips them explicitly (e.g. a fee waived after billing).
        """
        keys: List[ChargeKey] = []
        for kind, source in CHARGE_SOURCES.items():
            model = source.model
            stmt = select(model.id).where(
                model.tenant_id == tenant_id,
                model.patient_id == patient_id,
                model.is_active.is_(True),
                model.is_paid.is_(False),
                source.amount_column == 0,
            )
            keys.extend((kind, charge_id) for charge_id in self.db.execute(stmt).scalars())
        return keys

    def get_charge(self, tenant_id: int, kind: ChargeKind, charge_id: int):
        """Fetch a charge row of the given kind, or None if absent or in another tenant."""
        model = CHARGE_SOURCES[ChargeKind(kind)].model
        stmt = select(model).where(model.id == charge_id, model.tenant_id == tenant_id)
        return self.db.execute(stmt).scalar_one_or_none()

    def save_item_paid_flags(self, tenant_id: int, flags: Mapping[ChargeKey, bool]) -> int:
        """Write paid flags for the given charges.

        Args:
            tenant_id: Owning clinic; rows of other tenants are never touched
            flags: Mapping of (kind, id) to the new is_paid value

        Returns:
            Number of rows updated
        """
        grouped: Dict[Tuple[ChargeKind, bool], List[int]] = {}
        for (kind, charge_id), is_paid in flags.items():
            grouped.setdefault((ChargeKind(kind), bool(is_paid)), []).append(charge_id)

        written = 0
        for (kind, is_paid), ids in grouped.items():
            model = CHARGE_SOURCES[kind].model
            stmt = (
                update(model)
                .where(model.tenant_id == tenant_id, model.id.in_(ids))
                .values(is_paid=is_paid)
                .execution_options(synchronize_session="fetch")
            )
            written += self.db.execute(stmt).rowcount or 0
        logger.debug(f"Wrote {written} paid flags for tenant {tenant_id}")
        return written

    # Payments

    def load_payments(self, tenant_id: int, patient_id: int) -> List[PaymentEntry]:
        """Load active payments of one patient as engine snapshots."""
        stmt = select(PatientPayment).where(
            PatientPayment.tenant_id == tenant_id,
            PatientPayment.patient_id == patient_id,
            PatientPayment.is_active.is_(True),
        ).execution_options(populate_existing=True)
        return [
            PaymentEntry(id=p.id, date=p.date, amount=p.amount, created_at=p.created_at)
            for p in self.db.execute(stmt).scalars()
        ]

    def get_payment(
        self, tenant_id: int, payment_id: int, for_update: bool = False
    ) -> Optional[PatientPayment]:
        stmt = select(PatientPayment).where(
            PatientPayment.id == payment_id,
            PatientPayment.tenant_id == tenant_id,
        )
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        return self.db.execute(stmt).scalar_one_or_none()

    def insert_payment(
        self,
        tenant_id: int,
        patient_id: int,
        amount: Decimal,
        date_val: date,
        note: Optional[str] = None,
        created_by: Optional[int] = None,
    ) -> PatientPayment:
        """Add a payment row and flush it so it gets an id."""
        payment = PatientPayment(
            tenant_id=tenant_id,
            patient_id=patient_id,
            amount=amount,
            date=date_val,
            note=note,
            created_by=created_by,
            is_active=True,
        )
        self.db.add(payment)
        self.db.flush()
        return payment

    def deactivate_payment(self, payment: PatientPayment) -> PatientPayment:
        """Soft-delete a payment."""
        payment.is_active = False
        self.db.flush()
        return payment

    def list_payments(
        self, tenant_id: int, patient_id: int, limit: int, offset: int = 0
    ) -> Tuple[List[PatientPayment], int]:
        """Page through active payments, newest first.

        Returns:
            Tuple of (payments on the page, total active payments)
        """
        where = (
            PatientPayment.tenant_id == tenant_id,
            PatientPayment.patient_id == patient_id,
            PatientPayment.is_active.is_(True),
        )
        stmt = (
            select(PatientPayment)
            .where(*where)
            .order_by(PatientPayment.date.desc(), PatientPayment.id.desc())
            .limit(limit)
            .offset(offset)
        )
        payments = list(self.db.execute(stmt).scalars())
        total = self.db.execute(select(func.count(PatientPayment.id)).where(*where)).scalar_one()
        return payments, total


__all__ = ["ChargeSource", "CHARGE_SOURCES", "LedgerRepository"]
