"""Balance reporting for patient ledgers.

Balances are never stored: every call reloads the patient's charges and
payments and runs the allocation engine, so the reported numbers always agree
with the paid flags written by the last recompute.

    total_debt  = sum of active charge amounts
    total_paid  = sum of active payment amounts
    outstanding = max(0, total_debt - total_paid)
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Dict, NamedTuple, Tuple

from sqlalchemy.orm import Session

from src.services.allocation_service import (
    AllocationResult,
    AllocationService,
    ChargeKey,
    ChargeKind,
    PaymentEntry,
)
from src.services.errors import PatientNotFoundError
from src.services.ledger_repository import LedgerRepository

logger = logging.getLogger(__name__)


class PatientBalance(NamedTuple):
    """Aggregate balance of one patient."""

    total_debt: Decimal
    total_paid: Decimal
    outstanding: Decimal

    @classmethod
    def from_allocation(cls, allocation: AllocationResult) -> "PatientBalance":
        return cls(
            total_debt=allocation.total_debt,
            total_paid=allocation.total_paid,
            outstanding=allocation.outstanding,
        )

    def to_dict(self) -> Dict[str, str]:
        return {
            "total_debt": str(self.total_debt),
            "total_paid": str(self.total_paid),
            "outstanding": str(self.outstanding),
        }


@dataclass(frozen=True)
class StatementLine:
    """A charge as it appears on the patient statement."""

    kind: ChargeKind
    charge_id: int
    date: date | datetime
    amount: Decimal
    cumulative: Decimal
    is_paid: bool


@dataclass(frozen=True)
class PatientStatement:
    """Balance plus charges and payments in allocation order."""

    patient_id: int
    balance: PatientBalance
    lines: Tuple[StatementLine, ...]
    payments: Tuple[PaymentEntry, ...]


class BalanceService:
    """Read-only balance calculations for patients."""

    def __init__(self, db: Session):
        """Initialize with database session.

        Args:
            db: Session for database operations
        """
        self.db = db
        self.repository = LedgerRepository(db)
        self.engine = AllocationService()

    def compute_allocation(self, tenant_id: int, patient_id: int) -> AllocationResult:
        """Run the allocation engine over the patient's current rows.

        Does not check that the patient exists; an unknown patient simply has
        no charges and no payments.
        """
        items = self.repository.load_billable_items(tenant_id, patient_id)
        payments = self.repository.load_payments(tenant_id, patient_id)
        return self.engine.allocate(items, payments)

    def _require_patient(self, tenant_id: int, patient_id: int) -> None:
        if self.repository.get_patient(tenant_id, patient_id) is None:
            logger.error(f"Patient {patient_id} not found in tenant {tenant_id}")
            raise PatientNotFoundError(patient_id)

    def get_balance(self, tenant_id: int, patient_id: int) -> PatientBalance:
        """Get total debt, total paid and outstanding balance of a patient.

        Args:
            tenant_id: Owning clinic
            patient_id: Patient to report on

        Returns:
            PatientBalance

        Raises:
            PatientNotFoundError: If the patient is absent or in another tenant
        """
        self._require_patient(tenant_id, patient_id)
        return PatientBalance.from_allocation(self.compute_allocation(tenant_id, patient_id))

    def get_statement(self, tenant_id: int, patient_id: int) -> PatientStatement:
        """Get the balance with every charge in allocation order.

        Raises:
            PatientNotFoundError: If the patient is absent or in another tenant
        """
        self._require_patient(tenant_id, patient_id)
        allocation = self.compute_allocation(tenant_id, patient_id)
        lines = tuple(
            StatementLine(
                kind=line.item.kind,
                charge_id=line.item.id,
                date=line.item.date,
                amount=line.item.amount,
                cumulative=line.cumulative,
                is_paid=line.is_paid,
            )
            for line in allocation.lines
        )
        return PatientStatement(
            patient_id=patient_id,
            balance=PatientBalance.from_allocation(allocation),
            lines=lines,
            payments=allocation.ordered_payments,
        )

    def find_stale_flags(self, tenant_id: int, patient_id: int) -> Dict[ChargeKey, bool]:
        """Charges whose persisted is_paid disagrees with a fresh allocation.

        Empty after every successful recompute; a non-empty result means some
        writer bypassed the payment or charge services.
        """
        items = self.repository.load_billable_items(tenant_id, patient_id)
        payments = self.repository.load_payments(tenant_id, patient_id)
        allocation = self.engine.allocate(items, payments)
        stale = self.engine.changed_flags(allocation, items)
        for key in self.repository.find_unpaid_zero_amount_charges(tenant_id, patient_id):
            stale[key] = True
        return stale


__all__ = ["PatientBalance", "StatementLine", "PatientStatement", "BalanceService"]
