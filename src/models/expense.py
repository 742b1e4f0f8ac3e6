"""Expense ORM model for clinic expenses, optionally attributed to a patient."""

from datetime import date
from decimal import Decimal

from sqlalchemy import Boolean, Date, ForeignKey, Index, Numeric, Text
from sqlalchemy.orm import Mapped, mapped_column

from src.models import Base, BaseModel


class Expense(Base, BaseModel):
    """Clinic expense.

    Expenses without a patient are overhead and never reach a patient ledger.
    """

    __tablename__ = "expenses"

    tenant_id: Mapped[int] = mapped_column(
        ForeignKey("tenants.id"), nullable=False, index=True, comment="Owning clinic"
    )
    patient_id: Mapped[int | None] = mapped_column(
        ForeignKey("patients.id"),
        nullable=True,
        index=True,
        comment="Patient the expense is passed on to (NULL for overhead)",
    )

    date: Mapped[date] = mapped_column(Date, nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_paid: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    __table_args__ = (Index("idx_expense_tenant_patient", "tenant_id", "patient_id"),)

    def __repr__(self) -> str:
        return (
            f"<Expense(id={self.id}, patient_id={self.patient_id}, date={self.date}, "
            f"amount={self.amount}, is_paid={self.is_paid})>"
        )


__all__ = ["Expense"]
