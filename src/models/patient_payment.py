"""PatientPayment ORM model for money received from a patient."""

from datetime import date
from decimal import Decimal

from sqlalchemy import Boolean, Date, ForeignKey, Index, Numeric, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.models import Base, BaseModel


class PatientPayment(Base, BaseModel):
    """Model representing a payment received from a patient.

    Payments are not linked to specific charges: the FIFO allocation applies
    the patient's total paid amount to charges oldest-first. A payment is
    immutable once recorded; corrections are a soft delete plus a new payment.
    """

    __tablename__ = "patient_payments"

    tenant_id: Mapped[int] = mapped_column(
        ForeignKey("tenants.id"), nullable=False, index=True, comment="Owning clinic"
    )
    patient_id: Mapped[int] = mapped_column(
        ForeignKey("patients.id"), nullable=False, index=True, comment="Paying patient"
    )

    amount: Mapped[Decimal] = mapped_column(
        Numeric(10, 2),
        nullable=False,
        comment="Positive payment amount",
    )
    date: Mapped[date] = mapped_column(Date, nullable=False, comment="Date money was received")
    note: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_by: Mapped[int | None] = mapped_column(
        nullable=True,
        comment="Id of the staff user who recorded the payment",
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean, default=True, nullable=False, comment="False once the payment is deleted"
    )

    patient: Mapped["Patient"] = relationship(  # noqa: F821
        "Patient",
        back_populates="payments",
        foreign_keys=[patient_id],
    )

    __table_args__ = (
        Index("idx_payment_tenant_patient", "tenant_id", "patient_id"),
        Index("idx_payment_patient_date", "patient_id", "date"),
    )

    def __repr__(self) -> str:
        return (
            f"<PatientPayment(id={self.id}, patient_id={self.patient_id}, amount={self.amount}, "
            f"date={self.date}, is_active={self.is_active})>"
        )


__all__ = ["PatientPayment"]
