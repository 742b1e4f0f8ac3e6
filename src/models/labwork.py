"""Labwork ORM model for lab orders billed to a patient."""

from datetime import date
from decimal import Decimal

from sqlalchemy import Boolean, Date, ForeignKey, Index, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.models import Base, BaseModel


class Labwork(Base, BaseModel):
    """Lab order (prosthesis, crown, etc.) charged to a patient."""

    __tablename__ = "labworks"

    tenant_id: Mapped[int] = mapped_column(
        ForeignKey("tenants.id"), nullable=False, index=True, comment="Owning clinic"
    )
    patient_id: Mapped[int] = mapped_column(
        ForeignKey("patients.id"), nullable=False, index=True, comment="Charged patient"
    )

    date: Mapped[date] = mapped_column(Date, nullable=False, comment="Order date")
    lab_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    price: Mapped[Decimal] = mapped_column(
        Numeric(10, 2),
        nullable=False,
        default=Decimal("0.00"),
        comment="Price charged to the patient",
    )
    is_paid: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
        comment="Derived by FIFO allocation, never set directly",
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    patient: Mapped["Patient"] = relationship(  # noqa: F821
        "Patient",
        foreign_keys=[patient_id],
    )

    __table_args__ = (Index("idx_labwork_tenant_patient", "tenant_id", "patient_id"),)

    def __repr__(self) -> str:
        return (
            f"<Labwork(id={self.id}, patient_id={self.patient_id}, date={self.date}, "
            f"price={self.price}, is_paid={self.is_paid})>"
        )


__all__ = ["Labwork"]
