"""Appointment ORM model - the main source of patient charges."""

from datetime import datetime
from decimal import Decimal
from enum import Enum

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.models import Base, BaseModel


class AppointmentStatus(str, Enum):
    """Appointment lifecycle states."""

    SCHEDULED = "SCHEDULED"
    CONFIRMED = "CONFIRMED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    NO_SHOW = "NO_SHOW"


class Appointment(Base, BaseModel):
    """Scheduled visit of a patient.

    An active appointment with a positive ``cost`` is a billable item dated at
    ``start_time``. ``is_paid`` is written only by the paid-status recompute.
    """

    __tablename__ = "appointments"

    tenant_id: Mapped[int] = mapped_column(
        ForeignKey("tenants.id"), nullable=False, index=True, comment="Owning clinic"
    )
    patient_id: Mapped[int] = mapped_column(
        ForeignKey("patients.id"), nullable=False, index=True, comment="Charged patient"
    )

    start_time: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, comment="Visit start; billing date of the charge"
    )
    end_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    status: Mapped[AppointmentStatus] = mapped_column(
        String(20),
        nullable=False,
        default=AppointmentStatus.SCHEDULED,
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    cost: Mapped[Decimal | None] = mapped_column(
        Numeric(10, 2),
        nullable=True,
        comment="Visit cost; NULL or 0 means not billable",
    )
    is_paid: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
        comment="Derived by FIFO allocation, never set directly",
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean, default=True, nullable=False, comment="Soft-delete flag"
    )

    patient: Mapped["Patient"] = relationship(  # noqa: F821
        "Patient",
        foreign_keys=[patient_id],
    )

    __table_args__ = (
        Index("idx_appointment_tenant_patient", "tenant_id", "patient_id"),
        Index("idx_appointment_start", "start_time"),
    )

    def __repr__(self) -> str:
        return (
            f"<Appointment(id={self.id}, patient_id={self.patient_id}, "
            f"start_time={self.start_time}, cost={self.cost}, is_paid={self.is_paid})>"
        )


__all__ = ["Appointment", "AppointmentStatus"]
