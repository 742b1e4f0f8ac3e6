"""Patient ORM model."""

from sqlalchemy import Boolean, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.models import Base, BaseModel


class Patient(Base, BaseModel):
    """Patient of a clinic.

    The patient row doubles as the per-patient lock target: ledger mutations
    select it ``FOR UPDATE`` before touching payments or paid flags.
    """

    __tablename__ = "patients"

    tenant_id: Mapped[int] = mapped_column(
        ForeignKey("tenants.id"),
        nullable=False,
        index=True,
        comment="Owning clinic",
    )
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    is_active: Mapped[bool] = mapped_column(
        Boolean, default=True, nullable=False, comment="Soft-delete flag"
    )

    tenant: Mapped["Tenant"] = relationship(  # noqa: F821
        "Tenant",
        back_populates="patients",
        foreign_keys=[tenant_id],
    )
    payments: Mapped[list["PatientPayment"]] = relationship(  # noqa: F821
        "PatientPayment",
        back_populates="patient",
    )

    __table_args__ = (Index("idx_patient_tenant_name", "tenant_id", "last_name", "first_name"),)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    def __repr__(self) -> str:
        return f"<Patient(id={self.id}, tenant_id={self.tenant_id}, name={self.full_name!r})>"


__all__ = ["Patient"]
