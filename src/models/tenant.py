"""Tenant ORM model: one clinic in the multi-tenant deployment."""

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.models import Base, BaseModel


class Tenant(Base, BaseModel):
    """Clinic owning patients, charges and payments.

    Every ledger query is scoped by tenant, so a patient id from another
    clinic is indistinguishable from a missing one.
    """

    __tablename__ = "tenants"

    name: Mapped[str] = mapped_column(String(255), nullable=False, comment="Clinic display name")
    slug: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        unique=True,
        index=True,
        comment="URL-safe unique clinic identifier",
    )
    currency: Mapped[str] = mapped_column(
        String(3),
        nullable=False,
        default="USD",
        comment="Single unit of account for all amounts in this clinic",
    )

    patients: Mapped[list["Patient"]] = relationship(  # noqa: F821
        "Patient",
        back_populates="tenant",
    )

    def __repr__(self) -> str:
        return f"<Tenant(id={self.id}, slug={self.slug!r}, currency={self.currency})>"


__all__ = ["Tenant"]
