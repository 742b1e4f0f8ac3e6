"""Audit trail of ledger mutations."""

from typing import Any

from sqlalchemy import JSON, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from src.models import Base, BaseModel


class AuditLog(Base, BaseModel):
    """One ledger mutation: a payment recorded or deleted, a charge created,
    re-priced or deactivated.

    ``changes`` always carries ``flags_changed``, the number of charge
    ``is_paid`` flags the paid-status recompute rewrote in the same
    transaction. Payment entries add ``amount``; re-priced charges add
    ``from`` and ``to``. Amounts are stored as strings with two decimals.
    """

    __tablename__ = "audit_logs"
    __table_args__ = (Index("ix_audit_logs_entity", "tenant_id", "entity_type", "entity_id"),)

    tenant_id: Mapped[int] = mapped_column(ForeignKey("tenants.id"), nullable=False)

    # "payment" or a charge kind: "appointment", "labwork", "expense"
    entity_type: Mapped[str] = mapped_column(String(20), nullable=False)
    entity_id: Mapped[int] = mapped_column(nullable=False)

    # "create", "delete", "update_amount", "deactivate"
    action: Mapped[str] = mapped_column(String(20), nullable=False)

    # Staff user id from the clinic's auth layer; None for system recomputes
    actor_id: Mapped[int | None] = mapped_column(nullable=True)

    changes: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)

    def __repr__(self) -> str:
        return (
            f"<AuditLog(id={self.id}, {self.entity_type}#{self.entity_id} {self.action}, "
            f"tenant_id={self.tenant_id}, actor_id={self.actor_id})>"
        )


__all__ = ["AuditLog"]
