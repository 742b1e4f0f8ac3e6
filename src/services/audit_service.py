"""Audit entries for payment and charge mutations."""

import logging
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from src.models.audit_log import AuditLog

logger = logging.getLogger(__name__)


class AuditService:
    """Writes ledger audit entries inside the mutation's own transaction.

    The entry is only added to the session: it commits with the payment or
    charge change and the paid flags it caused, and disappears with them on
    rollback. No entry is ever written for a rejected mutation.
    """

    @staticmethod
    def log(
        db: Session,
        tenant_id: int,
        entity_type: str,
        entity_id: int,
        action: str,
        actor_id: Optional[int] = None,
        changes: Optional[Dict[str, Any]] = None,
    ) -> AuditLog:
        """Record one ledger mutation.

        Args:
            db: Session of the running mutation
            tenant_id: Clinic owning the entity
            entity_type: "payment" or a charge kind value
            entity_id: Payment or charge id
            action: "create", "delete", "update_amount" or "deactivate"
            actor_id: Staff user behind the change, if known
            changes: Amounts as strings plus ``flags_changed`` from the recompute

        Returns:
            The pending AuditLog row
        """
        entry = AuditLog(
            tenant_id=tenant_id,
            entity_type=entity_type,
            entity_id=entity_id,
            action=action,
            actor_id=actor_id,
            changes=changes,
        )
        db.add(entry)
        logger.debug(f"Audit {entity_type}#{entity_id} {action} by {actor_id}")
        return entry


__all__ = ["AuditService"]
