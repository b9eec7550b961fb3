"""Audit service for logging billing and payment events."""

from sqlalchemy.orm import Session

from sams.models.audit_log import AuditLog


class AuditService:
    """Service for audit log operations.

    Entries are added to the caller's session and committed with the
    caller's unit of work.
    """

    @staticmethod
    def log(
        db: Session,
        entity_type: str,
        entity_id: int,
        action: str,
        actor: str | None = None,
        changes: dict | None = None,
    ) -> AuditLog:
        """Create audit log entry (one-liner).

        Args:
            db: Database session
            entity_type: Type of entity ("water_bills", "transaction", etc.)
            entity_id: Primary key of the entity
            action: Action performed ("generate", "payment", "delete", etc.)
            actor: Who performed the action (optional)
            changes: Optional JSON snapshot of the outcome

        Returns:
            Created AuditLog object
        """
        audit = AuditLog(
            entity_type=entity_type,
            entity_id=entity_id,
            action=action,
            actor=actor,
            changes=changes,
        )
        db.add(audit)
        return audit


__all__ = ["AuditService"]
