"""Audit log model for tracking billing and payment events."""

from typing import Any

from sqlalchemy import JSON, String
from sqlalchemy.orm import Mapped, mapped_column

from sams.models import Base, BaseModel


class AuditLog(Base, BaseModel):
    """Audit log entry for bill generation, payments, deletions and imports.

    Records who (actor) did what (action) to which entity (entity_type, entity_id)
    and an optional snapshot of the outcome (changes).
    """

    __tablename__ = "audit_logs"

    entity_type: Mapped[str] = mapped_column(String(50))
    """Entity type being audited: "water_bills", "transaction", "import", etc."""

    entity_id: Mapped[int] = mapped_column()
    """Primary key of the entity being audited."""

    action: Mapped[str] = mapped_column(String(50))
    """Action performed: "generate", "payment", "delete", etc."""

    actor: Mapped[str | None] = mapped_column(String(255), nullable=True)
    """Who performed the action. None for system jobs."""

    changes: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    """Optional JSON snapshot: {"bills_generated": 5, "total_amount": "1500.00"}."""

    def __repr__(self) -> str:
        return (
            f"<AuditLog(id={self.id}, entity_type={self.entity_type}, entity_id={self.entity_id}, "
            f"action={self.action}, actor={self.actor}, created_at={self.created_at})>"
        )


__all__ = ["AuditLog"]
