"""
BranchBooks - Audit Log Model

Append-only record of create/update/delete actions. Written through the
best-effort audit dispatcher; a failed write never affects the operation
being audited.
"""

import enum
import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import JSON, DateTime, Enum, String, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from app.database import Base
from app.models.base import utcnow


class AuditAction(str, enum.Enum):
    """Audit action types."""
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


class AuditEntityType(str, enum.Enum):
    """Kinds of records that are audited."""
    ADVANCE = "ADVANCE"
    ADVANCE_DEDUCTION = "ADVANCE_DEDUCTION"
    SALARY_PAYMENT = "SALARY_PAYMENT"
    BONUS = "BONUS"
    SALARY_INCREASE = "SALARY_INCREASE"
    PAYABLE = "PAYABLE"
    PAYABLE_PAYMENT = "PAYABLE_PAYMENT"
    RECEIVABLE = "RECEIVABLE"
    RECEIVABLE_PAYMENT = "RECEIVABLE_PAYMENT"
    INVENTORY_SUB_UNIT = "INVENTORY_SUB_UNIT"


class AuditLog(Base):
    """
    Immutable audit log entry.
    
    ``changes`` holds ``{"new": ...}`` for creates, ``{"old", "new", "diff"}``
    for updates and ``{"deleted": ...}`` for deletes.
    """
    
    __tablename__ = "audit_logs"
    
    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )
    
    # User Context
    user_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        nullable=True,  # System actions may not have a user
        index=True,
    )
    
    action: Mapped[AuditAction] = mapped_column(
        Enum(AuditAction),
        nullable=False,
        index=True,
    )
    
    # Target Entity
    entity_type: Mapped[AuditEntityType] = mapped_column(
        Enum(AuditEntityType),
        nullable=False,
        index=True,
    )
    entity_id: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        index=True,
    )
    
    changes: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    ip_address: Mapped[Optional[str]] = mapped_column(String(45), nullable=True)
    
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        nullable=False,
        index=True,
    )
    
    def __repr__(self) -> str:
        return f"<AuditLog(action={self.action}, entity={self.entity_type}:{self.entity_id})>"
