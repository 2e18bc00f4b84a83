"""
BranchBooks - Contact Model

Vendors and customers that payables and receivables are owed to / by.
"""

import uuid
from enum import Enum
from typing import Optional

from sqlalchemy import ForeignKey, String, Text, Uuid, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import BaseModel, AuditMixin, SoftDeleteMixin


class ContactType(str, Enum):
    VENDOR = "VENDOR"
    CUSTOMER = "CUSTOMER"
    BOTH = "BOTH"


class Contact(BaseModel, AuditMixin, SoftDeleteMixin):
    """A vendor or customer, optionally scoped to a branch."""
    
    __tablename__ = "contacts"
    
    branch_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("branches.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    contact_type: Mapped[ContactType] = mapped_column(
        SQLEnum(ContactType),
        default=ContactType.VENDOR,
        nullable=False,
    )
    phone: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    
    def __repr__(self) -> str:
        return f"<Contact(name={self.name}, type={self.contact_type})>"
