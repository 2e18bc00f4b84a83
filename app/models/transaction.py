"""
BranchBooks - Transaction Model

Branch ledger rows for income and expenses. Settlement operations (salary
payments, payable payments, receivable collections) create a paired
transaction and keep a weak back-reference to the originating balance.
"""

import uuid
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import Date, ForeignKey, Numeric, String, Text, Uuid, Enum as SQLEnum
from sqlalchemy.orm import Mapped, mapped_column

from app.models.base import BaseModel, AuditMixin, SoftDeleteMixin


class TransactionType(str, Enum):
    """Type of transaction."""
    INCOME = "INCOME"
    EXPENSE = "EXPENSE"


class PaymentMethod(str, Enum):
    """How money moved."""
    CASH = "CASH"
    CARD = "CARD"
    BANK_TRANSFER = "BANK_TRANSFER"
    CHEQUE = "CHEQUE"
    OTHER = "OTHER"


class Transaction(BaseModel, AuditMixin, SoftDeleteMixin):
    """
    Transaction model for recording income and expenses per branch.
    """
    
    __tablename__ = "transactions"
    
    branch_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("branches.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    
    transaction_type: Mapped[TransactionType] = mapped_column(
        SQLEnum(TransactionType),
        nullable=False,
    )
    amount: Mapped[Decimal] = mapped_column(
        Numeric(precision=15, scale=2),
        nullable=False,
    )
    category: Mapped[str] = mapped_column(String(100), nullable=False)
    transaction_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    payment_method: Mapped[Optional[PaymentMethod]] = mapped_column(
        SQLEnum(PaymentMethod),
        nullable=True,
    )
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    
    # Counterparty
    contact_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid,
        ForeignKey("contacts.id", ondelete="SET NULL"),
        nullable=True,
    )
    employee_vendor_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    
    # Weak back-links to the balance that produced this row
    linked_payable_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True, index=True)
    linked_receivable_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True, index=True)
    
    def __repr__(self) -> str:
        return f"<Transaction(type={self.transaction_type}, amount={self.amount}, date={self.transaction_date})>"
