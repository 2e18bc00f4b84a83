"""
BranchBooks - Payables & Receivables Models

Money the business owes to vendors (payables) and money customers owe the
business (receivables). Both track an original amount, a remaining amount
and a status derived from the two; each payment row is immutable and has a
paired ledger transaction.
"""

import uuid
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from sqlalchemy import Date, ForeignKey, Numeric, String, Text, Uuid, Enum as SQLEnum
from sqlalchemy.orm import Mapped, declared_attr, mapped_column, relationship

from app.models.base import BaseModel, SoftDeleteMixin
from app.models.branch import Branch
from app.models.contact import Contact
from app.models.transaction import PaymentMethod


class DebtStatus(str, Enum):
    ACTIVE = "ACTIVE"
    PARTIAL = "PARTIAL"
    PAID = "PAID"
    CANCELLED = "CANCELLED"


class DebtBalanceMixin(SoftDeleteMixin):
    """Columns shared by payables and receivables."""
    
    @declared_attr
    def contact_id(cls) -> Mapped[uuid.UUID]:
        return mapped_column(
            Uuid,
            ForeignKey("contacts.id", ondelete="RESTRICT"),
            nullable=False,
            index=True,
        )
    
    @declared_attr
    def branch_id(cls) -> Mapped[Optional[uuid.UUID]]:
        return mapped_column(
            Uuid,
            ForeignKey("branches.id", ondelete="SET NULL"),
            nullable=True,
            index=True,
        )
    
    @declared_attr
    def contact(cls) -> Mapped[Contact]:
        return relationship(Contact)
    
    @declared_attr
    def branch(cls) -> Mapped[Optional[Branch]]:
        return relationship(Branch)
    
    original_amount: Mapped[Decimal] = mapped_column(
        Numeric(precision=15, scale=2),
        nullable=False,
    )
    remaining_amount: Mapped[Decimal] = mapped_column(
        Numeric(precision=15, scale=2),
        nullable=False,
    )
    status: Mapped[DebtStatus] = mapped_column(
        SQLEnum(DebtStatus),
        default=DebtStatus.ACTIVE,
        nullable=False,
        index=True,
    )
    debt_date: Mapped[date] = mapped_column("date", Date, nullable=False)
    due_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    description: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    invoice_number: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_by_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)


class DebtPaymentMixin:
    """Columns shared by payable payments and receivable collections."""
    
    amount_paid: Mapped[Decimal] = mapped_column(
        Numeric(precision=15, scale=2),
        nullable=False,
    )
    payment_date: Mapped[date] = mapped_column(Date, nullable=False)
    payment_method: Mapped[PaymentMethod] = mapped_column(
        SQLEnum(PaymentMethod),
        default=PaymentMethod.CASH,
        nullable=False,
    )
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    recorded_by_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)
    is_deleted: Mapped[bool] = mapped_column(default=False, nullable=False)


# ===========================================
# PAYABLES
# ===========================================

class AccountPayable(BaseModel, DebtBalanceMixin):
    """Money owed to a vendor."""
    
    __tablename__ = "account_payables"
    
    linked_purchase_transaction_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)
    
    payments: Mapped[List["PayablePayment"]] = relationship(
        "PayablePayment",
        back_populates="payable",
        order_by="PayablePayment.payment_date.desc()",
    )
    
    def __repr__(self) -> str:
        return f"<AccountPayable(original={self.original_amount}, remaining={self.remaining_amount}, status={self.status})>"


class PayablePayment(BaseModel, DebtPaymentMixin):
    """A payment made against a payable."""
    
    __tablename__ = "payable_payments"
    
    payable_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("account_payables.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    
    payable: Mapped[AccountPayable] = relationship(AccountPayable, back_populates="payments")


# ===========================================
# RECEIVABLES
# ===========================================

class AccountReceivable(BaseModel, DebtBalanceMixin):
    """Money owed by a customer."""
    
    __tablename__ = "account_receivables"
    
    linked_sale_transaction_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)
    
    payments: Mapped[List["ReceivablePayment"]] = relationship(
        "ReceivablePayment",
        back_populates="receivable",
        order_by="ReceivablePayment.payment_date.desc()",
    )
    
    def __repr__(self) -> str:
        return f"<AccountReceivable(original={self.original_amount}, remaining={self.remaining_amount}, status={self.status})>"


class ReceivablePayment(BaseModel, DebtPaymentMixin):
    """A collection received against a receivable."""
    
    __tablename__ = "receivable_payments"
    
    receivable_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("account_receivables.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    
    receivable: Mapped[AccountReceivable] = relationship(AccountReceivable, back_populates="payments")
