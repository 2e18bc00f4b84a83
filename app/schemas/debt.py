"""
BranchBooks - Payable & Receivable Schemas

The same request/response shapes serve both payables and receivables.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field, model_validator

from app.models.debt import DebtStatus
from app.models.transaction import PaymentMethod, TransactionType
from app.schemas.common import ContactBrief, ORMModel, PaginationMeta


# ===========================================
# REQUEST SCHEMAS
# ===========================================

class DebtCreateRequest(BaseModel):
    """Schema for opening a payable or receivable."""
    contact_id: UUID
    amount: Decimal = Field(..., gt=0)
    debt_date: date = Field(..., description="Date the debt was incurred")
    due_date: Optional[date] = None
    description: Optional[str] = Field(None, max_length=500)
    invoice_number: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = None
    branch_id: Optional[UUID] = Field(None, description="Ignored for accountants, who always write to their own branch")
    linked_transaction_id: Optional[UUID] = None

    @model_validator(mode="after")
    def check_due_date(self):
        if self.due_date and self.due_date < self.debt_date:
            raise ValueError("due_date cannot be before debt_date")
        return self


class DebtUpdateRequest(BaseModel):
    """Descriptive fields only; amounts and contact are fixed at creation."""
    debt_date: Optional[date] = None
    due_date: Optional[date] = None
    description: Optional[str] = Field(None, max_length=500)
    invoice_number: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = None
    status: Optional[DebtStatus] = Field(None, description="Only CANCELLED may be set")


class DebtPaymentRequest(BaseModel):
    """Schema for a payment (payables) or collection (receivables)."""
    amount_paid: Decimal = Field(..., gt=0)
    payment_date: date
    payment_method: PaymentMethod = PaymentMethod.CASH
    notes: Optional[str] = Field(None, max_length=1000)


# ===========================================
# RESPONSE SCHEMAS
# ===========================================

class DebtPaymentResponse(ORMModel):
    id: UUID
    amount_paid: Decimal
    payment_date: date
    payment_method: PaymentMethod
    notes: Optional[str] = None
    recorded_by_id: Optional[UUID] = None
    created_at: datetime


class DebtResponse(ORMModel):
    id: UUID
    contact_id: UUID
    branch_id: Optional[UUID] = None
    original_amount: Decimal
    remaining_amount: Decimal
    status: DebtStatus
    debt_date: date
    due_date: Optional[date] = None
    description: Optional[str] = None
    invoice_number: Optional[str] = None
    notes: Optional[str] = None
    contact: Optional[ContactBrief] = None
    created_at: datetime


class DebtDetailResponse(DebtResponse):
    payments: List[DebtPaymentResponse] = []


class DebtListResponse(BaseModel):
    items: List[DebtResponse]
    pagination: PaginationMeta


class LedgerTransactionResponse(ORMModel):
    id: UUID
    transaction_type: TransactionType
    amount: Decimal
    category: str
    transaction_date: date
    notes: Optional[str] = None


class SettlementResponse(BaseModel):
    debt: DebtDetailResponse
    payment: DebtPaymentResponse
    transaction: LedgerTransactionResponse


class DebtSummaryResponse(ORMModel):
    total_count: int
    total_original: Decimal
    total_remaining: Decimal
    total_settled: Decimal
    overdue_count: int
    overdue_amount: Decimal
    by_status: Dict[str, int]
