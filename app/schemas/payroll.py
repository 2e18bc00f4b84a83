"""
BranchBooks - Payroll Schemas

Pydantic schemas for salary payments and payroll summaries.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from app.schemas.common import ORMModel


# ===========================================
# REQUEST SCHEMAS
# ===========================================

class PaySalaryRequest(BaseModel):
    """Schema for paying an employee."""
    employee_id: UUID
    amount: Decimal = Field(..., gt=0, description="Gross salary amount (or amount actually paid under the shortfall policy)")
    payment_date: date
    notes: Optional[str] = Field(None, max_length=1000)


# ===========================================
# RESPONSE SCHEMAS
# ===========================================

class DeductionApplied(BaseModel):
    advance_id: UUID
    deduction_amount: Decimal
    previous_remaining: Decimal
    new_remaining: Decimal
    new_status: str


class SalaryPaymentResponse(ORMModel):
    id: UUID
    employee_id: UUID
    transaction_id: Optional[UUID] = None
    amount: Decimal
    total_deduction: Decimal
    net_amount: Decimal
    payment_date: date
    notes: Optional[str] = None
    recorded_by_id: Optional[UUID] = None
    created_at: datetime


class PaySalaryResponse(BaseModel):
    payment: SalaryPaymentResponse
    employee_name: str
    policy: str
    deductions: List[DeductionApplied]
    message: str


class SalaryPaymentListResponse(BaseModel):
    items: List[SalaryPaymentResponse]
    total: int


class EmployeePayrollTotalsResponse(ORMModel):
    employee_id: UUID
    employee_name: str
    payment_count: int
    total_amount: Decimal
    total_deduction: Decimal
    total_net: Decimal


class PayrollSummaryResponse(ORMModel):
    branch_id: UUID
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    payment_count: int
    total_amount: Decimal
    total_deduction: Decimal
    total_net: Decimal
    employees: List[EmployeePayrollTotalsResponse]
