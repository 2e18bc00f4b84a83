"""
BranchBooks - Employee Advance Schemas
"""

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from app.models.employee import AdvanceStatus
from app.schemas.common import ORMModel


# ===========================================
# REQUEST SCHEMAS
# ===========================================

class AdvanceCreateRequest(BaseModel):
    """Schema for recording a salary advance."""
    amount: Decimal = Field(..., gt=0)
    monthly_deduction: Decimal = Field(..., gt=0, description="Amount withheld from each salary payment")
    advance_date: date
    reason: str = Field(..., min_length=1, max_length=500)


class AdvanceDeductRequest(BaseModel):
    """Schema for a manual deduction against an advance."""
    advance_id: UUID
    amount: Decimal = Field(..., gt=0)
    deduction_date: date
    salary_payment_id: Optional[UUID] = None
    notes: Optional[str] = Field(None, max_length=1000)


# ===========================================
# RESPONSE SCHEMAS
# ===========================================

class AdvanceDeductionResponse(ORMModel):
    id: UUID
    advance_id: UUID
    salary_payment_id: Optional[UUID] = None
    amount: Decimal
    deduction_date: date
    notes: Optional[str] = None


class AdvanceResponse(ORMModel):
    id: UUID
    employee_id: UUID
    amount: Decimal
    remaining_amount: Decimal
    monthly_deduction: Decimal
    advance_date: date
    reason: str
    status: AdvanceStatus
    recorded_by_id: Optional[UUID] = None
    created_at: datetime


class AdvanceDetailResponse(AdvanceResponse):
    deductions: List[AdvanceDeductionResponse] = []


class AdvanceCreatedResponse(ORMModel):
    advance: AdvanceResponse
    total_active_advances: Decimal
    salary_threshold: Decimal
    salary_months_equivalent: Optional[Decimal] = None
    warning: Optional[str] = None


class AdvanceSummaryResponse(ORMModel):
    total_active_advances: int
    total_remaining: Decimal
    total_monthly_deduction: Decimal
    net_salary_after_deduction: Decimal
    salary_months_equivalent: Optional[Decimal] = None
    exceeds_threshold: bool
    salary_threshold: Decimal


class EmployeeAdvancesResponse(BaseModel):
    employee_id: UUID
    employee_name: str
    full_salary: Decimal
    advances: List[AdvanceDetailResponse]
    summary: AdvanceSummaryResponse


class DeductionRecordedResponse(ORMModel):
    deduction: AdvanceDeductionResponse
    advance: AdvanceResponse


class EmployeeAdvanceTotalsResponse(ORMModel):
    employee_id: UUID
    employee_name: str
    position: str
    base_salary: Decimal
    allowance: Decimal
    total_salary: Decimal
    active_advances_count: int
    total_remaining: Decimal
    total_monthly_deduction: Decimal
    net_salary: Decimal
    salary_months_equivalent: Optional[Decimal] = None
    exceeds_threshold: bool


class BranchAdvancesSummaryResponse(ORMModel):
    branch_id: UUID
    employees_with_advances: int
    total_remaining_advances: Decimal
    total_monthly_deductions: Decimal
    employees: List[EmployeeAdvanceTotalsResponse]
