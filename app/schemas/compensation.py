"""
BranchBooks - Bonus & Salary Increase Schemas
"""

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from app.schemas.common import ORMModel
from app.schemas.debt import LedgerTransactionResponse


# ===========================================
# BONUSES
# ===========================================

class BonusCreateRequest(BaseModel):
    amount: Decimal = Field(..., gt=0)
    bonus_date: date
    reason: Optional[str] = Field(None, max_length=500)


class BonusResponse(ORMModel):
    id: UUID
    employee_id: UUID
    transaction_id: Optional[UUID] = None
    amount: Decimal
    bonus_date: date
    reason: Optional[str] = None
    recorded_by_id: Optional[UUID] = None
    created_at: datetime


class BonusCreatedResponse(ORMModel):
    bonus: BonusResponse
    transaction: LedgerTransactionResponse


class BonusListResponse(BaseModel):
    items: List[BonusResponse]
    total: int


class EmployeeBonusTotalsResponse(ORMModel):
    employee_id: UUID
    employee_name: str
    bonus_count: int
    total_amount: Decimal


class BonusSummaryResponse(ORMModel):
    branch_id: UUID
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    count: int
    total_bonuses: Decimal
    employees: List[EmployeeBonusTotalsResponse]


# ===========================================
# SALARY INCREASES
# ===========================================

class SalaryIncreaseRequest(BaseModel):
    new_salary: Decimal = Field(..., gt=0)
    effective_date: date
    reason: Optional[str] = Field(None, max_length=500)


class SalaryIncreaseResponse(ORMModel):
    id: UUID
    employee_id: UUID
    old_salary: Decimal
    new_salary: Decimal
    increase_amount: Decimal
    effective_date: date
    reason: Optional[str] = None
    recorded_by_id: Optional[UUID] = None
    created_at: datetime


class SalaryIncreaseListResponse(BaseModel):
    items: List[SalaryIncreaseResponse]
    total: int
