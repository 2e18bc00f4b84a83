"""
BranchBooks - Bonuses & Salary Increases Router
"""

import uuid
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_async_session
from app.dependencies import get_audit, get_request_context
from app.schemas.common import MessageResponse
from app.schemas.compensation import (
    BonusCreatedResponse,
    BonusCreateRequest,
    BonusListResponse,
    BonusResponse,
    BonusSummaryResponse,
    SalaryIncreaseListResponse,
    SalaryIncreaseRequest,
    SalaryIncreaseResponse,
)
from app.services.audit_service import AuditDispatcher
from app.services.bonus_service import BonusService
from app.services.salary_increase_service import SalaryIncreaseService
from app.utils.permissions import RequestContext


router = APIRouter()


# ===========================================
# BONUS ENDPOINTS
# ===========================================

@router.post(
    "/{employee_id}/bonuses",
    response_model=BonusCreatedResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Record a bonus",
    description="Record a bonus and book it as an expense in the employee's branch.",
)
async def create_bonus(
    employee_id: uuid.UUID,
    data: BonusCreateRequest,
    db: AsyncSession = Depends(get_async_session),
    context: RequestContext = Depends(get_request_context),
    audit: AuditDispatcher = Depends(get_audit),
):
    service = BonusService(db, audit=audit)
    created = await service.create_bonus(
        context,
        employee_id=employee_id,
        amount=data.amount,
        bonus_date=data.bonus_date,
        reason=data.reason,
    )
    return BonusCreatedResponse.model_validate(created)


@router.get(
    "/{employee_id}/bonuses",
    response_model=BonusListResponse,
    summary="Bonuses of an employee",
)
async def list_employee_bonuses(
    employee_id: uuid.UUID,
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    db: AsyncSession = Depends(get_async_session),
    context: RequestContext = Depends(get_request_context),
):
    service = BonusService(db)
    bonuses = await service.list_for_employee(context, employee_id, start_date, end_date)
    return BonusListResponse(
        items=[BonusResponse.model_validate(b) for b in bonuses],
        total=len(bonuses),
    )


@router.get(
    "/branches/{branch_id}/bonuses",
    response_model=BonusListResponse,
    summary="Bonuses of a branch",
)
async def list_branch_bonuses(
    branch_id: uuid.UUID,
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    db: AsyncSession = Depends(get_async_session),
    context: RequestContext = Depends(get_request_context),
):
    service = BonusService(db)
    bonuses = await service.list_for_branch(context, branch_id, start_date, end_date)
    return BonusListResponse(
        items=[BonusResponse.model_validate(b) for b in bonuses],
        total=len(bonuses),
    )


@router.get(
    "/branches/{branch_id}/bonuses-summary",
    response_model=BonusSummaryResponse,
    summary="Branch bonus summary",
    description="Bonus count and total per employee.",
)
async def get_branch_bonus_summary(
    branch_id: uuid.UUID,
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    db: AsyncSession = Depends(get_async_session),
    context: RequestContext = Depends(get_request_context),
):
    service = BonusService(db)
    summary = await service.get_summary(context, branch_id, start_date, end_date)
    return BonusSummaryResponse.model_validate(summary)


@router.delete(
    "/bonuses/{bonus_id}",
    response_model=MessageResponse,
    summary="Delete a bonus",
    description="Soft-delete a bonus and its ledger transaction.",
)
async def delete_bonus(
    bonus_id: uuid.UUID,
    db: AsyncSession = Depends(get_async_session),
    context: RequestContext = Depends(get_request_context),
    audit: AuditDispatcher = Depends(get_audit),
):
    service = BonusService(db, audit=audit)
    await service.delete_bonus(context, bonus_id)
    return MessageResponse(message="Bonus deleted")


# ===========================================
# SALARY INCREASE ENDPOINTS
# ===========================================

@router.post(
    "/{employee_id}/salary-increases",
    response_model=SalaryIncreaseResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Raise an employee's salary",
)
async def record_salary_increase(
    employee_id: uuid.UUID,
    data: SalaryIncreaseRequest,
    db: AsyncSession = Depends(get_async_session),
    context: RequestContext = Depends(get_request_context),
    audit: AuditDispatcher = Depends(get_audit),
):
    service = SalaryIncreaseService(db, audit=audit)
    increase = await service.record_increase(
        context,
        employee_id=employee_id,
        new_salary=data.new_salary,
        effective_date=data.effective_date,
        reason=data.reason,
    )
    return SalaryIncreaseResponse.model_validate(increase)


@router.get(
    "/{employee_id}/salary-increases",
    response_model=SalaryIncreaseListResponse,
    summary="Salary history of an employee",
)
async def list_salary_increases(
    employee_id: uuid.UUID,
    db: AsyncSession = Depends(get_async_session),
    context: RequestContext = Depends(get_request_context),
):
    service = SalaryIncreaseService(db)
    increases = await service.list_for_employee(context, employee_id)
    return SalaryIncreaseListResponse(
        items=[SalaryIncreaseResponse.model_validate(i) for i in increases],
        total=len(increases),
    )


@router.get(
    "/branches/{branch_id}/recent-increases",
    response_model=SalaryIncreaseListResponse,
    summary="Recent salary increases in a branch",
)
async def get_recent_increases(
    branch_id: uuid.UUID,
    limit: int = Query(10, ge=1, le=100),
    db: AsyncSession = Depends(get_async_session),
    context: RequestContext = Depends(get_request_context),
):
    service = SalaryIncreaseService(db)
    increases = await service.get_recent_increases(context, branch_id, limit)
    return SalaryIncreaseListResponse(
        items=[SalaryIncreaseResponse.model_validate(i) for i in increases],
        total=len(increases),
    )
