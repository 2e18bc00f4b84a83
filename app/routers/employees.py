"""
BranchBooks - Employee Advances Router

API endpoints for salary advances: record, deduct, cancel and summarize.
"""

import uuid

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_async_session
from app.dependencies import get_audit, get_request_context
from app.schemas.advance import (
    AdvanceCreatedResponse,
    AdvanceCreateRequest,
    AdvanceDeductRequest,
    AdvanceDetailResponse,
    AdvanceResponse,
    AdvanceSummaryResponse,
    BranchAdvancesSummaryResponse,
    DeductionRecordedResponse,
    EmployeeAdvancesResponse,
)
from app.services.advance_service import AdvanceService
from app.services.audit_service import AuditDispatcher
from app.utils.permissions import RequestContext


router = APIRouter()


# ===========================================
# ADVANCE ENDPOINTS
# ===========================================

@router.post(
    "/{employee_id}/advances",
    response_model=AdvanceCreatedResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Record a salary advance",
    description="Create an advance for an employee. The response carries a warning "
                "when total active advances exceed the configured months of salary.",
)
async def create_advance(
    employee_id: uuid.UUID,
    data: AdvanceCreateRequest,
    db: AsyncSession = Depends(get_async_session),
    context: RequestContext = Depends(get_request_context),
    audit: AuditDispatcher = Depends(get_audit),
):
    """Create an employee advance."""
    service = AdvanceService(db, audit=audit)
    created = await service.create_advance(
        context,
        employee_id=employee_id,
        amount=data.amount,
        monthly_deduction=data.monthly_deduction,
        advance_date=data.advance_date,
        reason=data.reason,
    )
    return AdvanceCreatedResponse.model_validate(created)


@router.get(
    "/{employee_id}/advances",
    response_model=EmployeeAdvancesResponse,
    summary="Advances of an employee",
)
async def get_employee_advances(
    employee_id: uuid.UUID,
    db: AsyncSession = Depends(get_async_session),
    context: RequestContext = Depends(get_request_context),
):
    """All advances of an employee with a summary of the active ones."""
    service = AdvanceService(db)
    result = await service.get_employee_advances(context, employee_id)
    return EmployeeAdvancesResponse(
        employee_id=result.employee.id,
        employee_name=result.employee.name,
        full_salary=result.employee.full_salary,
        advances=[AdvanceDetailResponse.model_validate(a) for a in result.advances],
        summary=AdvanceSummaryResponse.model_validate(result.summary),
    )


@router.post(
    "/advances/deduct",
    response_model=DeductionRecordedResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Deduct from an advance",
    description="Record a manual deduction. Amounts above the remaining balance are rejected.",
)
async def deduct_from_advance(
    data: AdvanceDeductRequest,
    db: AsyncSession = Depends(get_async_session),
    context: RequestContext = Depends(get_request_context),
    audit: AuditDispatcher = Depends(get_audit),
):
    service = AdvanceService(db, audit=audit)
    recorded = await service.record_deduction(
        context,
        advance_id=data.advance_id,
        amount=data.amount,
        deduction_date=data.deduction_date,
        salary_payment_id=data.salary_payment_id,
        notes=data.notes,
    )
    return DeductionRecordedResponse.model_validate(recorded)


@router.post(
    "/advances/{advance_id}/cancel",
    response_model=AdvanceResponse,
    summary="Cancel an advance",
    description="Cancel an active advance that has no deductions.",
)
async def cancel_advance(
    advance_id: uuid.UUID,
    db: AsyncSession = Depends(get_async_session),
    context: RequestContext = Depends(get_request_context),
    audit: AuditDispatcher = Depends(get_audit),
):
    service = AdvanceService(db, audit=audit)
    advance = await service.cancel_advance(context, advance_id)
    return AdvanceResponse.model_validate(advance)


@router.get(
    "/branches/{branch_id}/advances-summary",
    response_model=BranchAdvancesSummaryResponse,
    summary="Branch advances summary",
    description="Outstanding advances per employee for a branch.",
)
async def get_branch_advances_summary(
    branch_id: uuid.UUID,
    db: AsyncSession = Depends(get_async_session),
    context: RequestContext = Depends(get_request_context),
):
    service = AdvanceService(db)
    summary = await service.get_branch_advances_summary(context, branch_id)
    return BranchAdvancesSummaryResponse.model_validate(summary)
