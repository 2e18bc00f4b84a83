"""
BranchBooks - Payroll Router

API endpoints for salary payments. Advance deductions are applied
automatically when a salary is paid.
"""

import uuid
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.database import get_async_session
from app.dependencies import get_audit, get_request_context
from app.schemas.common import MessageResponse
from app.schemas.payroll import (
    DeductionApplied,
    PayrollSummaryResponse,
    PaySalaryRequest,
    PaySalaryResponse,
    SalaryPaymentListResponse,
    SalaryPaymentResponse,
)
from app.services.audit_service import AuditDispatcher
from app.services.salary_payment_service import SalaryPaymentService
from app.utils.permissions import RequestContext


router = APIRouter()


@router.post(
    "/pay-salary",
    response_model=PaySalaryResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Pay an employee",
    description="Record a salary payment, withhold advance deductions oldest first "
                "and book the salary expense in the branch ledger.",
)
async def pay_salary(
    data: PaySalaryRequest,
    db: AsyncSession = Depends(get_async_session),
    context: RequestContext = Depends(get_request_context),
    audit: AuditDispatcher = Depends(get_audit),
):
    """Pay a salary."""
    service = SalaryPaymentService(db, audit=audit)
    result = await service.pay_salary(
        context,
        employee_id=data.employee_id,
        amount=data.amount,
        payment_date=data.payment_date,
        notes=data.notes,
    )
    
    plan = result.plan
    if plan.allocations:
        message = (
            f"Salary paid to {result.employee.name}. "
            f"Deducted {plan.total_deduction} from {len(plan.allocations)} advance(s)."
        )
    else:
        message = f"Salary paid to {result.employee.name}."
    
    return PaySalaryResponse(
        payment=SalaryPaymentResponse.model_validate(result.payment),
        employee_name=result.employee.name,
        policy=plan.policy,
        deductions=[
            DeductionApplied(
                advance_id=a.advance_id,
                deduction_amount=a.deduction_amount,
                previous_remaining=a.previous_remaining,
                new_remaining=a.new_remaining,
                new_status=a.new_status.value,
            )
            for a in plan.allocations
        ],
        message=message,
    )


@router.get(
    "/employees/{employee_id}/salary-payments",
    response_model=SalaryPaymentListResponse,
    summary="Salary payments of an employee",
)
async def list_employee_salary_payments(
    employee_id: uuid.UUID,
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    db: AsyncSession = Depends(get_async_session),
    context: RequestContext = Depends(get_request_context),
):
    """List an employee's salary payments, newest first."""
    service = SalaryPaymentService(db)
    payments = await service.list_for_employee(context, employee_id, start_date, end_date)
    return SalaryPaymentListResponse(
        items=[SalaryPaymentResponse.model_validate(p) for p in payments],
        total=len(payments),
    )


@router.get(
    "/branches/{branch_id}/salary-payments",
    response_model=SalaryPaymentListResponse,
    summary="Salary payments of a branch",
)
async def list_branch_salary_payments(
    branch_id: uuid.UUID,
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    db: AsyncSession = Depends(get_async_session),
    context: RequestContext = Depends(get_request_context),
):
    """List salary payments across a branch."""
    service = SalaryPaymentService(db)
    payments = await service.list_for_branch(context, branch_id, start_date, end_date)
    return SalaryPaymentListResponse(
        items=[SalaryPaymentResponse.model_validate(p) for p in payments],
        total=len(payments),
    )


@router.get(
    "/branches/{branch_id}/summary",
    response_model=PayrollSummaryResponse,
    summary="Branch payroll summary",
    description="Per-employee totals of gross, deducted and net pay.",
)
async def get_branch_payroll_summary(
    branch_id: uuid.UUID,
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    db: AsyncSession = Depends(get_async_session),
    context: RequestContext = Depends(get_request_context),
):
    service = SalaryPaymentService(db)
    summary = await service.get_branch_summary(context, branch_id, start_date, end_date)
    return PayrollSummaryResponse.model_validate(summary)


@router.delete(
    "/salary-payments/{payment_id}",
    response_model=MessageResponse,
    summary="Delete a salary payment",
    description="Soft-delete a salary payment and its ledger transaction. "
                "Advance deductions are not reversed.",
)
async def delete_salary_payment(
    payment_id: uuid.UUID,
    db: AsyncSession = Depends(get_async_session),
    context: RequestContext = Depends(get_request_context),
    audit: AuditDispatcher = Depends(get_audit),
):
    service = SalaryPaymentService(db, audit=audit)
    await service.delete_salary_payment(context, payment_id)
    return MessageResponse(message="Salary payment deleted")
