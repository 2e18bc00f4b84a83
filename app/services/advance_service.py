"""
BranchBooks - Employee Advance Service

Salary advances: creation, manual deductions, cancellation and per-employee
and per-branch summaries. Automatic deductions during payroll live in
SalaryPaymentService.
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.config import settings
from app.models.audit import AuditEntityType
from app.models.employee import (
    AdvanceDeduction,
    AdvanceStatus,
    Employee,
    EmployeeAdvance,
    EmployeeStatus,
    SalaryPayment,
)
from app.services.audit_service import AuditDispatcher, get_audit_dispatcher
from app.services.ledger import (
    CENT,
    ZERO,
    Balance,
    advance_status_for,
    apply_deduction,
    require_positive,
    to_money,
)
from app.services.unit_of_work import atomic
from app.utils.error_handling import (
    BusinessRuleException,
    ConflictException,
    ErrorCode,
    MissingFieldException,
    NotFoundException,
)
from app.utils.permissions import RequestContext, ensure_branch_access


logger = logging.getLogger(__name__)


# ===========================================
# RESULT TYPES
# ===========================================

@dataclass
class AdvanceCreated:
    advance: EmployeeAdvance
    total_active_advances: Decimal
    salary_threshold: Decimal
    salary_months_equivalent: Optional[Decimal]
    warning: Optional[str] = None


@dataclass
class AdvanceSummary:
    total_active_advances: int
    total_remaining: Decimal
    total_monthly_deduction: Decimal
    net_salary_after_deduction: Decimal
    salary_months_equivalent: Optional[Decimal]
    exceeds_threshold: bool
    salary_threshold: Decimal


@dataclass
class EmployeeAdvances:
    employee: Employee
    advances: List[EmployeeAdvance]
    summary: AdvanceSummary


@dataclass
class DeductionRecorded:
    deduction: AdvanceDeduction
    advance: EmployeeAdvance


@dataclass
class EmployeeAdvanceTotals:
    employee_id: uuid.UUID
    employee_name: str
    position: str
    base_salary: Decimal
    allowance: Decimal
    total_salary: Decimal
    active_advances_count: int
    total_remaining: Decimal
    total_monthly_deduction: Decimal
    net_salary: Decimal
    salary_months_equivalent: Optional[Decimal]
    exceeds_threshold: bool


@dataclass
class BranchAdvancesSummary:
    branch_id: uuid.UUID
    employees: List[EmployeeAdvanceTotals] = field(default_factory=list)

    @property
    def employees_with_advances(self) -> int:
        return len(self.employees)

    @property
    def total_remaining_advances(self) -> Decimal:
        return sum((e.total_remaining for e in self.employees), ZERO)

    @property
    def total_monthly_deductions(self) -> Decimal:
        return sum((e.total_monthly_deduction for e in self.employees), ZERO)


def salary_months(amount: Decimal, monthly_salary: Decimal) -> Optional[Decimal]:
    """How many months of salary ``amount`` represents, to two places."""
    if monthly_salary <= 0:
        return None
    return (amount / monthly_salary).quantize(CENT, rounding=ROUND_HALF_UP)


class AdvanceService:
    """Service for employee salary advances."""

    def __init__(self, db: AsyncSession, audit: Optional[AuditDispatcher] = None):
        self.db = db
        self.audit = audit or get_audit_dispatcher()

    # ===========================================
    # LOOKUPS
    # ===========================================

    async def get_employee(self, context: RequestContext, employee_id: uuid.UUID) -> Employee:
        """Load a non-deleted employee the caller is allowed to see."""
        result = await self.db.execute(
            select(Employee).where(
                Employee.id == employee_id,
                Employee.is_deleted.is_(False),
            )
        )
        employee = result.scalar_one_or_none()
        if not employee:
            raise NotFoundException("Employee", employee_id, code=ErrorCode.EMPLOYEE_NOT_FOUND)
        ensure_branch_access(context, employee.branch_id)
        return employee

    async def get_active_advances(
        self,
        employee_id: uuid.UUID,
        lock: bool = False,
    ) -> List[EmployeeAdvance]:
        """Active advances, oldest first (ties broken by creation order)."""
        stmt = (
            select(EmployeeAdvance)
            .where(
                EmployeeAdvance.employee_id == employee_id,
                EmployeeAdvance.status == AdvanceStatus.ACTIVE,
                EmployeeAdvance.is_deleted.is_(False),
            )
            .order_by(EmployeeAdvance.advance_date.asc(), EmployeeAdvance.created_at.asc())
        )
        if lock:
            stmt = stmt.with_for_update()
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def _get_advance_for_update(self, advance_id: uuid.UUID) -> EmployeeAdvance:
        result = await self.db.execute(
            select(EmployeeAdvance)
            .where(
                EmployeeAdvance.id == advance_id,
                EmployeeAdvance.is_deleted.is_(False),
            )
            .with_for_update()
        )
        advance = result.scalar_one_or_none()
        if not advance:
            raise NotFoundException("Advance", advance_id, code=ErrorCode.ADVANCE_NOT_FOUND)
        return advance

    async def _get_advance_employee(self, context: RequestContext, advance: EmployeeAdvance) -> Employee:
        employee = await self.db.get(Employee, advance.employee_id)
        if employee is None:
            raise NotFoundException("Employee", advance.employee_id, code=ErrorCode.EMPLOYEE_NOT_FOUND)
        ensure_branch_access(context, employee.branch_id)
        return employee

    # ===========================================
    # CREATE
    # ===========================================

    async def create_advance(
        self,
        context: RequestContext,
        employee_id: uuid.UUID,
        amount: Decimal,
        monthly_deduction: Decimal,
        advance_date: date,
        reason: str,
    ) -> AdvanceCreated:
        """
        Record a new advance for an employee.

        The advance starts ACTIVE with its full amount remaining. A warning is
        returned (not raised) when the employee's active advances would exceed
        the configured number of months of salary.
        """
        amount = require_positive(to_money(amount))
        monthly_deduction = require_positive(to_money(monthly_deduction, "monthly_deduction"), "monthly_deduction")
        if monthly_deduction > amount:
            raise BusinessRuleException(
                f"Monthly deduction ({monthly_deduction}) cannot exceed the advance amount ({amount})",
                rule="MONTHLY_DEDUCTION_WITHIN_AMOUNT",
            )
        if not reason or not reason.strip():
            raise MissingFieldException("reason")

        async with atomic(self.db, "advance"):
            employee = await self.get_employee(context, employee_id)
            active = await self.get_active_advances(employee.id)
            total_active = sum((a.remaining_amount for a in active), ZERO)

            advance = EmployeeAdvance(
                employee_id=employee.id,
                amount=amount,
                remaining_amount=amount,
                monthly_deduction=monthly_deduction,
                advance_date=advance_date,
                reason=reason.strip(),
                status=AdvanceStatus.ACTIVE,
                recorded_by_id=context.user_id,
            )
            self.db.add(advance)
            await self.db.flush()

        new_total = total_active + amount
        full_salary = employee.full_salary
        months = settings.advance_warning_salary_months
        threshold = full_salary * months

        warning = None
        if new_total > threshold:
            warning = (
                f"Total advances ({new_total}) exceed {months} months of salary ({threshold})"
            )
            logger.warning("Employee %s advances exceed threshold: %s", employee.id, warning)

        logger.info("Advance %s of %s created for employee %s", advance.id, amount, employee.id)
        self.audit.created(context, AuditEntityType.ADVANCE, advance.id, {
            "employee_id": employee.id,
            "amount": amount,
            "monthly_deduction": monthly_deduction,
            "advance_date": advance_date,
            "reason": advance.reason,
        })

        return AdvanceCreated(
            advance=advance,
            total_active_advances=new_total,
            salary_threshold=threshold,
            salary_months_equivalent=salary_months(new_total, full_salary),
            warning=warning,
        )

    # ===========================================
    # READ
    # ===========================================

    async def get_employee_advances(
        self,
        context: RequestContext,
        employee_id: uuid.UUID,
    ) -> EmployeeAdvances:
        """All advances of an employee (newest first) with a summary of the active ones."""
        employee = await self.get_employee(context, employee_id)

        result = await self.db.execute(
            select(EmployeeAdvance)
            .options(selectinload(EmployeeAdvance.deductions))
            .where(
                EmployeeAdvance.employee_id == employee.id,
                EmployeeAdvance.is_deleted.is_(False),
            )
            .order_by(EmployeeAdvance.advance_date.desc(), EmployeeAdvance.created_at.desc())
            .execution_options(populate_existing=True)
        )
        advances = list(result.scalars().all())

        active = [a for a in advances if a.status == AdvanceStatus.ACTIVE]
        total_remaining = sum((a.remaining_amount for a in active), ZERO)
        total_monthly = sum((a.monthly_deduction for a in active), ZERO)
        full_salary = employee.full_salary
        threshold = full_salary * settings.advance_warning_salary_months

        return EmployeeAdvances(
            employee=employee,
            advances=advances,
            summary=AdvanceSummary(
                total_active_advances=len(active),
                total_remaining=total_remaining,
                total_monthly_deduction=total_monthly,
                net_salary_after_deduction=full_salary - total_monthly,
                salary_months_equivalent=salary_months(total_remaining, full_salary),
                exceeds_threshold=total_remaining > threshold,
                salary_threshold=threshold,
            ),
        )

    async def get_branch_advances_summary(
        self,
        context: RequestContext,
        branch_id: uuid.UUID,
    ) -> BranchAdvancesSummary:
        """Advance totals for every active employee in a branch that has active advances."""
        ensure_branch_access(context, branch_id)

        result = await self.db.execute(
            select(Employee)
            .options(
                selectinload(
                    Employee.advances.and_(
                        EmployeeAdvance.status == AdvanceStatus.ACTIVE,
                        EmployeeAdvance.is_deleted.is_(False),
                    )
                )
            )
            .where(
                Employee.branch_id == branch_id,
                Employee.is_deleted.is_(False),
                Employee.status == EmployeeStatus.ACTIVE,
            )
            .order_by(Employee.name)
            .execution_options(populate_existing=True)
        )
        employees = result.scalars().all()

        summary = BranchAdvancesSummary(branch_id=branch_id)
        for emp in employees:
            if not emp.advances:
                continue
            total_remaining = sum((a.remaining_amount for a in emp.advances), ZERO)
            total_monthly = sum((a.monthly_deduction for a in emp.advances), ZERO)
            total_salary = emp.full_salary
            summary.employees.append(
                EmployeeAdvanceTotals(
                    employee_id=emp.id,
                    employee_name=emp.name,
                    position=emp.position,
                    base_salary=emp.base_salary,
                    allowance=emp.allowance,
                    total_salary=total_salary,
                    active_advances_count=len(emp.advances),
                    total_remaining=total_remaining,
                    total_monthly_deduction=total_monthly,
                    net_salary=total_salary - total_monthly,
                    salary_months_equivalent=salary_months(total_remaining, total_salary),
                    exceeds_threshold=total_remaining > total_salary * settings.advance_warning_salary_months,
                )
            )
        return summary

    # ===========================================
    # DEDUCT / CANCEL
    # ===========================================

    async def record_deduction(
        self,
        context: RequestContext,
        advance_id: uuid.UUID,
        amount: Decimal,
        deduction_date: date,
        salary_payment_id: Optional[uuid.UUID] = None,
        notes: Optional[str] = None,
    ) -> DeductionRecorded:
        """
        Manually deduct ``amount`` from an active advance.

        Amounts above the remaining balance are rejected, never clamped.
        """
        amount = to_money(amount)

        async with atomic(self.db, "advance"):
            advance = await self._get_advance_for_update(advance_id)
            await self._get_advance_employee(context, advance)

            if advance.status != AdvanceStatus.ACTIVE:
                raise BusinessRuleException(
                    "Cannot deduct from an advance that is not active",
                    rule="ADVANCE_MUST_BE_ACTIVE",
                    details={"status": advance.status.value},
                )

            if salary_payment_id is not None:
                payment = await self.db.get(SalaryPayment, salary_payment_id)
                if payment is None or payment.is_deleted or payment.employee_id != advance.employee_id:
                    raise NotFoundException(
                        "Salary payment", salary_payment_id, code=ErrorCode.SALARY_PAYMENT_NOT_FOUND,
                    )

            update = apply_deduction(Balance(advance.amount, advance.remaining_amount), amount)

            deduction = AdvanceDeduction(
                advance_id=advance.id,
                salary_payment_id=salary_payment_id,
                amount=amount,
                deduction_date=deduction_date,
                notes=notes,
                recorded_by_id=context.user_id,
            )
            self.db.add(deduction)
            advance.remaining_amount = update.new_remaining
            advance.status = advance_status_for(update.new_status)
            await self.db.flush()

        logger.info(
            "Deducted %s from advance %s (remaining %s -> %s)",
            amount, advance.id, update.previous_remaining, update.new_remaining,
        )
        self.audit.created(context, AuditEntityType.ADVANCE_DEDUCTION, deduction.id, {
            "advance_id": advance.id,
            "amount": amount,
            "deduction_date": deduction_date,
            "previous_remaining": update.previous_remaining,
            "new_remaining": update.new_remaining,
            "status": advance.status,
        })

        return DeductionRecorded(deduction=deduction, advance=advance)

    async def cancel_advance(
        self,
        context: RequestContext,
        advance_id: uuid.UUID,
    ) -> EmployeeAdvance:
        """Cancel an active advance that has had nothing deducted from it."""
        async with atomic(self.db, "advance"):
            advance = await self._get_advance_for_update(advance_id)
            await self._get_advance_employee(context, advance)

            if advance.status != AdvanceStatus.ACTIVE:
                raise BusinessRuleException(
                    "Only active advances can be cancelled",
                    rule="ADVANCE_MUST_BE_ACTIVE",
                    details={"status": advance.status.value},
                )

            deduction_count = await self.db.scalar(
                select(func.count(AdvanceDeduction.id)).where(AdvanceDeduction.advance_id == advance.id)
            )
            if deduction_count:
                raise ConflictException(
                    "Cannot cancel an advance that already has deductions. "
                    "Record deductions until it is repaid instead.",
                    resource_type="Advance",
                    details={"deduction_count": deduction_count},
                )

            previous_status = advance.status
            advance.status = AdvanceStatus.CANCELLED
            await self.db.flush()

        logger.info("Advance %s cancelled", advance.id)
        self.audit.updated(
            context,
            AuditEntityType.ADVANCE,
            advance.id,
            {"status": previous_status},
            {"status": advance.status},
        )
        return advance
