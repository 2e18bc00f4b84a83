"""
BranchBooks - Salary Increase Service

Raises an employee's base salary and keeps the history of raises.
"""

import logging
import uuid
from datetime import date
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.models.audit import AuditEntityType
from app.models.employee import Employee, SalaryIncrease
from app.services.advance_service import AdvanceService
from app.services.audit_service import AuditDispatcher, get_audit_dispatcher
from app.services.ledger import require_positive, to_money
from app.services.unit_of_work import atomic
from app.utils.error_handling import BusinessRuleException, ErrorCode, NotFoundException
from app.utils.permissions import RequestContext, ensure_branch_access


logger = logging.getLogger(__name__)


class SalaryIncreaseService:

    def __init__(self, db: AsyncSession, audit: Optional[AuditDispatcher] = None):
        self.db = db
        self.audit = audit or get_audit_dispatcher()
        self.advances = AdvanceService(db, audit=self.audit)

    async def record_increase(
        self,
        context: RequestContext,
        employee_id: uuid.UUID,
        new_salary: Decimal,
        effective_date: date,
        reason: Optional[str] = None,
    ) -> SalaryIncrease:
        """
        Set the employee's base salary to ``new_salary`` and log the change.

        A new salary below the current one is rejected; salary cuts are not
        increases.
        """
        new_salary = require_positive(to_money(new_salary, "new_salary"), "new_salary")

        async with atomic(self.db, "employee"):
            result = await self.db.execute(
                select(Employee)
                .where(Employee.id == employee_id, Employee.is_deleted.is_(False))
                .with_for_update()
                .execution_options(populate_existing=True)
            )
            employee = result.scalar_one_or_none()
            if not employee:
                raise NotFoundException("Employee", employee_id, code=ErrorCode.EMPLOYEE_NOT_FOUND)
            ensure_branch_access(context, employee.branch_id)

            old_salary = employee.base_salary
            if new_salary < old_salary:
                raise BusinessRuleException(
                    f"New salary {new_salary} is below the current salary {old_salary}.",
                    rule="salary_increase_not_lower",
                    details={"old_salary": str(old_salary), "new_salary": str(new_salary)},
                )

            increase = SalaryIncrease(
                employee_id=employee.id,
                old_salary=old_salary,
                new_salary=new_salary,
                increase_amount=new_salary - old_salary,
                effective_date=effective_date,
                reason=reason,
                recorded_by_id=context.user_id,
            )
            employee.base_salary = new_salary
            self.db.add(increase)
            await self.db.flush()

        logger.info("Salary of employee %s raised %s -> %s", employee.id, old_salary, new_salary)
        self.audit.created(context, AuditEntityType.SALARY_INCREASE, increase.id, {
            "employee_id": employee.id,
            "old_salary": old_salary,
            "new_salary": new_salary,
            "increase_amount": increase.increase_amount,
            "effective_date": effective_date,
            "reason": reason,
        })
        return increase

    async def list_for_employee(self, context: RequestContext, employee_id: uuid.UUID) -> List[SalaryIncrease]:
        """Raises of one employee, most recent effective date first."""
        employee = await self.advances.get_employee(context, employee_id)
        result = await self.db.execute(
            select(SalaryIncrease)
            .where(SalaryIncrease.employee_id == employee.id)
            .order_by(SalaryIncrease.effective_date.desc(), SalaryIncrease.created_at.desc())
        )
        return list(result.scalars().all())

    async def get_recent_increases(
        self,
        context: RequestContext,
        branch_id: uuid.UUID,
        limit: int = 10,
    ) -> List[SalaryIncrease]:
        """The latest raises across current employees of a branch."""
        ensure_branch_access(context, branch_id)
        result = await self.db.execute(
            select(SalaryIncrease)
            .options(selectinload(SalaryIncrease.employee))
            .join(Employee, SalaryIncrease.employee_id == Employee.id)
            .where(Employee.branch_id == branch_id, Employee.is_deleted.is_(False))
            .order_by(SalaryIncrease.effective_date.desc(), SalaryIncrease.created_at.desc())
            .limit(limit)
        )
        return list(result.scalars().all())
