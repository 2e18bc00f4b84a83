"""
BranchBooks - Bonus Service

One-off employee bonuses. Each bonus is paired with an EXPENSE transaction
in the employee's branch; deleting the bonus soft-deletes both.
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.config import settings
from app.models.audit import AuditEntityType
from app.models.employee import Employee, EmployeeBonus
from app.models.transaction import Transaction, TransactionType
from app.services.advance_service import AdvanceService
from app.services.audit_service import AuditDispatcher, get_audit_dispatcher
from app.services.ledger import ZERO, require_positive, to_money
from app.services.unit_of_work import atomic
from app.utils.error_handling import (
    ErrorCode,
    InvalidDateRangeException,
    NotFoundException,
)
from app.utils.permissions import RequestContext, ensure_branch_access


logger = logging.getLogger(__name__)


@dataclass
class BonusCreated:
    bonus: EmployeeBonus
    transaction: Transaction
    employee: Employee


@dataclass
class EmployeeBonusTotals:
    employee_id: uuid.UUID
    employee_name: str
    bonus_count: int = 0
    total_amount: Decimal = ZERO


@dataclass
class BonusSummary:
    branch_id: uuid.UUID
    start_date: Optional[date]
    end_date: Optional[date]
    count: int = 0
    total_bonuses: Decimal = ZERO
    employees: List[EmployeeBonusTotals] = field(default_factory=list)


class BonusService:
    """Record, list, summarize and delete employee bonuses."""

    def __init__(self, db: AsyncSession, audit: Optional[AuditDispatcher] = None):
        self.db = db
        self.audit = audit or get_audit_dispatcher()
        self.advances = AdvanceService(db, audit=self.audit)

    async def create_bonus(
        self,
        context: RequestContext,
        employee_id: uuid.UUID,
        amount: Decimal,
        bonus_date: date,
        reason: Optional[str] = None,
    ) -> BonusCreated:
        """Record a bonus and its EXPENSE transaction in one transaction."""
        amount = require_positive(to_money(amount))

        async with atomic(self.db, "bonus"):
            employee = await self.advances.get_employee(context, employee_id)

            notes = f"Bonus - {employee.position}"
            if reason:
                notes += f": {reason}"
            transaction = Transaction(
                branch_id=employee.branch_id,
                transaction_type=TransactionType.EXPENSE,
                amount=amount,
                category=settings.bonus_expense_category,
                transaction_date=bonus_date,
                employee_vendor_name=employee.name,
                notes=notes,
                created_by_id=context.user_id,
            )
            self.db.add(transaction)
            await self.db.flush()

            bonus = EmployeeBonus(
                employee_id=employee.id,
                transaction_id=transaction.id,
                amount=amount,
                bonus_date=bonus_date,
                reason=reason,
                recorded_by_id=context.user_id,
            )
            self.db.add(bonus)
            await self.db.flush()

        logger.info("Bonus %s recorded for employee %s", amount, employee.id)
        self.audit.created(context, AuditEntityType.BONUS, bonus.id, {
            "employee_id": employee.id,
            "amount": amount,
            "bonus_date": bonus_date,
            "reason": reason,
            "transaction_id": transaction.id,
        })
        return BonusCreated(bonus=bonus, transaction=transaction, employee=employee)

    # ===========================================
    # READ
    # ===========================================

    def _bonuses_query(self, start_date: Optional[date], end_date: Optional[date]):
        if start_date and end_date and start_date > end_date:
            raise InvalidDateRangeException(start_date.isoformat(), end_date.isoformat())
        query = (
            select(EmployeeBonus)
            .options(selectinload(EmployeeBonus.employee), selectinload(EmployeeBonus.transaction))
            .where(EmployeeBonus.is_deleted.is_(False))
        )
        if start_date:
            query = query.where(EmployeeBonus.bonus_date >= start_date)
        if end_date:
            query = query.where(EmployeeBonus.bonus_date <= end_date)
        return (
            query.order_by(EmployeeBonus.bonus_date.desc(), EmployeeBonus.created_at.desc())
            .execution_options(populate_existing=True)
        )

    async def list_for_employee(
        self,
        context: RequestContext,
        employee_id: uuid.UUID,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> List[EmployeeBonus]:
        """Bonuses of one employee, newest first."""
        employee = await self.advances.get_employee(context, employee_id)
        query = self._bonuses_query(start_date, end_date).where(EmployeeBonus.employee_id == employee.id)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def list_for_branch(
        self,
        context: RequestContext,
        branch_id: uuid.UUID,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> List[EmployeeBonus]:
        """Bonuses of every current employee in a branch, newest first."""
        ensure_branch_access(context, branch_id)
        query = (
            self._bonuses_query(start_date, end_date)
            .join(Employee, EmployeeBonus.employee_id == Employee.id)
            .where(Employee.branch_id == branch_id, Employee.is_deleted.is_(False))
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def get_summary(
        self,
        context: RequestContext,
        branch_id: uuid.UUID,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> BonusSummary:
        """Bonus count and total for a branch, broken down per employee."""
        bonuses = await self.list_for_branch(context, branch_id, start_date, end_date)

        summary = BonusSummary(branch_id=branch_id, start_date=start_date, end_date=end_date)
        by_employee: Dict[uuid.UUID, EmployeeBonusTotals] = {}
        for bonus in bonuses:
            totals = by_employee.get(bonus.employee_id)
            if totals is None:
                totals = EmployeeBonusTotals(employee_id=bonus.employee_id, employee_name=bonus.employee.name)
                by_employee[bonus.employee_id] = totals
                summary.employees.append(totals)
            totals.bonus_count += 1
            totals.total_amount += bonus.amount
            summary.count += 1
            summary.total_bonuses += bonus.amount
        return summary

    # ===========================================
    # DELETE
    # ===========================================

    async def delete_bonus(self, context: RequestContext, bonus_id: uuid.UUID) -> EmployeeBonus:
        """Soft-delete a bonus together with its expense transaction."""
        async with atomic(self.db, "bonus"):
            result = await self.db.execute(
                select(EmployeeBonus)
                .where(
                    EmployeeBonus.id == bonus_id,
                    EmployeeBonus.is_deleted.is_(False),
                )
                .with_for_update()
            )
            bonus = result.scalar_one_or_none()
            if not bonus:
                raise NotFoundException("Bonus", bonus_id, code=ErrorCode.BONUS_NOT_FOUND)
            employee = await self.db.get(Employee, bonus.employee_id)
            ensure_branch_access(context, employee.branch_id if employee else None)

            now = datetime.now(timezone.utc)
            bonus.mark_deleted(context.user_id, now)
            if bonus.transaction_id:
                transaction = await self.db.get(Transaction, bonus.transaction_id)
                if transaction is not None and not transaction.is_deleted:
                    transaction.mark_deleted(context.user_id, now)
            await self.db.flush()

        logger.info("Bonus %s deleted", bonus.id)
        self.audit.deleted(context, AuditEntityType.BONUS, bonus.id, {
            "employee_id": bonus.employee_id,
            "amount": bonus.amount,
            "bonus_date": bonus.bonus_date,
            "transaction_id": bonus.transaction_id,
        })
        return bonus
