"""
BranchBooks - Salary Payment Service

Pays an employee and, in the same unit of work, withholds advance
deductions according to the configured deduction policy and books the
salary expense in the branch ledger.
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.config import settings
from app.models.audit import AuditEntityType
from app.models.employee import (
    AdvanceDeduction,
    Employee,
    SalaryPayment,
)
from app.models.transaction import Transaction, TransactionType
from app.services.advance_service import AdvanceService
from app.services.audit_service import AuditDispatcher, get_audit_dispatcher
from app.services.ledger import (
    ZERO,
    AdvanceSnapshot,
    DeductionPlan,
    get_deduction_policy,
    require_positive,
    round_money,
    to_money,
)
from app.services.unit_of_work import atomic
from app.utils.error_handling import (
    ErrorCode,
    InvalidDateRangeException,
    NotFoundException,
)
from app.utils.permissions import RequestContext, ensure_branch_access


logger = logging.getLogger(__name__)


@dataclass
class SalaryPaymentResult:
    payment: SalaryPayment
    transaction: Transaction
    employee: Employee
    plan: DeductionPlan


@dataclass
class EmployeePayrollTotals:
    employee_id: uuid.UUID
    employee_name: str
    payment_count: int
    total_amount: Decimal
    total_deduction: Decimal
    total_net: Decimal


@dataclass
class PayrollSummary:
    branch_id: uuid.UUID
    start_date: Optional[date]
    end_date: Optional[date]
    employees: List[EmployeePayrollTotals] = field(default_factory=list)

    @property
    def payment_count(self) -> int:
        return sum(e.payment_count for e in self.employees)

    @property
    def total_amount(self) -> Decimal:
        return sum((e.total_amount for e in self.employees), ZERO)

    @property
    def total_deduction(self) -> Decimal:
        return sum((e.total_deduction for e in self.employees), ZERO)

    @property
    def total_net(self) -> Decimal:
        return sum((e.total_net for e in self.employees), ZERO)


def _check_range(start_date: Optional[date], end_date: Optional[date]) -> None:
    if start_date and end_date and start_date > end_date:
        raise InvalidDateRangeException(start_date.isoformat(), end_date.isoformat())


class SalaryPaymentService:
    """Payroll orchestration for a branch."""

    def __init__(
        self,
        db: AsyncSession,
        audit: Optional[AuditDispatcher] = None,
        policy=None,
    ):
        self.db = db
        self.audit = audit or get_audit_dispatcher()
        self.policy = policy or get_deduction_policy(settings.advance_deduction_policy)
        self.advances = AdvanceService(db, audit=self.audit)

    # ===========================================
    # PAY
    # ===========================================

    async def pay_salary(
        self,
        context: RequestContext,
        employee_id: uuid.UUID,
        amount: Decimal,
        payment_date: date,
        notes: Optional[str] = None,
    ) -> SalaryPaymentResult:
        """
        Record a salary payment.

        Steps, all in one transaction:

        1. Lock the employee's active advances (oldest first).
        2. Ask the deduction policy for a plan. The fixed-monthly policy
           rejects a plan whose deductions exceed the salary.
        3. Insert the EXPENSE transaction, the salary payment, one deduction
           row per advance touched, and update each advance's remaining
           amount and status.

        A failure at any step leaves no partial rows behind.
        """
        amount = require_positive(to_money(amount))

        async with atomic(self.db, "salary payment"):
            employee = await self.advances.get_employee(context, employee_id)
            advances = await self.advances.get_active_advances(employee.id, lock=True)

            plan = self.policy.plan(
                amount,
                [
                    AdvanceSnapshot(
                        advance_id=a.id,
                        original=a.amount,
                        remaining=a.remaining_amount,
                        monthly_deduction=a.monthly_deduction,
                    )
                    for a in advances
                ],
                employee.full_salary,
            )

            transaction = Transaction(
                branch_id=employee.branch_id,
                transaction_type=TransactionType.EXPENSE,
                amount=plan.expense_amount,
                category=settings.salary_expense_category,
                transaction_date=payment_date,
                employee_vendor_name=employee.name,
                notes=self._transaction_notes(employee, plan, notes),
                created_by_id=context.user_id,
            )
            self.db.add(transaction)
            await self.db.flush()

            payment = SalaryPayment(
                employee_id=employee.id,
                transaction_id=transaction.id,
                amount=amount,
                total_deduction=plan.total_deduction,
                net_amount=plan.net_amount,
                payment_date=payment_date,
                notes=notes,
                recorded_by_id=context.user_id,
            )
            self.db.add(payment)
            await self.db.flush()

            by_id = {a.id: a for a in advances}
            for allocation in plan.allocations:
                advance = by_id[allocation.advance_id]
                self.db.add(
                    AdvanceDeduction(
                        advance_id=advance.id,
                        salary_payment_id=payment.id,
                        amount=allocation.deduction_amount,
                        deduction_date=payment_date,
                        notes=f"Salary deduction {payment_date.isoformat()}",
                        recorded_by_id=context.user_id,
                    )
                )
                advance.remaining_amount = allocation.new_remaining
                advance.status = allocation.new_status
            await self.db.flush()

        logger.info(
            "Salary %s paid to employee %s (deducted %s across %d advances, net %s, policy %s)",
            amount,
            employee.id,
            plan.total_deduction,
            len(plan.allocations),
            plan.net_amount,
            plan.policy,
        )
        self.audit.created(context, AuditEntityType.SALARY_PAYMENT, payment.id, {
            "employee_id": employee.id,
            "amount": amount,
            "total_deduction": plan.total_deduction,
            "net_amount": plan.net_amount,
            "payment_date": payment_date,
            "policy": plan.policy,
            "transaction_id": transaction.id,
            "deductions": [
                {
                    "advance_id": a.advance_id,
                    "amount": a.deduction_amount,
                    "remaining": a.new_remaining,
                }
                for a in plan.allocations
            ],
        })

        return SalaryPaymentResult(
            payment=payment,
            transaction=transaction,
            employee=employee,
            plan=plan,
        )

    @staticmethod
    def _transaction_notes(employee: Employee, plan: DeductionPlan, notes: Optional[str]) -> str:
        text = f"Salary - {employee.name}"
        if plan.total_deduction > 0:
            text += f" (advance deduction {plan.total_deduction})"
        if notes:
            text += f" - {notes}"
        return text

    # ===========================================
    # READ
    # ===========================================

    def _payments_query(self, start_date: Optional[date], end_date: Optional[date]):
        _check_range(start_date, end_date)
        query = (
            select(SalaryPayment)
            .options(
                selectinload(SalaryPayment.deductions),
                selectinload(SalaryPayment.transaction),
            )
            .where(SalaryPayment.is_deleted.is_(False))
        )
        if start_date:
            query = query.where(SalaryPayment.payment_date >= start_date)
        if end_date:
            query = query.where(SalaryPayment.payment_date <= end_date)
        return (
            query.order_by(SalaryPayment.payment_date.desc(), SalaryPayment.created_at.desc())
            .execution_options(populate_existing=True)
        )

    async def list_for_employee(
        self,
        context: RequestContext,
        employee_id: uuid.UUID,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> List[SalaryPayment]:
        """Salary payments of one employee, newest first."""
        employee = await self.advances.get_employee(context, employee_id)
        query = self._payments_query(start_date, end_date).where(
            SalaryPayment.employee_id == employee.id
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def list_for_branch(
        self,
        context: RequestContext,
        branch_id: uuid.UUID,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> List[SalaryPayment]:
        """Salary payments of every employee in a branch, newest first."""
        ensure_branch_access(context, branch_id)
        query = (
            self._payments_query(start_date, end_date)
            .join(Employee, SalaryPayment.employee_id == Employee.id)
            .where(Employee.branch_id == branch_id)
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def get_branch_summary(
        self,
        context: RequestContext,
        branch_id: uuid.UUID,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> PayrollSummary:
        """Per-employee payroll totals for a branch over an optional date range."""
        ensure_branch_access(context, branch_id)
        _check_range(start_date, end_date)

        query = (
            select(
                Employee.id,
                Employee.name,
                func.count(SalaryPayment.id),
                func.sum(SalaryPayment.amount),
                func.sum(SalaryPayment.total_deduction),
                func.sum(SalaryPayment.net_amount),
            )
            .join(SalaryPayment, SalaryPayment.employee_id == Employee.id)
            .where(
                Employee.branch_id == branch_id,
                SalaryPayment.is_deleted.is_(False),
            )
            .group_by(Employee.id, Employee.name)
            .order_by(Employee.name)
        )
        if start_date:
            query = query.where(SalaryPayment.payment_date >= start_date)
        if end_date:
            query = query.where(SalaryPayment.payment_date <= end_date)

        result = await self.db.execute(query)
        summary = PayrollSummary(branch_id=branch_id, start_date=start_date, end_date=end_date)
        for emp_id, name, count, total, deducted, net in result.all():
            summary.employees.append(
                EmployeePayrollTotals(
                    employee_id=emp_id,
                    employee_name=name,
                    payment_count=count,
                    total_amount=round_money(total),
                    total_deduction=round_money(deducted),
                    total_net=round_money(net),
                )
            )
        return summary

    # ===========================================
    # DELETE
    # ===========================================

    async def delete_salary_payment(
        self,
        context: RequestContext,
        payment_id: uuid.UUID,
    ) -> SalaryPayment:
        """
        Soft-delete a salary payment together with its expense transaction.

        Advance deductions made by the payment are kept; the advances are
        not credited back.
        """
        async with atomic(self.db, "salary payment"):
            result = await self.db.execute(
                select(SalaryPayment)
                .where(
                    SalaryPayment.id == payment_id,
                    SalaryPayment.is_deleted.is_(False),
                )
                .with_for_update()
            )
            payment = result.scalar_one_or_none()
            if not payment:
                raise NotFoundException(
                    "Salary payment", payment_id, code=ErrorCode.SALARY_PAYMENT_NOT_FOUND,
                )
            employee = await self.db.get(Employee, payment.employee_id)
            ensure_branch_access(context, employee.branch_id if employee else None)

            now = datetime.now(timezone.utc)
            payment.mark_deleted(context.user_id, now)
            if payment.transaction_id:
                transaction = await self.db.get(Transaction, payment.transaction_id)
                if transaction is not None and not transaction.is_deleted:
                    transaction.mark_deleted(context.user_id, now)
            await self.db.flush()

        logger.info("Salary payment %s deleted", payment.id)
        self.audit.deleted(context, AuditEntityType.SALARY_PAYMENT, payment.id, {
            "employee_id": payment.employee_id,
            "amount": payment.amount,
            "payment_date": payment.payment_date,
            "transaction_id": payment.transaction_id,
        })
        return payment
