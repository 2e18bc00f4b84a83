"""
BranchBooks - Bonus & Salary Increase Service Tests
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import select

from app.models.audit import AuditAction, AuditEntityType
from app.models.employee import Employee, EmployeeBonus
from app.models.transaction import Transaction, TransactionType
from app.services.bonus_service import BonusService
from app.services.salary_increase_service import SalaryIncreaseService
from app.utils.error_handling import (
    BranchAccessDeniedException,
    BusinessRuleException,
    InvalidAmountException,
    InvalidDateRangeException,
    NotFoundException,
)


async def add_employee(db_session, branch_id, name: str) -> Employee:
    employee = Employee(
        id=uuid4(),
        branch_id=branch_id,
        name=name,
        position="Driver",
        base_salary=Decimal("700.00"),
    )
    db_session.add(employee)
    await db_session.commit()
    return employee


class TestCreateBonus:

    @pytest.mark.asyncio
    async def test_bonus_books_expense(self, db_session, audit, accountant_context, test_employee, test_branch):
        service = BonusService(db_session, audit=audit)

        created = await service.create_bonus(
            accountant_context, test_employee.id, Decimal("150"), date(2025, 3, 20), reason="Eid",
        )

        assert created.bonus.amount == Decimal("150.00")
        assert created.bonus.transaction_id == created.transaction.id
        assert created.transaction.transaction_type == TransactionType.EXPENSE
        assert created.transaction.amount == Decimal("150.00")
        assert created.transaction.category == "bonuses"
        assert created.transaction.branch_id == test_branch.id
        assert created.transaction.employee_vendor_name == "Amina Bello"
        assert created.transaction.notes == "Bonus - Cashier: Eid"

        entry = audit.entries[-1]
        assert entry.entity_type == AuditEntityType.BONUS
        assert entry.action == AuditAction.CREATE

    @pytest.mark.asyncio
    async def test_rejects_non_positive_amount(self, db_session, audit, admin_context, test_employee):
        service = BonusService(db_session, audit=audit)

        with pytest.raises(InvalidAmountException):
            await service.create_bonus(admin_context, test_employee.id, Decimal("0"), date(2025, 3, 20))

        assert (await db_session.execute(select(Transaction))).scalars().all() == []

    @pytest.mark.asyncio
    async def test_other_branch_denied(self, db_session, audit, other_accountant_context, test_employee):
        service = BonusService(db_session, audit=audit)
        employee_id = test_employee.id

        with pytest.raises(BranchAccessDeniedException):
            await service.create_bonus(other_accountant_context, employee_id, Decimal("50"), date(2025, 3, 20))

        assert (await db_session.execute(select(EmployeeBonus))).scalars().all() == []

    @pytest.mark.asyncio
    async def test_unknown_employee(self, db_session, audit, admin_context):
        service = BonusService(db_session, audit=audit)

        with pytest.raises(NotFoundException):
            await service.create_bonus(admin_context, uuid4(), Decimal("50"), date(2025, 3, 20))


class TestListAndSummary:

    @pytest.mark.asyncio
    async def test_list_for_employee_newest_first(self, db_session, audit, admin_context, test_employee):
        service = BonusService(db_session, audit=audit)
        for day in (5, 25, 15):
            await service.create_bonus(admin_context, test_employee.id, Decimal("10"), date(2025, 3, day))

        bonuses = await service.list_for_employee(admin_context, test_employee.id)
        assert [b.bonus_date.day for b in bonuses] == [25, 15, 5]

        ranged = await service.list_for_employee(
            admin_context, test_employee.id, start_date=date(2025, 3, 10), end_date=date(2025, 3, 20),
        )
        assert [b.bonus_date.day for b in ranged] == [15]

        with pytest.raises(InvalidDateRangeException):
            await service.list_for_employee(
                admin_context, test_employee.id, start_date=date(2025, 4, 1), end_date=date(2025, 3, 1),
            )

    @pytest.mark.asyncio
    async def test_branch_summary_per_employee(
        self, db_session, audit, admin_context, test_employee, test_branch, other_branch,
    ):
        service = BonusService(db_session, audit=audit)
        driver = await add_employee(db_session, test_branch.id, "Tunde Okafor")
        elsewhere = await add_employee(db_session, other_branch.id, "Grace Eze")

        await service.create_bonus(admin_context, test_employee.id, Decimal("100"), date(2025, 3, 1))
        await service.create_bonus(admin_context, test_employee.id, Decimal("50.50"), date(2025, 3, 2))
        await service.create_bonus(admin_context, driver.id, Decimal("75"), date(2025, 3, 3))
        await service.create_bonus(admin_context, elsewhere.id, Decimal("999"), date(2025, 3, 3))

        summary = await service.get_summary(admin_context, test_branch.id)

        assert summary.count == 3
        assert summary.total_bonuses == Decimal("225.50")
        totals = {e.employee_name: (e.bonus_count, e.total_amount) for e in summary.employees}
        assert totals == {
            "Amina Bello": (2, Decimal("150.50")),
            "Tunde Okafor": (1, Decimal("75.00")),
        }
        assert len(await service.list_for_branch(admin_context, other_branch.id)) == 1

    @pytest.mark.asyncio
    async def test_branch_listing_denied_for_other_accountant(
        self, db_session, audit, other_accountant_context, test_branch,
    ):
        service = BonusService(db_session, audit=audit)

        with pytest.raises(BranchAccessDeniedException):
            await service.get_summary(other_accountant_context, test_branch.id)


class TestDeleteBonus:

    @pytest.mark.asyncio
    async def test_delete_soft_deletes_transaction(self, db_session, audit, admin_context, test_employee):
        service = BonusService(db_session, audit=audit)
        created = await service.create_bonus(admin_context, test_employee.id, Decimal("80"), date(2025, 3, 20))
        bonus_id = created.bonus.id
        transaction_id = created.transaction.id

        await service.delete_bonus(admin_context, bonus_id)

        bonus = await db_session.get(EmployeeBonus, bonus_id)
        transaction = await db_session.get(Transaction, transaction_id)
        assert bonus.is_deleted
        assert bonus.deleted_by_id == admin_context.user_id
        assert transaction.is_deleted
        assert await service.list_for_employee(admin_context, test_employee.id) == []
        assert audit.entries[-1].entity_type == AuditEntityType.BONUS
        assert audit.entries[-1].action == AuditAction.DELETE

        with pytest.raises(NotFoundException):
            await service.delete_bonus(admin_context, bonus_id)

    @pytest.mark.asyncio
    async def test_other_branch_cannot_delete(
        self, db_session, audit, admin_context, other_accountant_context, test_employee,
    ):
        service = BonusService(db_session, audit=audit)
        employee_id = test_employee.id
        created = await service.create_bonus(admin_context, employee_id, Decimal("80"), date(2025, 3, 20))
        bonus_id = created.bonus.id

        with pytest.raises(BranchAccessDeniedException):
            await service.delete_bonus(other_accountant_context, bonus_id)

        assert len(await service.list_for_employee(admin_context, employee_id)) == 1


class TestSalaryIncrease:

    @pytest.mark.asyncio
    async def test_raise_updates_base_salary(self, db_session, audit, accountant_context, test_employee):
        service = SalaryIncreaseService(db_session, audit=audit)

        increase = await service.record_increase(
            accountant_context, test_employee.id, Decimal("1000"), date(2025, 4, 1), reason="Annual review",
        )

        assert increase.old_salary == Decimal("900.00")
        assert increase.new_salary == Decimal("1000.00")
        assert increase.increase_amount == Decimal("100.00")
        employee = await db_session.get(Employee, test_employee.id)
        assert employee.base_salary == Decimal("1000.00")
        assert employee.full_salary == Decimal("1100.00")
        assert audit.entries[-1].entity_type == AuditEntityType.SALARY_INCREASE

    @pytest.mark.asyncio
    async def test_lower_salary_rejected(self, db_session, audit, admin_context, test_employee):
        service = SalaryIncreaseService(db_session, audit=audit)
        employee_id = test_employee.id

        with pytest.raises(BusinessRuleException):
            await service.record_increase(admin_context, employee_id, Decimal("800"), date(2025, 4, 1))

        assert await service.list_for_employee(admin_context, employee_id) == []
        employee = (await db_session.execute(
            select(Employee).where(Employee.id == employee_id).execution_options(populate_existing=True)
        )).scalar_one()
        assert employee.base_salary == Decimal("900.00")

    @pytest.mark.asyncio
    async def test_history_and_recent_increases(
        self, db_session, audit, admin_context, other_accountant_context, test_employee, test_branch,
    ):
        service = SalaryIncreaseService(db_session, audit=audit)
        await service.record_increase(admin_context, test_employee.id, Decimal("950"), date(2025, 1, 1))
        await service.record_increase(admin_context, test_employee.id, Decimal("1000"), date(2025, 6, 1))

        history = await service.list_for_employee(admin_context, test_employee.id)
        assert [i.new_salary for i in history] == [Decimal("1000.00"), Decimal("950.00")]
        assert history[1].old_salary == Decimal("900.00")

        recent = await service.get_recent_increases(admin_context, test_branch.id, limit=1)
        assert [i.effective_date for i in recent] == [date(2025, 6, 1)]

        with pytest.raises(BranchAccessDeniedException):
            await service.get_recent_increases(other_accountant_context, test_branch.id)
