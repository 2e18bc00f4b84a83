"""
BranchBooks - Unit of Work Tests

Commit failures roll every row back and storage conflicts surface as a
retryable 409.
"""

from datetime import date
from decimal import Decimal

import pytest
from httpx import AsyncClient
from sqlalchemy import func, select
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError

from app.models.contact import Contact
from app.models.debt import AccountPayable, PayablePayment
from app.models.employee import AdvanceDeduction, EmployeeAdvance, SalaryPayment
from app.models.transaction import Transaction
from app.services.advance_service import AdvanceService
from app.services.debt_service import PayableService
from app.services.salary_payment_service import SalaryPaymentService
from app.services.unit_of_work import atomic
from app.utils.error_handling import WriteConflictException, is_write_conflict


class DriverError(Exception):
    """Stands in for an asyncpg error carrying a SQLSTATE."""

    def __init__(self, message: str, sqlstate: str):
        super().__init__(message)
        self.sqlstate = sqlstate


def serialization_failure() -> DBAPIError:
    return DBAPIError("COMMIT", {}, DriverError("could not serialize access", "40001"))


def fail_commit(monkeypatch, db_session, error: Exception) -> None:
    async def commit():
        raise error

    monkeypatch.setattr(db_session, "commit", commit)


async def count(db_session, model) -> int:
    return (await db_session.execute(select(func.count()).select_from(model))).scalar_one()


class TestIsWriteConflict:

    @pytest.mark.parametrize("sqlstate", ["40001", "40P01", "55P03"])
    def test_conflict_sqlstates(self, sqlstate):
        exc = DBAPIError("UPDATE", {}, DriverError("conflict", sqlstate))
        assert is_write_conflict(exc)

    def test_psycopg_pgcode(self):
        orig = Exception("deadlock detected")
        orig.pgcode = "40P01"
        assert is_write_conflict(DBAPIError("UPDATE", {}, orig))

    def test_sqlstate_on_wrapped_cause(self):
        cause = DriverError("could not serialize access", "40001")
        orig = Exception("wrapped")
        orig.__cause__ = cause
        assert is_write_conflict(DBAPIError("COMMIT", {}, orig))

    def test_operational_error(self):
        assert is_write_conflict(OperationalError("COMMIT", {}, Exception("database is locked")))

    def test_other_errors_are_not_conflicts(self):
        assert not is_write_conflict(DBAPIError("SELECT", {}, DriverError("syntax error", "42601")))
        assert not is_write_conflict(IntegrityError("INSERT", {}, DriverError("duplicate key", "23505")))
        assert not is_write_conflict(ValueError("40001"))


class TestAtomic:

    @pytest.mark.asyncio
    async def test_serialization_failure_becomes_write_conflict(self, monkeypatch, db_session):
        fail_commit(monkeypatch, db_session, serialization_failure())

        with pytest.raises(WriteConflictException) as exc_info:
            async with atomic(db_session, "payable"):
                pass

        assert exc_info.value.details == {"retryable": True}
        assert exc_info.value.status_code == 409
        assert isinstance(exc_info.value.original_error, DBAPIError)

    @pytest.mark.asyncio
    async def test_other_dbapi_error_propagates(self, monkeypatch, db_session):
        error = DBAPIError("COMMIT", {}, DriverError("disk full", "53100"))
        fail_commit(monkeypatch, db_session, error)

        with pytest.raises(DBAPIError) as exc_info:
            async with atomic(db_session, "payable"):
                pass

        assert exc_info.value is error

    @pytest.mark.asyncio
    async def test_body_error_rolls_back(self, db_session, test_vendor):
        with pytest.raises(RuntimeError):
            async with atomic(db_session, "contact"):
                test_vendor.name = "Renamed"
                await db_session.flush()
                raise RuntimeError("boom")

        assert (await db_session.execute(
            select(func.count()).select_from(Contact).where(Contact.name == "Renamed")
        )).scalar_one() == 0


class TestCommitFailure:
    """A failed commit leaves no payment rows and no balance change behind."""

    @pytest.mark.asyncio
    async def test_payable_payment_rolled_back(self, monkeypatch, db_session, audit, admin_context, test_payable):
        service = PayableService(db_session, audit=audit)
        payable_id = test_payable.id
        fail_commit(monkeypatch, db_session, serialization_failure())

        with pytest.raises(WriteConflictException):
            await service.pay(admin_context, payable_id, Decimal("200"), date(2025, 3, 10))

        payable = (await db_session.execute(
            select(AccountPayable)
            .where(AccountPayable.id == payable_id)
            .execution_options(populate_existing=True)
        )).scalar_one()
        assert payable.remaining_amount == Decimal("500.00")
        assert await count(db_session, PayablePayment) == 0
        assert await count(db_session, Transaction) == 0
        assert audit.entries == []

    @pytest.mark.asyncio
    async def test_salary_payment_rolled_back(self, monkeypatch, db_session, audit, admin_context, test_employee):
        advances = AdvanceService(db_session, audit=audit)
        created = await advances.create_advance(
            admin_context, test_employee.id, Decimal("100"), Decimal("50"), date(2025, 1, 5), "Rent",
        )
        advance_id = created.advance.id
        transactions_before = await count(db_session, Transaction)
        audit_before = len(audit.entries)
        service = SalaryPaymentService(db_session, audit=audit)
        fail_commit(monkeypatch, db_session, OperationalError("COMMIT", {}, Exception("database is locked")))

        with pytest.raises(WriteConflictException):
            await service.pay_salary(admin_context, test_employee.id, Decimal("1000"), date(2025, 3, 31))

        advance = (await db_session.execute(
            select(EmployeeAdvance)
            .where(EmployeeAdvance.id == advance_id)
            .execution_options(populate_existing=True)
        )).scalar_one()
        assert advance.remaining_amount == Decimal("100.00")
        assert await count(db_session, SalaryPayment) == 0
        assert await count(db_session, AdvanceDeduction) == 0
        assert await count(db_session, Transaction) == transactions_before
        assert len(audit.entries) == audit_before

    @pytest.mark.asyncio
    async def test_api_reports_retryable_conflict(
        self, monkeypatch, client: AsyncClient, db_session, auth_headers, admin_context, test_payable,
    ):
        payable_id = test_payable.id
        fail_commit(monkeypatch, db_session, serialization_failure())

        response = await client.post(
            f"/api/v1/payables/{payable_id}/pay",
            json={"amount_paid": "200.00", "payment_date": "2025-03-10"},
            headers=auth_headers(admin_context),
        )

        assert response.status_code == 409
        detail = response.json()["detail"]
        assert detail["code"] == "WRITE_CONFLICT"
        assert detail["details"]["retryable"] is True

        monkeypatch.undo()
        assert await count(db_session, PayablePayment) == 0
        payable = (await db_session.execute(
            select(AccountPayable)
            .where(AccountPayable.id == payable_id)
            .execution_options(populate_existing=True)
        )).scalar_one()
        assert payable.remaining_amount == Decimal("500.00")
