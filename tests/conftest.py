"""
BranchBooks - Test Configuration

Pytest fixtures and configuration.
"""

import os

# Point the application at SQLite before anything imports app.config
os.environ.setdefault("DATABASE_URL_ASYNC", "sqlite+aiosqlite://")
os.environ.setdefault("APP_ENV", "testing")

from datetime import date
from decimal import Decimal
from typing import AsyncGenerator, List
from uuid import uuid4

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.database import Base, get_async_session
from app.dependencies import get_audit
from app.models.branch import Branch
from app.models.contact import Contact, ContactType
from app.models.debt import AccountPayable, AccountReceivable, DebtStatus
from app.models.employee import Employee, EmployeeStatus
from app.models.inventory import InventoryItem
from app.models.user import UserRole
from app.services.audit_service import AuditDispatcher, AuditEntry
from app.utils.permissions import RequestContext
from main import app


TEST_DATABASE_URL = "sqlite+aiosqlite://"


class RecordingAuditDispatcher(AuditDispatcher):
    """Keeps audit entries in memory instead of writing them."""

    def __init__(self):
        super().__init__(session_factory=None, enabled=True)
        self.entries: List[AuditEntry] = []

    def emit(self, entry: AuditEntry) -> None:
        self.entries.append(entry)


@pytest_asyncio.fixture(scope="function")
async def test_engine():
    """A fresh in-memory database per test."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a fresh database session for each test."""
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def audit() -> RecordingAuditDispatcher:
    return RecordingAuditDispatcher()


@pytest_asyncio.fixture(scope="function")
async def client(db_session: AsyncSession, audit: RecordingAuditDispatcher) -> AsyncGenerator[AsyncClient, None]:
    """Create a test client with database session and audit overrides."""

    async def override_get_session():
        yield db_session

    app.dependency_overrides[get_async_session] = override_get_session
    app.dependency_overrides[get_audit] = lambda: audit

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# ===========================================
# DATA FIXTURES
# ===========================================

async def _save(db_session: AsyncSession, obj):
    db_session.add(obj)
    await db_session.commit()
    await db_session.refresh(obj)
    return obj


@pytest_asyncio.fixture
async def test_branch(db_session: AsyncSession) -> Branch:
    return await _save(db_session, Branch(id=uuid4(), name="Main Branch", location="Downtown"))


@pytest_asyncio.fixture
async def other_branch(db_session: AsyncSession) -> Branch:
    return await _save(db_session, Branch(id=uuid4(), name="North Branch", location="Uptown"))


@pytest.fixture
def admin_context() -> RequestContext:
    return RequestContext(user_id=uuid4(), role=UserRole.ADMIN, ip_address="127.0.0.1")


@pytest.fixture
def accountant_context(test_branch: Branch) -> RequestContext:
    return RequestContext(user_id=uuid4(), role=UserRole.ACCOUNTANT, branch_id=test_branch.id)


@pytest.fixture
def other_accountant_context(other_branch: Branch) -> RequestContext:
    return RequestContext(user_id=uuid4(), role=UserRole.ACCOUNTANT, branch_id=other_branch.id)


@pytest_asyncio.fixture
async def test_employee(db_session: AsyncSession, test_branch: Branch) -> Employee:
    """An employee earning 1000.00 a month."""
    return await _save(db_session, Employee(
        id=uuid4(),
        branch_id=test_branch.id,
        name="Amina Bello",
        position="Cashier",
        base_salary=Decimal("900.00"),
        allowance=Decimal("100.00"),
        hire_date=date(2024, 1, 15),
        status=EmployeeStatus.ACTIVE,
    ))


@pytest_asyncio.fixture
async def test_vendor(db_session: AsyncSession, test_branch: Branch) -> Contact:
    return await _save(db_session, Contact(
        id=uuid4(),
        branch_id=test_branch.id,
        name="Fresh Farms Ltd",
        contact_type=ContactType.VENDOR,
    ))


@pytest_asyncio.fixture
async def test_customer(db_session: AsyncSession, test_branch: Branch) -> Contact:
    return await _save(db_session, Contact(
        id=uuid4(),
        branch_id=test_branch.id,
        name="Kola Stores",
        contact_type=ContactType.CUSTOMER,
    ))


@pytest_asyncio.fixture
async def test_payable(db_session: AsyncSession, test_branch: Branch, test_vendor: Contact) -> AccountPayable:
    """A payable of 500.00 to the test vendor."""
    return await _save(db_session, AccountPayable(
        id=uuid4(),
        contact_id=test_vendor.id,
        branch_id=test_branch.id,
        original_amount=Decimal("500.00"),
        remaining_amount=Decimal("500.00"),
        status=DebtStatus.ACTIVE,
        debt_date=date(2025, 3, 1),
        due_date=date(2025, 3, 31),
        description="Vegetable supply",
        invoice_number="INV-1001",
    ))


@pytest_asyncio.fixture
async def test_receivable(db_session: AsyncSession, test_branch: Branch, test_customer: Contact) -> AccountReceivable:
    """A receivable of 500.00 from the test customer."""
    return await _save(db_session, AccountReceivable(
        id=uuid4(),
        contact_id=test_customer.id,
        branch_id=test_branch.id,
        original_amount=Decimal("500.00"),
        remaining_amount=Decimal("500.00"),
        status=DebtStatus.ACTIVE,
        debt_date=date(2025, 3, 1),
        description="Catering order",
    ))


@pytest_asyncio.fixture
async def test_inventory_item(db_session: AsyncSession, test_branch: Branch) -> InventoryItem:
    return await _save(db_session, InventoryItem(
        id=uuid4(),
        branch_id=test_branch.id,
        name="Bottled Water",
        unit="crate",
        quantity=Decimal("10"),
        cost_per_unit=Decimal("24.00"),
    ))


@pytest.fixture
def auth_headers():
    """Identity headers the upstream gateway would send for a context."""

    def build(context: RequestContext) -> dict:
        headers = {
            "X-User-Id": str(context.user_id),
            "X-User-Role": context.role.value,
        }
        if context.branch_id:
            headers["X-Branch-Id"] = str(context.branch_id)
        return headers

    return build
