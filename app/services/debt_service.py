"""
BranchBooks - Payables & Receivables Service

Payables (owed to vendors) and receivables (owed by customers) share one
implementation. A DebtKind describes the model pair and the ledger side;
PayableService and ReceivableService bind it.

Every payment or collection goes through the settlement engine and writes
three rows in one transaction: the payment row, the balance update and the
paired ledger transaction.
"""

import logging
import math
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional, Type

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.config import settings
from app.models.audit import AuditEntityType
from app.models.contact import Contact
from app.models.debt import (
    AccountPayable,
    AccountReceivable,
    DebtStatus,
    PayablePayment,
    ReceivablePayment,
)
from app.models.transaction import PaymentMethod, Transaction
from app.services.audit_service import AuditDispatcher, get_audit_dispatcher
from app.services.ledger import (
    ZERO,
    SettlementKind,
    SettlementTarget,
    collect,
    require_positive,
    round_money,
    to_money,
)
from app.services.unit_of_work import atomic
from app.utils.error_handling import (
    BusinessRuleException,
    ConflictException,
    ErrorCode,
    InvalidDateRangeException,
    NotFoundException,
)
from app.utils.permissions import (
    RequestContext,
    ensure_branch_access,
    resolve_write_branch,
    scope_filter,
)
from app.utils.query import LIKE_ESCAPE, contains_pattern


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DebtKind:
    """Everything that differs between payables and receivables."""
    label: str
    model: Type
    payment_model: Type
    payment_fk: str
    linked_transaction_field: str
    settlement_kind: SettlementKind
    audit_type: AuditEntityType
    payment_audit_type: AuditEntityType
    not_found_code: ErrorCode

    @property
    def category(self) -> str:
        if self.settlement_kind is SettlementKind.PAYABLE_PAYMENT:
            return settings.payable_payment_category
        return settings.receivable_collection_category


PAYABLE = DebtKind(
    label="Payable",
    model=AccountPayable,
    payment_model=PayablePayment,
    payment_fk="payable_id",
    linked_transaction_field="linked_purchase_transaction_id",
    settlement_kind=SettlementKind.PAYABLE_PAYMENT,
    audit_type=AuditEntityType.PAYABLE,
    payment_audit_type=AuditEntityType.PAYABLE_PAYMENT,
    not_found_code=ErrorCode.PAYABLE_NOT_FOUND,
)

RECEIVABLE = DebtKind(
    label="Receivable",
    model=AccountReceivable,
    payment_model=ReceivablePayment,
    payment_fk="receivable_id",
    linked_transaction_field="linked_sale_transaction_id",
    settlement_kind=SettlementKind.RECEIVABLE_COLLECTION,
    audit_type=AuditEntityType.RECEIVABLE,
    payment_audit_type=AuditEntityType.RECEIVABLE_PAYMENT,
    not_found_code=ErrorCode.RECEIVABLE_NOT_FOUND,
)


@dataclass
class DebtPage:
    items: List[Any]
    total: int
    page: int
    limit: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0


@dataclass
class SettlementResult:
    debt: Any
    payment: Any
    transaction: Transaction


@dataclass
class DebtSummary:
    total_count: int = 0
    total_original: Decimal = ZERO
    total_remaining: Decimal = ZERO
    total_settled: Decimal = ZERO
    overdue_count: int = 0
    overdue_amount: Decimal = ZERO
    by_status: Dict[str, int] = field(default_factory=dict)


class DebtService:
    """Create, track and settle payables or receivables."""

    kind: DebtKind

    def __init__(self, db: AsyncSession, kind: Optional[DebtKind] = None, audit: Optional[AuditDispatcher] = None):
        self.db = db
        if kind is not None:
            self.kind = kind
        self.audit = audit or get_audit_dispatcher()

    @property
    def model(self):
        return self.kind.model

    def _snapshot(self, debt) -> Dict[str, Any]:
        return {
            "contact_id": debt.contact_id,
            "branch_id": debt.branch_id,
            "original_amount": debt.original_amount,
            "remaining_amount": debt.remaining_amount,
            "status": debt.status,
            "date": debt.debt_date,
            "due_date": debt.due_date,
            "description": debt.description,
            "invoice_number": debt.invoice_number,
        }

    # ===========================================
    # LOOKUPS
    # ===========================================

    async def _get_contact(self, contact_id: uuid.UUID, branch_id: Optional[uuid.UUID]) -> Contact:
        """A non-deleted contact visible from ``branch_id`` (its own or a shared one)."""
        query = select(Contact).where(
            Contact.id == contact_id,
            Contact.is_deleted.is_(False),
        )
        if branch_id is not None:
            query = query.where(or_(Contact.branch_id == branch_id, Contact.branch_id.is_(None)))
        result = await self.db.execute(query)
        contact = result.scalar_one_or_none()
        if not contact:
            raise NotFoundException("Contact", contact_id, code=ErrorCode.CONTACT_NOT_FOUND)
        return contact

    async def get(self, context: RequestContext, debt_id: uuid.UUID, lock: bool = False):
        """Load one debt with its contact and non-deleted payments."""
        model, payment_model = self.model, self.kind.payment_model
        query = (
            select(model)
            .options(
                selectinload(model.contact),
                selectinload(model.payments.and_(payment_model.is_deleted.is_(False))),
            )
            .where(model.id == debt_id, model.is_deleted.is_(False))
            .execution_options(populate_existing=True)
        )
        if lock:
            query = query.with_for_update()
        result = await self.db.execute(query)
        debt = result.scalar_one_or_none()
        if not debt:
            raise NotFoundException(self.kind.label, debt_id, code=self.kind.not_found_code)
        ensure_branch_access(context, debt.branch_id)
        return debt

    async def _payment_count(self, debt_id: uuid.UUID) -> int:
        payment_model = self.kind.payment_model
        count = await self.db.scalar(
            select(func.count(payment_model.id)).where(
                getattr(payment_model, self.kind.payment_fk) == debt_id,
                payment_model.is_deleted.is_(False),
            )
        )
        return count or 0

    # ===========================================
    # CREATE
    # ===========================================

    async def create(
        self,
        context: RequestContext,
        contact_id: uuid.UUID,
        amount: Decimal,
        debt_date: date,
        due_date: Optional[date] = None,
        description: Optional[str] = None,
        invoice_number: Optional[str] = None,
        notes: Optional[str] = None,
        branch_id: Optional[uuid.UUID] = None,
        linked_transaction_id: Optional[uuid.UUID] = None,
    ):
        """Open a new balance: remaining equals original and status is ACTIVE."""
        amount = require_positive(to_money(amount))
        if due_date and due_date < debt_date:
            raise InvalidDateRangeException(
                debt_date.isoformat(),
                due_date.isoformat(),
                message="Due date cannot be before the debt date",
            )
        branch_id = resolve_write_branch(context, branch_id)

        async with atomic(self.db, self.kind.label):
            contact = await self._get_contact(contact_id, branch_id)
            debt = self.model(
                contact_id=contact.id,
                branch_id=branch_id,
                original_amount=amount,
                remaining_amount=amount,
                status=DebtStatus.ACTIVE,
                debt_date=debt_date,
                due_date=due_date,
                description=description,
                invoice_number=invoice_number,
                notes=notes,
                created_by_id=context.user_id,
            )
            setattr(debt, self.kind.linked_transaction_field, linked_transaction_id)
            self.db.add(debt)
            await self.db.flush()

        logger.info("%s %s of %s created for contact %s", self.kind.label, debt.id, amount, contact.id)
        self.audit.created(context, self.kind.audit_type, debt.id, self._snapshot(debt))
        return await self.get(context, debt.id)

    # ===========================================
    # LIST / SUMMARY
    # ===========================================

    async def list(
        self,
        context: RequestContext,
        page: int = 1,
        limit: Optional[int] = None,
        search: Optional[str] = None,
        status: Optional[DebtStatus] = None,
        contact_id: Optional[uuid.UUID] = None,
        branch_id: Optional[uuid.UUID] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> DebtPage:
        """
        Paginated listing, newest debt date first.

        ``search`` matches description, invoice number and contact name.
        Accountants only ever see their own branch.
        """
        if start_date and end_date and start_date > end_date:
            raise InvalidDateRangeException(start_date.isoformat(), end_date.isoformat())
        page = max(page, 1)
        limit = min(max(limit or settings.default_page_size, 1), settings.max_page_size)

        model = self.model
        query = select(model).join(Contact, model.contact_id == Contact.id).where(model.is_deleted.is_(False))
        query = scope_filter(context, query, model.branch_id, branch_id)

        if status:
            query = query.where(model.status == status)
        if contact_id:
            query = query.where(model.contact_id == contact_id)
        if start_date:
            query = query.where(model.debt_date >= start_date)
        if end_date:
            query = query.where(model.debt_date <= end_date)
        if search:
            pattern = contains_pattern(search)
            query = query.where(
                or_(
                    model.description.ilike(pattern, escape=LIKE_ESCAPE),
                    model.invoice_number.ilike(pattern, escape=LIKE_ESCAPE),
                    Contact.name.ilike(pattern, escape=LIKE_ESCAPE),
                )
            )

        total = await self.db.scalar(select(func.count()).select_from(query.subquery()))

        query = (
            query.options(selectinload(model.contact))
            .order_by(model.debt_date.desc(), model.created_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        result = await self.db.execute(query)
        return DebtPage(items=list(result.scalars().all()), total=total or 0, page=page, limit=limit)

    async def get_summary(
        self,
        context: RequestContext,
        branch_id: Optional[uuid.UUID] = None,
        as_of: Optional[date] = None,
    ) -> DebtSummary:
        """Counts and totals by status, plus what is overdue as of ``as_of`` (today by default)."""
        model = self.model
        as_of = as_of or date.today()

        query = (
            select(
                model.status,
                func.count(model.id),
                func.sum(model.original_amount),
                func.sum(model.remaining_amount),
            )
            .where(model.is_deleted.is_(False))
            .group_by(model.status)
        )
        query = scope_filter(context, query, model.branch_id, branch_id)
        rows = (await self.db.execute(query)).all()

        summary = DebtSummary(by_status={s.value: 0 for s in DebtStatus})
        for status, count, original, remaining in rows:
            summary.by_status[DebtStatus(status).value] = count
            if status == DebtStatus.CANCELLED:
                continue
            summary.total_count += count
            summary.total_original += round_money(original)
            summary.total_remaining += round_money(remaining)
        summary.total_settled = summary.total_original - summary.total_remaining

        overdue_query = select(func.count(model.id), func.sum(model.remaining_amount)).where(
            model.is_deleted.is_(False),
            model.status.in_([DebtStatus.ACTIVE, DebtStatus.PARTIAL]),
            model.due_date.is_not(None),
            model.due_date < as_of,
        )
        overdue_query = scope_filter(context, overdue_query, model.branch_id, branch_id)
        overdue_count, overdue_amount = (await self.db.execute(overdue_query)).one()
        summary.overdue_count = overdue_count or 0
        summary.overdue_amount = round_money(overdue_amount)
        return summary

    # ===========================================
    # UPDATE / DELETE
    # ===========================================

    async def update(
        self,
        context: RequestContext,
        debt_id: uuid.UUID,
        **changes: Any,
    ):
        """
        Edit descriptive fields of a debt.

        Accepted keys: debt_date, due_date, description, invoice_number,
        notes, status. Amounts and the contact cannot change. The only
        status a caller may set is CANCELLED, on a balance with no payments.
        """
        allowed = {"debt_date", "due_date", "description", "invoice_number", "notes", "status"}
        unknown = set(changes) - allowed
        if unknown:
            raise BusinessRuleException(
                f"Fields cannot be updated: {', '.join(sorted(unknown))}",
                rule="IMMUTABLE_FIELDS",
            )

        async with atomic(self.db, self.kind.label):
            debt = await self.get(context, debt_id, lock=True)
            before = self._snapshot(debt)

            new_status = changes.pop("status", None)
            if new_status is not None and new_status != debt.status:
                if new_status != DebtStatus.CANCELLED:
                    raise BusinessRuleException(
                        "Status follows the remaining amount and can only be set to CANCELLED",
                        rule="DERIVED_STATUS",
                    )
                if debt.status != DebtStatus.ACTIVE or await self._payment_count(debt.id):
                    raise ConflictException(
                        f"Only an untouched {self.kind.label.lower()} can be cancelled",
                        resource_type=self.kind.label,
                    )
                debt.status = DebtStatus.CANCELLED

            for key, value in changes.items():
                if key == "debt_date" and value is None:
                    continue
                setattr(debt, key, value)

            if debt.due_date and debt.due_date < debt.debt_date:
                raise InvalidDateRangeException(
                    debt.debt_date.isoformat(),
                    debt.due_date.isoformat(),
                    message="Due date cannot be before the debt date",
                )
            await self.db.flush()

        self.audit.updated(context, self.kind.audit_type, debt.id, before, self._snapshot(debt))
        return debt

    async def delete(self, context: RequestContext, debt_id: uuid.UUID) -> None:
        """Soft-delete a debt that has no recorded payments."""
        async with atomic(self.db, self.kind.label):
            debt = await self.get(context, debt_id, lock=True)
            payment_count = await self._payment_count(debt.id)
            if payment_count:
                raise ConflictException(
                    f"Cannot delete a {self.kind.label.lower()} with recorded payments",
                    resource_type=self.kind.label,
                    details={"payment_count": payment_count},
                )
            snapshot = self._snapshot(debt)
            debt.mark_deleted(context.user_id, datetime.now(timezone.utc))
            await self.db.flush()

        logger.info("%s %s deleted", self.kind.label, debt_id)
        self.audit.deleted(context, self.kind.audit_type, debt_id, snapshot)

    # ===========================================
    # SETTLE
    # ===========================================

    async def settle(
        self,
        context: RequestContext,
        debt_id: uuid.UUID,
        amount_paid: Decimal,
        payment_date: date,
        payment_method: PaymentMethod = PaymentMethod.CASH,
        notes: Optional[str] = None,
    ) -> SettlementResult:
        """
        Apply a payment to a payable or a collection to a receivable.

        The debt row is locked for the whole unit of work so concurrent
        payments serialize and can never push the remaining amount below 0.
        """
        amount_paid = to_money(amount_paid, "amount_paid")
        resolve_write_branch(context, context.branch_id)

        async with atomic(self.db, self.kind.label):
            debt = await self.get(context, debt_id, lock=True)
            if debt.status == DebtStatus.CANCELLED:
                raise BusinessRuleException(
                    f"Cannot record a payment on a cancelled {self.kind.label.lower()}",
                    rule="DEBT_CANCELLED",
                )

            plan = collect(
                SettlementTarget(
                    kind=self.kind.settlement_kind,
                    balance_id=debt.id,
                    original=debt.original_amount,
                    remaining=debt.remaining_amount,
                    branch_id=debt.branch_id,
                    contact_id=debt.contact_id,
                    contact_name=debt.contact.name,
                ),
                amount_paid,
                payment_date,
                category=self.kind.category,
                payment_method=payment_method,
                notes=notes,
            )

            payment = self.kind.payment_model(
                amount_paid=plan.payment.amount_paid,
                payment_date=plan.payment.payment_date,
                payment_method=plan.payment.payment_method,
                notes=plan.payment.notes,
                recorded_by_id=context.user_id,
            )
            setattr(payment, self.kind.payment_fk, debt.id)
            debt.payments.insert(0, payment)
            self.db.add(payment)

            draft = plan.transaction
            transaction = Transaction(
                branch_id=draft.branch_id,
                transaction_type=draft.transaction_type,
                amount=draft.amount,
                category=draft.category,
                transaction_date=draft.transaction_date,
                payment_method=draft.payment_method,
                notes=draft.notes,
                contact_id=draft.contact_id,
                linked_payable_id=draft.linked_payable_id,
                linked_receivable_id=draft.linked_receivable_id,
                created_by_id=context.user_id,
            )
            self.db.add(transaction)

            debt.remaining_amount = plan.balance.new_remaining
            debt.status = plan.new_status
            await self.db.flush()

        logger.info(
            "%s %s settled %s (remaining %s -> %s, %s)",
            self.kind.label,
            debt.id,
            amount_paid,
            plan.balance.previous_remaining,
            plan.balance.new_remaining,
            debt.status.value,
        )
        self.audit.created(context, self.kind.payment_audit_type, payment.id, {
            self.kind.payment_fk: debt.id,
            "amount_paid": amount_paid,
            "payment_date": payment_date,
            "payment_method": payment_method,
            "previous_remaining": plan.balance.previous_remaining,
            "new_remaining": plan.balance.new_remaining,
            "status": debt.status,
            "transaction_id": transaction.id,
        })

        return SettlementResult(debt=debt, payment=payment, transaction=transaction)


class PayableService(DebtService):
    """Money the business owes to vendors."""

    kind = PAYABLE

    async def pay(self, context: RequestContext, payable_id: uuid.UUID, amount_paid: Decimal,
                  payment_date: date, payment_method: PaymentMethod = PaymentMethod.CASH,
                  notes: Optional[str] = None) -> SettlementResult:
        return await self.settle(context, payable_id, amount_paid, payment_date, payment_method, notes)


class ReceivableService(DebtService):
    """Money customers owe the business."""

    kind = RECEIVABLE

    async def collect(self, context: RequestContext, receivable_id: uuid.UUID, amount_paid: Decimal,
                      payment_date: date, payment_method: PaymentMethod = PaymentMethod.CASH,
                      notes: Optional[str] = None) -> SettlementResult:
        return await self.settle(context, receivable_id, amount_paid, payment_date, payment_method, notes)
