"""
BranchBooks - Settlement Engine

Applies a payment to a payable or a collection to a receivable. ``collect``
is pure: it validates the amount, works out the new remaining amount and
status, and describes the immutable payment row and the paired ledger
transaction. The debt service persists all three in one unit of work.
"""

import uuid
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Optional

from app.models.debt import DebtStatus
from app.models.transaction import PaymentMethod, TransactionType
from app.services.ledger.balances import BalanceUpdate, derive_status
from app.utils.error_handling import InvalidAmountException, PaymentExceedsRemainingException


class SettlementKind(str, Enum):
    PAYABLE_PAYMENT = "PAYABLE_PAYMENT"
    RECEIVABLE_COLLECTION = "RECEIVABLE_COLLECTION"

    @property
    def transaction_type(self) -> TransactionType:
        # Paying a vendor is cash out; collecting from a customer is cash in
        if self is SettlementKind.PAYABLE_PAYMENT:
            return TransactionType.EXPENSE
        return TransactionType.INCOME


@dataclass(frozen=True)
class SettlementTarget:
    """The open balance a payment is applied to."""
    kind: SettlementKind
    balance_id: uuid.UUID
    original: Decimal
    remaining: Decimal
    branch_id: Optional[uuid.UUID]
    contact_id: uuid.UUID
    contact_name: str


@dataclass(frozen=True)
class PaymentDraft:
    amount_paid: Decimal
    payment_date: date
    payment_method: PaymentMethod
    notes: Optional[str]


@dataclass(frozen=True)
class TransactionDraft:
    transaction_type: TransactionType
    amount: Decimal
    transaction_date: date
    category: str
    payment_method: PaymentMethod
    notes: str
    branch_id: Optional[uuid.UUID]
    contact_id: uuid.UUID
    linked_payable_id: Optional[uuid.UUID] = None
    linked_receivable_id: Optional[uuid.UUID] = None


@dataclass(frozen=True)
class SettlementPlan:
    payment: PaymentDraft
    balance: BalanceUpdate
    transaction: TransactionDraft

    @property
    def new_status(self) -> DebtStatus:
        return DebtStatus(self.balance.new_status.value)


def collect(
    target: SettlementTarget,
    amount_paid: Decimal,
    payment_date: date,
    category: str,
    payment_method: PaymentMethod = PaymentMethod.CASH,
    notes: Optional[str] = None,
) -> SettlementPlan:
    """
    Plan a payment of ``amount_paid`` against ``target``.

    Raises PaymentExceedsRemainingException when the amount is larger than
    what is left; the amount is never clamped.
    """
    if amount_paid <= 0:
        raise InvalidAmountException(amount_paid, "amount_paid")
    if amount_paid > target.remaining:
        raise PaymentExceedsRemainingException(amount_paid, target.remaining)

    new_remaining = target.remaining - amount_paid
    update = BalanceUpdate(
        previous_remaining=target.remaining,
        new_remaining=new_remaining,
        new_status=derive_status(target.original, new_remaining),
    )

    if target.kind is SettlementKind.PAYABLE_PAYMENT:
        default_notes = f"Payable payment - {target.contact_name}"
        links = {"linked_payable_id": target.balance_id}
    else:
        default_notes = f"Receivable collection - {target.contact_name}"
        links = {"linked_receivable_id": target.balance_id}

    transaction = TransactionDraft(
        transaction_type=target.kind.transaction_type,
        amount=amount_paid,
        transaction_date=payment_date,
        category=category,
        payment_method=payment_method,
        notes=notes or default_notes,
        branch_id=target.branch_id,
        contact_id=target.contact_id,
        **links,
    )

    return SettlementPlan(
        payment=PaymentDraft(
            amount_paid=amount_paid,
            payment_date=payment_date,
            payment_method=payment_method,
            notes=notes,
        ),
        balance=update,
        transaction=transaction,
    )
