"""
BranchBooks - Ledger Primitives

Monetary arithmetic and balance status derivation shared by employee
advances, payables and receivables. Everything here is pure: no database,
no clock, no logging.

Status rule:
    remaining == original      -> ACTIVE
    0 < remaining < original   -> PARTIAL
    remaining == 0             -> PAID
CANCELLED is never derived; it is set explicitly on an untouched balance.
"""

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from enum import Enum
from typing import Any

from app.models.employee import AdvanceStatus
from app.utils.error_handling import (
    ExceedsRemainingException,
    InvalidAmountException,
    InvalidBalanceException,
)


CENT = Decimal("0.01")
ZERO = Decimal("0.00")


class BalanceStatus(str, Enum):
    ACTIVE = "ACTIVE"
    PARTIAL = "PARTIAL"
    PAID = "PAID"
    CANCELLED = "CANCELLED"


@dataclass(frozen=True)
class Balance:
    """Snapshot of an original/remaining pair."""
    original: Decimal
    remaining: Decimal


@dataclass(frozen=True)
class BalanceUpdate:
    """Result of applying a deduction or payment to a Balance."""
    previous_remaining: Decimal
    new_remaining: Decimal
    new_status: BalanceStatus


def to_money(value: Any, field: str = "amount") -> Decimal:
    """
    Parse a caller-supplied amount into a Decimal with two places.
    
    Floats are refused so that binary rounding never reaches the ledger;
    pass strings, ints or Decimals. Sub-cent precision ("100.005") is
    rejected, never rounded.
    """
    if isinstance(value, bool) or isinstance(value, float):
        raise InvalidAmountException(value, field, message=f"Amount for '{field}' must be a decimal string, not a float.")
    try:
        amount = Decimal(value)
        if not amount.is_finite():
            raise InvalidAmountException(value, field)
        cents = amount.quantize(CENT)
    except (InvalidOperation, TypeError, ValueError):
        raise InvalidAmountException(value, field)
    if cents != amount:
        raise InvalidAmountException(
            value, field, message=f"Amount for '{field}' cannot have more than two decimal places.",
        )
    return cents


def round_money(value: Any) -> Decimal:
    """
    Round a database aggregate (SUM over money columns) to cents.
    
    SUM over no rows is NULL and counts as zero; some drivers return floats
    for NUMERIC sums, so the value goes through ``str`` first.
    """
    if value is None:
        return ZERO
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


def require_positive(amount: Decimal, field: str = "amount") -> Decimal:
    """Return ``amount`` unchanged if it is strictly positive."""
    if amount <= 0:
        raise InvalidAmountException(amount, field)
    return amount


def derive_status(original: Decimal, remaining: Decimal) -> BalanceStatus:
    """Status implied by an original/remaining pair."""
    if remaining < 0 or remaining > original:
        raise InvalidBalanceException(original, remaining)
    if remaining == 0:
        return BalanceStatus.PAID
    if remaining == original:
        return BalanceStatus.ACTIVE
    return BalanceStatus.PARTIAL


def apply_deduction(balance: Balance, amount: Decimal) -> BalanceUpdate:
    """
    Compute the effect of taking ``amount`` off ``balance``.
    
    The amount must satisfy ``0 < amount <= balance.remaining``; anything
    larger raises ExceedsRemainingException and is never clamped.
    """
    require_positive(amount)
    if amount > balance.remaining:
        raise ExceedsRemainingException(amount, balance.remaining)
    
    new_remaining = balance.remaining - amount
    return BalanceUpdate(
        previous_remaining=balance.remaining,
        new_remaining=new_remaining,
        new_status=derive_status(balance.original, new_remaining),
    )


def advance_status_for(status: BalanceStatus) -> AdvanceStatus:
    """
    Map a derived balance status onto the advance lifecycle.
    
    Advances have no PARTIAL state: anything not fully repaid stays ACTIVE.
    """
    if status == BalanceStatus.PARTIAL:
        return AdvanceStatus.ACTIVE
    return AdvanceStatus(status.value)
