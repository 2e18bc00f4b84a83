"""
BranchBooks - Advance Deduction Engine

Decides how much of a salary payment is withheld against an employee's
outstanding advances.

Allocation is oldest-first: advances are walked in the order given
(advance_date ascending, ties by creation order) and each one is satisfied
as far as the budget and its cap allow before the next one receives
anything. There is no rebalancing.

Two budget policies exist; a deployment runs exactly one of them
(``ADVANCE_DEDUCTION_POLICY``):

fixed_monthly
    budget = sum(min(monthly_deduction, remaining)) over active advances.
    Each advance is capped at its monthly deduction. Net pay is
    gross - budget and a budget larger than the gross salary is rejected.
    The expense transaction books the gross amount.

shortfall
    budget = max(0, full_salary - amount_paid), capped at the total
    remaining across active advances. No per-advance cap. The amount paid
    is the take-home pay and is what the expense transaction books.
"""

import uuid
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Callable, List, Optional, Sequence

from app.config import ADVANCE_POLICY_FIXED_MONTHLY, ADVANCE_POLICY_SHORTFALL
from app.models.employee import AdvanceStatus
from app.services.ledger.balances import (
    ZERO,
    Balance,
    advance_status_for,
    apply_deduction,
    require_positive,
)
from app.utils.error_handling import BudgetExceededException, InvalidAmountException


@dataclass(frozen=True)
class AdvanceSnapshot:
    """The parts of an active advance the engine needs."""
    advance_id: uuid.UUID
    original: Decimal
    remaining: Decimal
    monthly_deduction: Decimal


@dataclass(frozen=True)
class DeductionAllocation:
    """One advance's share of a deduction budget."""
    advance_id: uuid.UUID
    deduction_amount: Decimal
    previous_remaining: Decimal
    new_remaining: Decimal
    new_status: AdvanceStatus


@dataclass(frozen=True)
class DeductionPlan:
    """Everything the payroll orchestrator needs to persist a salary payment."""
    policy: str
    salary_amount: Decimal
    budget: Decimal
    net_amount: Decimal
    expense_amount: Decimal
    allocations: List[DeductionAllocation] = field(default_factory=list)

    @property
    def total_deduction(self) -> Decimal:
        return sum((a.deduction_amount for a in self.allocations), ZERO)


def allocate_deductions(
    advances: Sequence[AdvanceSnapshot],
    budget: Decimal,
    cap: Optional[Callable[[AdvanceSnapshot], Decimal]] = None,
) -> List[DeductionAllocation]:
    """
    Distribute ``budget`` across ``advances`` in the given order.

    Each advance receives ``min(budget left, remaining, cap(advance))``.
    Advances that would receive nothing are skipped and the walk stops as
    soon as the budget is used up.
    """
    if budget < 0:
        raise InvalidAmountException(budget, "budget", message="Deduction budget cannot be negative.")

    allocations: List[DeductionAllocation] = []
    budget_left = budget

    for advance in advances:
        if budget_left <= 0:
            break

        amount = min(budget_left, advance.remaining)
        if cap is not None:
            amount = min(amount, cap(advance))
        if amount <= 0:
            continue

        update = apply_deduction(Balance(advance.original, advance.remaining), amount)
        allocations.append(
            DeductionAllocation(
                advance_id=advance.advance_id,
                deduction_amount=amount,
                previous_remaining=update.previous_remaining,
                new_remaining=update.new_remaining,
                new_status=advance_status_for(update.new_status),
            )
        )
        budget_left -= amount

    return allocations


class FixedMonthlyDeductionPolicy:
    """Withhold each advance's monthly deduction from the gross salary."""

    name = ADVANCE_POLICY_FIXED_MONTHLY

    def budget(self, advances: Sequence[AdvanceSnapshot]) -> Decimal:
        return sum(
            (min(a.monthly_deduction, a.remaining) for a in advances),
            ZERO,
        )

    def plan(
        self,
        salary_amount: Decimal,
        advances: Sequence[AdvanceSnapshot],
        full_salary: Decimal,
    ) -> DeductionPlan:
        require_positive(salary_amount)
        budget = self.budget(advances)
        if budget > salary_amount:
            raise BudgetExceededException(budget, salary_amount)

        allocations = allocate_deductions(advances, budget, cap=lambda a: a.monthly_deduction)
        total = sum((a.deduction_amount for a in allocations), ZERO)
        return DeductionPlan(
            policy=self.name,
            salary_amount=salary_amount,
            budget=budget,
            net_amount=salary_amount - total,
            expense_amount=salary_amount,
            allocations=allocations,
        )


class ShortfallPolicy:
    """Absorb the gap between full salary and the amount paid into advances."""

    name = ADVANCE_POLICY_SHORTFALL

    def budget(
        self,
        advances: Sequence[AdvanceSnapshot],
        full_salary: Decimal,
        amount_paid: Decimal,
    ) -> Decimal:
        shortfall = max(ZERO, full_salary - amount_paid)
        outstanding = sum((a.remaining for a in advances), ZERO)
        return min(shortfall, outstanding)

    def plan(
        self,
        salary_amount: Decimal,
        advances: Sequence[AdvanceSnapshot],
        full_salary: Decimal,
    ) -> DeductionPlan:
        require_positive(salary_amount)
        budget = self.budget(advances, full_salary, salary_amount)
        allocations = allocate_deductions(advances, budget)
        return DeductionPlan(
            policy=self.name,
            salary_amount=salary_amount,
            budget=budget,
            net_amount=salary_amount,
            expense_amount=salary_amount,
            allocations=allocations,
        )


_POLICIES = {
    ADVANCE_POLICY_FIXED_MONTHLY: FixedMonthlyDeductionPolicy,
    ADVANCE_POLICY_SHORTFALL: ShortfallPolicy,
}


def get_deduction_policy(name: str):
    """Instantiate the configured deduction policy."""
    try:
        return _POLICIES[name]()
    except KeyError:
        raise ValueError(f"Unknown advance deduction policy: {name}")
