"""
BranchBooks - Ledger Engines

Pure balance arithmetic, the advance deduction engine and the settlement
engine. Services wrap these with persistence and branch scoping.
"""

from app.services.ledger.balances import (
    CENT,
    ZERO,
    Balance,
    BalanceStatus,
    BalanceUpdate,
    advance_status_for,
    apply_deduction,
    derive_status,
    require_positive,
    round_money,
    to_money,
)
from app.services.ledger.advance_deduction import (
    AdvanceSnapshot,
    DeductionAllocation,
    DeductionPlan,
    FixedMonthlyDeductionPolicy,
    ShortfallPolicy,
    allocate_deductions,
    get_deduction_policy,
)
from app.services.ledger.settlement import (
    PaymentDraft,
    SettlementKind,
    SettlementPlan,
    SettlementTarget,
    TransactionDraft,
    collect,
)


__all__ = [
    "CENT",
    "ZERO",
    "Balance",
    "BalanceStatus",
    "BalanceUpdate",
    "advance_status_for",
    "apply_deduction",
    "derive_status",
    "require_positive",
    "round_money",
    "to_money",
    "AdvanceSnapshot",
    "DeductionAllocation",
    "DeductionPlan",
    "FixedMonthlyDeductionPolicy",
    "ShortfallPolicy",
    "allocate_deductions",
    "get_deduction_policy",
    "PaymentDraft",
    "SettlementKind",
    "SettlementPlan",
    "SettlementTarget",
    "TransactionDraft",
    "collect",
]
