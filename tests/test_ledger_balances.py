"""
BranchBooks - Ledger Primitive Tests

Unit tests for money conversion and balance status derivation.
"""

from decimal import Decimal

import pytest

from app.models.employee import AdvanceStatus
from app.services.ledger import (
    Balance,
    BalanceStatus,
    advance_status_for,
    apply_deduction,
    derive_status,
    round_money,
    to_money,
)
from app.utils.error_handling import (
    ExceedsRemainingException,
    InvalidAmountException,
    InvalidBalanceException,
)


class TestToMoney:
    """Test cases for to_money."""
    
    def test_normalizes_to_cents(self):
        assert to_money("10.5") == Decimal("10.50")
        assert to_money("100.000") == Decimal("100.00")
        assert to_money(7) == Decimal("7.00")
    
    def test_rejects_sub_cent_precision(self):
        with pytest.raises(InvalidAmountException) as exc_info:
            to_money("10.005")
        assert "two decimal places" in exc_info.value.message
        with pytest.raises(InvalidAmountException):
            to_money(Decimal("0.001"), "amount_paid")
    
    def test_rejects_out_of_range_exponent(self):
        with pytest.raises(InvalidAmountException):
            to_money("1E+40")
    
    def test_rejects_float(self):
        with pytest.raises(InvalidAmountException):
            to_money(10.5)
    
    def test_rejects_garbage(self):
        with pytest.raises(InvalidAmountException):
            to_money("ten")
        with pytest.raises(InvalidAmountException):
            to_money("NaN")


class TestRoundMoney:
    """Test cases for round_money on database aggregates."""
    
    def test_none_is_zero(self):
        assert round_money(None) == Decimal("0.00")
    
    def test_rounds_half_up(self):
        assert round_money(Decimal("10.005")) == Decimal("10.01")
        assert round_money("10.004") == Decimal("10.00")
    
    def test_float_sum_goes_through_str(self):
        assert round_money(0.1 + 0.2) == Decimal("0.30")


class TestDeriveStatus:
    """Status follows the remaining amount."""
    
    @pytest.mark.parametrize(
        "original,remaining,expected",
        [
            ("100", "100", BalanceStatus.ACTIVE),
            ("100", "40", BalanceStatus.PARTIAL),
            ("100", "0", BalanceStatus.PAID),
        ],
    )
    def test_status(self, original, remaining, expected):
        assert derive_status(Decimal(original), Decimal(remaining)) == expected
    
    def test_remaining_out_of_range(self):
        with pytest.raises(InvalidBalanceException):
            derive_status(Decimal("100"), Decimal("-1"))
        with pytest.raises(InvalidBalanceException):
            derive_status(Decimal("100"), Decimal("101"))


class TestApplyDeduction:
    """Test cases for apply_deduction."""
    
    def test_partial_then_paid(self):
        first = apply_deduction(Balance(Decimal("500"), Decimal("500")), Decimal("200"))
        assert first.previous_remaining == Decimal("500")
        assert first.new_remaining == Decimal("300")
        assert first.new_status == BalanceStatus.PARTIAL
        
        second = apply_deduction(Balance(Decimal("500"), first.new_remaining), Decimal("300"))
        assert second.new_remaining == Decimal("0")
        assert second.new_status == BalanceStatus.PAID
    
    def test_exceeding_remaining_is_rejected_not_clamped(self):
        with pytest.raises(ExceedsRemainingException) as exc_info:
            apply_deduction(Balance(Decimal("500"), Decimal("500")), Decimal("600"))
        
        assert exc_info.value.attempted == Decimal("600")
        assert exc_info.value.remaining == Decimal("500")
    
    @pytest.mark.parametrize("amount", ["0", "-5"])
    def test_non_positive_amount(self, amount):
        with pytest.raises(InvalidAmountException):
            apply_deduction(Balance(Decimal("100"), Decimal("100")), Decimal(amount))


class TestAdvanceStatusFor:
    """Advances never carry a PARTIAL status."""
    
    def test_partial_maps_to_active(self):
        assert advance_status_for(BalanceStatus.PARTIAL) == AdvanceStatus.ACTIVE
    
    def test_paid_and_active_pass_through(self):
        assert advance_status_for(BalanceStatus.PAID) == AdvanceStatus.PAID
        assert advance_status_for(BalanceStatus.ACTIVE) == AdvanceStatus.ACTIVE
