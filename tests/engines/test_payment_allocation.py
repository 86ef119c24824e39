"""
Tests for payment allocation and balance updates.

Covers:
- Profit/principal split of a payment
- Bad-debt payments flagged informational
- Pending clamping and overpayment
- Compensating reversal
"""

from decimal import Decimal

import pytest

from loan_engines.payment_allocation import PaymentAllocator
from loan_kernel.domain.values import Money
from loan_kernel.exceptions import InvalidAmountError


def mxn(amount) -> Money:
    return Money.of(amount, "MXN")


class TestAllocate:
    """Tests for PaymentAllocator.allocate."""

    def setup_method(self):
        self.allocator = PaymentAllocator()

    def test_weekly_payment_split(self):
        """140 on a 400/1400 loan is 40 profit and 100 principal."""
        result = self.allocator.allocate(mxn("140"), mxn("400"), mxn("1400"))

        assert result.profit_recognized == mxn("40")
        assert result.principal_returned == mxn("100")
        assert not result.informational

    def test_split_always_sums_to_payment(self):
        result = self.allocator.allocate(mxn("99.99"), mxn("400"), mxn("1400"))

        assert result.profit_recognized + result.principal_returned == mxn("99.99")
        assert result.profit_recognized.amount == Decimal("28.57")

    def test_zero_debt_recognizes_no_profit(self):
        result = self.allocator.allocate(mxn("100"), mxn("0"), mxn("0"))

        assert result.profit_recognized.is_zero
        assert result.principal_returned == mxn("100")
        assert result.profit_ratio == Decimal("0")

    def test_bad_debt_payment_is_informational(self):
        result = self.allocator.allocate(mxn("140"), mxn("400"), mxn("1400"), is_bad_debt=True)

        assert result.informational
        assert result.profit_recognized == mxn("40")

    def test_negative_payment_rejected(self):
        with pytest.raises(InvalidAmountError) as exc_info:
            self.allocator.allocate(mxn("-140"), mxn("400"), mxn("1400"))
        assert exc_info.value.code == "INVALID_AMOUNT"

    def test_payment_larger_than_debt_caps_profit(self):
        result = self.allocator.allocate(mxn("2000"), mxn("400"), mxn("1400"))
        assert result.profit_recognized <= result.payment
        assert result.profit_recognized + result.principal_returned == mxn("2000")


class TestBalanceUpdates:
    def test_apply_reduces_pending(self):
        update = PaymentAllocator.apply_to_balance(mxn("1400"), mxn("0"), mxn("140"))

        assert update.pending == mxn("1260")
        assert update.total_paid == mxn("140")
        assert not update.fully_paid
        assert update.overpayment.is_zero

    def test_final_payment_marks_fully_paid(self):
        update = PaymentAllocator.apply_to_balance(mxn("140"), mxn("1260"), mxn("140"))
        assert update.pending.is_zero
        assert update.fully_paid

    def test_overpayment_clamps_pending(self):
        update = PaymentAllocator.apply_to_balance(mxn("100"), mxn("1300"), mxn("150"))

        assert update.pending.is_zero
        assert update.overpayment == mxn("50")
        assert update.total_paid == mxn("1450")

    def test_reverse_restores_pending(self):
        update = PaymentAllocator.reverse_on_balance(mxn("1400"), mxn("140"), mxn("1400"))

        assert update.total_paid == mxn("1260")
        assert update.pending == mxn("140")
        assert not update.fully_paid

    def test_reverse_of_overpayment_stays_within_debt(self):
        update = PaymentAllocator.reverse_on_balance(mxn("1450"), mxn("50"), mxn("1400"))
        assert update.pending.is_zero
        assert update.fully_paid
