"""
Property-based tests for the loan engines.

Invariants checked over generated inputs:
- Proration: profit + principal == slice, 0 <= profit <= slice
- Metrics: total_debt == principal + profit
- Payment application: pending never negative, paid + pending conserves debt
- Lifecycle: a loan owing nothing is FINISHED (originate, pay, cancel, renew)
- Metrics: installments differ from total debt by at most half a minor unit
  per installment
- Ledger replay: order independent
- Delinquency counts: current + delinquent == total_active
"""

from datetime import datetime, timedelta
from decimal import Decimal

import pytest
from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st
from hypothesis.strategies import composite

from loan_engines.ledger_balance import LedgerBalanceRecalculator
from loan_engines.loan_metrics import LoanMetricsCalculator
from loan_engines.payment_allocation import PaymentAllocator
from loan_engines.portfolio import PortfolioAggregator
from loan_engines.proration import prorate
from loan_engines.week_calendar import WeekCalendar
from loan_kernel.domain.clock import DeterministicClock
from loan_kernel.domain.records import LoanStatus, Payment, Transaction, TransactionType
from loan_kernel.domain.values import Money
from loan_services.lifecycle import LoanLifecycleService, LoanRequest

pytestmark = pytest.mark.slow


def mxn(amount: Decimal) -> Money:
    return Money(amount, "MXN")


@composite
def money_amounts(draw, max_value="999999.99"):
    """Non-negative peso amounts with two decimals."""
    return draw(st.decimals(
        min_value=Decimal("0.00"),
        max_value=Decimal(max_value),
        places=2,
        allow_nan=False,
        allow_infinity=False,
    ))


@composite
def loan_terms(draw):
    principal = draw(money_amounts(max_value="100000.00"))
    rate = draw(st.decimals(
        min_value=Decimal("0"), max_value=Decimal("2"), places=2,
        allow_nan=False, allow_infinity=False,
    ))
    term = draw(st.integers(min_value=1, max_value=52))
    return principal, rate, term


@composite
def transactions(draw):
    tx_type = draw(st.sampled_from(list(TransactionType)))
    accounts = st.sampled_from(["acct", "other", None])
    return Transaction(
        id=f"T{draw(st.integers(min_value=0, max_value=10**6))}",
        amount=mxn(draw(money_amounts(max_value="10000.00"))),
        date=datetime(2024, 1, 1),
        type=tx_type,
        source_account_id=draw(accounts),
        destination_account_id=draw(accounts),
    )


class TestProrationProperties:
    @given(slice_amount=money_amounts(), terms=loan_terms())
    @settings(max_examples=200)
    def test_split_conserves_slice(self, slice_amount, terms):
        principal, rate, term = terms
        metrics = LoanMetricsCalculator().compute(mxn(principal), rate, term)

        split = prorate(mxn(slice_amount), metrics.profit, metrics.total_debt)

        assert split.profit + split.principal == mxn(slice_amount)
        assert Decimal("0") <= split.profit.amount <= slice_amount


class TestMetricsProperties:
    @given(terms=loan_terms())
    @settings(max_examples=200)
    def test_total_debt_identity(self, terms):
        principal, rate, term = terms
        metrics = LoanMetricsCalculator().compute(mxn(principal), rate, term)

        assert metrics.total_debt == metrics.principal + metrics.profit
        assert metrics.weekly_payment.amount == metrics.weekly_payment.round().amount

    @given(terms=loan_terms())
    @settings(max_examples=200)
    def test_installments_within_rounding_of_debt(self, terms):
        principal, rate, term = terms
        metrics = LoanMetricsCalculator().compute(mxn(principal), rate, term)

        drift = abs(metrics.weekly_payment.amount * term - metrics.total_debt.amount)
        assert drift <= term * Decimal("0.005")

    def test_seven_week_term_drift(self):
        metrics = LoanMetricsCalculator().compute(mxn(Decimal("1000")), Decimal("0"), 7)

        assert metrics.weekly_payment == mxn(Decimal("142.86"))
        assert metrics.weekly_payment.amount * 7 - metrics.total_debt.amount == Decimal("0.02")


class TestPaymentProperties:
    @given(
        debt=money_amounts(max_value="50000.00"),
        payments=st.lists(money_amounts(max_value="5000.00"), max_size=30),
    )
    @settings(max_examples=200)
    def test_pending_never_negative(self, debt, payments):
        pending = mxn(debt)
        paid = Money.zero("MXN")
        for amount in payments:
            update = PaymentAllocator.apply_to_balance(pending, paid, mxn(amount))
            pending, paid = update.pending, update.total_paid
            assert not pending.is_negative

        if paid <= mxn(debt):
            assert pending + paid == mxn(debt)


class TestLedgerProperties:
    @given(ledger=st.lists(transactions(), max_size=25), seed=st.randoms())
    @settings(max_examples=200)
    def test_replay_order_independent(self, ledger, seed):
        recalculator = LedgerBalanceRecalculator()
        shuffled = list(ledger)
        seed.shuffle(shuffled)

        assert recalculator.recalculate("acct", ledger, "MXN") == recalculator.recalculate(
            "acct", shuffled, "MXN"
        )


class TestDelinquencyCountProperties:
    @given(
        sign_offsets=st.lists(st.integers(min_value=0, max_value=60), min_size=1, max_size=10),
        payment_offsets=st.lists(st.integers(min_value=0, max_value=60), max_size=20),
        week_number=st.integers(min_value=1, max_value=9),
    )
    @settings(max_examples=100, suppress_health_check=[HealthCheck.function_scoped_fixture])
    def test_current_plus_delinquent_is_active(
        self, make_loan, sign_offsets, payment_offsets, week_number
    ):
        start = datetime(2024, 1, 1, 9, 0)
        loans = [
            make_loan(f"L{i}", sign_date=start + timedelta(days=offset))
            for i, offset in enumerate(sign_offsets)
        ]
        payments = {}
        for j, offset in enumerate(payment_offsets):
            loan_id = loans[j % len(loans)].id
            payments.setdefault(loan_id, []).append(Payment(
                id=f"P{j}",
                loan_id=loan_id,
                amount=mxn(Decimal("140")),
                received_at=start + timedelta(days=offset, hours=1),
            ))

        calendar = WeekCalendar()
        counts = PortfolioAggregator(calendar=calendar).count_status(
            loans, payments, calendar.week_range(2024, week_number)
        )

        assert counts.current + counts.delinquent == counts.total_active
        assert counts.total_active <= len(loans)


def _owes_nothing_means_finished(loan) -> bool:
    if loan.status in (LoanStatus.RENOVATED, LoanStatus.CANCELLED):
        return True
    return not loan.pending_amount_stored.is_zero or loan.status == LoanStatus.FINISHED


class TestLifecycleProperties:
    @given(
        terms=loan_terms(),
        operations=st.lists(
            st.tuples(st.sampled_from(["pay", "cancel"]), money_amounts(max_value="3000.00")),
            max_size=20,
        ),
        renew_amount=money_amounts(max_value="5000.00"),
    )
    @settings(max_examples=150)
    def test_zero_pending_implies_finished(self, terms, operations, renew_amount):
        principal, rate, term = terms
        service = LoanLifecycleService(clock=DeterministicClock(datetime(2024, 1, 17, 12, 0)))

        loan = service.originate(LoanRequest("L", mxn(principal), rate, term))
        assert _owes_nothing_means_finished(loan)

        applied: list[Payment] = []
        for i, (kind, amount) in enumerate(operations):
            if kind == "pay":
                payment = Payment(
                    id=f"P{i}", loan_id="L", amount=mxn(amount),
                    received_at=datetime(2024, 1, 17, 12, 0),
                )
                loan = service.apply_payment(loan, payment).loan
                applied.append(payment)
            elif applied:
                loan = service.cancel_payment(loan, applied.pop()).loan
            assert _owes_nothing_means_finished(loan)

        if loan.status == LoanStatus.ACTIVE:
            result = service.renew(loan, LoanRequest("R", mxn(renew_amount), rate, term))
            assert _owes_nothing_means_finished(result.successor)
            assert result.predecessor.status == LoanStatus.RENOVATED
