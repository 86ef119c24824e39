"""
Shared fixtures for the loan engine test suite.

Records are built with naive datetimes and the calendar runs with
``tz=None``, the same convention as the packaged default configuration.
"""

from dataclasses import replace
from datetime import datetime
from decimal import Decimal

import pytest

from loan_engines.loan_metrics import LoanMetricsCalculator
from loan_engines.week_calendar import WeekCalendar
from loan_kernel.domain.clock import DeterministicClock
from loan_kernel.domain.records import Loan, Payment, Transaction, TransactionType
from loan_kernel.domain.values import Money


def pytest_configure(config):
    config.addinivalue_line("markers", "slow: property-based tests with many examples")


def mxn(amount) -> Money:
    """Money in pesos from a str or int."""
    return Money.of(amount, "MXN")


@pytest.fixture
def clock() -> DeterministicClock:
    """Wednesday of week 3 of 2024, naive local time."""
    return DeterministicClock(datetime(2024, 1, 17, 12, 0, 0))


@pytest.fixture
def calendar(clock) -> WeekCalendar:
    return WeekCalendar(clock=clock)


@pytest.fixture
def make_loan():
    """
    Factory for ACTIVE loans with metrics derived from principal, rate and
    term. Keyword overrides are applied to the finished record.
    """

    def _make(
        loan_id: str = "L1",
        principal: str = "1000",
        rate: str = "0.40",
        term_weeks: int = 10,
        sign_date: datetime = datetime(2024, 1, 3, 10, 0),
        **overrides,
    ) -> Loan:
        metrics = LoanMetricsCalculator().compute(mxn(principal), Decimal(rate), term_weeks)
        loan = Loan(
            id=loan_id,
            requested_amount=metrics.principal,
            amount_gived=metrics.principal,
            rate=metrics.rate,
            term_weeks=term_weeks,
            profit_amount=metrics.profit,
            total_debt_acquired=metrics.total_debt,
            expected_weekly_payment=metrics.weekly_payment,
            total_paid=mxn("0"),
            pending_amount_stored=metrics.total_debt,
            sign_date=sign_date,
        )
        return replace(loan, **overrides) if overrides else loan

    return _make


@pytest.fixture
def make_payment():
    """Factory for payments; ids are numbered per factory instance."""
    counter = {"n": 0}

    def _make(loan_id: str, amount: str, received_at: datetime, **overrides) -> Payment:
        counter["n"] += 1
        return Payment(
            id=overrides.pop("id", f"P{counter['n']}"),
            loan_id=loan_id,
            amount=mxn(amount),
            received_at=received_at,
            **overrides,
        )

    return _make


@pytest.fixture
def make_transaction():
    counter = {"n": 0}

    def _make(
        amount: str,
        tx_type: TransactionType,
        source: str | None = None,
        destination: str | None = None,
        date: datetime = datetime(2024, 1, 10, 9, 0),
    ) -> Transaction:
        counter["n"] += 1
        return Transaction(
            id=f"T{counter['n']}",
            amount=mxn(amount),
            date=date,
            type=tx_type,
            source_account_id=source,
            destination_account_id=destination,
        )

    return _make
