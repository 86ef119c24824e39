"""
Module: loan_engines.arrears
Responsibility:
    Count the weeks a loan went without a covering payment and the amount
    in arrears ("VDO"), plus the partial-payment surplus a collector sees
    for the current week.

Architecture position:
    Engines -- pure calculation layer, zero I/O. ``now`` is explicit.

Invariants enforced:
    - The sign week never counts as unpaid; money paid in it is carried
      forward as surplus.
    - Surplus above the weekly payment carries into later weeks; a deficit
      never does.
    - ``arrears_amount == min(weeks_without_payment * weekly, pending)``.

Failure modes:
    - ValueError for an unknown ``mode``.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from loan_engines.tracer import traced_engine
from loan_engines.week_calendar import WeekCalendar
from loan_kernel.domain.records import Loan, Payment, WeekRange
from loan_kernel.domain.values import Money
from loan_kernel.logging_config import get_logger

logger = get_logger("engines.arrears")


class ArrearsMode(str, Enum):
    CURRENT = "current"  # evaluate through the end of last week
    NEXT = "next"  # evaluate through the end of this week


@dataclass(frozen=True)
class ArrearsResult:
    loan_id: str
    expected_weekly_payment: Money
    weeks_evaluated: int
    weeks_without_payment: int
    arrears_amount: Money
    partial_payment: Money


@dataclass(frozen=True)
class WeekSurplus:
    loan_id: str
    expected_weekly_payment: Money
    paid_in_week: Money
    surplus: Money


def paid_in_week(payments: Iterable[Payment], week: WeekRange, currency: str) -> Money:
    """Sum of payments received inside ``week``."""
    return Money.total((p.amount for p in payments if week.contains(p.received_at)), currency)


class ArrearsCalculator:
    """Weeks-without-payment and arrears amount per loan."""

    def __init__(self, calendar: WeekCalendar | None = None):
        self._calendar = calendar or WeekCalendar()

    @traced_engine("arrears", "1.0", fingerprint_fields=("loan", "now", "mode"))
    def calculate(
        self,
        loan: Loan,
        payments: Iterable[Payment],
        now: datetime,
        mode: ArrearsMode | str = ArrearsMode.CURRENT,
    ) -> ArrearsResult:
        """
        Walk the loan's weeks from its sign week up to the evaluation limit.

        Args:
            mode: ``current`` stops at the end of the week before ``now``;
                ``next`` also evaluates the week containing ``now``.
        """
        mode = ArrearsMode(mode)
        own = [p for p in payments if p.loan_id == loan.id]
        currency = loan.currency
        weekly = loan.expected_weekly_payment
        zero = Money.zero(currency)

        this_week = self._calendar.week_of(now)
        limit = this_week if mode == ArrearsMode.NEXT else self._calendar.previous_week(this_week)

        surplus = zero
        unpaid = 0
        evaluated = 0
        sign_week = self._calendar.week_of(loan.sign_date)
        if sign_week.start <= limit.start:
            for index, week in enumerate(self._calendar.weeks_between(sign_week.start, limit.start)):
                paid = paid_in_week(own, week, currency)
                if index == 0:
                    surplus = paid
                    continue
                evaluated += 1
                available = surplus + paid
                if available < weekly:
                    unpaid += 1
                surplus = (available - weekly).clamp_at_zero()

        arrears = weekly * unpaid
        if arrears > loan.pending_amount_stored:
            arrears = loan.pending_amount_stored

        logger.debug("arrears_calculated", extra={
            "loan_id": loan.id,
            "mode": mode.value,
            "weeks_evaluated": evaluated,
            "weeks_without_payment": unpaid,
            "arrears_amount": str(arrears.amount),
        })

        return ArrearsResult(
            loan_id=loan.id,
            expected_weekly_payment=weekly,
            weeks_evaluated=evaluated,
            weeks_without_payment=unpaid,
            arrears_amount=arrears,
            partial_payment=surplus,
        )

    def current_week_surplus(
        self,
        loan: Loan,
        payments: Iterable[Payment],
        now: datetime,
    ) -> WeekSurplus:
        """Amount paid this week beyond the expected weekly payment."""
        week = self._calendar.week_of(now)
        paid = paid_in_week((p for p in payments if p.loan_id == loan.id), week, loan.currency)
        return WeekSurplus(
            loan_id=loan.id,
            expected_weekly_payment=loan.expected_weekly_payment,
            paid_in_week=paid,
            surplus=(paid - loan.expected_weekly_payment).clamp_at_zero(),
        )
