"""
Module: loan_engines.delinquency
Responsibility:
    Classify a loan as current, delinquent ("cartera vencida", CV) or
    excluded for one calendar week, based solely on whether a payment was
    received inside that week's window.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Week bounds come from loan_engines.week_calendar; no clock access.

Invariants enforced:
    - Strictly week-scoped: only payments with ``received_at`` inside
      ``[week.start, week.end]`` count. A payment in a later week never
      clears an earlier week.
    - A loan is eligible for the week iff it was signed by the week's end,
      was not finished or renewed by the week's end, and is not CANCELLED.
    - Written-off and cleanup-excluded loans are always EXCLUDED.
    - A loan with zero total debt is CURRENT.

Failure modes:
    - None; classification is total over well-formed records.

Usage:
    from loan_engines.delinquency import DelinquencyClassifier

    status = DelinquencyClassifier().classify(loan, payments, week)
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum

from loan_engines.tracer import traced_engine
from loan_kernel.domain.records import Loan, LoanStatus, Payment, WeekRange
from loan_kernel.logging_config import get_logger

logger = get_logger("engines.delinquency")


class DelinquencyStatus(str, Enum):
    CURRENT = "CURRENT"
    DELINQUENT = "DELINQUENT"
    EXCLUDED = "EXCLUDED"


class ExclusionReason(str, Enum):
    NOT_ACTIVE = "NOT_ACTIVE"
    BAD_DEBT = "BAD_DEBT"
    CLEANUP = "CLEANUP"


@dataclass(frozen=True)
class LoanWeekClassification:
    """
    Full classification of one loan for one week.

    Guarantees:
        - ``exclusion_reason`` is set iff ``status`` is EXCLUDED.
        - ``exited_delinquency`` implies ``status`` is CURRENT.
    """

    loan_id: str
    week: WeekRange
    status: DelinquencyStatus
    payments_in_week: int = 0
    exclusion_reason: ExclusionReason | None = None
    exited_delinquency: bool = False

    @property
    def is_eligible(self) -> bool:
        return self.status != DelinquencyStatus.EXCLUDED


def _previous_week_bounds(week: WeekRange) -> tuple[datetime, datetime]:
    start = week.start - timedelta(days=7)
    return start, week.start - timedelta(milliseconds=1)


def count_payments_in_week(payments: Iterable[Payment], week: WeekRange) -> int:
    """Number of payments received inside ``week``."""
    return sum(1 for p in payments if week.contains(p.received_at))


def is_active_in_week(loan: Loan, week: WeekRange) -> bool:
    """
    Whether ``loan`` belongs to the live book during ``week``.

    Signed on or before the week's end, not finished or renewed by then,
    and not cancelled.
    """
    if loan.status == LoanStatus.CANCELLED:
        return False
    if loan.sign_date > week.end:
        return False
    if loan.finished_date is not None and loan.finished_date <= week.end:
        return False
    if loan.renewed_date is not None and loan.renewed_date <= week.end:
        return False
    return True


class DelinquencyClassifier:
    """
    Week-scoped delinquency classification.

    Contract:
        Pure functions -- payments and week bounds are passed in.
    Guarantees:
        - With default settings a loan signed inside the evaluated week and
          unpaid in it is DELINQUENT (no sign-week grace).
    """

    def __init__(self, sign_week_grace: bool = False, exit_payment_threshold: int = 2):
        self._sign_week_grace = sign_week_grace
        self._exit_payment_threshold = exit_payment_threshold

    def _excluded(self, loan: Loan, week: WeekRange, reason: ExclusionReason) -> LoanWeekClassification:
        logger.debug("loan_excluded_from_week", extra={
            "loan_id": loan.id,
            "week": week.label,
            "reason": reason.value,
        })
        return LoanWeekClassification(
            loan_id=loan.id,
            week=week,
            status=DelinquencyStatus.EXCLUDED,
            exclusion_reason=reason,
        )

    def evaluate(
        self,
        loan: Loan,
        payments: Iterable[Payment],
        week: WeekRange,
    ) -> LoanWeekClassification:
        """
        Classify ``loan`` for ``week`` with exclusion reason, payment count
        and the delinquency-exit flag.

        ``payments`` may include other loans' payments; only those whose
        ``loan_id`` matches are considered.
        """
        own = [p for p in payments if p.loan_id == loan.id]

        if not is_active_in_week(loan, week):
            return self._excluded(loan, week, ExclusionReason.NOT_ACTIVE)
        if loan.bad_debt_date is not None:
            return self._excluded(loan, week, ExclusionReason.BAD_DEBT)
        if loan.excluded_by_cleanup_date is not None:
            return self._excluded(loan, week, ExclusionReason.CLEANUP)

        in_week = count_payments_in_week(own, week)

        if loan.total_debt_acquired.is_zero:
            status = DelinquencyStatus.CURRENT
        elif in_week > 0:
            status = DelinquencyStatus.CURRENT
        elif self._sign_week_grace and week.contains(loan.sign_date):
            status = DelinquencyStatus.CURRENT
        else:
            status = DelinquencyStatus.DELINQUENT

        exited = False
        if status == DelinquencyStatus.CURRENT and in_week >= self._exit_payment_threshold:
            prev_start, prev_end = _previous_week_bounds(week)
            paid_previous = any(prev_start <= p.received_at <= prev_end for p in own)
            # A loan signed this week was never delinquent before it.
            exited = not paid_previous and loan.sign_date < week.start

        return LoanWeekClassification(
            loan_id=loan.id,
            week=week,
            status=status,
            payments_in_week=in_week,
            exited_delinquency=exited,
        )

    @traced_engine("delinquency", "1.0", fingerprint_fields=("loan", "week"))
    def classify(
        self,
        loan: Loan,
        payments: Iterable[Payment],
        week: WeekRange,
    ) -> DelinquencyStatus:
        """CURRENT, DELINQUENT or EXCLUDED for ``loan`` in ``week``."""
        return self.evaluate(loan, payments, week).status

    def is_delinquent(self, loan: Loan, payments: Iterable[Payment], week: WeekRange) -> bool:
        return self.evaluate(loan, payments, week).status == DelinquencyStatus.DELINQUENT
