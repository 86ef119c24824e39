"""
Module: loan_engines.write_off
Responsibility:
    Screen open loans for write-off ("cartera muerta") and estimate the
    principal at risk on each: the pending balance minus the profit still
    embedded in it.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    The principal estimate goes through loan_engines.proration, the same
    split used for payment allocation and renewal inheritance.

Invariants enforced:
    - ``bad_debt_candidate + uncollected_profit == pending``.
    - Only loans with a pending balance and no ``finished_date`` are
      screened.
    - Week counts are whole weeks elapsed (floor of days / 7).
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime
from enum import Enum

from loan_engines.proration import prorate
from loan_engines.tracer import traced_engine
from loan_kernel.domain.records import Loan, LoanStatus, Payment
from loan_kernel.domain.values import Money
from loan_kernel.logging_config import get_logger

logger = get_logger("engines.write_off")


class BadDebtFilter(str, Enum):
    UNMARKED = "UNMARKED"
    MARKED = "MARKED"
    ANY = "ANY"


@dataclass(frozen=True)
class WriteOffCandidate:
    loan_id: str
    pending: Money
    uncollected_profit: Money
    bad_debt_candidate: Money
    weeks_since_loan: int
    weeks_without_payment: int
    last_payment_at: datetime | None = None
    is_marked: bool = False


@dataclass(frozen=True)
class WriteOffSummary:
    candidates: tuple[WriteOffCandidate, ...]
    total_pending: Money
    total_bad_debt_candidate: Money

    @property
    def count(self) -> int:
        return len(self.candidates)


def whole_weeks_between(start: datetime, end: datetime) -> int:
    """Whole weeks from ``start`` to ``end``; 0 if ``end`` is earlier."""
    return max(0, (end - start).days // 7)


class WriteOffScreener:
    """Bad-debt candidate screening for a book held in one currency."""

    def __init__(self, currency: str = "MXN"):
        self._currency = currency

    @property
    def currency(self) -> str:
        return self._currency

    def candidate(
        self,
        loan: Loan,
        payments: Sequence[Payment],
        as_of: datetime,
    ) -> WriteOffCandidate:
        """Principal at risk and payment inactivity for one loan."""
        split = prorate(loan.pending_amount_stored, loan.profit_amount, loan.total_debt_acquired)
        received = [p.received_at for p in payments if p.loan_id == loan.id and p.received_at <= as_of]
        last_payment = max(received) if received else None

        weeks_since_loan = whole_weeks_between(loan.sign_date, as_of)
        weeks_without_payment = (
            whole_weeks_between(last_payment, as_of) if last_payment else weeks_since_loan
        )
        return WriteOffCandidate(
            loan_id=loan.id,
            pending=split.slice,
            uncollected_profit=split.profit,
            bad_debt_candidate=split.principal,
            weeks_since_loan=weeks_since_loan,
            weeks_without_payment=weeks_without_payment,
            last_payment_at=last_payment,
            is_marked=loan.is_bad_debt,
        )

    @staticmethod
    def _screenable(loan: Loan, marked: BadDebtFilter) -> bool:
        if loan.finished_date is not None or loan.pending_amount_stored.is_zero:
            return False
        if loan.status in (LoanStatus.CANCELLED, LoanStatus.RENOVATED):
            return False
        if marked == BadDebtFilter.UNMARKED:
            return not loan.is_bad_debt
        if marked == BadDebtFilter.MARKED:
            return loan.is_bad_debt
        return True

    @traced_engine(
        "write_off", "1.0",
        fingerprint_fields=("as_of", "weeks_since_loan_min", "weeks_without_payment_min", "bad_debt_filter"),
    )
    def screen(
        self,
        loans: Sequence[Loan],
        payments_by_loan: Mapping[str, Sequence[Payment]],
        as_of: datetime,
        weeks_since_loan_min: int | None = None,
        weeks_without_payment_min: int | None = None,
        bad_debt_filter: BadDebtFilter = BadDebtFilter.UNMARKED,
        currency: str | None = None,
    ) -> WriteOffSummary:
        """
        Candidates meeting both minimums, with totals.

        A ``None`` minimum disables that filter. Totals are in ``currency``,
        defaulting to the screener's book currency.
        """
        currency = currency or self._currency
        selected: list[WriteOffCandidate] = []
        for loan in loans:
            if not self._screenable(loan, bad_debt_filter):
                continue
            found = self.candidate(loan, payments_by_loan.get(loan.id, ()), as_of)
            if weeks_since_loan_min is not None and found.weeks_since_loan < weeks_since_loan_min:
                continue
            if (
                weeks_without_payment_min is not None
                and found.weeks_without_payment < weeks_without_payment_min
            ):
                continue
            selected.append(found)

        summary = WriteOffSummary(
            candidates=tuple(selected),
            total_pending=Money.total((c.pending for c in selected), currency),
            total_bad_debt_candidate=Money.total((c.bad_debt_candidate for c in selected), currency),
        )
        logger.info("write_off_screened", extra={
            "loans_considered": len(loans),
            "candidates": summary.count,
            "total_pending": str(summary.total_pending.amount),
            "total_bad_debt_candidate": str(summary.total_bad_debt_candidate.amount),
        })
        return summary
