"""
Module: loan_engines.profit_inheritance
Responsibility:
    On renewal, carry the unrecognized profit still embedded in the
    predecessor's pending balance into the successor loan.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Delegates the profit/principal split to loan_engines.proration.

Invariants enforced:
    - ``inherited_profit`` is the profit portion of the predecessor's
      pending amount at its own profit ratio, rounded to the minor unit.
    - A predecessor is renewed at most once: a renewal chain never forks.

Failure modes:
    - PredecessorAlreadyRenewedError if the predecessor is already renewed
      (``renewed_date`` set, status RENOVATED, or a successor reported by
      the caller).
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from loan_engines.loan_metrics import LoanMetrics
from loan_engines.proration import prorate
from loan_engines.tracer import traced_engine
from loan_kernel.domain.records import Loan, LoanStatus
from loan_kernel.domain.values import Money
from loan_kernel.exceptions import PredecessorAlreadyRenewedError
from loan_kernel.logging_config import get_logger

logger = get_logger("engines.profit_inheritance")


@dataclass(frozen=True)
class InheritedProfit:
    """Profit carried from a predecessor loan."""

    predecessor_id: str
    profit_ratio: Decimal
    pending_amount: Money
    inherited_profit: Money

    @property
    def inherited_principal(self) -> Money:
        return self.pending_amount - self.inherited_profit


class ProfitInheritanceCalculator:
    """Computes and applies inherited profit for renewals."""

    @traced_engine("profit_inheritance", "1.0", fingerprint_fields=("predecessor", "successor_exists"))
    def inherit(self, predecessor: Loan, successor_exists: bool = False) -> InheritedProfit:
        """
        Profit the successor inherits from ``predecessor``.

        Raises:
            PredecessorAlreadyRenewedError: the predecessor already has a
                successor.
        """
        if (
            successor_exists
            or predecessor.renewed_date is not None
            or predecessor.status == LoanStatus.RENOVATED
        ):
            logger.warning("renewal_rejected_already_renewed", extra={
                "loan_id": predecessor.id,
                "renewed_date": predecessor.renewed_date,
                "status": predecessor.status.value,
            })
            raise PredecessorAlreadyRenewedError(predecessor.id, predecessor.renewed_date)

        split = prorate(
            predecessor.pending_amount_stored,
            predecessor.profit_amount,
            predecessor.total_debt_acquired,
        )

        logger.info("profit_inherited", extra={
            "loan_id": predecessor.id,
            "pending_amount": str(split.slice.amount),
            "profit_ratio": str(split.ratio),
            "inherited_profit": str(split.profit.amount),
        })

        return InheritedProfit(
            predecessor_id=predecessor.id,
            profit_ratio=split.ratio,
            pending_amount=split.slice,
            inherited_profit=split.profit,
        )

    @staticmethod
    def apply(metrics: LoanMetrics, inherited: InheritedProfit) -> LoanMetrics:
        """
        Successor metrics with the inherited profit added.

        Profit and total debt both grow by ``inherited_profit``; the weekly
        payment is re-derived from the enlarged debt.
        """
        profit = metrics.profit + inherited.inherited_profit
        total_debt = metrics.principal + profit
        return LoanMetrics(
            principal=metrics.principal,
            rate=metrics.rate,
            term_weeks=metrics.term_weeks,
            profit=profit,
            total_debt=total_debt,
            weekly_payment=(total_debt / metrics.term_weeks).round(),
        )
