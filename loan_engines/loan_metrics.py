"""
Module: loan_engines.loan_metrics
Responsibility:
    Derive a loan's economics from its principal, flat rate and term:
    profit, total debt and the expected weekly payment. Also computes the
    cash disbursed on a renewal and repayment progress.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - ``total_debt == principal + profit`` exactly.
    - ``profit`` and ``total_debt`` keep full Decimal scale.
    - ``weekly_payment`` is rounded to the currency minor unit
      (ROUND_HALF_UP); it is the only rounded figure.

Failure modes:
    - InvalidTermError if ``term_weeks <= 0``.
    - InvalidRateError if ``rate < 0`` or not finite.
    - InvalidAmountError if the principal is negative or not finite.

Usage:
    from loan_engines.loan_metrics import LoanMetricsCalculator

    metrics = LoanMetricsCalculator().compute(
        Money.of("1000", "MXN"), Decimal("0.40"), 10,
    )
    # profit 400, total_debt 1400, weekly_payment 140.00
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from loan_engines.proration import require_non_negative
from loan_engines.tracer import traced_engine
from loan_kernel.domain.values import Money
from loan_kernel.exceptions import InvalidRateError, InvalidTermError
from loan_kernel.logging_config import get_logger

logger = get_logger("engines.loan_metrics")

HUNDRED = Decimal("100")


@dataclass(frozen=True)
class LoanMetrics:
    """
    Economics of a loan at origination.

    Guarantees:
        - ``total_debt == principal + profit``.
    """

    principal: Money
    rate: Decimal
    term_weeks: int
    profit: Money
    total_debt: Money
    weekly_payment: Money


class LoanMetricsCalculator:
    """
    Flat-rate loan metrics.

    Contract:
        Pure functions -- no I/O, no clock access.
    """

    @traced_engine("loan_metrics", "1.0", fingerprint_fields=("principal", "rate", "term_weeks"))
    def compute(self, principal: Money, rate: Decimal, term_weeks: int) -> LoanMetrics:
        """
        Compute profit, total debt and weekly payment.

        Args:
            principal: Requested amount.
            rate: Flat rate applied once to the principal (e.g. 0.40).
            term_weeks: Number of weekly installments.

        Raises:
            InvalidTermError: ``term_weeks <= 0``.
            InvalidRateError: ``rate < 0``.
            InvalidAmountError: negative or non-finite principal.
        """
        if isinstance(term_weeks, bool) or not isinstance(term_weeks, int) or term_weeks <= 0:
            raise InvalidTermError(term_weeks)
        rate = Decimal(str(rate)) if not isinstance(rate, Decimal) else rate
        if not rate.is_finite() or rate < 0:
            raise InvalidRateError(rate)
        require_non_negative("principal", principal)

        profit = principal * rate
        total_debt = principal + profit
        weekly_payment = (total_debt / term_weeks).round()

        logger.debug("loan_metrics_computed", extra={
            "principal": str(principal.amount),
            "rate": str(rate),
            "term_weeks": term_weeks,
            "profit": str(profit.amount),
            "total_debt": str(total_debt.amount),
            "weekly_payment": str(weekly_payment.amount),
        })

        return LoanMetrics(
            principal=principal,
            rate=rate,
            term_weeks=term_weeks,
            profit=profit,
            total_debt=total_debt,
            weekly_payment=weekly_payment,
        )

    @staticmethod
    def amount_to_give(requested: Money, pending_debt: Money) -> Money:
        """Cash disbursed on renewal: requested amount net of the old debt, floor 0."""
        require_non_negative("requested", requested)
        require_non_negative("pending_debt", pending_debt)
        return (requested - pending_debt).clamp_at_zero()

    @staticmethod
    def payment_progress(total_debt: Money, total_paid: Money) -> Decimal:
        """Percentage of the debt repaid, two decimals; 0 when the debt is 0."""
        if total_debt.is_zero:
            return Decimal("0.00")
        pct = total_paid.amount / total_debt.amount * HUNDRED
        return pct.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
