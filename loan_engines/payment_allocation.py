"""
Module: loan_engines.payment_allocation
Responsibility:
    Split each payment into recognized profit and returned principal at the
    loan's fixed profit ratio, and advance the loan's paid/pending totals.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Delegates the split to loan_engines.proration so allocation, renewal
    inheritance and write-off estimation always agree.

Invariants enforced:
    - ``profit_recognized + principal_returned == payment`` exactly.
    - ``profit_recognized <= payment``.
    - Payments on bad-debt loans are split at the same ratio but flagged
      ``informational``; allocation never reopens a written-off loan.
    - Pending balances never go below zero.

Failure modes:
    - InvalidAmountError for negative or non-finite inputs.

Usage:
    from loan_engines.payment_allocation import PaymentAllocator

    result = PaymentAllocator().allocate(
        payment=Money.of("140", "MXN"),
        total_profit=Money.of("400", "MXN"),
        total_debt=Money.of("1400", "MXN"),
    )
    # profit_recognized 40.00, principal_returned 100.00
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from loan_engines.proration import prorate, require_non_negative
from loan_engines.tracer import traced_engine
from loan_kernel.domain.values import Money
from loan_kernel.logging_config import get_logger

logger = get_logger("engines.payment_allocation")


@dataclass(frozen=True)
class PaymentAllocation:
    """
    Profit/principal split of a single payment.

    Guarantees:
        - ``profit_recognized + principal_returned == payment``.
    """

    payment: Money
    profit_recognized: Money
    principal_returned: Money
    profit_ratio: Decimal
    informational: bool = False


@dataclass(frozen=True)
class BalanceUpdate:
    """Loan totals after applying one payment."""

    total_paid: Money
    pending: Money
    fully_paid: bool
    overpayment: Money


class PaymentAllocator:
    """
    Allocates payments between profit and principal.

    Contract:
        Pure functions -- no I/O, no clock access.
    """

    @traced_engine(
        "payment_allocation", "1.0",
        fingerprint_fields=("payment", "total_profit", "total_debt", "is_bad_debt"),
    )
    def allocate(
        self,
        payment: Money,
        total_profit: Money,
        total_debt: Money,
        is_bad_debt: bool = False,
    ) -> PaymentAllocation:
        """
        Split ``payment`` at the ratio ``total_profit / total_debt``.

        Args:
            payment: Amount received.
            total_profit: Loan's profit_amount.
            total_debt: Loan's total_debt_acquired.
            is_bad_debt: Loan has a bad_debt_date; the split is reported
                for information only.

        Raises:
            InvalidAmountError: Negative or non-finite input.
        """
        split = prorate(payment, total_profit, total_debt)

        logger.info("payment_allocated", extra={
            "payment": str(payment.amount),
            "profit_recognized": str(split.profit.amount),
            "principal_returned": str(split.principal.amount),
            "profit_ratio": str(split.ratio),
            "informational": is_bad_debt,
        })

        return PaymentAllocation(
            payment=payment,
            profit_recognized=split.profit,
            principal_returned=split.principal,
            profit_ratio=split.ratio,
            informational=is_bad_debt,
        )

    @staticmethod
    def apply_to_balance(pending: Money, total_paid: Money, payment: Money) -> BalanceUpdate:
        """
        Advance paid/pending totals by ``payment``.

        Postconditions:
            - ``pending`` is clamped at zero; any excess is reported as
              ``overpayment``.
        """
        require_non_negative("pending", pending)
        require_non_negative("total_paid", total_paid)
        require_non_negative("payment", payment)

        new_pending = pending - payment
        overpayment = (-new_pending).clamp_at_zero()
        new_pending = new_pending.clamp_at_zero()
        return BalanceUpdate(
            total_paid=total_paid + payment,
            pending=new_pending,
            fully_paid=new_pending.is_zero,
            overpayment=overpayment,
        )

    @staticmethod
    def reverse_on_balance(total_paid: Money, payment: Money, total_debt: Money) -> BalanceUpdate:
        """
        Undo a payment: the compensating counterpart of ``apply_to_balance``.

        Pending is recomputed from ``total_debt - total_paid`` so a reversed
        overpayment does not inflate the balance beyond the debt.
        """
        require_non_negative("payment", payment)
        new_paid = (total_paid - payment).clamp_at_zero()
        new_pending = (total_debt - new_paid).clamp_at_zero()
        return BalanceUpdate(
            total_paid=new_paid,
            pending=new_pending,
            fully_paid=new_pending.is_zero,
            overpayment=Money.zero(payment.currency),
        )
