"""
Module: loan_engines.proration
Responsibility:
    The single proportional profit/principal split used by renewal profit
    inheritance, payment allocation and write-off candidate estimation.
    Every slice of a loan's debt (a payment, the pending balance) carries
    the loan's fixed profit ratio; this module is the only place that ratio
    is applied.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - ``profit + principal == slice`` exactly, for every split.
    - ``0 <= profit <= slice`` for a non-negative slice.
    - A zero total debt yields a zero ratio (no division error).
    - Profit is rounded to the currency minor unit with ROUND_HALF_UP;
      principal absorbs the rounding remainder.

Failure modes:
    - InvalidAmountError for negative or non-finite inputs.
    - ValueError (from Money) when currencies differ.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from loan_kernel.domain.values import Money
from loan_kernel.exceptions import InvalidAmountError

ZERO = Decimal("0")


@dataclass(frozen=True)
class ProfitSplit:
    """A slice of debt divided into its profit and principal portions."""

    slice: Money
    profit: Money
    principal: Money
    ratio: Decimal


def require_non_negative(field: str, amount: Money) -> None:
    """Raise InvalidAmountError unless ``amount`` is finite and >= 0."""
    if not amount.is_finite or amount.is_negative:
        raise InvalidAmountError(field, amount.amount)


def profit_ratio(total_profit: Money, total_debt: Money) -> Decimal:
    """``total_profit / total_debt``, or 0 when the debt is zero."""
    require_non_negative("total_profit", total_profit)
    require_non_negative("total_debt", total_debt)
    total_profit.check_currency(total_debt, "prorate")
    if total_debt.is_zero:
        return ZERO
    return total_profit.amount / total_debt.amount


def prorate(slice_amount: Money, total_profit: Money, total_debt: Money) -> ProfitSplit:
    """
    Split ``slice_amount`` in the proportion ``total_profit / total_debt``.

    Preconditions:
        - All amounts are finite, non-negative and share one currency.
    Postconditions:
        - ``result.profit + result.principal == slice_amount``.
        - ``result.profit <= slice_amount``.
    Raises:
        InvalidAmountError: If any input is negative or non-finite.
    """
    require_non_negative("slice", slice_amount)
    ratio = profit_ratio(total_profit, total_debt)
    slice_amount.check_currency(total_debt, "prorate")

    if ratio == ZERO:
        profit = Money.zero(slice_amount.currency)
    else:
        # Multiply before dividing to keep the exact quotient when it exists.
        raw = slice_amount.amount * total_profit.amount / total_debt.amount
        profit = Money(raw, slice_amount.currency).round()
        if profit > slice_amount:
            profit = slice_amount

    return ProfitSplit(
        slice=slice_amount,
        profit=profit,
        principal=slice_amount - profit,
        ratio=ratio,
    )
