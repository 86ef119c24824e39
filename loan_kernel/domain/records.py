"""
Records -- Immutable domain records handed to the engines.

Responsibility:
    Defines the typed records the storage layer loads and the engines read:
    Loan, Payment, Transaction, Account, Lead and WeekRange, plus the enums
    for their closed vocabularies. These stand in for database
    rows; the engine never sees an ORM object.

Architecture position:
    Kernel > Domain -- pure data, zero I/O.
    Imports only loan_kernel.domain.values.

Invariants enforced:
    - Records are frozen; state transitions go through
      ``dataclasses.replace`` and yield a new record.
    - At most one of ``finished_date`` / ``renewed_date`` is set on a Loan.
    - ``WeekRange.start`` is a Monday at 00:00 and ``end`` the following
      Sunday at 23:59:59.999.

Failure modes:
    - ValueError from ``Loan.__post_init__`` when both finished_date and
      renewed_date are present.
    - ValueError from ``WeekRange.__post_init__`` when start is not a Monday.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from enum import Enum

from loan_kernel.domain.values import Money


class LoanStatus(str, Enum):
    """Lifecycle status of a loan."""

    ACTIVE = "ACTIVE"
    FINISHED = "FINISHED"
    RENOVATED = "RENOVATED"
    CANCELLED = "CANCELLED"


class PaymentMethod(str, Enum):
    CASH = "CASH"
    MONEY_TRANSFER = "MONEY_TRANSFER"


class TransactionType(str, Enum):
    INCOME = "INCOME"
    EXPENSE = "EXPENSE"
    TRANSFER = "TRANSFER"


class AccountType(str, Enum):
    BANK = "BANK"
    OFFICE_CASH_FUND = "OFFICE_CASH_FUND"
    EMPLOYEE_CASH_FUND = "EMPLOYEE_CASH_FUND"
    PREPAID_GAS = "PREPAID_GAS"
    TRAVEL_EXPENSES = "TRAVEL_EXPENSES"


WEEK_LENGTH = timedelta(days=7)
# Week ends one millisecond before the next Monday.
WEEK_END_OFFSET = WEEK_LENGTH - timedelta(milliseconds=1)


@dataclass(frozen=True)
class WeekRange:
    """
    A Monday-to-Sunday calendar week.

    Guarantees:
        - ``start`` is Monday 00:00:00.000 and ``end`` is Sunday
          23:59:59.999 of the same week.
        - ``(year, week_number)`` identifies the week within WeekCalendar's
          numbering (week 1 starts on the year's first Monday).
    """

    start: datetime
    end: datetime
    week_number: int
    year: int

    def __post_init__(self) -> None:
        if self.start.weekday() != 0:
            raise ValueError(f"Week must start on a Monday, got {self.start:%A}")
        if self.end != self.start + WEEK_END_OFFSET:
            raise ValueError("Week end must be the Sunday closing the week")

    def contains(self, moment: datetime) -> bool:
        """True if ``moment`` falls inside the week, bounds included."""
        return self.start <= moment <= self.end

    def is_completed(self, now: datetime) -> bool:
        """A week is completed once ``now`` is strictly after its end."""
        return now > self.end

    @property
    def label(self) -> str:
        return f"{self.year}-W{self.week_number:02d}"


@dataclass(frozen=True)
class Loan:
    """
    A microloan ("credito") and its derived economics.

    Contract:
        Monetary fields are Money in a single currency. ``profit_amount``,
        ``total_debt_acquired`` and ``expected_weekly_payment`` are computed
        by LoanMetricsCalculator (and ProfitInheritanceCalculator on
        renewal) at origination and never recomputed afterwards.
    Guarantees:
        - ``pending_amount_stored`` is never negative.
        - At most one of ``finished_date`` and ``renewed_date`` is set.
    """

    id: str
    requested_amount: Money
    amount_gived: Money
    rate: Decimal
    term_weeks: int
    profit_amount: Money
    total_debt_acquired: Money
    expected_weekly_payment: Money
    total_paid: Money
    pending_amount_stored: Money
    sign_date: datetime
    status: LoanStatus = LoanStatus.ACTIVE
    renewed_date: datetime | None = None
    finished_date: datetime | None = None
    bad_debt_date: datetime | None = None
    previous_loan_id: str | None = None
    excluded_by_cleanup_date: datetime | None = None
    lead_id: str | None = None
    snapshot_route_id: str | None = None
    snapshot_route_name: str | None = None

    def __post_init__(self) -> None:
        if self.finished_date is not None and self.renewed_date is not None:
            raise ValueError(
                f"Loan {self.id} cannot be both finished and renewed"
            )
        if self.pending_amount_stored.is_negative:
            raise ValueError(f"Loan {self.id} has negative pending amount")

    @property
    def currency(self) -> str:
        return self.total_debt_acquired.currency.code

    @property
    def is_bad_debt(self) -> bool:
        return self.bad_debt_date is not None

    @property
    def is_renewal(self) -> bool:
        return self.previous_loan_id is not None


@dataclass(frozen=True)
class Payment:
    """A payment received against a loan. Append-only."""

    id: str
    loan_id: str
    amount: Money
    received_at: datetime
    comission: Money | None = None
    payment_method: PaymentMethod = PaymentMethod.CASH


@dataclass(frozen=True)
class Transaction:
    """
    A ledger movement between accounts.

    Under the legacy convention an INCOME row names the credited account in
    ``source_account_id``; see loan_engines.ledger_balance.
    """

    id: str
    amount: Money
    date: datetime
    type: TransactionType
    source_account_id: str | None = None
    destination_account_id: str | None = None
    loan_id: str | None = None
    payment_id: str | None = None
    route_id: str | None = None
    lead_id: str | None = None


@dataclass(frozen=True)
class Account:
    """A cash account with its cached balance."""

    id: str
    type: AccountType
    amount: Money
    name: str | None = None


@dataclass(frozen=True)
class Lead:
    """
    Field agent ("lider") that originates loans.

    ``route_id``/``route_name`` is the lead's live route assignment and
    ``locality_id``/``locality_name`` the lead's registered address.
    """

    id: str
    name: str | None = None
    route_id: str | None = None
    route_name: str | None = None
    locality_id: str | None = None
    locality_name: str | None = None
