"""
Pure domain layer.

This module contains value objects and records with NO dependencies on:
- ORM or database drivers
- Network transport
- I/O (the SystemClock is the only sanctioned time source)

All domain objects are immutable and deterministic.
"""

from loan_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from loan_kernel.domain.currency import CurrencyInfo, CurrencyRegistry
from loan_kernel.domain.records import (
    Account,
    AccountType,
    Lead,
    Loan,
    LoanStatus,
    Payment,
    PaymentMethod,
    Transaction,
    TransactionType,
    WeekRange,
)
from loan_kernel.domain.values import Currency, Money

__all__ = [
    "Account",
    "AccountType",
    "Clock",
    "Currency",
    "CurrencyInfo",
    "CurrencyRegistry",
    "DeterministicClock",
    "Lead",
    "Loan",
    "LoanStatus",
    "Money",
    "Payment",
    "PaymentMethod",
    "SystemClock",
    "Transaction",
    "TransactionType",
    "WeekRange",
]
