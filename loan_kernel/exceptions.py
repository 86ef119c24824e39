"""
Typed Exception Hierarchy for the loan engine.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Every failure the engine reports is a local validation failure that must
abort the caller's enclosing storage transaction. Callers catch by type,
never by message, and map ``code`` straight onto an API error:

    try:
        renewal = lifecycle.renew(predecessor, request)
    except PredecessorAlreadyRenewedError as e:
        api_error(code=e.code, loan=e.loan_id)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    LoanEngineError (base)
    |
    +-- ValidationError
    |   +-- InvalidAmountError
    |   +-- InvalidTermError
    |   +-- InvalidRateError
    |
    +-- LoanLifecycleError
    |   +-- PredecessorAlreadyRenewedError
    |   +-- LoanStateError
    |
    +-- CalendarError
    |   +-- EmptyPeriodError
    |
    +-- ConfigError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                         | When Raised
----------------|------------------------------|----------------------------------------
Validation      | INVALID_AMOUNT               | Negative or non-finite money input
                | INVALID_TERM                 | term_weeks <= 0
                | INVALID_RATE                 | rate < 0
----------------|------------------------------|----------------------------------------
Lifecycle       | PREDECESSOR_ALREADY_RENEWED  | Renewal would fork a renewal chain
                | LOAN_STATE_INVALID           | Operation not allowed in loan status
----------------|------------------------------|----------------------------------------
Calendar        | EMPTY_PERIOD                 | Requested month yields no weeks
----------------|------------------------------|----------------------------------------
Config          | CONFIG_INVALID               | Engine configuration value rejected

Arithmetic edge cases (zero denominators such as total_debt == 0) are NOT
errors; the engines return zero for them.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any


class LoanEngineError(Exception):
    """
    Base exception for all loan engine errors.

    All subclasses carry a ``code`` class attribute for machine-readable
    error identification.
    """

    code: str = "LOAN_ENGINE_ERROR"


# Validation exceptions


class ValidationError(LoanEngineError):
    """Base exception for rejected engine inputs."""

    code: str = "VALIDATION_ERROR"


class InvalidAmountError(ValidationError):
    """A monetary input is negative or not a finite number."""

    code: str = "INVALID_AMOUNT"

    def __init__(self, field: str, amount: Any):
        self.field = field
        self.amount = str(amount)
        super().__init__(f"Invalid amount for {field}: {amount}")


class InvalidTermError(ValidationError):
    """Loan term must be a positive number of weeks."""

    code: str = "INVALID_TERM"

    def __init__(self, term_weeks: int):
        self.term_weeks = term_weeks
        super().__init__(f"Loan term must be positive, got {term_weeks} weeks")


class InvalidRateError(ValidationError):
    """Flat rate cannot be negative."""

    code: str = "INVALID_RATE"

    def __init__(self, rate: Decimal):
        self.rate = str(rate)
        super().__init__(f"Loan rate cannot be negative, got {rate}")


# Lifecycle exceptions


class LoanLifecycleError(LoanEngineError):
    """Base exception for loan state transition errors."""

    code: str = "LOAN_LIFECYCLE_ERROR"


class PredecessorAlreadyRenewedError(LoanLifecycleError):
    """
    The predecessor loan already has a successor.

    Renewing it again would fork the renewal chain.
    """

    code: str = "PREDECESSOR_ALREADY_RENEWED"

    def __init__(self, loan_id: str, renewed_date: Any = None):
        self.loan_id = loan_id
        self.renewed_date = renewed_date
        super().__init__(f"Loan {loan_id} has already been renewed")


class LoanStateError(LoanLifecycleError):
    """Operation is not allowed for the loan's current status."""

    code: str = "LOAN_STATE_INVALID"

    def __init__(self, loan_id: str, status: str, operation: str):
        self.loan_id = loan_id
        self.status = status
        self.operation = operation
        super().__init__(f"Cannot {operation} loan {loan_id} in status {status}")


# Calendar exceptions


class CalendarError(LoanEngineError):
    """Base exception for calendar misuse."""

    code: str = "CALENDAR_ERROR"


class EmptyPeriodError(CalendarError):
    """The requested reporting period contains no weeks."""

    code: str = "EMPTY_PERIOD"

    def __init__(self, year: int, month: int):
        self.year = year
        self.month = month
        super().__init__(f"No weeks found for {year}-{month:02d}")


# Configuration exceptions


class ConfigError(LoanEngineError):
    """An engine configuration value is missing or invalid."""

    code: str = "CONFIG_INVALID"

    def __init__(self, key: str, value: Any, reason: str):
        self.key = key
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid configuration for {key}={value!r}: {reason}")
