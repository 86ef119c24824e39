"""
Loan Kernel

Domain core of the microloan engine:
- Decimal-backed Money with per-currency rounding
- Immutable loan, payment and ledger records
- Injectable clock
- Typed errors and structured logging
"""

__version__ = "0.1.0"
