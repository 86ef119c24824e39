"""
Module: loan_engines
Responsibility:
    Package entrypoint that re-exports the public symbols of the pure
    calculation engines. This is the canonical import surface for higher
    layers (loan_services, storage adapters, report renderers).

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import loan_kernel (and sibling engine modules).
    MUST NOT import loan_services or loan_config.

Invariants enforced:
    - Purity: engines never read the clock directly. ``now`` is passed in,
      or read from an injected Clock by WeekCalendar.current_week().
    - Decimal-only arithmetic: every monetary amount is Money; floats are
      rejected.
    - Determinism: identical inputs always produce identical outputs.

Audit relevance:
    Engine entry points are traced via ``@traced_engine`` (see
    ``loan_engines.tracer``), emitting LOAN_ENGINE_TRACE log records with
    engine name, version, input fingerprint and duration.

Usage:
    from loan_engines.loan_metrics import LoanMetricsCalculator
    from loan_engines.payment_allocation import PaymentAllocator
    from loan_engines.delinquency import DelinquencyClassifier
    from loan_engines.portfolio import PortfolioAggregator
    from loan_engines.ledger_balance import LedgerBalanceRecalculator
"""

from loan_engines.arrears import ArrearsCalculator, ArrearsMode, ArrearsResult, WeekSurplus
from loan_engines.attribution import (
    Attribution,
    AttributionChain,
    DefaultStep,
    LeadLocalityStep,
    LeadRouteStep,
    SnapshotRouteStep,
    locality_chain,
    route_chain,
)
from loan_engines.delinquency import (
    DelinquencyClassifier,
    DelinquencyStatus,
    ExclusionReason,
    LoanWeekClassification,
)
from loan_engines.ledger_balance import (
    BalanceBreakdown,
    BalanceCheck,
    LedgerBalanceRecalculator,
    LedgerConvention,
    affected_accounts,
    normalize_legacy_transaction,
)
from loan_engines.loan_metrics import LoanMetrics, LoanMetricsCalculator
from loan_engines.payment_allocation import BalanceUpdate, PaymentAllocation, PaymentAllocator
from loan_engines.portfolio import (
    ClientBalance,
    PartitionRow,
    PeriodComparison,
    PeriodType,
    PortfolioAggregator,
    PortfolioReport,
    PortfolioSummary,
    RenovationKPIs,
    StatusCounts,
    Trend,
    WeekRow,
)
from loan_engines.profit_inheritance import InheritedProfit, ProfitInheritanceCalculator
from loan_engines.proration import ProfitSplit, profit_ratio, prorate
from loan_engines.tracer import traced_engine
from loan_engines.week_calendar import MonthWeekAssignment, WeekCalendar
from loan_engines.write_off import (
    BadDebtFilter,
    WriteOffCandidate,
    WriteOffScreener,
    WriteOffSummary,
)

__all__ = [
    # Week calendar
    "MonthWeekAssignment",
    "WeekCalendar",
    # Loan economics
    "LoanMetrics",
    "LoanMetricsCalculator",
    "InheritedProfit",
    "ProfitInheritanceCalculator",
    "ProfitSplit",
    "profit_ratio",
    "prorate",
    # Payments
    "BalanceUpdate",
    "PaymentAllocation",
    "PaymentAllocator",
    # Delinquency
    "DelinquencyClassifier",
    "DelinquencyStatus",
    "ExclusionReason",
    "LoanWeekClassification",
    # Attribution
    "Attribution",
    "AttributionChain",
    "DefaultStep",
    "LeadLocalityStep",
    "LeadRouteStep",
    "SnapshotRouteStep",
    "locality_chain",
    "route_chain",
    # Portfolio
    "ClientBalance",
    "PartitionRow",
    "PeriodComparison",
    "PeriodType",
    "PortfolioAggregator",
    "PortfolioReport",
    "PortfolioSummary",
    "RenovationKPIs",
    "StatusCounts",
    "Trend",
    "WeekRow",
    # Ledger
    "BalanceBreakdown",
    "BalanceCheck",
    "LedgerBalanceRecalculator",
    "LedgerConvention",
    "affected_accounts",
    "normalize_legacy_transaction",
    # Arrears and write-off
    "ArrearsCalculator",
    "ArrearsMode",
    "ArrearsResult",
    "WeekSurplus",
    "BadDebtFilter",
    "WriteOffCandidate",
    "WriteOffScreener",
    "WriteOffSummary",
    # Tracing
    "traced_engine",
]
