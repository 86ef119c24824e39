"""
Engine wiring from configuration.

``engines_from_config`` is the one place where an EngineConfig becomes
constructor arguments. Engines themselves never import ``loan_config``.
"""

from __future__ import annotations

from dataclasses import dataclass
from zoneinfo import ZoneInfo

from loan_config.schema import EngineConfig
from loan_engines.arrears import ArrearsCalculator
from loan_engines.attribution import locality_chain, route_chain
from loan_engines.delinquency import DelinquencyClassifier
from loan_engines.ledger_balance import LedgerBalanceRecalculator
from loan_engines.portfolio import PortfolioAggregator
from loan_engines.week_calendar import WeekCalendar
from loan_engines.write_off import WriteOffScreener
from loan_kernel.domain.clock import Clock, SystemClock
from loan_services.lifecycle import LoanLifecycleService


@dataclass(frozen=True)
class EngineSet:
    """Engines configured from one EngineConfig."""

    config: EngineConfig
    calendar: WeekCalendar
    classifier: DelinquencyClassifier
    portfolio: PortfolioAggregator
    ledger: LedgerBalanceRecalculator
    arrears: ArrearsCalculator
    write_off: WriteOffScreener
    lifecycle: LoanLifecycleService


def engines_from_config(config: EngineConfig, clock: Clock | None = None) -> EngineSet:
    clock = clock or SystemClock()
    tz = ZoneInfo(config.timezone) if config.timezone else None
    calendar = WeekCalendar(clock=clock, tz=tz)
    classifier = DelinquencyClassifier(
        sign_week_grace=config.delinquency.sign_week_grace,
        exit_payment_threshold=config.delinquency.exit_payment_threshold,
    )
    rules = config.attribution
    portfolio = PortfolioAggregator(
        calendar=calendar,
        classifier=classifier,
        routes=route_chain(rules.default_route_id, rules.default_route_name),
        localities=locality_chain(rules.default_locality_id, rules.default_locality_name),
        month_week_assignment=config.calendar.month_week_assignment,
    )
    return EngineSet(
        config=config,
        calendar=calendar,
        classifier=classifier,
        portfolio=portfolio,
        ledger=LedgerBalanceRecalculator(convention=config.ledger.convention),
        arrears=ArrearsCalculator(calendar=calendar),
        write_off=WriteOffScreener(currency=config.currency),
        lifecycle=LoanLifecycleService(clock=clock, tz=tz),
    )
