"""
Module: loan_engines.portfolio
Responsibility:
    Aggregate per-loan delinquency classifications and lifecycle events into
    portfolio statistics: active/current/delinquent counts, client balance
    (new, renewed and closed clients), renewal KPIs, and weekly or monthly
    reports broken down by route and by locality.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Composes loan_engines.week_calendar, loan_engines.delinquency and
    loan_engines.attribution. ``now`` is always an explicit argument.

Invariants enforced:
    - ``current + delinquent == total_active`` for every StatusCounts.
    - Monthly ``avg_delinquent`` averages completed weeks only
      (``now > week.end``); it is 0 when no week is completed.
    - New, renewed and closed counts cover every week of the period,
      completed or not.
    - Breakdown partitions are disjoint: each loan lands in exactly one
      route and one locality.

Failure modes:
    - EmptyPeriodError if a month yields no weeks.
    - ValueError from WeekCalendar for invalid year/week/month arguments.

Usage:
    from loan_engines.portfolio import PortfolioAggregator

    aggregator = PortfolioAggregator(calendar=WeekCalendar())
    report = aggregator.monthly_report(loans, payments_by_loan, 2024, 3, now)
    report.summary.avg_delinquent
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum

from loan_engines.attribution import AttributionChain, locality_chain, route_chain
from loan_engines.delinquency import DelinquencyClassifier, DelinquencyStatus
from loan_engines.tracer import traced_engine
from loan_engines.week_calendar import MonthWeekAssignment, WeekCalendar
from loan_kernel.domain.records import Lead, Loan, LoanStatus, Payment, WeekRange
from loan_kernel.exceptions import EmptyPeriodError
from loan_kernel.logging_config import get_logger

logger = get_logger("engines.portfolio")

ZERO = Decimal("0")
TWO_PLACES = Decimal("0.01")
FOUR_PLACES = Decimal("0.0001")

PaymentsByLoan = Mapping[str, Sequence[Payment]]


class Trend(str, Enum):
    UP = "UP"
    DOWN = "DOWN"
    STABLE = "STABLE"


class PeriodType(str, Enum):
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"


def trend_of(current: Decimal | int, previous: Decimal | int = 0) -> Trend:
    """UP, DOWN or STABLE comparing ``current`` with ``previous``."""
    if current > previous:
        return Trend.UP
    if current < previous:
        return Trend.DOWN
    return Trend.STABLE


def _in_range(moment: datetime | None, start: datetime, end: datetime) -> bool:
    return moment is not None and start <= moment <= end


def is_new_client_in_period(loan: Loan, start: datetime, end: datetime) -> bool:
    """First loan of a client (no predecessor) signed inside the period."""
    return loan.previous_loan_id is None and _in_range(loan.sign_date, start, end)


def is_renewed_client_in_period(loan: Loan, start: datetime, end: datetime) -> bool:
    """Successor loan (has a predecessor) signed inside the period."""
    return loan.previous_loan_id is not None and _in_range(loan.sign_date, start, end)


def is_renewal_in_period(loan: Loan, start: datetime, end: datetime) -> bool:
    """
    Predecessor renewed inside the period, as counted by renewal KPIs.

    ``renewed_date`` decides when present; RENOVATED loans without it fall
    back to ``finished_date``.
    """
    if loan.renewed_date is not None:
        return _in_range(loan.renewed_date, start, end)
    if loan.status == LoanStatus.RENOVATED:
        return _in_range(loan.finished_date, start, end)
    return False


def is_closed_without_renewal(loan: Loan, start: datetime, end: datetime) -> bool:
    """Loan finished inside the period and never renewed."""
    if loan.renewed_date is not None or loan.status == LoanStatus.RENOVATED:
        return False
    return _in_range(loan.finished_date, start, end)


# ---------------------------------------------------------------------------
# Result types
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class StatusCounts:
    """
    Active loans of a week split into current and delinquent.

    Guarantees:
        - ``current + delinquent == total_active``.
    """

    total_active: int
    current: int
    delinquent: int
    exited_delinquency: int = 0


@dataclass(frozen=True)
class ClientBalance:
    new: int
    renewed: int
    closed_without_renewal: int
    balance: int
    trend: Trend


@dataclass(frozen=True)
class RenovationKPIs:
    renewals: int
    closures_without_renewal: int
    renewal_rate: Decimal
    trend: Trend = Trend.STABLE


@dataclass(frozen=True)
class WeekRow:
    """
    One week of a report.

    ``delinquent`` is None for weeks not yet completed.
    """

    week: WeekRange
    active: int
    delinquent: int | None
    balance: int
    is_completed: bool


@dataclass(frozen=True)
class PartitionRow:
    """Counts for one route or locality."""

    key: str
    name: str
    active: int
    current: int
    delinquent: int
    client_balance: ClientBalance


@dataclass(frozen=True)
class PeriodComparison:
    previous_active: int
    previous_delinquent: Decimal
    previous_balance: int
    delinquent_change: Decimal
    balance_change: int


@dataclass(frozen=True)
class PortfolioSummary:
    total_active: int
    current: int
    delinquent: int
    client_balance: ClientBalance
    avg_delinquent: Decimal | None = None
    completed_weeks: int = 0
    total_weeks: int = 1
    comparison: PeriodComparison | None = None


@dataclass(frozen=True)
class PortfolioReport:
    """
    Weekly or monthly portfolio report.

    Contract:
        Frozen snapshot; ``generated_at`` is the ``now`` the report was
        computed with.
    """

    period_type: PeriodType
    year: int
    period_start: datetime
    period_end: datetime
    summary: PortfolioSummary
    weekly_data: tuple[WeekRow, ...]
    by_route: tuple[PartitionRow, ...]
    by_locality: tuple[PartitionRow, ...]
    renovation_kpis: RenovationKPIs
    generated_at: datetime
    week_number: int | None = None
    month: int | None = None


# ---------------------------------------------------------------------------
# Aggregator
# ---------------------------------------------------------------------------


class PortfolioAggregator:
    """
    Portfolio statistics over loans and their payments.

    Contract:
        Pure functions -- loans, payments and ``now`` are passed in.
    Guarantees:
        - Reports are deterministic for identical inputs.
    Non-goals:
        - Does not load loans; callers pass every loan relevant to the
          period (active ones plus those finished or renewed in it).
    """

    def __init__(
        self,
        calendar: WeekCalendar | None = None,
        classifier: DelinquencyClassifier | None = None,
        routes: AttributionChain | None = None,
        localities: AttributionChain | None = None,
        month_week_assignment: MonthWeekAssignment = MonthWeekAssignment.INTERSECT,
    ):
        self._calendar = calendar or WeekCalendar()
        self._classifier = classifier or DelinquencyClassifier()
        self._routes = routes or route_chain()
        self._localities = localities or locality_chain()
        self._assignment = month_week_assignment

    @property
    def calendar(self) -> WeekCalendar:
        return self._calendar

    # ------------------------------------------------------------------
    # Building blocks
    # ------------------------------------------------------------------

    def count_status(
        self,
        loans: Sequence[Loan],
        payments_by_loan: PaymentsByLoan,
        week: WeekRange,
    ) -> StatusCounts:
        """Active, current and delinquent loan counts for ``week``."""
        active = delinquent = exited = 0
        for loan in loans:
            result = self._classifier.evaluate(loan, payments_by_loan.get(loan.id, ()), week)
            if result.status == DelinquencyStatus.EXCLUDED:
                continue
            active += 1
            if result.status == DelinquencyStatus.DELINQUENT:
                delinquent += 1
            if result.exited_delinquency:
                exited += 1
        return StatusCounts(
            total_active=active,
            current=active - delinquent,
            delinquent=delinquent,
            exited_delinquency=exited,
        )

    def client_balance(
        self,
        loans: Sequence[Loan],
        period_start: datetime,
        period_end: datetime,
        previous_balance: int | None = None,
    ) -> ClientBalance:
        """
        New, renewed and closed-without-renewal clients in the period.

        ``renewed`` counts successor loans by their sign date, so a renewal
        lands in the period its new loan was signed even when the
        predecessor is not in ``loans``.

        ``balance = new + renewed - closed_without_renewal``. The trend
        compares against ``previous_balance`` when given, else against 0.
        """
        new = sum(1 for loan in loans if is_new_client_in_period(loan, period_start, period_end))
        renewed = sum(
            1 for loan in loans if is_renewed_client_in_period(loan, period_start, period_end)
        )
        closed = sum(1 for loan in loans if is_closed_without_renewal(loan, period_start, period_end))
        balance = new + renewed - closed
        return ClientBalance(
            new=new,
            renewed=renewed,
            closed_without_renewal=closed,
            balance=balance,
            trend=trend_of(balance, previous_balance if previous_balance is not None else 0),
        )

    def renovation_kpis(
        self,
        loans: Sequence[Loan],
        period_start: datetime,
        period_end: datetime,
        previous_rate: Decimal | None = None,
    ) -> RenovationKPIs:
        """Renewals versus closures without renewal; rate to four places."""
        renewals = sum(1 for loan in loans if is_renewal_in_period(loan, period_start, period_end))
        closures = sum(
            1 for loan in loans if is_closed_without_renewal(loan, period_start, period_end)
        )
        total = renewals + closures
        rate = ZERO
        if total > 0:
            rate = (Decimal(renewals) / Decimal(total)).quantize(FOUR_PLACES, rounding=ROUND_HALF_UP)
        trend = trend_of(rate, previous_rate) if previous_rate is not None else Trend.STABLE
        return RenovationKPIs(
            renewals=renewals,
            closures_without_renewal=closures,
            renewal_rate=rate,
            trend=trend,
        )

    def _breakdown(
        self,
        chain: AttributionChain,
        loans: Sequence[Loan],
        payments_by_loan: PaymentsByLoan,
        week: WeekRange,
        leads: Mapping[str, Lead] | None,
    ) -> tuple[PartitionRow, ...]:
        groups: dict[str, tuple[str, list[Loan]]] = {}
        for loan in loans:
            attribution = chain.resolve(loan, leads)
            groups.setdefault(attribution.key, (attribution.name, []))[1].append(loan)

        rows: list[PartitionRow] = []
        for key, (name, members) in groups.items():
            counts = self.count_status(members, payments_by_loan, week)
            balance = self.client_balance(members, week.start, week.end)
            if counts.total_active == 0 and not (
                balance.new or balance.renewed or balance.closed_without_renewal
            ):
                continue
            rows.append(PartitionRow(
                key=key,
                name=name,
                active=counts.total_active,
                current=counts.current,
                delinquent=counts.delinquent,
                client_balance=balance,
            ))
        rows.sort(key=lambda r: (-r.active, r.name, r.key))
        return tuple(rows)

    def breakdown_by_route(
        self,
        loans: Sequence[Loan],
        payments_by_loan: PaymentsByLoan,
        week: WeekRange,
        leads: Mapping[str, Lead] | None = None,
    ) -> tuple[PartitionRow, ...]:
        """Per-route counts for ``week``, largest active count first."""
        return self._breakdown(self._routes, loans, payments_by_loan, week, leads)

    def breakdown_by_locality(
        self,
        loans: Sequence[Loan],
        payments_by_loan: PaymentsByLoan,
        week: WeekRange,
        leads: Mapping[str, Lead] | None = None,
    ) -> tuple[PartitionRow, ...]:
        """Per-locality counts for ``week``, largest active count first."""
        return self._breakdown(self._localities, loans, payments_by_loan, week, leads)

    # ------------------------------------------------------------------
    # Reports
    # ------------------------------------------------------------------

    @traced_engine("portfolio", "1.0", fingerprint_fields=("year", "week_number", "now"))
    def weekly_report(
        self,
        loans: Sequence[Loan],
        payments_by_loan: PaymentsByLoan,
        year: int,
        week_number: int,
        now: datetime,
        leads: Mapping[str, Lead] | None = None,
    ) -> PortfolioReport:
        """Report for a single week with a comparison against the week before."""
        week = self._calendar.week_range(year, week_number)
        previous = self._calendar.previous_week(week)

        counts = self.count_status(loans, payments_by_loan, week)
        prev_counts = self.count_status(loans, payments_by_loan, previous)
        prev_balance = self.client_balance(loans, previous.start, previous.end)
        balance = self.client_balance(loans, week.start, week.end, prev_balance.balance)

        comparison = PeriodComparison(
            previous_active=prev_counts.total_active,
            previous_delinquent=Decimal(prev_counts.delinquent),
            previous_balance=prev_balance.balance,
            delinquent_change=Decimal(counts.delinquent - prev_counts.delinquent),
            balance_change=balance.balance - prev_balance.balance,
        )
        completed = week.is_completed(now)
        summary = PortfolioSummary(
            total_active=counts.total_active,
            current=counts.current,
            delinquent=counts.delinquent,
            client_balance=balance,
            completed_weeks=1 if completed else 0,
            total_weeks=1,
            comparison=comparison,
        )
        prev_kpis = self.renovation_kpis(loans, previous.start, previous.end)

        logger.info("portfolio_report_generated", extra={
            "period_type": PeriodType.WEEKLY.value,
            "period": week.label,
            "loan_count": len(loans),
            "total_active": counts.total_active,
            "delinquent": counts.delinquent,
        })

        return PortfolioReport(
            period_type=PeriodType.WEEKLY,
            year=year,
            week_number=week_number,
            period_start=week.start,
            period_end=week.end,
            summary=summary,
            weekly_data=(WeekRow(
                week=week,
                active=counts.total_active,
                delinquent=counts.delinquent if completed else None,
                balance=balance.balance,
                is_completed=completed,
            ),),
            by_route=self.breakdown_by_route(loans, payments_by_loan, week, leads),
            by_locality=self.breakdown_by_locality(loans, payments_by_loan, week, leads),
            renovation_kpis=self.renovation_kpis(
                loans, week.start, week.end, prev_kpis.renewal_rate
            ),
            generated_at=now,
        )

    def _average_delinquent(
        self,
        loans: Sequence[Loan],
        payments_by_loan: PaymentsByLoan,
        completed: Sequence[WeekRange],
    ) -> Decimal:
        if not completed:
            return Decimal("0.00")
        total = sum(
            self.count_status(loans, payments_by_loan, week).delinquent for week in completed
        )
        return (Decimal(total) / Decimal(len(completed))).quantize(
            TWO_PLACES, rounding=ROUND_HALF_UP
        )

    def _previous_month_comparison(
        self,
        loans: Sequence[Loan],
        payments_by_loan: PaymentsByLoan,
        year: int,
        month: int,
        now: datetime,
        avg_delinquent: Decimal,
        balance: int,
    ) -> tuple[PeriodComparison | None, ClientBalance | None, RenovationKPIs | None]:
        prev_year, prev_month = (year - 1, 12) if month == 1 else (year, month - 1)
        prev_weeks = self._calendar.month_weeks(prev_year, prev_month, self._assignment)
        completed = [w for w in prev_weeks if w.is_completed(now)]
        if not prev_weeks or not completed:
            return None, None, None

        start, end = prev_weeks[0].start, prev_weeks[-1].end
        prev_balance = self.client_balance(loans, start, end)
        prev_avg = self._average_delinquent(loans, payments_by_loan, completed)
        prev_counts = self.count_status(loans, payments_by_loan, completed[-1])
        comparison = PeriodComparison(
            previous_active=prev_counts.total_active,
            previous_delinquent=prev_avg,
            previous_balance=prev_balance.balance,
            delinquent_change=avg_delinquent - prev_avg,
            balance_change=balance - prev_balance.balance,
        )
        return comparison, prev_balance, self.renovation_kpis(loans, start, end)

    @traced_engine("portfolio", "1.0", fingerprint_fields=("year", "month", "now"))
    def monthly_report(
        self,
        loans: Sequence[Loan],
        payments_by_loan: PaymentsByLoan,
        year: int,
        month: int,
        now: datetime,
        leads: Mapping[str, Lead] | None = None,
    ) -> PortfolioReport:
        """
        Report for a calendar month.

        Postconditions:
            - ``weekly_data`` has one row per week of the month.
            - ``summary.avg_delinquent`` averages completed weeks only.
            - ``summary`` counts and the breakdowns use the last completed
              week, or the first week when none is completed yet.
        Raises:
            EmptyPeriodError: the month yields no weeks.
        """
        weeks = self._calendar.month_weeks(year, month, self._assignment)
        if not weeks:
            raise EmptyPeriodError(year, month)

        period_start, period_end = weeks[0].start, weeks[-1].end
        completed = [w for w in weeks if w.is_completed(now)]

        rows: list[WeekRow] = []
        for week in weeks:
            counts = self.count_status(loans, payments_by_loan, week)
            is_completed = week.is_completed(now)
            rows.append(WeekRow(
                week=week,
                active=counts.total_active,
                delinquent=counts.delinquent if is_completed else None,
                balance=self.client_balance(loans, week.start, week.end).balance,
                is_completed=is_completed,
            ))

        avg_delinquent = self._average_delinquent(loans, payments_by_loan, completed)

        summary_week = completed[-1] if completed else weeks[0]
        counts = self.count_status(loans, payments_by_loan, summary_week)
        if not completed:
            # Delinquency is not known until a week closes.
            counts = StatusCounts(
                total_active=counts.total_active,
                current=counts.total_active,
                delinquent=0,
            )

        raw_balance = self.client_balance(loans, period_start, period_end)
        comparison, prev_balance, prev_kpis = self._previous_month_comparison(
            loans, payments_by_loan, year, month, now, avg_delinquent, raw_balance.balance
        )
        balance = raw_balance
        if prev_balance is not None:
            balance = self.client_balance(loans, period_start, period_end, prev_balance.balance)

        summary = PortfolioSummary(
            total_active=counts.total_active,
            current=counts.current,
            delinquent=counts.delinquent,
            client_balance=balance,
            avg_delinquent=avg_delinquent,
            completed_weeks=len(completed),
            total_weeks=len(weeks),
            comparison=comparison,
        )

        logger.info("portfolio_report_generated", extra={
            "period_type": PeriodType.MONTHLY.value,
            "period": f"{year}-{month:02d}",
            "loan_count": len(loans),
            "week_count": len(weeks),
            "completed_weeks": len(completed),
            "avg_delinquent": str(avg_delinquent),
        })

        return PortfolioReport(
            period_type=PeriodType.MONTHLY,
            year=year,
            month=month,
            period_start=period_start,
            period_end=period_end,
            summary=summary,
            weekly_data=tuple(rows),
            by_route=self.breakdown_by_route(loans, payments_by_loan, summary_week, leads),
            by_locality=self.breakdown_by_locality(loans, payments_by_loan, summary_week, leads),
            renovation_kpis=self.renovation_kpis(
                loans, period_start, period_end,
                prev_kpis.renewal_rate if prev_kpis is not None else None,
            ),
            generated_at=now,
        )
