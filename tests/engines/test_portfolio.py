"""
Tests for portfolio aggregation and reports.

The ``book`` fixture is a small January 2024 portfolio:

    A  new, signed Wed 2024-01-03, paid in weeks 2 and 3      route r1
    B  new, signed Wed 2024-01-03, never paid                  route r1
    C  renewal of X, signed Tue 2024-01-16, paid in week 4     route r2
    X  signed 2023-12-04, paid in week 1, renewed 2024-01-16   route r2
    F  signed 2023-11-06, paid in weeks 1-2, finished 01-11    route r1

With ``now`` on Wed 2024-01-24, weeks 1-3 of January are completed.
"""

from datetime import datetime
from decimal import Decimal

import pytest

from loan_engines.portfolio import (
    PeriodType,
    PortfolioAggregator,
    Trend,
    is_closed_without_renewal,
    is_new_client_in_period,
    is_renewal_in_period,
    trend_of,
)
from loan_engines.week_calendar import MonthWeekAssignment, WeekCalendar
from loan_kernel.domain.records import LoanStatus
from loan_kernel.domain.values import Money
from loan_kernel.exceptions import EmptyPeriodError

NOW = datetime(2024, 1, 24, 12, 0)


@pytest.fixture
def book(make_loan, make_payment):
    loans = [
        make_loan("A", sign_date=datetime(2024, 1, 3, 10, 0), snapshot_route_id="r1",
                  snapshot_route_name="Ruta 1"),
        make_loan("B", sign_date=datetime(2024, 1, 3, 11, 0), snapshot_route_id="r1",
                  snapshot_route_name="Ruta 1"),
        make_loan("C", sign_date=datetime(2024, 1, 16, 10, 0), previous_loan_id="X",
                  snapshot_route_id="r2", snapshot_route_name="Ruta 2"),
        make_loan("X", sign_date=datetime(2023, 12, 4, 10, 0), status=LoanStatus.RENOVATED,
                  renewed_date=datetime(2024, 1, 16, 9, 0), snapshot_route_id="r2",
                  snapshot_route_name="Ruta 2"),
        make_loan("F", sign_date=datetime(2023, 11, 6, 10, 0), status=LoanStatus.FINISHED,
                  finished_date=datetime(2024, 1, 11, 10, 0),
                  pending_amount_stored=Money.zero("MXN"), snapshot_route_id="r1",
                  snapshot_route_name="Ruta 1"),
    ]
    payments = [
        make_payment("A", "140", datetime(2024, 1, 10, 9, 0)),
        make_payment("A", "140", datetime(2024, 1, 17, 9, 0)),
        make_payment("C", "140", datetime(2024, 1, 23, 9, 0)),
        make_payment("X", "140", datetime(2024, 1, 5, 9, 0)),
        make_payment("F", "140", datetime(2024, 1, 5, 9, 0)),
        make_payment("F", "140", datetime(2024, 1, 9, 9, 0)),
    ]
    by_loan: dict[str, list] = {}
    for payment in payments:
        by_loan.setdefault(payment.loan_id, []).append(payment)
    return loans, by_loan


@pytest.fixture
def aggregator(calendar):
    return PortfolioAggregator(calendar=calendar)


class TestPeriodPredicates:
    def test_new_client(self, make_loan):
        start, end = datetime(2024, 1, 1), datetime(2024, 1, 31)
        assert is_new_client_in_period(make_loan(), start, end)
        assert not is_new_client_in_period(make_loan(previous_loan_id="L0"), start, end)

    def test_renewal_falls_back_to_finished_date(self, make_loan):
        loan = make_loan(status=LoanStatus.RENOVATED, finished_date=datetime(2024, 1, 9))
        assert is_renewal_in_period(loan, datetime(2024, 1, 8), datetime(2024, 1, 14))
        assert not is_closed_without_renewal(loan, datetime(2024, 1, 8), datetime(2024, 1, 14))

    def test_trend(self):
        assert trend_of(3, 1) == Trend.UP
        assert trend_of(Decimal("1.5"), Decimal("2")) == Trend.DOWN
        assert trend_of(0) == Trend.STABLE


class TestCountStatus:
    """Active loans split into current and delinquent per week."""

    @pytest.mark.parametrize(
        "week_number, active, delinquent",
        [(1, 4, 2), (2, 3, 2), (3, 3, 2), (4, 3, 2), (5, 3, 3)],
    )
    def test_counts_per_week(self, aggregator, calendar, book, week_number, active, delinquent):
        loans, payments = book
        counts = aggregator.count_status(loans, payments, calendar.week_range(2024, week_number))

        assert counts.total_active == active
        assert counts.delinquent == delinquent
        assert counts.current + counts.delinquent == counts.total_active


class TestClientBalance:
    def test_month_balance(self, aggregator, book):
        loans, _ = book
        balance = aggregator.client_balance(loans, datetime(2024, 1, 1), datetime(2024, 2, 4, 23, 59))

        assert (balance.new, balance.renewed, balance.closed_without_renewal) == (2, 1, 1)
        assert balance.balance == 2
        assert balance.trend == Trend.UP

    def test_trend_against_previous(self, aggregator, book):
        loans, _ = book
        balance = aggregator.client_balance(
            loans, datetime(2024, 1, 1), datetime(2024, 2, 4), previous_balance=5
        )
        assert balance.trend == Trend.DOWN

    def test_renewal_counted_without_predecessor(self, aggregator, make_loan):
        successor = make_loan("C", sign_date=datetime(2024, 1, 16, 10, 0), previous_loan_id="X")
        balance = aggregator.client_balance([successor], datetime(2024, 1, 1), datetime(2024, 1, 31))

        assert (balance.new, balance.renewed, balance.closed_without_renewal) == (0, 1, 0)
        assert balance.balance == 1

    def test_renewal_counted_in_successor_sign_period(self, aggregator, make_loan):
        successor = make_loan("C", sign_date=datetime(2024, 1, 31, 10, 0), previous_loan_id="X")
        predecessor = make_loan(
            "X", sign_date=datetime(2023, 12, 4, 10, 0), status=LoanStatus.RENOVATED,
            renewed_date=datetime(2024, 2, 2, 9, 0),
        )
        loans = [successor, predecessor]

        january = aggregator.client_balance(loans, datetime(2024, 1, 1), datetime(2024, 1, 31, 23, 59))
        february = aggregator.client_balance(loans, datetime(2024, 2, 1), datetime(2024, 2, 29, 23, 59))

        assert january.renewed == 1
        assert february.renewed == 0
        kpis = aggregator.renovation_kpis(loans, datetime(2024, 2, 1), datetime(2024, 2, 29, 23, 59))
        assert kpis.renewals == 1

    def test_renovation_kpis(self, aggregator, book):
        loans, _ = book
        kpis = aggregator.renovation_kpis(
            loans, datetime(2024, 1, 1), datetime(2024, 1, 31), previous_rate=Decimal("0")
        )

        assert kpis.renewals == 1
        assert kpis.closures_without_renewal == 1
        assert kpis.renewal_rate == Decimal("0.5000")
        assert kpis.trend == Trend.UP

    def test_renovation_rate_zero_without_events(self, aggregator, book):
        loans, _ = book
        kpis = aggregator.renovation_kpis(loans, datetime(2024, 3, 1), datetime(2024, 3, 31))
        assert kpis.renewal_rate == Decimal("0")
        assert kpis.trend == Trend.STABLE


class TestBreakdowns:
    def test_by_route(self, aggregator, calendar, book):
        loans, payments = book
        rows = aggregator.breakdown_by_route(loans, payments, calendar.week_range(2024, 3))

        assert [(r.key, r.active, r.current, r.delinquent) for r in rows] == [
            ("r1", 2, 1, 1),
            ("r2", 1, 0, 1),
        ]
        assert rows[1].client_balance.renewed == 1

    def test_by_locality_defaults_without_leads(self, aggregator, calendar, book):
        loans, payments = book
        rows = aggregator.breakdown_by_locality(loans, payments, calendar.week_range(2024, 3))

        assert len(rows) == 1
        assert rows[0].name == "Sin localidad"
        assert rows[0].active == 3

    def test_partitions_are_disjoint(self, aggregator, calendar, book):
        loans, payments = book
        week = calendar.week_range(2024, 1)
        rows = aggregator.breakdown_by_route(loans, payments, week)
        total = aggregator.count_status(loans, payments, week)

        assert sum(r.active for r in rows) == total.total_active


class TestWeeklyReport:
    def test_completed_week(self, aggregator, book):
        loans, payments = book
        report = aggregator.weekly_report(loans, payments, 2024, 3, NOW)

        assert report.period_type == PeriodType.WEEKLY
        assert report.week_number == 3
        assert report.period_start == datetime(2024, 1, 15)
        assert (report.summary.total_active, report.summary.delinquent) == (3, 2)
        assert report.summary.completed_weeks == 1
        assert report.weekly_data[0].delinquent == 2
        assert report.generated_at == NOW

    def test_comparison_with_previous_week(self, aggregator, book):
        loans, payments = book
        report = aggregator.weekly_report(loans, payments, 2024, 3, NOW)
        comparison = report.summary.comparison

        assert comparison.previous_active == 3
        assert comparison.delinquent_change == Decimal("0")
        assert comparison.previous_balance == -1
        assert comparison.balance_change == 2
        assert report.summary.client_balance.trend == Trend.UP
        assert report.renovation_kpis.renewal_rate == Decimal("1.0000")

    def test_incomplete_week_hides_delinquency_row(self, aggregator, book):
        loans, payments = book
        report = aggregator.weekly_report(loans, payments, 2024, 4, NOW)

        assert report.weekly_data[0].delinquent is None
        assert not report.weekly_data[0].is_completed
        assert report.summary.completed_weeks == 0


class TestMonthlyReport:
    """Monthly averages use completed weeks only."""

    def test_january(self, aggregator, book):
        loans, payments = book
        report = aggregator.monthly_report(loans, payments, 2024, 1, NOW)
        summary = report.summary

        assert report.period_type == PeriodType.MONTHLY
        assert report.month == 1
        assert len(report.weekly_data) == 5
        assert summary.total_weeks == 5
        assert summary.completed_weeks == 3
        assert summary.avg_delinquent == Decimal("2.00")
        assert (summary.total_active, summary.current, summary.delinquent) == (3, 1, 2)

    def test_weekly_rows(self, aggregator, book):
        loans, payments = book
        report = aggregator.monthly_report(loans, payments, 2024, 1, NOW)

        assert [r.delinquent for r in report.weekly_data] == [2, 2, 2, None, None]
        assert [r.active for r in report.weekly_data] == [4, 3, 3, 3, 3]
        assert [r.balance for r in report.weekly_data] == [2, -1, 1, 0, 0]

    def test_previous_month_comparison(self, aggregator, book):
        loans, payments = book
        report = aggregator.monthly_report(loans, payments, 2024, 1, NOW)
        comparison = report.summary.comparison

        assert comparison.previous_delinquent == Decimal("1.80")
        assert comparison.delinquent_change == Decimal("0.20")
        assert comparison.previous_active == 2
        assert comparison.previous_balance == 1
        assert comparison.balance_change == 1
        assert report.summary.client_balance.trend == Trend.UP
        assert report.renovation_kpis.trend == Trend.UP

    def test_no_completed_weeks(self, aggregator, book):
        loans, payments = book
        report = aggregator.monthly_report(loans, payments, 2024, 2, NOW)

        assert report.summary.avg_delinquent == Decimal("0.00")
        assert report.summary.completed_weeks == 0
        assert report.summary.delinquent == 0
        assert report.summary.current == report.summary.total_active == 3

    def test_weekday_majority_assignment(self, calendar, book):
        loans, payments = book
        aggregator = PortfolioAggregator(
            calendar=calendar, month_week_assignment=MonthWeekAssignment.WEEKDAY_MAJORITY
        )
        report = aggregator.monthly_report(loans, payments, 2024, 3, NOW)

        # Week of Mon 2024-02-26 has four February working days.
        assert report.summary.total_weeks == 4
        assert report.period_start == datetime(2024, 3, 4)
        assert report.summary.comparison is None

    def test_empty_month_raises(self, clock, book):
        class NoWeeks(WeekCalendar):
            def month_weeks(self, year, month, assignment=MonthWeekAssignment.INTERSECT):
                return []

        loans, payments = book
        aggregator = PortfolioAggregator(calendar=NoWeeks(clock=clock))
        with pytest.raises(EmptyPeriodError) as exc_info:
            aggregator.monthly_report(loans, payments, 2024, 1, NOW)
        assert exc_info.value.code == "EMPTY_PERIOD"
