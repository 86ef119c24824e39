"""
Module: loan_engines.week_calendar
Responsibility:
    Map calendar dates onto the Monday-to-Sunday reporting weeks used by
    every delinquency and portfolio figure, and group those weeks into
    reporting months.

Architecture position:
    Engines -- pure calculation layer. The only time source is an injected
    Clock, read solely by ``current_week()``.

Invariants enforced:
    - Week 1 of a year starts on the first Monday on or after January 1.
      Days before that Monday belong to the previous year's last week.
    - A week spans Monday 00:00:00.000 to Sunday 23:59:59.999.
    - Week numbering is contiguous across year boundaries: the week after
      the last week of year Y is week 1 of year Y+1.

Failure modes:
    - ValueError for a week number outside ``1..weeks_in_year(year)`` or a
      month outside ``1..12``.

Usage:
    from loan_engines.week_calendar import WeekCalendar

    calendar = WeekCalendar(clock=clock)
    week = calendar.week_range(2024, 1)      # Mon 2024-01-01 .. Sun 2024-01-07
    weeks = calendar.weeks_in_month(2024, 3)  # every week touching March
"""

from __future__ import annotations

import calendar as _stdcal
from collections import Counter
from datetime import date, datetime, time, timedelta, tzinfo
from enum import Enum

from loan_kernel.domain.clock import Clock, SystemClock
from loan_kernel.domain.records import WEEK_END_OFFSET, WEEK_LENGTH, WeekRange
from loan_kernel.logging_config import get_logger

logger = get_logger("engines.week_calendar")


class MonthWeekAssignment(str, Enum):
    """How weeks are attributed to a reporting month."""

    INTERSECT = "intersect"  # every week touching the month
    WEEKDAY_MAJORITY = "weekday_majority"  # month holding most Mon-Fri days


def first_monday(year: int) -> date:
    """First Monday on or after January 1 of ``year``."""
    jan1 = date(year, 1, 1)
    return jan1 + timedelta(days=(7 - jan1.weekday()) % 7)


def _validate_month(month: int) -> None:
    if not 1 <= month <= 12:
        raise ValueError(f"Month must be in 1..12, got {month}")


class WeekCalendar:
    """
    Monday-based week calendar.

    Contract:
        Pure date arithmetic. Week bounds are built in ``tz`` (naive when
        ``tz`` is None) so they compare directly against record datetimes
        stored in the same convention.
    Guarantees:
        - ``week_of(week.start) == week`` for every week produced here.
        - ``weeks_in_month`` is ascending with no duplicates.
    """

    def __init__(self, clock: Clock | None = None, tz: tzinfo | None = None):
        self._clock = clock or SystemClock()
        self._tz = tz

    @property
    def tz(self) -> tzinfo | None:
        return self._tz

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    def _build(self, monday: date) -> WeekRange:
        start = datetime.combine(monday, time(), tzinfo=self._tz)
        year = monday.year
        week_number = (monday - first_monday(year)).days // 7 + 1
        return WeekRange(
            start=start,
            end=start + WEEK_END_OFFSET,
            week_number=week_number,
            year=year,
        )

    def _local_date(self, moment: date | datetime) -> date:
        if isinstance(moment, datetime):
            if moment.tzinfo is not None and self._tz is not None:
                moment = moment.astimezone(self._tz)
            return moment.date()
        return moment

    def weeks_in_year(self, year: int) -> int:
        """Number of weeks in ``year`` (its count of Mondays: 52 or 53)."""
        return (date(year, 12, 31) - first_monday(year)).days // 7 + 1

    def week_range(self, year: int, week_number: int) -> WeekRange:
        """
        Bounds of week ``week_number`` of ``year``.

        Raises:
            ValueError: If ``week_number`` is outside ``1..weeks_in_year(year)``.
        """
        total = self.weeks_in_year(year)
        if not 1 <= week_number <= total:
            raise ValueError(
                f"Week number must be in 1..{total} for {year}, got {week_number}"
            )
        monday = first_monday(year) + timedelta(weeks=week_number - 1)
        return self._build(monday)

    def week_of(self, moment: date | datetime) -> WeekRange:
        """The week containing ``moment``."""
        day = self._local_date(moment)
        return self._build(day - timedelta(days=day.weekday()))

    # ------------------------------------------------------------------
    # Navigation
    # ------------------------------------------------------------------

    def current_week(self) -> WeekRange:
        """The week containing the injected clock's current time."""
        return self.week_of(self._clock.now_in(self._tz))

    def previous_week(self, week: WeekRange) -> WeekRange:
        return self._build(week.start.date() - WEEK_LENGTH)

    def next_week(self, week: WeekRange) -> WeekRange:
        return self._build(week.start.date() + WEEK_LENGTH)

    @staticmethod
    def is_completed(week: WeekRange, now: datetime) -> bool:
        """A week is completed once ``now`` is strictly after its end."""
        return week.is_completed(now)

    @staticmethod
    def contains(week: WeekRange, moment: datetime) -> bool:
        return week.contains(moment)

    def weeks_between(self, start: date | datetime, end: date | datetime) -> list[WeekRange]:
        """Every week from the one containing ``start`` to the one containing ``end``."""
        weeks: list[WeekRange] = []
        week = self.week_of(start)
        last = self.week_of(end)
        while week.start <= last.start:
            weeks.append(week)
            week = self.next_week(week)
        return weeks

    # ------------------------------------------------------------------
    # Months
    # ------------------------------------------------------------------

    def weeks_in_month(self, year: int, month: int) -> list[WeekRange]:
        """
        Distinct weeks intersecting any day of the month, ascending.

        The first and last entries may straddle the neighbouring months.
        """
        _validate_month(month)
        last_day = _stdcal.monthrange(year, month)[1]
        return self.weeks_between(date(year, month, 1), date(year, month, last_day))

    @staticmethod
    def week_belongs_to_month(week_start: date | datetime) -> tuple[int, int, int]:
        """
        Month holding most working days (Mon-Fri) of the week.

        Returns:
            ``(year, month, weekdays)`` where ``weekdays`` is how many of the
            five working days fall in that month.
        """
        monday = week_start.date() if isinstance(week_start, datetime) else week_start
        monday = monday - timedelta(days=monday.weekday())
        workdays = [monday + timedelta(days=i) for i in range(5)]
        counts = Counter((d.year, d.month) for d in workdays)
        (year, month), weekdays = counts.most_common(1)[0]
        return year, month, weekdays

    def weeks_assigned_to_month(self, year: int, month: int) -> list[WeekRange]:
        """Weeks whose working-day majority falls in the month."""
        return [
            week
            for week in self.weeks_in_month(year, month)
            if self.week_belongs_to_month(week.start)[:2] == (year, month)
        ]

    def month_weeks(
        self,
        year: int,
        month: int,
        assignment: MonthWeekAssignment = MonthWeekAssignment.INTERSECT,
    ) -> list[WeekRange]:
        """Reporting weeks of a month under the chosen assignment rule."""
        if assignment == MonthWeekAssignment.WEEKDAY_MAJORITY:
            weeks = self.weeks_assigned_to_month(year, month)
        else:
            weeks = self.weeks_in_month(year, month)
        logger.debug("month_weeks_resolved", extra={
            "year": year,
            "month": month,
            "assignment": assignment.value,
            "week_count": len(weeks),
        })
        return weeks
