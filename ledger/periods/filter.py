"""
Period Filter

Classifies a timestamp against a rolling calendar window (day, week,
month, year) anchored at an explicit "now".

DESIGN DECISION: "now" is always a parameter. Nothing in this module reads
the wall clock, so the same inputs always give the same answer.

Calendar rules come from a LedgerCalendar:
- timezone decides which calendar day an instant falls on
- first_weekday decides where weeks start (0=Monday .. 6=Sunday)
- first_month_of_year decides where (fiscal) years start
"""

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone, tzinfo
from enum import Enum
from typing import Callable, Iterable, Optional, TypeVar, Union
from zoneinfo import ZoneInfo

from ledger.config import LedgerSettings, get_settings
from ledger.models.entities import BudgetPeriod, ensure_aware


T = TypeVar("T")


class TimePeriod(str, Enum):
    """Rolling windows used for dashboards and reports."""
    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    YEAR = "year"


BUDGET_PERIOD_WINDOWS: dict[BudgetPeriod, TimePeriod] = {
    BudgetPeriod.DAILY: TimePeriod.DAY,
    BudgetPeriod.WEEKLY: TimePeriod.WEEK,
    BudgetPeriod.MONTHLY: TimePeriod.MONTH,
    BudgetPeriod.YEARLY: TimePeriod.YEAR,
}


@dataclass(frozen=True)
class LedgerCalendar:
    """Timezone and week/year conventions used to bucket instants into days."""

    tz: tzinfo = field(default=timezone.utc)
    first_weekday: int = 0
    first_month_of_year: int = 1

    def __post_init__(self) -> None:
        if not 0 <= self.first_weekday <= 6:
            raise ValueError(f"first_weekday must be 0..6, got {self.first_weekday}")
        if not 1 <= self.first_month_of_year <= 12:
            raise ValueError(
                f"first_month_of_year must be 1..12, got {self.first_month_of_year}"
            )

    @classmethod
    def from_settings(cls, settings: Optional[LedgerSettings] = None) -> "LedgerCalendar":
        settings = settings or get_settings().ledger
        return cls(
            tz=ZoneInfo(settings.timezone),
            first_weekday=settings.first_weekday,
            first_month_of_year=settings.first_month_of_year,
        )

    def local_date(self, instant: datetime) -> date:
        """Calendar day of an instant in this calendar's timezone."""
        return ensure_aware(instant).astimezone(self.tz).date()

    def week_start(self, day: date) -> date:
        offset = (day.weekday() - self.first_weekday) % 7
        return day - timedelta(days=offset)

    def year_start(self, day: date) -> date:
        year = day.year if day.month >= self.first_month_of_year else day.year - 1
        return date(year, self.first_month_of_year, 1)

    def window(self, period: TimePeriod, day: date) -> tuple[date, date]:
        """First and last calendar day (inclusive) of the period containing `day`."""
        period = TimePeriod(period)
        if period is TimePeriod.DAY:
            return day, day
        if period is TimePeriod.WEEK:
            start = self.week_start(day)
            return start, start + timedelta(days=6)
        if period is TimePeriod.MONTH:
            start = day.replace(day=1)
            return start, _add_months(start, 1) - timedelta(days=1)

        start = self.year_start(day)
        return start, _add_months(start, 12) - timedelta(days=1)


def _add_months(first_of_month: date, months: int) -> date:
    index = first_of_month.month - 1 + months
    return date(first_of_month.year + index // 12, index % 12 + 1, 1)


class PeriodFilter:
    """
    Pure classifier of timestamps against rolling periods.

    Safe to share between concurrent readers; it holds no mutable state.
    """

    def __init__(self, calendar: Optional[LedgerCalendar] = None):
        self._calendar = calendar or LedgerCalendar.from_settings()

    @property
    def calendar(self) -> LedgerCalendar:
        return self._calendar

    def contains(
        self,
        period: Union[TimePeriod, str],
        timestamp: datetime,
        now: datetime,
    ) -> bool:
        """
        Is `timestamp` in the same day/week/month/year as `now`?

        Naive datetimes are taken to be UTC before conversion to the
        calendar's timezone.
        """
        period = TimePeriod(period)
        cal = self._calendar
        day = cal.local_date(timestamp)
        today = cal.local_date(now)

        if period is TimePeriod.DAY:
            return day == today
        if period is TimePeriod.WEEK:
            return cal.week_start(day) == cal.week_start(today)
        if period is TimePeriod.MONTH:
            return (day.year, day.month) == (today.year, today.month)
        return cal.year_start(day) == cal.year_start(today)

    def window(self, period: Union[TimePeriod, str], now: datetime) -> tuple[date, date]:
        """Inclusive local-date bounds of the period containing `now`."""
        return self._calendar.window(TimePeriod(period), self._calendar.local_date(now))

    def budget_window(self, period: BudgetPeriod, now: datetime) -> tuple[date, date]:
        """Default start/end dates for a new budget of the given recurrence."""
        return self.window(BUDGET_PERIOD_WINDOWS[BudgetPeriod(period)], now)

    def select(
        self,
        period: Union[TimePeriod, str],
        items: Iterable[T],
        now: datetime,
        key: Callable[[T], datetime] = lambda item: item.date,
    ) -> list[T]:
        """Items whose timestamp (via `key`) falls in the period containing `now`."""
        period = TimePeriod(period)
        return [item for item in items if self.contains(period, key(item), now)]
