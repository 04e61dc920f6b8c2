"""Calendar periods package."""

from ledger.periods.filter import (
    BUDGET_PERIOD_WINDOWS,
    LedgerCalendar,
    PeriodFilter,
    TimePeriod,
)

__all__ = ["BUDGET_PERIOD_WINDOWS", "LedgerCalendar", "PeriodFilter", "TimePeriod"]
