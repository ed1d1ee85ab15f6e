# ledger/fiscal.py
"""Calendar arithmetic shared by fiscal periods and budget distributions."""

import calendar
from datetime import date, timedelta


def add_months(day: date, months: int) -> date:
    """Shift a date by whole months, clamping to the last day of the month."""
    month_index = day.month - 1 + months
    year = day.year + month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day.day, last_day))


def period_boundaries(start_date: date, period_count: int, end_date: date | None = None):
    """
    Split a fiscal year into equal runs of months.

    Returns a list of (number, start, end) tuples. period_count must divide
    12 (1, 2, 3, 4, 6 or 12). The last period ends on end_date when given,
    otherwise the day before the year's anniversary.
    """
    if period_count <= 0 or 12 % period_count:
        raise ValueError(f"period_count must divide 12, got {period_count}")

    months_per_period = 12 // period_count
    year_end = end_date or (add_months(start_date, 12) - timedelta(days=1))

    periods = []
    for index in range(period_count):
        period_start = add_months(start_date, index * months_per_period)
        if index == period_count - 1:
            period_end = year_end
        else:
            period_end = add_months(start_date, (index + 1) * months_per_period) - timedelta(days=1)
        periods.append((index + 1, period_start, period_end))
    return periods
