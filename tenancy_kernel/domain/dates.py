"""
Calendar arithmetic on ``datetime.date``.

Month and year steps are calendar steps, not day counts. When the source
day does not exist in the target month the result is clamped to that
month's last day (Jan 31 + 1 month -> Feb 28/29, Feb 29 + 1 year -> Feb 28).
"""

from __future__ import annotations

import calendar
from datetime import date


def clamped_date(year: int, month: int, day: int) -> date:
    """``date(year, month, day)`` with ``day`` clamped to the month length."""
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day, last_day))


def add_months(start: date, months: int) -> date:
    """Add whole calendar months to ``start``, clamping the day."""
    index = start.year * 12 + (start.month - 1) + months
    year, month_index = divmod(index, 12)
    return clamped_date(year, month_index + 1, start.day)


def add_years(start: date, years: int) -> date:
    """Add whole calendar years to ``start``, clamping Feb 29."""
    return clamped_date(start.year + years, start.month, start.day)
