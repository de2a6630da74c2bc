"""Leave day counting."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date, timedelta
from decimal import Decimal


def count_leave_days(
    start_date: date,
    end_date: date,
    holidays: Iterable[date] = (),
    exclude_weekends: bool = False,
) -> Decimal:
    """Inclusive day count between two dates, minus configured holidays.

    Weekends are only skipped when ``exclude_weekends`` is set. A holiday
    falling on a skipped weekend day is not subtracted twice.
    """
    if end_date < start_date:
        raise ValueError("end_date must be on or after start_date")

    holiday_set = {d for d in holidays if start_date <= d <= end_date}
    days = 0
    current = start_date
    while current <= end_date:
        is_weekend = current.weekday() >= 5
        if not (exclude_weekends and is_weekend) and current not in holiday_set:
            days += 1
        current += timedelta(days=1)
    return Decimal(days)
