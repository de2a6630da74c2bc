"""Tests for leave day counting."""

from datetime import date
from decimal import Decimal

import pytest

from hr_payroll.calculators.leave_days import count_leave_days

MONDAY = date(2025, 10, 13)
SUNDAY = date(2025, 10, 19)


class TestCountLeaveDays:
    """Inclusive counts with holidays and optional weekend exclusion."""

    def test_single_day(self):
        assert count_leave_days(MONDAY, MONDAY) == Decimal("1")

    def test_weekends_count_by_default(self):
        assert count_leave_days(MONDAY, SUNDAY) == Decimal("7")

    def test_weekends_excluded_when_configured(self):
        assert count_leave_days(MONDAY, SUNDAY, exclude_weekends=True) == Decimal("5")

    def test_holidays_are_subtracted(self):
        holidays = [date(2025, 10, 15)]
        assert count_leave_days(MONDAY, SUNDAY, holidays) == Decimal("6")

    def test_holidays_outside_range_are_ignored(self):
        holidays = [date(2025, 10, 1), date(2025, 10, 31)]
        assert count_leave_days(MONDAY, SUNDAY, holidays) == Decimal("7")

    def test_weekend_holiday_not_subtracted_twice(self):
        holidays = [date(2025, 10, 18)]
        assert count_leave_days(MONDAY, SUNDAY, holidays, exclude_weekends=True) == Decimal("5")

    def test_end_before_start_is_rejected(self):
        with pytest.raises(ValueError):
            count_leave_days(SUNDAY, MONDAY)
