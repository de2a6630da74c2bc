"""Tests for two-tier salary resolution and date helpers."""

from datetime import date
from decimal import Decimal

from hr_payroll.calculators.salary import (
    add_months,
    allocated_amount,
    annual_increase,
    base_salary_for_period,
    count_weekdays,
    days_worked_in_first_month,
    month_bounds,
    months_of_service,
    prorate_for_start,
    salary_type_for,
)
from hr_payroll.calculators.types import SalaryTerms, SalaryType


def _terms(**overrides) -> SalaryTerms:
    values = {
        "start_date": date(2025, 1, 1),
        "pass_probation_salary": Decimal("30000"),
        "probation_salary": Decimal("20000"),
        "pass_probation_date": date(2025, 4, 16),
    }
    values.update(overrides)
    return SalaryTerms(**values)


class TestSalaryType:
    """Which salary tier applies on a date."""

    def test_before_pass_date_is_probation(self):
        assert (
            salary_type_for(date(2025, 4, 15), date(2025, 4, 16), Decimal("20000"))
            == SalaryType.PROBATION.value
        )

    def test_on_pass_date_is_pass_probation(self):
        assert (
            salary_type_for(date(2025, 4, 16), date(2025, 4, 16), Decimal("20000"))
            == SalaryType.PASS_PROBATION.value
        )

    def test_without_probation_salary_always_pass_probation(self):
        assert (
            salary_type_for(date(2025, 1, 1), date(2025, 4, 16), None)
            == SalaryType.PASS_PROBATION.value
        )


class TestBaseSalaryForPeriod:
    """Monthly base salary around the probation transition."""

    def test_month_before_transition_pays_probation_salary(self):
        base = base_salary_for_period(_terms(), date(2025, 3, 31))
        assert base.amount == Decimal("20000")
        assert base.salary_type == SalaryType.PROBATION
        assert base.prorated is False

    def test_month_after_transition_pays_regular_salary(self):
        base = base_salary_for_period(_terms(), date(2025, 5, 31))
        assert base.amount == Decimal("30000")
        assert base.salary_type == SalaryType.PASS_PROBATION

    def test_transition_month_is_blended_on_thirty_days(self):
        """15 days at 20000 and 15 days at 30000."""
        base = base_salary_for_period(_terms(), date(2025, 4, 30))
        assert base.amount == Decimal("25000.00")
        assert base.salary_type == SalaryType.PASS_PROBATION
        assert base.prorated is True

    def test_pass_on_first_of_month_is_not_blended(self):
        base = base_salary_for_period(
            _terms(pass_probation_date=date(2025, 4, 1)), date(2025, 4, 30)
        )
        assert base.amount == Decimal("30000")
        assert base.prorated is False

    def test_no_probation_salary_uses_regular_salary(self):
        base = base_salary_for_period(_terms(probation_salary=None), date(2025, 2, 28))
        assert base.amount == Decimal("30000")


class TestProration:
    """First-month proration on a 30-day month."""

    def test_start_on_first_pays_full_month(self):
        assert days_worked_in_first_month(date(2025, 3, 1)) == 30

    def test_start_mid_month(self):
        assert days_worked_in_first_month(date(2025, 1, 16)) == 15

    def test_prorate_only_in_start_month(self):
        amount = Decimal("30000")
        assert prorate_for_start(amount, date(2025, 1, 16), date(2025, 1, 31)) == Decimal("15000")
        assert prorate_for_start(amount, date(2025, 1, 16), date(2025, 2, 28)) == amount

    def test_allocated_amount_is_rounded_to_cents(self):
        assert allocated_amount(Decimal("33333.33"), Decimal("0.3333")) == Decimal("11110.00")


class TestDateHelpers:
    """Calendar helpers used across payroll."""

    def test_month_bounds_handles_leap_year(self):
        assert month_bounds(date(2024, 2, 10)) == (date(2024, 2, 1), date(2024, 2, 29))

    def test_add_months_clamps_to_month_end(self):
        assert add_months(date(2025, 1, 31), 1) == date(2025, 2, 28)
        assert add_months(date(2025, 11, 15), 3) == date(2026, 2, 15)

    def test_count_weekdays_for_one_week(self):
        # Monday to Sunday
        assert count_weekdays(date(2025, 10, 13), date(2025, 10, 19)) == 5

    def test_count_weekdays_empty_range(self):
        assert count_weekdays(date(2025, 10, 19), date(2025, 10, 13)) == 0

    def test_months_of_service(self):
        assert months_of_service(date(2025, 1, 15), date(2025, 7, 14)) == 5
        assert months_of_service(date(2025, 1, 15), date(2025, 7, 15)) == 6


class TestAnnualIncrease:
    """One percent raise after 365 working days."""

    def test_no_increase_in_first_year(self):
        assert annual_increase(_terms(), date(2025, 12, 31)) == Decimal("0")

    def test_increase_after_365_working_days(self):
        terms = _terms(start_date=date(2023, 1, 2))
        assert annual_increase(terms, date(2025, 3, 31)) == Decimal("300.00")
