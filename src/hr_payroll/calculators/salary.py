"""Two-tier salary resolution.

Months are normalized to 30 days: a partial month pays
``monthly_salary / 30`` per day.
"""

from __future__ import annotations

import calendar
from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal

from hr_payroll.calculators.types import BaseSalary, SalaryTerms, SalaryType

CENT = Decimal("0.01")
DAYS_IN_PAY_MONTH = 30
ANNUAL_INCREASE_RATE = Decimal("0.01")
ANNUAL_INCREASE_WORKING_DAYS = 365


def quantize(amount: Decimal) -> Decimal:
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def month_bounds(on_date: date) -> tuple[date, date]:
    """First and last day of the month containing ``on_date``."""
    last_day = calendar.monthrange(on_date.year, on_date.month)[1]
    return on_date.replace(day=1), on_date.replace(day=last_day)


def add_months(start: date, months: int) -> date:
    """Shift a date by whole months, clamping to the target month's end."""
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def salary_type_for(
    on_date: date,
    pass_probation_date: date | None,
    probation_salary: Decimal | None,
) -> str:
    """Salary tier on a given date.

    The probation tier applies only when a probation salary is set and the
    date falls before the pass-probation date.
    """
    if probation_salary is not None and pass_probation_date is not None:
        if on_date < pass_probation_date:
            return SalaryType.PROBATION.value
    return SalaryType.PASS_PROBATION.value


def salary_for_date(
    on_date: date,
    pass_probation_date: date | None,
    probation_salary: Decimal | None,
    pass_probation_salary: Decimal,
) -> Decimal:
    """Monthly salary of the tier that applies on a given date."""
    if salary_type_for(on_date, pass_probation_date, probation_salary) == SalaryType.PROBATION:
        return Decimal(probation_salary)
    return Decimal(pass_probation_salary)


def base_salary_for_period(terms: SalaryTerms, pay_period_date: date) -> BaseSalary:
    """Resolve the monthly base salary for the pay period containing a date.

    Periods that end before the pass-probation date pay the probation salary
    and periods that start on or after it pay the pass-probation salary. In
    the month probation is passed, days before the pass date are paid at the
    probation rate and the rest at the regular rate.
    """
    period_start, period_end = month_bounds(pay_period_date)
    pass_date = terms.pass_probation_date
    regular = Decimal(terms.pass_probation_salary)

    if terms.probation_salary is None or pass_date is None or pass_date <= period_start:
        return BaseSalary(amount=regular, salary_type=SalaryType.PASS_PROBATION)

    probation = Decimal(terms.probation_salary)
    if pass_date > period_end:
        return BaseSalary(amount=probation, salary_type=SalaryType.PROBATION)

    probation_days = min(pass_date.day - 1, DAYS_IN_PAY_MONTH)
    regular_days = DAYS_IN_PAY_MONTH - probation_days
    blended = (
        probation * probation_days / DAYS_IN_PAY_MONTH
        + regular * regular_days / DAYS_IN_PAY_MONTH
    )
    return BaseSalary(
        amount=quantize(blended),
        salary_type=SalaryType.PASS_PROBATION,
        prorated=True,
    )


def days_worked_in_first_month(start_date: date) -> int:
    """Paid days in the month an employee starts, on a 30-day month."""
    if start_date.day == 1:
        return DAYS_IN_PAY_MONTH
    return max(31 - start_date.day, 0)


def prorate_for_start(amount: Decimal, start_date: date, pay_period_date: date) -> Decimal:
    """Prorate a monthly amount when employment starts inside the pay period."""
    period_start, period_end = month_bounds(pay_period_date)
    if not period_start <= start_date <= period_end:
        return amount
    days = days_worked_in_first_month(start_date)
    return amount * days / DAYS_IN_PAY_MONTH


def allocated_amount(base: Decimal, fte: Decimal) -> Decimal:
    """Salary charged to one allocation: base salary times FTE."""
    return quantize(Decimal(base) * Decimal(fte))


def count_weekdays(start: date, end: date) -> int:
    """Number of Monday-to-Friday days in [start, end]."""
    if end < start:
        return 0
    total_days = (end - start).days + 1
    full_weeks, remainder = divmod(total_days, 7)
    weekdays = full_weeks * 5
    for offset in range(remainder):
        if (start + timedelta(days=full_weeks * 7 + offset)).weekday() < 5:
            weekdays += 1
    return weekdays


def months_of_service(start_date: date, on_date: date) -> int:
    """Whole months between two dates."""
    months = (on_date.year - start_date.year) * 12 + on_date.month - start_date.month
    if on_date.day < start_date.day:
        months -= 1
    return max(months, 0)


def annual_increase(terms: SalaryTerms, pay_period_date: date) -> Decimal:
    """One percent of the regular salary once 365 working days are served."""
    _, period_end = month_bounds(pay_period_date)
    if count_weekdays(terms.start_date, period_end) < ANNUAL_INCREASE_WORKING_DAYS:
        return Decimal("0")
    return quantize(Decimal(terms.pass_probation_salary) * ANNUAL_INCREASE_RATE)
