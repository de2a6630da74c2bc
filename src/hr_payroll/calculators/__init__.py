"""Payroll, salary, tax and leave calculations."""

from hr_payroll.calculators.leave_days import count_leave_days
from hr_payroll.calculators.payroll_calculator import PayrollCalculator
from hr_payroll.calculators.salary import base_salary_for_period, salary_type_for
from hr_payroll.calculators.tax_calculator import TaxCalculator

__all__ = [
    "PayrollCalculator",
    "TaxCalculator",
    "base_salary_for_period",
    "count_leave_days",
    "salary_type_for",
]
