"""Per-allocation payroll calculation.

Given an employment's salary terms, one funding allocation's FTE and a pay
period, produce every pay item stored on a Payroll row. The calculator is
pure: it never touches the database, so previews and persisted runs share it.
"""

from __future__ import annotations

from decimal import Decimal

from hr_payroll.calculators.salary import (
    allocated_amount,
    annual_increase,
    base_salary_for_period,
    month_bounds,
    months_of_service,
    prorate_for_start,
    quantize,
)
from hr_payroll.calculators.tax_calculator import TaxCalculator
from hr_payroll.calculators.types import (
    BenefitRates,
    EmployeeStatus,
    PayrollInput,
    PayrollItems,
    TaxProfile,
)

ZERO = Decimal("0.00")
HUNDRED = Decimal("100")
THIRTEENTH_MONTH_MIN_SERVICE_MONTHS = 6

# Employee health welfare contribution by monthly salary band
HEALTH_WELFARE_TIERS: tuple[tuple[Decimal, Decimal], ...] = (
    (Decimal("15000"), Decimal("150")),
    (Decimal("5000"), Decimal("100")),
)
HEALTH_WELFARE_FLOOR = Decimal("60")

# Employer-side health welfare is paid only for these organizations and statuses
EMPLOYER_HEALTH_WELFARE_ORGS = {"SMRU"}
EMPLOYER_HEALTH_WELFARE_STATUSES = {
    EmployeeStatus.EXPATS.value,
    EmployeeStatus.LOCAL_NON_ID.value,
}


def health_welfare_tier(salary: Decimal) -> Decimal:
    for threshold, amount in HEALTH_WELFARE_TIERS:
        if salary > threshold:
            return amount
    return HEALTH_WELFARE_FLOOR


class PayrollCalculator:
    """Computes the pay items for one allocation in one pay period."""

    def __init__(
        self,
        rates: BenefitRates | None = None,
        tax_calculator: TaxCalculator | None = None,
    ):
        self.rates = rates or BenefitRates()
        self.tax_calculator = tax_calculator or TaxCalculator()

    def calculate(self, data: PayrollInput) -> PayrollItems:
        terms = data.terms
        fte = Decimal(data.fte)
        _, period_end = month_bounds(data.pay_period_date)

        base = base_salary_for_period(terms, data.pay_period_date)
        allocated = allocated_amount(base.amount, fte)
        items = PayrollItems(salary_type=base.salary_type, allocated_amount=allocated)

        items.gross_salary = quantize(base.amount)
        items.gross_salary_by_fte = quantize(
            prorate_for_start(allocated, terms.start_date, data.pay_period_date)
        )
        items.compensation_refund = ZERO
        items.salary_bonus = quantize(annual_increase(terms, data.pay_period_date) * fte)

        items.thirteen_month_salary_accrued = quantize(items.gross_salary_by_fte / 12)
        if months_of_service(terms.start_date, period_end) >= THIRTEENTH_MONTH_MIN_SERVICE_MONTHS:
            items.thirteen_month_salary = items.thirteen_month_salary_accrued

        self._apply_provident_funds(items, data)
        self._apply_social_security(items)
        self._apply_health_welfare(items, data)
        items.tax = self._monthly_tax(items, data)

        items.total_income = (
            items.gross_salary_by_fte
            + items.compensation_refund
            + items.thirteen_month_salary
            + items.salary_bonus
        )
        items.total_deduction = (
            items.tax
            + items.employee_social_security
            + items.employee_health_welfare
            + items.pvd
            + items.saving_fund
        )
        items.employer_contribution = (
            items.employer_social_security + items.employer_health_welfare
        )
        items.net_salary = items.total_income - items.total_deduction
        items.total_salary = items.total_income + items.employer_contribution
        items.total_pvd = items.pvd * 2
        items.total_saving_fund = items.saving_fund * 2

        if items.net_salary < 0:
            items.warnings.append("Deductions exceed income for this allocation")
        return items

    def _probation_passed(self, data: PayrollInput) -> bool:
        pass_date = data.terms.pass_probation_date
        if pass_date is None:
            return True
        _, period_end = month_bounds(data.pay_period_date)
        return pass_date <= period_end

    def _apply_provident_funds(self, items: PayrollItems, data: PayrollInput) -> None:
        """PVD for Local ID staff, saving fund for Local non ID, after probation."""
        if not self._probation_passed(data):
            return
        salary = items.gross_salary_by_fte
        if data.employee_status == EmployeeStatus.LOCAL_ID.value and data.pvd:
            items.pvd = quantize(salary * self.rates.pvd_percentage / HUNDRED)
        elif data.employee_status == EmployeeStatus.LOCAL_NON_ID.value and data.saving_fund:
            items.saving_fund = quantize(salary * self.rates.saving_fund_percentage / HUNDRED)

    def _apply_social_security(self, items: PayrollItems) -> None:
        contribution = min(
            items.gross_salary_by_fte * self.rates.social_security_rate,
            self.rates.social_security_max,
        )
        items.employee_social_security = quantize(contribution)
        items.employer_social_security = quantize(contribution)

    def _apply_health_welfare(self, items: PayrollItems, data: PayrollInput) -> None:
        if not data.health_welfare:
            return
        tier = health_welfare_tier(items.gross_salary_by_fte)
        items.employee_health_welfare = tier
        if (
            data.organization in EMPLOYER_HEALTH_WELFARE_ORGS
            and data.employee_status in EMPLOYER_HEALTH_WELFARE_STATUSES
        ):
            items.employer_health_welfare = tier

    def _monthly_tax(self, items: PayrollItems, data: PayrollInput) -> Decimal:
        start = data.terms.start_date
        if start.year == data.pay_period_date.year:
            months_working = 12 - start.month + 1
        else:
            months_working = 12
        profile = TaxProfile(
            monthly_income=items.gross_salary_by_fte,
            months_working=months_working,
            monthly_social_security=items.employee_social_security,
            monthly_provident_fund=items.pvd + items.saving_fund,
            has_spouse=data.has_spouse,
            number_of_children=data.number_of_children,
            eligible_parents_count=data.eligible_parents_count,
        )
        return self.tax_calculator.calculate_monthly_tax(profile)
