"""Tests for the per-allocation payroll calculator."""

from datetime import date
from decimal import Decimal

import pytest

from hr_payroll.calculators.payroll_calculator import PayrollCalculator, health_welfare_tier
from hr_payroll.calculators.types import BenefitRates, PayrollInput, SalaryTerms, SalaryType
from hr_payroll.models.payroll import PAYROLL_AMOUNT_FIELDS

MARCH_2025 = date(2025, 3, 31)


def _input(**overrides) -> PayrollInput:
    values = {
        "terms": SalaryTerms(
            start_date=date(2024, 1, 1),
            pass_probation_salary=Decimal("30000"),
        ),
        "fte": Decimal("1.00"),
        "pay_period_date": MARCH_2025,
        "organization": "SMRU",
        "employee_status": "Local ID",
    }
    values.update(overrides)
    return PayrollInput(**values)


@pytest.fixture
def calculator() -> PayrollCalculator:
    return PayrollCalculator(BenefitRates())


class TestFullTimeLocalStaff:
    """Full-time Local ID employee with PVD and health welfare."""

    def test_pay_items(self, calculator):
        items = calculator.calculate(_input(pvd=True, health_welfare=True))

        assert items.salary_type == SalaryType.PASS_PROBATION
        assert items.allocated_amount == Decimal("30000.00")
        assert items.gross_salary_by_fte == Decimal("30000.00")
        assert items.thirteen_month_salary == Decimal("2500.00")
        assert items.pvd == Decimal("2250.00")
        assert items.total_pvd == Decimal("4500.00")
        assert items.employee_social_security == Decimal("750.00")
        assert items.employer_social_security == Decimal("750.00")
        assert items.employee_health_welfare == Decimal("150")
        assert items.employer_health_welfare == Decimal("0")
        assert items.tax == Decimal("58.33")

    def test_totals_add_up(self, calculator):
        items = calculator.calculate(_input(pvd=True, health_welfare=True))

        assert items.total_income == Decimal("32500.00")
        assert items.total_deduction == Decimal("3208.33")
        assert items.net_salary == Decimal("29291.67")
        assert items.employer_contribution == Decimal("750.00")
        assert items.total_salary == Decimal("33250.00")
        assert items.warnings == []

    def test_amount_keys_match_payroll_columns(self, calculator):
        items = calculator.calculate(_input())
        assert set(items.amounts()) == set(PAYROLL_AMOUNT_FIELDS)


class TestBenefitEligibility:
    """Funds and welfare depend on status, organization and probation."""

    def test_local_non_id_gets_saving_fund_and_employer_welfare(self, calculator):
        items = calculator.calculate(
            _input(employee_status="Local non ID", saving_fund=True, pvd=True, health_welfare=True)
        )
        assert items.saving_fund == Decimal("2250.00")
        assert items.pvd == Decimal("0")
        assert items.employer_health_welfare == Decimal("150")

    def test_no_funds_during_probation(self, calculator):
        terms = SalaryTerms(
            start_date=date(2025, 1, 1),
            pass_probation_salary=Decimal("30000"),
            probation_salary=Decimal("20000"),
            pass_probation_date=date(2025, 6, 1),
        )
        items = calculator.calculate(_input(terms=terms, pvd=True))
        assert items.salary_type == SalaryType.PROBATION
        assert items.gross_salary == Decimal("20000.00")
        assert items.pvd == Decimal("0")

    def test_thirteenth_month_needs_six_months_service(self, calculator):
        terms = SalaryTerms(start_date=date(2025, 1, 1), pass_probation_salary=Decimal("30000"))
        items = calculator.calculate(_input(terms=terms))
        assert items.thirteen_month_salary == Decimal("0")
        assert items.thirteen_month_salary_accrued == Decimal("2500.00")

    @pytest.mark.parametrize(
        ("salary", "expected"),
        [
            (Decimal("30000"), Decimal("150")),
            (Decimal("10000"), Decimal("100")),
            (Decimal("4000"), Decimal("60")),
        ],
    )
    def test_health_welfare_tiers(self, salary, expected):
        assert health_welfare_tier(salary) == expected


class TestFteSplit:
    """Each allocation is priced on its own FTE share."""

    def test_half_time_allocation(self, calculator):
        items = calculator.calculate(_input(fte=Decimal("0.50")))
        assert items.allocated_amount == Decimal("15000.00")
        assert items.gross_salary == Decimal("30000.00")
        assert items.gross_salary_by_fte == Decimal("15000.00")
        assert items.employee_social_security == Decimal("750.00")

    def test_start_month_is_prorated(self, calculator):
        terms = SalaryTerms(start_date=date(2025, 3, 16), pass_probation_salary=Decimal("30000"))
        items = calculator.calculate(_input(terms=terms))
        assert items.gross_salary_by_fte == Decimal("15000.00")
