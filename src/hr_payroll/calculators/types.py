"""Type definitions for the payroll calculation pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any

ZERO = Decimal("0")


class SalaryType(str, Enum):
    """Which tier of an employment's two-tier salary applies."""

    PROBATION = "probation_salary"
    PASS_PROBATION = "pass_probation_salary"


class EmployeeStatus(str, Enum):
    """Employee residency status, which drives fund and welfare rules."""

    EXPATS = "Expats"
    LOCAL_ID = "Local ID"
    LOCAL_NON_ID = "Local non ID"


@dataclass(frozen=True)
class SalaryTerms:
    """Salary-relevant part of an employment contract."""

    start_date: date
    pass_probation_salary: Decimal
    probation_salary: Decimal | None = None
    pass_probation_date: date | None = None


@dataclass(frozen=True)
class BaseSalary:
    """Monthly base salary resolved for one pay period."""

    amount: Decimal
    salary_type: SalaryType
    prorated: bool = False


@dataclass(frozen=True)
class BenefitRates:
    """Percentages and caps for statutory contributions."""

    pvd_percentage: Decimal = Decimal("7.5")
    saving_fund_percentage: Decimal = Decimal("7.5")
    social_security_rate: Decimal = Decimal("0.05")
    social_security_max: Decimal = Decimal("750")


@dataclass(frozen=True)
class TaxProfile:
    """Inputs for the annual income tax computation."""

    monthly_income: Decimal
    months_working: int
    monthly_social_security: Decimal = ZERO
    monthly_provident_fund: Decimal = ZERO
    has_spouse: bool = False
    number_of_children: int = 0
    eligible_parents_count: int = 0


@dataclass(frozen=True)
class PayrollInput:
    """Everything needed to price one allocation for one pay period."""

    terms: SalaryTerms
    fte: Decimal
    pay_period_date: date
    organization: str
    employee_status: str
    health_welfare: bool = False
    pvd: bool = False
    saving_fund: bool = False
    has_spouse: bool = False
    number_of_children: int = 0
    eligible_parents_count: int = 0


@dataclass
class PayrollItems:
    """Computed pay items for one allocation, rounded to cents."""

    salary_type: SalaryType
    allocated_amount: Decimal
    gross_salary: Decimal = ZERO
    gross_salary_by_fte: Decimal = ZERO
    compensation_refund: Decimal = ZERO
    thirteen_month_salary: Decimal = ZERO
    thirteen_month_salary_accrued: Decimal = ZERO
    pvd: Decimal = ZERO
    saving_fund: Decimal = ZERO
    employer_social_security: Decimal = ZERO
    employee_social_security: Decimal = ZERO
    employer_health_welfare: Decimal = ZERO
    employee_health_welfare: Decimal = ZERO
    tax: Decimal = ZERO
    net_salary: Decimal = ZERO
    total_salary: Decimal = ZERO
    total_pvd: Decimal = ZERO
    total_saving_fund: Decimal = ZERO
    salary_bonus: Decimal = ZERO
    total_income: Decimal = ZERO
    employer_contribution: Decimal = ZERO
    total_deduction: Decimal = ZERO
    warnings: list[str] = field(default_factory=list)

    def amounts(self) -> dict[str, Decimal]:
        """Money fields keyed by Payroll column name."""
        skip = {"salary_type", "allocated_amount", "warnings"}
        return {f.name: getattr(self, f.name) for f in fields(self) if f.name not in skip}

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {k: str(v) for k, v in self.amounts().items()}
        data["salary_type"] = self.salary_type.value
        data["allocated_amount"] = str(self.allocated_amount)
        data["warnings"] = list(self.warnings)
        return data
