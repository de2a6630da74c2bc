"""Progressive personal income tax calculator."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from hr_payroll.calculators.types import TaxProfile


@dataclass(frozen=True)
class TaxBracket:
    """Income band taxed at a single rate; ``max_amount`` None means unbounded."""

    min_amount: Decimal
    max_amount: Decimal | None
    rate: Decimal


DEFAULT_BRACKETS: tuple[TaxBracket, ...] = (
    TaxBracket(Decimal("0"), Decimal("150000"), Decimal("0")),
    TaxBracket(Decimal("150000"), Decimal("300000"), Decimal("0.05")),
    TaxBracket(Decimal("300000"), Decimal("500000"), Decimal("0.10")),
    TaxBracket(Decimal("500000"), Decimal("750000"), Decimal("0.15")),
    TaxBracket(Decimal("750000"), Decimal("1000000"), Decimal("0.20")),
    TaxBracket(Decimal("1000000"), Decimal("2000000"), Decimal("0.25")),
    TaxBracket(Decimal("2000000"), Decimal("5000000"), Decimal("0.30")),
    TaxBracket(Decimal("5000000"), None, Decimal("0.35")),
)


@dataclass(frozen=True)
class TaxAllowances:
    """Annual deductions and allowances for one tax year."""

    employment_deduction_rate: Decimal = Decimal("0.50")
    employment_deduction_max: Decimal = Decimal("100000")
    personal: Decimal = Decimal("60000")
    spouse: Decimal = Decimal("60000")
    child: Decimal = Decimal("30000")
    parent: Decimal = Decimal("30000")


class TaxCalculator:
    """Annual income tax with statutory deductions and allowances."""

    def __init__(
        self,
        brackets: tuple[TaxBracket, ...] | list[TaxBracket] | None = None,
        allowances: TaxAllowances | None = None,
    ):
        self.brackets = sorted(brackets or DEFAULT_BRACKETS, key=lambda b: b.min_amount)
        self.allowances = allowances or TaxAllowances()

    def annual_income(self, profile: TaxProfile) -> Decimal:
        return Decimal(profile.monthly_income) * profile.months_working

    def total_deductions(self, profile: TaxProfile) -> Decimal:
        """Deductions and allowances subtracted from annual income."""
        income = self.annual_income(profile)
        rules = self.allowances
        employment_deduction = min(
            income * rules.employment_deduction_rate, rules.employment_deduction_max
        )

        allowances = rules.personal
        if profile.has_spouse:
            allowances += rules.spouse
        allowances += rules.child * profile.number_of_children
        allowances += rules.parent * profile.eligible_parents_count

        contributions = (
            Decimal(profile.monthly_social_security) + Decimal(profile.monthly_provident_fund)
        ) * profile.months_working

        return employment_deduction + allowances + contributions

    def taxable_income(self, profile: TaxProfile) -> Decimal:
        return max(self.annual_income(profile) - self.total_deductions(profile), Decimal("0"))

    def calculate_annual_tax(self, profile: TaxProfile) -> Decimal:
        return self._calculate_progressive_tax(self.taxable_income(profile))

    def calculate_monthly_tax(self, profile: TaxProfile) -> Decimal:
        """Annual tax spread evenly over twelve months."""
        if profile.months_working <= 0 or profile.monthly_income <= 0:
            return Decimal("0.00")
        annual = self.calculate_annual_tax(profile)
        return (annual / 12).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)

    def _calculate_progressive_tax(self, income: Decimal) -> Decimal:
        """Apply the bracket table to a taxable amount."""
        tax = Decimal("0")
        remaining = income

        for bracket in self.brackets:
            if remaining <= 0:
                break

            bracket_min = bracket.min_amount
            bracket_max = bracket.max_amount

            if income <= bracket_min:
                break

            if bracket_max is None:
                taxable_in_bracket = income - bracket_min
            else:
                taxable_in_bracket = min(income, bracket_max) - bracket_min

            if taxable_in_bracket > 0:
                tax += taxable_in_bracket * bracket.rate
                remaining -= taxable_in_bracket

        return tax.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
