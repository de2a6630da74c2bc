"""Payroll service - computes and persists per-allocation payroll rows.

Operations:
- calculate_employee: price every active allocation for a pay period (no writes)
- process_employee: persist one Payroll and one funding snapshot per allocation
- list/get/soft_delete/restore payrolls
- statistics and budget_history reporting, read from snapshots only

An employee's payroll is written in the caller's transaction, so any error
leaves nothing behind once the caller rolls back.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from hr_payroll.calculators import tax_calculator
from hr_payroll.calculators.payroll_calculator import PayrollCalculator
from hr_payroll.calculators.salary import month_bounds
from hr_payroll.calculators.types import BenefitRates, PayrollInput, PayrollItems, SalaryTerms
from hr_payroll.config import Settings, get_settings
from hr_payroll.models import (
    ALLOCATION_TYPE_ORG_FUNDED,
    BenefitSetting,
    Employee,
    EmployeeFundingAllocation,
    Employment,
    Grant,
    InterOrganizationAdvance,
    Payroll,
    PayrollGrantAllocation,
    TaxBracket,
    TaxSetting,
)
from hr_payroll.models.tax import (
    TAX_SETTING_CHILD_ALLOWANCE,
    TAX_SETTING_EMPLOYMENT_DEDUCTION_MAX,
    TAX_SETTING_EMPLOYMENT_DEDUCTION_RATE,
    TAX_SETTING_PARENT_ALLOWANCE,
    TAX_SETTING_PERSONAL_ALLOWANCE,
    TAX_SETTING_SPOUSE_ALLOWANCE,
)
from hr_payroll.services.allocation_service import FULL_TIME, AllocationService, peak_fte
from hr_payroll.services.errors import (
    ConflictError,
    DuplicatePayrollError,
    FTEExceededError,
    NotFoundError,
    PayrollError,
)
from hr_payroll.services.grant_service import GrantService
from hr_payroll.services.recycle_bin_service import RecycleBinService

logger = logging.getLogger(__name__)

BENEFIT_SETTING_KEYS = {
    "pvd_percentage": "pvd_percentage",
    "saving_fund_percentage": "saving_fund_percentage",
    "social_security_percentage": "social_security_rate",
    "social_security_max": "social_security_max",
}

TAX_SETTING_FIELDS = {
    TAX_SETTING_EMPLOYMENT_DEDUCTION_RATE: "employment_deduction_rate",
    TAX_SETTING_EMPLOYMENT_DEDUCTION_MAX: "employment_deduction_max",
    TAX_SETTING_PERSONAL_ALLOWANCE: "personal",
    TAX_SETTING_SPOUSE_ALLOWANCE: "spouse",
    TAX_SETTING_CHILD_ALLOWANCE: "child",
    TAX_SETTING_PARENT_ALLOWANCE: "parent",
}


def normalize_pay_period(pay_period_date: date) -> date:
    """Pay periods are whole months, keyed by their last day."""
    return month_bounds(pay_period_date)[1]


def parse_pay_period(value: str) -> date:
    """Parse ``YYYY-MM`` into the period's last day."""
    try:
        year, month = (int(part) for part in value.split("-", 1))
        return normalize_pay_period(date(year, month, 1))
    except ValueError as exc:
        raise PayrollError(f"Invalid pay period '{value}', expected YYYY-MM") from exc


@dataclass
class AllocationPayroll:
    """Calculated pay for one allocation, with the funding snapshot to persist."""

    allocation: EmployeeFundingAllocation
    items: PayrollItems
    snapshot: dict[str, Any]
    funding_organization: str | None


@dataclass
class EmployeePayrollPlan:
    """Everything computed for one employee and period before anything is written."""

    employee: Employee
    employment: Employment
    pay_period_date: date
    lines: list[AllocationPayroll] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def total_fte(self) -> Decimal:
        return sum((Decimal(line.allocation.fte) for line in self.lines), Decimal("0"))

    def totals(self) -> dict[str, Decimal]:
        keys = ("gross_salary_by_fte", "net_salary", "tax", "total_salary", "employer_contribution")
        return {
            key: sum((getattr(line.items, key) for line in self.lines), Decimal("0"))
            for key in keys
        }


@dataclass
class ProcessResult:
    """Rows written for one employee."""

    payrolls: list[Payroll]
    advances: list[InterOrganizationAdvance]
    warnings: list[str]


def build_snapshot(allocation: EmployeeFundingAllocation, items: PayrollItems) -> dict[str, Any]:
    """Copy the funding source as it looks right now.

    Org-funded allocations record the hub grant and no budget line.
    """
    grant = allocation.funding_grant
    grant_item = None
    if allocation.allocation_type != ALLOCATION_TYPE_ORG_FUNDED:
        grant_item = allocation.grant_item
    return {
        "employee_funding_allocation_id": allocation.id,
        "grant_item_id": grant_item.id if grant_item else None,
        "grant_id": grant.id if grant else None,
        "grant_code": grant.code if grant else None,
        "grant_name": grant.name if grant else None,
        "budget_line_code": grant_item.budget_line_code if grant_item else None,
        "grant_position": grant_item.grant_position if grant_item else None,
        "fte": Decimal(allocation.fte),
        "allocated_amount": items.allocated_amount,
        "salary_type": items.salary_type.value,
    }


class PayrollService:
    """Service for per-allocation payroll processing."""

    def __init__(self, session: AsyncSession, settings: Settings | None = None):
        self.session = session
        self.settings = settings or get_settings()
        self.allocation_service = AllocationService(session)
        self.recycle_bin = RecycleBinService(session, self.settings)

    # ------------------------------------------------------------------
    # Inputs
    # ------------------------------------------------------------------

    async def benefit_rates(self, on_date: date | None = None) -> BenefitRates:
        """Configured defaults overridden by the newest active BenefitSetting per key."""
        when = on_date or date.today()
        values: dict[str, Decimal] = {
            "pvd_percentage": self.settings.default_pvd_percentage,
            "saving_fund_percentage": self.settings.default_saving_fund_percentage,
            "social_security_rate": self.settings.social_security_rate,
            "social_security_max": self.settings.social_security_max,
        }
        result = await self.session.execute(
            select(BenefitSetting)
            .where(
                BenefitSetting.is_active.is_(True),
                BenefitSetting.setting_key.in_(list(BENEFIT_SETTING_KEYS)),
                (BenefitSetting.effective_date.is_(None)) | (BenefitSetting.effective_date <= when),
            )
            .order_by(BenefitSetting.effective_date.asc().nulls_first())
        )
        for setting in result.scalars().all():
            target = BENEFIT_SETTING_KEYS[setting.setting_key]
            value = Decimal(setting.setting_value)
            if target == "social_security_rate" and value > 1:
                value = value / 100
            values[target] = value
        return BenefitRates(**values)

    async def tax_rules(self, tax_year: int) -> tax_calculator.TaxCalculator:
        """Tax calculator for a year's configured brackets and allowances.

        Years without active brackets use the built-in table; missing setting
        keys keep their built-in amounts.
        """
        result = await self.session.execute(
            select(TaxBracket)
            .where(TaxBracket.effective_year == tax_year, TaxBracket.is_active.is_(True))
            .order_by(TaxBracket.bracket_order)
        )
        brackets = [
            tax_calculator.TaxBracket(
                min_amount=Decimal(row.min_income),
                max_amount=Decimal(row.max_income) if row.max_income is not None else None,
                rate=Decimal(row.tax_rate) / 100,
            )
            for row in result.scalars().all()
        ]

        result = await self.session.execute(
            select(TaxSetting).where(
                TaxSetting.effective_year == tax_year,
                TaxSetting.is_selected.is_(True),
                TaxSetting.setting_key.in_(list(TAX_SETTING_FIELDS)),
            )
        )
        overrides: dict[str, Decimal] = {}
        for setting in result.scalars().all():
            value = Decimal(setting.setting_value)
            if setting.setting_key == TAX_SETTING_EMPLOYMENT_DEDUCTION_RATE:
                value = value / 100
            overrides[TAX_SETTING_FIELDS[setting.setting_key]] = value

        if not brackets:
            logger.debug("No tax brackets configured for %s; using defaults", tax_year)
        return tax_calculator.TaxCalculator(
            brackets or None, tax_calculator.TaxAllowances(**overrides)
        )

    async def _employee(self, employee_id: UUID) -> Employee:
        employee = await self.session.get(Employee, employee_id)
        if employee is None or employee.deleted_at is not None:
            raise NotFoundError("Employee not found", employee_id=str(employee_id))
        return employee

    async def _employment_for_period(
        self, employee_id: UUID, period_start: date, period_end: date
    ) -> Employment | None:
        result = await self.session.execute(
            select(Employment)
            .where(
                Employment.employee_id == employee_id,
                Employment.active.is_(True),
                Employment.start_date <= period_end,
                (Employment.end_date.is_(None)) | (Employment.end_date >= period_start),
            )
            .order_by(Employment.start_date.desc())
        )
        return result.scalars().first()

    # ------------------------------------------------------------------
    # Calculation
    # ------------------------------------------------------------------

    async def calculate_employee(
        self, employee_id: UUID, pay_period_date: date
    ) -> EmployeePayrollPlan:
        """Price every allocation active in the period; nothing is written."""
        period_end = normalize_pay_period(pay_period_date)
        period_start = period_end.replace(day=1)

        employee = await self._employee(employee_id)
        employment = await self._employment_for_period(employee.id, period_start, period_end)
        if employment is None:
            raise PayrollError(
                f"Employee {employee.staff_id} has no active employment in this period",
                employee_id=str(employee.id),
            )

        allocations = await self.allocation_service.active_allocations(
            employment.id, period_start, period_end
        )
        if not allocations:
            raise PayrollError(
                f"Employee {employee.staff_id} has no active funding allocations",
                employee_id=str(employee.id),
                employment_id=str(employment.id),
            )

        plan = EmployeePayrollPlan(
            employee=employee, employment=employment, pay_period_date=period_end
        )
        total_fte = peak_fte(allocations, period_start, period_end)
        if total_fte > FULL_TIME:
            raise FTEExceededError(
                f"Active allocations total {total_fte} FTE",
                employee_id=str(employee.id),
                total_fte=str(total_fte),
            )
        if total_fte < FULL_TIME:
            message = f"Active allocations total {total_fte} FTE, below {FULL_TIME}"
            plan.warnings.append(message)
            logger.warning("Employee %s: %s", employee.staff_id, message)

        rates = await self.benefit_rates(period_end)
        calculator = PayrollCalculator(rates, await self.tax_rules(period_end.year))
        terms = SalaryTerms(
            start_date=employment.start_date,
            pass_probation_salary=Decimal(employment.pass_probation_salary),
            probation_salary=(
                Decimal(employment.probation_salary)
                if employment.probation_salary is not None
                else None
            ),
            pass_probation_date=employment.pass_probation_date,
        )

        for allocation in allocations:
            items = calculator.calculate(
                PayrollInput(
                    terms=terms,
                    fte=Decimal(allocation.fte),
                    pay_period_date=period_end,
                    organization=employee.organization,
                    employee_status=employee.status,
                    health_welfare=employment.health_welfare,
                    pvd=employment.pvd,
                    saving_fund=employment.saving_fund,
                    has_spouse=employee.has_spouse,
                    number_of_children=employee.number_of_children,
                    eligible_parents_count=employee.eligible_parents_count,
                )
            )
            grant = allocation.funding_grant
            plan.lines.append(
                AllocationPayroll(
                    allocation=allocation,
                    items=items,
                    snapshot=build_snapshot(allocation, items),
                    funding_organization=grant.organization if grant else None,
                )
            )
            plan.warnings.extend(items.warnings)
        return plan

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    async def _existing_allocation_ids(self, employment_id: UUID, period_end: date) -> set[UUID]:
        period_start = period_end.replace(day=1)
        result = await self.session.execute(
            select(Payroll.employee_funding_allocation_id).where(
                Payroll.employment_id == employment_id,
                Payroll.pay_period_date >= period_start,
                Payroll.pay_period_date <= period_end,
                Payroll.deleted_at.is_(None),
            )
        )
        return {row for row in result.scalars().all() if row is not None}

    async def process_employee(
        self,
        employee_id: UUID,
        pay_period_date: date,
        actor: str | None = None,
        notes: str | None = None,
    ) -> ProcessResult:
        """Write one Payroll plus one funding snapshot per active allocation."""
        plan = await self.calculate_employee(employee_id, pay_period_date)

        already_paid = await self._existing_allocation_ids(plan.employment.id, plan.pay_period_date)
        duplicates = [line for line in plan.lines if line.allocation.id in already_paid]
        if duplicates:
            raise DuplicatePayrollError(
                f"Payroll already exists for {len(duplicates)} allocation(s) in "
                f"{plan.pay_period_date:%Y-%m}",
                employee_id=str(employee_id),
                pay_period=f"{plan.pay_period_date:%Y-%m}",
            )

        payrolls: list[Payroll] = []
        for line in plan.lines:
            payroll = Payroll(
                employment_id=plan.employment.id,
                employee_funding_allocation_id=line.allocation.id,
                pay_period_date=plan.pay_period_date,
                notes=notes,
                created_by=actor,
                updated_by=actor,
                grant_allocations=[PayrollGrantAllocation(**line.snapshot)],
                **line.items.amounts(),
            )
            payrolls.append(payroll)
        self.session.add_all(payrolls)
        await self.session.flush()

        advances = await self._create_advances(plan, payrolls, actor)

        logger.info(
            "Processed %d payroll(s) for employee %s in %s",
            len(payrolls),
            plan.employee.staff_id,
            f"{plan.pay_period_date:%Y-%m}",
        )
        return ProcessResult(payrolls=payrolls, advances=advances, warnings=plan.warnings)

    async def _create_advances(
        self,
        plan: EmployeePayrollPlan,
        payrolls: list[Payroll],
        actor: str | None,
    ) -> list[InterOrganizationAdvance]:
        """Record advances where a grant of another organization funds the salary."""
        employee_org = plan.employee.organization
        advances: list[InterOrganizationAdvance] = []
        hub: Grant | None = None
        for line, payroll in zip(plan.lines, payrolls):
            funding_org = line.funding_organization
            if funding_org is None or funding_org == employee_org:
                continue
            if hub is None:
                hub = await GrantService(self.session).hub_grant_for(employee_org)
            if hub is None:
                message = f"No hub grant for {employee_org}; advance to {funding_org} not recorded"
                plan.warnings.append(message)
                logger.warning(message)
                continue
            advances.append(
                InterOrganizationAdvance(
                    payroll_id=payroll.id,
                    from_organization=employee_org,
                    to_organization=funding_org,
                    via_grant_id=hub.id,
                    amount=line.items.net_salary,
                    advance_date=plan.pay_period_date,
                    notes=f"Salary advance for {plan.employee.staff_id}",
                    created_by=actor,
                )
            )
        if advances:
            self.session.add_all(advances)
            await self.session.flush()
        return advances

    # ------------------------------------------------------------------
    # Queries and lifecycle
    # ------------------------------------------------------------------

    async def get_payroll(self, payroll_id: UUID, include_deleted: bool = False) -> Payroll:
        query = select(Payroll).where(Payroll.id == payroll_id)
        if not include_deleted:
            query = query.where(Payroll.deleted_at.is_(None))
        payroll = (await self.session.execute(query)).scalar_one_or_none()
        if payroll is None:
            raise NotFoundError("Payroll not found", payroll_id=str(payroll_id))
        return payroll

    async def list_payrolls(
        self,
        employee_id: UUID | None = None,
        employment_id: UUID | None = None,
        pay_period: date | None = None,
        include_deleted: bool = False,
        page: int = 1,
        page_size: int = 20,
    ) -> tuple[list[Payroll], int]:
        """Default listings hide soft-deleted rows."""
        query = select(Payroll)
        if not include_deleted:
            query = query.where(Payroll.deleted_at.is_(None))
        if employment_id:
            query = query.where(Payroll.employment_id == employment_id)
        if employee_id:
            query = query.join(Employment, Payroll.employment_id == Employment.id).where(
                Employment.employee_id == employee_id
            )
        if pay_period:
            period_end = normalize_pay_period(pay_period)
            query = query.where(
                Payroll.pay_period_date >= period_end.replace(day=1),
                Payroll.pay_period_date <= period_end,
            )

        count_query = select(func.count()).select_from(query.subquery())
        total = await self.session.scalar(count_query) or 0

        query = query.order_by(Payroll.pay_period_date.desc(), Payroll.created_at.desc())
        query = query.offset((page - 1) * page_size).limit(page_size)
        result = await self.session.execute(query)
        return list(result.scalars().all()), total

    async def soft_delete(self, payroll: Payroll, actor: str | None = None) -> Payroll:
        await self.recycle_bin.soft_delete(payroll, actor)
        logger.info("Payroll %s moved to recycle bin", payroll.id)
        return payroll

    async def restore(self, payroll_id: UUID, actor: str | None = None) -> Payroll:
        """Bring a payroll back unless its allocation was re-paid meanwhile."""
        payroll = await self.recycle_bin.restore("payrolls", payroll_id, actor)
        logger.info("Payroll %s restored", payroll_id)
        return payroll

    # ------------------------------------------------------------------
    # Inter-organization advances
    # ------------------------------------------------------------------

    async def list_advances(
        self,
        organization: str | None = None,
        settled: bool | None = None,
        pay_period: date | None = None,
    ) -> list[InterOrganizationAdvance]:
        """Advances where ``organization`` is either side, oldest first."""
        query = select(InterOrganizationAdvance)
        if organization:
            query = query.where(
                (InterOrganizationAdvance.from_organization == organization)
                | (InterOrganizationAdvance.to_organization == organization)
            )
        if settled is True:
            query = query.where(InterOrganizationAdvance.settlement_date.is_not(None))
        elif settled is False:
            query = query.where(InterOrganizationAdvance.settlement_date.is_(None))
        if pay_period:
            period_start, period_end = month_bounds(pay_period)
            query = query.where(
                InterOrganizationAdvance.advance_date >= period_start,
                InterOrganizationAdvance.advance_date <= period_end,
            )
        query = query.order_by(
            InterOrganizationAdvance.advance_date, InterOrganizationAdvance.created_at
        )
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def get_advance(self, advance_id: UUID) -> InterOrganizationAdvance:
        advance = await self.session.get(InterOrganizationAdvance, advance_id)
        if advance is None:
            raise NotFoundError("Advance not found", advance_id=str(advance_id))
        return advance

    async def settle_advance(
        self,
        advance: InterOrganizationAdvance,
        settlement_date: date | None = None,
        actor: str | None = None,
        notes: str | None = None,
    ) -> InterOrganizationAdvance:
        """Mark an advance as paid back by the funding organization."""
        if advance.is_settled:
            raise ConflictError(
                "Advance is already settled",
                advance_id=str(advance.id),
                settlement_date=advance.settlement_date.isoformat(),
            )
        when = settlement_date or date.today()
        if when < advance.advance_date:
            raise PayrollError(
                "Settlement date cannot precede the advance date",
                advance_date=advance.advance_date.isoformat(),
            )
        advance.settlement_date = when
        if notes:
            advance.notes = f"{advance.notes}\n{notes}" if advance.notes else notes
        advance.updated_by = actor
        await self.session.flush()
        logger.info(
            "Advance %s from %s to %s settled on %s",
            advance.id,
            advance.from_organization,
            advance.to_organization,
            when,
        )
        return advance

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    async def statistics(self, start: date, end: date) -> dict[str, Any]:
        """Totals over non-deleted payrolls whose period falls in [start, end].

        Money columns are encrypted, so sums are taken after loading rows.
        """
        result = await self.session.execute(
            select(Payroll, Employment.employee_id)
            .join(Employment, Payroll.employment_id == Employment.id)
            .where(
                Payroll.deleted_at.is_(None),
                Payroll.pay_period_date >= start,
                Payroll.pay_period_date <= end,
            )
        )
        rows = result.all()
        sums = {
            key: Decimal("0.00")
            for key in (
                "gross_salary_by_fte",
                "net_salary",
                "tax",
                "employer_contribution",
                "total_salary",
            )
        }
        employees: set[UUID] = set()
        for payroll, employee_id in rows:
            employees.add(employee_id)
            for key in sums:
                sums[key] += getattr(payroll, key)
        return {
            "start": start,
            "end": end,
            "payroll_count": len(rows),
            "employee_count": len(employees),
            **sums,
        }

    async def budget_history(
        self,
        grant_code: str | None = None,
        start: date | None = None,
        end: date | None = None,
    ) -> list[dict[str, Any]]:
        """Which grants paid which months, taken from funding snapshots only."""
        query = (
            select(PayrollGrantAllocation, Payroll.pay_period_date)
            .join(Payroll, PayrollGrantAllocation.payroll_id == Payroll.id)
            .where(Payroll.deleted_at.is_(None))
        )
        if grant_code:
            query = query.where(PayrollGrantAllocation.grant_code == grant_code)
        if start:
            query = query.where(Payroll.pay_period_date >= start)
        if end:
            query = query.where(Payroll.pay_period_date <= end)

        buckets: dict[tuple[str, str | None, str | None], dict[str, Any]] = {}
        for snapshot, period in (await self.session.execute(query)).all():
            key = (f"{period:%Y-%m}", snapshot.grant_code, snapshot.budget_line_code)
            bucket = buckets.setdefault(
                key,
                {
                    "pay_period": key[0],
                    "grant_code": snapshot.grant_code,
                    "grant_name": snapshot.grant_name,
                    "budget_line_code": snapshot.budget_line_code,
                    "payroll_count": 0,
                    "total_fte": Decimal("0"),
                    "total_allocated": Decimal("0.00"),
                },
            )
            bucket["payroll_count"] += 1
            bucket["total_fte"] += Decimal(snapshot.fte)
            bucket["total_allocated"] += Decimal(snapshot.allocated_amount)
        return [buckets[k] for k in sorted(buckets, key=lambda k: (k[0], k[1] or "", k[2] or ""))]


def describe_employee(employee: Employee) -> str:
    return f"{employee.staff_id} - {employee.full_name}"
