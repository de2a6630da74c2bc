"""Probation transitions.

Passing probation closes the probation-priced allocations the day before the
pass date and opens identical ones priced at the pass-probation salary, so
payroll history on either side of the transition keeps its own snapshot.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import Decimal
from typing import Any

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from hr_payroll.calculators.salary import allocated_amount
from hr_payroll.calculators.types import SalaryType
from hr_payroll.models import EmployeeFundingAllocation, Employment, ProbationRecord
from hr_payroll.services.allocation_service import AllocationService
from hr_payroll.services.errors import ProbationError, ServiceError
from hr_payroll.services.state_machine import AllocationStatus

logger = logging.getLogger(__name__)

OPEN_PROBATION_STATUSES = ("ongoing", "extended")


@dataclass
class ProbationRunResult:
    """Outcome of a batch of due probation transitions."""

    processed: int = 0
    passed: int = 0
    failed: int = 0
    errors: list[dict[str, Any]] = field(default_factory=list)


class ProbationService:
    """Pass, fail and extend probation on employments."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.allocation_service = AllocationService(session)

    def _ensure_open(self, employment: Employment) -> None:
        if employment.probation_status not in OPEN_PROBATION_STATUSES:
            raise ProbationError(
                f"Probation already {employment.probation_status}",
                employment_id=str(employment.id),
            )

    async def _deactivate_records(self, employment: Employment) -> None:
        result = await self.session.execute(
            select(ProbationRecord).where(
                ProbationRecord.employment_id == employment.id,
                ProbationRecord.is_active.is_(True),
            )
        )
        for record in result.scalars().all():
            record.is_active = False

    async def mark_passed(
        self,
        employment: Employment,
        transition_date: date | None = None,
        actor: str | None = None,
    ) -> list[EmployeeFundingAllocation]:
        """Re-price the allocations still running on the pass date.

        Allocations spanning the pass date are closed the day before and
        reopened from it; ones starting later are re-priced in place. Allocations
        that ended earlier keep their probation pricing.
        """
        self._ensure_open(employment)
        pass_date = transition_date or employment.pass_probation_date or date.today()

        current = await self.allocation_service.active_allocations(employment.id, pass_date)
        replacements: list[EmployeeFundingAllocation] = []
        pass_amount = Decimal(employment.pass_probation_salary)
        for allocation in current:
            fte = Decimal(allocation.fte)
            if allocation.start_date >= pass_date:
                allocation.salary_type = SalaryType.PASS_PROBATION.value
                allocation.allocated_amount = allocated_amount(pass_amount, fte)
                allocation.updated_by = actor
                continue
            original_end = allocation.end_date
            allocation.status = AllocationStatus.CLOSED.value
            allocation.end_date = pass_date - timedelta(days=1)
            allocation.updated_by = actor
            replacements.append(
                EmployeeFundingAllocation(
                    employee_id=allocation.employee_id,
                    employment_id=allocation.employment_id,
                    allocation_type=allocation.allocation_type,
                    grant_item_id=allocation.grant_item_id,
                    org_funded_grant_id=allocation.org_funded_grant_id,
                    fte=fte,
                    salary_type=SalaryType.PASS_PROBATION.value,
                    allocated_amount=allocated_amount(pass_amount, fte),
                    status=AllocationStatus.ACTIVE.value,
                    start_date=pass_date,
                    end_date=original_end,
                    created_by=actor,
                    updated_by=actor,
                )
            )
        await self.session.flush()
        self.session.add_all(replacements)

        await self._deactivate_records(employment)
        self.session.add(
            ProbationRecord(
                employment_id=employment.id,
                employee_id=employment.employee_id,
                event_type="passed",
                event_date=pass_date,
                decision_date=pass_date,
                probation_start_date=employment.start_date,
                probation_end_date=pass_date,
                created_by=actor,
            )
        )
        employment.probation_status = "passed"
        employment.pass_probation_date = pass_date
        employment.end_probation_date = pass_date
        employment.updated_by = actor
        await self.session.flush()

        logger.info(
            "Employment %s passed probation on %s; %d allocation(s) re-priced",
            employment.id,
            pass_date,
            len(replacements),
        )
        return replacements

    async def mark_failed(
        self,
        employment: Employment,
        decision_date: date | None = None,
        reason: str | None = None,
        actor: str | None = None,
    ) -> None:
        """End the employment and close its allocations."""
        self._ensure_open(employment)
        when = decision_date or date.today()

        for allocation in await self.allocation_service.active_allocations(employment.id):
            allocation.status = AllocationStatus.CLOSED.value
            allocation.end_date = max(when, allocation.start_date)
            allocation.updated_by = actor

        await self._deactivate_records(employment)
        self.session.add(
            ProbationRecord(
                employment_id=employment.id,
                employee_id=employment.employee_id,
                event_type="failed",
                event_date=when,
                decision_date=when,
                probation_start_date=employment.start_date,
                probation_end_date=when,
                decision_reason=reason,
                created_by=actor,
            )
        )
        employment.probation_status = "failed"
        employment.end_date = max(when, employment.start_date)
        employment.active = False
        employment.updated_by = actor
        await self.session.flush()
        logger.info("Employment %s failed probation on %s", employment.id, when)

    async def extend(
        self,
        employment: Employment,
        new_pass_date: date,
        reason: str | None = None,
        actor: str | None = None,
    ) -> ProbationRecord:
        self._ensure_open(employment)
        previous = employment.pass_probation_date
        if previous is not None and new_pass_date <= previous:
            raise ProbationError("Extended pass date must be after the current one")

        extensions = await self.session.scalar(
            select(func.count(ProbationRecord.id)).where(
                ProbationRecord.employment_id == employment.id,
                ProbationRecord.event_type == "extension",
            )
        ) or 0

        await self._deactivate_records(employment)
        record = ProbationRecord(
            employment_id=employment.id,
            employee_id=employment.employee_id,
            event_type="extension",
            event_date=date.today(),
            probation_start_date=employment.start_date,
            probation_end_date=new_pass_date,
            previous_end_date=previous,
            extension_number=extensions + 1,
            decision_reason=reason,
            created_by=actor,
        )
        self.session.add(record)
        employment.pass_probation_date = new_pass_date
        employment.end_probation_date = new_pass_date
        employment.probation_status = "extended"
        employment.updated_by = actor
        await self.session.flush()

        await self.allocation_service.recalculate_amounts(employment, actor)
        logger.info(
            "Employment %s probation extended to %s (extension %d)",
            employment.id,
            new_pass_date,
            record.extension_number,
        )
        return record

    async def history(self, employment: Employment) -> list[ProbationRecord]:
        result = await self.session.execute(
            select(ProbationRecord)
            .where(ProbationRecord.employment_id == employment.id)
            .order_by(ProbationRecord.created_at)
        )
        return list(result.scalars().all())

    async def process_due(self, today: date | None = None, actor: str | None = None) -> ProbationRunResult:
        """Pass every open probation whose pass date is today.

        Each employment runs in its own savepoint, so a failing one is rolled
        back, logged and counted without stopping the others.
        """
        when = today or date.today()
        result = await self.session.execute(
            select(Employment).where(
                Employment.active.is_(True),
                Employment.pass_probation_date == when,
                Employment.probation_status.in_(OPEN_PROBATION_STATUSES),
            )
        )
        outcome = ProbationRunResult()
        for employment in result.scalars().all():
            # Rolled-back savepoints expire what they touched
            employment_id = employment.id
            outcome.processed += 1
            try:
                async with self.session.begin_nested():
                    await self.mark_passed(employment, when, actor)
                outcome.passed += 1
            except ServiceError as exc:
                outcome.failed += 1
                outcome.errors.append({"employment_id": str(employment_id), "error": exc.message})
                logger.exception("Probation transition failed for employment %s", employment_id)
            except SQLAlchemyError as exc:
                outcome.failed += 1
                outcome.errors.append({"employment_id": str(employment_id), "error": str(exc)})
                logger.exception("Probation transition failed for employment %s", employment_id)
        return outcome
