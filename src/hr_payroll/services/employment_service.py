"""Employment contract service."""

from __future__ import annotations

import logging
from datetime import date
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hr_payroll.calculators.salary import add_months
from hr_payroll.config import Settings, get_settings
from hr_payroll.models import Employee, Employment, ProbationRecord
from hr_payroll.services.allocation_service import AllocationService
from hr_payroll.services.errors import ConflictError, NotFoundError, ServiceError

logger = logging.getLogger(__name__)

SALARY_FIELDS = {"pass_probation_salary", "probation_salary", "pass_probation_date"}


def _ranges_overlap(
    a_start: date, a_end: date | None, b_start: date, b_end: date | None
) -> bool:
    if a_end is not None and a_end < b_start:
        return False
    if b_end is not None and b_end < a_start:
        return False
    return True


class EmploymentService:
    """Creates and edits employments, keeping allocations' salary context in step."""

    def __init__(self, session: AsyncSession, settings: Settings | None = None):
        self.session = session
        self.settings = settings or get_settings()

    async def get_employment(self, employment_id: UUID) -> Employment:
        employment = await self.session.get(Employment, employment_id)
        if employment is None:
            raise NotFoundError("Employment not found", employment_id=str(employment_id))
        return employment

    async def current_employment(self, employee_id: UUID) -> Employment | None:
        """Most recent active employment of an employee."""
        result = await self.session.execute(
            select(Employment)
            .where(Employment.employee_id == employee_id, Employment.active.is_(True))
            .order_by(Employment.start_date.desc())
        )
        return result.scalars().first()

    def default_pass_probation_date(self, start_date: date) -> date:
        return add_months(start_date, self.settings.probation_months)

    async def _check_overlap(
        self,
        employee_id: UUID,
        start: date,
        end: date | None,
        exclude_id: UUID | None = None,
    ) -> None:
        result = await self.session.execute(
            select(Employment).where(Employment.employee_id == employee_id)
        )
        for other in result.scalars().all():
            if other.id == exclude_id:
                continue
            if _ranges_overlap(start, end, other.start_date, other.end_date):
                raise ConflictError(
                    "Employment dates overlap an existing employment",
                    employment_id=str(other.id),
                )

    async def create_employment(self, data: dict[str, Any], actor: str | None = None) -> Employment:
        employee = await self.session.get(Employee, data["employee_id"])
        if employee is None or employee.deleted_at is not None:
            raise NotFoundError("Employee not found", employee_id=str(data["employee_id"]))

        start = data["start_date"]
        end = data.get("end_date")
        if end is not None and end < start:
            raise ServiceError("end_date must be on or after start_date")
        await self._check_overlap(employee.id, start, end)

        values = dict(data)
        if values.get("probation_salary") is not None and not values.get("pass_probation_date"):
            values["pass_probation_date"] = self.default_pass_probation_date(start)
        if values.get("pass_probation_date") and not values.get("end_probation_date"):
            values["end_probation_date"] = values["pass_probation_date"]

        employment = Employment(**values, created_by=actor, updated_by=actor)
        self.session.add(employment)
        await self.session.flush()

        if employment.pass_probation_date is not None:
            self.session.add(
                ProbationRecord(
                    employment_id=employment.id,
                    employee_id=employment.employee_id,
                    event_type="initial",
                    event_date=start,
                    probation_start_date=start,
                    probation_end_date=employment.pass_probation_date,
                    created_by=actor,
                )
            )
            await self.session.flush()

        logger.info("Created employment %s for employee %s", employment.id, employee.staff_id)
        return employment

    async def update_employment(
        self, employment: Employment, changes: dict[str, Any], actor: str | None = None
    ) -> Employment:
        """Apply changes; salary changes re-price the active allocations."""
        start = changes.get("start_date", employment.start_date)
        end = changes["end_date"] if "end_date" in changes else employment.end_date
        if end is not None and end < start:
            raise ServiceError("end_date must be on or after start_date")
        if "start_date" in changes or "end_date" in changes:
            await self._check_overlap(employment.employee_id, start, end, exclude_id=employment.id)

        for key, value in changes.items():
            setattr(employment, key, value)
        employment.updated_by = actor
        await self.session.flush()

        if SALARY_FIELDS & changes.keys():
            count = await AllocationService(self.session).recalculate_amounts(employment, actor)
            logger.info(
                "Re-priced %d allocation(s) after salary change on employment %s",
                count,
                employment.id,
            )
        return employment
