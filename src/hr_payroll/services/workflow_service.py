"""Approval workflows for travel, personnel actions, resignations and holiday compensation.

Every workflow record lists its approval gates in ``APPROVAL_GATES``; each
gate is a ``<gate>_approved`` flag with a ``<gate>_approved_date``. Once all
gates are set the record's status becomes ``approved``.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, TypeVar
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hr_payroll.models import (
    Employee,
    Employment,
    HolidayCompensationRecord,
    PersonnelAction,
    Resignation,
    TravelRequest,
)
from hr_payroll.services.allocation_service import AllocationService
from hr_payroll.services.employment_service import EmploymentService
from hr_payroll.services.errors import NotFoundError, WorkflowError
from hr_payroll.services.state_machine import AllocationStatus

logger = logging.getLogger(__name__)

STATUS_PENDING = "pending"
STATUS_APPROVED = "approved"
STATUS_DECLINED = "declined"
STATUS_APPLIED = "applied"

RESIGNATION_PENDING = "Pending"
RESIGNATION_ACKNOWLEDGED = "Acknowledged"
RESIGNATION_REJECTED = "Rejected"

ApprovalRecord = TypeVar(
    "ApprovalRecord", TravelRequest, PersonnelAction, HolidayCompensationRecord
)


def fully_approved(record: Any) -> bool:
    return all(getattr(record, f"{gate}_approved") for gate in record.APPROVAL_GATES)


class WorkflowService:
    """Creates workflow records and moves them through their approval gates."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, model: type[Any], record_id: UUID) -> Any:
        record = await self.session.get(model, record_id)
        if record is None or getattr(record, "deleted_at", None) is not None:
            raise NotFoundError(f"{model.__name__} not found", id=str(record_id))
        return record

    async def list_records(
        self,
        model: type[Any],
        employee_id: UUID | None = None,
        status: str | None = None,
    ) -> list[Any]:
        query = select(model).order_by(model.created_at.desc())
        if hasattr(model, "deleted_at"):
            query = query.where(model.deleted_at.is_(None))
        if employee_id is not None and hasattr(model, "employee_id"):
            query = query.where(model.employee_id == employee_id)
        if status is not None and hasattr(model, "status"):
            query = query.where(model.status == status)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def _require_employee(self, employee_id: UUID) -> Employee:
        employee = await self.session.get(Employee, employee_id)
        if employee is None or employee.deleted_at is not None:
            raise NotFoundError("Employee not found", employee_id=str(employee_id))
        return employee

    async def create(
        self, model: type[ApprovalRecord], data: dict[str, Any], actor: str | None = None
    ) -> ApprovalRecord:
        """Create a travel request or holiday compensation record."""
        await self._require_employee(data["employee_id"])
        record = model(**data, status=STATUS_PENDING, created_by=actor, updated_by=actor)
        self.session.add(record)
        await self.session.flush()
        logger.info("Created %s %s", model.__name__, record.id)
        return record

    async def approve(
        self,
        record: ApprovalRecord,
        gate: str,
        approved: bool = True,
        actor: str | None = None,
    ) -> ApprovalRecord:
        """Toggle one approval gate and derive the record's status."""
        if gate not in record.APPROVAL_GATES:
            raise WorkflowError(
                f"Unknown approval gate '{gate}' for {type(record).__name__}",
                gate=gate,
                allowed=list(record.APPROVAL_GATES),
            )
        if record.status not in (STATUS_PENDING, STATUS_APPROVED):
            raise WorkflowError(f"Record is already {record.status}", status=record.status)

        setattr(record, f"{gate}_approved", approved)
        setattr(record, f"{gate}_approved_date", date.today() if approved else None)
        record.status = STATUS_APPROVED if fully_approved(record) else STATUS_PENDING
        record.updated_by = actor
        await self.session.flush()
        logger.info(
            "%s %s: %s gate %s, status %s",
            type(record).__name__,
            record.id,
            gate,
            "approved" if approved else "withdrawn",
            record.status,
        )
        return record

    async def decline(self, record: ApprovalRecord, actor: str | None = None) -> ApprovalRecord:
        if record.status != STATUS_PENDING:
            raise WorkflowError(f"Record is already {record.status}", status=record.status)
        record.status = STATUS_DECLINED
        record.updated_by = actor
        await self.session.flush()
        return record

    # ------------------------------------------------------------------
    # Personnel actions
    # ------------------------------------------------------------------

    async def create_personnel_action(
        self, data: dict[str, Any], actor: str | None = None
    ) -> PersonnelAction:
        """Raise a personnel action, snapshotting the employment's current terms."""
        employment = await self.session.get(Employment, data["employment_id"])
        if employment is None:
            raise NotFoundError("Employment not found", employment_id=str(data["employment_id"]))
        if data["action_type"] not in PersonnelAction.ACTION_TYPES:
            raise WorkflowError(
                f"Unknown personnel action type '{data['action_type']}'",
                allowed=list(PersonnelAction.ACTION_TYPES),
            )
        action = PersonnelAction(
            **data,
            current_department_id=employment.department_id,
            current_position_id=employment.position_id,
            current_salary=employment.pass_probation_salary,
            status=STATUS_PENDING,
            created_by=actor,
            updated_by=actor,
        )
        self.session.add(action)
        await self.session.flush()
        logger.info(
            "Personnel action %s (%s) raised for employment %s",
            action.id,
            action.action_type,
            employment.id,
        )
        return action

    async def apply_personnel_action(
        self, action: PersonnelAction, actor: str | None = None
    ) -> Employment:
        """Write a fully approved action onto its employment."""
        if action.status == STATUS_APPLIED:
            raise WorkflowError("Personnel action has already been applied")
        if not fully_approved(action):
            missing = [g for g in action.APPROVAL_GATES if not getattr(action, f"{g}_approved")]
            raise WorkflowError(
                "Personnel action is not fully approved",
                missing_approvals=missing,
            )

        employment_service = EmploymentService(self.session)
        employment = await employment_service.get_employment(action.employment_id)

        if action.action_type == "voluntary_separation":
            allocations = await AllocationService(self.session).active_allocations(employment.id)
            for allocation in allocations:
                allocation.status = AllocationStatus.CLOSED.value
                allocation.end_date = max(action.effective_date, allocation.start_date)
                allocation.updated_by = actor
            changes: dict[str, Any] = {
                "end_date": max(action.effective_date, employment.start_date),
                "active": False,
            }
        else:
            changes = {}
            if action.new_department_id is not None:
                changes["department_id"] = action.new_department_id
            if action.new_position_id is not None:
                changes["position_id"] = action.new_position_id
            if action.new_site_id is not None:
                changes["site_id"] = action.new_site_id
            if action.new_salary is not None:
                changes["pass_probation_salary"] = action.new_salary

        await employment_service.update_employment(employment, changes, actor)
        action.status = STATUS_APPLIED
        action.applied_date = date.today()
        action.updated_by = actor
        await self.session.flush()
        logger.info(
            "Applied personnel action %s to employment %s: %s",
            action.id,
            employment.id,
            ", ".join(sorted(changes)) or "no changes",
        )
        return employment

    # ------------------------------------------------------------------
    # Resignations
    # ------------------------------------------------------------------

    async def create_resignation(self, data: dict[str, Any], actor: str | None = None) -> Resignation:
        await self._require_employee(data["employee_id"])
        if data["last_working_date"] < data["resignation_date"]:
            raise WorkflowError("last_working_date must be on or after resignation_date")
        resignation = Resignation(
            **data,
            acknowledgement_status=RESIGNATION_PENDING,
            created_by=actor,
            updated_by=actor,
        )
        self.session.add(resignation)
        await self.session.flush()
        logger.info("Resignation %s recorded for employee %s", resignation.id, data["employee_id"])
        return resignation

    async def acknowledge_resignation(
        self, resignation: Resignation, accept: bool = True, actor: str | None = None
    ) -> Resignation:
        if resignation.acknowledgement_status != RESIGNATION_PENDING:
            raise WorkflowError(
                f"Resignation is already {resignation.acknowledgement_status}",
                status=resignation.acknowledgement_status,
            )
        resignation.acknowledgement_status = (
            RESIGNATION_ACKNOWLEDGED if accept else RESIGNATION_REJECTED
        )
        resignation.acknowledged_by = actor
        resignation.acknowledged_at = date.today()
        resignation.updated_by = actor
        await self.session.flush()
        logger.info("Resignation %s %s", resignation.id, resignation.acknowledgement_status.lower())
        return resignation
