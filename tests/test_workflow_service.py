"""Tests for travel, personnel action, resignation and holiday compensation workflows."""

from datetime import date
from decimal import Decimal

import pytest

from hr_payroll.models import Employment, HolidayCompensationRecord, TravelRequest
from hr_payroll.services.allocation_service import AllocationService
from hr_payroll.services.errors import WorkflowError
from hr_payroll.services.workflow_service import WorkflowService

pytestmark = pytest.mark.asyncio

ACTOR = "tester@example.org"
PERSONNEL_GATES = ("dept_head", "coo", "hr", "accountant")


async def _approve_all(service, record, gates):
    for gate in gates:
        await service.approve(record, gate, actor=ACTOR)


class TestGateApprovals:
    """Records become approved once every gate is set."""

    async def test_travel_request_needs_supervisor_and_hr(self, session, employee):
        service = WorkflowService(session)
        travel = await service.create(
            TravelRequest,
            {
                "employee_id": employee.id,
                "destination": "Bangkok",
                "start_date": date(2025, 5, 5),
                "to_date": date(2025, 5, 9),
            },
            ACTOR,
        )
        assert travel.status == "pending"

        await service.approve(travel, "supervisor", actor=ACTOR)
        assert travel.status == "pending"
        await service.approve(travel, "hr", actor=ACTOR)
        assert travel.status == "approved"
        assert travel.hr_approved_date == date.today()

    async def test_withdrawing_a_gate_reverts_to_pending(self, session, employee):
        service = WorkflowService(session)
        record = await service.create(
            HolidayCompensationRecord,
            {"employee_id": employee.id, "work_date": date(2025, 4, 14)},
        )
        await _approve_all(service, record, ("supervisor", "hr"))

        await service.approve(record, "hr", approved=False)
        assert record.status == "pending"
        assert record.hr_approved_date is None

    async def test_unknown_gate(self, session, employee):
        service = WorkflowService(session)
        record = await service.create(
            HolidayCompensationRecord,
            {"employee_id": employee.id, "work_date": date(2025, 4, 14)},
        )
        with pytest.raises(WorkflowError) as exc_info:
            await service.approve(record, "coo")
        assert exc_info.value.context["allowed"] == ["supervisor", "hr"]

    async def test_declined_record_cannot_be_approved(self, session, employee):
        service = WorkflowService(session)
        record = await service.create(
            HolidayCompensationRecord,
            {"employee_id": employee.id, "work_date": date(2025, 4, 14)},
        )
        await service.decline(record, ACTOR)

        with pytest.raises(WorkflowError, match="already declined"):
            await service.approve(record, "supervisor")


class TestPersonnelActions:
    """Approved actions are written onto the employment."""

    async def test_salary_increment_reprices_allocations(self, session, funded_employment):
        service = WorkflowService(session)
        action = await service.create_personnel_action(
            {
                "employment_id": funded_employment.id,
                "action_type": "fiscal_increment",
                "effective_date": date(2025, 7, 1),
                "new_salary": Decimal("35000.00"),
            },
            ACTOR,
        )
        assert action.current_salary == Decimal("30000.00")

        await _approve_all(service, action, PERSONNEL_GATES)
        employment = await service.apply_personnel_action(action, ACTOR)

        assert action.status == "applied"
        assert action.applied_date == date.today()
        assert employment.pass_probation_salary == Decimal("35000.00")
        amounts = sorted(
            a.allocated_amount
            for a in await AllocationService(session).active_allocations(employment.id)
        )
        assert amounts == [Decimal("14000.00"), Decimal("21000.00")]

    async def test_apply_requires_every_approval(self, session, employment):
        service = WorkflowService(session)
        action = await service.create_personnel_action(
            {
                "employment_id": employment.id,
                "action_type": "title_change",
                "effective_date": date(2025, 7, 1),
            }
        )
        await service.approve(action, "dept_head")

        with pytest.raises(WorkflowError) as exc_info:
            await service.apply_personnel_action(action)
        assert exc_info.value.context["missing_approvals"] == ["coo", "hr", "accountant"]

    async def test_apply_only_once(self, session, employment):
        service = WorkflowService(session)
        action = await service.create_personnel_action(
            {
                "employment_id": employment.id,
                "action_type": "title_change",
                "effective_date": date(2025, 7, 1),
            }
        )
        await _approve_all(service, action, PERSONNEL_GATES)
        await service.apply_personnel_action(action)

        with pytest.raises(WorkflowError, match="already been applied"):
            await service.apply_personnel_action(action)

    async def test_voluntary_separation_ends_employment(self, session, funded_employment):
        service = WorkflowService(session)
        action = await service.create_personnel_action(
            {
                "employment_id": funded_employment.id,
                "action_type": "voluntary_separation",
                "effective_date": date(2025, 6, 30),
            }
        )
        await _approve_all(service, action, PERSONNEL_GATES)
        await service.apply_personnel_action(action)

        employment = await session.get(Employment, funded_employment.id)
        assert employment.active is False
        assert employment.end_date == date(2025, 6, 30)
        assert await AllocationService(session).active_allocations(employment.id) == []

    async def test_unknown_action_type(self, session, employment):
        with pytest.raises(WorkflowError, match="Unknown personnel action type"):
            await WorkflowService(session).create_personnel_action(
                {
                    "employment_id": employment.id,
                    "action_type": "promotion_by_vibes",
                    "effective_date": date(2025, 7, 1),
                }
            )


class TestResignations:
    """Resignations are acknowledged or rejected once."""

    def _data(self, employee, **overrides):
        data = {
            "employee_id": employee.id,
            "resignation_date": date(2025, 5, 1),
            "last_working_date": date(2025, 5, 31),
            "reason": "Relocation",
        }
        data.update(overrides)
        return data

    async def test_acknowledge(self, session, employee):
        service = WorkflowService(session)
        resignation = await service.create_resignation(self._data(employee), ACTOR)
        assert resignation.acknowledgement_status == "Pending"

        await service.acknowledge_resignation(resignation, accept=True, actor=ACTOR)
        assert resignation.acknowledgement_status == "Acknowledged"
        assert resignation.acknowledged_by == ACTOR

        with pytest.raises(WorkflowError):
            await service.acknowledge_resignation(resignation, accept=False)

    async def test_last_day_before_resignation_date(self, session, employee):
        with pytest.raises(WorkflowError):
            await WorkflowService(session).create_resignation(
                self._data(employee, last_working_date=date(2025, 4, 30))
            )
