"""Tests for probation transitions and their effect on allocations."""

from datetime import date
from decimal import Decimal

import pytest
import pytest_asyncio
from sqlalchemy.exc import IntegrityError

from hr_payroll.services.allocation_service import AllocationRequest, AllocationService
from hr_payroll.services.errors import ProbationError
from hr_payroll.services.probation_service import ProbationService

pytestmark = pytest.mark.asyncio

ACTOR = "tester@example.org"


@pytest_asyncio.fixture
async def on_probation(session, make_employment, employee, grant_item):
    """Employment paid 20000 until 2025-04-01, fully allocated to one grant item."""
    employment = await make_employment(employee, probation_salary=Decimal("20000.00"))
    await AllocationService(session).allocate(
        employment, [AllocationRequest(fte=Decimal("1.00"), grant_item_id=grant_item.id)]
    )
    return employment


class TestProbationDefaults:
    """New employments with a probation salary."""

    async def test_pass_date_defaults_to_three_months(self, session, on_probation):
        assert on_probation.pass_probation_date == date(2025, 4, 1)
        assert on_probation.probation_status == "ongoing"

        history = await ProbationService(session).history(on_probation)
        assert [r.event_type for r in history] == ["initial"]

    async def test_allocation_priced_at_probation_salary(self, session, on_probation):
        [allocation] = await AllocationService(session).active_allocations(on_probation.id)
        assert allocation.salary_type == "probation_salary"
        assert allocation.allocated_amount == Decimal("20000.00")


class TestMarkPassed:
    """Passing probation re-creates allocations at the regular salary."""

    async def test_allocations_are_split_at_pass_date(self, session, on_probation):
        service = ProbationService(session)
        allocations = AllocationService(session)
        [old] = await allocations.active_allocations(on_probation.id)

        [new] = await service.mark_passed(on_probation, date(2025, 4, 1), ACTOR)

        assert old.status == "closed"
        assert old.end_date == date(2025, 3, 31)
        assert new.start_date == date(2025, 4, 1)
        assert new.end_date is None
        assert new.salary_type == "pass_probation_salary"
        assert new.allocated_amount == Decimal("30000.00")
        assert on_probation.probation_status == "passed"

        history = await service.history(on_probation)
        assert {r.event_type for r in history} == {"initial", "passed"}
        assert [r.event_type for r in history if r.is_active] == ["passed"]

    async def test_cannot_pass_twice(self, session, on_probation):
        service = ProbationService(session)
        await service.mark_passed(on_probation, date(2025, 4, 1))

        with pytest.raises(ProbationError):
            await service.mark_passed(on_probation, date(2025, 4, 2))

    async def test_process_due_passes_matching_employments(self, session, on_probation):
        result = await ProbationService(session).process_due(date(2025, 4, 1), actor=ACTOR)

        assert result.processed == 1
        assert result.passed == 1
        assert result.errors == []
        assert on_probation.probation_status == "passed"

    async def test_allocations_ended_before_pass_date_are_left_alone(
        self, session, make_employee, make_employment, hub_grant
    ):
        employment = await make_employment(
            await make_employee(), probation_salary=Decimal("20000.00")
        )
        allocations = AllocationService(session)
        ended, later = await allocations.allocate(
            employment,
            [
                AllocationRequest(
                    fte=Decimal("1.00"),
                    allocation_type="org_funded",
                    org_funded_grant_id=hub_grant.id,
                    end_date=date(2025, 2, 28),
                ),
                AllocationRequest(
                    fte=Decimal("0.50"),
                    allocation_type="org_funded",
                    org_funded_grant_id=hub_grant.id,
                    start_date=date(2025, 4, 15),
                ),
            ],
        )

        created = await ProbationService(session).mark_passed(employment, date(2025, 4, 1), ACTOR)

        assert created == []
        assert ended.status == "active"
        assert ended.end_date == date(2025, 2, 28)
        assert ended.allocated_amount == Decimal("20000.00")
        assert later.status == "active"
        assert later.start_date == date(2025, 4, 15)
        assert later.salary_type == "pass_probation_salary"
        assert later.allocated_amount == Decimal("15000.00")

    async def test_process_due_isolates_a_failing_employment(
        self, session, monkeypatch, on_probation, make_employee, make_employment
    ):
        broken = await make_employment(
            await make_employee(), probation_salary=Decimal("20000.00")
        )
        passing = ProbationService.mark_passed

        async def mark_passed(self, employment, transition_date=None, actor=None):
            if employment.id == broken.id:
                employment.probation_status = "passed"
                await self.session.flush()
                raise IntegrityError("INSERT INTO probation_records", {}, Exception("constraint"))
            return await passing(self, employment, transition_date, actor)

        monkeypatch.setattr(ProbationService, "mark_passed", mark_passed)
        result = await ProbationService(session).process_due(date(2025, 4, 1), actor=ACTOR)

        assert result.processed == 2
        assert result.passed == 1
        assert result.failed == 1
        assert [e["employment_id"] for e in result.errors] == [str(broken.id)]
        assert on_probation.probation_status == "passed"

        await session.refresh(broken)
        assert broken.probation_status == "ongoing"

    async def test_process_due_ignores_other_dates(self, session, on_probation):
        result = await ProbationService(session).process_due(date(2025, 4, 2))
        assert result.processed == 0


class TestFailAndExtend:
    """Failing ends the employment; extending moves the pass date."""

    async def test_failed_probation_ends_employment(self, session, on_probation):
        await ProbationService(session).mark_failed(
            on_probation, date(2025, 3, 15), reason="Performance", actor=ACTOR
        )

        assert on_probation.active is False
        assert on_probation.end_date == date(2025, 3, 15)
        assert on_probation.probation_status == "failed"
        assert await AllocationService(session).active_allocations(on_probation.id) == []

    async def test_extension_is_numbered(self, session, on_probation):
        service = ProbationService(session)
        first = await service.extend(on_probation, date(2025, 5, 1), reason="More time")
        second = await service.extend(on_probation, date(2025, 6, 1))

        assert first.extension_number == 1
        assert second.extension_number == 2
        assert second.previous_end_date == date(2025, 5, 1)
        assert on_probation.probation_status == "extended"
        assert on_probation.pass_probation_date == date(2025, 6, 1)

    async def test_extension_must_move_forward(self, session, on_probation):
        with pytest.raises(ProbationError):
            await ProbationService(session).extend(on_probation, date(2025, 3, 1))
