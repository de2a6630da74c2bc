"""Tests for funding allocations and the FTE ceiling."""

from datetime import date
from decimal import Decimal

import pytest

from hr_payroll.services.allocation_service import AllocationRequest, AllocationService
from hr_payroll.services.errors import AllocationError, CapacityExceededError, FTEExceededError
from hr_payroll.services.state_machine import InvalidTransitionError

pytestmark = pytest.mark.asyncio

ACTOR = "tester@example.org"


class TestAllocate:
    """Creating allocations."""

    async def test_split_across_grant_and_hub(self, session, employment, grant_item, hub_grant):
        service = AllocationService(session)
        created = await service.allocate(
            employment,
            [
                AllocationRequest(fte=Decimal("0.60"), grant_item_id=grant_item.id),
                AllocationRequest(
                    fte=Decimal("0.40"),
                    allocation_type="org_funded",
                    org_funded_grant_id=hub_grant.id,
                ),
            ],
            ACTOR,
        )

        assert len(created) == 2
        assert created[0].allocated_amount == Decimal("18000.00")
        assert created[0].start_date == employment.start_date
        assert created[1].grant_item_id is None

        summary = await service.employee_summary(employment.employee_id, date(2025, 3, 1))
        assert summary["total_fte"] == Decimal("1.00")
        assert summary["is_fully_allocated"] is True
        assert summary["remaining_fte"] == Decimal("0")

    async def test_total_fte_cannot_exceed_one(self, session, employment, grant_item):
        service = AllocationService(session)
        await service.allocate(
            employment, [AllocationRequest(fte=Decimal("0.60"), grant_item_id=grant_item.id)]
        )

        with pytest.raises(FTEExceededError):
            await service.allocate(
                employment,
                [AllocationRequest(fte=Decimal("0.50"), grant_item_id=grant_item.id)],
            )

    async def test_requests_in_one_call_count_together(self, session, employment, grant_item):
        with pytest.raises(FTEExceededError):
            await AllocationService(session).allocate(
                employment,
                [
                    AllocationRequest(fte=Decimal("0.70"), grant_item_id=grant_item.id),
                    AllocationRequest(fte=Decimal("0.70"), grant_item_id=grant_item.id),
                ],
            )

    async def test_non_overlapping_periods_do_not_add_up(self, session, employment, grant_item):
        service = AllocationService(session)
        await service.allocate(
            employment,
            [
                AllocationRequest(
                    fte=Decimal("1.00"),
                    grant_item_id=grant_item.id,
                    end_date=date(2025, 6, 30),
                ),
                AllocationRequest(
                    fte=Decimal("1.00"),
                    grant_item_id=grant_item.id,
                    start_date=date(2025, 7, 1),
                ),
            ],
        )
        assert await service.concurrent_fte(
            employment.employee_id, date(2025, 3, 1), date(2025, 3, 31)
        ) == Decimal("1.00")

    async def test_sequential_halves_leave_room_for_a_spanning_half(
        self, session, employment, hub_grant
    ):
        """Half-time Jan-Mar then Apr-Jun plus half-time Jan-Jun peaks at 1.00."""
        service = AllocationService(session)

        def half(start, end):
            return AllocationRequest(
                fte=Decimal("0.50"),
                allocation_type="org_funded",
                org_funded_grant_id=hub_grant.id,
                start_date=start,
                end_date=end,
            )

        await service.allocate(
            employment,
            [half(date(2025, 1, 1), date(2025, 3, 31)), half(date(2025, 4, 1), date(2025, 6, 30))],
        )
        created = await service.allocate(employment, [half(date(2025, 1, 1), date(2025, 6, 30))])

        assert len(created) == 1
        assert await service.concurrent_fte(
            employment.employee_id, date(2025, 1, 1), date(2025, 6, 30)
        ) == Decimal("1.00")

        with pytest.raises(FTEExceededError):
            await service.allocate(employment, [half(date(2025, 3, 1), date(2025, 4, 30))])

    async def test_org_funded_requires_hub_grant(self, session, employment, grant):
        with pytest.raises(AllocationError, match="hub grant"):
            await AllocationService(session).allocate(
                employment,
                [
                    AllocationRequest(
                        fte=Decimal("1.00"),
                        allocation_type="org_funded",
                        org_funded_grant_id=grant.id,
                    )
                ],
            )

    async def test_fte_must_be_positive(self, session, employment, grant_item):
        with pytest.raises(AllocationError):
            await AllocationService(session).allocate(
                employment, [AllocationRequest(fte=Decimal("0"), grant_item_id=grant_item.id)]
            )

    async def test_cannot_start_before_employment(self, session, employment, grant_item):
        with pytest.raises(AllocationError, match="before the employment"):
            await AllocationService(session).allocate(
                employment,
                [
                    AllocationRequest(
                        fte=Decimal("0.50"),
                        grant_item_id=grant_item.id,
                        start_date=date(2024, 12, 1),
                    )
                ],
            )


class TestCapacity:
    """Grant item head-count."""

    async def test_third_employee_rejected_on_two_slot_item(
        self, session, make_employee, make_employment, grant_item
    ):
        service = AllocationService(session)
        for _ in range(2):
            employment = await make_employment(await make_employee())
            await service.allocate(
                employment, [AllocationRequest(fte=Decimal("0.50"), grant_item_id=grant_item.id)]
            )

        third = await make_employment(await make_employee())
        with pytest.raises(CapacityExceededError) as exc_info:
            await service.allocate(
                third, [AllocationRequest(fte=Decimal("0.50"), grant_item_id=grant_item.id)]
            )
        assert exc_info.value.context["in_use"] == 2

    async def test_same_employment_counts_once(self, session, employment, grant_item):
        service = AllocationService(session)
        await service.allocate(
            employment,
            [
                AllocationRequest(fte=Decimal("0.30"), grant_item_id=grant_item.id),
                AllocationRequest(fte=Decimal("0.30"), grant_item_id=grant_item.id),
            ],
        )
        assert await service.active_count_for_item(grant_item.id) == 1


class TestReplaceAndUpdate:
    """Replacing, editing and closing allocations."""

    async def test_replacement_must_total_one(self, session, employment, grant_item):
        with pytest.raises(AllocationError, match="must total"):
            await AllocationService(session).replace_allocations(
                employment,
                [AllocationRequest(fte=Decimal("0.90"), grant_item_id=grant_item.id)],
            )

    async def test_replacement_closes_previous(self, session, employment, grant_item, hub_grant):
        service = AllocationService(session)
        [old] = await service.allocate(
            employment, [AllocationRequest(fte=Decimal("1.00"), grant_item_id=grant_item.id)]
        )

        created = await service.replace_allocations(
            employment,
            [
                AllocationRequest(
                    fte=Decimal("1.00"),
                    allocation_type="org_funded",
                    org_funded_grant_id=hub_grant.id,
                )
            ],
            effective_date=date(2025, 4, 1),
            actor=ACTOR,
        )

        assert old.status == "closed"
        assert old.end_date == date(2025, 3, 31)
        assert created[0].start_date == date(2025, 4, 1)

    async def test_update_rechecks_ceiling(self, session, employment, grant_item, hub_grant):
        service = AllocationService(session)
        first, _ = await service.allocate(
            employment,
            [
                AllocationRequest(fte=Decimal("0.50"), grant_item_id=grant_item.id),
                AllocationRequest(
                    fte=Decimal("0.50"),
                    allocation_type="org_funded",
                    org_funded_grant_id=hub_grant.id,
                ),
            ],
        )

        with pytest.raises(FTEExceededError):
            await service.update_allocation(first, fte=Decimal("0.60"))

        updated = await service.update_allocation(first, fte=Decimal("0.40"), actor=ACTOR)
        assert updated.allocated_amount == Decimal("12000.00")

    async def test_extending_end_date_rechecks_ceiling(self, session, employment, hub_grant):
        service = AllocationService(session)
        first, _ = await service.allocate(
            employment,
            [
                AllocationRequest(
                    fte=Decimal("1.00"),
                    allocation_type="org_funded",
                    org_funded_grant_id=hub_grant.id,
                    end_date=date(2025, 3, 31),
                ),
                AllocationRequest(
                    fte=Decimal("1.00"),
                    allocation_type="org_funded",
                    org_funded_grant_id=hub_grant.id,
                    start_date=date(2025, 4, 1),
                    end_date=date(2025, 12, 31),
                ),
            ],
        )

        with pytest.raises(FTEExceededError):
            await service.update_allocation(first, end_date=date(2025, 12, 31))
        assert first.end_date == date(2025, 3, 31)
        assert await service.concurrent_fte(
            employment.employee_id, date(2025, 6, 1), date(2025, 6, 1)
        ) == Decimal("1.00")

        await service.update_allocation(first, end_date=date(2025, 2, 28), actor=ACTOR)
        assert first.end_date == date(2025, 2, 28)

    async def test_closed_allocation_cannot_reopen(self, session, employment, grant_item):
        service = AllocationService(session)
        [allocation] = await service.allocate(
            employment, [AllocationRequest(fte=Decimal("1.00"), grant_item_id=grant_item.id)]
        )
        await service.change_status(allocation, "closed", on_date=date(2025, 5, 31))
        assert allocation.end_date == date(2025, 5, 31)

        with pytest.raises(InvalidTransitionError):
            await service.change_status(allocation, "active")

    async def test_reactivation_respects_ceiling(self, session, employment, grant_item):
        service = AllocationService(session)
        [paused] = await service.allocate(
            employment, [AllocationRequest(fte=Decimal("0.60"), grant_item_id=grant_item.id)]
        )
        await service.change_status(paused, "inactive")
        await service.allocate(
            employment, [AllocationRequest(fte=Decimal("0.60"), grant_item_id=grant_item.id)]
        )

        with pytest.raises(FTEExceededError):
            await service.change_status(paused, "active")
