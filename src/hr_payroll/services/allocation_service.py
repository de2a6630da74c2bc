"""Funding allocation service.

Links employments to grant items or hub grants by FTE, enforcing that an
employee's concurrently active allocations never exceed one full-time
equivalent and that grant items stay within their head-count.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from hr_payroll.calculators.salary import allocated_amount
from hr_payroll.models import (
    ALLOCATION_TYPE_GRANT,
    ALLOCATION_TYPE_ORG_FUNDED,
    EmployeeFundingAllocation,
    Employment,
    Grant,
    GrantItem,
    Payroll,
    PayrollGrantAllocation,
)
from hr_payroll.services.errors import (
    AllocationError,
    CapacityExceededError,
    FTEExceededError,
    NotFoundError,
)
from hr_payroll.services.state_machine import AllocationStateMachine, AllocationStatus

logger = logging.getLogger(__name__)

FULL_TIME = Decimal("1.00")


@dataclass
class AllocationRequest:
    """One requested funding line for an employment."""

    fte: Decimal
    allocation_type: str = ALLOCATION_TYPE_GRANT
    grant_item_id: UUID | None = None
    org_funded_grant_id: UUID | None = None
    start_date: date | None = None
    end_date: date | None = None


def allocation_query():
    """Select allocations with their funding source eagerly loaded."""
    return select(EmployeeFundingAllocation).options(
        selectinload(EmployeeFundingAllocation.grant_item).selectinload(GrantItem.grant),
        selectinload(EmployeeFundingAllocation.org_funded_grant),
    )


def peak_fte(
    allocations: Iterable[EmployeeFundingAllocation], start: date, end: date | None = None
) -> Decimal:
    """Highest combined FTE on any single day of [start, end].

    Load only rises where an allocation starts, so those days and ``start``
    are the only ones that need checking.
    """
    in_range = [a for a in allocations if a.overlaps(start, end)]
    days = {start} | {a.start_date for a in in_range if a.start_date > start}
    peak = Decimal("0")
    for day in days:
        load = sum((Decimal(a.fte) for a in in_range if a.overlaps(day, day)), Decimal("0"))
        peak = max(peak, load)
    return peak


class AllocationService:
    """Service for creating and maintaining funding allocations."""

    def __init__(self, session: AsyncSession):
        self.session = session

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def get_allocation(self, allocation_id: UUID) -> EmployeeFundingAllocation | None:
        result = await self.session.execute(
            allocation_query().where(EmployeeFundingAllocation.id == allocation_id)
        )
        return result.scalar_one_or_none()

    async def get_employment(self, employment_id: UUID) -> Employment:
        employment = await self.session.get(Employment, employment_id)
        if employment is None:
            raise NotFoundError("Employment not found", employment_id=str(employment_id))
        return employment

    async def list_allocations(
        self,
        employee_id: UUID | None = None,
        employment_id: UUID | None = None,
        status: str | None = None,
    ) -> list[EmployeeFundingAllocation]:
        query = allocation_query()
        if employee_id:
            query = query.where(EmployeeFundingAllocation.employee_id == employee_id)
        if employment_id:
            query = query.where(EmployeeFundingAllocation.employment_id == employment_id)
        if status:
            query = query.where(EmployeeFundingAllocation.status == status)
        query = query.order_by(EmployeeFundingAllocation.start_date)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def active_allocations(
        self,
        employment_id: UUID,
        period_start: date | None = None,
        period_end: date | None = None,
    ) -> list[EmployeeFundingAllocation]:
        """Active allocations of an employment, optionally within a date range."""
        allocations = await self.list_allocations(
            employment_id=employment_id,
            status=AllocationStatus.ACTIVE.value,
        )
        if period_start is None:
            return allocations
        return [a for a in allocations if a.overlaps(period_start, period_end)]

    async def concurrent_fte(
        self,
        employee_id: UUID,
        start: date,
        end: date | None = None,
        exclude_ids: Iterable[UUID] = (),
        pending: Iterable[EmployeeFundingAllocation] = (),
    ) -> Decimal:
        """Peak FTE of the employee's active allocations on any day of [start, end].

        ``pending`` adds allocations built in this call but not yet flushed.
        """
        excluded = set(exclude_ids)
        result = await self.session.execute(
            select(EmployeeFundingAllocation).where(
                EmployeeFundingAllocation.employee_id == employee_id,
                EmployeeFundingAllocation.status == AllocationStatus.ACTIVE.value,
            )
        )
        stored = [a for a in result.scalars().all() if a.id not in excluded]
        return peak_fte([*stored, *pending], start, end)

    async def active_count_for_item(
        self, grant_item_id: UUID, exclude_employment_id: UUID | None = None
    ) -> int:
        """Number of employments holding an active allocation on a grant item."""
        query = select(func.count(func.distinct(EmployeeFundingAllocation.employment_id))).where(
            EmployeeFundingAllocation.grant_item_id == grant_item_id,
            EmployeeFundingAllocation.status == AllocationStatus.ACTIVE.value,
        )
        if exclude_employment_id is not None:
            query = query.where(EmployeeFundingAllocation.employment_id != exclude_employment_id)
        return await self.session.scalar(query) or 0

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    def _validate_fte(self, fte: Decimal) -> Decimal:
        value = Decimal(fte)
        if value <= 0 or value > FULL_TIME:
            raise AllocationError("FTE must be greater than 0 and at most 1.00", fte=str(value))
        return value

    async def _validate_target(
        self, request: AllocationRequest, employment: Employment
    ) -> None:
        """Check the funding source exists and, for grant items, has head-count."""
        if request.allocation_type == ALLOCATION_TYPE_GRANT:
            if request.grant_item_id is None:
                raise AllocationError("Grant allocations require a grant_item_id")
            grant_item = await self.session.get(GrantItem, request.grant_item_id)
            if grant_item is None:
                raise NotFoundError(
                    "Grant item not found", grant_item_id=str(request.grant_item_id)
                )
            in_use = await self.active_count_for_item(grant_item.id, employment.id)
            if in_use >= grant_item.grant_position_number:
                raise CapacityExceededError(
                    f"Grant position '{grant_item.grant_position}' has no available slots",
                    grant_item_id=str(grant_item.id),
                    capacity=grant_item.grant_position_number,
                    in_use=in_use,
                )
        elif request.allocation_type == ALLOCATION_TYPE_ORG_FUNDED:
            if request.org_funded_grant_id is None:
                raise AllocationError("Org-funded allocations require an org_funded_grant_id")
            grant = await self.session.get(Grant, request.org_funded_grant_id)
            if grant is None:
                raise NotFoundError(
                    "Grant not found", grant_id=str(request.org_funded_grant_id)
                )
            if not grant.is_hub:
                raise AllocationError(
                    "Org-funded allocations must reference a hub grant",
                    grant_id=str(grant.id),
                )
        else:
            raise AllocationError(
                f"Unknown allocation type '{request.allocation_type}'",
                allocation_type=request.allocation_type,
            )

    def _resolve_dates(
        self, request: AllocationRequest, employment: Employment
    ) -> tuple[date, date | None]:
        start = request.start_date or employment.start_date
        end = request.end_date or employment.end_date
        if start < employment.start_date:
            raise AllocationError(
                "Allocation cannot start before the employment",
                start_date=start.isoformat(),
            )
        if employment.end_date and start > employment.end_date:
            raise AllocationError(
                "Allocation cannot start after the employment ends",
                start_date=start.isoformat(),
            )
        if end is not None and end < start:
            raise AllocationError("Allocation end_date is before start_date")
        return start, end

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def _build(
        self,
        employment: Employment,
        request: AllocationRequest,
        start: date,
        end: date | None,
        actor: str | None,
    ) -> EmployeeFundingAllocation:
        fte = Decimal(request.fte)
        return EmployeeFundingAllocation(
            employee_id=employment.employee_id,
            employment_id=employment.id,
            allocation_type=request.allocation_type,
            grant_item_id=(
                request.grant_item_id
                if request.allocation_type == ALLOCATION_TYPE_GRANT
                else None
            ),
            org_funded_grant_id=(
                request.org_funded_grant_id
                if request.allocation_type == ALLOCATION_TYPE_ORG_FUNDED
                else None
            ),
            fte=fte,
            salary_type=employment.salary_type_for(start),
            allocated_amount=allocated_amount(employment.salary_amount_for(start), fte),
            status=AllocationStatus.ACTIVE.value,
            start_date=start,
            end_date=end,
            created_by=actor,
            updated_by=actor,
        )

    async def allocate(
        self,
        employment: Employment,
        requests: Sequence[AllocationRequest],
        actor: str | None = None,
    ) -> list[EmployeeFundingAllocation]:
        """Add allocations on top of the employment's current ones."""
        if not requests:
            raise AllocationError("At least one allocation is required")
        if not employment.active:
            raise AllocationError("Cannot allocate an inactive employment")

        created: list[EmployeeFundingAllocation] = []
        for request in requests:
            self._validate_fte(request.fte)
            start, end = self._resolve_dates(request, employment)
            await self._validate_target(request, employment)

            # The new line spans the whole range, so it adds to the peak as is
            existing = await self.concurrent_fte(
                employment.employee_id, start, end, pending=created
            )
            total = existing + Decimal(request.fte)
            if total > FULL_TIME:
                raise FTEExceededError(
                    f"Total FTE {total} would exceed {FULL_TIME}",
                    employee_id=str(employment.employee_id),
                    existing_fte=str(existing),
                    requested_fte=str(request.fte),
                )
            created.append(self._build(employment, request, start, end, actor))

        self.session.add_all(created)
        await self.session.flush()
        logger.info("Created %d allocation(s) for employment %s", len(created), employment.id)
        return created

    async def replace_allocations(
        self,
        employment: Employment,
        requests: Sequence[AllocationRequest],
        effective_date: date | None = None,
        actor: str | None = None,
    ) -> list[EmployeeFundingAllocation]:
        """Close the current allocations and install a new set summing to 1.00.

        Closed allocations stay on record so payroll history keeps its links.
        """
        total = sum((Decimal(r.fte) for r in requests), Decimal("0"))
        if total != FULL_TIME:
            raise AllocationError(
                f"Replacement allocations must total {FULL_TIME} FTE, got {total}",
                total_fte=str(total),
            )

        effective = effective_date or employment.start_date
        current = await self.active_allocations(employment.id)
        for allocation in current:
            allocation.status = AllocationStatus.CLOSED.value
            allocation.end_date = max(effective - timedelta(days=1), allocation.start_date)
            allocation.updated_by = actor
        await self.session.flush()

        normalized = [
            AllocationRequest(
                fte=r.fte,
                allocation_type=r.allocation_type,
                grant_item_id=r.grant_item_id,
                org_funded_grant_id=r.org_funded_grant_id,
                start_date=r.start_date or effective,
                end_date=r.end_date,
            )
            for r in requests
        ]
        created = await self.allocate(employment, normalized, actor)
        logger.info(
            "Replaced %d allocation(s) on employment %s effective %s",
            len(current),
            employment.id,
            effective,
        )
        return created

    async def update_allocation(
        self,
        allocation: EmployeeFundingAllocation,
        fte: Decimal | None = None,
        end_date: date | None = None,
        actor: str | None = None,
    ) -> EmployeeFundingAllocation:
        """Change an allocation's FTE or end date, re-checking the FTE ceiling."""
        if allocation.status == AllocationStatus.CLOSED.value:
            raise AllocationError("Closed allocations cannot be edited")

        new_end = allocation.end_date
        if end_date is not None:
            if end_date < allocation.start_date:
                raise AllocationError("Allocation end_date is before start_date")
            new_end = end_date
        new_fte = self._validate_fte(fte) if fte is not None else Decimal(allocation.fte)

        if allocation.status == AllocationStatus.ACTIVE.value:
            others = await self.concurrent_fte(
                allocation.employee_id,
                allocation.start_date,
                new_end,
                exclude_ids=[allocation.id],
            )
            if others + new_fte > FULL_TIME:
                raise FTEExceededError(
                    f"Total FTE {others + new_fte} would exceed {FULL_TIME}",
                    allocation_id=str(allocation.id),
                    end_date=new_end.isoformat() if new_end else None,
                )
        allocation.end_date = new_end

        if fte is not None:
            employment = await self.get_employment(allocation.employment_id)
            allocation.fte = new_fte
            allocation.allocated_amount = allocated_amount(
                employment.salary_amount_for(allocation.start_date), new_fte
            )

        allocation.updated_by = actor
        await self.session.flush()
        return allocation

    async def change_status(
        self,
        allocation: EmployeeFundingAllocation,
        to_status: str,
        actor: str | None = None,
        on_date: date | None = None,
    ) -> EmployeeFundingAllocation:
        AllocationStateMachine.validate_transition(allocation.status, to_status)

        if to_status == AllocationStatus.ACTIVE.value:
            others = await self.concurrent_fte(
                allocation.employee_id,
                allocation.start_date,
                allocation.end_date,
                exclude_ids=[allocation.id],
            )
            if others + Decimal(allocation.fte) > FULL_TIME:
                raise FTEExceededError(
                    "Reactivating this allocation would exceed 1.00 FTE",
                    allocation_id=str(allocation.id),
                )
        if to_status == AllocationStatus.CLOSED.value and allocation.end_date is None:
            allocation.end_date = max(on_date or date.today(), allocation.start_date)

        previous = allocation.status
        allocation.status = to_status
        allocation.updated_by = actor
        await self.session.flush()
        logger.info("Allocation %s: %s -> %s", allocation.id, previous, to_status)
        return allocation

    async def delete_allocation(self, allocation: EmployeeFundingAllocation) -> None:
        """Hard-delete an allocation, detaching payroll rows and snapshots first.

        Snapshot values are left untouched; only the navigation keys are cleared.
        """
        await self.session.execute(
            update(PayrollGrantAllocation)
            .where(PayrollGrantAllocation.employee_funding_allocation_id == allocation.id)
            .values(employee_funding_allocation_id=None)
        )
        await self.session.execute(
            update(Payroll)
            .where(Payroll.employee_funding_allocation_id == allocation.id)
            .values(employee_funding_allocation_id=None)
        )
        allocation_id = allocation.id
        self.session.expunge(allocation)
        await self.session.execute(
            delete(EmployeeFundingAllocation).where(
                EmployeeFundingAllocation.id == allocation_id
            )
        )
        logger.info("Deleted allocation %s", allocation_id)

    async def recalculate_amounts(self, employment: Employment, actor: str | None = None) -> int:
        """Refresh salary context on active allocations after a salary change."""
        allocations = await self.active_allocations(employment.id)
        for allocation in allocations:
            allocation.salary_type = employment.salary_type_for(allocation.start_date)
            allocation.allocated_amount = allocated_amount(
                employment.salary_amount_for(allocation.start_date), allocation.fte
            )
            allocation.updated_by = actor
        await self.session.flush()
        return len(allocations)

    async def employee_summary(self, employee_id: UUID, on_date: date | None = None) -> dict[str, Any]:
        """FTE picture of an employee's current allocations."""
        when = on_date or date.today()
        allocations = await self.list_allocations(
            employee_id=employee_id, status=AllocationStatus.ACTIVE.value
        )
        current = [a for a in allocations if a.overlaps(when, when)]
        total = sum((Decimal(a.fte) for a in current), Decimal("0"))
        return {
            "employee_id": employee_id,
            "as_of": when,
            "total_fte": total,
            "remaining_fte": max(FULL_TIME - total, Decimal("0")),
            "is_fully_allocated": total == FULL_TIME,
            "allocations": current,
        }
