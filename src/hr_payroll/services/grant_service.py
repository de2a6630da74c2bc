"""Grant and grant item service."""

from __future__ import annotations

import logging
from typing import Any
from uuid import UUID

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from hr_payroll.models import (
    EmployeeFundingAllocation,
    Grant,
    GrantItem,
    InterOrganizationAdvance,
)
from hr_payroll.services.errors import (
    AllocationError,
    ConflictError,
    DuplicateBudgetLineError,
    NotFoundError,
)
from hr_payroll.services.state_machine import AllocationStatus

logger = logging.getLogger(__name__)


class GrantService:
    """Service for grants, their budgeted position lines and head-count."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_grant(self, grant_id: UUID) -> Grant:
        result = await self.session.execute(
            select(Grant).where(Grant.id == grant_id).execution_options(populate_existing=True)
        )
        grant = result.scalar_one_or_none()
        if grant is None:
            raise NotFoundError("Grant not found", grant_id=str(grant_id))
        return grant

    async def get_item(self, item_id: UUID) -> GrantItem:
        item = await self.session.get(GrantItem, item_id)
        if item is None:
            raise NotFoundError("Grant item not found", grant_item_id=str(item_id))
        return item

    async def hub_grant_for(self, organization: str) -> Grant | None:
        """The organization's general-fund grant, if one is configured."""
        result = await self.session.execute(
            select(Grant).where(Grant.organization == organization, Grant.is_hub.is_(True))
        )
        return result.scalars().first()

    async def create_grant(self, data: dict[str, Any], actor: str | None = None) -> Grant:
        existing = await self.session.scalar(select(Grant.id).where(Grant.code == data["code"]))
        if existing is not None:
            raise ConflictError(f"Grant code '{data['code']}' already exists", code=data["code"])
        grant = Grant(**data, created_by=actor, updated_by=actor)
        self.session.add(grant)
        await self.session.flush()
        logger.info("Created grant %s (%s)", grant.code, grant.id)
        return grant

    async def update_grant(self, grant: Grant, changes: dict[str, Any], actor: str | None = None) -> Grant:
        new_code = changes.get("code")
        if new_code and new_code != grant.code:
            clash = await self.session.scalar(
                select(Grant.id).where(Grant.code == new_code, Grant.id != grant.id)
            )
            if clash is not None:
                raise ConflictError(f"Grant code '{new_code}' already exists", code=new_code)
        for key, value in changes.items():
            setattr(grant, key, value)
        grant.updated_by = actor
        await self.session.flush()
        return grant

    async def delete_grant(self, grant: Grant) -> None:
        """Delete a grant and its items; refused while allocations still use it."""
        in_use = await self.session.scalar(
            select(func.count(EmployeeFundingAllocation.id))
            .outerjoin(GrantItem, EmployeeFundingAllocation.grant_item_id == GrantItem.id)
            .where(
                (GrantItem.grant_id == grant.id)
                | (EmployeeFundingAllocation.org_funded_grant_id == grant.id)
            )
        )
        if in_use:
            raise AllocationError(
                "Grant is referenced by funding allocations", grant_id=str(grant.id)
            )
        advances = await self.session.scalar(
            select(func.count(InterOrganizationAdvance.id)).where(
                InterOrganizationAdvance.via_grant_id == grant.id
            )
        )
        if advances:
            raise ConflictError(
                "Grant is referenced by inter-organization advances", grant_id=str(grant.id)
            )
        grant_id = grant.id
        self.session.expunge(grant)
        await self.session.execute(delete(GrantItem).where(GrantItem.grant_id == grant_id))
        await self.session.execute(delete(Grant).where(Grant.id == grant_id))
        logger.info("Deleted grant %s", grant_id)

    # ------------------------------------------------------------------
    # Grant items
    # ------------------------------------------------------------------

    async def _ensure_unique_budget_line(
        self,
        grant_id: UUID,
        grant_position: str,
        budget_line_code: str | None,
        exclude_id: UUID | None = None,
    ) -> None:
        """Only non-null budget line codes take part in uniqueness."""
        if budget_line_code is None:
            return
        query = select(GrantItem.id).where(
            GrantItem.grant_id == grant_id,
            GrantItem.grant_position == grant_position,
            GrantItem.budget_line_code == budget_line_code,
        )
        if exclude_id is not None:
            query = query.where(GrantItem.id != exclude_id)
        if await self.session.scalar(query) is not None:
            raise DuplicateBudgetLineError(
                f"Budget line '{budget_line_code}' already exists for position "
                f"'{grant_position}' in this grant",
                grant_id=str(grant_id),
                budget_line_code=budget_line_code,
            )

    async def create_item(
        self, grant: Grant, data: dict[str, Any], actor: str | None = None
    ) -> GrantItem:
        if grant.is_hub:
            raise AllocationError("Hub grants do not carry budgeted position lines")
        await self._ensure_unique_budget_line(
            grant.id, data["grant_position"], data.get("budget_line_code")
        )
        item = GrantItem(grant_id=grant.id, **data, created_by=actor, updated_by=actor)
        self.session.add(item)
        await self.session.flush()
        logger.info("Created grant item %s on grant %s", item.id, grant.code)
        return item

    async def update_item(
        self, item: GrantItem, changes: dict[str, Any], actor: str | None = None
    ) -> GrantItem:
        position = changes.get("grant_position", item.grant_position)
        code = changes["budget_line_code"] if "budget_line_code" in changes else item.budget_line_code
        await self._ensure_unique_budget_line(item.grant_id, position, code, exclude_id=item.id)

        if "grant_position_number" in changes:
            in_use = await self._active_count(item.id)
            if changes["grant_position_number"] < in_use:
                raise AllocationError(
                    "Position number cannot drop below the active allocations",
                    in_use=in_use,
                )

        for key, value in changes.items():
            setattr(item, key, value)
        item.updated_by = actor
        await self.session.flush()
        return item

    async def delete_item(self, item: GrantItem) -> None:
        in_use = await self.session.scalar(
            select(func.count(EmployeeFundingAllocation.id)).where(
                EmployeeFundingAllocation.grant_item_id == item.id
            )
        )
        if in_use:
            raise AllocationError(
                "Grant item is referenced by funding allocations",
                grant_item_id=str(item.id),
            )
        item_id = item.id
        self.session.expunge(item)
        await self.session.execute(delete(GrantItem).where(GrantItem.id == item_id))

    async def _active_count(self, item_id: UUID) -> int:
        return await self.session.scalar(
            select(func.count(func.distinct(EmployeeFundingAllocation.employment_id))).where(
                EmployeeFundingAllocation.grant_item_id == item_id,
                EmployeeFundingAllocation.status == AllocationStatus.ACTIVE.value,
            )
        ) or 0

    async def capacity(self, grant: Grant) -> list[dict[str, Any]]:
        """Head-count usage per grant item."""
        rows = []
        for item in grant.items:
            in_use = await self._active_count(item.id)
            rows.append(
                {
                    "grant_item_id": item.id,
                    "grant_position": item.grant_position,
                    "budget_line_code": item.budget_line_code,
                    "position_number": item.grant_position_number,
                    "active_allocations": in_use,
                    "available_slots": max(item.grant_position_number - in_use, 0),
                }
            )
        return rows
