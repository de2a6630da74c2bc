"""Employee funding allocation endpoints."""

from datetime import date
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, HTTPException, Path, Query, status

from hr_payroll.api.dependencies import DbSession, Permitted
from hr_payroll.api.schemas import (
    AllocationCreate,
    AllocationLine,
    AllocationReplace,
    AllocationResponse,
    AllocationStatusUpdate,
    AllocationSummaryResponse,
    AllocationUpdate,
    ErrorResponse,
)
from hr_payroll.models import EmployeeFundingAllocation
from hr_payroll.services.allocation_service import AllocationRequest, AllocationService

router = APIRouter(prefix="/allocations", tags=["allocations"])


def _requests(lines: list[AllocationLine]) -> list[AllocationRequest]:
    return [AllocationRequest(**line.model_dump()) for line in lines]


async def _get_allocation(
    service: AllocationService, allocation_id: UUID
) -> EmployeeFundingAllocation:
    allocation = await service.get_allocation(allocation_id)
    if allocation is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Allocation not found",
        )
    return allocation


@router.post(
    "",
    response_model=list[AllocationResponse],
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def create_allocations(
    db: DbSession, user: Permitted("allocation.create"), payload: AllocationCreate
) -> list[AllocationResponse]:
    """Add allocations; the employee's concurrent FTE may not exceed 1.00."""
    service = AllocationService(db)
    employment = await service.get_employment(payload.employment_id)
    created = await service.allocate(employment, _requests(payload.allocations), user.email)
    await db.commit()
    return [AllocationResponse.model_validate(a) for a in created]


@router.post(
    "/replace",
    response_model=list[AllocationResponse],
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def replace_allocations(
    db: DbSession, user: Permitted("allocation.update"), payload: AllocationReplace
) -> list[AllocationResponse]:
    """Close the current allocations and install a new set totalling 1.00 FTE."""
    service = AllocationService(db)
    employment = await service.get_employment(payload.employment_id)
    created = await service.replace_allocations(
        employment, _requests(payload.allocations), payload.effective_date, user.email
    )
    await db.commit()
    return [AllocationResponse.model_validate(a) for a in created]


@router.get("", response_model=list[AllocationResponse])
async def list_allocations(
    db: DbSession,
    user: Permitted("allocation.read"),
    employee_id: UUID | None = None,
    employment_id: UUID | None = None,
    status_filter: Annotated[str | None, Query(alias="status")] = None,
) -> list[AllocationResponse]:
    allocations = await AllocationService(db).list_allocations(
        employee_id=employee_id, employment_id=employment_id, status=status_filter
    )
    return [AllocationResponse.model_validate(a) for a in allocations]


@router.get(
    "/summary/{employee_id}",
    response_model=AllocationSummaryResponse,
)
async def allocation_summary(
    db: DbSession,
    user: Permitted("allocation.read"),
    employee_id: Annotated[UUID, Path()],
    on_date: date | None = None,
) -> AllocationSummaryResponse:
    summary = await AllocationService(db).employee_summary(employee_id, on_date)
    return AllocationSummaryResponse.model_validate(summary)


@router.get(
    "/{allocation_id}",
    response_model=AllocationResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_allocation(
    db: DbSession, user: Permitted("allocation.read"), allocation_id: Annotated[UUID, Path()]
) -> AllocationResponse:
    allocation = await _get_allocation(AllocationService(db), allocation_id)
    return AllocationResponse.model_validate(allocation)


@router.patch(
    "/{allocation_id}",
    response_model=AllocationResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def update_allocation(
    db: DbSession,
    user: Permitted("allocation.update"),
    allocation_id: Annotated[UUID, Path()],
    payload: AllocationUpdate,
) -> AllocationResponse:
    service = AllocationService(db)
    allocation = await _get_allocation(service, allocation_id)
    allocation = await service.update_allocation(
        allocation, payload.fte, payload.end_date, user.email
    )
    await db.commit()
    return AllocationResponse.model_validate(allocation)


@router.post(
    "/{allocation_id}/status",
    response_model=AllocationResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def change_allocation_status(
    db: DbSession,
    user: Permitted("allocation.update"),
    allocation_id: Annotated[UUID, Path()],
    payload: AllocationStatusUpdate,
) -> AllocationResponse:
    service = AllocationService(db)
    allocation = await _get_allocation(service, allocation_id)
    allocation = await service.change_status(allocation, payload.status, user.email)
    await db.commit()
    return AllocationResponse.model_validate(allocation)


@router.delete(
    "/{allocation_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: {"model": ErrorResponse}},
)
async def delete_allocation(
    db: DbSession, user: Permitted("allocation.delete"), allocation_id: Annotated[UUID, Path()]
) -> None:
    """Delete an allocation; payroll history keeps its funding snapshots."""
    service = AllocationService(db)
    await service.delete_allocation(await _get_allocation(service, allocation_id))
    await db.commit()
