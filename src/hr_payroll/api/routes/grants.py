"""Grant and grant item endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, Query, status
from sqlalchemy import func, select

from hr_payroll.api.dependencies import DbSession, Permitted
from hr_payroll.api.schemas import (
    ErrorResponse,
    GrantCapacityResponse,
    GrantCreate,
    GrantItemCreate,
    GrantItemResponse,
    GrantItemUpdate,
    GrantListResponse,
    GrantResponse,
    GrantUpdate,
)
from hr_payroll.models import Grant, GrantItem
from hr_payroll.services.grant_service import GrantService

router = APIRouter(tags=["grants"])


# ============================================================================
# Grants
# ============================================================================


@router.post(
    "/grants",
    response_model=GrantResponse,
    status_code=status.HTTP_201_CREATED,
    responses={409: {"model": ErrorResponse}},
)
async def create_grant(
    db: DbSession, user: Permitted("grant.create"), payload: GrantCreate
) -> GrantResponse:
    service = GrantService(db)
    grant = await service.create_grant(payload.model_dump(), user.email)
    await db.commit()
    return GrantResponse.model_validate(await service.get_grant(grant.id))


@router.get("/grants", response_model=GrantListResponse)
async def list_grants(
    db: DbSession,
    user: Permitted("grant.read"),
    page: Annotated[int, Query(ge=1)] = 1,
    page_size: Annotated[int, Query(ge=1, le=100)] = 20,
    organization: str | None = None,
    is_hub: bool | None = None,
) -> GrantListResponse:
    query = select(Grant)
    if organization:
        query = query.where(Grant.organization == organization)
    if is_hub is not None:
        query = query.where(Grant.is_hub.is_(is_hub))

    count_query = select(func.count()).select_from(query.subquery())
    total = await db.scalar(count_query) or 0

    query = query.order_by(Grant.code).offset((page - 1) * page_size).limit(page_size)
    result = await db.execute(query)
    return GrantListResponse(
        items=[GrantResponse.model_validate(g) for g in result.scalars().all()],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.get(
    "/grants/{grant_id}",
    response_model=GrantResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_grant(
    db: DbSession, user: Permitted("grant.read"), grant_id: Annotated[UUID, Path()]
) -> GrantResponse:
    return GrantResponse.model_validate(await GrantService(db).get_grant(grant_id))


@router.patch(
    "/grants/{grant_id}",
    response_model=GrantResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def update_grant(
    db: DbSession,
    user: Permitted("grant.update"),
    grant_id: Annotated[UUID, Path()],
    payload: GrantUpdate,
) -> GrantResponse:
    """Edit a grant. Payroll funding snapshots keep the values they were taken with."""
    service = GrantService(db)
    grant = await service.get_grant(grant_id)
    await service.update_grant(grant, payload.model_dump(exclude_unset=True), user.email)
    await db.commit()
    return GrantResponse.model_validate(await service.get_grant(grant_id))


@router.delete(
    "/grants/{grant_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
)
async def delete_grant(
    db: DbSession, user: Permitted("grant.delete"), grant_id: Annotated[UUID, Path()]
) -> None:
    service = GrantService(db)
    await service.delete_grant(await service.get_grant(grant_id))
    await db.commit()


@router.get(
    "/grants/{grant_id}/capacity",
    response_model=list[GrantCapacityResponse],
    responses={404: {"model": ErrorResponse}},
)
async def grant_capacity(
    db: DbSession, user: Permitted("grant.read"), grant_id: Annotated[UUID, Path()]
) -> list[GrantCapacityResponse]:
    """Head-count in use per budgeted position line."""
    service = GrantService(db)
    rows = await service.capacity(await service.get_grant(grant_id))
    return [GrantCapacityResponse(**row) for row in rows]


# ============================================================================
# Grant items
# ============================================================================


@router.post(
    "/grants/{grant_id}/items",
    response_model=GrantItemResponse,
    status_code=status.HTTP_201_CREATED,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def create_grant_item(
    db: DbSession,
    user: Permitted("grant.create"),
    grant_id: Annotated[UUID, Path()],
    payload: GrantItemCreate,
) -> GrantItemResponse:
    service = GrantService(db)
    grant = await service.get_grant(grant_id)
    item = await service.create_item(grant, payload.model_dump(), user.email)
    await db.commit()
    return GrantItemResponse.model_validate(item)


@router.get(
    "/grants/{grant_id}/items",
    response_model=list[GrantItemResponse],
    responses={404: {"model": ErrorResponse}},
)
async def list_grant_items(
    db: DbSession, user: Permitted("grant.read"), grant_id: Annotated[UUID, Path()]
) -> list[GrantItemResponse]:
    grant = await GrantService(db).get_grant(grant_id)
    return [GrantItemResponse.model_validate(i) for i in grant.items]


@router.get("/grant-items", response_model=list[GrantItemResponse])
async def search_grant_items(
    db: DbSession,
    user: Permitted("grant.read"),
    budget_line_code: str | None = None,
    grant_position: str | None = None,
) -> list[GrantItemResponse]:
    query = select(GrantItem).order_by(GrantItem.grant_id, GrantItem.grant_position)
    if budget_line_code:
        query = query.where(GrantItem.budget_line_code == budget_line_code)
    if grant_position:
        query = query.where(GrantItem.grant_position.ilike(f"%{grant_position}%"))
    result = await db.execute(query)
    return [GrantItemResponse.model_validate(i) for i in result.scalars().all()]


@router.patch(
    "/grant-items/{item_id}",
    response_model=GrantItemResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def update_grant_item(
    db: DbSession,
    user: Permitted("grant.update"),
    item_id: Annotated[UUID, Path()],
    payload: GrantItemUpdate,
) -> GrantItemResponse:
    service = GrantService(db)
    item = await service.get_item(item_id)
    item = await service.update_item(item, payload.model_dump(exclude_unset=True), user.email)
    await db.commit()
    return GrantItemResponse.model_validate(item)


@router.delete(
    "/grant-items/{item_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def delete_grant_item(
    db: DbSession, user: Permitted("grant.delete"), item_id: Annotated[UUID, Path()]
) -> None:
    service = GrantService(db)
    await service.delete_item(await service.get_item(item_id))
    await db.commit()
