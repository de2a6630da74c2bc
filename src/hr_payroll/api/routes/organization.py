"""Site, department, section and position endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, HTTPException, Path, Query, status
from sqlalchemy import delete, func, select

from hr_payroll.api.dependencies import DbSession, Permitted
from hr_payroll.api.schemas import (
    DepartmentCreate,
    DepartmentResponse,
    DepartmentUpdate,
    ErrorResponse,
    PositionCreate,
    PositionResponse,
    PositionUpdate,
    SectionDepartmentCreate,
    SectionDepartmentResponse,
    SiteCreate,
    SiteResponse,
    SiteUpdate,
)
from hr_payroll.models import Department, Employment, Position, SectionDepartment, Site
from hr_payroll.services.recycle_bin_service import RecycleBinService

router = APIRouter(tags=["organization"])


async def _get_or_404(db: DbSession, model: type, record_id: UUID, label: str):
    record = await db.get(model, record_id)
    if record is None or getattr(record, "deleted_at", None) is not None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"{label} not found",
        )
    return record


async def _ensure_unique(db: DbSession, column, value, exclude_id: UUID | None = None) -> None:
    query = select(func.count()).where(column == value)
    if exclude_id is not None:
        query = query.where(column.class_.id != exclude_id)
    if await db.scalar(query):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"{column.key} '{value}' already exists",
        )


# ============================================================================
# Sites
# ============================================================================


@router.post(
    "/sites",
    response_model=SiteResponse,
    status_code=status.HTTP_201_CREATED,
    responses={409: {"model": ErrorResponse}},
)
async def create_site(
    db: DbSession, user: Permitted("site.create"), payload: SiteCreate
) -> SiteResponse:
    await _ensure_unique(db, Site.code, payload.code)
    site = Site(**payload.model_dump(), created_by=user.email, updated_by=user.email)
    db.add(site)
    await db.commit()
    return SiteResponse.model_validate(site)


@router.get("/sites", response_model=list[SiteResponse])
async def list_sites(
    db: DbSession,
    user: Permitted("site.read"),
    active_only: Annotated[bool, Query()] = False,
) -> list[SiteResponse]:
    query = select(Site).where(Site.deleted_at.is_(None)).order_by(Site.name)
    if active_only:
        query = query.where(Site.is_active.is_(True))
    result = await db.execute(query)
    return [SiteResponse.model_validate(s) for s in result.scalars().all()]


@router.get(
    "/sites/{site_id}",
    response_model=SiteResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_site(
    db: DbSession, user: Permitted("site.read"), site_id: Annotated[UUID, Path()]
) -> SiteResponse:
    return SiteResponse.model_validate(await _get_or_404(db, Site, site_id, "Site"))


@router.patch(
    "/sites/{site_id}",
    response_model=SiteResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def update_site(
    db: DbSession,
    user: Permitted("site.update"),
    site_id: Annotated[UUID, Path()],
    payload: SiteUpdate,
) -> SiteResponse:
    site = await _get_or_404(db, Site, site_id, "Site")
    changes = payload.model_dump(exclude_unset=True)
    if "code" in changes:
        await _ensure_unique(db, Site.code, changes["code"], exclude_id=site.id)
    for key, value in changes.items():
        setattr(site, key, value)
    site.updated_by = user.email
    await db.commit()
    return SiteResponse.model_validate(site)


@router.delete(
    "/sites/{site_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: {"model": ErrorResponse}},
)
async def delete_site(
    db: DbSession, user: Permitted("site.delete"), site_id: Annotated[UUID, Path()]
) -> None:
    """Move a site to the recycle bin."""
    site = await _get_or_404(db, Site, site_id, "Site")
    await RecycleBinService(db).soft_delete(site, user.email)
    await db.commit()


# ============================================================================
# Departments and sections
# ============================================================================


@router.post(
    "/departments",
    response_model=DepartmentResponse,
    status_code=status.HTTP_201_CREATED,
    responses={409: {"model": ErrorResponse}},
)
async def create_department(
    db: DbSession, user: Permitted("department.create"), payload: DepartmentCreate
) -> DepartmentResponse:
    await _ensure_unique(db, Department.name, payload.name)
    department = Department(**payload.model_dump(), created_by=user.email, updated_by=user.email)
    db.add(department)
    await db.commit()
    return DepartmentResponse.model_validate(department)


@router.get("/departments", response_model=list[DepartmentResponse])
async def list_departments(
    db: DbSession, user: Permitted("department.read")
) -> list[DepartmentResponse]:
    result = await db.execute(select(Department).order_by(Department.name))
    return [DepartmentResponse.model_validate(d) for d in result.scalars().all()]


@router.patch(
    "/departments/{department_id}",
    response_model=DepartmentResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def update_department(
    db: DbSession,
    user: Permitted("department.update"),
    department_id: Annotated[UUID, Path()],
    payload: DepartmentUpdate,
) -> DepartmentResponse:
    department = await _get_or_404(db, Department, department_id, "Department")
    changes = payload.model_dump(exclude_unset=True)
    if "name" in changes:
        await _ensure_unique(db, Department.name, changes["name"], exclude_id=department.id)
    for key, value in changes.items():
        setattr(department, key, value)
    department.updated_by = user.email
    await db.commit()
    return DepartmentResponse.model_validate(department)


@router.delete(
    "/departments/{department_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def delete_department(
    db: DbSession,
    user: Permitted("department.delete"),
    department_id: Annotated[UUID, Path()],
) -> None:
    """Delete a department that no position or employment references."""
    department = await _get_or_404(db, Department, department_id, "Department")
    in_use = await db.scalar(
        select(func.count()).select_from(Position).where(Position.department_id == department.id)
    ) or 0
    in_use += await db.scalar(
        select(func.count())
        .select_from(Employment)
        .where(Employment.department_id == department.id)
    ) or 0
    if in_use:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Department is still referenced by positions or employments",
        )
    db.expunge(department)
    await db.execute(delete(SectionDepartment).where(SectionDepartment.department_id == department_id))
    await db.execute(delete(Department).where(Department.id == department_id))
    await db.commit()


@router.post(
    "/section-departments",
    response_model=SectionDepartmentResponse,
    status_code=status.HTTP_201_CREATED,
    responses={404: {"model": ErrorResponse}},
)
async def create_section_department(
    db: DbSession,
    user: Permitted("department.create"),
    payload: SectionDepartmentCreate,
) -> SectionDepartmentResponse:
    await _get_or_404(db, Department, payload.department_id, "Department")
    section = SectionDepartment(
        **payload.model_dump(), created_by=user.email, updated_by=user.email
    )
    db.add(section)
    await db.commit()
    return SectionDepartmentResponse.model_validate(section)


@router.get("/section-departments", response_model=list[SectionDepartmentResponse])
async def list_section_departments(
    db: DbSession,
    user: Permitted("department.read"),
    department_id: UUID | None = None,
) -> list[SectionDepartmentResponse]:
    query = select(SectionDepartment).where(SectionDepartment.deleted_at.is_(None))
    if department_id:
        query = query.where(SectionDepartment.department_id == department_id)
    result = await db.execute(query.order_by(SectionDepartment.name))
    return [SectionDepartmentResponse.model_validate(s) for s in result.scalars().all()]


@router.delete(
    "/section-departments/{section_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: {"model": ErrorResponse}},
)
async def delete_section_department(
    db: DbSession,
    user: Permitted("department.delete"),
    section_id: Annotated[UUID, Path()],
) -> None:
    section = await _get_or_404(db, SectionDepartment, section_id, "Section department")
    await RecycleBinService(db).soft_delete(section, user.email)
    await db.commit()


# ============================================================================
# Positions
# ============================================================================


@router.post(
    "/positions",
    response_model=PositionResponse,
    status_code=status.HTTP_201_CREATED,
    responses={404: {"model": ErrorResponse}},
)
async def create_position(
    db: DbSession, user: Permitted("position.create"), payload: PositionCreate
) -> PositionResponse:
    await _get_or_404(db, Department, payload.department_id, "Department")
    if payload.reports_to_position_id:
        await _get_or_404(db, Position, payload.reports_to_position_id, "Manager position")
    position = Position(**payload.model_dump(), created_by=user.email, updated_by=user.email)
    db.add(position)
    await db.commit()
    return PositionResponse.model_validate(position)


@router.get("/positions", response_model=list[PositionResponse])
async def list_positions(
    db: DbSession,
    user: Permitted("position.read"),
    department_id: UUID | None = None,
) -> list[PositionResponse]:
    query = select(Position).order_by(Position.level, Position.title)
    if department_id:
        query = query.where(Position.department_id == department_id)
    result = await db.execute(query)
    return [PositionResponse.model_validate(p) for p in result.scalars().all()]


@router.patch(
    "/positions/{position_id}",
    response_model=PositionResponse,
    responses={404: {"model": ErrorResponse}},
)
async def update_position(
    db: DbSession,
    user: Permitted("position.update"),
    position_id: Annotated[UUID, Path()],
    payload: PositionUpdate,
) -> PositionResponse:
    position = await _get_or_404(db, Position, position_id, "Position")
    changes = payload.model_dump(exclude_unset=True)
    if changes.get("reports_to_position_id") == position.id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="A position cannot report to itself",
        )
    for key, value in changes.items():
        setattr(position, key, value)
    position.updated_by = user.email
    await db.commit()
    return PositionResponse.model_validate(position)
