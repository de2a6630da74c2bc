"""Employee, employment and probation endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, HTTPException, Path, Query, status
from sqlalchemy import func, or_, select

from hr_payroll.api.dependencies import DbSession, Permitted
from hr_payroll.api.schemas import (
    EmployeeCreate,
    EmployeeListResponse,
    EmployeeResponse,
    EmployeeUpdate,
    EmploymentCreate,
    EmploymentResponse,
    EmploymentUpdate,
    ErrorResponse,
    ProbationExtendRequest,
    ProbationFailRequest,
    ProbationPassRequest,
    ProbationRecordResponse,
)
from hr_payroll.models import Employee, Employment
from hr_payroll.services.employment_service import EmploymentService
from hr_payroll.services.probation_service import ProbationService
from hr_payroll.services.recycle_bin_service import RecycleBinService

router = APIRouter(tags=["employees"])


async def _get_employee(db: DbSession, employee_id: UUID) -> Employee:
    employee = await db.get(Employee, employee_id)
    if employee is None or employee.deleted_at is not None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Employee not found",
        )
    return employee


# ============================================================================
# Employees
# ============================================================================


@router.post(
    "/employees",
    response_model=EmployeeResponse,
    status_code=status.HTTP_201_CREATED,
    responses={409: {"model": ErrorResponse}},
)
async def create_employee(
    db: DbSession, user: Permitted("employee.create"), payload: EmployeeCreate
) -> EmployeeResponse:
    exists = await db.scalar(
        select(func.count()).where(Employee.staff_id == payload.staff_id)
    )
    if exists:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Staff ID '{payload.staff_id}' already exists",
        )
    employee = Employee(**payload.model_dump(), created_by=user.email, updated_by=user.email)
    db.add(employee)
    await db.commit()
    return EmployeeResponse.model_validate(employee)


@router.get("/employees", response_model=EmployeeListResponse)
async def list_employees(
    db: DbSession,
    user: Permitted("employee.read"),
    page: Annotated[int, Query(ge=1)] = 1,
    page_size: Annotated[int, Query(ge=1, le=100)] = 20,
    organization: str | None = None,
    search: str | None = None,
) -> EmployeeListResponse:
    """List employees; soft-deleted employees are excluded."""
    query = select(Employee).where(Employee.deleted_at.is_(None))
    if organization:
        query = query.where(Employee.organization == organization)
    if search:
        pattern = f"%{search}%"
        query = query.where(
            or_(
                Employee.staff_id.ilike(pattern),
                Employee.first_name_en.ilike(pattern),
                Employee.last_name_en.ilike(pattern),
            )
        )

    # Get total count
    count_query = select(func.count()).select_from(query.subquery())
    total = await db.scalar(count_query) or 0

    # Apply pagination
    query = query.order_by(Employee.staff_id)
    query = query.offset((page - 1) * page_size).limit(page_size)

    result = await db.execute(query)
    return EmployeeListResponse(
        items=[EmployeeResponse.model_validate(e) for e in result.scalars().all()],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.get(
    "/employees/{employee_id}",
    response_model=EmployeeResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_employee(
    db: DbSession, user: Permitted("employee.read"), employee_id: Annotated[UUID, Path()]
) -> EmployeeResponse:
    return EmployeeResponse.model_validate(await _get_employee(db, employee_id))


@router.patch(
    "/employees/{employee_id}",
    response_model=EmployeeResponse,
    responses={404: {"model": ErrorResponse}},
)
async def update_employee(
    db: DbSession,
    user: Permitted("employee.update"),
    employee_id: Annotated[UUID, Path()],
    payload: EmployeeUpdate,
) -> EmployeeResponse:
    employee = await _get_employee(db, employee_id)
    for key, value in payload.model_dump(exclude_unset=True).items():
        setattr(employee, key, value)
    employee.updated_by = user.email
    await db.commit()
    return EmployeeResponse.model_validate(employee)


@router.delete(
    "/employees/{employee_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: {"model": ErrorResponse}},
)
async def delete_employee(
    db: DbSession, user: Permitted("employee.delete"), employee_id: Annotated[UUID, Path()]
) -> None:
    """Move an employee to the recycle bin."""
    employee = await _get_employee(db, employee_id)
    await RecycleBinService(db).soft_delete(employee, user.email)
    await db.commit()


# ============================================================================
# Employments
# ============================================================================


@router.post(
    "/employments",
    response_model=EmploymentResponse,
    status_code=status.HTTP_201_CREATED,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def create_employment(
    db: DbSession, user: Permitted("employment.create"), payload: EmploymentCreate
) -> EmploymentResponse:
    employment = await EmploymentService(db).create_employment(payload.model_dump(), user.email)
    await db.commit()
    return EmploymentResponse.model_validate(employment)


@router.get("/employments", response_model=list[EmploymentResponse])
async def list_employments(
    db: DbSession,
    user: Permitted("employment.read"),
    employee_id: UUID | None = None,
    active: bool | None = None,
) -> list[EmploymentResponse]:
    query = select(Employment).order_by(Employment.start_date.desc())
    if employee_id:
        query = query.where(Employment.employee_id == employee_id)
    if active is not None:
        query = query.where(Employment.active.is_(active))
    result = await db.execute(query)
    return [EmploymentResponse.model_validate(e) for e in result.scalars().all()]


@router.get(
    "/employments/{employment_id}",
    response_model=EmploymentResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_employment(
    db: DbSession,
    user: Permitted("employment.read"),
    employment_id: Annotated[UUID, Path()],
) -> EmploymentResponse:
    employment = await EmploymentService(db).get_employment(employment_id)
    return EmploymentResponse.model_validate(employment)


@router.patch(
    "/employments/{employment_id}",
    response_model=EmploymentResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def update_employment(
    db: DbSession,
    user: Permitted("employment.update"),
    employment_id: Annotated[UUID, Path()],
    payload: EmploymentUpdate,
) -> EmploymentResponse:
    """Update an employment; salary changes re-price its active allocations."""
    service = EmploymentService(db)
    employment = await service.get_employment(employment_id)
    employment = await service.update_employment(
        employment, payload.model_dump(exclude_unset=True), user.email
    )
    await db.commit()
    return EmploymentResponse.model_validate(employment)


# ============================================================================
# Probation
# ============================================================================


@router.post(
    "/employments/{employment_id}/probation/pass",
    response_model=EmploymentResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def pass_probation(
    db: DbSession,
    user: Permitted("probation.update"),
    employment_id: Annotated[UUID, Path()],
    payload: ProbationPassRequest,
) -> EmploymentResponse:
    employment = await EmploymentService(db).get_employment(employment_id)
    await ProbationService(db).mark_passed(employment, payload.transition_date, user.email)
    await db.commit()
    return EmploymentResponse.model_validate(employment)


@router.post(
    "/employments/{employment_id}/probation/fail",
    response_model=EmploymentResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def fail_probation(
    db: DbSession,
    user: Permitted("probation.update"),
    employment_id: Annotated[UUID, Path()],
    payload: ProbationFailRequest,
) -> EmploymentResponse:
    employment = await EmploymentService(db).get_employment(employment_id)
    await ProbationService(db).mark_failed(
        employment, payload.decision_date, payload.reason, user.email
    )
    await db.commit()
    return EmploymentResponse.model_validate(employment)


@router.post(
    "/employments/{employment_id}/probation/extend",
    response_model=ProbationRecordResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def extend_probation(
    db: DbSession,
    user: Permitted("probation.update"),
    employment_id: Annotated[UUID, Path()],
    payload: ProbationExtendRequest,
) -> ProbationRecordResponse:
    employment = await EmploymentService(db).get_employment(employment_id)
    record = await ProbationService(db).extend(
        employment, payload.new_pass_probation_date, payload.reason, user.email
    )
    await db.commit()
    return ProbationRecordResponse.model_validate(record)


@router.get(
    "/employments/{employment_id}/probation",
    response_model=list[ProbationRecordResponse],
    responses={404: {"model": ErrorResponse}},
)
async def probation_history(
    db: DbSession,
    user: Permitted("probation.read"),
    employment_id: Annotated[UUID, Path()],
) -> list[ProbationRecordResponse]:
    employment = await EmploymentService(db).get_employment(employment_id)
    records = await ProbationService(db).history(employment)
    return [ProbationRecordResponse.model_validate(r) for r in records]
