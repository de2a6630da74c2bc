"""Leave type, holiday, request and balance endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, Query, status

from hr_payroll.api.dependencies import DbSession, Permitted
from hr_payroll.api.schemas import (
    ErrorResponse,
    HolidayCreate,
    HolidayResponse,
    LeaveApproval,
    LeaveBalanceResponse,
    LeaveRequestCreate,
    LeaveRequestResponse,
    LeaveRequestUpdate,
    LeaveTypeCreate,
    LeaveTypeResponse,
)
from hr_payroll.services.leave_service import LeaveService

router = APIRouter(tags=["leave"])


# ============================================================================
# Leave types and holidays
# ============================================================================


@router.post(
    "/leave-types",
    response_model=LeaveTypeResponse,
    status_code=status.HTTP_201_CREATED,
    responses={409: {"model": ErrorResponse}},
)
async def create_leave_type(
    db: DbSession, user: Permitted("leave_type.create"), payload: LeaveTypeCreate
) -> LeaveTypeResponse:
    leave_type = await LeaveService(db).create_leave_type(payload.model_dump(), user.email)
    await db.commit()
    return LeaveTypeResponse.model_validate(leave_type)


@router.get("/leave-types", response_model=list[LeaveTypeResponse])
async def list_leave_types(
    db: DbSession, user: Permitted("leave_type.read")
) -> list[LeaveTypeResponse]:
    leave_types = await LeaveService(db).list_leave_types()
    return [LeaveTypeResponse.model_validate(t) for t in leave_types]


@router.post(
    "/holidays",
    response_model=HolidayResponse,
    status_code=status.HTTP_201_CREATED,
    responses={409: {"model": ErrorResponse}},
)
async def create_holiday(
    db: DbSession, user: Permitted("holiday.create"), payload: HolidayCreate
) -> HolidayResponse:
    holiday = await LeaveService(db).create_holiday(payload.model_dump(), user.email)
    await db.commit()
    return HolidayResponse.model_validate(holiday)


@router.get("/holidays", response_model=list[HolidayResponse])
async def list_holidays(
    db: DbSession,
    user: Permitted("holiday.read"),
    year: Annotated[int | None, Query(ge=1900, le=2200)] = None,
) -> list[HolidayResponse]:
    holidays = await LeaveService(db).list_holidays(year)
    return [HolidayResponse.model_validate(h) for h in holidays]


# ============================================================================
# Leave requests
# ============================================================================


@router.post(
    "/leave-requests",
    response_model=LeaveRequestResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def create_leave_request(
    db: DbSession, user: Permitted("leave_request.create"), payload: LeaveRequestCreate
) -> LeaveRequestResponse:
    """Create a request; total_days excludes configured holidays."""
    request = await LeaveService(db).create_request(
        payload.employee_id,
        payload.leave_type_id,
        payload.start_date,
        payload.end_date,
        reason=payload.reason,
        attachment_notes=payload.attachment_notes,
        actor=user.email,
    )
    await db.commit()
    return LeaveRequestResponse.model_validate(request)


@router.get("/leave-requests", response_model=list[LeaveRequestResponse])
async def list_leave_requests(
    db: DbSession,
    user: Permitted("leave_request.read"),
    employee_id: UUID | None = None,
    status_filter: Annotated[str | None, Query(alias="status")] = None,
) -> list[LeaveRequestResponse]:
    requests = await LeaveService(db).list_requests(employee_id, status_filter)
    return [LeaveRequestResponse.model_validate(r) for r in requests]


@router.get(
    "/leave-requests/{request_id}",
    response_model=LeaveRequestResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_leave_request(
    db: DbSession, user: Permitted("leave_request.read"), request_id: Annotated[UUID, Path()]
) -> LeaveRequestResponse:
    return LeaveRequestResponse.model_validate(await LeaveService(db).get_request(request_id))


@router.patch(
    "/leave-requests/{request_id}",
    response_model=LeaveRequestResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def update_leave_request(
    db: DbSession,
    user: Permitted("leave_request.update"),
    request_id: Annotated[UUID, Path()],
    payload: LeaveRequestUpdate,
) -> LeaveRequestResponse:
    service = LeaveService(db)
    request = await service.update_request(
        await service.get_request(request_id),
        payload.model_dump(exclude_unset=True),
        user.email,
    )
    await db.commit()
    return LeaveRequestResponse.model_validate(request)


@router.post(
    "/leave-requests/{request_id}/approve",
    response_model=LeaveRequestResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def approve_leave_request(
    db: DbSession,
    user: Permitted("leave_request.update"),
    request_id: Annotated[UUID, Path()],
    payload: LeaveApproval,
) -> LeaveRequestResponse:
    """Set one approval gate; the request is approved once both are set."""
    service = LeaveService(db)
    request = await service.approve(await service.get_request(request_id), payload.gate, user.email)
    await db.commit()
    return LeaveRequestResponse.model_validate(request)


@router.post(
    "/leave-requests/{request_id}/decline",
    response_model=LeaveRequestResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def decline_leave_request(
    db: DbSession, user: Permitted("leave_request.update"), request_id: Annotated[UUID, Path()]
) -> LeaveRequestResponse:
    service = LeaveService(db)
    request = await service.decline(await service.get_request(request_id), user.email)
    await db.commit()
    return LeaveRequestResponse.model_validate(request)


@router.post(
    "/leave-requests/{request_id}/cancel",
    response_model=LeaveRequestResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def cancel_leave_request(
    db: DbSession, user: Permitted("leave_request.update"), request_id: Annotated[UUID, Path()]
) -> LeaveRequestResponse:
    service = LeaveService(db)
    request = await service.cancel(await service.get_request(request_id), user.email)
    await db.commit()
    return LeaveRequestResponse.model_validate(request)


# ============================================================================
# Balances
# ============================================================================


@router.get("/leave-balances", response_model=list[LeaveBalanceResponse])
async def list_leave_balances(
    db: DbSession,
    user: Permitted("leave_balance.read"),
    employee_id: UUID | None = None,
    year: int | None = None,
) -> list[LeaveBalanceResponse]:
    balances = await LeaveService(db).list_balances(employee_id, year)
    return [LeaveBalanceResponse.model_validate(b) for b in balances]
