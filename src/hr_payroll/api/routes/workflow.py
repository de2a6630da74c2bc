"""Travel, personnel action, resignation and holiday compensation endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, Query, status

from hr_payroll.api.dependencies import DbSession, Permitted
from hr_payroll.api.schemas import (
    EmploymentResponse,
    ErrorResponse,
    GateApproval,
    HolidayCompensationCreate,
    HolidayCompensationResponse,
    PersonnelActionCreate,
    PersonnelActionResponse,
    ResignationAcknowledge,
    ResignationCreate,
    ResignationResponse,
    TravelRequestCreate,
    TravelRequestResponse,
)
from hr_payroll.models import HolidayCompensationRecord, PersonnelAction, Resignation, TravelRequest
from hr_payroll.services.recycle_bin_service import RecycleBinService
from hr_payroll.services.workflow_service import WorkflowService

router = APIRouter(tags=["workflow"])


# ============================================================================
# Travel requests
# ============================================================================


@router.post(
    "/travel-requests",
    response_model=TravelRequestResponse,
    status_code=status.HTTP_201_CREATED,
    responses={404: {"model": ErrorResponse}},
)
async def create_travel_request(
    db: DbSession, user: Permitted("travel_request.create"), payload: TravelRequestCreate
) -> TravelRequestResponse:
    record = await WorkflowService(db).create(TravelRequest, payload.model_dump(), user.email)
    await db.commit()
    return TravelRequestResponse.model_validate(record)


@router.get("/travel-requests", response_model=list[TravelRequestResponse])
async def list_travel_requests(
    db: DbSession,
    user: Permitted("travel_request.read"),
    employee_id: UUID | None = None,
    status_filter: Annotated[str | None, Query(alias="status")] = None,
) -> list[TravelRequestResponse]:
    records = await WorkflowService(db).list_records(TravelRequest, employee_id, status_filter)
    return [TravelRequestResponse.model_validate(r) for r in records]


@router.post(
    "/travel-requests/{record_id}/approve",
    response_model=TravelRequestResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def approve_travel_request(
    db: DbSession,
    user: Permitted("travel_request.update"),
    record_id: Annotated[UUID, Path()],
    payload: GateApproval,
) -> TravelRequestResponse:
    service = WorkflowService(db)
    record = await service.approve(
        await service.get(TravelRequest, record_id), payload.gate, payload.approved, user.email
    )
    await db.commit()
    return TravelRequestResponse.model_validate(record)


# ============================================================================
# Personnel actions
# ============================================================================


@router.post(
    "/personnel-actions",
    response_model=PersonnelActionResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def create_personnel_action(
    db: DbSession, user: Permitted("personnel_action.create"), payload: PersonnelActionCreate
) -> PersonnelActionResponse:
    action = await WorkflowService(db).create_personnel_action(payload.model_dump(), user.email)
    await db.commit()
    return PersonnelActionResponse.model_validate(action)


@router.get("/personnel-actions", response_model=list[PersonnelActionResponse])
async def list_personnel_actions(
    db: DbSession,
    user: Permitted("personnel_action.read"),
    status_filter: Annotated[str | None, Query(alias="status")] = None,
) -> list[PersonnelActionResponse]:
    records = await WorkflowService(db).list_records(PersonnelAction, status=status_filter)
    return [PersonnelActionResponse.model_validate(r) for r in records]


@router.post(
    "/personnel-actions/{action_id}/approve",
    response_model=PersonnelActionResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def approve_personnel_action(
    db: DbSession,
    user: Permitted("personnel_action.update"),
    action_id: Annotated[UUID, Path()],
    payload: GateApproval,
) -> PersonnelActionResponse:
    service = WorkflowService(db)
    action = await service.approve(
        await service.get(PersonnelAction, action_id), payload.gate, payload.approved, user.email
    )
    await db.commit()
    return PersonnelActionResponse.model_validate(action)


@router.post(
    "/personnel-actions/{action_id}/apply",
    response_model=EmploymentResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def apply_personnel_action(
    db: DbSession,
    user: Permitted("personnel_action.update"),
    action_id: Annotated[UUID, Path()],
) -> EmploymentResponse:
    """Write a fully approved action onto its employment."""
    service = WorkflowService(db)
    employment = await service.apply_personnel_action(
        await service.get(PersonnelAction, action_id), user.email
    )
    await db.commit()
    return EmploymentResponse.model_validate(employment)


@router.delete(
    "/personnel-actions/{action_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: {"model": ErrorResponse}},
)
async def delete_personnel_action(
    db: DbSession,
    user: Permitted("personnel_action.delete"),
    action_id: Annotated[UUID, Path()],
) -> None:
    action = await WorkflowService(db).get(PersonnelAction, action_id)
    await RecycleBinService(db).soft_delete(action, user.email)
    await db.commit()


# ============================================================================
# Resignations
# ============================================================================


@router.post(
    "/resignations",
    response_model=ResignationResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def create_resignation(
    db: DbSession, user: Permitted("resignation.create"), payload: ResignationCreate
) -> ResignationResponse:
    resignation = await WorkflowService(db).create_resignation(payload.model_dump(), user.email)
    await db.commit()
    return ResignationResponse.model_validate(resignation)


@router.get("/resignations", response_model=list[ResignationResponse])
async def list_resignations(
    db: DbSession,
    user: Permitted("resignation.read"),
    employee_id: UUID | None = None,
) -> list[ResignationResponse]:
    records = await WorkflowService(db).list_records(Resignation, employee_id)
    return [ResignationResponse.model_validate(r) for r in records]


@router.post(
    "/resignations/{resignation_id}/acknowledge",
    response_model=ResignationResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def acknowledge_resignation(
    db: DbSession,
    user: Permitted("resignation.update"),
    resignation_id: Annotated[UUID, Path()],
    payload: ResignationAcknowledge,
) -> ResignationResponse:
    service = WorkflowService(db)
    resignation = await service.acknowledge_resignation(
        await service.get(Resignation, resignation_id), payload.accept, user.email
    )
    await db.commit()
    return ResignationResponse.model_validate(resignation)


@router.delete(
    "/resignations/{resignation_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: {"model": ErrorResponse}},
)
async def delete_resignation(
    db: DbSession,
    user: Permitted("resignation.delete"),
    resignation_id: Annotated[UUID, Path()],
) -> None:
    resignation = await WorkflowService(db).get(Resignation, resignation_id)
    await RecycleBinService(db).soft_delete(resignation, user.email)
    await db.commit()


# ============================================================================
# Holiday compensation
# ============================================================================


@router.post(
    "/holiday-compensations",
    response_model=HolidayCompensationResponse,
    status_code=status.HTTP_201_CREATED,
    responses={404: {"model": ErrorResponse}},
)
async def create_holiday_compensation(
    db: DbSession,
    user: Permitted("holiday_compensation.create"),
    payload: HolidayCompensationCreate,
) -> HolidayCompensationResponse:
    record = await WorkflowService(db).create(
        HolidayCompensationRecord, payload.model_dump(), user.email
    )
    await db.commit()
    return HolidayCompensationResponse.model_validate(record)


@router.get("/holiday-compensations", response_model=list[HolidayCompensationResponse])
async def list_holiday_compensations(
    db: DbSession,
    user: Permitted("holiday_compensation.read"),
    employee_id: UUID | None = None,
) -> list[HolidayCompensationResponse]:
    records = await WorkflowService(db).list_records(HolidayCompensationRecord, employee_id)
    return [HolidayCompensationResponse.model_validate(r) for r in records]


@router.post(
    "/holiday-compensations/{record_id}/approve",
    response_model=HolidayCompensationResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def approve_holiday_compensation(
    db: DbSession,
    user: Permitted("holiday_compensation.update"),
    record_id: Annotated[UUID, Path()],
    payload: GateApproval,
) -> HolidayCompensationResponse:
    service = WorkflowService(db)
    record = await service.approve(
        await service.get(HolidayCompensationRecord, record_id),
        payload.gate,
        payload.approved,
        user.email,
    )
    await db.commit()
    return HolidayCompensationResponse.model_validate(record)
