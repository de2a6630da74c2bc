"""Payroll API endpoints."""

from datetime import date
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Path, Query, status

from hr_payroll.api.dependencies import DbSession, Permitted, SessionFactory
from hr_payroll.api.schemas import (
    AdvanceResponse,
    BudgetHistoryEntry,
    BulkPayrollBatchResponse,
    BulkPayrollRequest,
    ErrorResponse,
    PayrollListResponse,
    PayrollPreviewLine,
    PayrollPreviewResponse,
    PayrollProcessResponse,
    PayrollRequest,
    PayrollResponse,
    PayrollStatisticsResponse,
)
from hr_payroll.services.bulk_payroll_service import BulkPayrollRunner, create_batch, get_batch
from hr_payroll.services.payroll_service import PayrollService, parse_pay_period

router = APIRouter(prefix="/payrolls", tags=["payrolls"])


# ============================================================================
# Calculation
# ============================================================================


@router.post(
    "/preview",
    response_model=PayrollPreviewResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def preview_payroll(
    db: DbSession, user: Permitted("payroll.read"), payload: PayrollRequest
) -> PayrollPreviewResponse:
    """Calculate an employee's payroll for a period without writing anything."""
    plan = await PayrollService(db).calculate_employee(
        payload.employee_id, parse_pay_period(payload.pay_period)
    )
    lines = [
        PayrollPreviewLine(
            allocation_id=line.allocation.id,
            salary_type=line.items.salary_type.value,
            allocated_amount=line.items.allocated_amount,
            funding={k: v for k, v in line.snapshot.items() if k != "employee_funding_allocation_id"},
            **line.items.amounts(),
        )
        for line in plan.lines
    ]
    return PayrollPreviewResponse(
        employee_id=plan.employee.id,
        employment_id=plan.employment.id,
        pay_period_date=plan.pay_period_date,
        total_fte=plan.total_fte,
        lines=lines,
        totals=plan.totals(),
        warnings=plan.warnings,
    )


@router.post(
    "",
    response_model=PayrollProcessResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
)
async def process_payroll(
    db: DbSession, user: Permitted("payroll.create"), payload: PayrollRequest
) -> PayrollProcessResponse:
    """Write one payroll row and funding snapshot per active allocation."""
    result = await PayrollService(db).process_employee(
        payload.employee_id,
        parse_pay_period(payload.pay_period),
        actor=user.email,
        notes=payload.notes,
    )
    await db.commit()
    return PayrollProcessResponse(
        payrolls=[PayrollResponse.model_validate(p) for p in result.payrolls],
        advances=[AdvanceResponse.model_validate(a) for a in result.advances],
        warnings=result.warnings,
    )


# ============================================================================
# Bulk runs
# ============================================================================


@router.post(
    "/bulk",
    response_model=BulkPayrollBatchResponse,
    status_code=status.HTTP_202_ACCEPTED,
    responses={400: {"model": ErrorResponse}},
)
async def start_bulk_payroll(
    db: DbSession,
    factory: SessionFactory,
    user: Permitted("payroll.create"),
    payload: BulkPayrollRequest,
    background_tasks: BackgroundTasks,
) -> BulkPayrollBatchResponse:
    """Queue a bulk run; poll the returned batch for progress."""
    batch = await create_batch(
        db,
        parse_pay_period(payload.pay_period),
        employee_ids=payload.employee_ids,
        filters={
            "organization": payload.organization,
            "department_id": payload.department_id,
            "site_id": payload.site_id,
        },
        actor=user.email,
    )
    await db.commit()
    background_tasks.add_task(BulkPayrollRunner(factory).run, batch.id, user.email)
    return BulkPayrollBatchResponse.model_validate(batch)


@router.get(
    "/bulk/{batch_id}",
    response_model=BulkPayrollBatchResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_bulk_payroll(
    db: DbSession, user: Permitted("payroll.read"), batch_id: Annotated[UUID, Path()]
) -> BulkPayrollBatchResponse:
    return BulkPayrollBatchResponse.model_validate(await get_batch(db, batch_id))


# ============================================================================
# Reporting
# ============================================================================


@router.get("/statistics", response_model=PayrollStatisticsResponse)
async def payroll_statistics(
    db: DbSession,
    user: Permitted("payroll.read"),
    start: date,
    end: date,
) -> PayrollStatisticsResponse:
    stats = await PayrollService(db).statistics(start, end)
    return PayrollStatisticsResponse(**stats)


@router.get("/budget-history", response_model=list[BudgetHistoryEntry])
async def budget_history(
    db: DbSession,
    user: Permitted("payroll.read"),
    grant_code: str | None = None,
    start: date | None = None,
    end: date | None = None,
) -> list[BudgetHistoryEntry]:
    """Which grants funded which months, read from payroll funding snapshots."""
    rows = await PayrollService(db).budget_history(grant_code, start, end)
    return [BudgetHistoryEntry(**row) for row in rows]


# ============================================================================
# Payroll records
# ============================================================================


@router.get("", response_model=PayrollListResponse)
async def list_payrolls(
    db: DbSession,
    user: Permitted("payroll.read"),
    page: Annotated[int, Query(ge=1)] = 1,
    page_size: Annotated[int, Query(ge=1, le=100)] = 20,
    employee_id: UUID | None = None,
    employment_id: UUID | None = None,
    pay_period: Annotated[str | None, Query(pattern=r"^\d{4}-(0[1-9]|1[0-2])$")] = None,
    include_deleted: bool = False,
) -> PayrollListResponse:
    """List payrolls; soft-deleted rows only appear with include_deleted."""
    payrolls, total = await PayrollService(db).list_payrolls(
        employee_id=employee_id,
        employment_id=employment_id,
        pay_period=parse_pay_period(pay_period) if pay_period else None,
        include_deleted=include_deleted,
        page=page,
        page_size=page_size,
    )
    return PayrollListResponse(
        items=[PayrollResponse.model_validate(p) for p in payrolls],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.get(
    "/{payroll_id}",
    response_model=PayrollResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_payroll(
    db: DbSession,
    user: Permitted("payroll.read"),
    payroll_id: Annotated[UUID, Path()],
    include_deleted: bool = False,
) -> PayrollResponse:
    payroll = await PayrollService(db).get_payroll(payroll_id, include_deleted)
    return PayrollResponse.model_validate(payroll)


@router.delete(
    "/{payroll_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={404: {"model": ErrorResponse}},
)
async def delete_payroll(
    db: DbSession, user: Permitted("payroll.delete"), payroll_id: Annotated[UUID, Path()]
) -> None:
    """Move a payroll to the recycle bin for the retention window."""
    service = PayrollService(db)
    await service.soft_delete(await service.get_payroll(payroll_id), user.email)
    await db.commit()


@router.post(
    "/{payroll_id}/restore",
    response_model=PayrollResponse,
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
)
async def restore_payroll(
    db: DbSession, user: Permitted("payroll.update"), payroll_id: Annotated[UUID, Path()]
) -> PayrollResponse:
    payroll = await PayrollService(db).restore(payroll_id, user.email)
    await db.commit()
    return PayrollResponse.model_validate(payroll)
