"""Inter-organization advance endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, Query

from hr_payroll.api.dependencies import DbSession, Permitted
from hr_payroll.api.schemas import AdvanceResponse, AdvanceSettle, ErrorResponse
from hr_payroll.services.payroll_service import PayrollService, parse_pay_period

router = APIRouter(prefix="/advances", tags=["advances"])


@router.get("", response_model=list[AdvanceResponse])
async def list_advances(
    db: DbSession,
    user: Permitted("payroll.read"),
    organization: str | None = None,
    settled: bool | None = None,
    pay_period: Annotated[str | None, Query(pattern=r"^\d{4}-\d{2}$")] = None,
) -> list[AdvanceResponse]:
    """Advances an organization fronted or received."""
    advances = await PayrollService(db).list_advances(
        organization=organization,
        settled=settled,
        pay_period=parse_pay_period(pay_period) if pay_period else None,
    )
    return [AdvanceResponse.model_validate(a) for a in advances]


@router.get(
    "/{advance_id}",
    response_model=AdvanceResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_advance(
    db: DbSession, user: Permitted("payroll.read"), advance_id: Annotated[UUID, Path()]
) -> AdvanceResponse:
    advance = await PayrollService(db).get_advance(advance_id)
    return AdvanceResponse.model_validate(advance)


@router.post(
    "/{advance_id}/settle",
    response_model=AdvanceResponse,
    responses={
        400: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
)
async def settle_advance(
    db: DbSession,
    user: Permitted("payroll.update"),
    advance_id: Annotated[UUID, Path()],
    payload: AdvanceSettle,
) -> AdvanceResponse:
    """Record that the funding organization paid the advance back."""
    service = PayrollService(db)
    advance = await service.settle_advance(
        await service.get_advance(advance_id), payload.settlement_date, user.email, payload.notes
    )
    await db.commit()
    return AdvanceResponse.model_validate(advance)
