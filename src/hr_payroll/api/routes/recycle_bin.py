"""Recycle bin endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, status

from hr_payroll.api.dependencies import DbSession, Permitted
from hr_payroll.api.schemas import ErrorResponse, RecycleBinEntry
from hr_payroll.services.recycle_bin_service import RecycleBinService

router = APIRouter(prefix="/recycle-bin", tags=["recycle-bin"])


@router.get(
    "/{model}",
    response_model=list[RecycleBinEntry],
    responses={404: {"model": ErrorResponse}},
)
async def list_deleted(
    db: DbSession, user: Permitted("recycle_bin.read"), model: Annotated[str, Path()]
) -> list[RecycleBinEntry]:
    """Deleted records of one kind that can still be restored."""
    entries = await RecycleBinService(db).list_deleted(model)
    return [RecycleBinEntry(**entry) for entry in entries]


@router.post(
    "/{model}/{record_id}/restore",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
async def restore_deleted(
    db: DbSession,
    user: Permitted("recycle_bin.update"),
    model: Annotated[str, Path()],
    record_id: Annotated[UUID, Path()],
) -> None:
    await RecycleBinService(db).restore(model, record_id, user.email)
    await db.commit()
