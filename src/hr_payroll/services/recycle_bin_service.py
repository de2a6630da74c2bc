"""Recycle bin for soft-deleted records.

Soft-deleted rows keep a ``deleted_at`` timestamp, stay restorable for the
retention window (``TRASH_RETENTION_DAYS``, 90 by default) and are purged
for good once it has passed.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Any
from uuid import UUID

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from hr_payroll.calculators.salary import month_bounds
from hr_payroll.config import Settings, get_settings
from hr_payroll.models import (
    Employee,
    InterOrganizationAdvance,
    Payroll,
    PayrollGrantAllocation,
    PersonnelAction,
    Resignation,
    SectionDepartment,
    Site,
    SoftDeleteMixin,
)
from hr_payroll.models.base import as_utc, utcnow
from hr_payroll.services.errors import DuplicatePayrollError, NotFoundError, ServiceError

logger = logging.getLogger(__name__)

SOFT_DELETE_MODELS: dict[str, type[SoftDeleteMixin]] = {
    "employees": Employee,
    "payrolls": Payroll,
    "personnel_actions": PersonnelAction,
    "resignations": Resignation,
    "sites": Site,
    "section_departments": SectionDepartment,
}


class RecycleBinService:
    """Soft delete, restore and retention purge across soft-deletable models."""

    def __init__(self, session: AsyncSession, settings: Settings | None = None):
        self.session = session
        self.settings = settings or get_settings()

    @property
    def retention(self) -> timedelta:
        return timedelta(days=self.settings.trash_retention_days)

    def cutoff(self, now: datetime | None = None) -> datetime:
        """Rows deleted before this instant are past retention."""
        return (now or utcnow()) - self.retention

    def model_for(self, name: str) -> type[SoftDeleteMixin]:
        try:
            return SOFT_DELETE_MODELS[name]
        except KeyError:
            raise NotFoundError(f"Unknown recycle bin model '{name}'", model=name) from None

    async def soft_delete(self, record: SoftDeleteMixin, actor: str | None = None) -> None:
        if record.deleted_at is not None:
            raise ServiceError("Record is already in the recycle bin")
        record.deleted_at = utcnow()
        if hasattr(record, "updated_by"):
            record.updated_by = actor
        await self.session.flush()

    async def restore(
        self, model_name: str, record_id: UUID, actor: str | None = None
    ) -> Any:
        model = self.model_for(model_name)
        record = await self.session.get(model, record_id)
        if record is None or record.deleted_at is None:
            raise NotFoundError("Deleted record not found", model=model_name, id=str(record_id))
        if as_utc(record.deleted_at) < self.cutoff():
            raise ServiceError(
                "Record is past the retention window and can no longer be restored",
                model=model_name,
                id=str(record_id),
            )
        await self._check_restorable(record)
        record.deleted_at = None
        if hasattr(record, "updated_by"):
            record.updated_by = actor
        await self.session.flush()
        return record

    async def _check_restorable(self, record: Any) -> None:
        """Refuse to revive a payroll whose allocation was paid again for that month."""
        if not isinstance(record, Payroll) or record.employee_funding_allocation_id is None:
            return
        period_start, period_end = month_bounds(record.pay_period_date)
        live = await self.session.scalar(
            select(func.count())
            .select_from(Payroll)
            .where(
                Payroll.id != record.id,
                Payroll.employee_funding_allocation_id == record.employee_funding_allocation_id,
                Payroll.pay_period_date >= period_start,
                Payroll.pay_period_date <= period_end,
                Payroll.deleted_at.is_(None),
            )
        )
        if live:
            raise DuplicatePayrollError(
                "A live payroll already exists for this allocation and period",
                payroll_id=str(record.id),
                pay_period=f"{period_end:%Y-%m}",
            )

    async def list_deleted(self, model_name: str, now: datetime | None = None) -> list[dict[str, Any]]:
        """Deleted rows still inside the retention window, newest first."""
        model = self.model_for(model_name)
        current = now or utcnow()
        result = await self.session.execute(
            select(model)
            .where(model.deleted_at.is_not(None), model.deleted_at >= self.cutoff(current))
            .order_by(model.deleted_at.desc())
        )
        entries = []
        for record in result.scalars().all():
            deleted_at = as_utc(record.deleted_at)
            expires_at = deleted_at + self.retention
            entries.append(
                {
                    "model": model_name,
                    "id": record.id,
                    "deleted_at": deleted_at,
                    "expires_at": expires_at,
                    "days_remaining": max((expires_at - current).days, 0),
                    "label": _label(record),
                }
            )
        return entries

    async def purge_expired(
        self, now: datetime | None = None, dry_run: bool = False
    ) -> dict[str, int]:
        """Hard-delete rows whose retention has lapsed; returns counts per model."""
        cutoff = self.cutoff(now)
        counts: dict[str, int] = {}
        for name, model in SOFT_DELETE_MODELS.items():
            expired = model.deleted_at.is_not(None) & (model.deleted_at < cutoff)
            count = await self.session.scalar(select(func.count()).select_from(model).where(expired)) or 0
            counts[name] = count
            if dry_run or not count:
                continue

            if model is Payroll:
                expired_ids = select(Payroll.id).where(expired)
                await self.session.execute(
                    delete(PayrollGrantAllocation).where(
                        PayrollGrantAllocation.payroll_id.in_(expired_ids)
                    )
                )
                await self.session.execute(
                    delete(InterOrganizationAdvance).where(
                        InterOrganizationAdvance.payroll_id.in_(expired_ids)
                    )
                )
            await self.session.execute(
                delete(model).where(expired).execution_options(synchronize_session=False)
            )
            logger.info("Purged %d expired %s", count, name)
        return counts


def _label(record: Any) -> str:
    for attr in ("staff_id", "name", "reference_number", "reason"):
        value = getattr(record, attr, None)
        if value:
            return str(value)
    if isinstance(record, Payroll):
        return f"Payroll {record.pay_period_date:%Y-%m}"
    return str(record.id)
