"""Bulk payroll batches.

A batch row is created inside the request, then the run happens in the
background with a fresh session per employee, so one employee's failure is
rolled back on its own and recorded in the batch while the rest continue.
Clients poll the batch for progress.
"""

from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from hr_payroll.models import BulkPayrollBatch, Employee, EmployeeFundingAllocation, Employment
from hr_payroll.models.base import utcnow
from hr_payroll.services.errors import NotFoundError, ServiceError
from hr_payroll.services.payroll_service import (
    PayrollService,
    describe_employee,
    normalize_pay_period,
)
from hr_payroll.services.state_machine import AllocationStatus, BatchStateMachine, BatchStatus

logger = logging.getLogger(__name__)


async def select_employee_ids(
    session: AsyncSession,
    organization: str | None = None,
    department_id: UUID | None = None,
    site_id: UUID | None = None,
) -> list[UUID]:
    """Employees with an active employment, narrowed by optional filters."""
    query = (
        select(Employee.id)
        .join(Employment, Employment.employee_id == Employee.id)
        .where(Employee.deleted_at.is_(None), Employment.active.is_(True))
    )
    if organization:
        query = query.where(Employee.organization == organization)
    if department_id:
        query = query.where(Employment.department_id == department_id)
    if site_id:
        query = query.where(Employment.site_id == site_id)
    result = await session.execute(query.distinct().order_by(Employee.id))
    return list(result.scalars().all())


async def create_batch(
    session: AsyncSession,
    pay_period_date: date,
    employee_ids: list[UUID] | None = None,
    filters: dict[str, Any] | None = None,
    actor: str | None = None,
) -> BulkPayrollBatch:
    """Create a pending batch; employees come from the ids or the filters."""
    filters = {k: v for k, v in (filters or {}).items() if v is not None}
    if employee_ids is None:
        employee_ids = await select_employee_ids(session, **filters)
    if not employee_ids:
        raise ServiceError("No employees match the bulk payroll selection")

    expected = await session.scalar(
        select(func.count(EmployeeFundingAllocation.id)).where(
            EmployeeFundingAllocation.employee_id.in_(employee_ids),
            EmployeeFundingAllocation.status == AllocationStatus.ACTIVE.value,
        )
    ) or 0

    batch = BulkPayrollBatch(
        pay_period=f"{normalize_pay_period(pay_period_date):%Y-%m}",
        filters={
            **{k: str(v) for k, v in filters.items()},
            "employee_ids": [str(e) for e in employee_ids],
        },
        total_employees=len(employee_ids),
        total_payrolls=expected,
        status=BatchStatus.PENDING.value,
        errors=[],
        created_by=actor,
    )
    session.add(batch)
    await session.flush()
    logger.info(
        "Created bulk payroll batch %s for %s: %d employee(s), ~%d payroll(s)",
        batch.id,
        batch.pay_period,
        batch.total_employees,
        batch.total_payrolls,
    )
    return batch


class BulkPayrollRunner:
    """Executes a pending batch, one transaction per employee."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def _update_batch(self, batch_id: UUID, **changes: Any) -> None:
        async with self.session_factory() as session:
            batch = await session.get(BulkPayrollBatch, batch_id)
            if batch is None:
                raise NotFoundError("Bulk payroll batch not found", batch_id=str(batch_id))
            if "status" in changes:
                BatchStateMachine.validate_transition(batch.status, changes["status"])
            for key, value in changes.items():
                setattr(batch, key, value)
            await session.commit()

    async def _allocation_counts(self, employee_ids: list[UUID]) -> dict[UUID, int]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(EmployeeFundingAllocation.employee_id, func.count())
                .where(
                    EmployeeFundingAllocation.employee_id.in_(employee_ids),
                    EmployeeFundingAllocation.status == AllocationStatus.ACTIVE.value,
                )
                .group_by(EmployeeFundingAllocation.employee_id)
            )
            return {employee_id: count for employee_id, count in result.all()}

    async def run(self, batch_id: UUID, actor: str | None = None) -> None:
        async with self.session_factory() as session:
            batch = await session.get(BulkPayrollBatch, batch_id)
            if batch is None:
                raise NotFoundError("Bulk payroll batch not found", batch_id=str(batch_id))
            pay_period = batch.pay_period
            employee_ids = [UUID(e) for e in (batch.filters or {}).get("employee_ids", [])]

        year, month = (int(p) for p in pay_period.split("-"))
        period_date = normalize_pay_period(date(year, month, 1))

        expected = await self._allocation_counts(employee_ids)
        await self._update_batch(
            batch_id,
            status=BatchStatus.PROCESSING.value,
            started_at=utcnow(),
            total_payrolls=sum(max(expected.get(e, 0), 1) for e in employee_ids),
        )

        processed = successful = failed = advances = 0
        errors: list[dict[str, Any]] = []
        net_total = Decimal("0.00")
        try:
            for employee_id in employee_ids:
                async with self.session_factory() as session:
                    employee = await session.get(Employee, employee_id)
                    label = describe_employee(employee) if employee else str(employee_id)
                    try:
                        result = await PayrollService(session).process_employee(
                            employee_id, period_date, actor=actor
                        )
                        await session.commit()
                    except ServiceError as exc:
                        await session.rollback()
                        count = max(expected.get(employee_id, 0), 1)
                        failed += count
                        processed += count
                        errors.append(
                            {"employee": label, "error": exc.message, "code": exc.code}
                        )
                        logger.warning("Bulk payroll %s: %s failed: %s", batch_id, label, exc)
                    except Exception as exc:
                        await session.rollback()
                        count = max(expected.get(employee_id, 0), 1)
                        failed += count
                        processed += count
                        errors.append(
                            {"employee": label, "error": str(exc), "code": "INTERNAL_ERROR"}
                        )
                        logger.exception("Bulk payroll %s: unexpected error for %s", batch_id, label)
                    else:
                        successful += len(result.payrolls)
                        processed += len(result.payrolls)
                        advances += len(result.advances)
                        net_total += sum(p.net_salary for p in result.payrolls)

                await self._update_batch(
                    batch_id,
                    processed_payrolls=processed,
                    successful_payrolls=successful,
                    failed_payrolls=failed,
                    advances_created=advances,
                    errors=list(errors),
                    current_employee=label,
                )
        except Exception:
            logger.exception("Bulk payroll batch %s aborted", batch_id)
            await self._update_batch(
                batch_id, status=BatchStatus.FAILED.value, finished_at=utcnow()
            )
            raise

        await self._update_batch(
            batch_id,
            status=BatchStatus.COMPLETED.value,
            finished_at=utcnow(),
            current_employee=None,
            summary={
                "employees": len(employee_ids),
                "employees_failed": len(errors),
                "payrolls_created": successful,
                "advances_created": advances,
                "net_salary_total": str(net_total),
            },
        )
        logger.info(
            "Bulk payroll batch %s completed: %d ok, %d failed", batch_id, successful, failed
        )


async def get_batch(session: AsyncSession, batch_id: UUID) -> BulkPayrollBatch:
    batch = await session.get(BulkPayrollBatch, batch_id, populate_existing=True)
    if batch is None:
        raise NotFoundError("Bulk payroll batch not found", batch_id=str(batch_id))
    return batch
