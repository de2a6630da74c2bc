"""Tests for bulk payroll batches."""

from datetime import date
from decimal import Decimal

import pytest

from hr_payroll.services.bulk_payroll_service import (
    BulkPayrollRunner,
    create_batch,
    get_batch,
    select_employee_ids,
)
from hr_payroll.services.errors import ServiceError
from hr_payroll.services.state_machine import InvalidTransitionError

pytestmark = pytest.mark.asyncio

ACTOR = "tester@example.org"


class TestCreateBatch:
    """Batch creation from filters."""

    async def test_filters_by_organization(self, session, funded_employment, make_employee, make_employment):
        await make_employment(await make_employee(organization="BHF"))

        smru = await select_employee_ids(session, organization="SMRU")
        assert smru == [funded_employment.employee_id]

        batch = await create_batch(
            session, date(2025, 3, 10), filters={"organization": "SMRU"}, actor=ACTOR
        )
        assert batch.pay_period == "2025-03"
        assert batch.status == "pending"
        assert batch.total_employees == 1
        assert batch.total_payrolls == 2
        assert batch.filters["organization"] == "SMRU"

    async def test_empty_selection_is_rejected(self, session):
        with pytest.raises(ServiceError, match="No employees"):
            await create_batch(session, date(2025, 3, 31), filters={"organization": "SMRU"})


class TestBulkPayrollRunner:
    """One transaction per employee; failures are recorded, not fatal."""

    async def test_run_records_successes_and_failures(
        self, session, session_factory, funded_employment, make_employee, make_employment
    ):
        await make_employment(await make_employee())
        batch = await create_batch(
            session, date(2025, 3, 31), filters={"organization": "SMRU"}, actor=ACTOR
        )
        await session.commit()

        await BulkPayrollRunner(session_factory).run(batch.id, actor=ACTOR)

        batch = await get_batch(session, batch.id)
        assert batch.status == "completed"
        assert batch.successful_payrolls == 2
        assert batch.failed_payrolls == 1
        assert batch.processed_payrolls == 3
        assert batch.progress_percentage == 100.0
        assert batch.started_at is not None
        assert batch.finished_at is not None

        [error] = batch.errors
        assert error["code"] == "PAYROLL_ERROR"
        assert "no active funding allocations" in error["error"]

        assert batch.summary["payrolls_created"] == 2
        assert batch.summary["employees_failed"] == 1
        assert Decimal(batch.summary["net_salary_total"]) == Decimal("28650.00")

    async def test_completed_batch_cannot_run_again(self, session, session_factory, funded_employment):
        batch = await create_batch(session, date(2025, 3, 31), actor=ACTOR)
        await session.commit()
        runner = BulkPayrollRunner(session_factory)
        await runner.run(batch.id)

        with pytest.raises(InvalidTransitionError):
            await runner.run(batch.id)
