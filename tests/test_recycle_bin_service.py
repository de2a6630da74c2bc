"""Tests for soft delete, restore and retention purge."""

from datetime import date, timedelta

import pytest
from sqlalchemy import func, select

from hr_payroll.models import Employee, EmployeeFundingAllocation, Payroll, PayrollGrantAllocation
from hr_payroll.models.base import utcnow
from hr_payroll.services.errors import DuplicatePayrollError, NotFoundError, ServiceError
from hr_payroll.services.payroll_service import PayrollService
from hr_payroll.services.recycle_bin_service import RecycleBinService

pytestmark = pytest.mark.asyncio

ACTOR = "tester@example.org"


class TestSoftDelete:
    """Soft delete and restore within the retention window."""

    async def test_deleted_record_is_listed(self, session, employee):
        service = RecycleBinService(session)
        await service.soft_delete(employee, ACTOR)

        [entry] = await service.list_deleted("employees")
        assert entry["id"] == employee.id
        assert entry["label"] == employee.staff_id
        assert entry["days_remaining"] in (89, 90)

    async def test_cannot_delete_twice(self, session, employee):
        service = RecycleBinService(session)
        await service.soft_delete(employee)
        with pytest.raises(ServiceError):
            await service.soft_delete(employee)

    async def test_restore(self, session, employee):
        service = RecycleBinService(session)
        await service.soft_delete(employee)

        restored = await service.restore("employees", employee.id, ACTOR)
        assert restored.deleted_at is None
        assert await service.list_deleted("employees") == []

    async def test_restore_after_retention_is_refused(self, session, employee):
        employee.deleted_at = utcnow() - timedelta(days=91)
        await session.flush()

        with pytest.raises(ServiceError, match="retention window"):
            await RecycleBinService(session).restore("employees", employee.id)

    async def test_live_record_cannot_be_restored(self, session, employee):
        with pytest.raises(NotFoundError):
            await RecycleBinService(session).restore("employees", employee.id)

    async def test_repaid_payroll_is_not_restored(self, session, funded_employment):
        """Restoring must not leave two live payrolls for one allocation and month."""
        payrolls = PayrollService(session)
        first = await payrolls.process_employee(funded_employment.employee_id, date(2025, 3, 31))
        for payroll in first.payrolls:
            await payrolls.soft_delete(payroll, ACTOR)
        await payrolls.process_employee(funded_employment.employee_id, date(2025, 3, 31))
        await session.commit()

        with pytest.raises(DuplicatePayrollError):
            await RecycleBinService(session).restore("payrolls", first.payrolls[0].id, ACTOR)

        live = await session.scalar(
            select(func.count()).select_from(Payroll).where(Payroll.deleted_at.is_(None))
        )
        assert live == 2

    async def test_unknown_model(self, session):
        with pytest.raises(NotFoundError):
            await RecycleBinService(session).list_deleted("grants")


class TestPurge:
    """Hard delete once retention has lapsed."""

    async def test_only_expired_rows_are_purged(self, session, make_employee):
        expired = await make_employee()
        recent = await make_employee()
        expired.deleted_at = utcnow() - timedelta(days=100)
        recent.deleted_at = utcnow() - timedelta(days=1)
        await session.flush()
        service = RecycleBinService(session)

        dry = await service.purge_expired(dry_run=True)
        assert dry["employees"] == 1
        assert await session.scalar(select(func.count()).select_from(Employee)) == 2

        counts = await service.purge_expired()
        assert counts["employees"] == 1
        assert await session.scalar(select(func.count()).select_from(Employee)) == 1

    async def test_purged_payroll_takes_its_snapshots(self, session, funded_employment):
        payrolls = PayrollService(session)
        result = await payrolls.process_employee(funded_employment.employee_id, date(2025, 3, 31))
        result.payrolls[0].deleted_at = utcnow() - timedelta(days=100)
        await session.flush()

        counts = await RecycleBinService(session).purge_expired()

        assert counts["payrolls"] == 1
        assert await session.scalar(select(func.count()).select_from(PayrollGrantAllocation)) == 1

    async def test_purged_employee_cascades_through_payroll_history(
        self, session, funded_employment
    ):
        await PayrollService(session).process_employee(
            funded_employment.employee_id, date(2025, 3, 31)
        )
        employee = await session.get(Employee, funded_employment.employee_id)
        employee.deleted_at = utcnow() - timedelta(days=100)
        await session.flush()

        counts = await RecycleBinService(session).purge_expired()

        assert counts["employees"] == 1
        for model in (Payroll, PayrollGrantAllocation, EmployeeFundingAllocation):
            assert await session.scalar(select(func.count()).select_from(model)) == 0
