"""Leave requests, balances and holidays."""

from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hr_payroll.calculators.leave_days import count_leave_days
from hr_payroll.config import Settings, get_settings
from hr_payroll.models import Employee, Holiday, LeaveBalance, LeaveRequest, LeaveType
from hr_payroll.models.base import utcnow
from hr_payroll.services.errors import (
    ConflictError,
    InsufficientLeaveBalanceError,
    NotFoundError,
    ServiceError,
    WorkflowError,
)
from hr_payroll.services.state_machine import LeaveRequestStateMachine, LeaveRequestStatus

logger = logging.getLogger(__name__)


class LeaveService:
    """Leave request lifecycle with balance bookkeeping."""

    def __init__(self, session: AsyncSession, settings: Settings | None = None):
        self.session = session
        self.settings = settings or get_settings()

    # ------------------------------------------------------------------
    # Holidays and day counting
    # ------------------------------------------------------------------

    async def holidays_between(self, start: date, end: date) -> list[date]:
        result = await self.session.execute(
            select(Holiday.holiday_date).where(
                Holiday.is_active.is_(True),
                Holiday.holiday_date >= start,
                Holiday.holiday_date <= end,
            )
        )
        return list(result.scalars().all())

    async def total_days(self, start: date, end: date) -> Decimal:
        try:
            return count_leave_days(
                start,
                end,
                await self.holidays_between(start, end),
                exclude_weekends=self.settings.leave_exclude_weekends,
            )
        except ValueError as exc:
            raise ServiceError(str(exc), start_date=start.isoformat(), end_date=end.isoformat()) from exc

    async def create_holiday(self, data: dict[str, Any], actor: str | None = None) -> Holiday:
        existing = await self.session.scalar(
            select(Holiday).where(Holiday.holiday_date == data["holiday_date"])
        )
        if existing is not None:
            raise ConflictError(
                "A holiday already exists on this date",
                date=data["holiday_date"].isoformat(),
            )
        holiday = Holiday(**data, created_by=actor, updated_by=actor)
        self.session.add(holiday)
        await self.session.flush()
        return holiday

    async def list_holidays(self, year: int | None = None) -> list[Holiday]:
        query = select(Holiday).order_by(Holiday.holiday_date)
        if year is not None:
            query = query.where(
                Holiday.holiday_date >= date(year, 1, 1),
                Holiday.holiday_date <= date(year, 12, 31),
            )
        result = await self.session.execute(query)
        return list(result.scalars().all())

    # ------------------------------------------------------------------
    # Leave types and balances
    # ------------------------------------------------------------------

    async def get_leave_type(self, leave_type_id: UUID) -> LeaveType:
        leave_type = await self.session.get(LeaveType, leave_type_id)
        if leave_type is None:
            raise NotFoundError("Leave type not found", leave_type_id=str(leave_type_id))
        return leave_type

    async def list_leave_types(self) -> list[LeaveType]:
        result = await self.session.execute(select(LeaveType).order_by(LeaveType.name))
        return list(result.scalars().all())

    async def create_leave_type(self, data: dict[str, Any], actor: str | None = None) -> LeaveType:
        existing = await self.session.scalar(select(LeaveType).where(LeaveType.name == data["name"]))
        if existing is not None:
            raise ConflictError(f"Leave type '{data['name']}' already exists")
        leave_type = LeaveType(**data, created_by=actor, updated_by=actor)
        self.session.add(leave_type)
        await self.session.flush()
        return leave_type

    async def get_balance(
        self, employee_id: UUID, leave_type_id: UUID, year: int
    ) -> LeaveBalance | None:
        return await self.session.scalar(
            select(LeaveBalance).where(
                LeaveBalance.employee_id == employee_id,
                LeaveBalance.leave_type_id == leave_type_id,
                LeaveBalance.year == year,
            )
        )

    async def ensure_balance(
        self, employee_id: UUID, leave_type_id: UUID, year: int, actor: str | None = None
    ) -> LeaveBalance:
        """Fetch the balance, opening it at the leave type's entitlement if missing."""
        balance = await self.get_balance(employee_id, leave_type_id, year)
        if balance is not None:
            return balance
        leave_type = await self.get_leave_type(leave_type_id)
        entitlement = Decimal(leave_type.default_duration)
        balance = LeaveBalance(
            employee_id=employee_id,
            leave_type_id=leave_type_id,
            year=year,
            total_days=entitlement,
            used_days=Decimal("0"),
            remaining_days=entitlement,
            created_by=actor,
            updated_by=actor,
        )
        self.session.add(balance)
        await self.session.flush()
        return balance

    async def list_balances(
        self, employee_id: UUID | None = None, year: int | None = None
    ) -> list[LeaveBalance]:
        query = select(LeaveBalance).order_by(LeaveBalance.year, LeaveBalance.leave_type_id)
        if employee_id:
            query = query.where(LeaveBalance.employee_id == employee_id)
        if year:
            query = query.where(LeaveBalance.year == year)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    def _check_available(self, balance: LeaveBalance, requested: Decimal) -> None:
        if requested > Decimal(balance.remaining_days):
            raise InsufficientLeaveBalanceError(
                f"Requested {requested} day(s) but only {balance.remaining_days} remain",
                requested=str(requested),
                remaining=str(balance.remaining_days),
            )

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------

    async def get_request(self, request_id: UUID) -> LeaveRequest:
        request = await self.session.get(LeaveRequest, request_id)
        if request is None:
            raise NotFoundError("Leave request not found", leave_request_id=str(request_id))
        return request

    async def list_requests(
        self,
        employee_id: UUID | None = None,
        status: str | None = None,
    ) -> list[LeaveRequest]:
        query = select(LeaveRequest).order_by(LeaveRequest.start_date.desc())
        if employee_id:
            query = query.where(LeaveRequest.employee_id == employee_id)
        if status:
            query = query.where(LeaveRequest.status == status)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def create_request(
        self,
        employee_id: UUID,
        leave_type_id: UUID,
        start_date: date,
        end_date: date,
        reason: str | None = None,
        attachment_notes: str | None = None,
        actor: str | None = None,
    ) -> LeaveRequest:
        employee = await self.session.get(Employee, employee_id)
        if employee is None or employee.deleted_at is not None:
            raise NotFoundError("Employee not found", employee_id=str(employee_id))
        leave_type = await self.get_leave_type(leave_type_id)
        if leave_type.requires_attachment and not attachment_notes:
            raise ServiceError(f"Leave type '{leave_type.name}' requires an attachment")

        total = await self.total_days(start_date, end_date)
        balance = await self.ensure_balance(employee_id, leave_type_id, start_date.year, actor)
        self._check_available(balance, total)

        request = LeaveRequest(
            employee_id=employee_id,
            leave_type_id=leave_type_id,
            start_date=start_date,
            end_date=end_date,
            total_days=total,
            reason=reason,
            attachment_notes=attachment_notes,
            status=LeaveRequestStatus.PENDING.value,
            created_by=actor,
            updated_by=actor,
        )
        self.session.add(request)
        await self.session.flush()
        logger.info(
            "Leave request %s created for employee %s: %s day(s)", request.id, employee_id, total
        )
        return request

    async def update_request(
        self,
        request: LeaveRequest,
        changes: dict[str, Any],
        actor: str | None = None,
    ) -> LeaveRequest:
        """Edit a pending request; day count and balance check are redone."""
        if not LeaveRequestStateMachine.can_edit(request.status):
            raise WorkflowError(
                f"Leave request is {request.status} and can no longer be edited",
                status=request.status,
            )
        for key, value in changes.items():
            setattr(request, key, value)

        request.total_days = await self.total_days(request.start_date, request.end_date)
        balance = await self.ensure_balance(
            request.employee_id, request.leave_type_id, request.start_date.year, actor
        )
        self._check_available(balance, Decimal(request.total_days))
        request.updated_by = actor
        await self.session.flush()
        return request

    async def approve(
        self, request: LeaveRequest, gate: str, actor: str | None = None
    ) -> LeaveRequest:
        """Set one approval gate; once every gate is set the balance is debited."""
        if gate not in LeaveRequest.APPROVAL_GATES:
            raise WorkflowError(f"Unknown approval gate '{gate}'", gate=gate)
        if request.status != LeaveRequestStatus.PENDING.value:
            raise WorkflowError(f"Leave request is already {request.status}", status=request.status)

        setattr(request, f"{gate}_approved", True)
        setattr(request, f"{gate}_approved_date", date.today())
        request.updated_by = actor

        if all(getattr(request, f"{g}_approved") for g in LeaveRequest.APPROVAL_GATES):
            LeaveRequestStateMachine.validate_transition(
                request.status, LeaveRequestStatus.APPROVED.value
            )
            balance = await self.ensure_balance(
                request.employee_id, request.leave_type_id, request.start_date.year, actor
            )
            self._check_available(balance, Decimal(request.total_days))
            balance.used_days = Decimal(balance.used_days) + Decimal(request.total_days)
            balance.recalculate()
            balance.updated_by = actor
            request.status = LeaveRequestStatus.APPROVED.value
            logger.info(
                "Leave request %s approved; %s day(s) debited", request.id, request.total_days
            )

        await self.session.flush()
        return request

    async def decline(self, request: LeaveRequest, actor: str | None = None) -> LeaveRequest:
        LeaveRequestStateMachine.validate_transition(
            request.status, LeaveRequestStatus.DECLINED.value
        )
        request.status = LeaveRequestStatus.DECLINED.value
        request.updated_by = actor
        await self.session.flush()
        logger.info("Leave request %s declined", request.id)
        return request

    async def cancel(self, request: LeaveRequest, actor: str | None = None) -> LeaveRequest:
        """Cancel a request, crediting the balance back if it was approved."""
        LeaveRequestStateMachine.validate_transition(
            request.status, LeaveRequestStatus.CANCELLED.value
        )
        if request.status == LeaveRequestStatus.APPROVED.value:
            balance = await self.ensure_balance(
                request.employee_id, request.leave_type_id, request.start_date.year, actor
            )
            balance.used_days = max(
                Decimal(balance.used_days) - Decimal(request.total_days), Decimal("0")
            )
            balance.recalculate()
            balance.updated_by = actor
        request.status = LeaveRequestStatus.CANCELLED.value
        request.cancelled_at = utcnow()
        request.updated_by = actor
        await self.session.flush()
        logger.info("Leave request %s cancelled", request.id)
        return request
