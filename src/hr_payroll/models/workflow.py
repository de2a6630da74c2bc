"""Auxiliary HR workflow records with approval gates."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, CheckConstraint, Date, ForeignKey, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from hr_payroll.models.base import (
    AuditMixin,
    Base,
    SoftDeleteMixin,
    TimestampMixin,
    UUIDPrimaryKeyMixin,
)


class TravelRequest(UUIDPrimaryKeyMixin, Base, TimestampMixin, AuditMixin):
    """Business travel request."""

    __tablename__ = "travel_requests"

    APPROVAL_GATES = ("supervisor", "hr")

    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    department_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("departments.id", ondelete="SET NULL"),
        nullable=True,
    )
    position_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("positions.id", ondelete="SET NULL"),
        nullable=True,
    )
    destination: Mapped[str] = mapped_column(String(255), nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    to_date: Mapped[date] = mapped_column(Date, nullable=False)
    purpose: Mapped[str | None] = mapped_column(Text, nullable=True)
    grant_code: Mapped[str | None] = mapped_column(String(50), nullable=True)
    transportation: Mapped[str | None] = mapped_column(String(100), nullable=True)
    accommodation: Mapped[str | None] = mapped_column(String(100), nullable=True)
    request_by_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    supervisor_approved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    supervisor_approved_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    hr_approved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    hr_approved_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    remarks: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")

    __table_args__ = (
        CheckConstraint("to_date >= start_date", name="travel_request_dates"),
    )


class PersonnelAction(UUIDPrimaryKeyMixin, Base, TimestampMixin, AuditMixin, SoftDeleteMixin):
    """Change to an employment, applied once every approver has signed off."""

    __tablename__ = "personnel_actions"

    APPROVAL_GATES = ("dept_head", "coo", "hr", "accountant")

    ACTION_TYPES = (
        "appointment",
        "fiscal_increment",
        "title_change",
        "voluntary_separation",
        "position_change",
        "transfer",
    )

    employment_id: Mapped[UUID] = mapped_column(
        ForeignKey("employments.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    reference_number: Mapped[str | None] = mapped_column(String(50), nullable=True)
    action_type: Mapped[str] = mapped_column(String(50), nullable=False)
    action_subtype: Mapped[str | None] = mapped_column(String(50), nullable=True)
    effective_date: Mapped[date] = mapped_column(Date, nullable=False)

    # Snapshot of the employment when the action was raised
    current_department_id: Mapped[UUID | None] = mapped_column(nullable=True)
    current_position_id: Mapped[UUID | None] = mapped_column(nullable=True)
    current_salary: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)

    new_department_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("departments.id", ondelete="SET NULL"),
        nullable=True,
    )
    new_position_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("positions.id", ondelete="SET NULL"),
        nullable=True,
    )
    new_site_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("sites.id", ondelete="SET NULL"),
        nullable=True,
    )
    new_salary: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    new_work_schedule: Mapped[str | None] = mapped_column(String(100), nullable=True)
    comments: Mapped[str | None] = mapped_column(Text, nullable=True)

    dept_head_approved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    dept_head_approved_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    coo_approved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    coo_approved_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    hr_approved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    hr_approved_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    accountant_approved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    accountant_approved_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    applied_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    __table_args__ = (
        CheckConstraint(
            "action_type IN ('appointment', 'fiscal_increment', 'title_change', "
            "'voluntary_separation', 'position_change', 'transfer')",
            name="personnel_action_type",
        ),
    )


class Resignation(UUIDPrimaryKeyMixin, Base, TimestampMixin, AuditMixin, SoftDeleteMixin):
    """Resignation notice awaiting HR acknowledgement."""

    __tablename__ = "resignations"

    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    department_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("departments.id", ondelete="SET NULL"),
        nullable=True,
    )
    position_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("positions.id", ondelete="SET NULL"),
        nullable=True,
    )
    resignation_date: Mapped[date] = mapped_column(Date, nullable=False)
    last_working_date: Mapped[date] = mapped_column(Date, nullable=False)
    reason: Mapped[str] = mapped_column(String(255), nullable=False)
    reason_details: Mapped[str | None] = mapped_column(Text, nullable=True)
    acknowledgement_status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="Pending"
    )
    acknowledged_by: Mapped[str | None] = mapped_column(String(100), nullable=True)
    acknowledged_at: Mapped[date | None] = mapped_column(Date, nullable=True)

    __table_args__ = (
        CheckConstraint(
            "acknowledgement_status IN ('Pending', 'Acknowledged', 'Rejected')",
            name="resignation_acknowledgement_status",
        ),
        CheckConstraint(
            "last_working_date >= resignation_date",
            name="resignation_dates",
        ),
    )


class HolidayCompensationRecord(UUIDPrimaryKeyMixin, Base, TimestampMixin, AuditMixin):
    """Compensation owed for working on a public holiday."""

    __tablename__ = "holiday_compensation_records"

    APPROVAL_GATES = ("supervisor", "hr")

    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    holiday_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("holidays.id", ondelete="SET NULL"),
        nullable=True,
    )
    work_date: Mapped[date] = mapped_column(Date, nullable=False)
    compensation_days: Mapped[Decimal] = mapped_column(Numeric(4, 2), nullable=False, default=1)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    supervisor_approved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    supervisor_approved_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    hr_approved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    hr_approved_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
