"""Leave types, requests, balances and holidays."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from hr_payroll.models.base import AuditMixin, Base, TimestampMixin, UUIDPrimaryKeyMixin


class LeaveType(UUIDPrimaryKeyMixin, Base, TimestampMixin, AuditMixin):
    """Kind of leave, with its yearly entitlement."""

    __tablename__ = "leave_types"

    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    default_duration: Mapped[Decimal] = mapped_column(Numeric(6, 2), nullable=False, default=0)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    requires_attachment: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)


class Holiday(UUIDPrimaryKeyMixin, Base, TimestampMixin, AuditMixin):
    """Configured public holiday excluded from leave day counts."""

    __tablename__ = "holidays"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    holiday_date: Mapped[date] = mapped_column("date", Date, nullable=False, unique=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class LeaveRequest(UUIDPrimaryKeyMixin, Base, TimestampMixin, AuditMixin):
    """Employee leave request with supervisor and HR/site-admin approval."""

    __tablename__ = "leave_requests"

    # Approval gates, each backed by <gate>_approved and <gate>_approved_date
    APPROVAL_GATES = ("supervisor", "hr_site_admin")

    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    leave_type_id: Mapped[UUID] = mapped_column(
        ForeignKey("leave_types.id", ondelete="RESTRICT"),
        nullable=False,
    )
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    total_days: Mapped[Decimal] = mapped_column(Numeric(6, 2), nullable=False)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")

    supervisor_approved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    supervisor_approved_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    hr_site_admin_approved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    hr_site_admin_approved_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    attachment_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    cancelled_at: Mapped[datetime | None] = mapped_column(nullable=True)

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'approved', 'declined', 'cancelled')",
            name="leave_request_status",
        ),
        CheckConstraint("end_date >= start_date", name="leave_request_dates"),
    )


class LeaveBalance(UUIDPrimaryKeyMixin, Base, TimestampMixin, AuditMixin):
    """Remaining entitlement for one employee, leave type and year."""

    __tablename__ = "leave_balances"

    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
    )
    leave_type_id: Mapped[UUID] = mapped_column(
        ForeignKey("leave_types.id", ondelete="CASCADE"),
        nullable=False,
    )
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    total_days: Mapped[Decimal] = mapped_column(Numeric(6, 2), nullable=False, default=0)
    used_days: Mapped[Decimal] = mapped_column(Numeric(6, 2), nullable=False, default=0)
    remaining_days: Mapped[Decimal] = mapped_column(Numeric(6, 2), nullable=False, default=0)

    __table_args__ = (
        UniqueConstraint(
            "employee_id",
            "leave_type_id",
            "year",
            name="leave_balance_employee_type_year",
        ),
    )

    def recalculate(self) -> None:
        self.remaining_days = Decimal(self.total_days) - Decimal(self.used_days)
