"""Payroll, funding snapshot, bulk batch and advance models."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Date,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    event,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from hr_payroll.crypto import EncryptedDecimal
from hr_payroll.models.base import (
    AuditMixin,
    Base,
    SoftDeleteMixin,
    TimestampMixin,
    UUIDPrimaryKeyMixin,
)

# Money columns on Payroll, all encrypted at rest
PAYROLL_AMOUNT_FIELDS = (
    "gross_salary",
    "gross_salary_by_fte",
    "compensation_refund",
    "thirteen_month_salary",
    "thirteen_month_salary_accrued",
    "pvd",
    "saving_fund",
    "employer_social_security",
    "employee_social_security",
    "employer_health_welfare",
    "employee_health_welfare",
    "tax",
    "net_salary",
    "total_salary",
    "total_pvd",
    "total_saving_fund",
    "salary_bonus",
    "total_income",
    "employer_contribution",
    "total_deduction",
)


class Payroll(UUIDPrimaryKeyMixin, Base, TimestampMixin, AuditMixin, SoftDeleteMixin):
    """Computed pay for one funding allocation in one pay period."""

    __tablename__ = "payrolls"

    employment_id: Mapped[UUID] = mapped_column(
        ForeignKey("employments.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    employee_funding_allocation_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("employee_funding_allocations.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    pay_period_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)

    gross_salary: Mapped[Decimal] = mapped_column(EncryptedDecimal, nullable=False)
    gross_salary_by_fte: Mapped[Decimal] = mapped_column(EncryptedDecimal, nullable=False)
    compensation_refund: Mapped[Decimal] = mapped_column(EncryptedDecimal, nullable=False)
    thirteen_month_salary: Mapped[Decimal] = mapped_column(EncryptedDecimal, nullable=False)
    thirteen_month_salary_accrued: Mapped[Decimal] = mapped_column(
        EncryptedDecimal, nullable=False
    )
    pvd: Mapped[Decimal] = mapped_column(EncryptedDecimal, nullable=False)
    saving_fund: Mapped[Decimal] = mapped_column(EncryptedDecimal, nullable=False)
    employer_social_security: Mapped[Decimal] = mapped_column(EncryptedDecimal, nullable=False)
    employee_social_security: Mapped[Decimal] = mapped_column(EncryptedDecimal, nullable=False)
    employer_health_welfare: Mapped[Decimal] = mapped_column(EncryptedDecimal, nullable=False)
    employee_health_welfare: Mapped[Decimal] = mapped_column(EncryptedDecimal, nullable=False)
    tax: Mapped[Decimal] = mapped_column(EncryptedDecimal, nullable=False)
    net_salary: Mapped[Decimal] = mapped_column(EncryptedDecimal, nullable=False)
    total_salary: Mapped[Decimal] = mapped_column(EncryptedDecimal, nullable=False)
    total_pvd: Mapped[Decimal] = mapped_column(EncryptedDecimal, nullable=False)
    total_saving_fund: Mapped[Decimal] = mapped_column(EncryptedDecimal, nullable=False)
    salary_bonus: Mapped[Decimal] = mapped_column(EncryptedDecimal, nullable=False)
    total_income: Mapped[Decimal] = mapped_column(EncryptedDecimal, nullable=False)
    employer_contribution: Mapped[Decimal] = mapped_column(EncryptedDecimal, nullable=False)
    total_deduction: Mapped[Decimal] = mapped_column(EncryptedDecimal, nullable=False)

    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Relationships
    grant_allocations: Mapped[list[PayrollGrantAllocation]] = relationship(
        back_populates="payroll",
        lazy="selectin",
        passive_deletes=True,
    )


class PayrollGrantAllocation(UUIDPrimaryKeyMixin, Base, TimestampMixin):
    """Funding source of a payroll row, frozen at computation time.

    Values are copied, not referenced, so later edits to grants or
    allocations do not rewrite payroll history. The foreign keys are kept
    only for navigation and become NULL if the source row is removed.
    """

    __tablename__ = "payroll_grant_allocations"

    payroll_id: Mapped[UUID] = mapped_column(
        ForeignKey("payrolls.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    employee_funding_allocation_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("employee_funding_allocations.id", ondelete="SET NULL"),
        nullable=True,
    )
    grant_item_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("grant_items.id", ondelete="SET NULL"),
        nullable=True,
    )
    grant_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("grants.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    grant_code: Mapped[str | None] = mapped_column(String(50), nullable=True)
    grant_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    budget_line_code: Mapped[str | None] = mapped_column(String(100), nullable=True)
    grant_position: Mapped[str | None] = mapped_column(String(255), nullable=True)
    fte: Mapped[Decimal] = mapped_column(Numeric(5, 4), nullable=False)
    allocated_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    salary_type: Mapped[str] = mapped_column(String(30), nullable=False)

    # Relationships
    payroll: Mapped[Payroll] = relationship(back_populates="grant_allocations")


class ImmutableSnapshotError(Exception):
    """Raised when code tries to change a payroll funding snapshot."""


@event.listens_for(PayrollGrantAllocation, "before_update")
def _reject_snapshot_update(mapper, connection, target) -> None:
    raise ImmutableSnapshotError(
        f"Payroll grant allocation {target.id} is a historical snapshot and cannot change"
    )


class BulkPayrollBatch(UUIDPrimaryKeyMixin, Base, TimestampMixin):
    """Progress record for a bulk payroll run, polled by clients."""

    __tablename__ = "bulk_payroll_batches"

    pay_period: Mapped[str] = mapped_column(String(7), nullable=False)
    filters: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    total_employees: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_payrolls: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    processed_payrolls: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    successful_payrolls: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    failed_payrolls: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    advances_created: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    errors: Mapped[list[dict[str, Any]] | None] = mapped_column(JSON, nullable=True)
    summary: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    current_employee: Mapped[str | None] = mapped_column(String(255), nullable=True)
    current_allocation: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_by: Mapped[str | None] = mapped_column(String(100), nullable=True)
    started_at: Mapped[datetime | None] = mapped_column(nullable=True)
    finished_at: Mapped[datetime | None] = mapped_column(nullable=True)

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'processing', 'completed', 'failed')",
            name="bulk_batch_status",
        ),
    )

    @property
    def progress_percentage(self) -> float:
        if not self.total_payrolls:
            return 0.0
        return round(self.processed_payrolls / self.total_payrolls * 100, 2)


class InterOrganizationAdvance(UUIDPrimaryKeyMixin, Base, TimestampMixin, AuditMixin):
    """Money one organization fronts for another's grant-funded salary."""

    __tablename__ = "inter_organization_advances"

    payroll_id: Mapped[UUID] = mapped_column(
        ForeignKey("payrolls.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    from_organization: Mapped[str] = mapped_column(String(20), nullable=False)
    to_organization: Mapped[str] = mapped_column(String(20), nullable=False)
    via_grant_id: Mapped[UUID] = mapped_column(
        ForeignKey("grants.id", ondelete="RESTRICT"),
        nullable=False,
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    advance_date: Mapped[date] = mapped_column(Date, nullable=False)
    settlement_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    @property
    def is_settled(self) -> bool:
        return self.settlement_date is not None


class BenefitSetting(UUIDPrimaryKeyMixin, Base, TimestampMixin, AuditMixin):
    """Keyed numeric benefit parameter, e.g. the PVD percentage."""

    __tablename__ = "benefit_settings"

    setting_key: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    setting_value: Mapped[Decimal] = mapped_column(Numeric(12, 4), nullable=False)
    setting_type: Mapped[str] = mapped_column(String(20), nullable=False, default="numeric")
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    effective_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
