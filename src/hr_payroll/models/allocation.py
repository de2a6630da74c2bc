"""Employee funding allocation model."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import CheckConstraint, Date, ForeignKey, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from hr_payroll.models.base import AuditMixin, Base, TimestampMixin, UUIDPrimaryKeyMixin
from hr_payroll.models.grant import Grant, GrantItem

ALLOCATION_TYPE_GRANT = "grant"
ALLOCATION_TYPE_ORG_FUNDED = "org_funded"


class EmployeeFundingAllocation(UUIDPrimaryKeyMixin, Base, TimestampMixin, AuditMixin):
    """Share of an employment's salary charged to one funding source.

    A grant allocation points at a budgeted grant item. An org-funded
    allocation points at the organization's hub grant and has no budget line.
    """

    __tablename__ = "employee_funding_allocations"

    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    employment_id: Mapped[UUID] = mapped_column(
        ForeignKey("employments.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    allocation_type: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ALLOCATION_TYPE_GRANT
    )
    grant_item_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("grant_items.id", ondelete="RESTRICT"),
        nullable=True,
        index=True,
    )
    org_funded_grant_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("grants.id", ondelete="RESTRICT"),
        nullable=True,
    )
    fte: Mapped[Decimal] = mapped_column(Numeric(5, 4), nullable=False)
    allocated_amount: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    salary_type: Mapped[str | None] = mapped_column(String(30), nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="active")
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    __table_args__ = (
        CheckConstraint("fte > 0 AND fte <= 1", name="allocation_fte_range"),
        CheckConstraint(
            "status IN ('active', 'inactive', 'closed')",
            name="allocation_status",
        ),
        CheckConstraint(
            "allocation_type IN ('grant', 'org_funded')",
            name="allocation_type",
        ),
    )

    # Relationships
    grant_item: Mapped[GrantItem | None] = relationship()
    org_funded_grant: Mapped[Grant | None] = relationship()

    def overlaps(self, start: date, end: date | None) -> bool:
        """Whether this allocation's date range intersects [start, end]."""
        if end is not None and self.start_date > end:
            return False
        return self.end_date is None or self.end_date >= start

    @property
    def funding_grant(self) -> Grant | None:
        """Grant that pays for this allocation; relationships must be loaded."""
        if self.allocation_type == ALLOCATION_TYPE_ORG_FUNDED:
            return self.org_funded_grant
        return self.grant_item.grant if self.grant_item else None
