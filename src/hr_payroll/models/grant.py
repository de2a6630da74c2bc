"""Grant and grant item models."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Boolean, CheckConstraint, Date, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from hr_payroll.models.base import AuditMixin, Base, TimestampMixin, UUIDPrimaryKeyMixin


class Grant(UUIDPrimaryKeyMixin, Base, TimestampMixin, AuditMixin):
    """Funding grant.

    Hub grants are the organization-level general funds that org-funded
    allocations point at; they carry no budgeted position lines.
    """

    __tablename__ = "grants"

    code: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    organization: Mapped[str] = mapped_column(String(20), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    is_hub: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Relationships
    items: Mapped[list[GrantItem]] = relationship(
        back_populates="grant",
        lazy="selectin",
        passive_deletes=True,
        order_by="GrantItem.grant_position",
    )


class GrantItem(UUIDPrimaryKeyMixin, Base, TimestampMixin, AuditMixin):
    """Budgeted position line within a grant.

    ``budget_line_code`` may be NULL. The combination of grant, position and
    budget line is unique only when the code is set, which the grant service
    checks before writing.
    """

    __tablename__ = "grant_items"

    grant_id: Mapped[UUID] = mapped_column(
        ForeignKey("grants.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    grant_position: Mapped[str] = mapped_column(String(255), nullable=False)
    grant_salary: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    grant_benefit: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    grant_level_of_effort: Mapped[Decimal | None] = mapped_column(Numeric(5, 4), nullable=True)
    grant_position_number: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    budget_line_code: Mapped[str | None] = mapped_column(String(100), nullable=True)

    __table_args__ = (
        CheckConstraint("grant_position_number >= 0", name="grant_item_position_number"),
        CheckConstraint(
            "grant_level_of_effort IS NULL OR "
            "(grant_level_of_effort >= 0 AND grant_level_of_effort <= 1)",
            name="grant_item_level_of_effort",
        ),
    )

    # Relationships
    grant: Mapped[Grant] = relationship(back_populates="items", lazy="selectin")
