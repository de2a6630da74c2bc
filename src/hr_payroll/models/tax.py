"""Per-year income tax configuration."""

from __future__ import annotations

from decimal import Decimal

from sqlalchemy import Boolean, Integer, Numeric, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from hr_payroll.models.base import AuditMixin, Base, TimestampMixin, UUIDPrimaryKeyMixin

TAX_SETTING_EMPLOYMENT_DEDUCTION_RATE = "EMPLOYMENT_DEDUCTION_RATE"
TAX_SETTING_EMPLOYMENT_DEDUCTION_MAX = "EMPLOYMENT_DEDUCTION_MAX"
TAX_SETTING_PERSONAL_ALLOWANCE = "PERSONAL_ALLOWANCE"
TAX_SETTING_SPOUSE_ALLOWANCE = "SPOUSE_ALLOWANCE"
TAX_SETTING_CHILD_ALLOWANCE = "CHILD_ALLOWANCE"
TAX_SETTING_PARENT_ALLOWANCE = "PARENT_ALLOWANCE"


class TaxBracket(UUIDPrimaryKeyMixin, Base, TimestampMixin, AuditMixin):
    """One progressive band of a tax year; ``tax_rate`` is a percentage."""

    __tablename__ = "tax_brackets"
    __table_args__ = (
        UniqueConstraint("effective_year", "bracket_order", name="uq_tax_bracket_year_order"),
    )

    effective_year: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    bracket_order: Mapped[int] = mapped_column(Integer, nullable=False)
    min_income: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False)
    max_income: Mapped[Decimal | None] = mapped_column(Numeric(15, 2), nullable=True)
    tax_rate: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class TaxSetting(UUIDPrimaryKeyMixin, Base, TimestampMixin, AuditMixin):
    """Keyed deduction or allowance amount for a tax year.

    Rates such as ``EMPLOYMENT_DEDUCTION_RATE`` are stored as percentages.
    """

    __tablename__ = "tax_settings"
    __table_args__ = (
        UniqueConstraint("setting_key", "effective_year", name="uq_tax_setting_key_year"),
    )

    setting_key: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    setting_value: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False)
    setting_type: Mapped[str] = mapped_column(String(20), nullable=False, default="ALLOWANCE")
    effective_year: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_selected: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
