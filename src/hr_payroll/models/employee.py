"""Employee, employment and probation models."""

from __future__ import annotations

from datetime import date
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
)
from sqlalchemy.orm import Mapped, mapped_column

from hr_payroll.calculators.salary import salary_for_date, salary_type_for
from hr_payroll.models.base import (
    AuditMixin,
    Base,
    SoftDeleteMixin,
    TimestampMixin,
    UUIDPrimaryKeyMixin,
)

EMPLOYEE_STATUSES = ("Expats", "Local ID", "Local non ID")
PROBATION_STATUSES = ("ongoing", "extended", "passed", "failed")


class Employee(UUIDPrimaryKeyMixin, Base, TimestampMixin, AuditMixin, SoftDeleteMixin):
    """Person employed by one of the organizations."""

    __tablename__ = "employees"

    staff_id: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    organization: Mapped[str] = mapped_column(String(20), nullable=False)
    initial_en: Mapped[str | None] = mapped_column(String(10), nullable=True)
    first_name_en: Mapped[str] = mapped_column(String(255), nullable=False)
    last_name_en: Mapped[str | None] = mapped_column(String(255), nullable=True)
    first_name_th: Mapped[str | None] = mapped_column(String(255), nullable=True)
    last_name_th: Mapped[str | None] = mapped_column(String(255), nullable=True)
    gender: Mapped[str | None] = mapped_column(String(20), nullable=True)
    date_of_birth: Mapped[date | None] = mapped_column(Date, nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="Local ID")
    nationality: Mapped[str | None] = mapped_column(String(100), nullable=True)
    religion: Mapped[str | None] = mapped_column(String(100), nullable=True)

    # Identification
    identification_type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    identification_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    social_security_number: Mapped[str | None] = mapped_column(String(50), nullable=True)
    tax_number: Mapped[str | None] = mapped_column(String(50), nullable=True)

    # Contact
    mobile_phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    current_address: Mapped[str | None] = mapped_column(Text, nullable=True)
    permanent_address: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Banking
    bank_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    bank_branch: Mapped[str | None] = mapped_column(String(100), nullable=True)
    bank_account_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    bank_account_number: Mapped[str | None] = mapped_column(String(100), nullable=True)

    # Emergency contact
    emergency_contact_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    emergency_contact_relationship: Mapped[str | None] = mapped_column(String(100), nullable=True)
    emergency_contact_phone: Mapped[str | None] = mapped_column(String(50), nullable=True)

    # Family, used for tax allowances
    marital_status: Mapped[str | None] = mapped_column(String(20), nullable=True)
    has_spouse: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    number_of_children: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    eligible_parents_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    __table_args__ = (
        CheckConstraint(
            "status IN ('Expats', 'Local ID', 'Local non ID')",
            name="employee_status",
        ),
    )

    @property
    def full_name(self) -> str:
        """Get full name."""
        return " ".join(p for p in (self.first_name_en, self.last_name_en) if p)


class Employment(UUIDPrimaryKeyMixin, Base, TimestampMixin, AuditMixin):
    """Time-boxed employment contract for an employee."""

    __tablename__ = "employments"

    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    employment_type: Mapped[str] = mapped_column(String(50), nullable=False, default="Full-time")
    pay_method: Mapped[str | None] = mapped_column(String(50), nullable=True)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    pass_probation_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    end_probation_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    probation_status: Mapped[str] = mapped_column(String(20), nullable=False, default="ongoing")

    department_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("departments.id", ondelete="SET NULL"),
        nullable=True,
    )
    section_department_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("section_departments.id", ondelete="SET NULL"),
        nullable=True,
    )
    position_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("positions.id", ondelete="SET NULL"),
        nullable=True,
    )
    site_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("sites.id", ondelete="SET NULL"),
        nullable=True,
    )

    pass_probation_salary: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    probation_salary: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)

    # Benefit flags
    health_welfare: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    pvd: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    saving_fund: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    __table_args__ = (
        CheckConstraint(
            "probation_status IN ('ongoing', 'extended', 'passed', 'failed')",
            name="employment_probation_status",
        ),
        CheckConstraint("end_date IS NULL OR end_date >= start_date", name="employment_dates"),
    )

    def salary_type_for(self, on_date: date) -> str:
        """Which salary tier applies on a given date."""
        return salary_type_for(on_date, self.pass_probation_date, self.probation_salary)

    def salary_amount_for(self, on_date: date) -> Decimal:
        """Monthly salary of the tier applicable on a given date."""
        return salary_for_date(
            on_date,
            self.pass_probation_date,
            self.probation_salary,
            self.pass_probation_salary,
        )

    def is_active_on(self, on_date: date) -> bool:
        if on_date < self.start_date:
            return False
        return self.end_date is None or on_date <= self.end_date


class ProbationRecord(UUIDPrimaryKeyMixin, Base, TimestampMixin, AuditMixin):
    """Event log entry for an employment's probation history."""

    __tablename__ = "probation_records"

    employment_id: Mapped[UUID] = mapped_column(
        ForeignKey("employments.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    employee_id: Mapped[UUID] = mapped_column(
        ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
    )
    event_type: Mapped[str] = mapped_column(String(20), nullable=False)
    event_date: Mapped[date] = mapped_column(Date, nullable=False)
    decision_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    probation_start_date: Mapped[date] = mapped_column(Date, nullable=False)
    probation_end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    previous_end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    extension_number: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    decision_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    evaluation_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    __table_args__ = (
        CheckConstraint(
            "event_type IN ('initial', 'extension', 'passed', 'failed')",
            name="probation_event_type",
        ),
    )
