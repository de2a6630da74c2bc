"""Pydantic schemas for API request/response models."""

from datetime import date, datetime
from decimal import Decimal
from typing import Annotated, Any, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


# ============================================================================
# Base schemas
# ============================================================================


class ORMModel(BaseModel):
    """Response schema read from ORM attributes."""

    model_config = ConfigDict(from_attributes=True)


class AuditedResponse(ORMModel):
    """Fields every persisted record exposes."""

    id: UUID
    created_at: datetime
    updated_at: datetime
    created_by: str | None = None
    updated_by: str | None = None


# ============================================================================
# Organization schemas
# ============================================================================


class SiteCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    code: str = Field(min_length=1, max_length=50)
    description: str | None = None
    is_active: bool = True


class SiteUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    code: str | None = Field(default=None, min_length=1, max_length=50)
    description: str | None = None
    is_active: bool | None = None


class SiteResponse(AuditedResponse):
    name: str
    code: str
    description: str | None = None
    is_active: bool
    deleted_at: datetime | None = None


class DepartmentCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    description: str | None = None
    is_active: bool = True


class DepartmentUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None
    is_active: bool | None = None


class DepartmentResponse(AuditedResponse):
    name: str
    description: str | None = None
    is_active: bool


class SectionDepartmentCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    department_id: UUID
    is_active: bool = True


class SectionDepartmentResponse(AuditedResponse):
    name: str
    department_id: UUID
    is_active: bool
    deleted_at: datetime | None = None


class PositionCreate(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    department_id: UUID
    reports_to_position_id: UUID | None = None
    level: int = Field(default=1, ge=1)
    is_manager: bool = False
    is_active: bool = True


class PositionUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=255)
    department_id: UUID | None = None
    reports_to_position_id: UUID | None = None
    level: int | None = Field(default=None, ge=1)
    is_manager: bool | None = None
    is_active: bool | None = None


class PositionResponse(AuditedResponse):
    title: str
    department_id: UUID
    reports_to_position_id: UUID | None = None
    level: int
    is_manager: bool
    is_active: bool


# ============================================================================
# Employee schemas
# ============================================================================

EmployeeStatus = Literal["Expats", "Local ID", "Local non ID"]


class EmployeeBase(BaseModel):
    organization: str = Field(min_length=1, max_length=20)
    initial_en: str | None = None
    first_name_en: str = Field(min_length=1, max_length=255)
    last_name_en: str | None = None
    first_name_th: str | None = None
    last_name_th: str | None = None
    gender: str | None = None
    date_of_birth: date | None = None
    status: EmployeeStatus = "Local ID"
    nationality: str | None = None
    religion: str | None = None
    identification_type: str | None = None
    identification_number: str | None = None
    social_security_number: str | None = None
    tax_number: str | None = None
    mobile_phone: str | None = None
    email: str | None = None
    current_address: str | None = None
    permanent_address: str | None = None
    bank_name: str | None = None
    bank_branch: str | None = None
    bank_account_name: str | None = None
    bank_account_number: str | None = None
    emergency_contact_name: str | None = None
    emergency_contact_relationship: str | None = None
    emergency_contact_phone: str | None = None
    marital_status: str | None = None
    has_spouse: bool = False
    number_of_children: int = Field(default=0, ge=0)
    eligible_parents_count: int = Field(default=0, ge=0, le=4)


class EmployeeCreate(EmployeeBase):
    staff_id: str = Field(min_length=1, max_length=50)


class EmployeeUpdate(BaseModel):
    organization: str | None = None
    first_name_en: str | None = None
    last_name_en: str | None = None
    first_name_th: str | None = None
    last_name_th: str | None = None
    gender: str | None = None
    date_of_birth: date | None = None
    status: EmployeeStatus | None = None
    nationality: str | None = None
    mobile_phone: str | None = None
    email: str | None = None
    bank_name: str | None = None
    bank_branch: str | None = None
    bank_account_name: str | None = None
    bank_account_number: str | None = None
    marital_status: str | None = None
    has_spouse: bool | None = None
    number_of_children: int | None = Field(default=None, ge=0)
    eligible_parents_count: int | None = Field(default=None, ge=0, le=4)


class EmployeeResponse(AuditedResponse, EmployeeBase):
    staff_id: str
    full_name: str
    deleted_at: datetime | None = None


class EmployeeListResponse(BaseModel):
    items: list[EmployeeResponse]
    total: int
    page: int
    page_size: int


# ============================================================================
# Employment schemas
# ============================================================================


class EmploymentCreate(BaseModel):
    """Schema for creating an employment contract."""

    employee_id: UUID
    employment_type: str = "Full-time"
    pay_method: str | None = None
    start_date: date
    end_date: date | None = None
    pass_probation_date: date | None = None
    department_id: UUID | None = None
    section_department_id: UUID | None = None
    position_id: UUID | None = None
    site_id: UUID | None = None
    pass_probation_salary: Decimal = Field(gt=0, decimal_places=2)
    probation_salary: Decimal | None = Field(default=None, gt=0, decimal_places=2)
    health_welfare: bool = False
    pvd: bool = False
    saving_fund: bool = False


class EmploymentUpdate(BaseModel):
    employment_type: str | None = None
    pay_method: str | None = None
    start_date: date | None = None
    end_date: date | None = None
    pass_probation_date: date | None = None
    department_id: UUID | None = None
    section_department_id: UUID | None = None
    position_id: UUID | None = None
    site_id: UUID | None = None
    pass_probation_salary: Decimal | None = Field(default=None, gt=0, decimal_places=2)
    probation_salary: Decimal | None = Field(default=None, gt=0, decimal_places=2)
    health_welfare: bool | None = None
    pvd: bool | None = None
    saving_fund: bool | None = None
    active: bool | None = None


class EmploymentResponse(AuditedResponse):
    employee_id: UUID
    employment_type: str
    pay_method: str | None = None
    start_date: date
    end_date: date | None = None
    pass_probation_date: date | None = None
    end_probation_date: date | None = None
    probation_status: str
    department_id: UUID | None = None
    section_department_id: UUID | None = None
    position_id: UUID | None = None
    site_id: UUID | None = None
    pass_probation_salary: Decimal
    probation_salary: Decimal | None = None
    health_welfare: bool
    pvd: bool
    saving_fund: bool
    active: bool


# ============================================================================
# Probation schemas
# ============================================================================


class ProbationPassRequest(BaseModel):
    transition_date: date | None = None


class ProbationFailRequest(BaseModel):
    decision_date: date | None = None
    reason: str | None = None


class ProbationExtendRequest(BaseModel):
    new_pass_probation_date: date
    reason: str | None = None


class ProbationRecordResponse(AuditedResponse):
    employment_id: UUID
    employee_id: UUID
    event_type: str
    event_date: date
    decision_date: date | None = None
    probation_start_date: date
    probation_end_date: date | None = None
    previous_end_date: date | None = None
    extension_number: int
    decision_reason: str | None = None
    is_active: bool


# ============================================================================
# Grant schemas
# ============================================================================


class GrantCreate(BaseModel):
    code: str = Field(min_length=1, max_length=50)
    name: str = Field(min_length=1, max_length=255)
    organization: str = Field(min_length=1, max_length=20)
    description: str | None = None
    end_date: date | None = None
    is_hub: bool = False


class GrantUpdate(BaseModel):
    code: str | None = Field(default=None, min_length=1, max_length=50)
    name: str | None = Field(default=None, min_length=1, max_length=255)
    organization: str | None = None
    description: str | None = None
    end_date: date | None = None


class GrantItemCreate(BaseModel):
    """Budgeted position line; budget_line_code may be omitted."""

    grant_position: str = Field(min_length=1, max_length=255)
    grant_salary: Decimal | None = Field(default=None, ge=0)
    grant_benefit: Decimal | None = Field(default=None, ge=0)
    grant_level_of_effort: Decimal | None = Field(default=None, ge=0, le=1)
    grant_position_number: int = Field(default=1, ge=0)
    budget_line_code: str | None = Field(default=None, max_length=100)


class GrantItemUpdate(BaseModel):
    grant_position: str | None = Field(default=None, min_length=1, max_length=255)
    grant_salary: Decimal | None = Field(default=None, ge=0)
    grant_benefit: Decimal | None = Field(default=None, ge=0)
    grant_level_of_effort: Decimal | None = Field(default=None, ge=0, le=1)
    grant_position_number: int | None = Field(default=None, ge=0)
    budget_line_code: str | None = Field(default=None, max_length=100)


class GrantItemResponse(AuditedResponse):
    grant_id: UUID
    grant_position: str
    grant_salary: Decimal | None = None
    grant_benefit: Decimal | None = None
    grant_level_of_effort: Decimal | None = None
    grant_position_number: int
    budget_line_code: str | None = None


class GrantResponse(AuditedResponse):
    code: str
    name: str
    organization: str
    description: str | None = None
    end_date: date | None = None
    is_hub: bool
    items: list[GrantItemResponse] = []


class GrantListResponse(BaseModel):
    items: list[GrantResponse]
    total: int
    page: int
    page_size: int


class GrantCapacityResponse(BaseModel):
    grant_item_id: UUID
    grant_position: str
    budget_line_code: str | None = None
    position_number: int
    active_allocations: int
    available_slots: int


# ============================================================================
# Allocation schemas
# ============================================================================

AllocationType = Literal["grant", "org_funded"]


class AllocationLine(BaseModel):
    fte: Decimal = Field(gt=0, le=1)
    allocation_type: AllocationType = "grant"
    grant_item_id: UUID | None = None
    org_funded_grant_id: UUID | None = None
    start_date: date | None = None
    end_date: date | None = None


class AllocationCreate(BaseModel):
    """Schema for adding allocations to an employment."""

    employment_id: UUID
    allocations: list[AllocationLine] = Field(min_length=1)


class AllocationReplace(BaseModel):
    """Schema for swapping an employment's allocations for a new set totalling 1.00."""

    employment_id: UUID
    effective_date: date | None = None
    allocations: list[AllocationLine] = Field(min_length=1)


class AllocationUpdate(BaseModel):
    fte: Decimal | None = Field(default=None, gt=0, le=1)
    end_date: date | None = None


class AllocationStatusUpdate(BaseModel):
    status: Literal["active", "inactive", "closed"]


class AllocationResponse(AuditedResponse):
    employee_id: UUID
    employment_id: UUID
    allocation_type: str
    grant_item_id: UUID | None = None
    org_funded_grant_id: UUID | None = None
    fte: Decimal
    allocated_amount: Decimal | None = None
    salary_type: str | None = None
    status: str
    start_date: date
    end_date: date | None = None


class AllocationSummaryResponse(BaseModel):
    employee_id: UUID
    as_of: date
    total_fte: Decimal
    remaining_fte: Decimal
    is_fully_allocated: bool
    allocations: list[AllocationResponse]


# ============================================================================
# Payroll schemas
# ============================================================================

PayPeriod = Annotated[str, Field(pattern=r"^\d{4}-(0[1-9]|1[0-2])$", examples=["2025-01"])]


class PayrollRequest(BaseModel):
    """Schema for previewing or processing one employee's payroll."""

    employee_id: UUID
    pay_period: PayPeriod
    notes: str | None = None


class PayrollGrantAllocationResponse(ORMModel):
    id: UUID
    employee_funding_allocation_id: UUID | None = None
    grant_item_id: UUID | None = None
    grant_id: UUID | None = None
    grant_code: str | None = None
    grant_name: str | None = None
    budget_line_code: str | None = None
    grant_position: str | None = None
    fte: Decimal
    allocated_amount: Decimal
    salary_type: str


class PayrollAmounts(ORMModel):
    gross_salary: Decimal
    gross_salary_by_fte: Decimal
    compensation_refund: Decimal
    thirteen_month_salary: Decimal
    thirteen_month_salary_accrued: Decimal
    pvd: Decimal
    saving_fund: Decimal
    employer_social_security: Decimal
    employee_social_security: Decimal
    employer_health_welfare: Decimal
    employee_health_welfare: Decimal
    tax: Decimal
    net_salary: Decimal
    total_salary: Decimal
    total_pvd: Decimal
    total_saving_fund: Decimal
    salary_bonus: Decimal
    total_income: Decimal
    employer_contribution: Decimal
    total_deduction: Decimal


class PayrollResponse(AuditedResponse, PayrollAmounts):
    employment_id: UUID
    employee_funding_allocation_id: UUID | None = None
    pay_period_date: date
    notes: str | None = None
    deleted_at: datetime | None = None
    grant_allocations: list[PayrollGrantAllocationResponse] = []


class PayrollListResponse(BaseModel):
    items: list[PayrollResponse]
    total: int
    page: int
    page_size: int


class PayrollPreviewLine(PayrollAmounts):
    allocation_id: UUID
    salary_type: str
    allocated_amount: Decimal
    funding: dict[str, Any]


class PayrollPreviewResponse(BaseModel):
    employee_id: UUID
    employment_id: UUID
    pay_period_date: date
    total_fte: Decimal
    lines: list[PayrollPreviewLine]
    totals: dict[str, Decimal]
    warnings: list[str] = []


class AdvanceResponse(AuditedResponse):
    payroll_id: UUID
    from_organization: str
    to_organization: str
    via_grant_id: UUID
    amount: Decimal
    advance_date: date
    settlement_date: date | None = None
    is_settled: bool
    notes: str | None = None


class AdvanceSettle(BaseModel):
    settlement_date: date | None = None
    notes: str | None = None


class PayrollProcessResponse(BaseModel):
    payrolls: list[PayrollResponse]
    advances: list[AdvanceResponse]
    warnings: list[str] = []


class BulkPayrollRequest(BaseModel):
    """Bulk run over explicit employees or over filters."""

    pay_period: PayPeriod
    employee_ids: list[UUID] | None = None
    organization: str | None = None
    department_id: UUID | None = None
    site_id: UUID | None = None


class BulkPayrollBatchResponse(ORMModel):
    id: UUID
    pay_period: str
    status: str
    total_employees: int
    total_payrolls: int
    processed_payrolls: int
    successful_payrolls: int
    failed_payrolls: int
    advances_created: int
    progress_percentage: float
    current_employee: str | None = None
    errors: list[dict[str, Any]] | None = None
    summary: dict[str, Any] | None = None
    created_by: str | None = None
    created_at: datetime
    started_at: datetime | None = None
    finished_at: datetime | None = None


class PayrollStatisticsResponse(BaseModel):
    start: date
    end: date
    payroll_count: int
    employee_count: int
    gross_salary_by_fte: Decimal
    net_salary: Decimal
    tax: Decimal
    employer_contribution: Decimal
    total_salary: Decimal


class BudgetHistoryEntry(BaseModel):
    pay_period: str
    grant_code: str | None = None
    grant_name: str | None = None
    budget_line_code: str | None = None
    payroll_count: int
    total_fte: Decimal
    total_allocated: Decimal


# ============================================================================
# Leave schemas
# ============================================================================


class LeaveTypeCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    default_duration: Decimal = Field(default=Decimal("0"), ge=0)
    description: str | None = None
    requires_attachment: bool = False


class LeaveTypeResponse(AuditedResponse):
    name: str
    default_duration: Decimal
    description: str | None = None
    requires_attachment: bool


class HolidayCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    holiday_date: date
    description: str | None = None
    is_active: bool = True


class HolidayResponse(AuditedResponse):
    name: str
    holiday_date: date
    description: str | None = None
    is_active: bool


class LeaveRequestCreate(BaseModel):
    employee_id: UUID
    leave_type_id: UUID
    start_date: date
    end_date: date
    reason: str | None = None
    attachment_notes: str | None = None


class LeaveRequestUpdate(BaseModel):
    start_date: date | None = None
    end_date: date | None = None
    reason: str | None = None
    attachment_notes: str | None = None


class LeaveApproval(BaseModel):
    gate: Literal["supervisor", "hr_site_admin"]


class LeaveRequestResponse(AuditedResponse):
    employee_id: UUID
    leave_type_id: UUID
    start_date: date
    end_date: date
    total_days: Decimal
    reason: str | None = None
    status: str
    supervisor_approved: bool
    supervisor_approved_date: date | None = None
    hr_site_admin_approved: bool
    hr_site_admin_approved_date: date | None = None
    attachment_notes: str | None = None
    cancelled_at: datetime | None = None


class LeaveBalanceResponse(AuditedResponse):
    employee_id: UUID
    leave_type_id: UUID
    year: int
    total_days: Decimal
    used_days: Decimal
    remaining_days: Decimal


# ============================================================================
# Workflow schemas
# ============================================================================


class GateApproval(BaseModel):
    gate: str
    approved: bool = True


class TravelRequestCreate(BaseModel):
    employee_id: UUID
    department_id: UUID | None = None
    position_id: UUID | None = None
    destination: str = Field(min_length=1, max_length=255)
    start_date: date
    to_date: date
    purpose: str | None = None
    grant_code: str | None = None
    transportation: str | None = None
    accommodation: str | None = None
    request_by_date: date | None = None
    remarks: str | None = None


class TravelRequestResponse(AuditedResponse):
    employee_id: UUID
    department_id: UUID | None = None
    position_id: UUID | None = None
    destination: str
    start_date: date
    to_date: date
    purpose: str | None = None
    grant_code: str | None = None
    transportation: str | None = None
    accommodation: str | None = None
    request_by_date: date | None = None
    supervisor_approved: bool
    supervisor_approved_date: date | None = None
    hr_approved: bool
    hr_approved_date: date | None = None
    remarks: str | None = None
    status: str


class PersonnelActionCreate(BaseModel):
    employment_id: UUID
    reference_number: str | None = None
    action_type: Literal[
        "appointment",
        "fiscal_increment",
        "title_change",
        "voluntary_separation",
        "position_change",
        "transfer",
    ]
    action_subtype: str | None = None
    effective_date: date
    new_department_id: UUID | None = None
    new_position_id: UUID | None = None
    new_site_id: UUID | None = None
    new_salary: Decimal | None = Field(default=None, gt=0)
    new_work_schedule: str | None = None
    comments: str | None = None


class PersonnelActionResponse(AuditedResponse):
    employment_id: UUID
    reference_number: str | None = None
    action_type: str
    action_subtype: str | None = None
    effective_date: date
    current_department_id: UUID | None = None
    current_position_id: UUID | None = None
    current_salary: Decimal | None = None
    new_department_id: UUID | None = None
    new_position_id: UUID | None = None
    new_site_id: UUID | None = None
    new_salary: Decimal | None = None
    new_work_schedule: str | None = None
    comments: str | None = None
    dept_head_approved: bool
    coo_approved: bool
    hr_approved: bool
    accountant_approved: bool
    status: str
    applied_date: date | None = None


class ResignationCreate(BaseModel):
    employee_id: UUID
    department_id: UUID | None = None
    position_id: UUID | None = None
    resignation_date: date
    last_working_date: date
    reason: str = Field(min_length=1, max_length=255)
    reason_details: str | None = None


class ResignationAcknowledge(BaseModel):
    accept: bool = True


class ResignationResponse(AuditedResponse):
    employee_id: UUID
    department_id: UUID | None = None
    position_id: UUID | None = None
    resignation_date: date
    last_working_date: date
    reason: str
    reason_details: str | None = None
    acknowledgement_status: str
    acknowledged_by: str | None = None
    acknowledged_at: date | None = None


class HolidayCompensationCreate(BaseModel):
    employee_id: UUID
    holiday_id: UUID | None = None
    work_date: date
    compensation_days: Decimal = Field(default=Decimal("1"), gt=0)
    notes: str | None = None


class HolidayCompensationResponse(AuditedResponse):
    employee_id: UUID
    holiday_id: UUID | None = None
    work_date: date
    compensation_days: Decimal
    notes: str | None = None
    supervisor_approved: bool
    hr_approved: bool
    status: str


# ============================================================================
# Recycle bin and user schemas
# ============================================================================


class RecycleBinEntry(BaseModel):
    model: str
    id: UUID
    label: str
    deleted_at: datetime
    expires_at: datetime
    days_remaining: int


class UserResponse(ORMModel):
    id: UUID
    name: str
    email: str
    is_active: bool
    roles: list[str]
    permissions: list[str]


# ============================================================================
# Error schemas
# ============================================================================


class ErrorResponse(BaseModel):
    """Schema for error response."""

    detail: str
    code: str | None = None
    context: dict[str, Any] | None = None
