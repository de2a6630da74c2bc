"""ORM models."""

from hr_payroll.models.allocation import (
    ALLOCATION_TYPE_GRANT,
    ALLOCATION_TYPE_ORG_FUNDED,
    EmployeeFundingAllocation,
)
from hr_payroll.models.auth import Permission, Role, User, role_permissions, user_roles
from hr_payroll.models.base import Base, SoftDeleteMixin, TimestampMixin
from hr_payroll.models.employee import Employee, Employment, ProbationRecord
from hr_payroll.models.grant import Grant, GrantItem
from hr_payroll.models.leave import Holiday, LeaveBalance, LeaveRequest, LeaveType
from hr_payroll.models.organization import Department, Position, SectionDepartment, Site
from hr_payroll.models.payroll import (
    BenefitSetting,
    BulkPayrollBatch,
    InterOrganizationAdvance,
    Payroll,
    PayrollGrantAllocation,
)
from hr_payroll.models.tax import TaxBracket, TaxSetting
from hr_payroll.models.workflow import (
    HolidayCompensationRecord,
    PersonnelAction,
    Resignation,
    TravelRequest,
)

__all__ = [
    "ALLOCATION_TYPE_GRANT",
    "ALLOCATION_TYPE_ORG_FUNDED",
    "Base",
    "BenefitSetting",
    "BulkPayrollBatch",
    "Department",
    "Employee",
    "EmployeeFundingAllocation",
    "Employment",
    "Grant",
    "GrantItem",
    "Holiday",
    "HolidayCompensationRecord",
    "InterOrganizationAdvance",
    "LeaveBalance",
    "LeaveRequest",
    "LeaveType",
    "Payroll",
    "PayrollGrantAllocation",
    "Permission",
    "PersonnelAction",
    "Position",
    "ProbationRecord",
    "Resignation",
    "Role",
    "SectionDepartment",
    "Site",
    "SoftDeleteMixin",
    "TaxBracket",
    "TaxSetting",
    "TimestampMixin",
    "TravelRequest",
    "User",
    "role_permissions",
    "user_roles",
]
