"""HR and payroll services."""

from hr_payroll.services.allocation_service import AllocationRequest, AllocationService
from hr_payroll.services.bulk_payroll_service import BulkPayrollRunner, create_batch
from hr_payroll.services.employment_service import EmploymentService
from hr_payroll.services.errors import NotFoundError, ServiceError
from hr_payroll.services.grant_service import GrantService
from hr_payroll.services.leave_service import LeaveService
from hr_payroll.services.payroll_service import PayrollService
from hr_payroll.services.permission_service import PermissionService
from hr_payroll.services.probation_service import ProbationService
from hr_payroll.services.recycle_bin_service import RecycleBinService
from hr_payroll.services.state_machine import InvalidTransitionError
from hr_payroll.services.workflow_service import WorkflowService

__all__ = [
    "AllocationRequest",
    "AllocationService",
    "BulkPayrollRunner",
    "EmploymentService",
    "GrantService",
    "InvalidTransitionError",
    "LeaveService",
    "NotFoundError",
    "PayrollService",
    "PermissionService",
    "ProbationService",
    "RecycleBinService",
    "ServiceError",
    "WorkflowService",
    "create_batch",
]
