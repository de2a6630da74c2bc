"""API routes."""

from hr_payroll.api.routes.advances import router as advances_router
from hr_payroll.api.routes.allocations import router as allocations_router
from hr_payroll.api.routes.employees import router as employees_router
from hr_payroll.api.routes.grants import router as grants_router
from hr_payroll.api.routes.health import router as health_router
from hr_payroll.api.routes.leave import router as leave_router
from hr_payroll.api.routes.organization import router as organization_router
from hr_payroll.api.routes.payrolls import router as payrolls_router
from hr_payroll.api.routes.recycle_bin import router as recycle_bin_router
from hr_payroll.api.routes.users import router as users_router
from hr_payroll.api.routes.workflow import router as workflow_router

__all__ = [
    "advances_router",
    "allocations_router",
    "employees_router",
    "grants_router",
    "health_router",
    "leave_router",
    "organization_router",
    "payrolls_router",
    "recycle_bin_router",
    "users_router",
    "workflow_router",
]
