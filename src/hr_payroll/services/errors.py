"""Domain exceptions raised by services and mapped to HTTP responses by the API."""

from __future__ import annotations

from typing import Any


class ServiceError(Exception):
    """Base class for business rule violations."""

    status_code = 400
    code = "SERVICE_ERROR"

    def __init__(self, message: str, **context: Any):
        self.message = message
        self.context = context
        super().__init__(message)


class NotFoundError(ServiceError):
    status_code = 404
    code = "NOT_FOUND"


class ConflictError(ServiceError):
    status_code = 409
    code = "CONFLICT"


class AllocationError(ServiceError):
    code = "ALLOCATION_ERROR"


class FTEExceededError(AllocationError):
    """Concurrent active allocations would exceed a full-time equivalent."""

    code = "FTE_EXCEEDED"


class CapacityExceededError(AllocationError):
    """Grant item has no remaining head-count."""

    code = "CAPACITY_EXCEEDED"


class DuplicateBudgetLineError(ConflictError):
    code = "DUPLICATE_BUDGET_LINE"


class PayrollError(ServiceError):
    code = "PAYROLL_ERROR"


class DuplicatePayrollError(ConflictError):
    code = "DUPLICATE_PAYROLL"


class InsufficientLeaveBalanceError(ServiceError):
    code = "INSUFFICIENT_LEAVE_BALANCE"


class ProbationError(ServiceError):
    code = "PROBATION_ERROR"


class WorkflowError(ServiceError):
    code = "WORKFLOW_ERROR"
