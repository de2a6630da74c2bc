"""Status state machines with transition validation."""

from __future__ import annotations

from enum import Enum
from typing import ClassVar

from hr_payroll.services.errors import ServiceError


class AllocationStatus(str, Enum):
    """Funding allocation status values."""

    ACTIVE = "active"
    INACTIVE = "inactive"
    CLOSED = "closed"


class LeaveRequestStatus(str, Enum):
    """Leave request status values."""

    PENDING = "pending"
    APPROVED = "approved"
    DECLINED = "declined"
    CANCELLED = "cancelled"


class BatchStatus(str, Enum):
    """Bulk payroll batch status values."""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class InvalidTransitionError(ServiceError):
    """Raised when an invalid state transition is attempted."""

    code = "INVALID_TRANSITION"

    def __init__(self, from_status: str, to_status: str, reason: str | None = None):
        self.from_status = from_status
        self.to_status = to_status
        self.reason = reason
        msg = f"Invalid transition from '{from_status}' to '{to_status}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg, from_status=from_status, to_status=to_status)


class StateMachine:
    """Transition table lookups shared by the concrete machines."""

    # {from_status: [allowed_to_statuses]}
    VALID_TRANSITIONS: ClassVar[dict[str, list[str]]] = {}

    @classmethod
    def can_transition(cls, from_status: str, to_status: str) -> bool:
        """Check if a transition is valid."""
        allowed = cls.VALID_TRANSITIONS.get(from_status, [])
        return to_status in allowed

    @classmethod
    def validate_transition(cls, from_status: str, to_status: str) -> None:
        """Validate a transition, raising InvalidTransitionError if invalid."""
        if not cls.can_transition(from_status, to_status):
            raise InvalidTransitionError(from_status, to_status)

    @classmethod
    def get_next_statuses(cls, current_status: str) -> list[str]:
        """Get list of valid next statuses from current status."""
        return cls.VALID_TRANSITIONS.get(current_status, [])

    @classmethod
    def is_terminal(cls, status: str) -> bool:
        return not cls.VALID_TRANSITIONS.get(status)


class AllocationStateMachine(StateMachine):
    """Allowed transitions:
    - active ↔ inactive
    - active → closed
    - inactive → closed
    """

    VALID_TRANSITIONS = {
        AllocationStatus.ACTIVE: [AllocationStatus.INACTIVE, AllocationStatus.CLOSED],
        AllocationStatus.INACTIVE: [AllocationStatus.ACTIVE, AllocationStatus.CLOSED],
        AllocationStatus.CLOSED: [],  # Terminal state
    }


class LeaveRequestStateMachine(StateMachine):
    """Allowed transitions:
    - pending → approved (both approval gates set)
    - pending → declined
    - pending → cancelled
    - approved → cancelled (balance is credited back)
    """

    VALID_TRANSITIONS = {
        LeaveRequestStatus.PENDING: [
            LeaveRequestStatus.APPROVED,
            LeaveRequestStatus.DECLINED,
            LeaveRequestStatus.CANCELLED,
        ],
        LeaveRequestStatus.APPROVED: [LeaveRequestStatus.CANCELLED],
        LeaveRequestStatus.DECLINED: [],
        LeaveRequestStatus.CANCELLED: [],
    }

    # Statuses where dates and reason can still be edited
    EDITABLE = {LeaveRequestStatus.PENDING}

    @classmethod
    def can_edit(cls, status: str) -> bool:
        return status in cls.EDITABLE


class BatchStateMachine(StateMachine):
    """Allowed transitions:
    - pending → processing
    - processing → completed
    - pending/processing → failed
    """

    VALID_TRANSITIONS = {
        BatchStatus.PENDING: [BatchStatus.PROCESSING, BatchStatus.FAILED],
        BatchStatus.PROCESSING: [BatchStatus.COMPLETED, BatchStatus.FAILED],
        BatchStatus.COMPLETED: [],
        BatchStatus.FAILED: [],
    }
