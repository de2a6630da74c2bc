"""Tests for status state machines."""

import pytest

from hr_payroll.services.state_machine import (
    AllocationStateMachine,
    BatchStateMachine,
    InvalidTransitionError,
    LeaveRequestStateMachine,
)


class TestAllocationStateMachine:
    """Allocation status transitions."""

    def test_valid_transitions(self):
        assert AllocationStateMachine.can_transition("active", "inactive") is True
        assert AllocationStateMachine.can_transition("inactive", "active") is True
        assert AllocationStateMachine.can_transition("active", "closed") is True
        assert AllocationStateMachine.can_transition("inactive", "closed") is True

    def test_closed_is_terminal(self):
        assert AllocationStateMachine.is_terminal("closed") is True
        with pytest.raises(InvalidTransitionError) as exc_info:
            AllocationStateMachine.validate_transition("closed", "active")
        assert exc_info.value.from_status == "closed"
        assert exc_info.value.to_status == "active"
        assert exc_info.value.status_code == 400


class TestLeaveRequestStateMachine:
    """Leave request status transitions."""

    def test_pending_can_move_anywhere(self):
        assert set(LeaveRequestStateMachine.get_next_statuses("pending")) == {
            "approved",
            "declined",
            "cancelled",
        }

    def test_approved_can_only_be_cancelled(self):
        assert LeaveRequestStateMachine.can_transition("approved", "cancelled") is True
        assert LeaveRequestStateMachine.can_transition("approved", "declined") is False

    def test_only_pending_is_editable(self):
        assert LeaveRequestStateMachine.can_edit("pending") is True
        assert LeaveRequestStateMachine.can_edit("approved") is False


class TestBatchStateMachine:
    """Bulk batch status transitions."""

    def test_completed_cannot_restart(self):
        with pytest.raises(InvalidTransitionError):
            BatchStateMachine.validate_transition("completed", "processing")

    def test_pending_can_fail(self):
        assert BatchStateMachine.can_transition("pending", "failed") is True
