"""Timesheet and payroll state machines with transition validation."""

from __future__ import annotations

from enum import Enum

from hrms.exceptions import StateConflictError


class TimesheetStatus(str, Enum):
    """Timesheet status values."""

    DRAFT = "DRAFT"
    SUBMITTED = "SUBMITTED"
    APPROVED = "APPROVED"
    DENIED = "DENIED"


class PayrollStatus(str, Enum):
    """Payroll record status values."""

    PREVIEW = "PREVIEW"
    PROCESSED = "PROCESSED"
    PAID = "PAID"


class InvalidTransitionError(StateConflictError):
    """Raised when an invalid state transition is attempted."""

    code = "INVALID_TRANSITION"

    def __init__(self, from_status: str, to_status: str, reason: str | None = None):
        self.from_status = from_status
        self.to_status = to_status
        self.reason = reason
        msg = f"Invalid transition from '{from_status}' to '{to_status}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class _StateMachine:
    VALID_TRANSITIONS: dict[str, list[str]] = {}

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
    def sources_of(cls, to_status: str) -> list[str]:
        """Statuses from which ``to_status`` can be reached."""
        return [s for s, targets in cls.VALID_TRANSITIONS.items() if to_status in targets]


class TimesheetStateMachine(_StateMachine):
    """State machine for timesheet status transitions.

    Allowed transitions:
    - DRAFT → SUBMITTED
    - DENIED → SUBMITTED (resubmit after correction)
    - SUBMITTED → APPROVED
    - SUBMITTED → DENIED
    """

    VALID_TRANSITIONS: dict[str, list[str]] = {
        TimesheetStatus.DRAFT: [TimesheetStatus.SUBMITTED],
        TimesheetStatus.DENIED: [TimesheetStatus.SUBMITTED],
        TimesheetStatus.SUBMITTED: [TimesheetStatus.APPROVED, TimesheetStatus.DENIED],
        TimesheetStatus.APPROVED: [],  # Terminal state
    }

    # Statuses where entries can be replaced
    EDITABLE = {
        TimesheetStatus.DRAFT,
        TimesheetStatus.DENIED,
    }

    # Statuses the owner can submit from
    SUBMITTABLE = {
        TimesheetStatus.DRAFT,
        TimesheetStatus.DENIED,
    }

    # Statuses a manager can approve or deny from
    REVIEWABLE = {
        TimesheetStatus.SUBMITTED,
    }

    @classmethod
    def can_edit(cls, status: str) -> bool:
        return status in cls.EDITABLE

    @classmethod
    def can_submit(cls, status: str) -> bool:
        return status in cls.SUBMITTABLE

    @classmethod
    def can_review(cls, status: str) -> bool:
        return status in cls.REVIEWABLE


class PayrollStateMachine(_StateMachine):
    """State machine for payroll record transitions.

    Allowed transitions:
    - PREVIEW → PROCESSED
    - PROCESSED → PAID
    """

    VALID_TRANSITIONS: dict[str, list[str]] = {
        PayrollStatus.PREVIEW: [PayrollStatus.PROCESSED],
        PayrollStatus.PROCESSED: [PayrollStatus.PAID],
        PayrollStatus.PAID: [],  # Terminal state
    }

    # Statuses that count as a completed run for a period
    FINALIZED = {
        PayrollStatus.PROCESSED,
        PayrollStatus.PAID,
    }
