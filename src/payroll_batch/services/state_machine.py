"""Payroll run state machine with transition validation."""

from __future__ import annotations

from enum import Enum


class RunStatus(str, Enum):
    """Payroll run status values."""

    PROCESSING = "processing"
    COMPLETED = "completed"
    COMPLETED_WITH_ERRORS = "completed_with_errors"
    FINALIZED = "finalized"


class InvalidTransitionError(Exception):
    """Raised when an invalid state transition is attempted."""

    def __init__(self, from_status: str, to_status: str, reason: str | None = None):
        self.from_status = from_status
        self.to_status = to_status
        self.reason = reason
        msg = f"Invalid transition from '{from_status}' to '{to_status}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class RunStateMachine:
    """State machine for payroll run status transitions.

    Allowed transitions:
    - processing → completed
    - processing → completed_with_errors
    - completed → finalized
    - completed_with_errors → finalized
    """

    VALID_TRANSITIONS: dict[str, list[str]] = {
        RunStatus.PROCESSING: [RunStatus.COMPLETED, RunStatus.COMPLETED_WITH_ERRORS],
        RunStatus.COMPLETED: [RunStatus.FINALIZED],
        RunStatus.COMPLETED_WITH_ERRORS: [RunStatus.FINALIZED],
        RunStatus.FINALIZED: [],  # Terminal state
    }

    # Runs whose line items count toward year-to-date totals
    POSTED = {
        RunStatus.COMPLETED,
        RunStatus.COMPLETED_WITH_ERRORS,
        RunStatus.FINALIZED,
    }

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
    def completion_status(cls, error_count: int) -> RunStatus:
        """Status a processing run moves to once every employee is handled."""
        if error_count:
            return RunStatus.COMPLETED_WITH_ERRORS
        return RunStatus.COMPLETED

    @classmethod
    def is_posted(cls, status: str) -> bool:
        return status in cls.POSTED

    @classmethod
    def is_editable(cls, status: str) -> bool:
        """Line items may be overridden until the run is finalized."""
        return status != RunStatus.FINALIZED

    @classmethod
    def get_next_statuses(cls, current_status: str) -> list[str]:
        """Get list of valid next statuses from current status."""
        return cls.VALID_TRANSITIONS.get(current_status, [])
