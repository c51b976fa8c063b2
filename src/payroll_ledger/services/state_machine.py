"""Payroll batch state machine with transition validation."""

from __future__ import annotations

from enum import Enum

from payroll_ledger.exceptions import PayrollLedgerError


class BatchStatus(str, Enum):
    """Payroll batch status values."""

    UPLOADED = "UPLOADED"
    MAPPED = "MAPPED"
    GENERATING = "GENERATING"
    VALID = "VALID"
    ERROR = "ERROR"
    CLOSED = "CLOSED"


class InvalidTransitionError(PayrollLedgerError):
    """Raised when an invalid state transition is attempted."""

    def __init__(self, from_status: str, to_status: str, reason: str | None = None):
        self.from_status = from_status
        self.to_status = to_status
        self.reason = reason
        msg = f"Invalid transition from '{from_status}' to '{to_status}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class BatchStateMachine:
    """State machine for payroll batch status transitions.

    Allowed transitions:
    - UPLOADED → MAPPED
    - MAPPED → MAPPED (re-map)
    - MAPPED → VALID
    - GENERATING → VALID
    - VALID → MAPPED (re-map after validation)
    - VALID → CLOSED
    - UPLOADED / MAPPED / GENERATING → ERROR
    """

    VALID_TRANSITIONS: dict[str, list[str]] = {
        BatchStatus.UPLOADED: [BatchStatus.MAPPED, BatchStatus.ERROR],
        BatchStatus.MAPPED: [BatchStatus.MAPPED, BatchStatus.VALID, BatchStatus.ERROR],
        BatchStatus.GENERATING: [BatchStatus.VALID, BatchStatus.ERROR],
        BatchStatus.VALID: [BatchStatus.MAPPED, BatchStatus.CLOSED],
        BatchStatus.ERROR: [],  # Terminal state
        BatchStatus.CLOSED: [],  # Terminal state
    }

    # Finished batches; any other status blocks a new batch for the same period
    TERMINAL = {
        BatchStatus.ERROR,
        BatchStatus.CLOSED,
    }

    # Statuses where rows may be replaced or edited
    ROWS_MUTABLE = {
        BatchStatus.UPLOADED,
        BatchStatus.MAPPED,
        BatchStatus.VALID,
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
    def is_open(cls, status: str) -> bool:
        """An open batch blocks creating another one for the same period."""
        return status not in cls.TERMINAL

    @classmethod
    def can_modify_rows(cls, status: str) -> bool:
        return status in cls.ROWS_MUTABLE

    @classmethod
    def get_next_statuses(cls, current_status: str) -> list[str]:
        """Get list of valid next statuses from current status."""
        return cls.VALID_TRANSITIONS.get(current_status, [])
