"""Status state machines for advances and invoices."""

from __future__ import annotations

from enum import Enum

from wage_ledger.calculators.types import AdvanceStatus, InvoiceStatus
from wage_ledger.errors import LedgerError


class InvalidTransitionError(LedgerError):
    """Raised when an invalid state transition is attempted."""

    kind = "invalid_transition"

    def __init__(self, from_status: str, to_status: str, reason: str | None = None):
        self.from_status = from_status
        self.to_status = to_status
        self.reason = reason
        msg = f"Invalid transition from '{from_status}' to '{to_status}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


def _status(value: str | Enum) -> str:
    return value.value if isinstance(value, Enum) else str(value)


class StatusStateMachine:
    """Table-driven transition checks. Subclasses supply VALID_TRANSITIONS."""

    VALID_TRANSITIONS: dict[str, list[str]] = {}

    @classmethod
    def can_transition(cls, from_status: str, to_status: str) -> bool:
        """Check if a transition is valid."""
        allowed = cls.VALID_TRANSITIONS.get(_status(from_status), [])
        return _status(to_status) in allowed

    @classmethod
    def validate_transition(
        cls, from_status: str, to_status: str, reason: str | None = None
    ) -> None:
        """Validate a transition, raising InvalidTransitionError if invalid."""
        if not cls.can_transition(from_status, to_status):
            raise InvalidTransitionError(_status(from_status), _status(to_status), reason)

    @classmethod
    def get_next_statuses(cls, current_status: str) -> list[str]:
        """Get list of valid next statuses from current status."""
        return cls.VALID_TRANSITIONS.get(_status(current_status), [])

    @classmethod
    def is_terminal(cls, status: str) -> bool:
        return not cls.get_next_statuses(status)


class AdvanceStateMachine(StatusStateMachine):
    """Advance lifecycle.

    Allowed transitions:
    - pending → paid (settled directly)
    - pending → deducted (consumed by a payroll run)

    Status never reverses.
    """

    VALID_TRANSITIONS: dict[str, list[str]] = {
        AdvanceStatus.PENDING.value: [AdvanceStatus.PAID.value, AdvanceStatus.DEDUCTED.value],
        AdvanceStatus.PAID.value: [],
        AdvanceStatus.DEDUCTED.value: [],
    }


class InvoiceStateMachine(StatusStateMachine):
    """Invoice lifecycle.

    Allowed transitions:
    - pending → paid (terminal)

    Corrections are made with a reversing transaction, never by moving a
    paid invoice back to pending.
    """

    VALID_TRANSITIONS: dict[str, list[str]] = {
        InvoiceStatus.PENDING.value: [InvoiceStatus.PAID.value],
        InvoiceStatus.PAID.value: [],
    }
