"""Tests for advance and invoice status transitions."""

import pytest

from wage_ledger.calculators.types import AdvanceStatus, InvoiceStatus
from wage_ledger.services.state_machine import (
    AdvanceStateMachine,
    InvalidTransitionError,
    InvoiceStateMachine,
)


class TestAdvanceStateMachine:
    """Tests for advance status transitions."""

    def test_valid_transitions_from_pending(self):
        """Pending can be settled directly or deducted by payroll."""
        assert AdvanceStateMachine.can_transition("pending", "paid")
        assert AdvanceStateMachine.can_transition("pending", "deducted")

    def test_accepts_enum_members(self):
        assert AdvanceStateMachine.can_transition(AdvanceStatus.PENDING, AdvanceStatus.PAID)

    def test_settled_statuses_are_terminal(self):
        assert AdvanceStateMachine.is_terminal("paid")
        assert AdvanceStateMachine.is_terminal("deducted")
        assert not AdvanceStateMachine.is_terminal("pending")

    @pytest.mark.parametrize(
        "from_status,to_status",
        [("paid", "pending"), ("deducted", "pending"), ("paid", "deducted"), ("deducted", "paid")],
    )
    def test_status_never_reverses(self, from_status, to_status):
        with pytest.raises(InvalidTransitionError) as exc_info:
            AdvanceStateMachine.validate_transition(from_status, to_status)

        assert exc_info.value.from_status == from_status
        assert exc_info.value.to_status == to_status
        assert exc_info.value.kind == "invalid_transition"

    def test_unknown_status_has_no_successors(self):
        assert AdvanceStateMachine.get_next_statuses("cancelled") == []


class TestInvoiceStateMachine:
    def test_pending_to_paid(self):
        InvoiceStateMachine.validate_transition(InvoiceStatus.PENDING, InvoiceStatus.PAID)

    def test_paid_is_terminal(self):
        with pytest.raises(InvalidTransitionError) as exc_info:
            InvoiceStateMachine.validate_transition(
                InvoiceStatus.PAID, InvoiceStatus.PAID, reason="invoice is already settled"
            )
        assert "already settled" in str(exc_info.value)
        assert InvoiceStateMachine.get_next_statuses("paid") == []
