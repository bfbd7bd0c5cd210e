"""Wage ledger services."""

from wage_ledger.services.advance_ledger import AdvanceLedger
from wage_ledger.services.locking_service import EntityLocks
from wage_ledger.services.receivables import ReceivablesLedger
from wage_ledger.services.state_machine import (
    AdvanceStateMachine,
    InvalidTransitionError,
    InvoiceStateMachine,
)

__all__ = [
    "AdvanceLedger",
    "EntityLocks",
    "ReceivablesLedger",
    "AdvanceStateMachine",
    "InvalidTransitionError",
    "InvoiceStateMachine",
]
