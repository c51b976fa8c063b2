"""Payroll ledger services."""

from payroll_ledger.services.state_machine import BatchStateMachine, BatchStatus, InvalidTransitionError
from payroll_ledger.services.import_service import ImportService
from payroll_ledger.services.journal_service import JournalService

__all__ = [
    "BatchStateMachine",
    "BatchStatus",
    "InvalidTransitionError",
    "ImportService",
    "JournalService",
]
