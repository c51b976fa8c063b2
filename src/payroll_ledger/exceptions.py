"""Structural failures raised by payroll batch operations.

Data-quality problems in individual rows are never raised; they are reported
as row status and messages.
"""

from __future__ import annotations

from uuid import UUID


class PayrollLedgerError(Exception):
    """Base class for structural payroll ledger failures."""


class BatchAlreadyOpenError(PayrollLedgerError):
    """Raised when a non-closed batch already exists for a company and month."""

    def __init__(self, company_id: str, year: int, month: int, batch_id: UUID):
        self.company_id = company_id
        self.year = year
        self.month = month
        self.batch_id = batch_id
        super().__init__(
            f"Batch {batch_id} is still open for company {company_id} "
            f"in {year}-{month:02d}"
        )


class BatchNotFoundError(PayrollLedgerError, LookupError):
    """Raised when a batch does not exist."""

    def __init__(self, batch_id: UUID):
        self.batch_id = batch_id
        super().__init__(f"Payroll batch {batch_id} not found")


class BatchLockedError(PayrollLedgerError):
    """Raised when rows are edited in a batch whose status forbids it."""

    def __init__(self, batch_id: UUID, status: str):
        self.batch_id = batch_id
        self.status = status
        super().__init__(f"Rows of batch {batch_id} cannot be modified in status '{status}'")


class RowNotFoundError(PayrollLedgerError, LookupError):
    """Raised when a payroll row does not exist."""

    def __init__(self, row_id: UUID):
        self.row_id = row_id
        super().__init__(f"Payroll row {row_id} not found")
