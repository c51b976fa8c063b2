"""Contracts for the collaborators the engine consumes but does not own."""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Protocol
from uuid import UUID

from payroll_ledger.calculators.types import (
    AttendanceDailySummary,
    BatchMeta,
    CanonicalPayrollRow,
    EmployeeRecord,
)


class AttendanceSource(Protocol):
    """Per-day worked hours, already resolved for shift boundaries."""

    async def get_daily_summaries(
        self,
        start: datetime,
        end: datetime,
        employee_id: str | None = None,
        company_id: str | None = None,
    ) -> list[AttendanceDailySummary]: ...


class EmployeeDirectory(Protocol):
    """Employees of a company with their salary baseline."""

    async def list_active_employees(
        self, company_id: str, period_start: date, period_end: date
    ) -> list[EmployeeRecord]: ...


class BatchRepository(Protocol):
    """Batch and row persistence.

    ``replace_batch_rows`` deletes the batch's rows, inserts the new ones and
    (optionally) sets the batch status as one atomic unit.
    """

    async def create_batch(self, meta: BatchMeta) -> UUID: ...

    async def set_batch_status(self, batch_id: UUID, status: str) -> None: ...

    async def get_batch_status(self, batch_id: UUID) -> str | None: ...

    async def find_open_batch(
        self, company_id: str, year: int, month: int
    ) -> UUID | None: ...

    async def replace_batch_rows(
        self,
        batch_id: UUID,
        rows: list[CanonicalPayrollRow],
        status: str | None = None,
    ) -> int: ...

    async def list_rows(self, batch_id: UUID) -> list[CanonicalPayrollRow]: ...

    async def update_row(self, row: CanonicalPayrollRow) -> None: ...

    async def get_row(self, row_id: UUID) -> CanonicalPayrollRow | None: ...


class AuditSink(Protocol):
    """Fire-and-forget audit trail."""

    async def record(
        self,
        action: str,
        entity_type: str,
        entity_id: str,
        metadata: dict[str, Any] | None = None,
        actor_id: str | None = None,
    ) -> None: ...
