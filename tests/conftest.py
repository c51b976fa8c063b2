"""Pytest fixtures for payroll ledger tests."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from payroll_ledger.audit import SqlAuditSink
from payroll_ledger.calculators.types import (
    AttendanceDailySummary,
    CanonicalPayrollRow,
    EmployeeRecord,
)
from payroll_ledger.database import create_schema, make_session_factory
from payroll_ledger.repository import SqlBatchRepository, SqlMappingProfileStore


class FakeEmployeeDirectory:
    """Employee directory over a fixed list."""

    def __init__(self, employees: list[EmployeeRecord] | None = None):
        self.employees = list(employees or [])

    async def list_active_employees(
        self, company_id: str, period_start: date, period_end: date
    ) -> list[EmployeeRecord]:
        return list(self.employees)


class FakeAttendanceSource:
    """Attendance source returning preset hours per employee.

    Each employee's hours are returned as a single daily summary on the
    first day of the requested period.
    """

    def __init__(self, hours: dict[str, Decimal] | None = None):
        self.hours = dict(hours or {})
        self.calls: list[str | None] = []

    async def get_daily_summaries(
        self,
        start: datetime,
        end: datetime,
        employee_id: str | None = None,
        company_id: str | None = None,
    ) -> list[AttendanceDailySummary]:
        self.calls.append(employee_id)
        if employee_id not in self.hours:
            return []
        return [
            AttendanceDailySummary(
                employee_id=employee_id,
                work_date=start.date(),
                total_hours=self.hours[employee_id],
            )
        ]


class RecordingAuditSink:
    """Audit sink keeping events in memory."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.events: list[dict[str, Any]] = []

    async def record(
        self,
        action: str,
        entity_type: str,
        entity_id: str,
        metadata: dict[str, Any] | None = None,
        actor_id: str | None = None,
    ) -> None:
        if self.fail:
            raise RuntimeError("audit store unavailable")
        self.events.append({
            "action": action,
            "entity_type": entity_type,
            "entity_id": entity_id,
            "metadata": metadata,
            "actor_id": actor_id,
        })


def make_employee(
    employee_id: str = "emp-1",
    name: str = "Ana García",
    weekly_hours: Decimal | None = Decimal("40"),
    monthly_gross_salary: Decimal | None = Decimal("2000"),
    annual_gross_salary: Decimal | None = None,
    entry_date: date = date(2020, 1, 1),
    exit_date: date | None = None,
    subaccount_465: str | None = None,
) -> EmployeeRecord:
    return EmployeeRecord(
        employee_id=employee_id,
        name=name,
        entry_date=entry_date,
        exit_date=exit_date,
        weekly_hours=weekly_hours,
        monthly_gross_salary=monthly_gross_salary,
        annual_gross_salary=annual_gross_salary,
        subaccount_465=subaccount_465,
    )


def make_row(batch_id: UUID | None = None, **overrides: Any) -> CanonicalPayrollRow:
    """A balanced, identified row: 1000 gross, 236 employer SS."""
    values: dict[str, Any] = {
        "batch_id": batch_id or uuid4(),
        "raw_employee_name": "Ana García",
        "employee_ref": "emp-1",
        "gross": Decimal("1000.00"),
        "employer_social_security": Decimal("236.00"),
        "employee_social_security": Decimal("63.50"),
        "income_tax_withholding": Decimal("150.00"),
        "net": Decimal("786.50"),
    }
    values.update(overrides)
    return CanonicalPayrollRow(**values)


@pytest.fixture
def row_factory():
    return make_row


@pytest.fixture
def employee_factory():
    return make_employee


@pytest.fixture
def audit() -> RecordingAuditSink:
    return RecordingAuditSink()


@pytest.fixture
def failing_audit() -> RecordingAuditSink:
    return RecordingAuditSink(fail=True)


@pytest.fixture
def employees() -> FakeEmployeeDirectory:
    return FakeEmployeeDirectory()


@pytest.fixture
def attendance() -> FakeAttendanceSource:
    return FakeAttendanceSource()


# Each test gets its own SQLite file; in-memory databases are per connection
@pytest_asyncio.fixture
async def engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """Create test database engine with the schema applied."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'ledger.db'}", echo=False)
    await create_schema(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return make_session_factory(engine)


@pytest.fixture
def repository(session_factory) -> SqlBatchRepository:
    return SqlBatchRepository(session_factory)


@pytest.fixture
def profile_store(session_factory) -> SqlMappingProfileStore:
    return SqlMappingProfileStore(session_factory)


@pytest.fixture
def sql_audit(session_factory) -> SqlAuditSink:
    return SqlAuditSink(session_factory)
