"""Type definitions for the mapping, derivation and validation pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

ZERO = Decimal("0")


class RowStatus(str, Enum):
    """Validation verdict of a payroll row."""

    PENDING = "PENDING"
    OK = "OK"
    WARNING = "WARNING"
    ERROR = "ERROR"

    @property
    def severity(self) -> int:
        return _SEVERITY[self]


_SEVERITY = {
    RowStatus.PENDING: 0,
    RowStatus.OK: 1,
    RowStatus.WARNING: 2,
    RowStatus.ERROR: 3,
}


class BatchSource(str, Enum):
    """Where the rows of a batch came from."""

    UPLOAD = "upload"
    ATTENDANCE = "attendance"


MONEY_FIELDS: tuple[str, ...] = (
    "gross",
    "employer_social_security",
    "employee_social_security",
    "income_tax_withholding",
    "net",
)


@dataclass
class CanonicalPayrollRow:
    """Normalized representation of one employee's pay for one period."""

    batch_id: UUID
    raw_employee_name: str
    employee_ref: str | None = None

    gross: Decimal = ZERO
    employer_social_security: Decimal = ZERO
    employee_social_security: Decimal = ZERO
    income_tax_withholding: Decimal = ZERO
    net: Decimal = ZERO

    # Original source row, kept opaque for forensic lookup
    extra_data: dict[str, Any] = field(default_factory=dict)

    status: RowStatus = RowStatus.PENDING
    messages: list[str] = field(default_factory=list)

    # Only set on rows derived from attendance
    attendance_proportion: Decimal | None = None
    worked_hours: Decimal | None = None
    expected_hours: Decimal | None = None

    # Monetary targets whose cell could not be parsed (value defaulted to 0)
    parse_failures: list[str] = field(default_factory=list)

    row_id: UUID = field(default_factory=uuid4)

    @property
    def debit(self) -> Decimal:
        """Debit side of the accrual entry: gross pay + employer contribution."""
        return (self.gross or ZERO) + (self.employer_social_security or ZERO)

    @property
    def credit(self) -> Decimal:
        """Credit side: combined social security, withholding and net pay."""
        return (
            (self.employer_social_security or ZERO)
            + (self.employee_social_security or ZERO)
            + (self.income_tax_withholding or ZERO)
            + (self.net or ZERO)
        )

    def money(self) -> dict[str, Decimal]:
        return {name: getattr(self, name) or ZERO for name in MONEY_FIELDS}


@dataclass
class ValidationResult:
    """Outcome of validating one row."""

    row_id: UUID
    status: RowStatus
    messages: list[str] = field(default_factory=list)

    @property
    def is_error(self) -> bool:
        return self.status == RowStatus.ERROR


@dataclass
class AttendanceDailySummary:
    """Hours worked by one employee on one day, already shift-resolved."""

    employee_id: str
    work_date: date
    total_hours: Decimal


@dataclass
class EmployeeRecord:
    """Employee salary baseline and employment interval."""

    employee_id: str
    name: str
    entry_date: date
    exit_date: date | None = None
    weekly_hours: Decimal | None = None
    monthly_gross_salary: Decimal | None = None
    annual_gross_salary: Decimal | None = None
    subaccount_465: str | None = None

    def is_employed_during(self, period_start: date, period_end: date) -> bool:
        """True when the employment interval overlaps the period."""
        if self.entry_date > period_end:
            return False
        return self.exit_date is None or self.exit_date >= period_start


@dataclass
class BatchMeta:
    """Attributes of a batch at creation time."""

    company_id: str
    year: int
    month: int
    source: BatchSource
    status: str
    source_filename: str | None = None
    created_by: str | None = None


@dataclass
class BatchResult:
    """Result of producing (mapping or deriving) a whole batch."""

    batch_id: UUID
    company_id: str
    year: int
    month: int
    status: str
    rows: list[CanonicalPayrollRow]
    results: list[ValidationResult] = field(default_factory=list)

    @property
    def row_count(self) -> int:
        return len(self.rows)

    @property
    def warning_count(self) -> int:
        return sum(1 for r in self.rows if r.status == RowStatus.WARNING)

    @property
    def error_count(self) -> int:
        return sum(1 for r in self.rows if r.status == RowStatus.ERROR)

    @property
    def total_gross(self) -> Decimal:
        return sum((r.gross for r in self.rows), ZERO)

    @property
    def total_net(self) -> Decimal:
        return sum((r.net for r in self.rows), ZERO)

    @property
    def total_employer_cost(self) -> Decimal:
        return sum((r.debit for r in self.rows), ZERO)
