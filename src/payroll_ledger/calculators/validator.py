"""Structural and accounting validation of canonical payroll rows."""

from __future__ import annotations

from collections.abc import Iterable
from decimal import Decimal
from typing import TYPE_CHECKING

from payroll_ledger.calculators.types import (
    MONEY_FIELDS,
    ZERO,
    CanonicalPayrollRow,
    RowStatus,
    ValidationResult,
)

if TYPE_CHECKING:
    from payroll_ledger.config import Settings

DEFAULT_TOLERANCE = Decimal("0.05")
DEFAULT_LOW_ATTENDANCE_THRESHOLD = Decimal("0.80")


class _Verdict:
    """Severity that only escalates, plus the messages that caused it."""

    def __init__(self) -> None:
        self.status = RowStatus.OK
        self.messages: list[str] = []

    def escalate(self, status: RowStatus, message: str) -> None:
        if status.severity > self.status.severity:
            self.status = status
        self.messages.append(message)


class LedgerValidator:
    """Assigns a status verdict to each payroll row.

    Rules run in a fixed order and can only raise the severity:
    1) unidentified employee -> WARNING
    2) attendance below threshold (derived rows) -> WARNING
    3) unparseable monetary cells -> WARNING
    4) debit/credit imbalance beyond tolerance -> ERROR
    5) negative net -> ERROR
    6) other negative components -> ERROR

    The accrual entry being checked:
      debit  = gross + employer SS
      credit = (employer SS + employee SS) + income tax + net

    Validation failures are data: ``validate`` never raises for row content.
    """

    def __init__(
        self,
        tolerance: Decimal = DEFAULT_TOLERANCE,
        low_attendance_threshold: Decimal = DEFAULT_LOW_ATTENDANCE_THRESHOLD,
    ):
        self.tolerance = tolerance
        self.low_attendance_threshold = low_attendance_threshold

    @classmethod
    def from_settings(cls, settings: Settings) -> LedgerValidator:
        return cls(
            tolerance=settings.ledger_tolerance,
            low_attendance_threshold=settings.low_attendance_threshold,
        )

    def validate_row(self, row: CanonicalPayrollRow) -> ValidationResult:
        verdict = _Verdict()

        if not row.employee_ref:
            verdict.escalate(RowStatus.WARNING, "Employee not identified")

        proportion = row.attendance_proportion
        if proportion is not None and proportion < self.low_attendance_threshold:
            verdict.escalate(
                RowStatus.WARNING,
                f"Worked hours ({_fmt(row.worked_hours, 1)}) below expected "
                f"({_fmt(row.expected_hours, 1)})",
            )

        for name in row.parse_failures:
            verdict.escalate(RowStatus.WARNING, f"Could not parse amount for {name}")

        debit = row.debit
        credit = row.credit
        if abs(debit - credit) > self.tolerance:
            verdict.escalate(
                RowStatus.ERROR,
                f"Ledger imbalance: debit {_fmt(debit)} vs credit {_fmt(credit)}",
            )

        if (row.net or ZERO) < 0:
            verdict.escalate(RowStatus.ERROR, "Net cannot be negative")

        for name in MONEY_FIELDS:
            if name != "net" and (getattr(row, name) or ZERO) < 0:
                verdict.escalate(RowStatus.ERROR, f"{name} cannot be negative")

        return ValidationResult(
            row_id=row.row_id,
            status=verdict.status,
            messages=verdict.messages,
        )

    def validate(self, rows: Iterable[CanonicalPayrollRow]) -> list[ValidationResult]:
        """Validate rows, one result per row in input order."""
        return [self.validate_row(row) for row in rows]

    def apply(self, rows: list[CanonicalPayrollRow]) -> list[ValidationResult]:
        """Validate rows and write status and messages back onto them."""
        results = self.validate(rows)
        for row, result in zip(rows, results):
            row.status = result.status
            row.messages = list(result.messages)
        return results


def _fmt(value: Decimal | None, places: int = 2) -> str:
    if value is None:
        return "?"
    return f"{value:.{places}f}"
