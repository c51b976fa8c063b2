"""Pydantic schemas for command output."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from payroll_ledger.calculators.types import ZERO, CanonicalPayrollRow, RowStatus


# ============================================================================
# Payroll rows
# ============================================================================


class PayrollRowResponse(BaseModel):
    """Schema for one canonical payroll row."""

    model_config = ConfigDict(from_attributes=True)

    row_id: UUID
    batch_id: UUID
    employee_ref: str | None = None
    raw_employee_name: str
    gross: Decimal
    employer_social_security: Decimal
    employee_social_security: Decimal
    income_tax_withholding: Decimal
    net: Decimal
    status: RowStatus
    messages: list[str] = Field(default_factory=list)
    attendance_proportion: Decimal | None = None


class BatchSummary(BaseModel):
    """Counts and totals over a set of rows."""

    row_count: int
    ok_count: int
    warning_count: int
    error_count: int
    total_gross: Decimal
    total_net: Decimal
    total_employer_cost: Decimal


class BatchReport(BaseModel):
    """Schema for a mapped and validated batch."""

    batch_id: UUID
    source: str | None = None
    summary: BatchSummary
    rows: list[PayrollRowResponse]

    @classmethod
    def from_rows(
        cls,
        batch_id: UUID,
        rows: Sequence[CanonicalPayrollRow],
        source: str | None = None,
    ) -> BatchReport:
        def count(status: RowStatus) -> int:
            return sum(1 for r in rows if r.status == status)

        summary = BatchSummary(
            row_count=len(rows),
            ok_count=count(RowStatus.OK),
            warning_count=count(RowStatus.WARNING),
            error_count=count(RowStatus.ERROR),
            total_gross=sum((r.gross for r in rows), ZERO),
            total_net=sum((r.net for r in rows), ZERO),
            total_employer_cost=sum((r.debit for r in rows), ZERO),
        )
        return cls(
            batch_id=batch_id,
            source=source,
            summary=summary,
            rows=[PayrollRowResponse.model_validate(r) for r in rows],
        )


# ============================================================================
# Calendar
# ============================================================================


class BusinessDaysResponse(BaseModel):
    """Schema for a business-day count."""

    start: date
    end: date
    business_days: int
    holidays: list[date] = Field(default_factory=list)


def dump(model: BaseModel) -> dict[str, Any]:
    """JSON-ready dict; decimals and UUIDs become strings."""
    return model.model_dump(mode="json")
