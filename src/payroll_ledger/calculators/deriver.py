"""Derives a payroll batch from attendance when no payroll file exists."""

from __future__ import annotations

import logging
from calendar import monthrange
from dataclasses import dataclass
from datetime import datetime, time
from decimal import Decimal
from typing import TYPE_CHECKING

from payroll_ledger.audit import record_quietly
from payroll_ledger.calculators.attendance import AttendanceAggregator
from payroll_ledger.calculators.money import round_to_cents
from payroll_ledger.calculators.types import (
    ZERO,
    BatchMeta,
    BatchResult,
    BatchSource,
    CanonicalPayrollRow,
    EmployeeRecord,
)
from payroll_ledger.calculators.validator import LedgerValidator
from payroll_ledger.exceptions import BatchAlreadyOpenError
from payroll_ledger.services.state_machine import BatchStatus

if TYPE_CHECKING:
    from uuid import UUID

    from payroll_ledger.config import Settings
    from payroll_ledger.interfaces import (
        AttendanceSource,
        AuditSink,
        BatchRepository,
        EmployeeDirectory,
    )

logger = logging.getLogger(__name__)

AUDIT_ACTION = "GENERATE_AUTO_PAYROLL"
AUDIT_ENTITY = "PAYROLL_BATCH"


@dataclass(frozen=True)
class DerivationPolicy:
    """Constants of the attendance-based pay approximation.

    The rates approximate Spanish payroll; they are not a tax table.
    """

    weeks_per_month: Decimal = Decimal("4.33")
    fallback_expected_hours: Decimal = Decimal("160")
    proportion_cap: Decimal = Decimal("1.10")
    employee_ss_rate: Decimal = Decimal("0.0635")
    income_tax_rate: Decimal = Decimal("0.15")
    employer_ss_rate: Decimal = Decimal("0.236")

    @classmethod
    def from_settings(cls, settings: Settings) -> DerivationPolicy:
        return cls(
            weeks_per_month=settings.weeks_per_month,
            fallback_expected_hours=settings.fallback_expected_hours,
            proportion_cap=settings.proportion_cap,
            employee_ss_rate=settings.employee_ss_rate,
            income_tax_rate=settings.income_tax_rate,
            employer_ss_rate=settings.employer_ss_rate,
        )

    def expected_hours(self, employee: EmployeeRecord) -> Decimal:
        """Monthly hours the employee is contracted for."""
        if employee.weekly_hours:
            expected = Decimal(employee.weekly_hours) * self.weeks_per_month
        else:
            expected = self.fallback_expected_hours
        # A configured weekly_hours of 0 must not zero the divisor
        return expected or self.fallback_expected_hours

    def monthly_salary(self, employee: EmployeeRecord) -> Decimal:
        if employee.monthly_gross_salary:
            return Decimal(employee.monthly_gross_salary)
        if employee.annual_gross_salary:
            return Decimal(employee.annual_gross_salary) / 12
        return ZERO


def period_bounds(year: int, month: int) -> tuple[datetime, datetime]:
    """First instant and last second of a calendar month."""
    last_day = monthrange(year, month)[1]
    start = datetime(year, month, 1)
    end = datetime.combine(start.replace(day=last_day), time(23, 59, 59))
    return start, end


class PayrollDeriver:
    """Builds a full payroll batch for a company's month from attendance.

    Pipeline (per invocation):
    1) Refuse if an open batch exists for the same company and month
    2) Create the batch in GENERATING
    3) For each employee employed during the month: sum worked hours,
       compute proportional gross (capped), decompose with fixed rates
    4) Validate every row with the shared ledger validator
    5) Write rows and flip the batch to VALID atomically
    6) Record an audit event (failures there are logged, never raised)

    Any failure after step 2 marks the batch ERROR and re-raises, so no batch
    is left in GENERATING. One employee's attendance failure aborts the batch.
    """

    def __init__(
        self,
        employees: EmployeeDirectory,
        attendance: AttendanceSource,
        repository: BatchRepository,
        audit: AuditSink | None = None,
        validator: LedgerValidator | None = None,
        policy: DerivationPolicy | None = None,
    ):
        self.employees = employees
        self.aggregator = AttendanceAggregator(attendance)
        self.repository = repository
        self.audit = audit
        self.validator = validator or LedgerValidator()
        self.policy = policy or DerivationPolicy()

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        employees: EmployeeDirectory,
        attendance: AttendanceSource,
        repository: BatchRepository,
        audit: AuditSink | None = None,
    ) -> PayrollDeriver:
        """Deriver with the configured tolerance, cap and rates."""
        return cls(
            employees,
            attendance,
            repository,
            audit=audit,
            validator=LedgerValidator.from_settings(settings),
            policy=DerivationPolicy.from_settings(settings),
        )

    async def derive(
        self,
        year: int,
        month: int,
        company_id: str,
        actor_id: str | None = None,
    ) -> BatchResult:
        """Derive and persist a payroll batch for ``company_id`` in ``year-month``."""
        start, end = period_bounds(year, month)

        existing = await self.repository.find_open_batch(company_id, year, month)
        if existing is not None:
            raise BatchAlreadyOpenError(company_id, year, month, existing)

        batch_id = await self.repository.create_batch(
            BatchMeta(
                company_id=company_id,
                year=year,
                month=month,
                source=BatchSource.ATTENDANCE,
                status=BatchStatus.GENERATING.value,
                source_filename=f"AUTO_KIOSK_{month}_{year}",
                created_by=actor_id,
            )
        )
        logger.info(
            "Deriving payroll batch %s for company %s %d-%02d",
            batch_id, company_id, year, month,
        )

        try:
            rows = await self._derive_rows(batch_id, company_id, start, end)
            results = self.validator.apply(rows)
            await self.repository.replace_batch_rows(
                batch_id, rows, status=BatchStatus.VALID.value
            )
        except Exception:
            logger.warning("Derivation of batch %s failed, marking ERROR", batch_id)
            await self._mark_failed(batch_id)
            raise

        await record_quietly(
            self.audit,
            AUDIT_ACTION,
            AUDIT_ENTITY,
            str(batch_id),
            {"employeeCount": len(rows), "year": year, "month": month},
            actor_id,
        )

        return BatchResult(
            batch_id=batch_id,
            company_id=company_id,
            year=year,
            month=month,
            status=BatchStatus.VALID.value,
            rows=rows,
            results=results,
        )

    async def _derive_rows(
        self,
        batch_id: UUID,
        company_id: str,
        start: datetime,
        end: datetime,
    ) -> list[CanonicalPayrollRow]:
        employees = await self.employees.list_active_employees(
            company_id, start.date(), end.date()
        )

        rows: list[CanonicalPayrollRow] = []
        for employee in employees:
            if not employee.is_employed_during(start.date(), end.date()):
                continue
            worked = await self.aggregator.worked_hours(employee.employee_id, start, end)
            rows.append(self.derive_row(employee, worked, batch_id))
        return rows

    def derive_row(
        self,
        employee: EmployeeRecord,
        worked_hours: Decimal,
        batch_id: UUID,
    ) -> CanonicalPayrollRow:
        """Compute one employee's row from hours worked. Status stays PENDING."""
        policy = self.policy
        expected = policy.expected_hours(employee)
        monthly = policy.monthly_salary(employee)

        proportion = worked_hours / expected if worked_hours > 0 else ZERO
        factor = min(proportion, policy.proportion_cap)

        gross = round_to_cents(monthly * factor)
        employee_ss = round_to_cents(gross * policy.employee_ss_rate)
        income_tax = round_to_cents(gross * policy.income_tax_rate)
        employer_ss = round_to_cents(gross * policy.employer_ss_rate)
        net = gross - employee_ss - income_tax

        return CanonicalPayrollRow(
            batch_id=batch_id,
            employee_ref=employee.employee_id,
            raw_employee_name=employee.name,
            gross=gross,
            employer_social_security=employer_ss,
            employee_social_security=employee_ss,
            income_tax_withholding=income_tax,
            net=net,
            extra_data={
                "source": BatchSource.ATTENDANCE.value,
                "workedHours": str(worked_hours),
                "expectedHours": str(expected),
                "monthlySalary": str(round_to_cents(monthly)),
            },
            attendance_proportion=proportion,
            worked_hours=worked_hours,
            expected_hours=expected,
        )

    async def _mark_failed(self, batch_id: UUID) -> None:
        try:
            await self.repository.set_batch_status(batch_id, BatchStatus.ERROR.value)
        except Exception:
            logger.exception("Could not mark batch %s as ERROR", batch_id)

