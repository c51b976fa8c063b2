"""Tests for attendance-based payroll derivation."""

from datetime import date, datetime
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import select

from payroll_ledger.calculators.deriver import DerivationPolicy, PayrollDeriver, period_bounds
from payroll_ledger.calculators.types import BatchSource, RowStatus
from payroll_ledger.exceptions import BatchAlreadyOpenError
from payroll_ledger.models import PayrollBatch
from payroll_ledger.services.state_machine import BatchStatus
from tests.conftest import FakeAttendanceSource, FakeEmployeeDirectory, make_employee


def deriver_for(employees, hours, repository, audit=None) -> PayrollDeriver:
    return PayrollDeriver(
        employees=FakeEmployeeDirectory(employees),
        attendance=FakeAttendanceSource(hours),
        repository=repository,
        audit=audit,
    )


class TestPeriodBounds:
    """Calendar month boundaries."""

    def test_leap_february(self):
        """Test the bounds of February in a leap year."""
        assert period_bounds(2024, 2) == (
            datetime(2024, 2, 1),
            datetime(2024, 2, 29, 23, 59, 59),
        )

    def test_december(self):
        """Test the bounds of December."""
        assert period_bounds(2025, 12)[1] == datetime(2025, 12, 31, 23, 59, 59)


class TestDeriveRow:
    """Amounts of a single derived row."""

    def setup_method(self):
        self.deriver = PayrollDeriver(
            employees=FakeEmployeeDirectory(),
            attendance=FakeAttendanceSource(),
            repository=None,
        )

    def test_proportion_is_capped(self):
        """Test that overtime pay stops at the cap."""
        row = self.deriver.derive_row(make_employee(), Decimal("300"), uuid4())

        assert row.expected_hours == Decimal("173.20")
        assert row.attendance_proportion > Decimal("1.73")
        assert row.gross == Decimal("2200.00")
        assert row.employee_social_security == Decimal("139.70")
        assert row.income_tax_withholding == Decimal("330.00")
        assert row.employer_social_security == Decimal("519.20")
        assert row.net == Decimal("1730.30")

    def test_partial_month(self):
        """Test the gross of 160 hours out of 173.2 expected."""
        row = self.deriver.derive_row(make_employee(), Decimal("160"), uuid4())
        assert row.gross == Decimal("1847.58")

    def test_low_attendance_amounts(self):
        """Test every amount of a low-attendance row."""
        row = self.deriver.derive_row(make_employee(), Decimal("50"), uuid4())

        assert row.gross == Decimal("577.37")
        assert row.employee_social_security == Decimal("36.66")
        assert row.income_tax_withholding == Decimal("86.61")
        assert row.employer_social_security == Decimal("136.26")
        assert row.net == Decimal("454.10")

    def test_derived_rows_always_balance(self):
        """Test that derived rows balance for a range of hours."""
        for hours in ("0", "1", "33.3", "99.99", "173.2", "500"):
            row = self.deriver.derive_row(make_employee(), Decimal(hours), uuid4())
            assert row.debit == row.credit

    def test_missing_weekly_hours_uses_fallback(self):
        """Test fallback expected hours without weekly hours."""
        row = self.deriver.derive_row(make_employee(weekly_hours=None), Decimal("160"), uuid4())

        assert row.expected_hours == Decimal("160")
        assert row.gross == Decimal("2000.00")

    def test_zero_weekly_hours_uses_fallback(self):
        """Test that zero weekly hours use the fallback too."""
        row = self.deriver.derive_row(make_employee(weekly_hours=Decimal("0")), Decimal("80"), uuid4())

        assert row.expected_hours == Decimal("160")
        assert row.gross == Decimal("1000.00")

    def test_annual_salary_fallback(self):
        """Test that the annual salary is split in twelve."""
        employee = make_employee(monthly_gross_salary=None, annual_gross_salary=Decimal("24000"))
        row = self.deriver.derive_row(employee, Decimal("173.2"), uuid4())

        assert row.gross == Decimal("2000.00")

    def test_no_salary_gives_zero_row(self):
        """Test that an employee without salary gets a zero row."""
        employee = make_employee(monthly_gross_salary=None, annual_gross_salary=None)
        row = self.deriver.derive_row(employee, Decimal("173.2"), uuid4())

        assert row.gross == Decimal("0.00")
        assert row.net == Decimal("0.00")

    def test_no_attendance_gives_zero_proportion(self):
        """Test that no attendance gives a zero proportion."""
        row = self.deriver.derive_row(make_employee(), Decimal("0"), uuid4())

        assert row.attendance_proportion == Decimal("0")
        assert row.gross == Decimal("0.00")

    def test_custom_policy(self):
        """Test deriving with a non-default cap."""
        deriver = PayrollDeriver(
            employees=FakeEmployeeDirectory(),
            attendance=FakeAttendanceSource(),
            repository=None,
            policy=DerivationPolicy(proportion_cap=Decimal("1.00")),
        )
        row = deriver.derive_row(make_employee(), Decimal("300"), uuid4())
        assert row.gross == Decimal("2000.00")

    def test_row_carries_identity_and_trace(self):
        """Test the identity and trace data of a derived row."""
        row = self.deriver.derive_row(make_employee(), Decimal("150.5"), uuid4())

        assert row.employee_ref == "emp-1"
        assert row.raw_employee_name == "Ana García"
        assert row.status == RowStatus.PENDING
        assert row.extra_data["source"] == "attendance"
        assert row.extra_data["workedHours"] == "150.5"
        assert row.extra_data["expectedHours"] == "173.20"


class TestDerive:
    """Full batch derivation against the database."""

    pytestmark = pytest.mark.asyncio

    async def test_capped_row_is_ok(self, repository):
        """Test that a capped row validates OK."""
        deriver = deriver_for([make_employee()], {"emp-1": Decimal("300")}, repository)

        result = await deriver.derive(2025, 3, "acme")

        assert result.status == BatchStatus.VALID
        assert result.row_count == 1
        row = result.rows[0]
        assert row.gross == Decimal("2200.00")
        assert row.status == RowStatus.OK
        assert result.results[0].status == RowStatus.OK
        assert await repository.get_batch_status(result.batch_id) == BatchStatus.VALID

    async def test_low_attendance_is_warning(self, repository):
        """Test that low attendance gives a WARNING row."""
        deriver = deriver_for([make_employee()], {"emp-1": Decimal("50")}, repository)

        result = await deriver.derive(2025, 3, "acme")

        row = result.rows[0]
        assert row.status == RowStatus.WARNING
        assert row.messages == ["Worked hours (50.0) below expected (173.2)"]
        assert result.warning_count == 1
        assert result.error_count == 0

    async def test_rows_are_persisted_with_verdicts(self, repository):
        """Test that rows are stored with status and messages."""
        employees = [
            make_employee("emp-1", "Ana"),
            make_employee("emp-2", "Luis"),
        ]
        deriver = deriver_for(
            employees, {"emp-1": Decimal("173.2"), "emp-2": Decimal("20")}, repository
        )

        result = await deriver.derive(2025, 3, "acme")
        stored = {r.employee_ref: r for r in await repository.list_rows(result.batch_id)}

        assert set(stored) == {"emp-1", "emp-2"}
        assert stored["emp-1"].status == RowStatus.OK
        assert stored["emp-1"].gross == Decimal("2000.00")
        assert stored["emp-2"].status == RowStatus.WARNING
        assert stored["emp-2"].worked_hours == Decimal("20")
        assert stored["emp-2"].messages[0].startswith("Worked hours (20.0)")

    async def test_batch_metadata(self, repository):
        """Test the stored batch attributes."""
        deriver = deriver_for([make_employee()], {"emp-1": Decimal("160")}, repository)

        result = await deriver.derive(2025, 3, "acme", actor_id="admin")
        batch = await repository.get_batch(result.batch_id)

        assert batch.source == BatchSource.ATTENDANCE
        assert batch.source_filename == "AUTO_KIOSK_3_2025"
        assert batch.created_by == "admin"
        assert (batch.company_id, batch.year, batch.month) == ("acme", 2025, 3)

    async def test_employment_must_overlap_period(self, repository):
        """Test that employees outside the month are skipped."""
        employees = [
            make_employee("left", exit_date=date(2025, 2, 28)),
            make_employee("joins-later", entry_date=date(2025, 4, 1)),
            make_employee("left-mid-month", exit_date=date(2025, 3, 15)),
            make_employee("joined-mid-month", entry_date=date(2025, 3, 20)),
        ]
        hours = {e.employee_id: Decimal("100") for e in employees}
        deriver = deriver_for(employees, hours, repository)

        result = await deriver.derive(2025, 3, "acme")

        assert sorted(r.employee_ref for r in result.rows) == ["joined-mid-month", "left-mid-month"]

    async def test_no_employees_gives_empty_valid_batch(self, repository):
        """Test that a company without employees gets an empty VALID batch."""
        deriver = deriver_for([], {}, repository)

        result = await deriver.derive(2025, 3, "acme")

        assert result.row_count == 0
        assert result.total_gross == Decimal("0")
        assert await repository.get_batch_status(result.batch_id) == BatchStatus.VALID

    async def test_open_batch_blocks_second_derivation(self, repository):
        """Test that an open batch blocks a second derivation."""
        deriver = deriver_for([make_employee()], {"emp-1": Decimal("160")}, repository)
        first = await deriver.derive(2025, 3, "acme")

        with pytest.raises(BatchAlreadyOpenError) as exc_info:
            await deriver.derive(2025, 3, "acme")

        assert exc_info.value.batch_id == first.batch_id

    async def test_other_period_or_company_is_not_blocked(self, repository):
        """Test that other periods and companies are not blocked."""
        deriver = deriver_for([make_employee()], {"emp-1": Decimal("160")}, repository)
        await deriver.derive(2025, 3, "acme")

        await deriver.derive(2025, 4, "acme")
        await deriver.derive(2025, 3, "globex")

    async def test_closed_batch_allows_new_derivation(self, repository):
        """Test that a closed batch allows a new derivation."""
        deriver = deriver_for([make_employee()], {"emp-1": Decimal("160")}, repository)
        first = await deriver.derive(2025, 3, "acme")
        await repository.set_batch_status(first.batch_id, BatchStatus.CLOSED.value)

        second = await deriver.derive(2025, 3, "acme")

        assert second.batch_id != first.batch_id

    async def test_attendance_failure_marks_batch_error(self, repository, session_factory):
        """Test that an attendance failure marks the batch ERROR and re-raises."""
        class BrokenSource(FakeAttendanceSource):
            async def get_daily_summaries(self, start, end, employee_id=None, company_id=None):
                if employee_id == "emp-2":
                    raise ConnectionError("kiosk database unreachable")
                return await super().get_daily_summaries(start, end, employee_id, company_id)

        deriver = PayrollDeriver(
            employees=FakeEmployeeDirectory([make_employee("emp-1"), make_employee("emp-2")]),
            attendance=BrokenSource({"emp-1": Decimal("160")}),
            repository=repository,
        )

        with pytest.raises(ConnectionError):
            await deriver.derive(2025, 3, "acme")

        async with session_factory() as session:
            batch = await session.scalar(
                select(PayrollBatch).where(PayrollBatch.company_id == "acme")
            )
        assert batch.status == BatchStatus.ERROR
        assert await repository.list_rows(batch.batch_id) == []
        # A failed batch does not block a retry
        assert await repository.find_open_batch("acme", 2025, 3) is None

    async def test_audit_event_recorded(self, repository, audit):
        """Test the audit event of a derivation."""
        deriver = deriver_for([make_employee()], {"emp-1": Decimal("160")}, repository, audit)

        result = await deriver.derive(2025, 3, "acme", actor_id="admin")

        assert audit.events == [{
            "action": "GENERATE_AUTO_PAYROLL",
            "entity_type": "PAYROLL_BATCH",
            "entity_id": str(result.batch_id),
            "metadata": {"employeeCount": 1, "year": 2025, "month": 3},
            "actor_id": "admin",
        }]

    async def test_audit_failure_does_not_fail_derivation(self, repository, failing_audit):
        """Test that a failing audit sink does not fail the derivation."""
        deriver = deriver_for([make_employee()], {"emp-1": Decimal("160")}, repository, failing_audit)

        result = await deriver.derive(2025, 3, "acme")

        assert result.status == BatchStatus.VALID
        assert await repository.get_batch_status(result.batch_id) == BatchStatus.VALID
