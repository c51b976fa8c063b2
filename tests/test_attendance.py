"""Tests for attendance aggregation."""

from datetime import date, datetime
from decimal import Decimal

import pytest

from payroll_ledger.calculators.attendance import (
    AttendanceAggregator,
    TimeEntry,
    TimeEntryAttendanceSource,
    entry_hours,
    summarize_time_entries,
)
from payroll_ledger.calculators.types import AttendanceDailySummary


def punch(
    day: date,
    check_in: str | None,
    check_out: str | None,
    lunch: tuple[str, str] | None = None,
    employee_id: str = "emp-1",
    company_id: str = "acme",
) -> TimeEntry:
    def at(hhmm: str) -> datetime:
        hour, minute = hhmm.split(":")
        return datetime(day.year, day.month, day.day, int(hour), int(minute))

    return TimeEntry(
        employee_id=employee_id,
        work_date=day,
        check_in=at(check_in) if check_in else None,
        check_out=at(check_out) if check_out else None,
        lunch_start=at(lunch[0]) if lunch else None,
        lunch_end=at(lunch[1]) if lunch else None,
        company_id=company_id,
    )


class TestEntryHours:
    """Hours of a single kiosk entry."""

    def test_full_day_with_lunch(self):
        """Test that the lunch break is subtracted from the day."""
        entry = punch(date(2025, 3, 3), "08:00", "17:00", ("13:00", "14:00"))
        assert entry_hours(entry) == Decimal("8")

    def test_day_without_lunch(self):
        """Test hours of a day with no lunch punches."""
        entry = punch(date(2025, 3, 3), "09:00", "13:30")
        assert entry_hours(entry) == Decimal("4.5")

    def test_missing_check_out_counts_zero(self):
        """Test that an entry without check-out counts zero hours."""
        entry = punch(date(2025, 3, 3), "09:00", None)
        assert entry_hours(entry) == Decimal("0")

    def test_never_negative(self):
        """Test that a lunch longer than the shift floors at zero."""
        entry = punch(date(2025, 3, 3), "09:00", "10:00", ("09:00", "12:00"))
        assert entry_hours(entry) == Decimal("0")


class TestSummaries:
    """Daily summaries from punches."""

    def test_split_shifts_sum_per_day(self):
        """Test that several entries of one day collapse into one summary."""
        day = date(2025, 3, 3)
        summaries = summarize_time_entries([
            punch(day, "08:00", "12:00"),
            punch(day, "16:00", "20:00"),
            punch(date(2025, 3, 4), "08:00", "10:00"),
        ])

        assert summaries == [
            AttendanceDailySummary("emp-1", day, Decimal("8")),
            AttendanceDailySummary("emp-1", date(2025, 3, 4), Decimal("2")),
        ]


class TestAttendanceAggregator:
    """Worked hours over a period."""

    pytestmark = pytest.mark.asyncio

    async def test_sums_daily_totals_in_period(self):
        """Test summing daily totals over the period."""
        source = TimeEntryAttendanceSource([
            punch(date(2025, 3, 3), "08:00", "16:00"),
            punch(date(2025, 3, 4), "08:00", "15:30"),
            punch(date(2025, 4, 1), "08:00", "16:00"),
            punch(date(2025, 3, 3), "08:00", "16:00", employee_id="emp-2"),
        ])
        aggregator = AttendanceAggregator(source)

        worked = await aggregator.worked_hours(
            "emp-1", datetime(2025, 3, 1), datetime(2025, 3, 31, 23, 59, 59)
        )

        assert worked == Decimal("15.5")

    async def test_no_attendance_is_zero(self):
        """Test that an employee with no summaries worked zero hours."""
        aggregator = AttendanceAggregator(TimeEntryAttendanceSource([]))
        worked = await aggregator.worked_hours(
            "emp-1", datetime(2025, 3, 1), datetime(2025, 3, 31, 23, 59, 59)
        )
        assert worked == Decimal("0")

    async def test_source_filters_by_company(self):
        """Test that entries of another company are left out."""
        source = TimeEntryAttendanceSource([
            punch(date(2025, 3, 3), "08:00", "16:00", company_id="acme"),
            punch(date(2025, 3, 3), "08:00", "12:00", company_id="other"),
        ])

        summaries = await source.get_daily_summaries(
            datetime(2025, 3, 1), datetime(2025, 3, 31), company_id="acme"
        )

        assert [s.total_hours for s in summaries] == [Decimal("8")]

    async def test_float_totals_are_taken_as_decimal(self):
        """Test that float totals are read through their text form."""
        class FloatSource:
            async def get_daily_summaries(self, start, end, employee_id=None, company_id=None):
                return [AttendanceDailySummary("emp-1", start.date(), 7.1)]

        worked = await AttendanceAggregator(FloatSource()).worked_hours(
            "emp-1", datetime(2025, 3, 1), datetime(2025, 3, 31)
        )
        assert worked == Decimal("7.1")
