"""Attendance aggregation: raw punches -> daily summaries -> worked hours."""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from payroll_ledger.calculators.types import ZERO, AttendanceDailySummary

if TYPE_CHECKING:
    from payroll_ledger.interfaces import AttendanceSource

SECONDS_PER_HOUR = Decimal("3600")


@dataclass
class TimeEntry:
    """One employee-day of kiosk punches."""

    employee_id: str
    work_date: date
    check_in: datetime | None = None
    check_out: datetime | None = None
    lunch_start: datetime | None = None
    lunch_end: datetime | None = None
    company_id: str | None = None


def _hours_between(start: datetime, end: datetime) -> Decimal:
    return Decimal(str((end - start).total_seconds())) / SECONDS_PER_HOUR


def entry_hours(entry: TimeEntry) -> Decimal:
    """Hours worked in one entry: check-out minus check-in minus lunch.

    An entry without both punches counts zero (incomplete day). The result is
    never negative.
    """
    if entry.check_in is None or entry.check_out is None:
        return ZERO

    lunch = ZERO
    if entry.lunch_start is not None and entry.lunch_end is not None:
        lunch = _hours_between(entry.lunch_start, entry.lunch_end)

    return max(ZERO, _hours_between(entry.check_in, entry.check_out) - lunch)


def summarize_time_entries(entries: Iterable[TimeEntry]) -> list[AttendanceDailySummary]:
    """Collapse punches into one summary per employee and day."""
    totals: dict[tuple[str, date], Decimal] = defaultdict(lambda: ZERO)
    for entry in entries:
        key = (entry.employee_id, entry.work_date)
        totals[key] += entry_hours(entry)

    return [
        AttendanceDailySummary(employee_id=emp, work_date=day, total_hours=hours)
        for (emp, day), hours in sorted(totals.items())
    ]


class TimeEntryAttendanceSource:
    """Attendance source serving daily summaries over a list of time entries."""

    def __init__(self, entries: Iterable[TimeEntry]):
        self.entries = list(entries)

    async def get_daily_summaries(
        self,
        start: datetime,
        end: datetime,
        employee_id: str | None = None,
        company_id: str | None = None,
    ) -> list[AttendanceDailySummary]:
        selected = [
            e
            for e in self.entries
            if start.date() <= e.work_date <= end.date()
            and (employee_id is None or e.employee_id == employee_id)
            and (company_id is None or e.company_id == company_id)
        ]
        return summarize_time_entries(selected)


class AttendanceAggregator:
    """Sums the attendance source's daily totals for an employee and period.

    Daily totals are trusted as given; punches are not re-parsed here.
    """

    def __init__(self, source: AttendanceSource):
        self.source = source

    async def worked_hours(
        self, employee_id: str, start: datetime, end: datetime
    ) -> Decimal:
        summaries = await self.source.get_daily_summaries(
            start, end, employee_id=employee_id
        )
        return sum((Decimal(str(s.total_hours)) for s in summaries), ZERO)
