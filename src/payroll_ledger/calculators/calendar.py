"""Business-day calendar backed by an injectable holiday provider."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

from payroll_ledger.exceptions import PayrollLedgerError

if TYPE_CHECKING:
    from payroll_ledger.config import Settings

# National + Balearic Islands / Palma calendar. Easter-dependent dates are
# fixed per year, so the table has to be extended every year.
DEFAULT_HOLIDAYS: frozenset[str] = frozenset({
    # 2024
    "2024-01-01", "2024-03-01", "2024-03-28", "2024-03-29", "2024-04-01",
    "2024-05-01", "2024-06-24", "2024-08-15", "2024-10-12", "2024-11-01",
    "2024-12-06", "2024-12-25", "2024-12-26",
    # 2025
    "2025-01-01", "2025-01-06", "2025-01-17", "2025-04-17", "2025-04-18",
    "2025-04-21", "2025-05-01", "2025-08-15", "2025-12-08", "2025-12-25",
    "2025-12-26",
    # 2026
    "2026-01-01", "2026-01-06", "2026-03-01", "2026-04-02", "2026-04-03",
    "2026-04-06", "2026-05-01", "2026-06-24", "2026-08-15", "2026-10-12",
    "2026-11-01", "2026-12-06", "2026-12-08", "2026-12-25", "2026-12-26",
})

DEFAULT_VACATION_QUOTA = 30


class VacationQuotaExceededError(PayrollLedgerError):
    """Raised when a vacation request does not fit the remaining quota."""

    def __init__(self, requested: int, available: int):
        self.requested = requested
        self.available = available
        super().__init__(
            f"Vacation quota exceeded: available {available}, requested {requested}"
        )


class HolidayProvider(Protocol):
    """Source of non-working public holidays."""

    def is_holiday(self, day: date) -> bool: ...


def _as_date(value: date | datetime) -> date:
    # datetime is a subclass of date; drop the time of day
    if isinstance(value, datetime):
        return value.date()
    return value


class StaticHolidayProvider:
    """Holiday provider over a fixed set of ISO dates."""

    def __init__(self, dates: Iterable[str | date] = DEFAULT_HOLIDAYS):
        self._dates: frozenset[date] = frozenset(
            _as_date(d) if isinstance(d, date) else date.fromisoformat(d)
            for d in dates
        )

    @classmethod
    def from_file(cls, path: str | Path) -> StaticHolidayProvider:
        """Load one ISO date per line; blank lines and ``#`` comments are skipped."""
        dates = []
        for line in Path(path).read_text(encoding="utf-8").splitlines():
            entry = line.split("#", 1)[0].strip()
            if entry:
                dates.append(entry)
        return cls(dates)

    def is_holiday(self, day: date) -> bool:
        return _as_date(day) in self._dates

    def __len__(self) -> int:
        return len(self._dates)


class BusinessCalendar:
    """Counts working days: Monday to Friday, excluding holidays."""

    def __init__(self, holidays: HolidayProvider | None = None):
        self.holidays = holidays if holidays is not None else StaticHolidayProvider()

    @classmethod
    def from_settings(cls, settings: Settings) -> BusinessCalendar:
        if settings.holidays_file:
            return cls(StaticHolidayProvider.from_file(settings.holidays_file))
        return cls()

    def is_holiday(self, day: date | datetime) -> bool:
        return self.holidays.is_holiday(_as_date(day))

    def is_business_day(self, day: date | datetime) -> bool:
        d = _as_date(day)
        return d.isoweekday() <= 5 and not self.holidays.is_holiday(d)

    def count_business_days(self, start: date | datetime, end: date | datetime) -> int:
        """Count business days in ``[start, end]``, both ends inclusive.

        Times of day are ignored. Returns 0 when ``start`` is after ``end``.
        """
        current = _as_date(start)
        last = _as_date(end)
        count = 0
        while current <= last:
            if self.is_business_day(current):
                count += 1
            current += timedelta(days=1)
        return count

    def used_vacation_days(
        self,
        ranges: Iterable[tuple[date, date]],
        year: int,
    ) -> int:
        """Business days consumed by vacation ranges starting in ``year``."""
        return sum(
            self.count_business_days(start, end)
            for start, end in ranges
            if _as_date(start).year == year
        )

    def available_vacation_days(
        self,
        ranges: Iterable[tuple[date, date]],
        year: int,
        quota: int = DEFAULT_VACATION_QUOTA,
    ) -> int:
        return quota - self.used_vacation_days(ranges, year)

    def check_vacation_request(
        self,
        start: date | datetime,
        end: date | datetime,
        existing: Iterable[tuple[date, date]],
        quota: int = DEFAULT_VACATION_QUOTA,
    ) -> int:
        """Return the business days a request consumes, or raise if over quota."""
        requested = self.count_business_days(start, end)
        available = self.available_vacation_days(existing, _as_date(start).year, quota)
        if requested > available:
            raise VacationQuotaExceededError(requested, available)
        return requested
