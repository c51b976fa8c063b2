"""Configuration management for the payroll ledger engine."""

from __future__ import annotations

import os
from dataclasses import dataclass
from decimal import Decimal
from functools import lru_cache

from dotenv import load_dotenv


@dataclass(frozen=True)
class Settings:
    """Application settings loaded from environment."""

    database_url: str
    log_level: str

    # Ledger check
    ledger_tolerance: Decimal

    # Attendance derivation
    proportion_cap: Decimal
    low_attendance_threshold: Decimal
    fallback_expected_hours: Decimal
    weeks_per_month: Decimal

    # Fixed-rate decomposition (approximation, not a tax table)
    employee_ss_rate: Decimal
    income_tax_rate: Decimal
    employer_ss_rate: Decimal

    holidays_file: str | None = None

    @classmethod
    def from_env(cls) -> Settings:
        """Load settings from environment variables."""
        load_dotenv()

        return cls(
            database_url=os.getenv(
                "DATABASE_URL",
                "sqlite+aiosqlite:///./payroll_ledger.db",
            ),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            ledger_tolerance=Decimal(os.getenv("LEDGER_TOLERANCE", "0.05")),
            proportion_cap=Decimal(os.getenv("PROPORTION_CAP", "1.10")),
            low_attendance_threshold=Decimal(
                os.getenv("LOW_ATTENDANCE_THRESHOLD", "0.80")
            ),
            fallback_expected_hours=Decimal(
                os.getenv("FALLBACK_EXPECTED_HOURS", "160")
            ),
            weeks_per_month=Decimal(os.getenv("WEEKS_PER_MONTH", "4.33")),
            employee_ss_rate=Decimal(os.getenv("EMPLOYEE_SS_RATE", "0.0635")),
            income_tax_rate=Decimal(os.getenv("INCOME_TAX_RATE", "0.15")),
            employer_ss_rate=Decimal(os.getenv("EMPLOYER_SS_RATE", "0.236")),
            holidays_file=os.getenv("HOLIDAYS_FILE") or None,
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings.from_env()
