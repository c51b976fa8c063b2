"""Payroll mapping, derivation and validation."""

from payroll_ledger.calculators.attendance import AttendanceAggregator, TimeEntry
from payroll_ledger.calculators.calendar import BusinessCalendar, StaticHolidayProvider
from payroll_ledger.calculators.deriver import DerivationPolicy, PayrollDeriver
from payroll_ledger.calculators.mapper import ColumnMapper, MappingError, apply_mapping
from payroll_ledger.calculators.money import parse_amount, parse_money, round_to_cents
from payroll_ledger.calculators.types import (
    BatchResult,
    CanonicalPayrollRow,
    RowStatus,
    ValidationResult,
)
from payroll_ledger.calculators.validator import LedgerValidator

__all__ = [
    "AttendanceAggregator",
    "TimeEntry",
    "BusinessCalendar",
    "StaticHolidayProvider",
    "DerivationPolicy",
    "PayrollDeriver",
    "ColumnMapper",
    "MappingError",
    "apply_mapping",
    "parse_amount",
    "parse_money",
    "round_to_cents",
    "BatchResult",
    "CanonicalPayrollRow",
    "RowStatus",
    "ValidationResult",
    "LedgerValidator",
]
