"""Maps free-form spreadsheet rows onto canonical payroll rows."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any
from uuid import UUID

from payroll_ledger.calculators.money import parse_amount
from payroll_ledger.calculators.types import (
    MONEY_FIELDS,
    CanonicalPayrollRow,
    RowStatus,
)
from payroll_ledger.exceptions import PayrollLedgerError

UNKNOWN_EMPLOYEE_NAME = "N/A"

# Names accepted as mapping keys -> canonical target field.
# Saved mapping profiles use the Spanish payroll vocabulary.
TARGET_FIELD_ALIASES: dict[str, str] = {
    "employee_name": "employee_name",
    "employeeName": "employee_name",
    "employee_ref": "employee_ref",
    "employeeId": "employee_ref",
    "gross": "gross",
    "bruto": "gross",
    "employer_social_security": "employer_social_security",
    "ssEmpresa": "employer_social_security",
    "employee_social_security": "employee_social_security",
    "ssTrabajador": "employee_social_security",
    "income_tax_withholding": "income_tax_withholding",
    "irpf": "income_tax_withholding",
    "net": "net",
    "neto": "net",
}


class MappingError(PayrollLedgerError):
    """Raised when mapping rules reference an unknown target field."""

    def __init__(self, unknown_fields: list[str]):
        self.unknown_fields = unknown_fields
        super().__init__(
            f"Unknown target field(s) in mapping rules: {', '.join(unknown_fields)}"
        )


def normalize_rules(mapping_rules: Mapping[str, str | None]) -> dict[str, str]:
    """Resolve aliases to canonical target fields.

    Targets with an empty source column are dropped: a partially configured
    mapping is normal while the user is still setting it up.
    """
    unknown = sorted(k for k in mapping_rules if k not in TARGET_FIELD_ALIASES)
    if unknown:
        raise MappingError(unknown)

    rules: dict[str, str] = {}
    for target, source in mapping_rules.items():
        if source:
            rules[TARGET_FIELD_ALIASES[target]] = source
    return rules


def _text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


class ColumnMapper:
    """Converts raw rows into canonical payroll rows.

    Mapping never validates: every row comes out ``PENDING`` and the caller
    runs the ledger validator as a separate step.
    """

    def __init__(self, mapping_rules: Mapping[str, str | None]):
        self.rules = normalize_rules(mapping_rules)

    def _value(self, row: Mapping[str, Any], target: str) -> Any:
        source = self.rules.get(target)
        if source is None:
            return None
        return row.get(source)

    def map_row(self, row: Mapping[str, Any], batch_id: UUID) -> CanonicalPayrollRow:
        """Map a single raw row."""
        amounts = {}
        parse_failures = []
        for name in MONEY_FIELDS:
            amount, ok = parse_amount(self._value(row, name))
            amounts[name] = amount
            if not ok:
                parse_failures.append(name)

        return CanonicalPayrollRow(
            batch_id=batch_id,
            raw_employee_name=_text(self._value(row, "employee_name")) or UNKNOWN_EMPLOYEE_NAME,
            employee_ref=_text(self._value(row, "employee_ref")),
            extra_data=dict(row),
            status=RowStatus.PENDING,
            parse_failures=parse_failures,
            **amounts,
        )

    def apply(
        self, raw_rows: Iterable[Mapping[str, Any]], batch_id: UUID
    ) -> list[CanonicalPayrollRow]:
        return [self.map_row(row, batch_id) for row in raw_rows]


def apply_mapping(
    raw_rows: Iterable[Mapping[str, Any]],
    mapping_rules: Mapping[str, str | None],
    batch_id: UUID,
) -> list[CanonicalPayrollRow]:
    """Apply mapping rules (target field -> source column) to raw rows."""
    return ColumnMapper(mapping_rules).apply(raw_rows, batch_id)
