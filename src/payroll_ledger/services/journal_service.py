"""Accounting journal entries for payroll rows.

One accrual entry per employee row, on the Spanish chart of accounts:

    640  Salaries            debit   gross
    642  Employer SS         debit   employer social security
    476  SS payable          credit  employer + employee social security
    4751 Income tax payable  credit  income tax withholding
    465  Salaries payable    credit  net (employee subaccount when known)
"""

from __future__ import annotations

import csv
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from decimal import Decimal
from typing import TextIO
from uuid import UUID

from payroll_ledger.calculators.types import (
    ZERO,
    CanonicalPayrollRow,
    EmployeeRecord,
    RowStatus,
)

ACCOUNT_SALARIES = "640.0.0000"
ACCOUNT_EMPLOYER_SS = "642.0.0000"
ACCOUNT_SS_PAYABLE = "476.0.0000"
ACCOUNT_INCOME_TAX = "475.1.0000"
DEFAULT_NET_ACCOUNT = "465.0.0000"

CSV_COLUMNS = ("entry", "line", "account", "concept", "debit", "credit")


@dataclass
class JournalLine:
    """A single debit or credit line."""

    line_number: int
    account: str
    concept: str
    debit: Decimal = ZERO
    credit: Decimal = ZERO


@dataclass
class JournalEntry:
    """Accrual entry for one payroll row."""

    batch_id: UUID
    row_id: UUID
    employee_ref: str | None
    concept: str
    lines: list[JournalLine] = field(default_factory=list)

    @property
    def total_debit(self) -> Decimal:
        return sum((line.debit for line in self.lines), ZERO)

    @property
    def total_credit(self) -> Decimal:
        return sum((line.credit for line in self.lines), ZERO)

    @property
    def is_balanced(self) -> bool:
        return self.total_debit == self.total_credit


class JournalService:
    """Builds and exports payroll journal entries.

    Entries are drafts for the accounting system: rows in ERROR are skipped
    by ``build_entries`` since their amounts do not balance.
    """

    def __init__(self, subaccounts: Mapping[str, str] | None = None):
        # employee_ref -> 465 subaccount
        self.subaccounts = dict(subaccounts or {})

    @classmethod
    def from_employees(cls, employees: Iterable[EmployeeRecord]) -> JournalService:
        """Service crediting net pay to each employee's own 465 subaccount."""
        return cls({e.employee_id: e.subaccount_465 for e in employees if e.subaccount_465})

    def net_account(self, row: CanonicalPayrollRow) -> str:
        if row.employee_ref and row.employee_ref in self.subaccounts:
            return self.subaccounts[row.employee_ref]
        return DEFAULT_NET_ACCOUNT

    def build_entry(
        self,
        row: CanonicalPayrollRow,
        subaccount: str | None = None,
    ) -> JournalEntry:
        """Build the five-line accrual entry for one row."""
        name = row.raw_employee_name
        total_ss = row.employer_social_security + row.employee_social_security

        specs = [
            (ACCOUNT_SALARIES, f"Payroll {name}", row.gross, ZERO),
            (ACCOUNT_EMPLOYER_SS, f"Employer SS {name}", row.employer_social_security, ZERO),
            (ACCOUNT_SS_PAYABLE, f"Total SS {name}", ZERO, total_ss),
            (ACCOUNT_INCOME_TAX, f"Income tax {name}", ZERO, row.income_tax_withholding),
            (subaccount or self.net_account(row), f"Net pay {name}", ZERO, row.net),
        ]
        lines = [
            JournalLine(line_number=i, account=account, concept=concept, debit=debit, credit=credit)
            for i, (account, concept, debit, credit) in enumerate(specs, start=1)
        ]

        return JournalEntry(
            batch_id=row.batch_id,
            row_id=row.row_id,
            employee_ref=row.employee_ref,
            concept=f"Monthly payroll - {name}",
            lines=lines,
        )

    def build_entries(self, rows: Iterable[CanonicalPayrollRow]) -> list[JournalEntry]:
        return [self.build_entry(row) for row in rows if row.status != RowStatus.ERROR]

    def export_csv(self, entries: Iterable[JournalEntry], stream: TextIO) -> int:
        """Write entries as CSV lines. Returns the number of lines written."""
        writer = csv.writer(stream)
        writer.writerow(CSV_COLUMNS)

        count = 0
        for number, entry in enumerate(entries, start=1):
            for line in entry.lines:
                writer.writerow([
                    number,
                    line.line_number,
                    line.account,
                    line.concept,
                    f"{line.debit:.2f}",
                    f"{line.credit:.2f}",
                ])
                count += 1
        return count
