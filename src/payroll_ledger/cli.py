"""Payroll ledger command line interface.

Provides operational tools for:
- Mapping a spreadsheet export onto canonical payroll rows
- Validating an export against the ledger rules
- Exporting journal entries
- Business-day counts
- Database schema creation

Usage:
    python -m payroll_ledger headers nominas.xlsx
    python -m payroll_ledger map nominas.xlsx --rules rules.json
    python -m payroll_ledger validate nominas.csv --rules rules.json
    python -m payroll_ledger journal nominas.xlsx --rules rules.json --output asientos.csv
    python -m payroll_ledger business-days 2025-04-01 2025-04-30
    python -m payroll_ledger init-db
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from datetime import date, timedelta
from pathlib import Path
from typing import Callable
from uuid import uuid4

from payroll_ledger.calculators.calendar import BusinessCalendar
from payroll_ledger.calculators.mapper import MappingError, apply_mapping
from payroll_ledger.calculators.types import CanonicalPayrollRow, RowStatus
from payroll_ledger.calculators.validator import LedgerValidator
from payroll_ledger.config import Settings, get_settings
from payroll_ledger.database import create_schema, get_engine
from payroll_ledger.schemas import BatchReport, BusinessDaysResponse, dump
from payroll_ledger.services.journal_service import JournalService
from payroll_ledger.spreadsheet import read_headers, read_rows

logger = logging.getLogger(__name__)


def parse_date(s: str) -> date:
    """Parse ISO date string."""
    return date.fromisoformat(s)


def load_rules(path: str) -> dict[str, str]:
    """Load mapping rules (target field -> source column) from a JSON file."""
    with open(path, encoding="utf-8") as f:
        rules = json.load(f)
    if not isinstance(rules, dict):
        raise ValueError(f"{path}: mapping rules must be a JSON object")
    return rules


class PayrollCli:
    """Payroll ledger command line interface."""

    def __init__(self, settings: Settings | None = None) -> None:
        self.settings = settings or get_settings()
        self.parser = self._build_parser()

    def _build_parser(self) -> argparse.ArgumentParser:
        """Build argument parser."""
        parser = argparse.ArgumentParser(
            prog="python -m payroll_ledger",
            description="Payroll mapping and ledger-integrity tools",
        )
        subparsers = parser.add_subparsers(dest="command", help="Commands")

        # headers command
        headers = subparsers.add_parser(
            "headers",
            help="List the columns of a spreadsheet export",
        )
        headers.add_argument("file", type=str, help="XLSX or CSV file")
        headers.add_argument("--sheet", type=str, help="Worksheet name (default: active)")

        # map / validate / journal share the input arguments
        for name, help_text in (
            ("map", "Map and validate a spreadsheet, printing the rows as JSON"),
            ("validate", "Validate a spreadsheet; exit code 1 if any row is in ERROR"),
            ("journal", "Export journal entries for the rows that pass validation"),
        ):
            cmd = subparsers.add_parser(name, help=help_text)
            cmd.add_argument("file", type=str, help="XLSX or CSV file")
            cmd.add_argument(
                "--rules",
                type=str,
                required=True,
                help="JSON file with mapping rules (target field -> source column)",
            )
            cmd.add_argument("--sheet", type=str, help="Worksheet name (default: active)")
            if name == "journal":
                cmd.add_argument(
                    "--output",
                    type=str,
                    help="Output CSV path (default: stdout)",
                )

        # business-days command
        days = subparsers.add_parser(
            "business-days",
            help="Count business days between two dates (inclusive)",
        )
        days.add_argument("start", type=parse_date, help="Start date (YYYY-MM-DD)")
        days.add_argument("end", type=parse_date, help="End date (YYYY-MM-DD)")

        # init-db command
        init_db = subparsers.add_parser(
            "init-db",
            help="Create database tables",
        )
        init_db.add_argument(
            "--database-url",
            type=str,
            help="Database URL (default: $DATABASE_URL)",
        )

        return parser

    def run(self, args: list[str] | None = None) -> int:
        """Run the CLI with given arguments."""
        parsed = self.parser.parse_args(args)

        if not parsed.command:
            self.parser.print_help()
            return 1

        # Dispatch to command handler
        handlers: dict[str, Callable[..., int]] = {
            "headers": self._cmd_headers,
            "map": self._cmd_map,
            "validate": self._cmd_validate,
            "journal": self._cmd_journal,
            "business-days": self._cmd_business_days,
            "init-db": self._cmd_init_db,
        }

        handler = handlers.get(parsed.command)
        if handler is None:
            print(f"Unknown command: {parsed.command}", file=sys.stderr)
            return 1

        try:
            return handler(parsed)
        except (MappingError, ValueError, OSError) as e:
            print(f"ERROR: {e}", file=sys.stderr)
            return 2

    def _load_validated_rows(self, args: argparse.Namespace) -> list[CanonicalPayrollRow]:
        raw_rows = read_rows(args.file, sheet=args.sheet)
        rows = apply_mapping(raw_rows, load_rules(args.rules), uuid4())
        LedgerValidator.from_settings(self.settings).apply(rows)
        logger.info("Read %d rows from %s", len(rows), args.file)
        return rows

    def _cmd_headers(self, args: argparse.Namespace) -> int:
        """List spreadsheet columns."""
        for header in read_headers(args.file, sheet=args.sheet):
            print(header)
        return 0

    def _cmd_map(self, args: argparse.Namespace) -> int:
        """Map and validate, printing the batch report as JSON."""
        rows = self._load_validated_rows(args)
        batch_id = rows[0].batch_id if rows else uuid4()
        report = BatchReport.from_rows(batch_id, rows, source=Path(args.file).name)
        print(json.dumps(dump(report), indent=2, ensure_ascii=False))
        return 0

    def _cmd_validate(self, args: argparse.Namespace) -> int:
        """Print non-OK rows and a summary line."""
        rows = self._load_validated_rows(args)

        for index, row in enumerate(rows, start=1):
            if row.status == RowStatus.OK:
                continue
            print(f"Row {index} [{row.status.value}] {row.raw_employee_name}")
            for message in row.messages:
                print(f"  - {message}")

        counts = {s.value: 0 for s in (RowStatus.OK, RowStatus.WARNING, RowStatus.ERROR)}
        for row in rows:
            counts[row.status.value] += 1
        print(
            f"\n{len(rows)} rows: {counts['OK']} OK, "
            f"{counts['WARNING']} WARNING, {counts['ERROR']} ERROR"
        )

        return 1 if counts["ERROR"] else 0

    def _cmd_journal(self, args: argparse.Namespace) -> int:
        """Export journal entries as CSV."""
        rows = self._load_validated_rows(args)
        service = JournalService()
        entries = service.build_entries(rows)

        if args.output:
            with open(args.output, "w", encoding="utf-8", newline="") as f:
                count = service.export_csv(entries, f)
            print(f"Wrote {len(entries)} entries ({count} lines) to {args.output}")
        else:
            service.export_csv(entries, sys.stdout)

        skipped = len(rows) - len(entries)
        if skipped:
            print(f"Skipped {skipped} row(s) in ERROR", file=sys.stderr)
        return 0

    def _cmd_business_days(self, args: argparse.Namespace) -> int:
        """Count business days."""
        calendar = BusinessCalendar.from_settings(self.settings)
        count = calendar.count_business_days(args.start, args.end)

        holidays = []
        day = args.start
        while day <= args.end:
            if calendar.is_holiday(day) and day.isoweekday() <= 5:
                holidays.append(day)
            day += timedelta(days=1)

        response = BusinessDaysResponse(
            start=args.start,
            end=args.end,
            business_days=count,
            holidays=holidays,
        )
        print(json.dumps(dump(response), indent=2))
        return 0

    def _cmd_init_db(self, args: argparse.Namespace) -> int:
        """Create all tables."""
        engine = get_engine(args.database_url)

        async def _create() -> None:
            try:
                await create_schema(engine)
            finally:
                await engine.dispose()

        asyncio.run(_create())
        print("Schema created.")
        return 0


def main() -> int:
    """CLI entry point."""
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    cli = PayrollCli(settings)
    return cli.run()


if __name__ == "__main__":
    sys.exit(main())
