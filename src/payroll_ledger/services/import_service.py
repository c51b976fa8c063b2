"""Import service - lifecycle of spreadsheet-sourced payroll batches."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import TYPE_CHECKING, Any
from uuid import UUID

from payroll_ledger.audit import record_quietly
from payroll_ledger.calculators.mapper import ColumnMapper
from payroll_ledger.calculators.money import parse_amount
from payroll_ledger.calculators.types import (
    MONEY_FIELDS,
    BatchMeta,
    BatchSource,
    CanonicalPayrollRow,
    ValidationResult,
)
from payroll_ledger.calculators.validator import LedgerValidator
from payroll_ledger.exceptions import (
    BatchAlreadyOpenError,
    BatchLockedError,
    BatchNotFoundError,
    RowNotFoundError,
)
from payroll_ledger.services.state_machine import BatchStateMachine, BatchStatus

if TYPE_CHECKING:
    from payroll_ledger.config import Settings
    from payroll_ledger.interfaces import AuditSink, BatchRepository
    from payroll_ledger.repository import SqlMappingProfileStore

logger = logging.getLogger(__name__)

AUDIT_ENTITY = "PAYROLL_BATCH"

EDITABLE_FIELDS = frozenset({"employee_ref", "raw_employee_name", *MONEY_FIELDS})


class ImportService:
    """Service for batches built from an uploaded spreadsheet.

    Operations:
    - create_upload_batch: Register the upload (UPLOADED)
    - apply_mapping: Map raw rows, replacing any earlier rows (MAPPED)
    - validate_batch: Run the ledger validator and persist verdicts (VALID)
    - edit_row: Manually correct one row; the row is re-validated on save
    - close_batch: Freeze a validated batch (CLOSED)
    """

    def __init__(
        self,
        repository: BatchRepository,
        audit: AuditSink | None = None,
        validator: LedgerValidator | None = None,
        profiles: SqlMappingProfileStore | None = None,
    ):
        self.repository = repository
        self.audit = audit
        self.validator = validator or LedgerValidator()
        self.profiles = profiles

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        repository: BatchRepository,
        audit: AuditSink | None = None,
        profiles: SqlMappingProfileStore | None = None,
    ) -> ImportService:
        """Service validating with the configured tolerance and threshold."""
        return cls(
            repository,
            audit=audit,
            validator=LedgerValidator.from_settings(settings),
            profiles=profiles,
        )

    async def create_upload_batch(
        self,
        company_id: str,
        year: int,
        month: int,
        source_filename: str | None = None,
        actor_id: str | None = None,
    ) -> UUID:
        """Create an UPLOADED batch, refusing if the period already has an open one."""
        existing = await self.repository.find_open_batch(company_id, year, month)
        if existing is not None:
            raise BatchAlreadyOpenError(company_id, year, month, existing)

        batch_id = await self.repository.create_batch(
            BatchMeta(
                company_id=company_id,
                year=year,
                month=month,
                source=BatchSource.UPLOAD,
                status=BatchStatus.UPLOADED.value,
                source_filename=source_filename,
                created_by=actor_id,
            )
        )
        logger.info("Created upload batch %s from %s", batch_id, source_filename)

        await record_quietly(
            self.audit,
            "UPLOAD_PAYROLL",
            AUDIT_ENTITY,
            str(batch_id),
            {"filename": source_filename, "year": year, "month": month},
            actor_id,
        )
        return batch_id

    async def resolve_rules(
        self,
        mapping_rules: Mapping[str, str | None] | None = None,
        profile_name: str | None = None,
    ) -> Mapping[str, str | None]:
        """Explicit rules win; otherwise load the named mapping profile."""
        if mapping_rules is not None:
            return mapping_rules
        if profile_name is None:
            raise ValueError("Either mapping_rules or profile_name is required")
        if self.profiles is None:
            raise ValueError("No mapping profile store configured")

        rules = await self.profiles.get(profile_name)
        if rules is None:
            raise LookupError(f"Mapping profile '{profile_name}' not found")
        return rules

    async def apply_mapping(
        self,
        batch_id: UUID,
        raw_rows: Iterable[Mapping[str, Any]],
        mapping_rules: Mapping[str, str | None] | None = None,
        profile_name: str | None = None,
        actor_id: str | None = None,
    ) -> list[CanonicalPayrollRow]:
        """Map raw rows into the batch. Rows are stored PENDING, unvalidated."""
        rules = await self.resolve_rules(mapping_rules, profile_name)
        mapper = ColumnMapper(rules)
        rows = mapper.apply(raw_rows, batch_id)

        count = await self.repository.replace_batch_rows(
            batch_id, rows, status=BatchStatus.MAPPED.value
        )
        logger.info("Mapped %d rows into batch %s", count, batch_id)

        await record_quietly(
            self.audit,
            "APPLY_MAPPING",
            AUDIT_ENTITY,
            str(batch_id),
            {"rowsCreated": count, "profile": profile_name},
            actor_id,
        )
        return rows

    async def validate_batch(
        self,
        batch_id: UUID,
        actor_id: str | None = None,
    ) -> list[ValidationResult]:
        """Validate every row of a MAPPED batch and flip it to VALID.

        Rows with ERROR status are kept and persisted with their messages;
        the batch status reflects that validation ran, not that it passed.
        """
        rows = await self.repository.list_rows(batch_id)
        results = self.validator.apply(rows)
        await self.repository.replace_batch_rows(
            batch_id, rows, status=BatchStatus.VALID.value
        )

        errors = sum(1 for r in results if r.is_error)
        logger.info(
            "Validated batch %s: %d rows, %d with errors", batch_id, len(results), errors
        )

        await record_quietly(
            self.audit,
            "VALIDATE_PAYROLL",
            AUDIT_ENTITY,
            str(batch_id),
            {"rows": len(results), "errors": errors},
            actor_id,
        )
        return results

    async def edit_row(
        self,
        row_id: UUID,
        changes: Mapping[str, Any],
        actor_id: str | None = None,
    ) -> CanonicalPayrollRow:
        """Apply manual corrections to a row and re-validate it.

        Only names, employee reference and monetary amounts are editable.
        Monetary values are parsed like spreadsheet cells, but unreadable
        input is rejected rather than defaulted to zero.
        """
        if "batch_id" in changes:
            raise ValueError("A row cannot be moved to another batch")
        unknown = sorted(set(changes) - EDITABLE_FIELDS)
        if unknown:
            raise ValueError(f"Fields not editable: {', '.join(unknown)}")

        row = await self.repository.get_row(row_id)
        if row is None:
            raise RowNotFoundError(row_id)

        status = await self.repository.get_batch_status(row.batch_id)
        if status is None:
            raise BatchNotFoundError(row.batch_id)
        if not BatchStateMachine.can_modify_rows(status):
            raise BatchLockedError(row.batch_id, status)

        for name, value in changes.items():
            if name in MONEY_FIELDS:
                amount, ok = parse_amount(value)
                if not ok:
                    raise ValueError(f"Could not parse amount for {name}: {value!r}")
                setattr(row, name, amount)
                if name in row.parse_failures:
                    row.parse_failures.remove(name)
            elif name == "employee_ref":
                ref = str(value).strip() if value is not None else ""
                row.employee_ref = ref or None
            else:
                row.raw_employee_name = str(value).strip()

        result = self.validator.validate_row(row)
        row.status = result.status
        row.messages = list(result.messages)
        await self.repository.update_row(row)

        await record_quietly(
            self.audit,
            "EDIT_PAYROLL_ROW",
            "PAYROLL_ROW",
            str(row_id),
            {"batchId": str(row.batch_id), "fields": sorted(changes), "status": row.status.value},
            actor_id,
        )
        return row

    async def close_batch(self, batch_id: UUID, actor_id: str | None = None) -> None:
        """Close a validated batch. Closed batches accept no further changes."""
        await self.repository.set_batch_status(batch_id, BatchStatus.CLOSED.value)
        logger.info("Closed batch %s", batch_id)

        await record_quietly(
            self.audit, "CLOSE_PAYROLL", AUDIT_ENTITY, str(batch_id), None, actor_id
        )
