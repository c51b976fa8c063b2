"""SQLAlchemy-backed batch repository and mapping profile store.

Every public method runs in its own transaction, so each call is atomic:
``replace_batch_rows`` deletes, inserts and flips the batch status together
or not at all.
"""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from payroll_ledger.calculators.mapper import normalize_rules
from payroll_ledger.calculators.types import (
    BatchMeta,
    CanonicalPayrollRow,
    RowStatus,
)
from payroll_ledger.exceptions import BatchNotFoundError, RowNotFoundError
from payroll_ledger.models import MappingProfile, PayrollBatch, PayrollRow
from payroll_ledger.models.base import json_safe
from payroll_ledger.services.state_machine import BatchStateMachine


def row_to_model(row: CanonicalPayrollRow, line_number: int = 0) -> PayrollRow:
    return PayrollRow(
        payroll_row_id=row.row_id,
        batch_id=row.batch_id,
        line_number=line_number,
        employee_ref=row.employee_ref,
        raw_employee_name=row.raw_employee_name,
        gross=row.gross,
        employer_social_security=row.employer_social_security,
        employee_social_security=row.employee_social_security,
        income_tax_withholding=row.income_tax_withholding,
        net=row.net,
        attendance_proportion=row.attendance_proportion,
        extra_data=json_safe(row.extra_data),
        parse_failures=list(row.parse_failures),
        status=row.status.value,
        messages=list(row.messages),
    )


def model_to_row(model: PayrollRow) -> CanonicalPayrollRow:
    extra = model.extra_data or {}
    worked = extra.get("workedHours")
    expected = extra.get("expectedHours")
    return CanonicalPayrollRow(
        row_id=model.payroll_row_id,
        batch_id=model.batch_id,
        employee_ref=model.employee_ref,
        raw_employee_name=model.raw_employee_name,
        gross=model.gross,
        employer_social_security=model.employer_social_security,
        employee_social_security=model.employee_social_security,
        income_tax_withholding=model.income_tax_withholding,
        net=model.net,
        attendance_proportion=model.attendance_proportion,
        worked_hours=Decimal(worked) if worked is not None else None,
        expected_hours=Decimal(expected) if expected is not None else None,
        extra_data=extra,
        parse_failures=list(model.parse_failures or []),
        status=RowStatus(model.status),
        messages=list(model.messages or []),
    )


class SqlBatchRepository:
    """Persists payroll batches and their rows."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def create_batch(self, meta: BatchMeta) -> UUID:
        batch = PayrollBatch(
            company_id=meta.company_id,
            year=meta.year,
            month=meta.month,
            source=meta.source.value,
            source_filename=meta.source_filename,
            status=meta.status,
            created_by=meta.created_by,
        )
        async with self.session_factory.begin() as session:
            session.add(batch)
            await session.flush()
            return batch.batch_id

    async def get_batch(self, batch_id: UUID) -> PayrollBatch:
        async with self.session_factory() as session:
            batch = await session.get(PayrollBatch, batch_id)
            if batch is None:
                raise BatchNotFoundError(batch_id)
            return batch

    async def get_batch_status(self, batch_id: UUID) -> str | None:
        async with self.session_factory() as session:
            return await session.scalar(
                select(PayrollBatch.status).where(PayrollBatch.batch_id == batch_id)
            )

    async def set_batch_status(self, batch_id: UUID, status: str) -> None:
        async with self.session_factory.begin() as session:
            batch = await self._load_batch(session, batch_id)
            BatchStateMachine.validate_transition(batch.status, status)
            batch.status = status

    async def find_open_batch(self, company_id: str, year: int, month: int) -> UUID | None:
        async with self.session_factory() as session:
            result = await session.execute(
                select(PayrollBatch.batch_id)
                .where(
                    PayrollBatch.company_id == company_id,
                    PayrollBatch.year == year,
                    PayrollBatch.month == month,
                    PayrollBatch.status.not_in(
                        [s.value for s in BatchStateMachine.TERMINAL]
                    ),
                )
                .order_by(PayrollBatch.created_at.desc())
                .limit(1)
            )
            return result.scalar_one_or_none()

    async def replace_batch_rows(
        self,
        batch_id: UUID,
        rows: list[CanonicalPayrollRow],
        status: str | None = None,
    ) -> int:
        """Delete the batch's rows, insert ``rows`` and optionally set status."""
        foreign = [r.row_id for r in rows if r.batch_id != batch_id]
        if foreign:
            raise ValueError(
                f"{len(foreign)} row(s) belong to another batch than {batch_id}"
            )

        async with self.session_factory.begin() as session:
            batch = await self._load_batch(session, batch_id)
            if status is not None:
                BatchStateMachine.validate_transition(batch.status, status)

            await session.execute(delete(PayrollRow).where(PayrollRow.batch_id == batch_id))
            session.add_all(row_to_model(r, i) for i, r in enumerate(rows, start=1))

            if status is not None:
                batch.status = status
        return len(rows)

    async def list_rows(self, batch_id: UUID) -> list[CanonicalPayrollRow]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(PayrollRow)
                .where(PayrollRow.batch_id == batch_id)
                .order_by(PayrollRow.line_number)
            )
            return [model_to_row(m) for m in result.scalars().all()]

    async def get_row(self, row_id: UUID) -> CanonicalPayrollRow | None:
        async with self.session_factory() as session:
            model = await session.get(PayrollRow, row_id)
            return model_to_row(model) if model is not None else None

    async def update_row(self, row: CanonicalPayrollRow) -> None:
        """Persist edits to one row. The owning batch never changes."""
        async with self.session_factory.begin() as session:
            model = await session.get(PayrollRow, row.row_id)
            if model is None:
                raise RowNotFoundError(row.row_id)
            if model.batch_id != row.batch_id:
                raise ValueError(f"Row {row.row_id} cannot move to another batch")

            fresh = row_to_model(row)
            for column in PayrollRow.__table__.columns:
                if column.name in ("payroll_row_id", "batch_id", "line_number", "created_at"):
                    continue
                setattr(model, column.name, getattr(fresh, column.name))

    async def _load_batch(self, session: AsyncSession, batch_id: UUID) -> PayrollBatch:
        batch = await session.get(PayrollBatch, batch_id)
        if batch is None:
            raise BatchNotFoundError(batch_id)
        return batch


class SqlMappingProfileStore:
    """Named, reusable mapping rule sets."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def save(self, name: str, rules: dict[str, str]) -> UUID:
        """Create or overwrite a profile. Rules are checked before saving."""
        normalize_rules(rules)
        async with self.session_factory.begin() as session:
            profile = await session.scalar(
                select(MappingProfile).where(MappingProfile.name == name)
            )
            if profile is None:
                profile = MappingProfile(name=name, rules=dict(rules))
                session.add(profile)
            else:
                profile.rules = dict(rules)
            await session.flush()
            return profile.mapping_profile_id

    async def get(self, name: str) -> dict[str, str] | None:
        async with self.session_factory() as session:
            profile = await session.scalar(
                select(MappingProfile).where(MappingProfile.name == name)
            )
            return dict(profile.rules) if profile is not None else None

    async def list_names(self) -> list[str]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(MappingProfile.name).order_by(MappingProfile.created_at.desc())
            )
            return list(result.scalars().all())

    async def delete(self, name: str) -> bool:
        async with self.session_factory.begin() as session:
            result = await session.execute(
                delete(MappingProfile).where(MappingProfile.name == name)
            )
            return result.rowcount > 0
