"""Payroll batch, row, mapping profile and audit models."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from payroll_ledger.models.base import Base, JSONType, TimestampMixin

MONEY = Numeric(14, 2)


class PayrollBatch(Base, TimestampMixin):
    """A batch of payroll rows for one company and month.

    The batch is the unit of atomic replacement: its rows are deleted and
    recreated together, never patched individually across a re-mapping.
    """

    __tablename__ = "payroll_batch"

    batch_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    company_id: Mapped[str] = mapped_column(String, nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    month: Mapped[int] = mapped_column(Integer, nullable=False)
    source: Mapped[str] = mapped_column(String, nullable=False)
    source_filename: Mapped[str | None] = mapped_column(String, nullable=True)
    status: Mapped[str] = mapped_column(String, nullable=False)
    created_by: Mapped[str | None] = mapped_column(String, nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ('UPLOADED', 'MAPPED', 'GENERATING', 'VALID', 'ERROR', 'CLOSED')",
            name="payroll_batch_status_check",
        ),
        CheckConstraint(
            "source IN ('upload', 'attendance')",
            name="payroll_batch_source_check",
        ),
        CheckConstraint("month BETWEEN 1 AND 12", name="payroll_batch_month_check"),
        Index("payroll_batch_period_idx", "company_id", "year", "month"),
    )

    # Relationships
    rows: Mapped[list[PayrollRow]] = relationship(
        back_populates="batch",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class PayrollRow(Base, TimestampMixin):
    """One employee's pay for one period, as received or derived."""

    __tablename__ = "payroll_row"

    payroll_row_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    batch_id: Mapped[UUID] = mapped_column(
        ForeignKey("payroll_batch.batch_id", ondelete="CASCADE"),
        nullable=False,
    )
    # Position of the row in its source file or derivation run
    line_number: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    employee_ref: Mapped[str | None] = mapped_column(String, nullable=True)
    raw_employee_name: Mapped[str] = mapped_column(String, nullable=False)

    gross: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))
    employer_social_security: Mapped[Decimal] = mapped_column(
        MONEY, nullable=False, default=Decimal("0")
    )
    employee_social_security: Mapped[Decimal] = mapped_column(
        MONEY, nullable=False, default=Decimal("0")
    )
    income_tax_withholding: Mapped[Decimal] = mapped_column(
        MONEY, nullable=False, default=Decimal("0")
    )
    net: Mapped[Decimal] = mapped_column(MONEY, nullable=False, default=Decimal("0"))

    attendance_proportion: Mapped[Decimal | None] = mapped_column(
        Numeric(10, 6), nullable=True
    )
    extra_data: Mapped[dict[str, Any]] = mapped_column(JSONType, nullable=False, default=dict)
    parse_failures: Mapped[list[str]] = mapped_column(JSONType, nullable=False, default=list)
    status: Mapped[str] = mapped_column(String, nullable=False, default="PENDING")
    messages: Mapped[list[str]] = mapped_column(JSONType, nullable=False, default=list)

    __table_args__ = (
        CheckConstraint(
            "status IN ('PENDING', 'OK', 'WARNING', 'ERROR')",
            name="payroll_row_status_check",
        ),
        Index("payroll_row_batch_idx", "batch_id"),
    )

    # Relationships
    batch: Mapped[PayrollBatch] = relationship(back_populates="rows")


class MappingProfile(Base, TimestampMixin):
    """A saved set of target-field -> source-column rules."""

    __tablename__ = "mapping_profile"

    mapping_profile_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    rules: Mapped[dict[str, str]] = mapped_column(JSONType, nullable=False, default=dict)


class AuditEvent(Base, TimestampMixin):
    """Audit trail entry."""

    __tablename__ = "audit_event"

    audit_event_id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    actor_id: Mapped[str | None] = mapped_column(String, nullable=True)
    entity_type: Mapped[str] = mapped_column(String, nullable=False)
    entity_id: Mapped[str] = mapped_column(String, nullable=False)
    action: Mapped[str] = mapped_column(String, nullable=False)
    metadata_json: Mapped[dict[str, Any] | None] = mapped_column(JSONType, nullable=True)
