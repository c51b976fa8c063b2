"""ORM models."""

from payroll_ledger.models.base import Base, TimestampMixin
from payroll_ledger.models.payroll import AuditEvent, MappingProfile, PayrollBatch, PayrollRow

__all__ = [
    "Base",
    "TimestampMixin",
    "AuditEvent",
    "MappingProfile",
    "PayrollBatch",
    "PayrollRow",
]
