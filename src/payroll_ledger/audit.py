"""Audit trail sink."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from payroll_ledger.models import AuditEvent
from payroll_ledger.models.base import json_safe

if TYPE_CHECKING:
    from payroll_ledger.interfaces import AuditSink

logger = logging.getLogger(__name__)


class SqlAuditSink:
    """Writes audit events to the ``audit_event`` table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def record(
        self,
        action: str,
        entity_type: str,
        entity_id: str,
        metadata: dict[str, Any] | None = None,
        actor_id: str | None = None,
    ) -> None:
        async with self.session_factory.begin() as session:
            session.add(
                AuditEvent(
                    action=action,
                    entity_type=entity_type,
                    entity_id=entity_id,
                    metadata_json=json_safe(metadata) if metadata else None,
                    actor_id=actor_id,
                )
            )


async def record_quietly(
    audit: AuditSink | None,
    action: str,
    entity_type: str,
    entity_id: str,
    metadata: dict[str, Any] | None = None,
    actor_id: str | None = None,
) -> None:
    """Record an audit event; a failing sink never fails the payroll operation."""
    if audit is None:
        return
    try:
        await audit.record(action, entity_type, entity_id, metadata, actor_id)
    except Exception:
        logger.exception("Audit record %s failed for %s %s", action, entity_type, entity_id)
