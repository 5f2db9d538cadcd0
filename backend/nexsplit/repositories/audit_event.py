"""Audit event repository (append and simple lookups)."""

from __future__ import annotations

from sqlalchemy import select

from nexsplit.models.audit_event import AuditEvent
from nexsplit.repositories.base import BaseRepository


class AuditEventRepository(BaseRepository[AuditEvent]):
    model = AuditEvent

    def list_for_user(self, user_id: int, *, event_type: str | None = None) -> list[AuditEvent]:
        stmt = select(AuditEvent).where(AuditEvent.user_id == user_id)
        if event_type is not None:
            stmt = stmt.where(AuditEvent.event_type == event_type)
        stmt = stmt.order_by(AuditEvent.created_at.asc())
        return list(self.session.execute(stmt).scalars().all())
