"""Security audit trail."""

from __future__ import annotations

import logging

from sqlalchemy.exc import SQLAlchemyError

from nexsplit.models.audit_event import AuditEvent, EventCategory, Severity
from nexsplit.services._shared.base import BaseService

log = logging.getLogger(__name__)

_LEVELS = {
    Severity.LOW: logging.INFO,
    Severity.MEDIUM: logging.INFO,
    Severity.HIGH: logging.WARNING,
    Severity.CRITICAL: logging.ERROR,
}


class AuditService(BaseService):
    """
    Persist and log security-relevant events.

    Recording is best effort: a failing write is logged and swallowed so the
    authentication flow that triggered it is never interrupted.
    """

    def record(
        self,
        event_type: str,
        category: EventCategory,
        severity: Severity,
        *,
        user_id: int | None = None,
        details: str | None = None,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> None:
        log.log(
            _LEVELS[severity],
            "Audit %s/%s: %s",
            category.value,
            event_type,
            details or "",
            extra={"event": event_type, "user_id": user_id},
        )
        try:
            with self.rw_uow() as uow:
                uow.audit_events.add(
                    AuditEvent(
                        user_id=user_id,
                        event_type=event_type,
                        event_category=category.value,
                        severity=severity.value,
                        details=details,
                        ip_address=ip_address,
                        user_agent=user_agent,
                    )
                )
        except SQLAlchemyError:
            log.error(
                "Failed to persist audit event %s",
                event_type,
                exc_info=True,
                extra={"event": event_type, "user_id": user_id},
            )
