"""Tests for the best-effort audit trail."""

from __future__ import annotations

import logging

from nexsplit.models.audit_event import AuditEvent, EventCategory, Severity
from nexsplit.services.audit.service import AuditService
from sqlalchemy.exc import OperationalError

from tests.factories.user import UserFactory


class TestAuditService:
    def test_record_persists_event(self, session):
        user = UserFactory()

        AuditService().record(
            "LOGIN_SUCCESS",
            EventCategory.AUTHENTICATION,
            Severity.LOW,
            user_id=user.id,
            details="ok",
            ip_address="10.0.0.1",
            user_agent="ua/1",
        )

        event = session.query(AuditEvent).one()
        assert event.user_id == user.id
        assert event.event_category == "AUTHENTICATION"
        assert event.severity == "LOW"
        assert event.ip_address == "10.0.0.1"
        assert event.created_at is not None

    def test_critical_events_log_at_error(self, session, caplog):
        with caplog.at_level(logging.INFO, logger="nexsplit.services.audit.service"):
            AuditService().record("TOKEN_REUSE_DETECTED", EventCategory.SECURITY, Severity.CRITICAL)

        record = next(r for r in caplog.records if getattr(r, "event", None) == "TOKEN_REUSE_DETECTED")
        assert record.levelno == logging.ERROR

    def test_persistence_failure_is_swallowed(self, session, monkeypatch, caplog):
        class _FailingUoW:
            def __enter__(self):
                raise OperationalError("INSERT", {}, Exception("disk I/O error"))

            def __exit__(self, *exc_info):
                return False

        service = AuditService()
        monkeypatch.setattr(service, "rw_uow", _FailingUoW)

        with caplog.at_level(logging.ERROR, logger="nexsplit.services.audit.service"):
            service.record("LOGOUT", EventCategory.AUTHENTICATION, Severity.LOW)

        assert any("Failed to persist audit event" in r.getMessage() for r in caplog.records)
        assert session.query(AuditEvent).count() == 0
