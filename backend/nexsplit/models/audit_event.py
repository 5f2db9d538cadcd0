"""Audit trail of security-relevant events."""

from __future__ import annotations

import enum
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from nexsplit.core.extensions import db

from .base import ReprMixin, UUIDPKMixin


class EventCategory(str, enum.Enum):
    AUTHENTICATION = "AUTHENTICATION"
    SECURITY = "SECURITY"
    USER_ACTION = "USER_ACTION"
    SYSTEM = "SYSTEM"


class Severity(str, enum.Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


class AuditEvent(UUIDPKMixin, ReprMixin, db.Model):
    """
    Append-only audit record.

    ``user_id`` is nullable (failed logins for unknown e-mails) and survives
    user deletion as ``NULL``.
    """

    __tablename__ = "audit_events"

    user_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True
    )
    event_type: Mapped[str] = mapped_column(String(64), nullable=False)
    event_category: Mapped[str] = mapped_column(String(32), nullable=False)
    severity: Mapped[str] = mapped_column(String(16), nullable=False)
    details: Mapped[str | None] = mapped_column(Text, nullable=True)
    ip_address: Mapped[str | None] = mapped_column(String(45), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    __table_args__ = (
        Index("ix_audit_events_user_id", "user_id"),
        Index("ix_audit_events_event_type", "event_type"),
    )
