from nexsplit.models.audit_event import AuditEvent, EventCategory, Severity
from nexsplit.models.refresh_token import RefreshToken
from nexsplit.models.user import User

__all__ = [
    "AuditEvent",
    "EventCategory",
    "RefreshToken",
    "Severity",
    "User",
]
