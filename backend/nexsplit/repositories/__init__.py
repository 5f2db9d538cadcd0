from .audit_event import AuditEventRepository
from .refresh_token import RefreshTokenRepository
from .user import UserRepository

__all__ = [
    "AuditEventRepository",
    "RefreshTokenRepository",
    "UserRepository",
]
