"""Convenience exports for application schemas."""

from __future__ import annotations

from .auth import (
    LoginSchema,
    LogoutResponseSchema,
    LogoutSchema,
    PasswordCheckSchema,
    PasswordStrengthSchema,
    RefreshSchema,
    RegisterSchema,
    TokenResponseSchema,
    WhoAmISchema,
)
from .user import (
    AvailabilitySchema,
    ChangePasswordSchema,
    EmailQuerySchema,
    ProfileSchema,
    ProfileUpdateSchema,
    UsernameQuerySchema,
)

__all__ = [
    "AvailabilitySchema",
    "ChangePasswordSchema",
    "EmailQuerySchema",
    "LoginSchema",
    "LogoutResponseSchema",
    "LogoutSchema",
    "PasswordCheckSchema",
    "PasswordStrengthSchema",
    "ProfileSchema",
    "ProfileUpdateSchema",
    "RefreshSchema",
    "RegisterSchema",
    "TokenResponseSchema",
    "UsernameQuerySchema",
    "WhoAmISchema",
]
