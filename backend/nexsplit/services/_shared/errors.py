"""
Domain-level exceptions used within the service layer.

These exceptions are **framework-agnostic** and should never import or depend
on Flask or HTTP directly. They serve as stable contracts between
repositories, token stores, the rotation engine and application services.

The translation to HTTP responses (RFC 7807) is handled by
``BaseService.translate_exceptions()``.
"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy.exc import IntegrityError


def violates(exc: IntegrityError, constraint_name: str) -> bool:
    """
    Check whether an IntegrityError originates from a specific constraint.

    Parameters
    ----------
    exc : IntegrityError
        The exception raised by SQLAlchemy during flush/commit.
    constraint_name : str
        The name of the database constraint to match (e.g., 'uq_users_email').

    Returns
    -------
    bool
        True if the IntegrityError matches the given constraint.
    """
    # Some dialects (PostgreSQL) include constraint name in the error message
    message = str(exc.orig).lower() if exc.orig else ""
    return constraint_name.lower() in message


class ConfigurationError(Exception):
    """
    Raised at startup when security-relevant configuration is unusable.

    Not a :class:`ServiceError`: it is never translated into an HTTP response
    and must abort application construction.
    """


# --------------------------------------------------------------------------- #
# Base types
# --------------------------------------------------------------------------- #


class ServiceError(Exception):
    """
    Base class for all service-level errors.

    Notes
    -----
    - These are *not* HTTP errors.
    - They can be safely raised from repositories, stores or domain logic.
    - The API layer translates them through ``BaseService.translate_exceptions``.
    """

    pass


@dataclass(slots=True)
class NotFoundError(ServiceError):
    """
    Raised when an entity is not found in the repository.

    :param entity: Entity name (e.g., "User").
    :type entity: str
    :param key: Identifier or search key.
    :type key: str | int
    """

    entity: str
    key: str | int

    def __str__(self) -> str:
        return f"{self.entity} not found: {self.key}"


@dataclass(slots=True)
class ConflictError(ServiceError):
    """
    Raised when a unique constraint or business rule conflict occurs.

    :param entity: Entity name (e.g., "User").
    :type entity: str
    :param detail: Short human-readable explanation.
    :type detail: str
    """

    entity: str
    detail: str

    def __str__(self) -> str:
        return f"Conflict on {self.entity}: {self.detail}"


class WeakPasswordError(ServiceError):
    """Raised when a new password fails the strength policy."""

    def __init__(self, message: str, *, prefix: str = "Password is not strong enough.") -> None:
        super().__init__(f"{prefix} {message}")
        self.reason = message


class StoreUnavailableError(ServiceError):
    """
    Transient failure of the token store backend (connectivity, timeouts).

    Distinct from authentication failures: the caller may retry the request.
    """


# --------------------------------------------------------------------------- #
# Authentication errors
# --------------------------------------------------------------------------- #


class AuthenticationError(ServiceError):
    """Base class for every failure that requires the caller to re-authenticate."""


class InvalidCredentialsError(AuthenticationError):
    """Unknown e-mail, wrong password or inactive account."""

    def __init__(self, message: str = "Invalid credentials") -> None:
        super().__init__(message)


class InvalidRefreshTokenError(AuthenticationError):
    """Refresh token is unknown, expired or already revoked (benign)."""

    def __init__(self, message: str = "Refresh token is no longer valid. Please sign in.") -> None:
        super().__init__(message)


class TokenTheftError(AuthenticationError):
    """
    Active-threat signal raised by the rotation engine.

    The whole family has already been revoked when this error surfaces.

    :param family_id: Family that was revoked.
    :param user_id: Owner of the family.
    """

    event_type = "TOKEN_THEFT"

    def __init__(self, message: str, *, family_id: str, user_id: str) -> None:
        super().__init__(message)
        self.family_id = family_id
        self.user_id = user_id


class TokenReuseDetectedError(TokenTheftError):
    """A consumed refresh token was presented again."""

    event_type = "TOKEN_REUSE_DETECTED"


class SuspiciousFamilyActivityError(TokenTheftError):
    """Several devices (or several active tokens) transact against one family."""

    event_type = "SUSPICIOUS_FAMILY_ACTIVITY"


class RotationRateExceededError(TokenTheftError):
    """Rotations inside the burst window exceeded the configured threshold."""

    event_type = "ROTATION_RATE_EXCEEDED"


class AccessTokenError(AuthenticationError):
    """Base class for access-token parse failures."""

    kind = "invalid"


class InvalidSignatureError(AccessTokenError):
    """Signature does not match the claim set."""

    kind = "invalid_signature"


class MalformedTokenError(AccessTokenError):
    """Token is not a well-formed access token."""

    kind = "malformed"


class ExpiredTokenError(AccessTokenError):
    """Token expiry is not after the current instant."""

    kind = "expired"
