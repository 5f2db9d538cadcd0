from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

# ---------------------------- Input DTOs ---------------------------------- #


@dataclass(frozen=True, slots=True)
class RegisterIn:
    """
    Input DTO for sign-up.

    :param email: Login email.
    :param password: Raw password (strength-checked).
    :param username: Public username.
    :param full_name: Optional display name.
    :param ip_address: Client address recorded on the first refresh token.
    :param user_agent: Client user agent recorded on the first refresh token.
    """

    email: str
    password: str
    username: str
    full_name: str | None = None
    ip_address: str | None = None
    user_agent: str | None = None


@dataclass(frozen=True, slots=True)
class LoginIn:
    """
    Input DTO for login.

    :param email: User email.
    :type email: str
    :param password: Raw password (to be verified).
    :type password: str
    :param ip_address: Client address.
    :param user_agent: Client user agent.
    """

    email: str
    password: str
    ip_address: str | None = None
    user_agent: str | None = None


@dataclass(frozen=True, slots=True)
class RefreshIn:
    """
    Input DTO for token refresh.

    :param refresh_token: Opaque refresh token presented by the client.
    :type refresh_token: str
    """

    refresh_token: str
    ip_address: str | None = None
    user_agent: str | None = None


@dataclass(frozen=True, slots=True)
class LogoutIn:
    """
    Input DTO for logout.

    At least one of ``refresh_token``, ``family_id`` or ``subject`` (with
    ``all_sessions``) must identify what to revoke.

    :param refresh_token: Refresh token whose family is revoked.
    :param family_id: Family to revoke explicitly.
    :param all_sessions: Revoke every family of the user.
    :param subject: E-mail of the authenticated caller (from the access token).
    """

    refresh_token: str | None = None
    family_id: str | None = None
    all_sessions: bool = False
    subject: str | None = None
    ip_address: str | None = None
    user_agent: str | None = None


@dataclass(frozen=True, slots=True)
class ChangePasswordIn:
    subject: str
    old_password: str
    new_password: str
    ip_address: str | None = None
    user_agent: str | None = None


@dataclass(frozen=True, slots=True)
class UpdateProfileIn:
    """
    Input DTO for profile updates of the authenticated caller.

    :param subject: E-mail of the caller (from the access token).
    :param username: Optional new username.
    :param full_name: Optional new display name.
    """

    subject: str
    username: str | None = None
    full_name: str | None = None
    ip_address: str | None = None
    user_agent: str | None = None


@dataclass(frozen=True, slots=True)
class DeactivateIn:
    subject: str
    ip_address: str | None = None
    user_agent: str | None = None


# --------------------------- Output DTOs ---------------------------------- #


@dataclass(frozen=True, slots=True)
class TokenPairOut:
    """
    Output DTO with access and refresh tokens.

    :param access_token: Signed access JWT.
    :param refresh_token: Opaque refresh token.
    :param expires_in: Access token lifetime in seconds.
    :param refresh_expires_at: Refresh token expiry (UTC).
    :param family_id: Refresh-token family.
    :param token_type: Always ``"Bearer"``.
    """

    access_token: str
    refresh_token: str
    expires_in: int
    refresh_expires_at: datetime
    family_id: str
    token_type: str = "Bearer"


@dataclass(frozen=True, slots=True)
class LogoutOut:
    revoked: int


@dataclass(frozen=True, slots=True)
class PasswordStrengthOut:
    valid: bool
    message: str
