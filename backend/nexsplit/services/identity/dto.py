"""
DTOs for IdentityService.

Data Transfer Objects isolate the service layer from ORM models.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class UserRegisterIn:
    """
    Input DTO for user registration.

    :param email: Login email (normalized to lowercase by the model).
    :type email: str
    :param password: Raw password; must satisfy the strength policy.
    :type password: str
    :param username: Public username.
    :type username: str
    :param full_name: Optional display name.
    :type full_name: str | None
    """

    email: str
    password: str
    username: str
    full_name: str | None = None


@dataclass(frozen=True, slots=True)
class UserAuthIn:
    email: str
    password: str


@dataclass(frozen=True, slots=True)
class UserUpdateIn:
    """
    Input DTO for profile updates. ``None`` leaves a field unchanged.

    :param username: Optional new username.
    :type username: str | None
    :param full_name: Optional new display name.
    :type full_name: str | None
    """

    username: str | None = None
    full_name: str | None = None


@dataclass(frozen=True, slots=True)
class UserPasswordChangeIn:
    """
    Input DTO for changing a user's password.

    :param user_id: User identifier.
    :type user_id: int
    :param old_password: Current password.
    :type old_password: str
    :param new_password: New password (raw).
    :type new_password: str
    """

    user_id: int
    old_password: str
    new_password: str


@dataclass(frozen=True, slots=True)
class UserPublicOut:
    """
    Public-safe user data.

    :param id: User identifier.
    :param email: Email address.
    :param username: Username.
    :param full_name: Optional display name.
    :param role: Authorization role.
    :param is_active: ``False`` once the account is deactivated.
    """

    id: int
    email: str
    username: str
    full_name: str | None
    role: str
    is_active: bool = True
