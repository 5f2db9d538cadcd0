"""
IdentityService
===============

Application service for the ``User`` aggregate:

- Registration with e-mail/username uniqueness and password strength checks.
- Credential verification (no token issuance).
- Profile updates, availability checks and soft deactivation.
- Password lifecycle.
"""

from __future__ import annotations

from sqlalchemy.exc import IntegrityError

from nexsplit.models.user import User
from nexsplit.repositories.user import UserRepository
from nexsplit.services._shared.base import BaseService
from nexsplit.services._shared.errors import (
    ConflictError,
    InvalidCredentialsError,
    NotFoundError,
    WeakPasswordError,
    violates,
)
from nexsplit.services._shared.policies.password import is_strong, strength_message
from nexsplit.services.identity.dto import (
    UserAuthIn,
    UserPasswordChangeIn,
    UserPublicOut,
    UserRegisterIn,
    UserUpdateIn,
)
from nexsplit.services.rotation.dto import Principal


def _public(user: User) -> UserPublicOut:
    return UserPublicOut(
        id=user.id,
        email=user.email,
        username=user.username,
        full_name=user.full_name,
        role=user.role,
        is_active=user.is_active,
    )


def _principal(user: User) -> Principal:
    return Principal(user_id=user.id, email=user.email, role=user.role)


class IdentityService(BaseService):
    """
    Application service for the ``User`` aggregate.

    Responsibilities
    ----------------
    - Register users ensuring email and username uniqueness.
    - Authenticate credentials into a :class:`Principal`.
    - Resolve principals for the rotation engine.
    - Update profiles and deactivate accounts.
    - Manage the password lifecycle.
    """

    # --------------------------------------------------------------------- #
    # Registration
    # --------------------------------------------------------------------- #

    def register_user(self, dto: UserRegisterIn) -> UserPublicOut:
        """
        Register a new user.

        :param dto: Registration input.
        :type dto: UserRegisterIn
        :returns: Public-safe user DTO.
        :rtype: UserPublicOut
        :raises WeakPasswordError: When the password fails the strength policy.
        :raises ConflictError: When e-mail or username is taken.
        """
        if not is_strong(dto.password):
            raise WeakPasswordError(strength_message(dto.password))

        with self.rw_uow() as uow:
            repo: UserRepository = uow.users

            if repo.exists_by_email(dto.email):
                raise ConflictError("User", "email already in use")
            if repo.exists_by_username(dto.username):
                raise ConflictError("User", "username already in use")

            try:
                user = repo.add(
                    User(
                        email=dto.email,
                        password=dto.password,  # model hashes via setter
                        username=dto.username,
                        full_name=dto.full_name,
                    )
                )
            except IntegrityError as exc:
                if violates(exc, "uq_users_email"):
                    raise ConflictError("User", "email already in use") from exc
                if violates(exc, "uq_users_username"):
                    raise ConflictError("User", "username already in use") from exc
                raise

            return _public(user)

    # --------------------------------------------------------------------- #
    # Authentication
    # --------------------------------------------------------------------- #

    def authenticate(self, dto: UserAuthIn) -> Principal:
        """
        Verify e-mail and password.

        :raises InvalidCredentialsError: Unknown e-mail, wrong password or
            inactive account (indistinguishable on purpose).
        """
        with self.ro_uow() as uow:
            user = uow.users.authenticate(dto.email, dto.password)
            if user is None:
                raise InvalidCredentialsError()
            return _principal(user)

    # --------------------------------------------------------------------- #
    # Retrieval
    # --------------------------------------------------------------------- #

    def get_user(self, user_id: int) -> UserPublicOut:
        """
        :raises NotFoundError: If the user does not exist.
        """
        with self.ro_uow() as uow:
            user = uow.users.get(user_id)
            if user is None:
                raise NotFoundError("User", user_id)
            return _public(user)

    def get_by_email(self, email: str) -> UserPublicOut:
        """
        :raises NotFoundError: If no user has this e-mail.
        """
        with self.ro_uow() as uow:
            user = uow.users.get_by_email(email)
            if user is None:
                raise NotFoundError("User", email)
            return _public(user)

    def find_principal(self, user_id: int) -> Principal | None:
        """Return the principal of an active user, ``None`` otherwise."""
        with self.ro_uow() as uow:
            user = uow.users.get(user_id)
            if user is None or not user.is_active:
                return None
            return _principal(user)

    # --------------------------------------------------------------------- #
    # Password management
    # --------------------------------------------------------------------- #

    def change_password(self, dto: UserPasswordChangeIn) -> None:
        """
        Change a user's password after verifying the current one.

        :raises NotFoundError: When the user is not found.
        :raises InvalidCredentialsError: When the current password is wrong.
        :raises WeakPasswordError: When the new password fails the policy.
        """
        if not is_strong(dto.new_password):
            raise WeakPasswordError(strength_message(dto.new_password))

        with self.rw_uow() as uow:
            repo: UserRepository = uow.users
            user = repo.get_for_update(dto.user_id)
            if user is None:
                raise NotFoundError("User", dto.user_id)
            if not user.verify_password(dto.old_password):
                raise InvalidCredentialsError("Current password is incorrect.")
            repo.update_password(user, dto.new_password)

    # --------------------------------------------------------------------- #
    # Profile & account
    # --------------------------------------------------------------------- #

    def update_profile(self, user_id: int, dto: UserUpdateIn) -> UserPublicOut:
        """
        Update the username and/or display name of an active user.

        :param user_id: User identifier.
        :type user_id: int
        :param dto: Fields to change; ``None`` keeps the current value.
        :type dto: UserUpdateIn
        :returns: Updated user DTO.
        :rtype: UserPublicOut
        :raises NotFoundError: When the user is missing or deactivated.
        :raises ConflictError: When the new username is taken.
        """
        with self.rw_uow() as uow:
            repo: UserRepository = uow.users
            user = repo.get_for_update(user_id)
            if user is None or not user.is_active:
                raise NotFoundError("User", user_id)

            updates = {
                k: v
                for k, v in {"username": dto.username, "full_name": dto.full_name}.items()
                if v is not None
            }
            new_username = updates.get("username")
            if (
                new_username is not None
                and new_username.strip() != user.username
                and repo.exists_by_username(new_username)
            ):
                raise ConflictError("User", "username already in use")

            try:
                repo.update(user, **updates)
            except IntegrityError as exc:
                if violates(exc, "uq_users_username"):
                    raise ConflictError("User", "username already in use") from exc
                raise

            return _public(user)

    def deactivate(self, user_id: int) -> None:
        """
        Soft-delete an account by clearing ``is_active``.

        The row is kept; the e-mail and username stay reserved.

        :raises NotFoundError: When the user is missing or already deactivated.
        """
        with self.rw_uow() as uow:
            repo: UserRepository = uow.users
            user = repo.get_for_update(user_id)
            if user is None or not user.is_active:
                raise NotFoundError("User", user_id)
            repo.update(user, is_active=False)

    def is_email_available(self, email: str) -> bool:
        with self.ro_uow() as uow:
            return not uow.users.exists_by_email(email)

    def is_username_available(self, username: str) -> bool:
        with self.ro_uow() as uow:
            return not uow.users.exists_by_username(username)
