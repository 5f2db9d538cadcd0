"""User repository: lookups and credential checks."""

from __future__ import annotations

from typing import cast

from sqlalchemy import select

from nexsplit.models.user import User
from nexsplit.repositories.base import BaseRepository


class UserRepository(BaseRepository[User]):
    """Persistence-only repository for :class:`User`.

    Never issues tokens nor decides on sessions.
    """

    model = User

    def get_by_email(self, email: str) -> User | None:
        """Fetch a user by e-mail (case-insensitive).

        :param email: Address to normalise and search.
        :type email: str
        :rtype: User | None
        """
        stmt = select(User).where(User.email == email.lower().strip())
        return cast(User | None, self.session.execute(stmt).scalars().first())

    def exists_by_email(self, email: str) -> bool:
        stmt = select(User.id).where(User.email == email.lower().strip())
        return self.session.execute(stmt).first() is not None

    def exists_by_username(self, username: str) -> bool:
        stmt = select(User.id).where(User.username == username.strip())
        return self.session.execute(stmt).first() is not None

    def update_password(self, user: User, new_password: str) -> None:
        """Assign ``new_password`` (the model hashes it) and flush."""
        user.password = new_password
        self.flush()

    def authenticate(self, email: str, password: str) -> User | None:
        """Return the active user matching the credentials, else ``None``.

        :param email: Address to authenticate.
        :param password: Raw password to verify.
        """
        user = self.get_by_email(email)
        if user is None or not user.is_active or not user.verify_password(password):
            return None
        return user
