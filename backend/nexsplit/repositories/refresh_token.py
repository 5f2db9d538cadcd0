"""Refresh-token repository: family queries, counters and bulk updates."""

from __future__ import annotations

from datetime import datetime
from typing import cast

from sqlalchemy import delete, func, select, update

from nexsplit.models.refresh_token import RefreshToken
from nexsplit.repositories.base import BaseRepository


class RefreshTokenRepository(BaseRepository[RefreshToken]):
    """Persistence-only repository for :class:`RefreshToken` rows.

    Bulk statements (``revoke_family``, ``delete_expired``) synchronize the
    session by fetching the affected keys, so instances already loaded in the
    session reflect their effect.
    """

    model = RefreshToken

    def get_by_hash(self, token_hash: str, *, for_update: bool = False) -> RefreshToken | None:
        """
        Fetch the row for ``token_hash``.

        :param token_hash: SHA-256 hex digest.
        :param for_update: Lock the row (``SELECT ... FOR UPDATE``) when the
            dialect supports it.
        """
        stmt = select(RefreshToken).where(RefreshToken.token_hash == token_hash)
        if for_update:
            stmt = stmt.with_for_update()
        return cast(RefreshToken | None, self.session.execute(stmt).scalars().first())

    def list_valid_by_user(self, user_id: int, now: datetime) -> list[RefreshToken]:
        stmt = select(RefreshToken).where(
            RefreshToken.user_id == user_id,
            RefreshToken.is_used.is_(False),
            RefreshToken.is_revoked.is_(False),
            RefreshToken.expires_at > now,
        )
        return list(self.session.execute(stmt).scalars().all())

    def list_by_family(self, family_id: str) -> list[RefreshToken]:
        stmt = (
            select(RefreshToken)
            .where(RefreshToken.family_id == family_id)
            .order_by(RefreshToken.created_at.asc(), RefreshToken.id.asc())
        )
        return list(self.session.execute(stmt).scalars().all())

    # ------------------------------ Counters ---------------------------------

    def count_active_in_family(self, family_id: str) -> int:
        stmt = select(func.count(RefreshToken.id)).where(
            RefreshToken.family_id == family_id,
            RefreshToken.is_used.is_(False),
            RefreshToken.is_revoked.is_(False),
        )
        return int(self.session.execute(stmt).scalar_one())

    def count_distinct_agents_in_family(self, family_id: str) -> int:
        # COUNT(DISTINCT col) ignores NULL user agents
        stmt = select(func.count(func.distinct(RefreshToken.user_agent))).where(
            RefreshToken.family_id == family_id,
            RefreshToken.is_used.is_(False),
            RefreshToken.is_revoked.is_(False),
        )
        return int(self.session.execute(stmt).scalar_one())

    def count_created_after(self, family_id: str, cutoff: datetime) -> int:
        stmt = select(func.count(RefreshToken.id)).where(
            RefreshToken.family_id == family_id,
            RefreshToken.created_at > cutoff,
        )
        return int(self.session.execute(stmt).scalar_one())

    # ---------------------------- Bulk updates -------------------------------

    def revoke_family(self, family_id: str) -> int:
        """Mark every non-revoked row of the family as revoked. :returns: Rows updated."""
        stmt = (
            update(RefreshToken)
            .where(RefreshToken.family_id == family_id, RefreshToken.is_revoked.is_(False))
            .values(is_revoked=True)
            .execution_options(synchronize_session="fetch")
        )
        return int(self.session.execute(stmt).rowcount or 0)

    def delete_expired(self, now: datetime) -> int:
        """Delete rows whose ``expires_at`` is strictly before ``now``. :returns: Rows deleted."""
        stmt = (
            delete(RefreshToken)
            .where(RefreshToken.expires_at < now)
            .execution_options(synchronize_session="fetch")
        )
        return int(self.session.execute(stmt).rowcount or 0)
