"""Persistent refresh-token rows (one per issued token, grouped in families)."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, String, Text, false
from sqlalchemy.orm import Mapped, mapped_column

from nexsplit.core.extensions import db

from .base import ReprMixin, UUIDPKMixin


class RefreshToken(UUIDPKMixin, ReprMixin, db.Model):
    """
    Row backing a single refresh token.

    Only the SHA-256 hex digest of the opaque token is stored. Every row
    belongs to exactly one family; a rotation consumes one row and inserts its
    successor in the same family.

    Fields
    ------
    token_hash : str
        Hex digest of the raw token, unique.
    user_id : int
        Owner (cascade-deleted with the user).
    family_id : str
        Rotation family shared by every token descending from one login.
    expires_at : datetime
        Absolute expiry in UTC.
    is_used / is_revoked : bool
        Lifecycle flags. Used tokens are kept for reuse detection.
    created_at / used_at : datetime
        Set from the application clock, not by the database, because the
        burst heuristic counts rows by ``created_at``.
    ip_address / user_agent : str | None
        Client fingerprint captured when the token was issued.
    """

    __tablename__ = "refresh_tokens"

    token_hash: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    family_id: Mapped[str] = mapped_column(String(36), nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    is_used: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=false()
    )
    is_revoked: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=false()
    )
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    used_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    ip_address: Mapped[str | None] = mapped_column(String(45), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        Index("ix_refresh_tokens_token_hash", "token_hash"),
        Index("ix_refresh_tokens_user_id", "user_id"),
        Index("ix_refresh_tokens_family_id", "family_id"),
        Index("ix_refresh_tokens_expires_at", "expires_at"),
    )
