"""Factory Boy definition for :class:`nexsplit.models.refresh_token.RefreshToken`."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import factory
from nexsplit.models.refresh_token import RefreshToken
from nexsplit.services._shared.ports import hash_token, new_family_id

from tests.factories import BaseFactory
from tests.factories.user import UserFactory

FIXED_NOW = datetime(2026, 1, 1, 12, 0, tzinfo=UTC)


class RefreshTokenFactory(BaseFactory):
    """
    Build persisted refresh-token rows.

    ``raw_token`` is a parameter: only its SHA-256 digest is stored.
    """

    class Meta:
        model = RefreshToken
        exclude = ("user",)

    class Params:
        raw_token = factory.Sequence(lambda n: f"raw-refresh-token-{n}")

    user = factory.SubFactory(UserFactory)
    user_id = factory.LazyAttribute(lambda o: o.user.id)
    token_hash = factory.LazyAttribute(lambda o: hash_token(o.raw_token))
    family_id = factory.LazyFunction(new_family_id)
    created_at = FIXED_NOW
    expires_at = factory.LazyAttribute(lambda o: o.created_at + timedelta(days=7))
    is_used = False
    is_revoked = False
    user_agent = "pytest-agent/1.0"
    ip_address = "127.0.0.1"
