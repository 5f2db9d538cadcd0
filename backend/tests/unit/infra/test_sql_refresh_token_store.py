"""Tests for the relational refresh-token store (SQLite, transactional fixture)."""

from __future__ import annotations

from datetime import timedelta

import pytest
from nexsplit.infra.jwt.jwt_token_codec import JWTTokenCodec
from nexsplit.infra.sqlalchemy.sql_refresh_token_store import SqlAlchemyRefreshTokenStore
from nexsplit.models.refresh_token import RefreshToken
from nexsplit.services._shared.errors import (
    InvalidRefreshTokenError,
    StoreUnavailableError,
    TokenReuseDetectedError,
)
from nexsplit.services._shared.ports import RefreshTokenRecord, hash_token, new_family_id
from nexsplit.services.rotation import Principal, RefreshRotationEngine
from sqlalchemy.exc import OperationalError

from tests.factories.refresh_token import RefreshTokenFactory
from tests.factories.user import UserFactory
from tests.helpers.clock import EPOCH, MutableClock

SECRET = "unit-test-signing-key-0123456789abcdef"


@pytest.fixture()
def store(session) -> SqlAlchemyRefreshTokenStore:
    return SqlAlchemyRefreshTokenStore()


@pytest.fixture()
def user(session):
    return UserFactory()


def _issue(user_id: int, raw: str, *, family_id: str | None = None, now=EPOCH) -> RefreshTokenRecord:
    return RefreshTokenRecord.issue(
        raw_token=raw,
        user_id=user_id,
        family_id=family_id or new_family_id(),
        now=now,
        ttl=timedelta(days=7),
        ip_address="10.0.0.1",
        user_agent="ua/1",
    )


class TestSqlAlchemyRefreshTokenStore:
    def test_save_inserts_then_updates_by_hash(self, store, user, session):
        record = _issue(user.id, "rt-1")
        store.save(record)
        store.save(record.mark_used(EPOCH + timedelta(minutes=1)))

        rows = session.query(RefreshToken).filter_by(token_hash=record.token_hash).all()
        assert len(rows) == 1
        loaded = store.find_by_hash(record.token_hash)
        assert loaded is not None
        assert loaded.is_used is True
        assert loaded.used_at == EPOCH + timedelta(minutes=1)
        assert loaded.created_at == EPOCH
        assert loaded.expires_at.tzinfo is not None

    def test_counters_follow_family_state(self, store, user):
        family = new_family_id()
        RefreshTokenFactory(user=user, family_id=family, is_used=True, raw_token="a")
        RefreshTokenFactory(user=user, family_id=family, raw_token="b", user_agent="ua/1")
        RefreshTokenFactory(
            user=user,
            family_id=family,
            raw_token="c",
            user_agent="ua/2",
            created_at=EPOCH + timedelta(minutes=5),
        )

        assert store.count_active_in_family(family) == 2
        assert store.count_distinct_agents_in_family(family) == 2
        recent = store.count_recent_in_family(family, timedelta(minutes=1), EPOCH + timedelta(minutes=5, seconds=30))
        assert recent == 1
        assert len(store.find_by_family(family)) == 3

    def test_revoke_family_and_find_valid(self, store, user):
        family = new_family_id()
        RefreshTokenFactory(user=user, family_id=family, raw_token="a")
        RefreshTokenFactory(user=user, family_id=family, raw_token="b", is_revoked=True)
        other = RefreshTokenFactory(user=user, raw_token="c")

        assert store.revoke_family(family) == 1
        valid = store.find_valid_by_user(user.id, EPOCH)
        assert [r.token_hash for r in valid] == [other.token_hash]

    def test_delete_expired_is_strict(self, store, user):
        expired = RefreshTokenFactory(user=user, raw_token="old", expires_at=EPOCH - timedelta(seconds=1))
        edge = RefreshTokenFactory(user=user, raw_token="edge", expires_at=EPOCH)

        assert store.delete_expired(EPOCH) == 1
        assert store.find_by_hash(expired.token_hash) is None
        assert store.find_by_hash(edge.token_hash) is not None

    def test_delete_expired_ignores_used_and_revoked_flags(self, store, user):
        past = EPOCH - timedelta(minutes=5)
        future = EPOCH + timedelta(days=1)
        gone = [
            RefreshTokenFactory(user=user, raw_token="x-used", expires_at=past, is_used=True, used_at=past),
            RefreshTokenFactory(user=user, raw_token="x-revoked", expires_at=past, is_revoked=True),
        ]
        kept = [
            RefreshTokenFactory(user=user, raw_token="k-used", expires_at=future, is_used=True, used_at=past),
            RefreshTokenFactory(user=user, raw_token="k-revoked", expires_at=future, is_revoked=True),
        ]
        gone_hashes = [t.token_hash for t in gone]
        kept_hashes = [t.token_hash for t in kept]

        assert store.delete_expired(EPOCH) == 2
        assert all(store.find_by_hash(h) is None for h in gone_hashes)
        assert all(store.find_by_hash(h) is not None for h in kept_hashes)

    def test_run_atomic_commits_writes_of_the_unit(self, store, user):
        record = _issue(user.id, "rt-1")
        store.save(record)

        def _consume(unit):
            current = unit.find_by_hash(record.token_hash)
            unit.save(current.mark_used(EPOCH))
            unit.save(_issue(user.id, "rt-2", family_id=record.family_id))
            return current

        before = store.run_atomic(record.token_hash, _consume)

        assert before.is_used is False
        assert store.find_by_hash(record.token_hash).is_used is True
        assert store.find_by_hash(hash_token("rt-2")) is not None

    def test_operational_errors_become_store_unavailable(self, session):
        class _BrokenUoW:
            def __enter__(self):
                raise OperationalError("SELECT 1", {}, Exception("database is locked"))

            def __exit__(self, *exc_info):
                return False

        broken = SqlAlchemyRefreshTokenStore(rw_uow=_BrokenUoW, ro_uow=_BrokenUoW)
        with pytest.raises(StoreUnavailableError):
            broken.find_by_hash("x")
        with pytest.raises(StoreUnavailableError):
            broken.save(_issue(1, "rt-x"))


class TestEngineOnSql:
    @pytest.fixture()
    def engine(self, store, user):
        clock = MutableClock()
        principal = Principal(user_id=user.id, email=user.email, role=user.role)
        return RefreshRotationEngine(
            store=store,
            codec=JWTTokenCodec(SECRET, clock=clock),
            principals={user.id: principal}.get,
            clock=clock,
        )

    def test_rotation_then_reuse_revokes_family(self, engine, store, user):
        principal = Principal(user_id=user.id, email=user.email, role=user.role)
        issued = engine.issue_initial_family(principal, "10.0.0.1", "ua/1")
        rotated = engine.rotate(issued.refresh_token, "10.0.0.1", "ua/1")

        with pytest.raises(TokenReuseDetectedError):
            engine.rotate(issued.refresh_token, "10.0.0.1", "ua/1")

        # Revocation survived the failed rotation
        assert all(r.is_revoked for r in store.find_by_family(issued.family_id))
        with pytest.raises(InvalidRefreshTokenError):
            engine.rotate(rotated.refresh_token, "10.0.0.1", "ua/1")
