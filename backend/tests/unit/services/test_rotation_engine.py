"""Tests for RefreshRotationEngine against the in-memory store."""

from __future__ import annotations

import threading
from datetime import timedelta

import pytest
from nexsplit.infra.jwt.jwt_token_codec import JWTTokenCodec
from nexsplit.services._shared.errors import (
    AuthenticationError,
    InvalidRefreshTokenError,
    RotationRateExceededError,
    SuspiciousFamilyActivityError,
    TokenReuseDetectedError,
)
from nexsplit.services._shared.ports import (
    InMemoryRefreshTokenStore,
    RefreshTokenRecord,
    hash_token,
)
from nexsplit.services.rotation import Principal, RefreshRotationEngine, RotationPolicy

from tests.helpers.clock import EPOCH, MutableClock

SECRET = "unit-test-signing-key-0123456789abcdef"
ALICE = Principal(user_id=1, email="alice@example.com", role="USER")
UA = "Mozilla/5.0 (X11; Linux x86_64)"


@pytest.fixture()
def clock() -> MutableClock:
    return MutableClock()


@pytest.fixture()
def store() -> InMemoryRefreshTokenStore:
    return InMemoryRefreshTokenStore()


@pytest.fixture()
def principals() -> dict[int, Principal]:
    return {ALICE.user_id: ALICE}


@pytest.fixture()
def codec(clock) -> JWTTokenCodec:
    return JWTTokenCodec(SECRET, clock=clock)


@pytest.fixture()
def engine(store, codec, principals, clock) -> RefreshRotationEngine:
    return RefreshRotationEngine(
        store=store,
        codec=codec,
        principals=principals.get,
        policy=RotationPolicy(),
        clock=clock,
    )


def _record(store, raw: str) -> RefreshTokenRecord:
    record = store.find_by_hash(hash_token(raw))
    assert record is not None
    return record


class TestIssueInitialFamily:
    def test_persists_hashed_record_and_mints_access_token(self, engine, store, codec, clock):
        issued = engine.issue_initial_family(ALICE, "10.0.0.1", UA)

        record = _record(store, issued.refresh_token)
        assert record.token_hash != issued.refresh_token
        assert record.family_id == issued.family_id
        assert record.user_id == ALICE.user_id
        assert record.created_at == clock.now
        assert record.expires_at == clock.now + timedelta(days=7)
        assert record.ip_address == "10.0.0.1"
        assert record.user_agent == UA
        assert record.is_valid(clock.now)

        claims = codec.parse_and_verify(issued.access_token)
        assert claims.subject == ALICE.email
        assert claims.role == ALICE.role

    def test_each_login_starts_a_new_family(self, engine):
        first = engine.issue_initial_family(ALICE)
        second = engine.issue_initial_family(ALICE)
        assert first.family_id != second.family_id
        assert first.refresh_token != second.refresh_token


class TestRotate:
    def test_rotation_keeps_family_and_consumes_presented(self, engine, store, clock):
        issued = engine.issue_initial_family(ALICE, "10.0.0.1", UA)
        clock.advance(seconds=30)

        rotated = engine.rotate(issued.refresh_token, "10.0.0.2", UA)

        assert rotated.family_id == issued.family_id
        assert rotated.refresh_token != issued.refresh_token
        old = _record(store, issued.refresh_token)
        assert old.is_used is True
        assert old.used_at == clock.now
        new = _record(store, rotated.refresh_token)
        assert new.is_valid(clock.now)
        assert new.ip_address == "10.0.0.2"
        assert new.created_at == clock.now

    def test_reuse_revokes_entire_family(self, engine, store):
        issued = engine.issue_initial_family(ALICE, None, UA)
        rotated = engine.rotate(issued.refresh_token, None, UA)

        with pytest.raises(TokenReuseDetectedError) as excinfo:
            engine.rotate(issued.refresh_token, None, UA)

        assert excinfo.value.family_id == issued.family_id
        assert excinfo.value.user_id == str(ALICE.user_id)
        assert all(r.is_revoked for r in store.find_by_family(issued.family_id))
        # The legitimate successor is dead as well
        with pytest.raises(InvalidRefreshTokenError):
            engine.rotate(rotated.refresh_token, None, UA)

    def test_unknown_token_is_benign(self, engine):
        with pytest.raises(InvalidRefreshTokenError):
            engine.rotate("never-issued", None, UA)

    def test_expired_token_is_benign_and_family_kept(self, engine, store, clock):
        issued = engine.issue_initial_family(ALICE, None, UA)
        clock.advance(days=7)

        with pytest.raises(InvalidRefreshTokenError):
            engine.rotate(issued.refresh_token, None, UA)
        assert _record(store, issued.refresh_token).is_revoked is False

    def test_revoked_token_is_benign(self, engine):
        issued = engine.issue_initial_family(ALICE, None, UA)
        engine.revoke_family(issued.family_id)

        with pytest.raises(InvalidRefreshTokenError) as excinfo:
            engine.rotate(issued.refresh_token, None, UA)
        assert not isinstance(excinfo.value, TokenReuseDetectedError)

    def test_second_user_agent_in_family_is_suspicious(self, engine, store, clock):
        issued = engine.issue_initial_family(ALICE, None, UA)
        # A second active token from another device sneaks into the family
        store.save(
            RefreshTokenRecord.issue(
                raw_token="stolen-device-token",
                user_id=ALICE.user_id,
                family_id=issued.family_id,
                now=clock.now,
                ttl=timedelta(days=7),
                ip_address="203.0.113.9",
                user_agent="curl/8.0",
            )
        )

        with pytest.raises(SuspiciousFamilyActivityError):
            engine.rotate(issued.refresh_token, None, UA)
        assert all(r.is_revoked for r in store.find_by_family(issued.family_id))

    def test_burst_of_rotations_revokes_family(self, engine, store):
        token = engine.issue_initial_family(ALICE, None, UA).refresh_token
        for _ in range(5):
            token = engine.rotate(token, None, UA).refresh_token

        with pytest.raises(RotationRateExceededError) as excinfo:
            engine.rotate(token, None, UA)
        family = store.find_by_family(excinfo.value.family_id)
        assert family and all(r.is_revoked for r in family)

    def test_rotations_outside_window_are_not_a_burst(self, engine, clock):
        token = engine.issue_initial_family(ALICE, None, UA).refresh_token
        for _ in range(10):
            clock.advance(seconds=20)
            token = engine.rotate(token, None, UA).refresh_token

    def test_missing_owner_revokes_family(self, engine, store, principals):
        issued = engine.issue_initial_family(ALICE, None, UA)
        principals.clear()

        with pytest.raises(InvalidRefreshTokenError):
            engine.rotate(issued.refresh_token, None, UA)
        assert all(r.is_revoked for r in store.find_by_family(issued.family_id))

    def test_theft_errors_are_authentication_errors(self):
        for error in (
            TokenReuseDetectedError,
            SuspiciousFamilyActivityError,
            RotationRateExceededError,
        ):
            assert issubclass(error, AuthenticationError)

    def test_concurrent_rotations_have_one_winner(self, engine):
        issued = engine.issue_initial_family(ALICE, None, UA)
        barrier = threading.Barrier(2)
        outcomes: list[object] = []
        lock = threading.Lock()

        def _attempt() -> None:
            barrier.wait()
            try:
                result: object = engine.rotate(issued.refresh_token, None, UA)
            except AuthenticationError as exc:
                result = exc
            with lock:
                outcomes.append(result)

        threads = [threading.Thread(target=_attempt) for _ in range(2)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        failures = [o for o in outcomes if isinstance(o, AuthenticationError)]
        assert len(outcomes) == 2
        assert len(failures) == 1
        assert isinstance(failures[0], TokenReuseDetectedError)


class TestMaintenance:
    def test_revoke_all_for_user_covers_every_family(self, engine, store):
        first = engine.issue_initial_family(ALICE, None, UA)
        second = engine.issue_initial_family(ALICE, None, UA)

        assert engine.revoke_all_for_user(ALICE.user_id) == 2
        for family_id in (first.family_id, second.family_id):
            assert all(r.is_revoked for r in store.find_by_family(family_id))

    def test_revoke_family_counts_only_newly_revoked(self, engine):
        issued = engine.issue_initial_family(ALICE, None, UA)
        engine.rotate(issued.refresh_token, None, UA)

        assert engine.revoke_family(issued.family_id) == 2
        assert engine.revoke_family(issued.family_id) == 0

    def test_sweep_removes_strictly_expired(self, engine, store, clock):
        issued = engine.issue_initial_family(ALICE, None, UA)
        expiry = _record(store, issued.refresh_token).expires_at

        assert engine.sweep(expiry) == 0
        assert engine.sweep(expiry + timedelta(microseconds=1)) == 1
        assert store.find_by_hash(hash_token(issued.refresh_token)) is None

    def test_sweep_ignores_used_and_revoked_flags(self, engine, store):
        short = timedelta(hours=1)
        records = {
            "expired-used": RefreshTokenRecord.issue(
                raw_token="expired-used", user_id=1, family_id="f1", now=EPOCH, ttl=short
            ).mark_used(EPOCH),
            "expired-revoked": RefreshTokenRecord.issue(
                raw_token="expired-revoked", user_id=1, family_id="f1", now=EPOCH, ttl=short
            ).revoke(),
            "live-used": RefreshTokenRecord.issue(
                raw_token="live-used", user_id=1, family_id="f2", now=EPOCH, ttl=timedelta(days=7)
            ).mark_used(EPOCH),
            "live-revoked": RefreshTokenRecord.issue(
                raw_token="live-revoked", user_id=1, family_id="f2", now=EPOCH, ttl=timedelta(days=7)
            ).revoke(),
        }
        for record in records.values():
            store.save(record)

        assert engine.sweep(EPOCH + timedelta(hours=2)) == 2
        remaining = {raw for raw in records if store.find_by_hash(hash_token(raw)) is not None}
        assert remaining == {"live-used", "live-revoked"}

    def test_lookup_does_not_validate(self, engine, clock):
        issued = engine.issue_initial_family(ALICE, None, UA)
        clock.advance(days=30)
        record = engine.lookup(issued.refresh_token)
        assert record is not None
        assert record.family_id == issued.family_id
