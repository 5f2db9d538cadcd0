"""Tests for configuration-driven wiring of the authentication stack."""

from __future__ import annotations

from datetime import timedelta

import pytest
from flask import Flask
from nexsplit.core.container import (
    build_auth_service,
    build_refresh_store,
    build_rotation_policy,
    get_auth_service,
)
from nexsplit.infra.sqlalchemy.sql_refresh_token_store import SqlAlchemyRefreshTokenStore
from nexsplit.services._shared.errors import ConfigurationError
from nexsplit.services._shared.ports import InMemoryRefreshTokenStore
from nexsplit.services.auth.service import AuthService

GOOD_SECRET = "unit-test-signing-key-0123456789abcdef"


def _app(**config) -> Flask:
    app = Flask(__name__)
    app.config.update(JWT_SECRET_KEY=GOOD_SECRET, REFRESH_TOKEN_STORE="memory", REDIS_URL=None)
    app.config.update(config)
    return app


@pytest.mark.parametrize("secret", [None, "", "short-secret"])
def test_short_or_missing_secret_aborts(secret):
    with pytest.raises(ConfigurationError):
        build_auth_service(_app(JWT_SECRET_KEY=secret))


def test_store_selection():
    assert isinstance(build_refresh_store(_app()), InMemoryRefreshTokenStore)
    assert isinstance(
        build_refresh_store(_app(REFRESH_TOKEN_STORE="sqlalchemy")), SqlAlchemyRefreshTokenStore
    )
    with pytest.raises(ConfigurationError):
        build_refresh_store(_app(REFRESH_TOKEN_STORE="cassandra"))


def test_redis_store_requires_url(monkeypatch):
    monkeypatch.setattr("nexsplit.core.extensions.redis_client", None)
    with pytest.raises(ConfigurationError):
        build_refresh_store(_app(REFRESH_TOKEN_STORE="redis"))


def test_policy_reads_thresholds():
    policy = build_rotation_policy(
        _app(
            REFRESH_TOKEN_EXPIRES_DAYS=3,
            ROTATION_BURST_THRESHOLD=9,
            ROTATION_BURST_WINDOW_SECONDS=30,
            ROTATION_MAX_USER_AGENTS=2,
            ROTATION_MAX_ACTIVE_TOKENS=2,
        )
    )
    assert policy.refresh_ttl == timedelta(days=3)
    assert policy.burst_threshold == 9
    assert policy.burst_window == timedelta(seconds=30)
    assert policy.max_user_agents == 2
    assert policy.max_active_tokens == 2


def test_app_exposes_auth_service(app):
    with app.app_context():
        assert isinstance(get_auth_service(), AuthService)
