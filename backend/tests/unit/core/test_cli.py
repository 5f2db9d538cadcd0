"""Tests for the ``flask tokens`` command group."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

from nexsplit.core.container import EXTENSION_KEY
from nexsplit.models.refresh_token import RefreshToken
from nexsplit.services._shared.errors import StoreUnavailableError

from tests.factories.refresh_token import RefreshTokenFactory


def test_tokens_sweep_deletes_expired(app, session):
    long_ago = datetime(2020, 1, 1, tzinfo=UTC)
    RefreshTokenFactory(created_at=long_ago, expires_at=long_ago + timedelta(days=7))
    live_id = RefreshTokenFactory(expires_at=datetime.now(UTC) + timedelta(days=7)).id

    result = app.test_cli_runner().invoke(args=["tokens", "sweep"])

    assert result.exit_code == 0, result.output
    assert "Deleted 1 expired refresh token(s)." in result.output
    assert [t.id for t in session.query(RefreshToken).all()] == [live_id]


def test_tokens_sweep_exits_non_zero_when_store_is_down(app, monkeypatch):
    def _down():
        raise StoreUnavailableError("Refresh token storage is unavailable.")

    monkeypatch.setattr(app.extensions[EXTENSION_KEY], "sweep_expired", _down)

    result = app.test_cli_runner().invoke(args=["tokens", "sweep"])

    assert result.exit_code == 1
    assert "Sweep failed" in result.output
