"""Service wiring: builds the authentication stack from application config."""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import cast

from flask import Flask, current_app

from nexsplit.core.extensions import get_redis
from nexsplit.infra.jwt.jwt_token_codec import JWTTokenCodec
from nexsplit.infra.redis.redis_refresh_token_store import RedisRefreshTokenStore
from nexsplit.infra.sqlalchemy.sql_refresh_token_store import SqlAlchemyRefreshTokenStore
from nexsplit.services._shared.errors import ConfigurationError
from nexsplit.services._shared.ports import InMemoryRefreshTokenStore, RefreshTokenStore
from nexsplit.services.audit.service import AuditService
from nexsplit.services.auth.service import AuthService
from nexsplit.services.identity.service import IdentityService
from nexsplit.services.rotation import RefreshRotationEngine, RotationPolicy

log = logging.getLogger(__name__)

EXTENSION_KEY = "auth_service"


def build_refresh_store(app: Flask) -> RefreshTokenStore:
    """Select the refresh-token backend named by ``REFRESH_TOKEN_STORE``.

    Raises
    ------
    ConfigurationError
        Unknown backend name.
    """
    backend = str(app.config.get("REFRESH_TOKEN_STORE", "sqlalchemy")).strip().lower()
    if backend == "sqlalchemy":
        return SqlAlchemyRefreshTokenStore()
    if backend == "redis":
        try:
            client = get_redis()
        except RuntimeError as exc:
            raise ConfigurationError("REFRESH_TOKEN_STORE=redis requires REDIS_URL") from exc
        return RedisRefreshTokenStore(client)
    if backend == "memory":
        log.warning("Refresh tokens are kept in process memory; they do not survive restarts")
        return InMemoryRefreshTokenStore()
    raise ConfigurationError(f"Unknown REFRESH_TOKEN_STORE: {backend!r}")


def build_rotation_policy(app: Flask) -> RotationPolicy:
    cfg = app.config
    return RotationPolicy(
        refresh_ttl=timedelta(days=int(cfg.get("REFRESH_TOKEN_EXPIRES_DAYS", 7))),
        burst_threshold=int(cfg.get("ROTATION_BURST_THRESHOLD", 5)),
        burst_window=timedelta(seconds=int(cfg.get("ROTATION_BURST_WINDOW_SECONDS", 60))),
        max_user_agents=int(cfg.get("ROTATION_MAX_USER_AGENTS", 1)),
        max_active_tokens=int(cfg.get("ROTATION_MAX_ACTIVE_TOKENS", 1)),
    )


def build_auth_service(app: Flask) -> AuthService:
    """Assemble codec, store, engine and services for ``app``.

    Raises
    ------
    ConfigurationError
        Missing or too short ``JWT_SECRET_KEY``, or unknown store backend.
    """
    codec = JWTTokenCodec(
        app.config.get("JWT_SECRET_KEY"),
        access_ttl=timedelta(minutes=int(app.config.get("ACCESS_TOKEN_EXPIRES_MINUTES", 15))),
    )
    identity = IdentityService()
    engine = RefreshRotationEngine(
        store=build_refresh_store(app),
        codec=codec,
        principals=identity.find_principal,
        policy=build_rotation_policy(app),
    )
    return AuthService(identity=identity, engine=engine, codec=codec, audit=AuditService())


def init_app(app: Flask) -> None:
    """Build the authentication stack once and attach it to ``app.extensions``."""
    app.extensions[EXTENSION_KEY] = build_auth_service(app)


def get_auth_service() -> AuthService:
    """Return the :class:`AuthService` of the current application."""
    service = current_app.extensions.get(EXTENSION_KEY)
    if service is None:
        raise RuntimeError("Auth service not initialized; call container.init_app(app) first.")
    return cast(AuthService, service)
