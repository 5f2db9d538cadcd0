"""
nexsplit.services._shared.ports
===============================

*Ports* (hexagonal interfaces) the service layer depends on for token
handling.

Modules
-------
- :mod:`token_codec`:
    :class:`~.TokenCodec` and the verified :class:`~.AccessTokenClaims`.

- :mod:`refresh_token_store`:
    :class:`~.RefreshTokenStore`, the immutable :class:`~.RefreshTokenRecord`,
    :class:`~.RotationResult` and an in-memory adapter.

Concrete adapters (SQLAlchemy, Redis, PyJWT) live under ``nexsplit.infra``.
"""

from __future__ import annotations

from .refresh_token_store import (
    InMemoryRefreshTokenStore,
    RefreshTokenRecord,
    RefreshTokenStore,
    RotationResult,
    TokenState,
    hash_token,
    new_family_id,
    new_refresh_token,
)
from .token_codec import AccessTokenClaims, TokenCodec

__all__ = [
    "AccessTokenClaims",
    "InMemoryRefreshTokenStore",
    "RefreshTokenRecord",
    "RefreshTokenStore",
    "RotationResult",
    "TokenCodec",
    "TokenState",
    "hash_token",
    "new_family_id",
    "new_refresh_token",
]
