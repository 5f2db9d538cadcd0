# comments in English; reST docstrings
from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta
from typing import Any

import jwt

from nexsplit.services._shared.clock import Clock, utc_now
from nexsplit.services._shared.errors import (
    AccessTokenError,
    ConfigurationError,
    ExpiredTokenError,
    InvalidSignatureError,
    MalformedTokenError,
)
from nexsplit.services._shared.ports import AccessTokenClaims, TokenCodec

log = logging.getLogger(__name__)

ACCESS_TOKEN_TYPE = "access"
MIN_SECRET_BYTES = 32
_REQUIRED_CLAIMS = ["sub", "role", "iat", "exp", "type"]


class JWTTokenCodec(TokenCodec):
    """
    HS256 access-token codec built on PyJWT.

    Expiry is judged against the injected ``clock`` rather than PyJWT's wall
    clock, so time-dependent behaviour is reproducible.

    :param secret: Symmetric signing key, at least 32 bytes (UTF-8).
    :param access_ttl: Lifetime of issued access tokens.
    :param clock: Time source.
    :param algorithm: HMAC algorithm name.
    :raises ConfigurationError: When the secret is missing or too short.
    """

    def __init__(
        self,
        secret: str | None,
        *,
        access_ttl: timedelta = timedelta(minutes=15),
        clock: Clock = utc_now,
        algorithm: str = "HS256",
    ) -> None:
        if not secret or len(secret.encode("utf-8")) < MIN_SECRET_BYTES:
            raise ConfigurationError(
                f"JWT secret must be at least {MIN_SECRET_BYTES} bytes long for {algorithm}."
            )
        self._secret = secret
        self._access_ttl = access_ttl
        self._clock = clock
        self._algorithm = algorithm

    @property
    def access_ttl(self) -> timedelta:
        return self._access_ttl

    def issue_access_token(self, subject: str, role: str) -> str:
        now = self._clock()
        payload: dict[str, Any] = {
            "sub": subject,
            "role": role,
            "iat": int(now.timestamp()),
            "exp": int((now + self._access_ttl).timestamp()),
            "type": ACCESS_TOKEN_TYPE,
        }
        return jwt.encode(payload, self._secret, algorithm=self._algorithm)

    def parse_and_verify(self, token: str) -> AccessTokenClaims:
        try:
            payload = jwt.decode(
                token,
                self._secret,
                algorithms=[self._algorithm],
                # exp/iat are checked against the injected clock below
                options={"verify_exp": False, "verify_iat": False, "require": _REQUIRED_CLAIMS},
            )
        except jwt.InvalidSignatureError as exc:
            raise InvalidSignatureError("Access token signature is invalid.") from exc
        except jwt.InvalidTokenError as exc:
            raise MalformedTokenError("Access token is malformed.") from exc

        if payload.get("type") != ACCESS_TOKEN_TYPE:
            raise MalformedTokenError("Token is not an access token.")

        try:
            issued_at = datetime.fromtimestamp(int(payload["iat"]), tz=UTC)
            expires_at = datetime.fromtimestamp(int(payload["exp"]), tz=UTC)
        except (TypeError, ValueError, OverflowError) as exc:
            raise MalformedTokenError("Access token carries invalid timestamps.") from exc

        if self._clock() >= expires_at:
            raise ExpiredTokenError("Access token has expired.")

        return AccessTokenClaims(
            subject=str(payload["sub"]),
            role=str(payload["role"]),
            issued_at=issued_at,
            expires_at=expires_at,
        )

    def is_valid(self, token: str) -> bool:
        try:
            self.parse_and_verify(token)
        except AccessTokenError as exc:
            log.warning("Access token rejected: %s", exc.kind, extra={"reason": exc.kind})
            return False
        return True
