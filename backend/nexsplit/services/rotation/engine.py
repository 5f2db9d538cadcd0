"""
RefreshRotationEngine
=====================

Refresh-token rotation with theft detection.

Every refresh token belongs to a *family* started at sign-in. Presenting a
token consumes it and mints its successor in the same family. Presenting a
consumed token again (reuse), several devices transacting against one family,
or an abnormal rotation rate are treated as theft: the whole family is
revoked so both the legitimate client and the attacker must sign in again.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from nexsplit.services._shared.clock import Clock, utc_now
from nexsplit.services._shared.errors import (
    InvalidRefreshTokenError,
    RotationRateExceededError,
    SuspiciousFamilyActivityError,
    TokenReuseDetectedError,
    TokenTheftError,
)
from nexsplit.services._shared.ports import (
    RefreshTokenRecord,
    RefreshTokenStore,
    RotationResult,
    TokenCodec,
    TokenState,
    hash_token,
    new_family_id,
    new_refresh_token,
)
from nexsplit.services.rotation.dto import IssuedTokens, Principal, RotationPolicy

log = logging.getLogger(__name__)

#: Resolves the current owner of a family; ``None`` when it no longer exists.
PrincipalLookup = Callable[[int], Principal | None]

_BENIGN = {
    RotationResult.NOT_FOUND,
    RotationResult.REVOKED,
    RotationResult.EXPIRED,
}

_THEFT_ERRORS: dict[RotationResult, tuple[type[TokenTheftError], str]] = {
    RotationResult.REUSED: (TokenReuseDetectedError, "Refresh token reuse detected."),
    RotationResult.SUSPICIOUS_FAMILY: (
        SuspiciousFamilyActivityError,
        "Suspicious activity in token family.",
    ),
    RotationResult.RATE_EXCEEDED: (RotationRateExceededError, "Token rotation rate exceeded."),
}


@dataclass(frozen=True, slots=True)
class _Outcome:
    result: RotationResult
    presented: RefreshTokenRecord | None = None
    raw_token: str | None = None
    successor: RefreshTokenRecord | None = None


class RefreshRotationEngine:
    """
    Coordinates the refresh-token store and the access-token codec.

    :param store: Refresh-token persistence port.
    :param codec: Access-token codec.
    :param principals: Lookup from user id to the principal to mint for.
    :param policy: Lifetimes and theft-detection thresholds.
    :param clock: Time source shared with the codec.
    """

    def __init__(
        self,
        *,
        store: RefreshTokenStore,
        codec: TokenCodec,
        principals: PrincipalLookup,
        policy: RotationPolicy | None = None,
        clock: Clock = utc_now,
    ) -> None:
        self.store = store
        self.codec = codec
        self.principals = principals
        self.policy = policy or RotationPolicy()
        self.clock = clock

    # ------------------------------------------------------------------ #
    # Issuance
    # ------------------------------------------------------------------ #

    def issue_initial_family(
        self,
        principal: Principal,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> IssuedTokens:
        """
        Start a new family for ``principal`` (sign-in).

        The refresh record is persisted before any token leaves the engine.
        """
        now = self.clock()
        raw = new_refresh_token()
        record = RefreshTokenRecord.issue(
            raw_token=raw,
            user_id=principal.user_id,
            family_id=new_family_id(),
            now=now,
            ttl=self.policy.refresh_ttl,
            ip_address=ip_address,
            user_agent=user_agent,
        )
        self.store.save(record)
        log.info(
            "Refresh token family issued",
            extra={
                "event": "FAMILY_ISSUED",
                "family_id": record.family_id,
                "user_id": principal.user_id,
            },
        )
        return self._pair(principal, raw, record)

    # ------------------------------------------------------------------ #
    # Rotation
    # ------------------------------------------------------------------ #

    def rotate(
        self,
        presented: str,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> IssuedTokens:
        """
        Exchange ``presented`` for a new token pair.

        Validation, theft heuristics and the consume-and-mint step run as one
        atomic unit on the store, keyed by the presented token's hash. Errors
        are raised only after that unit committed, so a family revoked in
        response to theft stays revoked whatever the caller does next.

        :raises InvalidRefreshTokenError: Unknown, revoked or expired token,
            or the owning principal no longer exists.
        :raises TokenReuseDetectedError: The token had already been consumed.
        :raises SuspiciousFamilyActivityError: Too many devices or active
            tokens in the family.
        :raises RotationRateExceededError: Too many rotations in the burst window.
        """
        token_hash = hash_token(presented or "")
        now = self.clock()

        outcome = self.store.run_atomic(
            token_hash,
            lambda store: self._rotate_in_unit(store, token_hash, now, ip_address, user_agent),
        )
        record = outcome.presented

        if record is None or outcome.result in _BENIGN:
            log.info(
                "Refresh token rejected",
                extra={
                    "event": "REFRESH_REJECTED",
                    "reason": outcome.result.name,
                    "family_id": record.family_id if record else None,
                    "user_id": record.user_id if record else None,
                },
            )
            raise InvalidRefreshTokenError()

        theft = _THEFT_ERRORS.get(outcome.result)
        if theft is not None:
            error_cls, message = theft
            log.warning(
                "%s Family revoked.",
                message,
                extra={
                    "event": error_cls.event_type,
                    "family_id": record.family_id,
                    "user_id": record.user_id,
                },
            )
            raise error_cls(message, family_id=record.family_id, user_id=str(record.user_id))

        principal = self.principals(record.user_id)
        if principal is None or outcome.successor is None or outcome.raw_token is None:
            self.store.revoke_family(record.family_id)
            log.warning(
                "Refresh token owner no longer exists; family revoked",
                extra={
                    "event": "OWNER_MISSING",
                    "family_id": record.family_id,
                    "user_id": record.user_id,
                },
            )
            raise InvalidRefreshTokenError()

        log.info(
            "Refresh token rotated",
            extra={"event": "TOKEN_ROTATED", "family_id": record.family_id, "user_id": record.user_id},
        )
        return self._pair(principal, outcome.raw_token, outcome.successor)

    def _rotate_in_unit(
        self,
        store: RefreshTokenStore,
        token_hash: str,
        now: datetime,
        ip_address: str | None,
        user_agent: str | None,
    ) -> _Outcome:
        record = store.find_by_hash(token_hash)
        if record is None:
            return _Outcome(RotationResult.NOT_FOUND)

        state = record.state(now)
        if state is TokenState.REVOKED:
            return _Outcome(RotationResult.REVOKED, record)
        if state is TokenState.USED:
            store.revoke_family(record.family_id)
            return _Outcome(RotationResult.REUSED, record)
        if state is TokenState.EXPIRED:
            return _Outcome(RotationResult.EXPIRED, record)

        policy = self.policy
        if (
            store.count_distinct_agents_in_family(record.family_id) > policy.max_user_agents
            or store.count_active_in_family(record.family_id) > policy.max_active_tokens
        ):
            store.revoke_family(record.family_id)
            return _Outcome(RotationResult.SUSPICIOUS_FAMILY, record)

        recent = store.count_recent_in_family(record.family_id, policy.burst_window, now)
        if recent > policy.burst_threshold:
            store.revoke_family(record.family_id)
            return _Outcome(RotationResult.RATE_EXCEEDED, record)

        store.save(record.mark_used(now))
        raw = new_refresh_token()
        successor = RefreshTokenRecord.issue(
            raw_token=raw,
            user_id=record.user_id,
            family_id=record.family_id,
            now=now,
            ttl=policy.refresh_ttl,
            ip_address=ip_address,
            user_agent=user_agent,
        )
        store.save(successor)
        return _Outcome(RotationResult.OK, record, raw, successor)

    # ------------------------------------------------------------------ #
    # Revocation & maintenance
    # ------------------------------------------------------------------ #

    def revoke_family(self, family_id: str) -> int:
        """Revoke every token of the family. :returns: Records newly revoked."""
        revoked = self.store.revoke_family(family_id)
        log.info("Token family revoked", extra={"event": "FAMILY_REVOKED", "family_id": family_id})
        return revoked

    def revoke_all_for_user(self, user_id: int) -> int:
        """Revoke every family holding a valid token of ``user_id`` (sign out everywhere)."""
        families = {r.family_id for r in self.store.find_valid_by_user(user_id, self.clock())}
        revoked = sum(self.store.revoke_family(family_id) for family_id in sorted(families))
        log.info(
            "All token families revoked for user",
            extra={"event": "USER_FAMILIES_REVOKED", "user_id": user_id},
        )
        return revoked

    def lookup(self, presented: str) -> RefreshTokenRecord | None:
        """Return the record behind ``presented`` without validating it."""
        return self.store.find_by_hash(hash_token(presented or ""))

    def family_members(self, family_id: str) -> list[RefreshTokenRecord]:
        return self.store.find_by_family(family_id)

    def sweep(self, now: datetime | None = None) -> int:
        """Delete records that expired strictly before ``now`` (engine clock by default)."""
        deleted = self.store.delete_expired(now or self.clock())
        log.info("Expired refresh tokens swept: %d", deleted, extra={"event": "TOKENS_SWEPT"})
        return deleted

    # ------------------------------------------------------------------ #
    # Helpers
    # ------------------------------------------------------------------ #

    def _pair(self, principal: Principal, raw: str, record: RefreshTokenRecord) -> IssuedTokens:
        return IssuedTokens(
            access_token=self.codec.issue_access_token(principal.email, principal.role),
            refresh_token=raw,
            family_id=record.family_id,
            user_id=record.user_id,
            refresh_expires_at=record.expires_at,
        )
