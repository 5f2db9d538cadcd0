from __future__ import annotations

import hashlib
import secrets
import threading
from collections.abc import Callable
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from enum import Enum, auto
from typing import Protocol, TypeVar
from uuid import uuid4

T = TypeVar("T")


def new_refresh_token() -> str:
    """Return a fresh opaque refresh token (256 bits, URL-safe)."""
    return secrets.token_urlsafe(32)


def hash_token(raw: str) -> str:
    """Return the SHA-256 hex digest stored in place of the raw token."""
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


def new_family_id() -> str:
    return str(uuid4())


class TokenState(Enum):
    """Lifecycle state of a refresh token at a given instant."""

    ACTIVE = auto()
    USED = auto()
    REVOKED = auto()
    EXPIRED = auto()


class RotationResult(Enum):
    """Outcome of an atomic refresh rotation attempt."""

    OK = auto()
    NOT_FOUND = auto()
    EXPIRED = auto()
    REVOKED = auto()
    REUSED = auto()
    SUSPICIOUS_FAMILY = auto()
    RATE_EXCEEDED = auto()


@dataclass(frozen=True)
class RefreshTokenRecord:
    """
    Immutable snapshot of one persisted refresh token.

    Transitions return new snapshots; the store decides when they are written.

    :ivar id: Record identifier (UUID string).
    :ivar token_hash: SHA-256 hex digest of the raw token.
    :ivar user_id: Owner user id.
    :ivar family_id: Rotation family.
    :ivar expires_at: Absolute expiration (UTC).
    :ivar is_used: Consumed by a rotation.
    :ivar is_revoked: Revoked by logout or theft response.
    :ivar created_at: Issuance instant (UTC).
    :ivar used_at: Consumption instant, when used.
    :ivar ip_address: Client address at issuance.
    :ivar user_agent: Client user agent at issuance.
    """

    id: str
    token_hash: str
    user_id: int
    family_id: str
    expires_at: datetime
    created_at: datetime
    is_used: bool = False
    is_revoked: bool = False
    used_at: datetime | None = None
    ip_address: str | None = None
    user_agent: str | None = None

    @classmethod
    def issue(
        cls,
        *,
        raw_token: str,
        user_id: int,
        family_id: str,
        now: datetime,
        ttl: timedelta,
        ip_address: str | None = None,
        user_agent: str | None = None,
    ) -> RefreshTokenRecord:
        return cls(
            id=str(uuid4()),
            token_hash=hash_token(raw_token),
            user_id=user_id,
            family_id=family_id,
            expires_at=now + ttl,
            created_at=now,
            ip_address=ip_address,
            user_agent=user_agent,
        )

    def is_expired(self, now: datetime) -> bool:
        return now >= self.expires_at

    def is_valid(self, now: datetime) -> bool:
        return not self.is_used and not self.is_revoked and not self.is_expired(now)

    def state(self, now: datetime) -> TokenState:
        if self.is_revoked:
            return TokenState.REVOKED
        if self.is_used:
            return TokenState.USED
        if self.is_expired(now):
            return TokenState.EXPIRED
        return TokenState.ACTIVE

    def mark_used(self, now: datetime) -> RefreshTokenRecord:
        return replace(self, is_used=True, used_at=now)

    def revoke(self) -> RefreshTokenRecord:
        return replace(self, is_revoked=True)


class RefreshTokenStore(Protocol):
    """
    Persistence port for refresh-token records, keyed by token hash.

    Every write is idempotent. :meth:`run_atomic` is the only way to perform a
    read-check-write sequence: two operations passed for the same hash never
    interleave, and the writes of a returned operation are durable once it
    returns (even when the returned value signals a failure).
    """

    def find_by_hash(self, token_hash: str) -> RefreshTokenRecord | None: ...

    def save(self, record: RefreshTokenRecord) -> RefreshTokenRecord:
        """Insert ``record`` or overwrite the record with the same hash."""
        ...

    def find_valid_by_user(self, user_id: int, now: datetime) -> list[RefreshTokenRecord]:
        """Records of ``user_id`` that are unused, unrevoked and unexpired at ``now``."""
        ...

    def find_by_family(self, family_id: str) -> list[RefreshTokenRecord]: ...

    def count_active_in_family(self, family_id: str) -> int:
        """Unused and unrevoked records of the family."""
        ...

    def count_distinct_agents_in_family(self, family_id: str) -> int:
        """Distinct non-null user agents among unused and unrevoked records."""
        ...

    def count_recent_in_family(self, family_id: str, window: timedelta, now: datetime) -> int:
        """Records of the family created strictly after ``now - window``."""
        ...

    def revoke_family(self, family_id: str) -> int:
        """Revoke every record of the family. :returns: Records newly revoked."""
        ...

    def delete_expired(self, now: datetime) -> int:
        """Delete records with ``expires_at < now``. :returns: Records deleted."""
        ...

    def run_atomic(self, token_hash: str, operation: Callable[[RefreshTokenStore], T]) -> T:
        """
        Execute ``operation`` against a store view as one serialized unit.

        :param token_hash: Hash the operation is keyed on (lock scope).
        :param operation: Callable receiving the store to use inside the unit.
        :returns: Whatever ``operation`` returns, after its writes are committed.
        """
        ...


class InMemoryRefreshTokenStore(RefreshTokenStore):
    """
    Dict-backed refresh-token store.

    .. note::
       A single re-entrant lock serializes :meth:`run_atomic` (and every other
       call), which is stronger than per-hash locking and fine for unit tests
       and single-process development.
    """

    def __init__(self) -> None:
        self._by_hash: dict[str, RefreshTokenRecord] = {}
        self._lock = threading.RLock()

    # -------------------------- reads ----------------------------

    def find_by_hash(self, token_hash: str) -> RefreshTokenRecord | None:
        with self._lock:
            return self._by_hash.get(token_hash)

    def find_valid_by_user(self, user_id: int, now: datetime) -> list[RefreshTokenRecord]:
        with self._lock:
            return [r for r in self._by_hash.values() if r.user_id == user_id and r.is_valid(now)]

    def find_by_family(self, family_id: str) -> list[RefreshTokenRecord]:
        with self._lock:
            return sorted(
                (r for r in self._by_hash.values() if r.family_id == family_id),
                key=lambda r: r.created_at,
            )

    def _active_in_family(self, family_id: str) -> list[RefreshTokenRecord]:
        return [
            r
            for r in self._by_hash.values()
            if r.family_id == family_id and not r.is_used and not r.is_revoked
        ]

    def count_active_in_family(self, family_id: str) -> int:
        with self._lock:
            return len(self._active_in_family(family_id))

    def count_distinct_agents_in_family(self, family_id: str) -> int:
        with self._lock:
            return len({r.user_agent for r in self._active_in_family(family_id) if r.user_agent})

    def count_recent_in_family(self, family_id: str, window: timedelta, now: datetime) -> int:
        cutoff = now - window
        with self._lock:
            return sum(
                1
                for r in self._by_hash.values()
                if r.family_id == family_id and r.created_at > cutoff
            )

    # -------------------------- writes ---------------------------

    def save(self, record: RefreshTokenRecord) -> RefreshTokenRecord:
        with self._lock:
            self._by_hash[record.token_hash] = record
            return record

    def revoke_family(self, family_id: str) -> int:
        with self._lock:
            affected = 0
            for token_hash, record in list(self._by_hash.items()):
                if record.family_id == family_id and not record.is_revoked:
                    self._by_hash[token_hash] = record.revoke()
                    affected += 1
            return affected

    def delete_expired(self, now: datetime) -> int:
        with self._lock:
            expired = [h for h, r in self._by_hash.items() if r.expires_at < now]
            for token_hash in expired:
                del self._by_hash[token_hash]
            return len(expired)

    def run_atomic(self, token_hash: str, operation: Callable[[RefreshTokenStore], T]) -> T:
        with self._lock:
            return operation(self)
