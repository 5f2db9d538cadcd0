# comments in English; reST docstrings
from __future__ import annotations

from abc import abstractmethod
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import UTC, datetime, timedelta
from typing import Any, TypeVar

import redis
from redis.client import Pipeline
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError

from nexsplit.services._shared.errors import StoreUnavailableError
from nexsplit.services._shared.ports import RefreshTokenRecord, RefreshTokenStore

T = TypeVar("T")

EXPIRY_INDEX = "rt:expiry"


def _k(token_hash: str) -> str:
    return f"rt:{token_hash}"


def _kf(family_id: str) -> str:
    return f"rt:f:{family_id}"


def _ku(user_id: int) -> str:
    return f"rt:u:{user_id}"


def _s(value: Any) -> str:
    return value.decode() if isinstance(value, bytes | bytearray) else str(value)


def _dt(value: str) -> datetime | None:
    return datetime.fromisoformat(value).astimezone(UTC) if value else None


def _dump(record: RefreshTokenRecord) -> dict[str, str]:
    return {
        "id": record.id,
        "user_id": str(record.user_id),
        "family_id": record.family_id,
        "expires_at": record.expires_at.astimezone(UTC).isoformat(),
        "created_at": record.created_at.astimezone(UTC).isoformat(),
        "is_used": "1" if record.is_used else "0",
        "is_revoked": "1" if record.is_revoked else "0",
        "used_at": record.used_at.astimezone(UTC).isoformat() if record.used_at else "",
        "ip_address": record.ip_address or "",
        "user_agent": record.user_agent or "",
    }


def _load(token_hash: str, raw: dict[Any, Any]) -> RefreshTokenRecord:
    h = {_s(k): _s(v) for k, v in raw.items()}
    return RefreshTokenRecord(
        id=h["id"],
        token_hash=token_hash,
        user_id=int(h["user_id"]),
        family_id=h["family_id"],
        expires_at=datetime.fromisoformat(h["expires_at"]).astimezone(UTC),
        created_at=datetime.fromisoformat(h["created_at"]).astimezone(UTC),
        is_used=h.get("is_used") == "1",
        is_revoked=h.get("is_revoked") == "1",
        used_at=_dt(h.get("used_at", "")),
        ip_address=h.get("ip_address") or None,
        user_agent=h.get("user_agent") or None,
    )


class _RedisStoreOps(RefreshTokenStore):
    """
    Store operations shared by the client-backed store and the watched view.

    Reads go through ``self._r``; every write is expressed as a callback on a
    pipeline and handed to :meth:`_apply`.
    """

    _r: Any

    @abstractmethod
    def _apply(self, write: Callable[[Pipeline], None]) -> None:
        """Execute or buffer ``write`` against a pipeline."""

    # -------------------- reads ------------------------

    def find_by_hash(self, token_hash: str) -> RefreshTokenRecord | None:
        raw = self._r.hgetall(_k(token_hash))
        return _load(token_hash, raw) if raw else None

    def _members(self, index_key: str) -> list[RefreshTokenRecord]:
        records: list[RefreshTokenRecord] = []
        for member in self._r.smembers(index_key):
            record = self.find_by_hash(_s(member))
            if record is not None:
                records.append(record)
        return records

    def find_valid_by_user(self, user_id: int, now: datetime) -> list[RefreshTokenRecord]:
        return [r for r in self._members(_ku(user_id)) if r.is_valid(now)]

    def find_by_family(self, family_id: str) -> list[RefreshTokenRecord]:
        return sorted(self._members(_kf(family_id)), key=lambda r: r.created_at)

    def _active_in_family(self, family_id: str) -> list[RefreshTokenRecord]:
        return [r for r in self._members(_kf(family_id)) if not r.is_used and not r.is_revoked]

    def count_active_in_family(self, family_id: str) -> int:
        return len(self._active_in_family(family_id))

    def count_distinct_agents_in_family(self, family_id: str) -> int:
        return len({r.user_agent for r in self._active_in_family(family_id) if r.user_agent})

    def count_recent_in_family(self, family_id: str, window: timedelta, now: datetime) -> int:
        cutoff = now - window
        return sum(1 for r in self._members(_kf(family_id)) if r.created_at > cutoff)

    # -------------------- writes -----------------------

    def save(self, record: RefreshTokenRecord) -> RefreshTokenRecord:
        def _write(p: Pipeline) -> None:
            p.hset(_k(record.token_hash), mapping=_dump(record))
            p.sadd(_kf(record.family_id), record.token_hash)
            p.sadd(_ku(record.user_id), record.token_hash)
            p.zadd(EXPIRY_INDEX, {record.token_hash: record.expires_at.timestamp()})

        self._apply(_write)
        return record

    def revoke_family(self, family_id: str) -> int:
        targets = [r.token_hash for r in self._members(_kf(family_id)) if not r.is_revoked]
        if not targets:
            return 0

        def _write(p: Pipeline) -> None:
            for token_hash in targets:
                p.hset(_k(token_hash), "is_revoked", "1")

        self._apply(_write)
        return len(targets)

    def delete_expired(self, now: datetime) -> int:
        # Scores are approximate; the exact comparison is done on the record.
        candidates = [
            _s(m) for m in self._r.zrangebyscore(EXPIRY_INDEX, "-inf", now.timestamp())
        ]
        doomed: list[RefreshTokenRecord] = []
        stale: list[str] = []
        for token_hash in candidates:
            record = self.find_by_hash(token_hash)
            if record is None:
                stale.append(token_hash)
            elif record.expires_at < now:
                doomed.append(record)
        if not doomed and not stale:
            return 0

        def _write(p: Pipeline) -> None:
            for record in doomed:
                p.delete(_k(record.token_hash))
                p.srem(_kf(record.family_id), record.token_hash)
                p.srem(_ku(record.user_id), record.token_hash)
                p.zrem(EXPIRY_INDEX, record.token_hash)
            for token_hash in stale:
                p.zrem(EXPIRY_INDEX, token_hash)

        self._apply(_write)
        return len(doomed)


class _WatchedView(_RedisStoreOps):
    """
    Store view used inside :meth:`RedisRefreshTokenStore.run_atomic`.

    Reads execute immediately on the watching pipeline; writes are buffered
    and replayed inside ``MULTI``/``EXEC``. Reads made inside the unit do not
    observe the unit's own buffered writes.
    """

    def __init__(self, pipe: Pipeline) -> None:
        self._r = pipe
        self.pending: list[Callable[[Pipeline], None]] = []

    def _apply(self, write: Callable[[Pipeline], None]) -> None:
        self.pending.append(write)

    def find_by_hash(self, token_hash: str) -> RefreshTokenRecord | None:
        record = super().find_by_hash(token_hash)
        if record is not None:
            # Membership changes of the family also invalidate the unit.
            self._r.watch(_kf(record.family_id))
        return record

    def run_atomic(self, token_hash: str, operation: Callable[[RefreshTokenStore], T]) -> T:
        return operation(self)


class RedisRefreshTokenStore(_RedisStoreOps):
    """
    Redis-backed refresh-token store.

    Layout
    ------
    - ``rt:{hash}``: hash holding the record fields.
    - ``rt:f:{family_id}`` / ``rt:u:{user_id}``: sets of token hashes.
    - ``rt:expiry``: sorted set of token hashes scored by expiry timestamp,
      consumed by :meth:`delete_expired`.

    Keys carry no Redis TTL: used tokens must outlive their successors for
    reuse detection, and the periodic sweep is the only deletion path.

    :meth:`run_atomic` uses WATCH/MULTI/EXEC (optimistic locking) and re-runs
    the operation when a watched key changed before ``EXEC``.

    :param r: A Redis client (already connected).
    """

    def __init__(self, r: redis.Redis) -> None:
        self.r = r
        self._r = r

    @contextmanager
    def _available(self) -> Iterator[None]:
        try:
            yield
        except (RedisConnectionError, RedisTimeoutError) as exc:
            raise StoreUnavailableError("Refresh token storage is unavailable.") from exc

    def _apply(self, write: Callable[[Pipeline], None]) -> None:
        with self.r.pipeline(transaction=True) as p:
            write(p)
            p.execute()

    def _transact(self, watch_key: str, operation: Callable[[RefreshTokenStore], T]) -> T:
        # Retry loop for optimistic locking in case of concurrent modifications
        with self._available():
            while True:
                with self.r.pipeline() as p:
                    try:
                        p.watch(watch_key)
                        view = _WatchedView(p)
                        result = operation(view)
                        p.multi()
                        for write in view.pending:
                            write(p)
                        p.execute()
                        return result
                    except redis.WatchError:
                        continue

    # -------------------- API ------------------------

    def find_by_hash(self, token_hash: str) -> RefreshTokenRecord | None:
        with self._available():
            return super().find_by_hash(token_hash)

    def find_valid_by_user(self, user_id: int, now: datetime) -> list[RefreshTokenRecord]:
        with self._available():
            return super().find_valid_by_user(user_id, now)

    def find_by_family(self, family_id: str) -> list[RefreshTokenRecord]:
        with self._available():
            return super().find_by_family(family_id)

    def count_active_in_family(self, family_id: str) -> int:
        with self._available():
            return super().count_active_in_family(family_id)

    def count_distinct_agents_in_family(self, family_id: str) -> int:
        with self._available():
            return super().count_distinct_agents_in_family(family_id)

    def count_recent_in_family(self, family_id: str, window: timedelta, now: datetime) -> int:
        with self._available():
            return super().count_recent_in_family(family_id, window, now)

    def save(self, record: RefreshTokenRecord) -> RefreshTokenRecord:
        with self._available():
            return super().save(record)

    def revoke_family(self, family_id: str) -> int:
        return self._transact(_kf(family_id), lambda view: view.revoke_family(family_id))

    def delete_expired(self, now: datetime) -> int:
        return self._transact(EXPIRY_INDEX, lambda view: view.delete_expired(now))

    def run_atomic(self, token_hash: str, operation: Callable[[RefreshTokenStore], T]) -> T:
        return self._transact(_k(token_hash), operation)
