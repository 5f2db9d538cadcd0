# comments in English; reST docstrings
from __future__ import annotations

from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import datetime, timedelta
from typing import TypeVar

from sqlalchemy.exc import OperationalError

from nexsplit.models.refresh_token import RefreshToken
from nexsplit.repositories.refresh_token import RefreshTokenRepository
from nexsplit.services._shared.clock import as_utc
from nexsplit.services._shared.errors import StoreUnavailableError
from nexsplit.services._shared.ports import RefreshTokenRecord, RefreshTokenStore
from nexsplit.uow.sqlalchemy_uow import SQLAlchemyReadOnlyUnitOfWork, SQLAlchemyUnitOfWork

T = TypeVar("T")


def to_record(row: RefreshToken) -> RefreshTokenRecord:
    """Snapshot an ORM row into an immutable :class:`RefreshTokenRecord`."""
    return RefreshTokenRecord(
        id=row.id,
        token_hash=row.token_hash,
        user_id=row.user_id,
        family_id=row.family_id,
        expires_at=as_utc(row.expires_at),
        created_at=as_utc(row.created_at),
        is_used=bool(row.is_used),
        is_revoked=bool(row.is_revoked),
        used_at=as_utc(row.used_at) if row.used_at is not None else None,
        ip_address=row.ip_address,
        user_agent=row.user_agent,
    )


class SessionRefreshTokenStore(RefreshTokenStore):
    """
    Store view bound to one repository (and therefore one session).

    Never commits: the enclosing Unit of Work owns the transaction. Handed to
    the operation passed to :meth:`SqlAlchemyRefreshTokenStore.run_atomic`.
    """

    def __init__(self, repo: RefreshTokenRepository) -> None:
        self.repo = repo

    def find_by_hash(self, token_hash: str) -> RefreshTokenRecord | None:
        row = self.repo.get_by_hash(token_hash)
        return to_record(row) if row is not None else None

    def save(self, record: RefreshTokenRecord) -> RefreshTokenRecord:
        row = self.repo.get_by_hash(record.token_hash)
        if row is None:
            self.repo.add(
                RefreshToken(
                    id=record.id,
                    token_hash=record.token_hash,
                    user_id=record.user_id,
                    family_id=record.family_id,
                    expires_at=record.expires_at,
                    created_at=record.created_at,
                    is_used=record.is_used,
                    is_revoked=record.is_revoked,
                    used_at=record.used_at,
                    ip_address=record.ip_address,
                    user_agent=record.user_agent,
                )
            )
            return record

        row.expires_at = record.expires_at
        row.is_used = record.is_used
        row.is_revoked = record.is_revoked
        row.used_at = record.used_at
        row.ip_address = record.ip_address
        row.user_agent = record.user_agent
        self.repo.flush()
        return record

    def find_valid_by_user(self, user_id: int, now: datetime) -> list[RefreshTokenRecord]:
        return [to_record(row) for row in self.repo.list_valid_by_user(user_id, now)]

    def find_by_family(self, family_id: str) -> list[RefreshTokenRecord]:
        return [to_record(row) for row in self.repo.list_by_family(family_id)]

    def count_active_in_family(self, family_id: str) -> int:
        return self.repo.count_active_in_family(family_id)

    def count_distinct_agents_in_family(self, family_id: str) -> int:
        return self.repo.count_distinct_agents_in_family(family_id)

    def count_recent_in_family(self, family_id: str, window: timedelta, now: datetime) -> int:
        return self.repo.count_created_after(family_id, now - window)

    def revoke_family(self, family_id: str) -> int:
        return self.repo.revoke_family(family_id)

    def delete_expired(self, now: datetime) -> int:
        return self.repo.delete_expired(now)

    def run_atomic(self, token_hash: str, operation: Callable[[RefreshTokenStore], T]) -> T:
        # Already inside a unit: the row lock is held by the outer call.
        return operation(self)


class SqlAlchemyRefreshTokenStore(RefreshTokenStore):
    """
    Relational refresh-token store.

    Each call runs in its own Unit of Work (read-only for queries, read-write
    for writes). :meth:`run_atomic` locks the presented row with
    ``SELECT ... FOR UPDATE``, runs the operation on a
    :class:`SessionRefreshTokenStore` sharing that transaction, then commits.
    Two rotations of the same token therefore serialize on the row lock; the
    loser observes the winner's committed ``is_used`` flag.

    ``OperationalError`` (lost connection, lock timeout) is surfaced as
    :class:`StoreUnavailableError`.
    """

    def __init__(
        self,
        *,
        rw_uow: Callable[[], SQLAlchemyUnitOfWork] = SQLAlchemyUnitOfWork,
        ro_uow: Callable[[], SQLAlchemyReadOnlyUnitOfWork] = SQLAlchemyReadOnlyUnitOfWork,
    ) -> None:
        self._rw_uow = rw_uow
        self._ro_uow = ro_uow

    @contextmanager
    def _available(self) -> Iterator[None]:
        try:
            yield
        except OperationalError as exc:
            raise StoreUnavailableError("Refresh token storage is unavailable.") from exc

    def _read(self, fn: Callable[[SessionRefreshTokenStore], T]) -> T:
        with self._available(), self._ro_uow() as uow:
            return fn(SessionRefreshTokenStore(uow.refresh_tokens))

    def _write(self, fn: Callable[[SessionRefreshTokenStore], T]) -> T:
        with self._available(), self._rw_uow() as uow:
            return fn(SessionRefreshTokenStore(uow.refresh_tokens))

    # -------------------------- reads ----------------------------

    def find_by_hash(self, token_hash: str) -> RefreshTokenRecord | None:
        return self._read(lambda s: s.find_by_hash(token_hash))

    def find_valid_by_user(self, user_id: int, now: datetime) -> list[RefreshTokenRecord]:
        return self._read(lambda s: s.find_valid_by_user(user_id, now))

    def find_by_family(self, family_id: str) -> list[RefreshTokenRecord]:
        return self._read(lambda s: s.find_by_family(family_id))

    def count_active_in_family(self, family_id: str) -> int:
        return self._read(lambda s: s.count_active_in_family(family_id))

    def count_distinct_agents_in_family(self, family_id: str) -> int:
        return self._read(lambda s: s.count_distinct_agents_in_family(family_id))

    def count_recent_in_family(self, family_id: str, window: timedelta, now: datetime) -> int:
        return self._read(lambda s: s.count_recent_in_family(family_id, window, now))

    # -------------------------- writes ---------------------------

    def save(self, record: RefreshTokenRecord) -> RefreshTokenRecord:
        return self._write(lambda s: s.save(record))

    def revoke_family(self, family_id: str) -> int:
        return self._write(lambda s: s.revoke_family(family_id))

    def delete_expired(self, now: datetime) -> int:
        return self._write(lambda s: s.delete_expired(now))

    def run_atomic(self, token_hash: str, operation: Callable[[RefreshTokenStore], T]) -> T:
        def _locked(store: SessionRefreshTokenStore) -> T:
            store.repo.get_by_hash(token_hash, for_update=True)
            return operation(store)

        return self._write(_locked)
