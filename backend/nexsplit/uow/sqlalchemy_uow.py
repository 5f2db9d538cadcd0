"""
SQLAlchemy implementations of :class:`~nexsplit.uow.base.UnitOfWork` for Flask.
"""

from __future__ import annotations

import logging
from contextlib import suppress

from sqlalchemy import event, text
from sqlalchemy.exc import InvalidRequestError, SQLAlchemyError
from sqlalchemy.orm import Session, SessionTransaction

from nexsplit.core.extensions import db
from nexsplit.repositories import (
    AuditEventRepository,
    RefreshTokenRepository,
    UserRepository,
)
from nexsplit.uow.base import UnitOfWork

log = logging.getLogger(__name__)

_ISOLATION_LEVELS = ("READ COMMITTED", "REPEATABLE READ", "SERIALIZABLE", "READ UNCOMMITTED")


class SQLAlchemyRepositoryContainer:
    """Repository instances sharing one SQLAlchemy session."""

    def __init__(self, *, session: Session) -> None:
        self.session = session
        self.users = UserRepository(session=self.session)
        self.refresh_tokens = RefreshTokenRepository(session=self.session)
        self.audit_events = AuditEventRepository(session=self.session)


class SQLAlchemyUnitOfWork(SQLAlchemyRepositoryContainer, UnitOfWork):
    """
    Read-write UoW on the Flask-scoped session.

    Commits when the ``with`` block exits cleanly, rolls back otherwise.
    """

    def __init__(self) -> None:
        super().__init__(session=db.session)

    def __enter__(self) -> SQLAlchemyUnitOfWork:
        # The session begins lazily on first use.
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc_type is None:
            try:
                self.commit()
            except Exception:
                self.rollback()
                raise
        else:
            self.rollback()

    def commit(self) -> None:
        self.session.commit()

    def rollback(self) -> None:
        self.session.rollback()


class SQLAlchemyReadOnlyUnitOfWork(SQLAlchemyRepositoryContainer, UnitOfWork):
    """
    Read-only UoW on the Flask-scoped session.

    - Owns a fresh transaction when possible and applies the isolation level
      plus ``SET TRANSACTION READ ONLY`` on PostgreSQL and MySQL.
    - Attaches to an already-begun transaction otherwise (test fixtures).
    - Blocks ORM flushes and DML at cursor level while active.
    - Always rolls back on exit; :meth:`commit` is refused.
    """

    _WRITE_PREFIXES = ("insert", "update", "delete", "merge", "alter", "drop", "truncate")

    def __init__(self, *, isolation_level: str | None = "READ COMMITTED") -> None:
        super().__init__(session=db.session)
        self.isolation_level = isolation_level
        self._txn_ctx: SessionTransaction | None = None
        self._guards_installed = False

    def __enter__(self) -> SQLAlchemyReadOnlyUnitOfWork:
        self._txn_ctx = None
        try:
            txn_ctx = self.session.begin()
            txn_ctx.__enter__()
            self._txn_ctx = txn_ctx
        except InvalidRequestError:
            # Transaction already begun on this session: inherit it.
            pass

        self._conn = self.session.connection()
        self._install_guards()

        if self._txn_ctx is not None and self._conn.dialect.name in (
            "postgresql",
            "mysql",
            "mariadb",
        ):
            try:
                if self.isolation_level:
                    iso = self.isolation_level.upper().strip()
                    if iso not in _ISOLATION_LEVELS:
                        log.warning("Unknown isolation_level '%s'; attempting as-is.", iso)
                    self.session.execute(text(f"SET TRANSACTION ISOLATION LEVEL {iso}"))
                self.session.execute(text("SET TRANSACTION READ ONLY"))
            except SQLAlchemyError as exc:
                log.warning("SET TRANSACTION directives failed (%s); guards only.", exc)

        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        try:
            if self._txn_ctx is not None:
                with suppress(SQLAlchemyError):
                    self.session.rollback()
                try:
                    self._txn_ctx.__exit__(exc_type, exc, tb)
                finally:
                    self._txn_ctx = None
        finally:
            self._remove_guards()
            self._conn = None

    def commit(self) -> None:
        raise RuntimeError("Read-only UnitOfWork does not allow commit().")

    def rollback(self) -> None:
        self.session.rollback()

    # ----------------------------- Guards -------------------------------------

    def _install_guards(self) -> None:
        if self._guards_installed:
            return

        def _before_flush(session, flush_context, instances):
            if session.new or session.dirty or session.deleted:
                raise RuntimeError("Read-only UnitOfWork: ORM flush blocked.")

        def _before_cursor_execute(conn, cursor, statement, parameters, context, executemany):
            first = statement.lstrip().split(None, 1)[0].lower() if statement else ""
            if first.startswith(self._WRITE_PREFIXES):
                raise RuntimeError(f"Read-only UnitOfWork: SQL statement blocked: {first.upper()}")

        event.listen(self.session, "before_flush", _before_flush)
        event.listen(self._conn, "before_cursor_execute", _before_cursor_execute)
        self._before_flush = _before_flush
        self._before_cursor_execute = _before_cursor_execute
        self._guards_installed = True

    def _remove_guards(self) -> None:
        if not self._guards_installed:
            return
        with suppress(InvalidRequestError):
            event.remove(self.session, "before_flush", self._before_flush)
        if self._conn is not None:
            with suppress(InvalidRequestError):
                event.remove(self._conn, "before_cursor_execute", self._before_cursor_execute)
        self._guards_installed = False
