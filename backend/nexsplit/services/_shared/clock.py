"""Time source shared by the codec, the rotation engine and the stores."""

from __future__ import annotations

from collections.abc import Callable
from datetime import UTC, datetime

#: Zero-argument callable returning the current instant as an aware UTC datetime.
Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Default :data:`Clock` backed by the system wall clock."""
    return datetime.now(UTC)


def as_utc(value: datetime) -> datetime:
    """
    Return ``value`` as an aware UTC datetime.

    SQLite drops tzinfo on ``DateTime(timezone=True)`` columns; values are
    always written in UTC so a naive read-back is reinterpreted as UTC.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)
