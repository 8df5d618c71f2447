"""Wall clock and identifier sources.

Services never call ``datetime.now`` or ``uuid4`` directly; they read both
through the unit of work so tests can pin time and ids.
"""

from __future__ import annotations

import itertools
import uuid
from datetime import UTC, datetime, timedelta
from typing import Protocol


class Clock(Protocol):
    def now(self) -> datetime:
        """Return the current instant (timezone-aware, UTC)."""
        ...


class IdGenerator(Protocol):
    def new_id(self) -> str:
        """Return a fresh opaque identifier."""
        ...


class SystemClock:
    def now(self) -> datetime:
        return datetime.now(UTC)


class UuidGenerator:
    def new_id(self) -> str:
        return str(uuid.uuid4())


class FrozenClock:
    """Controllable clock for tests and replays."""

    def __init__(self, start: datetime | None = None) -> None:
        self._now = as_utc(start) if start else datetime(2025, 1, 1, 9, 0, tzinfo=UTC)

    def now(self) -> datetime:
        return self._now

    def set(self, instant: datetime) -> None:
        self._now = as_utc(instant)

    def advance(self, delta: timedelta | None = None, **kwargs: float) -> datetime:
        self._now = self._now + (delta or timedelta(**kwargs))
        return self._now


class SequentialIdGenerator:
    """Deterministic ids: ``<prefix>-000001``, ``<prefix>-000002``, ..."""

    def __init__(self, prefix: str = "id") -> None:
        self.prefix = prefix
        self._counter = itertools.count(1)

    def new_id(self) -> str:
        return f"{self.prefix}-{next(self._counter):06d}"


def as_utc(value: datetime) -> datetime:
    """Normalise a datetime to aware UTC.

    SQLite hands back naive datetimes, Postgres aware ones.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)
