from __future__ import annotations

from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import Any, TypeVar

import structlog
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from trustwork.core.clock import Clock, IdGenerator, SystemClock, UuidGenerator
from trustwork.core.config import Settings, get_settings
from trustwork.core.errors import PreconditionFailed
from trustwork.domain import Actor
from trustwork.infrastructure.repositories.store import EntityStore

logger = structlog.get_logger()

R = TypeVar("R")

SERIALIZATION_FAILURE = "40001"


def _is_conflict(exc: BaseException) -> bool:
    if isinstance(exc, (PreconditionFailed, StaleDataError, IntegrityError)):
        return True
    if isinstance(exc, DBAPIError):
        orig = exc.orig
        code = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
        return code == SERIALIZATION_FAILURE
    return False


class UnitOfWork:
    """Request-scoped transaction boundary.

    Bundles the session with the acting user, the clock, the id source and
    the caller deadline. ``run`` executes a coroutine function atomically and
    replays it on write conflicts.
    """

    def __init__(
        self,
        session: AsyncSession,
        *,
        actor: Actor,
        clock: Clock | None = None,
        ids: IdGenerator | None = None,
        settings: Settings | None = None,
        deadline: datetime | None = None,
    ) -> None:
        self.session = session
        self.actor = actor
        self.clock = clock or SystemClock()
        self.ids = ids or UuidGenerator()
        self.settings = settings or get_settings()
        self.deadline = deadline
        self.store = EntityStore(
            session, actor=actor, clock=self.clock, ids=self.ids, deadline=deadline
        )

    def now(self) -> datetime:
        return self.clock.now()

    async def run(self, fn: Callable[..., Awaitable[R]], *args: Any, **kwargs: Any) -> R:
        max_attempts = max(1, self.settings.transaction_max_retries)
        for attempt in range(1, max_attempts + 1):
            try:
                result = await fn(*args, **kwargs)
                await self.session.commit()
                return result
            except Exception as exc:
                await self.session.rollback()
                if not _is_conflict(exc):
                    raise
                if attempt == max_attempts:
                    logger.warning(
                        "transaction_conflict_exhausted",
                        operation=getattr(fn, "__name__", repr(fn)),
                        attempts=attempt,
                        error=type(exc).__name__,
                    )
                    if isinstance(exc, PreconditionFailed):
                        raise
                    raise PreconditionFailed(
                        "Concurrent update conflict, retries exhausted",
                        attempts=attempt,
                    ) from exc
                logger.info(
                    "transaction_retry",
                    operation=getattr(fn, "__name__", repr(fn)),
                    attempt=attempt,
                    error=type(exc).__name__,
                )
        raise AssertionError("unreachable")

    async def close(self) -> None:
        await self.session.close()

    async def __aenter__(self) -> UnitOfWork:
        logger.debug("uow_enter", actor=self.actor.user_id)
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if exc:
            await self.session.rollback()
        await self.close()
        logger.debug("uow_exit", exc_type=str(exc_type) if exc_type else None)
