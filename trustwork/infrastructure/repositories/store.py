from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from typing import Any, TypeVar

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from trustwork.core.clock import Clock, IdGenerator
from trustwork.core.errors import Cancelled, NotFound, PreconditionFailed, Unauthorized
from trustwork.domain import Actor
from trustwork.infrastructure.db.models import OutboxEvent
from trustwork.infrastructure.repositories.policies import can_read, can_write

logger = structlog.get_logger()

T = TypeVar("T")


class EntityStore:
    """Row-policy aware access to persisted entities.

    Every call is a suspension point: the caller deadline is checked first and
    ``Cancelled`` raised once it has passed. Writes are flushed immediately so
    constraint and version conflicts surface inside the calling transaction.
    """

    def __init__(
        self,
        session: AsyncSession,
        *,
        actor: Actor,
        clock: Clock,
        ids: IdGenerator,
        deadline: datetime | None = None,
    ) -> None:
        self.session = session
        self.actor = actor
        self.clock = clock
        self.ids = ids
        self.deadline = deadline

    def elevated(self) -> EntityStore:
        """Return a store acting as the system for projections on foreign rows."""
        return EntityStore(
            self.session,
            actor=Actor.system(),
            clock=self.clock,
            ids=self.ids,
            deadline=self.deadline,
        )

    async def get(self, model: type[T], entity_id: str) -> T:
        self._checkpoint()
        entity = await self.session.get(model, entity_id, populate_existing=True)
        if entity is None or (
            getattr(entity, "is_deleted", False) and not can_read(self.actor, entity)
        ):
            raise NotFound(f"{model.__name__} not found", id=entity_id)
        if not can_read(self.actor, entity):
            raise Unauthorized(
                f"Not allowed to read {model.__name__}",
                id=entity_id,
                actor=self.actor.user_id,
            )
        return entity

    async def find(self, model: type[T], *where: Any) -> T | None:
        """First visible row matching ``where`` or ``None``."""
        rows = await self.query(model, *where, limit=1)
        return rows[0] if rows else None

    async def query(
        self,
        model: type[T],
        *where: Any,
        order_by: Sequence[Any] | Any | None = None,
        limit: int | None = None,
    ) -> list[T]:
        self._checkpoint()
        stmt = select(model).where(*where).execution_options(populate_existing=True)
        if order_by is not None:
            clauses = order_by if isinstance(order_by, (list, tuple)) else (order_by,)
            stmt = stmt.order_by(*clauses)
        rows = (await self.session.scalars(stmt)).all()
        visible = [row for row in rows if can_read(self.actor, row)]
        return visible[:limit] if limit is not None else visible

    async def insert(self, entity: T) -> T:
        self._checkpoint()
        if hasattr(type(entity), "id") and getattr(entity, "id", None) is None:
            entity.id = self.ids.new_id()  # type: ignore[attr-defined]
        if not can_write(self.actor, entity):
            raise Unauthorized(
                f"Not allowed to create {type(entity).__name__}",
                actor=self.actor.user_id,
            )
        self.session.add(entity)
        await self.session.flush()
        return entity

    async def update(self, entity: T, expected_version: int | None = None, **changes: Any) -> T:
        self._checkpoint()
        if not can_write(self.actor, entity):
            raise Unauthorized(
                f"Not allowed to modify {type(entity).__name__}",
                actor=self.actor.user_id,
            )
        current = getattr(entity, "version", None)
        if expected_version is not None and current != expected_version:
            raise PreconditionFailed(
                f"{type(entity).__name__} was modified concurrently",
                expected_version=expected_version,
                current_version=current,
            )
        for field_name, value in changes.items():
            setattr(entity, field_name, value)
        await self.session.flush()
        return entity

    async def emit(self, event_type: str, aggregate_id: str) -> OutboxEvent:
        """Queue an outbound event in the current transaction."""
        event = OutboxEvent(
            id=self.ids.new_id(),
            event_type=event_type,
            aggregate_id=aggregate_id,
            actor_id=self.actor.user_id,
            occurred_at=self.clock.now(),
            attempts=0,
        )
        self.session.add(event)
        await self.session.flush()
        logger.debug("outbox_event_queued", event_type=event_type, aggregate_id=aggregate_id)
        return event

    def _checkpoint(self) -> None:
        if self.deadline is not None and self.clock.now() >= self.deadline:
            raise Cancelled("Caller deadline elapsed", deadline=self.deadline)
