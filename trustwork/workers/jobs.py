"""
Worker jobs for outbound event delivery.

Domain services write ``OutboxEvent`` rows in the same transaction as the
state change they describe. The dispatch job drains undelivered rows to the
webhook collaborator; a row stays queued until delivery succeeds or its
attempt budget is spent.
"""

from __future__ import annotations

import asyncio
from datetime import timedelta
from typing import Any

import structlog
from rq import Queue, get_current_job
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from trustwork.core.clock import Clock, SystemClock, as_utc
from trustwork.core.config import get_settings
from trustwork.domain import Actor
from trustwork.infrastructure.db.models import OutboxEvent
from trustwork.infrastructure.db.session import get_session_factory
from trustwork.infrastructure.repositories import UnitOfWork
from trustwork.libs.webhook_client import (
    WebhookClient,
    WebhookClientError,
    WebhookClientProtocol,
)

logger = structlog.get_logger()


def event_payload(event: OutboxEvent) -> dict[str, Any]:
    return {
        "event_id": event.id,
        "event": event.event_type,
        "aggregate_id": event.aggregate_id,
        "actor_id": event.actor_id,
        "occurred_at": as_utc(event.occurred_at).isoformat(),
    }


def dispatch_outbox_job(batch_size: int | None = None) -> dict[str, Any]:
    """
    Entry point for draining the outbox from an RQ worker.

    When running inside RQ the job schedules its next run after
    ``outbox_poll_seconds``.
    """
    result = asyncio.run(dispatch_outbox(batch_size=batch_size))
    job = get_current_job()
    if job is not None and job.origin:
        delay = timedelta(seconds=get_settings().outbox_poll_seconds)
        Queue(job.origin, connection=job.connection).enqueue_in(
            delay, dispatch_outbox_job, batch_size
        )
    return result


async def dispatch_outbox(
    *,
    batch_size: int | None = None,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    client: WebhookClientProtocol | None = None,
    clock: Clock | None = None,
) -> dict[str, Any]:
    """Deliver one batch of undispatched events, oldest first."""
    settings = get_settings()
    session_factory = session_factory or get_session_factory()
    client = client or WebhookClient()
    clock = clock or SystemClock()
    limit = batch_size or settings.outbox_batch_size

    delivered = 0
    failed = 0
    async with session_factory() as session:
        uow = UnitOfWork(session, actor=Actor.system(), clock=clock, settings=settings)
        store = uow.store
        pending = await uow.run(
            store.query,
            OutboxEvent,
            OutboxEvent.dispatched_at.is_(None),
            OutboxEvent.attempts < settings.outbox_max_attempts,
            order_by=[OutboxEvent.occurred_at, OutboxEvent.id],
            limit=limit,
        )
        # Rollbacks expire ``pending``; iterate over detached payloads.
        payloads = [event_payload(event) for event in pending]
        for payload in payloads:
            event_id = payload["event_id"]
            try:
                await client.deliver(payload)
            except WebhookClientError as exc:
                failed += 1
                attempts = await uow.run(_record_attempt, uow, event_id, error=str(exc)[:500])
                await logger.awarning(
                    "outbox_delivery_failed",
                    event_id=event_id,
                    event_type=payload["event"],
                    attempts=attempts,
                    error=str(exc),
                )
                continue
            delivered += 1
            await uow.run(_record_attempt, uow, event_id)

    result = {"pending": len(pending), "delivered": delivered, "failed": failed}
    logger.info("outbox_dispatched", **result)
    return result


async def _record_attempt(uow: UnitOfWork, event_id: str, *, error: str | None = None) -> int:
    event = await uow.store.get(OutboxEvent, event_id)
    changes: dict[str, Any] = {"attempts": event.attempts + 1, "last_error": error}
    if error is None:
        changes["dispatched_at"] = uow.now()
    await uow.store.update(event, **changes)
    return event.attempts
