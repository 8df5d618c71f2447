from __future__ import annotations

import asyncio
from collections.abc import Sequence

import structlog
from redis import Redis
from rq import Queue, Worker

from trustwork.core.config import get_settings
from trustwork.core.logging import setup_logging
from trustwork.workers import jobs

logger = structlog.get_logger()

QUEUE_NAMES: Sequence[str] = ("default",)
REGISTERED_JOBS = {
    "dispatch_outbox": jobs.dispatch_outbox_job,
}


async def main() -> None:
    """Bootstrap the worker, seed the outbox dispatch loop and start consuming."""
    setup_logging()
    settings = get_settings()
    redis_connection = Redis.from_url(settings.redis_url)
    logger.info(
        "worker_bootstrap",
        queues=list(QUEUE_NAMES),
        redis_url=settings.redis_url,
        jobs=list(REGISTERED_JOBS.keys()),
    )
    # Each dispatch run re-enqueues itself; this starts the chain
    Queue(QUEUE_NAMES[0], connection=redis_connection).enqueue(jobs.dispatch_outbox_job)

    await asyncio.to_thread(_run_worker, redis_connection, QUEUE_NAMES)


def _run_worker(connection: Redis, queue_names: Sequence[str]) -> None:
    """Run the RQ worker in a background thread."""
    queues = [Queue(name, connection=connection) for name in queue_names]
    worker = Worker(queues, connection=connection, name="trustwork-worker")
    worker.work(with_scheduler=True)


if __name__ == "__main__":
    asyncio.run(main())
