from __future__ import annotations

from datetime import UTC, datetime

import redis.asyncio as aioredis
import structlog
from fastapi import APIRouter
from sqlalchemy import text

from trustwork.core.config import get_settings
from trustwork.infrastructure.db.session import get_session_factory

router = APIRouter(tags=["Observability"])
logger = structlog.get_logger()


def _failure(exc: Exception) -> dict:
    return {"status": "error", "message": str(exc)[:100]}


async def check_postgres() -> dict:
    """Round-trip the ledger and engagement database."""
    try:
        async with get_session_factory()() as session:
            await session.execute(text("SELECT 1"))
    except Exception as exc:
        return _failure(exc)
    return {"status": "ok"}


async def check_redis() -> dict:
    """Ping the queue that feeds the outbox dispatcher."""
    try:
        client = aioredis.from_url(get_settings().redis_url)
        try:
            await client.ping()
        finally:
            await client.aclose()
    except Exception as exc:
        return _failure(exc)
    return {"status": "ok"}


@router.get("/health", summary="Datastore reachability for the core API")
async def health_check() -> dict:
    settings = get_settings()
    datastores = {"postgres": await check_postgres(), "redis": await check_redis()}
    healthy = all(check["status"] == "ok" for check in datastores.values())

    payload = {
        "service": settings.app_name,
        "version": settings.version,
        "environment": settings.environment,
        "status": "ok" if healthy else "degraded",
        "timestamp": datetime.now(UTC).isoformat(),
        "datastores": datastores,
    }
    if healthy:
        logger.info("health_checked", status="ok")
    else:
        logger.warning("health_degraded", datastores=datastores)
    return payload
