from __future__ import annotations

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from trustwork.core.errors import TrustWorkError

logger = structlog.get_logger()


async def trustwork_error_handler(request: Request, exc: TrustWorkError) -> JSONResponse:
    """Render a domain error as ``{"detail", "code", "context"}`` with its status."""
    await logger.ainfo(
        "request_rejected",
        code=exc.code,
        status_code=exc.http_status,
        detail=exc.message,
    )
    return JSONResponse(status_code=exc.http_status, content=exc.to_dict())


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(TrustWorkError, trustwork_error_handler)  # type: ignore[arg-type]
