from __future__ import annotations

import json
from datetime import UTC, datetime

import pytest
from fastapi import Request

from trustwork.api.errors import trustwork_error_handler
from trustwork.core.errors import CooldownActive, NotFound, TrustWorkError


def test_to_dict_serializes_datetimes_in_context() -> None:
    retry_at = datetime(2025, 1, 13, 9, 0, tzinfo=UTC)
    error = CooldownActive("Retake is cooling down", retry_at=retry_at)

    assert error.to_dict() == {
        "detail": "Retake is cooling down",
        "code": "cooldown_active",
        "context": {"retry_at": "2025-01-13T09:00:00+00:00"},
    }


def test_to_dict_omits_empty_context() -> None:
    assert TrustWorkError("Nope").to_dict() == {"detail": "Nope", "code": "error"}


@pytest.mark.asyncio
async def test_handler_renders_status_and_body() -> None:
    request = Request({"type": "http", "method": "GET", "path": "/attempts/x", "headers": []})

    response = await trustwork_error_handler(request, NotFound("Attempt not found", id="x"))

    assert response.status_code == 404
    assert json.loads(response.body) == {
        "detail": "Attempt not found",
        "code": "not_found",
        "context": {"id": "x"},
    }
