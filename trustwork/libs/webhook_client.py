"""
Outbound event webhook client.

Posts domain events to the configured collaborator endpoint with retry logic
and exponential backoff. Bodies are signed with HMAC-SHA256 when a secret is
configured.
"""

from __future__ import annotations

import asyncio
import hashlib
import hmac
import json
from dataclasses import dataclass
from typing import Any, Protocol

import httpx
import structlog

from trustwork.core.config import get_settings

logger = structlog.get_logger(__name__)

SIGNATURE_HEADER = "X-TrustWork-Signature"


class WebhookClientError(Exception):
    """Base exception for webhook delivery errors."""


class WebhookTimeoutError(WebhookClientError):
    """Raised when the endpoint does not answer in time."""


class WebhookAPIError(WebhookClientError):
    """Raised for non-success responses from the endpoint."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


@dataclass(slots=True)
class WebhookDelivery:
    status_code: int
    attempts: int


class WebhookClientProtocol(Protocol):
    async def deliver(self, payload: dict[str, Any]) -> WebhookDelivery:
        """Post one event payload."""
        ...


def sign_body(secret: str, body: bytes) -> str:
    return hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()


class WebhookClient:
    """Async webhook client with retry logic."""

    def __init__(
        self,
        url: str | None = None,
        secret: str | None = None,
        max_retries: int | None = None,
        timeout_seconds: int | None = None,
        *,
        backoff_base: float = 1.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        settings = get_settings()
        self.url = url if url is not None else settings.events_webhook_url
        self.secret = secret if secret is not None else settings.events_webhook_secret
        self.max_retries = max(
            1, max_retries if max_retries is not None else settings.events_max_retries
        )
        self.timeout = (
            timeout_seconds if timeout_seconds is not None else settings.events_timeout_seconds
        )
        self.backoff_base = backoff_base
        self.transport = transport

        if not self.url:
            logger.warning("events_webhook_url_missing", msg="EVENTS_WEBHOOK_URL not configured")

    async def deliver(self, payload: dict[str, Any]) -> WebhookDelivery:
        """
        Post an event with retry logic.

        Implements exponential backoff: base, 2*base, 4*base between retries.
        4xx responses other than 429 are not retried.
        """
        if not self.url:
            raise WebhookClientError("EVENTS_WEBHOOK_URL not configured")

        body = json.dumps(payload, sort_keys=True, default=str).encode()
        headers = {"Content-Type": "application/json"}
        if self.secret:
            headers[SIGNATURE_HEADER] = sign_body(self.secret, body)

        last_error: Exception | None = None

        for attempt in range(self.max_retries):
            try:
                async with httpx.AsyncClient(
                    timeout=self.timeout, transport=self.transport
                ) as client:
                    response = await client.post(self.url, content=body, headers=headers)

                if 200 <= response.status_code < 300:
                    return WebhookDelivery(status_code=response.status_code, attempts=attempt + 1)

                if response.status_code == 429 or response.status_code >= 500:
                    last_error = WebhookAPIError(
                        f"Endpoint error: {response.status_code}",
                        status_code=response.status_code,
                    )
                    await logger.awarning(
                        "webhook_retryable_error",
                        status_code=response.status_code,
                        attempt=attempt + 1,
                        max_retries=self.max_retries,
                    )
                else:
                    raise WebhookAPIError(
                        f"Endpoint rejected event {response.status_code}: {response.text}",
                        status_code=response.status_code,
                    )

            except httpx.TimeoutException:
                last_error = WebhookTimeoutError(f"Request timed out (attempt {attempt + 1})")
                await logger.awarning(
                    "webhook_timeout", attempt=attempt + 1, timeout_seconds=self.timeout
                )

            except httpx.RequestError as e:
                last_error = WebhookClientError(f"Request failed: {e}")
                await logger.awarning("webhook_request_error", error=str(e), attempt=attempt + 1)

            if attempt < self.max_retries - 1:
                await asyncio.sleep(self.backoff_base * 2**attempt)

        raise last_error or WebhookClientError("All retries exhausted")
