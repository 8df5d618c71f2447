"""Shared library helpers."""

from trustwork.libs.webhook_client import (
    WebhookAPIError,
    WebhookClient,
    WebhookClientError,
    WebhookClientProtocol,
    WebhookDelivery,
)

__all__ = [
    "WebhookAPIError",
    "WebhookClient",
    "WebhookClientError",
    "WebhookClientProtocol",
    "WebhookDelivery",
]
