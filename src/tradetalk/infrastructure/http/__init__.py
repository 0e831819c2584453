"""HTTP infrastructure."""

from tradetalk.infrastructure.http.webhook_server import WebhookServer

__all__ = ["WebhookServer"]
