"""Twilio-compatible WhatsApp messaging service."""

import logging

import httpx

from tradetalk.config.models import MessagingConfig
from tradetalk.infrastructure.messaging.exceptions import MessagingError

logger = logging.getLogger(__name__)


class TwilioMessagingService:
    """Twilio implementation of MessagingService.

    Sends WhatsApp messages through the Messages REST endpoint using HTTP
    basic auth and form-encoded bodies.
    """

    def __init__(
        self,
        config: MessagingConfig,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the service.

        Args:
            config: Account credentials and sender number.
            client: HTTP client to use (created on demand if omitted).
        """
        self._config = config
        self._client = client
        self._owns_client = client is None

    @property
    def messages_url(self) -> str:
        base = self._config.api_base_url.rstrip("/")
        return f"{base}/2010-04-01/Accounts/{self._config.account_sid}/Messages.json"

    def _address(self, number: str) -> str:
        prefix = self._config.channel_prefix
        if not prefix or number.startswith(prefix):
            return number
        return f"{prefix}{number}"

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._config.timeout_seconds)
        return self._client

    async def send_message(self, to: str, body: str) -> None:
        """Send a message.

        Args:
            to: Recipient phone number without channel prefix.
            body: Message content.

        Raises:
            MessagingError: If the request fails or is rejected.
        """
        try:
            response = await self._get_client().post(
                self.messages_url,
                auth=(self._config.account_sid, self._config.auth_token),
                data={
                    "From": self._address(self._config.from_number),
                    "To": self._address(to),
                    "Body": body,
                },
            )
            response.raise_for_status()
        except httpx.TimeoutException as e:
            raise MessagingError(f"Timed out sending message to {to}") from e
        except httpx.HTTPStatusError as e:
            raise MessagingError(
                f"Provider rejected message to {to}: HTTP {e.response.status_code}",
                status_code=e.response.status_code,
            ) from e
        except httpx.RequestError as e:
            raise MessagingError(f"Failed to send message to {to}: {e}") from e

        logger.debug("Sent message to %s (%d chars)", to, len(body))

    async def close(self) -> None:
        """Close the HTTP client if this service created it."""
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None
