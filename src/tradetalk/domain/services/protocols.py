"""Domain service protocols."""

from collections.abc import Sequence
from typing import Any, Protocol

from tradetalk.domain.entities import (
    ConversationContext,
    Intent,
    Message,
    Mood,
    Persona,
    Phenomenon,
)


class MessagingService(Protocol):
    """Messaging abstraction (transport-independent).

    This protocol defines the interface for sending a text message
    to a single phone number over any chat transport.
    """

    async def send_message(self, to: str, body: str) -> None:
        """Send a message.

        Args:
            to: Recipient phone number without channel prefix.
            body: Message content.

        Raises:
            MessagingError: The transport rejected or failed the request.
        """
        ...


class PersonaClassifier(Protocol):
    """Assigns a persona to a user."""

    async def classify(self, user_id: str) -> Persona:
        """Classify a user.

        Args:
            user_id: Application user ID.

        Returns:
            Persona for the user.
        """
        ...


class MoodClassifier(Protocol):
    """Infers the conversation mood from recent messages."""

    def classify(self, messages: Sequence[Message]) -> Mood:
        """Classify mood.

        Args:
            messages: Recent messages, oldest first.

        Returns:
            Detected mood (NEUTRAL when nothing matches).
        """
        ...


class PhenomenonDetector(Protocol):
    """Detects conversational phenomena in a message."""

    def detect(self, text: str) -> list[Phenomenon]:
        """Detect phenomena.

        Args:
            text: Message text.

        Returns:
            Detected phenomena in detection order.
        """
        ...


class TemplateRenderer(Protocol):
    """Static reply template rendering."""

    def render(self, persona: Persona, name: str, data: dict[str, Any]) -> str:
        """Render a named template for a persona.

        Args:
            persona: Persona of the recipient.
            name: Template name.
            data: Template variables.

        Returns:
            Rendered text.

        Raises:
            TemplateRenderError: The template is missing or failed to render.
        """
        ...


class BusinessActionExecutor(Protocol):
    """Carries out the business action requested by an intent."""

    async def execute(
        self, intent: Intent, context: ConversationContext
    ) -> dict[str, Any]:
        """Execute an intent.

        Args:
            intent: Resolved intent with all required entities.
            context: Conversation context of the requester.

        Returns:
            Action result used as template data.
        """
        ...
