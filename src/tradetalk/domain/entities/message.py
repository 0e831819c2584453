"""Message entity."""

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any


@dataclass(frozen=True)
class Message:
    """A single chat message exchanged with an identity.

    Attributes:
        id: Transport-specific message ID.
        sender: Identity (or number) that sent the message.
        recipient: Identity (or number) the message was sent to.
        body: Message text.
        timestamp: When the message was received.
        intent: Intent label attached by the resolver.
        entities: Entities attached by the resolver.
        confidence: Resolver confidence for the intent.
    """

    id: str
    sender: str
    recipient: str
    body: str
    timestamp: datetime
    intent: str | None = None
    entities: dict[str, Any] = field(default_factory=dict)
    confidence: float | None = None

    def annotate(
        self,
        intent: str | None,
        entities: dict[str, Any] | None = None,
        confidence: float | None = None,
    ) -> "Message":
        """Return a copy of this message carrying resolver output.

        Args:
            intent: Intent label.
            entities: Extracted entities.
            confidence: Resolver confidence.

        Returns:
            Annotated copy; this message is left untouched.
        """
        return replace(
            self,
            intent=intent,
            entities=dict(entities or {}),
            confidence=confidence if confidence is not None else self.confidence,
        )
