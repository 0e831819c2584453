"""Conversation context aggregate."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from tradetalk.domain.entities.intent import Phenomenon
from tradetalk.domain.entities.message import Message
from tradetalk.domain.entities.persona import Persona


class ResponseLength(Enum):
    """Preferred reply length learned from the user's own messages."""

    BRIEF = "brief"
    DETAILED = "detailed"
    VISUAL = "visual"


class Satisfaction(Enum):
    """User satisfaction recorded for an interaction."""

    POSITIVE = "positive"
    NEUTRAL = "neutral"
    NEGATIVE = "negative"


@dataclass
class ReferencedItem:
    """An entity the user mentioned recently."""

    type: str
    value: Any
    mentioned_at: datetime


@dataclass
class PendingClarification:
    """An open question together with the task it suspended.

    Attributes:
        question: Question sent to the user.
        intent_type: Intent of the suspended task.
        entities: Entities already known for the suspended task.
        missing_field: Entity name the answer fills in.
        phenomenon: Unresolved phenomenon, or None for a plain missing entity.
        raw_text: Text of the message that raised the question.
        asked_at: When the question was asked.
    """

    question: str
    intent_type: str
    entities: dict[str, Any]
    missing_field: str
    phenomenon: Phenomenon | None
    raw_text: str
    asked_at: datetime


@dataclass
class WorkingMemory:
    """In-progress task state."""

    current_task: str | None = None
    entities_mentioned: dict[str, Any] = field(default_factory=dict)
    pending_clarifications: list[PendingClarification] = field(default_factory=list)
    last_referenced_items: list[ReferencedItem] = field(default_factory=list)


@dataclass
class CommonQuery:
    """How often the user asked for an intent."""

    query: str
    frequency: int
    last_asked: datetime


@dataclass
class OrderPattern:
    """A product the user reorders regularly.

    Attributes:
        product: Product name or SKU.
        quantity: Running average of ordered quantity.
        cadence_days: Typical days between orders.
        last_ordered_at: When the product was last ordered.
    """

    product: str
    quantity: int
    cadence_days: int
    last_ordered_at: datetime | None = None


@dataclass
class CommunicationStyle:
    """Learned communication preferences."""

    response_style: ResponseLength = ResponseLength.DETAILED
    language_patterns: list[str] = field(default_factory=list)
    preferred_times: list[str] = field(default_factory=list)


@dataclass
class LongTermMemory:
    """Cross-session learned preferences and habits."""

    common_queries: list[CommonQuery] = field(default_factory=list)
    preferred_suppliers: list[str] = field(default_factory=list)
    typical_order_patterns: list[OrderPattern] = field(default_factory=list)
    communication_style: CommunicationStyle = field(default_factory=CommunicationStyle)

    def top_query(self) -> CommonQuery | None:
        return self.common_queries[0] if self.common_queries else None


@dataclass
class SuccessfulInteraction:
    """A completed interaction and how it was received."""

    pattern: str
    response: str
    satisfaction: Satisfaction
    response_time_seconds: float | None = None
    recorded_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass
class ConversationContext:
    """Everything remembered about one identity.

    Only the context store mutates instances of this class. Bounded
    collections are trimmed through the push helpers so that callers
    cannot exceed the configured capacities.

    Attributes:
        thread_id: Opaque conversation ID.
        identity: Phone number of the conversational party.
        user_id: Application user ID, once known.
        persona: Behavioral profile assigned by the classifier.
        started_at: When the context was created.
        last_activity_at: Last time the context was used.
        window: Most recent messages, oldest first.
        working_memory: In-progress task state.
        long_term_memory: Learned preferences and habits.
        successful_interactions: Recent interactions, oldest first.
        message_count: Total number of messages ever recorded.
    """

    thread_id: str
    identity: str
    user_id: str | None
    persona: Persona
    started_at: datetime
    last_activity_at: datetime
    window: list[Message] = field(default_factory=list)
    working_memory: WorkingMemory = field(default_factory=WorkingMemory)
    long_term_memory: LongTermMemory = field(default_factory=LongTermMemory)
    successful_interactions: list[SuccessfulInteraction] = field(default_factory=list)
    message_count: int = 0

    def push_message(self, message: Message, capacity: int) -> None:
        """Append a message to the window, evicting the oldest beyond capacity."""
        self.window.append(message)
        if len(self.window) > capacity:
            del self.window[: len(self.window) - capacity]

    def push_referenced_item(self, item: ReferencedItem, capacity: int) -> None:
        """Put an item on top of the reference stack."""
        items = self.working_memory.last_referenced_items
        items.insert(0, item)
        del items[capacity:]

    def add_interaction(self, interaction: SuccessfulInteraction, capacity: int) -> None:
        """Record an interaction, evicting the oldest beyond capacity."""
        self.successful_interactions.append(interaction)
        if len(self.successful_interactions) > capacity:
            del self.successful_interactions[
                : len(self.successful_interactions) - capacity
            ]

    def latest_reference(self) -> ReferencedItem | None:
        items = self.working_memory.last_referenced_items
        return items[0] if items else None

    @property
    def has_pending_clarification(self) -> bool:
        return bool(self.working_memory.pending_clarifications)


def create_context(
    identity: str,
    persona: Persona,
    user_id: str | None = None,
    now: datetime | None = None,
) -> ConversationContext:
    """Create a fresh context with empty memories.

    Args:
        identity: Phone number of the conversational party.
        persona: Persona assigned by the classifier.
        user_id: Application user ID, if known.
        now: Creation time (defaults to the current UTC time).

    Returns:
        New ConversationContext.
    """
    now = now or datetime.now(timezone.utc)
    return ConversationContext(
        thread_id=str(uuid.uuid4()),
        identity=identity,
        user_id=user_id,
        persona=persona,
        started_at=now,
        last_activity_at=now,
    )
