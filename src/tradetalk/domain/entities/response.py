"""Response personalization entities."""

from dataclasses import dataclass, field
from enum import Enum

from tradetalk.domain.entities.context import ResponseLength
from tradetalk.domain.entities.persona import Persona


class Mood(Enum):
    """Conversation mood inferred from recent messages."""

    POSITIVE = "positive"
    NEUTRAL = "neutral"
    URGENT = "urgent"
    FRUSTRATED = "frustrated"


class TimeOfDay(Enum):
    MORNING = "morning"
    AFTERNOON = "afternoon"
    EVENING = "evening"
    NIGHT = "night"

    @classmethod
    def from_hour(cls, hour: int) -> "TimeOfDay":
        """Bucket an hour (0-23) into a time of day."""
        if hour < 12:
            return cls.MORNING
        if hour < 17:
            return cls.AFTERNOON
        if hour < 21:
            return cls.EVENING
        return cls.NIGHT


class FeedbackKind(Enum):
    """Kinds of feedback a user can give on a reply."""

    POSITIVE = "positive"
    NEGATIVE = "negative"
    CORRECTION = "correction"


@dataclass(frozen=True)
class ResponseContext:
    """Personalization parameters for one reply.

    Attributes:
        persona: Persona of the recipient.
        mood: Mood inferred from recent messages.
        time_of_day: Bucket of the current hour.
        response_length: Preferred reply length.
        is_first_turn: Whether no message has been recorded yet.
        current_task: In-progress task label, if any.
    """

    persona: Persona
    mood: Mood
    time_of_day: TimeOfDay
    response_length: ResponseLength = ResponseLength.DETAILED
    is_first_turn: bool = False
    current_task: str | None = None


# Context tag used for patterns learned from positive feedback
LEARNED_CONTEXT_TAG = "learned"


@dataclass
class ResponsePattern:
    """A reply template learned from user feedback.

    Attributes:
        persona: Persona the pattern applies to.
        intent_type: Intent label the pattern applies to.
        context_tag: Additional selection tag (mood or "learned").
        template: Template text with {{name}} placeholders.
        success_rate: Learned success rate (0-1).
        usage_count: Number of times feedback touched the pattern.
        variables: Placeholder names, in order of appearance.
    """

    persona: Persona
    intent_type: str
    context_tag: str
    template: str
    success_rate: float = 1.0
    usage_count: int = 0
    variables: list[str] = field(default_factory=list)

    @property
    def key(self) -> tuple[str, str, str]:
        return pattern_key(self.persona, self.intent_type, self.context_tag)


def pattern_key(persona: Persona, intent_type: str, context_tag: str) -> tuple[str, str, str]:
    """Build the registry key for a response pattern."""
    return (persona.value, intent_type, context_tag)
