"""Proactive insight entities."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from tradetalk.domain.entities.persona import Persona


class InsightType(Enum):
    PATTERN = "pattern"
    OPPORTUNITY = "opportunity"
    RISK = "risk"
    LEARNING = "learning"
    OPTIMIZATION = "optimization"


class InsightPriority(Enum):
    """Insight priority. Only critical and high are pushed automatically."""

    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def is_urgent(self) -> bool:
        return self in (InsightPriority.CRITICAL, InsightPriority.HIGH)


class ActionType(Enum):
    MESSAGE = "message"
    AGENT_EXECUTION = "agent_execution"
    NOTIFICATION = "notification"
    REMINDER = "reminder"


@dataclass(frozen=True)
class InsightAction:
    """A follow-up the user can take on an insight."""

    type: ActionType
    description: str
    command: str | None = None
    delay_minutes: int | None = None


@dataclass
class ProactiveInsight:
    """An unsolicited observation pushed to a user.

    Attributes:
        type: Insight category.
        priority: Delivery priority.
        confidence: Detector confidence (0-1).
        title: Short headline.
        message: Body text.
        data: Detector-specific payload.
        suggested_actions: Follow-ups offered to the user.
        triggered_by: Names of the signals that produced the insight.
        user_id: Target user ID.
        identity: Target phone number.
        persona: Target persona.
        expires_at: When the insight stops being relevant.
        id: Insight ID.
        created_at: Creation time.
    """

    type: InsightType
    priority: InsightPriority
    confidence: float
    title: str
    message: str
    data: dict[str, Any]
    suggested_actions: list[InsightAction]
    triggered_by: list[str]
    user_id: str
    identity: str
    persona: Persona
    expires_at: datetime | None = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
