"""Intent entities."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class IntentType(Enum):
    """Business intents understood by the assistant."""

    # Inventory
    CHECK_INVENTORY = "check_inventory"
    REORDER_STOCK = "reorder_stock"
    UPDATE_STOCK = "update_stock"

    # Alerts
    VIEW_ALERTS = "view_alerts"
    ACKNOWLEDGE_ALERT = "acknowledge_alert"

    # Reporting
    GENERATE_REPORT = "generate_report"
    VIEW_METRICS = "view_metrics"
    DAILY_DIGEST = "daily_digest"

    # Suppliers
    CHECK_SUPPLIER = "check_supplier"
    SUPPLIER_PERFORMANCE = "supplier_performance"

    # Agents
    AGENT_STATUS = "agent_status"

    # General
    HELP = "help"
    UNKNOWN = "unknown"


# Intents that describe an in-progress task worth remembering in working memory
TASK_INTENTS: frozenset[str] = frozenset(
    {
        IntentType.CHECK_INVENTORY.value,
        IntentType.GENERATE_REPORT.value,
        IntentType.REORDER_STOCK.value,
    }
)

# Entities a business action cannot run without
REQUIRED_ENTITIES: dict[IntentType, tuple[str, ...]] = {
    IntentType.CHECK_INVENTORY: ("product",),
    IntentType.GENERATE_REPORT: ("report_type",),
    IntentType.CHECK_SUPPLIER: ("supplier_name",),
}


@dataclass(frozen=True)
class Intent:
    """Structured interpretation of a free-text message.

    Attributes:
        type: Intent label.
        confidence: Resolver confidence (0-1).
        entities: Extracted entities.
        raw_text: The original text.
    """

    type: IntentType
    confidence: float
    entities: dict[str, Any] = field(default_factory=dict)
    raw_text: str = ""

    @property
    def is_unknown(self) -> bool:
        """Whether no intent pattern matched."""
        return self.type is IntentType.UNKNOWN

    def missing_entities(self) -> list[str]:
        """Return required entities that are absent or empty."""
        return [
            name
            for name in REQUIRED_ENTITIES.get(self.type, ())
            if not self.entities.get(name)
        ]


class Phenomenon(Enum):
    """Cross-cutting conversational phenomena detected in a message."""

    REFERENCE = "reference"
    COMPARISON = "comparison"
    REPETITION = "repetition"
    TEMPORAL = "temporal"


# Only one clarification is asked per turn, in this order
CLARIFICATION_PRIORITY: tuple[Phenomenon, ...] = (
    Phenomenon.REFERENCE,
    Phenomenon.TEMPORAL,
    Phenomenon.COMPARISON,
)


@dataclass
class EnrichedIntent:
    """Context-derived annotations for a message.

    Attributes:
        raw_text: The original text.
        phenomena: Phenomena detected, in detection order.
        contextual_entities: Entities recovered from working memory.
        reference_intent: Intent of the comparison baseline message.
        reference_entities: Entities of the comparison baseline message.
        resolved_date_range: Concrete date range for a temporal phrase.
    """

    raw_text: str
    phenomena: list[Phenomenon] = field(default_factory=list)
    contextual_entities: dict[str, Any] = field(default_factory=dict)
    reference_intent: str | None = None
    reference_entities: dict[str, Any] | None = None
    resolved_date_range: dict[str, str] | None = None

    def has(self, phenomenon: Phenomenon) -> bool:
        return phenomenon in self.phenomena


class ResolutionState(Enum):
    """Outcome of resolving one turn."""

    RESOLVED = "resolved"
    NEEDS_CLARIFICATION = "needs_clarification"
    CONTINUATION = "continuation"
