"""Intent extraction and context enrichment.

A message goes through one of three turn states:

- resolved: the intent and all of its required entities are known
- needs clarification: a question is asked and the task is suspended
- continuation: the message answers the oldest open question and the
  suspended task resumes
"""

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Any

from tradetalk.application.services.detection import RegexPhenomenonDetector
from tradetalk.domain.entities import (
    CLARIFICATION_PRIORITY,
    ConversationContext,
    EnrichedIntent,
    Intent,
    IntentType,
    PendingClarification,
    Phenomenon,
    REQUIRED_ENTITIES,
    ResolutionState,
)
from tradetalk.domain.services import PhenomenonDetector

logger = logging.getLogger(__name__)


def _patterns(*expressions: str) -> tuple[re.Pattern[str], ...]:
    return tuple(re.compile(expression, re.I) for expression in expressions)


# First match wins, so the order of this table matters
INTENT_PATTERNS: tuple[tuple[IntentType, tuple[re.Pattern[str], ...]], ...] = (
    (
        IntentType.CHECK_INVENTORY,
        _patterns(
            r"check (?:inventory|stock) (?:for |of )?(.+)",
            r"how (?:much|many) (.+?) (?:do we have|in stock)",
            r"(?:inventory|stock) (?:level|status) (?:for |of )?(.+)",
            r"^stock (.+)$",
        ),
    ),
    (
        IntentType.VIEW_ALERTS,
        _patterns(
            r"(?:show|view|list) (?:my |all )?alerts?",
            r"what alerts? (?:do i have|are active)",
            r"^alerts?$",
        ),
    ),
    (
        IntentType.REORDER_STOCK,
        _patterns(
            r"(?:reorder|order|purchase) (.+)",
            r"create (?:po|purchase order) (?:for )?(.+)",
            r"need (?:to order|more) (.+)",
        ),
    ),
    (
        IntentType.ACKNOWLEDGE_ALERT,
        _patterns(r"^ack(?:nowledge)?$", r"acknowledge alert (\w+)"),
    ),
    (
        IntentType.GENERATE_REPORT,
        _patterns(
            r"generate (.+) report",
            r"(?:create|make|build) report (?:for|on) (.+)",
            r"(.+) report (?:for )?(today|yesterday|this week|last week|last month)",
        ),
    ),
    (
        IntentType.HELP,
        _patterns(
            r"^help$",
            r"what can (?:you|i) do",
            r"show (?:me )?commands",
            r"^commands?$",
        ),
    ),
    (
        IntentType.DAILY_DIGEST,
        _patterns(
            r"daily (?:digest|summary|report)",
            r"send (?:me )?(?:my )?digest",
            r"^digest$",
        ),
    ),
    (
        IntentType.VIEW_METRICS,
        _patterns(
            r"(?:show|view) (?:my |the )?(?:metrics|kpis?)",
            r"^(?:metrics|kpis?)$",
            r"how (?:are|is) (?:we|business) doing",
        ),
    ),
    (
        IntentType.SUPPLIER_PERFORMANCE,
        _patterns(
            r"supplier (?:performance|ranking|scores?)",
            r"(?:best|top|worst) suppliers?",
            r"rank (?:my )?suppliers",
        ),
    ),
    (
        IntentType.CHECK_SUPPLIER,
        _patterns(
            r"(?:check|show) supplier (.+)",
            r"supplier (?:info|information|details) (?:for |on )?(.+)",
            r"^supplier (.+)$",
        ),
    ),
    (
        IntentType.AGENT_STATUS,
        _patterns(
            r"agent (?:status|info)",
            r"(?:show|list) (?:running )?agents",
            r"what agents are running",
        ),
    ),
    (
        IntentType.UPDATE_STOCK,
        _patterns(r"(?:update|set|adjust) (?:stock|inventory) (?:for |of )?(.+)"),
    ),
)

SKU_PATTERN = re.compile(r"[A-Z0-9]{3,}-?[A-Z0-9]*")
QUANTITY_PATTERN = re.compile(r"(\d+)\s*(?:units?|pieces?|items?|pcs|boxes?)", re.I)
LEADING_QUANTITY_PATTERN = re.compile(
    r"^\d+\s*(?:units?|pieces?|items?|pcs|boxes?)\s+(?:of\s+)?", re.I
)
SAME_AS_PATTERN = re.compile(r"\bsame as\b", re.I)

# Entity values that only point back at something said earlier
PLACEHOLDER_VALUE_PATTERN = re.compile(
    r"(?:(?:of|for|about)\s+)?(?:it|that|this|them)"
    r"|(?:the\s+)?same(?:\s+as\b.*)?",
    re.I,
)

REPORT_TYPES = ("inventory", "sales", "supplier", "financial")
CALENDAR_PHRASES = (
    "today",
    "yesterday",
    "tomorrow",
    "this week",
    "last week",
    "last month",
)

CLARIFICATION_QUESTIONS: dict[str, str] = {
    Phenomenon.REFERENCE.value: (
        "What are you referring to? Please name the product or SKU."
    ),
    Phenomenon.TEMPORAL.value: (
        "Which time period do you mean? For example: today, this week or last month."
    ),
    Phenomenon.COMPARISON.value: "What should I compare it with?",
    "product": "Which product or SKU do you mean?",
    "report_type": (
        "Which report would you like: inventory, sales, supplier or financial?"
    ),
    "supplier_name": "Which supplier do you mean?",
}
DEFAULT_QUESTION = "Could you give me a bit more detail?"


def is_placeholder(value: Any) -> bool:
    """Whether an entity value is missing or only refers back to context."""
    if value is None or value == "":
        return True
    if isinstance(value, str):
        return PLACEHOLDER_VALUE_PATTERN.fullmatch(value.strip()) is not None
    return False


@dataclass
class Resolution:
    """Outcome of resolving one inbound message.

    Attributes:
        state: Turn state.
        intent: Intent to execute (or the suspended intent).
        enriched: Context annotations, absent for continuations.
        clarification: Question to enqueue when clarification is needed.
        resumed: Clarification answered by this message.
    """

    state: ResolutionState
    intent: Intent
    enriched: EnrichedIntent | None = None
    clarification: PendingClarification | None = None
    resumed: PendingClarification | None = None


class IntentResolver:
    """Turns free text into an Intent, using stored context where needed."""

    def __init__(
        self,
        phenomenon_detector: PhenomenonDetector | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize IntentResolver.

        Args:
            phenomenon_detector: Strategy detecting references, comparisons,
                repetitions and temporal phrases.
            clock: Returns the current time; used for date ranges.
        """
        self._detector = phenomenon_detector or RegexPhenomenonDetector()
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    # ------------------------------------------------------------------
    # Extraction
    # ------------------------------------------------------------------

    def extract(self, text: str) -> Intent:
        """Match text against the intent table.

        Args:
            text: Message text.

        Returns:
            Matched intent with confidence 0.9, or UNKNOWN with 0.1.
        """
        stripped = text.strip()
        for intent_type, patterns in INTENT_PATTERNS:
            for pattern in patterns:
                match = pattern.search(stripped)
                if match:
                    return Intent(
                        type=intent_type,
                        confidence=0.9,
                        entities=self._extract_entities(stripped, intent_type, match),
                        raw_text=text,
                    )
        return Intent(type=IntentType.UNKNOWN, confidence=0.1, raw_text=text)

    def _extract_entities(
        self, text: str, intent_type: IntentType, match: re.Match[str]
    ) -> dict[str, Any]:
        entities: dict[str, Any] = {}
        group = match.group(1) if match.re.groups and match.group(1) else None
        group = group.strip() if group else None

        if intent_type is IntentType.CHECK_INVENTORY and group:
            entities["product"] = group
            sku = SKU_PATTERN.search(group)
            if sku:
                entities["sku"] = sku.group(0)

        elif intent_type in (IntentType.REORDER_STOCK, IntentType.UPDATE_STOCK) and group:
            entities["product"] = LEADING_QUANTITY_PATTERN.sub("", group).strip() or group
            quantity = QUANTITY_PATTERN.search(text)
            if quantity:
                entities["quantity"] = int(quantity.group(1))

        elif intent_type is IntentType.GENERATE_REPORT:
            report_type = self._report_type(text)
            if report_type:
                entities["report_type"] = report_type
            entities["date_range"] = self.resolve_date_range(
                text
            ) or self._date_range("today", self._today())

        elif intent_type is IntentType.CHECK_SUPPLIER and group:
            entities["supplier_name"] = group

        elif intent_type is IntentType.ACKNOWLEDGE_ALERT and group:
            entities["alert_id"] = group

        return entities

    @staticmethod
    def _report_type(text: str) -> str | None:
        lowered = text.lower()
        for report_type in REPORT_TYPES:
            if report_type in lowered:
                return report_type
        return None

    # ------------------------------------------------------------------
    # Temporal resolution
    # ------------------------------------------------------------------

    def _today(self) -> date:
        return self._clock().date()

    def resolve_date_range(self, text: str) -> dict[str, str] | None:
        """Resolve the first calendar phrase in text to a date range.

        Vague phrases such as "recently" are not resolved.

        Returns:
            {"label", "start", "end"} with ISO dates, or None.
        """
        lowered = text.lower()
        for phrase in CALENDAR_PHRASES:
            if re.search(rf"\b{phrase}\b", lowered):
                return self._date_range(phrase, self._today())
        return None

    @staticmethod
    def _date_range(label: str, today: date) -> dict[str, str]:
        if label == "yesterday":
            start = end = today - timedelta(days=1)
        elif label == "tomorrow":
            start = end = today + timedelta(days=1)
        elif label == "this week":
            start = today - timedelta(days=today.weekday())
            end = start + timedelta(days=6)
        elif label == "last week":
            start = today - timedelta(days=today.weekday() + 7)
            end = start + timedelta(days=6)
        elif label == "last month":
            end = today.replace(day=1) - timedelta(days=1)
            start = end.replace(day=1)
        else:
            start = end = today
        return {"label": label, "start": start.isoformat(), "end": end.isoformat()}

    # ------------------------------------------------------------------
    # Enrichment
    # ------------------------------------------------------------------

    def enrich_with_context(
        self, text: str, context: ConversationContext
    ) -> EnrichedIntent:
        """Annotate text with what the conversation so far implies.

        Args:
            text: Message text.
            context: Conversation context of the sender.

        Returns:
            EnrichedIntent with detected phenomena and recovered entities.
        """
        enriched = EnrichedIntent(raw_text=text, phenomena=self._detector.detect(text))

        if enriched.has(Phenomenon.REFERENCE):
            item = context.latest_reference()
            if item is not None:
                enriched.contextual_entities[item.type] = item.value

        if enriched.has(Phenomenon.COMPARISON) and SAME_AS_PATTERN.search(text):
            with_intent = [m for m in context.window if m.intent]
            if with_intent:
                baseline = with_intent[-2:][0]
                enriched.reference_intent = baseline.intent
                enriched.reference_entities = dict(baseline.entities)

        if enriched.has(Phenomenon.TEMPORAL):
            enriched.resolved_date_range = self.resolve_date_range(text)

        return enriched

    def first_unresolved(
        self, enriched: EnrichedIntent, context: ConversationContext
    ) -> Phenomenon | None:
        """Return the highest-priority phenomenon the context cannot resolve."""
        for phenomenon in CLARIFICATION_PRIORITY:
            if not enriched.has(phenomenon):
                continue
            if (
                phenomenon is Phenomenon.REFERENCE
                and not context.working_memory.last_referenced_items
            ):
                return phenomenon
            if (
                phenomenon is Phenomenon.TEMPORAL
                and enriched.resolved_date_range is None
            ):
                return phenomenon
            if (
                phenomenon is Phenomenon.COMPARISON
                and enriched.reference_entities is None
            ):
                return phenomenon
        return None

    def needs_clarification(
        self, enriched: EnrichedIntent, context: ConversationContext
    ) -> bool:
        return self.first_unresolved(enriched, context) is not None

    # ------------------------------------------------------------------
    # Turn resolution
    # ------------------------------------------------------------------

    def resolve_turn(self, text: str, context: ConversationContext) -> Resolution:
        """Decide what to do with an inbound message.

        Args:
            text: Message text.
            context: Conversation context of the sender.

        Returns:
            Resolution describing the turn state.
        """
        pending = context.working_memory.pending_clarifications
        if pending:
            return self._continue(text, pending[0])

        enriched = self.enrich_with_context(text, context)
        intent = self._merge(self.extract(text), enriched, context)

        unresolved = self.first_unresolved(enriched, context)
        if unresolved is not None:
            logger.debug("Unresolved %s in message: %s", unresolved.value, text)
            field_name = (
                "date_range"
                if unresolved is Phenomenon.TEMPORAL
                else self._primary_field(intent)
            )
            return Resolution(
                state=ResolutionState.NEEDS_CLARIFICATION,
                intent=intent,
                enriched=enriched,
                clarification=self._clarification(
                    intent,
                    field_name,
                    unresolved,
                    CLARIFICATION_QUESTIONS[unresolved.value],
                ),
            )

        missing = intent.missing_entities()
        if missing:
            return Resolution(
                state=ResolutionState.NEEDS_CLARIFICATION,
                intent=intent,
                enriched=enriched,
                clarification=self._clarification(
                    intent,
                    missing[0],
                    None,
                    CLARIFICATION_QUESTIONS.get(missing[0], DEFAULT_QUESTION),
                ),
            )

        return Resolution(
            state=ResolutionState.RESOLVED, intent=intent, enriched=enriched
        )

    def _merge(
        self, intent: Intent, enriched: EnrichedIntent, context: ConversationContext
    ) -> Intent:
        """Fold context-derived entities into the extracted intent."""
        intent_type = intent.type
        entities = dict(intent.entities)

        if enriched.reference_intent and intent.is_unknown:
            intent_type = IntentType(enriched.reference_intent)
        for key, value in (enriched.reference_entities or {}).items():
            if is_placeholder(entities.get(key)):
                entities[key] = value

        for key, value in enriched.contextual_entities.items():
            if is_placeholder(entities.get(key)):
                entities[key] = value

        if enriched.has(Phenomenon.REPETITION) and intent_type is IntentType.UNKNOWN:
            previous = next(
                (
                    m
                    for m in reversed(context.window)
                    if m.intent and m.intent != IntentType.UNKNOWN.value
                ),
                None,
            )
            if previous is not None:
                intent_type = IntentType(previous.intent)
                entities = {**previous.entities, **entities}

        if (
            enriched.resolved_date_range
            and intent_type is IntentType.GENERATE_REPORT
        ):
            entities["date_range"] = enriched.resolved_date_range

        # Drop values that still only point back at something
        entities = {k: v for k, v in entities.items() if not is_placeholder(v)}

        if intent_type is intent.type and entities == intent.entities:
            return intent
        return Intent(
            type=intent_type,
            confidence=max(intent.confidence, 0.9)
            if intent_type is not IntentType.UNKNOWN
            else intent.confidence,
            entities=entities,
            raw_text=intent.raw_text,
        )

    def _continue(self, answer: str, pending: PendingClarification) -> Resolution:
        """Resume a suspended task with the user's answer."""
        answer_text = answer.strip()

        if pending.intent_type == IntentType.UNKNOWN.value:
            # Nothing to resume; treat the answer as a fresh request
            return Resolution(
                state=ResolutionState.CONTINUATION,
                intent=self.extract(answer_text),
                resumed=pending,
            )

        entities = dict(pending.entities)
        if pending.phenomenon is Phenomenon.TEMPORAL:
            entities["date_range"] = self.resolve_date_range(answer_text) or {
                "label": answer_text
            }
        elif pending.missing_field == "report_type":
            entities["report_type"] = self._report_type(answer_text) or answer_text
        else:
            entities[pending.missing_field] = answer_text
            if pending.missing_field == "product":
                sku = SKU_PATTERN.search(answer_text)
                if sku:
                    entities["sku"] = sku.group(0)

        intent = Intent(
            type=IntentType(pending.intent_type),
            confidence=0.9,
            entities=entities,
            raw_text=pending.raw_text,
        )

        missing = intent.missing_entities()
        if missing:
            return Resolution(
                state=ResolutionState.NEEDS_CLARIFICATION,
                intent=intent,
                clarification=self._clarification(
                    intent,
                    missing[0],
                    None,
                    CLARIFICATION_QUESTIONS.get(missing[0], DEFAULT_QUESTION),
                ),
                resumed=pending,
            )
        return Resolution(
            state=ResolutionState.CONTINUATION, intent=intent, resumed=pending
        )

    @staticmethod
    def _primary_field(intent: Intent) -> str:
        required = REQUIRED_ENTITIES.get(intent.type, ())
        for name in required:
            if is_placeholder(intent.entities.get(name)):
                return name
        return required[0] if required else "product"

    def _clarification(
        self,
        intent: Intent,
        missing_field: str,
        phenomenon: Phenomenon | None,
        question: str,
    ) -> PendingClarification:
        return PendingClarification(
            question=question,
            intent_type=intent.type.value,
            entities=dict(intent.entities),
            missing_field=missing_field,
            phenomenon=phenomenon,
            raw_text=intent.raw_text,
            asked_at=self._clock(),
        )
