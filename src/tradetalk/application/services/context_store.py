"""Per-identity conversation context store."""

import asyncio
import logging
import re
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import Any

from tradetalk.config.models import ConversationConfig
from tradetalk.domain.entities import (
    DEFAULT_PERSONA,
    TASK_INTENTS,
    CommonQuery,
    ContextNotFoundError,
    ConversationContext,
    IntentType,
    Message,
    OrderPattern,
    PendingClarification,
    Persona,
    ReferencedItem,
    ResponseLength,
    Satisfaction,
    SuccessfulInteraction,
    TimeOfDay,
    create_context,
)
from tradetalk.domain.repositories import ContextSnapshotRepository, UserDirectory
from tradetalk.domain.services import PersonaClassifier

logger = logging.getLogger(__name__)

STYLE_TAG_PATTERNS: tuple[tuple[str, re.Pattern[str]], ...] = (
    ("polite", re.compile(r"\b(?:please|thank you|thanks)\b", re.I)),
    ("urgent", re.compile(r"\b(?:asap|urgent|now)\b", re.I)),
)

# Cadence assumed for a product ordered only once
DEFAULT_CADENCE_DAYS = 30


def _add_unique(items: list[str], value: str) -> None:
    if value not in items:
        items.append(value)


class ContextStore:
    """Owns the single ConversationContext of every identity.

    Contexts live in memory and are snapshotted to the durable store by
    persist_all / clear_inactive. Mutating methods expect the context to be
    cached (get_or_create first) and do not take the identity lock; callers
    that need a consistent turn hold lock(identity) around the whole turn.
    """

    def __init__(
        self,
        snapshot_repository: ContextSnapshotRepository,
        config: ConversationConfig,
        persona_classifier: PersonaClassifier | None = None,
        user_directory: UserDirectory | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize ContextStore.

        Args:
            snapshot_repository: Durable snapshot storage.
            config: Capacities and eviction settings.
            persona_classifier: Assigns personas to new contexts.
            user_directory: Resolves user IDs from phone numbers.
            clock: Returns the current time.
        """
        self._snapshots = snapshot_repository
        self._config = config
        self._persona_classifier = persona_classifier
        self._user_directory = user_directory
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._contexts: dict[str, ConversationContext] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def lock(self, identity: str) -> asyncio.Lock:
        """Return the mutex serializing turns and snapshots for an identity."""
        lock = self._locks.get(identity)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[identity] = lock
        return lock

    def get_cached(self, identity: str) -> ConversationContext | None:
        return self._contexts.get(identity)

    def cached_contexts(self) -> list[ConversationContext]:
        return list(self._contexts.values())

    async def find(self, identity: str) -> ConversationContext | None:
        """Return the cached context or its stored snapshot without creating one."""
        context = self._contexts.get(identity)
        if context is not None:
            return context
        return await self._snapshots.load_snapshot(identity)

    async def get_or_create(
        self,
        identity: str,
        user_id: str | None = None,
        touch: bool = True,
    ) -> ConversationContext:
        """Return the context of an identity, loading or creating it.

        Args:
            identity: Phone number of the conversational party.
            user_id: Application user ID, if already known.
            touch: Refresh last_activity_at.

        Returns:
            The single cached context for the identity.
        """
        context = self._contexts.get(identity)
        if context is None:
            loaded = await self._load_or_create(identity, user_id)
            # Another coroutine may have populated the cache meanwhile
            context = self._contexts.setdefault(identity, loaded)

        if user_id and context.user_id is None:
            context.user_id = user_id
        if touch:
            context.last_activity_at = self._clock()
        return context

    async def _load_or_create(
        self, identity: str, user_id: str | None
    ) -> ConversationContext:
        snapshot = await self._snapshots.load_snapshot(identity)
        if snapshot is not None:
            logger.debug("Restored context snapshot for %s", identity)
            return snapshot

        if user_id is None and self._user_directory is not None:
            profile = await self._user_directory.find_by_identity(identity)
            if profile is not None:
                user_id = profile.user_id

        persona = await self._classify(user_id)
        logger.info("Created context for %s (persona=%s)", identity, persona.value)
        return create_context(identity, persona, user_id=user_id, now=self._clock())

    async def _classify(self, user_id: str | None) -> Persona:
        if user_id is None or self._persona_classifier is None:
            return DEFAULT_PERSONA
        try:
            return await self._persona_classifier.classify(user_id)
        except Exception:
            logger.warning(
                "Persona classification failed for %s, using %s",
                user_id,
                DEFAULT_PERSONA.value,
                exc_info=True,
            )
            return DEFAULT_PERSONA

    def _require(self, identity: str) -> ConversationContext:
        context = self._contexts.get(identity)
        if context is None:
            raise ContextNotFoundError(identity)
        return context

    # ------------------------------------------------------------------
    # Turn recording
    # ------------------------------------------------------------------

    def append_message(
        self,
        identity: str,
        message: Message,
        intent_type: str | None = None,
        entities: dict[str, Any] | None = None,
        confidence: float | None = None,
        count_query: bool = True,
    ) -> Message:
        """Record a message in the context of an identity.

        Args:
            identity: Phone number of the conversational party.
            message: Inbound message.
            intent_type: Resolved intent label.
            entities: Resolved entities.
            confidence: Resolver confidence.
            count_query: Count the intent towards common queries. Turns
                that only raised a clarification question pass False so
                the answered follow-up is counted once.

        Returns:
            The annotated message as stored in the window.
        """
        context = self._require(identity)
        annotated = message.annotate(intent_type, entities, confidence)

        context.push_message(annotated, self._config.window_size)
        context.message_count += 1
        context.last_activity_at = self._clock()

        memory = context.working_memory
        if annotated.entities:
            memory.entities_mentioned.update(annotated.entities)
            # Pushed in reverse so the first entity ends up on top
            for key, value in reversed(list(annotated.entities.items())):
                context.push_referenced_item(
                    ReferencedItem(
                        type=key, value=value, mentioned_at=annotated.timestamp
                    ),
                    self._config.referenced_items_capacity,
                )
        if intent_type in TASK_INTENTS:
            memory.current_task = intent_type

        self.record_learning(identity, annotated, count_query=count_query)
        return annotated

    def record_learning(
        self, identity: str, message: Message, count_query: bool = True
    ) -> None:
        """Update long-term memory from a message."""
        context = self._require(identity)
        memory = context.long_term_memory
        style = memory.communication_style
        text = message.body

        if len(text) < 20 and "?" not in text:
            style.response_style = ResponseLength.BRIEF
        elif len(text) > 50:
            style.response_style = ResponseLength.DETAILED

        for tag, pattern in STYLE_TAG_PATTERNS:
            if pattern.search(text):
                _add_unique(style.language_patterns, tag)
        if text.count("?") >= 2:
            _add_unique(style.language_patterns, "inquisitive")

        _add_unique(
            style.preferred_times, TimeOfDay.from_hour(message.timestamp.hour).value
        )

        if (
            count_query
            and message.intent
            and message.intent != IntentType.UNKNOWN.value
        ):
            self._count_query(context, message.intent, message.timestamp)

        supplier = message.entities.get("supplier_name")
        if supplier:
            _add_unique(memory.preferred_suppliers, str(supplier))

        if message.intent == IntentType.REORDER_STOCK.value:
            product = message.entities.get("product")
            quantity = message.entities.get("quantity")
            if product and quantity:
                self._update_order_pattern(
                    context, str(product), int(quantity), message.timestamp
                )

    @staticmethod
    def _count_query(
        context: ConversationContext, intent: str, asked_at: datetime
    ) -> None:
        queries = context.long_term_memory.common_queries
        existing = next((q for q in queries if q.query == intent), None)
        if existing is None:
            queries.append(CommonQuery(query=intent, frequency=1, last_asked=asked_at))
        else:
            existing.frequency += 1
            existing.last_asked = asked_at
        queries.sort(key=lambda q: q.frequency, reverse=True)

    @staticmethod
    def _update_order_pattern(
        context: ConversationContext,
        product: str,
        quantity: int,
        ordered_at: datetime,
    ) -> None:
        patterns = context.long_term_memory.typical_order_patterns
        existing = next((p for p in patterns if p.product == product), None)
        if existing is None:
            patterns.append(
                OrderPattern(
                    product=product,
                    quantity=quantity,
                    cadence_days=DEFAULT_CADENCE_DAYS,
                    last_ordered_at=ordered_at,
                )
            )
            return

        existing.quantity = round((existing.quantity + quantity) / 2)
        if existing.last_ordered_at is not None:
            observed_days = (ordered_at - existing.last_ordered_at).days
            if observed_days > 0:
                existing.cadence_days = round(
                    (existing.cadence_days + observed_days) / 2
                )
        existing.last_ordered_at = ordered_at

    # ------------------------------------------------------------------
    # Working memory
    # ------------------------------------------------------------------

    def add_clarification_needed(
        self, identity: str, clarification: PendingClarification
    ) -> None:
        self._require(identity).working_memory.pending_clarifications.append(
            clarification
        )

    def resolve_clarification(self, identity: str) -> PendingClarification | None:
        """Remove and return the oldest open question."""
        pending = self._require(identity).working_memory.pending_clarifications
        return pending.pop(0) if pending else None

    def mark_interaction_success(
        self,
        identity: str,
        pattern: str,
        response: str,
        satisfaction: Satisfaction,
        response_time_seconds: float | None = None,
    ) -> None:
        context = self._require(identity)
        context.add_interaction(
            SuccessfulInteraction(
                pattern=pattern,
                response=response,
                satisfaction=satisfaction,
                response_time_seconds=response_time_seconds,
                recorded_at=self._clock(),
            ),
            self._config.successful_interactions_capacity,
        )

    def set_persona(self, identity: str, persona: Persona) -> None:
        """Reassign the persona (classifier result only)."""
        self._require(identity).persona = persona

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    async def persist_all(self) -> int:
        """Snapshot every cached context.

        Returns:
            Number of contexts saved.
        """
        saved = 0
        for identity in list(self._contexts):
            async with self.lock(identity):
                context = self._contexts.get(identity)
                if context is None:
                    continue
                try:
                    await self._snapshots.save_snapshot(context)
                    saved += 1
                except Exception:
                    logger.exception("Failed to persist context for %s", identity)
        logger.debug("Persisted %d contexts", saved)
        return saved

    async def clear_inactive(self, threshold_minutes: int | None = None) -> int:
        """Snapshot and evict contexts idle longer than the threshold.

        Identities with a turn in flight are skipped.

        Args:
            threshold_minutes: Idle threshold (defaults to configuration).

        Returns:
            Number of evicted contexts.
        """
        minutes = (
            threshold_minutes
            if threshold_minutes is not None
            else self._config.inactive_minutes
        )
        cutoff = self._clock() - timedelta(minutes=minutes)
        evicted = 0

        for identity, context in list(self._contexts.items()):
            if context.last_activity_at >= cutoff or self._is_busy(identity):
                continue
            try:
                await self._snapshots.save_snapshot(context)
            except Exception:
                logger.exception(
                    "Failed to persist inactive context for %s, keeping it", identity
                )
                continue
            if context.last_activity_at >= cutoff or self._is_busy(identity):
                continue
            del self._contexts[identity]
            self._locks.pop(identity, None)
            evicted += 1

        if evicted:
            logger.info("Evicted %d inactive contexts", evicted)
        return evicted

    def _is_busy(self, identity: str) -> bool:
        lock = self._locks.get(identity)
        return lock is not None and lock.locked()
