"""Conversation analytics use case."""

from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

from tradetalk.application.services.context_store import ContextStore
from tradetalk.application.use_cases.handle_message import normalize_identity
from tradetalk.domain.entities import context_to_dict

TOP_QUERIES = 5


class ConversationAnalyticsUseCase:
    """Summarizes and exports what is remembered about an identity."""

    def __init__(
        self,
        context_store: ContextStore,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._context_store = context_store
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    async def get_analytics(self, identity: str) -> dict[str, Any] | None:
        """Summarize a conversation.

        Args:
            identity: Phone number (channel prefix allowed).

        Returns:
            Analytics dict, or None when nothing is known about the identity.
        """
        context = await self._context_store.find(normalize_identity(identity))
        if context is None:
            return None

        memory = context.long_term_memory
        style = memory.communication_style
        return {
            "identity": context.identity,
            "user_id": context.user_id,
            "persona": context.persona.value,
            "window_size": len(context.window),
            "message_count": context.message_count,
            "communication_style": {
                "response_style": style.response_style.value,
                "language_patterns": list(style.language_patterns),
                "preferred_times": list(style.preferred_times),
            },
            "common_queries": [
                {"query": q.query, "frequency": q.frequency}
                for q in memory.common_queries[:TOP_QUERIES]
            ],
            "conversation_age_seconds": (
                self._clock() - context.started_at
            ).total_seconds(),
            "learning_progress": {
                "successful_interactions": len(context.successful_interactions),
                "preferred_suppliers": len(memory.preferred_suppliers),
                "order_patterns": len(memory.typical_order_patterns),
            },
        }

    async def export(self, identity: str) -> dict[str, Any] | None:
        """Export the full context of an identity."""
        context = await self._context_store.find(normalize_identity(identity))
        if context is None:
            return None
        return context_to_dict(context)
