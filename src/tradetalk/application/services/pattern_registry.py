"""Registry of learned response patterns."""

import logging

from tradetalk.domain.entities import Persona, ResponsePattern, pattern_key
from tradetalk.domain.repositories import ResponsePatternRepository

logger = logging.getLogger(__name__)


class ResponsePatternRegistry:
    """In-memory view of learned patterns, written through to the repository."""

    def __init__(self, repository: ResponsePatternRepository) -> None:
        self._repository = repository
        self._patterns: dict[tuple[str, str, str], ResponsePattern] = {}

    async def load(self) -> int:
        """Load all persisted patterns.

        Returns:
            Number of patterns loaded.
        """
        patterns = await self._repository.find_all()
        self._patterns = {pattern.key: pattern for pattern in patterns}
        logger.info("Loaded %d learned response patterns", len(self._patterns))
        return len(self._patterns)

    def get(
        self, persona: Persona, intent_type: str, context_tag: str
    ) -> ResponsePattern | None:
        return self._patterns.get(pattern_key(persona, intent_type, context_tag))

    def best_for(self, persona: Persona, intent_type: str) -> ResponsePattern | None:
        """Return the pattern with the highest success rate for persona and intent."""
        candidates = [
            p
            for p in self._patterns.values()
            if p.persona is persona and p.intent_type == intent_type
        ]
        if not candidates:
            return None
        return max(candidates, key=lambda p: p.success_rate)

    def all(self) -> list[ResponsePattern]:
        return list(self._patterns.values())

    async def save(self, pattern: ResponsePattern) -> None:
        """Store a pattern (overwrites the same key)."""
        self._patterns[pattern.key] = pattern
        await self._repository.save(pattern)
