"""Keyword and regex detection strategies."""

import re
from collections.abc import Sequence

from tradetalk.domain.entities import Message, Mood, Phenomenon

# Checked in order, first match wins
MOOD_PATTERNS: tuple[tuple[Mood, re.Pattern[str]], ...] = (
    (Mood.URGENT, re.compile(r"\b(?:urgent|asap|immediately|now|critical)\b", re.I)),
    (
        Mood.FRUSTRATED,
        re.compile(r"\b(?:not working|wrong|error|again|still)\b", re.I),
    ),
    (
        Mood.POSITIVE,
        re.compile(r"\b(?:thanks|great|perfect|excellent|good)\b", re.I),
    ),
)

PHENOMENON_PATTERNS: tuple[tuple[Phenomenon, re.Pattern[str]], ...] = (
    # "this week" / "that month" are temporal, not references
    (
        Phenomenon.REFERENCE,
        re.compile(
            r"\b(?:it|that|this|them)\b"
            r"(?!\s+(?:week|month|year|morning|afternoon|evening|time)\b)",
            re.I,
        ),
    ),
    (
        Phenomenon.COMPARISON,
        re.compile(r"\b(?:same|similar)\b|\blike\s+(?:last|before|the last)\b", re.I),
    ),
    (Phenomenon.REPETITION, re.compile(r"\b(?:again|more|another)\b", re.I)),
    (
        Phenomenon.TEMPORAL,
        re.compile(
            r"\b(?:today|yesterday|tomorrow|this week|last week|last month"
            r"|recently|earlier)\b",
            re.I,
        ),
    ),
)


class KeywordMoodClassifier:
    """Mood classifier scanning the last few messages for keywords."""

    def __init__(self, lookback: int = 3) -> None:
        self._lookback = lookback

    def classify(self, messages: Sequence[Message]) -> Mood:
        recent = " ".join(m.body for m in list(messages)[-self._lookback :])
        if not recent:
            return Mood.NEUTRAL
        for mood, pattern in MOOD_PATTERNS:
            if pattern.search(recent):
                return mood
        return Mood.NEUTRAL


class RegexPhenomenonDetector:
    """Phenomenon detector based on regular expressions."""

    def detect(self, text: str) -> list[Phenomenon]:
        return [
            phenomenon
            for phenomenon, pattern in PHENOMENON_PATTERNS
            if pattern.search(text)
        ]
