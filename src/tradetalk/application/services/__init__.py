"""Application services."""

from tradetalk.application.services.background_insights import (
    BackgroundInsightGenerator,
)
from tradetalk.application.services.business_actions import RepositoryActionExecutor
from tradetalk.application.services.context_persister import ContextPersister
from tradetalk.application.services.context_store import ContextStore
from tradetalk.application.services.detection import (
    KeywordMoodClassifier,
    RegexPhenomenonDetector,
)
from tradetalk.application.services.insight_engine import InsightEngine, format_insight
from tradetalk.application.services.intent_resolver import IntentResolver, Resolution
from tradetalk.application.services.pattern_registry import ResponsePatternRegistry
from tradetalk.application.services.response_generator import ResponseGenerator

__all__ = [
    "BackgroundInsightGenerator",
    "ContextPersister",
    "ContextStore",
    "InsightEngine",
    "IntentResolver",
    "KeywordMoodClassifier",
    "RegexPhenomenonDetector",
    "RepositoryActionExecutor",
    "Resolution",
    "ResponseGenerator",
    "ResponsePatternRegistry",
    "format_insight",
]
