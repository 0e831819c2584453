"""Application use cases."""

from tradetalk.application.use_cases.analytics import ConversationAnalyticsUseCase
from tradetalk.application.use_cases.feedback import RecordFeedbackUseCase
from tradetalk.application.use_cases.handle_message import (
    SessionOrchestrator,
    normalize_identity,
)

__all__ = [
    "ConversationAnalyticsUseCase",
    "RecordFeedbackUseCase",
    "SessionOrchestrator",
    "normalize_identity",
]
