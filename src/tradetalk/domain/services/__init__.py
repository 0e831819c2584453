"""Domain services."""

from tradetalk.domain.services.protocols import (
    BusinessActionExecutor,
    MessagingService,
    MoodClassifier,
    PersonaClassifier,
    PhenomenonDetector,
    TemplateRenderer,
)

__all__ = [
    "BusinessActionExecutor",
    "MessagingService",
    "MoodClassifier",
    "PersonaClassifier",
    "PhenomenonDetector",
    "TemplateRenderer",
]
