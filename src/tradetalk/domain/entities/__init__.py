"""Domain entities."""

from tradetalk.domain.entities.business import (
    FinancialMetric,
    InventoryItem,
    SalesTransaction,
    SupplierRecord,
)
from tradetalk.domain.entities.context import (
    CommonQuery,
    CommunicationStyle,
    ConversationContext,
    LongTermMemory,
    OrderPattern,
    PendingClarification,
    ReferencedItem,
    ResponseLength,
    Satisfaction,
    SuccessfulInteraction,
    WorkingMemory,
    create_context,
)
from tradetalk.domain.entities.exceptions import (
    BusinessActionError,
    ContextNotFoundError,
    TemplateRenderError,
    TradetalkError,
)
from tradetalk.domain.entities.insight import (
    ActionType,
    InsightAction,
    InsightPriority,
    InsightType,
    ProactiveInsight,
)
from tradetalk.domain.entities.intent import (
    CLARIFICATION_PRIORITY,
    REQUIRED_ENTITIES,
    TASK_INTENTS,
    EnrichedIntent,
    Intent,
    IntentType,
    Phenomenon,
    ResolutionState,
)
from tradetalk.domain.entities.message import Message
from tradetalk.domain.entities.persona import DEFAULT_PERSONA, Persona
from tradetalk.domain.entities.response import (
    LEARNED_CONTEXT_TAG,
    FeedbackKind,
    Mood,
    ResponseContext,
    ResponsePattern,
    TimeOfDay,
    pattern_key,
)
from tradetalk.domain.entities.snapshot import context_from_dict, context_to_dict
from tradetalk.domain.entities.user import UserProfile

__all__ = [
    "ActionType",
    "BusinessActionError",
    "CLARIFICATION_PRIORITY",
    "CommonQuery",
    "CommunicationStyle",
    "ContextNotFoundError",
    "ConversationContext",
    "DEFAULT_PERSONA",
    "EnrichedIntent",
    "FeedbackKind",
    "FinancialMetric",
    "InsightAction",
    "InsightPriority",
    "InsightType",
    "Intent",
    "IntentType",
    "InventoryItem",
    "LEARNED_CONTEXT_TAG",
    "LongTermMemory",
    "Message",
    "Mood",
    "OrderPattern",
    "PendingClarification",
    "Persona",
    "Phenomenon",
    "ProactiveInsight",
    "REQUIRED_ENTITIES",
    "ReferencedItem",
    "ResolutionState",
    "ResponseContext",
    "ResponseLength",
    "ResponsePattern",
    "SalesTransaction",
    "Satisfaction",
    "SuccessfulInteraction",
    "SupplierRecord",
    "TASK_INTENTS",
    "TemplateRenderError",
    "TimeOfDay",
    "TradetalkError",
    "UserProfile",
    "WorkingMemory",
    "context_from_dict",
    "context_to_dict",
    "create_context",
    "pattern_key",
]
