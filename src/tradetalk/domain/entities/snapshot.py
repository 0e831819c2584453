"""Conversion of conversation contexts to and from plain dicts.

The dict form only contains JSON-compatible values (datetimes become ISO
8601 strings, enums their values) and is used both for durable snapshots
and for conversation exports.
"""

from datetime import datetime, timezone
from typing import Any

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
)
from tradetalk.domain.entities.intent import Phenomenon
from tradetalk.domain.entities.message import Message
from tradetalk.domain.entities.persona import Persona

SNAPSHOT_VERSION = 1


def _dt(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _parse_dt(value: str | None) -> datetime | None:
    if value is None:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _require_dt(value: str | None) -> datetime:
    parsed = _parse_dt(value)
    if parsed is None:
        raise ValueError("Missing required timestamp")
    return parsed


def message_to_dict(message: Message) -> dict[str, Any]:
    return {
        "id": message.id,
        "sender": message.sender,
        "recipient": message.recipient,
        "body": message.body,
        "timestamp": _dt(message.timestamp),
        "intent": message.intent,
        "entities": message.entities,
        "confidence": message.confidence,
    }


def message_from_dict(data: dict[str, Any]) -> Message:
    return Message(
        id=data["id"],
        sender=data["sender"],
        recipient=data["recipient"],
        body=data["body"],
        timestamp=_require_dt(data["timestamp"]),
        intent=data.get("intent"),
        entities=data.get("entities") or {},
        confidence=data.get("confidence"),
    )


def context_to_dict(context: ConversationContext) -> dict[str, Any]:
    """Convert a context to a JSON-compatible dict.

    Args:
        context: Context to convert.

    Returns:
        Dict representation including every memory.
    """
    working = context.working_memory
    long_term = context.long_term_memory
    style = long_term.communication_style
    return {
        "version": SNAPSHOT_VERSION,
        "thread_id": context.thread_id,
        "identity": context.identity,
        "user_id": context.user_id,
        "persona": context.persona.value,
        "started_at": _dt(context.started_at),
        "last_activity_at": _dt(context.last_activity_at),
        "message_count": context.message_count,
        "window": [message_to_dict(m) for m in context.window],
        "working_memory": {
            "current_task": working.current_task,
            "entities_mentioned": working.entities_mentioned,
            "pending_clarifications": [
                {
                    "question": p.question,
                    "intent_type": p.intent_type,
                    "entities": p.entities,
                    "missing_field": p.missing_field,
                    "phenomenon": p.phenomenon.value if p.phenomenon else None,
                    "raw_text": p.raw_text,
                    "asked_at": _dt(p.asked_at),
                }
                for p in working.pending_clarifications
            ],
            "last_referenced_items": [
                {"type": i.type, "value": i.value, "mentioned_at": _dt(i.mentioned_at)}
                for i in working.last_referenced_items
            ],
        },
        "long_term_memory": {
            "common_queries": [
                {
                    "query": q.query,
                    "frequency": q.frequency,
                    "last_asked": _dt(q.last_asked),
                }
                for q in long_term.common_queries
            ],
            "preferred_suppliers": list(long_term.preferred_suppliers),
            "typical_order_patterns": [
                {
                    "product": p.product,
                    "quantity": p.quantity,
                    "cadence_days": p.cadence_days,
                    "last_ordered_at": _dt(p.last_ordered_at),
                }
                for p in long_term.typical_order_patterns
            ],
            "communication_style": {
                "response_style": style.response_style.value,
                "language_patterns": list(style.language_patterns),
                "preferred_times": list(style.preferred_times),
            },
        },
        "successful_interactions": [
            {
                "pattern": i.pattern,
                "response": i.response,
                "satisfaction": i.satisfaction.value,
                "response_time_seconds": i.response_time_seconds,
                "recorded_at": _dt(i.recorded_at),
            }
            for i in context.successful_interactions
        ],
    }


def context_from_dict(data: dict[str, Any]) -> ConversationContext:
    """Rebuild a context from its dict representation.

    Args:
        data: Output of context_to_dict.

    Returns:
        Restored context.

    Raises:
        KeyError, ValueError: The dict is malformed.
    """
    working = data.get("working_memory") or {}
    long_term = data.get("long_term_memory") or {}
    style = long_term.get("communication_style") or {}

    return ConversationContext(
        thread_id=data["thread_id"],
        identity=data["identity"],
        user_id=data.get("user_id"),
        persona=Persona(data["persona"]),
        started_at=_require_dt(data["started_at"]),
        last_activity_at=_require_dt(data["last_activity_at"]),
        message_count=data.get("message_count", 0),
        window=[message_from_dict(m) for m in data.get("window", [])],
        working_memory=WorkingMemory(
            current_task=working.get("current_task"),
            entities_mentioned=working.get("entities_mentioned") or {},
            pending_clarifications=[
                PendingClarification(
                    question=p["question"],
                    intent_type=p["intent_type"],
                    entities=p.get("entities") or {},
                    missing_field=p["missing_field"],
                    phenomenon=Phenomenon(p["phenomenon"]) if p.get("phenomenon") else None,
                    raw_text=p.get("raw_text", ""),
                    asked_at=_require_dt(p["asked_at"]),
                )
                for p in working.get("pending_clarifications", [])
            ],
            last_referenced_items=[
                ReferencedItem(
                    type=i["type"],
                    value=i["value"],
                    mentioned_at=_require_dt(i["mentioned_at"]),
                )
                for i in working.get("last_referenced_items", [])
            ],
        ),
        long_term_memory=LongTermMemory(
            common_queries=[
                CommonQuery(
                    query=q["query"],
                    frequency=q["frequency"],
                    last_asked=_require_dt(q["last_asked"]),
                )
                for q in long_term.get("common_queries", [])
            ],
            preferred_suppliers=list(long_term.get("preferred_suppliers", [])),
            typical_order_patterns=[
                OrderPattern(
                    product=p["product"],
                    quantity=p["quantity"],
                    cadence_days=p["cadence_days"],
                    last_ordered_at=_parse_dt(p.get("last_ordered_at")),
                )
                for p in long_term.get("typical_order_patterns", [])
            ],
            communication_style=CommunicationStyle(
                response_style=ResponseLength(
                    style.get("response_style", ResponseLength.DETAILED.value)
                ),
                language_patterns=list(style.get("language_patterns", [])),
                preferred_times=list(style.get("preferred_times", [])),
            ),
        ),
        successful_interactions=[
            SuccessfulInteraction(
                pattern=i["pattern"],
                response=i["response"],
                satisfaction=Satisfaction(i["satisfaction"]),
                response_time_seconds=i.get("response_time_seconds"),
                recorded_at=_require_dt(i["recorded_at"]),
            )
            for i in data.get("successful_interactions", [])
        ],
    )
