"""Handle inbound message use case."""

import logging
import time

from tradetalk.application.services.context_store import ContextStore
from tradetalk.application.services.intent_resolver import IntentResolver, Resolution
from tradetalk.application.services.response_generator import ResponseGenerator
from tradetalk.domain.entities import (
    DEFAULT_PERSONA,
    ConversationContext,
    IntentType,
    Message,
    ResolutionState,
    Satisfaction,
)
from tradetalk.domain.services import BusinessActionExecutor, MessagingService

logger = logging.getLogger(__name__)

CHANNEL_PREFIXES = ("whatsapp:",)

# Answered from static templates without a business action
NO_ACTION_INTENTS = frozenset({IntentType.HELP, IntentType.UNKNOWN})


def normalize_identity(address: str) -> str:
    """Strip the channel prefix and whitespace from a sender address."""
    identity = address.strip()
    for prefix in CHANNEL_PREFIXES:
        if identity.lower().startswith(prefix):
            identity = identity[len(prefix) :]
    return identity.strip()


class SessionOrchestrator:
    """Entry point for inbound chat messages.

    Composes the context store, intent resolver, business action executor
    and response generator for one turn, then sends the reply.
    """

    def __init__(
        self,
        context_store: ContextStore,
        intent_resolver: IntentResolver,
        action_executor: BusinessActionExecutor,
        response_generator: ResponseGenerator,
        messaging_service: MessagingService,
    ) -> None:
        """Initialize the use case.

        Args:
            context_store: Per-identity conversation contexts.
            intent_resolver: Resolves text to intents.
            action_executor: Carries out business actions.
            response_generator: Renders personalized replies.
            messaging_service: Sends the reply.
        """
        self._context_store = context_store
        self._intent_resolver = intent_resolver
        self._action_executor = action_executor
        self._response_generator = response_generator
        self._messaging_service = messaging_service

    async def handle(self, message: Message) -> str:
        """Handle one inbound message.

        Processing flow:
        1. Normalize the sender identity
        2. Take the identity lock for the whole turn
        3. Resolve the turn (resolved / needs clarification / continuation)
        4. Execute the business action and render the reply
        5. Record the turn in the context
        6. Send the reply

        Args:
            message: Inbound message.

        Returns:
            The reply text (also when sending it failed).
        """
        identity = normalize_identity(message.sender)
        started = time.monotonic()

        async with self._context_store.lock(identity):
            try:
                reply = await self._process(identity, message, started)
            except Exception:
                logger.exception("Failed to handle message from %s", identity)
                context = self._context_store.get_cached(identity)
                persona = context.persona if context else DEFAULT_PERSONA
                reply = self._response_generator.apology(persona)

        try:
            await self._messaging_service.send_message(identity, reply)
        except Exception:
            logger.exception("Failed to send reply to %s", identity)
        return reply

    async def _process(self, identity: str, message: Message, started: float) -> str:
        context = await self._context_store.get_or_create(identity)
        resolution = self._intent_resolver.resolve_turn(message.body, context)
        intent = resolution.intent
        logger.info(
            "Turn from %s resolved as %s (%s)",
            identity,
            intent.type.value,
            resolution.state.value,
        )

        if resolution.state is ResolutionState.NEEDS_CLARIFICATION:
            if resolution.resumed is not None:
                self._context_store.resolve_clarification(identity)
            return self._ask(identity, message, context, resolution)

        if intent.type in NO_ACTION_INTENTS:
            result = {}
        else:
            result = await self._action_executor.execute(intent, context)

        reply = self._response_generator.generate(result, context, intent.type.value)
        # A turn that fails before this point keeps the question pending
        if resolution.resumed is not None:
            self._context_store.resolve_clarification(identity)
        self._context_store.append_message(
            identity,
            message,
            intent_type=intent.type.value,
            entities=intent.entities,
            confidence=intent.confidence,
        )
        if not intent.is_unknown:
            self._context_store.mark_interaction_success(
                identity,
                pattern=intent.type.value,
                response=reply,
                satisfaction=Satisfaction.NEUTRAL,
                response_time_seconds=time.monotonic() - started,
            )
        return reply

    def _ask(
        self,
        identity: str,
        message: Message,
        context: ConversationContext,
        resolution: Resolution,
    ) -> str:
        clarification = resolution.clarification
        if clarification is None:
            raise ValueError("Clarification state without a question")

        self._context_store.add_clarification_needed(identity, clarification)
        reply = self._response_generator.format_clarification(
            clarification.question, context.persona, context
        )
        self._context_store.append_message(
            identity,
            message,
            intent_type=resolution.intent.type.value,
            entities=resolution.intent.entities,
            confidence=resolution.intent.confidence,
            count_query=False,
        )
        return reply
