"""Record feedback use case."""

import logging

from tradetalk.application.services.context_store import ContextStore
from tradetalk.application.services.response_generator import ResponseGenerator
from tradetalk.application.use_cases.handle_message import normalize_identity
from tradetalk.domain.entities import (
    FeedbackKind,
    IntentType,
    ResponsePattern,
    Satisfaction,
)

logger = logging.getLogger(__name__)


class RecordFeedbackUseCase:
    """Applies user feedback on a reply to the learned patterns."""

    def __init__(
        self,
        context_store: ContextStore,
        response_generator: ResponseGenerator,
    ) -> None:
        self._context_store = context_store
        self._response_generator = response_generator

    async def execute(
        self,
        identity: str,
        response: str,
        feedback: FeedbackKind,
        intent_type: str | None = None,
        correction: str | None = None,
    ) -> ResponsePattern | None:
        """Execute the use case.

        A correction counts as negative feedback.

        Args:
            identity: Phone number that gave the feedback.
            response: Reply the feedback refers to.
            feedback: Feedback kind.
            intent_type: Intent the reply answered (defaults to the last
                recognized intent of the conversation).
            correction: What the user expected instead.

        Returns:
            The created or updated pattern, if any.
        """
        identity = normalize_identity(identity)

        async with self._context_store.lock(identity):
            context = await self._context_store.get_or_create(identity)
            if intent_type is None:
                intent_type = next(
                    (
                        m.intent
                        for m in reversed(context.window)
                        if m.intent and m.intent != IntentType.UNKNOWN.value
                    ),
                    IntentType.UNKNOWN.value,
                )

            if feedback is FeedbackKind.CORRECTION:
                logger.info(
                    "Correction from %s for %s: %s", identity, intent_type, correction
                )

            kind = (
                FeedbackKind.POSITIVE
                if feedback is FeedbackKind.POSITIVE
                else FeedbackKind.NEGATIVE
            )
            pattern = await self._response_generator.learn_from_feedback(
                identity, response, kind, intent_type, context.persona
            )

            self._context_store.mark_interaction_success(
                identity,
                pattern=intent_type,
                response=response,
                satisfaction=(
                    Satisfaction.POSITIVE
                    if kind is FeedbackKind.POSITIVE
                    else Satisfaction.NEGATIVE
                ),
            )
        return pattern
