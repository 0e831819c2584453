"""Adaptive response generation.

Replies are rendered from the first template source that succeeds:

1. a learned pattern whose success rate is above the learning threshold
2. a static template for the persona (or the default template)
3. a pretty-printed dump of the action result

and are then adapted to the user's communication style and augmented
with conversational context.
"""

import json
import logging
import re
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, ClassVar

from tradetalk.application.services.detection import KeywordMoodClassifier
from tradetalk.application.services.pattern_registry import ResponsePatternRegistry
from tradetalk.config.models import ResponseConfig
from tradetalk.domain.entities import (
    LEARNED_CONTEXT_TAG,
    ConversationContext,
    FeedbackKind,
    IntentType,
    Mood,
    Persona,
    ResponseContext,
    ResponseLength,
    ResponsePattern,
    TemplateRenderError,
    TimeOfDay,
)
from tradetalk.domain.services import MoodClassifier, TemplateRenderer

logger = logging.getLogger(__name__)

GREETINGS: dict[TimeOfDay, str] = {
    TimeOfDay.MORNING: "🌅 Good morning!",
    TimeOfDay.AFTERNOON: "☀️ Good afternoon!",
    TimeOfDay.EVENING: "🌆 Good evening!",
    TimeOfDay.NIGHT: "🌙 Working late?",
}

MOOD_EMOJIS: dict[Mood, str] = {
    Mood.POSITIVE: "😊",
    Mood.NEUTRAL: "👍",
    Mood.URGENT: "🚨",
    Mood.FRUSTRATED: "🤝",
}

SIGN_OFFS: dict[Persona, str] = {
    Persona.STREAMLINER: "Done! ⚡",
    Persona.NAVIGATOR: "Analysis complete. 🎯",
    Persona.SPRING: "Hope this helps! 🌱",
    Persona.HUB: "Network update complete. 🌐",
    Persona.PROCESSOR: "[END_TRANSMISSION]",
}

TEMPLATE_NAMES: dict[str, str] = {
    IntentType.CHECK_INVENTORY.value: "inventory_check_result",
    IntentType.REORDER_STOCK.value: "reorder_confirmation",
    IntentType.UPDATE_STOCK.value: "stock_update",
    IntentType.VIEW_ALERTS.value: "alert_summary",
    IntentType.ACKNOWLEDGE_ALERT.value: "alert_acknowledged",
    IntentType.GENERATE_REPORT.value: "report_ready",
    IntentType.VIEW_METRICS.value: "metrics_summary",
    IntentType.DAILY_DIGEST.value: "daily_digest",
    IntentType.CHECK_SUPPLIER.value: "supplier_info",
    IntentType.SUPPLIER_PERFORMANCE.value: "supplier_ranking",
    IntentType.AGENT_STATUS.value: "agent_status",
    IntentType.HELP.value: "help",
    IntentType.UNKNOWN.value: "unknown_command",
}

BRIEF_MAX_LINES = 3
MORE_HINT = "📎 Reply MORE for details"
POLITE_PREFIX = "Thank you for your query. "
URGENT_BANNER = "🚨 IMMEDIATE ACTION: "
SUGGESTION_MIN_FREQUENCY = 5
FALLBACK_APOLOGY = "⚠️ Sorry, something went wrong. Please try again or contact support."

PLACEHOLDER_PATTERN = re.compile(r"\{\{\s*(\w+)\s*\}\}")
# Numbers and ALL-CAPS tokens become variables in learned templates
VARIABLE_TOKEN_PATTERN = re.compile(r"\b(\d+|[A-Z]{3,})\b")


def extract_template(response: str) -> tuple[str, list[str]]:
    """Turn a literal response into a template.

    Args:
        response: Response text the user liked.

    Returns:
        (template, variable names) where each number or ALL-CAPS token is
        replaced by {{var0}}, {{var1}}, ...
    """
    variables: list[str] = []

    def replace(_: re.Match[str]) -> str:
        name = f"var{len(variables)}"
        variables.append(name)
        return "{{" + name + "}}"

    return VARIABLE_TOKEN_PATTERN.sub(replace, response), variables


@dataclass(frozen=True)
class LearnedPatternSource:
    """Template learned from positive feedback."""

    pattern: ResponsePattern
    tag: ClassVar[str] = "learned"

    def render(self, result: dict[str, Any], response_context: ResponseContext) -> str:
        builtins = {
            "greeting": GREETINGS[response_context.time_of_day],
            "emoji": MOOD_EMOJIS[response_context.mood],
            "sign_off": SIGN_OFFS[response_context.persona],
        }

        def replace(match: re.Match[str]) -> str:
            name = match.group(1)
            if name in builtins:
                return builtins[name]
            value = result.get(name)
            if value is None or value == "":
                return f"[{name}]"
            return str(value)

        return PLACEHOLDER_PATTERN.sub(replace, self.pattern.template)


@dataclass(frozen=True)
class StaticTemplateSource:
    """Static per-persona template."""

    renderer: TemplateRenderer
    name: str
    tag: ClassVar[str] = "static"

    def render(self, result: dict[str, Any], response_context: ResponseContext) -> str:
        return self.renderer.render(response_context.persona, self.name, result)


@dataclass(frozen=True)
class RawDumpSource:
    """Last resort: the action result itself."""

    tag: ClassVar[str] = "raw"

    def render(self, result: dict[str, Any], response_context: ResponseContext) -> str:
        return json.dumps(result, indent=2, ensure_ascii=False, default=str)


TemplateSource = LearnedPatternSource | StaticTemplateSource | RawDumpSource


class ResponseGenerator:
    """Personalizes replies and learns from user feedback."""

    def __init__(
        self,
        registry: ResponsePatternRegistry,
        renderer: TemplateRenderer,
        config: ResponseConfig,
        mood_classifier: MoodClassifier | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize ResponseGenerator.

        Args:
            registry: Learned pattern registry.
            renderer: Static template renderer.
            config: Learning threshold and feedback decay.
            mood_classifier: Mood detection strategy.
            clock: Returns the current time.
        """
        self._registry = registry
        self._renderer = renderer
        self._config = config
        self._mood_classifier = mood_classifier or KeywordMoodClassifier()
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def build_response_context(self, context: ConversationContext) -> ResponseContext:
        return ResponseContext(
            persona=context.persona,
            mood=self._mood_classifier.classify(context.window[-3:]),
            time_of_day=TimeOfDay.from_hour(self._clock().hour),
            response_length=context.long_term_memory.communication_style.response_style,
            is_first_turn=not context.window,
            current_task=context.working_memory.current_task,
        )

    def generate(
        self,
        result: dict[str, Any],
        context: ConversationContext,
        intent_type: str,
    ) -> str:
        """Render a personalized reply.

        Must be called before the current message is appended to the window.

        Args:
            result: Business action result.
            context: Conversation context of the recipient.
            intent_type: Intent the result answers.

        Returns:
            Reply text.
        """
        response_context = self.build_response_context(context)
        response = self._render(result, response_context, intent_type)
        response = self.adapt_style(response, context)
        return self.augment(response, context, response_context)

    def select_pattern(
        self, response_context: ResponseContext, intent_type: str
    ) -> ResponsePattern | None:
        """Pick a learned pattern, if one is good enough."""
        pattern = self._registry.get(
            response_context.persona, intent_type, response_context.mood.value
        ) or self._registry.best_for(response_context.persona, intent_type)
        if pattern is None or pattern.success_rate <= self._config.learning_threshold:
            return None
        return pattern

    def template_sources(
        self, response_context: ResponseContext, intent_type: str
    ) -> list[TemplateSource]:
        sources: list[TemplateSource] = []
        pattern = self.select_pattern(response_context, intent_type)
        if pattern is not None:
            sources.append(LearnedPatternSource(pattern))
        sources.append(
            StaticTemplateSource(
                self._renderer, TEMPLATE_NAMES.get(intent_type, intent_type)
            )
        )
        sources.append(RawDumpSource())
        return sources

    def _render(
        self,
        result: dict[str, Any],
        response_context: ResponseContext,
        intent_type: str,
    ) -> str:
        *templates, fallback = self.template_sources(response_context, intent_type)
        for source in templates:
            try:
                return source.render(result, response_context)
            except TemplateRenderError as e:
                logger.debug("Template source %s failed: %s", source.tag, e)
        return fallback.render(result, response_context)

    # ------------------------------------------------------------------
    # Style and augmentation
    # ------------------------------------------------------------------

    def adapt_style(self, response: str, context: ConversationContext) -> str:
        """Adapt a draft to the learned communication style."""
        style = context.long_term_memory.communication_style

        if style.response_style is ResponseLength.BRIEF:
            lines = [line for line in response.split("\n") if line.strip()]
            if len(lines) > BRIEF_MAX_LINES:
                response = "\n".join(lines[:BRIEF_MAX_LINES]) + "\n" + MORE_HINT
        elif style.response_style is ResponseLength.VISUAL:
            response = re.sub(r"\b(increase)", r"📈 \1", response, flags=re.I)
            response = re.sub(r"\b(decrease)", r"📉 \1", response, flags=re.I)
            lowered = response.lower()
            if "alert" in lowered or "warning" in lowered:
                response = "⚠️ " + response

        if "polite" in style.language_patterns:
            lowered = response.lower()
            if "please" not in lowered and "thank" not in lowered:
                response = POLITE_PREFIX + response
        if "urgent" in style.language_patterns:
            response = URGENT_BANNER + response
        return response

    def augment(
        self,
        response: str,
        context: ConversationContext,
        response_context: ResponseContext,
    ) -> str:
        """Add greeting, task footer and a proactive suggestion."""
        if response_context.is_first_turn:
            response = GREETINGS[response_context.time_of_day] + "\n\n" + response

        if context.working_memory.current_task:
            response += "\n\n📋 Still working on: " + context.working_memory.current_task

        suggestion = self._suggestion(context)
        if suggestion:
            response += "\n\n💡 " + suggestion
        return response

    @staticmethod
    def _suggestion(context: ConversationContext) -> str | None:
        memory = context.long_term_memory
        top = memory.top_query()
        if top is not None and top.frequency > SUGGESTION_MIN_FREQUENCY:
            return f"Quick tip: You can set up alerts for {top.query}"
        if memory.typical_order_patterns:
            product = memory.typical_order_patterns[0].product
            return f"Based on your history, you might need to reorder {product} soon"
        return None

    # ------------------------------------------------------------------
    # Fixed replies
    # ------------------------------------------------------------------

    def format_clarification(
        self,
        question: str,
        persona: Persona,
        context: ConversationContext | None = None,
    ) -> str:
        """Render a clarification question.

        Greets the user first when the question opens the conversation.
        """
        try:
            reply = self._renderer.render(
                persona, "clarification", {"question": question}
            )
        except TemplateRenderError:
            reply = question
        if context is not None and not context.window:
            greeting = GREETINGS[TimeOfDay.from_hour(self._clock().hour)]
            reply = greeting + "\n\n" + reply
        return reply

    def apology(self, persona: Persona) -> str:
        try:
            return self._renderer.render(persona, "apology", {})
        except TemplateRenderError:
            return FALLBACK_APOLOGY

    # ------------------------------------------------------------------
    # Feedback
    # ------------------------------------------------------------------

    async def learn_from_feedback(
        self,
        identity: str,
        response: str,
        feedback: FeedbackKind,
        intent_type: str,
        persona: Persona,
    ) -> ResponsePattern | None:
        """Reinforce or decay the learned pattern for (persona, intent).

        Args:
            identity: Phone number that gave the feedback.
            response: Reply the feedback refers to.
            feedback: Feedback kind (correction counts as negative).
            intent_type: Intent the reply answered.
            persona: Persona of the user.

        Returns:
            The created or updated pattern, or None when there was nothing
            to decay.
        """
        if feedback is FeedbackKind.POSITIVE:
            template, variables = extract_template(response)
            pattern = ResponsePattern(
                persona=persona,
                intent_type=intent_type,
                context_tag=LEARNED_CONTEXT_TAG,
                template=template,
                success_rate=1.0,
                usage_count=0,
                variables=variables,
            )
            await self._registry.save(pattern)
            logger.info(
                "Learned response pattern for %s/%s from %s",
                persona.value,
                intent_type,
                identity,
            )
            return pattern

        pattern = self._registry.get(persona, intent_type, LEARNED_CONTEXT_TAG)
        if pattern is None:
            logger.debug(
                "No learned pattern to decay for %s/%s", persona.value, intent_type
            )
            return None
        pattern.success_rate *= self._config.feedback_decay
        pattern.usage_count += 1
        await self._registry.save(pattern)
        logger.info(
            "Decayed response pattern for %s/%s to %.3f",
            persona.value,
            intent_type,
            pattern.success_rate,
        )
        return pattern
