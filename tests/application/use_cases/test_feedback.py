"""Tests for RecordFeedbackUseCase."""

from datetime import datetime, timedelta
from unittest.mock import AsyncMock, Mock

import pytest

from tradetalk.application.services import (
    ContextStore,
    ResponseGenerator,
    ResponsePatternRegistry,
)
from tradetalk.application.use_cases import RecordFeedbackUseCase
from tradetalk.config import ConversationConfig, ResponseConfig
from tradetalk.domain.entities import FeedbackKind, Message, Persona, Satisfaction

IDENTITY = "+15551234567"


@pytest.fixture
def context_store(now: datetime) -> ContextStore:
    """Context store without stored snapshots."""
    repo = AsyncMock()
    repo.load_snapshot.return_value = None
    return ContextStore(repo, ConversationConfig(), clock=lambda: now)


@pytest.fixture
def pattern_repository() -> AsyncMock:
    """Empty pattern repository."""
    repo = AsyncMock()
    repo.find_all.return_value = []
    return repo


@pytest.fixture
def response_generator(pattern_repository: AsyncMock) -> ResponseGenerator:
    """Response generator with a mock renderer."""
    return ResponseGenerator(
        registry=ResponsePatternRegistry(pattern_repository),
        renderer=Mock(),
        config=ResponseConfig(feedback_decay=0.9),
    )


@pytest.fixture
def use_case(
    context_store: ContextStore, response_generator: ResponseGenerator
) -> RecordFeedbackUseCase:
    """Use case under test."""
    return RecordFeedbackUseCase(context_store, response_generator)


class TestRecordFeedback:
    async def test_positive_learns_pattern(
        self, use_case: RecordFeedbackUseCase, context_store: ContextStore
    ) -> None:
        pattern = await use_case.execute(
            f"whatsapp:{IDENTITY}",
            "ABC123: 40 units",
            FeedbackKind.POSITIVE,
            intent_type="check_inventory",
        )

        assert pattern is not None
        assert pattern.persona == Persona.STREAMLINER
        assert pattern.intent_type == "check_inventory"
        assert pattern.success_rate == 1.0
        context = context_store.get_cached(IDENTITY)
        assert context is not None
        assert context.successful_interactions[-1].satisfaction == Satisfaction.POSITIVE

    async def test_negative_twice(self, use_case: RecordFeedbackUseCase) -> None:
        await use_case.execute(
            IDENTITY, "Stock OK", FeedbackKind.POSITIVE, intent_type="check_inventory"
        )
        await use_case.execute(
            IDENTITY, "Stock OK", FeedbackKind.NEGATIVE, intent_type="check_inventory"
        )

        pattern = await use_case.execute(
            IDENTITY, "Stock OK", FeedbackKind.NEGATIVE, intent_type="check_inventory"
        )

        assert pattern is not None
        assert pattern.success_rate == pytest.approx(0.81)
        assert pattern.usage_count == 2

    async def test_correction_counts_as_negative(
        self, use_case: RecordFeedbackUseCase, context_store: ContextStore
    ) -> None:
        await use_case.execute(
            IDENTITY, "Stock OK", FeedbackKind.POSITIVE, intent_type="view_alerts"
        )

        pattern = await use_case.execute(
            IDENTITY,
            "Stock OK",
            FeedbackKind.CORRECTION,
            intent_type="view_alerts",
            correction="I wanted the alert list",
        )

        assert pattern is not None
        assert pattern.success_rate == pytest.approx(0.9)
        context = context_store.get_cached(IDENTITY)
        assert context is not None
        assert context.successful_interactions[-1].satisfaction == Satisfaction.NEGATIVE

    async def test_intent_defaults_to_last_known(
        self,
        use_case: RecordFeedbackUseCase,
        context_store: ContextStore,
        now: datetime,
    ) -> None:
        await context_store.get_or_create(IDENTITY)
        for body, intent in (("alerts", "view_alerts"), ("hmm", "unknown")):
            context_store.append_message(
                IDENTITY,
                Message("SM", IDENTITY, "+1", body, now - timedelta(minutes=1)),
                intent_type=intent,
            )

        pattern = await use_case.execute(IDENTITY, "3 alerts", FeedbackKind.POSITIVE)

        assert pattern is not None
        assert pattern.intent_type == "view_alerts"

    async def test_negative_without_pattern(
        self, use_case: RecordFeedbackUseCase, pattern_repository: AsyncMock
    ) -> None:
        pattern = await use_case.execute(
            IDENTITY, "Stock OK", FeedbackKind.NEGATIVE, intent_type="check_inventory"
        )

        assert pattern is None
        pattern_repository.save.assert_not_awaited()
