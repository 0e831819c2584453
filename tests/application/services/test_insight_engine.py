"""Tests for InsightEngine."""

from datetime import date, datetime, timedelta
from unittest.mock import AsyncMock

import pytest

from tradetalk.application.services import ContextStore, InsightEngine, format_insight
from tradetalk.application.services.insight_engine import (
    calculate_runway,
    calculate_trend,
)
from tradetalk.config import ConversationConfig, InsightConfig
from tradetalk.domain.entities import (
    ActionType,
    CommonQuery,
    ConversationContext,
    FinancialMetric,
    InsightAction,
    InsightPriority,
    InsightType,
    InventoryItem,
    OrderPattern,
    Persona,
    ProactiveInsight,
    Satisfaction,
    SuccessfulInteraction,
    SupplierRecord,
    UserProfile,
    create_context,
)
from tradetalk.infrastructure.messaging import MessagingError

IDENTITY = "+15551234567"


@pytest.fixture
def profile() -> UserProfile:
    """Registered user with a company."""
    return UserProfile(user_id="u1", identity=IDENTITY, company_id="c1")


@pytest.fixture
def snapshot_repository() -> AsyncMock:
    """Snapshot repository without stored snapshots."""
    repo = AsyncMock()
    repo.load_snapshot.return_value = None
    repo.find_active_since.return_value = []
    return repo


@pytest.fixture
def user_directory(profile: UserProfile) -> AsyncMock:
    """User directory knowing one user."""
    directory = AsyncMock()
    directory.find_by_user_id.side_effect = lambda user_id: (
        profile if user_id == profile.user_id else None
    )
    directory.find_by_identity.return_value = profile
    return directory


@pytest.fixture
def business_data() -> AsyncMock:
    """Business data repository with no records."""
    repo = AsyncMock()
    repo.get_inventory.return_value = []
    repo.get_suppliers.return_value = []
    repo.get_financial_metrics.return_value = []
    return repo


@pytest.fixture
def messaging_service() -> AsyncMock:
    """Messaging service mock."""
    return AsyncMock()


@pytest.fixture
def insight_repository() -> AsyncMock:
    """Insight repository without sent insights."""
    repo = AsyncMock()
    repo.find_recent.return_value = []
    return repo


@pytest.fixture
def context_store(snapshot_repository: AsyncMock, now: datetime) -> ContextStore:
    """Context store with a fixed clock."""
    return ContextStore(snapshot_repository, ConversationConfig(), clock=lambda: now)


@pytest.fixture
def engine(
    context_store: ContextStore,
    snapshot_repository: AsyncMock,
    user_directory: AsyncMock,
    business_data: AsyncMock,
    messaging_service: AsyncMock,
    insight_repository: AsyncMock,
    now: datetime,
) -> InsightEngine:
    """Engine without send delay."""
    return InsightEngine(
        context_store=context_store,
        snapshot_repository=snapshot_repository,
        user_directory=user_directory,
        business_data=business_data,
        messaging_service=messaging_service,
        insight_repository=insight_repository,
        config=InsightConfig(send_delay_seconds=0),
        clock=lambda: now,
    )


@pytest.fixture
def context(now: datetime) -> ConversationContext:
    """Context of the registered user."""
    return create_context(IDENTITY, Persona.STREAMLINER, user_id="u1", now=now)


def declining_metrics(start: date) -> list[FinancialMetric]:
    """Seven days of cash falling by 2000 a day, newest first."""
    chronological = [
        FinancialMetric(date=start + timedelta(days=i), cash_position=49_000 - 2_000 * i)
        for i in range(7)
    ]
    return list(reversed(chronological))


def make_insight(
    title: str,
    priority: InsightPriority = InsightPriority.HIGH,
    persona: Persona = Persona.NAVIGATOR,
    **kwargs,
) -> ProactiveInsight:
    return ProactiveInsight(
        type=kwargs.pop("type", InsightType.RISK),
        priority=priority,
        confidence=kwargs.pop("confidence", 0.9),
        title=title,
        message=kwargs.pop("message", "Something happened"),
        data=kwargs.pop("data", {}),
        suggested_actions=kwargs.pop("suggested_actions", []),
        triggered_by=["test"],
        user_id="u1",
        identity=IDENTITY,
        persona=persona,
    )


class TestCalculations:
    def test_trend_of_line(self) -> None:
        assert calculate_trend([10, 8, 6, 4]) == pytest.approx(-2.0)

    def test_trend_needs_two_values(self) -> None:
        assert calculate_trend([5]) == 0.0

    def test_runway(self) -> None:
        assert calculate_runway(43_000, -14_000 / 43_000) == 21

    def test_no_runway_when_growing(self) -> None:
        assert calculate_runway(43_000, 0.1) is None
        assert calculate_runway(0, -0.5) is None


class TestOpportunityInsights:
    """Overstock and fast-mover detection."""

    async def test_overstock(
        self,
        engine: InsightEngine,
        business_data: AsyncMock,
    ) -> None:
        """Only slow, heavily stocked items count as overstock."""
        business_data.get_inventory.return_value = [
            InventoryItem("A", "Alpha", 100, 10, turnover_days=120, unit_cost=5),
            InventoryItem("B", "Beta", 50, 10, turnover_days=100, unit_cost=2),
            InventoryItem("C", "Gamma", 20, 10, turnover_days=200, unit_cost=1),
            InventoryItem("D", "Delta", 90, 10, turnover_days=30, unit_cost=1),
        ]

        insights = await engine.generate_insights_for_user("u1")

        assert len(insights) == 1
        insight = insights[0]
        assert insight.title == "Cash Flow Opportunity"
        assert insight.type == InsightType.OPPORTUNITY
        assert insight.priority == InsightPriority.MEDIUM
        assert insight.confidence == 0.7
        assert insight.data["overstocked_items"] == ["A", "B"]
        assert insight.data["total_value"] == pytest.approx(460)
        assert insight.data["potential_savings"] == pytest.approx(46)
        assert insight.identity == IDENTITY
        assert insight.triggered_by == ["inventory_analysis"]

    async def test_fast_movers(
        self,
        engine: InsightEngine,
        context: ConversationContext,
        profile: UserProfile,
        business_data: AsyncMock,
    ) -> None:
        business_data.get_inventory.return_value = [
            InventoryItem(
                "F",
                "Fast",
                5,
                10,
                turnover_days=10,
                stockout_events=3,
                safety_stock=4,
                average_daily_usage=2.5,
            ),
        ]

        insights = await engine.find_opportunity_insights(context, profile)

        assert [i.title for i in insights] == ["Stock Optimization"]
        assert insights[0].priority == InsightPriority.HIGH
        assert insights[0].data["recommended_safety_stock"] == [
            {"sku": "F", "current": 4, "recommended": 18}
        ]

    async def test_requires_company(
        self, engine: InsightEngine, context: ConversationContext
    ) -> None:
        profile = UserProfile(user_id="u1", identity=IDENTITY)

        assert await engine.find_opportunity_insights(context, profile) == []


class TestRiskInsights:
    async def test_supplier_risk_by_volume(
        self,
        engine: InsightEngine,
        context: ConversationContext,
        profile: UserProfile,
        business_data: AsyncMock,
    ) -> None:
        business_data.get_suppliers.return_value = [
            SupplierRecord("Acme", 60, 90, order_volume=30, recent_issues=["late"]),
            SupplierRecord("Globex", 90, 95, order_volume=70),
        ]

        insights = await engine.assess_risk_insights(context, profile)

        assert len(insights) == 1
        assert insights[0].title == "Supplier Risk Alert"
        assert insights[0].data["impact_percentage"] == 30
        assert insights[0].data["risky_suppliers"] == [
            {"name": "Acme", "performance_score": 60, "issues": ["late"]}
        ]

    async def test_supplier_risk_without_volume(
        self,
        engine: InsightEngine,
        context: ConversationContext,
        profile: UserProfile,
        business_data: AsyncMock,
    ) -> None:
        business_data.get_suppliers.return_value = [SupplierRecord("Acme", 90, 50)]

        insights = await engine.assess_risk_insights(context, profile)

        assert insights[0].data["impact_percentage"] == 15

    async def test_cash_flow_risk(
        self,
        engine: InsightEngine,
        context: ConversationContext,
        profile: UserProfile,
        business_data: AsyncMock,
        now: datetime,
    ) -> None:
        business_data.get_financial_metrics.return_value = declining_metrics(
            date(2024, 1, 8)
        )

        insights = await engine.assess_risk_insights(context, profile)

        assert len(insights) == 1
        insight = insights[0]
        assert insight.title == "Cash Flow Risk"
        assert insight.priority == InsightPriority.CRITICAL
        assert insight.confidence == 0.95
        assert insight.data["current_cash"] == pytest.approx(43_000)
        assert insight.data["weekly_trend"] == pytest.approx(-14_000 / 43_000)
        assert insight.data["runway_days"] == 21
        assert insight.expires_at == now + timedelta(hours=24)

    async def test_healthy_cash(
        self,
        engine: InsightEngine,
        context: ConversationContext,
        profile: UserProfile,
        business_data: AsyncMock,
    ) -> None:
        business_data.get_financial_metrics.return_value = [
            FinancialMetric(date(2024, 1, 8) + timedelta(days=i), 80_000)
            for i in range(7)
        ]

        assert await engine.assess_risk_insights(context, profile) == []

    async def test_too_few_metrics(
        self,
        engine: InsightEngine,
        context: ConversationContext,
        profile: UserProfile,
        business_data: AsyncMock,
    ) -> None:
        business_data.get_financial_metrics.return_value = declining_metrics(
            date(2024, 1, 8)
        )[:6]

        assert await engine.assess_risk_insights(context, profile) == []


class TestPatternInsights:
    async def test_automation_and_reorder(
        self,
        engine: InsightEngine,
        context: ConversationContext,
        profile: UserProfile,
        now: datetime,
    ) -> None:
        context.long_term_memory.common_queries.append(
            CommonQuery("check_inventory", 12, now - timedelta(days=1))
        )
        context.long_term_memory.typical_order_patterns.append(
            OrderPattern("ABC123", quantity=40, cadence_days=14)
        )

        insights = await engine.detect_pattern_insights(context, profile)

        automation, reorder = insights
        assert automation.title == "Automation Opportunity"
        assert automation.data["suggested_automation"] == "Daily stock level alerts"
        assert reorder.title == "Reorder Prediction"
        assert reorder.priority == InsightPriority.HIGH
        assert reorder.data["predicted_date"] == "2024-01-29"
        assert reorder.suggested_actions[0].type == ActionType.REMINDER
        assert reorder.suggested_actions[0].delay_minutes == 11 * 24 * 60

    async def test_stale_query_ignored(
        self,
        engine: InsightEngine,
        context: ConversationContext,
        profile: UserProfile,
        now: datetime,
    ) -> None:
        context.long_term_memory.common_queries.append(
            CommonQuery("check_inventory", 30, now - timedelta(days=8))
        )

        assert await engine.detect_pattern_insights(context, profile) == []


class TestLearningAndOptimization:
    async def test_spring_feature(
        self, engine: InsightEngine, profile: UserProfile, now: datetime
    ) -> None:
        context = create_context(IDENTITY, Persona.SPRING, user_id="u1", now=now)

        insights = await engine.generate_learning_insights(context, profile)

        assert insights[0].title == "New Feature to Explore"
        assert insights[0].data["suggested_feature"] == "supplier_performance"
        assert insights[0].confidence == 0.7

    async def test_power_user(
        self,
        engine: InsightEngine,
        context: ConversationContext,
        profile: UserProfile,
        now: datetime,
    ) -> None:
        context.message_count = 51
        context.long_term_memory.common_queries.append(
            CommonQuery("view_alerts", 20, now)
        )

        insights = await engine.generate_learning_insights(context, profile)

        assert insights[0].title == "Power User Tip"
        assert insights[0].data["suggested_shortcut"] == "alerts"

    async def test_slow_responses(
        self,
        engine: InsightEngine,
        context: ConversationContext,
        profile: UserProfile,
    ) -> None:
        for seconds in (11, 12, 15, 20, 2):
            context.successful_interactions.append(
                SuccessfulInteraction(
                    "generate_report", "ok", Satisfaction.NEUTRAL, seconds
                )
            )

        insights = await engine.find_optimization_insights(context, profile)

        assert insights[0].title == "Performance Optimization"
        assert insights[0].data["slow_query_count"] == 4

    async def test_few_slow_responses(
        self,
        engine: InsightEngine,
        context: ConversationContext,
        profile: UserProfile,
    ) -> None:
        for seconds in (11, 12, 15):
            context.successful_interactions.append(
                SuccessfulInteraction("x", "ok", Satisfaction.NEUTRAL, seconds)
            )

        assert await engine.find_optimization_insights(context, profile) == []


class TestGenerateInsightsForUser:
    async def test_unknown_user(self, engine: InsightEngine) -> None:
        assert await engine.generate_insights_for_user("nobody") == []

    async def test_detector_failure_is_isolated(
        self, engine: InsightEngine, business_data: AsyncMock
    ) -> None:
        business_data.get_inventory.side_effect = RuntimeError("db down")
        business_data.get_suppliers.return_value = [SupplierRecord("Acme", 10, 10)]

        insights = await engine.generate_insights_for_user("u1")

        assert [i.title for i in insights] == ["Supplier Risk Alert"]

    async def test_sorted_and_capped(
        self,
        context_store: ContextStore,
        snapshot_repository: AsyncMock,
        user_directory: AsyncMock,
        business_data: AsyncMock,
        messaging_service: AsyncMock,
        insight_repository: AsyncMock,
        now: datetime,
    ) -> None:
        engine = InsightEngine(
            context_store=context_store,
            snapshot_repository=snapshot_repository,
            user_directory=user_directory,
            business_data=business_data,
            messaging_service=messaging_service,
            insight_repository=insight_repository,
            config=InsightConfig(max_insights=1, send_delay_seconds=0),
            clock=lambda: now,
        )
        business_data.get_suppliers.return_value = [SupplierRecord("Acme", 10, 10)]
        business_data.get_financial_metrics.return_value = declining_metrics(
            date(2024, 1, 8)
        )

        insights = await engine.generate_insights_for_user("u1")

        assert [i.title for i in insights] == ["Cash Flow Risk"]

    async def test_min_confidence(
        self,
        context_store: ContextStore,
        snapshot_repository: AsyncMock,
        user_directory: AsyncMock,
        business_data: AsyncMock,
        messaging_service: AsyncMock,
        insight_repository: AsyncMock,
        now: datetime,
    ) -> None:
        engine = InsightEngine(
            context_store=context_store,
            snapshot_repository=snapshot_repository,
            user_directory=user_directory,
            business_data=business_data,
            messaging_service=messaging_service,
            insight_repository=insight_repository,
            config=InsightConfig(min_confidence=0.75, send_delay_seconds=0),
            clock=lambda: now,
        )
        business_data.get_inventory.return_value = [
            InventoryItem("A", "Alpha", 100, 10, turnover_days=120, unit_cost=5),
        ]

        assert await engine.generate_insights_for_user("u1") == []


class TestFormatInsight:
    """Persona formatting tests."""

    def test_streamliner(self) -> None:
        insight = make_insight(
            "Reorder Prediction",
            persona=Persona.STREAMLINER,
            message="line one\nline two",
            suggested_actions=[
                InsightAction(ActionType.REMINDER, "Remind me 3 days before")
            ],
        )

        text = format_insight(insight)

        assert text == (
            "⚠️ **Reorder Prediction**\n\nline one\n\n⚡ Reply ACT to proceed"
            "\n\n**Quick Actions:**\n1. Remind me 3 days before"
        )

    def test_navigator_impact(self) -> None:
        insight = make_insight(
            "Supplier Risk Alert",
            data={"impact_percentage": 30},
        )

        text = format_insight(insight)

        assert text.endswith("📊 **Impact Analysis:**\n• Estimated impact: 30%")

    def test_processor(self) -> None:
        insight = make_insight(
            "Cash Flow Risk",
            priority=InsightPriority.CRITICAL,
            persona=Persona.PROCESSOR,
            confidence=0.95,
        )

        text = format_insight(insight)

        assert text == (
            "[PROACTIVE_INSIGHT]\nTYPE: RISK\nPRIORITY: CRITICAL\n"
            "CONFIDENCE: 95%\n\nSomething happened"
        )

    def test_spring_and_hub(self) -> None:
        spring = format_insight(make_insight("Tip", persona=Persona.SPRING))
        hub = format_insight(make_insight("Tip", persona=Persona.HUB))

        assert spring.startswith("🌟 Hey! I noticed something that might help you!")
        assert hub.startswith("🌐 **Network Insight**\n\n⚠️ **Tip**")

    def test_numbered_actions(self) -> None:
        insight = make_insight(
            "Tip",
            suggested_actions=[
                InsightAction(ActionType.MESSAGE, "First"),
                InsightAction(ActionType.MESSAGE, "Second"),
            ],
        )

        assert format_insight(insight).endswith(
            "**Quick Actions:**\n1. First\n2. Second"
        )


class TestDelivery:
    """send_proactive_insight and run_cycle tests."""

    async def test_send(
        self,
        engine: InsightEngine,
        messaging_service: AsyncMock,
        insight_repository: AsyncMock,
    ) -> None:
        insight = make_insight("Supplier Risk Alert")

        assert await engine.send_proactive_insight(insight) is True
        messaging_service.send_message.assert_awaited_once_with(
            IDENTITY, format_insight(insight)
        )
        insight_repository.save.assert_awaited_once_with(insight)

    async def test_send_failure(
        self,
        engine: InsightEngine,
        messaging_service: AsyncMock,
        insight_repository: AsyncMock,
    ) -> None:
        messaging_service.send_message.side_effect = MessagingError("rejected", 400)

        assert await engine.send_proactive_insight(make_insight("X")) is False
        insight_repository.save.assert_not_awaited()

    async def test_store_failure_still_sent(
        self, engine: InsightEngine, insight_repository: AsyncMock
    ) -> None:
        insight_repository.save.side_effect = RuntimeError("db")

        assert await engine.send_proactive_insight(make_insight("X")) is True

    async def test_run_cycle_skips_recently_sent(
        self,
        engine: InsightEngine,
        snapshot_repository: AsyncMock,
        business_data: AsyncMock,
        messaging_service: AsyncMock,
        insight_repository: AsyncMock,
        now: datetime,
    ) -> None:
        """Urgent insights are sent once per window, medium ones never."""
        snapshot_repository.find_active_since.return_value = [
            create_context(IDENTITY, Persona.NAVIGATOR, user_id="u1", now=now)
        ]
        business_data.get_suppliers.return_value = [SupplierRecord("Acme", 10, 10)]
        business_data.get_financial_metrics.return_value = declining_metrics(
            date(2024, 1, 8)
        )
        business_data.get_inventory.return_value = [
            InventoryItem("A", "Alpha", 100, 10, turnover_days=120, unit_cost=5),
        ]
        insight_repository.find_recent.return_value = [
            make_insight("Supplier Risk Alert")
        ]

        sent = await engine.run_cycle()

        assert sent == 1
        messaging_service.send_message.assert_awaited_once()
        body = messaging_service.send_message.await_args.args[1]
        assert "Cash Flow Risk" in body
        insight_repository.find_recent.assert_awaited_once_with(
            "u1", now - timedelta(hours=6)
        )

    async def test_run_cycle_dedupes_users(
        self,
        engine: InsightEngine,
        context_store: ContextStore,
        snapshot_repository: AsyncMock,
        user_directory: AsyncMock,
        now: datetime,
    ) -> None:
        await context_store.get_or_create(IDENTITY, user_id="u1")
        snapshot_repository.find_active_since.return_value = [
            create_context(IDENTITY, Persona.NAVIGATOR, user_id="u1", now=now),
            create_context("+15550001111", Persona.NAVIGATOR, now=now),
        ]

        await engine.run_cycle()

        user_directory.find_by_user_id.assert_called_once_with("u1")

    async def test_run_cycle_isolates_users(
        self,
        engine: InsightEngine,
        snapshot_repository: AsyncMock,
        user_directory: AsyncMock,
        now: datetime,
    ) -> None:
        snapshot_repository.find_active_since.return_value = [
            create_context(IDENTITY, Persona.NAVIGATOR, user_id="u1", now=now),
            create_context("+15550001111", Persona.NAVIGATOR, user_id="u2", now=now),
        ]
        user_directory.find_by_user_id.side_effect = RuntimeError("directory down")

        assert await engine.run_cycle() == 0
        assert user_directory.find_by_user_id.await_count == 2
