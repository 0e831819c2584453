"""Proactive insight engine.

Mines stored conversation context and business data for patterns,
opportunities and risks, and pushes the urgent ones to users unsolicited.
"""

import asyncio
import logging
import math
from collections.abc import Awaitable, Callable
from datetime import datetime, timedelta, timezone
from typing import Any

from tradetalk.application.services.context_store import ContextStore
from tradetalk.config.models import InsightConfig
from tradetalk.domain.entities import (
    ActionType,
    ConversationContext,
    InsightAction,
    InsightPriority,
    InsightType,
    Persona,
    ProactiveInsight,
    UserProfile,
)
from tradetalk.domain.repositories import (
    BusinessDataRepository,
    ContextSnapshotRepository,
    InsightRepository,
    UserDirectory,
)
from tradetalk.domain.services import MessagingService

logger = logging.getLogger(__name__)

Detector = Callable[[ConversationContext, UserProfile], Awaitable[list[ProactiveInsight]]]

AUTOMATION_SUGGESTIONS: dict[str, str] = {
    "check_inventory": "Daily stock level alerts",
    "view_alerts": "Real-time alert notifications",
    "daily_digest": "Automated morning summary",
    "generate_report": "Scheduled weekly reports",
}

LEARNABLE_FEATURES: dict[str, str] = {
    "supplier_performance": "Track supplier reliability and optimize relationships",
    "cash_flow_forecast": "Predict future cash needs and avoid shortfalls",
    "demand_planning": "Forecast demand and optimize inventory levels",
    "abc_analysis": "Identify your most valuable inventory items",
}

SHORTCUTS: dict[str, str] = {
    "check_inventory": "inv",
    "view_alerts": "alerts",
    "daily_digest": "digest",
}

# Thresholds
AUTOMATION_MIN_FREQUENCY = 10
AUTOMATION_RECENT_DAYS = 7
OVERSTOCK_REORDER_MULTIPLE = 3
OVERSTOCK_MIN_TURNOVER_DAYS = 90
OVERSTOCK_CARRYING_COST = 0.1
FAST_MOVER_MAX_TURNOVER_DAYS = 30
FAST_MOVER_MIN_STOCKOUTS = 2
FAST_MOVER_UPLIFT = 0.15
SUPPLIER_MIN_PERFORMANCE = 70
SUPPLIER_MIN_RELIABILITY = 80
CASH_FLOW_WINDOW = 7
CASH_FLOW_TREND_LIMIT = -0.1
CASH_FLOW_LOW_CASH = 50_000
EXPERIENCED_MESSAGE_COUNT = 50
SLOW_RESPONSE_SECONDS = 10
SLOW_RESPONSE_MIN_COUNT = 3


def calculate_trend(values: list[float]) -> float:
    """Least-squares slope of values against their index (oldest first)."""
    n = len(values)
    if n < 2:
        return 0.0
    mean_x = (n - 1) / 2
    mean_y = sum(values) / n
    numerator = sum((x - mean_x) * (y - mean_y) for x, y in enumerate(values))
    denominator = sum((x - mean_x) ** 2 for x in range(n))
    return numerator / denominator


def calculate_runway(current_cash: float, weekly_trend: float) -> int | None:
    """Days until cash runs out at the given relative weekly decline."""
    if weekly_trend >= 0 or current_cash <= 0:
        return None
    return math.floor(current_cash / abs(weekly_trend * current_cash / 7))


def insight_emoji(insight: ProactiveInsight) -> str:
    if insight.type is InsightType.PATTERN:
        return "⚡" if insight.priority is InsightPriority.HIGH else "🔄"
    if insight.type is InsightType.OPPORTUNITY:
        return "💰"
    if insight.type is InsightType.RISK:
        return "🚨" if insight.priority is InsightPriority.CRITICAL else "⚠️"
    if insight.type is InsightType.LEARNING:
        return "💡"
    if insight.type is InsightType.OPTIMIZATION:
        return "⚙️"
    return "📊"


def format_insight(insight: ProactiveInsight) -> str:
    """Format an insight for its recipient's persona.

    Args:
        insight: Insight to format.

    Returns:
        Message text including the numbered quick actions.
    """
    message = f"{insight_emoji(insight)} **{insight.title}**\n\n{insight.message}"

    if insight.persona is Persona.STREAMLINER:
        message = "\n".join(message.split("\n")[:3]) + "\n\n⚡ Reply ACT to proceed"
    elif insight.persona is Persona.NAVIGATOR:
        impact = insight.data.get("impact_percentage")
        if impact:
            message += f"\n\n📊 **Impact Analysis:**\n• Estimated impact: {impact}%"
    elif insight.persona is Persona.SPRING:
        message = (
            "🌟 Hey! I noticed something that might help you!\n\n"
            f"{message}\n\n"
            "💚 Don't worry, I'm here to guide you through it!"
        )
    elif insight.persona is Persona.HUB:
        message = f"🌐 **Network Insight**\n\n{message}"
    elif insight.persona is Persona.PROCESSOR:
        message = (
            "[PROACTIVE_INSIGHT]\n"
            f"TYPE: {insight.type.value.upper()}\n"
            f"PRIORITY: {insight.priority.value.upper()}\n"
            f"CONFIDENCE: {insight.confidence * 100:.0f}%\n\n"
            f"{insight.message}"
        )

    if insight.suggested_actions:
        actions = "\n".join(
            f"{index}. {action.description}"
            for index, action in enumerate(insight.suggested_actions, start=1)
        )
        message += f"\n\n**Quick Actions:**\n{actions}"
    return message


class InsightEngine:
    """Generates and delivers proactive insights."""

    def __init__(
        self,
        context_store: ContextStore,
        snapshot_repository: ContextSnapshotRepository,
        user_directory: UserDirectory,
        business_data: BusinessDataRepository,
        messaging_service: MessagingService,
        insight_repository: InsightRepository,
        config: InsightConfig,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize InsightEngine.

        Args:
            context_store: Conversation context store.
            snapshot_repository: Durable snapshots (to find active users).
            user_directory: Resolves identities and companies of users.
            business_data: Inventory, supplier and financial data.
            messaging_service: Transport for unsolicited messages.
            insight_repository: Record of sent insights.
            config: Engine settings.
            clock: Returns the current time.
        """
        self._context_store = context_store
        self._snapshots = snapshot_repository
        self._user_directory = user_directory
        self._business_data = business_data
        self._messaging_service = messaging_service
        self._insight_repository = insight_repository
        self._config = config
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def _detectors(self) -> list[tuple[str, Detector]]:
        return [
            ("pattern", self.detect_pattern_insights),
            ("opportunity", self.find_opportunity_insights),
            ("risk", self.assess_risk_insights),
            ("learning", self.generate_learning_insights),
            ("optimization", self.find_optimization_insights),
        ]

    async def generate_insights_for_user(self, user_id: str) -> list[ProactiveInsight]:
        """Run every detector for a user.

        Args:
            user_id: Application user ID.

        Returns:
            Insights with sufficient confidence, most confident first.
        """
        profile = await self._user_directory.find_by_user_id(user_id)
        if profile is None:
            logger.debug("No profile for user %s, skipping insights", user_id)
            return []

        context = await self._context_store.get_or_create(
            profile.identity, user_id=user_id, touch=False
        )

        candidates: list[ProactiveInsight] = []
        for name, detector in self._detectors():
            try:
                candidates.extend(await detector(context, profile))
            except Exception:
                logger.exception("Insight detector %s failed for user %s", name, user_id)

        insights = [i for i in candidates if i.confidence >= self._config.min_confidence]
        insights.sort(key=lambda i: i.confidence, reverse=True)
        return insights[: self._config.max_insights]

    def _insight(
        self,
        context: ConversationContext,
        profile: UserProfile,
        *,
        type: InsightType,
        priority: InsightPriority,
        confidence: float,
        title: str,
        message: str,
        data: dict[str, Any],
        actions: list[InsightAction],
        triggered_by: str,
        expires_at: datetime | None = None,
    ) -> ProactiveInsight:
        return ProactiveInsight(
            type=type,
            priority=priority,
            confidence=confidence,
            title=title,
            message=message,
            data=data,
            suggested_actions=actions,
            triggered_by=[triggered_by],
            user_id=profile.user_id,
            identity=profile.identity,
            persona=context.persona,
            expires_at=expires_at,
            created_at=self._clock(),
        )

    # ------------------------------------------------------------------
    # Detectors
    # ------------------------------------------------------------------

    async def detect_pattern_insights(
        self, context: ConversationContext, profile: UserProfile
    ) -> list[ProactiveInsight]:
        """Frequent queries worth automating and predictable reorders."""
        now = self._clock()
        insights: list[ProactiveInsight] = []

        for query in context.long_term_memory.common_queries:
            recent = now - query.last_asked <= timedelta(days=AUTOMATION_RECENT_DAYS)
            if query.frequency >= AUTOMATION_MIN_FREQUENCY and recent:
                insights.append(
                    self._insight(
                        context,
                        profile,
                        type=InsightType.PATTERN,
                        priority=InsightPriority.MEDIUM,
                        confidence=0.8,
                        title="Automation Opportunity",
                        message=(
                            f"You've checked {query.query.replace('_', ' ')} "
                            f"{query.frequency} times. Would you like me to set up "
                            "automatic alerts?"
                        ),
                        data={
                            "query_type": query.query,
                            "frequency": query.frequency,
                            "suggested_automation": AUTOMATION_SUGGESTIONS.get(
                                query.query, "Custom automation"
                            ),
                        },
                        actions=[
                            InsightAction(
                                type=ActionType.MESSAGE,
                                description="Set up automated alerts",
                                command=f"setup alert {query.query}",
                            )
                        ],
                        triggered_by="pattern_detection",
                    )
                )

        for pattern in context.long_term_memory.typical_order_patterns:
            if pattern.cadence_days <= 0:
                continue
            predicted = now + timedelta(days=pattern.cadence_days)
            insights.append(
                self._insight(
                    context,
                    profile,
                    type=InsightType.PATTERN,
                    priority=InsightPriority.HIGH,
                    confidence=0.9,
                    title="Reorder Prediction",
                    message=(
                        "Based on your pattern, you'll likely need to reorder "
                        f"{pattern.product} around {predicted:%a %b %d %Y}"
                    ),
                    data={
                        "product": pattern.product,
                        "predicted_date": predicted.date().isoformat(),
                        "typical_quantity": pattern.quantity,
                        "cadence_days": pattern.cadence_days,
                    },
                    actions=[
                        InsightAction(
                            type=ActionType.REMINDER,
                            description="Remind me 3 days before",
                            delay_minutes=max(pattern.cadence_days - 3, 0) * 24 * 60,
                        )
                    ],
                    triggered_by="order_pattern_analysis",
                )
            )
        return insights

    async def find_opportunity_insights(
        self, context: ConversationContext, profile: UserProfile
    ) -> list[ProactiveInsight]:
        """Overstocked cash and fast movers running out."""
        if not profile.company_id:
            return []
        items = await self._business_data.get_inventory(profile.company_id)
        insights: list[ProactiveInsight] = []

        overstocked = [
            item
            for item in items
            if item.quantity > item.reorder_point * OVERSTOCK_REORDER_MULTIPLE
            and item.turnover_days > OVERSTOCK_MIN_TURNOVER_DAYS
        ]
        if overstocked:
            total_value = sum(
                (item.quantity - item.reorder_point * 2) * item.unit_cost
                for item in overstocked
            )
            insights.append(
                self._insight(
                    context,
                    profile,
                    type=InsightType.OPPORTUNITY,
                    priority=InsightPriority.MEDIUM,
                    confidence=0.7,
                    title="Cash Flow Opportunity",
                    message=(
                        f"You have {len(overstocked)} overstocked items that could "
                        f"free up ${total_value:,.2f} in cash"
                    ),
                    data={
                        "overstocked_items": [item.sku for item in overstocked[:3]],
                        "total_value": total_value,
                        "potential_savings": total_value * OVERSTOCK_CARRYING_COST,
                    },
                    actions=[
                        InsightAction(
                            type=ActionType.MESSAGE,
                            description="Review overstock report",
                            command="generate inventory report",
                        )
                    ],
                    triggered_by="inventory_analysis",
                )
            )

        fast_moving = [
            item
            for item in items
            if item.turnover_days < FAST_MOVER_MAX_TURNOVER_DAYS
            and item.stockout_events > FAST_MOVER_MIN_STOCKOUTS
        ]
        if fast_moving:
            uplift = len(fast_moving) * FAST_MOVER_UPLIFT
            insights.append(
                self._insight(
                    context,
                    profile,
                    type=InsightType.OPPORTUNITY,
                    priority=InsightPriority.HIGH,
                    confidence=0.85,
                    title="Stock Optimization",
                    message=(
                        f"{len(fast_moving)} fast-moving items are causing stockouts. "
                        f"Optimizing could increase sales by {round(uplift * 100)}%"
                    ),
                    data={
                        "fast_moving_items": [item.sku for item in fast_moving[:3]],
                        "potential_revenue_increase": uplift,
                        "recommended_safety_stock": [
                            {
                                "sku": item.sku,
                                "current": item.safety_stock,
                                "recommended": math.ceil(item.average_daily_usage * 7),
                            }
                            for item in fast_moving
                        ],
                    },
                    actions=[
                        InsightAction(
                            type=ActionType.AGENT_EXECUTION,
                            description="Optimize reorder points",
                            command="run optimization_engine",
                        )
                    ],
                    triggered_by="stockout_analysis",
                )
            )
        return insights

    async def assess_risk_insights(
        self, context: ConversationContext, profile: UserProfile
    ) -> list[ProactiveInsight]:
        """Unreliable suppliers and declining cash."""
        if not profile.company_id:
            return []
        insights: list[ProactiveInsight] = []

        suppliers = await self._business_data.get_suppliers(profile.company_id)
        risky = [
            s
            for s in suppliers
            if s.performance_score < SUPPLIER_MIN_PERFORMANCE
            or s.delivery_reliability < SUPPLIER_MIN_RELIABILITY
        ]
        if risky:
            total_volume = sum(s.order_volume for s in suppliers)
            if total_volume > 0:
                impact = round(100 * sum(s.order_volume for s in risky) / total_volume)
            else:
                impact = min(len(risky) * 15, 60)
            insights.append(
                self._insight(
                    context,
                    profile,
                    type=InsightType.RISK,
                    priority=InsightPriority.HIGH,
                    confidence=0.9,
                    title="Supplier Risk Alert",
                    message=(
                        f"{len(risky)} suppliers showing declining performance. "
                        f"This could impact {impact}% of your orders"
                    ),
                    data={
                        "risky_suppliers": [
                            {
                                "name": s.name,
                                "performance_score": s.performance_score,
                                "issues": list(s.recent_issues),
                            }
                            for s in risky
                        ],
                        "impact_percentage": impact,
                        "recommended_actions": [
                            "Diversify suppliers",
                            "Increase safety stock",
                            "Alternative sourcing",
                        ],
                    },
                    actions=[
                        InsightAction(
                            type=ActionType.AGENT_EXECUTION,
                            description="Generate supplier risk report",
                            command="generate supplier report",
                        )
                    ],
                    triggered_by="supplier_analysis",
                )
            )

        metrics = await self._business_data.get_financial_metrics(
            profile.company_id, limit=30
        )
        if len(metrics) >= CASH_FLOW_WINDOW:
            # Newest first from the repository
            recent = sorted(metrics[:CASH_FLOW_WINDOW], key=lambda m: m.date)
            values = [m.cash_position for m in recent]
            average = sum(values) / len(values)
            trend = calculate_trend(values) * 7 / average if average > 0 else 0.0
            if trend < CASH_FLOW_TREND_LIMIT and average < CASH_FLOW_LOW_CASH:
                runway = calculate_runway(average, trend)
                insights.append(
                    self._insight(
                        context,
                        profile,
                        type=InsightType.RISK,
                        priority=InsightPriority.CRITICAL,
                        confidence=0.95,
                        title="Cash Flow Risk",
                        message=(
                            f"Cash flow declining {abs(trend) * 100:.1f}% weekly. "
                            f"Current runway: {runway} days"
                        ),
                        data={
                            "current_cash": average,
                            "weekly_trend": trend,
                            "runway_days": runway,
                            "recommended_actions": [
                                "Accelerate collections",
                                "Delay non-critical payments",
                                "Review credit terms",
                            ],
                        },
                        actions=[
                            InsightAction(
                                type=ActionType.MESSAGE,
                                description="Generate cash flow forecast",
                                command="generate financial report",
                            )
                        ],
                        triggered_by="cash_flow_analysis",
                        expires_at=self._clock() + timedelta(hours=24),
                    )
                )
        return insights

    async def generate_learning_insights(
        self, context: ConversationContext, profile: UserProfile
    ) -> list[ProactiveInsight]:
        """Features to explore (spring) and shortcuts for experienced users."""
        memory = context.long_term_memory

        if context.persona is Persona.SPRING:
            used = {q.query for q in memory.common_queries}
            unused = [f for f in LEARNABLE_FEATURES if f not in used]
            if not unused:
                return []
            feature = unused[0]
            return [
                self._insight(
                    context,
                    profile,
                    type=InsightType.LEARNING,
                    priority=InsightPriority.LOW,
                    confidence=0.7,
                    title="New Feature to Explore",
                    message=(
                        f"There are {len(unused)} features that could help you! "
                        f"Want to learn about {feature.replace('_', ' ')}?"
                    ),
                    data={
                        "unused_features": unused,
                        "suggested_feature": feature,
                        "learning_benefit": LEARNABLE_FEATURES[feature],
                    },
                    actions=[
                        InsightAction(
                            type=ActionType.MESSAGE,
                            description="Start tutorial",
                            command=f"learn {feature}",
                        )
                    ],
                    triggered_by="learning_analysis",
                )
            ]

        if context.message_count > EXPERIENCED_MESSAGE_COUNT:
            top = memory.top_query()
            top_query = top.query if top else None
            return [
                self._insight(
                    context,
                    profile,
                    type=InsightType.LEARNING,
                    priority=InsightPriority.LOW,
                    confidence=0.6,
                    title="Power User Tip",
                    message=(
                        "You can create custom shortcuts for your most common "
                        "queries. Want to set one up?"
                    ),
                    data={
                        "most_common_query": top_query,
                        "suggested_shortcut": SHORTCUTS.get(top_query or "", "custom"),
                    },
                    actions=[
                        InsightAction(
                            type=ActionType.MESSAGE,
                            description="Create shortcut",
                            command="setup shortcut",
                        )
                    ],
                    triggered_by="experience_analysis",
                )
            ]
        return []

    async def find_optimization_insights(
        self, context: ConversationContext, profile: UserProfile
    ) -> list[ProactiveInsight]:
        """Repeatedly slow replies."""
        slow = [
            i
            for i in context.successful_interactions
            if i.response_time_seconds is not None
            and i.response_time_seconds > SLOW_RESPONSE_SECONDS
        ]
        if len(slow) <= SLOW_RESPONSE_MIN_COUNT:
            return []
        return [
            self._insight(
                context,
                profile,
                type=InsightType.OPTIMIZATION,
                priority=InsightPriority.MEDIUM,
                confidence=0.8,
                title="Performance Optimization",
                message=(
                    "I notice some queries are taking longer. I can optimize "
                    "common requests for faster responses."
                ),
                data={
                    "slow_query_count": len(slow),
                    "affected_queries": [i.pattern for i in slow[:3]],
                },
                actions=[
                    InsightAction(
                        type=ActionType.AGENT_EXECUTION,
                        description="Optimize query performance",
                        command="optimize query performance",
                    )
                ],
                triggered_by="performance_analysis",
            )
        ]

    # ------------------------------------------------------------------
    # Delivery
    # ------------------------------------------------------------------

    async def send_proactive_insight(self, insight: ProactiveInsight) -> bool:
        """Send an insight and record it.

        Returns:
            True if the message was sent.
        """
        body = format_insight(insight)
        try:
            await self._messaging_service.send_message(insight.identity, body)
        except Exception:
            logger.exception(
                "Failed to send insight '%s' to %s", insight.title, insight.identity
            )
            return False

        try:
            await self._insight_repository.save(insight)
        except Exception:
            logger.exception("Failed to store insight %s", insight.id)

        logger.info("Sent proactive insight to %s: %s", insight.identity, insight.title)
        return True

    async def _active_user_ids(self) -> list[str]:
        since = self._clock() - timedelta(days=self._config.active_days)
        contexts = await self._snapshots.find_active_since(since)
        contexts.extend(self._context_store.cached_contexts())

        user_ids: list[str] = []
        for context in contexts:
            if (
                context.user_id
                and context.last_activity_at >= since
                and context.user_id not in user_ids
            ):
                user_ids.append(context.user_id)
        return user_ids

    async def run_cycle(self) -> int:
        """Generate insights for every active user and push urgent ones.

        Returns:
            Number of insights sent.
        """
        sent = 0
        for user_id in await self._active_user_ids():
            try:
                sent += await self._deliver_for_user(user_id)
            except Exception:
                logger.exception("Insight cycle failed for user %s", user_id)
        logger.info("Insight cycle sent %d insights", sent)
        return sent

    async def _deliver_for_user(self, user_id: str) -> int:
        insights = await self.generate_insights_for_user(user_id)
        urgent = [i for i in insights if i.priority.is_urgent]
        if not urgent:
            return 0

        since = self._clock() - timedelta(hours=self._config.recently_sent_hours)
        recent_titles = {
            i.title for i in await self._insight_repository.find_recent(user_id, since)
        }

        sent = 0
        for insight in urgent:
            if insight.title in recent_titles:
                logger.debug(
                    "Skipping recently sent insight '%s' for %s", insight.title, user_id
                )
                continue
            if await self.send_proactive_insight(insight):
                sent += 1
            await asyncio.sleep(self._config.send_delay_seconds)
        return sent
