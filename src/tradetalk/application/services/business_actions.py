"""Default business action executor backed by the business data repository."""

import logging
from collections.abc import Callable
from datetime import datetime, time, timedelta, timezone
from typing import Any

from tradetalk.domain.entities import (
    BusinessActionError,
    ConversationContext,
    Intent,
    IntentType,
    InventoryItem,
)
from tradetalk.domain.repositories import BusinessDataRepository, UserDirectory

logger = logging.getLogger(__name__)

# Items above the reorder point but within this margin raise a low alert
LOW_ALERT_MARGIN = 1.2
MAX_LISTED_ALERTS = 5
MAX_RANKED_SUPPLIERS = 5
SALES_WINDOW_DAYS = 30

AgentProbe = Callable[[], bool]


def alert_severity(item: InventoryItem) -> str | None:
    """Severity of the stock alert for an item, or None when stock is fine."""
    if item.quantity <= 0:
        return "critical"
    if item.quantity <= item.safety_stock:
        return "high"
    if item.quantity <= item.reorder_point:
        return "medium"
    if item.quantity <= item.reorder_point * LOW_ALERT_MARGIN:
        return "low"
    return None


def suggested_reorder_quantity(item: InventoryItem) -> int:
    """Quantity that brings stock back to twice the reorder point."""
    cover = item.average_daily_usage * max(item.lead_time_days, 1)
    target = max(item.reorder_point * 2, item.reorder_point + round(cover))
    return max(target - item.quantity, 1)


class RepositoryActionExecutor:
    """Answers business intents from stored company data.

    Results are plain dicts consumed as template data by the response
    generator.
    """

    def __init__(
        self,
        business_data: BusinessDataRepository,
        user_directory: UserDirectory,
        agent_probes: dict[str, AgentProbe] | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """Initialize RepositoryActionExecutor.

        Args:
            business_data: Inventory, supplier, sales and financial data.
            user_directory: Resolves the company of a user.
            agent_probes: Background service name -> running check.
            clock: Returns the current time.
        """
        self._business_data = business_data
        self._user_directory = user_directory
        self._agent_probes = agent_probes or {}
        self._clock = clock or (lambda: datetime.now(timezone.utc))

        self._handlers: dict[IntentType, Callable[..., Any]] = {
            IntentType.CHECK_INVENTORY: self._check_inventory,
            IntentType.VIEW_ALERTS: self._view_alerts,
            IntentType.REORDER_STOCK: self._reorder_stock,
            IntentType.UPDATE_STOCK: self._update_stock,
            IntentType.ACKNOWLEDGE_ALERT: self._acknowledge_alert,
            IntentType.GENERATE_REPORT: self._generate_report,
            IntentType.DAILY_DIGEST: self._daily_digest,
            IntentType.VIEW_METRICS: self._view_metrics,
            IntentType.CHECK_SUPPLIER: self._check_supplier,
            IntentType.SUPPLIER_PERFORMANCE: self._supplier_performance,
        }

    async def execute(
        self, intent: Intent, context: ConversationContext
    ) -> dict[str, Any]:
        """Execute an intent.

        Args:
            intent: Resolved intent.
            context: Conversation context of the requester.

        Returns:
            Action result.

        Raises:
            BusinessActionError: The intent cannot be carried out.
        """
        if intent.type is IntentType.AGENT_STATUS:
            return self._agent_status()

        handler = self._handlers.get(intent.type)
        if handler is None:
            raise BusinessActionError(f"No business action for {intent.type.value}")

        company_id = await self._company_id(context)
        logger.debug(
            "Executing %s for company %s with %s",
            intent.type.value,
            company_id,
            intent.entities,
        )
        return await handler(company_id, intent.entities)

    async def _company_id(self, context: ConversationContext) -> str:
        profile = None
        if context.user_id:
            profile = await self._user_directory.find_by_user_id(context.user_id)
        if profile is None:
            profile = await self._user_directory.find_by_identity(context.identity)
        if profile is None or not profile.company_id:
            raise BusinessActionError(f"No company registered for {context.identity}")
        return profile.company_id

    # ------------------------------------------------------------------
    # Inventory
    # ------------------------------------------------------------------

    async def _find_item(
        self, company_id: str, entities: dict[str, Any]
    ) -> InventoryItem | None:
        query = entities.get("sku") or entities.get("product")
        if not query:
            return None
        return await self._business_data.find_inventory_item(company_id, str(query))

    async def _check_inventory(
        self, company_id: str, entities: dict[str, Any]
    ) -> dict[str, Any]:
        item = await self._find_item(company_id, entities)
        product = entities.get("product") or entities.get("sku")
        if item is None:
            return {"found": False, "product": product}
        return {
            "found": True,
            "product": product,
            "name": item.name,
            "sku": item.sku,
            "quantity": item.quantity,
            "reorder_point": item.reorder_point,
            "location": item.location,
            "lead_time_days": item.lead_time_days,
            "below_reorder_point": item.is_low,
            "checked_at": self._clock().isoformat(),
        }

    async def _view_alerts(
        self, company_id: str, entities: dict[str, Any]
    ) -> dict[str, Any]:
        counts = {"critical": 0, "high": 0, "medium": 0, "low": 0}
        alerts: list[dict[str, Any]] = []
        for item in await self._business_data.get_inventory(company_id):
            severity = alert_severity(item)
            if severity is None:
                continue
            counts[severity] += 1
            alerts.append(
                {
                    "sku": item.sku,
                    "name": item.name,
                    "quantity": item.quantity,
                    "severity": severity,
                }
            )

        order = list(counts)
        alerts.sort(key=lambda a: (order.index(a["severity"]), a["quantity"]))
        return {
            "total": len(alerts),
            **counts,
            "alerts": alerts[:MAX_LISTED_ALERTS],
        }

    async def _reorder_stock(
        self, company_id: str, entities: dict[str, Any]
    ) -> dict[str, Any]:
        item = await self._find_item(company_id, entities)
        quantity = entities.get("quantity")
        if quantity is None and item is not None:
            quantity = suggested_reorder_quantity(item)
        logger.info(
            "Reorder requested for %s (company=%s, quantity=%s)",
            entities.get("product"),
            company_id,
            quantity,
        )
        return {
            "product": entities.get("product"),
            "quantity": quantity,
            "current_quantity": item.quantity if item else None,
        }

    async def _update_stock(
        self, company_id: str, entities: dict[str, Any]
    ) -> dict[str, Any]:
        logger.info(
            "Stock update requested for %s (company=%s)",
            entities.get("product"),
            company_id,
        )
        return {"product": entities.get("product"), "quantity": entities.get("quantity")}

    async def _acknowledge_alert(
        self, company_id: str, entities: dict[str, Any]
    ) -> dict[str, Any]:
        logger.info(
            "Alert %s acknowledged (company=%s)", entities.get("alert_id"), company_id
        )
        return {"alert_id": entities.get("alert_id")}

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    async def _generate_report(
        self, company_id: str, entities: dict[str, Any]
    ) -> dict[str, Any]:
        report_type = entities.get("report_type")
        date_range = entities.get("date_range") or {}
        summary: dict[str, Any]

        if report_type == "inventory":
            items = await self._business_data.get_inventory(company_id)
            summary = {
                "items": len(items),
                "low_stock": sum(1 for i in items if i.is_low),
                "inventory_value": round(sum(i.quantity * i.unit_cost for i in items), 2),
            }
        elif report_type == "sales":
            since = self._range_start(date_range)
            sales = await self._business_data.get_sales_since(company_id, since)
            summary = {
                "transactions": len(sales),
                "units": sum(s.quantity for s in sales),
                "revenue": round(sum(s.amount for s in sales), 2),
            }
        elif report_type == "supplier":
            suppliers = await self._business_data.get_suppliers(company_id)
            summary = {
                "suppliers": len(suppliers),
                "average_performance": (
                    round(sum(s.performance_score for s in suppliers) / len(suppliers), 1)
                    if suppliers
                    else 0
                ),
            }
        elif report_type == "financial":
            metrics = await self._business_data.get_financial_metrics(company_id, limit=1)
            summary = {"cash": metrics[0].cash_position if metrics else 0}
        else:
            summary = {}

        return {
            "report_type": report_type,
            "period": date_range.get("label", "today"),
            "start": date_range.get("start"),
            "end": date_range.get("end"),
            "format": "text",
            "summary": summary,
            "status": "queued",
        }

    def _range_start(self, date_range: dict[str, Any]) -> datetime:
        start = date_range.get("start")
        if start:
            return datetime.fromisoformat(start).replace(tzinfo=timezone.utc)
        return self._start_of_today()

    def _start_of_today(self) -> datetime:
        now = self._clock()
        return datetime.combine(now.date(), time.min, tzinfo=timezone.utc)

    async def _daily_digest(
        self, company_id: str, entities: dict[str, Any]
    ) -> dict[str, Any]:
        items = await self._business_data.get_inventory(company_id)
        sales = await self._business_data.get_sales_since(
            company_id, self._start_of_today()
        )
        metrics = await self._business_data.get_financial_metrics(company_id, limit=1)
        alerts = sum(1 for i in items if alert_severity(i) is not None)

        suggestion = None
        low = [i for i in items if i.is_low]
        if low:
            suggestion = f"Consider reordering {low[0].name}"

        return {
            "alerts": alerts,
            "orders": len(sales),
            "sales_today": round(sum(s.amount for s in sales), 2),
            "cash": metrics[0].cash_position if metrics else 0,
            "inventory_value": round(sum(i.quantity * i.unit_cost for i in items), 2),
            "date": self._clock().date().isoformat(),
            "suggestion": suggestion,
        }

    async def _view_metrics(
        self, company_id: str, entities: dict[str, Any]
    ) -> dict[str, Any]:
        items = await self._business_data.get_inventory(company_id)
        sales = await self._business_data.get_sales_since(
            company_id, self._clock() - timedelta(days=SALES_WINDOW_DAYS)
        )
        metrics = await self._business_data.get_financial_metrics(company_id, limit=1)
        return {
            "inventory_value": round(sum(i.quantity * i.unit_cost for i in items), 2),
            "items": len(items),
            "low_stock": sum(1 for i in items if i.is_low),
            "sales_30d": round(sum(s.amount for s in sales), 2),
            "cash": metrics[0].cash_position if metrics else 0,
        }

    # ------------------------------------------------------------------
    # Suppliers
    # ------------------------------------------------------------------

    async def _check_supplier(
        self, company_id: str, entities: dict[str, Any]
    ) -> dict[str, Any]:
        name = str(entities.get("supplier_name", ""))
        suppliers = await self._business_data.get_suppliers(company_id)
        supplier = next(
            (s for s in suppliers if name.lower() in s.name.lower()), None
        )
        if supplier is None:
            return {"found": False, "name": name}
        return {
            "found": True,
            "name": supplier.name,
            "performance_score": supplier.performance_score,
            "delivery_reliability": supplier.delivery_reliability,
            "recent_issues": list(supplier.recent_issues),
        }

    async def _supplier_performance(
        self, company_id: str, entities: dict[str, Any]
    ) -> dict[str, Any]:
        suppliers = sorted(
            await self._business_data.get_suppliers(company_id),
            key=lambda s: (s.performance_score, s.delivery_reliability),
            reverse=True,
        )
        return {
            "suppliers": [
                {
                    "rank": rank,
                    "name": s.name,
                    "performance_score": s.performance_score,
                    "delivery_reliability": s.delivery_reliability,
                }
                for rank, s in enumerate(suppliers[:MAX_RANKED_SUPPLIERS], start=1)
            ]
        }

    # ------------------------------------------------------------------
    # Agents
    # ------------------------------------------------------------------

    def _agent_status(self) -> dict[str, Any]:
        return {
            "agents": [
                {"name": name, "status": "running" if probe() else "stopped"}
                for name, probe in self._agent_probes.items()
            ]
        }
