"""Read-only business records."""

from dataclasses import dataclass, field
from datetime import date, datetime


@dataclass(frozen=True)
class InventoryItem:
    """在庫アイテム"""

    sku: str
    name: str
    quantity: int
    reorder_point: int
    turnover_days: float = 0.0
    stockout_events: int = 0
    unit_cost: float = 0.0
    safety_stock: int = 0
    average_daily_usage: float = 0.0
    location: str | None = None
    lead_time_days: int = 0

    @property
    def is_low(self) -> bool:
        return self.quantity <= self.reorder_point


@dataclass(frozen=True)
class SupplierRecord:
    """仕入先"""

    name: str
    performance_score: float
    delivery_reliability: float
    order_volume: float = 0.0
    recent_issues: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class FinancialMetric:
    """日次の資金指標"""

    date: date
    cash_position: float


@dataclass(frozen=True)
class SalesTransaction:
    """売上トランザクション"""

    sku: str
    quantity: int
    amount: float
    occurred_at: datetime
