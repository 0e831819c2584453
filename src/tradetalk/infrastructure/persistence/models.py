"""SQLModel table definitions."""

from datetime import date, datetime, timezone

from sqlalchemy import Column, Text, UniqueConstraint
from sqlmodel import Field, SQLModel


class ConversationStateModel(SQLModel, table=True):
    """会話コンテキストのスナップショットテーブル"""

    __tablename__ = "conversation_states"

    id: int | None = Field(default=None, primary_key=True)
    identity: str = Field(unique=True, index=True)
    thread_id: str
    user_id: str | None = Field(default=None, index=True)
    persona: str
    state: str = Field(sa_column=Column(Text, nullable=False))  # JSON
    last_activity_at: datetime = Field(index=True)
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class ResponsePatternModel(SQLModel, table=True):
    """学習済み応答パターンテーブル"""

    __tablename__ = "response_patterns"

    id: int | None = Field(default=None, primary_key=True)
    persona: str = Field(index=True)
    intent_type: str = Field(index=True)
    context_tag: str
    template: str = Field(sa_column=Column(Text, nullable=False))
    success_rate: float = 1.0
    usage_count: int = 0
    variables: str = "[]"  # JSON format: ["var0", "var1"]
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    __table_args__ = (
        UniqueConstraint(
            "persona", "intent_type", "context_tag", name="uq_pattern_key"
        ),
    )


class ProactiveInsightModel(SQLModel, table=True):
    """送信済みインサイトテーブル"""

    __tablename__ = "proactive_insights"

    id: int | None = Field(default=None, primary_key=True)
    insight_id: str = Field(unique=True, index=True)
    user_id: str = Field(index=True)
    identity: str
    persona: str
    type: str
    priority: str
    confidence: float
    title: str
    message: str = Field(sa_column=Column(Text, nullable=False))
    data: str = "{}"  # JSON
    suggested_actions: str = "[]"  # JSON
    triggered_by: str = "[]"  # JSON
    expires_at: datetime | None = None
    created_at: datetime = Field(index=True)


class UserProfileModel(SQLModel, table=True):
    """ユーザープロファイルテーブル"""

    __tablename__ = "user_profiles"

    id: int | None = Field(default=None, primary_key=True)
    user_id: str = Field(unique=True, index=True)
    identity: str = Field(unique=True, index=True)
    company_id: str | None = Field(default=None, index=True)
    persona: str | None = None


class InventoryItemModel(SQLModel, table=True):
    """在庫テーブル"""

    __tablename__ = "inventory_items"

    id: int | None = Field(default=None, primary_key=True)
    company_id: str = Field(index=True)
    sku: str = Field(index=True)
    name: str
    quantity: int = 0
    reorder_point: int = 0
    turnover_days: float = 0.0
    stockout_events: int = 0
    unit_cost: float = 0.0
    safety_stock: int = 0
    average_daily_usage: float = 0.0
    location: str | None = None
    lead_time_days: int = 0

    __table_args__ = (UniqueConstraint("company_id", "sku", name="uq_company_sku"),)


class SupplierModel(SQLModel, table=True):
    """仕入先テーブル"""

    __tablename__ = "suppliers"

    id: int | None = Field(default=None, primary_key=True)
    company_id: str = Field(index=True)
    name: str
    performance_score: float = 0.0
    delivery_reliability: float = 0.0
    order_volume: float = 0.0
    recent_issues: str = "[]"  # JSON format: ["late delivery"]


class FinancialMetricModel(SQLModel, table=True):
    """資金指標テーブル"""

    __tablename__ = "financial_metrics"

    id: int | None = Field(default=None, primary_key=True)
    company_id: str = Field(index=True)
    metric_date: date = Field(index=True)
    cash_position: float


class SalesTransactionModel(SQLModel, table=True):
    """売上トランザクションテーブル"""

    __tablename__ = "sales_transactions"

    id: int | None = Field(default=None, primary_key=True)
    company_id: str = Field(index=True)
    sku: str
    quantity: int
    amount: float
    occurred_at: datetime = Field(index=True)
