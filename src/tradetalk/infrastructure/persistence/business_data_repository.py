"""SQLite implementation of BusinessDataRepository."""

import json
from collections.abc import Callable
from contextlib import AbstractAsyncContextManager
from datetime import datetime

from sqlalchemy import or_
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from tradetalk.domain.entities import (
    FinancialMetric,
    InventoryItem,
    SalesTransaction,
    SupplierRecord,
)
from tradetalk.infrastructure.persistence.datetime_utils import normalize_to_utc
from tradetalk.infrastructure.persistence.models import (
    FinancialMetricModel,
    InventoryItemModel,
    SalesTransactionModel,
    SupplierModel,
)


class SQLiteBusinessDataRepository:
    """SQLite による業務データリポジトリ実装（読み取り専用）"""

    def __init__(
        self,
        session_factory: Callable[[], AbstractAsyncContextManager[AsyncSession]],
    ) -> None:
        """初期化

        Args:
            session_factory: 非同期セッション生成関数
        """
        self._session_factory = session_factory

    async def get_inventory(self, company_id: str) -> list[InventoryItem]:
        """会社の在庫一覧を SKU 順に取得"""
        async with self._session_factory() as session:
            stmt = (
                select(InventoryItemModel)
                .where(InventoryItemModel.company_id == company_id)
                .order_by(InventoryItemModel.sku)
            )
            result = await session.exec(stmt)
            return [self._to_inventory(m) for m in result.all()]

    async def find_inventory_item(
        self, company_id: str, query: str
    ) -> InventoryItem | None:
        """SKU の完全一致を優先し、なければ商品名の部分一致で検索

        Args:
            company_id: 会社 ID
            query: SKU または商品名

        Returns:
            見つかったアイテム、または None
        """
        pattern = f"%{query.strip()}%"
        async with self._session_factory() as session:
            stmt = select(InventoryItemModel).where(
                InventoryItemModel.company_id == company_id,
                or_(
                    InventoryItemModel.sku == query.strip(),
                    InventoryItemModel.name.ilike(pattern),  # type: ignore[attr-defined]
                    InventoryItemModel.sku.ilike(pattern),  # type: ignore[attr-defined]
                ),
            )
            result = await session.exec(stmt)
            models = result.all()

        if not models:
            return None
        exact = next((m for m in models if m.sku == query.strip()), None)
        return self._to_inventory(exact or models[0])

    async def get_suppliers(self, company_id: str) -> list[SupplierRecord]:
        """仕入先一覧を取得"""
        async with self._session_factory() as session:
            stmt = select(SupplierModel).where(SupplierModel.company_id == company_id)
            result = await session.exec(stmt)
            return [self._to_supplier(m) for m in result.all()]

    async def get_financial_metrics(
        self, company_id: str, limit: int = 30
    ) -> list[FinancialMetric]:
        """資金指標を新しい順に取得"""
        async with self._session_factory() as session:
            stmt = (
                select(FinancialMetricModel)
                .where(FinancialMetricModel.company_id == company_id)
                .order_by(FinancialMetricModel.metric_date.desc())  # type: ignore[attr-defined]
                .limit(limit)
            )
            result = await session.exec(stmt)
            return [
                FinancialMetric(date=m.metric_date, cash_position=m.cash_position)
                for m in result.all()
            ]

    async def get_sales_since(
        self, company_id: str, since: datetime
    ) -> list[SalesTransaction]:
        """指定時刻以降の売上を古い順に取得"""
        async with self._session_factory() as session:
            stmt = (
                select(SalesTransactionModel)
                .where(
                    SalesTransactionModel.company_id == company_id,
                    SalesTransactionModel.occurred_at >= since,
                )
                .order_by(SalesTransactionModel.occurred_at)
            )
            result = await session.exec(stmt)
            return [
                SalesTransaction(
                    sku=m.sku,
                    quantity=m.quantity,
                    amount=m.amount,
                    occurred_at=normalize_to_utc(m.occurred_at),
                )
                for m in result.all()
            ]

    @staticmethod
    def _to_inventory(model: InventoryItemModel) -> InventoryItem:
        return InventoryItem(
            sku=model.sku,
            name=model.name,
            quantity=model.quantity,
            reorder_point=model.reorder_point,
            turnover_days=model.turnover_days,
            stockout_events=model.stockout_events,
            unit_cost=model.unit_cost,
            safety_stock=model.safety_stock,
            average_daily_usage=model.average_daily_usage,
            location=model.location,
            lead_time_days=model.lead_time_days,
        )

    @staticmethod
    def _to_supplier(model: SupplierModel) -> SupplierRecord:
        return SupplierRecord(
            name=model.name,
            performance_score=model.performance_score,
            delivery_reliability=model.delivery_reliability,
            order_volume=model.order_volume,
            recent_issues=json.loads(model.recent_issues) if model.recent_issues else [],
        )
