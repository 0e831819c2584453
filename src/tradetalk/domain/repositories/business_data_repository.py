"""Business data repository protocol."""

from datetime import datetime
from typing import Protocol

from tradetalk.domain.entities import (
    FinancialMetric,
    InventoryItem,
    SalesTransaction,
    SupplierRecord,
)


class BusinessDataRepository(Protocol):
    """業務データ（読み取り専用）のリポジトリ"""

    async def get_inventory(self, company_id: str) -> list[InventoryItem]:
        """会社の在庫一覧を取得"""
        ...

    async def find_inventory_item(
        self, company_id: str, query: str
    ) -> InventoryItem | None:
        """SKU または商品名で在庫アイテムを検索

        Args:
            company_id: 会社 ID
            query: SKU または商品名（部分一致）

        Returns:
            見つかったアイテム、または None
        """
        ...

    async def get_suppliers(self, company_id: str) -> list[SupplierRecord]:
        """仕入先一覧を取得"""
        ...

    async def get_financial_metrics(
        self, company_id: str, limit: int = 30
    ) -> list[FinancialMetric]:
        """資金指標を新しい順に取得"""
        ...

    async def get_sales_since(
        self, company_id: str, since: datetime
    ) -> list[SalesTransaction]:
        """指定時刻以降の売上を取得"""
        ...
