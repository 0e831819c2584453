"""Proactive insight repository protocol."""

from datetime import datetime
from typing import Protocol

from tradetalk.domain.entities import ProactiveInsight


class InsightRepository(Protocol):
    """送信済みインサイトのリポジトリ"""

    async def save(self, insight: ProactiveInsight) -> None:
        """インサイトを保存"""
        ...

    async def find_recent(
        self, user_id: str, since: datetime
    ) -> list[ProactiveInsight]:
        """指定時刻以降に送信されたインサイトを取得

        Args:
            user_id: 対象ユーザー ID
            since: この時刻以降に作成されたものを返す

        Returns:
            新しい順のインサイトリスト
        """
        ...
