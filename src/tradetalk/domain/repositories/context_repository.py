"""Conversation context snapshot repository protocol."""

from datetime import datetime
from typing import Protocol

from tradetalk.domain.entities import ConversationContext


class ContextSnapshotRepository(Protocol):
    """会話コンテキストのスナップショットリポジトリ"""

    async def load_snapshot(self, identity: str) -> ConversationContext | None:
        """スナップショットを読み込む

        Args:
            identity: 電話番号

        Returns:
            復元したコンテキスト、存在しなければ None
        """
        ...

    async def save_snapshot(self, context: ConversationContext) -> None:
        """スナップショットを保存（全体上書き）

        Args:
            context: 保存するコンテキスト
        """
        ...

    async def find_active_since(self, since: datetime) -> list[ConversationContext]:
        """指定時刻以降にアクティブだったコンテキストを取得

        Args:
            since: この時刻以降に last_activity_at を持つものを返す

        Returns:
            コンテキストのリスト
        """
        ...
