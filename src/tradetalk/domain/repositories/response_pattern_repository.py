"""Response pattern repository protocol."""

from typing import Protocol

from tradetalk.domain.entities import ResponsePattern


class ResponsePatternRepository(Protocol):
    """学習済み応答パターンのリポジトリ"""

    async def save(self, pattern: ResponsePattern) -> None:
        """パターンを保存（upsert）

        同じ persona, intent_type, context_tag のパターンが存在する場合は更新する。
        """
        ...

    async def find_all(self) -> list[ResponsePattern]:
        """全パターンを取得"""
        ...
