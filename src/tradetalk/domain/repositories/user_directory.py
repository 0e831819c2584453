"""User directory protocol."""

from typing import Protocol

from tradetalk.domain.entities import UserProfile


class UserDirectory(Protocol):
    """ユーザー情報の検索"""

    async def find_by_identity(self, identity: str) -> UserProfile | None:
        """電話番号でユーザーを検索"""
        ...

    async def find_by_user_id(self, user_id: str) -> UserProfile | None:
        """ユーザー ID でユーザーを検索"""
        ...
