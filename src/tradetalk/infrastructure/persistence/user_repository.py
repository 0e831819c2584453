"""SQLite implementation of UserDirectory and persona classification."""

import logging
from collections.abc import Callable
from contextlib import AbstractAsyncContextManager

from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from tradetalk.domain.entities import DEFAULT_PERSONA, Persona, UserProfile
from tradetalk.infrastructure.persistence.models import UserProfileModel

logger = logging.getLogger(__name__)


class SQLiteUserDirectory:
    """SQLite によるユーザーディレクトリ実装"""

    def __init__(
        self,
        session_factory: Callable[[], AbstractAsyncContextManager[AsyncSession]],
    ) -> None:
        """初期化

        Args:
            session_factory: 非同期セッション生成関数
        """
        self._session_factory = session_factory

    async def save(self, profile: UserProfile) -> None:
        """ユーザーを保存（user_id 単位で upsert）"""
        async with self._session_factory() as session:
            stmt = select(UserProfileModel).where(
                UserProfileModel.user_id == profile.user_id
            )
            result = await session.exec(stmt)
            existing = result.first()

            if existing:
                existing.identity = profile.identity
                existing.company_id = profile.company_id
                existing.persona = profile.persona.value if profile.persona else None
                session.add(existing)
            else:
                session.add(self._to_model(profile))

            await session.commit()

    async def find_by_identity(self, identity: str) -> UserProfile | None:
        """電話番号でユーザーを検索"""
        async with self._session_factory() as session:
            stmt = select(UserProfileModel).where(UserProfileModel.identity == identity)
            result = await session.exec(stmt)
            model = result.first()
            return self._to_entity(model) if model else None

    async def find_by_user_id(self, user_id: str) -> UserProfile | None:
        """ユーザー ID でユーザーを検索"""
        async with self._session_factory() as session:
            stmt = select(UserProfileModel).where(UserProfileModel.user_id == user_id)
            result = await session.exec(stmt)
            model = result.first()
            return self._to_entity(model) if model else None

    @staticmethod
    def _to_model(profile: UserProfile) -> UserProfileModel:
        return UserProfileModel(
            user_id=profile.user_id,
            identity=profile.identity,
            company_id=profile.company_id,
            persona=profile.persona.value if profile.persona else None,
        )

    @staticmethod
    def _to_entity(model: UserProfileModel) -> UserProfile:
        return UserProfile(
            user_id=model.user_id,
            identity=model.identity,
            company_id=model.company_id,
            persona=Persona(model.persona) if model.persona else None,
        )


class ProfilePersonaClassifier:
    """ユーザープロファイルに記録されたペルソナを返す分類器

    プロファイルがない、またはペルソナ未設定の場合はデフォルトを返す。
    """

    def __init__(self, user_directory: SQLiteUserDirectory) -> None:
        self._user_directory = user_directory

    async def classify(self, user_id: str) -> Persona:
        profile = await self._user_directory.find_by_user_id(user_id)
        if profile is None or profile.persona is None:
            logger.debug("No persona on record for %s", user_id)
            return DEFAULT_PERSONA
        return profile.persona
