"""SQLite implementation of ResponsePatternRepository."""

import json
from collections.abc import Callable
from contextlib import AbstractAsyncContextManager
from datetime import datetime, timezone

from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from tradetalk.domain.entities import Persona, ResponsePattern
from tradetalk.infrastructure.persistence.models import ResponsePatternModel


class SQLiteResponsePatternRepository:
    """SQLite による応答パターンリポジトリ実装"""

    def __init__(
        self,
        session_factory: Callable[[], AbstractAsyncContextManager[AsyncSession]],
    ) -> None:
        """初期化

        Args:
            session_factory: 非同期セッション生成関数
        """
        self._session_factory = session_factory

    async def save(self, pattern: ResponsePattern) -> None:
        """パターンを保存（upsert）

        Args:
            pattern: 保存するパターン
        """
        async with self._session_factory() as session:
            stmt = select(ResponsePatternModel).where(
                ResponsePatternModel.persona == pattern.persona.value,
                ResponsePatternModel.intent_type == pattern.intent_type,
                ResponsePatternModel.context_tag == pattern.context_tag,
            )
            result = await session.exec(stmt)
            existing = result.first()

            if existing:
                existing.template = pattern.template
                existing.success_rate = pattern.success_rate
                existing.usage_count = pattern.usage_count
                existing.variables = json.dumps(pattern.variables)
                existing.updated_at = datetime.now(timezone.utc)
                session.add(existing)
            else:
                session.add(self._to_model(pattern))

            await session.commit()

    async def find_all(self) -> list[ResponsePattern]:
        """全パターンを取得"""
        async with self._session_factory() as session:
            result = await session.exec(select(ResponsePatternModel))
            return [self._to_entity(m) for m in result.all()]

    @staticmethod
    def _to_model(pattern: ResponsePattern) -> ResponsePatternModel:
        return ResponsePatternModel(
            persona=pattern.persona.value,
            intent_type=pattern.intent_type,
            context_tag=pattern.context_tag,
            template=pattern.template,
            success_rate=pattern.success_rate,
            usage_count=pattern.usage_count,
            variables=json.dumps(pattern.variables),
        )

    @staticmethod
    def _to_entity(model: ResponsePatternModel) -> ResponsePattern:
        return ResponsePattern(
            persona=Persona(model.persona),
            intent_type=model.intent_type,
            context_tag=model.context_tag,
            template=model.template,
            success_rate=model.success_rate,
            usage_count=model.usage_count,
            variables=json.loads(model.variables) if model.variables else [],
        )
