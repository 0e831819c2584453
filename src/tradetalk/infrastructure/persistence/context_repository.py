"""SQLite implementation of ContextSnapshotRepository."""

import json
import logging
from collections.abc import Callable
from contextlib import AbstractAsyncContextManager
from datetime import datetime, timezone

from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from tradetalk.domain.entities import (
    ConversationContext,
    context_from_dict,
    context_to_dict,
)
from tradetalk.infrastructure.persistence.exceptions import SnapshotDecodeError
from tradetalk.infrastructure.persistence.models import ConversationStateModel

logger = logging.getLogger(__name__)


class SQLiteContextSnapshotRepository:
    """SQLite による会話コンテキストスナップショットリポジトリ実装

    コンテキスト全体を JSON として 1 行に保存する。
    """

    def __init__(
        self,
        session_factory: Callable[[], AbstractAsyncContextManager[AsyncSession]],
    ) -> None:
        """初期化

        Args:
            session_factory: 非同期セッション生成関数
        """
        self._session_factory = session_factory

    async def load_snapshot(self, identity: str) -> ConversationContext | None:
        """スナップショットを読み込む

        Raises:
            SnapshotDecodeError: 保存された JSON が壊れている場合
        """
        async with self._session_factory() as session:
            stmt = select(ConversationStateModel).where(
                ConversationStateModel.identity == identity
            )
            result = await session.exec(stmt)
            model = result.first()
            return self._to_entity(model) if model else None

    async def save_snapshot(self, context: ConversationContext) -> None:
        """スナップショットを保存（identity 単位で upsert）"""
        state = json.dumps(context_to_dict(context), ensure_ascii=False)
        async with self._session_factory() as session:
            stmt = select(ConversationStateModel).where(
                ConversationStateModel.identity == context.identity
            )
            result = await session.exec(stmt)
            existing = result.first()

            if existing:
                existing.thread_id = context.thread_id
                existing.user_id = context.user_id
                existing.persona = context.persona.value
                existing.state = state
                existing.last_activity_at = context.last_activity_at
                existing.updated_at = datetime.now(timezone.utc)
                session.add(existing)
            else:
                session.add(
                    ConversationStateModel(
                        identity=context.identity,
                        thread_id=context.thread_id,
                        user_id=context.user_id,
                        persona=context.persona.value,
                        state=state,
                        last_activity_at=context.last_activity_at,
                    )
                )
            await session.commit()

    async def find_active_since(self, since: datetime) -> list[ConversationContext]:
        """指定時刻以降にアクティブだったコンテキストを取得

        壊れたスナップショットはログに残してスキップする。
        """
        async with self._session_factory() as session:
            stmt = (
                select(ConversationStateModel)
                .where(ConversationStateModel.last_activity_at >= since)
                .order_by(ConversationStateModel.last_activity_at.desc())  # type: ignore[union-attr]
            )
            result = await session.exec(stmt)
            models = result.all()

        contexts = []
        for model in models:
            try:
                contexts.append(self._to_entity(model))
            except SnapshotDecodeError:
                logger.exception("Skipping unreadable snapshot of %s", model.identity)
        return contexts

    @staticmethod
    def _to_entity(model: ConversationStateModel) -> ConversationContext:
        try:
            return context_from_dict(json.loads(model.state))
        except (KeyError, TypeError, ValueError) as e:
            raise SnapshotDecodeError(model.identity, str(e)) from e
