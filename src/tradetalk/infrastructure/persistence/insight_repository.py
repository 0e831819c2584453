"""SQLite implementation of InsightRepository."""

import json
from collections.abc import Callable
from contextlib import AbstractAsyncContextManager
from datetime import datetime

from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from tradetalk.domain.entities import (
    ActionType,
    InsightAction,
    InsightPriority,
    InsightType,
    Persona,
    ProactiveInsight,
)
from tradetalk.infrastructure.persistence.datetime_utils import (
    normalize_optional,
    normalize_to_utc,
)
from tradetalk.infrastructure.persistence.models import ProactiveInsightModel


class SQLiteInsightRepository:
    """SQLite による送信済みインサイトリポジトリ実装"""

    def __init__(
        self,
        session_factory: Callable[[], AbstractAsyncContextManager[AsyncSession]],
    ) -> None:
        """初期化

        Args:
            session_factory: 非同期セッション生成関数
        """
        self._session_factory = session_factory

    async def save(self, insight: ProactiveInsight) -> None:
        """インサイトを保存（同じ ID は上書きしない）"""
        async with self._session_factory() as session:
            stmt = select(ProactiveInsightModel).where(
                ProactiveInsightModel.insight_id == insight.id
            )
            result = await session.exec(stmt)
            if result.first():
                return
            session.add(self._to_model(insight))
            await session.commit()

    async def find_recent(
        self, user_id: str, since: datetime
    ) -> list[ProactiveInsight]:
        """指定時刻以降に作成されたインサイトを新しい順に取得"""
        async with self._session_factory() as session:
            stmt = (
                select(ProactiveInsightModel)
                .where(
                    ProactiveInsightModel.user_id == user_id,
                    ProactiveInsightModel.created_at >= since,
                )
                .order_by(ProactiveInsightModel.created_at.desc())  # type: ignore[union-attr]
            )
            result = await session.exec(stmt)
            return [self._to_entity(m) for m in result.all()]

    @staticmethod
    def _to_model(insight: ProactiveInsight) -> ProactiveInsightModel:
        return ProactiveInsightModel(
            insight_id=insight.id,
            user_id=insight.user_id,
            identity=insight.identity,
            persona=insight.persona.value,
            type=insight.type.value,
            priority=insight.priority.value,
            confidence=insight.confidence,
            title=insight.title,
            message=insight.message,
            data=json.dumps(insight.data, ensure_ascii=False),
            suggested_actions=json.dumps(
                [
                    {
                        "type": a.type.value,
                        "description": a.description,
                        "command": a.command,
                        "delay_minutes": a.delay_minutes,
                    }
                    for a in insight.suggested_actions
                ],
                ensure_ascii=False,
            ),
            triggered_by=json.dumps(insight.triggered_by),
            expires_at=insight.expires_at,
            created_at=insight.created_at,
        )

    @staticmethod
    def _to_entity(model: ProactiveInsightModel) -> ProactiveInsight:
        return ProactiveInsight(
            id=model.insight_id,
            type=InsightType(model.type),
            priority=InsightPriority(model.priority),
            confidence=model.confidence,
            title=model.title,
            message=model.message,
            data=json.loads(model.data) if model.data else {},
            suggested_actions=[
                InsightAction(
                    type=ActionType(a["type"]),
                    description=a["description"],
                    command=a.get("command"),
                    delay_minutes=a.get("delay_minutes"),
                )
                for a in json.loads(model.suggested_actions or "[]")
            ],
            triggered_by=json.loads(model.triggered_by or "[]"),
            user_id=model.user_id,
            identity=model.identity,
            persona=Persona(model.persona),
            expires_at=normalize_optional(model.expires_at),
            created_at=normalize_to_utc(model.created_at),
        )
