"""Async SQLite engine and session handling."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from pathlib import Path

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

# Table registration happens on import
from tradetalk.infrastructure.persistence import models as _models  # noqa: F401

logger = logging.getLogger(__name__)

MEMORY_DATABASE = ":memory:"


class DatabaseManager:
    """会話スナップショット・学習パターン・業務データを格納する SQLite の管理

    エンジンは最初に必要になった時点で作られる。``close`` 後に再度
    使われた場合は新しいエンジンを作り直す。
    """

    def __init__(self, database_path: str, echo: bool = False) -> None:
        """初期化

        Args:
            database_path: SQLite ファイルのパス、または ":memory:"
            echo: 発行した SQL をログに出すか
        """
        self._database_path = database_path
        self._echo = echo
        self._engine: AsyncEngine | None = None
        self._sessions: async_sessionmaker[AsyncSession] | None = None

    @property
    def url(self) -> str:
        return f"sqlite+aiosqlite:///{self._database_path}"

    def get_engine(self) -> AsyncEngine:
        """エンジンを返す（未作成なら作成する）

        ファイル DB の保存先ディレクトリがなければ作成する。
        """
        if self._engine is None:
            if self._database_path != MEMORY_DATABASE:
                Path(self._database_path).parent.mkdir(parents=True, exist_ok=True)
            self._engine = create_async_engine(self.url, echo=self._echo)
            self._sessions = async_sessionmaker(
                self._engine, class_=AsyncSession, expire_on_commit=False
            )
            logger.debug("Created database engine for %s", self._database_path)
        return self._engine

    async def create_tables(self) -> None:
        """不足しているテーブルを作成する"""
        async with self.get_engine().begin() as conn:
            await conn.run_sync(SQLModel.metadata.create_all)

    @asynccontextmanager
    async def get_session(self) -> AsyncGenerator[AsyncSession, None]:
        """リポジトリ用のセッションを開く

        リポジトリにはこのメソッド自体をセッションファクトリとして渡す。
        """
        self.get_engine()
        assert self._sessions is not None
        async with self._sessions() as session:
            yield session

    async def is_healthy(self) -> bool:
        """readiness プローブ用の接続確認"""
        try:
            async with self.get_engine().connect() as conn:
                await conn.execute(text("SELECT 1"))
        except Exception:
            logger.warning("Database health check failed", exc_info=True)
            return False
        return True

    async def close(self) -> None:
        if self._engine is None:
            return
        await self._engine.dispose()
        self._engine = None
        self._sessions = None
