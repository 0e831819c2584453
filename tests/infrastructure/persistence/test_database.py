"""Tests for DatabaseManager."""

from pathlib import Path

from sqlalchemy import inspect

from tradetalk.infrastructure.persistence import DatabaseManager


class TestDatabaseManager:
    """DatabaseManager tests."""

    def test_get_engine_creates_parent_directory(self, tmp_path: Path) -> None:
        db_path = tmp_path / "subdir" / "nested" / "test.db"
        manager = DatabaseManager(str(db_path))

        engine = manager.get_engine()

        assert "sqlite" in str(engine.url)
        assert db_path.parent.exists()

    def test_engine_is_cached(self) -> None:
        manager = DatabaseManager(":memory:")

        assert manager.get_engine() is manager.get_engine()

    async def test_create_tables(self, tmp_path: Path) -> None:
        """Creating tables twice is harmless."""
        manager = DatabaseManager(str(tmp_path / "test.db"))
        await manager.create_tables()
        await manager.create_tables()

        async with manager.get_engine().connect() as conn:
            tables = await conn.run_sync(
                lambda sync_conn: inspect(sync_conn).get_table_names()
            )
        await manager.close()

        assert {
            "conversation_states",
            "response_patterns",
            "proactive_insights",
            "user_profiles",
            "inventory_items",
            "suppliers",
            "financial_metrics",
            "sales_transactions",
        } <= set(tables)

    async def test_is_healthy(self, db_manager: DatabaseManager) -> None:
        assert await db_manager.is_healthy() is True

    async def test_close_resets_engine(self, db_manager: DatabaseManager) -> None:
        engine = db_manager.get_engine()

        await db_manager.close()

        assert db_manager.get_engine() is not engine
