"""Tests for SQLiteContextSnapshotRepository."""

from datetime import datetime, timedelta, timezone

import pytest
from sqlmodel import select

from tradetalk.domain.entities import (
    Message,
    Persona,
    ReferencedItem,
    create_context,
)
from tradetalk.infrastructure.persistence import (
    ConversationStateModel,
    DatabaseManager,
    SnapshotDecodeError,
    SQLiteContextSnapshotRepository,
)

NOW = datetime(2024, 1, 15, 9, 0, tzinfo=timezone.utc)


@pytest.fixture
def repository(db_manager: DatabaseManager) -> SQLiteContextSnapshotRepository:
    """Create test repository."""
    return SQLiteContextSnapshotRepository(db_manager.get_session)


async def insert_broken_row(
    db_manager: DatabaseManager, identity: str, last_activity_at: datetime
) -> None:
    async with db_manager.get_session() as session:
        session.add(
            ConversationStateModel(
                identity=identity,
                thread_id="t-broken",
                persona="streamliner",
                state="{not json",
                last_activity_at=last_activity_at,
            )
        )
        await session.commit()


class TestSaveAndLoad:
    """save_snapshot / load_snapshot tests."""

    async def test_round_trip(self, repository: SQLiteContextSnapshotRepository) -> None:
        context = create_context("+15551234567", Persona.NAVIGATOR, "u1", now=NOW)
        context.push_message(
            Message("SM1", "+15551234567", "+15550000000", "stock ABC123", NOW),
            capacity=10,
        )
        context.push_referenced_item(
            ReferencedItem("product", "ABC123", NOW), capacity=5
        )

        await repository.save_snapshot(context)
        loaded = await repository.load_snapshot("+15551234567")

        assert loaded == context

    async def test_load_missing(self, repository: SQLiteContextSnapshotRepository) -> None:
        assert await repository.load_snapshot("+15559999999") is None

    async def test_save_upserts(
        self, repository: SQLiteContextSnapshotRepository, db_manager: DatabaseManager
    ) -> None:
        context = create_context("+15551234567", Persona.STREAMLINER, now=NOW)
        await repository.save_snapshot(context)

        context.persona = Persona.HUB
        context.last_activity_at = NOW + timedelta(minutes=5)
        await repository.save_snapshot(context)

        loaded = await repository.load_snapshot("+15551234567")
        assert loaded is not None
        assert loaded.persona == Persona.HUB
        assert loaded.last_activity_at == NOW + timedelta(minutes=5)

        async with db_manager.get_session() as session:
            rows = (await session.exec(select(ConversationStateModel))).all()
        assert len(rows) == 1
        assert rows[0].persona == "hub"

    async def test_load_broken_snapshot(
        self, repository: SQLiteContextSnapshotRepository, db_manager: DatabaseManager
    ) -> None:
        await insert_broken_row(db_manager, "+15551234567", NOW)

        with pytest.raises(SnapshotDecodeError) as exc_info:
            await repository.load_snapshot("+15551234567")

        assert exc_info.value.identity == "+15551234567"


class TestFindActiveSince:
    """find_active_since tests."""

    async def test_newest_first(self, repository: SQLiteContextSnapshotRepository) -> None:
        for minutes, identity in ((0, "+1001"), (30, "+1002"), (-90, "+1003")):
            await repository.save_snapshot(
                create_context(
                    identity, Persona.STREAMLINER, now=NOW + timedelta(minutes=minutes)
                )
            )

        contexts = await repository.find_active_since(NOW - timedelta(hours=1))

        assert [c.identity for c in contexts] == ["+1002", "+1001"]

    async def test_skips_broken_rows(
        self, repository: SQLiteContextSnapshotRepository, db_manager: DatabaseManager
    ) -> None:
        await repository.save_snapshot(
            create_context("+1001", Persona.STREAMLINER, now=NOW)
        )
        await insert_broken_row(db_manager, "+1002", NOW + timedelta(minutes=1))

        contexts = await repository.find_active_since(NOW - timedelta(hours=1))

        assert [c.identity for c in contexts] == ["+1001"]
