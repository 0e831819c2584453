"""Shared fixtures for persistence tests."""

from collections.abc import AsyncGenerator

import pytest

from tradetalk.infrastructure.persistence import DatabaseManager


@pytest.fixture
async def db_manager() -> AsyncGenerator[DatabaseManager, None]:
    """In-memory database with all tables created."""
    manager = DatabaseManager(":memory:")
    await manager.create_tables()
    yield manager
    await manager.close()
