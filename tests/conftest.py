"""Shared fixtures."""

from collections.abc import Callable
from datetime import datetime, timezone

import pytest

from tradetalk.domain.entities import Message


@pytest.fixture
def now() -> datetime:
    """Fixed current time (a Monday morning)."""
    return datetime(2024, 1, 15, 9, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def make_message(now: datetime) -> Callable[..., Message]:
    """Factory for inbound messages."""
    counter = 0

    def factory(
        body: str,
        sender: str = "+15551234567",
        timestamp: datetime | None = None,
        intent: str | None = None,
        entities: dict | None = None,
    ) -> Message:
        nonlocal counter
        counter += 1
        return Message(
            id=f"SM{counter:04d}",
            sender=sender,
            recipient="+15550000000",
            body=body,
            timestamp=timestamp or now,
            intent=intent,
            entities=entities or {},
        )

    return factory
