"""Tests for WebhookServer."""

from collections.abc import AsyncGenerator
from unittest.mock import AsyncMock, Mock

import aiohttp
import pytest

from tradetalk.domain.entities import FeedbackKind, Message, Persona, ResponsePattern
from tradetalk.infrastructure.http import WebhookServer
from tradetalk.infrastructure.http.webhook_server import EMPTY_TWIML


@pytest.fixture
def mock_orchestrator() -> AsyncMock:
    """Create a mock SessionOrchestrator."""
    mock = AsyncMock()
    mock.handle.return_value = "📦 ABC123: 8 units"
    return mock


@pytest.fixture
def mock_feedback_use_case() -> AsyncMock:
    """Create a mock RecordFeedbackUseCase."""
    return AsyncMock()


@pytest.fixture
def mock_analytics_use_case() -> AsyncMock:
    """Create a mock ConversationAnalyticsUseCase."""
    mock = AsyncMock()
    mock.get_analytics.return_value = None
    mock.export.return_value = None
    return mock


@pytest.fixture
def mock_db_manager() -> AsyncMock:
    """Create a mock DatabaseManager."""
    mock = AsyncMock()
    mock.is_healthy = AsyncMock(return_value=True)
    return mock


@pytest.fixture
def mock_insight_generator() -> Mock:
    """Create a mock BackgroundInsightGenerator."""
    mock = Mock()
    mock.is_running = True
    return mock


@pytest.fixture
def mock_context_persister() -> Mock:
    """Create a mock ContextPersister."""
    mock = Mock()
    mock.is_running = True
    return mock


@pytest.fixture
async def server(
    mock_orchestrator: AsyncMock,
    mock_feedback_use_case: AsyncMock,
    mock_analytics_use_case: AsyncMock,
    mock_db_manager: AsyncMock,
    mock_insight_generator: Mock,
    mock_context_persister: Mock,
) -> AsyncGenerator[WebhookServer, None]:
    """Running server on any available port."""
    server = WebhookServer(
        orchestrator=mock_orchestrator,
        feedback_use_case=mock_feedback_use_case,
        analytics_use_case=mock_analytics_use_case,
        db_manager=mock_db_manager,
        insight_generator=mock_insight_generator,
        context_persister=mock_context_persister,
        host="127.0.0.1",
        port=0,
    )
    await server.start()
    yield server
    await server.stop()


def url(server: WebhookServer, path: str) -> str:
    return f"http://127.0.0.1:{server.port}{path}"


class TestWhatsAppWebhook:
    """POST /webhooks/whatsapp tests."""

    async def test_handles_message(
        self, server: WebhookServer, mock_orchestrator: AsyncMock
    ) -> None:
        async with aiohttp.ClientSession() as session:
            async with session.post(
                url(server, "/webhooks/whatsapp"),
                data={
                    "MessageSid": "SM42",
                    "From": "whatsapp:+15551234567",
                    "To": "whatsapp:+15550000000",
                    "Body": " check stock ABC123 ",
                },
            ) as response:
                assert response.status == 200
                assert response.content_type == "text/xml"
                assert await response.text() == EMPTY_TWIML

        message: Message = mock_orchestrator.handle.await_args.args[0]
        assert message.id == "SM42"
        assert message.sender == "whatsapp:+15551234567"
        assert message.recipient == "whatsapp:+15550000000"
        assert message.body == "check stock ABC123"
        assert message.timestamp.tzinfo is not None

    @pytest.mark.parametrize(
        "form",
        [
            {"Body": "hello"},
            {"From": "whatsapp:+15551234567"},
            {"From": "whatsapp:+15551234567", "Body": "   "},
        ],
    )
    async def test_missing_fields(
        self, server: WebhookServer, mock_orchestrator: AsyncMock, form: dict
    ) -> None:
        async with aiohttp.ClientSession() as session:
            async with session.post(
                url(server, "/webhooks/whatsapp"), data=form
            ) as response:
                assert response.status == 400

        mock_orchestrator.handle.assert_not_awaited()


class TestFeedback:
    """POST /feedback tests."""

    async def test_records_feedback(
        self, server: WebhookServer, mock_feedback_use_case: AsyncMock
    ) -> None:
        mock_feedback_use_case.execute.return_value = ResponsePattern(
            persona=Persona.STREAMLINER,
            intent_type="check_inventory",
            context_tag="learned",
            template="{{var0}}: {{var1}} units",
            success_rate=0.9,
            usage_count=1,
        )

        async with aiohttp.ClientSession() as session:
            async with session.post(
                url(server, "/feedback"),
                json={
                    "identity": "+15551234567",
                    "response": "ABC123: 8 units",
                    "feedback": "negative",
                    "intent_type": "check_inventory",
                },
            ) as response:
                assert response.status == 200
                data = await response.json()

        assert data == {
            "status": "recorded",
            "pattern": {
                "persona": "streamliner",
                "intent_type": "check_inventory",
                "context_tag": "learned",
                "success_rate": 0.9,
                "usage_count": 1,
            },
        }
        mock_feedback_use_case.execute.assert_awaited_once_with(
            "+15551234567",
            "ABC123: 8 units",
            FeedbackKind.NEGATIVE,
            intent_type="check_inventory",
            correction=None,
        )

    async def test_no_pattern(
        self, server: WebhookServer, mock_feedback_use_case: AsyncMock
    ) -> None:
        mock_feedback_use_case.execute.return_value = None

        async with aiohttp.ClientSession() as session:
            async with session.post(
                url(server, "/feedback"),
                json={"identity": "+1", "response": "ok", "feedback": "negative"},
            ) as response:
                data = await response.json()

        assert data == {"status": "recorded", "pattern": None}

    @pytest.mark.parametrize(
        "payload",
        [
            {"response": "ok", "feedback": "positive"},
            {"identity": "+1", "feedback": "positive"},
            {"identity": "+1", "response": "ok", "feedback": "meh"},
            ["not", "an", "object"],
        ],
    )
    async def test_invalid_payload(
        self,
        server: WebhookServer,
        mock_feedback_use_case: AsyncMock,
        payload: object,
    ) -> None:
        async with aiohttp.ClientSession() as session:
            async with session.post(url(server, "/feedback"), json=payload) as response:
                assert response.status == 400

        mock_feedback_use_case.execute.assert_not_awaited()

    async def test_invalid_json(self, server: WebhookServer) -> None:
        async with aiohttp.ClientSession() as session:
            async with session.post(
                url(server, "/feedback"),
                data="{broken",
                headers={"Content-Type": "application/json"},
            ) as response:
                assert response.status == 400
                data = await response.json()

        assert data == {"error": "Invalid JSON"}


class TestConversations:
    """Analytics and export endpoint tests."""

    async def test_analytics_unknown(self, server: WebhookServer) -> None:
        async with aiohttp.ClientSession() as session:
            async with session.get(
                url(server, "/conversations/+15551234567/analytics")
            ) as response:
                assert response.status == 404

    async def test_analytics(
        self, server: WebhookServer, mock_analytics_use_case: AsyncMock
    ) -> None:
        mock_analytics_use_case.get_analytics.return_value = {
            "identity": "+15551234567",
            "message_count": 3,
        }

        async with aiohttp.ClientSession() as session:
            async with session.get(
                url(server, "/conversations/+15551234567/analytics")
            ) as response:
                assert response.status == 200
                data = await response.json()

        assert data == {"identity": "+15551234567", "message_count": 3}
        mock_analytics_use_case.get_analytics.assert_awaited_once_with("+15551234567")

    async def test_export(
        self, server: WebhookServer, mock_analytics_use_case: AsyncMock
    ) -> None:
        mock_analytics_use_case.export.return_value = {"identity": "+15551234567"}

        async with aiohttp.ClientSession() as session:
            async with session.get(
                url(server, "/conversations/+15551234567/export")
            ) as response:
                assert response.status == 200
                data = await response.json()

        assert data == {"identity": "+15551234567"}

    async def test_export_unknown(self, server: WebhookServer) -> None:
        async with aiohttp.ClientSession() as session:
            async with session.get(
                url(server, "/conversations/+15551234567/export")
            ) as response:
                assert response.status == 404


class TestProbes:
    """Liveness and readiness tests."""

    async def test_live(self, server: WebhookServer) -> None:
        async with aiohttp.ClientSession() as session:
            async with session.get(url(server, "/live")) as response:
                assert response.status == 200
                data = await response.json()

        assert data["status"] == "alive"
        assert "timestamp" in data

    async def test_ready(self, server: WebhookServer) -> None:
        async with aiohttp.ClientSession() as session:
            async with session.get(url(server, "/ready")) as response:
                assert response.status == 200
                data = await response.json()

        assert data == {
            "ready": True,
            "insight_generator": True,
            "context_persister": True,
            "database": True,
        }

    async def test_not_ready_when_loop_stopped(
        self, server: WebhookServer, mock_context_persister: Mock
    ) -> None:
        mock_context_persister.is_running = False

        async with aiohttp.ClientSession() as session:
            async with session.get(url(server, "/ready")) as response:
                assert response.status == 503
                data = await response.json()

        assert data["ready"] is False
        assert data["context_persister"] is False

    async def test_not_ready_when_database_down(
        self, server: WebhookServer, mock_db_manager: AsyncMock
    ) -> None:
        mock_db_manager.is_healthy.return_value = False

        async with aiohttp.ClientSession() as session:
            async with session.get(url(server, "/ready")) as response:
                assert response.status == 503

    async def test_liveness_after_stop(self, server: WebhookServer) -> None:
        await server.stop()

        result = await server.check_liveness()

        assert result["status"] == "dead"
        assert server.is_running is False
