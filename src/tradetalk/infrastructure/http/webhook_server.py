"""Inbound webhook and health HTTP server."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any

from aiohttp import web

from tradetalk.domain.entities import FeedbackKind, Message

if TYPE_CHECKING:
    from tradetalk.application.services import (
        BackgroundInsightGenerator,
        ContextPersister,
    )
    from tradetalk.application.use_cases import (
        ConversationAnalyticsUseCase,
        RecordFeedbackUseCase,
        SessionOrchestrator,
    )
    from tradetalk.infrastructure.persistence.database import DatabaseManager

logger = logging.getLogger(__name__)

EMPTY_TWIML = '<?xml version="1.0" encoding="UTF-8"?><Response></Response>'


class WebhookServer:
    """HTTP server for the messaging webhook, feedback, analytics and probes.

    Routes:
        POST /webhooks/whatsapp: inbound message (form encoded)
        POST /feedback: feedback on a reply (JSON)
        GET /conversations/{identity}/analytics: conversation summary
        GET /conversations/{identity}/export: full conversation context
        GET /live, GET /ready: Kubernetes probes
    """

    def __init__(
        self,
        orchestrator: SessionOrchestrator,
        feedback_use_case: RecordFeedbackUseCase,
        analytics_use_case: ConversationAnalyticsUseCase,
        db_manager: DatabaseManager,
        insight_generator: BackgroundInsightGenerator | None = None,
        context_persister: ContextPersister | None = None,
        host: str = "0.0.0.0",
        port: int = 8080,
    ) -> None:
        """Initialize the server.

        Args:
            orchestrator: Handles inbound messages.
            feedback_use_case: Records feedback.
            analytics_use_case: Conversation analytics.
            db_manager: DatabaseManager instance.
            insight_generator: Background insight loop (readiness).
            context_persister: Background persistence loop (readiness).
            host: Interface to bind.
            port: Port to listen on. Use 0 for any available port.
        """
        self._orchestrator = orchestrator
        self._feedback_use_case = feedback_use_case
        self._analytics_use_case = analytics_use_case
        self._db_manager = db_manager
        self._insight_generator = insight_generator
        self._context_persister = context_persister
        self._host = host
        self._port = port
        self._actual_port = port
        self._server: web.AppRunner | None = None
        self._site: web.TCPSite | None = None
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def port(self) -> int:
        """Get the port the server is listening on."""
        return self._actual_port

    def create_app(self) -> web.Application:
        app = web.Application()
        app.router.add_post("/webhooks/whatsapp", self._handle_whatsapp)
        app.router.add_post("/feedback", self._handle_feedback)
        app.router.add_get(
            "/conversations/{identity}/analytics", self._handle_analytics
        )
        app.router.add_get("/conversations/{identity}/export", self._handle_export)
        app.router.add_get("/live", self._handle_live)
        app.router.add_get("/ready", self._handle_ready)
        return app

    # ------------------------------------------------------------------
    # Messaging
    # ------------------------------------------------------------------

    async def _handle_whatsapp(self, request: web.Request) -> web.Response:
        """Handle an inbound message from the provider."""
        form = await request.post()
        sender = str(form.get("From", "")).strip()
        body = str(form.get("Body", "")).strip()
        if not sender or not body:
            logger.warning("Ignoring webhook without sender or body")
            return web.json_response({"error": "From and Body are required"}, status=400)

        message = Message(
            id=str(form.get("MessageSid") or uuid.uuid4()),
            sender=sender,
            recipient=str(form.get("To", "")),
            body=body,
            timestamp=datetime.now(timezone.utc),
        )
        await self._orchestrator.handle(message)
        return web.Response(text=EMPTY_TWIML, content_type="text/xml")

    # ------------------------------------------------------------------
    # Feedback and analytics
    # ------------------------------------------------------------------

    async def _handle_feedback(self, request: web.Request) -> web.Response:
        """Handle POST /feedback."""
        try:
            payload = await request.json()
        except ValueError:
            return web.json_response({"error": "Invalid JSON"}, status=400)
        if not isinstance(payload, dict):
            return web.json_response({"error": "Invalid JSON"}, status=400)

        identity = payload.get("identity")
        response = payload.get("response")
        if not identity or not response:
            return web.json_response(
                {"error": "identity and response are required"}, status=400
            )
        try:
            feedback = FeedbackKind(payload.get("feedback"))
        except ValueError:
            return web.json_response(
                {"error": "feedback must be positive, negative or correction"},
                status=400,
            )

        pattern = await self._feedback_use_case.execute(
            identity,
            response,
            feedback,
            intent_type=payload.get("intent_type"),
            correction=payload.get("correction"),
        )

        result: dict[str, Any] = {"status": "recorded", "pattern": None}
        if pattern is not None:
            result["pattern"] = {
                "persona": pattern.persona.value,
                "intent_type": pattern.intent_type,
                "context_tag": pattern.context_tag,
                "success_rate": pattern.success_rate,
                "usage_count": pattern.usage_count,
            }
        return web.json_response(result)

    async def _handle_analytics(self, request: web.Request) -> web.Response:
        identity = request.match_info["identity"]
        analytics = await self._analytics_use_case.get_analytics(identity)
        if analytics is None:
            return web.json_response({"error": "Unknown identity"}, status=404)
        return web.json_response(analytics)

    async def _handle_export(self, request: web.Request) -> web.Response:
        identity = request.match_info["identity"]
        exported = await self._analytics_use_case.export(identity)
        if exported is None:
            return web.json_response({"error": "Unknown identity"}, status=404)
        return web.json_response(exported)

    # ------------------------------------------------------------------
    # Probes
    # ------------------------------------------------------------------

    async def check_liveness(self) -> dict[str, Any]:
        """Check if the application is alive.

        Returns:
            Liveness status with timestamp.
        """
        return {
            "status": "alive" if self._running else "dead",
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    async def check_readiness(self) -> dict[str, Any]:
        """Check if the application is ready to serve traffic.

        Returns:
            Readiness status with component health details.
        """
        insights_ok = self._insight_generator is None or self._insight_generator.is_running
        persister_ok = (
            self._context_persister is None or self._context_persister.is_running
        )
        db_ok = await self._db_manager.is_healthy()

        return {
            "ready": insights_ok and persister_ok and db_ok,
            "insight_generator": insights_ok,
            "context_persister": persister_ok,
            "database": db_ok,
        }

    async def _handle_live(self, request: web.Request) -> web.Response:
        result = await self.check_liveness()
        return web.json_response(result)

    async def _handle_ready(self, request: web.Request) -> web.Response:
        result = await self.check_readiness()
        status = 200 if result["ready"] else 503
        return web.json_response(result, status=status)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Start the HTTP server."""
        self._server = web.AppRunner(self.create_app())
        await self._server.setup()

        self._site = web.TCPSite(self._server, self._host, self._port)
        await self._site.start()

        # Actual port when port=0
        if self._site._server is not None:
            sockets = self._site._server.sockets  # type: ignore[union-attr]
            if sockets:
                self._actual_port = sockets[0].getsockname()[1]

        self._running = True
        logger.info("Webhook server started on %s:%d", self._host, self.port)

    async def stop(self) -> None:
        """Stop the HTTP server."""
        if self._server is not None:
            await self._server.cleanup()
            self._server = None
            self._site = None

        self._running = False
        logger.info("Webhook server stopped")
