"""Background proactive insight service."""

import asyncio
import logging

from tradetalk.application.services.insight_engine import InsightEngine
from tradetalk.config.models import InsightConfig

logger = logging.getLogger(__name__)


class BackgroundInsightGenerator:
    """Background proactive insight service.

    Periodically runs an insight cycle over all recently active users.
    The first cycle runs one interval after start so that a restart does
    not immediately re-send insights.
    """

    def __init__(self, insight_engine: InsightEngine, config: InsightConfig) -> None:
        """Initialize BackgroundInsightGenerator.

        Args:
            insight_engine: Engine generating and sending insights.
            config: Insight configuration with cycle interval.
        """
        self._insight_engine = insight_engine
        self._config = config
        # set() means stopped, clear() means running
        self._stop_event = asyncio.Event()
        self._stop_event.set()

    async def start(self) -> None:
        """Start the insight loop.

        Continues looping until stop signal is received.
        If already running, this method returns immediately after logging a warning.
        """
        if not self._stop_event.is_set():
            logger.warning(
                "BackgroundInsightGenerator.start() called while already running; "
                "ignoring."
            )
            return
        self._stop_event.clear()

        logger.info(
            "Starting background insight generator (interval=%ss)",
            self._config.interval_seconds,
        )

        while not await self._wait_interval():
            try:
                logger.info("Running insight cycle")
                sent = await self._insight_engine.run_cycle()
                logger.info("Insight cycle completed (sent=%d)", sent)
            except Exception:
                logger.exception("Error during insight cycle")

        logger.info("Background insight generator stopped")

    async def _wait_interval(self) -> bool:
        """Wait one interval.

        Returns:
            True if the stop signal was received.
        """
        try:
            await asyncio.wait_for(
                self._stop_event.wait(), timeout=self._config.interval_seconds
            )
            return True
        except asyncio.TimeoutError:
            return False

    async def stop(self) -> None:
        """Signal the insight loop to stop."""
        logger.info("Stopping background insight generator")
        self._stop_event.set()

    @property
    def is_running(self) -> bool:
        return not self._stop_event.is_set()
