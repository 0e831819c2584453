"""Periodic context snapshot service."""

import asyncio
import logging

from tradetalk.application.services.context_store import ContextStore
from tradetalk.config.models import ConversationConfig

logger = logging.getLogger(__name__)


class ContextPersister:
    """Periodically snapshots cached contexts and evicts inactive ones.

    Runs as an asyncio task and gracefully shuts down on stop signal.
    """

    def __init__(self, context_store: ContextStore, config: ConversationConfig) -> None:
        """Initialize ContextPersister.

        Args:
            context_store: Store whose contexts are snapshotted.
            config: Conversation configuration with persist interval and
                inactivity threshold.
        """
        self._context_store = context_store
        self._config = config
        # set() means stopped, clear() means running
        self._stop_event = asyncio.Event()
        self._stop_event.set()

    async def run_once(self) -> tuple[int, int]:
        """Persist all contexts, then evict inactive ones.

        Returns:
            (saved, evicted)
        """
        saved = await self._context_store.persist_all()
        evicted = await self._context_store.clear_inactive(self._config.inactive_minutes)
        return saved, evicted

    async def start(self) -> None:
        """Start the persistence loop.

        If already running, this method returns immediately after logging a warning.
        """
        if not self._stop_event.is_set():
            logger.warning(
                "ContextPersister.start() called while already running; ignoring."
            )
            return
        self._stop_event.clear()

        logger.info(
            "Starting context persister (interval=%ss)",
            self._config.persist_interval_seconds,
        )

        while not self._stop_event.is_set():
            try:
                await asyncio.wait_for(
                    self._stop_event.wait(),
                    timeout=self._config.persist_interval_seconds,
                )
                break
            except asyncio.TimeoutError:
                pass

            try:
                saved, evicted = await self.run_once()
                logger.info("Persisted %d contexts, evicted %d", saved, evicted)
            except Exception:
                logger.exception("Error during context persistence")

        logger.info("Context persister stopped")

    async def stop(self) -> None:
        """Signal the persistence loop to stop.

        The final snapshot on shutdown is taken by the caller with
        ContextStore.persist_all().
        """
        logger.info("Stopping context persister")
        self._stop_event.set()

    @property
    def is_running(self) -> bool:
        return not self._stop_event.is_set()
