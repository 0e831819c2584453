"""アプリケーションのエントリポイント"""

import asyncio
import logging
import os
import signal
import sys
from pathlib import Path

from tradetalk.application.services import (
    BackgroundInsightGenerator,
    ContextPersister,
    ContextStore,
    InsightEngine,
    IntentResolver,
    RepositoryActionExecutor,
    ResponseGenerator,
    ResponsePatternRegistry,
)
from tradetalk.application.use_cases import (
    ConversationAnalyticsUseCase,
    RecordFeedbackUseCase,
    SessionOrchestrator,
)
from tradetalk.config import ConfigError, LoggingConfig, load_config
from tradetalk.infrastructure.http import WebhookServer
from tradetalk.infrastructure.messaging import TwilioMessagingService
from tradetalk.infrastructure.persistence import (
    DatabaseManager,
    ProfilePersonaClassifier,
    SQLiteBusinessDataRepository,
    SQLiteContextSnapshotRepository,
    SQLiteInsightRepository,
    SQLiteResponsePatternRepository,
    SQLiteUserDirectory,
)
from tradetalk.infrastructure.rendering import JinjaTemplateRenderer

# Default logging for early startup
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "TRADETALK_CONFIG"


def configure_logging(config: LoggingConfig | None) -> None:
    """Configure logging based on config.

    Args:
        config: Logging configuration. If None, uses defaults.
    """
    if config is None:
        return

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, config.level.upper(), logging.INFO))

    if root_logger.handlers:
        formatter = logging.Formatter(config.format)
        for handler in root_logger.handlers:
            handler.setFormatter(formatter)

    for logger_name, logger_level in (config.loggers or {}).items():
        logging.getLogger(logger_name).setLevel(
            getattr(logging, logger_level.upper(), logging.INFO)
        )
        logger.debug("Set logger '%s' to level %s", logger_name, logger_level.upper())


async def main() -> None:
    """アプリケーションを起動する"""
    config_path = Path(os.environ.get(CONFIG_ENV_VAR, "config.yaml"))
    if not config_path.exists():
        logger.error("%s not found", config_path)
        sys.exit(1)

    try:
        config = load_config(config_path)
    except ConfigError as e:
        logger.error("Failed to load config: %s", e)
        sys.exit(1)

    configure_logging(config.logging)

    # Initialize database
    db_manager = DatabaseManager(config.database.database_path)
    await db_manager.create_tables()

    # Build dependencies
    snapshot_repository = SQLiteContextSnapshotRepository(db_manager.get_session)
    pattern_repository = SQLiteResponsePatternRepository(db_manager.get_session)
    insight_repository = SQLiteInsightRepository(db_manager.get_session)
    business_data = SQLiteBusinessDataRepository(db_manager.get_session)
    user_directory = SQLiteUserDirectory(db_manager.get_session)

    messaging_service = TwilioMessagingService(config.messaging)

    context_store = ContextStore(
        snapshot_repository=snapshot_repository,
        config=config.conversation,
        persona_classifier=ProfilePersonaClassifier(user_directory),
        user_directory=user_directory,
    )

    registry = ResponsePatternRegistry(pattern_repository)
    await registry.load()
    response_generator = ResponseGenerator(
        registry=registry,
        renderer=JinjaTemplateRenderer(),
        config=config.response,
    )

    insight_engine = InsightEngine(
        context_store=context_store,
        snapshot_repository=snapshot_repository,
        user_directory=user_directory,
        business_data=business_data,
        messaging_service=messaging_service,
        insight_repository=insight_repository,
        config=config.insights,
    )
    insight_generator = BackgroundInsightGenerator(insight_engine, config.insights)
    context_persister = ContextPersister(context_store, config.conversation)

    action_executor = RepositoryActionExecutor(
        business_data=business_data,
        user_directory=user_directory,
        agent_probes={
            "insight_generator": lambda: insight_generator.is_running,
            "context_persister": lambda: context_persister.is_running,
        },
    )

    orchestrator = SessionOrchestrator(
        context_store=context_store,
        intent_resolver=IntentResolver(),
        action_executor=action_executor,
        response_generator=response_generator,
        messaging_service=messaging_service,
    )

    server = WebhookServer(
        orchestrator=orchestrator,
        feedback_use_case=RecordFeedbackUseCase(context_store, response_generator),
        analytics_use_case=ConversationAnalyticsUseCase(context_store),
        db_manager=db_manager,
        insight_generator=insight_generator,
        context_persister=context_persister,
        host=config.server.host,
        port=config.server.port,
    )

    # Create tasks
    insight_task = asyncio.create_task(insight_generator.start())
    persister_task = asyncio.create_task(context_persister.start())
    await server.start()

    # Setup signal handlers for graceful shutdown
    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()

    def shutdown_handler() -> None:
        logger.info("Received shutdown signal...")
        stop_event.set()

    loop.add_signal_handler(signal.SIGINT, shutdown_handler)
    loop.add_signal_handler(signal.SIGTERM, shutdown_handler)

    await stop_event.wait()

    # Graceful shutdown
    logger.info("Shutting down...")
    await server.stop()
    await insight_generator.stop()
    await context_persister.stop()
    await asyncio.gather(insight_task, persister_task, return_exceptions=True)

    saved = await context_store.persist_all()
    logger.info("Persisted %d contexts before exit", saved)

    await messaging_service.close()
    await db_manager.close()

    logger.info("Shutdown complete")


def run() -> None:
    """Run the async main function."""
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Shutting down...")


if __name__ == "__main__":
    run()
