"""
Lifespan startup and shutdown task functions.

Each function handles one responsibility and works on the state stored on
the application instance.
"""

import logging

from fastapi import FastAPI

from core.config import Settings
from core.logging_config import LogConfig, setup_logging, stop_queue_listener

logger = logging.getLogger("main")


async def initialize_logging(settings: Settings) -> None:
    """Setup logging configuration."""
    setup_logging(LogConfig(**settings.logging.log_config))
    logger.info(f"Starting {settings.api.app_name} {settings.api.app_version}")


async def log_cors_configuration(settings: Settings) -> None:
    """Log CORS configuration for debugging."""
    logger.info(f"CORS allowed origins: {settings.cors.origins}")


async def initialize_database(app: FastAPI, settings: Settings) -> None:
    """Create the engine and session factory, and ensure tables exist."""
    from core.database import create_engine_from_settings, create_session_factory, init_db

    engine = create_engine_from_settings(settings.database)
    app.state.engine = engine
    app.state.session_factory = create_session_factory(engine)

    if settings.database.create_tables:
        await init_db(engine)
    logger.info("Database initialized")


async def initialize_workflow(app: FastAPI, settings: Settings) -> None:
    """Build the notification dispatcher and the ticket workflow engine."""
    from api.services.notification_service import NotificationDispatcher
    from api.services.ticket_service import TicketService

    notifier = NotificationDispatcher.from_settings(settings)
    app.state.notifier = notifier
    app.state.ticket_service = TicketService(settings.workflow, notifier)
    logger.info(
        f"Workflow engine ready (email={'on' if settings.email.enabled else 'off'}, "
        f"sms={'on' if settings.sms.enabled else 'off'})"
    )


async def drain_notifications(app: FastAPI, timeout: float = 10.0) -> None:
    """Wait for in-flight notification deliveries."""
    notifier = getattr(app.state, "notifier", None)
    if notifier is not None:
        await notifier.drain(timeout=timeout)


async def shutdown_database(app: FastAPI) -> None:
    """Close database connections."""
    from core.database import close_db

    engine = getattr(app.state, "engine", None)
    if engine is not None:
        await close_db(engine)
        logger.info("Database connections closed")


def shutdown_logging() -> None:
    """Stop the logging queue listener."""
    logger.info("Stopping logging queue listener")
    stop_queue_listener()
