"""
Application lifespan manager.

This module provides the lifespan context manager that handles
startup and shutdown events for the FastAPI application.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from . import tasks


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.
    Handles startup and shutdown events.
    """
    settings = app.state.settings

    await tasks.initialize_logging(settings)
    logger = logging.getLogger("main")

    # Startup
    await tasks.log_cors_configuration(settings)
    await tasks.initialize_database(app, settings)
    await tasks.initialize_workflow(app, settings)

    yield

    # Shutdown
    logger.info(f"Shutting down {settings.api.app_name}...")

    # Deliver notices still in flight before the loop goes away
    await tasks.drain_notifications(app)

    await tasks.shutdown_database(app)

    tasks.shutdown_logging()
