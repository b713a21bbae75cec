"""
Application factory for FastAPI.

This module provides the create_app() function that creates and configures
the FastAPI application instance.
"""

from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.v1 import api_router
from app.routes import health_router
from core.config import Settings, get_settings
from core.exception_handlers import register_exception_handlers
from core.lifespan import lifespan


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Application factory function.

    Args:
        settings: Configuration to run with; the process settings when omitted

    Returns:
        FastAPI: Configured FastAPI application instance
    """
    settings = settings or get_settings()

    app = FastAPI(
        title=settings.api.app_name,
        version=settings.api.app_version,
        description="Equipment service tickets routed from admin to manager to employee",
        lifespan=lifespan,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        openapi_url="/api/openapi.json",
    )
    app.state.settings = settings

    register_exception_handlers(app)

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors.origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PATCH", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "Accept", "Origin", "X-Requested-With"],
    )

    # Include routers
    app.include_router(health_router)
    app.include_router(api_router, prefix=settings.api.api_v1_prefix)

    return app
