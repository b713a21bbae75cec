"""
Main FastAPI application entry point.
"""

from app import create_app

# Create application instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    from core.config import settings

    uvicorn.run(
        "main:app",
        host=settings.api.host,
        port=settings.api.port,
        reload=settings.api.debug,
        workers=1 if settings.api.debug else settings.api.workers,
        log_level="info",
        access_log=True,
        timeout_graceful_shutdown=10,
        server_header=False,
    )
