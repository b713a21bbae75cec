"""
Health check endpoint handler.
"""

import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from core.database import ping_database

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/health")
async def health_check(request: Request):
    """
    Health check endpoint for monitoring.
    Checks database connectivity.
    """
    health_status = {
        "status": "healthy",
        "services": {"database": {"status": "healthy"}},
    }

    try:
        await ping_database(request.app.state.engine)
    except (SQLAlchemyError, OSError) as e:
        logger.warning(f"Database health check failed: {e}")
        health_status["services"]["database"] = {"status": "unhealthy", "error": str(e)}
        health_status["status"] = "degraded"
        return JSONResponse(status_code=503, content=health_status)

    return health_status
