"""
API v1 routes.

Endpoints are organized into subdirectories: support (tickets) and
setting (reference data).
"""

from fastapi import APIRouter

from .endpoints.setting import units, users
from .endpoints.support import tickets

api_router = APIRouter()

api_router.include_router(tickets.router, prefix="/tickets", tags=["tickets"])
api_router.include_router(units.router, prefix="/units", tags=["units"])
api_router.include_router(users.router, prefix="/users", tags=["users"])
