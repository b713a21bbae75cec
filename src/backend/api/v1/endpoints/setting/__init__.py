"""Reference data endpoints."""

from . import units, users

__all__ = ["units", "users"]
