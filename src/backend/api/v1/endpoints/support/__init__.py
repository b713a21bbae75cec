"""Ticket endpoints."""

from . import tickets

__all__ = ["tickets"]
