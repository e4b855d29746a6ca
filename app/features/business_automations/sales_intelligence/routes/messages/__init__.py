"""Message routes for Sales Intelligence."""

from .message_routes import router

__all__ = ["router"]
