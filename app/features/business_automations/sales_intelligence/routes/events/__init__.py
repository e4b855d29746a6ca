"""Event routes for Sales Intelligence."""

from .crud_routes import router

__all__ = ["router"]
