"""Credit routes for Sales Intelligence."""

from .credit_routes import router

__all__ = ["router"]
