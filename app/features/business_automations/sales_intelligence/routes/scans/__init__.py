"""Press scan routes for Sales Intelligence."""

from .scan_routes import router

__all__ = ["router"]
