"""Dashboard services."""

from .dashboard_services import DashboardService

__all__ = ["DashboardService"]
