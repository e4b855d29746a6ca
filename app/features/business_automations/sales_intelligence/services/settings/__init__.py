"""Settings, search query and scan log services."""

from .crud_services import SettingsService

__all__ = ["SettingsService"]
