"""Signal services."""

from .crud_services import SignalCrudService

__all__ = ["SignalCrudService"]
