"""Event services."""

from .crud_services import EventCrudService

__all__ = ["EventCrudService"]
