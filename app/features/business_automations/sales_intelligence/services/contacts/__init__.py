"""Contact services."""

from .crud_services import ContactCrudService

__all__ = ["ContactCrudService"]
