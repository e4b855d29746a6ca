"""Partner house services."""

from .crud_services import PartnerCrudService

__all__ = ["PartnerCrudService"]
