"""
Dependency injection for the Sales Intelligence feature.

Provides factory functions for service instantiation in routes, and the
translation of service exceptions into HTTP errors.
"""

from app.features.core.route_imports import *
from app.features.business_automations.sales_intelligence.exceptions import (
    InvalidStateError,
    NotFoundError,
    ProviderError,
    ProviderNotConfiguredError,
    SalesIntelligenceError,
)
from app.features.business_automations.sales_intelligence.services.contacts import ContactCrudService
from app.features.business_automations.sales_intelligence.services.credits import CreditService
from app.features.business_automations.sales_intelligence.services.dashboard import DashboardService
from app.features.business_automations.sales_intelligence.services.enrichment import (
    EngagerEnrichmentService,
    EnrichmentService,
)
from app.features.business_automations.sales_intelligence.services.events import EventCrudService
from app.features.business_automations.sales_intelligence.services.linkedin import LinkedInService
from app.features.business_automations.sales_intelligence.services.messages import MessageService
from app.features.business_automations.sales_intelligence.services.pappers import (
    PappersCrudService,
    PappersScanService,
)
from app.features.business_automations.sales_intelligence.services.partners import PartnerCrudService
from app.features.business_automations.sales_intelligence.services.press import PressScanService
from app.features.business_automations.sales_intelligence.services.settings import SettingsService
from app.features.business_automations.sales_intelligence.services.signals import SignalCrudService

logger = get_logger(__name__)


def http_error(operation: str, error: SalesIntelligenceError) -> HTTPException:
    """
    Map a service exception to the HTTPException a route raises.

    Missing rows answer 404, invalid state 400, unconfigured providers 503
    and upstream failures 502 (429 when the provider rate limited us).
    """
    if isinstance(error, NotFoundError):
        status_code = 404
    elif isinstance(error, InvalidStateError):
        status_code = 400
    elif isinstance(error, ProviderNotConfiguredError):
        status_code = 503
    elif isinstance(error, ProviderError):
        status_code = 429 if error.is_rate_limited else 502
    else:
        status_code = 400

    logger.warning("Request rejected", operation=operation, status_code=status_code, error=str(error))
    return HTTPException(status_code=status_code, detail=str(error))


# Service dependencies

def get_signal_service(
    db: AsyncSession = Depends(get_db),
    tenant_id: str = Depends(tenant_dependency)
) -> SignalCrudService:
    """
    Get signal CRUD service instance.

    Args:
        db: Database session
        tenant_id: Current tenant ID

    Returns:
        SignalCrudService instance
    """
    return SignalCrudService(db, tenant_id)


def get_contact_service(
    db: AsyncSession = Depends(get_db),
    tenant_id: str = Depends(tenant_dependency)
) -> ContactCrudService:
    """
    Get contact CRUD service instance.

    Args:
        db: Database session
        tenant_id: Current tenant ID

    Returns:
        ContactCrudService instance
    """
    return ContactCrudService(db, tenant_id)


def get_enrichment_service(
    db: AsyncSession = Depends(get_db),
    tenant_id: str = Depends(tenant_dependency)
) -> EnrichmentService:
    return EnrichmentService(db, tenant_id)


def get_press_scan_service(
    db: AsyncSession = Depends(get_db),
    tenant_id: str = Depends(tenant_dependency)
) -> PressScanService:
    return PressScanService(db, tenant_id)


def get_pappers_service(
    db: AsyncSession = Depends(get_db),
    tenant_id: str = Depends(tenant_dependency)
) -> PappersCrudService:
    return PappersCrudService(db, tenant_id)


def get_pappers_scan_service(
    db: AsyncSession = Depends(get_db),
    tenant_id: str = Depends(tenant_dependency)
) -> PappersScanService:
    return PappersScanService(db, tenant_id)


def get_linkedin_service(
    db: AsyncSession = Depends(get_db),
    tenant_id: str = Depends(tenant_dependency)
) -> LinkedInService:
    return LinkedInService(db, tenant_id)


def get_engager_enrichment_service(
    db: AsyncSession = Depends(get_db),
    tenant_id: str = Depends(tenant_dependency)
) -> EngagerEnrichmentService:
    return EngagerEnrichmentService(db, tenant_id)


def get_message_service(
    db: AsyncSession = Depends(get_db),
    tenant_id: str = Depends(tenant_dependency)
) -> MessageService:
    return MessageService(db, tenant_id)


def get_event_service(
    db: AsyncSession = Depends(get_db),
    tenant_id: str = Depends(tenant_dependency)
) -> EventCrudService:
    return EventCrudService(db, tenant_id)


def get_partner_service(
    db: AsyncSession = Depends(get_db),
    tenant_id: str = Depends(tenant_dependency)
) -> PartnerCrudService:
    return PartnerCrudService(db, tenant_id)


def get_settings_service(
    db: AsyncSession = Depends(get_db),
    tenant_id: str = Depends(tenant_dependency)
) -> SettingsService:
    return SettingsService(db, tenant_id)


def get_credit_service(
    db: AsyncSession = Depends(get_db),
    tenant_id: str = Depends(tenant_dependency)
) -> CreditService:
    return CreditService(db, tenant_id)


def get_dashboard_service(
    db: AsyncSession = Depends(get_db),
    tenant_id: str = Depends(tenant_dependency)
) -> DashboardService:
    return DashboardService(db, tenant_id)
