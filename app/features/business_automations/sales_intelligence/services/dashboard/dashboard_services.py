"""Aggregated figures for the dashboard's polling refresh."""

from typing import Dict, Any

from app.features.core.sqlalchemy_imports import *
from app.features.business_automations.sales_intelligence.services.contacts import ContactCrudService
from app.features.business_automations.sales_intelligence.services.credits import CreditService
from app.features.business_automations.sales_intelligence.services.events import EventCrudService
from app.features.business_automations.sales_intelligence.services.signals import SignalCrudService

logger = get_logger(__name__)


class DashboardService:
    """Combines the stats of the other services in one payload."""

    def __init__(self, db_session: AsyncSession, tenant_id: Optional[str] = None):
        self.signal_service = SignalCrudService(db_session, tenant_id)
        self.contact_service = ContactCrudService(db_session, tenant_id)
        self.event_service = EventCrudService(db_session, tenant_id)
        self.credit_service = CreditService(db_session, tenant_id)

    async def overview(self) -> Dict[str, Any]:
        contacts_by_status = await self.contact_service.count_by_status()
        return {
            "signals": await self.signal_service.signal_stats(),
            "events": await self.event_service.event_stats(),
            "contacts": {
                "total": sum(contacts_by_status.values()),
                "byStatus": contacts_by_status,
            },
            "credits": await self.credit_service.all_summaries(),
        }
