"""
Enrichment API routes for Sales Intelligence.

Handles:
- POST /{signal_id}/enrich - Start a Manus enrichment
- GET /{signal_id}/enrichment - Enrichment row and contacts found so far
- POST /{signal_id}/enrichment/check - Poll the Manus task
"""

from app.features.core.route_imports import *
from app.features.business_automations.sales_intelligence.dependencies import (
    get_contact_service,
    get_enrichment_service,
    http_error,
)
from app.features.business_automations.sales_intelligence.exceptions import (
    ProviderError,
    ProviderNotConfiguredError,
    SalesIntelligenceError,
)
from app.features.business_automations.sales_intelligence.schemas import EnrichmentRequest
from app.features.business_automations.sales_intelligence.services.contacts import ContactCrudService
from app.features.business_automations.sales_intelligence.services.enrichment import EnrichmentService

logger = get_logger(__name__)
router = APIRouter()


@router.post("/{signal_id}/enrich")
async def trigger_enrichment(
    signal_id: str,
    request_data: Optional[EnrichmentRequest] = None,
    db: AsyncSession = Depends(get_db),
    service: EnrichmentService = Depends(get_enrichment_service),
    current_user: AuditContext = Depends(get_current_user),
):
    """
    Start the Manus enrichment of a signal.

    The failed status is committed before a provider error is returned so
    the signal does not stay in "processing".
    """
    source = request_data.source if request_data else "presse"
    try:
        result = await service.trigger_enrichment(signal_id, source, current_user)
        await commit_transaction(db, "trigger_enrichment")

        enrichment = result["enrichment"]
        return {
            "success": True,
            "already_completed": result["already_completed"],
            "status": enrichment.status,
            "manus_task_id": enrichment.manus_task_id,
            "manus_task_url": (enrichment.raw_data or {}).get("manus_task_url"),
            "enrichment": enrichment.to_dict(),
        }

    except (ProviderNotConfiguredError, ProviderError) as e:
        await commit_transaction(db, "record_enrichment_failure")
        raise http_error("trigger_enrichment", e)
    except SalesIntelligenceError as e:
        raise http_error("trigger_enrichment", e)
    except HTTPException:
        raise
    except Exception as e:
        handle_route_error("trigger_enrichment", e, signal_id=signal_id)
        raise HTTPException(status_code=500, detail="Failed to start enrichment")


@router.get("/{signal_id}/enrichment")
async def get_enrichment(
    signal_id: str,
    service: EnrichmentService = Depends(get_enrichment_service),
    contact_service: ContactCrudService = Depends(get_contact_service),
):
    try:
        await service.signal_service.get_signal(signal_id)
        enrichment = await service.get_for_signal(signal_id)
        contacts = await contact_service.list_for_signal(signal_id)
        return {
            "enrichment": enrichment.to_dict() if enrichment else None,
            "contacts": [contact.to_dict() for contact in contacts],
        }

    except SalesIntelligenceError as e:
        raise http_error("get_enrichment", e)
    except Exception as e:
        handle_route_error("get_enrichment", e, signal_id=signal_id)
        raise HTTPException(status_code=500, detail="Failed to get enrichment")


@router.post("/{signal_id}/enrichment/check")
async def check_enrichment(
    signal_id: str,
    db: AsyncSession = Depends(get_db),
    service: EnrichmentService = Depends(get_enrichment_service),
):
    try:
        result = await service.check_status(signal_id)
        await commit_transaction(db, "check_enrichment")
        return result

    except SalesIntelligenceError as e:
        raise http_error("check_enrichment", e)
    except HTTPException:
        raise
    except Exception as e:
        handle_route_error("check_enrichment", e, signal_id=signal_id)
        raise HTTPException(status_code=500, detail="Failed to check enrichment")
