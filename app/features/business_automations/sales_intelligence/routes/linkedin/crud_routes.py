"""
LinkedIn API routes for Sales Intelligence.

Handles:
- GET/POST /sources, PATCH/DELETE /sources/{source_id}
- GET/POST /posts, POST /posts/{post_id}/scrape
- GET /engagers, POST /engagers/transfer
- POST /engagers/enrich-batch, POST /engagers/{engager_id}/enrich - Manus contact enrichment
- POST /engager-contacts/check-pending, POST /engager-contacts/{contact_id}/check
- POST /scan - Scrape every active source (queued unless ?wait=true)
"""

from app.features.core.route_imports import *
from app.features.business_automations.sales_intelligence.dependencies import (
    get_engager_enrichment_service,
    get_linkedin_service,
    http_error,
)
from app.features.business_automations.sales_intelligence.constants import ENGAGER_ENRICHMENT_BATCH_LIMIT
from app.features.business_automations.sales_intelligence.exceptions import SalesIntelligenceError
from app.features.business_automations.sales_intelligence.schemas import (
    LinkedInPostCreate,
    LinkedInSourceCreate,
    LinkedInSourceUpdate,
)
from app.features.business_automations.sales_intelligence.services.enrichment import EngagerEnrichmentService
from app.features.business_automations.sales_intelligence.services.linkedin import LinkedInService
from app.features.business_automations.sales_intelligence.tasks import linkedin_full_scan_task

logger = get_logger(__name__)
router = APIRouter()


# === SOURCES ===

@router.get("/sources")
async def list_linkedin_sources(
    active_only: bool = False,
    service: LinkedInService = Depends(get_linkedin_service),
):
    try:
        sources = await service.list_sources(active_only)
        return {"data": [source.to_dict() for source in sources]}

    except Exception as e:
        handle_route_error("list_linkedin_sources", e)
        raise HTTPException(status_code=500, detail="Failed to list LinkedIn sources")


@router.post("/sources", status_code=201)
async def create_linkedin_source(
    source_data: LinkedInSourceCreate,
    db: AsyncSession = Depends(get_db),
    service: LinkedInService = Depends(get_linkedin_service),
    current_user: AuditContext = Depends(get_current_user),
):
    try:
        source = await service.create_source(source_data.model_dump(), current_user)
        await commit_transaction(db, "create_linkedin_source")
        return source.to_dict()

    except SalesIntelligenceError as e:
        raise http_error("create_linkedin_source", e)
    except HTTPException:
        raise
    except Exception as e:
        handle_route_error("create_linkedin_source", e)
        raise HTTPException(status_code=500, detail="Failed to create LinkedIn source")


@router.patch("/sources/{source_id}")
async def update_linkedin_source(
    source_id: str,
    source_data: LinkedInSourceUpdate,
    db: AsyncSession = Depends(get_db),
    service: LinkedInService = Depends(get_linkedin_service),
    current_user: AuditContext = Depends(get_current_user),
):
    try:
        source = await service.update_source(source_id, source_data.changes(), current_user)
        await commit_transaction(db, "update_linkedin_source")
        return source.to_dict()

    except SalesIntelligenceError as e:
        raise http_error("update_linkedin_source", e)
    except HTTPException:
        raise
    except Exception as e:
        handle_route_error("update_linkedin_source", e, source_id=source_id)
        raise HTTPException(status_code=500, detail="Failed to update LinkedIn source")


@router.delete("/sources/{source_id}")
async def delete_linkedin_source(
    source_id: str,
    db: AsyncSession = Depends(get_db),
    service: LinkedInService = Depends(get_linkedin_service),
):
    try:
        await service.delete_source(source_id)
        await commit_transaction(db, "delete_linkedin_source")
        return {"success": True, "message": "Source deleted"}

    except SalesIntelligenceError as e:
        raise http_error("delete_linkedin_source", e)
    except HTTPException:
        raise
    except Exception as e:
        handle_route_error("delete_linkedin_source", e, source_id=source_id)
        raise HTTPException(status_code=500, detail="Failed to delete LinkedIn source")


# === POSTS ===

@router.get("/posts")
async def list_linkedin_posts(
    source_id: Optional[str] = None,
    page: int = Query(1, ge=1),
    size: int = Query(50, ge=1, le=500),
    service: LinkedInService = Depends(get_linkedin_service),
):
    try:
        posts, total = await service.list_posts(source_id, limit=size, offset=(page - 1) * size)
        return tabulator_response(posts, total, size)

    except Exception as e:
        handle_route_error("list_linkedin_posts", e)
        raise HTTPException(status_code=500, detail="Failed to list LinkedIn posts")


@router.post("/posts", status_code=201)
async def add_linkedin_post(
    post_data: LinkedInPostCreate,
    db: AsyncSession = Depends(get_db),
    service: LinkedInService = Depends(get_linkedin_service),
    current_user: AuditContext = Depends(get_current_user),
):
    """Add a post by URL; an existing post with the same URL is updated."""
    try:
        post = await service.add_post(post_data.model_dump(), current_user)
        await commit_transaction(db, "add_linkedin_post")
        return post.to_dict()

    except SalesIntelligenceError as e:
        raise http_error("add_linkedin_post", e)
    except HTTPException:
        raise
    except Exception as e:
        handle_route_error("add_linkedin_post", e)
        raise HTTPException(status_code=500, detail="Failed to add LinkedIn post")


@router.post("/posts/{post_id}/scrape")
async def scrape_linkedin_post(
    post_id: str,
    db: AsyncSession = Depends(get_db),
    service: LinkedInService = Depends(get_linkedin_service),
):
    try:
        result = await service.scrape_post(post_id)
        await commit_transaction(db, "scrape_linkedin_post")
        return {"success": True, **result}

    except SalesIntelligenceError as e:
        raise http_error("scrape_linkedin_post", e)
    except HTTPException:
        raise
    except Exception as e:
        handle_route_error("scrape_linkedin_post", e, post_id=post_id)
        raise HTTPException(status_code=500, detail="Failed to scrape LinkedIn post")


# === ENGAGERS ===

@router.get("/engagers")
async def list_linkedin_engagers(
    transferred: Optional[bool] = None,
    post_id: Optional[str] = None,
    engagement_type: Optional[str] = None,
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    size: int = Query(50, ge=1, le=500),
    service: LinkedInService = Depends(get_linkedin_service),
):
    try:
        engagers, total = await service.list_engagers(
            transferred=transferred,
            post_id=post_id,
            engagement_type=engagement_type,
            search=search,
            limit=size,
            offset=(page - 1) * size,
        )
        return tabulator_response(engagers, total, size)

    except Exception as e:
        handle_route_error("list_linkedin_engagers", e)
        raise HTTPException(status_code=500, detail="Failed to list LinkedIn engagers")


@router.post("/engagers/transfer")
async def transfer_linkedin_engagers(
    db: AsyncSession = Depends(get_db),
    service: LinkedInService = Depends(get_linkedin_service),
    current_user: AuditContext = Depends(get_current_user),
):
    try:
        result = await service.transfer_engagers(current_user)
        await commit_transaction(db, "transfer_linkedin_engagers")
        return {"success": True, **result}

    except SalesIntelligenceError as e:
        raise http_error("transfer_linkedin_engagers", e)
    except HTTPException:
        raise
    except Exception as e:
        handle_route_error("transfer_linkedin_engagers", e)
        raise HTTPException(status_code=500, detail="Failed to transfer engagers")


@router.post("/engagers/enrich-batch")
async def enrich_linkedin_engagers(
    limit: int = Query(ENGAGER_ENRICHMENT_BATCH_LIMIT, ge=1, le=50),
    db: AsyncSession = Depends(get_db),
    service: EngagerEnrichmentService = Depends(get_engager_enrichment_service),
    current_user: AuditContext = Depends(get_current_user),
):
    try:
        result = await service.enrich_batch(current_user, limit=limit)
        await commit_transaction(db, "enrich_linkedin_engagers")
        return result

    except SalesIntelligenceError as e:
        raise http_error("enrich_linkedin_engagers", e)
    except HTTPException:
        raise
    except Exception as e:
        handle_route_error("enrich_linkedin_engagers", e)
        raise HTTPException(status_code=500, detail="Failed to enrich engagers")


@router.post("/engagers/{engager_id}/enrich")
async def enrich_linkedin_engager(
    engager_id: str,
    db: AsyncSession = Depends(get_db),
    service: EngagerEnrichmentService = Depends(get_engager_enrichment_service),
    current_user: AuditContext = Depends(get_current_user),
):
    """Start a Manus task for one engager; without Manus the contact is created as is."""
    try:
        result = await service.enrich_engager(engager_id, current_user)
        await commit_transaction(db, "enrich_linkedin_engager")
        return result

    except SalesIntelligenceError as e:
        raise http_error("enrich_linkedin_engager", e)
    except HTTPException:
        raise
    except Exception as e:
        handle_route_error("enrich_linkedin_engager", e, engager_id=engager_id)
        raise HTTPException(status_code=500, detail="Failed to enrich engager")


@router.post("/engager-contacts/check-pending")
async def check_pending_engager_enrichments(
    db: AsyncSession = Depends(get_db),
    service: EngagerEnrichmentService = Depends(get_engager_enrichment_service),
):
    try:
        summary = await service.check_pending()
        await commit_transaction(db, "check_pending_engager_enrichments")
        return {"success": True, **summary}

    except SalesIntelligenceError as e:
        raise http_error("check_pending_engager_enrichments", e)
    except HTTPException:
        raise
    except Exception as e:
        handle_route_error("check_pending_engager_enrichments", e)
        raise HTTPException(status_code=500, detail="Failed to check engager enrichments")


@router.post("/engager-contacts/{contact_id}/check")
async def check_engager_enrichment(
    contact_id: str,
    db: AsyncSession = Depends(get_db),
    service: EngagerEnrichmentService = Depends(get_engager_enrichment_service),
):
    try:
        result = await service.check_contact(contact_id)
        await commit_transaction(db, "check_engager_enrichment")
        return result

    except SalesIntelligenceError as e:
        raise http_error("check_engager_enrichment", e)
    except HTTPException:
        raise
    except Exception as e:
        handle_route_error("check_engager_enrichment", e, contact_id=contact_id)
        raise HTTPException(status_code=500, detail="Failed to check engager enrichment")


@router.post("/scan")
async def linkedin_scan(
    wait: bool = Query(False),
    db: AsyncSession = Depends(get_db),
    tenant_id: str = Depends(tenant_dependency),
    service: LinkedInService = Depends(get_linkedin_service),
):
    try:
        if not wait:
            task = linkedin_full_scan_task.delay(tenant_id)
            return {"success": True, "queued": True, "task_id": task.id}

        result = await service.full_scan(commit=db.commit)
        await commit_transaction(db, "linkedin_scan")
        return {"success": True, "queued": False, **result}

    except SalesIntelligenceError as e:
        raise http_error("linkedin_scan", e)
    except HTTPException:
        raise
    except Exception as e:
        handle_route_error("linkedin_scan", e)
        raise HTTPException(status_code=500, detail="Failed to run LinkedIn scan")
