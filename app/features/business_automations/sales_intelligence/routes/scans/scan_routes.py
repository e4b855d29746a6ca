"""
Press scan API routes for Sales Intelligence.

Handles:
- POST /fetch-news - Fetch articles for the active search queries
- POST /analyze-articles - Analyse one batch of unprocessed articles
- POST /full-scan - Fetch and analyse (queued unless ?wait=true)
- GET /logs - Last scan runs
"""

from app.features.core.route_imports import *
from app.features.business_automations.sales_intelligence.dependencies import (
    get_press_scan_service,
    get_settings_service,
    http_error,
)
from app.features.business_automations.sales_intelligence.exceptions import SalesIntelligenceError
from app.features.business_automations.sales_intelligence.services.press import PressScanService
from app.features.business_automations.sales_intelligence.services.settings import SettingsService
from app.features.business_automations.sales_intelligence.tasks import run_full_scan_task

logger = get_logger(__name__)
router = APIRouter()


@router.post("/fetch-news")
async def fetch_news(
    db: AsyncSession = Depends(get_db),
    service: PressScanService = Depends(get_press_scan_service),
):
    try:
        result = await service.fetch_news()
        await commit_transaction(db, "fetch_news")
        return {"success": True, **result}

    except SalesIntelligenceError as e:
        raise http_error("fetch_news", e)
    except HTTPException:
        raise
    except Exception as e:
        handle_route_error("fetch_news", e)
        raise HTTPException(status_code=500, detail="Failed to fetch news")


@router.post("/analyze-articles")
async def analyze_articles(
    batch_size: Optional[int] = Query(None, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    service: PressScanService = Depends(get_press_scan_service),
):
    try:
        result = await service.analyze_articles(batch_size)
        await commit_transaction(db, "analyze_articles")
        return {"success": True, **result}

    except SalesIntelligenceError as e:
        raise http_error("analyze_articles", e)
    except HTTPException:
        raise
    except Exception as e:
        handle_route_error("analyze_articles", e)
        raise HTTPException(status_code=500, detail="Failed to analyze articles")


@router.post("/full-scan")
async def full_scan(
    wait: bool = Query(False, description="Run inline instead of queuing a Celery task"),
    db: AsyncSession = Depends(get_db),
    tenant_id: str = Depends(tenant_dependency),
    service: PressScanService = Depends(get_press_scan_service),
):
    """
    Run the full press scan.

    Queued by default; the SPA then polls /logs. With ``wait=true`` the scan
    runs in the request and its log is returned.
    """
    try:
        if not wait:
            task = run_full_scan_task.delay(tenant_id)
            logger.info("Full scan queued", tenant_id=tenant_id, task_id=task.id)
            return {"success": True, "queued": True, "task_id": task.id}

        log = await service.run_full_scan(commit=db.commit)
        return {"success": True, "queued": False, "scan_log": log.to_dict()}

    except SalesIntelligenceError as e:
        raise http_error("full_scan", e)
    except Exception as e:
        handle_route_error("full_scan", e, tenant_id=tenant_id)
        raise HTTPException(status_code=500, detail="Failed to run full scan")


@router.get("/logs")
async def list_scan_logs(
    limit: int = Query(50, ge=1, le=200),
    service: SettingsService = Depends(get_settings_service),
):
    try:
        return {"data": await service.list_scan_logs(limit)}

    except Exception as e:
        handle_route_error("list_scan_logs", e)
        raise HTTPException(status_code=500, detail="Failed to list scan logs")
