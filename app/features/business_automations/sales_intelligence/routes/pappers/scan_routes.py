"""
Pappers scan API routes for Sales Intelligence.

Handles:
- POST /scan - Anniversary scan actions (start, pause, resume, status, stop)
- POST /queries/run - Run the active saved queries
"""

from app.features.core.route_imports import *
from app.features.business_automations.sales_intelligence.dependencies import get_pappers_scan_service, http_error
from app.features.business_automations.sales_intelligence.exceptions import SalesIntelligenceError
from app.features.business_automations.sales_intelligence.schemas import PappersScanRequest
from app.features.business_automations.sales_intelligence.services.pappers import PappersScanService
from app.features.business_automations.sales_intelligence.tasks import (
    run_pappers_queries_task,
    run_pappers_scan_task,
)

logger = get_logger(__name__)
router = APIRouter()


@router.post("/scan")
async def pappers_scan(
    scan_request: PappersScanRequest,
    wait: bool = Query(False, description="Execute in the request instead of queuing a Celery task"),
    db: AsyncSession = Depends(get_db),
    tenant_id: str = Depends(tenant_dependency),
    service: PappersScanService = Depends(get_pappers_scan_service),
    current_user: AuditContext = Depends(get_current_user),
):
    """
    Dispatch a scan action.

    A real start or a resume creates or updates the progress rows here and
    queues their execution unless ``wait=true``.
    """
    try:
        result = await service.run_scan(
            action=scan_request.action,
            scan_id=scan_request.scan_id,
            query_id=scan_request.query_id,
            dry_run=scan_request.dry_run,
            months_ahead=scan_request.months_ahead,
            years=scan_request.years,
            max_results=scan_request.max_results,
            execute=wait,
            user=current_user,
            commit=db.commit if wait else None,
        )
        await commit_transaction(db, f"pappers_scan_{scan_request.action}")

        if not wait:
            if scan_request.action == "start" and not scan_request.dry_run:
                per_year = result["scans"][0]["max_results"] if result["scans"] else None
                task = run_pappers_scan_task.delay(tenant_id, result["scan_ids"], per_year)
                result.update({"queued": True, "task_id": task.id})
            elif scan_request.action == "resume":
                task = run_pappers_scan_task.delay(tenant_id, [scan_request.scan_id], scan_request.max_results, True)
                result.update({"queued": True, "task_id": task.id})

        return result

    except SalesIntelligenceError as e:
        raise http_error("pappers_scan", e)
    except HTTPException:
        raise
    except Exception as e:
        handle_route_error("pappers_scan", e, action=scan_request.action)
        raise HTTPException(status_code=500, detail="Failed to run Pappers scan action")


@router.post("/queries/run")
async def run_pappers_queries(
    wait: bool = Query(False),
    db: AsyncSession = Depends(get_db),
    tenant_id: str = Depends(tenant_dependency),
    service: PappersScanService = Depends(get_pappers_scan_service),
):
    try:
        if not wait:
            task = run_pappers_queries_task.delay(tenant_id)
            return {"success": True, "queued": True, "task_id": task.id}

        result = await service.run_queries(commit=db.commit)
        await commit_transaction(db, "run_pappers_queries")
        return {"success": True, "queued": False, **result}

    except SalesIntelligenceError as e:
        raise http_error("run_pappers_queries", e)
    except HTTPException:
        raise
    except Exception as e:
        handle_route_error("run_pappers_queries", e)
        raise HTTPException(status_code=500, detail="Failed to run Pappers queries")
