"""
Pappers CRUD API routes for Sales Intelligence.

Handles:
- GET/POST /queries - Saved queries
- PATCH/DELETE /queries/{query_id}, POST /queries/{query_id}/toggle
- GET /signals/api/list - Registry signals (for Tabulator)
- PATCH/DELETE /signals/{pappers_signal_id}
- POST /signals/{pappers_signal_id}/transfer - Promote to a prospecting signal
"""

from app.features.core.route_imports import *
from app.features.business_automations.sales_intelligence.dependencies import get_pappers_service, http_error
from app.features.business_automations.sales_intelligence.exceptions import SalesIntelligenceError
from app.features.business_automations.sales_intelligence.schemas import (
    PappersQueryCreate,
    PappersQueryUpdate,
    PappersSignalUpdate,
)
from app.features.business_automations.sales_intelligence.services.pappers import PappersCrudService

logger = get_logger(__name__)
router = APIRouter()


# === QUERIES ===

@router.get("/queries")
async def list_pappers_queries(
    active_only: bool = False,
    service: PappersCrudService = Depends(get_pappers_service),
):
    try:
        queries = await service.list_queries(active_only)
        return {"data": [query.to_dict() for query in queries]}

    except Exception as e:
        handle_route_error("list_pappers_queries", e)
        raise HTTPException(status_code=500, detail="Failed to list Pappers queries")


@router.post("/queries", status_code=201)
async def create_pappers_query(
    query_data: PappersQueryCreate,
    db: AsyncSession = Depends(get_db),
    service: PappersCrudService = Depends(get_pappers_service),
    current_user: AuditContext = Depends(get_current_user),
):
    try:
        query = await service.create_query(query_data.model_dump(), current_user)
        await commit_transaction(db, "create_pappers_query")
        return query.to_dict()

    except SalesIntelligenceError as e:
        raise http_error("create_pappers_query", e)
    except HTTPException:
        raise
    except Exception as e:
        handle_route_error("create_pappers_query", e)
        raise HTTPException(status_code=500, detail="Failed to create Pappers query")


@router.patch("/queries/{query_id}")
async def update_pappers_query(
    query_id: str,
    query_data: PappersQueryUpdate,
    db: AsyncSession = Depends(get_db),
    service: PappersCrudService = Depends(get_pappers_service),
    current_user: AuditContext = Depends(get_current_user),
):
    try:
        query = await service.update_query(query_id, query_data.changes(), current_user)
        await commit_transaction(db, "update_pappers_query")
        return query.to_dict()

    except SalesIntelligenceError as e:
        raise http_error("update_pappers_query", e)
    except HTTPException:
        raise
    except Exception as e:
        handle_route_error("update_pappers_query", e, query_id=query_id)
        raise HTTPException(status_code=500, detail="Failed to update Pappers query")


@router.post("/queries/{query_id}/toggle")
async def toggle_pappers_query(
    query_id: str,
    db: AsyncSession = Depends(get_db),
    service: PappersCrudService = Depends(get_pappers_service),
    current_user: AuditContext = Depends(get_current_user),
):
    try:
        query = await service.toggle_query(query_id, current_user)
        await commit_transaction(db, "toggle_pappers_query")
        return query.to_dict()

    except SalesIntelligenceError as e:
        raise http_error("toggle_pappers_query", e)
    except HTTPException:
        raise
    except Exception as e:
        handle_route_error("toggle_pappers_query", e, query_id=query_id)
        raise HTTPException(status_code=500, detail="Failed to toggle Pappers query")


@router.delete("/queries/{query_id}")
async def delete_pappers_query(
    query_id: str,
    db: AsyncSession = Depends(get_db),
    service: PappersCrudService = Depends(get_pappers_service),
):
    try:
        await service.delete_query(query_id)
        await commit_transaction(db, "delete_pappers_query")
        return {"success": True, "message": "Query deleted"}

    except SalesIntelligenceError as e:
        raise http_error("delete_pappers_query", e)
    except HTTPException:
        raise
    except Exception as e:
        handle_route_error("delete_pappers_query", e, query_id=query_id)
        raise HTTPException(status_code=500, detail="Failed to delete Pappers query")


# === SIGNALS ===

@router.get("/signals/api/list")
async def list_pappers_signals_api(
    processed: Optional[bool] = None,
    transferred: Optional[bool] = None,
    signal_type: Optional[str] = None,
    min_relevance: Optional[int] = Query(None, ge=0, le=100),
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    size: int = Query(50, ge=1, le=500),
    service: PappersCrudService = Depends(get_pappers_service),
):
    """
    List registry signals for Tabulator table.

    Returns:
        JSON response with Pappers signals and pagination
    """
    try:
        items, total = await service.list_signals(
            processed=processed,
            transferred=transferred,
            signal_type=signal_type,
            min_relevance=min_relevance,
            search=search,
            limit=size,
            offset=(page - 1) * size,
        )
        return tabulator_response(items, total, size)

    except Exception as e:
        handle_route_error("list_pappers_signals_api", e)
        raise HTTPException(status_code=500, detail="Failed to list Pappers signals")


@router.patch("/signals/{pappers_signal_id}")
async def update_pappers_signal(
    pappers_signal_id: str,
    signal_data: PappersSignalUpdate,
    db: AsyncSession = Depends(get_db),
    service: PappersCrudService = Depends(get_pappers_service),
    current_user: AuditContext = Depends(get_current_user),
):
    try:
        item = await service.update_signal(pappers_signal_id, signal_data.changes(), current_user)
        await commit_transaction(db, "update_pappers_signal")
        return item.to_dict()

    except SalesIntelligenceError as e:
        raise http_error("update_pappers_signal", e)
    except HTTPException:
        raise
    except Exception as e:
        handle_route_error("update_pappers_signal", e, pappers_signal_id=pappers_signal_id)
        raise HTTPException(status_code=500, detail="Failed to update Pappers signal")


@router.delete("/signals/{pappers_signal_id}")
async def delete_pappers_signal(
    pappers_signal_id: str,
    db: AsyncSession = Depends(get_db),
    service: PappersCrudService = Depends(get_pappers_service),
):
    try:
        await service.delete_signal(pappers_signal_id)
        await commit_transaction(db, "delete_pappers_signal")
        return {"success": True, "message": "Pappers signal deleted"}

    except SalesIntelligenceError as e:
        raise http_error("delete_pappers_signal", e)
    except HTTPException:
        raise
    except Exception as e:
        handle_route_error("delete_pappers_signal", e, pappers_signal_id=pappers_signal_id)
        raise HTTPException(status_code=500, detail="Failed to delete Pappers signal")


@router.post("/signals/{pappers_signal_id}/transfer")
async def transfer_pappers_signal(
    pappers_signal_id: str,
    db: AsyncSession = Depends(get_db),
    service: PappersCrudService = Depends(get_pappers_service),
    current_user: AuditContext = Depends(get_current_user),
):
    """Create a prospecting signal from a registry signal."""
    try:
        signal = await service.transfer_to_signals(pappers_signal_id, current_user)
        await commit_transaction(db, "transfer_pappers_signal")

        logger.info("Pappers signal transferred", pappers_signal_id=pappers_signal_id, signal_id=signal.id)
        return {"success": True, "signal": signal.to_dict()}

    except SalesIntelligenceError as e:
        raise http_error("transfer_pappers_signal", e)
    except HTTPException:
        raise
    except Exception as e:
        handle_route_error("transfer_pappers_signal", e, pappers_signal_id=pappers_signal_id)
        raise HTTPException(status_code=500, detail="Failed to transfer Pappers signal")
