"""
Signal CRUD API routes for Sales Intelligence.

Handles:
- GET /api/list - List signals (for Tabulator)
- GET /api/stats - Dashboard counters
- GET /api/intervened - Ids of signals with at least one interaction
- POST / - Create signal
- GET/PATCH/DELETE /{signal_id} - Signal details, update, delete
- PUT /{signal_id}/next-action - Schedule a follow-up
- GET/POST /{signal_id}/interactions - Timeline
"""

from app.features.core.route_imports import *
from app.features.business_automations.sales_intelligence.dependencies import get_signal_service, http_error
from app.features.business_automations.sales_intelligence.exceptions import SalesIntelligenceError
from app.features.business_automations.sales_intelligence.schemas import (
    NextActionUpdate,
    SignalCreate,
    SignalInteractionCreate,
    SignalUpdate,
)
from app.features.business_automations.sales_intelligence.services.signals import SignalCrudService

logger = get_logger(__name__)
router = APIRouter()


@router.get("/api/list")
async def list_signals_api(
    min_score: Optional[int] = Query(None, ge=1, le=5),
    signal_type: Optional[str] = None,
    status: Optional[str] = None,
    period: Optional[str] = Query(None, description="7d, 30d, 90d or all"),
    search: Optional[str] = None,
    exclude_types: Optional[List[str]] = Query(None),
    exclude_source_names: Optional[List[str]] = Query(None),
    page: int = Query(1, ge=1),
    size: int = Query(50, ge=1, le=500),
    service: SignalCrudService = Depends(get_signal_service),
):
    """
    List signals for Tabulator table.

    Returns:
        JSON response with signals and pagination
    """
    try:
        signals, total = await service.list_signals(
            min_score=min_score,
            signal_type=signal_type,
            status=status,
            period=period,
            search=search,
            exclude_types=exclude_types,
            exclude_source_names=exclude_source_names,
            limit=size,
            offset=(page - 1) * size,
        )
        return tabulator_response(signals, total, size)

    except Exception as e:
        handle_route_error("list_signals_api", e)
        raise HTTPException(status_code=500, detail="Failed to list signals")


@router.get("/api/stats")
async def signal_stats_api(
    signal_type: Optional[str] = None,
    exclude_types: Optional[List[str]] = Query(None),
    exclude_source_names: Optional[List[str]] = Query(None),
    service: SignalCrudService = Depends(get_signal_service),
):
    try:
        return await service.signal_stats(signal_type, exclude_types, exclude_source_names)

    except Exception as e:
        handle_route_error("signal_stats_api", e)
        raise HTTPException(status_code=500, detail="Failed to compute signal stats")


@router.get("/api/intervened")
async def intervened_signals_api(service: SignalCrudService = Depends(get_signal_service)):
    try:
        return {"signal_ids": await service.intervened_signal_ids()}

    except Exception as e:
        handle_route_error("intervened_signals_api", e)
        raise HTTPException(status_code=500, detail="Failed to list intervened signals")


@router.post("", status_code=201)
async def create_signal(
    signal_data: SignalCreate,
    db: AsyncSession = Depends(get_db),
    service: SignalCrudService = Depends(get_signal_service),
    current_user: AuditContext = Depends(get_current_user),
):
    try:
        signal = await service.create_signal(signal_data.model_dump(), current_user)
        await commit_transaction(db, "create_signal")

        logger.info("Signal created via API", signal_id=signal.id, user_email=current_user.user_email)
        return signal.to_dict()

    except SalesIntelligenceError as e:
        raise http_error("create_signal", e)
    except HTTPException:
        raise
    except Exception as e:
        handle_route_error("create_signal", e)
        raise HTTPException(status_code=500, detail="Failed to create signal")


@router.get("/{signal_id}")
async def get_signal(
    signal_id: str,
    service: SignalCrudService = Depends(get_signal_service),
):
    """Signal details, with the publication date of its source article."""
    try:
        return await service.get_signal_detail(signal_id)

    except SalesIntelligenceError as e:
        raise http_error("get_signal", e)
    except Exception as e:
        handle_route_error("get_signal", e, signal_id=signal_id)
        raise HTTPException(status_code=500, detail="Failed to get signal")


@router.patch("/{signal_id}")
async def update_signal(
    signal_id: str,
    signal_data: SignalUpdate,
    db: AsyncSession = Depends(get_db),
    service: SignalCrudService = Depends(get_signal_service),
    current_user: AuditContext = Depends(get_current_user),
):
    """Update a signal; status and note changes are logged on its timeline."""
    try:
        signal = await service.update_signal(signal_id, signal_data.changes(), current_user)
        await commit_transaction(db, "update_signal")
        return signal.to_dict()

    except SalesIntelligenceError as e:
        raise http_error("update_signal", e)
    except HTTPException:
        raise
    except Exception as e:
        handle_route_error("update_signal", e, signal_id=signal_id)
        raise HTTPException(status_code=500, detail="Failed to update signal")


@router.delete("/{signal_id}")
async def delete_signal(
    signal_id: str,
    db: AsyncSession = Depends(get_db),
    service: SignalCrudService = Depends(get_signal_service),
    current_user: AuditContext = Depends(get_current_user),
):
    try:
        await service.delete_signal(signal_id)
        await commit_transaction(db, "delete_signal")

        logger.info("Signal deleted via API", signal_id=signal_id, user_email=current_user.user_email)
        return {"success": True, "message": "Signal deleted"}

    except SalesIntelligenceError as e:
        raise http_error("delete_signal", e)
    except HTTPException:
        raise
    except Exception as e:
        handle_route_error("delete_signal", e, signal_id=signal_id)
        raise HTTPException(status_code=500, detail="Failed to delete signal")


@router.put("/{signal_id}/next-action")
async def set_signal_next_action(
    signal_id: str,
    action_data: NextActionUpdate,
    db: AsyncSession = Depends(get_db),
    service: SignalCrudService = Depends(get_signal_service),
    current_user: AuditContext = Depends(get_current_user),
):
    try:
        signal = await service.set_next_action(
            signal_id, action_data.next_action_at, action_data.next_action_note, current_user
        )
        await commit_transaction(db, "set_signal_next_action")
        return signal.to_dict()

    except SalesIntelligenceError as e:
        raise http_error("set_signal_next_action", e)
    except HTTPException:
        raise
    except Exception as e:
        handle_route_error("set_signal_next_action", e, signal_id=signal_id)
        raise HTTPException(status_code=500, detail="Failed to set next action")


@router.get("/{signal_id}/interactions")
async def list_signal_interactions(
    signal_id: str,
    service: SignalCrudService = Depends(get_signal_service),
):
    try:
        await service.get_signal(signal_id)
        interactions = await service.list_interactions(signal_id)
        return {"data": [interaction.to_dict() for interaction in interactions]}

    except SalesIntelligenceError as e:
        raise http_error("list_signal_interactions", e)
    except Exception as e:
        handle_route_error("list_signal_interactions", e, signal_id=signal_id)
        raise HTTPException(status_code=500, detail="Failed to list interactions")


@router.post("/{signal_id}/interactions", status_code=201)
async def create_signal_interaction(
    signal_id: str,
    interaction_data: SignalInteractionCreate,
    db: AsyncSession = Depends(get_db),
    service: SignalCrudService = Depends(get_signal_service),
    current_user: AuditContext = Depends(get_current_user),
):
    try:
        interaction = await service.create_interaction(signal_id, interaction_data.model_dump(), current_user)
        await commit_transaction(db, "create_signal_interaction")
        return interaction.to_dict()

    except SalesIntelligenceError as e:
        raise http_error("create_signal_interaction", e)
    except HTTPException:
        raise
    except Exception as e:
        handle_route_error("create_signal_interaction", e, signal_id=signal_id)
        raise HTTPException(status_code=500, detail="Failed to create interaction")
