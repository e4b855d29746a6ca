"""
Settings API routes for Sales Intelligence.

Handles:
- GET / - All settings of the tenant as a key/value map
- GET/POST /search-queries, PATCH/DELETE /search-queries/{query_id}
- POST /search-queries/{query_id}/toggle
- PUT /{key} - Create or replace one setting
"""

from app.features.core.route_imports import *
from app.features.business_automations.sales_intelligence.dependencies import get_settings_service, http_error
from app.features.business_automations.sales_intelligence.exceptions import SalesIntelligenceError
from app.features.business_automations.sales_intelligence.schemas import (
    SearchQueryCreate,
    SearchQueryUpdate,
    SettingUpdate,
)
from app.features.business_automations.sales_intelligence.services.settings import SettingsService

logger = get_logger(__name__)
router = APIRouter()


@router.get("")
async def get_settings(service: SettingsService = Depends(get_settings_service)):
    try:
        return await service.get_all()

    except Exception as e:
        handle_route_error("get_settings", e)
        raise HTTPException(status_code=500, detail="Failed to load settings")


# === SEARCH QUERIES ===

@router.get("/search-queries")
async def list_search_queries(
    active_only: bool = False,
    service: SettingsService = Depends(get_settings_service),
):
    try:
        queries = await service.list_search_queries(active_only)
        return {"data": [query.to_dict() for query in queries]}

    except Exception as e:
        handle_route_error("list_search_queries", e)
        raise HTTPException(status_code=500, detail="Failed to list search queries")


@router.post("/search-queries", status_code=201)
async def create_search_query(
    query_data: SearchQueryCreate,
    db: AsyncSession = Depends(get_db),
    service: SettingsService = Depends(get_settings_service),
    current_user: AuditContext = Depends(get_current_user),
):
    try:
        query = await service.create_search_query(query_data.model_dump(), current_user)
        await commit_transaction(db, "create_search_query")
        return query.to_dict()

    except SalesIntelligenceError as e:
        raise http_error("create_search_query", e)
    except HTTPException:
        raise
    except Exception as e:
        handle_route_error("create_search_query", e)
        raise HTTPException(status_code=500, detail="Failed to create search query")


@router.patch("/search-queries/{query_id}")
async def update_search_query(
    query_id: str,
    query_data: SearchQueryUpdate,
    db: AsyncSession = Depends(get_db),
    service: SettingsService = Depends(get_settings_service),
    current_user: AuditContext = Depends(get_current_user),
):
    try:
        query = await service.update_search_query(query_id, query_data.changes(), current_user)
        await commit_transaction(db, "update_search_query")
        return query.to_dict()

    except SalesIntelligenceError as e:
        raise http_error("update_search_query", e)
    except HTTPException:
        raise
    except Exception as e:
        handle_route_error("update_search_query", e, query_id=query_id)
        raise HTTPException(status_code=500, detail="Failed to update search query")


@router.post("/search-queries/{query_id}/toggle")
async def toggle_search_query(
    query_id: str,
    db: AsyncSession = Depends(get_db),
    service: SettingsService = Depends(get_settings_service),
    current_user: AuditContext = Depends(get_current_user),
):
    try:
        query = await service.toggle_search_query(query_id, current_user)
        await commit_transaction(db, "toggle_search_query")
        return query.to_dict()

    except SalesIntelligenceError as e:
        raise http_error("toggle_search_query", e)
    except HTTPException:
        raise
    except Exception as e:
        handle_route_error("toggle_search_query", e, query_id=query_id)
        raise HTTPException(status_code=500, detail="Failed to toggle search query")


@router.delete("/search-queries/{query_id}")
async def delete_search_query(
    query_id: str,
    db: AsyncSession = Depends(get_db),
    service: SettingsService = Depends(get_settings_service),
):
    try:
        await service.delete_search_query(query_id)
        await commit_transaction(db, "delete_search_query")
        return {"success": True, "message": "Search query deleted"}

    except SalesIntelligenceError as e:
        raise http_error("delete_search_query", e)
    except HTTPException:
        raise
    except Exception as e:
        handle_route_error("delete_search_query", e, query_id=query_id)
        raise HTTPException(status_code=500, detail="Failed to delete search query")


# === SINGLE SETTING ===

@router.put("/{key}")
async def update_setting(
    key: str,
    setting_data: SettingUpdate,
    db: AsyncSession = Depends(get_db),
    service: SettingsService = Depends(get_settings_service),
    current_user: AuditContext = Depends(get_current_user),
):
    """Store one setting; lists and objects are serialised as JSON."""
    try:
        setting = await service.upsert_setting(key, setting_data.value, current_user)
        await commit_transaction(db, "update_setting")
        return setting.to_dict()

    except SalesIntelligenceError as e:
        raise http_error("update_setting", e)
    except HTTPException:
        raise
    except Exception as e:
        handle_route_error("update_setting", e, key=key)
        raise HTTPException(status_code=500, detail="Failed to update setting")
