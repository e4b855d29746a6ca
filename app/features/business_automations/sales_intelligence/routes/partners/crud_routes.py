"""
Partner house and news API routes for Sales Intelligence.

Handles:
- GET/POST /houses, GET/PATCH/DELETE /houses/{house_id}
- GET/POST /news, PATCH/DELETE /news/{news_id}
"""

from app.features.core.route_imports import *
from app.features.business_automations.sales_intelligence.dependencies import get_partner_service, http_error
from app.features.business_automations.sales_intelligence.exceptions import SalesIntelligenceError
from app.features.business_automations.sales_intelligence.schemas import (
    PartnerHouseCreate,
    PartnerHouseUpdate,
    PartnerNewsCreate,
    PartnerNewsUpdate,
)
from app.features.business_automations.sales_intelligence.services.partners import PartnerCrudService

logger = get_logger(__name__)
router = APIRouter()


# === HOUSES ===

@router.get("/houses")
async def list_houses(
    active_only: bool = False,
    category: Optional[str] = None,
    service: PartnerCrudService = Depends(get_partner_service),
):
    try:
        houses = await service.list_houses(active_only, category)
        return {"data": [house.to_dict() for house in houses]}

    except Exception as e:
        handle_route_error("list_houses", e)
        raise HTTPException(status_code=500, detail="Failed to list partner houses")


@router.post("/houses", status_code=201)
async def create_house(
    house_data: PartnerHouseCreate,
    db: AsyncSession = Depends(get_db),
    service: PartnerCrudService = Depends(get_partner_service),
    current_user: AuditContext = Depends(get_current_user),
):
    try:
        house = await service.create_house(house_data.model_dump(), current_user)
        await commit_transaction(db, "create_house")
        return house.to_dict()

    except SalesIntelligenceError as e:
        raise http_error("create_house", e)
    except HTTPException:
        raise
    except Exception as e:
        handle_route_error("create_house", e)
        raise HTTPException(status_code=500, detail="Failed to create partner house")


@router.get("/houses/{house_id}")
async def get_house(
    house_id: str,
    service: PartnerCrudService = Depends(get_partner_service),
):
    try:
        house = await service.get_house(house_id)
        return house.to_dict()

    except SalesIntelligenceError as e:
        raise http_error("get_house", e)
    except Exception as e:
        handle_route_error("get_house", e, house_id=house_id)
        raise HTTPException(status_code=500, detail="Failed to get partner house")


@router.patch("/houses/{house_id}")
async def update_house(
    house_id: str,
    house_data: PartnerHouseUpdate,
    db: AsyncSession = Depends(get_db),
    service: PartnerCrudService = Depends(get_partner_service),
    current_user: AuditContext = Depends(get_current_user),
):
    try:
        house = await service.update_house(house_id, house_data.changes(), current_user)
        await commit_transaction(db, "update_house")
        return house.to_dict()

    except SalesIntelligenceError as e:
        raise http_error("update_house", e)
    except HTTPException:
        raise
    except Exception as e:
        handle_route_error("update_house", e, house_id=house_id)
        raise HTTPException(status_code=500, detail="Failed to update partner house")


@router.delete("/houses/{house_id}")
async def delete_house(
    house_id: str,
    db: AsyncSession = Depends(get_db),
    service: PartnerCrudService = Depends(get_partner_service),
):
    """Delete a house together with its news."""
    try:
        await service.delete_house(house_id)
        await commit_transaction(db, "delete_house")
        return {"success": True, "message": "Partner house deleted"}

    except SalesIntelligenceError as e:
        raise http_error("delete_house", e)
    except HTTPException:
        raise
    except Exception as e:
        handle_route_error("delete_house", e, house_id=house_id)
        raise HTTPException(status_code=500, detail="Failed to delete partner house")


# === NEWS ===

@router.get("/news")
async def list_news(
    house_id: Optional[str] = None,
    featured_only: bool = False,
    news_type: Optional[str] = None,
    page: int = Query(1, ge=1),
    size: int = Query(50, ge=1, le=500),
    service: PartnerCrudService = Depends(get_partner_service),
):
    try:
        news, total = await service.list_news(
            house_id, featured_only, news_type, limit=size, offset=(page - 1) * size
        )
        return tabulator_response(news, total, size)

    except Exception as e:
        handle_route_error("list_news", e)
        raise HTTPException(status_code=500, detail="Failed to list partner news")


@router.post("/news", status_code=201)
async def create_news(
    news_data: PartnerNewsCreate,
    db: AsyncSession = Depends(get_db),
    service: PartnerCrudService = Depends(get_partner_service),
    current_user: AuditContext = Depends(get_current_user),
):
    try:
        news = await service.create_news(news_data.model_dump(), current_user)
        await commit_transaction(db, "create_news")
        return news.to_dict()

    except SalesIntelligenceError as e:
        raise http_error("create_news", e)
    except HTTPException:
        raise
    except Exception as e:
        handle_route_error("create_news", e)
        raise HTTPException(status_code=500, detail="Failed to create partner news")


@router.patch("/news/{news_id}")
async def update_news(
    news_id: str,
    news_data: PartnerNewsUpdate,
    db: AsyncSession = Depends(get_db),
    service: PartnerCrudService = Depends(get_partner_service),
    current_user: AuditContext = Depends(get_current_user),
):
    try:
        news = await service.update_news(news_id, news_data.changes(), current_user)
        await commit_transaction(db, "update_news")
        return news.to_dict()

    except SalesIntelligenceError as e:
        raise http_error("update_news", e)
    except HTTPException:
        raise
    except Exception as e:
        handle_route_error("update_news", e, news_id=news_id)
        raise HTTPException(status_code=500, detail="Failed to update partner news")


@router.delete("/news/{news_id}")
async def delete_news(
    news_id: str,
    db: AsyncSession = Depends(get_db),
    service: PartnerCrudService = Depends(get_partner_service),
):
    try:
        await service.delete_news(news_id)
        await commit_transaction(db, "delete_news")
        return {"success": True, "message": "Partner news deleted"}

    except SalesIntelligenceError as e:
        raise http_error("delete_news", e)
    except HTTPException:
        raise
    except Exception as e:
        handle_route_error("delete_news", e, news_id=news_id)
        raise HTTPException(status_code=500, detail="Failed to delete partner news")
