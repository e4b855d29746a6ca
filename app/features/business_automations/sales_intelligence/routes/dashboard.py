"""Dashboard API route for Sales Intelligence."""

from app.features.core.route_imports import *
from app.features.business_automations.sales_intelligence.dependencies import get_dashboard_service
from app.features.business_automations.sales_intelligence.services.dashboard import DashboardService

logger = get_logger(__name__)
router = APIRouter()


@router.get("/overview")
async def dashboard_overview(service: DashboardService = Depends(get_dashboard_service)):
    """Signal, event, contact and credit counters for the landing page."""
    try:
        return await service.overview()

    except Exception as e:
        handle_route_error("dashboard_overview", e)
        raise HTTPException(status_code=500, detail="Failed to load dashboard")
