"""
Credit plan and usage API routes for Sales Intelligence.

Handles:
- GET / - Summary for every provider
- GET /{provider} - Summary for one provider
- GET /{provider}/usage - Usage history
- GET /perplexity/stats - Revenue lookup success for the month
- PUT /{provider}/plan - Create or update the provider plan
"""

from app.features.core.route_imports import *
from app.features.business_automations.sales_intelligence.dependencies import get_credit_service, http_error
from app.features.business_automations.sales_intelligence.exceptions import SalesIntelligenceError
from app.features.business_automations.sales_intelligence.schemas import CreditPlanUpdate
from app.features.business_automations.sales_intelligence.services.credits import CreditService

logger = get_logger(__name__)
router = APIRouter()


@router.get("")
async def all_credit_summaries(service: CreditService = Depends(get_credit_service)):
    try:
        return await service.all_summaries()

    except Exception as e:
        handle_route_error("all_credit_summaries", e)
        raise HTTPException(status_code=500, detail="Failed to compute credit summaries")


@router.get("/perplexity/stats")
async def perplexity_stats(service: CreditService = Depends(get_credit_service)):
    try:
        return await service.perplexity_stats()

    except Exception as e:
        handle_route_error("perplexity_stats", e)
        raise HTTPException(status_code=500, detail="Failed to compute Perplexity stats")


@router.get("/{provider}")
async def credit_summary(
    provider: str,
    service: CreditService = Depends(get_credit_service),
):
    try:
        return await service.summary(provider)

    except SalesIntelligenceError as e:
        raise http_error("credit_summary", e)
    except Exception as e:
        handle_route_error("credit_summary", e, provider=provider)
        raise HTTPException(status_code=500, detail="Failed to compute credit summary")


@router.get("/{provider}/usage")
async def credit_usage(
    provider: str,
    limit: int = Query(100, ge=1, le=1000),
    service: CreditService = Depends(get_credit_service),
):
    try:
        usage = await service.usage_history(provider, limit)
        return {"data": [row.to_dict() for row in usage]}

    except SalesIntelligenceError as e:
        raise http_error("credit_usage", e)
    except Exception as e:
        handle_route_error("credit_usage", e, provider=provider)
        raise HTTPException(status_code=500, detail="Failed to load credit usage")


@router.put("/{provider}/plan")
async def update_credit_plan(
    provider: str,
    plan_data: CreditPlanUpdate,
    db: AsyncSession = Depends(get_db),
    service: CreditService = Depends(get_credit_service),
    current_user: AuditContext = Depends(get_current_user),
):
    try:
        plan = await service.update_plan(provider, plan_data.model_dump(exclude_unset=True), current_user)
        await commit_transaction(db, "update_credit_plan")
        return plan.to_dict()

    except SalesIntelligenceError as e:
        raise http_error("update_credit_plan", e)
    except HTTPException:
        raise
    except Exception as e:
        handle_route_error("update_credit_plan", e, provider=provider)
        raise HTTPException(status_code=500, detail="Failed to update credit plan")
