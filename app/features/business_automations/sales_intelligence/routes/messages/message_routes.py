"""
Outreach message API routes for Sales Intelligence.

Handles:
- POST /generate - Draft an InMail or an email with Claude
- GET/POST /feedback - List or store edited versions of drafts
- GET /tonal-charter, POST /tonal-charter/analyze - Learned writing preferences
- PUT /tonal-charter/learning, POST /tonal-charter/reset
"""

from app.features.core.route_imports import *
from app.features.business_automations.sales_intelligence.dependencies import get_message_service, http_error
from app.features.business_automations.sales_intelligence.exceptions import SalesIntelligenceError
from app.features.business_automations.sales_intelligence.schemas import (
    MessageFeedbackCreate,
    MessageGenerateRequest,
    TonalCharterLearningUpdate,
)
from app.features.business_automations.sales_intelligence.services.messages import MessageService
from app.features.business_automations.sales_intelligence.tasks import update_tonal_charter_task

logger = get_logger(__name__)
router = APIRouter()


@router.post("/generate")
async def generate_message(
    message_request: MessageGenerateRequest,
    db: AsyncSession = Depends(get_db),
    service: MessageService = Depends(get_message_service),
    current_user: AuditContext = Depends(get_current_user),
):
    """
    Generate a contextualised outreach message.

    Returns:
        {"message": str, "subject": str | None}
    """
    try:
        result = await service.generate_message(
            message_type=message_request.type,
            recipient_name=message_request.recipient_name,
            recipient_first_name=message_request.recipient_first_name,
            company_name=message_request.company_name,
            event_detail=message_request.event_detail,
            job_title=message_request.job_title,
            contact_id=message_request.contact_id,
            user=current_user,
        )
        if message_request.contact_id:
            await commit_transaction(db, "generate_message")
        return result

    except SalesIntelligenceError as e:
        raise http_error("generate_message", e)
    except HTTPException:
        raise
    except Exception as e:
        handle_route_error("generate_message", e, type=message_request.type)
        raise HTTPException(status_code=500, detail="Failed to generate message")


@router.post("/feedback", status_code=201)
async def save_message_feedback(
    feedback_data: MessageFeedbackCreate,
    response: Response,
    db: AsyncSession = Depends(get_db),
    tenant_id: str = Depends(tenant_dependency),
    service: MessageService = Depends(get_message_service),
    current_user: AuditContext = Depends(get_current_user),
):
    """
    Store an edited draft as a correction.

    Every fifth correction queues a tonal charter analysis. Nothing is
    stored while learning is paused.
    """
    try:
        result = await service.save_feedback(feedback_data.model_dump(), current_user)
        if not result["success"]:
            response.status_code = 200
            return result

        await commit_transaction(db, "save_message_feedback")
        if result["should_update_charter"]:
            update_tonal_charter_task.delay(tenant_id)

        return {
            "success": True,
            "id": result["feedback"].id,
            "total_corrections": result["total_corrections"],
            "should_update_charter": result["should_update_charter"],
        }

    except SalesIntelligenceError as e:
        raise http_error("save_message_feedback", e)
    except HTTPException:
        raise
    except Exception as e:
        handle_route_error("save_message_feedback", e)
        raise HTTPException(status_code=500, detail="Failed to save feedback")


@router.get("/feedback")
async def list_message_feedback(
    limit: int = Query(10, ge=1, le=100),
    service: MessageService = Depends(get_message_service),
):
    try:
        feedbacks = await service.list_feedback(limit)
        return {"data": [feedback.to_dict() for feedback in feedbacks]}

    except Exception as e:
        handle_route_error("list_message_feedback", e)
        raise HTTPException(status_code=500, detail="Failed to list feedback")


# === TONAL CHARTER ===

@router.get("/tonal-charter")
async def get_tonal_charter(
    db: AsyncSession = Depends(get_db),
    service: MessageService = Depends(get_message_service),
):
    try:
        charter = await service.get_charter()
        await commit_transaction(db, "get_tonal_charter")
        return charter.to_dict()

    except SalesIntelligenceError as e:
        raise http_error("get_tonal_charter", e)
    except HTTPException:
        raise
    except Exception as e:
        handle_route_error("get_tonal_charter", e)
        raise HTTPException(status_code=500, detail="Failed to load tonal charter")


@router.post("/tonal-charter/analyze")
async def analyze_tonal_charter(
    db: AsyncSession = Depends(get_db),
    service: MessageService = Depends(get_message_service),
):
    """Rebuild the charter from every correction now, without waiting for the fifth one."""
    try:
        result = await service.update_tonal_charter()
        await commit_transaction(db, "analyze_tonal_charter")
        return result

    except SalesIntelligenceError as e:
        raise http_error("analyze_tonal_charter", e)
    except HTTPException:
        raise
    except Exception as e:
        handle_route_error("analyze_tonal_charter", e)
        raise HTTPException(status_code=500, detail="Failed to analyze corrections")


@router.put("/tonal-charter/learning")
async def set_tonal_charter_learning(
    learning: TonalCharterLearningUpdate,
    db: AsyncSession = Depends(get_db),
    service: MessageService = Depends(get_message_service),
    current_user: AuditContext = Depends(get_current_user),
):
    try:
        charter = await service.set_learning(learning.enabled, current_user)
        await commit_transaction(db, "set_tonal_charter_learning")
        return charter.to_dict()

    except SalesIntelligenceError as e:
        raise http_error("set_tonal_charter_learning", e)
    except HTTPException:
        raise
    except Exception as e:
        handle_route_error("set_tonal_charter_learning", e)
        raise HTTPException(status_code=500, detail="Failed to update learning")


@router.post("/tonal-charter/reset")
async def reset_tonal_charter(
    db: AsyncSession = Depends(get_db),
    service: MessageService = Depends(get_message_service),
    current_user: AuditContext = Depends(get_current_user),
):
    """Delete every correction and restore the default charter."""
    try:
        charter = await service.reset_charter(current_user)
        await commit_transaction(db, "reset_tonal_charter")
        return charter.to_dict()

    except SalesIntelligenceError as e:
        raise http_error("reset_tonal_charter", e)
    except HTTPException:
        raise
    except Exception as e:
        handle_route_error("reset_tonal_charter", e)
        raise HTTPException(status_code=500, detail="Failed to reset tonal charter")
