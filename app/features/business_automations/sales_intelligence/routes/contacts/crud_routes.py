"""
Contact CRUD API routes for Sales Intelligence.

Handles:
- GET /api/list - List contacts (for Tabulator)
- GET /api/intervened - Ids of contacts with at least one interaction
- POST / - Create contact
- GET/PATCH/DELETE /{contact_id} - Contact details, update, delete
- PUT /{contact_id}/next-action - Schedule a follow-up
- GET/POST /{contact_id}/interactions - Timeline
"""

from app.features.core.route_imports import *
from app.features.business_automations.sales_intelligence.dependencies import get_contact_service, http_error
from app.features.business_automations.sales_intelligence.exceptions import SalesIntelligenceError
from app.features.business_automations.sales_intelligence.schemas import (
    ContactCreate,
    ContactInteractionCreate,
    ContactUpdate,
    NextActionUpdate,
)
from app.features.business_automations.sales_intelligence.services.contacts import ContactCrudService

logger = get_logger(__name__)
router = APIRouter()


@router.get("/api/list")
async def list_contacts_api(
    status: Optional[str] = None,
    search: Optional[str] = None,
    signal_id: Optional[str] = None,
    priority_only: bool = False,
    source: Optional[str] = None,
    page: int = Query(1, ge=1),
    size: int = Query(50, ge=1, le=500),
    service: ContactCrudService = Depends(get_contact_service),
):
    """
    List contacts for Tabulator table.

    Returns:
        JSON response with contacts and pagination
    """
    try:
        contacts, total = await service.list_contacts(
            status=status,
            search=search,
            signal_id=signal_id,
            priority_only=priority_only,
            source=source,
            limit=size,
            offset=(page - 1) * size,
        )
        return tabulator_response(contacts, total, size)

    except Exception as e:
        handle_route_error("list_contacts_api", e)
        raise HTTPException(status_code=500, detail="Failed to list contacts")


@router.get("/api/intervened")
async def intervened_contacts_api(service: ContactCrudService = Depends(get_contact_service)):
    try:
        return {"contact_ids": await service.intervened_contact_ids()}

    except Exception as e:
        handle_route_error("intervened_contacts_api", e)
        raise HTTPException(status_code=500, detail="Failed to list intervened contacts")


@router.post("", status_code=201)
async def create_contact(
    contact_data: ContactCreate,
    db: AsyncSession = Depends(get_db),
    service: ContactCrudService = Depends(get_contact_service),
    current_user: AuditContext = Depends(get_current_user),
):
    try:
        contact = await service.create_contact(contact_data.model_dump(), current_user)
        await commit_transaction(db, "create_contact")

        logger.info("Contact created via API", contact_id=contact.id, user_email=current_user.user_email)
        return contact.to_dict()

    except SalesIntelligenceError as e:
        raise http_error("create_contact", e)
    except HTTPException:
        raise
    except Exception as e:
        handle_route_error("create_contact", e)
        raise HTTPException(status_code=500, detail="Failed to create contact")


@router.get("/{contact_id}")
async def get_contact(
    contact_id: str,
    service: ContactCrudService = Depends(get_contact_service),
):
    try:
        contact = await service.get_contact(contact_id)
        return contact.to_dict()

    except SalesIntelligenceError as e:
        raise http_error("get_contact", e)
    except Exception as e:
        handle_route_error("get_contact", e, contact_id=contact_id)
        raise HTTPException(status_code=500, detail="Failed to get contact")


@router.patch("/{contact_id}")
async def update_contact(
    contact_id: str,
    contact_data: ContactUpdate,
    db: AsyncSession = Depends(get_db),
    service: ContactCrudService = Depends(get_contact_service),
    current_user: AuditContext = Depends(get_current_user),
):
    try:
        contact = await service.update_contact(contact_id, contact_data.changes(), current_user)
        await commit_transaction(db, "update_contact")
        return contact.to_dict()

    except SalesIntelligenceError as e:
        raise http_error("update_contact", e)
    except HTTPException:
        raise
    except Exception as e:
        handle_route_error("update_contact", e, contact_id=contact_id)
        raise HTTPException(status_code=500, detail="Failed to update contact")


@router.delete("/{contact_id}")
async def delete_contact(
    contact_id: str,
    db: AsyncSession = Depends(get_db),
    service: ContactCrudService = Depends(get_contact_service),
    current_user: AuditContext = Depends(get_current_user),
):
    try:
        await service.delete_contact(contact_id)
        await commit_transaction(db, "delete_contact")

        logger.info("Contact deleted via API", contact_id=contact_id, user_email=current_user.user_email)
        return {"success": True, "message": "Contact deleted"}

    except SalesIntelligenceError as e:
        raise http_error("delete_contact", e)
    except HTTPException:
        raise
    except Exception as e:
        handle_route_error("delete_contact", e, contact_id=contact_id)
        raise HTTPException(status_code=500, detail="Failed to delete contact")


@router.put("/{contact_id}/next-action")
async def set_contact_next_action(
    contact_id: str,
    action_data: NextActionUpdate,
    db: AsyncSession = Depends(get_db),
    service: ContactCrudService = Depends(get_contact_service),
    current_user: AuditContext = Depends(get_current_user),
):
    try:
        contact = await service.set_next_action(
            contact_id, action_data.next_action_at, action_data.next_action_note, current_user
        )
        await commit_transaction(db, "set_contact_next_action")
        return contact.to_dict()

    except SalesIntelligenceError as e:
        raise http_error("set_contact_next_action", e)
    except HTTPException:
        raise
    except Exception as e:
        handle_route_error("set_contact_next_action", e, contact_id=contact_id)
        raise HTTPException(status_code=500, detail="Failed to set next action")


@router.get("/{contact_id}/interactions")
async def list_contact_interactions(
    contact_id: str,
    service: ContactCrudService = Depends(get_contact_service),
):
    try:
        await service.get_contact(contact_id)
        interactions = await service.list_interactions(contact_id)
        return {"data": [interaction.to_dict() for interaction in interactions]}

    except SalesIntelligenceError as e:
        raise http_error("list_contact_interactions", e)
    except Exception as e:
        handle_route_error("list_contact_interactions", e, contact_id=contact_id)
        raise HTTPException(status_code=500, detail="Failed to list interactions")


@router.post("/{contact_id}/interactions", status_code=201)
async def create_contact_interaction(
    contact_id: str,
    interaction_data: ContactInteractionCreate,
    db: AsyncSession = Depends(get_db),
    service: ContactCrudService = Depends(get_contact_service),
    current_user: AuditContext = Depends(get_current_user),
):
    try:
        interaction = await service.create_interaction(contact_id, interaction_data.model_dump(), current_user)
        await commit_transaction(db, "create_contact_interaction")
        return interaction.to_dict()

    except SalesIntelligenceError as e:
        raise http_error("create_contact_interaction", e)
    except HTTPException:
        raise
    except Exception as e:
        handle_route_error("create_contact_interaction", e, contact_id=contact_id)
        raise HTTPException(status_code=500, detail="Failed to create interaction")
