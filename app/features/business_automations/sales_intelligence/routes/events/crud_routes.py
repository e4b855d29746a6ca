"""
Event CRUD API routes for Sales Intelligence.

Handles:
- GET/POST / - Events ordered by start date
- GET /api/stats - Event counters
- GET /detected/list, POST /detected/{detected_id}/transfer - Detected events
- PATCH/DELETE /contacts/{contact_id} - Event contacts
- GET/PATCH/DELETE /{event_id}, GET/POST /{event_id}/contacts
"""

from app.features.core.route_imports import *
from app.features.business_automations.sales_intelligence.dependencies import get_event_service, http_error
from app.features.business_automations.sales_intelligence.exceptions import SalesIntelligenceError
from app.features.business_automations.sales_intelligence.schemas import (
    DetectedEventTransfer,
    EventContactCreate,
    EventContactUpdate,
    EventCreate,
    EventUpdate,
)
from app.features.business_automations.sales_intelligence.services.events import EventCrudService

logger = get_logger(__name__)
router = APIRouter()


@router.get("")
async def list_events(
    status: Optional[str] = None,
    type: Optional[str] = None,
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    size: int = Query(100, ge=1, le=500),
    service: EventCrudService = Depends(get_event_service),
):
    try:
        events, total = await service.list_events(status, type, search, limit=size, offset=(page - 1) * size)
        return tabulator_response(events, total, size)

    except Exception as e:
        handle_route_error("list_events", e)
        raise HTTPException(status_code=500, detail="Failed to list events")


@router.post("", status_code=201)
async def create_event(
    event_data: EventCreate,
    db: AsyncSession = Depends(get_db),
    service: EventCrudService = Depends(get_event_service),
    current_user: AuditContext = Depends(get_current_user),
):
    try:
        event = await service.create_event(event_data.model_dump(), current_user)
        await commit_transaction(db, "create_event")
        return event.to_dict()

    except SalesIntelligenceError as e:
        raise http_error("create_event", e)
    except HTTPException:
        raise
    except Exception as e:
        handle_route_error("create_event", e)
        raise HTTPException(status_code=500, detail="Failed to create event")


@router.get("/api/stats")
async def event_stats(service: EventCrudService = Depends(get_event_service)):
    try:
        return await service.event_stats()

    except Exception as e:
        handle_route_error("event_stats", e)
        raise HTTPException(status_code=500, detail="Failed to compute event stats")


# === DETECTED EVENTS ===

@router.get("/detected/list")
async def list_detected_events(
    include_added: bool = True,
    page: int = Query(1, ge=1),
    size: int = Query(100, ge=1, le=500),
    service: EventCrudService = Depends(get_event_service),
):
    try:
        items, total = await service.list_detected_events(include_added, limit=size, offset=(page - 1) * size)
        return tabulator_response(items, total, size)

    except Exception as e:
        handle_route_error("list_detected_events", e)
        raise HTTPException(status_code=500, detail="Failed to list detected events")


@router.post("/detected/{detected_id}/transfer", status_code=201)
async def transfer_detected_event(
    detected_id: str,
    overrides: Optional[DetectedEventTransfer] = None,
    db: AsyncSession = Depends(get_db),
    service: EventCrudService = Depends(get_event_service),
    current_user: AuditContext = Depends(get_current_user),
):
    """Add a detected event to the calendar."""
    try:
        event = await service.transfer_detected_event(
            detected_id, overrides.model_dump() if overrides else None, current_user
        )
        await commit_transaction(db, "transfer_detected_event")
        return event.to_dict()

    except SalesIntelligenceError as e:
        raise http_error("transfer_detected_event", e)
    except HTTPException:
        raise
    except Exception as e:
        handle_route_error("transfer_detected_event", e, detected_id=detected_id)
        raise HTTPException(status_code=500, detail="Failed to transfer detected event")


# === EVENT CONTACTS ===

@router.patch("/contacts/{contact_id}")
async def update_event_contact(
    contact_id: str,
    contact_data: EventContactUpdate,
    db: AsyncSession = Depends(get_db),
    service: EventCrudService = Depends(get_event_service),
    current_user: AuditContext = Depends(get_current_user),
):
    try:
        contact = await service.update_event_contact(contact_id, contact_data.changes(), current_user)
        await commit_transaction(db, "update_event_contact")
        return contact.to_dict()

    except SalesIntelligenceError as e:
        raise http_error("update_event_contact", e)
    except HTTPException:
        raise
    except Exception as e:
        handle_route_error("update_event_contact", e, contact_id=contact_id)
        raise HTTPException(status_code=500, detail="Failed to update event contact")


@router.delete("/contacts/{contact_id}")
async def delete_event_contact(
    contact_id: str,
    db: AsyncSession = Depends(get_db),
    service: EventCrudService = Depends(get_event_service),
):
    try:
        await service.delete_event_contact(contact_id)
        await commit_transaction(db, "delete_event_contact")
        return {"success": True, "message": "Event contact deleted"}

    except SalesIntelligenceError as e:
        raise http_error("delete_event_contact", e)
    except HTTPException:
        raise
    except Exception as e:
        handle_route_error("delete_event_contact", e, contact_id=contact_id)
        raise HTTPException(status_code=500, detail="Failed to delete event contact")


# === EVENT DETAIL ===

@router.get("/{event_id}")
async def get_event(
    event_id: str,
    service: EventCrudService = Depends(get_event_service),
):
    try:
        event = await service.get_event(event_id)
        return event.to_dict()

    except SalesIntelligenceError as e:
        raise http_error("get_event", e)
    except Exception as e:
        handle_route_error("get_event", e, event_id=event_id)
        raise HTTPException(status_code=500, detail="Failed to get event")


@router.patch("/{event_id}")
async def update_event(
    event_id: str,
    event_data: EventUpdate,
    db: AsyncSession = Depends(get_db),
    service: EventCrudService = Depends(get_event_service),
    current_user: AuditContext = Depends(get_current_user),
):
    try:
        event = await service.update_event(event_id, event_data.changes(), current_user)
        await commit_transaction(db, "update_event")
        return event.to_dict()

    except SalesIntelligenceError as e:
        raise http_error("update_event", e)
    except HTTPException:
        raise
    except Exception as e:
        handle_route_error("update_event", e, event_id=event_id)
        raise HTTPException(status_code=500, detail="Failed to update event")


@router.delete("/{event_id}")
async def delete_event(
    event_id: str,
    db: AsyncSession = Depends(get_db),
    service: EventCrudService = Depends(get_event_service),
):
    try:
        await service.delete_event(event_id)
        await commit_transaction(db, "delete_event")
        return {"success": True, "message": "Event deleted"}

    except SalesIntelligenceError as e:
        raise http_error("delete_event", e)
    except HTTPException:
        raise
    except Exception as e:
        handle_route_error("delete_event", e, event_id=event_id)
        raise HTTPException(status_code=500, detail="Failed to delete event")


@router.get("/{event_id}/contacts")
async def list_event_contacts(
    event_id: str,
    service: EventCrudService = Depends(get_event_service),
):
    try:
        contacts = await service.list_event_contacts(event_id)
        return {"data": [contact.to_dict() for contact in contacts]}

    except SalesIntelligenceError as e:
        raise http_error("list_event_contacts", e)
    except Exception as e:
        handle_route_error("list_event_contacts", e, event_id=event_id)
        raise HTTPException(status_code=500, detail="Failed to list event contacts")


@router.post("/{event_id}/contacts", status_code=201)
async def add_event_contact(
    event_id: str,
    contact_data: EventContactCreate,
    db: AsyncSession = Depends(get_db),
    service: EventCrudService = Depends(get_event_service),
    current_user: AuditContext = Depends(get_current_user),
):
    try:
        contact = await service.add_event_contact(event_id, contact_data.model_dump(), current_user)
        await commit_transaction(db, "add_event_contact")
        return contact.to_dict()

    except SalesIntelligenceError as e:
        raise http_error("add_event_contact", e)
    except HTTPException:
        raise
    except Exception as e:
        handle_route_error("add_event_contact", e, event_id=event_id)
        raise HTTPException(status_code=500, detail="Failed to add event contact")
