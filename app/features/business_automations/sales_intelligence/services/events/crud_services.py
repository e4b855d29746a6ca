"""
Event CRUD service for Sales Intelligence.

Trade shows and networking events the sales team attends, the people met
there, and events detected by scrapers waiting to be added to the calendar.
"""

from typing import Dict, List, Optional, Tuple, Any

from app.features.core.sqlalchemy_imports import *
from app.features.core.enhanced_base_service import BaseService
from app.features.core.audit_mixin import AuditContext
from app.features.business_automations.sales_intelligence.constants import DEFAULT_EVENT_LOCATION
from app.features.business_automations.sales_intelligence.exceptions import (
    InvalidStateError,
    NotFoundError,
    SalesIntelligenceError,
)
from app.features.business_automations.sales_intelligence.models import (
    Contact,
    DetectedEvent,
    Event,
    EventContact,
    Signal,
)
from app.features.business_automations.sales_intelligence.utils.dates import month_bounds

logger = get_logger(__name__)

EVENT_FIELDS = {
    "name", "type", "date_start", "date_end", "location", "address",
    "description", "website_url", "notes", "status",
}
EVENT_CONTACT_FIELDS = {
    "first_name", "last_name", "full_name", "company_name", "job_title",
    "email", "phone", "linkedin_url", "notes", "outreach_status",
}


class EventCrudService(BaseService[Event]):
    """Service for events, their contacts and detected events."""

    # === EVENTS ===

    async def list_events(
        self,
        status: Optional[str] = None,
        event_type: Optional[str] = None,
        search: Optional[str] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> Tuple[List[Event], int]:
        stmt = self.create_base_query(Event)
        if status:
            stmt = stmt.where(Event.status == status)
        if event_type:
            stmt = stmt.where(Event.type == event_type)
        if search:
            stmt = self.apply_search_filters(stmt, Event, search, ["name", "location"])
        stmt = stmt.order_by(Event.date_start.asc())
        return await self.paginate(stmt, limit, offset)

    async def get_event(self, event_id: str) -> Event:
        event = await self.get_by_id(Event, event_id)
        if not event:
            raise NotFoundError("Event", event_id)
        return event

    async def create_event(self, data: Dict[str, Any], user: Optional[AuditContext] = None) -> Event:
        try:
            event = Event(
                tenant_id=self.write_tenant_id,
                name=data["name"],
                type=data.get("type") or "salon",
                date_start=data["date_start"],
                date_end=data.get("date_end"),
                location=data.get("location") or DEFAULT_EVENT_LOCATION,
                address=data.get("address"),
                description=data.get("description"),
                website_url=data.get("website_url"),
                notes=data.get("notes"),
                status=data.get("status") or "planned",
                contacts_count=0,
            )
            event.stamp_created(user)
            await self.persist(event)

            self.log_operation("event_creation", {"event_id": event.id, "name": event.name})
            return event

        except SalesIntelligenceError:
            raise
        except Exception as e:
            await self.handle_error("create_event", e, name=data.get("name"))

    async def update_event(self, event_id: str, updates: Dict[str, Any],
                           user: Optional[AuditContext] = None) -> Event:
        try:
            event = await self.get_event(event_id)
            changes = self.apply_updates(event, updates, EVENT_FIELDS)
            if changes:
                event.stamp_updated(user)
                await self.persist(event)
                self.log_operation("event_update", {"event_id": event_id, "fields": list(changes)})
            return event

        except SalesIntelligenceError:
            raise
        except Exception as e:
            await self.handle_error("update_event", e, event_id=event_id)

    async def delete_event(self, event_id: str) -> None:
        try:
            event = await self.get_event(event_id)
            await self.db.execute(delete(EventContact).where(EventContact.event_id == event_id))
            await self.db.execute(
                update(DetectedEvent).where(DetectedEvent.event_id == event_id).values(event_id=None)
            )
            await self.db.delete(event)
            await self.db.flush()
            self.log_operation("event_deletion", {"event_id": event_id})

        except SalesIntelligenceError:
            raise
        except Exception as e:
            await self.handle_error("delete_event", e, event_id=event_id)

    async def event_stats(self, today: Optional[date] = None) -> Dict[str, int]:
        today = today or date.today()
        month_start, month_end = month_bounds(today.year, today.month)

        total_contacts_stmt = self.scope(select(func.coalesce(func.sum(Event.contacts_count), 0)), Event)
        return {
            "total": await self.count_where(Event),
            "upcoming": await self.count_where(Event, Event.date_start >= today, Event.status == "planned"),
            "thisMonth": await self.count_where(Event, Event.date_start >= month_start, Event.date_start <= month_end),
            "attended": await self.count_where(Event, Event.status == "attended"),
            "totalContacts": int((await self.db.execute(total_contacts_stmt)).scalar() or 0),
        }

    # === EVENT CONTACTS ===

    async def list_event_contacts(self, event_id: str) -> List[EventContact]:
        await self.get_event(event_id)
        stmt = (
            self.create_base_query(EventContact)
            .where(EventContact.event_id == event_id)
            .order_by(EventContact.created_at.desc())
        )
        return list((await self.db.execute(stmt)).scalars().all())

    async def get_event_contact(self, contact_id: str) -> EventContact:
        contact = await self.get_by_id(EventContact, contact_id)
        if not contact:
            raise NotFoundError("Event contact", contact_id)
        return contact

    async def add_event_contact(self, event_id: str, data: Dict[str, Any],
                                user: Optional[AuditContext] = None) -> EventContact:
        """
        Add a person met at an event.

        With ``contact_id`` in ``data`` the person is copied from an existing contact;
        explicit fields in ``data`` take precedence over the copied ones.
        """
        try:
            event = await self.get_event(event_id)
            values = {}

            source_contact_id = data.get("contact_id")
            if source_contact_id:
                source = await self.get_by_id(Contact, source_contact_id)
                if not source:
                    raise NotFoundError("Contact", source_contact_id)
                values = {
                    "first_name": source.first_name,
                    "last_name": source.last_name,
                    "full_name": source.full_name,
                    "job_title": source.job_title,
                    "email": source.email_principal,
                    "phone": source.phone,
                    "linkedin_url": source.linkedin_url,
                    "notes": source.notes,
                }
                if source.signal_id:
                    signal = await self.get_by_id(Signal, source.signal_id)
                    values["company_name"] = signal.company_name if signal else None

            values.update({k: v for k, v in data.items() if k in EVENT_CONTACT_FIELDS and v is not None})
            if not values.get("full_name"):
                values["full_name"] = " ".join(
                    part for part in (values.get("first_name"), values.get("last_name")) if part
                )
            if not values.get("full_name"):
                raise InvalidStateError("full_name is required")

            contact = EventContact(tenant_id=self.write_tenant_id, event_id=event_id, **values)
            contact.outreach_status = contact.outreach_status or "new"
            contact.stamp_created(user)
            self.db.add(contact)

            event.contacts_count = (event.contacts_count or 0) + 1
            await self.db.flush()
            await self.db.refresh(contact)

            self.log_operation("event_contact_creation", {"event_id": event_id, "contact_id": contact.id})
            return contact

        except SalesIntelligenceError:
            raise
        except Exception as e:
            await self.handle_error("add_event_contact", e, event_id=event_id)

    async def update_event_contact(self, contact_id: str, updates: Dict[str, Any],
                                   user: Optional[AuditContext] = None) -> EventContact:
        try:
            contact = await self.get_event_contact(contact_id)
            if self.apply_updates(contact, updates, EVENT_CONTACT_FIELDS):
                contact.stamp_updated(user)
                await self.persist(contact)
            return contact

        except SalesIntelligenceError:
            raise
        except Exception as e:
            await self.handle_error("update_event_contact", e, contact_id=contact_id)

    async def delete_event_contact(self, contact_id: str) -> None:
        try:
            contact = await self.get_event_contact(contact_id)
            event = await self.get_by_id(Event, contact.event_id)
            if event is not None:
                event.contacts_count = max(0, (event.contacts_count or 0) - 1)

            await self.db.delete(contact)
            await self.db.flush()
            self.log_operation("event_contact_deletion", {"contact_id": contact_id})

        except SalesIntelligenceError:
            raise
        except Exception as e:
            await self.handle_error("delete_event_contact", e, contact_id=contact_id)

    # === DETECTED EVENTS ===

    async def list_detected_events(self, include_added: bool = True, limit: Optional[int] = None,
                                   offset: int = 0) -> Tuple[List[DetectedEvent], int]:
        stmt = self.create_base_query(DetectedEvent)
        if not include_added:
            stmt = stmt.where(DetectedEvent.is_added.is_(False))
        stmt = stmt.order_by(DetectedEvent.detected_at.desc())
        return await self.paginate(stmt, limit, offset)

    async def transfer_detected_event(self, detected_id: str, overrides: Optional[Dict[str, Any]] = None,
                                      user: Optional[AuditContext] = None) -> Event:
        """Add a detected event to the calendar."""
        detected = await self.get_by_id(DetectedEvent, detected_id)
        if not detected:
            raise NotFoundError("Detected event", detected_id)
        if detected.is_added:
            raise InvalidStateError("Event already added")

        overrides = {k: v for k, v in (overrides or {}).items() if v is not None}
        data = {
            "name": detected.name,
            "type": detected.type or "salon",
            "date_start": detected.date_start or date.today(),
            "date_end": detected.date_end,
            "location": detected.location or DEFAULT_EVENT_LOCATION,
            "description": detected.description,
            "website_url": detected.source_url,
            "status": "planned",
            **overrides,
        }
        event = await self.create_event(data, user)

        detected.is_added = True
        detected.event_id = event.id
        detected.stamp_updated(user)
        await self.db.flush()

        self.log_operation("detected_event_transfer", {"detected_id": detected_id, "event_id": event.id})
        return event
