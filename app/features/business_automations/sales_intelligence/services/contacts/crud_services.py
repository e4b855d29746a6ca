"""
Contact CRUD service for Sales Intelligence.

Contacts are the people behind a signal: created by Manus enrichment,
LinkedIn engager transfers or by hand. Outreach progress is tracked with
``outreach_status`` and an interaction timeline.
"""

from typing import Dict, List, Optional, Tuple, Any

from app.features.core.sqlalchemy_imports import *
from app.features.core.enhanced_base_service import BaseService
from app.features.core.audit_mixin import AuditContext
from app.features.business_automations.sales_intelligence.exceptions import (
    NotFoundError,
    SalesIntelligenceError,
)
from app.features.business_automations.sales_intelligence.models import (
    Contact,
    ContactInteraction,
    LinkedInEngager,
    Signal,
    SignalInteraction,
)

logger = get_logger(__name__)

UPDATABLE_FIELDS = {
    "first_name", "last_name", "full_name", "job_title", "department", "email_principal",
    "email_alternatif", "phone", "linkedin_url", "location", "outreach_status",
    "priority_score", "is_priority_target", "notes", "next_action_at", "next_action_note",
    "signal_id",
}


class ContactCrudService(BaseService[Contact]):
    """Service for contacts and their interaction timeline."""

    async def list_contacts(
        self,
        status: Optional[str] = None,
        search: Optional[str] = None,
        signal_id: Optional[str] = None,
        priority_only: bool = False,
        source: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> Tuple[List[Contact], int]:
        """
        List contacts, newest first.

        Returns:
            Tuple of (contacts list, total count)
        """
        try:
            stmt = self.create_base_query(Contact)

            if status:
                stmt = stmt.where(Contact.outreach_status == status)
            if signal_id:
                stmt = stmt.where(Contact.signal_id == signal_id)
            if priority_only:
                stmt = stmt.where(Contact.is_priority_target.is_(True))
            if source:
                stmt = stmt.where(Contact.source == source)
            if search:
                stmt = self.apply_search_filters(
                    stmt, Contact, search, ["full_name", "email_principal", "job_title"]
                )

            stmt = stmt.order_by(Contact.created_at.desc())
            contacts, total = await self.paginate(stmt, limit, offset)

            logger.info("Listed contacts", count=len(contacts), total=total, tenant_id=self.tenant_id)
            return contacts, total

        except Exception as e:
            await self.handle_error("list_contacts", e)

    async def list_for_signal(self, signal_id: str) -> List[Contact]:
        stmt = (
            self.create_base_query(Contact)
            .where(Contact.signal_id == signal_id)
            .order_by(Contact.priority_score.desc(), Contact.full_name)
        )
        return list((await self.db.execute(stmt)).scalars().all())

    async def get_contact(self, contact_id: str) -> Contact:
        contact = await self.get_by_id(Contact, contact_id)
        if not contact:
            raise NotFoundError("Contact", contact_id)
        return contact

    async def create_contact(self, data: Dict[str, Any], user: Optional[AuditContext] = None) -> Contact:
        """
        Create a contact.

        A manual contact attached to a signal is logged on that signal's timeline.
        """
        try:
            signal_id = data.get("signal_id")
            if signal_id and not await self.get_by_id(Signal, signal_id):
                raise NotFoundError("Signal", signal_id)

            full_name = data.get("full_name") or " ".join(
                part for part in (data.get("first_name"), data.get("last_name")) if part
            )

            contact = Contact(
                tenant_id=self.write_tenant_id,
                signal_id=signal_id,
                enrichment_id=data.get("enrichment_id"),
                first_name=data.get("first_name"),
                last_name=data.get("last_name"),
                full_name=full_name or "Contact",
                job_title=data.get("job_title"),
                department=data.get("department"),
                email_principal=data.get("email_principal"),
                email_alternatif=data.get("email_alternatif"),
                phone=data.get("phone"),
                linkedin_url=data.get("linkedin_url"),
                location=data.get("location"),
                source=data.get("source") or "manual",
                outreach_status=data.get("outreach_status") or "new",
                priority_score=data.get("priority_score"),
                is_priority_target=bool(data.get("is_priority_target", False)),
                notes=data.get("notes"),
                raw_data=data.get("raw_data"),
            )
            contact.stamp_created(user)
            await self.persist(contact)

            if signal_id and contact.source == "manual":
                interaction = SignalInteraction(
                    tenant_id=self.write_tenant_id,
                    signal_id=signal_id,
                    action_type="contact_created",
                    new_value=contact.full_name,
                    details={"contact_id": contact.id},
                )
                interaction.stamp_created(user)
                self.db.add(interaction)
                await self.db.flush()

            self.log_operation("contact_creation", {
                "contact_id": contact.id,
                "signal_id": signal_id,
                "source": contact.source,
            })
            return contact

        except SalesIntelligenceError:
            raise
        except Exception as e:
            await self.handle_error("create_contact", e, full_name=data.get("full_name"))

    async def update_contact(self, contact_id: str, updates: Dict[str, Any],
                             user: Optional[AuditContext] = None) -> Contact:
        try:
            contact = await self.get_contact(contact_id)
            changes = self.apply_updates(contact, updates, UPDATABLE_FIELDS)

            if "outreach_status" in changes:
                old_status, new_status = changes["outreach_status"]
                await self.add_interaction(contact_id, "status_change", old_status, new_status, user=user)

            if "notes" in changes:
                await self.add_interaction(contact_id, "note_added", new_value=changes["notes"][1], user=user)

            if changes:
                contact.stamp_updated(user)
                await self.persist(contact)
                self.log_operation("contact_update", {"contact_id": contact_id, "fields": list(changes)})

            return contact

        except SalesIntelligenceError:
            raise
        except Exception as e:
            await self.handle_error("update_contact", e, contact_id=contact_id)

    async def set_next_action(self, contact_id: str, next_action_at: Optional[datetime],
                              next_action_note: Optional[str], user: Optional[AuditContext] = None) -> Contact:
        try:
            contact = await self.get_contact(contact_id)
            contact.next_action_at = next_action_at
            contact.next_action_note = next_action_note
            contact.stamp_updated(user)

            await self.add_interaction(
                contact_id,
                "next_action_set",
                new_value=next_action_note,
                metadata={"scheduled_at": next_action_at.isoformat() if next_action_at else None},
                user=user,
            )
            await self.persist(contact)
            return contact

        except SalesIntelligenceError:
            raise
        except Exception as e:
            await self.handle_error("set_next_action", e, contact_id=contact_id)

    async def delete_contact(self, contact_id: str) -> None:
        try:
            contact = await self.get_contact(contact_id)
            await self.db.execute(delete(ContactInteraction).where(ContactInteraction.contact_id == contact_id))
            await self.db.execute(
                update(LinkedInEngager).where(LinkedInEngager.contact_id == contact_id).values(contact_id=None)
            )
            await self.db.delete(contact)
            await self.db.flush()

            self.log_operation("contact_deletion", {"contact_id": contact_id})

        except SalesIntelligenceError:
            raise
        except Exception as e:
            await self.handle_error("delete_contact", e, contact_id=contact_id)

    async def count_by_status(self) -> Dict[str, int]:
        stmt = self.scope(
            select(Contact.outreach_status, func.count(Contact.id)).group_by(Contact.outreach_status),
            Contact,
        )
        return {status: count for status, count in (await self.db.execute(stmt)).all()}

    # === INTERACTIONS ===

    async def list_interactions(self, contact_id: str) -> List[ContactInteraction]:
        stmt = (
            self.create_base_query(ContactInteraction)
            .where(ContactInteraction.contact_id == contact_id)
            .order_by(ContactInteraction.created_at.desc())
        )
        return list((await self.db.execute(stmt)).scalars().all())

    async def add_interaction(
        self,
        contact_id: str,
        action_type: str,
        old_value: Optional[str] = None,
        new_value: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
        user: Optional[AuditContext] = None,
    ) -> ContactInteraction:
        interaction = ContactInteraction(
            tenant_id=self.write_tenant_id,
            contact_id=contact_id,
            action_type=action_type,
            old_value=old_value,
            new_value=new_value,
            details=metadata or {},
        )
        interaction.stamp_created(user)
        self.db.add(interaction)
        await self.db.flush()
        return interaction

    async def create_interaction(self, contact_id: str, data: Dict[str, Any],
                                 user: Optional[AuditContext] = None) -> ContactInteraction:
        await self.get_contact(contact_id)
        interaction = await self.add_interaction(
            contact_id,
            data["action_type"],
            data.get("old_value"),
            data.get("new_value"),
            data.get("metadata"),
            user,
        )
        await self.db.refresh(interaction)
        return interaction

    async def intervened_contact_ids(self) -> List[str]:
        stmt = self.scope(select(ContactInteraction.contact_id).distinct(), ContactInteraction)
        return list((await self.db.execute(stmt)).scalars().all())
