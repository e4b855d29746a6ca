"""
Contact enrichment of LinkedIn engagers through Manus agents.

The engager's contact (created on the spot when the engager has none)
waits in the ``manus_processing`` outreach status until the agent answers.
The email and details it found are then merged in and the previous status
comes back. Without a Manus key, or when Manus refuses the task, the
contact is created straight from the scraped profile with a guessed email.
"""

import re
from typing import Dict, List, Optional, Tuple, Any

from app.features.core.sqlalchemy_imports import *
from app.features.core.enhanced_base_service import BaseService
from app.features.core.audit_mixin import AuditContext
from app.features.business_automations.sales_intelligence.constants import (
    CONTACT_ENRICHING_STATUS,
    ENGAGER_ENRICHMENT_BATCH_LIMIT,
)
from app.features.business_automations.sales_intelligence.exceptions import (
    NotFoundError,
    ProviderError,
    ProviderNotConfiguredError,
)
from app.features.business_automations.sales_intelligence.models import Contact, LinkedInEngager
from app.features.business_automations.sales_intelligence.services.credits import CreditService
from app.features.business_automations.sales_intelligence.utils import (
    ManusClient,
    extract_json,
    get_provider_api_key,
)
from .enrichment_services import _clean

logger = get_logger(__name__)

LINKEDIN_USERNAME_RE = re.compile(r"linkedin\.com/in/([^/?]+)")

# Manus answer field -> contact column
CONTACT_DETAIL_COLUMNS = {
    "email": "email_principal",
    "email_alternatif": "email_alternatif",
    "phone": "phone",
    "job_title": "job_title",
    "department": "department",
    "location": "location",
    "first_name": "first_name",
    "last_name": "last_name",
}


def split_name(name: str) -> Tuple[str, Optional[str]]:
    parts = (name or "").split(" ")
    return parts[0] or name, " ".join(parts[1:]) or None


def guess_email(name: str, company: Optional[str]) -> Optional[str]:
    """``prenom.nom@entreprise.com`` when both names and a company are known."""
    if not company:
        return None
    parts = (name or "").split(" ")
    first = parts[0].lower()
    last = "".join(parts[1:]).lower()
    domain = re.sub(r"[^a-z0-9]", "", company.lower())
    if not (first and last and domain):
        return None
    return f"{first}.{last}@{domain}.com"


def linkedin_username(url: Optional[str]) -> Optional[str]:
    match = LINKEDIN_USERNAME_RE.search(url or "")
    return match.group(1) if match else None


def build_engager_prompt(engager: LinkedInEngager) -> str:
    username = linkedin_username(engager.linkedin_url)
    first_name, last_name = split_name(engager.name)

    if username:
        profile_step = (
            "Utilise le scraper Apify apimaestro/linkedin-profile-detail avec "
            f'{{"username": "{username}"}} et extrais firstName, lastName, headline, position, company, geo et emails.'
        )
    else:
        profile_step = "Pas de username LinkedIn disponible, passe à la recherche par nom."

    return f"""Tu es un expert en recherche de contacts B2B. Tu dois enrichir les informations d'un contact LinkedIn.

## CONTACT À ENRICHIR
- Nom: {engager.name}
- Headline LinkedIn: {engager.headline or "Non disponible"}
- Entreprise détectée: {engager.company or "Non spécifiée"}
- URL LinkedIn: {engager.linkedin_url or "Non disponible"}

## MISSION
Trouve l'email professionnel et les informations complètes de ce contact.

## PROCESSUS
1. Profil LinkedIn complet: {profile_step}
2. Email via RocketReach (scraper Apify lexis-solutions/rocketreach-pr-226) avec
   {{"firstName": "{first_name}", "lastName": "{last_name or ''}", "company": "{engager.company or ''}"}}
3. Sinon, déduis l'email du format standard prenom.nom@domaine-entreprise.com

## FORMAT DE RÉPONSE (JSON OBLIGATOIRE)
{{
  "contact": {{
    "full_name": "{engager.name}",
    "first_name": "Prénom",
    "last_name": "Nom",
    "job_title": "Titre exact",
    "department": "Département",
    "company": "Nom entreprise",
    "location": "Ville, Pays",
    "email": "email@entreprise.com",
    "email_alternatif": "si trouvé",
    "phone": "si trouvé",
    "linkedin_url": "{engager.linkedin_url or ''}"
  }},
  "enrichment_method": "Méthode utilisée",
  "confidence_score": 0.85
}}

## IMPORTANT
- Ne pose JAMAIS de questions, exécute directement
- Retourne TOUJOURS un JSON valide"""


def _contact_from_payload(payload: Any) -> Optional[Dict[str, Any]]:
    if isinstance(payload, dict):
        contact = payload.get("contact")
        return contact if isinstance(contact, dict) else payload
    return None


def parse_engager_output(output: Any) -> Dict[str, Any]:
    """
    Extract the enriched contact from a Manus task output.

    Handles the agent message list (assistant ``output_text`` blocks), a JSON
    string and an already decoded object.
    """
    if isinstance(output, list):
        for message in output:
            if not isinstance(message, dict) or message.get("role") != "assistant":
                continue
            content = message.get("content")
            for block in content if isinstance(content, list) else []:
                if not isinstance(block, dict) or block.get("type") != "output_text":
                    continue
                try:
                    payload = extract_json(block.get("text"))
                except ValueError:
                    continue
                if isinstance(payload, dict) and isinstance(payload.get("contact"), dict):
                    return payload["contact"]
        return {}

    if isinstance(output, str):
        try:
            output = extract_json(output)
        except ValueError:
            logger.warning("Could not parse engager enrichment output as JSON")
            return {}

    return _contact_from_payload(output) or {}


class EngagerEnrichmentService(BaseService[LinkedInEngager]):
    """Finds emails and details of LinkedIn engagers with Manus."""

    def __init__(self, db_session: AsyncSession, tenant_id: Optional[str] = None,
                 manus_client: Optional[ManusClient] = None):
        super().__init__(db_session, tenant_id)
        self._manus_client = manus_client
        self.credit_service = CreditService(db_session, tenant_id)

    async def get_manus_client(self) -> ManusClient:
        if self._manus_client is None:
            api_key = await get_provider_api_key(self.db, self.write_tenant_id, "manus")
            self._manus_client = ManusClient(api_key=api_key)
        return self._manus_client

    async def get_engager(self, engager_id: str) -> LinkedInEngager:
        engager = await self.get_by_id(LinkedInEngager, engager_id)
        if not engager:
            raise NotFoundError("LinkedIn engager", engager_id)
        return engager

    async def get_contact(self, contact_id: str) -> Contact:
        contact = await self.get_by_id(Contact, contact_id)
        if not contact:
            raise NotFoundError("Contact", contact_id)
        return contact

    @staticmethod
    def is_enriched(contact: Optional[Contact]) -> bool:
        """A contact is enriched, or being enriched, once a Manus task is attached."""
        return contact is not None and bool((contact.raw_data or {}).get("manus_task_id"))

    # === TRIGGER ===

    async def enrich_engager(self, engager_id: str, user: Optional[AuditContext] = None) -> Dict[str, Any]:
        engager = await self.get_engager(engager_id)
        return await self._enrich(engager, user)

    async def enrich_batch(self, user: Optional[AuditContext] = None,
                           limit: int = ENGAGER_ENRICHMENT_BATCH_LIMIT) -> Dict[str, Any]:
        """Enrich up to ``limit`` prospects, most recent engagement first."""
        stmt = (
            self.create_base_query(LinkedInEngager)
            .where(LinkedInEngager.is_prospect.is_(True))
            .order_by(LinkedInEngager.scraped_at.desc())
        )
        engagers = list((await self.db.execute(stmt)).scalars().all())

        results: List[Dict[str, Any]] = []
        for engager in engagers:
            if len(results) >= limit:
                break
            contact = await self.get_by_id(Contact, engager.contact_id) if engager.contact_id else None
            if self.is_enriched(contact):
                continue

            try:
                result = await self._enrich(engager, user, contact)
            except Exception as e:
                logger.error("Engager enrichment failed", engager_id=engager.id, name=engager.name, error=str(e))
                result = {"success": False, "status": "error", "error": str(e)}
            results.append({"engager_id": engager.id, "name": engager.name, **result})

        tasks_created = sum(1 for result in results if result["status"] == CONTACT_ENRICHING_STATUS)
        if not results:
            message = "Aucun engager prospect à enrichir"
        else:
            message = f"{tasks_created} enrichissements Manus lancés"

        self.log_operation("engager_enrichment_batch", {"engagers": len(results), "tasks_created": tasks_created})
        return {"success": True, "tasks_created": tasks_created, "message": message, "results": results}

    async def _enrich(self, engager: LinkedInEngager, user: Optional[AuditContext],
                      contact: Optional[Contact] = None) -> Dict[str, Any]:
        if contact is None and engager.contact_id:
            contact = await self.get_by_id(Contact, engager.contact_id)
        if self.is_enriched(contact):
            return {"success": False, "status": "already_enriched", "contact_id": contact.id,
                    "message": "Déjà enrichi"}

        try:
            client = await self.get_manus_client()
            task = await client.create_task(build_engager_prompt(engager))
        except (ProviderNotConfiguredError, ProviderError) as e:
            logger.warning("Manus unavailable, creating contact from profile", engager_id=engager.id, error=str(e))
            return await self._create_contact_directly(engager, contact, user)

        if contact is None:
            contact = self._new_contact(engager, user)
            previous_status = "new"
        else:
            previous_status = contact.outreach_status
            contact.stamp_updated(user)

        contact.outreach_status = CONTACT_ENRICHING_STATUS
        contact.raw_data = {
            **(contact.raw_data or {}),
            "source": "linkedin_engager",
            "engager_id": engager.id,
            "engagement_type": engager.engagement_type,
            "post_id": engager.post_id,
            "manus_task_id": task["task_id"],
            "manus_task_url": task["task_url"],
            "status_before_enrichment": previous_status,
        }
        await self.db.flush()
        engager.contact_id = contact.id

        plan = await self.credit_service.plan_settings("manus")
        await self.credit_service.record_usage(
            "manus",
            credits_used=plan["unit_cost"],
            units=1,
            details={"engager_id": engager.id, "name": engager.name, "manus_task_id": task["task_id"]},
        )
        await self.db.flush()

        self.log_operation("engager_enrichment_triggered", {
            "engager_id": engager.id,
            "contact_id": contact.id,
            "manus_task_id": task["task_id"],
        })
        return {
            "success": True,
            "status": CONTACT_ENRICHING_STATUS,
            "contact_id": contact.id,
            "manus_task_id": task["task_id"],
            "manus_task_url": task["task_url"],
            "message": "Enrichissement Manus lancé",
        }

    def _new_contact(self, engager: LinkedInEngager, user: Optional[AuditContext],
                     email: Optional[str] = None) -> Contact:
        first_name, last_name = split_name(engager.name)
        contact = Contact(
            tenant_id=self.write_tenant_id,
            full_name=engager.name,
            first_name=first_name,
            last_name=last_name,
            job_title=engager.headline,
            linkedin_url=engager.linkedin_url,
            email_principal=email,
            source="linkedin",
            outreach_status="new",
            raw_data={
                "source": "linkedin_engager",
                "engager_id": engager.id,
                "engagement_type": engager.engagement_type,
                "post_id": engager.post_id,
                "company_detected": engager.company,
            },
        )
        contact.stamp_created(user)
        self.db.add(contact)
        return contact

    async def _create_contact_directly(self, engager: LinkedInEngager, contact: Optional[Contact],
                                       user: Optional[AuditContext]) -> Dict[str, Any]:
        email = guess_email(engager.name, engager.company)
        if contact is None:
            contact = self._new_contact(engager, user, email)
        elif email and not contact.email_principal:
            contact.email_principal = email
            contact.stamp_updated(user)
        await self.db.flush()

        engager.contact_id = contact.id
        engager.transferred_to_contacts = True
        await self.db.flush()

        logger.info("Engager contact created without enrichment", engager_id=engager.id, contact_id=contact.id)
        return {
            "success": True,
            "status": "created_without_enrichment",
            "contact_id": contact.id,
            "message": "Contact créé (sans enrichissement Manus)",
        }

    # === STATUS ===

    async def check_contact(self, contact_id: str) -> Dict[str, Any]:
        """Poll the Manus task of an engager contact and merge its answer once completed."""
        contact = await self.get_contact(contact_id)
        raw = contact.raw_data or {}
        task_id = raw.get("manus_task_id")

        if not task_id:
            return {"status": contact.outreach_status, "contact_id": contact_id,
                    "message": "Pas de tâche Manus associée"}
        if contact.outreach_status != CONTACT_ENRICHING_STATUS:
            return {"status": "completed", "contact_id": contact_id,
                    "email_found": bool(contact.email_principal), "email": contact.email_principal}

        client = await self.get_manus_client()
        try:
            task = await client.get_task(task_id)
        except ProviderError as e:
            logger.warning("Unable to check Manus status", contact_id=contact_id, task_id=task_id, error=str(e))
            return {"status": CONTACT_ENRICHING_STATUS, "contact_id": contact_id,
                    "message": "Impossible de vérifier le statut Manus"}

        task_status = task.get("status")
        restored_status = raw.get("status_before_enrichment") or "new"

        if task_status == "failed":
            contact.outreach_status = restored_status
            contact.raw_data = {**raw, "enrichment_error": task.get("error") or "Manus task failed"}
            await self.db.flush()
            logger.warning("Engager enrichment task failed", contact_id=contact_id, task_id=task_id)
            return {"status": "failed", "contact_id": contact_id, "manus_status": task_status}

        if task_status != "completed":
            return {"status": CONTACT_ENRICHING_STATUS, "contact_id": contact_id, "manus_status": task_status}

        details = parse_engager_output(task.get("output"))
        for field, column in CONTACT_DETAIL_COLUMNS.items():
            value = _clean(details.get(field))
            if value:
                setattr(contact, column, value)

        contact.outreach_status = restored_status
        contact.raw_data = {
            **raw,
            "manus_output": task.get("output"),
            "enrichment_completed_at": utcnow().isoformat(),
        }

        engager_id = raw.get("engager_id")
        engager = await self.get_by_id(LinkedInEngager, engager_id) if engager_id else None
        if engager is not None:
            engager.transferred_to_contacts = True
        await self.db.flush()

        email = contact.email_principal
        self.log_operation("engager_enrichment_completed", {"contact_id": contact_id, "email_found": bool(email)})
        return {
            "status": "completed",
            "contact_id": contact_id,
            "email_found": bool(email),
            "email": email,
            "message": f"Email trouvé: {email}" if email else "Enrichissement terminé (pas d'email trouvé)",
        }

    async def check_pending(self) -> Dict[str, int]:
        """Poll every engager contact still waiting on Manus."""
        stmt = self.create_base_query(Contact).where(
            Contact.source == "linkedin",
            Contact.outreach_status == CONTACT_ENRICHING_STATUS,
        )
        pending = list((await self.db.execute(stmt)).scalars().all())

        summary = {"checked": 0, "completed": 0, "failed": 0, "errors": 0}
        for contact in pending:
            try:
                result = await self.check_contact(contact.id)
            except ProviderNotConfiguredError as e:
                logger.warning("Skipping pending engager enrichment", contact_id=contact.id, error=str(e))
                continue
            except Exception as e:
                logger.error("Pending engager enrichment check failed", contact_id=contact.id,
                             error=str(e), exc_info=True)
                summary["errors"] += 1
                continue

            summary["checked"] += 1
            if result["status"] == "completed":
                summary["completed"] += 1
            elif result["status"] == "failed":
                summary["failed"] += 1

        logger.info("Pending engager enrichments checked", tenant_id=self.tenant_id, **summary)
        return summary
