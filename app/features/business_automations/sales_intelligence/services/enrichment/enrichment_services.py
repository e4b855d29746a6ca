"""
Company enrichment through Manus AI agents.

Lifecycle of a signal's enrichment:

    none -> processing -> manus_processing -> completed
    processing and manus_processing may both end in failed

``trigger_enrichment`` creates the Manus task and returns immediately;
``check_status`` is polled (by the client or the beat task) until the agent
finishes, at which point the contacts it found are stored.
"""

from typing import Dict, List, Optional, Tuple, Any
from urllib.parse import urlparse

from app.features.core.sqlalchemy_imports import *
from app.features.core.enhanced_base_service import BaseService
from app.features.core.audit_mixin import AuditContext
from app.features.business_automations.sales_intelligence.constants import (
    DEFAULT_PERSONAS,
    ENRICHMENT_COMPLETED,
    ENRICHMENT_FAILED,
    ENRICHMENT_MANUS_PROCESSING,
    ENRICHMENT_PROCESSING,
)
from app.features.business_automations.sales_intelligence.exceptions import (
    NotFoundError,
    ProviderError,
    ProviderNotConfiguredError,
)
from app.features.business_automations.sales_intelligence.models import (
    CompanyEnrichment,
    Contact,
    Signal,
)
from app.features.business_automations.sales_intelligence.services.credits import CreditService
from app.features.business_automations.sales_intelligence.services.settings import SettingsService
from app.features.business_automations.sales_intelligence.services.signals import SignalCrudService
from app.features.business_automations.sales_intelligence.utils import (
    ManusClient,
    extract_json,
    get_provider_api_key,
)

logger = get_logger(__name__)


def build_enrichment_prompt(signal: Signal, personas: List[Dict[str, Any]]) -> str:
    """French research brief for the Manus agent."""
    priority = [p["name"] for p in personas if p.get("isPriority")]
    secondary = [p["name"] for p in personas if not p.get("isPriority")]

    priority_list = "\n".join(f"{i}. {name}" for i, name in enumerate(priority, start=1))
    secondary_block = ""
    if secondary:
        secondary_block = "## PROFILS SECONDAIRES (si prioritaires non trouvés)\n" + "\n".join(
            f"- {name}" for name in secondary
        )

    return f"""Tu es un expert en recherche de contacts B2B spécialisé dans l'identification des vrais décideurs opérationnels.

## ENTREPRISE CIBLE
- Nom: {signal.company_name}
- Secteur: {signal.sector or "Non spécifié"}
- Contexte: {signal.event_detail or signal.signal_type}

## MISSION
Trouve 3 à 5 contacts OPÉRATIONNELS qui prennent réellement les décisions d'achat pour cette entreprise.

## PROFILS PRIORITAIRES À CIBLER (par ordre de priorité)
{priority_list}

{secondary_block}

ÉVITER: CEO, DG, VP, "Head of" stratégiques qui ne gèrent pas les achats opérationnels.

## FORMAT DE RÉPONSE (JSON OBLIGATOIRE)
{{
  "contacts": [
    {{
      "full_name": "Prénom Nom",
      "first_name": "Prénom",
      "last_name": "Nom",
      "job_title": "Titre exact",
      "department": "Département",
      "location": "Ville, Pays",
      "email": "email@company.com",
      "linkedin_url": "https://linkedin.com/in/username",
      "is_priority_persona": true
    }}
  ],
  "company_info": {{
    "website": "https://...",
    "industry": "Secteur",
    "employee_count": "Fourchette",
    "headquarters": "Ville",
    "description": "Présentation courte"
  }}
}}

Si aucun contact n'est trouvé, retourne "contacts": [] avec un champ "error".

## IMPORTANT
- Ne pose JAMAIS de questions, exécute directement la recherche
- Retourne TOUJOURS un JSON valide
- Marque is_priority_persona=true pour les contacts correspondant aux profils prioritaires"""


def _looks_like_contact(item: Any) -> bool:
    return isinstance(item, dict) and any(key in item for key in ("full_name", "name", "email", "job_title"))


def _payload_from_messages(messages: List[Any]) -> Any:
    """Search agent messages, latest first, for the JSON answer."""
    for message in reversed(messages):
        content = message.get("content") if isinstance(message, dict) else message
        texts = []
        if isinstance(content, str):
            texts.append(content)
        elif isinstance(content, list):
            texts.extend(part.get("text") for part in content if isinstance(part, dict) and part.get("text"))

        for text in reversed(texts):
            try:
                payload = extract_json(text)
            except ValueError:
                continue
            if isinstance(payload, list) or (isinstance(payload, dict) and "contacts" in payload):
                return payload
    return None


def parse_manus_output(output: Any) -> Tuple[List[Dict[str, Any]], Dict[str, Any]]:
    """
    Extract ``(contacts, company_info)`` from a Manus task output.

    The output may be a JSON string, the decoded object, a bare contact list
    or the list of agent messages containing the JSON answer.
    """
    payload = output
    if isinstance(output, str):
        try:
            payload = extract_json(output)
        except ValueError:
            logger.warning("Could not parse Manus output as JSON")
            return [], {}

    if isinstance(payload, list) and payload and not all(_looks_like_contact(item) for item in payload):
        payload = _payload_from_messages(payload)

    if isinstance(payload, list):
        return [item for item in payload if isinstance(item, dict)], {}
    if isinstance(payload, dict):
        contacts = payload.get("contacts") or []
        return [c for c in contacts if isinstance(c, dict)], dict(payload.get("company_info") or {})
    return [], {}


def _domain_from_website(website: Optional[str]) -> Optional[str]:
    if not website or website == "N/A":
        return None
    parsed = urlparse(website if "//" in website else f"https://{website}")
    host = parsed.netloc or None
    if host and host.startswith("www."):
        host = host[4:]
    return host


def _clean(value: Any) -> Optional[str]:
    if value in (None, "", "N/A"):
        return None
    return str(value)


class EnrichmentService(BaseService[CompanyEnrichment]):
    """Triggers Manus enrichment tasks and ingests their results."""

    def __init__(self, db_session: AsyncSession, tenant_id: Optional[str] = None,
                 manus_client: Optional[ManusClient] = None):
        super().__init__(db_session, tenant_id)
        self._manus_client = manus_client
        self.settings_service = SettingsService(db_session, tenant_id)
        self.credit_service = CreditService(db_session, tenant_id)
        self.signal_service = SignalCrudService(db_session, tenant_id)

    async def get_manus_client(self) -> ManusClient:
        if self._manus_client is None:
            api_key = await get_provider_api_key(self.db, self.write_tenant_id, "manus")
            self._manus_client = ManusClient(api_key=api_key)
        return self._manus_client

    async def get_personas(self, source: str = "presse") -> List[Dict[str, Any]]:
        """Personas configured for ``source``, or the defaults."""
        personas = await self.settings_service.get_json(f"personas_{source}")
        if isinstance(personas, list) and personas:
            return [p for p in personas if isinstance(p, dict) and p.get("name")]
        return list(DEFAULT_PERSONAS)

    async def get_for_signal(self, signal_id: str) -> Optional[CompanyEnrichment]:
        stmt = (
            self.create_base_query(CompanyEnrichment)
            .where(CompanyEnrichment.signal_id == signal_id)
            .order_by(CompanyEnrichment.created_at.desc())
            .limit(1)
        )
        return (await self.db.execute(stmt)).scalar_one_or_none()

    async def _mark_failed(self, enrichment: CompanyEnrichment, signal: Optional[Signal], message: str):
        enrichment.status = ENRICHMENT_FAILED
        enrichment.error_message = message
        if signal is not None:
            signal.enrichment_status = ENRICHMENT_FAILED
        await self.db.flush()

    async def trigger_enrichment(self, signal_id: str, source: str = "presse",
                                 user: Optional[AuditContext] = None) -> Dict[str, Any]:
        """
        Start a Manus enrichment for a signal.

        Returns:
            {"enrichment": CompanyEnrichment, "already_completed": bool}

        Raises:
            NotFoundError: Unknown signal
            ProviderNotConfiguredError / ProviderError: The enrichment and the
                signal are marked failed (flushed, not committed) before raising
        """
        signal = await self.signal_service.get_signal(signal_id)
        enrichment = await self.get_for_signal(signal_id)

        if enrichment is not None and enrichment.status == ENRICHMENT_COMPLETED:
            logger.info("Enrichment already completed", signal_id=signal_id)
            return {"enrichment": enrichment, "already_completed": True}

        signal.enrichment_status = ENRICHMENT_PROCESSING
        if enrichment is None:
            enrichment = CompanyEnrichment(
                tenant_id=self.write_tenant_id,
                signal_id=signal_id,
                company_name=signal.company_name,
                status=ENRICHMENT_PROCESSING,
                enrichment_source=source,
            )
            enrichment.stamp_created(user)
            self.db.add(enrichment)
        else:
            enrichment.status = ENRICHMENT_PROCESSING
            enrichment.enrichment_source = source
            enrichment.error_message = None
            enrichment.stamp_updated(user)
        await self.db.flush()

        personas = await self.get_personas(source)
        prompt = build_enrichment_prompt(signal, personas)

        try:
            client = await self.get_manus_client()
            task = await client.create_task(prompt)
        except (ProviderNotConfiguredError, ProviderError) as e:
            await self._mark_failed(enrichment, signal, str(e))
            logger.error("Manus enrichment could not start", signal_id=signal_id, error=str(e))
            raise

        enrichment.raw_data = {
            **(enrichment.raw_data or {}),
            "manus_task_id": task["task_id"],
            "manus_task_url": task["task_url"],
            "personas": [p["name"] for p in personas],
        }
        enrichment.status = ENRICHMENT_MANUS_PROCESSING
        signal.enrichment_status = ENRICHMENT_MANUS_PROCESSING

        plan = await self.credit_service.plan_settings("manus")
        await self.credit_service.record_usage(
            "manus",
            credits_used=plan["unit_cost"],
            units=1,
            signal_id=signal_id,
            details={"company_name": signal.company_name, "manus_task_id": task["task_id"], "source": source},
        )
        await self.signal_service.add_interaction(
            signal_id,
            "enrichment_triggered",
            new_value=source,
            metadata={"manus_task_id": task["task_id"]},
            user=user,
        )

        await self.persist(enrichment)
        await self.db.refresh(signal)

        self.log_operation("enrichment_triggered", {
            "signal_id": signal_id,
            "company_name": signal.company_name,
            "manus_task_id": task["task_id"],
        })
        return {"enrichment": enrichment, "already_completed": False}

    async def check_status(self, signal_id: str) -> Dict[str, Any]:
        """
        Poll the Manus task of a signal and ingest its result once completed.

        Returns:
            {"status": ..., "contacts_created": int, ...}
        """
        enrichment = await self.get_for_signal(signal_id)
        if enrichment is None:
            raise NotFoundError("Enrichment", signal_id)

        if enrichment.status in (ENRICHMENT_COMPLETED, ENRICHMENT_FAILED):
            return {"status": enrichment.status, "contacts_created": 0, "enrichment": enrichment.to_dict()}

        task_id = enrichment.manus_task_id
        if not task_id:
            return {"status": enrichment.status, "contacts_created": 0, "message": "No Manus task for this enrichment"}

        client = await self.get_manus_client()
        try:
            task = await client.get_task(task_id)
        except ProviderError as e:
            logger.warning("Unable to check Manus status", signal_id=signal_id, task_id=task_id, error=str(e))
            return {"status": ENRICHMENT_MANUS_PROCESSING, "contacts_created": 0,
                    "message": "Unable to check Manus status"}

        signal = await self.get_by_id(Signal, signal_id)
        task_status = task.get("status")

        if task_status == "failed":
            await self._mark_failed(enrichment, signal, task.get("error") or "Manus task failed")
            logger.warning("Manus task failed", signal_id=signal_id, task_id=task_id)
            return {"status": ENRICHMENT_FAILED, "contacts_created": 0, "manus_status": task_status}

        if task_status != "completed":
            return {"status": ENRICHMENT_MANUS_PROCESSING, "contacts_created": 0, "manus_status": task_status}

        contacts, company_info = parse_manus_output(task.get("output"))
        self._apply_company_info(enrichment, company_info)
        contacts_created = await self._store_contacts(enrichment, contacts)

        enrichment.status = ENRICHMENT_COMPLETED
        enrichment.raw_data = {**(enrichment.raw_data or {}), "manus_output": task.get("output")}
        if signal is not None:
            signal.enrichment_status = ENRICHMENT_COMPLETED
        await self.persist(enrichment)

        self.log_operation("enrichment_completed", {
            "signal_id": signal_id,
            "task_id": task_id,
            "contacts_created": contacts_created,
        })
        return {"status": ENRICHMENT_COMPLETED, "contacts_created": contacts_created}

    @staticmethod
    def _apply_company_info(enrichment: CompanyEnrichment, info: Dict[str, Any]):
        website = _clean(info.get("website"))
        enrichment.website = website or enrichment.website
        enrichment.domain = _domain_from_website(website) or enrichment.domain
        enrichment.industry = _clean(info.get("industry")) or enrichment.industry
        enrichment.employee_count = _clean(info.get("employee_count")) or enrichment.employee_count
        enrichment.headquarters_location = _clean(info.get("headquarters")) or enrichment.headquarters_location
        enrichment.description = _clean(info.get("description")) or enrichment.description
        enrichment.linkedin_company_url = _clean(info.get("linkedin_url")) or enrichment.linkedin_company_url

    async def _store_contacts(self, enrichment: CompanyEnrichment, contacts: List[Dict[str, Any]]) -> int:
        """Contacts are ranked in the order the agent returned them."""
        for index, item in enumerate(contacts):
            contact = Contact(
                tenant_id=enrichment.tenant_id,
                signal_id=enrichment.signal_id,
                enrichment_id=enrichment.id,
                full_name=item.get("full_name") or item.get("name") or f"Contact {index + 1}",
                first_name=item.get("first_name"),
                last_name=item.get("last_name"),
                job_title=item.get("job_title") or item.get("title"),
                department=item.get("department"),
                email_principal=item.get("email") or item.get("email_principal"),
                email_alternatif=item.get("email_alternatif"),
                phone=item.get("phone"),
                linkedin_url=item.get("linkedin_url") or item.get("linkedin"),
                location=item.get("location"),
                source=enrichment.enrichment_source or "presse",
                outreach_status="new",
                is_priority_target=index < 3,
                priority_score=max(0, 100 - index * 10),
                raw_data=item,
            )
            contact.stamp_created(None)
            self.db.add(contact)

        await self.db.flush()
        return len(contacts)

    async def check_pending(self) -> Dict[str, int]:
        """Poll every enrichment still waiting on Manus."""
        stmt = self.create_base_query(CompanyEnrichment).where(
            CompanyEnrichment.status == ENRICHMENT_MANUS_PROCESSING
        )
        pending = list((await self.db.execute(stmt)).scalars().all())

        summary = {"checked": 0, "completed": 0, "failed": 0, "errors": 0}
        for enrichment in pending:
            try:
                result = await self.check_status(enrichment.signal_id)
            except (ProviderNotConfiguredError, NotFoundError) as e:
                logger.warning("Skipping pending enrichment", signal_id=enrichment.signal_id, error=str(e))
                continue
            except Exception as e:
                # One broken task must not stop the others
                logger.error("Pending enrichment check failed", signal_id=enrichment.signal_id,
                             error=str(e), exc_info=True)
                summary["errors"] += 1
                continue

            summary["checked"] += 1
            if result["status"] == ENRICHMENT_COMPLETED:
                summary["completed"] += 1
            elif result["status"] == ENRICHMENT_FAILED:
                summary["failed"] += 1

        logger.info("Pending enrichments checked", tenant_id=self.tenant_id, **summary)
        return summary
