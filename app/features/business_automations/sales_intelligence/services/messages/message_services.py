"""
Outreach copywriting with Claude, and the feedback loop on edited drafts.

Every edited draft the user saves is a correction. Each fifth correction
asks for a new analysis, in which Claude reads the whole history and writes
the tonal charter: formality, structure, vocabulary, tone, signatures and
openings the user prefers.
"""

import copy
import json
from typing import Dict, List, Optional, Any

from app.features.core.sqlalchemy_imports import *
from app.features.core.enhanced_base_service import BaseService
from app.features.core.audit_mixin import AuditContext
from app.features.business_automations.sales_intelligence.constants import (
    CHARTER_CONFIDENCE_PER_CORRECTION,
    CHARTER_MAX_FALLBACK_CONFIDENCE,
    CHARTER_UPDATE_EVERY,
    CLAUDE_ANALYSIS_MODEL,
    DEFAULT_TONAL_CHARTER,
    MESSAGE_TYPES,
)
from app.features.business_automations.sales_intelligence.exceptions import (
    InvalidStateError,
    ProviderError,
    SalesIntelligenceError,
)
from app.features.business_automations.sales_intelligence.models import MessageFeedback, TonalCharter
from app.features.business_automations.sales_intelligence.services.contacts import ContactCrudService
from app.features.business_automations.sales_intelligence.services.settings import SettingsService
from app.features.business_automations.sales_intelligence.utils import (
    ClaudeClient,
    extract_json,
    get_provider_api_key,
)

logger = get_logger(__name__)

MAX_MESSAGE_LENGTH = 10_000
MAX_SUBJECT_LENGTH = 500
CONTEXT_LIMITS = {"job_title": 200, "company_name": 300, "signal_type": 100, "event_detail": 1000}

DEFAULT_PITCH = "cadeaux d'affaires gastronomiques haut de gamme"

TONE_RULES = """PRINCIPE CLÉ : LA CONTEXTUALISATION EST TOUT
Le message doit être entièrement construit autour du contexte fourni. Ce n'est pas une accroche, c'est le cœur du message.
- Nomination : ce que représente le poste, les premiers mois, l'importance de marquer les esprits
- Levée de fonds : ce que cela signifie pour l'équipe, célébrer les investisseurs
- Anniversaire d'entreprise : le cap franchi, l'histoire construite, remercier les équipes
- Acquisition ou fusion : l'intégration des équipes, les changements culturels

RÈGLES D'ÉCRITURE :
- Le contexte est tissé tout au long du message, pas seulement mentionné au début
- Montre que tu comprends ce que vit le destinataire
- Écris comme un humain, pas comme une IA
- Interdit : superlatifs vides ("extraordinaire", "remarquable"), formules creuses ("je me permets de")
- Phrases courtes et directes
- Sois spécifique : cite des éléments précis du contexte
- Ton d'entrepreneur à entrepreneur"""


def build_system_prompt(signature: Optional[str], pitch: Optional[str]) -> str:
    prompt = f"Tu rédiges des messages de prospection pour une entreprise de {pitch or DEFAULT_PITCH}.\n\n{TONE_RULES}"
    if signature:
        prompt += f"\n\nSignature à utiliser en fin de message :\n{signature}"
    return prompt


def build_user_prompt(
    message_type: str,
    recipient_name: str,
    recipient_first_name: str,
    company_name: Optional[str] = None,
    event_detail: Optional[str] = None,
    job_title: Optional[str] = None,
) -> str:
    last_name = " ".join(recipient_name.split(" ")[1:])
    lines = [f"- Destinataire : {recipient_first_name} {last_name}".rstrip()]
    if job_title:
        lines.append(f"- Poste actuel : {job_title}")
    if company_name:
        lines.append(f"- Entreprise : {company_name}")
    if event_detail:
        lines.append(f"- CONTEXTE CLÉ À EXPLOITER : {event_detail}")
    else:
        lines.append("- Pas de contexte spécifique (sois plus générique mais garde le ton)")
    recipient = "\n".join(lines)

    if message_type == "inmail":
        return f"""Rédige un message LinkedIn InMail de prospection hyper-contextualisé pour :
{recipient}

Instructions :
- Maximum 200 mots
- Le contexte est le fil rouge du message
- Pose une question ou fais une proposition concrète liée au contexte
- Termine par la signature
- Aucun placeholder, aucun crochet : le message doit être prêt à envoyer

Génère uniquement le message, prêt à copier-coller."""

    return f"""Rédige un email de prospection hyper-contextualisé pour :
{recipient}

Instructions :
- Maximum 250 mots pour le corps
- Un objet d'email qui fait référence directe au contexte (60 caractères maximum)
- Le contexte est tissé tout au long du message
- Termine par la signature
- Aucun placeholder, aucun crochet : le message doit être prêt à envoyer

Format de réponse STRICT :
OBJET: [l'objet de l'email]
---
[le corps de l'email]"""


def parse_email_reply(text: str) -> Dict[str, Optional[str]]:
    """Split an ``OBJET: ...\\n---\\nbody`` reply into subject and message."""
    if "OBJET:" not in text:
        return {"message": text, "subject": None}
    parts = text.split("---")
    return {
        "subject": parts[0].replace("OBJET:", "").strip(),
        "message": "---".join(parts[1:]).strip(),
    }


CHARTER_SYSTEM_PROMPT = """Tu es un expert en analyse linguistique et communication professionnelle.
Ta mission est d'analyser les corrections apportées par un utilisateur à des messages générés automatiquement
pour en déduire sa "charte tonale" personnelle : ses préférences de style, ton, vocabulaire et structure.

IMPORTANT:
- Identifie les PATTERNS RÉCURRENTS (pas les cas isolés)
- Sois SPÉCIFIQUE dans tes observations (avec exemples concrets)
- Calcule un score de confiance basé sur:
  * Nombre de corrections (5-10: faible, 10-30: moyen, 30+: élevé)
  * Cohérence des patterns détectés
  * Diversité des contextes couverts"""

CHARTER_FORMAT = """{
  "formality": {"level": "formel|semi-formel|informel|très-informel", "tutoyment": true/false, "observations": []},
  "structure": {"max_paragraphs": number, "sentence_length": "courte|moyenne|longue", "bullet_points": true/false, "observations": []},
  "vocabulary": {"forbidden_words": [], "preferred_words": [], "forbidden_expressions": [], "preferred_expressions": [], "observations": []},
  "tone": {"style": "professionnel|décontracté|espiègle|direct|chaleureux", "humor_allowed": true/false, "energy_level": "calme|dynamique|enthousiaste", "observations": []},
  "signatures": {"preferred": [], "avoided": []},
  "openings": {"preferred": [], "avoided": []},
  "subjects_email": {"max_length": number, "style": "descriptif|accrocheur|minimaliste", "observations": []},
  "confidence_score": 0.0-1.0,
  "patterns_detected": number,
  "summary": "Résumé en une phrase du style de l'utilisateur"
}"""


def format_correction(index: int, feedback: MessageFeedback) -> str:
    text = f"""=== CORRECTION {index} ({feedback.message_type}) ===
Contexte: {json.dumps(feedback.context or {}, ensure_ascii=False)}

MESSAGE ORIGINAL:
{feedback.original_message}

MESSAGE CORRIGÉ PAR L'UTILISATEUR:
{feedback.edited_message}
"""
    if feedback.original_subject and feedback.edited_subject and feedback.original_subject != feedback.edited_subject:
        text += f"""
SUJET ORIGINAL: {feedback.original_subject}
SUJET CORRIGÉ: {feedback.edited_subject}
"""
    return text


def build_charter_prompt(feedbacks: List[MessageFeedback]) -> str:
    corrections = "\n\n".join(format_correction(i, f) for i, f in enumerate(feedbacks, start=1))
    return f"""Analyse les {len(feedbacks)} corrections suivantes et génère une charte tonale JSON:

{corrections}

---

Génère UNIQUEMENT un objet JSON valide (sans markdown, sans explication) avec cette structure exacte:
{CHARTER_FORMAT}"""


def charter_confidence(charter_data: Dict[str, Any], corrections: int) -> float:
    """The model's own score, else a share per correction; clamped to [0, 1]."""
    fallback = min(CHARTER_MAX_FALLBACK_CONFIDENCE, corrections * CHARTER_CONFIDENCE_PER_CORRECTION)
    score = charter_data.get("confidence_score") or fallback
    try:
        score = float(score)
    except (TypeError, ValueError):
        score = fallback
    return min(1.0, max(0.0, score))


class MessageService(BaseService[MessageFeedback]):
    """Generates InMails and emails and stores edited drafts as feedback."""

    def __init__(self, db_session: AsyncSession, tenant_id: Optional[str] = None,
                 claude_client: Optional[ClaudeClient] = None):
        super().__init__(db_session, tenant_id)
        self._claude_client = claude_client
        self.settings_service = SettingsService(db_session, tenant_id)
        self.contact_service = ContactCrudService(db_session, tenant_id)

    async def get_claude_client(self) -> ClaudeClient:
        if self._claude_client is None:
            api_key = await get_provider_api_key(self.db, self.write_tenant_id, "claude")
            self._claude_client = ClaudeClient(api_key=api_key, model=CLAUDE_ANALYSIS_MODEL)
        return self._claude_client

    async def generate_message(
        self,
        message_type: str,
        recipient_name: str,
        recipient_first_name: Optional[str] = None,
        company_name: Optional[str] = None,
        event_detail: Optional[str] = None,
        job_title: Optional[str] = None,
        contact_id: Optional[str] = None,
        user: Optional[AuditContext] = None,
    ) -> Dict[str, Optional[str]]:
        """
        Draft an InMail or an email for a recipient.

        Returns:
            {"message": str, "subject": str | None}; the subject is only set for emails

        Raises:
            ProviderNotConfiguredError: No Claude key
            ProviderError: Claude failure (status_code 429 when rate limited)
        """
        if message_type not in MESSAGE_TYPES:
            raise InvalidStateError(f"type must be one of {', '.join(MESSAGE_TYPES)}")
        if contact_id:
            await self.contact_service.get_contact(contact_id)

        first_name = recipient_first_name or recipient_name.split(" ")[0]
        system = build_system_prompt(
            await self.settings_service.get_value("sender_signature"),
            await self.settings_service.get_value("sender_pitch"),
        )
        prompt = build_user_prompt(message_type, recipient_name, first_name, company_name, event_detail, job_title)

        logger.info("Generating outreach message", type=message_type, company_name=company_name)
        client = await self.get_claude_client()
        text = await client.complete(prompt, system=system, max_tokens=1024)

        result = parse_email_reply(text) if message_type == "email" else {"message": text, "subject": None}

        if contact_id:
            action = "email_generated" if message_type == "email" else "linkedin_message_generated"
            await self.contact_service.add_interaction(
                contact_id, action, new_value=result.get("subject"),
                metadata={"company_name": company_name}, user=user,
            )

        return result

    @staticmethod
    def validate_feedback(data: Dict[str, Any]):
        if data.get("message_type") not in MESSAGE_TYPES:
            raise InvalidStateError('message_type must be "inmail" or "email"')

        for field in ("original_message", "edited_message"):
            value = data.get(field)
            if not value or not isinstance(value, str) or len(value) > MAX_MESSAGE_LENGTH:
                raise InvalidStateError(f"{field} is required and must be under {MAX_MESSAGE_LENGTH} characters")

        for field in ("original_subject", "edited_subject"):
            value = data.get(field)
            if value and len(value) > MAX_SUBJECT_LENGTH:
                raise InvalidStateError(f"{field} must be under {MAX_SUBJECT_LENGTH} characters")

        context = data.get("context")
        if context is None:
            return
        if not isinstance(context, dict):
            raise InvalidStateError("context must be an object")
        for field, limit in CONTEXT_LIMITS.items():
            value = context.get(field)
            if value and (not isinstance(value, str) or len(value) > limit):
                raise InvalidStateError(f"context.{field} must be under {limit} characters")

    # === FEEDBACK ===

    async def save_feedback(self, data: Dict[str, Any], user: Optional[AuditContext] = None) -> Dict[str, Any]:
        """
        Store the draft the user actually sent next to the generated one.

        Returns:
            {"success": False, "reason": ...} when learning is paused, else the
            feedback with the correction count and whether a charter analysis is due
        """
        self.validate_feedback(data)
        try:
            charter = await self.get_charter()
            if not charter.is_learning_enabled:
                logger.info("Learning disabled, feedback not saved", tenant_id=self.tenant_id)
                return {"success": False, "reason": "Learning disabled"}

            feedback = MessageFeedback(
                tenant_id=self.write_tenant_id,
                message_type=data["message_type"],
                original_message=data["original_message"].strip(),
                edited_message=data["edited_message"].strip(),
                original_subject=(data.get("original_subject") or "").strip() or None,
                edited_subject=(data.get("edited_subject") or "").strip() or None,
                context=data.get("context"),
            )
            feedback.stamp_created(user)
            await self.persist(feedback)

            total = await self.count_where(MessageFeedback)
            charter.corrections_count = total
            charter.stamp_updated(user)
            await self.db.flush()

            should_update = total >= CHARTER_UPDATE_EVERY and total % CHARTER_UPDATE_EVERY == 0
            self.log_operation("message_feedback_saved", {
                "feedback_id": feedback.id,
                "message_type": feedback.message_type,
                "edited": feedback.original_message != feedback.edited_message,
                "total_corrections": total,
            })
            return {
                "success": True,
                "feedback": feedback,
                "total_corrections": total,
                "should_update_charter": should_update,
            }

        except SalesIntelligenceError:
            raise
        except Exception as e:
            await self.handle_error("save_feedback", e, message_type=data.get("message_type"))

    async def list_feedback(self, limit: int = 10) -> List[MessageFeedback]:
        stmt = (
            self.create_base_query(MessageFeedback)
            .order_by(MessageFeedback.created_at.desc())
            .limit(limit)
        )
        return list((await self.db.execute(stmt)).scalars().all())

    # === TONAL CHARTER ===

    async def get_charter(self) -> TonalCharter:
        """The tenant's charter, created with the default preferences on first access."""
        stmt = select(TonalCharter).where(TonalCharter.tenant_id == self.write_tenant_id)
        charter = (await self.db.execute(stmt)).scalar_one_or_none()
        if charter is None:
            charter = TonalCharter(
                tenant_id=self.write_tenant_id,
                charter_data=copy.deepcopy(DEFAULT_TONAL_CHARTER),
                corrections_count=0,
                confidence_score=0,
                is_learning_enabled=True,
            )
            charter.stamp_created(None)
            await self.persist(charter)
        return charter

    async def set_learning(self, enabled: bool, user: Optional[AuditContext] = None) -> TonalCharter:
        charter = await self.get_charter()
        charter.is_learning_enabled = enabled
        charter.stamp_updated(user)
        await self.persist(charter)
        self.log_operation("tonal_charter_learning", {"enabled": enabled})
        return charter

    async def reset_charter(self, user: Optional[AuditContext] = None) -> TonalCharter:
        """Forget every correction and go back to the default preferences."""
        stmt = self.scope(delete(MessageFeedback), MessageFeedback)
        deleted = (await self.db.execute(stmt)).rowcount

        charter = await self.get_charter()
        charter.charter_data = copy.deepcopy(DEFAULT_TONAL_CHARTER)
        charter.corrections_count = 0
        charter.confidence_score = 0
        charter.last_analysis_at = None
        charter.stamp_updated(user)
        await self.persist(charter)

        self.log_operation("tonal_charter_reset", {"feedback_deleted": deleted})
        return charter

    async def update_tonal_charter(self) -> Dict[str, Any]:
        """
        Have Claude rebuild the charter from every stored correction.

        Returns:
            {"success": False, "reason": ...} without feedback, else the analysis summary

        Raises:
            ProviderNotConfiguredError: No Claude key
            ProviderError: Claude failure or a reply without a JSON charter
        """
        stmt = self.create_base_query(MessageFeedback).order_by(MessageFeedback.created_at.asc())
        feedbacks = list((await self.db.execute(stmt)).scalars().all())
        if not feedbacks:
            return {"success": False, "reason": "No feedback to analyze"}

        logger.info("Analyzing message corrections", corrections=len(feedbacks))
        client = await self.get_claude_client()
        text = await client.complete(build_charter_prompt(feedbacks), system=CHARTER_SYSTEM_PROMPT, max_tokens=4000)

        try:
            charter_data = extract_json(text)
        except ValueError:
            charter_data = None
        if not isinstance(charter_data, dict):
            logger.error("Charter reply without JSON", reply=(text or "")[:500])
            raise ProviderError("claude", "Failed to parse charter from AI response")

        confidence = charter_confidence(charter_data, len(feedbacks))
        charter = await self.get_charter()
        charter.charter_data = charter_data
        charter.corrections_count = len(feedbacks)
        charter.confidence_score = confidence
        charter.last_analysis_at = utcnow()
        charter.stamp_updated(None)
        await self.persist(charter)

        self.log_operation("tonal_charter_updated", {
            "corrections": len(feedbacks),
            "confidence_score": confidence,
        })
        return {
            "success": True,
            "corrections_analyzed": len(feedbacks),
            "confidence_score": confidence,
            "charter_summary": charter_data.get("summary"),
            "patterns_detected": charter_data.get("patterns_detected"),
        }
