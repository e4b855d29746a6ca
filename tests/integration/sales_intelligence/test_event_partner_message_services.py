import pytest
from datetime import date, datetime

from app.features.business_automations.sales_intelligence.exceptions import (
    InvalidStateError,
    NotFoundError,
    ProviderError,
    ProviderNotConfiguredError,
)
from app.features.business_automations.sales_intelligence.models import DetectedEvent
from app.features.business_automations.sales_intelligence.services.contacts import ContactCrudService
from app.features.business_automations.sales_intelligence.services.events import EventCrudService
from app.features.business_automations.sales_intelligence.services.messages import (
    MessageService,
    build_charter_prompt,
    build_system_prompt,
    build_user_prompt,
    charter_confidence,
    parse_email_reply,
)
from app.features.business_automations.sales_intelligence.services.partners import PartnerCrudService
from app.features.business_automations.sales_intelligence.services.settings import SettingsService
from app.features.business_automations.sales_intelligence.services.signals import SignalCrudService
from app.features.business_automations.sales_intelligence.utils import ClaudeClient


class FakeClaude:
    """Records prompts and answers with a canned reply."""

    def __init__(self, reply: str):
        self.reply = reply
        self.calls = []

    async def complete(self, prompt, system=None, max_tokens=1024):
        self.calls.append({"prompt": prompt, "system": system})
        return self.reply


# === EVENTS ===

@pytest.mark.integration
@pytest.mark.asyncio
async def test_event_defaults_order_and_stats(test_db_session, tenant_id, user):
    service = EventCrudService(test_db_session, tenant_id)

    late = await service.create_event({"name": "Salon du Chocolat", "date_start": date(2026, 10, 28)}, user)
    assert late.type == "salon"
    assert late.location == "À définir"
    assert late.status == "planned"
    assert late.contacts_count == 0

    await service.create_event({"name": "Meetup RH", "type": "networking",
                                "date_start": date(2026, 10, 3), "status": "attended"}, user)
    await service.create_event({"name": "Old fair", "date_start": date(2025, 1, 10)}, user)

    events, total = await service.list_events()
    assert [e.name for e in events] == ["Old fair", "Meetup RH", "Salon du Chocolat"]

    events, total = await service.list_events(event_type="networking")
    assert total == 1

    stats = await service.event_stats(today=date(2026, 10, 15))
    assert stats == {"total": 3, "upcoming": 1, "thisMonth": 2, "attended": 1, "totalContacts": 0}


@pytest.mark.integration
@pytest.mark.asyncio
async def test_event_contacts_copy_and_counter(test_db_session, tenant_id, user):
    events = EventCrudService(test_db_session, tenant_id)
    signal = await SignalCrudService(test_db_session, tenant_id).create_signal(
        {"company_name": "Maison Dupont", "signal_type": "nomination"}, user
    )
    contact = await ContactCrudService(test_db_session, tenant_id).create_contact({
        "signal_id": signal.id, "first_name": "Anne", "last_name": "Martin",
        "job_title": "DRH", "email_principal": "anne@dupont.fr",
    }, user)
    event = await events.create_event({"name": "Salon RH", "date_start": date(2026, 11, 5)}, user)

    copied = await events.add_event_contact(event.id, {"contact_id": contact.id, "job_title": "DRH Groupe"}, user)
    assert copied.full_name == "Anne Martin"
    assert copied.email == "anne@dupont.fr"
    assert copied.company_name == "Maison Dupont"
    assert copied.job_title == "DRH Groupe"
    assert copied.outreach_status == "new"

    typed = await events.add_event_contact(event.id, {"first_name": "Luc", "last_name": "Bernard"}, user)
    assert typed.full_name == "Luc Bernard"
    assert (await events.get_event(event.id)).contacts_count == 2

    await events.delete_event_contact(typed.id)
    assert (await events.get_event(event.id)).contacts_count == 1
    assert len(await events.list_event_contacts(event.id)) == 1


@pytest.mark.integration
@pytest.mark.asyncio
async def test_event_contact_needs_a_name(test_db_session, tenant_id, user):
    events = EventCrudService(test_db_session, tenant_id)
    event = await events.create_event({"name": "Salon", "date_start": date(2026, 11, 5)}, user)

    with pytest.raises(InvalidStateError):
        await events.add_event_contact(event.id, {"job_title": "CEO"}, user)
    with pytest.raises(NotFoundError):
        await events.add_event_contact(event.id, {"contact_id": "missing"}, user)


@pytest.mark.integration
@pytest.mark.asyncio
async def test_transfer_detected_event_once(test_db_session, tenant_id, user):
    events = EventCrudService(test_db_session, tenant_id)
    detected = DetectedEvent(
        tenant_id=tenant_id, name="Sirha Lyon", type="salon", date_start=date(2027, 1, 21),
        location="Lyon", source="perplexity", source_url="https://sirha.example",
    )
    test_db_session.add(detected)
    await test_db_session.flush()

    event = await events.transfer_detected_event(detected.id, {"name": "Sirha 2027", "location": None}, user)
    assert event.name == "Sirha 2027"
    assert event.location == "Lyon"
    assert event.website_url == "https://sirha.example"
    assert detected.is_added is True
    assert detected.event_id == event.id

    with pytest.raises(InvalidStateError):
        await events.transfer_detected_event(detected.id, None, user)

    pending, total = await events.list_detected_events(include_added=False)
    assert total == 0


# === PARTNERS ===

@pytest.mark.integration
@pytest.mark.asyncio
async def test_partner_news_flow(test_db_session, tenant_id, user):
    service = PartnerCrudService(test_db_session, tenant_id)
    house = await service.create_house({"name": "Maison Pralus", "category": "chocolat"}, user)
    assert house.is_active is True

    undated = await service.create_news({"house_id": house.id, "title": "Nouveau coffret", "news_type": "product"}, user)
    assert undated.published_at is not None
    await service.create_news({"house_id": house.id, "title": "Salon", "news_type": "event",
                               "is_featured": True, "published_at": datetime(2020, 1, 1)}, user)

    news, total = await service.list_news(house_id=house.id)
    assert total == 2
    assert news[0].title == "Nouveau coffret"

    featured, total = await service.list_news(featured_only=True)
    assert [n.title for n in featured] == ["Salon"]

    with pytest.raises(NotFoundError):
        await service.create_news({"house_id": "missing", "title": "x", "news_type": "press"}, user)

    await service.delete_house(house.id)
    _, total = await service.list_news()
    assert total == 0


# === MESSAGES ===

@pytest.mark.unit
class TestMessagePrompts:

    def test_parse_email_reply(self):
        parsed = parse_email_reply("OBJET: 50 ans, ça se fête\n---\nBonjour Anne,\n\nBravo.")
        assert parsed == {"subject": "50 ans, ça se fête", "message": "Bonjour Anne,\n\nBravo."}

    def test_parse_reply_without_subject(self):
        assert parse_email_reply("Bonjour") == {"message": "Bonjour", "subject": None}

    def test_user_prompt_limits(self):
        inmail = build_user_prompt("inmail", "Anne Martin", "Anne", "Dupont", "Nommée DRH", "DRH")
        email = build_user_prompt("email", "Anne Martin", "Anne")
        assert "Maximum 200 mots" in inmail
        assert "CONTEXTE CLÉ À EXPLOITER : Nommée DRH" in inmail
        assert "Maximum 250 mots" in email
        assert "OBJET:" in email
        assert "Pas de contexte spécifique" in email

    def test_system_prompt_uses_signature_and_pitch(self):
        prompt = build_system_prompt("Jean, Maison Test", "coffrets de thé")
        assert "coffrets de thé" in prompt
        assert prompt.endswith("Jean, Maison Test")


@pytest.mark.integration
@pytest.mark.asyncio
async def test_generate_email_logs_contact_interaction(test_db_session, tenant_id, user):
    await SettingsService(test_db_session, tenant_id).upsert_setting("sender_signature", "Jean", user)
    contact = await ContactCrudService(test_db_session, tenant_id).create_contact({"full_name": "Anne Martin"}, user)
    claude = FakeClaude("OBJET: Félicitations\n---\nBonjour Anne")
    service = MessageService(test_db_session, tenant_id, claude_client=claude)

    result = await service.generate_message("email", "Anne Martin", company_name="Dupont",
                                            event_detail="50 ans", contact_id=contact.id, user=user)
    assert result == {"subject": "Félicitations", "message": "Bonjour Anne"}
    assert "Jean" in claude.calls[0]["system"]
    assert "Destinataire : Anne Martin" in claude.calls[0]["prompt"]

    interactions = await ContactCrudService(test_db_session, tenant_id).list_interactions(contact.id)
    assert interactions[0].action_type == "email_generated"
    assert interactions[0].new_value == "Félicitations"


@pytest.mark.integration
@pytest.mark.asyncio
async def test_generate_requires_claude_key(test_db_session, tenant_id):
    service = MessageService(test_db_session, tenant_id, claude_client=ClaudeClient(api_key=None))
    with pytest.raises(ProviderNotConfiguredError):
        await service.generate_message("inmail", "Anne Martin")


@pytest.mark.integration
@pytest.mark.asyncio
async def test_feedback_validation_and_storage(test_db_session, tenant_id, user):
    service = MessageService(test_db_session, tenant_id, claude_client=FakeClaude(""))
    valid = {"message_type": "email", "original_message": " Bonjour ", "edited_message": "Bonjour Anne",
             "original_subject": "", "context": {"company_name": "Dupont"}}

    saved = await service.save_feedback(valid, user)
    assert saved["success"] is True
    assert saved["total_corrections"] == 1
    assert saved["should_update_charter"] is False
    assert saved["feedback"].original_message == "Bonjour"
    assert saved["feedback"].original_subject is None

    with pytest.raises(InvalidStateError):
        await service.save_feedback({**valid, "message_type": "sms"}, user)
    with pytest.raises(InvalidStateError):
        await service.save_feedback({**valid, "edited_message": "x" * 10_001}, user)
    with pytest.raises(InvalidStateError):
        await service.save_feedback({**valid, "edited_subject": "s" * 501}, user)
    with pytest.raises(InvalidStateError):
        await service.save_feedback({**valid, "context": {"event_detail": "e" * 1001}}, user)


# === TONAL CHARTER ===

def _correction(i):
    return {
        "message_type": "inmail",
        "original_message": f"Je me permets de vous contacter {i}",
        "edited_message": f"Bonjour, un mot rapide {i}",
        "original_subject": "Félicitations",
        "edited_subject": "Bravo",
    }


@pytest.mark.unit
def test_charter_prompt_and_confidence():
    from app.features.business_automations.sales_intelligence.models import MessageFeedback

    feedback = MessageFeedback(message_type="email", original_message="A", edited_message="B",
                               original_subject="Sujet", edited_subject="Objet", context={"company_name": "Dupont"})
    prompt = build_charter_prompt([feedback])
    assert "=== CORRECTION 1 (email) ===" in prompt
    assert "SUJET CORRIGÉ: Objet" in prompt
    assert '"company_name": "Dupont"' in prompt

    assert charter_confidence({"confidence_score": 0.4}, 5) == 0.4
    assert charter_confidence({"confidence_score": 3}, 5) == 1.0
    assert charter_confidence({}, 10) == pytest.approx(0.3)
    assert charter_confidence({}, 40) == 0.95
    assert charter_confidence({"confidence_score": "élevé"}, 2) == pytest.approx(0.06)


@pytest.mark.integration
@pytest.mark.asyncio
async def test_every_fifth_correction_asks_for_an_analysis(test_db_session, tenant_id, user):
    service = MessageService(test_db_session, tenant_id, claude_client=FakeClaude(""))

    flags = [(await service.save_feedback(_correction(i), user))["should_update_charter"] for i in range(1, 11)]

    assert flags == [False, False, False, False, True, False, False, False, False, True]
    charter = await service.get_charter()
    assert charter.corrections_count == 10
    assert len(await service.list_feedback(limit=2)) == 2


@pytest.mark.integration
@pytest.mark.asyncio
async def test_paused_learning_stores_nothing(test_db_session, tenant_id, user):
    service = MessageService(test_db_session, tenant_id, claude_client=FakeClaude(""))
    charter = await service.set_learning(False, user)
    assert charter.is_learning_enabled is False

    result = await service.save_feedback(_correction(1), user)

    assert result == {"success": False, "reason": "Learning disabled"}
    assert await service.list_feedback() == []


@pytest.mark.integration
@pytest.mark.asyncio
async def test_update_tonal_charter_stores_the_analysis(test_db_session, tenant_id, user):
    reply = (
        "Voici la charte :\n```json\n"
        '{"formality": {"level": "semi-formel", "tutoyment": false, "observations": []},'
        ' "summary": "Direct et chaleureux", "patterns_detected": 4}\n```'
    )
    claude = FakeClaude(reply)
    service = MessageService(test_db_session, tenant_id, claude_client=claude)
    assert await service.update_tonal_charter() == {"success": False, "reason": "No feedback to analyze"}
    assert claude.calls == []

    for i in range(1, 6):
        await service.save_feedback(_correction(i), user)
    result = await service.update_tonal_charter()

    assert result == {
        "success": True,
        "corrections_analyzed": 5,
        "confidence_score": pytest.approx(0.15),
        "charter_summary": "Direct et chaleureux",
        "patterns_detected": 4,
    }
    assert "Analyse les 5 corrections" in claude.calls[0]["prompt"]
    assert "charte tonale" in claude.calls[0]["system"]

    charter = await service.get_charter()
    assert charter.charter_data["formality"]["level"] == "semi-formel"
    assert charter.last_analysis_at is not None
    assert charter.confidence_score == pytest.approx(0.15)


@pytest.mark.integration
@pytest.mark.asyncio
async def test_update_tonal_charter_rejects_a_reply_without_json(test_db_session, tenant_id, user):
    service = MessageService(test_db_session, tenant_id, claude_client=FakeClaude("Je ne peux pas."))
    await service.save_feedback(_correction(1), user)

    with pytest.raises(ProviderError):
        await service.update_tonal_charter()

    charter = await service.get_charter()
    assert charter.last_analysis_at is None


@pytest.mark.integration
@pytest.mark.asyncio
async def test_reset_charter_forgets_corrections(test_db_session, tenant_id, user):
    service = MessageService(test_db_session, tenant_id, claude_client=FakeClaude('{"summary": "Court"}'))
    for i in range(1, 3):
        await service.save_feedback(_correction(i), user)
    await service.update_tonal_charter()

    charter = await service.reset_charter(user)

    assert charter.corrections_count == 0
    assert charter.confidence_score == 0
    assert charter.last_analysis_at is None
    assert charter.charter_data["tone"]["style"] == "professionnel"
    assert await service.list_feedback() == []
