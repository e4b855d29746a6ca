import json
import pytest
from datetime import timedelta

from app.features.business_automations.sales_intelligence.exceptions import (
    NotFoundError,
    ProviderError,
    ProviderNotConfiguredError,
)
from app.features.business_automations.sales_intelligence.models import Contact, LinkedInEngager
from app.features.business_automations.sales_intelligence.services.credits import CreditService
from app.features.business_automations.sales_intelligence.services.enrichment import EngagerEnrichmentService
from app.features.business_automations.sales_intelligence.services.enrichment.engager_enrichment_services import (
    build_engager_prompt,
    guess_email,
    linkedin_username,
    parse_engager_output,
)
from app.features.core.sqlalchemy_imports import utcnow


class FakeManus:
    api_key = "manus-key"

    def __init__(self, tasks=None, fail_create=None):
        self.tasks = tasks or {}
        self.fail_create = fail_create
        self.created = []

    async def create_task(self, prompt):
        if self.fail_create:
            raise self.fail_create
        task_id = f"task-{len(self.created) + 1}"
        self.created.append(prompt)
        return {"task_id": task_id, "task_url": f"https://manus.ai/tasks/{task_id}"}

    async def get_task(self, task_id):
        task = self.tasks.get(task_id, {"status": "running"})
        if isinstance(task, Exception):
            raise task
        return task


async def _engager(db, tenant_id, name="Marie Curie", company="Radium SA", minutes_ago=0, **values):
    engager = LinkedInEngager(
        tenant_id=tenant_id,
        name=name,
        headline=f"Directrice RSE chez {company}",
        company=company,
        linkedin_url=f"https://www.linkedin.com/in/{name.lower().replace(' ', '-')}/",
        engagement_type="comment",
        scraped_at=utcnow() - timedelta(minutes=minutes_ago),
        **values,
    )
    db.add(engager)
    await db.flush()
    return engager


def _completed(contact):
    reply = json.dumps({"contact": contact, "confidence_score": 0.9})
    return {
        "status": "completed",
        "output": [
            {"role": "user", "content": [{"type": "input_text", "text": "..."}]},
            {"role": "assistant", "content": [{"type": "output_text", "text": f"Voici le résultat:\n{reply}"}]},
        ],
    }


@pytest.mark.unit
def test_engager_helpers():
    assert linkedin_username("https://www.linkedin.com/in/marie-curie/?trk=x") == "marie-curie"
    assert linkedin_username("https://example.com/marie") is None
    assert guess_email("Marie Curie", "Radium S.A.") == "marie.curie@radiumsa.com"
    assert guess_email("Marie", "Radium") is None
    assert guess_email("Marie Curie", None) is None


@pytest.mark.unit
def test_engager_prompt_mentions_profile():
    engager = LinkedInEngager(
        name="Marie Curie",
        headline="Directrice RSE",
        company="Radium SA",
        linkedin_url="https://www.linkedin.com/in/marie-curie",
        engagement_type="like",
    )
    prompt = build_engager_prompt(engager)
    assert '"username": "marie-curie"' in prompt
    assert "Radium SA" in prompt


@pytest.mark.unit
def test_parse_engager_output_shapes():
    contact = {"email": "marie.curie@radium.fr", "job_title": "DRSE"}

    assert parse_engager_output(_completed(contact)["output"]) == contact
    assert parse_engager_output(json.dumps({"contact": contact})) == contact
    assert parse_engager_output({"email": "x@y.fr"}) == {"email": "x@y.fr"}
    assert parse_engager_output("pas de json") == {}
    assert parse_engager_output([{"role": "assistant", "content": "texte"}]) == {}


@pytest.mark.integration
@pytest.mark.asyncio
async def test_enrich_engager_creates_contact_and_bills(test_db_session, tenant_id, user):
    engager = await _engager(test_db_session, tenant_id)
    manus = FakeManus()
    service = EngagerEnrichmentService(test_db_session, tenant_id, manus_client=manus)

    result = await service.enrich_engager(engager.id, user)

    assert result["status"] == "manus_processing"
    assert result["manus_task_id"] == "task-1"
    assert "marie-curie" in manus.created[0]

    contact = await test_db_session.get(Contact, result["contact_id"])
    assert engager.contact_id == contact.id
    assert contact.source == "linkedin"
    assert contact.outreach_status == "manus_processing"
    assert contact.raw_data["status_before_enrichment"] == "new"
    assert contact.raw_data["engager_id"] == engager.id

    usage = await CreditService(test_db_session, tenant_id).summary("manus")
    assert usage["used"] == 1.0

    again = await service.enrich_engager(engager.id, user)
    assert again["status"] == "already_enriched"
    assert len(manus.created) == 1


@pytest.mark.integration
@pytest.mark.asyncio
async def test_enrich_engager_without_manus_creates_contact(test_db_session, tenant_id, user):
    engager = await _engager(test_db_session, tenant_id)
    service = EngagerEnrichmentService(
        test_db_session, tenant_id, manus_client=FakeManus(fail_create=ProviderNotConfiguredError("manus"))
    )

    result = await service.enrich_engager(engager.id, user)

    assert result["status"] == "created_without_enrichment"
    contact = await test_db_session.get(Contact, result["contact_id"])
    assert contact.email_principal == "marie.curie@radiumsa.com"
    assert contact.outreach_status == "new"
    assert engager.transferred_to_contacts is True

    usage = await CreditService(test_db_session, tenant_id).summary("manus")
    assert usage["used"] == 0


@pytest.mark.integration
@pytest.mark.asyncio
async def test_enrich_unknown_engager(test_db_session, tenant_id):
    service = EngagerEnrichmentService(test_db_session, tenant_id, manus_client=FakeManus())
    with pytest.raises(NotFoundError):
        await service.enrich_engager("missing", None)


@pytest.mark.integration
@pytest.mark.asyncio
async def test_enrich_batch_takes_recent_prospects(test_db_session, tenant_id, user):
    old = await _engager(test_db_session, tenant_id, name="Ada Lovelace", minutes_ago=30)
    recent = await _engager(test_db_session, tenant_id, name="Marie Curie", minutes_ago=1)
    await _engager(test_db_session, tenant_id, name="Alan Turing", is_prospect=False)
    manus = FakeManus()
    service = EngagerEnrichmentService(test_db_session, tenant_id, manus_client=manus)

    result = await service.enrich_batch(user, limit=1)

    assert result["tasks_created"] == 1
    assert [r["engager_id"] for r in result["results"]] == [recent.id]

    second = await service.enrich_batch(user)
    assert [r["engager_id"] for r in second["results"]] == [old.id]

    third = await service.enrich_batch(user)
    assert third["tasks_created"] == 0
    assert third["results"] == []


@pytest.mark.integration
@pytest.mark.asyncio
async def test_check_contact_merges_details_and_restores_status(test_db_session, tenant_id, user):
    engager = await _engager(test_db_session, tenant_id)
    manus = FakeManus()
    service = EngagerEnrichmentService(test_db_session, tenant_id, manus_client=manus)
    started = await service.enrich_engager(engager.id, user)

    running = await service.check_contact(started["contact_id"])
    assert running["status"] == "manus_processing"

    manus.tasks["task-1"] = _completed({
        "email": "marie.curie@radium.fr",
        "phone": "+33 1 23 45 67 89",
        "job_title": "Directrice RSE",
        "location": "Paris, France",
    })
    result = await service.check_contact(started["contact_id"])

    assert result["status"] == "completed"
    assert result["email"] == "marie.curie@radium.fr"
    contact = await test_db_session.get(Contact, started["contact_id"])
    assert contact.outreach_status == "new"
    assert contact.phone == "+33 1 23 45 67 89"
    assert contact.location == "Paris, France"
    assert "enrichment_completed_at" in contact.raw_data
    assert engager.transferred_to_contacts is True


@pytest.mark.integration
@pytest.mark.asyncio
async def test_failed_task_restores_previous_status(test_db_session, tenant_id, user):
    contact = Contact(tenant_id=tenant_id, full_name="Marie Curie", source="linkedin", outreach_status="contacted")
    test_db_session.add(contact)
    await test_db_session.flush()
    engager = await _engager(test_db_session, tenant_id, contact_id=contact.id)
    manus = FakeManus(tasks={"task-1": {"status": "failed", "error": "quota"}})
    service = EngagerEnrichmentService(test_db_session, tenant_id, manus_client=manus)

    started = await service.enrich_engager(engager.id, user)
    assert started["contact_id"] == contact.id
    assert contact.outreach_status == "manus_processing"

    result = await service.check_contact(contact.id)

    assert result["status"] == "failed"
    assert contact.outreach_status == "contacted"
    assert contact.raw_data["enrichment_error"] == "quota"


@pytest.mark.integration
@pytest.mark.asyncio
async def test_check_pending_counts_each_outcome(test_db_session, tenant_id, user):
    manus = FakeManus()
    service = EngagerEnrichmentService(test_db_session, tenant_id, manus_client=manus)
    for name in ("Marie Curie", "Ada Lovelace", "Alan Turing"):
        engager = await _engager(test_db_session, tenant_id, name=name)
        await service.enrich_engager(engager.id, user)

    manus.tasks["task-1"] = _completed({"email": "marie.curie@radium.fr"})
    manus.tasks["task-2"] = ProviderError("manus", "Gateway timeout", 504)
    manus.tasks["task-3"] = RuntimeError("boom")

    summary = await service.check_pending()

    assert summary == {"checked": 2, "completed": 1, "failed": 0, "errors": 1}


@pytest.mark.integration
@pytest.mark.asyncio
async def test_check_contact_without_task(test_db_session, tenant_id):
    contact = Contact(tenant_id=tenant_id, full_name="Marie Curie", source="manual", outreach_status="new")
    test_db_session.add(contact)
    await test_db_session.flush()
    service = EngagerEnrichmentService(test_db_session, tenant_id, manus_client=FakeManus())

    result = await service.check_contact(contact.id)

    assert result["status"] == "new"
    assert result["message"] == "Pas de tâche Manus associée"
