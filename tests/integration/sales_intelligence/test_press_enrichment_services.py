import json
import pytest

from app.features.business_automations.sales_intelligence.exceptions import (
    NotFoundError,
    ProviderError,
    ProviderNotConfiguredError,
)
from app.features.business_automations.sales_intelligence.models import RawArticle
from app.features.business_automations.sales_intelligence.services.contacts import ContactCrudService
from app.features.business_automations.sales_intelligence.services.credits import CreditService
from app.features.business_automations.sales_intelligence.services.enrichment import (
    EnrichmentService,
    build_enrichment_prompt,
    parse_manus_output,
)
from app.features.business_automations.sales_intelligence.services.press import (
    PressScanService,
    estimate_revenue_from_employees,
    parse_detected_signals,
)
from app.features.business_automations.sales_intelligence.services.settings import SettingsService
from app.features.business_automations.sales_intelligence.services.signals import SignalCrudService
from app.features.business_automations.sales_intelligence.utils import ManusClient, NewsAPIClient
from app.features.core.sqlalchemy_imports import select


def _article(url, title="Article", published="2026-10-10T08:00:00Z"):
    return {
        "title": title,
        "url": url,
        "description": "Une entreprise annonce une nouvelle.",
        "content": "Contenu",
        "source": {"name": "Les Echos"},
        "publishedAt": published,
    }


class FakeNewsAPI:
    api_key = "news-key"

    def __init__(self, by_query=None, failing=()):
        self.by_query = by_query or {}
        self.failing = set(failing)
        self.calls = []

    async def search_everything(self, query, from_date, language="fr", page_size=50):
        self.calls.append(query)
        if query in self.failing:
            raise ProviderError("newsapi", "HTTP 500", 500)
        return self.by_query.get(query, [])


class FakeClaude:
    client = object()

    def __init__(self, reply):
        self.reply = reply
        self.prompts = []

    async def complete(self, prompt, system=None, max_tokens=1024):
        self.prompts.append(prompt)
        return self.reply


class FakePerplexity:
    def __init__(self, revenues):
        self.revenues = revenues
        self.lookups = []

    async def find_revenue(self, company_name):
        self.lookups.append(company_name)
        return self.revenues.get(company_name)


class FakeEnrichment:
    def __init__(self):
        self.triggered = []

    async def trigger_enrichment(self, signal_id, source="presse", user=None):
        self.triggered.append((signal_id, source))
        return {"enrichment": None, "already_completed": False}


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


async def _no_sleep(seconds):
    return None


async def _press_settings(db, tenant_id, **values):
    settings = SettingsService(db, tenant_id)
    await settings.upsert_setting("perplexity_enrich_presse", "false")
    for key, value in values.items():
        await settings.upsert_setting(key, value)
    return settings


# === PRESS: HELPERS ===

@pytest.mark.unit
def test_revenue_estimate_from_headcount():
    assert estimate_revenue_from_employees(0) == 0
    assert estimate_revenue_from_employees(10) == 1_000_000
    assert estimate_revenue_from_employees(100) == 12_000_000
    assert estimate_revenue_from_employees(300) == 45_000_000


@pytest.mark.unit
def test_parse_detected_signals_accepts_fences_and_arrays():
    fenced = '```json\n{"signals": [{"company_name": "Alpha"}, {"signal_type": "ma"}]}\n```'
    assert [s["company_name"] for s in parse_detected_signals(fenced)] == ["Alpha"]

    bare = 'Voici: [{"company_name": "Beta", "score": 4}]'
    assert parse_detected_signals(bare)[0]["score"] == 4

    assert parse_detected_signals('{"signals": []}') == []

    with pytest.raises(ValueError):
        parse_detected_signals("aucun signal")


# === PRESS: FETCH ===

@pytest.mark.integration
@pytest.mark.asyncio
async def test_fetch_news_dedupes_urls_and_continues_after_failure(test_db_session, tenant_id, user):
    settings = SettingsService(test_db_session, tenant_id)
    await settings.create_search_query({"name": "A levées", "query": "levée de fonds"}, user)
    await settings.create_search_query({"name": "B broken", "query": "broken"}, user)
    await settings.create_search_query({"name": "C anniversaires", "query": "anniversaire"}, user)
    await settings.create_search_query({"name": "D inactive", "query": "inactive", "is_active": False}, user)

    newsapi = FakeNewsAPI(
        by_query={
            "levée de fonds": [_article("https://ex.com/1"), _article("https://ex.com/1"), _article("https://ex.com/2")],
            "anniversaire": [_article("https://ex.com/2"), _article("https://ex.com/3", title=None)],
        },
        failing={"broken"},
    )
    service = PressScanService(test_db_session, tenant_id, newsapi_client=newsapi)

    result = await service.fetch_news()

    assert result == {"articles_fetched": 3, "queries_processed": 2}
    assert "inactive" not in newsapi.calls

    rows = (await test_db_session.execute(select(RawArticle).order_by(RawArticle.url))).scalars().all()
    assert [r.url for r in rows] == ["https://ex.com/1", "https://ex.com/2", "https://ex.com/3"]
    assert rows[0].source_name == "Les Echos"
    assert rows[0].published_at.isoformat() == "2026-10-10T08:00:00"
    assert rows[2].title
    assert all(r.tenant_id == tenant_id for r in rows)

    # Failed calls still count against the daily quota
    usage = await CreditService(test_db_session, tenant_id).usage_history("newsapi")
    assert len(usage) == 3


@pytest.mark.integration
@pytest.mark.asyncio
async def test_fetch_news_requires_key(test_db_session, tenant_id):
    service = PressScanService(test_db_session, tenant_id, newsapi_client=NewsAPIClient(api_key=None))
    with pytest.raises(ProviderNotConfiguredError):
        await service.fetch_news()


# === PRESS: ANALYSIS ===

CLAUDE_REPLY = json.dumps({
    "signals": [
        {
            "company_name": "Alpha Industries",
            "signal_type": "levee",
            "event_detail": "Lève 20M€ en série B",
            "sector": "Industrie",
            "estimated_size": "Grand Compte",
            "score": 5,
            "hook_suggestion": "Félicitations pour la levée",
            "source_url": "https://ex.com/1",
        },
        {
            "company_name": "Beta Conseil",
            "signal_type": "distinction",
            "estimated_size": "PME",
            "score": 3,
            "source_url": "https://ex.com/2",
        },
        {
            "company_name": "Gamma",
            "signal_type": "weird",
            "estimated_size": "Énorme",
            "score": "4",
            "source_url": "https://ex.com/2",
        },
        {"signal_type": "ma", "score": 5},
    ]
})


async def _seed_articles(db, tenant_id, user):
    settings = SettingsService(db, tenant_id)
    await settings.create_search_query({"name": "Presse", "query": "entreprise"}, user)
    newsapi = FakeNewsAPI(by_query={"entreprise": [_article("https://ex.com/1"), _article("https://ex.com/2")]})
    await PressScanService(db, tenant_id, newsapi_client=newsapi).fetch_news()
    return newsapi


@pytest.mark.integration
@pytest.mark.asyncio
async def test_analyze_articles_creates_filters_and_enriches(test_db_session, tenant_id, user):
    await _seed_articles(test_db_session, tenant_id, user)
    await _press_settings(test_db_session, tenant_id, min_revenue_presse="10000000",
                          sender_pitch="coffrets gourmands")

    claude = FakeClaude(CLAUDE_REPLY)
    enrichment = FakeEnrichment()
    service = PressScanService(test_db_session, tenant_id, claude_client=claude, enrichment_service=enrichment)

    result = await service.analyze_articles()

    assert result == {
        "articles_processed": 2,
        "signals_created": 2,
        "signals_filtered_by_revenue": 1,
        "auto_enriched": 2,
    }
    assert "coffrets gourmands" in claude.prompts[0]
    assert "MINIMUM 20 SALARIÉS" in claude.prompts[0]
    assert "https://ex.com/1" in claude.prompts[0]

    signals, total = await SignalCrudService(test_db_session, tenant_id).list_signals()
    by_name = {s.company_name: s for s in signals}
    assert set(by_name) == {"Alpha Industries", "Gamma"}

    alpha = by_name["Alpha Industries"]
    assert alpha.revenue_estimate == 150_000_000
    assert alpha.source_name == "Les Echos"
    assert alpha.article_id is not None

    gamma = by_name["Gamma"]
    assert gamma.signal_type == "expansion"
    assert gamma.estimated_size == "Inconnu"
    assert gamma.score == 4

    assert {signal_id for signal_id, _ in enrichment.triggered} == {alpha.id, gamma.id}

    processed = (await test_db_session.execute(select(RawArticle.processed))).scalars().all()
    assert all(processed)

    # Nothing left to analyse
    again = await service.analyze_articles()
    assert again["articles_processed"] == 0
    assert len(claude.prompts) == 1


@pytest.mark.integration
@pytest.mark.asyncio
async def test_analyze_articles_skips_enrichment_when_disabled(test_db_session, tenant_id, user):
    await _seed_articles(test_db_session, tenant_id, user)
    await _press_settings(test_db_session, tenant_id, auto_enrich_enabled="false")

    enrichment = FakeEnrichment()
    service = PressScanService(test_db_session, tenant_id, claude_client=FakeClaude(CLAUDE_REPLY),
                               enrichment_service=enrichment)

    result = await service.analyze_articles()

    assert result["signals_created"] == 3
    assert result["auto_enriched"] == 0
    assert enrichment.triggered == []


@pytest.mark.integration
@pytest.mark.asyncio
async def test_analyze_articles_rejects_unparseable_reply(test_db_session, tenant_id, user):
    await _seed_articles(test_db_session, tenant_id, user)
    await _press_settings(test_db_session, tenant_id)

    service = PressScanService(test_db_session, tenant_id, claude_client=FakeClaude("Je ne sais pas."),
                               enrichment_service=FakeEnrichment())

    with pytest.raises(ProviderError):
        await service.analyze_articles()


@pytest.mark.integration
@pytest.mark.asyncio
async def test_full_scan_logs_progress(test_db_session, tenant_id, user):
    settings = await _press_settings(test_db_session, tenant_id, auto_enrich_enabled="false")
    await settings.create_search_query({"name": "Presse", "query": "entreprise"}, user)

    service = PressScanService(
        test_db_session,
        tenant_id,
        newsapi_client=FakeNewsAPI(by_query={"entreprise": [_article("https://ex.com/1"), _article("https://ex.com/2")]}),
        claude_client=FakeClaude(CLAUDE_REPLY),
        enrichment_service=FakeEnrichment(),
        sleep=_no_sleep,
    )

    log = await service.run_full_scan()

    assert log.status == "completed"
    assert log.articles_fetched == 2
    assert log.articles_analyzed == 2
    assert log.signals_created == 3
    assert log.completed_at is not None

    entries = await settings.list_scan_logs()
    assert entries[0]["id"] == log.id
    assert entries[0]["contacts_enriched"] == 0


@pytest.mark.integration
@pytest.mark.asyncio
async def test_full_scan_failure_is_recorded(test_db_session, tenant_id):
    service = PressScanService(test_db_session, tenant_id, newsapi_client=NewsAPIClient(api_key=None))

    with pytest.raises(ProviderNotConfiguredError):
        await service.run_full_scan()

    entries = await SettingsService(test_db_session, tenant_id).list_scan_logs()
    assert len(entries) == 1
    assert entries[0]["status"] == "failed"
    assert "newsapi" in entries[0]["error_message"]


# === ENRICHMENT: PARSING ===

MANUS_ANSWER = {
    "contacts": [
        {"full_name": "Claire Petit", "first_name": "Claire", "last_name": "Petit",
         "job_title": "Office Manager", "email": "claire@maison-dupont.fr", "is_priority_persona": True},
        {"name": "Marc Roux", "title": "Responsable RH", "linkedin": "https://linkedin.com/in/marcroux"},
        {"full_name": "Julie Blanc", "job_title": "Assistante de direction"},
        {"job_title": "DAF"},
    ],
    "company_info": {
        "website": "https://www.maison-dupont.fr",
        "industry": "Luxe",
        "employee_count": "200-500",
        "headquarters": "Lyon",
        "description": "N/A",
    },
}


@pytest.mark.unit
def test_parse_manus_output_shapes():
    contacts, info = parse_manus_output(json.dumps(MANUS_ANSWER))
    assert len(contacts) == 4
    assert info["industry"] == "Luxe"

    contacts, info = parse_manus_output([{"full_name": "Solo", "email": "solo@ex.com"}])
    assert contacts[0]["full_name"] == "Solo"
    assert info == {}

    messages = [
        {"role": "user", "content": "Trouve des contacts"},
        {"role": "assistant", "content": [
            {"type": "output_text", "text": "Voici le résultat :\n```json\n" + json.dumps(MANUS_ANSWER) + "\n```"},
        ]},
    ]
    contacts, info = parse_manus_output(messages)
    assert len(contacts) == 4
    assert info["headquarters"] == "Lyon"

    assert parse_manus_output("rien du tout") == ([], {})


@pytest.mark.unit
def test_enrichment_prompt_lists_priority_personas():
    class _Signal:
        company_name = "Maison Dupont"
        sector = None
        event_detail = "Fête ses 100 ans"
        signal_type = "anniversaire"

    prompt = build_enrichment_prompt(_Signal(), [
        {"name": "Office Manager", "isPriority": True},
        {"name": "DAF", "isPriority": False},
    ])
    assert "Maison Dupont" in prompt
    assert "1. Office Manager" in prompt
    assert "- DAF" in prompt
    assert "Non spécifié" in prompt


# === ENRICHMENT: LIFECYCLE ===

async def _signal(db, tenant_id, user, name="Maison Dupont"):
    return await SignalCrudService(db, tenant_id).create_signal(
        {"company_name": name, "signal_type": "anniversaire", "score": 5}, user
    )


@pytest.mark.integration
@pytest.mark.asyncio
async def test_enrichment_lifecycle(test_db_session, tenant_id, user):
    signal = await _signal(test_db_session, tenant_id, user)
    manus = FakeManus()
    service = EnrichmentService(test_db_session, tenant_id, manus_client=manus)

    started = await service.trigger_enrichment(signal.id, "presse", user)
    enrichment = started["enrichment"]

    assert started["already_completed"] is False
    assert enrichment.status == "manus_processing"
    assert enrichment.manus_task_id == "task-1"
    assert signal.enrichment_status == "manus_processing"
    assert "Maison Dupont" in manus.created[0]

    usage = await CreditService(test_db_session, tenant_id).usage_history("manus")
    assert [u.credits_used for u in usage] == [1.0]

    interactions = await SignalCrudService(test_db_session, tenant_id).list_interactions(signal.id)
    assert "enrichment_triggered" in [i.action_type for i in interactions]

    # Agent still working
    running = await service.check_status(signal.id)
    assert running["status"] == "manus_processing"
    assert running["contacts_created"] == 0

    manus.tasks["task-1"] = {"status": "completed", "output": json.dumps(MANUS_ANSWER)}
    done = await service.check_status(signal.id)
    assert done == {"status": "completed", "contacts_created": 4}

    assert enrichment.status == "completed"
    assert enrichment.domain == "maison-dupont.fr"
    assert enrichment.headquarters_location == "Lyon"
    assert enrichment.description is None
    assert signal.enrichment_status == "completed"

    contacts, total = await ContactCrudService(test_db_session, tenant_id).list_contacts(signal_id=signal.id)
    assert total == 4
    by_name = {c.full_name: c for c in contacts}
    assert by_name["Marc Roux"].job_title == "Responsable RH"
    assert by_name["Marc Roux"].linkedin_url == "https://linkedin.com/in/marcroux"
    assert by_name["Claire Petit"].priority_score == 100
    assert by_name["Claire Petit"].is_priority_target is True
    assert by_name["Contact 4"].is_priority_target is False
    assert by_name["Contact 4"].priority_score == 70

    # A completed enrichment is not started again
    again = await service.trigger_enrichment(signal.id)
    assert again["already_completed"] is True
    assert len(manus.created) == 1


@pytest.mark.integration
@pytest.mark.asyncio
async def test_enrichment_failures_mark_signal(test_db_session, tenant_id, user):
    signal = await _signal(test_db_session, tenant_id, user)
    service = EnrichmentService(test_db_session, tenant_id,
                                manus_client=FakeManus(fail_create=ProviderError("manus", "HTTP 502", 502)))

    with pytest.raises(ProviderError):
        await service.trigger_enrichment(signal.id)

    enrichment = await service.get_for_signal(signal.id)
    assert enrichment.status == "failed"
    assert "HTTP 502" in enrichment.error_message
    assert signal.enrichment_status == "failed"

    other = await _signal(test_db_session, tenant_id, user, name="Sans Clé")
    keyless = EnrichmentService(test_db_session, tenant_id, manus_client=ManusClient(api_key=None))
    with pytest.raises(ProviderNotConfiguredError):
        await keyless.trigger_enrichment(other.id)
    assert other.enrichment_status == "failed"

    with pytest.raises(NotFoundError):
        await service.check_status("missing")


@pytest.mark.integration
@pytest.mark.asyncio
async def test_check_pending_counts_outcomes(test_db_session, tenant_id, user):
    manus = FakeManus()
    service = EnrichmentService(test_db_session, tenant_id, manus_client=manus)

    first = await _signal(test_db_session, tenant_id, user, name="Première")
    second = await _signal(test_db_session, tenant_id, user, name="Seconde")
    third = await _signal(test_db_session, tenant_id, user, name="Troisième")
    for signal in (first, second, third):
        await service.trigger_enrichment(signal.id)

    manus.tasks["task-1"] = {"status": "completed", "output": [{"full_name": "Solo", "email": "solo@ex.com"}]}
    manus.tasks["task-2"] = {"status": "failed", "error": "agent crashed"}

    summary = await service.check_pending()

    assert summary == {"checked": 3, "completed": 1, "failed": 1, "errors": 0}
    assert first.enrichment_status == "completed"
    assert second.enrichment_status == "failed"
    assert third.enrichment_status == "manus_processing"


@pytest.mark.integration
@pytest.mark.asyncio
async def test_check_pending_keeps_going_after_an_unexpected_error(test_db_session, tenant_id, user):
    manus = FakeManus()
    service = EnrichmentService(test_db_session, tenant_id, manus_client=manus)

    broken = await _signal(test_db_session, tenant_id, user, name="Cassée")
    healthy = await _signal(test_db_session, tenant_id, user, name="Saine")
    for signal in (broken, healthy):
        await service.trigger_enrichment(signal.id)

    manus.tasks["task-1"] = RuntimeError("unexpected payload")
    manus.tasks["task-2"] = {"status": "completed", "output": [{"full_name": "Solo"}]}

    summary = await service.check_pending()

    assert summary == {"checked": 1, "completed": 1, "failed": 0, "errors": 1}
    assert broken.enrichment_status == "manus_processing"
    assert healthy.enrichment_status == "completed"


# === PRESS: PERPLEXITY ACCOUNTING ===

@pytest.mark.integration
@pytest.mark.asyncio
async def test_revenue_lookups_are_billed(test_db_session, tenant_id):
    perplexity = FakePerplexity({"Alpha": 42_000_000.0})
    service = PressScanService(test_db_session, tenant_id, perplexity_client=perplexity,
                               enrichment_service=FakeEnrichment())

    assert await service.estimate_revenue("Alpha", "PME", True) == 42_000_000.0
    assert await service.estimate_revenue("Beta", "ETI", True) == estimate_revenue_from_employees(300)
    # Lookup disabled: no call, nothing billed
    assert await service.estimate_revenue("Gamma", "PME", False) == estimate_revenue_from_employees(50)
    assert perplexity.lookups == ["Alpha", "Beta"]

    credits = CreditService(test_db_session, tenant_id)
    usage = await credits.usage_history("perplexity")
    assert sorted(u.details["company_name"] for u in usage) == ["Alpha", "Beta"]
    assert sum(u.credits_used for u in usage) == 2.0
    assert (await credits.summary("perplexity"))["used"] == 2.0

    stats = await credits.perplexity_stats()
    assert stats["total"] == 2
    assert stats["successful"] == 1
    assert stats["successRate"] == 50
    assert stats["avgRevenueFound"] == 42_000_000.0
    assert stats["todayCount"] == 2
