import pytest

from app.features.business_automations.sales_intelligence.models import LinkedInEngager
from app.features.core.config import get_settings

BASE = "/features/sales-intelligence"


async def _create_signal(client, **overrides):
    payload = {"company_name": "Maison Dupont", "signal_type": "anniversaire", "score": 4, **overrides}
    response = await client.post(f"{BASE}/signals", json=payload)
    assert response.status_code == 201, response.text
    return response.json()


@pytest.mark.integration
@pytest.mark.asyncio
async def test_health(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"
    assert response.headers["X-Content-Type-Options"] == "nosniff"


# === SIGNALS ===

@pytest.mark.integration
@pytest.mark.asyncio
async def test_collection_routes_answer_without_trailing_slash(client):
    created = await client.post(f"{BASE}/signals", json={"company_name": "Acme", "signal_type": "levee"})
    assert created.status_code == 201
    assert created.json()["company_name"] == "Acme"

    contact = await client.post(f"{BASE}/contacts", json={"first_name": "Anne", "signal_id": created.json()["id"]})
    assert contact.status_code == 201

    for path in ("/events", "/settings", "/credits"):
        response = await client.get(f"{BASE}{path}")
        assert response.status_code == 200, path


@pytest.mark.integration
@pytest.mark.asyncio
async def test_signal_crud_flow(client):
    signal = await _create_signal(client)
    await _create_signal(client, company_name="Beta", signal_type="levee", score=2)

    listing = await client.get(f"{BASE}/signals/api/list", params={"min_score": 3})
    assert listing.status_code == 200
    body = listing.json()
    assert body["total"] == 1
    assert body["last_page"] == 1
    assert body["data"][0]["company_name"] == "Maison Dupont"

    updated = await client.patch(f"{BASE}/signals/{signal['id']}", json={"status": "contacted", "notes": "Appel"})
    assert updated.status_code == 200
    assert updated.json()["status"] == "contacted"

    timeline = await client.get(f"{BASE}/signals/{signal['id']}/interactions")
    action_types = [item["action_type"] for item in timeline.json()["data"]]
    assert "status_change" in action_types
    assert "note_added" in action_types

    stats = await client.get(f"{BASE}/signals/api/stats")
    assert stats.json()["total"] == 2
    assert stats.json()["inProgress"] == 1

    deleted = await client.delete(f"{BASE}/signals/{signal['id']}")
    assert deleted.json()["success"] is True
    assert (await client.get(f"{BASE}/signals/{signal['id']}")).status_code == 404


@pytest.mark.integration
@pytest.mark.asyncio
async def test_signal_validation_and_errors(client):
    bad_type = await client.post(f"{BASE}/signals", json={"company_name": "X", "signal_type": "rumeur"})
    assert bad_type.status_code == 422

    bad_score = await client.post(f"{BASE}/signals", json={"company_name": "X", "signal_type": "ma", "score": 9})
    assert bad_score.status_code == 422

    missing = await client.patch(f"{BASE}/signals/unknown", json={"status": "won"})
    assert missing.status_code == 404
    assert "not found" in missing.json()["detail"]

    interaction = await client.post(f"{BASE}/signals/unknown/interactions", json={"action_type": "note_added"})
    assert interaction.status_code == 404


@pytest.mark.integration
@pytest.mark.asyncio
async def test_signals_are_tenant_scoped(client):
    await _create_signal(client)

    other = await client.get(f"{BASE}/signals/api/list", headers={"X-Tenant-ID": "other-tenant"})
    assert other.json()["total"] == 0

    mine = await client.get(f"{BASE}/signals/api/list")
    assert mine.json()["total"] == 1


@pytest.mark.integration
@pytest.mark.asyncio
async def test_interactions_record_the_caller(client):
    signal = await _create_signal(client)

    created = await client.post(
        f"{BASE}/signals/{signal['id']}/interactions",
        json={"action_type": "note_added", "new_value": "Rappeler lundi"},
    )
    assert created.status_code == 201
    assert created.json()["created_by"] == "alice@example.com"


# === SETTINGS ===

@pytest.mark.integration
@pytest.mark.asyncio
async def test_settings_and_search_queries(client):
    stored = await client.put(f"{BASE}/settings/days_to_fetch", json={"value": "3"})
    assert stored.status_code == 200
    assert stored.json()["value"] == "3"

    personas = [{"name": "Office Manager", "isPriority": True}]
    await client.put(f"{BASE}/settings/personas_presse", json={"value": personas})

    settings = (await client.get(f"{BASE}/settings")).json()
    assert settings["days_to_fetch"] == "3"
    assert settings["personas_presse"] == '[{"name": "Office Manager", "isPriority": true}]'

    created = await client.post(f"{BASE}/settings/search-queries",
                                json={"name": "Levées", "query": "levée de fonds"})
    assert created.status_code == 201
    query_id = created.json()["id"]

    toggled = await client.post(f"{BASE}/settings/search-queries/{query_id}/toggle")
    assert toggled.json()["is_active"] is False

    active = await client.get(f"{BASE}/settings/search-queries", params={"active_only": True})
    assert active.json()["data"] == []

    assert (await client.delete(f"{BASE}/settings/search-queries/{query_id}")).status_code == 200
    assert (await client.delete(f"{BASE}/settings/search-queries/{query_id}")).status_code == 404


# === EVENTS ===

@pytest.mark.integration
@pytest.mark.asyncio
async def test_events_listing_and_stats(client):
    for name, day in (("Salon B", "2026-12-01"), ("Salon A", "2026-11-01")):
        response = await client.post(f"{BASE}/events", json={"name": name, "date_start": day})
        assert response.status_code == 201

    listing = await client.get(f"{BASE}/events")
    assert [e["name"] for e in listing.json()["data"]] == ["Salon A", "Salon B"]

    stats = await client.get(f"{BASE}/events/api/stats")
    assert stats.json()["total"] == 2

    invalid = await client.post(f"{BASE}/events", json={"name": "X", "date_start": "2026-11-01", "type": "rave"})
    assert invalid.status_code == 422

    assert (await client.get(f"{BASE}/events/unknown")).status_code == 404


# === CREDITS & DASHBOARD ===

@pytest.mark.integration
@pytest.mark.asyncio
async def test_credits_routes(client):
    summaries = (await client.get(f"{BASE}/credits")).json()
    assert set(summaries) == {"pappers", "manus", "apify", "newsapi", "perplexity"}
    assert summaries["newsapi"]["period"] == "daily"

    plan = await client.put(f"{BASE}/credits/pappers/plan", json={"credit_limit": 500})
    assert plan.status_code == 200

    summary = (await client.get(f"{BASE}/credits/pappers")).json()
    assert summary["limit"] == 500
    assert summary["used"] == 0

    assert (await client.get(f"{BASE}/credits/openai")).status_code == 404
    assert (await client.get(f"{BASE}/credits/pappers/usage")).json()["data"] == []


@pytest.mark.integration
@pytest.mark.asyncio
async def test_dashboard_overview(client):
    await _create_signal(client)
    overview = await client.get(f"{BASE}/dashboard/overview")

    assert overview.status_code == 200
    body = overview.json()
    assert body["signals"]["total"] == 1
    assert body["events"]["total"] == 0
    assert body["contacts"]["total"] == 0
    assert "pappers" in body["credits"]


# === PAPPERS ===

@pytest.mark.integration
@pytest.mark.asyncio
async def test_pappers_dry_run_and_actions(client, monkeypatch):
    dry_run = await client.post(f"{BASE}/pappers/scan", json={"action": "start", "years": [10, 25]})
    assert dry_run.status_code == 200
    body = dry_run.json()
    assert body["dry_run"] is True
    assert [scan["status"] for scan in body["scans"]] == ["pending", "pending"]
    assert len(body["estimates"]) == 2

    unknown = await client.post(f"{BASE}/pappers/scan", json={"action": "rewind"})
    assert unknown.status_code == 400

    missing = await client.post(f"{BASE}/pappers/scan", json={"action": "pause", "scan_id": "missing"})
    assert missing.status_code == 404

    bad_years = await client.post(f"{BASE}/pappers/scan", json={"action": "start", "years": [0]})
    assert bad_years.status_code == 422

    monkeypatch.setattr(get_settings(), "PAPPERS_API_KEY", None)
    no_key = await client.post(f"{BASE}/pappers/scan", json={"action": "start", "dry_run": False})
    assert no_key.status_code == 503


# === LINKEDIN ===

@pytest.mark.integration
@pytest.mark.asyncio
async def test_engager_enrichment_routes(client, test_db_session, tenant_id, monkeypatch):
    monkeypatch.setattr(get_settings(), "MANUS_API_KEY", None)
    engager = LinkedInEngager(
        tenant_id=tenant_id,
        name="Marie Curie",
        company="Radium",
        linkedin_url="https://www.linkedin.com/in/marie-curie",
        engagement_type="like",
    )
    test_db_session.add(engager)
    await test_db_session.flush()

    enriched = await client.post(f"{BASE}/linkedin/engagers/{engager.id}/enrich")
    assert enriched.status_code == 200
    assert enriched.json()["status"] == "created_without_enrichment"

    missing = await client.post(f"{BASE}/linkedin/engagers/missing/enrich")
    assert missing.status_code == 404

    batch = await client.post(f"{BASE}/linkedin/engagers/enrich-batch")
    assert batch.status_code == 200
    assert batch.json()["success"] is True

    pending = await client.post(f"{BASE}/linkedin/engager-contacts/check-pending")
    assert pending.json() == {"success": True, "checked": 0, "completed": 0, "failed": 0, "errors": 0}

    check = await client.post(f"{BASE}/linkedin/engager-contacts/{enriched.json()['contact_id']}/check")
    assert check.json()["message"] == "Pas de tâche Manus associée"


# === MESSAGES ===

@pytest.mark.integration
@pytest.mark.asyncio
async def test_feedback_and_tonal_charter_routes(client, tenant_id, monkeypatch):
    from app.features.business_automations.sales_intelligence.routes.messages import message_routes

    queued = []

    class FakeTask:
        @staticmethod
        def delay(tenant):
            queued.append(tenant)

    monkeypatch.setattr(message_routes, "update_tonal_charter_task", FakeTask)
    monkeypatch.setattr(get_settings(), "ANTHROPIC_API_KEY", None)

    charter = await client.get(f"{BASE}/messages/tonal-charter")
    assert charter.status_code == 200
    assert charter.json()["corrections_count"] == 0
    assert charter.json()["is_learning_enabled"] is True

    payload = {"message_type": "inmail", "original_message": "Bonjour", "edited_message": "Salut"}
    for i in range(5):
        saved = await client.post(f"{BASE}/messages/feedback", json=payload)
        assert saved.status_code == 201
    assert saved.json()["total_corrections"] == 5
    assert saved.json()["should_update_charter"] is True
    assert queued == [tenant_id]

    listed = await client.get(f"{BASE}/messages/feedback", params={"limit": 3})
    assert len(listed.json()["data"]) == 3

    analyze = await client.post(f"{BASE}/messages/tonal-charter/analyze")
    assert analyze.status_code == 503

    paused = await client.put(f"{BASE}/messages/tonal-charter/learning", json={"enabled": False})
    assert paused.json()["is_learning_enabled"] is False
    skipped = await client.post(f"{BASE}/messages/feedback", json=payload)
    assert skipped.status_code == 200
    assert skipped.json() == {"success": False, "reason": "Learning disabled"}

    reset = await client.post(f"{BASE}/messages/tonal-charter/reset")
    assert reset.json()["corrections_count"] == 0
    assert (await client.get(f"{BASE}/messages/feedback")).json()["data"] == []
