import json
import httpx
import pytest
from datetime import datetime

from app.features.business_automations.sales_intelligence.exceptions import (
    ProviderError,
    ProviderNotConfiguredError,
)
from app.features.business_automations.sales_intelligence.utils import (
    ApifyClient,
    ManusClient,
    NewsAPIClient,
    PappersClient,
    extract_json,
)


def _transport(handler, seen=None):
    def wrapped(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append(request)
        return handler(request)
    return httpx.MockTransport(wrapped)


@pytest.mark.unit
def test_extract_json_variants():
    assert extract_json('{"a": 1}') == {"a": 1}
    assert extract_json('```json\n[1, 2]\n```') == [1, 2]
    assert extract_json('Résultat : {"contacts": [{"name": "A"}]} fin') == {"contacts": [{"name": "A"}]}
    assert extract_json({"already": "parsed"}) == {"already": "parsed"}
    with pytest.raises(ValueError):
        extract_json(None)
    with pytest.raises(ValueError):
        extract_json("pas de json")


# === PAPPERS ===

@pytest.mark.unit
@pytest.mark.asyncio
async def test_pappers_search_sends_filters():
    seen = []
    client = PappersClient(api_key="pk", transport=_transport(
        lambda request: httpx.Response(200, json={"resultats": [{"siren": "1"}], "total": 1}), seen
    ))

    payload = await client.search_companies("2016-01-01", "2016-01-31", page=2, tranche_effectif_min="10")

    assert payload["total"] == 1
    request = seen[0]
    assert request.url.path == "/v2/recherche"
    assert request.url.params["api_token"] == "pk"
    assert request.url.params["page"] == "2"
    assert request.url.params["tranche_effectif_min"] == "10"
    assert request.url.params["entreprise_cessee"] == "false"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_pappers_drops_empty_params_and_maps_errors():
    seen = []
    client = PappersClient(api_key="pk", transport=_transport(lambda request: httpx.Response(200, json={}), seen))
    await client.search_publications("modification")
    assert "date_publication_min" not in seen[0].url.params

    limited = PappersClient(api_key="pk", transport=_transport(lambda request: httpx.Response(429)))
    with pytest.raises(ProviderError) as exc:
        await limited.search_companies("2016-01-01", "2016-01-31")
    assert exc.value.is_rate_limited
    assert exc.value.provider == "pappers"

    with pytest.raises(ProviderNotConfiguredError):
        await PappersClient(api_key=None).search_companies("2016-01-01", "2016-01-31")


# === NEWSAPI ===

@pytest.mark.unit
@pytest.mark.asyncio
async def test_newsapi_search():
    seen = []
    client = NewsAPIClient(api_key="nk", transport=_transport(
        lambda request: httpx.Response(200, json={"status": "ok", "articles": [{"url": "https://ex.com/1"}]}), seen
    ))

    articles = await client.search_everything("levée de fonds", datetime(2026, 10, 10, 6, 30))

    assert articles == [{"url": "https://ex.com/1"}]
    params = seen[0].url.params
    assert params["q"] == "levée de fonds"
    assert params["from"] == "2026-10-10T06:30:00"
    assert params["language"] == "fr"
    assert params["apiKey"] == "nk"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_newsapi_error_payload_and_status():
    client = NewsAPIClient(api_key="nk", transport=_transport(
        lambda request: httpx.Response(200, json={"status": "error", "message": "apiKeyInvalid"})
    ))
    with pytest.raises(ProviderError, match="apiKeyInvalid"):
        await client.search_everything("x", datetime(2026, 10, 10))

    failing = NewsAPIClient(api_key="nk", transport=_transport(lambda request: httpx.Response(500)))
    with pytest.raises(ProviderError) as exc:
        await failing.search_everything("x", datetime(2026, 10, 10))
    assert exc.value.status_code == 500
    assert not exc.value.is_rate_limited


# === MANUS ===

@pytest.mark.unit
@pytest.mark.asyncio
async def test_manus_create_and_get_task():
    seen = []

    def handler(request):
        if request.method == "POST":
            return httpx.Response(200, json={"task_id": "t-42"})
        return httpx.Response(200, json={"status": "completed", "output": "{}"})

    client = ManusClient(api_key="mk", transport=_transport(handler, seen))

    task = await client.create_task("Trouve des contacts")
    assert task == {"task_id": "t-42", "task_url": "https://manus.ai/tasks/t-42"}
    assert seen[0].headers["API_KEY"] == "mk"
    body = json.loads(seen[0].content)
    assert body["prompt"] == "Trouve des contacts"
    assert body["taskMode"] == "agent"

    status = await client.get_task("t-42")
    assert status["status"] == "completed"
    assert seen[1].url.path == "/v1/tasks/t-42"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_manus_missing_task_id_and_rate_limit():
    empty = ManusClient(api_key="mk", transport=_transport(lambda request: httpx.Response(200, json={})))
    with pytest.raises(ProviderError, match="task_id"):
        await empty.create_task("prompt")

    limited = ManusClient(api_key="mk", transport=_transport(lambda request: httpx.Response(429)))
    with pytest.raises(ProviderError) as exc:
        await limited.create_task("prompt")
    assert exc.value.is_rate_limited


# === APIFY ===

def _apify_handler(final_status="SUCCEEDED"):
    polls = {"count": 0}

    def handler(request):
        path = request.url.path
        if request.method == "POST":
            return httpx.Response(201, json={"data": {"id": "run-1", "status": "RUNNING", "defaultDatasetId": "ds-1"}})
        if path == "/v2/actor-runs/run-1":
            polls["count"] += 1
            status = "RUNNING" if polls["count"] < 2 else final_status
            return httpx.Response(200, json={"data": {"status": status}})
        if path == "/v2/datasets/ds-1/items":
            return httpx.Response(200, json=[{"postUrl": "https://linkedin.com/posts/1"}])
        return httpx.Response(404)

    return handler, polls


@pytest.mark.unit
@pytest.mark.asyncio
async def test_apify_run_polls_until_done():
    handler, polls = _apify_handler()
    seen = []
    client = ApifyClient(api_key="ak", poll_interval=0, max_polls=5, transport=_transport(handler, seen))

    items = await client.scrape_posts("apimaestro/linkedin-profile-posts", "https://linkedin.com/in/a", 10)

    assert items == [{"postUrl": "https://linkedin.com/posts/1"}]
    assert polls["count"] == 2
    assert seen[0].url.path == "/v2/acts/apimaestro~linkedin-profile-posts/runs"
    assert json.loads(seen[0].content)["maxItems"] == 10
    assert seen[0].url.params["token"] == "ak"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_apify_unsuccessful_run_returns_nothing():
    handler, polls = _apify_handler(final_status="FAILED")
    client = ApifyClient(api_key="ak", poll_interval=0, max_polls=5, transport=_transport(handler))
    assert await client.scrape_reactions("harvestapi/linkedin-post-reactions", "https://linkedin.com/posts/1", 50) == []

    handler, polls = _apify_handler()
    impatient = ApifyClient(api_key="ak", poll_interval=0, max_polls=1, transport=_transport(handler))
    assert await impatient.scrape_reactions("harvestapi/linkedin-post-reactions", "https://linkedin.com/posts/1", 50) == []

    with pytest.raises(ProviderNotConfiguredError):
        await ApifyClient(api_key=None).run_actor("a/b", {})
