import pytest
from datetime import datetime, timedelta, timezone

from app.features.business_automations.sales_intelligence.constants import DEFAULT_PERSONAS
from app.features.business_automations.sales_intelligence.exceptions import (
    NotFoundError,
    ProviderError,
    ProviderNotConfiguredError,
)
from app.features.business_automations.sales_intelligence.services.contacts import ContactCrudService
from app.features.business_automations.sales_intelligence.services.credits import CreditService
from app.features.business_automations.sales_intelligence.services.linkedin import (
    LinkedInService,
    company_from_headline,
    contact_priority_score,
    engagement_signal_score,
    freshness_bonus,
    persona_base_score,
)
from app.features.business_automations.sales_intelligence.services.linkedin.linkedin_services import (
    parse_post_item,
    parse_reaction_item,
)
from app.features.business_automations.sales_intelligence.services.signals import SignalCrudService
from app.features.business_automations.sales_intelligence.utils import ApifyClient


def _reaction(name, headline, url, comment=None):
    item = {"actor": {"name": name, "headline": headline, "profileUrl": url}}
    if comment:
        item["reactionType"] = "comment"
        item["commentText"] = comment
    else:
        item["reactionType"] = "LIKE"
    return item


class FakeApify:
    api_key = "apify-key"

    def __init__(self, posts=None, reactions=None, failing=()):
        self.posts = posts or {}
        self.reactions = reactions or {}
        self.failing = set(failing)
        self.post_calls = []

    async def scrape_posts(self, actor_id, source_url, max_items):
        self.post_calls.append((actor_id, source_url))
        if source_url in self.failing:
            raise ProviderError("apify", "HTTP 500", 500)
        return self.posts.get(source_url, [])

    async def scrape_reactions(self, actor_id, post_url, max_items):
        return self.reactions.get(post_url, [])


# === SCORING ===

@pytest.mark.unit
def test_persona_base_score():
    assert persona_base_score("Office Manager @ Acme", DEFAULT_PERSONAS) == 5
    assert persona_base_score("Assistante de direction", DEFAULT_PERSONAS) == 5
    assert persona_base_score("Responsable RH chez Beta", DEFAULT_PERSONAS) == 4
    assert persona_base_score("Head of Procurement", []) == 5
    assert persona_base_score("Operations lead", []) == 4
    assert persona_base_score("Développeur Python", DEFAULT_PERSONAS) == 3
    assert persona_base_score(None, DEFAULT_PERSONAS) == 3


@pytest.mark.unit
def test_freshness_and_priority_score():
    now = datetime(2026, 10, 17, 12, 0)
    assert freshness_bonus(now - timedelta(days=3), now) == 2
    assert freshness_bonus(now - timedelta(days=20), now) == 1
    assert freshness_bonus(now - timedelta(days=90), now) == 0
    assert freshness_bonus(None, now) == 0

    assert contact_priority_score("Développeur", DEFAULT_PERSONAS, now - timedelta(days=3), now) == 5
    assert contact_priority_score("Développeur", DEFAULT_PERSONAS, now - timedelta(days=20), now) == 4
    assert contact_priority_score("Office Manager", DEFAULT_PERSONAS, now, now) == 5


@pytest.mark.unit
def test_engagement_score_and_headline_company():
    assert engagement_signal_score("comment") == 5
    assert engagement_signal_score("share") == 4
    assert engagement_signal_score("like") == 3

    assert company_from_headline("Head of Procurement at Acme | ex-Beta") == "Acme"
    assert company_from_headline("DRH chez Maison Dupont, Lyon") == "Maison Dupont"
    assert company_from_headline("Office Manager @ Gamma") == "Gamma"
    assert company_from_headline("Consultant chat bot") is None
    assert company_from_headline(None) is None


@pytest.mark.unit
def test_parse_apify_items():
    post = parse_post_item({
        "postUrl": "https://linkedin.com/posts/1",
        "text": "Nous fêtons nos 50 ans",
        "date": {"timestamp": 1760000000000},
        "likesCount": "12",
    })
    assert post["title"] == "Nous fêtons nos 50 ans"
    assert post["published_at"] == datetime(2025, 10, 9, 8, 53, 20)
    assert post["likes_count"] == 12
    assert parse_post_item({"text": "no url"}) is None

    comment = parse_reaction_item(_reaction("Léa", "DAF at Delta", "https://linkedin.com/in/lea", comment="Bravo"))
    assert comment["engagement_type"] == "comment"
    assert comment["company"] == "Delta"
    assert comment["comment_text"] == "Bravo"

    like = parse_reaction_item({"fullName": "Tom", "linkedinUrl": "https://linkedin.com/in/tom", "position": "CTO"})
    assert like["engagement_type"] == "like"
    assert like["name"] == "Tom"
    assert like["comment_text"] is None

    assert parse_reaction_item({"actor": {"name": "Anonymous"}}) is None


# === SOURCES ===

@pytest.mark.integration
@pytest.mark.asyncio
async def test_source_crud(test_db_session, tenant_id, user):
    service = LinkedInService(test_db_session, tenant_id)

    source = await service.create_source({"name": "Maison A", "linkedin_url": "https://linkedin.com/company/a",
                                          "source_type": "company"}, user)
    await service.create_source({"name": "Alice", "linkedin_url": "https://linkedin.com/in/alice"}, user)

    assert [s.name for s in await service.list_sources()] == ["Alice", "Maison A"]

    updated = await service.update_source(source.id, {"is_active": False, "unknown": "ignored"}, user)
    assert updated.is_active is False
    assert [s.name for s in await service.list_sources(active_only=True)] == ["Alice"]

    post = await service.add_post({"post_url": "https://linkedin.com/posts/1", "source_id": source.id})
    await service.delete_source(source.id)
    refreshed = await service.get_post(post.id)
    await test_db_session.refresh(refreshed)
    assert refreshed.source_id is None

    with pytest.raises(NotFoundError):
        await service.get_source(source.id)


@pytest.mark.integration
@pytest.mark.asyncio
async def test_add_post_updates_existing_url(test_db_session, tenant_id):
    service = LinkedInService(test_db_session, tenant_id)

    first = await service.add_post({"post_url": "https://linkedin.com/posts/1", "likes_count": 3})
    second = await service.add_post({"post_url": "https://linkedin.com/posts/1", "likes_count": 8, "title": "Post"})

    assert first.id == second.id
    assert second.likes_count == 8
    posts, total = await service.list_posts()
    assert total == 1


# === SCRAPING & TRANSFER ===

@pytest.mark.integration
@pytest.mark.asyncio
async def test_scrape_post_records_engagers_and_credits(test_db_session, tenant_id):
    post_url = "https://linkedin.com/posts/1"
    apify = FakeApify(reactions={post_url: [
        _reaction("Anne", "Office Manager @ Acme", "https://linkedin.com/in/anne"),
        _reaction("Paul", "DAF chez Beta", "https://linkedin.com/in/paul", comment="Félicitations"),
        {"actor": {"name": "No profile"}},
    ]})
    service = LinkedInService(test_db_session, tenant_id, apify_client=apify)
    post = await service.add_post({"post_url": post_url})

    result = await service.scrape_post(post.id)
    assert result == {"engagers_found": 2, "engagers_created": 2}
    assert post.likes_count == 1
    assert post.comments_count == 1
    assert post.last_scraped_at is not None

    # Same reactions again: no duplicates
    again = await service.scrape_post(post.id)
    assert again["engagers_created"] == 0
    engagers, total = await service.list_engagers(post_id=post.id)
    assert total == 2

    comments, total = await service.list_engagers(engagement_type="comment")
    assert [e.name for e in comments] == ["Paul"]

    usage = await CreditService(test_db_session, tenant_id).usage_history("apify")
    assert [u.units for u in usage] == [2, 2]
    assert sum(u.credits_used for u in usage) == 2.0


@pytest.mark.integration
@pytest.mark.asyncio
async def test_full_scan_and_transfer(test_db_session, tenant_id, user):
    service_setup = LinkedInService(test_db_session, tenant_id)
    source = await service_setup.create_source({"name": "Maison A", "linkedin_url": "https://linkedin.com/in/a"}, user)
    await service_setup.create_source({"name": "Broken", "linkedin_url": "https://linkedin.com/in/broken"}, user)
    await service_setup.create_source({"name": "Off", "linkedin_url": "https://linkedin.com/in/off",
                                       "is_active": False}, user)

    recent = datetime.now(timezone.utc).isoformat()
    apify = FakeApify(
        posts={"https://linkedin.com/in/a": [
            {"postUrl": "https://linkedin.com/posts/fresh", "text": "Nouveau siège", "publishedAt": recent},
            {"postUrl": "https://linkedin.com/posts/old", "text": "Archive", "publishedAt": "2020-01-01T00:00:00Z"},
            {"text": "no url"},
        ]},
        reactions={
            "https://linkedin.com/posts/fresh": [
                _reaction("Anne", "Office Manager @ Acme", "https://linkedin.com/in/anne"),
                _reaction("Paul", "Directeur Général chez Delta", "https://linkedin.com/in/paul", comment="Bravo !"),
            ],
            "https://linkedin.com/posts/old": [
                _reaction("Zoé", "Développeuse Python", "https://linkedin.com/in/zoe"),
            ],
        },
        failing={"https://linkedin.com/in/broken"},
    )
    service = LinkedInService(test_db_session, tenant_id, apify_client=apify)

    summary = await service.full_scan()

    assert summary["sources_scanned"] == 1
    assert summary["posts_found"] == 2
    assert summary["engagers_found"] == 3
    assert summary["engagers_created"] == 3
    assert summary["errors"] == 1
    assert summary["transfer"] == {"transferred": 3, "signals_created": 3, "errors": 0}
    assert "https://linkedin.com/in/off" not in [url for _, url in apify.post_calls]

    assert source.posts_count == 2
    assert source.engagers_count == 3
    assert source.last_scraped_at is not None

    signals, total = await SignalCrudService(test_db_session, tenant_id).list_signals(signal_type="linkedin_engagement")
    by_company = {s.company_name: s for s in signals}
    assert set(by_company) == {"Acme", "Delta", "Post Maison A"}
    assert by_company["Delta"].score == 5
    assert by_company["Acme"].score == 3
    assert by_company["Acme"].source_url == "https://linkedin.com/posts/fresh"
    assert by_company["Delta"].event_detail == "Commentaire de Paul - Directeur Général chez Delta"

    contacts, total = await ContactCrudService(test_db_session, tenant_id).list_contacts(source="linkedin")
    by_name = {c.full_name: c for c in contacts}
    assert by_name["Anne"].priority_score == 5
    assert by_name["Anne"].is_priority_target is True
    assert by_name["Paul"].is_priority_target is False
    assert "Commentaire: Bravo !" in by_name["Paul"].notes
    assert by_name["Zoé"].priority_score == 3
    assert by_name["Zoé"].notes.endswith("Score: 3/5")

    engagers, total = await service.list_engagers(transferred=False)
    assert total == 0

    usage = await CreditService(test_db_session, tenant_id).usage_history("apify")
    assert [u.units for u in usage] == [3]

    # Nothing left to transfer
    assert await service.transfer_engagers() == {"transferred": 0, "signals_created": 0, "errors": 0}


@pytest.mark.integration
@pytest.mark.asyncio
async def test_full_scan_requires_key(test_db_session, tenant_id):
    service = LinkedInService(test_db_session, tenant_id, apify_client=ApifyClient(api_key=None))
    with pytest.raises(ProviderNotConfiguredError):
        await service.full_scan()
