"""
LinkedIn engagement scraping through Apify.

Watched sources (profiles or company pages) are scraped for their latest
posts; every post's reactions become engagers, and engagers are transferred
into a ``linkedin_engagement`` signal plus a scored contact.
"""

import re
from typing import Dict, List, Optional, Tuple, Any, Callable, Awaitable

from app.features.core.sqlalchemy_imports import *
from app.features.core.enhanced_base_service import BaseService
from app.features.core.audit_mixin import AuditContext
from app.features.business_automations.sales_intelligence.constants import (
    APIFY_ACTORS,
    DEFAULT_PERSONAS,
    LINKEDIN_POSTS_PER_SOURCE,
    LINKEDIN_REACTIONS_PER_POST,
)
from app.features.business_automations.sales_intelligence.exceptions import (
    NotFoundError,
    ProviderNotConfiguredError,
    SalesIntelligenceError,
)
from app.features.business_automations.sales_intelligence.models import (
    Contact,
    LinkedInEngager,
    LinkedInPost,
    LinkedInSource,
    Signal,
)
from app.features.business_automations.sales_intelligence.services.credits import CreditService
from app.features.business_automations.sales_intelligence.services.settings import SettingsService
from app.features.business_automations.sales_intelligence.utils import ApifyClient, get_provider_api_key

logger = get_logger(__name__)

HEADLINE_COMPANY_RE = re.compile(r"(?:\bat\b|@|\bchez\b)\s+([^|,]+)", re.IGNORECASE)
SOURCE_FIELDS = {"name", "linkedin_url", "source_type", "is_active"}


# === SCORING ===

def _persona_terms(name: str) -> List[str]:
    cleaned = name.lower().replace("(e)", "").replace("/", " ")
    return [term for term in cleaned.split() if len(term) > 2]


def persona_base_score(job_title: Optional[str], personas: List[Dict[str, Any]]) -> int:
    """
    1-5 fit of a job title: 5 for a priority persona, 4 for another persona,
    keyword fallbacks after that, 3 when nothing matches.
    """
    if not job_title:
        return 3
    title = job_title.lower()

    for persona in (p for p in personas if p.get("isPriority")):
        if any(term in title for term in _persona_terms(persona["name"])):
            return 5

    for persona in (p for p in personas if not p.get("isPriority")):
        if any(term in title for term in _persona_terms(persona["name"])):
            return 4

    if "assistant" in title or "office manager" in title or "procurement" in title:
        return 5
    if "admin" in title or "operations" in title:
        return 4

    return 3


def freshness_bonus(signal_date: Optional[datetime], now: Optional[datetime] = None) -> int:
    if signal_date is None:
        return 0
    age_days = ((now or utcnow()) - signal_date).total_seconds() / 86400
    if age_days <= 7:
        return 2
    if age_days <= 30:
        return 1
    return 0


def contact_priority_score(job_title: Optional[str], personas: List[Dict[str, Any]],
                           signal_date: Optional[datetime], now: Optional[datetime] = None) -> int:
    return min(5, persona_base_score(job_title, personas) + freshness_bonus(signal_date, now))


def engagement_signal_score(engagement_type: str) -> int:
    return {"comment": 5, "share": 4}.get(engagement_type, 3)


def company_from_headline(headline: Optional[str]) -> Optional[str]:
    match = HEADLINE_COMPANY_RE.search(headline or "")
    return match.group(1).strip() if match else None


# === APIFY ITEM PARSING ===

def _parse_datetime(value: Any) -> Optional[datetime]:
    if not value:
        return None
    if isinstance(value, (int, float)):
        # epoch milliseconds
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc).replace(tzinfo=None)
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def parse_post_item(item: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    post_url = item.get("postUrl") or item.get("url")
    if not post_url:
        return None

    content = item.get("text") or item.get("content")
    posted = item.get("publishedAt") or item.get("date")
    if isinstance(posted, dict):
        posted = posted.get("timestamp") or posted.get("date")

    return {
        "post_url": post_url,
        "title": (content or "")[:100] or None,
        "content": content,
        "published_at": _parse_datetime(posted),
        "likes_count": int(item.get("likesCount") or 0),
        "comments_count": int(item.get("commentsCount") or 0),
        "shares_count": int(item.get("sharesCount") or 0),
    }


def parse_reaction_item(item: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    actor = item.get("actor") if isinstance(item.get("actor"), dict) else item
    linkedin_url = actor.get("profileUrl") or actor.get("linkedinUrl")
    if not linkedin_url:
        return None

    headline = actor.get("headline") or actor.get("position")
    is_comment = item.get("reactionType") == "comment"
    return {
        "name": actor.get("name") or actor.get("fullName") or "Unknown",
        "headline": headline,
        "company": item.get("company") or company_from_headline(headline),
        "linkedin_url": linkedin_url,
        "engagement_type": "comment" if is_comment else "like",
        "comment_text": (item.get("commentText") or item.get("comment")) if is_comment else None,
    }


class LinkedInService(BaseService[LinkedInSource]):
    """Sources, posts and engagers, plus the Apify scans that feed them."""

    def __init__(self, db_session: AsyncSession, tenant_id: Optional[str] = None,
                 apify_client: Optional[ApifyClient] = None):
        super().__init__(db_session, tenant_id)
        self._apify_client = apify_client
        self.credit_service = CreditService(db_session, tenant_id)
        self.settings_service = SettingsService(db_session, tenant_id)

    async def get_apify_client(self) -> ApifyClient:
        if self._apify_client is None:
            api_key = await get_provider_api_key(self.db, self.write_tenant_id, "apify")
            self._apify_client = ApifyClient(api_key=api_key)
        return self._apify_client

    # === SOURCES ===

    async def list_sources(self, active_only: bool = False) -> List[LinkedInSource]:
        stmt = self.create_base_query(LinkedInSource)
        if active_only:
            stmt = stmt.where(LinkedInSource.is_active.is_(True))
        stmt = stmt.order_by(LinkedInSource.name)
        return list((await self.db.execute(stmt)).scalars().all())

    async def get_source(self, source_id: str) -> LinkedInSource:
        source = await self.get_by_id(LinkedInSource, source_id)
        if not source:
            raise NotFoundError("LinkedIn source", source_id)
        return source

    async def create_source(self, data: Dict[str, Any], user: Optional[AuditContext] = None) -> LinkedInSource:
        try:
            source = LinkedInSource(
                tenant_id=self.write_tenant_id,
                name=data["name"],
                linkedin_url=data["linkedin_url"],
                source_type=data.get("source_type") or "profile",
                is_active=data.get("is_active", True),
            )
            source.stamp_created(user)
            await self.persist(source)

            self.log_operation("linkedin_source_creation", {"source_id": source.id, "name": source.name})
            return source

        except SalesIntelligenceError:
            raise
        except Exception as e:
            await self.handle_error("create_source", e, name=data.get("name"))

    async def update_source(self, source_id: str, updates: Dict[str, Any],
                            user: Optional[AuditContext] = None) -> LinkedInSource:
        try:
            source = await self.get_source(source_id)
            if self.apply_updates(source, updates, SOURCE_FIELDS):
                source.stamp_updated(user)
                await self.persist(source)
            return source

        except SalesIntelligenceError:
            raise
        except Exception as e:
            await self.handle_error("update_source", e, source_id=source_id)

    async def delete_source(self, source_id: str) -> None:
        try:
            source = await self.get_source(source_id)
            await self.db.execute(
                update(LinkedInPost).where(LinkedInPost.source_id == source_id).values(source_id=None)
            )
            await self.db.delete(source)
            await self.db.flush()
            self.log_operation("linkedin_source_deletion", {"source_id": source_id})

        except SalesIntelligenceError:
            raise
        except Exception as e:
            await self.handle_error("delete_source", e, source_id=source_id)

    # === POSTS ===

    async def get_post(self, post_id: str) -> LinkedInPost:
        post = await self.get_by_id(LinkedInPost, post_id)
        if not post:
            raise NotFoundError("LinkedIn post", post_id)
        return post

    async def list_posts(self, source_id: Optional[str] = None, limit: int = 50,
                         offset: int = 0) -> Tuple[List[LinkedInPost], int]:
        stmt = self.create_base_query(LinkedInPost)
        if source_id:
            stmt = stmt.where(LinkedInPost.source_id == source_id)
        stmt = stmt.order_by(LinkedInPost.created_at.desc())
        return await self.paginate(stmt, limit, offset)

    async def add_post(self, data: Dict[str, Any], user: Optional[AuditContext] = None) -> LinkedInPost:
        """Insert a post, or refresh the stored one with the same URL."""
        try:
            stmt = self.create_base_query(LinkedInPost).where(LinkedInPost.post_url == data["post_url"])
            post = (await self.db.execute(stmt)).scalar_one_or_none()

            if post is None:
                post = LinkedInPost(tenant_id=self.write_tenant_id, post_url=data["post_url"])
                post.stamp_created(user)
            else:
                post.stamp_updated(user)

            for field in ("source_id", "title", "content", "published_at",
                          "likes_count", "comments_count", "shares_count"):
                if data.get(field) is not None:
                    setattr(post, field, data[field])

            return await self.persist(post)

        except SalesIntelligenceError:
            raise
        except Exception as e:
            await self.handle_error("add_post", e, post_url=data.get("post_url"))

    # === ENGAGERS ===

    async def list_engagers(
        self,
        transferred: Optional[bool] = None,
        post_id: Optional[str] = None,
        engagement_type: Optional[str] = None,
        search: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> Tuple[List[LinkedInEngager], int]:
        stmt = self.create_base_query(LinkedInEngager)
        if transferred is not None:
            stmt = stmt.where(LinkedInEngager.transferred_to_contacts.is_(transferred))
        if post_id:
            stmt = stmt.where(LinkedInEngager.post_id == post_id)
        if engagement_type:
            stmt = stmt.where(LinkedInEngager.engagement_type == engagement_type)
        if search:
            stmt = self.apply_search_filters(stmt, LinkedInEngager, search, ["name", "headline", "company"])
        stmt = stmt.order_by(LinkedInEngager.scraped_at.desc())
        return await self.paginate(stmt, limit, offset)

    async def _upsert_engager(self, post: LinkedInPost, values: Dict[str, Any]) -> bool:
        stmt = self.create_base_query(LinkedInEngager).where(
            LinkedInEngager.post_id == post.id,
            LinkedInEngager.linkedin_url == values["linkedin_url"],
            LinkedInEngager.engagement_type == values["engagement_type"],
        )
        engager = (await self.db.execute(stmt)).scalar_one_or_none()
        if engager is not None:
            engager.headline = values["headline"] or engager.headline
            engager.company = values["company"] or engager.company
            engager.scraped_at = utcnow()
            return False

        engager = LinkedInEngager(tenant_id=self.write_tenant_id, post_id=post.id, scraped_at=utcnow(), **values)
        engager.stamp_created(None)
        self.db.add(engager)
        return True

    # === SCRAPING ===

    async def scrape_post(self, post_id: str, record_credits: bool = True) -> Dict[str, int]:
        """Scrape the reactions of one post and store its engagers."""
        post = await self.get_post(post_id)
        client = await self.get_apify_client()

        items = await client.scrape_reactions(APIFY_ACTORS["reactions"], post.post_url, LINKEDIN_REACTIONS_PER_POST)
        reactions = [r for r in (parse_reaction_item(item) for item in items) if r]

        created = 0
        for values in reactions:
            if await self._upsert_engager(post, values):
                created += 1
        await self.db.flush()

        post.likes_count = sum(1 for r in reactions if r["engagement_type"] != "comment")
        post.comments_count = sum(1 for r in reactions if r["engagement_type"] == "comment")
        post.last_scraped_at = utcnow()
        await self.db.flush()

        if record_credits and reactions:
            await self._record_apify_usage(len(reactions), {"post_id": post_id, "post_url": post.post_url})

        logger.info("LinkedIn post scraped", post_id=post_id, reactions=len(reactions), engagers_created=created)
        return {"engagers_found": len(reactions), "engagers_created": created}

    async def _record_apify_usage(self, engagers: int, details: Dict[str, Any]):
        plan = await self.credit_service.plan_settings("apify")
        await self.credit_service.record_usage(
            "apify",
            credits_used=engagers * plan["unit_cost"],
            units=engagers,
            details=details,
        )

    async def full_scan(self, commit: Optional[Callable[[], Awaitable[None]]] = None) -> Dict[str, Any]:
        """
        Scrape every active source, then transfer the new engagers.

        A source whose scrape fails is logged and skipped.
        """
        client = await self.get_apify_client()
        if not client.api_key:
            raise ProviderNotConfiguredError("apify")
        summary = {"sources_scanned": 0, "posts_found": 0, "engagers_found": 0,
                   "engagers_created": 0, "errors": 0}

        for source in await self.list_sources(active_only=True):
            try:
                actor = APIFY_ACTORS["company" if source.source_type == "company" else "profile"]
                items = await client.scrape_posts(actor, source.linkedin_url, LINKEDIN_POSTS_PER_SOURCE)
                posts = [p for p in (parse_post_item(item) for item in items) if p]

                source_engagers = 0
                for values in posts:
                    post = await self.add_post({**values, "source_id": source.id})
                    result = await self.scrape_post(post.id, record_credits=False)
                    source_engagers += result["engagers_found"]
                    summary["engagers_created"] += result["engagers_created"]

                source.posts_count = await self.count_where(LinkedInPost, LinkedInPost.source_id == source.id)
                source.engagers_count = (source.engagers_count or 0) + source_engagers
                source.last_scraped_at = utcnow()
                await self.db.flush()

                summary["sources_scanned"] += 1
                summary["posts_found"] += len(posts)
                summary["engagers_found"] += source_engagers
                if commit:
                    await commit()

            except Exception as e:
                logger.error("LinkedIn source scan failed", source_id=source.id, name=source.name, error=str(e))
                summary["errors"] += 1

        if summary["engagers_found"]:
            await self._record_apify_usage(summary["engagers_found"], {
                "sources_scanned": summary["sources_scanned"],
                "posts_found": summary["posts_found"],
            })

        summary["transfer"] = await self.transfer_engagers()
        if commit:
            await commit()

        self.log_operation("linkedin_full_scan", {k: v for k, v in summary.items() if k != "transfer"})
        return summary

    # === TRANSFER ===

    async def transfer_engagers(self, user: Optional[AuditContext] = None) -> Dict[str, int]:
        """
        Turn every engager not yet transferred into a signal and a contact.

        The contact's priority score combines persona fit with the freshness
        of the post.
        """
        personas = await self.settings_service.get_json("personas_linkedin")
        if not isinstance(personas, list) or not personas:
            personas = list(DEFAULT_PERSONAS)

        stmt = self.create_base_query(LinkedInEngager).where(LinkedInEngager.transferred_to_contacts.is_(False))
        engagers = list((await self.db.execute(stmt)).scalars().all())

        result = {"transferred": 0, "signals_created": 0, "errors": 0}
        for engager in engagers:
            try:
                post = await self.get_by_id(LinkedInPost, engager.post_id) if engager.post_id else None
                source = await self.get_by_id(LinkedInSource, post.source_id) if post and post.source_id else None
                source_name = source.name if source else "LinkedIn"
                signal_date = (post.published_at if post else None) or engager.scraped_at or utcnow()

                label = "Commentaire" if engager.engagement_type == "comment" else "Like"
                detail = f"{label} de {engager.name}"
                if engager.headline:
                    detail += f" - {engager.headline}"

                signal = Signal(
                    tenant_id=self.write_tenant_id,
                    company_name=engager.company or f"Post {source_name}",
                    signal_type="linkedin_engagement",
                    score=engagement_signal_score(engager.engagement_type),
                    status="new",
                    enrichment_status="none",
                    source_name="LinkedIn",
                    source_url=(post.post_url if post else None) or engager.linkedin_url,
                    event_detail=detail,
                    detected_at=signal_date,
                )
                signal.stamp_created(user)
                self.db.add(signal)
                await self.db.flush()
                result["signals_created"] += 1

                base_score = persona_base_score(engager.headline, personas)
                priority_score = contact_priority_score(engager.headline, personas, signal_date)

                notes = f"Engagement: {label} sur un post de {source_name}"
                if engager.comment_text:
                    notes += f"\n\nCommentaire: {engager.comment_text}"
                notes += f"\n\nScore: {priority_score}/5"

                contact = Contact(
                    tenant_id=self.write_tenant_id,
                    signal_id=signal.id,
                    full_name=engager.name,
                    job_title=engager.headline,
                    linkedin_url=engager.linkedin_url,
                    source="linkedin",
                    outreach_status="new",
                    priority_score=priority_score,
                    is_priority_target=base_score >= 5,
                    notes=notes,
                )
                contact.stamp_created(user)
                self.db.add(contact)
                await self.db.flush()

                engager.transferred_to_contacts = True
                engager.contact_id = contact.id
                await self.db.flush()
                result["transferred"] += 1

            except Exception as e:
                logger.error("Engager transfer failed", engager_id=engager.id, name=engager.name, error=str(e))
                result["errors"] += 1

        self.log_operation("linkedin_engagers_transfer", result)
        return result
