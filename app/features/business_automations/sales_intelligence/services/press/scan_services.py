"""
Press scan: fetch business news, let Claude spot prospecting signals,
filter them on estimated revenue and optionally start enrichment.
"""

import asyncio
from typing import Dict, List, Optional, Any, Callable, Awaitable

from app.features.core.config import get_settings
from app.features.core.sqlalchemy_imports import *
from app.features.core.enhanced_base_service import BaseService
from app.features.business_automations.sales_intelligence.constants import (
    DEFAULT_AUTO_ENRICH_MIN_SCORE,
    DEFAULT_DAYS_TO_FETCH,
    DEFAULT_MIN_EMPLOYEES,
    DEFAULT_MIN_REVENUE,
    EMPLOYEES_BY_SIZE,
    ESTIMATED_SIZES,
    MISSING_ARTICLE_TITLE,
    PERPLEXITY_TOKENS_PER_LOOKUP,
    SIGNAL_TYPES,
)
from app.features.business_automations.sales_intelligence.exceptions import (
    ProviderError,
    ProviderNotConfiguredError,
    SalesIntelligenceError,
)
from app.features.business_automations.sales_intelligence.models import (
    RawArticle,
    ScanLog,
    SearchQuery,
    Signal,
)
from app.features.business_automations.sales_intelligence.services.credits import CreditService
from app.features.business_automations.sales_intelligence.services.enrichment import EnrichmentService
from app.features.business_automations.sales_intelligence.services.settings import SettingsService
from app.features.business_automations.sales_intelligence.services.signals import SignalCrudService
from app.features.business_automations.sales_intelligence.utils import (
    ClaudeClient,
    NewsAPIClient,
    PerplexityClient,
    extract_json,
    get_provider_api_key,
)

logger = get_logger(__name__)

DEFAULT_OFFER = "cadeaux d'affaires haut de gamme pour les équipes, clients et partenaires"


def estimate_revenue_from_employees(employee_count: int) -> float:
    """Rough annual revenue (EUR) from headcount."""
    if not employee_count or employee_count <= 0:
        return 0
    if employee_count < 50:
        return employee_count * 100_000
    if employee_count <= 250:
        return employee_count * 120_000
    return employee_count * 150_000


def build_articles_text(articles: List[RawArticle]) -> str:
    blocks = []
    for index, article in enumerate(articles, start=1):
        blocks.append(
            f"[ARTICLE {index}]\n"
            f"Titre: {article.title}\n"
            f"Source: {article.source_name or 'Inconnue'}\n"
            f"Date: {article.published_at.isoformat() if article.published_at else 'Inconnue'}\n"
            f"Description: {article.description or 'N/A'}\n"
            f"Contenu: {article.content or 'N/A'}\n"
            f"URL: {article.url}\n"
        )
    return "\n---\n\n".join(blocks)


def build_analysis_prompt(articles_text: str, min_employees: int, offer: str) -> str:
    return f"""Tu es un assistant commercial expert. Notre offre : {offer}.

Ta mission : analyser des articles de presse économique française et identifier les signaux d'affaires, des événements qui justifieraient qu'une entreprise fasse appel à nous.

## FILTRE EFFECTIFS OBLIGATOIRE
MINIMUM {min_employees} SALARIÉS : ignorer les entreprises plus petites (sauf levée de fonds très importante > 10M€).

## TYPES DE SIGNAUX
1. anniversaire : l'entreprise fête X ans d'existence, centenaire, jubilé
2. levee : levée de fonds significative (> 5M€), série A/B/C
3. ma : acquisition, fusion, rachat, création d'un nouveau groupe
4. distinction : prix, classement, label, certification, palmarès
5. expansion : nouveau bureau, nouveau siège, nouvelle implantation, inauguration
6. nomination : nouveau dirigeant (CEO, DG, Président)

## SCORING (1-5)
5 : signal très fort, cible premium, grande entreprise
4 : signal fort et bonne cible
3 : signal valide avec opportunité commerciale réelle
2 et 1 : à ignorer

IGNORER : associations, collectivités, administrations, startups early stage.

## FORMAT DE RÉPONSE
Réponds UNIQUEMENT en JSON valide, sans texte autour, sans markdown :
{{
  "signals": [
    {{
      "company_name": "Nom exact de l'entreprise",
      "signal_type": "anniversaire|levee|ma|distinction|expansion|nomination",
      "event_detail": "Description factuelle de l'événement (max 150 caractères)",
      "sector": "Secteur d'activité",
      "estimated_size": "PME|ETI|Grand Compte|Inconnu",
      "score": 5,
      "hook_suggestion": "Accroche personnalisée pour le message de prospection",
      "source_url": "URL exacte de l'article"
    }}
  ]
}}

Ne retourne QUE les signaux avec score >= 3. Si aucun signal : {{"signals": []}}

---

ARTICLES À ANALYSER :

{articles_text}"""


def parse_detected_signals(reply: str) -> List[Dict[str, Any]]:
    """Signals from Claude's reply: {"signals": [...]} or a bare array."""
    payload = extract_json(reply)
    if isinstance(payload, dict):
        payload = payload.get("signals") or []
    if not isinstance(payload, list):
        return []
    return [item for item in payload if isinstance(item, dict) and item.get("company_name")]


def _normalize_detected(item: Dict[str, Any]) -> Dict[str, Any]:
    try:
        score = int(item.get("score") or 3)
    except (TypeError, ValueError):
        score = 3
    size = item.get("estimated_size")
    signal_type = item.get("signal_type")
    return {
        **item,
        "company_name": str(item["company_name"]).strip(),
        "score": min(5, max(1, score)),
        "estimated_size": size if size in ESTIMATED_SIZES else "Inconnu",
        "signal_type": signal_type if signal_type in SIGNAL_TYPES else "expansion",
    }


def _parse_published_at(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


class PressScanService(BaseService[RawArticle]):
    """NewsAPI fetch, Claude analysis and the full scan orchestration."""

    def __init__(
        self,
        db_session: AsyncSession,
        tenant_id: Optional[str] = None,
        newsapi_client: Optional[NewsAPIClient] = None,
        claude_client: Optional[ClaudeClient] = None,
        perplexity_client: Optional[PerplexityClient] = None,
        enrichment_service: Optional[EnrichmentService] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        super().__init__(db_session, tenant_id)
        self._newsapi_client = newsapi_client
        self._claude_client = claude_client
        self._perplexity_client = perplexity_client
        self.settings_service = SettingsService(db_session, tenant_id)
        self.credit_service = CreditService(db_session, tenant_id)
        self.signal_service = SignalCrudService(db_session, tenant_id)
        self.enrichment_service = enrichment_service or EnrichmentService(db_session, tenant_id)
        self.sleep = sleep

    async def _api_key(self, provider: str) -> Optional[str]:
        return await get_provider_api_key(self.db, self.write_tenant_id, provider)

    async def get_newsapi_client(self) -> NewsAPIClient:
        if self._newsapi_client is None:
            self._newsapi_client = NewsAPIClient(api_key=await self._api_key("newsapi"))
        return self._newsapi_client

    async def get_claude_client(self) -> ClaudeClient:
        if self._claude_client is None:
            self._claude_client = ClaudeClient(api_key=await self._api_key("claude"))
        return self._claude_client

    async def get_perplexity_client(self) -> Optional[PerplexityClient]:
        if self._perplexity_client is None:
            api_key = await self._api_key("perplexity")
            if api_key:
                self._perplexity_client = PerplexityClient(api_key=api_key)
        return self._perplexity_client

    # === FETCH ===

    async def fetch_news(self) -> Dict[str, int]:
        """
        Pull recent articles for every active search query.

        Duplicate URLs are skipped; a failing query is logged and the loop
        moves on to the next one.
        """
        client = await self.get_newsapi_client()
        if not client.api_key:
            raise ProviderNotConfiguredError("newsapi")

        days = await self.settings_service.get_int("days_to_fetch", DEFAULT_DAYS_TO_FETCH)
        from_date = utcnow() - timedelta(days=days)
        queries = await self.settings_service.list_search_queries(active_only=True)

        articles_fetched = 0
        queries_processed = 0

        for query in queries:
            try:
                articles = await client.search_everything(query.query, from_date)
            except ProviderError as e:
                logger.error("Search query failed", query_id=query.id, name=query.name, error=str(e))
                await self.credit_service.record_usage(
                    "newsapi", 1, units=1, query_id=query.id,
                    details={"query": query.name, "success": False, "error": str(e)},
                )
                continue

            inserted = await self._store_articles(query, articles)
            articles_fetched += inserted
            queries_processed += 1
            query.last_fetched_at = utcnow()

            await self.credit_service.record_usage(
                "newsapi", 1, units=1, query_id=query.id,
                details={"query": query.name, "success": True, "articles": len(articles), "inserted": inserted},
            )

        await self.db.flush()
        self.log_operation("fetch_news", {"articles_fetched": articles_fetched, "queries_processed": queries_processed})
        return {"articles_fetched": articles_fetched, "queries_processed": queries_processed}

    async def _store_articles(self, query: SearchQuery, articles: List[Dict[str, Any]]) -> int:
        inserted = 0
        seen = set()
        for item in articles:
            url = item.get("url")
            if not url or url in seen:
                continue
            seen.add(url)

            if await self.count_where(RawArticle, RawArticle.url == url) > 0:
                continue

            article = RawArticle(
                tenant_id=self.write_tenant_id,
                query_id=query.id,
                title=item.get("title") or MISSING_ARTICLE_TITLE,
                description=item.get("description"),
                content=item.get("content"),
                url=url,
                source_name=(item.get("source") or {}).get("name"),
                author=item.get("author"),
                image_url=item.get("urlToImage"),
                published_at=_parse_published_at(item.get("publishedAt")),
                fetched_at=utcnow(),
            )
            article.stamp_created(None)
            self.db.add(article)
            inserted += 1

        await self.db.flush()
        return inserted

    # === ANALYSIS ===

    async def estimate_revenue(self, company_name: str, estimated_size: str, use_perplexity: bool) -> float:
        """Perplexity figure when one is found, else a headcount estimate. Every lookup is billed."""
        if use_perplexity:
            client = await self.get_perplexity_client()
            if client is not None:
                revenue = await client.find_revenue(company_name)
                await self._record_perplexity_usage(company_name, revenue)
                if revenue:
                    return revenue
        employees = EMPLOYEES_BY_SIZE.get(estimated_size, EMPLOYEES_BY_SIZE["Inconnu"])
        return estimate_revenue_from_employees(employees)

    async def _record_perplexity_usage(self, company_name: str, revenue: Optional[float]):
        plan = await self.credit_service.plan_settings("perplexity")
        await self.credit_service.record_usage(
            "perplexity",
            credits_used=plan["unit_cost"],
            units=1,
            details={
                "query_type": "company_revenue",
                "company_name": company_name,
                "success": revenue is not None,
                "revenue_found": revenue,
                "tokens_used": PERPLEXITY_TOKENS_PER_LOOKUP,
            },
        )

    async def analyze_articles(self, batch_size: Optional[int] = None) -> Dict[str, int]:
        """
        Analyse one batch of unprocessed articles with Claude.

        Returns:
            {articles_processed, signals_created, signals_filtered_by_revenue, auto_enriched}
        """
        batch_size = batch_size or get_settings().PRESS_ANALYSIS_BATCH_SIZE
        client = await self.get_claude_client()
        if client.client is None:
            raise ProviderNotConfiguredError("claude")

        auto_enrich = await self.settings_service.get_bool("auto_enrich_enabled", True)
        auto_enrich_min_score = await self.settings_service.get_int("auto_enrich_min_score", DEFAULT_AUTO_ENRICH_MIN_SCORE)
        min_employees = await self.settings_service.get_int("min_employees_presse", DEFAULT_MIN_EMPLOYEES)
        min_revenue = await self.settings_service.get_int("min_revenue_presse", DEFAULT_MIN_REVENUE)
        use_perplexity = await self.settings_service.get_bool("perplexity_enrich_presse", True)
        offer = await self.settings_service.get_value("sender_pitch") or DEFAULT_OFFER

        stmt = (
            self.create_base_query(RawArticle)
            .where(RawArticle.processed.is_(False))
            .order_by(RawArticle.published_at.desc())
            .limit(batch_size)
        )
        articles = list((await self.db.execute(stmt)).scalars().all())

        result = {"articles_processed": 0, "signals_created": 0, "signals_filtered_by_revenue": 0, "auto_enriched": 0}
        if not articles:
            logger.info("No articles to process", tenant_id=self.tenant_id)
            return result

        prompt = build_analysis_prompt(build_articles_text(articles), min_employees, offer)
        reply = await client.complete(prompt, max_tokens=4096)

        try:
            detected = parse_detected_signals(reply)
        except ValueError as e:
            logger.error("Failed to parse Claude response", error=str(e), reply=reply[:500])
            raise ProviderError("claude", "Failed to parse Claude response as JSON") from e

        articles_by_url = {article.url: article for article in articles}

        for raw in detected:
            item = _normalize_detected(raw)
            source_url = item.get("source_url")

            duplicate = await self.count_where(
                Signal,
                Signal.company_name == item["company_name"],
                Signal.source_url == source_url,
            )
            if duplicate:
                continue

            revenue = await self.estimate_revenue(item["company_name"], item["estimated_size"], use_perplexity)
            if revenue < min_revenue:
                logger.info("Signal below revenue floor", company=item["company_name"], revenue=revenue, floor=min_revenue)
                result["signals_filtered_by_revenue"] += 1
                continue

            article = articles_by_url.get(source_url)
            signal = await self.signal_service.create_signal({
                "company_name": item["company_name"],
                "signal_type": item["signal_type"],
                "score": item["score"],
                "estimated_size": item["estimated_size"],
                "sector": item.get("sector"),
                "event_detail": item.get("event_detail"),
                "hook_suggestion": item.get("hook_suggestion"),
                "source_url": source_url,
                "source_name": article.source_name if article else None,
                "article_id": article.id if article else None,
                "revenue_estimate": revenue,
            })
            result["signals_created"] += 1

            if auto_enrich and signal.score >= auto_enrich_min_score:
                try:
                    await self.enrichment_service.trigger_enrichment(signal.id, "presse")
                    result["auto_enriched"] += 1
                except SalesIntelligenceError as e:
                    logger.error("Auto-enrichment failed", signal_id=signal.id, company=signal.company_name, error=str(e))

        for article in articles:
            article.processed = True
        result["articles_processed"] = len(articles)
        await self.db.flush()

        self.log_operation("analyze_articles", result)
        return result

    # === FULL SCAN ===

    async def run_full_scan(self, commit: Optional[Callable[[], Awaitable[None]]] = None) -> ScanLog:
        """
        Fetch then analyse in batches, recording the run in scan_logs.

        Args:
            commit: Called after each step so progress is visible to pollers
        """
        settings = get_settings()
        batch_size = settings.PRESS_ANALYSIS_BATCH_SIZE

        log = ScanLog(tenant_id=self.write_tenant_id, status="running", started_at=utcnow())
        log.stamp_created(None)
        await self.persist(log)
        log_id = log.id
        if commit:
            await commit()

        try:
            fetched = await self.fetch_news()
            log.articles_fetched = fetched["articles_fetched"]
            if commit:
                await commit()

            for batch_number in range(settings.FULL_SCAN_MAX_BATCHES):
                batch = await self.analyze_articles(batch_size)
                log.articles_analyzed += batch["articles_processed"]
                log.signals_created += batch["signals_created"]
                if commit:
                    await commit()

                if batch["articles_processed"] < batch_size:
                    break
                if batch_number < settings.FULL_SCAN_MAX_BATCHES - 1:
                    await self.sleep(settings.FULL_SCAN_BATCH_PAUSE_SECONDS)

            log.status = "completed"
            log.completed_at = utcnow()
            await self.persist(log)
            if commit:
                await commit()

            self.log_operation("full_scan_completed", {
                "scan_log_id": log.id,
                "articles_fetched": log.articles_fetched,
                "articles_analyzed": log.articles_analyzed,
                "signals_created": log.signals_created,
            })
            return log

        except Exception as e:
            logger.error("Full scan failed", scan_log_id=log_id, error=str(e), exc_info=True)

            # Committed progress survives; only the failing step is discarded
            if commit:
                await self.db.rollback()
                log = await self.get_by_id(ScanLog, log_id)

            if log is not None:
                log.status = "failed"
                log.error_message = str(e)
                log.completed_at = utcnow()
                await self.db.flush()
                if commit:
                    await commit()
            raise
