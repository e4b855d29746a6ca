"""
Celery background tasks for Sales Intelligence.

Handles:
- Press full scan (NewsAPI fetch + Claude analysis)
- Pappers anniversary scans and saved query runs
- LinkedIn engagement scan via Apify
- Tonal charter analysis after every fifth message correction
- Polling of pending Manus enrichments, companies and engager contacts (beat)

Each task opens its own session and commits as it goes so the SPA, which
polls the database, sees progress while the task runs.
"""

import asyncio
from typing import Optional, List, Dict, Any

from sqlalchemy import select

from app.features.core.celery_app import celery_app
from app.features.core.database import async_session
from app.features.core.sqlalchemy_imports import get_logger
from app.features.core.structured_logging import log_performance

from app.features.business_automations.sales_intelligence.constants import (
    CONTACT_ENRICHING_STATUS,
    ENRICHMENT_MANUS_PROCESSING,
)
from app.features.business_automations.sales_intelligence.models import CompanyEnrichment, Contact
from app.features.business_automations.sales_intelligence.services.enrichment import (
    EngagerEnrichmentService,
    EnrichmentService,
)
from app.features.business_automations.sales_intelligence.services.linkedin import LinkedInService
from app.features.business_automations.sales_intelligence.services.messages import MessageService
from app.features.business_automations.sales_intelligence.services.pappers import PappersScanService
from app.features.business_automations.sales_intelligence.services.press import PressScanService

logger = get_logger(__name__)


@celery_app.task(name="sales_intelligence.run_full_scan")
def run_full_scan_task(tenant_id: str) -> Dict[str, Any]:
    """
    Fetch press articles and analyse them for a tenant.

    Args:
        tenant_id: Tenant whose search queries are scanned

    Returns:
        Task result summary
    """
    return asyncio.run(_run_full_scan_async(tenant_id))


async def _run_full_scan_async(tenant_id: str) -> Dict[str, Any]:
    """Async implementation of the press full scan."""
    try:
        async with async_session() as db:
            service = PressScanService(db, tenant_id)
            with log_performance("press_full_scan", logger, tenant_id=tenant_id):
                log = await service.run_full_scan(commit=db.commit)
            return {"success": True, "scan_log": log.to_dict()}

    except Exception as e:
        logger.error("Full scan task failed", tenant_id=tenant_id, error=str(e), exc_info=True)
        return {"success": False, "error": str(e)}


@celery_app.task(name="sales_intelligence.run_pappers_scan")
def run_pappers_scan_task(
    tenant_id: str,
    scan_ids: List[str],
    max_results_per_year: Optional[int] = None,
    resume: bool = False,
) -> Dict[str, Any]:
    """
    Execute Pappers anniversary scans created by the scan endpoint.

    Args:
        tenant_id: Tenant owning the scans
        scan_ids: Progress rows to execute, one per anniversary year
        max_results_per_year: Optional cap per row
        resume: Continue after the last processed page
    """
    return asyncio.run(_run_pappers_scan_async(tenant_id, scan_ids, max_results_per_year, resume))


async def _run_pappers_scan_async(
    tenant_id: str,
    scan_ids: List[str],
    max_results_per_year: Optional[int],
    resume: bool,
) -> Dict[str, Any]:
    try:
        async with async_session() as db:
            service = PappersScanService(db, tenant_id)
            with log_performance("pappers_scan", logger, tenant_id=tenant_id, scans=len(scan_ids)):
                result = await service.execute_scans(scan_ids, max_results_per_year, commit=db.commit, resume=resume)
            await db.commit()
            return {"success": True, **result}

    except Exception as e:
        logger.error("Pappers scan task failed", tenant_id=tenant_id, scan_ids=scan_ids, error=str(e), exc_info=True)
        return {"success": False, "error": str(e)}


@celery_app.task(name="sales_intelligence.run_pappers_queries")
def run_pappers_queries_task(tenant_id: str) -> Dict[str, Any]:
    """Run every active saved Pappers query of a tenant."""
    return asyncio.run(_run_pappers_queries_async(tenant_id))


async def _run_pappers_queries_async(tenant_id: str) -> Dict[str, Any]:
    try:
        async with async_session() as db:
            result = await PappersScanService(db, tenant_id).run_queries(commit=db.commit)
            await db.commit()
            return {"success": True, **result}

    except Exception as e:
        logger.error("Pappers queries task failed", tenant_id=tenant_id, error=str(e), exc_info=True)
        return {"success": False, "error": str(e)}


@celery_app.task(name="sales_intelligence.linkedin_full_scan")
def linkedin_full_scan_task(tenant_id: str) -> Dict[str, Any]:
    """Scrape every active LinkedIn source and transfer new engagers."""
    return asyncio.run(_linkedin_full_scan_async(tenant_id))


async def _linkedin_full_scan_async(tenant_id: str) -> Dict[str, Any]:
    try:
        async with async_session() as db:
            with log_performance("linkedin_full_scan", logger, tenant_id=tenant_id):
                result = await LinkedInService(db, tenant_id).full_scan(commit=db.commit)
            await db.commit()
            return {"success": True, **result}

    except Exception as e:
        logger.error("LinkedIn scan task failed", tenant_id=tenant_id, error=str(e), exc_info=True)
        return {"success": False, "error": str(e)}


@celery_app.task(name="sales_intelligence.update_tonal_charter")
def update_tonal_charter_task(tenant_id: str) -> Dict[str, Any]:
    """Rebuild the tonal charter from every stored correction."""
    return asyncio.run(_update_tonal_charter_async(tenant_id))


async def _update_tonal_charter_async(tenant_id: str) -> Dict[str, Any]:
    try:
        async with async_session() as db:
            with log_performance("update_tonal_charter", logger, tenant_id=tenant_id):
                result = await MessageService(db, tenant_id).update_tonal_charter()
            await db.commit()
            return result

    except Exception as e:
        logger.error("Tonal charter task failed", tenant_id=tenant_id, error=str(e), exc_info=True)
        return {"success": False, "error": str(e)}


@celery_app.task(name="sales_intelligence.check_pending_enrichments")
def check_pending_enrichments_task() -> Dict[str, Any]:
    """Poll Manus for every enrichment still processing, tenant by tenant."""
    return asyncio.run(_check_pending_enrichments_async())


async def _check_pending_enrichments_async() -> Dict[str, Any]:
    totals = {"tenants": 0, "checked": 0, "completed": 0, "failed": 0, "errors": 0}

    async with async_session() as db:
        stmt = select(CompanyEnrichment.tenant_id).where(
            CompanyEnrichment.status == ENRICHMENT_MANUS_PROCESSING
        ).distinct()
        tenant_ids = set((await db.execute(stmt)).scalars().all())
        stmt = select(Contact.tenant_id).where(
            Contact.outreach_status == CONTACT_ENRICHING_STATUS
        ).distinct()
        tenant_ids.update((await db.execute(stmt)).scalars().all())

    # "global" reads are unscoped, so it runs last and only sees what is left
    tenant_ids = sorted(tenant_ids, key=lambda tenant: (tenant == "global", tenant))

    for tenant_id in tenant_ids:
        try:
            async with async_session() as db:
                companies = await EnrichmentService(db, tenant_id).check_pending()
                await db.commit()
                engagers = await EngagerEnrichmentService(db, tenant_id).check_pending()
                await db.commit()
        except Exception as e:
            logger.error("Enrichment polling failed", tenant_id=tenant_id, error=str(e), exc_info=True)
            totals["errors"] += 1
            continue

        totals["tenants"] += 1
        for key in ("checked", "completed", "failed", "errors"):
            totals[key] += companies[key] + engagers[key]

    if totals["checked"]:
        logger.info("Pending enrichments polled", **totals)
    return totals
