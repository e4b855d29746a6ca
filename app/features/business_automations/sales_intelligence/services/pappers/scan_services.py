"""
Pappers registry scans.

Anniversary scans sweep companies created in the month that turns N years
old ``months_ahead`` months from now, one progress row per N. Progress is
committed page by page so a scan can be paused, resumed or stopped from
another request while a worker is running it.
"""

import asyncio
import math
import re
from datetime import date
from typing import Dict, List, Optional, Any, Callable, Awaitable, Sequence

from app.features.core.config import get_settings
from app.features.core.sqlalchemy_imports import *
from app.features.core.enhanced_base_service import BaseService
from app.features.core.audit_mixin import AuditContext
from app.features.business_automations.sales_intelligence.constants import (
    ANNIVERSARY_YEARS,
    PAPPERS_BONUS_NAF_PREFIXES,
    PAPPERS_DRY_RUN_ESTIMATED_COMPANIES,
    PAPPERS_DRY_RUN_ESTIMATED_CREDITS,
    PAPPERS_MIN_WORKFORCE_BAND,
    PAPPERS_PUBLICATION_WINDOW_DAYS,
    PAPPERS_RESULTS_PER_PAGE,
)
from app.features.business_automations.sales_intelligence.exceptions import (
    InvalidStateError,
    NotFoundError,
    ProviderNotConfiguredError,
)
from app.features.business_automations.sales_intelligence.models import (
    PappersQuery,
    PappersScanProgress,
    PappersSignal,
)
from app.features.business_automations.sales_intelligence.services.credits import CreditService
from app.features.business_automations.sales_intelligence.utils import PappersClient, get_provider_api_key
from app.features.business_automations.sales_intelligence.utils.dates import (
    add_months,
    anniversary_window,
    days_ago,
    shift_years,
)

logger = get_logger(__name__)

ACTIVE_SCAN_STATUSES = ("pending", "running", "paused")
PUBLICATION_RULES = {
    # query type -> (keywords in the publication text, signal detail, relevance)
    "nomination": (("nomination", "dirigeant"), "Changement de dirigeant publié au BODACC", 70),
    "capital_increase": (("capital", "augmentation"), "Augmentation de capital publiée au BODACC", 75),
}

_LEADING_INT_RE = re.compile(r"\d+")


def _leading_int(value: Any) -> int:
    if isinstance(value, (int, float)):
        return int(value)
    match = _LEADING_INT_RE.search(str(value or ""))
    return int(match.group()) if match else 0


def relevance_for_anniversary(effectif: Any, years: int) -> int:
    score = 50
    headcount = _leading_int(effectif)
    if headcount >= 250:
        score += 30
    elif headcount >= 100:
        score += 20
    elif headcount >= 50:
        score += 10

    if years in (50, 75, 100):
        score += 20
    elif years in (25, 30, 40):
        score += 10

    return min(score, 100)


def relevance_for_company(company: Dict[str, Any]) -> int:
    """Relevance of a query hit from its workforce band, revenue and NAF code."""
    score = 50

    effectif = str(company.get("effectif") or company.get("tranche_effectif") or "")
    if any(band in effectif for band in ("250", "500", "1000")):
        score += 25
    elif any(band in effectif for band in ("100", "200")):
        score += 20
    elif "50" in effectif:
        score += 15
    elif "20" in effectif:
        score += 10

    revenue = company.get("chiffre_affaires") or 0
    if revenue > 50_000_000:
        score += 20
    elif revenue > 10_000_000:
        score += 15
    elif revenue > 5_000_000:
        score += 10

    naf = company.get("code_naf") or ""
    if naf.startswith(PAPPERS_BONUS_NAF_PREFIXES):
        score += 10

    return min(score, 100)


def _parse_date(value: Optional[str]) -> Optional[date]:
    try:
        return date.fromisoformat(value[:10]) if value else None
    except ValueError:
        return None


def _company_snapshot(company: Dict[str, Any]) -> Dict[str, Any]:
    siege = company.get("siege") or {}
    return {
        "siren": company.get("siren"),
        "siret": siege.get("siret"),
        "denomination": company.get("nom_entreprise") or company.get("denomination"),
        "forme_juridique": company.get("forme_juridique"),
        "date_creation": company.get("date_creation"),
        "effectif": company.get("effectif"),
        "tranche_effectif": company.get("tranche_effectif"),
        "chiffre_affaires": company.get("chiffre_affaires"),
        "resultat": company.get("resultat"),
        "code_naf": company.get("code_naf"),
        "libelle_code_naf": company.get("libelle_code_naf"),
        "ville": siege.get("ville"),
        "code_postal": siege.get("code_postal"),
        "region": siege.get("region"),
        "departement": siege.get("departement"),
    }


def anniversary_signal(company: Dict[str, Any], years: int) -> Dict[str, Any]:
    """Values of the pappers_signals row for a company turning ``years``."""
    created = _parse_date(company.get("date_creation"))
    detail = f"{years} ans"
    if created:
        detail = f"{years} ans le {shift_years(created, years).strftime('%d/%m/%Y')}"

    return {
        "siren": company.get("siren"),
        "company_name": company.get("nom_entreprise") or company.get("denomination") or "Entreprise inconnue",
        "signal_type": f"anniversary_{years}",
        "signal_detail": detail,
        "relevance_score": relevance_for_anniversary(company.get("effectif"), years),
        "company_data": _company_snapshot(company),
    }


class PappersScanService(BaseService[PappersScanProgress]):
    """Anniversary scans with resumable progress, and saved query runs."""

    def __init__(
        self,
        db_session: AsyncSession,
        tenant_id: Optional[str] = None,
        pappers_client: Optional[PappersClient] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        super().__init__(db_session, tenant_id)
        self._pappers_client = pappers_client
        self.credit_service = CreditService(db_session, tenant_id)
        self.sleep = sleep
        self.rate_limit_delay = get_settings().PAPPERS_RATE_LIMIT_DELAY

    async def get_pappers_client(self) -> PappersClient:
        if self._pappers_client is None:
            api_key = await get_provider_api_key(self.db, self.write_tenant_id, "pappers")
            self._pappers_client = PappersClient(api_key=api_key)
        return self._pappers_client

    async def get_scan(self, scan_id: str) -> PappersScanProgress:
        scan = await self.get_by_id(PappersScanProgress, scan_id)
        if not scan:
            raise NotFoundError("Pappers scan", scan_id)
        return scan

    async def credits_block(self) -> Dict[str, Any]:
        summary = await self.credit_service.summary("pappers")
        return {key: summary[key] for key in ("used", "limit", "remaining", "percent")}

    # === ACTIONS ===

    async def run_scan(
        self,
        action: str,
        scan_id: Optional[str] = None,
        query_id: Optional[str] = None,
        dry_run: bool = True,
        months_ahead: int = 9,
        years: Optional[Sequence[int]] = None,
        max_results: Optional[int] = None,
        execute: bool = True,
        user: Optional[AuditContext] = None,
        commit: Optional[Callable[[], Awaitable[None]]] = None,
    ) -> Dict[str, Any]:
        """
        Dispatch a scan action: start, pause, resume, stop or status.

        With ``execute=False`` a real start only creates the running rows and
        leaves the work to a background task.
        """
        if action == "start":
            return await self.start_scan(query_id, dry_run, months_ahead, years, max_results, execute, user, commit)

        if action == "status":
            return await self.scan_status(scan_id)

        if action not in ("pause", "resume", "stop"):
            raise InvalidStateError(f"Unknown action: {action}")
        if not scan_id:
            raise InvalidStateError("scan_id is required")

        scan = await self.get_scan(scan_id)

        if action == "pause":
            scan.status = "paused"
            message = "Scan paused"
        elif action == "stop":
            scan.status = "error"
            scan.error_message = "Stopped by user"
            scan.completed_at = utcnow()
            message = "Scan stopped"
        else:
            if scan.status != "paused":
                raise InvalidStateError(f"Only paused scans can be resumed (status: {scan.status})")
            scan.status = "running"
            message = "Scan resumed"

        scan.stamp_updated(user)
        await self.persist(scan)
        self.log_operation(f"pappers_scan_{action}", {"scan_id": scan_id})

        result = {"success": True, "message": message, "scan_id": scan_id, "scan": scan.to_dict()}
        if action == "resume" and execute:
            if commit:
                await commit()
            result["result"] = await self.execute_scans(
                [scan.id], max_results or scan.max_results, commit=commit, resume=True
            )
            result["scan"] = scan.to_dict()
        return result

    async def start_scan(
        self,
        query_id: Optional[str],
        dry_run: bool,
        months_ahead: int,
        years: Optional[Sequence[int]],
        max_results: Optional[int],
        execute: bool,
        user: Optional[AuditContext],
        commit: Optional[Callable[[], Awaitable[None]]] = None,
    ) -> Dict[str, Any]:
        years = list(years or ANNIVERSARY_YEARS)

        if not dry_run:
            client = await self.get_pappers_client()
            if not client.api_key:
                raise ProviderNotConfiguredError("pappers")

        per_year = math.ceil(max_results / len(years)) if max_results else None
        scans = []
        for year in years:
            window_start, window_end = anniversary_window(year, months_ahead)
            scan = PappersScanProgress(
                tenant_id=self.write_tenant_id,
                query_id=query_id,
                scan_type="anniversary",
                status="pending" if dry_run else "running",
                anniversary_years=year,
                current_page=1,
                max_results=per_year,
                date_creation_min=window_start,
                date_creation_max=window_end,
                started_at=None if dry_run else utcnow(),
            )
            scan.stamp_created(user)
            self.db.add(scan)
            scans.append(scan)

        await self.db.flush()
        for scan in scans:
            await self.db.refresh(scan)

        self.log_operation("pappers_scan_start", {"years": years, "dry_run": dry_run, "max_results": max_results})

        response = {
            "success": True,
            "dry_run": dry_run,
            "scan_ids": [scan.id for scan in scans],
            "scans": [scan.to_dict() for scan in scans],
            "target_month": add_months(date.today(), months_ahead).strftime("%m/%Y"),
        }

        if dry_run:
            response["estimates"] = [
                {
                    "years": scan.anniversary_years,
                    "date_creation_min": scan.date_creation_min.isoformat(),
                    "date_creation_max": scan.date_creation_max.isoformat(),
                    "estimated_companies": PAPPERS_DRY_RUN_ESTIMATED_COMPANIES,
                    "estimated_credits": PAPPERS_DRY_RUN_ESTIMATED_CREDITS,
                }
                for scan in scans
            ]
            response["message"] = f"Dry run: {len(scans)} scans created. Pass dry_run=false to execute."
        elif execute:
            if commit:
                await commit()
            response["result"] = await self.execute_scans([scan.id for scan in scans], per_year, commit)
            response["scans"] = [scan.to_dict() for scan in scans]

        response["credits"] = await self.credits_block()
        return response

    async def scan_status(self, scan_id: Optional[str] = None) -> Dict[str, Any]:
        if scan_id:
            scan = await self.get_scan(scan_id)
            return {"scan_id": scan_id, "scan": scan.to_dict(), "credits": await self.credits_block()}

        stmt = (
            self.create_base_query(PappersScanProgress)
            .where(PappersScanProgress.status.in_(ACTIVE_SCAN_STATUSES))
            .order_by(PappersScanProgress.created_at.desc())
        )
        scans = list((await self.db.execute(stmt)).scalars().all())
        return {"scans": [scan.to_dict() for scan in scans], "credits": await self.credits_block()}

    # === EXECUTION ===

    async def execute_scans(
        self,
        scan_ids: Sequence[str],
        max_results_per_year: Optional[int] = None,
        commit: Optional[Callable[[], Awaitable[None]]] = None,
        resume: bool = False,
    ) -> Dict[str, Any]:
        """
        Run several progress rows one after the other and bill the total.

        With ``resume`` each row continues after its last processed page and
        keeps its own ``max_results`` unless one is given.
        """
        totals = {"total_fetched": 0, "total_available": 0, "signals_created": 0, "scans": []}

        for scan_id in scan_ids:
            scan = await self.get_scan(scan_id)
            limit = max_results_per_year or (scan.max_results if resume else None)
            result = await self.execute_scan(scan, limit, resume=resume, commit=commit)
            totals["total_fetched"] += result["fetched"]
            totals["total_available"] += result["total_available"]
            totals["signals_created"] += result["signals_created"]
            totals["scans"].append({"scan_id": scan_id, **result})

        if totals["total_fetched"] > 0:
            await self.credit_service.record_usage(
                "pappers",
                credits_used=math.ceil(totals["total_fetched"] * 0.1),
                units=math.ceil(totals["total_fetched"] / PAPPERS_RESULTS_PER_PAGE),
                scan_id=scan_ids[0] if len(scan_ids) == 1 else None,
                details={"scan_ids": list(scan_ids), "total_fetched": totals["total_fetched"]},
            )
            if commit:
                await commit()

        return totals

    async def execute_scan(
        self,
        scan: PappersScanProgress,
        max_results: Optional[int] = None,
        resume: bool = False,
        commit: Optional[Callable[[], Awaitable[None]]] = None,
    ) -> Dict[str, Any]:
        """
        Page through the registry for one progress row.

        Stops early when the row leaves the "running" state (paused or
        stopped elsewhere) or when ``max_results`` companies were fetched.
        Errors mark the row "error" and are not re-raised.
        """
        result = {"fetched": 0, "total_available": scan.total_results or 0, "signals_created": 0, "status": scan.status}
        scan_id = scan.id

        try:
            client = await self.get_pappers_client()
            if scan.status in ("pending", "paused"):
                scan.status = "running"
            scan.started_at = scan.started_at or utcnow()
            await self.db.flush()

            page = scan.current_page + 1 if resume and scan.processed_results else scan.current_page

            while True:
                await self.db.refresh(scan)
                if scan.status != "running":
                    logger.info("Scan no longer running", scan_id=scan_id, status=scan.status)
                    break

                data = await client.search_companies(
                    scan.date_creation_min.isoformat(),
                    scan.date_creation_max.isoformat(),
                    page=page,
                    per_page=PAPPERS_RESULTS_PER_PAGE,
                    tranche_effectif_min=PAPPERS_MIN_WORKFORCE_BAND,
                )
                companies = data.get("resultats") or []
                total = int(data.get("total") or 0)
                scan.total_results = total
                scan.total_pages = max(1, math.ceil(total / PAPPERS_RESULTS_PER_PAGE))
                result["total_available"] = total

                if max_results:
                    companies = companies[:max(0, max_results - result["fetched"])]

                for company in companies:
                    if await self._store_anniversary(scan, company):
                        result["signals_created"] += 1
                result["fetched"] += len(companies)

                scan.processed_results = (scan.processed_results or 0) + len(companies)
                scan.current_page = page
                await self.db.flush()
                if commit:
                    await commit()

                logger.info("Pappers page processed", scan_id=scan_id, page=page, companies=len(companies), total=total)

                reached_limit = bool(max_results) and result["fetched"] >= max_results
                if not companies or page >= scan.total_pages or reached_limit:
                    scan.status = "completed"
                    scan.completed_at = utcnow()
                    break

                page += 1
                await self.sleep(self.rate_limit_delay)

            await self.db.flush()
            if commit:
                await commit()

        except Exception as e:
            logger.error("Pappers scan failed", scan_id=scan_id, error=str(e))
            if commit:
                await self.db.rollback()
            scan = await self.get_scan(scan_id)
            scan.status = "error"
            scan.error_message = str(e)
            scan.completed_at = utcnow()
            await self.db.flush()
            if commit:
                await commit()

        result["status"] = scan.status
        return result

    async def _store_anniversary(self, scan: PappersScanProgress, company: Dict[str, Any]) -> bool:
        values = anniversary_signal(company, scan.anniversary_years)
        if await self._signal_exists(values["siren"], values["signal_type"]):
            return False

        item = PappersSignal(
            tenant_id=self.write_tenant_id,
            query_id=scan.query_id,
            scan_id=scan.id,
            detected_at=utcnow(),
            **values,
        )
        item.stamp_created(None)
        self.db.add(item)
        await self.db.flush()
        scan.signals_created = (scan.signals_created or 0) + 1
        return True

    async def _signal_exists(self, siren: Optional[str], signal_type: str) -> bool:
        if not siren:
            return False
        return await self.count_where(
            PappersSignal,
            PappersSignal.siren == siren,
            PappersSignal.signal_type == signal_type,
        ) > 0

    # === SAVED QUERIES ===

    async def run_queries(self, commit: Optional[Callable[[], Awaitable[None]]] = None) -> Dict[str, Any]:
        """Run every active saved query; a failing query is logged and skipped."""
        client = await self.get_pappers_client()
        if not client.api_key:
            raise ProviderNotConfiguredError("pappers")

        stmt = self.create_base_query(PappersQuery).where(PappersQuery.is_active.is_(True))
        queries = list((await self.db.execute(stmt)).scalars().all())

        summary = {"queries_processed": 0, "signals_created": 0, "errors": 0, "queries": []}
        for query in queries:
            try:
                if query.type == "anniversary":
                    created, calls = await self._run_anniversary_query(query)
                elif query.type in PUBLICATION_RULES:
                    created, calls = await self._run_publication_query(query)
                else:
                    logger.warning("Unknown Pappers query type", query_id=query.id, type=query.type)
                    continue
            except Exception as e:
                logger.error("Pappers query failed", query_id=query.id, name=query.name, error=str(e))
                summary["errors"] += 1
                summary["queries"].append({"query_id": query.id, "name": query.name, "error": str(e)})
                continue

            query.last_run_at = utcnow()
            query.signals_count = (query.signals_count or 0) + created
            await self.db.flush()

            if calls:
                await self.credit_service.record_usage(
                    "pappers", credits_used=calls, units=calls, query_id=query.id,
                    details={"query": query.name, "type": query.type, "signals_created": created},
                )

            summary["queries_processed"] += 1
            summary["signals_created"] += created
            summary["queries"].append({"query_id": query.id, "name": query.name, "signals_created": created})
            if commit:
                await commit()

        self.log_operation("pappers_queries_run", {
            "queries_processed": summary["queries_processed"],
            "signals_created": summary["signals_created"],
        })
        return summary

    async def _run_anniversary_query(self, query: PappersQuery) -> tuple:
        """
        First run covers the whole creation month; later runs only the
        creation date matching today's target day.
        """
        params = query.parameters or {}
        years_list = params.get("years") or [10]
        months_ahead = int(params.get("months_ahead") or 9)
        min_employees = params.get("min_employees")
        target = add_months(date.today(), months_ahead)

        client = await self.get_pappers_client()
        created = calls = 0

        for years in years_list:
            years = int(years)
            if query.last_run_at is None:
                window_start, window_end = anniversary_window(years, months_ahead)
            else:
                window_start = window_end = shift_years(target, -years)

            page = 1
            while True:
                data = await client.search_companies(
                    window_start.isoformat(),
                    window_end.isoformat(),
                    page=page,
                    per_page=100,
                    tranche_effectif_min=str(min_employees) if min_employees else None,
                )
                calls += 1
                companies = data.get("resultats") or []
                total = int(data.get("total") or 0)

                for company in companies:
                    if await self._signal_exists(company.get("siren"), "anniversary"):
                        continue
                    created_on = _parse_date(company.get("date_creation"))
                    anniversary = shift_years(created_on, years) if created_on else None
                    detail = f"Fêtera ses {years} ans"
                    if anniversary:
                        detail += f" le {anniversary.strftime('%d/%m/%Y')} (créée le {created_on.strftime('%d/%m/%Y')})"

                    snapshot = _company_snapshot(company)
                    snapshot.update({
                        "anniversary_date": anniversary.isoformat() if anniversary else None,
                        "anniversary_years": years,
                    })
                    item = PappersSignal(
                        tenant_id=self.write_tenant_id,
                        query_id=query.id,
                        siren=company.get("siren"),
                        company_name=company.get("denomination") or company.get("nom_entreprise") or "Entreprise inconnue",
                        signal_type="anniversary",
                        signal_detail=detail,
                        relevance_score=relevance_for_company(company),
                        company_data=snapshot,
                        detected_at=utcnow(),
                    )
                    item.stamp_created(None)
                    self.db.add(item)
                    await self.db.flush()
                    created += 1

                if len(companies) < 100 or page * 100 >= total:
                    break
                page += 1
                await self.sleep(self.rate_limit_delay)

        return created, calls

    async def _run_publication_query(self, query: PappersQuery) -> tuple:
        keywords, detail, relevance = PUBLICATION_RULES[query.type]
        client = await self.get_pappers_client()

        data = await client.search_publications(
            type_publication="modification",
            date_publication_min=days_ago(PAPPERS_PUBLICATION_WINDOW_DAYS).isoformat(),
        )
        created = 0

        for publication in data.get("resultats") or []:
            content = str(publication.get("contenu") or "").lower()
            if not any(keyword in content for keyword in keywords):
                continue
            if await self._signal_exists(publication.get("siren"), query.type):
                continue

            item = PappersSignal(
                tenant_id=self.write_tenant_id,
                query_id=query.id,
                siren=publication.get("siren"),
                company_name=publication.get("denomination") or "Entreprise inconnue",
                signal_type=query.type,
                signal_detail=detail,
                relevance_score=relevance,
                company_data={
                    "date_publication": publication.get("date_publication"),
                    "type_publication": publication.get("type_publication"),
                },
                detected_at=utcnow(),
            )
            item.stamp_created(None)
            self.db.add(item)
            await self.db.flush()
            created += 1

        return created, 1
