"""
Pappers query and signal CRUD.

Registry hits land in ``pappers_signals`` for review; transferring one
creates a regular Signal in the outreach pipeline.
"""

from typing import Dict, List, Optional, Tuple, Any

from app.features.core.sqlalchemy_imports import *
from app.features.core.enhanced_base_service import BaseService
from app.features.core.audit_mixin import AuditContext
from app.features.business_automations.sales_intelligence.exceptions import (
    InvalidStateError,
    NotFoundError,
    SalesIntelligenceError,
)
from app.features.business_automations.sales_intelligence.models import PappersQuery, PappersSignal, Signal
from app.features.business_automations.sales_intelligence.services.signals import SignalCrudService

logger = get_logger(__name__)


def transfer_score(relevance_score: Optional[int]) -> int:
    """Map a 0-100 relevance to the 1-5 signal score (halves round up)."""
    return min(5, max(1, int((relevance_score or 0) / 20 + 0.5)))


def transfer_signal_type(pappers_type: str) -> str:
    if pappers_type == "nomination":
        return "nomination"
    if pappers_type == "capital_increase":
        return "levee"
    return "anniversaire"


def _estimated_size(company_data: Dict[str, Any]) -> str:
    effectif = company_data.get("effectif")
    try:
        count = int(str(effectif).split()[0])
    except (TypeError, ValueError, IndexError):
        return "Inconnu"
    if count < 250:
        return "PME"
    if count < 5000:
        return "ETI"
    return "Grand Compte"


class PappersCrudService(BaseService[PappersSignal]):
    """Saved Pappers queries and the registry signals they produce."""

    def __init__(self, db_session: AsyncSession, tenant_id: Optional[str] = None):
        super().__init__(db_session, tenant_id)
        self.signal_service = SignalCrudService(db_session, tenant_id)

    # === QUERIES ===

    async def list_queries(self, active_only: bool = False) -> List[PappersQuery]:
        stmt = self.create_base_query(PappersQuery)
        if active_only:
            stmt = stmt.where(PappersQuery.is_active.is_(True))
        stmt = stmt.order_by(PappersQuery.created_at.desc())
        return list((await self.db.execute(stmt)).scalars().all())

    async def get_query(self, query_id: str) -> PappersQuery:
        query = await self.get_by_id(PappersQuery, query_id)
        if not query:
            raise NotFoundError("Pappers query", query_id)
        return query

    async def create_query(self, data: Dict[str, Any], user: Optional[AuditContext] = None) -> PappersQuery:
        try:
            query = PappersQuery(
                tenant_id=self.write_tenant_id,
                name=data["name"],
                type=data["type"],
                parameters=data.get("parameters") or {},
                is_active=data.get("is_active", True),
            )
            query.stamp_created(user)
            await self.persist(query)

            self.log_operation("pappers_query_creation", {"query_id": query.id, "type": query.type})
            return query

        except SalesIntelligenceError:
            raise
        except Exception as e:
            await self.handle_error("create_query", e, name=data.get("name"))

    async def update_query(self, query_id: str, data: Dict[str, Any],
                           user: Optional[AuditContext] = None) -> PappersQuery:
        try:
            query = await self.get_query(query_id)
            changes = self.apply_updates(query, data, {"name", "type", "parameters", "is_active"})
            if changes:
                query.stamp_updated(user)
                await self.persist(query)
            return query

        except SalesIntelligenceError:
            raise
        except Exception as e:
            await self.handle_error("update_query", e, query_id=query_id)

    async def toggle_query(self, query_id: str, user: Optional[AuditContext] = None) -> PappersQuery:
        query = await self.get_query(query_id)
        return await self.update_query(query_id, {"is_active": not query.is_active}, user)

    async def delete_query(self, query_id: str) -> None:
        try:
            query = await self.get_query(query_id)
            await self.db.execute(
                update(PappersSignal).where(PappersSignal.query_id == query_id).values(query_id=None)
            )
            await self.db.delete(query)
            await self.db.flush()
            self.log_operation("pappers_query_deletion", {"query_id": query_id})

        except SalesIntelligenceError:
            raise
        except Exception as e:
            await self.handle_error("delete_query", e, query_id=query_id)

    # === SIGNALS ===

    async def list_signals(
        self,
        processed: Optional[bool] = None,
        transferred: Optional[bool] = None,
        signal_type: Optional[str] = None,
        min_relevance: Optional[int] = None,
        search: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> Tuple[List[PappersSignal], int]:
        """Registry signals, most relevant first."""
        try:
            stmt = self.create_base_query(PappersSignal)

            if processed is not None:
                stmt = stmt.where(PappersSignal.processed.is_(processed))
            if transferred is not None:
                stmt = stmt.where(PappersSignal.transferred_to_signals.is_(transferred))
            if signal_type:
                # "anniversary" also matches the per-year types written by scans
                stmt = stmt.where(or_(
                    PappersSignal.signal_type == signal_type,
                    PappersSignal.signal_type.like(f"{signal_type}_%"),
                ))
            if min_relevance:
                stmt = stmt.where(PappersSignal.relevance_score >= min_relevance)
            if search:
                stmt = self.apply_search_filters(stmt, PappersSignal, search, ["company_name", "siren"])

            stmt = stmt.order_by(PappersSignal.relevance_score.desc(), PappersSignal.detected_at.desc())
            return await self.paginate(stmt, limit, offset)

        except Exception as e:
            await self.handle_error("list_pappers_signals", e)

    async def get_signal(self, pappers_signal_id: str) -> PappersSignal:
        item = await self.get_by_id(PappersSignal, pappers_signal_id)
        if not item:
            raise NotFoundError("Pappers signal", pappers_signal_id)
        return item

    async def update_signal(self, pappers_signal_id: str, data: Dict[str, Any],
                            user: Optional[AuditContext] = None) -> PappersSignal:
        try:
            item = await self.get_signal(pappers_signal_id)
            changes = self.apply_updates(item, data, {"processed", "relevance_score", "signal_detail"})
            if changes:
                item.stamp_updated(user)
                await self.persist(item)
            return item

        except SalesIntelligenceError:
            raise
        except Exception as e:
            await self.handle_error("update_pappers_signal", e, pappers_signal_id=pappers_signal_id)

    async def delete_signal(self, pappers_signal_id: str) -> None:
        try:
            item = await self.get_signal(pappers_signal_id)
            await self.db.delete(item)
            await self.db.flush()

        except SalesIntelligenceError:
            raise
        except Exception as e:
            await self.handle_error("delete_pappers_signal", e, pappers_signal_id=pappers_signal_id)

    async def transfer_to_signals(self, pappers_signal_id: str, user: Optional[AuditContext] = None) -> Signal:
        """
        Promote a registry hit to the outreach pipeline.

        Raises:
            InvalidStateError: Already transferred
        """
        item = await self.get_signal(pappers_signal_id)
        if item.transferred_to_signals:
            raise InvalidStateError("Pappers signal already transferred")

        company_data = item.company_data or {}
        signal = await self.signal_service.create_signal({
            "company_name": item.company_name,
            "signal_type": transfer_signal_type(item.signal_type),
            "score": transfer_score(item.relevance_score),
            "event_detail": item.signal_detail,
            "sector": company_data.get("libelle_code_naf"),
            "estimated_size": _estimated_size(company_data),
            "source_name": "Pappers",
            "source_url": f"https://www.pappers.fr/entreprise/{item.siren}" if item.siren else None,
            "revenue_estimate": company_data.get("chiffre_affaires"),
        }, user)

        item.transferred_to_signals = True
        item.processed = True
        item.signal_id = signal.id
        item.stamp_updated(user)
        await self.persist(item)

        self.log_operation("pappers_signal_transfer", {
            "pappers_signal_id": pappers_signal_id,
            "signal_id": signal.id,
            "company_name": item.company_name,
        })
        return signal
