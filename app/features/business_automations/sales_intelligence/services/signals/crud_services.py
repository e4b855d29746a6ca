"""
Signal CRUD service for Sales Intelligence.

Follows platform conventions:
- Inherits from BaseService for tenant filtering
- Structured logging with get_logger
- Status and notes changes are written to the signal's interaction timeline
"""

from typing import Dict, List, Optional, Tuple, Any, Sequence

from app.features.core.sqlalchemy_imports import *
from app.features.core.enhanced_base_service import BaseService
from app.features.core.audit_mixin import AuditContext
from app.features.business_automations.sales_intelligence.constants import (
    ENRICHMENT_COMPLETED,
    ENRICHMENT_MANUS_PROCESSING,
    SIGNAL_IN_PROGRESS_STATUSES,
    SIGNAL_PERIODS,
    SIGNAL_UNPROCESSED_STATUSES,
)
from app.features.business_automations.sales_intelligence.exceptions import (
    NotFoundError,
    SalesIntelligenceError,
)
from app.features.business_automations.sales_intelligence.models import (
    CompanyEnrichment,
    Contact,
    PappersSignal,
    RawArticle,
    Signal,
    SignalInteraction,
)

logger = get_logger(__name__)

UPDATABLE_FIELDS = {
    "company_name", "signal_type", "score", "status", "estimated_size", "sector",
    "event_detail", "hook_suggestion", "source_name", "source_url", "notes",
    "next_action_at", "next_action_note", "revenue_estimate",
}


class SignalCrudService(BaseService[Signal]):
    """Service for signals and their interaction timeline."""

    def _apply_scope_filters(
        self,
        stmt: Select,
        signal_type: Optional[str] = None,
        exclude_types: Optional[Sequence[str]] = None,
        exclude_source_names: Optional[Sequence[str]] = None,
    ) -> Select:
        """Filters shared by the list and the stats (one dashboard per source family)."""
        if signal_type:
            stmt = stmt.where(Signal.signal_type == signal_type)
        if exclude_types:
            stmt = stmt.where(Signal.signal_type.notin_(list(exclude_types)))
        if exclude_source_names:
            stmt = stmt.where(or_(
                Signal.source_name.is_(None),
                Signal.source_name.notin_(list(exclude_source_names)),
            ))
        return stmt

    async def list_signals(
        self,
        min_score: Optional[int] = None,
        signal_type: Optional[str] = None,
        status: Optional[str] = None,
        period: Optional[str] = None,
        search: Optional[str] = None,
        exclude_types: Optional[Sequence[str]] = None,
        exclude_source_names: Optional[Sequence[str]] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> Tuple[List[Signal], int]:
        """
        List signals, newest detection first.

        Args:
            min_score: Keep signals scored at least this
            signal_type: Exact signal type
            status: Exact pipeline status
            period: "7d", "30d", "90d" or "all"
            search: Case-insensitive match on the company name
            exclude_types: Signal types to hide
            exclude_source_names: Source names to hide
            limit: Max results to return
            offset: Offset for pagination

        Returns:
            Tuple of (signals list, total count)
        """
        try:
            stmt = self.create_base_query(Signal)
            stmt = self._apply_scope_filters(stmt, signal_type, exclude_types, exclude_source_names)

            if min_score:
                stmt = stmt.where(Signal.score >= min_score)
            if status:
                stmt = stmt.where(Signal.status == status)
            if period and period in SIGNAL_PERIODS:
                stmt = stmt.where(Signal.detected_at >= utcnow() - timedelta(days=SIGNAL_PERIODS[period]))
            if search:
                stmt = self.apply_search_filters(stmt, Signal, search, ["company_name"])

            stmt = stmt.order_by(Signal.detected_at.desc())
            signals, total = await self.paginate(stmt, limit, offset)

            logger.info(
                "Listed signals",
                count=len(signals),
                total=total,
                tenant_id=self.tenant_id,
                filters={"min_score": min_score, "signal_type": signal_type, "status": status, "period": period}
            )
            return signals, total

        except Exception as e:
            await self.handle_error("list_signals", e)

    async def get_signal(self, signal_id: str) -> Signal:
        signal = await self.get_by_id(Signal, signal_id)
        if not signal:
            raise NotFoundError("Signal", signal_id)
        return signal

    async def get_signal_detail(self, signal_id: str) -> Dict[str, Any]:
        """Signal payload with the publication date of its source article."""
        signal = await self.get_signal(signal_id)
        data = signal.to_dict()
        data["article_published_at"] = None

        if signal.article_id:
            stmt = select(RawArticle.published_at).where(RawArticle.id == signal.article_id)
            published_at = (await self.db.execute(stmt)).scalar_one_or_none()
            data["article_published_at"] = published_at.isoformat() if published_at else None

        return data

    async def create_signal(self, data: Dict[str, Any], user: Optional[AuditContext] = None) -> Signal:
        """Create a signal entered by hand or by an automated source."""
        try:
            signal = Signal(
                tenant_id=self.write_tenant_id,
                company_name=data["company_name"],
                signal_type=data["signal_type"],
                score=data.get("score") or 3,
                status=data.get("status") or "new",
                estimated_size=data.get("estimated_size"),
                sector=data.get("sector"),
                event_detail=data.get("event_detail"),
                hook_suggestion=data.get("hook_suggestion"),
                source_name=data.get("source_name"),
                source_url=data.get("source_url"),
                article_id=data.get("article_id"),
                revenue_estimate=data.get("revenue_estimate"),
                notes=data.get("notes"),
                detected_at=data.get("detected_at") or utcnow(),
            )
            signal.stamp_created(user)
            await self.persist(signal)

            self.log_operation("signal_creation", {
                "signal_id": signal.id,
                "company_name": signal.company_name,
                "signal_type": signal.signal_type,
            })
            return signal

        except SalesIntelligenceError:
            raise
        except Exception as e:
            await self.handle_error("create_signal", e, company_name=data.get("company_name"))

    async def update_signal(self, signal_id: str, updates: Dict[str, Any],
                            user: Optional[AuditContext] = None) -> Signal:
        """
        Apply ``updates`` to a signal.

        A status change is logged on the timeline and moving to "contacted"
        stamps ``contacted_at`` once. A notes change is logged as well.
        """
        try:
            signal = await self.get_signal(signal_id)
            changes = self.apply_updates(signal, updates, UPDATABLE_FIELDS)

            if "status" in changes:
                old_status, new_status = changes["status"]
                if new_status == "contacted" and not signal.contacted_at:
                    signal.contacted_at = utcnow()
                await self.add_interaction(signal_id, "status_change", old_status, new_status, user=user)

            if "notes" in changes:
                await self.add_interaction(signal_id, "note_added", new_value=changes["notes"][1], user=user)

            if changes:
                signal.stamp_updated(user)
                await self.persist(signal)
                self.log_operation("signal_update", {"signal_id": signal_id, "fields": list(changes)})

            return signal

        except SalesIntelligenceError:
            raise
        except Exception as e:
            await self.handle_error("update_signal", e, signal_id=signal_id)

    async def set_next_action(self, signal_id: str, next_action_at: Optional[datetime],
                              next_action_note: Optional[str], user: Optional[AuditContext] = None) -> Signal:
        try:
            signal = await self.get_signal(signal_id)
            signal.next_action_at = next_action_at
            signal.next_action_note = next_action_note
            signal.stamp_updated(user)

            await self.add_interaction(
                signal_id,
                "next_action_set",
                new_value=next_action_note,
                metadata={"scheduled_at": next_action_at.isoformat() if next_action_at else None},
                user=user,
            )
            await self.persist(signal)
            return signal

        except SalesIntelligenceError:
            raise
        except Exception as e:
            await self.handle_error("set_next_action", e, signal_id=signal_id)

    async def delete_signal(self, signal_id: str) -> None:
        """Delete a signal with its timeline and enrichment; contacts are kept and detached."""
        try:
            signal = await self.get_signal(signal_id)

            await self.db.execute(delete(SignalInteraction).where(SignalInteraction.signal_id == signal_id))
            await self.db.execute(
                update(Contact).where(Contact.signal_id == signal_id).values(signal_id=None, enrichment_id=None)
            )
            await self.db.execute(delete(CompanyEnrichment).where(CompanyEnrichment.signal_id == signal_id))
            await self.db.execute(
                update(PappersSignal).where(PappersSignal.signal_id == signal_id).values(signal_id=None)
            )
            await self.db.delete(signal)
            await self.db.flush()

            self.log_operation("signal_deletion", {"signal_id": signal_id, "company_name": signal.company_name})

        except SalesIntelligenceError:
            raise
        except Exception as e:
            await self.handle_error("delete_signal", e, signal_id=signal_id)

    async def signal_stats(
        self,
        signal_type: Optional[str] = None,
        exclude_types: Optional[Sequence[str]] = None,
        exclude_source_names: Optional[Sequence[str]] = None,
    ) -> Dict[str, int]:
        """Dashboard counters over the filtered signal set."""
        base = self._apply_scope_filters(
            self.scope(select(func.count(Signal.id)), Signal),
            signal_type, exclude_types, exclude_source_names,
        )

        async def count(*conditions) -> int:
            stmt = base.where(*conditions) if conditions else base
            return int((await self.db.execute(stmt)).scalar() or 0)

        total = await count()
        won = await count(Signal.status == "won")
        processed = await count(Signal.status.notin_(SIGNAL_UNPROCESSED_STATUSES))

        enrichment_completed = select(CompanyEnrichment.signal_id).where(
            CompanyEnrichment.status == ENRICHMENT_COMPLETED
        )

        return {
            "thisWeek": await count(Signal.detected_at >= utcnow() - timedelta(days=7)),
            "new": await count(Signal.status == "new"),
            "inProgress": await count(Signal.status.in_(SIGNAL_IN_PROGRESS_STATUSES)),
            "conversionRate": int(won / processed * 100 + 0.5) if processed else 0,
            "total": total,
            "enriched": await count(or_(
                Signal.enrichment_status == ENRICHMENT_COMPLETED,
                Signal.id.in_(enrichment_completed),
            )),
            "enriching": await count(Signal.enrichment_status == ENRICHMENT_MANUS_PROCESSING),
        }

    # === INTERACTIONS ===

    async def list_interactions(self, signal_id: str) -> List[SignalInteraction]:
        stmt = (
            self.create_base_query(SignalInteraction)
            .where(SignalInteraction.signal_id == signal_id)
            .order_by(SignalInteraction.created_at.desc())
        )
        return list((await self.db.execute(stmt)).scalars().all())

    async def add_interaction(
        self,
        signal_id: str,
        action_type: str,
        old_value: Optional[str] = None,
        new_value: Optional[str] = None,
        metadata: Optional[Dict[str, Any]] = None,
        user: Optional[AuditContext] = None,
    ) -> SignalInteraction:
        interaction = SignalInteraction(
            tenant_id=self.write_tenant_id,
            signal_id=signal_id,
            action_type=action_type,
            old_value=old_value,
            new_value=new_value,
            details=metadata or {},
        )
        interaction.stamp_created(user)
        self.db.add(interaction)
        await self.db.flush()
        return interaction

    async def create_interaction(self, signal_id: str, data: Dict[str, Any],
                                 user: Optional[AuditContext] = None) -> SignalInteraction:
        """Timeline entry posted by the client (the signal must exist)."""
        await self.get_signal(signal_id)
        interaction = await self.add_interaction(
            signal_id,
            data["action_type"],
            data.get("old_value"),
            data.get("new_value"),
            data.get("metadata"),
            user,
        )
        await self.db.refresh(interaction)
        return interaction

    async def intervened_signal_ids(self) -> List[str]:
        """Signals with at least one timeline entry."""
        stmt = self.scope(select(SignalInteraction.signal_id).distinct(), SignalInteraction)
        return [row for row in (await self.db.execute(stmt)).scalars().all()]
