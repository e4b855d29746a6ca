"""
Credit accounting for external providers.

Usage rows are appended after each billable call and summed over the
plan's current period. Summaries are informational: nothing here blocks a
call when a quota is exhausted.
"""

from typing import Dict, List, Optional, Any

from app.features.core.sqlalchemy_imports import *
from app.features.core.enhanced_base_service import BaseService
from app.features.core.audit_mixin import AuditContext
from app.features.business_automations.sales_intelligence.constants import (
    CREDIT_PROVIDERS,
    CREDIT_WARNING_MARGIN,
    DEFAULT_CREDIT_PLANS,
)
from app.features.business_automations.sales_intelligence.exceptions import (
    NotFoundError,
    SalesIntelligenceError,
)
from app.features.business_automations.sales_intelligence.models import CreditPlan, CreditUsage
from app.features.business_automations.sales_intelligence.utils.dates import period_bounds

logger = get_logger(__name__)


def compute_summary(used: float, limit: float, threshold: int) -> Dict[str, Any]:
    """Quota arithmetic shared by every provider."""
    percent = int(used / limit * 100 + 0.5) if limit else 0
    return {
        "used": used,
        "limit": limit,
        "remaining": max(0, limit - used),
        "percent": percent,
        "isWarning": percent >= threshold - CREDIT_WARNING_MARGIN,
        "isCritical": percent >= threshold,
        "isBlocked": percent >= 100,
    }


class CreditService(BaseService[CreditPlan]):
    """Plans, usage recording and quota summaries per provider."""

    @staticmethod
    def _check_provider(provider: str):
        if provider not in CREDIT_PROVIDERS:
            raise NotFoundError("Credit provider", provider)

    async def get_plan(self, provider: str) -> Optional[CreditPlan]:
        self._check_provider(provider)
        stmt = select(CreditPlan).where(
            CreditPlan.tenant_id == self.write_tenant_id,
            CreditPlan.provider == provider,
        )
        return (await self.db.execute(stmt)).scalar_one_or_none()

    async def plan_settings(self, provider: str, today: Optional[date] = None) -> Dict[str, Any]:
        """Effective plan: the stored row or the provider defaults, with the current period."""
        today = today or date.today()
        plan = await self.get_plan(provider)

        if plan is not None:
            settings = {
                "plan_name": plan.plan_name,
                "credit_limit": plan.credit_limit,
                "period": plan.period,
                "alert_threshold_percent": plan.alert_threshold_percent,
                "unit_cost": plan.unit_cost,
            }
            stored_start, stored_end = plan.current_period_start, plan.current_period_end
        else:
            settings = dict(DEFAULT_CREDIT_PLANS[provider])
            stored_start = stored_end = None

        if stored_start and stored_end and stored_start <= today <= stored_end:
            start, end = stored_start, stored_end
        else:
            start, end = period_bounds(settings["period"], today)

        settings.update({"provider": provider, "period_start": start, "period_end": end})
        return settings

    async def record_usage(
        self,
        provider: str,
        credits_used: float,
        units: int = 0,
        details: Optional[Dict[str, Any]] = None,
        signal_id: Optional[str] = None,
        scan_id: Optional[str] = None,
        query_id: Optional[str] = None,
        usage_date: Optional[date] = None,
    ) -> CreditUsage:
        """Append a usage row for ``provider``."""
        try:
            self._check_provider(provider)
            usage = CreditUsage(
                tenant_id=self.write_tenant_id,
                provider=provider,
                date=usage_date or date.today(),
                credits_used=credits_used,
                units=units,
                details=details,
                signal_id=signal_id,
                scan_id=scan_id,
                query_id=query_id,
            )
            usage.stamp_created(None)
            await self.persist(usage)

            logger.info("Credit usage recorded", provider=provider, credits_used=credits_used, units=units)
            return usage

        except SalesIntelligenceError:
            raise
        except Exception as e:
            await self.handle_error("record_usage", e, provider=provider)

    async def used_in_period(self, provider: str, start: date, end: date) -> float:
        stmt = select(func.coalesce(func.sum(CreditUsage.credits_used), 0)).where(
            CreditUsage.tenant_id == self.write_tenant_id,
            CreditUsage.provider == provider,
            CreditUsage.date >= start,
            CreditUsage.date <= end,
        )
        return float((await self.db.execute(stmt)).scalar() or 0)

    async def summary(self, provider: str, today: Optional[date] = None) -> Dict[str, Any]:
        plan = await self.plan_settings(provider, today)
        used = await self.used_in_period(provider, plan["period_start"], plan["period_end"])

        result = compute_summary(used, plan["credit_limit"], plan["alert_threshold_percent"])
        result.update({
            "provider": provider,
            "planName": plan["plan_name"],
            "period": plan["period"],
            "periodStart": plan["period_start"].isoformat(),
            "periodEnd": plan["period_end"].isoformat(),
            "threshold": plan["alert_threshold_percent"],
            "unitCost": plan["unit_cost"],
        })
        return result

    async def all_summaries(self, today: Optional[date] = None) -> Dict[str, Dict[str, Any]]:
        return {provider: await self.summary(provider, today) for provider in CREDIT_PROVIDERS}

    async def usage_history(self, provider: str, limit: int = 100) -> List[CreditUsage]:
        self._check_provider(provider)
        stmt = (
            select(CreditUsage)
            .where(CreditUsage.tenant_id == self.write_tenant_id, CreditUsage.provider == provider)
            .order_by(CreditUsage.date.desc(), CreditUsage.created_at.desc())
            .limit(limit)
        )
        return list((await self.db.execute(stmt)).scalars().all())

    async def perplexity_stats(self, today: Optional[date] = None) -> Dict[str, Any]:
        """Revenue lookup success over the calendar month."""
        today = today or date.today()
        stmt = select(CreditUsage).where(
            CreditUsage.tenant_id == self.write_tenant_id,
            CreditUsage.provider == "perplexity",
            CreditUsage.date >= today.replace(day=1),
            CreditUsage.date <= today,
        )
        rows = list((await self.db.execute(stmt)).scalars().all())

        found = [(row.details or {}).get("revenue_found") for row in rows if (row.details or {}).get("success")]
        total = len(rows)
        successful = len(found)
        return {
            "total": total,
            "successful": successful,
            "successRate": int(successful / total * 100 + 0.5) if total else 0,
            "avgRevenueFound": sum(value or 0 for value in found) / successful if successful else 0,
            "todayCount": sum(1 for row in rows if row.date == today),
            "thisMonthCount": total,
        }

    async def update_plan(self, provider: str, data: Dict[str, Any],
                          user: Optional[AuditContext] = None) -> CreditPlan:
        """Create or update the plan row of ``provider``."""
        try:
            plan = await self.get_plan(provider)
            allowed = {
                "plan_name", "credit_limit", "period", "current_period_start",
                "current_period_end", "alert_threshold_percent", "unit_cost",
            }

            if plan is None:
                values = dict(DEFAULT_CREDIT_PLANS[provider])
                values.update({k: v for k, v in data.items() if k in allowed and v is not None})
                plan = CreditPlan(tenant_id=self.write_tenant_id, provider=provider, **values)
                plan.stamp_created(user)
            else:
                self.apply_updates(plan, {k: v for k, v in data.items() if v is not None}, allowed)
                plan.stamp_updated(user)

            await self.persist(plan)
            self.log_operation("credit_plan_update", {"provider": provider})
            return plan

        except SalesIntelligenceError:
            raise
        except Exception as e:
            await self.handle_error("update_plan", e, provider=provider)
