"""
Settings service for Sales Intelligence.

Key/value configuration is stored per tenant in the settings table. Typed
getters parse the stored strings, falling back to the caller's default
when a value is missing or malformed.
"""

import json
from typing import Dict, List, Optional, Any

from app.features.core.sqlalchemy_imports import *
from app.features.core.enhanced_base_service import BaseService
from app.features.core.audit_mixin import AuditContext
from app.features.business_automations.sales_intelligence.exceptions import (
    NotFoundError,
    SalesIntelligenceError,
)
from app.features.business_automations.sales_intelligence.models import (
    AppSetting,
    Contact,
    ScanLog,
    SearchQuery,
)

logger = get_logger(__name__)


class SettingsService(BaseService[AppSetting]):
    """Tenant settings, press search queries and scan history."""

    # === KEY/VALUE SETTINGS ===

    def _settings_query(self) -> Select:
        return select(AppSetting).where(AppSetting.tenant_id == self.write_tenant_id)

    async def get_all(self) -> Dict[str, str]:
        """All settings of the tenant as a key -> value dict."""
        result = await self.db.execute(self._settings_query().order_by(AppSetting.key))
        return {row.key: row.value for row in result.scalars().all()}

    async def get_value(self, key: str, default: Optional[str] = None) -> Optional[str]:
        stmt = self._settings_query().where(AppSetting.key == key)
        setting = (await self.db.execute(stmt)).scalar_one_or_none()
        if setting is None or setting.value is None:
            return default
        return setting.value

    async def get_bool(self, key: str, default: bool) -> bool:
        value = await self.get_value(key)
        if value is None or value == "":
            return default
        return value.strip().lower() not in ("false", "0", "no", "off")

    async def get_int(self, key: str, default: int) -> int:
        value = await self.get_value(key)
        try:
            return int(float(value)) if value not in (None, "") else default
        except (TypeError, ValueError):
            logger.warning("Invalid integer setting", key=key, value=value)
            return default

    async def get_json(self, key: str, default: Any = None) -> Any:
        value = await self.get_value(key)
        if not value:
            return default
        try:
            return json.loads(value)
        except (TypeError, ValueError):
            logger.warning("Invalid JSON setting", key=key)
            return default

    async def upsert_setting(self, key: str, value: Any, user: Optional[AuditContext] = None) -> AppSetting:
        """Create or replace a setting; non-string values are stored as JSON."""
        try:
            if not isinstance(value, str):
                value = json.dumps(value, ensure_ascii=False)

            stmt = self._settings_query().where(AppSetting.key == key)
            setting = (await self.db.execute(stmt)).scalar_one_or_none()

            if setting is None:
                setting = AppSetting(tenant_id=self.write_tenant_id, key=key, value=value)
                setting.stamp_created(user)
            else:
                setting.value = value
                setting.stamp_updated(user)

            await self.persist(setting)
            self.log_operation("setting_upsert", {"key": key})
            return setting

        except Exception as e:
            await self.handle_error("upsert_setting", e, key=key)

    # === SEARCH QUERIES ===

    async def list_search_queries(self, active_only: bool = False) -> List[SearchQuery]:
        stmt = self.create_base_query(SearchQuery)
        if active_only:
            stmt = stmt.where(SearchQuery.is_active.is_(True))
        stmt = stmt.order_by(SearchQuery.category, SearchQuery.name)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def get_search_query(self, query_id: str) -> SearchQuery:
        query = await self.get_by_id(SearchQuery, query_id)
        if not query:
            raise NotFoundError("Search query", query_id)
        return query

    async def create_search_query(self, data: Dict[str, Any], user: Optional[AuditContext] = None) -> SearchQuery:
        try:
            query = SearchQuery(
                tenant_id=self.write_tenant_id,
                name=data["name"],
                query=data["query"],
                category=data.get("category") or "general",
                description=data.get("description"),
                is_active=data.get("is_active", True),
            )
            query.stamp_created(user)
            await self.persist(query)

            self.log_operation("search_query_creation", {"query_id": query.id, "name": query.name})
            return query

        except SalesIntelligenceError:
            raise
        except Exception as e:
            await self.handle_error("create_search_query", e, name=data.get("name"))

    async def update_search_query(self, query_id: str, data: Dict[str, Any],
                                  user: Optional[AuditContext] = None) -> SearchQuery:
        try:
            query = await self.get_search_query(query_id)
            changes = self.apply_updates(query, data, {"name", "query", "category", "description", "is_active"})
            if changes:
                query.stamp_updated(user)
                await self.persist(query)
                self.log_operation("search_query_update", {"query_id": query_id, "fields": list(changes)})
            return query

        except SalesIntelligenceError:
            raise
        except Exception as e:
            await self.handle_error("update_search_query", e, query_id=query_id)

    async def toggle_search_query(self, query_id: str, user: Optional[AuditContext] = None) -> SearchQuery:
        query = await self.get_search_query(query_id)
        return await self.update_search_query(query_id, {"is_active": not query.is_active}, user)

    async def delete_search_query(self, query_id: str) -> None:
        try:
            query = await self.get_search_query(query_id)
            await self.db.delete(query)
            await self.db.flush()
            self.log_operation("search_query_deletion", {"query_id": query_id})

        except SalesIntelligenceError:
            raise
        except Exception as e:
            await self.handle_error("delete_search_query", e, query_id=query_id)

    # === SCAN LOGS ===

    async def list_scan_logs(self, limit: int = 50) -> List[Dict[str, Any]]:
        """
        Latest press scans, newest first.

        Each entry carries ``contacts_enriched``: contacts created while the
        scan was running (until now for a scan that is still running).
        """
        stmt = self.create_base_query(ScanLog).order_by(ScanLog.started_at.desc()).limit(limit)
        logs = list((await self.db.execute(stmt)).scalars().all())

        entries = []
        for log in logs:
            window_end = log.completed_at or utcnow()
            contacts_enriched = await self.count_where(
                Contact,
                Contact.created_at >= log.started_at,
                Contact.created_at <= window_end,
            )
            entry = log.to_dict()
            entry["contacts_enriched"] = contacts_enriched
            entries.append(entry)

        return entries
