"""
Partner houses (brands carried in the gift catalogue) and their news feed.
"""

from typing import Dict, List, Optional, Tuple, Any

from app.features.core.sqlalchemy_imports import *
from app.features.core.enhanced_base_service import BaseService
from app.features.core.audit_mixin import AuditContext
from app.features.business_automations.sales_intelligence.exceptions import (
    NotFoundError,
    SalesIntelligenceError,
)
from app.features.business_automations.sales_intelligence.models import PartnerHouse, PartnerNews

logger = get_logger(__name__)

HOUSE_FIELDS = {
    "name", "logo_url", "website_url", "linkedin_url", "instagram_url",
    "description", "category", "is_active",
}
NEWS_FIELDS = {
    "house_id", "title", "content", "news_type", "image_url", "source_url", "published_at",
    "event_date", "event_location", "product_name", "product_category", "is_featured",
}


class PartnerCrudService(BaseService[PartnerHouse]):
    """Service for partner houses and partner news."""

    # === HOUSES ===

    async def list_houses(self, active_only: bool = False, category: Optional[str] = None) -> List[PartnerHouse]:
        stmt = self.create_base_query(PartnerHouse)
        if active_only:
            stmt = stmt.where(PartnerHouse.is_active.is_(True))
        if category:
            stmt = stmt.where(PartnerHouse.category == category)
        stmt = stmt.order_by(PartnerHouse.name)
        return list((await self.db.execute(stmt)).scalars().all())

    async def get_house(self, house_id: str) -> PartnerHouse:
        house = await self.get_by_id(PartnerHouse, house_id)
        if not house:
            raise NotFoundError("Partner house", house_id)
        return house

    async def create_house(self, data: Dict[str, Any], user: Optional[AuditContext] = None) -> PartnerHouse:
        try:
            house = PartnerHouse(
                tenant_id=self.write_tenant_id,
                **{k: v for k, v in data.items() if k in HOUSE_FIELDS and v is not None},
            )
            if house.is_active is None:
                house.is_active = True
            house.stamp_created(user)
            await self.persist(house)

            self.log_operation("partner_house_creation", {"house_id": house.id, "name": house.name})
            return house

        except SalesIntelligenceError:
            raise
        except Exception as e:
            await self.handle_error("create_house", e, name=data.get("name"))

    async def update_house(self, house_id: str, updates: Dict[str, Any],
                           user: Optional[AuditContext] = None) -> PartnerHouse:
        try:
            house = await self.get_house(house_id)
            if self.apply_updates(house, updates, HOUSE_FIELDS):
                house.stamp_updated(user)
                await self.persist(house)
            return house

        except SalesIntelligenceError:
            raise
        except Exception as e:
            await self.handle_error("update_house", e, house_id=house_id)

    async def delete_house(self, house_id: str) -> None:
        try:
            house = await self.get_house(house_id)
            await self.db.execute(delete(PartnerNews).where(PartnerNews.house_id == house_id))
            await self.db.delete(house)
            await self.db.flush()
            self.log_operation("partner_house_deletion", {"house_id": house_id})

        except SalesIntelligenceError:
            raise
        except Exception as e:
            await self.handle_error("delete_house", e, house_id=house_id)

    # === NEWS ===

    async def list_news(
        self,
        house_id: Optional[str] = None,
        featured_only: bool = False,
        news_type: Optional[str] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> Tuple[List[PartnerNews], int]:
        stmt = self.create_base_query(PartnerNews)
        if house_id:
            stmt = stmt.where(PartnerNews.house_id == house_id)
        if featured_only:
            stmt = stmt.where(PartnerNews.is_featured.is_(True))
        if news_type:
            stmt = stmt.where(PartnerNews.news_type == news_type)
        stmt = stmt.order_by(nulls_last(PartnerNews.published_at.desc()))
        return await self.paginate(stmt, limit, offset)

    async def get_news(self, news_id: str) -> PartnerNews:
        news = await self.get_by_id(PartnerNews, news_id)
        if not news:
            raise NotFoundError("Partner news", news_id)
        return news

    async def create_news(self, data: Dict[str, Any], user: Optional[AuditContext] = None) -> PartnerNews:
        try:
            await self.get_house(data["house_id"])
            news = PartnerNews(
                tenant_id=self.write_tenant_id,
                **{k: v for k, v in data.items() if k in NEWS_FIELDS and v is not None},
            )
            news.published_at = news.published_at or utcnow()
            if news.is_featured is None:
                news.is_featured = False
            news.stamp_created(user)
            await self.persist(news)

            self.log_operation("partner_news_creation", {"news_id": news.id, "house_id": news.house_id})
            return news

        except SalesIntelligenceError:
            raise
        except Exception as e:
            await self.handle_error("create_news", e, house_id=data.get("house_id"))

    async def update_news(self, news_id: str, updates: Dict[str, Any],
                          user: Optional[AuditContext] = None) -> PartnerNews:
        try:
            news = await self.get_news(news_id)
            if updates.get("house_id"):
                await self.get_house(updates["house_id"])
            if self.apply_updates(news, updates, NEWS_FIELDS):
                news.stamp_updated(user)
                await self.persist(news)
            return news

        except SalesIntelligenceError:
            raise
        except Exception as e:
            await self.handle_error("update_news", e, news_id=news_id)

    async def delete_news(self, news_id: str) -> None:
        try:
            news = await self.get_news(news_id)
            await self.db.delete(news)
            await self.db.flush()
            self.log_operation("partner_news_deletion", {"news_id": news_id})

        except SalesIntelligenceError:
            raise
        except Exception as e:
            await self.handle_error("delete_news", e, news_id=news_id)
