"""Enhanced BaseService with common query patterns and utilities."""

from typing import Any, Dict, List, Optional, Generic, TypeVar
from sqlalchemy.ext.asyncio import AsyncSession
from app.features.core.sqlalchemy_imports import *

T = TypeVar('T')


class BaseService(Generic[T]):
    """
    Base service for tenant-scoped SQLAlchemy access.

    Provides:
    - Tenant-scoped query builders
    - Search and pagination helpers returning ``(items, total)``
    - Consistent operation logging and error handling

    Global access:
    - tenant_id="global" (or None) means no tenant filter on reads
    - rows written under global access are stored with tenant_id "global"
    """

    def __init__(self, db_session: AsyncSession, tenant_id: Optional[str] = None):
        """
        Initialize service with database session and tenant context.

        Args:
            db_session: SQLAlchemy async session
            tenant_id: Tenant ID for scoping queries, or "global" for unscoped access
        """
        self.db = db_session
        self.tenant_id = None if tenant_id == "global" else tenant_id
        self.logger = get_logger(self.__class__.__name__)
        self.is_global_admin = self.tenant_id is None

    @property
    def write_tenant_id(self) -> str:
        """Tenant id stored on rows this service creates."""
        return self.tenant_id or "global"

    # === QUERY BUILDERS ===

    def create_base_query(self, model_class: type[T]) -> Select:
        """
        Create base SELECT query with tenant filtering.

        Args:
            model_class: SQLAlchemy model class

        Returns:
            Select statement filtered to the current tenant (unfiltered for global access)
        """
        stmt = select(model_class)
        return self.scope(stmt, model_class)

    def scope(self, stmt: Select, model_class) -> Select:
        """Add the tenant filter to an arbitrary statement over ``model_class``."""
        if self.tenant_id is not None and hasattr(model_class, 'tenant_id'):
            stmt = stmt.where(model_class.tenant_id == self.tenant_id)
        return stmt

    def apply_search_filters(self, stmt: Select, model_class: type[T],
                             search_term: str, search_fields: List[str]) -> Select:
        """Apply a case-insensitive OR search across several fields."""
        if not search_term or not search_fields:
            return stmt

        search_pattern = f"%{search_term}%"
        conditions = []

        for field_name in search_fields:
            if hasattr(model_class, field_name):
                field = getattr(model_class, field_name)
                conditions.append(field.ilike(search_pattern))

        if conditions:
            stmt = stmt.where(or_(*conditions))

        return stmt

    async def paginate(self, stmt: Select, limit: Optional[int] = None,
                       offset: int = 0) -> Tuple[List[T], int]:
        """Run ``stmt`` with a total count; returns ``(items, total)``."""
        count_stmt = select(func.count()).select_from(stmt.order_by(None).subquery())
        total = (await self.db.execute(count_stmt)).scalar_one()

        if offset:
            stmt = stmt.offset(offset)
        if limit is not None:
            stmt = stmt.limit(limit)

        result = await self.db.execute(stmt)
        return list(result.scalars().all()), int(total or 0)

    # === CRUD OPERATIONS ===

    async def get_by_id(self, model_class: type[T], item_id: str) -> Optional[T]:
        """Get item by ID within the current tenant."""
        try:
            stmt = self.create_base_query(model_class).where(model_class.id == item_id)
            result = await self.db.execute(stmt)
            return result.scalar_one_or_none()

        except Exception as e:
            self.logger.error("Failed to get item by ID",
                              model=model_class.__name__, item_id=item_id, error=str(e))
            raise

    async def count_where(self, model_class: type[T], *conditions) -> int:
        """Count tenant rows matching ``conditions``."""
        stmt = self.scope(select(func.count(model_class.id)), model_class)
        if conditions:
            stmt = stmt.where(*conditions)
        result = await self.db.execute(stmt)
        return int(result.scalar() or 0)

    async def exists_by_field(self, model_class: type[T], field_name: str, value: Any) -> bool:
        """Check if item exists by specific field value."""
        if not hasattr(model_class, field_name):
            raise ValueError(f"Model {model_class.__name__} has no field {field_name}")

        return await self.count_where(model_class, getattr(model_class, field_name) == value) > 0

    async def persist(self, instance: T) -> T:
        """Add, flush and refresh so server defaults are loaded."""
        self.db.add(instance)
        await self.db.flush()
        await self.db.refresh(instance)
        return instance

    @staticmethod
    def apply_updates(instance: T, updates: Dict[str, Any], allowed: Optional[set] = None) -> Dict[str, tuple]:
        """
        Copy ``updates`` onto ``instance``.

        Returns a mapping of changed field -> (old, new).
        """
        changes = {}
        for field, value in updates.items():
            if allowed is not None and field not in allowed:
                continue
            if not hasattr(instance, field):
                continue
            old = getattr(instance, field)
            if old != value:
                setattr(instance, field, value)
                changes[field] = (old, value)
        return changes

    # === LOGGING & ERROR HANDLING ===

    def log_operation(self, operation: str, details: Dict[str, Any] = None):
        """Standardized operation logging."""
        log_data = {
            "operation": operation,
            "service": self.__class__.__name__,
            "tenant_id": self.tenant_id or "global"
        }
        if details:
            log_data.update(details)

        self.logger.info("Service operation", **log_data)

    async def handle_error(self, operation: str, error: Exception, **context):
        """Standardized error handling with rollback."""
        await self.db.rollback()

        self.logger.error("Service operation failed",
                          operation=operation,
                          service=self.__class__.__name__,
                          tenant_id=self.tenant_id or "global",
                          error=str(error),
                          **context)
        raise error
