"""
Routes for the Sales Intelligence feature.

Aggregates all route modules and provides main router.
"""

from fastapi import APIRouter
from .dashboard import router as dashboard_router
from .signals import router as signals_router
from .contacts import router as contacts_router
from .scans import router as scans_router
from .pappers import router as pappers_router
from .linkedin import router as linkedin_router
from .messages import router as messages_router
from .events import router as events_router
from .partners import router as partners_router
from .settings import router as settings_router
from .credits import router as credits_router

# Main router for Sales Intelligence
router = APIRouter(
    prefix="/features/sales-intelligence",
    tags=["sales-intelligence"]
)

# Include sub-routers
router.include_router(
    dashboard_router,
    prefix="/dashboard",
    tags=["sales-intelligence-dashboard"]
)

router.include_router(
    signals_router,
    tags=["sales-intelligence-signals"]
)

router.include_router(
    contacts_router,
    prefix="/contacts",
    tags=["sales-intelligence-contacts"]
)

router.include_router(
    scans_router,
    prefix="/scans",
    tags=["sales-intelligence-scans"]
)

router.include_router(
    pappers_router,
    prefix="/pappers",
    tags=["sales-intelligence-pappers"]
)

router.include_router(
    linkedin_router,
    prefix="/linkedin",
    tags=["sales-intelligence-linkedin"]
)

router.include_router(
    messages_router,
    prefix="/messages",
    tags=["sales-intelligence-messages"]
)

router.include_router(
    events_router,
    prefix="/events",
    tags=["sales-intelligence-events"]
)

router.include_router(
    partners_router,
    prefix="/partners",
    tags=["sales-intelligence-partners"]
)

router.include_router(
    settings_router,
    prefix="/settings",
    tags=["sales-intelligence-settings"]
)

router.include_router(
    credits_router,
    prefix="/credits",
    tags=["sales-intelligence-credits"]
)

__all__ = ["router"]
