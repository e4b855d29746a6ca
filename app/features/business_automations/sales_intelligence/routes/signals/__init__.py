"""Signal routes for Sales Intelligence."""

from fastapi import APIRouter
from .crud_routes import router as crud_router
from .enrichment_routes import router as enrichment_router

# Collection routes use an empty path, so the prefix goes on each include
router = APIRouter()
router.include_router(crud_router, prefix="/signals")
router.include_router(enrichment_router, prefix="/signals")

__all__ = ["router"]
