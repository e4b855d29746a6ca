"""Pappers routes for Sales Intelligence."""

from fastapi import APIRouter
from .scan_routes import router as scan_router
from .crud_routes import router as crud_router

router = APIRouter()
router.include_router(scan_router)
router.include_router(crud_router)

__all__ = ["router"]
