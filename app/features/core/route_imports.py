"""
Centralized route imports and utilities for FastAPI routes.
Use this module to standardize route patterns across all slices.
"""

# Core FastAPI imports
from fastapi import APIRouter, Depends, Request, HTTPException, Body, Response, Query
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

# Core application imports
from app.features.core.database import get_db
from app.features.core.audit_mixin import AuditContext
from app.deps.tenant import tenant_dependency
from app.deps.auth import get_current_user

# Python standard library
from typing import Optional, List, Dict, Any, Sequence
import structlog

__all__ = [
    # FastAPI core
    'APIRouter', 'Depends', 'Request', 'HTTPException', 'Body', 'Response', 'Query',

    # Response types
    'JSONResponse',

    # Database
    'AsyncSession', 'get_db',

    # Dependencies
    'tenant_dependency', 'get_current_user', 'AuditContext',

    # Typing
    'Optional', 'List', 'Dict', 'Any',

    # Logging
    'structlog', 'get_logger',

    # Utilities
    'handle_route_error', 'commit_transaction', 'create_success_response',
    'create_error_response', 'tabulator_response'
]


def get_logger(name: str):
    """Standardized logger creation for routes."""
    return structlog.get_logger(name)


def handle_route_error(operation: str, error: Exception, **context):
    """Standardized route error handling with logging."""
    logger = get_logger("route_handler")
    logger.error("Route operation failed",
                 operation=operation,
                 error=str(error),
                 **context)


async def commit_transaction(db: AsyncSession, operation: str):
    """Standardized transaction commit with error handling."""
    try:
        await db.commit()
    except Exception as e:
        await db.rollback()
        handle_route_error(operation, e)
        raise HTTPException(status_code=500, detail=f"Failed to {operation}")


def create_success_response(message: str = None, **extra):
    """Create standardized success response."""
    if message or extra:
        content = {"success": True, **extra}
        if message:
            content["message"] = message
        return JSONResponse(content)
    return Response(status_code=204)


def create_error_response(message: str, status_code: int = 400):
    """Create standardized error response."""
    return JSONResponse(
        status_code=status_code,
        content={"error": message, "success": False}
    )


def tabulator_response(items: Sequence[Any], total: int, size: int) -> Dict[str, Any]:
    """List payload in the shape the Tabulator tables expect."""
    return {
        "data": [item.to_dict() if hasattr(item, "to_dict") else item for item in items],
        "last_page": (total + size - 1) // size if total > 0 else 1,
        "total": total
    }
