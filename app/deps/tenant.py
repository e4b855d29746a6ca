from typing import Optional

from fastapi import Request

from app.middleware.tenant import tenant_ctx_var


def get_current_tenant() -> Optional[str]:
    """Return the tenant id from the request ContextVar (set by middleware).

    Returns None if no tenant is set.
    """
    return tenant_ctx_var.get(None)


async def tenant_dependency(request: Request) -> str:
    """FastAPI dependency that resolves the current tenant.

    Precedence:
      1. X-Tenant-ID header
      2. tenant ContextVar (middleware)
      3. fallback: 'global' (unscoped access)
    """
    header_tenant = request.headers.get("x-tenant-id")
    if header_tenant:
        header_tenant = header_tenant.strip()[:64]

    return header_tenant or get_current_tenant() or "global"
