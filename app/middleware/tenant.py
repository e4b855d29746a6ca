from contextvars import ContextVar
from typing import Optional
from starlette.types import ASGIApp, Receive, Scope, Send

# ContextVar for tenant
tenant_ctx_var: ContextVar[Optional[str]] = ContextVar("tenant_id", default=None)


class TenantMiddleware:
    """Extract the tenant id of each request into a ContextVar.

    Extraction order:
      1. X-Tenant-ID header
      2. Host-based parsing (subdomain)
      3. Fallback: 'global'

    Logs pick the value up through the structlog tenant processor and the
    response echoes it back in X-Tenant-ID.
    """

    def __init__(self, app: ASGIApp):
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        headers = dict((k.decode().lower(), v.decode()) for k, v in scope.get("headers", []))
        tenant = headers.get("x-tenant-id")

        if not tenant:
            host = headers.get("host", "").split(":")[0]
            if host.count(".") >= 2:
                possible = host.split(".")[0]
                if possible and possible not in ("www", "api") and not possible.isdigit():
                    tenant = possible

        tenant = (tenant or "global").strip()[:64]

        token = tenant_ctx_var.set(tenant)

        async def send_wrapper(message):
            if message["type"] == "http.response.start":
                headers = message.setdefault("headers", [])
                headers.append((b"x-tenant-id", tenant.encode()))
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        finally:
            tenant_ctx_var.reset(token)
