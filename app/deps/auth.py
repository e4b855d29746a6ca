from fastapi import Request

from app.features.core.audit_mixin import AuditContext


async def get_current_user(request: Request) -> AuditContext:
    """Acting user as forwarded by the authentication proxy.

    The proxy sets X-User-Email / X-User-Name (and optionally X-User-ID) after
    validating the session; requests without them act as the system user.
    """
    email = request.headers.get("x-user-email")
    if not email:
        return AuditContext.system()

    return AuditContext(
        user_email=email[:255],
        user_name=(request.headers.get("x-user-name") or email)[:255],
        user_id=request.headers.get("x-user-id"),
    )
