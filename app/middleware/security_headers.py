from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware


class SecureHeadersMiddleware(BaseHTTPMiddleware):
    """
    Middleware to add security headers to all responses.

    The API only serves JSON, so the content security policy forbids
    everything; the SPA is served from its own origin.
    """

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)

        security_headers = {
            "X-Content-Type-Options": "nosniff",
            "X-Frame-Options": "DENY",
            "Referrer-Policy": "strict-origin-when-cross-origin",
            "Permissions-Policy": "geolocation=(), microphone=(), camera=(), payment=()",
            "Content-Security-Policy": "default-src 'none'; frame-ancestors 'none'",
        }

        if request.url.scheme == "https":
            security_headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"

        for header_name, header_value in security_headers.items():
            response.headers[header_name] = header_value

        return response
