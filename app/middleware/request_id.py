import re
import uuid
import typing
from contextvars import ContextVar
from starlette.types import ASGIApp, Receive, Scope, Send

# ContextVar to store current request id
request_id_ctx_var: ContextVar[typing.Optional[str]] = ContextVar("request_id", default=None)

_SAFE_ID = re.compile(r"^[A-Za-z0-9._:-]{1,128}$")


class RequestIDMiddleware:
    """ASGI middleware that gives every request an id.

    A well-formed incoming X-Request-ID (from the SPA or a proxy) is reused so
    a polling request can be traced end to end; anything else is replaced by a
    uuid4. The id is exposed to logs through a ContextVar and returned in the
    X-Request-ID response header.
    """

    def __init__(self, app: ASGIApp):
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        headers = dict((k.decode().lower(), v.decode()) for k, v in scope.get("headers", []))
        incoming_id = headers.get("x-request-id", "")
        rid = incoming_id if _SAFE_ID.match(incoming_id) else str(uuid.uuid4())

        token = request_id_ctx_var.set(rid)

        async def send_wrapper(message):
            if message["type"] == "http.response.start":
                response_headers = message.setdefault("headers", [])
                response_headers.append((b"x-request-id", rid.encode()))
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        finally:
            request_id_ctx_var.reset(token)
