# src/procedure_logger/core/logging/middleware.py
"""
Request ID middleware for FastAPI / Starlette.

Each incoming request gets a request id: the incoming ``X-Request-ID`` header
when it is a sane token, otherwise a fresh UUID4. The id is stored in the
contextvar read by `RequestIdFilter` (so every stdlib record emitted while the
request runs carries it), exposed as ``request.state.request_id`` (the RPC
router copies it into the procedure context, where the rate limiter uses it
as a fallback key) and echoed back in the ``X-Request-ID`` response header.
"""

import re
import uuid
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from .filters import set_request_id, reset_request_id

REQUEST_ID_HEADER = "X-Request-ID"

# Printable token, bounded length: no newlines or control characters in logs.
_VALID_REQUEST_ID = re.compile(r"^[A-Za-z0-9._:-]{1,128}$")


def resolve_request_id(incoming: str | None) -> str:
    if incoming and _VALID_REQUEST_ID.match(incoming):
        return incoming
    return str(uuid.uuid4())


class RequestIDMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        rid = resolve_request_id(request.headers.get(REQUEST_ID_HEADER))
        request.state.request_id = rid
        token = set_request_id(rid)
        try:
            response = await call_next(request)
            response.headers[REQUEST_ID_HEADER] = rid
            return response
        finally:
            reset_request_id(token)
