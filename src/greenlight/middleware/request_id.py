"""Request ID middleware — per-request log correlation and access line.

A caller-supplied X-Request-ID is reused only when it looks like an ID:
up to 128 characters of letters, digits and ``._:-``. Anything else (too
long, spaces, control characters) is replaced with a fresh UUID so the
header cannot smuggle arbitrary text into the logs.

The ID, method and path are bound to structlog's contextvars for the life
of the request, and one ``http.request`` line with the status and duration
is written when the response is ready.
"""

import re
import time
import uuid
from typing import Optional

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

REQUEST_ID_HEADER = "X-Request-ID"
REQUEST_ID_RX = re.compile(r"[A-Za-z0-9._:-]{1,128}")

logger = structlog.get_logger()


def resolve_request_id(incoming: Optional[str]) -> str:
    if incoming and REQUEST_ID_RX.fullmatch(incoming):
        return incoming
    return str(uuid.uuid4())


class RequestIdMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = resolve_request_id(request.headers.get(REQUEST_ID_HEADER))

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        )

        started = time.perf_counter()
        response: Response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id

        logger.info(
            "http.request",
            status=response.status_code,
            duration_ms=round((time.perf_counter() - started) * 1000, 2),
        )
        return response
