"""Recover middleware — last line of defence against unexpected exceptions.

Registered outermost. Anything that escapes the exception handlers (a bug,
not a GreenlightError) is logged with the request method and URL and turned
into the generic 500 with Connection: close. The server process keeps
serving other requests.
"""

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from greenlight.errors import SERVER_ERROR_MESSAGE, error_response

logger = structlog.get_logger()


class RecoverMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        try:
            return await call_next(request)
        except Exception as e:
            logger.exception(
                "server.unhandled_exception",
                error=str(e),
                error_type=type(e).__name__,
                request_method=request.method,
                request_url=str(request.url),
            )
            return error_response(
                500, SERVER_ERROR_MESSAGE, headers={"Connection": "close"}
            )
