"""Error taxonomy and the handlers that render it.

Every error the API can return to a client is a GreenlightError subclass
carrying its HTTP status and client-facing message. Services raise them,
routes let them propagate, and the handlers registered here turn them into
the JSON envelope {"error": ...}.

InternalError and its subclasses are the "our fault" family: they are logged
with the request method and URL, and the client only ever sees a generic
message.
"""

from typing import Any, Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = structlog.get_logger()

SERVER_ERROR_MESSAGE = (
    "the server encountered a problem and could not process your request"
)


class GreenlightError(Exception):
    """Base for every error that maps to an HTTP response."""

    status_code: int = 500
    message: Any = SERVER_ERROR_MESSAGE
    headers: Optional[dict[str, str]] = None

    def __init__(self, message: Any = None):
        if message is not None:
            self.message = message
        super().__init__(str(self.message))


# ─── 4xx ─────────────────────────────────────────────────


class ClientInputError(GreenlightError):
    """Malformed request data (bad JSON, wrong types, unknown keys)."""

    status_code = 400


class ValidationError(GreenlightError):
    """Field-level validation failure. message is a field → message map."""

    status_code = 422

    def __init__(self, errors: dict[str, str]):
        self.errors = dict(errors)
        super().__init__(self.errors)


class AuthenticationError(GreenlightError):
    status_code = 401
    message = "invalid authentication credentials"


class InvalidAuthenticationToken(AuthenticationError):
    message = "invalid or missing authentication token"
    headers = {"WWW-Authenticate": "Bearer"}


class AuthenticationRequired(AuthenticationError):
    message = "you must be authenticated to access this resource"


class InvalidCredentials(AuthenticationError):
    message = "invalid authentication credentials"


class AuthorizationError(GreenlightError):
    status_code = 403
    message = "you are not allowed to access this resource"


class InactiveAccount(AuthorizationError):
    message = "your user account must be activated to access this resource"


class NotPermitted(AuthorizationError):
    message = (
        "your user account doesn't have the necessary permissions "
        "to access this resource"
    )


class NotFoundError(GreenlightError):
    status_code = 404
    message = "the requested resource could not be found"


class EditConflictError(GreenlightError):
    status_code = 409
    message = "unable to update the record due to an edit conflict, please try again"


class RateLimitExceeded(GreenlightError):
    status_code = 429
    message = "rate limit exceeded"


# ─── 5xx ─────────────────────────────────────────────────


class InternalError(GreenlightError):
    """Server-side failure. The detail is logged, never sent to the client."""

    status_code = 500

    def __init__(self, detail: str = "internal error"):
        self.detail = detail
        super().__init__(SERVER_ERROR_MESSAGE)

    def __str__(self) -> str:
        return self.detail


class InternalInvariantViolation(InternalError):
    """A programming contract was broken (not a client mistake)."""


class StoreTimeoutError(InternalError):
    """A store operation exceeded its deadline."""


class HashingError(InternalError):
    """bcrypt could not produce a hash."""


class PasswordHashError(InternalError):
    """The stored password hash is missing or malformed."""


class EntropyError(InternalError):
    """The OS random source failed."""


# ─── Handlers ────────────────────────────────────────────


def error_response(
    status_code: int, message: Any, headers: Optional[dict[str, str]] = None
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code, content={"error": message}, headers=headers
    )


def log_server_error(request: Request, exc: BaseException) -> None:
    logger.error(
        "server.error",
        error=str(exc),
        error_type=type(exc).__name__,
        request_method=request.method,
        request_url=str(request.url),
    )


async def greenlight_error_handler(request: Request, exc: GreenlightError):
    if isinstance(exc, InternalError):
        log_server_error(request, exc)
    return error_response(exc.status_code, exc.message, exc.headers)


def _describe_body_error(error: dict) -> str:
    """Turn one pydantic error on the request body into a plain sentence."""
    kind = error.get("type", "")
    loc = [str(part) for part in error.get("loc", ())[1:]]
    field = ".".join(loc)

    if kind == "json_invalid":
        return "body contains badly-formed JSON"
    if kind == "missing" and not loc:
        return "body must not be empty"
    if kind == "extra_forbidden":
        return f'body contains unknown key "{field}"'
    if kind == "value_error":
        return str(error.get("ctx", {}).get("error", error.get("msg", "")))
    if field:
        return f'body contains incorrect JSON type for field "{field}"'
    return "body contains incorrect JSON type"


async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    loc = first.get("loc", ())
    if loc and loc[0] == "path":
        return error_response(404, NotFoundError.message)
    if loc and loc[0] == "body":
        return error_response(ClientInputError.status_code, _describe_body_error(first))
    return error_response(ClientInputError.status_code, first.get("msg", "invalid request"))


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    if exc.status_code == 404:
        message = NotFoundError.message
    elif exc.status_code == 405:
        message = f"the {request.method} method is not supported for this resource"
    else:
        message = exc.detail
    return error_response(exc.status_code, message, getattr(exc, "headers", None))


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(GreenlightError, greenlight_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
