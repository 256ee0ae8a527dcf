"""FastAPI auth dependencies — the authenticator and the authorization gates.

authenticate runs once per request, as a router-level dependency on every
/v1 route, and walks a small state machine:

    Anonymous --(Authorization header)--> TokenPresented
    TokenPresented --(valid, live token)--> Authenticated
    TokenPresented --(anything else)-----> Rejected (401 + WWW-Authenticate)

No header, or an empty one, leaves the request Anonymous; it still
proceeds, carrying the ANONYMOUS_USER sentinel. The result is a RequestContext stored on
request.state; the gates read it back through get_request_context and hand
the resolved User to handlers as an explicit parameter. A gated route
mounted where authenticate never ran has no context to read. That is a
programming error and raises InternalInvariantViolation (500), never a
client-facing 401.

The gates compose on top:

    require_activated_user      anonymous → 401, inactive → 403
    require_permission(code)    the above, then missing code → 403
"""

from dataclasses import dataclass
from typing import Optional, Union

import structlog
from fastapi import Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from greenlight.auth.tokens import SCOPE_AUTHENTICATION, validate_token_plaintext
from greenlight.db.engine import get_db
from greenlight.db.models import ANONYMOUS_USER, AnonymousUser, User
from greenlight.errors import (
    AuthenticationRequired,
    InactiveAccount,
    InternalInvariantViolation,
    InvalidAuthenticationToken,
    NotPermitted,
)
from greenlight.services.permission_service import PermissionService
from greenlight.services.token_service import TokenService
from greenlight.validator import Validator

logger = structlog.get_logger()


@dataclass(frozen=True)
class RequestContext:
    """Who is making this request. user is never None once authenticated."""

    user: Union[User, AnonymousUser]

    @property
    def is_anonymous(self) -> bool:
        return self.user.is_anonymous


def parse_bearer(authorization: str) -> str:
    """Extract the token from 'Bearer <token>' or raise InvalidAuthenticationToken."""
    parts = authorization.split(" ")
    if len(parts) != 2 or parts[0] != "Bearer":
        raise InvalidAuthenticationToken()
    return parts[1]


async def authenticate(
    request: Request,
    authorization: Optional[str] = Header(None),
    db: AsyncSession = Depends(get_db),
) -> RequestContext:
    """Resolve the Authorization header to a RequestContext."""
    if not authorization:
        ctx = RequestContext(user=ANONYMOUS_USER)
        request.state.auth = ctx
        return ctx

    token = parse_bearer(authorization)

    v = Validator()
    validate_token_plaintext(v, token)
    if not v.valid:
        raise InvalidAuthenticationToken()

    user = await TokenService(db).get_user_for_token(SCOPE_AUTHENTICATION, token)
    if user is None:
        raise InvalidAuthenticationToken()

    ctx = RequestContext(user=user)
    request.state.auth = ctx
    structlog.contextvars.bind_contextvars(user_id=user.id)
    return ctx


def get_request_context(request: Request) -> RequestContext:
    """The context set by authenticate; a contract violation if it never ran."""
    ctx = getattr(request.state, "auth", None)
    if ctx is None:
        raise InternalInvariantViolation("missing authentication context on request")
    return ctx


# ─── Gates ──────────────────────────────────────────────


def check_activated(ctx: RequestContext) -> User:
    if ctx.is_anonymous:
        raise AuthenticationRequired()
    if not ctx.user.activated:
        raise InactiveAccount()
    return ctx.user


async def require_activated_user(
    ctx: RequestContext = Depends(get_request_context),
) -> User:
    return check_activated(ctx)


def require_permission(*codes: str):
    """Build a dependency admitting activated users that hold every code."""
    if not codes:
        raise ValueError("require_permission needs at least one permission code")

    async def dependency(
        user: User = Depends(require_activated_user),
        db: AsyncSession = Depends(get_db),
    ) -> User:
        permissions = await PermissionService(db).get_all_for_user(user.id)
        for code in codes:
            if not permissions.include(code):
                logger.info("auth.not_permitted", user_id=user.id, required=code)
                raise NotPermitted()
        return user

    dependency.__name__ = "require_permission_" + "_".join(codes).replace(":", "_")
    return dependency
