"""API route aggregation.

All routers registered here get mounted in main.py.

Learn: authenticate is applied once, at the api_router level, so it runs
before anything else on every /v1 route and leaves a RequestContext on the
request. Anonymous requests pass through it; the per-route gates in
greenlight.auth.dependencies decide what anonymous and inactive users may
reach.
"""

from fastapi import APIRouter, Depends

from greenlight.api.healthcheck import router as healthcheck_router
from greenlight.api.movies import router as movies_router
from greenlight.api.tokens import router as tokens_router
from greenlight.api.users import router as users_router
from greenlight.auth.dependencies import authenticate

api_router = APIRouter(prefix="/v1", dependencies=[Depends(authenticate)])

api_router.include_router(healthcheck_router, tags=["health"])
api_router.include_router(movies_router, tags=["movies"])
api_router.include_router(users_router, tags=["users"])
api_router.include_router(tokens_router, tags=["tokens"])
