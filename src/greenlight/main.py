"""FastAPI application factory.

Learn: App factory pattern — create_app() returns a configured FastAPI
instance. Lifespan logs startup and disposes of the database pool on
shutdown. Logging, exception handlers, middleware and routers are all
registered here; each concern lives in its own module.
"""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from greenlight import __version__
from greenlight.api import api_router
from greenlight.config import settings
from greenlight.errors import register_exception_handlers
from greenlight.log import configure_logging
from greenlight.middleware.rate_limit import RateLimitMiddleware
from greenlight.middleware.recover import RecoverMiddleware
from greenlight.middleware.request_id import RequestIdMiddleware

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle.

    Learn: Anything before `yield` runs at startup, after `yield` runs at
    shutdown. In-flight requests are drained by uvicorn before we get here.
    """
    logger.info(
        "greenlight.starting",
        version=__version__,
        environment=settings.environment,
        port=settings.port,
    )

    yield

    logger.info("greenlight.shutdown")

    from greenlight.db.engine import engine
    await engine.dispose()


def create_app() -> FastAPI:
    """Build and return the FastAPI application."""
    configure_logging(settings.log_level, json=settings.log_json)

    app = FastAPI(
        title="Greenlight",
        description="JSON API for retrieving and managing information about movies",
        version=__version__,
        lifespan=lifespan,
    )

    register_exception_handlers(app)

    # ── Middleware stack ──────────────────────────────────────
    # Note: Starlette middleware executes in reverse order of registration.
    # Request flow: Recover → CORS → RateLimit → RequestId → handler

    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(
        RateLimitMiddleware,
        rps=settings.limiter_rps,
        burst=settings.limiter_burst,
        enabled=settings.limiter_enabled,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_trusted_origins,
        allow_methods=["OPTIONS", "PUT", "PATCH", "DELETE"],
        allow_headers=["Authorization", "Content-Type", "X-Expected-Version"],
    )
    app.add_middleware(RecoverMiddleware)

    app.include_router(api_router)

    return app


# Default app instance (used by uvicorn: greenlight.main:app)
app = create_app()
