"""Health check endpoint.

Learn: Open to anonymous clients. Reports availability plus the running
environment and version, nothing about the database.
"""

from fastapi import APIRouter

from greenlight import __version__
from greenlight.config import settings

router = APIRouter()


@router.get("/healthcheck")
async def healthcheck():
    return {
        "status": "available",
        "system_info": {
            "environment": settings.environment,
            "version": __version__,
        },
    }
