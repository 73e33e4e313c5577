"""
Health check and root endpoints.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict

import sentry_sdk
from fastapi import APIRouter

from erm import __version__
from erm.config import get_settings
from erm.storage import get_redis_client

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


def get_sentry_status() -> Dict[str, Any]:
    """Report whether Sentry is configured and active."""
    settings = get_settings().sentry
    try:
        client = sentry_sdk.get_client()
        return {
            "configured": settings.is_configured,
            "active": client.is_active() if settings.is_configured else False,
            "environment": settings.sentry_environment if settings.is_configured else None,
        }
    except Exception as e:
        return {
            "configured": False,
            "active": False,
            "environment": None,
            "error": str(e),
        }


def get_analytics_status() -> Dict[str, Any]:
    settings = get_settings().analytics
    return {
        "configured": settings.is_configured,
        "timeout_seconds": settings.analytics_timeout_seconds,
    }


@router.get("/", summary="Service information")
async def root() -> Dict[str, Any]:
    return {
        "service": "ERM Plan Limits API",
        "version": __version__,
        "docs": "/docs",
    }


@router.get(
    "/health",
    summary="System health check",
    description="""
Health check endpoint for monitoring and load balancers.

Reports the storage backend (Redis or in-memory fallback), Sentry and
analytics delivery status. The in-memory fallback counts as degraded,
not down: every operation keeps working within the process.
    """,
)
async def health_check() -> Dict[str, Any]:
    settings = get_settings()
    storage_status = await get_redis_client().health_check()
    sentry_status = get_sentry_status()
    analytics_status = get_analytics_status()

    if storage_status["status"] in ("healthy", "disabled"):
        overall = "healthy"
    else:
        overall = "degraded"
        logger.warning(f"Health check degraded: storage {storage_status['status']}")

    return {
        "status": overall,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": __version__,
        "environment": settings.security.environment,
        "services": {
            "storage": storage_status,
            "sentry": sentry_status,
            "analytics": analytics_status,
        },
    }
