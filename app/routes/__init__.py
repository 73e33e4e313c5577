"""API routes for the ERM service."""

from .activity import router as activity_router
from .ai_calls import router as ai_calls_router
from .analytics import router as analytics_router
from .exports import router as exports_router
from .health import router as health_router
from .plans import router as plans_router
from .usage import router as usage_router
from .workspace import router as workspace_router

__all__ = [
    "activity_router",
    "ai_calls_router",
    "analytics_router",
    "exports_router",
    "health_router",
    "plans_router",
    "usage_router",
    "workspace_router",
]
