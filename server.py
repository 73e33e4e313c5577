"""
API server for the ERM plan limits service.

Assembles the routes, middleware and exception handlers from the app
package around the erm library.
"""

import logging
import os
import re
import sys
from contextlib import asynccontextmanager

import sentry_sdk
import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.starlette import StarletteIntegration

# Configure structured logging FIRST, before other imports that use logging
from erm.utils.logging import setup_logging

logger = setup_logging(service_name="erm-api")

from erm import __version__
from erm.analytics.upgrade_analytics import get_analytics_delivery
from erm.config import Settings, get_settings
from erm.storage import get_redis_client

try:
    settings: Settings = get_settings()
    logger = setup_logging(
        service_name="erm-api",
        level=settings.logging.log_level,
        json_format=settings.logging.log_format_json or settings.is_production,
    )
    logger.info("Configuration loaded", extra=settings.get_config_summary())
except Exception as e:
    logger.critical(f"Unexpected error loading configuration: {e}")
    sys.exit(1)

from app.error_handlers import register_exception_handlers
from app.middleware import RequestLoggingMiddleware
from app.routes import (
    activity_router,
    ai_calls_router,
    analytics_router,
    exports_router,
    health_router,
    plans_router,
    usage_router,
    workspace_router,
)

# =============================================================================
# Sentry Error Tracking Configuration
# =============================================================================

SENSITIVE_BREADCRUMB_KEYS = [
    "password", "api_key", "apikey", "api-key", "secret", "token",
    "authorization", "bearer", "credential", "redis://",
]


def filter_sensitive_breadcrumbs(crumb, hint):
    """
    Filter sensitive data from Sentry breadcrumbs.

    Masks sensitive HTTP headers and query parameters and drops log
    messages that may carry credentials.
    """
    if crumb.get("category") == "http":
        data = crumb.get("data")
        if isinstance(data, dict):
            headers = data.get("headers")
            if isinstance(headers, dict):
                for key in list(headers.keys()):
                    if any(s in key.lower() for s in SENSITIVE_BREADCRUMB_KEYS):
                        headers[key] = "[FILTERED]"
            if "url" in data:
                url = data["url"]
                for key in SENSITIVE_BREADCRUMB_KEYS:
                    if f"{key}=" in url.lower():
                        pattern = re.compile(f"({re.escape(key)}=)[^&]*", re.IGNORECASE)
                        url = pattern.sub(r"\1[FILTERED]", url)
                data["url"] = url

    if crumb.get("category") in ("console", "log") and "message" in crumb:
        message = str(crumb["message"]).lower()
        if any(key in message for key in SENSITIVE_BREADCRUMB_KEYS):
            crumb["message"] = "[FILTERED - may contain sensitive data]"

    return crumb


if settings.is_sentry_configured:
    sentry_settings = settings.sentry
    sentry_sdk.init(
        dsn=sentry_settings.sentry_dsn,
        environment=sentry_settings.sentry_environment,
        sample_rate=1.0,
        traces_sample_rate=sentry_settings.sentry_traces_sample_rate,
        integrations=[
            StarletteIntegration(transaction_style="endpoint"),
            FastApiIntegration(transaction_style="endpoint"),
        ],
        before_breadcrumb=filter_sensitive_breadcrumbs,
        send_default_pii=False,
        attach_stacktrace=True,
        release=sentry_settings.sentry_release or f"erm-api@{__version__}",
    )
    logger.info(f"Sentry initialized for environment: {sentry_settings.sentry_environment}")
else:
    logger.info("Sentry DSN not configured, error tracking disabled")


def is_sentry_initialized() -> bool:
    """Check if Sentry is properly initialized and configured."""
    try:
        client = sentry_sdk.get_client()
        return client.is_active() and settings.is_sentry_configured
    except Exception:
        return False


# =============================================================================
# Initialize FastAPI App
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle startup/shutdown for shared resources."""
    yield
    try:
        await get_analytics_delivery().close()
    except Exception as e:
        logger.warning("Failed to close analytics delivery client: %s", e)
    try:
        await get_redis_client().close()
    except Exception as e:
        logger.warning("Failed to close Redis client: %s", e)


app = FastAPI(
    title="ERM Plan Limits API",
    description="""
## Plan limits, usage enforcement and audit trail

Every request is scoped to a workspace with the `X-Workspace-ID` header
(default `default`). The acting user is taken from `X-User-ID` and
`X-User-Name`; analytics sessions from `X-Session-ID`.

### Key Features

- **Plan limits**: FREE, PRO and ENTERPRISE caps per feature
- **Usage**: live counts of registers, risks, controls, reports, members, storage and AI calls
- **Enforcement**: create and export checks; denials answer 402 with the structured result
- **Exports**: distinct-item export allowance and watermark policy
- **Activity log**: newest-first audit trail with search and CSV download
- **Upgrade analytics**: funnel events and conversion rates per source
""",
    version=__version__,
    lifespan=lifespan,
    openapi_tags=[
        {"name": "health", "description": "Health checks and system status"},
        {"name": "plans", "description": "Plan tiers and their caps"},
        {"name": "usage", "description": "Usage counts and create checks"},
        {"name": "ai-calls", "description": "AI call allowance"},
        {"name": "exports", "description": "Export gating and history"},
        {"name": "activity", "description": "Activity audit trail"},
        {"name": "analytics", "description": "Upgrade funnel analytics"},
        {"name": "workspace", "description": "Workspace plan changes"},
    ],
)

# =============================================================================
# Exception Handlers
# =============================================================================

register_exception_handlers(app)

# =============================================================================
# Middleware
# =============================================================================

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.security.origins_list,
    allow_credentials=True,
    allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
    allow_headers=[
        "Content-Type",
        "Accept",
        "Origin",
        "X-Request-ID",
        "X-Workspace-ID",
        "X-User-ID",
        "X-User-Name",
        "X-Session-ID",
    ],
    expose_headers=[
        "X-Request-ID",
        "X-Response-Time",
        "Content-Disposition",
    ],
    max_age=600,
)

# Added last so it wraps every other middleware
app.add_middleware(RequestLoggingMiddleware)

# =============================================================================
# Routes
# =============================================================================

app.include_router(health_router)
app.include_router(plans_router)
app.include_router(usage_router)
app.include_router(ai_calls_router)
app.include_router(exports_router)
app.include_router(activity_router)
app.include_router(analytics_router)
app.include_router(workspace_router)


if __name__ == "__main__":
    reload_enabled = os.environ.get("UVICORN_RELOAD", "false").lower() == "true"
    port = int(os.environ.get("PORT", "8000"))
    uvicorn.run("server:app", host="0.0.0.0", port=port, reload=reload_enabled)
