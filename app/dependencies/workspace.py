"""
Workspace context dependencies.

Each request is scoped to one workspace, taken from the ``X-Workspace-ID``
header. The acting user comes from ``X-User-ID`` / ``X-User-Name`` and the
analytics session from ``X-Session-ID``. Identity headers are trusted as
given: authentication happens upstream of this service.
"""

import logging
import re
from typing import Optional

from fastapi import Depends, Header

from erm.analytics.upgrade_analytics import AnalyticsDelivery, get_analytics_delivery
from erm.config import get_settings
from erm.exceptions import ValidationError
from erm.services import WorkspaceServices, build_workspace_services
from erm.storage import KeyValueStore, get_redis_client
from erm.types.workspace import User
from erm.utils.logging import set_request_context

logger = logging.getLogger(__name__)

WORKSPACE_ID_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.-]{0,63}$")

_root_store: Optional[KeyValueStore] = None


def get_root_store() -> KeyValueStore:
    """
    Get the process-wide store with the configured global prefix.

    Uses Redis when REDIS_URL is set; otherwise data lives in process memory.
    """
    global _root_store
    if _root_store is None:
        settings = get_settings()
        redis_client = get_redis_client() if settings.is_redis_configured else None
        _root_store = KeyValueStore(
            prefix=settings.storage.erm_storage_prefix,
            redis_client=redis_client,
            max_update_retries=settings.redis.redis_update_max_retries,
        )
        logger.info(
            "Root store initialized",
            extra={
                "prefix": settings.storage.erm_storage_prefix,
                "backend": "redis" if redis_client else "memory",
            },
        )
    return _root_store


def reset_root_store() -> None:
    """Drop the cached root store so the next request rebuilds it."""
    global _root_store
    _root_store = None


def get_workspace_id(
    x_workspace_id: Optional[str] = Header(default=None, alias="X-Workspace-ID"),
) -> str:
    """
    Resolve the workspace for the request.

    Raises:
        ValidationError: If the header is not a usable namespace
    """
    workspace_id = (x_workspace_id or "").strip()
    if not workspace_id:
        return get_settings().storage.default_workspace_id

    if not WORKSPACE_ID_PATTERN.match(workspace_id):
        raise ValidationError(
            message="Invalid workspace ID",
            field="X-Workspace-ID",
            value=workspace_id,
        )
    return workspace_id


def get_acting_user(
    x_user_id: Optional[str] = Header(default=None, alias="X-User-ID"),
    x_user_name: Optional[str] = Header(default=None, alias="X-User-Name"),
) -> Optional[User]:
    """Build the request user from identity headers, if any were sent."""
    if not x_user_id and not x_user_name:
        return None
    return User(id=x_user_id or None, name=x_user_name or "Unknown User")


def get_session_store(
    root_store: KeyValueStore = Depends(get_root_store),
    x_session_id: Optional[str] = Header(default=None, alias="X-Session-ID"),
) -> Optional[KeyValueStore]:
    """
    Session-scoped store for analytics session ids.

    Without an ``X-Session-ID`` header every request is its own session.
    """
    if not x_session_id or not WORKSPACE_ID_PATTERN.match(x_session_id):
        return None
    return root_store.namespaced(f"session_{x_session_id}")


def get_delivery() -> AnalyticsDelivery:
    return get_analytics_delivery()


async def get_services(
    workspace_id: str = Depends(get_workspace_id),
    acting_user: Optional[User] = Depends(get_acting_user),
    root_store: KeyValueStore = Depends(get_root_store),
    session_store: Optional[KeyValueStore] = Depends(get_session_store),
    delivery: AnalyticsDelivery = Depends(get_delivery),
) -> WorkspaceServices:
    """
    Build the workspace components for this request.

    Usage:
        @router.get("/usage")
        async def usage(services: WorkspaceServices = Depends(get_services)):
            ...
    """
    set_request_context(
        workspace_id=workspace_id,
        user_id=acting_user.id if acting_user else None,
    )
    return build_workspace_services(
        root_store,
        workspace_id,
        acting_user=acting_user,
        session_store=session_store,
        delivery=delivery,
    )
