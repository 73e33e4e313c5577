"""
FastAPI dependencies for the ERM API.

Usage:
    from app.dependencies import get_services

    @router.get("/usage")
    async def usage(services: WorkspaceServices = Depends(get_services)):
        ...
"""

from app.dependencies.workspace import (
    get_acting_user,
    get_delivery,
    get_root_store,
    get_services,
    get_session_store,
    get_workspace_id,
    reset_root_store,
)

__all__ = [
    "get_acting_user",
    "get_delivery",
    "get_root_store",
    "get_services",
    "get_session_store",
    "get_workspace_id",
    "reset_root_store",
]
