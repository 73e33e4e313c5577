"""
Upgrade funnel analytics endpoints.

Events are stored per workspace and forwarded, best effort, to the
configured analytics endpoint. Delivery never affects the response.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status

from erm.services import WorkspaceServices
from erm.types.analytics import ConversionStats, UpgradeEvent, UpgradeEventCreate

from ..dependencies import get_services

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/analytics", tags=["analytics"])


@router.post("/upgrade-events", status_code=status.HTTP_201_CREATED)
async def track_upgrade_event(
    request: UpgradeEventCreate,
    services: WorkspaceServices = Depends(get_services),
) -> UpgradeEvent:
    """Record one funnel step (modal_shown, upgrade_clicked or upgrade_success)."""
    return await services.analytics.track(
        request.source,
        request.feature,
        request.action,
        plan=request.plan,
    )


@router.get("/upgrade-events")
async def list_upgrade_events(
    source: Optional[str] = Query(default=None),
    services: WorkspaceServices = Depends(get_services),
) -> List[UpgradeEvent]:
    """Most recent funnel events, oldest first."""
    if source:
        return await services.analytics.get_events_by_source(source)
    return await services.analytics.get_events()


@router.get("/conversion-stats")
async def get_conversion_stats(
    services: WorkspaceServices = Depends(get_services),
) -> ConversionStats:
    """Funnel counts and modal-to-upgrade conversion rate per source."""
    return await services.analytics.get_conversion_stats()
