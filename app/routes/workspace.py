"""
Workspace plan endpoints.

Payment is handled upstream; these endpoints apply a plan change that
has already been paid for.
"""

import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends

from erm.plans import get_plan_display_name, parse_plan
from erm.services import WorkspaceServices
from erm.types.plans import PlanTier
from erm.types.workspace import UpgradeRequest, Workspace

from ..dependencies import get_services

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/workspace", tags=["workspace"])


@router.get("")
async def get_workspace(
    services: WorkspaceServices = Depends(get_services),
) -> Dict[str, Any]:
    """The workspace record; a workspace that was never saved reads as FREE."""
    workspace = await services.workspace.get_workspace() or Workspace(id=services.workspace_id)
    body = workspace.model_dump(mode="json", by_alias=True)
    body["planName"] = get_plan_display_name(workspace.plan)
    return body


@router.post("/upgrade")
async def upgrade_plan(
    request: UpgradeRequest,
    services: WorkspaceServices = Depends(get_services),
) -> Workspace:
    """
    Move the workspace to a paid tier.

    Resets the AI call allowance, records an ``upgrade_success`` funnel
    event and audits the change. Upgrading to FREE is rejected with 400.
    """
    return await services.upgrades.upgrade(
        request.plan,
        source=request.source,
        feature=request.feature,
        subscription_id=request.subscription_id,
        billing_cycle=request.billing_cycle,
    )


@router.post("/downgrade")
async def downgrade_plan(
    plan: str = PlanTier.FREE.value,
    services: WorkspaceServices = Depends(get_services),
) -> Workspace:
    """Move the workspace to a lower tier. Counters and history are kept."""
    return await services.upgrades.downgrade(parse_plan(plan))
