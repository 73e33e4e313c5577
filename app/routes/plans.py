"""
Plan catalogue endpoints.

Public and static: the limits table does not depend on the workspace.
"""

import logging
from typing import Any, Dict, List

from fastapi import APIRouter

from erm.plans import get_limit_text, get_plan_display_name, list_plans, parse_plan
from erm.types.plans import Feature, PlanLimits

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/plans", tags=["plans"])


def _plan_to_response(limits: PlanLimits) -> Dict[str, Any]:
    body = limits.model_dump(mode="json", by_alias=True)
    body["name"] = get_plan_display_name(limits.plan)
    body["limitText"] = {
        feature.key: get_limit_text(limits.limit_for(feature)) for feature in Feature
    }
    return body


@router.get("")
async def get_all_plans() -> List[Dict[str, Any]]:
    """List every plan tier with its caps, FREE first."""
    return [_plan_to_response(limits) for limits in list_plans()]


@router.get("/{plan}")
async def get_plan(plan: str) -> Dict[str, Any]:
    """
    Get the caps for one tier. Tier names are case-insensitive.

    Raises 400 for an unknown tier.
    """
    tier = parse_plan(plan)
    return _plan_to_response(next(p for p in list_plans() if p.plan is tier))
