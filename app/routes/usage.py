"""
Usage and plan enforcement endpoints.

Read endpoints fail open: unreadable collections count as empty. The
enforcement check answers 402 with the structured denial when the
workspace is at its cap.
"""

import logging

from fastapi import APIRouter, Depends

from erm.exceptions import ErrorCode, PlanLimitExceeded
from erm.services import WorkspaceServices
from erm.types.usage import (
    EnforcementResult,
    EnforcementStatus,
    FeatureStatus,
    UsageSnapshot,
    UsageSummary,
)

from ..dependencies import get_services

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/usage", tags=["usage"])


@router.get("")
async def get_usage(
    services: WorkspaceServices = Depends(get_services),
) -> UsageSnapshot:
    """Current counts for every capped feature. Storage is in KB."""
    return await services.tracker.get_usage()


@router.get("/summary")
async def get_usage_summary(
    services: WorkspaceServices = Depends(get_services),
) -> UsageSummary:
    """Plan, usage, limits and per-feature status in one payload."""
    return await services.tracker.get_usage_summary()


@router.get("/enforcement/{resource}")
async def check_create(
    resource: str,
    services: WorkspaceServices = Depends(get_services),
) -> EnforcementResult:
    """
    Check whether one more ``resource`` may be created.

    ``resource`` is one of riskRegister, risk, control, report, teamMember.
    Returns the allowed result, or 402 with the denial in ``details``.
    """
    result = await services.enforcement.validate_create(resource)
    if not result.allowed:
        logger.info(f"Create {resource} denied for workspace {services.workspace_id}")
        raise PlanLimitExceeded(
            result=result.model_dump(mode="json", by_alias=True),
            error_code=ErrorCode.LIMIT_REACHED,
        )
    return result


@router.get("/enforcement/{feature}/status")
async def get_enforcement_status(
    feature: str,
    services: WorkspaceServices = Depends(get_services),
) -> EnforcementStatus:
    """Remaining capacity and near-limit flag for one feature."""
    return await services.enforcement.get_status(feature)


@router.get("/{feature}")
async def get_feature_usage(
    feature: str,
    services: WorkspaceServices = Depends(get_services),
) -> FeatureStatus:
    """Usage status for one feature (camelCase or snake_case name)."""
    return await services.tracker.get_feature_status(feature)
