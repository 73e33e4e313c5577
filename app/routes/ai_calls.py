"""
AI call counter endpoints.

Callers check before invoking an AI feature and increment afterwards.
A saturated counter answers 402 on increment. Only admins may reset it.
"""

import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends

from erm.exceptions import AuthorizationError, ErrorCode, PlanLimitExceeded
from erm.services import WorkspaceServices
from erm.types.usage import AICallStatus

from ..dependencies import get_services

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/ai-calls", tags=["ai-calls"])


@router.get("")
async def get_ai_call_status(
    services: WorkspaceServices = Depends(get_services),
) -> Dict[str, Any]:
    """Whether another AI call is allowed, plus badge text for the UI."""
    counter = services.ai_counter
    status = await counter.can_make_call()
    body = status.model_dump(mode="json", by_alias=True)
    body["displayText"] = await counter.get_display_text()
    body["badge"] = await counter.get_badge_state()
    return body


@router.post("/increment")
async def increment_ai_calls(
    services: WorkspaceServices = Depends(get_services),
) -> AICallStatus:
    """
    Count one AI call.

    The call that reaches the cap is still allowed. Once the counter is
    saturated the count stays put and the response is 402.
    """
    status = await services.ai_counter.increment()
    if not status.allowed:
        denial = await services.ai_counter.can_make_call()
        raise PlanLimitExceeded(
            message=denial.message,
            result=status.model_dump(mode="json", by_alias=True)
            | {"message": denial.message, "upgradeMessage": denial.upgrade_message},
            error_code=ErrorCode.AI_LIMIT_REACHED,
        )
    return status


@router.post("/reset")
async def reset_ai_calls(
    services: WorkspaceServices = Depends(get_services),
) -> AICallStatus:
    """
    Restart the allowance at zero.

    Plan upgrades reset the counter themselves; a manual reset is limited
    to platform admins and workspaces with a limits override.
    """
    if not await services.workspace.is_admin_override():
        logger.warning(f"Rejected AI call counter reset for workspace {services.workspace_id}")
        raise AuthorizationError(
            message="Only administrators can reset AI usage",
            required_permission="admin",
        )

    await services.ai_counter.reset()
    logger.info(f"AI call counter reset for workspace {services.workspace_id}")
    return await services.ai_counter.can_make_call()
