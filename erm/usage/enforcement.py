"""
Plan enforcement: may this workspace create, invite, export or call AI?

Every check returns an EnforcementResult. Hitting a limit is a normal
outcome, not an exception; callers that need an error (the HTTP layer)
convert denials themselves. Platform admins and workspaces flagged
``limitsOverride`` bypass every check.
"""

import logging
from typing import Callable, Dict, Union

from erm.exceptions import ErrorCode, ValidationError
from erm.plans.limits import parse_export_format, parse_feature
from erm.types.plans import ExportFormat, Feature
from erm.types.usage import CreatableResource, EnforcementResult, EnforcementStatus
from erm.usage.tracker import (
    UsageTracker,
    limit_reached,
    remaining_capacity,
    usage_percentage,
)
from erm.workspace import WorkspaceService

logger = logging.getLogger(__name__)

NEAR_LIMIT_PERCENTAGE = 80

LIMIT_REACHED = "limit_reached"
FEATURE_BLOCKED = "feature_blocked"

# feature -> (message template, upgrade message); template gets current/limit
LIMIT_MESSAGES: Dict[Feature, tuple[str, str]] = {
    Feature.RISK_REGISTERS: (
        "You've created {current} of {limit} risk registers.",
        "Upgrade to create unlimited risk registers.",
    ),
    Feature.RISKS: (
        "You've reached the maximum number of risks on the free plan.",
        "Upgrade to create unlimited risks.",
    ),
    Feature.CONTROLS: (
        "You've created {current} of {limit} controls.",
        "Upgrade to create unlimited controls.",
    ),
    Feature.REPORTS: (
        "You've generated {current} of {limit} reports.",
        "Upgrade to generate unlimited reports.",
    ),
    Feature.TEAM_MEMBERS: (
        "You've added {current} of {limit} team members.",
        "Upgrade to add more team members.",
    ),
    Feature.AI_CALLS: (
        "You've used {current} of {limit} AI suggestions this month.",
        "Upgrade for unlimited AI suggestions.",
    ),
}


class PlanEnforcement:
    """
    Permission checks against the workspace plan.

    Args:
        tracker: Usage tracker for the workspace
        workspace: Workspace context used for the admin override
    """

    def __init__(self, tracker: UsageTracker, workspace: WorkspaceService) -> None:
        self.tracker = tracker
        self.workspace = workspace

    async def is_admin_override(self) -> bool:
        return await self.workspace.is_admin_override()

    async def _check_limit(self, feature: Feature) -> EnforcementResult:
        if await self.is_admin_override():
            return EnforcementResult(allowed=True)

        usage = await self.tracker.get_usage()
        limits = await self.tracker.get_limits()
        current = usage.get(feature)
        limit = limits.limit_for(feature)

        if not limit_reached(current, limit):
            return EnforcementResult(allowed=True)

        template, upgrade_message = LIMIT_MESSAGES[feature]
        logger.info(
            f"Plan limit reached for {feature.value}: {current}/{limit}",
            extra={"feature": feature.value, "current": current, "limit": limit},
        )
        return EnforcementResult(
            allowed=False,
            reason=LIMIT_REACHED,
            feature=feature.key,
            current=current,
            limit=limit,
            message=template.format(current=current, limit=limit),
            upgrade_message=upgrade_message,
        )

    async def can_create_risk_register(self) -> EnforcementResult:
        return await self._check_limit(Feature.RISK_REGISTERS)

    async def can_create_risk(self) -> EnforcementResult:
        return await self._check_limit(Feature.RISKS)

    async def can_create_control(self) -> EnforcementResult:
        return await self._check_limit(Feature.CONTROLS)

    async def can_generate_report(self) -> EnforcementResult:
        return await self._check_limit(Feature.REPORTS)

    async def can_invite_members(self) -> EnforcementResult:
        return await self._check_limit(Feature.TEAM_MEMBERS)

    async def can_use_ai(self) -> EnforcementResult:
        return await self._check_limit(Feature.AI_CALLS)

    async def can_export(self, export_format: Union[ExportFormat, str]) -> EnforcementResult:
        """Check whether the plan allows an export format at all."""
        export_format = parse_export_format(export_format)
        if await self.is_admin_override():
            return EnforcementResult(allowed=True)

        if await self.tracker.can_export_format(export_format):
            return EnforcementResult(allowed=True)

        return EnforcementResult(
            allowed=False,
            reason=FEATURE_BLOCKED,
            feature=f"export_{export_format.value}",
            message=f"{export_format.value.upper()} export is not available on the free plan.",
            upgrade_message="Upgrade to export to Excel and CSV formats.",
        )

    async def validate_create(self, resource: Union[CreatableResource, str]) -> EnforcementResult:
        """
        Dispatch to the create check for ``resource``.

        Raises:
            ValidationError: If the resource is not a creatable kind
        """
        try:
            resource = CreatableResource(resource)
        except ValueError:
            raise ValidationError(
                message=f"Unknown resource: {resource}",
                field="resource",
                value=resource,
                error_code=ErrorCode.INVALID_RESOURCE,
            )

        checks: Dict[CreatableResource, Callable] = {
            CreatableResource.RISK_REGISTER: self.can_create_risk_register,
            CreatableResource.RISK: self.can_create_risk,
            CreatableResource.CONTROL: self.can_create_control,
            CreatableResource.REPORT: self.can_generate_report,
            CreatableResource.TEAM_MEMBER: self.can_invite_members,
        }
        return await checks[resource]()

    async def get_status(self, feature: Union[Feature, str]) -> EnforcementStatus:
        feature = parse_feature(feature)
        usage = await self.tracker.get_usage()
        limits = await self.tracker.get_limits()
        current = usage.get(feature)
        limit = limits.limit_for(feature)

        at_limit = limit_reached(current, limit)
        percentage = usage_percentage(current, limit)
        return EnforcementStatus(
            feature=feature,
            current=current,
            limit=limit,
            remaining=remaining_capacity(current, limit),
            percentage=percentage,
            at_limit=at_limit,
            near_limit=percentage >= NEAR_LIMIT_PERCENTAGE and not at_limit,
            can_create=not at_limit or await self.is_admin_override(),
        )
