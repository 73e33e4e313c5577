"""
Plan changes for a workspace.

An upgrade writes the new tier, restarts the AI call allowance, records
the ``upgrade_success`` funnel step and audits the change. A downgrade
only writes the tier and audits it; usage counters are left alone.
"""

import logging
from datetime import datetime, timezone
from typing import Callable, Optional, Union

from erm.activity.logger import ActivityLogger
from erm.analytics.upgrade_analytics import UpgradeAnalytics
from erm.exceptions import ErrorCode, ValidationError
from erm.plans.limits import get_plan_display_name, parse_plan
from erm.types.activity import ActivityAction, ActivityType
from erm.types.plans import PlanTier
from erm.types.workspace import Workspace
from erm.usage.ai_counter import AICallCounter
from erm.workspace import WorkspaceService

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PlanUpgradeService:
    def __init__(
        self,
        workspace: WorkspaceService,
        ai_counter: AICallCounter,
        analytics: UpgradeAnalytics,
        activity_logger: ActivityLogger,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.workspace = workspace
        self.ai_counter = ai_counter
        self.analytics = analytics
        self.activity_logger = activity_logger
        self.clock = clock or _utcnow

    async def _write_plan(self, tier: PlanTier, **changes) -> tuple[PlanTier, Workspace]:
        current = await self.workspace.get_workspace() or Workspace(id=self.workspace.workspace_id)
        previous = current.plan
        updated = current.model_copy(update={"plan": tier, **changes})
        await self.workspace.save_workspace(updated)
        return previous, updated

    async def upgrade(
        self,
        plan: Union[PlanTier, str],
        source: Optional[str] = None,
        feature: Optional[str] = None,
        subscription_id: Optional[str] = None,
        billing_cycle: str = "monthly",
    ) -> Workspace:
        """
        Move the workspace to a paid tier.

        Raises:
            ValidationError: If ``plan`` is unknown or FREE
        """
        tier = parse_plan(plan)
        if tier is PlanTier.FREE:
            raise ValidationError(
                message="Cannot upgrade to the FREE plan",
                field="plan",
                value=plan,
                error_code=ErrorCode.INVALID_PLAN,
            )

        previous, workspace = await self._write_plan(
            tier,
            upgraded_at=self.clock(),
            subscription_id=subscription_id,
            billing_cycle=billing_cycle,
        )
        await self.ai_counter.reset()
        await self.analytics.track_upgrade_success(tier.value, source, feature)
        await self.activity_logger.log(
            ActivityType.WORKSPACE,
            ActivityAction.UPDATED,
            entity_type=ActivityType.WORKSPACE.value,
            entity_name=workspace.name or workspace.id,
            details={"previousPlan": previous.value, "plan": tier.value, "source": source or "unknown"},
        )
        logger.info(
            f"Workspace {workspace.id} upgraded from {previous.value} to {tier.value}",
            extra={"source": source, "feature": feature},
        )
        return workspace

    async def downgrade(self, plan: Union[PlanTier, str] = PlanTier.FREE) -> Workspace:
        """Write a lower tier. Counters and history are kept."""
        tier = parse_plan(plan)
        previous, workspace = await self._write_plan(tier)
        await self.activity_logger.log(
            ActivityType.WORKSPACE,
            ActivityAction.UPDATED,
            entity_type=ActivityType.WORKSPACE.value,
            entity_name=workspace.name or workspace.id,
            details={"previousPlan": previous.value, "plan": tier.value},
        )
        logger.info(f"Workspace {workspace.id} moved to {get_plan_display_name(tier)}")
        return workspace
