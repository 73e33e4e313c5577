"""
Per-workspace AI call counter.

The counter is monotonic until an explicit reset and saturates at the
plan's ``aiCalls`` cap. The increment runs through the store's atomic
update so concurrent callers cannot lose counts.
"""

import logging
from typing import Any

from erm.plans.limits import get_limits
from erm.storage.kv_store import KeyValueStore
from erm.types.plans import UNLIMITED, PlanTier
from erm.types.usage import AICallStatus
from erm.usage.tracker import AI_CALL_COUNT_KEY, coerce_count
from erm.workspace import WorkspaceService

logger = logging.getLogger(__name__)

NEAR_LIMIT_THRESHOLD = 10


class AICallCounter:
    """
    Counts AI-assisted calls for one workspace.

    Args:
        store: Store scoped to the workspace
        workspace: Workspace context supplying the plan
    """

    def __init__(self, store: KeyValueStore, workspace: WorkspaceService) -> None:
        self.store = store
        self.workspace = workspace

    async def get_count(self) -> int:
        return coerce_count(await self.store.get(AI_CALL_COUNT_KEY, 0))

    async def get_limit(self) -> int:
        return get_limits(await self.workspace.get_plan()).ai_calls

    async def increment(self) -> AICallStatus:
        """
        Record one AI call if the cap allows it.

        The call that reaches the cap is still reported as allowed; only
        calls made once the counter is saturated come back with
        ``allowed=False``.
        """
        limit = await self.get_limit()
        attempted = 0

        def bump(current: Any) -> int:
            nonlocal attempted
            count = coerce_count(current)
            attempted = count + 1
            if limit == UNLIMITED or count < limit:
                return count + 1
            return count

        count = await self.store.update(AI_CALL_COUNT_KEY, bump, 0)

        remaining = UNLIMITED if limit == UNLIMITED else max(0, limit - count)
        # Checked against the attempted count so a saturated counter denies.
        allowed = limit == UNLIMITED or attempted <= limit
        if limit != UNLIMITED and count >= limit:
            logger.info(f"AI call counter reached cap: {count}/{limit}")

        return AICallStatus(
            allowed=allowed,
            count=count,
            limit=limit,
            remaining=remaining,
            at_limit=not allowed,
            unlimited=limit == UNLIMITED,
        )

    async def can_make_call(self) -> AICallStatus:
        """Check whether another AI call is allowed without counting it."""
        count = await self.get_count()
        plan = await self.workspace.get_plan()
        limit = get_limits(plan).ai_calls

        if limit == UNLIMITED:
            return AICallStatus(
                allowed=True,
                count=count,
                limit=UNLIMITED,
                remaining=UNLIMITED,
                unlimited=True,
            )

        if count >= limit:
            return AICallStatus(
                allowed=False,
                count=count,
                limit=limit,
                remaining=0,
                at_limit=True,
                message=f"You've used all {limit} AI calls on the {PlanTier.FREE.value} plan.",
                upgrade_message="Upgrade to Pro for unlimited AI assistance.",
            )

        return AICallStatus(
            allowed=True,
            count=count,
            limit=limit,
            remaining=limit - count,
        )

    async def reset(self) -> None:
        await self.store.set(AI_CALL_COUNT_KEY, 0)
        logger.info("AI call counter reset to 0")

    async def get_display_text(self) -> str:
        limit = await self.get_limit()
        if limit == UNLIMITED:
            return "Unlimited"
        return f"{max(0, limit - await self.get_count())} left"

    async def get_badge_state(self) -> str:
        """One of ``unlimited``, ``at_limit``, ``near_limit`` or ``normal``."""
        limit = await self.get_limit()
        if limit == UNLIMITED:
            return "unlimited"
        count = await self.get_count()
        if count >= limit:
            return "at_limit"
        if limit - count <= NEAR_LIMIT_THRESHOLD:
            return "near_limit"
        return "normal"
