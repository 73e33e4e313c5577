"""
Usage tracking against plan limits.

Counts are derived from the workspace store on every query, so they are
never stale and never cached. Reads fail open: a feature whose data
cannot be read counts as zero.
"""

import logging
import math
from typing import Any, Dict, List, Union

from erm.plans.limits import (
    get_feature_name,
    get_limits,
    get_plan_display_name,
    parse_export_format,
    parse_feature,
)
from erm.storage.kv_store import KeyValueStore
from erm.types.plans import UNLIMITED, ExportFormat, Feature, PlanLimits, PlanTier
from erm.types.usage import FeatureStatus, UsageSnapshot, UsageSummary
from erm.utils.logging import timed
from erm.workspace import WorkspaceService

logger = logging.getLogger(__name__)

# Store keys written by the entity modules
REGISTERS_KEY = "registers"
RISKS_KEY = "risks"
REGISTER_RISKS_PREFIX = "risks_"
CONTROLS_KEY = "controls"
REPORTS_KEY = "recentReports"
MEMBERS_KEY = "workspaceMembers"
AI_CALL_COUNT_KEY = "aiCallCount"

# Features checked by is_workspace_over_limit; team members are excluded
OVER_LIMIT_FEATURES = (
    Feature.RISK_REGISTERS,
    Feature.RISKS,
    Feature.CONTROLS,
    Feature.REPORTS,
    Feature.STORAGE,
)

AT_LIMIT_FEATURES = (
    Feature.RISK_REGISTERS,
    Feature.RISKS,
    Feature.CONTROLS,
    Feature.REPORTS,
    Feature.TEAM_MEMBERS,
    Feature.STORAGE,
)


def coerce_count(value: Any) -> int:
    """Stored counter value as a non-negative int; numeric strings are accepted."""
    if isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return max(0, value)
    if isinstance(value, str):
        try:
            return max(0, int(value.strip()))
        except ValueError:
            return 0
    return 0


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def limit_reached(usage: int, limit: int) -> bool:
    """At or over the cap; never true for unlimited."""
    return limit != UNLIMITED and usage >= limit


def limit_exceeded(usage: int, limit: int) -> bool:
    return limit != UNLIMITED and usage > limit


def remaining_capacity(usage: int, limit: int) -> int:
    if limit == UNLIMITED:
        return UNLIMITED
    return max(0, limit - usage)


def usage_percentage(usage: int, limit: int) -> int:
    if limit == UNLIMITED or limit == 0:
        return 0
    return round_half_up(usage / limit * 100)


def _list_length(value: Any) -> int:
    return len(value) if isinstance(value, list) else 0


class UsageTracker:
    """
    Read-only view of a workspace's usage.

    Args:
        store: Store scoped to the workspace
        workspace: Workspace context supplying the plan and current user
    """

    def __init__(self, store: KeyValueStore, workspace: WorkspaceService) -> None:
        self.store = store
        self.workspace = workspace

    async def _count(self, key: str) -> int:
        return _list_length(await self.store.get(key, []))

    async def _count_risks(self, registers: Any) -> int:
        total = await self._count(RISKS_KEY)
        if total:
            return total

        # Older data keeps risks per register
        if not isinstance(registers, list):
            return 0
        for register in registers:
            if isinstance(register, dict) and register.get("id") is not None:
                total += await self._count(f"{REGISTER_RISKS_PREFIX}{register['id']}")
        return total

    async def _storage_kb(self) -> int:
        try:
            total_bytes = await self.store.size_bytes()
        except Exception as e:
            logger.warning(f"Could not measure storage usage: {str(e)}")
            return 0
        return round_half_up(total_bytes / 1024)

    async def _ai_calls(self) -> int:
        return coerce_count(await self.store.get(AI_CALL_COUNT_KEY, 0))

    @timed("usage_snapshot")
    async def get_usage(self) -> UsageSnapshot:
        """Recompute the usage snapshot from the store."""
        registers = await self.store.get(REGISTERS_KEY, [])
        members = await self._count(MEMBERS_KEY)
        current_user = await self.workspace.get_current_user()

        return UsageSnapshot(
            risk_registers=_list_length(registers),
            risks=await self._count_risks(registers),
            controls=await self._count(CONTROLS_KEY),
            reports=await self._count(REPORTS_KEY),
            team_members=members + (1 if current_user is not None else 0),
            storage=await self._storage_kb(),
            ai_calls=await self._ai_calls(),
        )

    async def get_plan(self) -> PlanTier:
        return await self.workspace.get_plan()

    async def get_limits(self) -> PlanLimits:
        return get_limits(await self.get_plan())

    async def _usage_and_limit(self, feature: Union[Feature, str]) -> tuple[int, int]:
        feature = parse_feature(feature)
        usage = await self.get_usage()
        limits = await self.get_limits()
        return usage.get(feature), limits.limit_for(feature)

    async def get_feature_usage(self, feature: Union[Feature, str]) -> int:
        usage, _ = await self._usage_and_limit(feature)
        return usage

    async def is_at_limit(self, feature: Union[Feature, str]) -> bool:
        return limit_reached(*await self._usage_and_limit(feature))

    async def is_over_limit(self, feature: Union[Feature, str]) -> bool:
        return limit_exceeded(*await self._usage_and_limit(feature))

    async def get_remaining(self, feature: Union[Feature, str]) -> int:
        """Remaining capacity, or -1 when the plan has no cap."""
        return remaining_capacity(*await self._usage_and_limit(feature))

    async def get_usage_percentage(self, feature: Union[Feature, str]) -> int:
        return usage_percentage(*await self._usage_and_limit(feature))

    async def get_feature_status(self, feature: Union[Feature, str]) -> FeatureStatus:
        feature = parse_feature(feature)
        usage, limit = await self._usage_and_limit(feature)
        return _feature_status(feature, usage, limit)

    async def is_workspace_over_limit(self) -> bool:
        usage = await self.get_usage()
        limits = await self.get_limits()
        return any(
            limit_exceeded(usage.get(f), limits.limit_for(f)) for f in OVER_LIMIT_FEATURES
        )

    async def get_features_at_limit(self) -> List[Feature]:
        usage = await self.get_usage()
        limits = await self.get_limits()
        return [
            f for f in AT_LIMIT_FEATURES if limit_reached(usage.get(f), limits.limit_for(f))
        ]

    async def can_export_format(self, export_format: Union[ExportFormat, str]) -> bool:
        export_format = parse_export_format(export_format)
        limits = await self.get_limits()
        return limits.exports.allows(export_format)

    async def get_usage_summary(self) -> UsageSummary:
        """Plan, usage, limits and per-feature status in one snapshot."""
        plan = await self.get_plan()
        limits = get_limits(plan)
        usage = await self.get_usage()

        features: Dict[str, FeatureStatus] = {
            f.key: _feature_status(f, usage.get(f), limits.limit_for(f)) for f in Feature
        }
        return UsageSummary(
            plan=plan,
            plan_name=get_plan_display_name(plan),
            usage=usage,
            limits=limits,
            features=features,
            over_limit=any(
                limit_exceeded(usage.get(f), limits.limit_for(f)) for f in OVER_LIMIT_FEATURES
            ),
        )


def _feature_status(feature: Feature, usage: int, limit: int) -> FeatureStatus:
    return FeatureStatus(
        feature=feature,
        name=get_feature_name(feature),
        current=usage,
        limit=limit,
        remaining=remaining_capacity(usage, limit),
        percentage=usage_percentage(usage, limit),
        at_limit=limit_reached(usage, limit),
        over_limit=limit_exceeded(usage, limit),
        unlimited=limit == UNLIMITED,
    )
