"""
Pydantic models for usage snapshots and limit-check results.

Every limit check returns one of these records instead of raising:
- UsageSnapshot: current counts per capped feature
- FeatureStatus / UsageSummary: read-only views for dashboards
- EnforcementResult: outcome of a create/invite/export permission check
- AICallStatus: outcome of an AI call check or increment
"""

from enum import Enum
from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from erm.types.plans import Feature, PlanLimits, PlanTier


class UsageSnapshot(BaseModel):
    """Derived counts for one workspace. Recomputed on every query."""

    model_config = ConfigDict(populate_by_name=True)

    risk_registers: int = Field(default=0, alias="riskRegisters")
    risks: int = 0
    controls: int = 0
    reports: int = 0
    team_members: int = Field(default=0, alias="teamMembers")
    storage: int = Field(default=0, description="Storage used in KB")
    ai_calls: int = Field(default=0, alias="aiCalls")

    def get(self, feature: Feature) -> int:
        return getattr(self, feature.value)


class FeatureStatus(BaseModel):
    """Usage of a single feature against its plan cap."""

    model_config = ConfigDict(populate_by_name=True)

    feature: Feature
    name: str
    current: int
    limit: int
    remaining: int
    percentage: int
    at_limit: bool = Field(alias="atLimit")
    over_limit: bool = Field(alias="overLimit")
    unlimited: bool


class UsageSummary(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    plan: PlanTier
    plan_name: str = Field(alias="planName")
    usage: UsageSnapshot
    limits: PlanLimits
    features: Dict[str, FeatureStatus]
    over_limit: bool = Field(alias="overLimit")


class CreatableResource(str, Enum):
    """Resources whose creation is gated by a plan cap."""

    RISK_REGISTER = "riskRegister"
    RISK = "risk"
    CONTROL = "control"
    REPORT = "report"
    TEAM_MEMBER = "teamMember"


class EnforcementResult(BaseModel):
    """
    Outcome of a plan enforcement check.

    ``reason`` is ``limit_reached`` for a numeric cap and
    ``feature_blocked`` for a plan feature that is switched off.
    """

    model_config = ConfigDict(populate_by_name=True)

    allowed: bool
    reason: Optional[str] = None
    feature: Optional[str] = None
    current: Optional[int] = None
    limit: Optional[int] = None
    message: Optional[str] = None
    upgrade_message: Optional[str] = Field(default=None, alias="upgradeMessage")


class EnforcementStatus(BaseModel):
    """Limit status of one feature as seen by plan enforcement."""

    model_config = ConfigDict(populate_by_name=True)

    feature: Feature
    current: int
    limit: int
    remaining: int
    percentage: int
    at_limit: bool = Field(alias="atLimit")
    near_limit: bool = Field(alias="nearLimit", description="80% or more used, not yet at the cap")
    can_create: bool = Field(alias="canCreate")


class AICallStatus(BaseModel):
    """
    AI call counter state after a check or an increment.

    ``remaining`` is ``-1`` when the plan has no cap.
    """

    model_config = ConfigDict(populate_by_name=True)

    allowed: bool
    count: int
    limit: int
    remaining: int
    at_limit: bool = Field(default=False, alias="atLimit")
    unlimited: bool = False
    message: Optional[str] = None
    upgrade_message: Optional[str] = Field(default=None, alias="upgradeMessage")
