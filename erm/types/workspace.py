"""
Pydantic models for the workspace and its current user.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from erm.types.plans import PlanTier


class Workspace(BaseModel):
    """Workspace settings persisted under the ``workspace`` key."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str = ""
    plan: PlanTier = PlanTier.FREE
    limits_override: bool = Field(
        default=False,
        alias="limitsOverride",
        description="Bypass every plan limit for this workspace",
    )
    upgraded_at: Optional[datetime] = Field(default=None, alias="upgradedAt")
    subscription_id: Optional[str] = Field(default=None, alias="subscriptionId")
    billing_cycle: Optional[str] = Field(default=None, alias="billingCycle")


class UpgradeRequest(BaseModel):
    """Request body for a plan change."""

    model_config = ConfigDict(populate_by_name=True)

    plan: str
    source: Optional[str] = None
    feature: Optional[str] = None
    subscription_id: Optional[str] = Field(default=None, alias="subscriptionId")
    billing_cycle: str = Field(default="monthly", alias="billingCycle")


class User(BaseModel):
    """The user acting in the current workspace session."""

    model_config = ConfigDict(populate_by_name=True)

    id: Optional[str] = None
    name: str = "Unknown User"
    email: Optional[str] = None
    is_platform_admin: bool = Field(default=False, alias="isPlatformAdmin")
