"""
Pydantic models for upgrade-funnel analytics.
"""

from datetime import datetime
from enum import Enum
from typing import Dict

from pydantic import BaseModel, ConfigDict, Field


class UpgradeAction(str, Enum):
    MODAL_SHOWN = "modal_shown"
    UPGRADE_CLICKED = "upgrade_clicked"
    UPGRADE_SUCCESS = "upgrade_success"


class UpgradeEvent(BaseModel):
    """
    One step of the upgrade funnel.

    This is also the JSON body delivered to the analytics endpoint.
    """

    model_config = ConfigDict(populate_by_name=True)

    timestamp: datetime
    source: str = "unknown"
    feature: str = ""
    plan: str = "PRO"
    user_id: str = Field(alias="userId")
    session_id: str = Field(alias="sessionId")
    action: str


class ConversionStats(BaseModel):
    """
    Funnel counts keyed by source.

    ``conversion_rate`` has an entry for every source that showed the
    upgrade modal, formatted as ``"12.50%"``.
    """

    model_config = ConfigDict(populate_by_name=True)

    modal_shown: Dict[str, int] = Field(default_factory=dict, alias="modalShown")
    upgrade_clicked: Dict[str, int] = Field(default_factory=dict, alias="upgradeClicked")
    upgrade_success: Dict[str, int] = Field(default_factory=dict, alias="upgradeSuccess")
    conversion_rate: Dict[str, str] = Field(default_factory=dict, alias="conversionRate")


class UpgradeEventCreate(BaseModel):
    """Request body for recording a funnel step over HTTP."""

    source: str = "unknown"
    feature: str = ""
    action: UpgradeAction
    plan: str = "PRO"
