"""
Pydantic models for export gating, history and watermark policy.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field

from erm.types.plans import PlanTier


class ExportType(str, Enum):
    RISK_REGISTER = "riskRegister"
    REPORT = "report"

    @property
    def plural_label(self) -> str:
        return "risk registers" if self is ExportType.RISK_REGISTER else "reports"


class WatermarkPosition(str, Enum):
    TOP_RIGHT = "top-right"
    BOTTOM_LEFT = "bottom-left"


class ExportRecord(BaseModel):
    """One successful export. Appended to the workspace export history."""

    model_config = ConfigDict(populate_by_name=True)

    type: ExportType
    item_id: str = Field(alias="itemId")
    item_name: str = Field(default="", alias="itemName")
    format: str = "pdf"
    timestamp: datetime = Field(validation_alias=AliasChoices("timestamp", "exportedAt"))
    plan: Optional[PlanTier] = None


class ExportCheck(BaseModel):
    """
    Outcome of an export permission check.

    ``remaining`` is ``-1`` on unlimited plans. ``reason`` is set only
    when the export is denied.
    """

    model_config = ConfigDict(populate_by_name=True)

    allowed: bool
    watermark: bool = False
    is_new_export: bool = Field(default=False, alias="isNewExport")
    remaining: int = 0
    reason: Optional[str] = None
    message: Optional[str] = None
    upgrade_message: Optional[str] = Field(default=None, alias="upgradeMessage")


class ExportResult(ExportCheck):
    """Outcome of a wrapped export; ``filename`` is set when it ran."""

    filename: Optional[str] = None


class WatermarkConfig(BaseModel):
    """Watermark placement handed to the external PDF renderer."""

    model_config = ConfigDict(populate_by_name=True)

    logo_path: str = Field(alias="logoPath")
    opacity: float
    width: int
    height: int
    position: WatermarkPosition
    fallback_text: str = Field(alias="fallbackText")


class ExportTypeStats(BaseModel):
    total: int
    unique: int
    limit: int
    remaining: int


class ExportStats(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    risk_registers: ExportTypeStats = Field(alias="riskRegisters")
    reports: ExportTypeStats
