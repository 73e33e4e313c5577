"""
Pydantic models for subscription plans and their limits.

This module defines:
- Plan tiers and the features that carry a numeric cap
- Export format permissions per plan
- The per-tier limit record (``-1`` means unlimited)
"""

import re
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

UNLIMITED = -1


def _to_snake(value: str) -> str:
    return re.sub(r"(?<!^)(?=[A-Z])", "_", value).replace("-", "_").lower()


class PlanTier(str, Enum):
    """Subscription tiers. Stored values are upper case."""

    FREE = "FREE"
    PRO = "PRO"
    ENTERPRISE = "ENTERPRISE"

    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str):
            upper = value.strip().upper()
            for member in cls:
                if member.value == upper:
                    return member
        return None


class Feature(str, Enum):
    """
    Capped features.

    Accepts the snake_case value or the camelCase name used in persisted
    limit records (``riskRegisters``, ``aiCalls``).
    """

    RISK_REGISTERS = "risk_registers"
    RISKS = "risks"
    CONTROLS = "controls"
    REPORTS = "reports"
    TEAM_MEMBERS = "team_members"
    STORAGE = "storage"
    AI_CALLS = "ai_calls"

    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str):
            normalized = _to_snake(value.strip())
            for member in cls:
                if member.value == normalized:
                    return member
        return None

    @property
    def key(self) -> str:
        """camelCase name used in wire records, e.g. ``riskRegisters``."""
        head, *rest = self.value.split("_")
        return head + "".join(part.title() for part in rest)


class ExportFormat(str, Enum):
    PDF = "pdf"
    EXCEL = "excel"
    CSV = "csv"

    @classmethod
    def _missing_(cls, value):
        if isinstance(value, str):
            lower = value.strip().lower()
            for member in cls:
                if member.value == lower:
                    return member
        return None


class ExportPermissions(BaseModel):
    """Which export formats a plan may use."""

    model_config = ConfigDict(frozen=True)

    pdf: bool = True
    excel: bool = False
    csv: bool = False

    def allows(self, export_format: ExportFormat) -> bool:
        return getattr(self, export_format.value)


class PlanLimits(BaseModel):
    """Static caps for one plan tier."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    plan: PlanTier
    risk_registers: int = Field(..., alias="riskRegisters", ge=UNLIMITED)
    risks: int = Field(..., ge=UNLIMITED)
    controls: int = Field(..., ge=UNLIMITED)
    reports: int = Field(..., ge=UNLIMITED)
    team_members: int = Field(..., alias="teamMembers", ge=UNLIMITED)
    storage: int = Field(
        ...,
        ge=UNLIMITED,
        description="Storage cap in KB (-1 for unlimited)",
    )
    ai_calls: int = Field(..., alias="aiCalls", ge=UNLIMITED)
    exported_items: int = Field(
        ...,
        alias="exportedItems",
        ge=UNLIMITED,
        description="Distinct items exportable per export type (-1 for unlimited)",
    )
    exports: ExportPermissions = Field(default_factory=ExportPermissions)

    def limit_for(self, feature: Feature) -> int:
        return getattr(self, feature.value)
