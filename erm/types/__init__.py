"""Type definitions for the ERM service."""

from .activity import ActivityAction, ActivityCreate, ActivityRecord, ActivityType
from .analytics import (
    ConversionStats,
    UpgradeAction,
    UpgradeEvent,
    UpgradeEventCreate,
)
from .exports import (
    ExportCheck,
    ExportRecord,
    ExportResult,
    ExportStats,
    ExportType,
    ExportTypeStats,
    WatermarkConfig,
    WatermarkPosition,
)
from .plans import UNLIMITED, ExportFormat, ExportPermissions, Feature, PlanLimits, PlanTier
from .usage import (
    AICallStatus,
    CreatableResource,
    EnforcementResult,
    EnforcementStatus,
    FeatureStatus,
    UsageSnapshot,
    UsageSummary,
)
from .workspace import UpgradeRequest, User, Workspace

__all__ = [
    # Plans
    "UNLIMITED",
    "PlanTier",
    "Feature",
    "ExportFormat",
    "ExportPermissions",
    "PlanLimits",
    # Usage
    "UsageSnapshot",
    "FeatureStatus",
    "UsageSummary",
    "CreatableResource",
    "EnforcementResult",
    "EnforcementStatus",
    "AICallStatus",
    # Exports
    "ExportType",
    "ExportRecord",
    "ExportCheck",
    "ExportResult",
    "ExportStats",
    "ExportTypeStats",
    "WatermarkConfig",
    "WatermarkPosition",
    # Activity
    "ActivityType",
    "ActivityAction",
    "ActivityRecord",
    "ActivityCreate",
    # Analytics
    "UpgradeAction",
    "UpgradeEvent",
    "UpgradeEventCreate",
    "ConversionStats",
    # Workspace
    "Workspace",
    "User",
    "UpgradeRequest",
]
