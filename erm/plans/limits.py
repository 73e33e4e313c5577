"""
Static plan limits table.

Pure lookups: no I/O, safe to call from anywhere. Plan names are matched
case-insensitively and anything unknown or missing resolves to FREE.
"""

import logging
from typing import Dict, List, Optional, Union

from erm.exceptions import ErrorCode, ValidationError
from erm.types.plans import (
    UNLIMITED,
    ExportFormat,
    ExportPermissions,
    Feature,
    PlanLimits,
    PlanTier,
)

logger = logging.getLogger(__name__)


PLAN_LIMITS: Dict[PlanTier, PlanLimits] = {
    PlanTier.FREE: PlanLimits(
        plan=PlanTier.FREE,
        risk_registers=5,
        risks=25,
        controls=10,
        reports=5,
        team_members=3,
        storage=50000,
        ai_calls=50,
        exported_items=5,
        exports=ExportPermissions(pdf=True, excel=False, csv=False),
    ),
    PlanTier.PRO: PlanLimits(
        plan=PlanTier.PRO,
        risk_registers=UNLIMITED,
        risks=UNLIMITED,
        controls=UNLIMITED,
        reports=UNLIMITED,
        team_members=10,
        storage=500000,
        ai_calls=UNLIMITED,
        exported_items=UNLIMITED,
        exports=ExportPermissions(pdf=True, excel=True, csv=True),
    ),
    PlanTier.ENTERPRISE: PlanLimits(
        plan=PlanTier.ENTERPRISE,
        risk_registers=UNLIMITED,
        risks=UNLIMITED,
        controls=UNLIMITED,
        reports=UNLIMITED,
        team_members=UNLIMITED,
        storage=UNLIMITED,
        ai_calls=UNLIMITED,
        exported_items=UNLIMITED,
        exports=ExportPermissions(pdf=True, excel=True, csv=True),
    ),
}

PLAN_DISPLAY_NAMES: Dict[PlanTier, str] = {
    PlanTier.FREE: "Free Plan",
    PlanTier.PRO: "Pro Plan",
    PlanTier.ENTERPRISE: "Enterprise Plan",
}

FEATURE_NAMES: Dict[Feature, str] = {
    Feature.RISK_REGISTERS: "Risk Registers",
    Feature.RISKS: "Risks",
    Feature.CONTROLS: "Controls",
    Feature.REPORTS: "Reports",
    Feature.TEAM_MEMBERS: "Team Members",
    Feature.STORAGE: "Storage",
    Feature.AI_CALLS: "AI Suggestions",
}


def resolve_plan(plan: Optional[Union[PlanTier, str]]) -> PlanTier:
    """Map any stored plan value to a tier, defaulting to FREE."""
    if isinstance(plan, PlanTier):
        return plan
    if not plan:
        return PlanTier.FREE
    try:
        return PlanTier(plan)
    except ValueError:
        logger.debug(f"Unknown plan {plan!r}, treating as FREE")
        return PlanTier.FREE


def parse_plan(plan: Union[PlanTier, str]) -> PlanTier:
    """
    Strict plan parsing for user input.

    Raises:
        ValidationError: If the value is not a known tier
    """
    if isinstance(plan, PlanTier):
        return plan
    try:
        return PlanTier(plan)
    except ValueError:
        raise ValidationError(
            message=f"Unknown plan: {plan}",
            field="plan",
            value=plan,
            error_code=ErrorCode.INVALID_PLAN,
        )


def parse_feature(feature: Union[Feature, str]) -> Feature:
    """
    Raises:
        ValidationError: If the value is not a capped feature
    """
    if isinstance(feature, Feature):
        return feature
    try:
        return Feature(feature)
    except ValueError:
        raise ValidationError(
            message=f"Unknown feature: {feature}",
            field="feature",
            value=feature,
            error_code=ErrorCode.INVALID_FEATURE,
        )


def parse_export_format(export_format: Union[ExportFormat, str]) -> ExportFormat:
    if isinstance(export_format, ExportFormat):
        return export_format
    try:
        return ExportFormat(export_format)
    except ValueError:
        raise ValidationError(
            message=f"Unknown export format: {export_format}",
            field="format",
            value=export_format,
            error_code=ErrorCode.INVALID_EXPORT_FORMAT,
        )


def get_limits(plan: Optional[Union[PlanTier, str]]) -> PlanLimits:
    """
    Get the limit record for a plan.

    Args:
        plan: Tier or tier name in any case; unknown or missing means FREE

    Returns:
        PlanLimits for the resolved tier
    """
    return PLAN_LIMITS[resolve_plan(plan)]


def get_limit(plan: Optional[Union[PlanTier, str]], feature: Union[Feature, str]) -> int:
    return get_limits(plan).limit_for(parse_feature(feature))


def is_unlimited(plan: Optional[Union[PlanTier, str]], feature: Union[Feature, str]) -> bool:
    """True iff the plan's cap for ``feature`` is -1."""
    return get_limit(plan, feature) == UNLIMITED


def get_limit_text(limit: int) -> str:
    return "Unlimited" if limit == UNLIMITED else str(limit)


def get_plan_display_name(plan: Optional[Union[PlanTier, str]]) -> str:
    return PLAN_DISPLAY_NAMES[resolve_plan(plan)]


def get_feature_name(feature: Union[Feature, str]) -> str:
    """Human-readable feature name, or the raw key when unknown."""
    try:
        return FEATURE_NAMES[Feature(feature)]
    except ValueError:
        return str(feature)


def list_plans() -> List[PlanLimits]:
    return [PLAN_LIMITS[tier] for tier in PlanTier]
