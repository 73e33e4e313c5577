"""Plan limits table and plan changes."""

from .limits import (
    PLAN_LIMITS,
    get_feature_name,
    get_limit,
    get_limit_text,
    get_limits,
    get_plan_display_name,
    is_unlimited,
    list_plans,
    parse_feature,
    parse_plan,
    resolve_plan,
)

__all__ = [
    "PLAN_LIMITS",
    "get_limits",
    "get_limit",
    "is_unlimited",
    "get_limit_text",
    "get_plan_display_name",
    "get_feature_name",
    "list_plans",
    "parse_plan",
    "parse_feature",
    "resolve_plan",
]
