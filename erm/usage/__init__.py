"""Usage tracking, AI call counting and plan enforcement."""

from .ai_counter import AICallCounter
from .enforcement import PlanEnforcement
from .tracker import UsageTracker

__all__ = [
    "AICallCounter",
    "PlanEnforcement",
    "UsageTracker",
]
